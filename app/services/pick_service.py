"""
Pick Store

Picks arrive either from a participant holding a magic link or from an admin
overriding a participant's pick. Each submitted value is either a reference
to one of the round's teams or free text; both are resolved to a team id
before anything is written. A submission replaces the participant's previous
pick items for the round.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from app import db
from app.forms.common import sanitize_input
from app.models import MagicLink, Pick, PickItem, Round, SeasonParticipant, Team, User
from app.services.leaderboard_service import invalidate_leaderboards
from app.utils.db_utils import is_lock_conflict, is_unique_race, retry_on_conflict, transaction
from app.utils.errors import ForbiddenError, NotFoundError, PreconditionError, ValidationError

logger = logging.getLogger(__name__)

MAX_PICK_LENGTH = 100
MAX_PICKS = 10


@dataclass(frozen=True)
class ExistingOption:
    """A pick naming one of the round's teams by id"""

    team_id: int


@dataclass(frozen=True)
class WriteIn:
    """A pick given as text: a team name, or a free-text write-in"""

    text: str


def parse_pick_values(raw_values):
    """
    Turn submitted JSON values into PickValues. Integers reference a team,
    strings are sanitized text; blank strings are dropped.
    """
    values = []
    errors = []
    for index, raw in enumerate(raw_values):
        field = f"picks[{index}]"
        if isinstance(raw, bool):
            errors.append({"field": field, "message": "Pick must be a team id or text"})
        elif isinstance(raw, int):
            values.append(ExistingOption(raw))
        elif isinstance(raw, str):
            if len(raw.strip()) > MAX_PICK_LENGTH:
                errors.append(
                    {"field": field, "message": f"Pick values must be {MAX_PICK_LENGTH} characters or less"}
                )
                continue
            text = sanitize_input(raw)
            if text:
                values.append(WriteIn(text))
        else:
            errors.append({"field": field, "message": "Pick must be a team id or text"})

    if errors:
        raise ValidationError("Invalid picks", errors)
    if not values:
        raise ValidationError(
            "Invalid picks", [{"field": "picks", "message": "At least one pick is required"}]
        )
    if len(values) > MAX_PICKS:
        raise ValidationError(
            "Invalid picks", [{"field": "picks", "message": f"No more than {MAX_PICKS} picks are allowed"}]
        )
    return values


def resolve_pick_values(round_obj, values):
    """
    Resolve PickValues to team ids for a round.

    Text matching one of the round's teams (case-insensitively) selects it.
    Any other text is rejected for single-pick rounds and, for write-in
    rounds, stored as a new write-in team that is never one of the round's
    official teams.
    """
    if len(values) > round_obj.max_picks:
        raise ValidationError(
            "Invalid picks",
            [{"field": "picks", "message": f"This round allows at most {round_obj.max_picks} pick(s)"}],
        )

    teams = round_obj.get_teams()
    teams_by_id = {team.id: team for team in teams}
    teams_by_name = {team.name.lower(): team for team in teams}

    team_ids = []
    for value in values:
        if isinstance(value, ExistingOption):
            if value.team_id not in teams_by_id:
                raise ValidationError(
                    f"Invalid pick: {value.team_id}. Please select from available teams."
                )
            team_ids.append(value.team_id)
            continue

        team = teams_by_name.get(value.text.lower())
        if team is None:
            if not round_obj.is_write_in:
                raise ValidationError(
                    f"Invalid pick: {value.text}. Please select from available teams."
                )
            team = Team.create_write_in(value.text)
        team_ids.append(team.id)

    if len(set(team_ids)) != len(team_ids):
        raise ValidationError(
            "Invalid picks", [{"field": "picks", "message": "Duplicate picks are not allowed"}]
        )
    return team_ids


def _is_pick_conflict(error):
    return is_lock_conflict(error) or is_unique_race(error)


def check_round_open(round_obj):
    if round_obj.status == "draft":
        raise ForbiddenError("This round is not open for picks yet")
    if not round_obj.is_accepting_picks():
        raise ForbiddenError("This round is now locked")


class PickService:
    def _write_pick(self, round_obj, user_id, team_ids, admin=None):
        """Upsert the pick row and replace its items. Caller owns the transaction."""
        pick = Pick.get_for(user_id, round_obj.id)
        if pick is None:
            pick = Pick(user_id=user_id, round_id=round_obj.id)
            db.session.add(pick)
            db.session.flush()
        elif admin is not None and not pick.admin_edited:
            pick.original_pick = pick.get_team_names()

        if admin is not None:
            pick.admin_edited = True
            pick.edited_by_admin_id = admin.id
            pick.edited_at = datetime.now(timezone.utc)

        PickItem.query.filter_by(pick_id=pick.id).delete(synchronize_session=False)
        for number, team_id in enumerate(team_ids, start=1):
            db.session.add(PickItem(pick_id=pick.id, pick_number=number, team_id=team_id))
        pick.updated_at = datetime.now(timezone.utc)
        db.session.flush()
        return pick

    @retry_on_conflict(should_retry=_is_pick_conflict)
    def submit_pick(self, round_id, user_id, values):
        """Store a participant's pick while the round is open"""
        with transaction():
            round_obj = db.session.get(Round, round_id)
            if round_obj is None or round_obj.is_deleted:
                raise NotFoundError("Round not found")
            check_round_open(round_obj)
            team_ids = resolve_pick_values(round_obj, values)
            pick = self._write_pick(round_obj, user_id, team_ids)
        invalidate_leaderboards()

        logger.info(f"Pick saved: user {user_id}, round {round_id}, teams {team_ids}")
        return pick

    @retry_on_conflict(should_retry=_is_pick_conflict)
    def admin_set_pick(self, admin, round_id, user_id, values):
        """Admin override, allowed after lock but never on completed rounds"""
        with transaction():
            round_obj = db.session.get(Round, round_id)
            if round_obj is None or round_obj.is_deleted:
                raise NotFoundError("Round not found")
            if round_obj.status == "completed":
                raise PreconditionError("Cannot modify picks for completed rounds")
            if db.session.get(User, user_id) is None:
                raise NotFoundError("User not found")
            team_ids = resolve_pick_values(round_obj, values)
            pick = self._write_pick(round_obj, user_id, team_ids, admin=admin)
        invalidate_leaderboards()

        logger.info(
            f"Admin {admin.id} set pick for user {user_id} in round {round_id}: teams {team_ids}"
        )
        return pick

    def get_link(self, token):
        link = MagicLink.find_by_token(token)
        if link is None:
            raise NotFoundError("Invalid or expired link")
        round_obj = link.round
        if round_obj is None or round_obj.is_deleted:
            raise NotFoundError("Invalid or expired link")
        if link.is_expired():
            raise ForbiddenError("This round is now locked")
        return link

    def get_link_participants(self, link):
        """Active season participants a link may pick for"""
        season_id = link.round.season_id
        query = (
            User.query.join(SeasonParticipant, SeasonParticipant.user_id == User.id)
            .filter(SeasonParticipant.season_id == season_id, User.is_active.is_(True))
        )
        if link.is_shared_email:
            query = query.filter(db.func.lower(User.email) == link.email.lower())
        else:
            query = query.filter(User.id == link.user_id)
        return query.order_by(User.name).all()

    def resolve_link_user(self, link, user_id=None):
        """The participant a submission through this link is for"""
        participants = {user.id: user for user in self.get_link_participants(link)}

        if link.is_shared_email:
            if user_id is None:
                raise ValidationError(
                    "Invalid picks", [{"field": "userId", "message": "Select who you are picking for"}]
                )
            if user_id not in participants:
                raise ForbiddenError("Selected participant is not part of this link")
            return participants[user_id]

        if link.user_id not in participants:
            raise ForbiddenError("You are not an active participant in this season")
        return participants[link.user_id]

    def validate_link(self, token):
        """Round details, teams and current picks for a magic link"""
        link = self.get_link(token)
        round_obj = link.round
        check_round_open(round_obj)

        participants = self.get_link_participants(link)
        if not participants:
            raise NotFoundError("No active participants found for this link")
        link.mark_used()
        db.session.commit()

        round_data = round_obj.to_dict()
        round_data["season_name"] = round_obj.season.name
        data = {
            "valid": True,
            "is_shared_email": link.is_shared_email,
            "round": round_data,
            "teams": [team.to_dict() for team in round_obj.get_teams()],
        }

        users = []
        for user in participants:
            pick = Pick.get_for(user.id, round_obj.id)
            users.append(
                {
                    "id": user.id,
                    "name": user.name,
                    "current_pick": pick.to_dict() if pick else None,
                }
            )

        if link.is_shared_email:
            data["email"] = link.email
            data["users"] = users
        else:
            data["user"] = {"id": users[0]["id"], "name": users[0]["name"]}
            data["current_pick"] = users[0]["current_pick"]
        return data

    def submit_with_link(self, token, raw_values, user_id=None):
        link = self.get_link(token)
        check_round_open(link.round)
        user = self.resolve_link_user(link, user_id)
        values = parse_pick_values(raw_values)
        return self.submit_pick(link.round_id, user.id, values)


pick_service = PickService()
