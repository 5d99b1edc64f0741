"""
Round lifecycle: draft -> active -> locked -> completed.

Activating a round issues magic links to the season's participants.
Completing it stores the result and scores every participant in the same
transaction.
"""

import logging
from datetime import datetime, timezone

from app import db
from app.models import (
    MagicLink,
    Round,
    RoundResult,
    Season,
    SeasonParticipant,
    User,
)
from app.models.round import MAX_PLACE
from app.services.leaderboard_service import invalidate_leaderboards, round_points
from app.services.scoring_service import get_round_scores, scoring_engine
from app.services.settings_service import settings_service
from app.utils.cache_utils import invalidate_season_caches
from app.utils.db_utils import transaction
from app.utils.email_service import EmailService
from app.utils.errors import NotFoundError, PreconditionError, ValidationError
from app.utils.timezone_utils import ensure_utc

logger = logging.getLogger(__name__)


def get_round_or_404(round_id, include_deleted=False):
    round_obj = db.session.get(Round, round_id)
    if round_obj is None or (round_obj.is_deleted and not include_deleted):
        raise NotFoundError("Round not found")
    return round_obj


def check_season_open(season):
    if season.is_ended:
        raise PreconditionError("Cannot modify rounds of an ended season. Reopen it first.")


class RoundService:
    def create_round(self, season_id, sport_name, lock_time, pick_type="single",
                     num_write_in_picks=None, email_message=None,
                     timezone_name="America/New_York", teams=None):
        season = db.session.get(Season, season_id)
        if season is None or season.is_deleted:
            raise NotFoundError("Season not found")
        check_season_open(season)

        with transaction():
            round_obj = Round(
                season_id=season.id,
                sport_name=sport_name,
                pick_type=pick_type,
                num_write_in_picks=num_write_in_picks if pick_type == "multiple" else None,
                email_message=email_message,
                lock_time=lock_time,
                timezone=timezone_name,
                status="draft",
            )
            db.session.add(round_obj)
            db.session.flush()
            if teams:
                round_obj.set_teams(teams)

        logger.info(f"Round created: {sport_name} (id={round_obj.id}) in season {season.id}")
        return round_obj

    def update_round(self, round_id, **fields):
        round_obj = get_round_or_404(round_id)
        if round_obj.status == "completed":
            raise PreconditionError("Cannot edit a completed round")

        with transaction():
            for field in ("sport_name", "pick_type", "email_message", "timezone", "num_write_in_picks"):
                if fields.get(field) is not None:
                    setattr(round_obj, field, fields[field])
            if round_obj.pick_type == "single":
                round_obj.num_write_in_picks = None

            if fields.get("lock_time") is not None:
                round_obj.lock_time = fields["lock_time"]
                # Links expire when the round locks
                MagicLink.query.filter_by(round_id=round_obj.id).update(
                    {"expires_at": fields["lock_time"]}, synchronize_session=False
                )

            if fields.get("teams") is not None:
                round_obj.set_teams(fields["teams"])

        return round_obj

    def set_teams(self, round_id, names):
        round_obj = get_round_or_404(round_id)
        if round_obj.status == "completed":
            raise PreconditionError("Cannot change teams of a completed round")
        with transaction():
            round_obj.set_teams(names)
        return round_obj

    def activate_round(self, round_id, send_emails=True):
        """
        Open a draft round for picks and send magic links. Participants who
        share an email address get one shared link between them.
        """
        round_obj = get_round_or_404(round_id)
        if round_obj.status != "draft":
            raise PreconditionError(f"Only draft rounds can be activated (round is {round_obj.status})")
        if round_obj.lock_time_passed():
            raise PreconditionError("Cannot activate a round whose lock time has passed")
        if not round_obj.is_write_in and not round_obj.round_teams.count():
            raise PreconditionError("Add teams before activating a single-pick round")

        participants = (
            User.query.join(SeasonParticipant, SeasonParticipant.user_id == User.id)
            .filter(
                SeasonParticipant.season_id == round_obj.season_id,
                User.is_active.is_(True),
            )
            .order_by(User.name)
            .all()
        )

        by_email = {}
        for user in participants:
            by_email.setdefault(user.email.lower(), []).append(user)

        invitations = []
        with transaction():
            round_obj.status = "active"
            for email, users in by_email.items():
                if len(users) == 1:
                    _, token = MagicLink.issue(round_obj, user=users[0])
                else:
                    _, token = MagicLink.issue(round_obj, email=email)
                invitations.append((email, [u.name for u in users], token))
        invalidate_leaderboards()

        logger.info(
            f"Round {round_obj.id} activated, {len(invitations)} magic links issued "
            f"for {len(participants)} participants"
        )

        if send_emails:
            email_service = EmailService()
            sent = sum(
                1 for email, names, token in invitations
                if email_service.send_magic_link_email(email, names, round_obj, token)
            )
            logger.info(f"Round {round_obj.id}: {sent}/{len(invitations)} magic link emails sent")

        return round_obj, invitations

    def lock_round(self, round_id):
        round_obj = get_round_or_404(round_id)
        if round_obj.status != "active":
            raise PreconditionError(f"Only active rounds can be locked (round is {round_obj.status})")
        with transaction():
            round_obj.status = "locked"
        invalidate_leaderboards()
        logger.info(f"Round {round_obj.id} locked")
        return round_obj

    def unlock_round(self, round_id, lock_time=None):
        """Reopen a locked round, optionally with a new lock time"""
        round_obj = get_round_or_404(round_id)
        if round_obj.status != "locked":
            raise PreconditionError(f"Only locked rounds can be unlocked (round is {round_obj.status})")
        new_lock_time = ensure_utc(lock_time or round_obj.lock_time)
        if new_lock_time <= datetime.now(timezone.utc):
            raise PreconditionError("Lock time has passed; provide a new lock time to unlock")

        with transaction():
            round_obj.status = "active"
            round_obj.lock_time = new_lock_time
            MagicLink.query.filter_by(round_id=round_obj.id).update(
                {"expires_at": new_lock_time}, synchronize_session=False
            )
        invalidate_leaderboards()
        logger.info(f"Round {round_obj.id} unlocked until {new_lock_time}")
        return round_obj

    def lock_expired_rounds(self, now=None):
        """Lock every active round whose lock time has passed"""
        now = now or datetime.now(timezone.utc)
        with transaction():
            rounds = Round.query.filter(
                Round.status == "active",
                Round.deleted_at.is_(None),
                Round.lock_time <= now,
            ).all()
            for round_obj in rounds:
                round_obj.status = "locked"
        if rounds:
            invalidate_leaderboards()
            logger.info(f"Auto-locked rounds: {', '.join(str(r.id) for r in rounds)}")
        return rounds

    def _resolve_results(self, round_obj, results, required=True):
        """
        Validate result entries and map them to (place, team id). Results may
        only name the round's official teams, so write-in answers can never
        be placed.
        """
        if not results:
            if not required:
                return []
            raise ValidationError(
                "Invalid results", [{"field": "results", "message": "At least one result is required"}]
            )

        teams = round_obj.get_teams()
        teams_by_id = {team.id: team for team in teams}
        teams_by_name = {team.name.lower(): team for team in teams}

        errors = []
        resolved = []
        for index, entry in enumerate(results):
            field = f"results[{index}]"
            place = entry.get("place") if isinstance(entry, dict) else None
            if isinstance(place, bool) or not isinstance(place, int) or not 1 <= place <= MAX_PLACE:
                errors.append({"field": f"{field}.place", "message": f"Place must be between 1 and {MAX_PLACE}"})
                continue

            team_id = entry.get("team_id")
            name = entry.get("team")
            if team_id is not None:
                if team_id not in teams_by_id:
                    errors.append({"field": f"{field}.team_id", "message": "Team is not part of this round"})
                    continue
                resolved.append((place, team_id))
            elif isinstance(name, str) and name.strip():
                team = teams_by_name.get(name.strip().lower())
                if team is None:
                    errors.append({"field": f"{field}.team", "message": f"Unknown team: {name}"})
                    continue
                resolved.append((place, team.id))
            else:
                errors.append({"field": field, "message": "Each result needs a team_id or team name"})

        places = [place for place, _ in resolved]
        if len(set(places)) != len(places):
            errors.append({"field": "results", "message": "Each place can only be given once"})
        team_ids = [team_id for _, team_id in resolved]
        if len(set(team_ids)) != len(team_ids):
            errors.append({"field": "results", "message": "A team can only finish in one place"})

        if errors:
            raise ValidationError("Invalid results", errors)
        return sorted(resolved)

    def complete_round(self, round_id, results, send_emails=True, manual_scores=None):
        """
        Record a round's result and score it. Completing an already completed
        round replaces its result and re-scores it.

        Write-in rounds may pass manual_scores ({user id: place}) instead of
        being matched against the result; the result is then optional.
        """
        round_obj = get_round_or_404(round_id)
        check_season_open(round_obj.season)
        if round_obj.status == "draft":
            raise PreconditionError("Cannot complete a round that was never activated")
        if manual_scores is not None and not round_obj.is_write_in:
            raise ValidationError(
                "Invalid results",
                [{"field": "manual_scores", "message": "Manual scores are only used for write-in rounds"}],
            )

        with transaction():
            resolved = self._resolve_results(
                round_obj, results, required=manual_scores is None
            )
            RoundResult.query.filter_by(round_id=round_obj.id).delete(synchronize_session=False)
            for place, team_id in resolved:
                db.session.add(RoundResult(round_id=round_obj.id, place=place, team_id=team_id))
            round_obj.status = "completed"
            if round_obj.completed_at is None:
                round_obj.completed_at = datetime.now(timezone.utc)
            db.session.flush()
            if manual_scores is not None:
                scoring_engine.apply_manual_scores(round_obj, manual_scores)
                scores = get_round_scores(round_obj.id)
            else:
                scores = scoring_engine.score_round(round_obj)

        invalidate_leaderboards()
        invalidate_season_caches()
        logger.info(f"Round {round_obj.id} completed with {len(resolved)} placed teams")

        if send_emails:
            self.send_completion_emails(round_obj, scores)
        return round_obj, scores

    def send_completion_emails(self, round_obj, scores):
        points = settings_service.get_season_points(round_obj.season_id)
        results = [(r.place, r.team.name) for r in round_obj.results]
        users = User.query.filter(User.id.in_(scores), User.is_active.is_(True)).all() if scores else []

        email_service = EmailService()
        sent = 0
        for user in users:
            earned = round_points(scores[user.id], points)
            if email_service.send_round_completed_email(user, round_obj, results, earned):
                sent += 1
        logger.info(f"Round {round_obj.id}: {sent}/{len(users)} result emails sent")

    def set_manual_scores(self, round_id, places_by_user):
        round_obj = get_round_or_404(round_id)
        check_season_open(round_obj.season)
        with transaction():
            scoring_engine.apply_manual_scores(round_obj, places_by_user)
        invalidate_leaderboards()
        return get_round_scores(round_obj.id)

    def soft_delete(self, round_id):
        round_obj = get_round_or_404(round_id)
        check_season_open(round_obj.season)
        with transaction():
            round_obj.deleted_at = datetime.now(timezone.utc)
        invalidate_leaderboards()
        logger.info(f"Round {round_id} soft-deleted")
        return round_obj

    def restore(self, round_id):
        round_obj = get_round_or_404(round_id, include_deleted=True)
        if not round_obj.is_deleted:
            raise PreconditionError("Round is not deleted")
        check_season_open(round_obj.season)
        with transaction():
            round_obj.deleted_at = None
        invalidate_leaderboards()
        logger.info(f"Round {round_id} restored")
        return round_obj


round_service = RoundService()
