"""
Scoring Engine for Go Make Your Picks

Turns a completed round's result and its picks into per-participant place
credits (ScoreDetail rows). Points are applied later by the leaderboard,
so changing a season's point values never requires re-scoring.
"""

import logging

from app import db
from app.models import Pick, PickItem, Round, ScoreDetail, SeasonParticipant
from app.models.round import MAX_PLACE
from app.services.settings_service import NO_PICK_PLACE
from app.utils.errors import PreconditionError, ValidationError

logger = logging.getLogger(__name__)

# "Pick 2" rounds can earn credit for at most two places
MAX_CREDITS_PER_ROUND = 2


def calculate_place_credits(picked_team_ids, result_map):
    """
    Credits for one participant in one round.

    Args:
        picked_team_ids: Team ids in pick-number order (may be empty)
        result_map: Mapping of place -> team id

    Returns:
        dict of place -> count. A participant with no matching pick gets a
        single credit at the no-pick place.
    """
    place_by_team = {team_id: place for place, team_id in result_map.items()}

    credits = {}
    for team_id in picked_team_ids:
        place = place_by_team.get(team_id)
        if place is None or place in credits:
            continue
        credits[place] = 1
        if len(credits) >= MAX_CREDITS_PER_ROUND:
            break

    if not credits:
        credits[NO_PICK_PLACE] = 1
    return credits


class ScoringEngine:
    """Writes ScoreDetail rows for completed rounds"""

    def get_scored_user_ids(self, round_obj):
        """Season members plus anyone holding a pick for the round"""
        member_ids = {
            row.user_id
            for row in SeasonParticipant.query.filter_by(season_id=round_obj.season_id)
        }
        pick_user_ids = {
            row.user_id
            for row in db.session.query(Pick.user_id).filter(Pick.round_id == round_obj.id)
        }
        return member_ids | pick_user_ids

    def get_picked_team_ids(self, round_obj):
        """Mapping of user id -> team ids in pick-number order"""
        rows = (
            db.session.query(Pick.user_id, PickItem.team_id)
            .join(PickItem, PickItem.pick_id == Pick.id)
            .filter(Pick.round_id == round_obj.id)
            .order_by(Pick.user_id, PickItem.pick_number)
            .all()
        )
        picked = {}
        for user_id, team_id in rows:
            picked.setdefault(user_id, []).append(team_id)
        return picked

    def score_round(self, round_obj):
        """
        Replace the round's ScoreDetail rows. Runs inside the caller's
        transaction; re-running it for the same round yields the same rows.

        Returns:
            dict of user id -> {place: count}
        """
        if round_obj.status != "completed":
            raise PreconditionError("Round must be completed before it can be scored")

        result_map = round_obj.get_result_map()
        if not result_map:
            raise PreconditionError("Round has no results to score")

        picked = self.get_picked_team_ids(round_obj)
        user_ids = self.get_scored_user_ids(round_obj)

        ScoreDetail.query.filter_by(round_id=round_obj.id).delete(
            synchronize_session=False
        )

        scores = {}
        for user_id in sorted(user_ids):
            credits = calculate_place_credits(picked.get(user_id, []), result_map)
            scores[user_id] = credits
            for place, count in credits.items():
                db.session.add(
                    ScoreDetail(
                        user_id=user_id, round_id=round_obj.id, place=place, count=count
                    )
                )

        db.session.flush()
        logger.info(
            f"Scored round {round_obj.id} ({round_obj.sport_name}): "
            f"{len(scores)} participants, results {result_map}"
        )
        return scores

    def apply_manual_scores(self, round_obj, places_by_user):
        """
        Override scoring for a completed round with an explicit finishing
        place per participant (0 for no credit). Used for write-in rounds
        whose answers can't be matched automatically.
        """
        if round_obj.status != "completed":
            raise PreconditionError("Manual scores can only be entered for completed rounds")

        errors = []
        for user_id, place in places_by_user.items():
            if not isinstance(place, int) or not 0 <= place <= MAX_PLACE:
                errors.append(
                    {"field": f"scores.{user_id}", "message": f"Place must be between 0 and {MAX_PLACE}"}
                )
        if errors:
            raise ValidationError("Invalid manual scores", errors)

        user_ids = self.get_scored_user_ids(round_obj) | set(places_by_user)

        ScoreDetail.query.filter_by(round_id=round_obj.id).delete(
            synchronize_session=False
        )
        for user_id in sorted(user_ids):
            place = places_by_user.get(user_id, NO_PICK_PLACE)
            db.session.add(
                ScoreDetail(user_id=user_id, round_id=round_obj.id, place=place, count=1)
            )

        db.session.flush()
        logger.info(f"Manual scores entered for round {round_obj.id}: {places_by_user}")


scoring_engine = ScoringEngine()


def get_round_scores(round_id):
    """Stored credits for a round as user id -> {place: count}"""
    scores = {}
    for row in ScoreDetail.query.filter_by(round_id=round_id).all():
        scores.setdefault(row.user_id, {})[row.place] = row.count
    return scores


def rescore_completed_rounds(season_id):
    """Re-run scoring for every completed round of a season"""
    rounds = Round.query.filter(
        Round.season_id == season_id,
        Round.status == "completed",
        Round.deleted_at.is_(None),
    ).all()
    for round_obj in rounds:
        scoring_engine.score_round(round_obj)
    return len(rounds)
