"""
Season lifecycle: creation, soft deletion, ending and reopening.

Ending a season freezes its top standings into SeasonWinner rows along with
the point values in effect at that moment. Reopening is the only undo.
"""

import logging
from datetime import datetime, timezone

from app import db
from app.models import (
    Round,
    ScoreDetail,
    ScoringRule,
    Season,
    SeasonParticipant,
    SeasonWinner,
    User,
)
from app.services.leaderboard_service import leaderboard_service
from app.services.settings_service import settings_service
from app.utils.cache_utils import invalidate_season_caches
from app.utils.db_utils import transaction
from app.utils.errors import NotFoundError, PreconditionError, ValidationError

logger = logging.getLogger(__name__)

# Podium slots kept when a season ends; ties may push extra people onto it
WINNER_SLOTS = 5

PERMANENT_DELETE_CONFIRMATION = "PERMANENT DELETE"


def get_season_or_404(season_id, include_deleted=False, for_update=False):
    if for_update:
        season = db.session.get(
            Season, season_id, with_for_update=True, populate_existing=True
        )
    else:
        season = db.session.get(Season, season_id)
    if season is None or (season.is_deleted and not include_deleted):
        raise NotFoundError("Season not found")
    return season


class SeasonService:
    def create_season(self, name, year_start, year_end, is_default=False,
                      copy_participants_from=None):
        """Create a season with scoring rules seeded from the global settings"""
        if year_end < year_start:
            raise ValidationError(
                "Invalid season",
                [{"field": "year_end", "message": "End year must not be before start year"}],
            )

        with transaction():
            season = Season(name=name, year_start=year_start, year_end=year_end)
            db.session.add(season)
            db.session.flush()

            ScoringRule.replace_for_season(season.id, settings_service.get_points_settings())

            if is_default:
                season.make_default()

            if copy_participants_from:
                source = get_season_or_404(copy_participants_from)
                for user_id in source.get_participant_ids():
                    SeasonParticipant.add(season.id, user_id)

        invalidate_season_caches()
        logger.info(f"Season created: {season.name} (id={season.id})")
        return season

    def update_season(self, season_id, **fields):
        season = get_season_or_404(season_id)
        with transaction():
            for field in ("name", "year_start", "year_end", "is_active"):
                if fields.get(field) is not None:
                    setattr(season, field, fields[field])
            if season.year_end < season.year_start:
                raise ValidationError(
                    "Invalid season",
                    [{"field": "year_end", "message": "End year must not be before start year"}],
                )
        invalidate_season_caches()
        return season

    def set_default(self, season_id):
        season = get_season_or_404(season_id)
        with transaction():
            season.make_default()
        invalidate_season_caches()
        return season

    def toggle_active(self, season_id):
        season = get_season_or_404(season_id)
        with transaction():
            season.is_active = not season.is_active
        invalidate_season_caches()
        return season

    def soft_delete(self, season_id):
        season = get_season_or_404(season_id)
        with transaction():
            season.deleted_at = datetime.now(timezone.utc)
            season.is_default = False
        invalidate_season_caches()
        logger.info(f"Season {season_id} soft-deleted")
        return season

    def restore(self, season_id):
        season = get_season_or_404(season_id, include_deleted=True)
        if not season.is_deleted:
            raise PreconditionError("Season is not deleted")
        with transaction():
            season.deleted_at = None
        invalidate_season_caches()
        logger.info(f"Season {season_id} restored")
        return season

    def permanent_delete(self, season_id, confirmation):
        """Remove a soft-deleted season and everything that belongs to it"""
        season = db.session.get(Season, season_id)
        if season is None or not season.is_deleted:
            raise NotFoundError(
                "Deleted season not found. Only soft-deleted seasons can be permanently deleted."
            )
        if confirmation != PERMANENT_DELETE_CONFIRMATION:
            raise ValidationError(
                f'Invalid confirmation. Must type "{PERMANENT_DELETE_CONFIRMATION}" exactly.'
            )

        name = season.name
        with transaction():
            round_ids = [r.id for r in Round.query.filter_by(season_id=season.id)]
            if round_ids:
                ScoreDetail.query.filter(ScoreDetail.round_id.in_(round_ids)).delete(
                    synchronize_session=False
                )
            db.session.delete(season)

        invalidate_season_caches()
        logger.warning(
            f"Season permanently deleted: {name} (id={season_id}, rounds={len(round_ids)})"
        )

    def end_season(self, season_id):
        """
        Freeze a season's standings.

        Every live round must be completed. The season row is locked and the
        checks run in the same transaction as the writes, so two concurrent
        calls can't both end it. Existing winner rows are replaced and the
        whole operation commits or rolls back as one.
        """
        with transaction():
            season = get_season_or_404(season_id, for_update=True)
            if season.is_ended:
                raise PreconditionError("Season has already ended")

            incomplete = [r for r in season.get_live_rounds() if r.status != "completed"]
            if incomplete:
                names = ", ".join(f"{r.sport_name} ({r.status})" for r in incomplete)
                raise PreconditionError(
                    f"Cannot end season. The following sports are not yet completed: {names}. "
                    "All sports must be completed before ending a season."
                )

            point_values = settings_service.get_season_points(season.id)
            standings = leaderboard_service.compute_standings(season, points=point_values)

            SeasonWinner.query.filter_by(season_id=season.id).delete(
                synchronize_session=False
            )

            captured = {str(place): points for place, points in sorted(point_values.items())}
            winners = []
            for entry in standings[:WINNER_SLOTS]:
                winner = SeasonWinner(
                    season_id=season.id,
                    user_id=entry["user_id"],
                    place=entry["rank"],
                    total_points=entry["total_points"],
                    point_values=captured,
                )
                db.session.add(winner)
                winners.append(winner)
            db.session.flush()

            season.mark_ended()

        invalidate_season_caches()
        logger.info(
            f"Season {season.id} ended with {len(winners)} winners: "
            + ", ".join(f"#{w.place} user {w.user_id} ({w.total_points} pts)" for w in winners)
        )
        return winners

    def reopen_season(self, season_id):
        """Undo end_season: clear the end timestamp and the winner rows"""
        with transaction():
            season = get_season_or_404(season_id, for_update=True)
            if not season.is_ended:
                raise PreconditionError("Season is not ended")

            deleted = SeasonWinner.query.filter_by(season_id=season.id).delete(
                synchronize_session=False
            )
            season.ended_at = None

        invalidate_season_caches()
        logger.info(f"Season {season.id} reopened, {deleted} winner rows removed")
        return season

    def update_scoring_rules(self, season_id, points_by_place):
        season = get_season_or_404(season_id)
        if season.is_ended:
            raise PreconditionError(
                "Cannot change scoring rules of an ended season. Reopen it first."
            )
        with transaction():
            ScoringRule.replace_for_season(season.id, points_by_place)
        invalidate_season_caches()
        logger.info(f"Scoring rules updated for season {season.id}: {points_by_place}")
        return settings_service.get_season_points(season.id)

    def add_participants(self, season_id, user_ids):
        season = get_season_or_404(season_id)
        users = User.query.filter(User.id.in_(user_ids)).all() if user_ids else []
        missing = set(user_ids) - {u.id for u in users}
        if missing:
            raise NotFoundError(f"Users not found: {', '.join(str(i) for i in sorted(missing))}")

        added = 0
        with transaction():
            for user in users:
                _, created = SeasonParticipant.add(season.id, user.id)
                added += int(created)
        invalidate_season_caches()
        return added

    def remove_participant(self, season_id, user_id):
        season = get_season_or_404(season_id)
        membership = SeasonParticipant.query.filter_by(
            season_id=season.id, user_id=user_id
        ).first()
        if membership is None:
            raise NotFoundError("Participant not found in this season")
        with transaction():
            db.session.delete(membership)
        invalidate_season_caches()


season_service = SeasonService()
