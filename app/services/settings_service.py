"""
Settings provider: per-place point values and short text settings.

Reads go through the query cache with a short TTL. Updates clear the whole
settings namespace. When the settings tables can't be read the defaults
below are served instead of failing the request.
"""

import logging

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from app import db
from app.models import NumericSetting, ScoringRule, SeasonWinner, TextSetting
from app.models.round import MAX_PLACE
from app.models.setting import upsert_setting
from app.utils.cache_utils import SETTINGS, invalidate_season_caches, query_cache

logger = logging.getLogger(__name__)

NO_PICK_PLACE = 0

DEFAULT_POINTS = {
    0: 0,
    1: 6,
    2: 5,
    3: 4,
    4: 3,
    5: 2,
    6: 1,
    7: 1,
    8: 1,
    9: 1,
    10: 1,
}

DEFAULT_TEXT_SETTINGS = {
    "app_title": "Go Make Your Picks",
    "app_tagline": "Predict. Compete. Win.",
    "footer_message": "Built for Sports Fans",
    "reminder_type": "daily",
    "daily_reminder_time": "10:00:00",
    "reminder_timezone": "America/New_York",
    "theme_mode": "user_choice",
}

# Hours before lock for the two before_lock reminders
DEFAULT_REMINDER_HOURS = {
    "reminder_first_hours": 48,
    "reminder_final_hours": 6,
}

# Text settings anyone may read
PUBLIC_TEXT_KEYS = ("app_title", "app_tagline", "footer_message", "theme_mode")


def points_key(place):
    return f"points_place_{place}"


class SettingsService:
    """Cached access to application settings"""

    def _ttl(self):
        return current_app.config.get("SETTINGS_CACHE_TTL", 60)

    def get_points_settings(self):
        """Global place -> points map, used to seed new seasons"""
        return query_cache.get_or_set(
            SETTINGS, "points", self._load_points_settings, ttl=self._ttl()
        )

    def _load_points_settings(self):
        points = dict(DEFAULT_POINTS)
        try:
            rows = NumericSetting.query.filter(
                NumericSetting.key.like("points_place_%")
            ).all()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.warning(f"Could not read point settings, using defaults: {e}")
            return points

        for row in rows:
            try:
                place = int(row.key.rsplit("_", 1)[1])
            except ValueError:
                continue
            if 0 <= place <= MAX_PLACE:
                points[place] = row.value
        return points

    def get_text_settings(self):
        return query_cache.get_or_set(
            SETTINGS, "text", self._load_text_settings, ttl=self._ttl()
        )

    def _load_text_settings(self):
        settings = dict(DEFAULT_TEXT_SETTINGS)
        try:
            rows = TextSetting.query.all()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.warning(f"Could not read text settings, using defaults: {e}")
            return settings

        for row in rows:
            if row.value is not None:
                settings[row.key] = row.value
        return settings

    def get_reminder_settings(self):
        """Text reminder settings merged with the before_lock hour offsets"""
        text = self.get_text_settings()
        settings = {
            "reminder_type": text["reminder_type"],
            "daily_reminder_time": text["daily_reminder_time"],
            "reminder_timezone": text["reminder_timezone"],
        }
        settings.update(
            query_cache.get_or_set(
                SETTINGS, "reminder_hours", self._load_reminder_hours, ttl=self._ttl()
            )
        )
        return settings

    def _load_reminder_hours(self):
        hours = dict(DEFAULT_REMINDER_HOURS)
        try:
            rows = NumericSetting.query.filter(
                NumericSetting.key.in_(list(DEFAULT_REMINDER_HOURS))
            ).all()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.warning(f"Could not read reminder settings, using defaults: {e}")
            return hours

        for row in rows:
            hours[row.key] = row.value
        return hours

    def update_reminder_hours(self, values):
        for key, value in values.items():
            upsert_setting(NumericSetting, key, value)

    def get_public_settings(self):
        text = self.get_text_settings()
        return {key: text.get(key) for key in PUBLIC_TEXT_KEYS}

    def get_season_points(self, season_id):
        """A season's configured rules, with global values for missing places"""
        points = dict(self.get_points_settings())
        points.update(ScoringRule.get_points_map(season_id))
        return points

    def get_points_settings_for_season(self, season):
        """
        Point values used to score a season. An ended season keeps the values
        captured when it ended, even if its rules were edited afterwards.
        """
        if season.is_ended:
            snapshot = (
                SeasonWinner.query.filter_by(season_id=season.id)
                .order_by(SeasonWinner.id)
                .first()
            )
            if snapshot and snapshot.point_values:
                points = dict(DEFAULT_POINTS)
                points.update(snapshot.get_point_values())
                return points
        return self.get_season_points(season.id)

    def update_text_settings(self, values):
        for key, value in values.items():
            upsert_setting(TextSetting, key, value)

    def update_points_settings(self, points_by_place):
        for place, value in points_by_place.items():
            upsert_setting(NumericSetting, points_key(place), value)

    def clear_cache(self):
        query_cache.invalidate_prefix(SETTINGS)
        # Leaderboards may fall back to global values
        invalidate_season_caches()
        logger.info("Settings cache cleared")


settings_service = SettingsService()
