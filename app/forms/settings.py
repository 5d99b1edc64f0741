from flask_wtf import FlaskForm
from wtforms import IntegerField, StringField
from wtforms.validators import AnyOf, Length, NumberRange, Optional, Regexp, ValidationError

from app.forms.common import DictField, sanitize_input
from app.forms.seasons import clean_points_map
from app.utils.timezone_utils import is_valid_timezone


class SettingsForm(FlaskForm):
    TEXT_FIELDS = (
        "app_title",
        "app_tagline",
        "footer_message",
        "reminder_type",
        "daily_reminder_time",
        "reminder_timezone",
        "theme_mode",
    )
    REMINDER_HOUR_FIELDS = ("reminder_first_hours", "reminder_final_hours")

    app_title = StringField(
        "Title", validators=[Optional(), Length(max=100)], filters=[sanitize_input]
    )
    app_tagline = StringField(
        "Tagline", validators=[Optional(), Length(max=200)], filters=[sanitize_input]
    )
    footer_message = StringField(
        "Footer", validators=[Optional(), Length(max=200)], filters=[sanitize_input]
    )
    reminder_type = StringField(
        "Reminders", validators=[Optional(), AnyOf(["daily", "before_lock", "none"])]
    )
    daily_reminder_time = StringField(
        "Daily Reminder Time",
        validators=[
            Optional(),
            Regexp(r"^([01]\d|2[0-3]):[0-5]\d:[0-5]\d$", message="Use HH:MM:SS"),
        ],
    )
    reminder_timezone = StringField("Reminder Timezone", validators=[Optional()])
    reminder_first_hours = IntegerField(
        "First Reminder (hours before lock)", validators=[Optional(), NumberRange(min=1, max=168)]
    )
    reminder_final_hours = IntegerField(
        "Final Reminder (hours before lock)", validators=[Optional(), NumberRange(min=1, max=168)]
    )
    theme_mode = StringField(
        "Theme", validators=[Optional(), AnyOf(["user_choice", "light", "dark"])]
    )
    # Global points table; seasons override it with their own rules
    points = DictField("Points")

    def validate_reminder_timezone(self, field):
        if field.data and not is_valid_timezone(field.data):
            raise ValidationError("Unknown timezone.")

    def validate_points(self, field):
        if field.data:
            clean_points_map(field)
