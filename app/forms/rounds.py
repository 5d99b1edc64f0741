from flask_wtf import FlaskForm
from wtforms import IntegerField, StringField, TextAreaField
from wtforms.validators import AnyOf, DataRequired, Length, NumberRange, Optional, ValidationError

from app.forms.common import DictField, IsoDateTimeField, ListField, sanitize_input
from app.models.round import MAX_PLACE, PICK_TYPES
from app.utils.timezone_utils import is_valid_timezone

MAX_TEAMS = 100


def validate_team_names(field):
    if any(not isinstance(name, str) for name in field.data):
        raise ValidationError("Team names must be text.")
    names = [sanitize_input(name) for name in field.data]
    if any(not name for name in names):
        raise ValidationError("Team names cannot be empty.")
    if any(len(name) > 100 for name in names):
        raise ValidationError("Team names must be 100 characters or less.")
    if len(names) > MAX_TEAMS:
        raise ValidationError(f"No more than {MAX_TEAMS} teams are allowed.")
    field.data = names


class RoundForm(FlaskForm):
    season_id = IntegerField("Season", validators=[DataRequired()])
    sport_name = StringField(
        "Sport", validators=[DataRequired(), Length(min=1, max=100)], filters=[sanitize_input]
    )
    pick_type = StringField(
        "Pick Type", validators=[Optional(), AnyOf(PICK_TYPES)], default="single"
    )
    num_write_in_picks = IntegerField(
        "Write-in Picks",
        validators=[Optional(), NumberRange(min=1, max=MAX_PLACE)],
    )
    email_message = TextAreaField(
        "Email Message", validators=[Optional(), Length(max=1000)], filters=[sanitize_input]
    )
    lock_time = IsoDateTimeField("Lock Time", validators=[DataRequired()])
    timezone = StringField("Timezone", default="America/New_York")
    teams = ListField("Teams")

    def validate_timezone(self, field):
        if not is_valid_timezone(field.data):
            raise ValidationError("Unknown timezone.")

    def validate_teams(self, field):
        validate_team_names(field)

    def validate_num_write_in_picks(self, field):
        if self.pick_type.data == "multiple" and not field.data:
            raise ValidationError("Write-in rounds need the number of picks.")


class UpdateRoundForm(FlaskForm):
    sport_name = StringField(
        "Sport", validators=[Optional(), Length(min=1, max=100)], filters=[sanitize_input]
    )
    pick_type = StringField("Pick Type", validators=[Optional(), AnyOf(PICK_TYPES)])
    num_write_in_picks = IntegerField(
        "Write-in Picks", validators=[Optional(), NumberRange(min=1, max=MAX_PLACE)]
    )
    email_message = TextAreaField(
        "Email Message", validators=[Optional(), Length(max=1000)], filters=[sanitize_input]
    )
    lock_time = IsoDateTimeField("Lock Time", validators=[Optional()])
    timezone = StringField("Timezone", validators=[Optional()])
    teams = ListField("Teams")

    def validate_timezone(self, field):
        if field.data and not is_valid_timezone(field.data):
            raise ValidationError("Unknown timezone.")

    def validate_teams(self, field):
        validate_team_names(field)


class TeamsForm(FlaskForm):
    teams = ListField("Teams")

    def validate_teams(self, field):
        if not field.data:
            raise ValidationError("At least one team is required.")
        validate_team_names(field)


def clean_user_places(field):
    """Convert {"<user id>": place} into an int-keyed map"""
    cleaned = {}
    for user_id, place in field.data.items():
        try:
            user_id = int(user_id)
        except (TypeError, ValueError):
            raise ValidationError(f"Invalid user id: {user_id}") from None
        cleaned[user_id] = place
    field.data = cleaned


class CompleteRoundForm(FlaskForm):
    """
    results: [{"place": 1, "team": "Team A"} or {"place": 1, "team_id": 3}, ...]
    manual_scores: {"<user id>": <place>, ...}, write-in rounds only
    """

    results = ListField("Results")
    manual_scores = DictField("Manual Scores")

    def validate_results(self, field):
        if not field.data:
            if self.manual_scores.data:
                return
            raise ValidationError("At least one result is required.")
        if len(field.data) > MAX_PLACE:
            raise ValidationError(f"No more than {MAX_PLACE} places can be recorded.")
        if any(not isinstance(entry, dict) for entry in field.data):
            raise ValidationError("Each result must be an object.")
        for entry in field.data:
            if isinstance(entry.get("team"), str):
                entry["team"] = sanitize_input(entry["team"])

    def validate_manual_scores(self, field):
        if field.data is not None:
            if not field.data:
                raise ValidationError("At least one score is required.")
            clean_user_places(field)


class UnlockRoundForm(FlaskForm):
    lock_time = IsoDateTimeField("Lock Time", validators=[Optional()])


class ManualScoresForm(FlaskForm):
    """scores: {"<user id>": <place>, ...}"""

    scores = DictField("Scores")

    def validate_scores(self, field):
        if not field.data:
            raise ValidationError("At least one score is required.")
        clean_user_places(field)
