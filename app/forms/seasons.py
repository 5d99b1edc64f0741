from flask_wtf import FlaskForm
from wtforms import BooleanField, IntegerField, StringField
from wtforms.validators import DataRequired, Length, NumberRange, Optional, ValidationError

from app.forms.common import DictField, ListField, sanitize_input
from app.models.round import MAX_PLACE
from app.models.scoring_rule import MAX_POINTS, MIN_POINTS

YEAR_RANGE = NumberRange(min=1990, max=2100, message="Year must be between 1990 and 2100")


def validate_id_list(field):
    if not all(isinstance(v, int) and not isinstance(v, bool) and v > 0 for v in field.data):
        raise ValidationError("Must be a list of positive ids.")


class SeasonForm(FlaskForm):
    name = StringField(
        "Name",
        validators=[DataRequired(), Length(min=1, max=100)],
        filters=[sanitize_input],
    )
    year_start = IntegerField("Start Year", validators=[DataRequired(), YEAR_RANGE])
    year_end = IntegerField("End Year", validators=[DataRequired(), YEAR_RANGE])
    is_default = BooleanField("Default Season", default=False)
    copy_participants_from = IntegerField("Copy Participants From", validators=[Optional()])


class UpdateSeasonForm(FlaskForm):
    name = StringField(
        "Name", validators=[Optional(), Length(min=1, max=100)], filters=[sanitize_input]
    )
    year_start = IntegerField("Start Year", validators=[Optional(), YEAR_RANGE])
    year_end = IntegerField("End Year", validators=[Optional(), YEAR_RANGE])
    is_active = BooleanField("Active")


class ParticipantsForm(FlaskForm):
    user_ids = ListField("Participants")

    def validate_user_ids(self, field):
        if not field.data:
            raise ValidationError("At least one participant is required.")
        validate_id_list(field)


class PermanentDeleteForm(FlaskForm):
    confirmation = StringField("Confirmation", validators=[DataRequired()])


def clean_points_map(field):
    """Convert {"place": points} into an int-keyed map, checking ranges"""
    cleaned = {}
    for place, points in field.data.items():
        try:
            place = int(place)
        except (TypeError, ValueError):
            raise ValidationError(f"Invalid place: {place}") from None
        if not 0 <= place <= MAX_PLACE:
            raise ValidationError(f"Place must be between 0 and {MAX_PLACE}.")
        if isinstance(points, bool) or not isinstance(points, int):
            raise ValidationError(f"Points for place {place} must be a whole number.")
        if not MIN_POINTS <= points <= MAX_POINTS:
            raise ValidationError(f"Points must be between {MIN_POINTS} and {MAX_POINTS}.")
        cleaned[place] = points
    field.data = cleaned


class ScoringRulesForm(FlaskForm):
    """Mapping of place (0 = no pick) to points"""

    points = DictField("Points")

    def validate_points(self, field):
        if not field.data:
            raise ValidationError("At least one place is required.")
        clean_points_map(field)
