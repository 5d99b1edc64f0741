from flask_wtf import FlaskForm
from wtforms import IntegerField
from wtforms.validators import DataRequired, Optional, ValidationError

from app.forms.common import ListField
from app.services.pick_service import MAX_PICKS


class SubmitPickForm(FlaskForm):
    picks = ListField("Picks")
    # Required for shared-email links: who the pick is for
    userId = IntegerField("Participant", validators=[Optional()])

    def validate_picks(self, field):
        if not field.data:
            raise ValidationError("At least one pick is required.")
        if len(field.data) > MAX_PICKS:
            raise ValidationError(f"No more than {MAX_PICKS} picks are allowed.")


class AdminPickForm(SubmitPickForm):
    round_id = IntegerField("Round", validators=[DataRequired()])
    user_id = IntegerField("Participant", validators=[DataRequired()])
