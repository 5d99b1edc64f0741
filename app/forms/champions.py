from datetime import datetime, timezone

from flask_wtf import FlaskForm
from wtforms import IntegerField, StringField
from wtforms.validators import DataRequired, Length, ValidationError

from app.forms.common import sanitize_input

MIN_CHAMPION_YEAR = 1900


class HistoricalChampionForm(FlaskForm):
    name = StringField(
        "Name", validators=[DataRequired(), Length(min=1, max=100)], filters=[sanitize_input]
    )
    end_year = IntegerField("End Year", validators=[DataRequired()])

    def validate_end_year(self, field):
        next_year = datetime.now(timezone.utc).year + 1
        if not MIN_CHAMPION_YEAR <= field.data <= next_year:
            raise ValidationError(f"End year must be between {MIN_CHAMPION_YEAR} and next year.")
