from flask_wtf import FlaskForm
from wtforms import BooleanField, IntegerField, StringField
from wtforms.validators import DataRequired, Email, Length, Optional

from app.forms.common import sanitize_input


class UserForm(FlaskForm):
    name = StringField(
        "Name", validators=[DataRequired(), Length(min=1, max=100)], filters=[sanitize_input]
    )
    # Several participants may share one address
    email = StringField("Email", validators=[DataRequired(), Email(), Length(max=120)])
    season_id = IntegerField("Add To Season", validators=[Optional()])


class UpdateUserForm(FlaskForm):
    name = StringField(
        "Name", validators=[Optional(), Length(min=1, max=100)], filters=[sanitize_input]
    )
    email = StringField("Email", validators=[Optional(), Email(), Length(max=120)])
    is_active = BooleanField("Active")
