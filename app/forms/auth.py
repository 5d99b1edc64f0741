from flask_wtf import FlaskForm
from wtforms import BooleanField, PasswordField, StringField
from wtforms.validators import (
    DataRequired,
    Email,
    EqualTo,
    Length,
    Optional,
    Regexp,
    ValidationError,
)

from app.models import Admin

PASSWORD_VALIDATORS = [
    DataRequired(),
    Length(min=8, message="Password must be at least 8 characters long"),
    Regexp(
        r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d).*$",
        message="Password must contain at least one uppercase letter, one lowercase letter, and one number",
    ),
]


class LoginForm(FlaskForm):
    email = StringField("Email", validators=[DataRequired(), Email(), Length(max=120)])
    password = PasswordField("Password", validators=[DataRequired(), Length(max=128)])


class MagicLinkRequestForm(FlaskForm):
    email = StringField("Email", validators=[DataRequired(), Email(), Length(max=120)])


class ChangePasswordForm(FlaskForm):
    current_password = PasswordField("Current Password", validators=[Optional()])
    new_password = PasswordField("New Password", validators=PASSWORD_VALIDATORS)
    confirm_password = PasswordField(
        "Confirm New Password",
        validators=[
            DataRequired(),
            EqualTo("new_password", message="Passwords must match"),
        ],
    )


class CreateAdminForm(FlaskForm):
    name = StringField("Name", validators=[DataRequired(), Length(min=1, max=100)])
    email = StringField("Email", validators=[DataRequired(), Email(), Length(max=120)])
    password = PasswordField("Password", validators=[Optional()] + PASSWORD_VALIDATORS[1:])
    is_main_admin = BooleanField("Main Admin", default=False)

    def validate_email(self, email):
        if Admin.query.filter(Admin.email == email.data.strip().lower()).first():
            raise ValidationError("An admin with this email already exists.")
