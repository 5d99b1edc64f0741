import logging

from flask import current_app, jsonify
from flask_login import current_user, login_required

from app import limiter
from app.forms.auth import ChangePasswordForm, LoginForm, MagicLinkRequestForm
from app.forms.common import load_json_form
from app.models import Admin
from app.routes.auth import bp
from app.utils.db_utils import transaction
from app.utils.email_service import EmailService
from app.utils.errors import AuthenticationError, ValidationError
from app.utils.tokens import create_access_token

logger = logging.getLogger(__name__)


def login_response(admin):
    with transaction():
        admin.record_login()
    return jsonify({"token": create_access_token(admin), "admin": admin.to_dict()})


@bp.route("/login", methods=["POST"])
@limiter.limit(lambda: current_app.config["LOGIN_RATE_LIMIT"])
def login():
    form = load_json_form(LoginForm)
    admin = Admin.query.filter_by(email=form.email.data.strip().lower()).first()

    if admin is None or not admin.check_password(form.password.data):
        logger.warning(f"Failed admin login for {form.email.data}")
        raise AuthenticationError("Invalid email or password")

    logger.info(f"Admin {admin.id} logged in with password")
    return login_response(admin)


@bp.route("/request-login", methods=["POST"])
@limiter.limit(lambda: current_app.config["LOGIN_RATE_LIMIT"])
def request_login():
    """Email a one-time login link. The response never reveals whether the admin exists."""
    form = load_json_form(MagicLinkRequestForm)
    admin = Admin.query.filter_by(email=form.email.data.strip().lower()).first()

    if admin:
        with transaction():
            token = admin.generate_login_token(
                current_app.config.get("ADMIN_MAGIC_LINK_EXPIRY_MINUTES", 10)
            )
        if not EmailService().send_admin_login_email(admin, token):
            logger.warning(f"Failed to send login link to admin {admin.id}")

    return jsonify(
        {"message": "If an admin account with that email exists, a login link has been sent."}
    )


@bp.route("/verify/<token>", methods=["POST"])
@limiter.limit(lambda: current_app.config["LOGIN_RATE_LIMIT"])
def verify_login(token):
    admin = Admin.verify_login_token(token)
    if admin is None:
        raise AuthenticationError("Invalid or expired login link")

    # Single use
    admin.clear_login_token()
    logger.info(f"Admin {admin.id} logged in with a login link")
    return login_response(admin)


@bp.route("/me")
@login_required
def me():
    return jsonify(current_user.to_dict())


@bp.route("/change-password", methods=["POST"])
@login_required
def change_password():
    form = load_json_form(ChangePasswordForm)

    # Admins who only ever used login links have no password to confirm
    if current_user.password_hash and not current_user.check_password(
        form.current_password.data or ""
    ):
        raise ValidationError(
            "Validation failed",
            [{"field": "current_password", "message": "Current password is incorrect"}],
        )

    with transaction():
        current_user.set_password(form.new_password.data)

    logger.info(f"Admin {current_user.id} changed their password")
    return jsonify({"message": "Password changed successfully"})


@bp.route("/logout", methods=["POST"])
@login_required
def logout():
    # Bearer tokens are stateless; the client discards its copy
    logger.info(f"Admin {current_user.id} logged out")
    return jsonify({"message": "Logged out"})
