"""
Admin authentication via bearer tokens, wired into Flask-Login
"""

import functools
import logging

from flask import jsonify
from flask_login import current_user, login_required

from app import db
from app.utils.errors import ForbiddenError
from app.utils.tokens import decode_access_token

logger = logging.getLogger(__name__)


def get_bearer_token(request):
    header = request.headers.get("Authorization", "")
    if header.lower().startswith("bearer "):
        return header[7:].strip()
    return None


def register_auth_handlers(login_manager):
    """Resolve current_user from the Authorization header on every request"""
    from app.models import Admin

    @login_manager.request_loader
    def load_admin_from_request(request):
        token = get_bearer_token(request)
        if not token:
            return None
        payload = decode_access_token(token)
        if not payload or "adminId" not in payload:
            return None
        return db.session.get(Admin, payload["adminId"])

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({"error": "Authentication required"}), 401


def main_admin_required(f):
    """Restrict a route to the main admin"""

    @functools.wraps(f)
    @login_required
    def decorated_function(*args, **kwargs):
        if not current_user.is_main_admin:
            logger.warning(
                f"Admin {current_user.id} attempted a main-admin action: {f.__name__}"
            )
            raise ForbiddenError("Only main admin can perform this action")
        return f(*args, **kwargs)

    return decorated_function
