from flask import Blueprint

bp = Blueprint("admin", __name__)

from app.routes.admin import admins, champions, rounds, seasons, settings, users  # noqa: E402, F401
