import logging

from flask import jsonify
from flask_login import current_user, login_required

from app.forms.common import load_json_form, provided
from app.forms.settings import SettingsForm
from app.routes.admin import bp
from app.services.settings_service import settings_service
from app.utils.db_utils import transaction

logger = logging.getLogger(__name__)


def settings_payload():
    points = settings_service.get_points_settings()
    return {
        "text": settings_service.get_text_settings(),
        "points": {str(place): value for place, value in sorted(points.items())},
        "reminders": settings_service.get_reminder_settings(),
    }


@bp.route("/settings")
@login_required
def get_settings():
    return jsonify(settings_payload())


@bp.route("/settings", methods=["PUT"])
@login_required
def update_settings():
    form = load_json_form(SettingsForm)
    text_values = {
        key: getattr(form, key).data
        for key in SettingsForm.TEXT_FIELDS
        if provided(form, key)
    }
    hour_values = {
        key: getattr(form, key).data
        for key in SettingsForm.REMINDER_HOUR_FIELDS
        if provided(form, key)
    }

    with transaction():
        if text_values:
            settings_service.update_text_settings(text_values)
        if form.points.data:
            settings_service.update_points_settings(form.points.data)
        if hour_values:
            settings_service.update_reminder_hours(hour_values)
    settings_service.clear_cache()

    logger.info(
        f"Admin {current_user.id} updated settings: "
        f"{sorted(text_values) + sorted(hour_values)}{' and points' if form.points.data else ''}"
    )
    return jsonify(settings_payload())
