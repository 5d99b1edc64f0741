import logging

from flask import jsonify, request
from flask_login import current_user, login_required

from app.forms.common import load_json_form, provided
from app.forms.seasons import (
    ParticipantsForm,
    PermanentDeleteForm,
    ScoringRulesForm,
    SeasonForm,
    UpdateSeasonForm,
)
from app.models import Season, SeasonParticipant, User
from app.routes.admin import bp
from app.services.leaderboard_service import leaderboard_service
from app.services.season_service import get_season_or_404, season_service
from app.services.settings_service import settings_service
from app.utils.auth import main_admin_required

logger = logging.getLogger(__name__)


@bp.route("/seasons")
@login_required
def list_seasons():
    """All seasons; soft-deleted ones only with ?include_deleted=true"""
    query = Season.query
    if request.args.get("include_deleted", "").lower() != "true":
        query = query.filter(Season.deleted_at.is_(None))
    seasons = query.order_by(Season.year_start.desc(), Season.name).all()
    return jsonify([season.to_dict() for season in seasons])


@bp.route("/seasons/deleted")
@login_required
def list_deleted_seasons():
    seasons = (
        Season.query.filter(Season.deleted_at.isnot(None))
        .order_by(Season.deleted_at.desc())
        .all()
    )
    return jsonify([season.to_dict() for season in seasons])


@bp.route("/seasons", methods=["POST"])
@login_required
def create_season():
    form = load_json_form(SeasonForm)
    season = season_service.create_season(
        name=form.name.data,
        year_start=form.year_start.data,
        year_end=form.year_end.data,
        is_default=form.is_default.data,
        copy_participants_from=form.copy_participants_from.data,
    )
    logger.info(f"Admin {current_user.id} created season {season.id}")
    return jsonify(season.to_dict()), 201


@bp.route("/seasons/<int:season_id>")
@login_required
def get_season(season_id):
    season = get_season_or_404(season_id, include_deleted=True)
    data = season.to_dict()
    data["rounds"] = [r.to_dict() for r in season.get_live_rounds()]
    data["points"] = {
        str(place): value
        for place, value in sorted(settings_service.get_season_points(season.id).items())
    }
    data["winners"] = [w.to_dict() for w in season.winners]
    return jsonify(data)


@bp.route("/seasons/<int:season_id>", methods=["PUT"])
@login_required
def update_season(season_id):
    form = load_json_form(UpdateSeasonForm)
    season = season_service.update_season(
        season_id,
        name=form.name.data or None,
        year_start=form.year_start.data,
        year_end=form.year_end.data,
        is_active=form.is_active.data if provided(form, "is_active") else None,
    )
    return jsonify(season.to_dict())


@bp.route("/seasons/<int:season_id>/set-default", methods=["PUT"])
@login_required
def set_default_season(season_id):
    return jsonify(season_service.set_default(season_id).to_dict())


@bp.route("/seasons/<int:season_id>/toggle-active", methods=["PUT"])
@login_required
def toggle_season_active(season_id):
    return jsonify(season_service.toggle_active(season_id).to_dict())


@bp.route("/seasons/<int:season_id>", methods=["DELETE"])
@login_required
def delete_season(season_id):
    season_service.soft_delete(season_id)
    logger.info(f"Admin {current_user.id} soft-deleted season {season_id}")
    return jsonify({"message": "Season deleted"})


@bp.route("/seasons/<int:season_id>/restore", methods=["PUT"])
@login_required
def restore_season(season_id):
    return jsonify(season_service.restore(season_id).to_dict())


@bp.route("/seasons/<int:season_id>/permanent", methods=["DELETE"])
@main_admin_required
def permanently_delete_season(season_id):
    form = load_json_form(PermanentDeleteForm)
    season_service.permanent_delete(season_id, form.confirmation.data)
    logger.warning(f"Main admin {current_user.id} permanently deleted season {season_id}")
    return jsonify({"message": "Season permanently deleted"})


@bp.route("/seasons/<int:season_id>/end", methods=["POST"])
@login_required
def end_season(season_id):
    winners = season_service.end_season(season_id)
    logger.info(f"Admin {current_user.id} ended season {season_id}")
    return jsonify(
        {
            "message": "Season ended",
            "winners": [winner.to_dict() for winner in winners],
        }
    )


@bp.route("/seasons/<int:season_id>/reopen", methods=["POST"])
@login_required
def reopen_season(season_id):
    season = season_service.reopen_season(season_id)
    logger.info(f"Admin {current_user.id} reopened season {season_id}")
    return jsonify({"message": "Season reopened", "season": season.to_dict()})


@bp.route("/seasons/<int:season_id>/standings")
@login_required
def season_standings(season_id):
    """Uncached standings, including seasons that haven't ended"""
    season = get_season_or_404(season_id)
    entries = leaderboard_service.compute_standings(season)
    return jsonify(
        [
            dict(entry, round_points={str(k): v for k, v in entry["round_points"].items()})
            for entry in entries
        ]
    )


@bp.route("/seasons/<int:season_id>/scoring-rules")
@login_required
def get_scoring_rules(season_id):
    season = get_season_or_404(season_id)
    points = settings_service.get_points_settings_for_season(season)
    return jsonify({str(place): value for place, value in sorted(points.items())})


@bp.route("/seasons/<int:season_id>/scoring-rules", methods=["PUT"])
@login_required
def update_scoring_rules(season_id):
    form = load_json_form(ScoringRulesForm)
    points = season_service.update_scoring_rules(season_id, form.points.data)
    return jsonify({str(place): value for place, value in sorted(points.items())})


@bp.route("/seasons/<int:season_id>/participants")
@login_required
def list_participants(season_id):
    season = get_season_or_404(season_id)
    users = (
        User.query.join(SeasonParticipant, SeasonParticipant.user_id == User.id)
        .filter(SeasonParticipant.season_id == season.id)
        .order_by(User.name)
        .all()
    )
    return jsonify([user.to_dict() for user in users])


@bp.route("/seasons/<int:season_id>/participants", methods=["POST"])
@login_required
def add_participants(season_id):
    form = load_json_form(ParticipantsForm)
    added = season_service.add_participants(season_id, form.user_ids.data)
    return jsonify({"message": f"{added} participant(s) added", "added": added})


@bp.route("/seasons/<int:season_id>/participants/<int:user_id>", methods=["DELETE"])
@login_required
def remove_participant(season_id, user_id):
    season_service.remove_participant(season_id, user_id)
    return jsonify({"message": "Participant removed"})
