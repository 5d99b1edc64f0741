import logging

from flask import jsonify
from flask_login import current_user, login_required

from app import db
from app.forms.champions import HistoricalChampionForm
from app.forms.common import load_json_form
from app.models import HistoricalChampion
from app.routes.admin import bp
from app.utils.cache_utils import invalidate_season_caches
from app.utils.db_utils import transaction
from app.utils.errors import ConflictError, NotFoundError

logger = logging.getLogger(__name__)


def get_champion_or_404(champion_id):
    champion = db.session.get(HistoricalChampion, champion_id)
    if champion is None:
        raise NotFoundError("Historical champion not found")
    return champion


def check_unique(name, end_year, exclude_id=None):
    if HistoricalChampion.exists(name, end_year, exclude_id=exclude_id):
        raise ConflictError("A champion with this name and year already exists")


@bp.route("/historical-champions")
@login_required
def list_historical_champions():
    return jsonify([champion.to_dict() for champion in HistoricalChampion.get_all()])


@bp.route("/historical-champions", methods=["POST"])
@login_required
def create_historical_champion():
    form = load_json_form(HistoricalChampionForm)
    with transaction():
        check_unique(form.name.data, form.end_year.data)
        champion = HistoricalChampion(name=form.name.data, end_year=form.end_year.data)
        db.session.add(champion)
    invalidate_season_caches()
    logger.info(f"Admin {current_user.id} added historical champion {champion.id}")
    return jsonify(champion.to_dict()), 201


@bp.route("/historical-champions/<int:champion_id>", methods=["PUT"])
@login_required
def update_historical_champion(champion_id):
    form = load_json_form(HistoricalChampionForm)
    with transaction():
        champion = get_champion_or_404(champion_id)
        check_unique(form.name.data, form.end_year.data, exclude_id=champion.id)
        champion.name = form.name.data
        champion.end_year = form.end_year.data
    invalidate_season_caches()
    return jsonify(champion.to_dict())


@bp.route("/historical-champions/<int:champion_id>", methods=["DELETE"])
@login_required
def delete_historical_champion(champion_id):
    with transaction():
        champion = get_champion_or_404(champion_id)
        db.session.delete(champion)
    invalidate_season_caches()
    logger.info(f"Admin {current_user.id} deleted historical champion {champion_id}")
    return jsonify({"message": "Historical champion deleted"})
