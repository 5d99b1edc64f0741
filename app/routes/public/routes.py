"""Read-only endpoints for participants and spectators, no login needed"""

from flask import jsonify

from app import db
from app.models import HistoricalChampion, Round, Season, SeasonWinner
from app.routes.public import bp
from app.services.leaderboard_service import leaderboard_service
from app.services.settings_service import settings_service
from app.utils.cache_utils import SEASONS, cached_query
from app.utils.errors import NotFoundError


@cached_query(SEASONS)
def list_visible_seasons():
    seasons = (
        Season.query.filter(Season.deleted_at.is_(None))
        .order_by(Season.year_start.desc(), Season.name)
        .all()
    )
    return [season.to_dict() for season in seasons]


@cached_query(SEASONS)
def list_champions():
    """
    First place finishers of every ended season plus the historical champions
    entered by admins, newest year first. Within a year season champions come
    before historical ones.
    """
    rows = (
        SeasonWinner.query.join(Season, Season.id == SeasonWinner.season_id)
        .filter(SeasonWinner.place == 1, Season.deleted_at.is_(None))
        .order_by(Season.ended_at.desc(), SeasonWinner.user_id)
        .all()
    )
    champions = [
        dict(row.to_dict(), season_name=row.season.name, year_start=row.season.year_start,
             year_end=row.season.year_end, champion_type="season")
        for row in rows
    ]
    champions.extend(
        {
            "id": champion.id,
            "user_name": champion.name,
            "season_name": None,
            "year_start": None,
            "year_end": champion.end_year,
            "place": None,
            "total_points": None,
            "champion_type": "historical",
        }
        for champion in HistoricalChampion.get_all()
    )
    champions.sort(key=lambda c: (-c["year_end"], c["champion_type"] != "season"))
    return champions


@cached_query(SEASONS)
def list_season_winners(season_id):
    return [winner.to_dict() for winner in SeasonWinner.get_for_season(season_id)]


def get_visible_season(season_id):
    season = Season.get_visible(season_id)
    if season is None:
        raise NotFoundError("Season not found")
    return season


@bp.route("/seasons")
def seasons():
    return jsonify(list_visible_seasons())


@bp.route("/seasons/default")
def default_season():
    season = Season.get_default_season()
    if season is None:
        raise NotFoundError("No default season")
    return jsonify(season.to_dict())


@bp.route("/seasons/active")
def active_seasons():
    return jsonify([season.to_dict() for season in Season.get_active_seasons()])


@bp.route("/seasons/champions")
def champions():
    return jsonify(list_champions())


@bp.route("/seasons/<int:season_id>/winners")
def season_winners(season_id):
    get_visible_season(season_id)
    return jsonify(list_season_winners(season_id))


@bp.route("/seasons/<int:season_id>/rounds")
def season_rounds(season_id):
    season = get_visible_season(season_id)
    # Drafts aren't announced yet
    rounds = [r for r in season.get_live_rounds() if r.status != "draft"]
    return jsonify([round_obj.to_dict(include_teams=True) for round_obj in rounds])


@bp.route("/rounds/<int:round_id>")
def round_detail(round_id):
    round_obj = db.session.get(Round, round_id)
    if round_obj is None or round_obj.is_deleted or round_obj.status == "draft":
        raise NotFoundError("Round not found")
    if round_obj.season is None or round_obj.season.is_deleted:
        raise NotFoundError("Round not found")
    return jsonify(round_obj.to_dict(include_teams=True))


@bp.route("/leaderboard/season/<int:season_id>")
def season_leaderboard(season_id):
    return jsonify(leaderboard_service.get_season_leaderboard(season_id))


@bp.route("/leaderboard/season/<int:season_id>/graph")
def season_graph(season_id):
    return jsonify(leaderboard_service.get_cumulative_graph(season_id))


@bp.route("/settings")
def public_settings():
    return jsonify(settings_service.get_public_settings())
