import pytest
from sqlalchemy.exc import OperationalError

from app import db
from app.models import Season, SeasonWinner
from app.services.leaderboard_service import leaderboard_service
from app.services.pick_service import WriteIn, pick_service
from app.services.round_service import round_service
from app.services.season_service import season_service
from app.services.settings_service import settings_service
from app.utils.errors import PreconditionError, ValidationError
from tests.factories import create_round, create_season, create_user


def _season_with_results():
    users = [create_user(name) for name in ("Ann", "Ben", "Cat", "Dan", "Eve", "Fay", "Gus")]
    season = create_season(participants=users)
    round_obj = create_round(season, teams=("A", "B", "C", "D"))
    picks = {"Ann": "A", "Ben": "A", "Cat": "B", "Dan": "C", "Eve": "C", "Fay": "D"}
    by_name = {u.name: u for u in users}
    for name, team in picks.items():
        pick_service.submit_pick(round_obj.id, by_name[name].id, [WriteIn(team)])
    round_service.complete_round(
        round_obj.id,
        [{"place": 1, "team": "A"}, {"place": 2, "team": "B"}, {"place": 3, "team": "C"}],
        send_emails=False,
    )
    return season, round_obj


def test_end_season_requires_completed_rounds(app_ctx):
    season = create_season()
    create_round(season, sport_name="NFL", status="active")
    create_round(season, sport_name="NBA", status="draft")

    with pytest.raises(PreconditionError) as excinfo:
        season_service.end_season(season.id)

    assert str(excinfo.value) == (
        "Cannot end season. The following sports are not yet completed: "
        "NFL (active), NBA (draft). All sports must be completed before ending a season."
    )
    assert SeasonWinner.query.count() == 0
    assert db.session.get(Season, season.id).ended_at is None


def test_end_season_records_top_five_with_ties(app_ctx):
    season, _ = _season_with_results()

    winners = season_service.end_season(season.id)

    # Ann/Ben tie on 6, Cat 5, Dan/Eve tie on 4; Fay and Gus score 0
    assert [(w.user.name, w.place, w.total_points) for w in winners] == [
        ("Ann", 1, 6),
        ("Ben", 1, 6),
        ("Cat", 3, 5),
        ("Dan", 4, 4),
        ("Eve", 4, 4),
    ]
    assert winners[0].point_values["1"] == 6
    assert db.session.get(Season, season.id).is_ended


def _winner_rows(season_id):
    return sorted(
        (w.id, w.user_id, w.place, w.total_points, w.created_at)
        for w in SeasonWinner.query.filter_by(season_id=season_id)
    )


def test_end_season_twice_fails(app_ctx):
    season, _ = _season_with_results()
    season_service.end_season(season.id)
    before = _winner_rows(season.id)
    ended_at = db.session.get(Season, season.id).ended_at

    with pytest.raises(PreconditionError, match="Season has already ended"):
        season_service.end_season(season.id)

    assert _winner_rows(season.id) == before
    assert db.session.get(Season, season.id).ended_at == ended_at


def test_end_season_rolls_back_on_database_error(app_ctx, monkeypatch):
    season, _ = _season_with_results()

    def fail(self):
        raise OperationalError("UPDATE seasons", {}, Exception("disk I/O error"))

    # Fails after the winner rows were flushed
    monkeypatch.setattr(Season, "mark_ended", fail)

    with pytest.raises(OperationalError):
        season_service.end_season(season.id)

    assert SeasonWinner.query.filter_by(season_id=season.id).count() == 0
    assert db.session.get(Season, season.id).ended_at is None


def test_ended_season_keeps_captured_points(app_ctx):
    season, _ = _season_with_results()
    season_service.end_season(season.id)

    # Global changes after the end don't move a finished season
    settings_service.update_points_settings({1: 20})
    db.session.commit()
    settings_service.clear_cache()

    season = db.session.get(Season, season.id)
    assert settings_service.get_points_settings_for_season(season)[1] == 6
    payload = leaderboard_service.get_season_leaderboard(season.id)
    assert payload["entries"][0]["total_points"] == 6

    with pytest.raises(PreconditionError):
        season_service.update_scoring_rules(season.id, {1: 12})
    with pytest.raises(PreconditionError):
        round_service.complete_round(
            season.rounds.first().id, [{"place": 1, "team": "B"}], send_emails=False
        )


def test_reopen_season_clears_winners(app_ctx):
    season, _ = _season_with_results()
    season_service.end_season(season.id)

    season_service.reopen_season(season.id)

    assert SeasonWinner.query.filter_by(season_id=season.id).count() == 0
    assert db.session.get(Season, season.id).ended_at is None

    # Ending again after reopening works and rebuilds the winners
    assert len(season_service.end_season(season.id)) == 5


def test_reopen_requires_ended_season(app_ctx):
    season = create_season()
    with pytest.raises(PreconditionError, match="Season is not ended"):
        season_service.reopen_season(season.id)


def test_create_season_seeds_scoring_rules(app_ctx):
    settings_service.update_points_settings({0: -1})
    db.session.commit()
    settings_service.clear_cache()

    season = season_service.create_season("2026 Pool", 2026, 2027, is_default=True)

    points = settings_service.get_season_points(season.id)
    assert points[0] == -1
    assert points[1] == 6
    assert Season.get_default_season().id == season.id


def test_create_season_rejects_inverted_years(app_ctx):
    with pytest.raises(ValidationError):
        season_service.create_season("Bad", 2027, 2026)


def test_soft_delete_and_permanent_delete(app_ctx):
    season, _ = _season_with_results()

    with pytest.raises(PreconditionError):
        season_service.restore(season.id)

    season_service.soft_delete(season.id)
    assert Season.get_visible(season.id) is None

    with pytest.raises(ValidationError):
        season_service.permanent_delete(season.id, "delete")

    season_service.permanent_delete(season.id, "PERMANENT DELETE")
    assert db.session.get(Season, season.id) is None
