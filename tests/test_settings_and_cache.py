from app import cache, db
from app.models import NumericSetting
from app.services.settings_service import DEFAULT_POINTS, DEFAULT_TEXT_SETTINGS, settings_service
from app.utils.cache_utils import LEADERBOARD, SEASONS, SETTINGS, cached_query, query_cache


def test_query_cache_get_set_and_none_values(app_ctx):
    assert query_cache.get(SEASONS, "list") is None
    query_cache.set(SEASONS, "list", [])
    query_cache.set(SEASONS, "missing", None)

    assert query_cache.get(SEASONS, "list") == []
    assert query_cache.get(SEASONS, "missing", default="miss") is None


def test_invalidate_prefix_only_touches_namespace(app_ctx):
    query_cache.set(LEADERBOARD, "season:1", {"entries": []})
    query_cache.set(LEADERBOARD, "graph:1", {"series": []})
    query_cache.set(SEASONS, "list", ["2025"])

    query_cache.invalidate_prefix(LEADERBOARD)

    assert query_cache.get(LEADERBOARD, "season:1") is None
    assert query_cache.get(LEADERBOARD, "graph:1") is None
    assert query_cache.get(SEASONS, "list") == ["2025"]


def test_invalidate_single_key(app_ctx):
    query_cache.set(SETTINGS, "text", {"a": 1})
    query_cache.set(SETTINGS, "points", {1: 6})

    query_cache.invalidate(SETTINGS, "text")

    assert query_cache.get(SETTINGS, "text") is None
    assert query_cache.get(SETTINGS, "points") == {1: 6}


def test_cached_query_decorator(app_ctx):
    calls = []

    @cached_query(SEASONS)
    def load(season_id):
        calls.append(season_id)
        return {"id": season_id}

    assert load(1) == {"id": 1}
    assert load(1) == {"id": 1}
    assert load(2) == {"id": 2}
    assert calls == [1, 2]

    query_cache.invalidate_prefix(SEASONS)
    load(1)
    assert calls == [1, 2, 1]


def test_settings_defaults_when_empty(app_ctx):
    assert settings_service.get_points_settings() == DEFAULT_POINTS
    assert settings_service.get_text_settings() == DEFAULT_TEXT_SETTINGS
    assert settings_service.get_public_settings()["app_title"] == "Go Make Your Picks"


def test_settings_fall_back_when_tables_unreadable(app_ctx):
    NumericSetting.__table__.drop(db.engine)

    assert settings_service.get_points_settings() == DEFAULT_POINTS

    # Recreated so teardown can drop everything
    NumericSetting.__table__.create(db.engine)


def test_settings_served_from_cache_until_cleared(app_ctx):
    assert settings_service.get_points_settings()[1] == 6

    db.session.add(NumericSetting(key="points_place_1", value=9))
    db.session.commit()
    assert settings_service.get_points_settings()[1] == 6

    settings_service.clear_cache()
    assert settings_service.get_points_settings()[1] == 9


def test_update_text_settings(app_ctx):
    settings_service.update_text_settings({"app_title": "Office Pool"})
    db.session.commit()
    settings_service.clear_cache()

    assert settings_service.get_text_settings()["app_title"] == "Office Pool"
    assert settings_service.get_text_settings()["theme_mode"] == "user_choice"


def test_evicted_generation_never_revives_stale_entries(app_ctx):
    query_cache.set(LEADERBOARD, "season:1", {"entries": ["stale"]})
    query_cache.invalidate_prefix(LEADERBOARD)
    query_cache.set(LEADERBOARD, "season:1", {"entries": ["fresh"]})

    # Backend dropped the generation marker, e.g. SimpleCache pruning
    cache.delete(f"_gen:{LEADERBOARD}")

    assert query_cache.get(LEADERBOARD, "season:1") is None
    query_cache.set(LEADERBOARD, "season:1", {"entries": ["rebuilt"]})
    assert query_cache.get(LEADERBOARD, "season:1") == {"entries": ["rebuilt"]}
