from app.services.leaderboard_service import assign_ranks, leaderboard_service
from app.services.pick_service import WriteIn, pick_service
from app.services.round_service import round_service
from app.services.season_service import season_service
from tests.factories import create_admin, create_round, create_season, create_user


def test_ties_share_rank_and_skip():
    entries = [{"total_points": score} for score in [10, 10, 8, 5, 5, 5]]
    assert [e["rank"] for e in assign_ranks(entries)] == [1, 1, 3, 4, 4, 4]


def test_ranks_without_ties():
    entries = [{"total_points": score} for score in [9, 4, 0]]
    assert [e["rank"] for e in assign_ranks(entries)] == [1, 2, 3]


def test_ranks_all_tied():
    entries = [{"total_points": 0} for _ in range(3)]
    assert [e["rank"] for e in assign_ranks(entries)] == [1, 1, 1]


def _complete(round_obj, winner):
    round_service.complete_round(round_obj.id, [{"place": 1, "team": winner}], send_emails=False)


def test_standings_sum_completed_rounds_only(app_ctx):
    alice, bob = create_user("Alice"), create_user("Bob")
    season = create_season(participants=[alice, bob])
    first = create_round(season, sport_name="NFL")
    second = create_round(season, sport_name="NBA")
    open_round = create_round(season, sport_name="NHL")

    pick_service.submit_pick(first.id, alice.id, [WriteIn("Team A")])
    pick_service.submit_pick(second.id, bob.id, [WriteIn("Team B")])
    pick_service.submit_pick(open_round.id, bob.id, [WriteIn("Team C")])
    _complete(first, "Team A")
    _complete(second, "Team B")

    entries = leaderboard_service.compute_standings(season)

    assert [(e["user_name"], e["total_points"], e["rank"]) for e in entries] == [
        ("Alice", 6, 1),
        ("Bob", 6, 1),
    ]
    assert entries[0]["round_points"] == {first.id: 6, second.id: 0}


def test_point_changes_apply_without_rescoring(app_ctx):
    alice = create_user("Alice")
    season = create_season(participants=[alice])
    round_obj = create_round(season)
    pick_service.submit_pick(round_obj.id, alice.id, [WriteIn("Team A")])
    _complete(round_obj, "Team A")

    season_service.update_scoring_rules(season.id, {1: 10})

    payload = leaderboard_service.get_season_leaderboard(season.id)
    assert payload["entries"][0]["total_points"] == 10
    assert payload["points"]["1"] == 10


def test_leaderboard_cache_invalidated_on_completion(app_ctx):
    alice = create_user("Alice")
    season = create_season(participants=[alice])
    round_obj = create_round(season)
    pick_service.submit_pick(round_obj.id, alice.id, [WriteIn("Team A")])

    before = leaderboard_service.get_season_leaderboard(season.id)
    assert before["entries"][0]["total_points"] == 0

    _complete(round_obj, "Team A")

    after = leaderboard_service.get_season_leaderboard(season.id)
    assert after["entries"][0]["total_points"] == 6
    assert [r["id"] for r in after["rounds"]] == [round_obj.id]


def test_cumulative_graph(app_ctx):
    alice, bob = create_user("Alice"), create_user("Bob")
    season = create_season(participants=[alice, bob])
    first = create_round(season, sport_name="NFL")
    second = create_round(season, sport_name="NBA")
    pick_service.submit_pick(first.id, alice.id, [WriteIn("Team A")])
    pick_service.submit_pick(second.id, alice.id, [WriteIn("Team B")])
    pick_service.submit_pick(second.id, bob.id, [WriteIn("Team A")])
    _complete(first, "Team A")
    round_service.complete_round(
        second.id,
        [{"place": 1, "team": "Team A"}, {"place": 2, "team": "Team B"}],
        send_emails=False,
    )

    graph = leaderboard_service.get_cumulative_graph(season.id)

    assert graph["labels"] == ["Start", "NFL", "NBA"]
    series = {s["user_name"]: s["points"] for s in graph["series"]}
    assert series == {"Alice": [0, 6, 11], "Bob": [0, 0, 6]}


def _entry_picks(season, user_name):
    payload = leaderboard_service.get_season_leaderboard(season.id)
    return next(e["picks"] for e in payload["entries"] if e["user_name"] == user_name)


def test_leaderboard_picks_hidden_until_lock(app_ctx):
    alice, bob = create_user("Alice"), create_user("Bob")
    season = create_season(participants=[alice, bob])
    round_obj = create_round(season)
    create_round(season, sport_name="Draft Round", status="draft")
    key = str(round_obj.id)

    assert _entry_picks(season, "Alice") == {key: None}

    pick_service.submit_pick(round_obj.id, alice.id, [WriteIn("Team A")])
    assert _entry_picks(season, "Alice") == {key: {"submitted": True}}
    assert _entry_picks(season, "Bob") == {key: None}

    round_service.lock_round(round_obj.id)
    summary = _entry_picks(season, "Alice")[key]
    assert summary["picks"] == [{"pick_number": 1, "team": "Team A"}]
    assert summary["admin_edited"] is False
    assert summary["editor_name"] is None


def test_leaderboard_reflects_admin_override(app_ctx):
    admin = create_admin(name="Pool Admin")
    alice = create_user("Alice")
    season = create_season(participants=[alice])
    round_obj = create_round(season)
    pick_service.submit_pick(round_obj.id, alice.id, [WriteIn("Team A")])
    round_service.lock_round(round_obj.id)
    key = str(round_obj.id)

    assert _entry_picks(season, "Alice")[key]["picks"][0]["team"] == "Team A"

    pick_service.admin_set_pick(admin, round_obj.id, alice.id, [WriteIn("Team B")])

    summary = _entry_picks(season, "Alice")[key]
    assert summary["picks"] == [{"pick_number": 1, "team": "Team B"}]
    assert summary["admin_edited"] is True
    assert summary["original_pick"] == ["Team A"]
    assert summary["editor_name"] == "Pool Admin"
