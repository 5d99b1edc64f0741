import pytest

from app.utils.email_service import EmailService
from tests.factories import auth_headers, create_admin, create_user


@pytest.fixture()
def headers(app):
    with app.app_context():
        return auth_headers(create_admin())


@pytest.fixture()
def sent_links(monkeypatch):
    links = {}

    def capture(self, to_email, names, round_obj, token):
        links[to_email] = token
        return True

    monkeypatch.setattr(EmailService, "send_magic_link_email", capture)
    return links


def _create_season(client, headers, user_ids):
    response = client.post(
        "/api/admin/seasons",
        json={"name": "2025 Pool", "year_start": 2025, "year_end": 2026, "is_default": True},
        headers=headers,
    )
    assert response.status_code == 201
    season_id = response.get_json()["id"]
    if not user_ids:
        return season_id

    response = client.post(
        f"/api/admin/seasons/{season_id}/participants",
        json={"user_ids": user_ids},
        headers=headers,
    )
    assert response.status_code == 200
    return season_id


def _create_round(client, headers, season_id, **overrides):
    body = {
        "season_id": season_id,
        "sport_name": "Super Bowl",
        "lock_time": "2099-02-01T18:00:00",
        "timezone": "America/New_York",
        "teams": ["Chiefs", "Eagles", "Bills"],
    }
    body.update(overrides)
    response = client.post("/api/admin/rounds", json=body, headers=headers)
    assert response.status_code == 201, response.get_json()
    return response.get_json()


def test_healthz(client):
    response = client.get("/healthz")
    assert response.status_code == 200
    assert response.get_json()["status"] == "healthy"


def test_admin_routes_require_auth(client):
    assert client.get("/api/admin/seasons").status_code == 401


def test_round_lifecycle_over_http(app, client, headers, sent_links):
    with app.app_context():
        alice_id = create_user("Alice", "alice@example.com").id
        bob_id = create_user("Bob", "bob@example.com").id

    season_id = _create_season(client, headers, [alice_id, bob_id])
    round_data = _create_round(client, headers, season_id)
    assert round_data["status"] == "draft"
    assert [team["name"] for team in round_data["teams"]] == ["Chiefs", "Eagles", "Bills"]
    round_id = round_data["id"]

    # Drafts aren't public
    assert client.get(f"/api/public/rounds/{round_id}").status_code == 404

    response = client.post(f"/api/admin/rounds/{round_id}/activate", headers=headers)
    assert response.status_code == 200
    assert response.get_json()["links_sent"] == 2
    assert set(sent_links) == {"alice@example.com", "bob@example.com"}

    token = sent_links["alice@example.com"]
    response = client.get(f"/api/picks/validate/{token}")
    assert response.status_code == 200
    assert response.get_json()["user"]["name"] == "Alice"

    response = client.post(f"/api/picks/{token}", json={"picks": ["Chiefs"]})
    assert response.status_code == 200
    assert response.get_json()["pick"]["picks"] == ["Chiefs"]

    response = client.post(
        f"/api/picks/{sent_links['bob@example.com']}", json={"picks": ["Nobody"]}
    )
    assert response.status_code == 400

    response = client.post(
        f"/api/admin/rounds/{round_id}/complete?send_emails=false",
        json={"results": [{"place": 1, "team": "Chiefs"}, {"place": 2, "team": "Eagles"}]},
        headers=headers,
    )
    assert response.status_code == 200
    assert response.get_json()["scores"][str(alice_id)] == {"1": 1}

    # Completed rounds no longer take picks
    response = client.post(f"/api/picks/{token}", json={"picks": ["Eagles"]})
    assert response.status_code == 403

    response = client.get(f"/api/public/leaderboard/season/{season_id}")
    entries = response.get_json()["entries"]
    assert [(e["user_name"], e["total_points"], e["rank"]) for e in entries] == [
        ("Alice", 6, 1),
        ("Bob", 0, 2),
    ]

    response = client.post(f"/api/admin/seasons/{season_id}/end", headers=headers)
    assert response.status_code == 200
    assert [w["place"] for w in response.get_json()["winners"]] == [1, 2]

    response = client.get("/api/public/seasons/champions")
    assert [c["user_name"] for c in response.get_json()] == ["Alice"]


def test_round_validation_errors(client, headers):
    response = client.post(
        "/api/admin/rounds",
        json={"sport_name": "NFL", "pick_type": "bracket", "timezone": "Mars/Base"},
        headers=headers,
    )

    assert response.status_code == 400
    fields = {error["field"] for error in response.get_json()["errors"]}
    assert {"season_id", "pick_type", "timezone", "lock_time"} <= fields


def test_end_season_precondition_over_http(app, client, headers):
    season_id = _create_season(client, headers, [])
    _create_round(client, headers, season_id, sport_name="NFL")

    response = client.post(f"/api/admin/seasons/{season_id}/end", headers=headers)

    assert response.status_code == 400
    assert "NFL (draft)" in response.get_json()["error"]


def test_public_settings_and_update(client, headers):
    assert client.get("/api/public/settings").get_json()["app_title"] == "Go Make Your Picks"

    response = client.put(
        "/api/admin/settings",
        json={"app_title": "Office Pool", "points": {"1": 8, "0": -1}},
        headers=headers,
    )
    assert response.status_code == 200

    assert client.get("/api/public/settings").get_json()["app_title"] == "Office Pool"
    points = client.get("/api/admin/settings", headers=headers).get_json()["points"]
    assert points["1"] == 8
    assert points["0"] == -1


def test_settings_reject_out_of_range_points(client, headers):
    response = client.put(
        "/api/admin/settings", json={"points": {"11": 3}}, headers=headers
    )
    assert response.status_code == 400


def test_unknown_pick_link(client):
    response = client.get(f"/api/picks/validate/{'f' * 64}")
    assert response.status_code == 404
    assert response.get_json()["error"] == "Invalid or expired link"


def test_write_in_round_completed_with_manual_scores(app, client, headers, sent_links):
    with app.app_context():
        alice_id = create_user("Alice", "alice@example.com").id

    season_id = _create_season(client, headers, [alice_id])
    round_id = _create_round(
        client, headers, season_id, sport_name="Masters", pick_type="multiple",
        num_write_in_picks=2, teams=["Scottie Scheffler"],
    )["id"]
    client.post(f"/api/admin/rounds/{round_id}/activate", headers=headers)

    response = client.post(
        f"/api/picks/{sent_links['alice@example.com']}", json={"picks": ["Dark Horse"]}
    )
    assert response.status_code == 200

    # Free text is never a result
    response = client.post(
        f"/api/admin/rounds/{round_id}/complete?send_emails=false",
        json={"results": [{"place": 1, "team": "Dark Horse"}]},
        headers=headers,
    )
    assert response.status_code == 400

    response = client.post(
        f"/api/admin/rounds/{round_id}/complete?send_emails=false",
        json={"results": [], "manual_scores": {str(alice_id): 1}},
        headers=headers,
    )
    assert response.status_code == 200
    assert response.get_json()["scores"][str(alice_id)] == {"1": 1}
