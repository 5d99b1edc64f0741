import pytest

from app.models import SeasonWinner
from app.services.season_service import season_service
from tests.factories import auth_headers, create_admin, create_season, create_user


@pytest.fixture()
def headers(app):
    with app.app_context():
        return auth_headers(create_admin())


def _add(client, headers, name, end_year):
    return client.post(
        "/api/admin/historical-champions",
        json={"name": name, "end_year": end_year},
        headers=headers,
    )


def test_historical_champion_crud(client, headers):
    response = _add(client, headers, "Uncle Ray", 2019)
    assert response.status_code == 201
    champion_id = response.get_json()["id"]
    _add(client, headers, "Aunt Jo", 2021)

    listed = client.get("/api/admin/historical-champions", headers=headers).get_json()
    assert [(c["name"], c["end_year"]) for c in listed] == [("Aunt Jo", 2021), ("Uncle Ray", 2019)]

    response = client.put(
        f"/api/admin/historical-champions/{champion_id}",
        json={"name": "Uncle Ray", "end_year": 2018},
        headers=headers,
    )
    assert response.status_code == 200
    assert response.get_json()["end_year"] == 2018

    response = client.delete(f"/api/admin/historical-champions/{champion_id}", headers=headers)
    assert response.status_code == 200
    listed = client.get("/api/admin/historical-champions", headers=headers).get_json()
    assert [c["name"] for c in listed] == ["Aunt Jo"]

    response = client.delete(f"/api/admin/historical-champions/{champion_id}", headers=headers)
    assert response.status_code == 404


def test_historical_champion_validation(client, headers):
    response = _add(client, headers, "", 1850)
    assert response.status_code == 400
    fields = {error["field"] for error in response.get_json()["errors"]}
    assert fields == {"name", "end_year"}

    assert _add(client, headers, "Uncle Ray", 2019).status_code == 201
    response = _add(client, headers, "Uncle Ray", 2019)
    assert response.status_code == 409


def test_historical_champion_update_rejects_duplicate(client, headers):
    _add(client, headers, "Uncle Ray", 2019)
    other_id = _add(client, headers, "Aunt Jo", 2020).get_json()["id"]

    response = client.put(
        f"/api/admin/historical-champions/{other_id}",
        json={"name": "Uncle Ray", "end_year": 2019},
        headers=headers,
    )

    assert response.status_code == 409


def test_historical_champions_require_auth(client):
    assert client.get("/api/admin/historical-champions").status_code == 401


def test_public_champions_merge_historical(app, client, headers):
    with app.app_context():
        alice = create_user("Alice")
        season = create_season(participants=[alice])
        season_service.end_season(season.id)
        assert SeasonWinner.query.count() == 1

    # Loaded before the additions so the cache has to be dropped
    assert [c["user_name"] for c in client.get("/api/public/seasons/champions").get_json()] == [
        "Alice"
    ]

    _add(client, headers, "Uncle Ray", 2019)
    _add(client, headers, "Aunt Jo", 2026)

    champions = client.get("/api/public/seasons/champions").get_json()
    assert [(c["user_name"], c["year_end"], c["champion_type"]) for c in champions] == [
        ("Alice", 2026, "season"),
        ("Aunt Jo", 2026, "historical"),
        ("Uncle Ray", 2019, "historical"),
    ]
