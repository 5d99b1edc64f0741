from datetime import datetime, timedelta, timezone

from app import db
from app.models import Admin
from app.utils.email_service import EmailService
from app.utils.tokens import create_access_token, decode_access_token, hash_token, tokens_match
from tests.factories import auth_headers, create_admin


def _login(client, email="admin@example.com", password="Password123"):
    return client.post("/api/auth/login", json={"email": email, "password": password})


def test_token_hash_is_sha256_hex():
    digest = hash_token("abc")
    assert len(digest) == 64
    assert tokens_match(digest, hash_token("abc"))
    assert not tokens_match(digest, hash_token("abd"))


def test_access_token_round_trip(app_ctx):
    admin = create_admin()
    payload = decode_access_token(create_access_token(admin))
    assert payload["adminId"] == admin.id
    assert payload["isMainAdmin"] is True
    assert decode_access_token("not-a-token") is None


def test_password_login(app, client):
    with app.app_context():
        create_admin()

    response = _login(client)
    assert response.status_code == 200
    data = response.get_json()
    assert data["admin"]["email"] == "admin@example.com"

    me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {data['token']}"})
    assert me.status_code == 200
    assert me.get_json()["is_main_admin"] is True


def test_bad_credentials(app, client):
    with app.app_context():
        create_admin()

    response = _login(client, password="WrongPassword1")
    assert response.status_code == 401
    assert response.get_json()["error"] == "Invalid email or password"


def test_login_validation_errors(client):
    response = client.post("/api/auth/login", json={"email": "nope"})
    assert response.status_code == 400
    fields = {error["field"] for error in response.get_json()["errors"]}
    assert fields == {"email", "password"}


def test_me_requires_token(client):
    assert client.get("/api/auth/me").status_code == 401
    response = client.get("/api/auth/me", headers={"Authorization": "Bearer junk"})
    assert response.status_code == 401


def test_login_link_flow(app, client, monkeypatch):
    sent = []
    monkeypatch.setattr(
        EmailService, "send_admin_login_email", lambda self, admin, token: sent.append(token) or True
    )
    with app.app_context():
        create_admin(password=None)

    response = client.post("/api/auth/request-login", json={"email": "ADMIN@example.com"})
    assert response.status_code == 200
    assert len(sent) == 1

    token = sent[0]
    with app.app_context():
        admin = Admin.query.first()
        assert admin.login_token_hash == hash_token(token)

    response = client.post(f"/api/auth/verify/{token}")
    assert response.status_code == 200
    assert response.get_json()["admin"]["has_password"] is False

    # Links are single use
    assert client.post(f"/api/auth/verify/{token}").status_code == 401


def test_login_link_request_does_not_reveal_accounts(client, monkeypatch):
    sent = []
    monkeypatch.setattr(
        EmailService, "send_admin_login_email", lambda self, admin, token: sent.append(token) or True
    )

    response = client.post("/api/auth/request-login", json={"email": "nobody@example.com"})

    assert response.status_code == 200
    assert "login link has been sent" in response.get_json()["message"]
    assert sent == []


def test_expired_login_link(app, client):
    with app.app_context():
        admin = create_admin(password=None)
        token = admin.generate_login_token()
        admin.login_token_expiry = datetime.now(timezone.utc) - timedelta(minutes=1)
        db.session.commit()

    assert client.post(f"/api/auth/verify/{token}").status_code == 401


def test_change_password(app, client):
    with app.app_context():
        headers = auth_headers(create_admin())

    response = client.post(
        "/api/auth/change-password",
        json={
            "current_password": "Wrong1234",
            "new_password": "NewPassword1",
            "confirm_password": "NewPassword1",
        },
        headers=headers,
    )
    assert response.status_code == 400

    response = client.post(
        "/api/auth/change-password",
        json={
            "current_password": "Password123",
            "new_password": "NewPassword1",
            "confirm_password": "NewPassword1",
        },
        headers=headers,
    )
    assert response.status_code == 200
    assert _login(client, password="NewPassword1").status_code == 200


def test_main_admin_only_routes(app, client):
    with app.app_context():
        create_admin()
        helper = create_admin(email="helper@example.com", is_main_admin=False, name="Helper")
        headers = auth_headers(helper)

    response = client.get("/api/admin/admins", headers=headers)

    assert response.status_code == 403
    assert response.get_json()["error"] == "Only main admin can perform this action"


def test_admin_cannot_delete_self(app, client):
    with app.app_context():
        admin = create_admin()
        admin_id = admin.id
        headers = auth_headers(admin)

    response = client.delete(f"/api/admin/admins/{admin_id}", headers=headers)

    assert response.status_code == 400
    assert response.get_json()["error"] == "You cannot delete your own account"
