from datetime import datetime, timedelta, timezone

import pytest

from app import db
from app.models import MagicLink, ReminderLog
from app.services.pick_service import WriteIn, pick_service
from app.services.reminder_service import reminder_service
from app.services.settings_service import settings_service
from app.utils.email_service import EmailService
from tests.factories import auth_headers, create_admin, create_round, create_season, create_user

DAILY = {
    "reminder_type": "daily",
    "daily_reminder_time": "10:00:00",
    "reminder_timezone": "America/New_York",
    "reminder_first_hours": 48,
    "reminder_final_hours": 6,
}
BEFORE_LOCK = dict(DAILY, reminder_type="before_lock")


@pytest.fixture()
def outbox(monkeypatch):
    sent = []

    def reminder(self, to_email, names, round_obj, token, reminder_text):
        sent.append(("reminder", to_email, names, token))
        return True

    def locked(self, to_email, names, round_obj):
        sent.append(("locked", to_email, names, None))
        return True

    monkeypatch.setattr(EmailService, "send_reminder_email", reminder)
    monkeypatch.setattr(EmailService, "send_locked_notification_email", locked)
    return sent


def _utc(*args):
    return datetime(*args, tzinfo=timezone.utc)


def _round(season, lock_time, created_at=None, **kwargs):
    round_obj = create_round(season, lock_time=lock_time, **kwargs)
    if created_at is not None:
        round_obj.created_at = created_at
        db.session.commit()
    return round_obj


def test_daily_reminder_waits_for_local_time(app_ctx):
    season = create_season(participants=[create_user("Alice")])
    round_obj = _round(season, _utc(2030, 1, 20), created_at=_utc(2030, 1, 1))

    # 10:00 in New York is 15:00 UTC in January
    assert not reminder_service.daily_reminder_due(round_obj, _utc(2030, 1, 10, 14, 30), DAILY)
    assert reminder_service.daily_reminder_due(round_obj, _utc(2030, 1, 10, 15, 5), DAILY)


def test_daily_reminder_skips_day_round_was_created(app_ctx):
    season = create_season(participants=[create_user("Alice")])
    # Midnight in New York
    round_obj = _round(season, _utc(2030, 1, 20), created_at=_utc(2030, 1, 10, 5, 0))

    assert not reminder_service.daily_reminder_due(round_obj, _utc(2030, 1, 10, 16), DAILY)
    assert reminder_service.daily_reminder_due(round_obj, _utc(2030, 1, 11, 16), DAILY)


def test_daily_reminder_goes_to_participants_without_picks(app_ctx, outbox):
    alice = create_user("Alice")
    bob = create_user("Bob", "family@example.com")
    carol = create_user("Carol", "family@example.com")
    dave = create_user("Dave")
    season = create_season(participants=[alice, bob, carol, dave])
    now = datetime.now(timezone.utc)
    round_obj = _round(season, now + timedelta(days=3), created_at=now - timedelta(days=3))
    pick_service.submit_pick(round_obj.id, alice.id, [WriteIn("Team A")])
    settings = dict(DAILY, daily_reminder_time="00:00:00", reminder_timezone="UTC")

    result = reminder_service.check_and_send(now=now, settings=settings)

    assert result["reminders"] == [(round_obj.id, "daily")]
    assert sorted((to, names) for _, to, names, _ in outbox) == [
        ("dave@example.com", ["Dave"]),
        ("family@example.com", ["Bob", "Carol"]),
    ]
    log = ReminderLog.query.one()
    assert (log.reminder_type, log.recipient_count) == ("daily", 3)

    # Once a day
    assert reminder_service.check_and_send(now=now, settings=settings)["reminders"] == []
    later = reminder_service.check_and_send(now=now + timedelta(days=1), settings=settings)
    assert later["reminders"] == [(round_obj.id, "daily")]


def test_reminder_links_work_and_keep_earlier_links(app_ctx, outbox):
    alice = create_user("Alice")
    season = create_season(participants=[alice])
    round_obj = create_round(season)
    _, first_token = MagicLink.issue(round_obj, user=alice)
    db.session.commit()

    assert reminder_service.send_round_reminder(round_obj, "manual") == 1

    token = outbox[0][3]
    assert MagicLink.find_by_token(token).user_id == alice.id
    assert MagicLink.find_by_token(first_token) is not None


def test_before_lock_reminders_fire_once_in_their_windows(app_ctx, outbox):
    season = create_season(participants=[create_user("Alice")])
    lock_time = _utc(2030, 1, 20, 18)
    round_obj = _round(season, lock_time, created_at=_utc(2030, 1, 1))

    def run(hours_before):
        now = lock_time - timedelta(hours=hours_before)
        return reminder_service.check_and_send(now=now, settings=BEFORE_LOCK)["reminders"]

    assert run(47.9) == [(round_obj.id, "first")]
    assert run(47.8) == []
    assert run(24) == []
    assert run(6.1) == [(round_obj.id, "final")]
    assert run(6) == []
    assert len(outbox) == 2


def test_reminders_off_still_send_locked_notice(app_ctx, outbox):
    alice = create_user("Alice")
    bob = create_user("Bob")
    season = create_season(participants=[alice, bob])
    now = datetime.now(timezone.utc)
    open_round = _round(season, now + timedelta(hours=6), created_at=now - timedelta(days=2))
    locked_round = create_round(
        season, sport_name="NBA", status="locked", lock_time=now - timedelta(minutes=30)
    )
    create_round(season, sport_name="NHL", status="locked", lock_time=now - timedelta(hours=3))
    settings = dict(DAILY, reminder_type="none")

    result = reminder_service.check_and_send(now=now, settings=settings)

    assert result == {"reminders": [], "locked": [locked_round.id]}
    assert sorted(to for kind, to, _, _ in outbox if kind == "locked") == [
        "alice@example.com",
        "bob@example.com",
    ]
    assert not ReminderLog.sent_times(open_round.id, "daily")

    assert reminder_service.check_and_send(now=now, settings=settings)["locked"] == []


def test_no_reminders_for_ended_seasons(app_ctx, outbox):
    now = datetime.now(timezone.utc)
    season = create_season(participants=[create_user("Alice")], ended_at=now)
    _round(season, now + timedelta(days=2), created_at=now - timedelta(days=2))
    settings = dict(DAILY, daily_reminder_time="00:00:00", reminder_timezone="UTC")

    assert reminder_service.check_and_send(now=now, settings=settings)["reminders"] == []
    assert outbox == []


def test_reminder_settings_defaults_and_update(app_ctx):
    settings = settings_service.get_reminder_settings()
    assert settings == {
        "reminder_type": "daily",
        "daily_reminder_time": "10:00:00",
        "reminder_timezone": "America/New_York",
        "reminder_first_hours": 48,
        "reminder_final_hours": 6,
    }

    settings_service.update_reminder_hours({"reminder_final_hours": 2})
    db.session.commit()
    settings_service.clear_cache()

    assert settings_service.get_reminder_settings()["reminder_final_hours"] == 2


def test_manual_reminder_endpoint(app, client, outbox):
    with app.app_context():
        headers = auth_headers(create_admin())
        season = create_season(participants=[create_user("Alice")])
        open_id = create_round(season).id
        draft_id = create_round(season, sport_name="Draft", status="draft").id

    response = client.post(f"/api/admin/rounds/{open_id}/reminders", headers=headers)
    assert response.status_code == 200
    assert response.get_json()["reminded"] == 1

    response = client.post(f"/api/admin/rounds/{draft_id}/reminders", headers=headers)
    assert response.status_code == 400


def test_settings_endpoint_updates_reminder_hours(client, app):
    with app.app_context():
        headers = auth_headers(create_admin())

    response = client.put(
        "/api/admin/settings",
        json={"reminder_type": "before_lock", "reminder_first_hours": 24},
        headers=headers,
    )

    assert response.status_code == 200
    reminders = response.get_json()["reminders"]
    assert reminders["reminder_type"] == "before_lock"
    assert reminders["reminder_first_hours"] == 24

    response = client.put(
        "/api/admin/settings", json={"reminder_final_hours": 0}, headers=headers
    )
    assert response.status_code == 400
