import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from app.services.pick_service import WriteIn, pick_service
from app.utils import db_utils
from app.utils.db_utils import is_lock_conflict, retry_delay, retry_on_conflict
from app.utils.errors import ConflictError
from tests.factories import create_round, create_season, create_user


class FakeDriverError(Exception):
    def __init__(self, message, sqlstate=None):
        super().__init__(message)
        self.sqlstate = sqlstate


def _deadlock():
    return OperationalError("UPDATE picks", {}, FakeDriverError("deadlock detected", "40P01"))


@pytest.fixture()
def no_sleep(monkeypatch):
    delays = []
    monkeypatch.setattr(db_utils.time, "sleep", delays.append)
    return delays


def test_lock_conflict_detection():
    assert is_lock_conflict(_deadlock())
    assert is_lock_conflict(
        OperationalError("INSERT", {}, FakeDriverError("database is locked"))
    )
    assert not is_lock_conflict(
        OperationalError("SELECT", {}, FakeDriverError("no such table: picks"))
    )
    assert not is_lock_conflict(ValueError("deadlock"))


def test_retry_delay_grows_with_jitter():
    for attempt, floor in ((1, 0.1), (2, 0.2), (3, 0.4)):
        delay = retry_delay(attempt, 100)
        assert floor <= delay <= floor + 0.1


def test_retries_until_success(app_ctx, no_sleep):
    calls = []

    @retry_on_conflict()
    def flaky():
        calls.append(1)
        if len(calls) < 3:
            raise _deadlock()
        return "saved"

    assert flaky() == "saved"
    assert len(calls) == 3
    assert len(no_sleep) == 2


def test_gives_up_with_conflict_error(app_ctx, no_sleep):
    @retry_on_conflict()
    def always_deadlocks():
        raise _deadlock()

    with pytest.raises(ConflictError):
        always_deadlocks()
    assert len(no_sleep) == 2


def test_other_errors_are_not_retried(app_ctx, no_sleep):
    calls = []

    @retry_on_conflict()
    def broken():
        calls.append(1)
        raise OperationalError("SELECT", {}, FakeDriverError("no such table"))

    with pytest.raises(OperationalError):
        broken()
    assert len(calls) == 1
    assert no_sleep == []


def test_pick_submission_retries_deadlock(app_ctx, no_sleep, monkeypatch):
    user = create_user("Alice")
    season = create_season(participants=[user])
    round_obj = create_round(season)

    original = pick_service._write_pick
    failures = []

    def deadlock_once(*args, **kwargs):
        if not failures:
            failures.append(1)
            raise _deadlock()
        return original(*args, **kwargs)

    monkeypatch.setattr(pick_service, "_write_pick", deadlock_once)

    pick = pick_service.submit_pick(round_obj.id, user.id, [WriteIn("Team B")])

    assert pick.get_team_names() == ["Team B"]
    assert len(no_sleep) == 1


def test_unique_race_is_retried_for_picks(app_ctx, no_sleep, monkeypatch):
    user = create_user("Alice")
    season = create_season(participants=[user])
    round_obj = create_round(season)

    original = pick_service._write_pick
    failures = []

    def race_once(*args, **kwargs):
        if not failures:
            failures.append(1)
            raise IntegrityError("INSERT INTO picks", {}, FakeDriverError("UNIQUE constraint failed"))
        return original(*args, **kwargs)

    monkeypatch.setattr(pick_service, "_write_pick", race_once)

    pick = pick_service.submit_pick(round_obj.id, user.id, [WriteIn("Team A")])
    assert pick.get_team_names() == ["Team A"]
