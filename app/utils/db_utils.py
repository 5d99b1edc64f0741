"""
Transaction helpers

Every multi-statement write runs inside ``transaction()`` so that either all
of its changes commit or none do. The session hands its connection back to
the pool on commit or rollback.
"""

import functools
import logging
import random
import time
from contextlib import contextmanager

from flask import current_app
from sqlalchemy.exc import DBAPIError, IntegrityError

from app import db
from app.utils.errors import ConflictError

logger = logging.getLogger(__name__)

# PostgreSQL deadlock_detected / serialization_failure
LOCK_CONFLICT_SQLSTATES = {"40P01", "40001"}
# MySQL deadlock / lock wait timeout
LOCK_CONFLICT_ERRNOS = {1213, 1205}


@contextmanager
def transaction():
    """Commit on success, roll back on any error and re-raise it"""
    try:
        yield db.session
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise


def is_lock_conflict(error):
    """True when the database aborted the statement over lock contention"""
    if not isinstance(error, DBAPIError):
        return False
    orig = error.orig
    sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if sqlstate in LOCK_CONFLICT_SQLSTATES:
        return True
    args = getattr(orig, "args", ())
    if args and args[0] in LOCK_CONFLICT_ERRNOS:
        return True
    return "deadlock" in str(orig).lower() or "database is locked" in str(orig).lower()


def is_unique_race(error):
    """A concurrent insert won the race for the same unique key"""
    return isinstance(error, IntegrityError)


def retry_delay(attempt, base_delay_ms):
    """Exponential backoff with jitter, in seconds"""
    delay_ms = base_delay_ms * (2 ** (attempt - 1)) + random.uniform(0, base_delay_ms)
    return delay_ms / 1000.0


def retry_on_conflict(should_retry=is_lock_conflict, attempts=None):
    """
    Re-run a transactional function when it fails with a transient conflict.

    The wrapped function must open its own transaction so that a retry starts
    from a clean session. Once the attempts are used up a ConflictError is
    raised; errors that aren't conflicts propagate untouched.
    """

    def decorator(f):
        @functools.wraps(f)
        def wrapped(*args, **kwargs):
            max_attempts = attempts or current_app.config.get("PICK_RETRY_ATTEMPTS", 3)
            base_delay_ms = current_app.config.get("PICK_RETRY_BASE_DELAY_MS", 100)

            for attempt in range(1, max_attempts + 1):
                try:
                    return f(*args, **kwargs)
                except DBAPIError as e:
                    if not should_retry(e):
                        raise
                    if attempt == max_attempts:
                        logger.error(
                            f"{f.__name__} still conflicting after {attempt} attempts: {e.orig}"
                        )
                        raise ConflictError(
                            "The request conflicted with another update. Please try again."
                        ) from e
                    delay = retry_delay(attempt, base_delay_ms)
                    logger.warning(
                        f"{f.__name__} hit a lock conflict (attempt {attempt}/{max_attempts}), "
                        f"retrying in {delay * 1000:.0f}ms"
                    )
                    time.sleep(delay)

        return wrapped

    return decorator
