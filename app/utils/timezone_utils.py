"""
Timezone utility functions for Go Make Your Picks
"""

from datetime import datetime, time, timezone

import pytz
from flask import current_app


def get_app_timezone():
    """Get the application's configured timezone"""
    try:
        timezone_name = current_app.config.get("TIMEZONE", "UTC")
        return pytz.timezone(timezone_name)
    except pytz.UnknownTimeZoneError:
        return pytz.UTC


def get_round_timezone(name):
    """Timezone a round's lock time is displayed in"""
    try:
        return pytz.timezone(name)
    except pytz.UnknownTimeZoneError:
        return get_app_timezone()


def is_valid_timezone(name):
    return name in pytz.all_timezones_set


def local_clock_time(now, tz_name, clock):
    """UTC instant of an HH:MM:SS wall-clock time on the local date of now"""
    tz = get_round_timezone(tz_name)
    local_date = ensure_utc(now).astimezone(tz).date()
    hour, minute, second = (int(part) for part in clock.split(":"))
    local = tz.localize(datetime.combine(local_date, time(hour, minute, second)))
    return local.astimezone(timezone.utc)


def ensure_utc(dt):
    """Treat naive datetimes (as returned by SQLite) as UTC"""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def convert_to_utc(dt, tz_name=None):
    """Convert a datetime to UTC, localizing naive values to tz_name"""
    if dt is None:
        return None

    if dt.tzinfo is None:
        tz = get_round_timezone(tz_name) if tz_name else get_app_timezone()
        dt = tz.localize(dt)

    return dt.astimezone(timezone.utc)


def format_lock_time(dt, tz_name, format_str="%a %b %d at %I:%M %p %Z"):
    """Format a lock time in the round's timezone"""
    if dt is None:
        return "TBD"

    local_time = ensure_utc(dt).astimezone(get_round_timezone(tz_name))
    return local_time.strftime(format_str)
