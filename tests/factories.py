"""Helpers that write fixtures straight to the database. Call inside an app context."""

from datetime import datetime, timedelta, timezone

from app import db
from app.models import Admin, Round, Season, SeasonParticipant, User
from app.utils.tokens import create_access_token


def future(hours=24):
    return datetime.now(timezone.utc) + timedelta(hours=hours)


def past(hours=1):
    return datetime.now(timezone.utc) - timedelta(hours=hours)


def create_user(name, email=None):
    user = User(name=name, email=email or f"{name.lower().replace(' ', '.')}@example.com")
    db.session.add(user)
    db.session.commit()
    return user


def create_season(name="2025 Pool", participants=(), **kwargs):
    season = Season(name=name, year_start=2025, year_end=2026, **kwargs)
    db.session.add(season)
    db.session.flush()
    for user in participants:
        db.session.add(SeasonParticipant(season_id=season.id, user_id=user.id))
    db.session.commit()
    return season


def create_round(season, sport_name="Super Bowl", teams=("Team A", "Team B", "Team C"),
                 status="active", lock_time=None, pick_type="single", num_write_in_picks=None):
    round_obj = Round(
        season_id=season.id,
        sport_name=sport_name,
        pick_type=pick_type,
        num_write_in_picks=num_write_in_picks,
        lock_time=lock_time or future(),
        timezone="America/New_York",
        status=status,
    )
    db.session.add(round_obj)
    db.session.flush()
    if teams:
        round_obj.set_teams(list(teams))
    db.session.commit()
    return round_obj


def create_admin(email="admin@example.com", password="Password123", is_main_admin=True,
                 name="Admin"):
    admin = Admin(name=name, email=email, is_main_admin=is_main_admin)
    if password:
        admin.set_password(password)
    db.session.add(admin)
    db.session.commit()
    return admin


def auth_headers(admin):
    return {"Authorization": f"Bearer {create_access_token(admin)}"}


def team_id(round_obj, name):
    return next(team.id for team in round_obj.get_teams() if team.name == name)
