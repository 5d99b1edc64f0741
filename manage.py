#!/usr/bin/env python3
"""
Go Make Your Picks Management CLI

Command-line administration for the picks pool. Database migrations are
available under the ``db`` group provided by Flask-Migrate.
"""

import logging

import click
from flask.cli import FlaskGroup, with_appcontext
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from app import create_app, db
from app.models import Admin, NumericSetting, Season, TextSetting
from app.services.leaderboard_service import invalidate_leaderboards, leaderboard_service
from app.services.reminder_service import reminder_service
from app.services.round_service import get_round_or_404, round_service
from app.services.season_service import get_season_or_404, season_service
from app.services.settings_service import (
    DEFAULT_POINTS,
    DEFAULT_REMINDER_HOURS,
    DEFAULT_TEXT_SETTINGS,
    points_key,
    settings_service,
)
from app.services.scoring_service import scoring_engine
from app.utils.db_utils import transaction
from app.utils.errors import PickemError


@click.group(cls=FlaskGroup, create_app=create_app)
def cli():
    """Go Make Your Picks Management CLI"""
    pass


@cli.command("init-db")
@with_appcontext
def init_db():
    """Create database tables"""
    try:
        db.create_all()
        click.echo("✅ Database tables created successfully!")
    except SQLAlchemyError as e:
        click.echo(f"❌ Error initializing database: {str(e)}")
        logging.error(f"Database initialization failed: {e}")


@cli.command("create-admin")
@click.argument("name")
@click.argument("email")
@click.option("--password", help="Password; omit to sign in with login links only")
@click.option("--main", "is_main_admin", is_flag=True, help="Make this the main admin")
@with_appcontext
def create_admin(name, email, password, is_main_admin):
    """Create an admin account"""
    email = email.strip().lower()
    if Admin.query.filter_by(email=email).first():
        click.echo(f"❌ Admin with email '{email}' already exists!")
        return

    try:
        admin = Admin(name=name, email=email, is_main_admin=is_main_admin)
        if password:
            admin.set_password(password)
        db.session.add(admin)
        db.session.commit()
        role = "main admin" if is_main_admin else "admin"
        click.echo(f"✅ Created {role} '{name}' ({email})")
    except IntegrityError as e:
        db.session.rollback()
        click.echo(f"❌ Admin with email '{email}' already exists!")
        logging.error(f"Admin creation failed - integrity error: {e}")
    except SQLAlchemyError as e:
        db.session.rollback()
        click.echo(f"❌ Database error creating admin: {str(e)}")
        logging.error(f"Admin creation failed - SQL error: {e}")


@cli.command("seed-settings")
@click.option("--overwrite", is_flag=True, help="Reset existing values to the defaults")
@with_appcontext
def seed_settings(overwrite):
    """Store the default point values and text settings"""
    created = 0
    try:
        with transaction():
            numeric = {points_key(place): points for place, points in DEFAULT_POINTS.items()}
            numeric.update(DEFAULT_REMINDER_HOURS)
            for key, value in numeric.items():
                row = NumericSetting.query.filter_by(key=key).first()
                if row is None:
                    db.session.add(NumericSetting(key=key, value=value))
                    created += 1
                elif overwrite:
                    row.value = value
            for key, value in DEFAULT_TEXT_SETTINGS.items():
                row = TextSetting.query.filter_by(key=key).first()
                if row is None:
                    db.session.add(TextSetting(key=key, value=value))
                    created += 1
                elif overwrite:
                    row.value = value
        settings_service.clear_cache()
        click.echo(f"✅ Settings seeded ({created} new values)")
    except SQLAlchemyError as e:
        click.echo(f"❌ Database error seeding settings: {str(e)}")
        logging.error(f"Settings seed failed - SQL error: {e}")


@cli.command("score-round")
@click.argument("round_id", type=int)
@with_appcontext
def score_round(round_id):
    """Re-run scoring for a completed round"""
    try:
        round_obj = get_round_or_404(round_id)
        if round_obj.status != "completed":
            click.echo(f"❌ Round {round_id} is {round_obj.status}, not completed")
            return
        with transaction():
            scores = scoring_engine.score_round(round_obj)
        invalidate_leaderboards()
        click.echo(f"✅ Scored round {round_id} ({round_obj.sport_name}) for {len(scores)} participants")
    except PickemError as e:
        click.echo(f"❌ {e.message}")
    except SQLAlchemyError as e:
        click.echo(f"❌ Database error scoring round: {str(e)}")
        logging.error(f"Scoring round {round_id} failed - SQL error: {e}")


@cli.command("lock-rounds")
@with_appcontext
def lock_rounds():
    """Lock every active round whose lock time has passed"""
    rounds = round_service.lock_expired_rounds()
    if not rounds:
        click.echo("No rounds to lock.")
        return
    for round_obj in rounds:
        click.echo(f"🔒 Locked round {round_obj.id}: {round_obj.sport_name}")


@cli.command("send-reminders")
@with_appcontext
def send_reminders():
    """Run one reminder pass, as the scheduler does"""
    result = reminder_service.check_and_send()
    for round_id, kind in result["reminders"]:
        click.echo(f"📧 Sent {kind} reminder for round {round_id}")
    for round_id in result["locked"]:
        click.echo(f"🔒 Sent locked notice for round {round_id}")
    if not result["reminders"] and not result["locked"]:
        click.echo("No reminders due.")


@cli.command("end-season")
@click.argument("season_id", type=int)
@with_appcontext
def end_season(season_id):
    """End a season and record its winners"""
    try:
        winners = season_service.end_season(season_id)
    except PickemError as e:
        click.echo(f"❌ {e.message}")
        return

    click.echo(f"🏆 Season {season_id} ended")
    for winner in winners:
        click.echo(f"  #{winner.place} {winner.user.name} - {winner.total_points} pts")


@cli.command("reopen-season")
@click.argument("season_id", type=int)
@with_appcontext
def reopen_season(season_id):
    """Reopen an ended season, discarding its recorded winners"""
    if not click.confirm(f"Reopen season {season_id} and delete its winners?"):
        click.echo("Cancelled.")
        return
    try:
        season = season_service.reopen_season(season_id)
        click.echo(f"✅ Season '{season.name}' reopened")
    except PickemError as e:
        click.echo(f"❌ {e.message}")


@cli.command("show-leaderboard")
@click.argument("season_id", type=int, required=False)
@with_appcontext
def show_leaderboard(season_id):
    """Print a season's standings (default season when omitted)"""
    try:
        season = get_season_or_404(season_id) if season_id else Season.get_default_season()
    except PickemError as e:
        click.echo(f"❌ {e.message}")
        return
    if season is None:
        click.echo("No default season found.")
        return

    entries = leaderboard_service.compute_standings(season)
    click.echo(f"{season.name} ({season.year_start}-{season.year_end})")
    if not entries:
        click.echo("  No participants yet.")
        return
    for entry in entries:
        click.echo(f"  {entry['rank']:>3}. {entry['user_name']:<30} {entry['total_points']:>5}")


@cli.command("list-seasons")
@with_appcontext
def list_seasons():
    """List all seasons"""
    seasons = Season.query.order_by(Season.year_start.desc(), Season.name).all()
    if not seasons:
        click.echo("No seasons found.")
        return

    click.echo("Seasons:")
    for s in seasons:
        if s.is_deleted:
            status = "🗑  Deleted"
        elif s.is_ended:
            status = "🏁 Ended"
        elif s.is_active:
            status = "🟢 Active"
        else:
            status = "⚪ Inactive"
        default = " (default)" if s.is_default else ""
        click.echo(f"  [{s.id}] {s.name}{default}: {status}")


if __name__ == "__main__":
    cli()
