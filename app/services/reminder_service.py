"""
Pick reminders and lock notices

Participants without a pick for an open round are emailed a fresh magic
link. The reminder_type text setting decides when:

- "daily": once per local day, after daily_reminder_time in
  reminder_timezone, skipping the day the round was created
- "before_lock": once at reminder_first_hours and once at
  reminder_final_hours before the lock, each within REMINDER_WINDOW
- "none": never

Every batch is written to reminder_log, which is what keeps a reminder from
going out twice. Rounds that locked within the last hour get a one-time
notice to all their participants.
"""

import logging
from datetime import datetime, timedelta, timezone

from app import db
from app.models import MagicLink, Pick, ReminderLog, Round, Season, SeasonParticipant, User
from app.services.settings_service import settings_service
from app.utils.db_utils import transaction
from app.utils.email_service import EmailService
from app.utils.errors import PreconditionError
from app.utils.timezone_utils import ensure_utc, local_clock_time

logger = logging.getLogger(__name__)

REMINDER_WINDOW = timedelta(minutes=15)
LOCKED_NOTICE_WINDOW = timedelta(hours=1)


def reminder_text(kind, round_obj, hours=None):
    if kind == "first":
        return f"Reminder: you have about {hours} hours left to make your pick!"
    if kind == "final":
        return f"Final reminder: you only have about {hours} hours left to make your pick!"
    if kind == "daily":
        return f"Daily reminder: don't forget to make your pick for {round_obj.sport_name}!"
    return f"Don't forget to make your pick for {round_obj.sport_name}!"


def group_by_email(users):
    """email -> participants sharing it, in name order"""
    by_email = {}
    for user in users:
        by_email.setdefault(user.email.lower(), []).append(user)
    return by_email


def running_season_filters():
    return (
        Season.is_active.is_(True),
        Season.deleted_at.is_(None),
        Season.ended_at.is_(None),
    )


class ReminderService:
    def get_open_rounds(self, now):
        return (
            Round.query.join(Season, Season.id == Round.season_id)
            .filter(
                Round.status == "active",
                Round.lock_time > now,
                Round.deleted_at.is_(None),
                *running_season_filters(),
            )
            .order_by(Round.lock_time, Round.id)
            .all()
        )

    def get_recently_locked_rounds(self, now):
        return (
            Round.query.join(Season, Season.id == Round.season_id)
            .filter(
                Round.status == "locked",
                Round.lock_time <= now,
                Round.lock_time >= now - LOCKED_NOTICE_WINDOW,
                Round.deleted_at.is_(None),
                *running_season_filters(),
            )
            .all()
        )

    def get_participants(self, round_obj, without_pick=False):
        query = User.query.join(SeasonParticipant, SeasonParticipant.user_id == User.id).filter(
            SeasonParticipant.season_id == round_obj.season_id,
            User.is_active.is_(True),
        )
        if without_pick:
            picked = db.select(Pick.user_id).where(Pick.round_id == round_obj.id)
            query = query.filter(User.id.notin_(picked))
        return query.order_by(User.name).all()

    def daily_reminder_due(self, round_obj, now, settings):
        tz_name = settings["reminder_timezone"]
        if now < local_clock_time(now, tz_name, settings["daily_reminder_time"]):
            return False

        day_start = local_clock_time(now, tz_name, "00:00:00")
        if round_obj.created_at and ensure_utc(round_obj.created_at) >= day_start:
            return False
        sent = ReminderLog.sent_times(round_obj.id, "daily")
        return not any(ensure_utc(sent_at) >= day_start for sent_at in sent)

    def before_lock_reminders_due(self, round_obj, now, settings):
        """[(kind, hours)] whose window contains the time left until lock"""
        time_left = ensure_utc(round_obj.lock_time) - now
        due = []
        for kind, hours in (
            ("first", settings["reminder_first_hours"]),
            ("final", settings["reminder_final_hours"]),
        ):
            if abs(time_left - timedelta(hours=hours)) > REMINDER_WINDOW:
                continue
            if ReminderLog.sent_times(round_obj.id, kind):
                continue
            due.append((kind, hours))
        return due

    def send_round_reminder(self, round_obj, kind, hours=None):
        """
        Email a new magic link to every active participant of the round
        without a pick. Participants sharing an address get one shared link.

        Returns:
            int: number of participants reminded
        """
        missing = self.get_participants(round_obj, without_pick=True)
        if not missing:
            logger.debug(f"Everyone has picked for round {round_obj.id}, no {kind} reminder")
            return 0

        invitations = []
        with transaction():
            for email, users in group_by_email(missing).items():
                if len(users) == 1:
                    _, token = MagicLink.issue(round_obj, user=users[0], replace=False)
                else:
                    _, token = MagicLink.issue(round_obj, email=email, replace=False)
                invitations.append((email, [u.name for u in users], token))
            db.session.add(
                ReminderLog(round_id=round_obj.id, reminder_type=kind, recipient_count=len(missing))
            )

        text = reminder_text(kind, round_obj, hours)
        email_service = EmailService()
        sent = sum(
            1 for email, names, token in invitations
            if email_service.send_reminder_email(email, names, round_obj, token, text)
        )
        logger.info(
            f"Sent {kind} reminder for round {round_obj.id}: "
            f"{sent}/{len(invitations)} emails for {len(missing)} participants"
        )
        return len(missing)

    def send_manual_reminder(self, round_obj):
        if not round_obj.is_accepting_picks():
            raise PreconditionError("Reminders can only be sent for rounds open for picks")
        return self.send_round_reminder(round_obj, "manual")

    def send_locked_notice(self, round_obj):
        """Tell every participant a round has locked, once per round"""
        if ReminderLog.sent_times(round_obj.id, "locked"):
            return 0
        participants = self.get_participants(round_obj)
        if not participants:
            return 0

        with transaction():
            db.session.add(
                ReminderLog(
                    round_id=round_obj.id, reminder_type="locked", recipient_count=len(participants)
                )
            )

        email_service = EmailService()
        for email, users in group_by_email(participants).items():
            email_service.send_locked_notification_email(email, [u.name for u in users], round_obj)
        logger.info(f"Sent locked notice for round {round_obj.id} to {len(participants)} participants")
        return len(participants)

    def check_and_send(self, now=None, settings=None):
        """
        One scheduler pass over open and recently locked rounds.

        Args:
            now: aware UTC datetime, defaults to the current time
            settings: reminder settings, defaults to the stored ones

        Returns:
            dict with the (round id, kind) reminders sent and the ids of
            rounds that got a locked notice
        """
        now = now or datetime.now(timezone.utc)
        settings = settings or settings_service.get_reminder_settings()
        reminder_type = settings["reminder_type"]
        reminders = []

        if reminder_type != "none":
            for round_obj in self.get_open_rounds(now):
                if reminder_type == "daily":
                    due = [("daily", None)] if self.daily_reminder_due(round_obj, now, settings) else []
                else:
                    due = self.before_lock_reminders_due(round_obj, now, settings)
                for kind, hours in due:
                    if self.send_round_reminder(round_obj, kind, hours):
                        reminders.append((round_obj.id, kind))

        locked = [
            round_obj.id
            for round_obj in self.get_recently_locked_rounds(now)
            if self.send_locked_notice(round_obj)
        ]
        return {"reminders": reminders, "locked": locked}


reminder_service = ReminderService()
