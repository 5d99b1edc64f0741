"""
Background scheduler for Go Make Your Picks

Uses APScheduler to lock rounds once their lock time passes, send pick
reminders and lock notices, and clear stale admin login tokens.
"""

import atexit
import logging
from datetime import datetime, timezone

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy.exc import SQLAlchemyError

from app import db
from app.models import Admin

logger = logging.getLogger(__name__)


class SchedulerService:
    """Manages background jobs"""

    def __init__(self, app=None):
        self.scheduler = None
        self.app = app
        self.is_running = False
        self.job_stats = {
            "last_run": None,
            "total_runs": 0,
            "failed_runs": 0,
            "rounds_locked": 0,
            "reminders_sent": 0,
            "last_error": None,
        }

        if app:
            self.init_app(app)

    def init_app(self, app):
        """Initialize scheduler with Flask app"""
        self.app = app
        self.scheduler = BackgroundScheduler(daemon=True, timezone="UTC")

        atexit.register(self.shutdown)

        if app.config.get("SCHEDULER_ENABLED", True):
            self.start()

    def start(self):
        """Start the background scheduler"""
        if self.is_running:
            return

        self.scheduler.remove_all_jobs()
        self._add_core_jobs()
        self.scheduler.start()
        self.is_running = True

        logger.info("Scheduler started successfully")

    def stop(self):
        """Stop the background scheduler"""
        if not self.is_running:
            return

        self.scheduler.shutdown(wait=False)
        self.is_running = False
        logger.info("Scheduler stopped")

    def shutdown(self):
        """Graceful shutdown"""
        self.stop()

    def _add_core_jobs(self):
        self.scheduler.add_job(
            func=self._lock_expired_rounds,
            trigger=IntervalTrigger(seconds=self.app.config.get("ROUND_LOCK_INTERVAL_SECONDS", 60)),
            id="lock_expired_rounds",
            name="Lock Rounds Past Lock Time",
            max_instances=1,
            coalesce=True,
            misfire_grace_time=30,
        )

        self.scheduler.add_job(
            func=self._send_reminders,
            trigger=IntervalTrigger(seconds=self.app.config.get("REMINDER_INTERVAL_SECONDS", 300)),
            id="send_reminders",
            name="Pick Reminders And Lock Notices",
            max_instances=1,
            coalesce=True,
            misfire_grace_time=60,
        )

        self.scheduler.add_job(
            func=self._daily_maintenance,
            trigger=CronTrigger(hour=3, minute=0),
            id="daily_maintenance",
            name="Daily Maintenance",
            max_instances=1,
            coalesce=True,
            misfire_grace_time=3600,
        )

        logger.info("Core scheduled jobs added")

    def _lock_expired_rounds(self):
        from app.services.round_service import round_service

        with self.app.app_context():
            try:
                locked = round_service.lock_expired_rounds()
                self._update_stats(True, len(locked))
            except SQLAlchemyError as e:
                db.session.rollback()
                self._update_stats(False)
                self.job_stats["last_error"] = str(e)
                logger.error(f"Error locking expired rounds: {e}", exc_info=True)

    def _send_reminders(self):
        from app.services.reminder_service import reminder_service

        with self.app.app_context():
            try:
                result = reminder_service.check_and_send()
                self.job_stats["reminders_sent"] += len(result["reminders"])
                self._update_stats(True)
            except SQLAlchemyError as e:
                db.session.rollback()
                self._update_stats(False)
                self.job_stats["last_error"] = str(e)
                logger.error(f"Error sending reminders: {e}", exc_info=True)

    def _daily_maintenance(self):
        """Clear admin login tokens that expired without being used"""
        with self.app.app_context():
            try:
                cleared = Admin.query.filter(
                    Admin.login_token_expiry.isnot(None),
                    Admin.login_token_expiry < datetime.now(timezone.utc),
                ).update(
                    {"login_token_hash": None, "login_token_expiry": None},
                    synchronize_session=False,
                )
                db.session.commit()
                if cleared:
                    logger.info(f"Cleared {cleared} expired admin login tokens")
                self._update_stats(True)
            except SQLAlchemyError as e:
                db.session.rollback()
                self._update_stats(False)
                self.job_stats["last_error"] = str(e)
                logger.error(f"Error in daily maintenance: {e}", exc_info=True)

    def _update_stats(self, success, rounds_locked=0):
        self.job_stats["last_run"] = datetime.now(timezone.utc)
        self.job_stats["total_runs"] += 1

        if success:
            self.job_stats["rounds_locked"] += rounds_locked
            self.job_stats["last_error"] = None
        else:
            self.job_stats["failed_runs"] += 1

    def get_status(self):
        """Get scheduler status information"""
        jobs = []
        if self.scheduler:
            for job in self.scheduler.get_jobs():
                next_run = job.next_run_time
                jobs.append(
                    {
                        "id": job.id,
                        "name": job.name,
                        "next_run": next_run.isoformat() if next_run else None,
                        "trigger": str(job.trigger),
                    }
                )

        stats = dict(self.job_stats)
        if stats["last_run"]:
            stats["last_run"] = stats["last_run"].isoformat()
        return {"is_running": self.is_running, "jobs": jobs, "stats": stats}


# Global scheduler instance
scheduler_service = SchedulerService()
