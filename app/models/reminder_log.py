from datetime import datetime, timezone

from app import db

REMINDER_KINDS = ("daily", "first", "final", "manual", "locked")


class ReminderLog(db.Model):
    """One batch of reminder or lock notification emails for a round"""

    __tablename__ = "reminder_log"

    id = db.Column(db.Integer, primary_key=True)
    round_id = db.Column(db.Integer, db.ForeignKey("rounds.id"), nullable=False)
    reminder_type = db.Column(db.String(20), nullable=False)
    recipient_count = db.Column(db.Integer, nullable=False, default=0)
    sent_at = db.Column(
        db.DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc)
    )

    __table_args__ = (db.Index("idx_reminder_round_type", "round_id", "reminder_type"),)

    def __repr__(self):
        return f"<ReminderLog round={self.round_id} {self.reminder_type}>"

    @staticmethod
    def sent_times(round_id, reminder_type):
        rows = ReminderLog.query.filter_by(round_id=round_id, reminder_type=reminder_type)
        return [row.sent_at for row in rows]
