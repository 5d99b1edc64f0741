from datetime import datetime, timezone

from app import db
from app.utils.timezone_utils import ensure_utc

ROUND_STATUSES = ("draft", "active", "locked", "completed")
PICK_TYPES = ("single", "multiple")
MAX_PLACE = 10


class Round(db.Model):
    """One event within a season (a sport, race, tournament...)"""

    __tablename__ = "rounds"

    id = db.Column(db.Integer, primary_key=True)
    season_id = db.Column(db.Integer, db.ForeignKey("seasons.id"), nullable=False)

    sport_name = db.Column(db.String(100), nullable=False)
    # 'single' picks come from the round's teams, 'multiple' allows write-ins
    pick_type = db.Column(db.String(20), nullable=False, default="single")
    num_write_in_picks = db.Column(db.Integer, nullable=True)
    email_message = db.Column(db.Text, nullable=True)

    lock_time = db.Column(db.DateTime(timezone=True), nullable=False)
    timezone = db.Column(db.String(50), nullable=False, default="America/New_York")
    status = db.Column(db.String(20), nullable=False, default="draft")

    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    round_teams = db.relationship(
        "RoundTeam", backref="round", lazy="dynamic", cascade="all, delete-orphan"
    )
    results = db.relationship(
        "RoundResult",
        backref="round",
        lazy="dynamic",
        cascade="all, delete-orphan",
        order_by="RoundResult.place",
    )
    picks = db.relationship(
        "Pick", backref="round", lazy="dynamic", cascade="all, delete-orphan"
    )
    magic_links = db.relationship(
        "MagicLink", backref="round", lazy="dynamic", cascade="all, delete-orphan"
    )
    reminder_logs = db.relationship(
        "ReminderLog", lazy="dynamic", cascade="all, delete-orphan"
    )

    __table_args__ = (
        db.Index("idx_round_season", "season_id"),
        db.Index("idx_round_status", "status"),
        db.Index("idx_round_lock_time", "lock_time"),
    )

    def __repr__(self):
        return f"<Round {self.sport_name} ({self.status})>"

    @property
    def is_write_in(self):
        return self.pick_type == "multiple"

    @property
    def is_deleted(self):
        return self.deleted_at is not None

    @property
    def max_picks(self):
        if self.is_write_in:
            return self.num_write_in_picks or 1
        return 1

    def lock_time_passed(self, now=None):
        now = now or datetime.now(timezone.utc)
        return ensure_utc(self.lock_time) <= now

    def is_accepting_picks(self, now=None):
        """Participants may submit only while active and before lock time"""
        return self.status == "active" and not self.lock_time_passed(now)

    def get_teams(self):
        """The round's official option set"""
        from app.models.team import Team

        return (
            Team.query.join(RoundTeam, RoundTeam.team_id == Team.id)
            .filter(RoundTeam.round_id == self.id)
            .order_by(Team.name)
            .all()
        )

    def set_teams(self, names):
        """Replace the official option set with teams of the given names"""
        from app.models.team import Team

        self.round_teams.delete()
        seen = set()
        for name in names:
            if name.lower() in seen:
                continue
            seen.add(name.lower())
            team = Team.get_or_create(name)
            db.session.add(RoundTeam(round_id=self.id, team_id=team.id))
        db.session.flush()

    def get_result_map(self):
        """Map of place -> team id for the stored result"""
        return {result.place: result.team_id for result in self.results}

    def to_dict(self, include_teams=False):
        data = {
            "id": self.id,
            "season_id": self.season_id,
            "sport_name": self.sport_name,
            "pick_type": self.pick_type,
            "num_write_in_picks": self.num_write_in_picks,
            "email_message": self.email_message,
            "lock_time": ensure_utc(self.lock_time).isoformat() if self.lock_time else None,
            "timezone": self.timezone,
            "status": self.status,
            "deleted_at": self.deleted_at.isoformat() if self.deleted_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }
        if include_teams:
            data["teams"] = [team.to_dict() for team in self.get_teams()]
            data["results"] = [result.to_dict() for result in self.results]
        return data


class RoundTeam(db.Model):
    __tablename__ = "round_teams"

    id = db.Column(db.Integer, primary_key=True)
    round_id = db.Column(db.Integer, db.ForeignKey("rounds.id"), nullable=False)
    team_id = db.Column(db.Integer, db.ForeignKey("teams.id"), nullable=False)

    team = db.relationship("Team")

    __table_args__ = (
        db.UniqueConstraint("round_id", "team_id", name="unique_round_team"),
        db.Index("idx_round_team_round", "round_id"),
    )


class RoundResult(db.Model):
    __tablename__ = "round_results"

    id = db.Column(db.Integer, primary_key=True)
    round_id = db.Column(db.Integer, db.ForeignKey("rounds.id"), nullable=False)
    place = db.Column(db.Integer, nullable=False)
    team_id = db.Column(db.Integer, db.ForeignKey("teams.id"), nullable=False)

    team = db.relationship("Team")

    __table_args__ = (
        db.UniqueConstraint("round_id", "place", name="unique_round_place"),
        db.CheckConstraint("place >= 1 AND place <= 10", name="check_result_place"),
        db.Index("idx_round_result_round", "round_id"),
    )

    def to_dict(self):
        return {
            "place": self.place,
            "team_id": self.team_id,
            "team": self.team.name if self.team else None,
        }
