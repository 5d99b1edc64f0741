from datetime import datetime, timezone

from app import db


class Season(db.Model):
    __tablename__ = "seasons"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)  # e.g., "2025 Sports Pool"
    year_start = db.Column(db.Integer, nullable=False)
    year_end = db.Column(db.Integer, nullable=False)

    # Status
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    is_default = db.Column(db.Boolean, default=False, nullable=False)
    ended_at = db.Column(db.DateTime(timezone=True), nullable=True)
    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True)

    # Timestamps
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # Relationships
    rounds = db.relationship(
        "Round", backref="season", lazy="dynamic", cascade="all, delete-orphan"
    )
    participants = db.relationship(
        "SeasonParticipant", backref="season", lazy="dynamic", cascade="all, delete-orphan"
    )
    scoring_rules = db.relationship(
        "ScoringRule", backref="season", lazy="dynamic", cascade="all, delete-orphan"
    )
    winners = db.relationship(
        "SeasonWinner", backref="season", lazy="dynamic", cascade="all, delete-orphan"
    )

    __table_args__ = (
        db.Index("idx_season_active", "is_active"),
        db.Index("idx_season_deleted", "deleted_at"),
    )

    def __repr__(self):
        return f"<Season {self.name} ({self.year_start}-{self.year_end})>"

    @property
    def is_ended(self):
        return self.ended_at is not None

    @property
    def is_deleted(self):
        return self.deleted_at is not None

    def mark_ended(self):
        self.ended_at = datetime.now(timezone.utc)

    @staticmethod
    def get_visible(season_id):
        """Get a season that hasn't been soft-deleted"""
        return Season.query.filter(
            Season.id == season_id, Season.deleted_at.is_(None)
        ).first()

    @staticmethod
    def get_default_season():
        """Get the default season, falling back to the newest active one"""
        season = Season.query.filter(
            Season.is_default.is_(True), Season.deleted_at.is_(None)
        ).first()
        if season is None:
            season = (
                Season.query.filter(
                    Season.is_active.is_(True), Season.deleted_at.is_(None)
                )
                .order_by(Season.year_start.desc(), Season.id.desc())
                .first()
            )
        return season

    @staticmethod
    def get_active_seasons():
        return (
            Season.query.filter(
                Season.is_active.is_(True), Season.deleted_at.is_(None)
            )
            .order_by(Season.year_start.desc(), Season.name)
            .all()
        )

    def make_default(self):
        """Make this the default season (clears the flag on all others)"""
        Season.query.filter(Season.id != self.id).update({"is_default": False})
        self.is_default = True

    def get_participant_ids(self):
        return [p.user_id for p in self.participants]

    def has_participant(self, user_id):
        return self.participants.filter_by(user_id=user_id).first() is not None

    def get_live_rounds(self):
        """Rounds that haven't been soft-deleted, in lock-time order"""
        from app.models.round import Round

        return (
            self.rounds.filter(Round.deleted_at.is_(None))
            .order_by(Round.lock_time, Round.id)
            .all()
        )

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "year_start": self.year_start,
            "year_end": self.year_end,
            "is_active": self.is_active,
            "is_default": self.is_default,
            "ended_at": self.ended_at.isoformat() if self.ended_at else None,
            "deleted_at": self.deleted_at.isoformat() if self.deleted_at else None,
            "participant_count": self.participants.count(),
        }
