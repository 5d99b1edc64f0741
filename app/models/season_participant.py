from datetime import datetime, timezone

from app import db


class SeasonParticipant(db.Model):
    __tablename__ = "season_participants"

    id = db.Column(db.Integer, primary_key=True)
    season_id = db.Column(db.Integer, db.ForeignKey("seasons.id"), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)

    joined_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        db.UniqueConstraint("season_id", "user_id", name="unique_season_participant"),
        db.Index("idx_participant_season", "season_id"),
        db.Index("idx_participant_user", "user_id"),
    )

    def __repr__(self):
        return f"<SeasonParticipant season={self.season_id} user={self.user_id}>"

    @staticmethod
    def add(season_id, user_id):
        """Add a participant, ignoring existing memberships"""
        existing = SeasonParticipant.query.filter_by(
            season_id=season_id, user_id=user_id
        ).first()
        if existing:
            return existing, False
        membership = SeasonParticipant(season_id=season_id, user_id=user_id)
        db.session.add(membership)
        return membership, True

    def to_dict(self):
        return {
            "season_id": self.season_id,
            "user_id": self.user_id,
            "name": self.user.name if self.user else None,
            "email": self.user.email if self.user else None,
            "is_active": self.user.is_active if self.user else None,
            "joined_at": self.joined_at.isoformat() if self.joined_at else None,
        }
