from datetime import datetime, timezone

from app import db


class Pick(db.Model):
    """A participant's submission for a round. One per (user, round)."""

    __tablename__ = "picks"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    round_id = db.Column(db.Integer, db.ForeignKey("rounds.id"), nullable=False)

    # Admin override tracking
    admin_edited = db.Column(db.Boolean, default=False, nullable=False)
    original_pick = db.Column(db.JSON, nullable=True)
    edited_by_admin_id = db.Column(
        db.Integer, db.ForeignKey("admins.id"), nullable=True
    )
    edited_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    items = db.relationship(
        "PickItem",
        backref="pick",
        lazy="dynamic",
        cascade="all, delete-orphan",
        order_by="PickItem.pick_number",
    )
    edited_by = db.relationship("Admin")

    __table_args__ = (
        db.UniqueConstraint("user_id", "round_id", name="unique_user_round_pick"),
        db.Index("idx_pick_round", "round_id"),
        db.Index("idx_pick_user", "user_id"),
    )

    def __repr__(self):
        return f"<Pick user_id={self.user_id} round_id={self.round_id}>"

    @staticmethod
    def get_for(user_id, round_id):
        return Pick.query.filter_by(user_id=user_id, round_id=round_id).first()

    def get_team_names(self):
        return [item.team.name for item in self.items if item.team]

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "round_id": self.round_id,
            "picks": self.get_team_names(),
            "items": [item.to_dict() for item in self.items],
            "admin_edited": self.admin_edited,
            "original_pick": self.original_pick,
            "edited_by_admin_id": self.edited_by_admin_id,
            "edited_at": self.edited_at.isoformat() if self.edited_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


class PickItem(db.Model):
    __tablename__ = "pick_items"

    id = db.Column(db.Integer, primary_key=True)
    pick_id = db.Column(db.Integer, db.ForeignKey("picks.id"), nullable=False)
    pick_number = db.Column(db.Integer, nullable=False)
    team_id = db.Column(db.Integer, db.ForeignKey("teams.id"), nullable=False)

    team = db.relationship("Team")

    __table_args__ = (
        db.UniqueConstraint("pick_id", "pick_number", name="unique_pick_number"),
        db.Index("idx_pick_item_team", "team_id"),
    )

    def to_dict(self):
        return {
            "pick_number": self.pick_number,
            "team_id": self.team_id,
            "team": self.team.name if self.team else None,
        }
