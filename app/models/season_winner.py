"""Season Winner Model - Frozen final standings of an ended season"""

from datetime import datetime, timezone

from app import db


class SeasonWinner(db.Model):
    """Top finishers captured when a season ends"""

    __tablename__ = "season_winners"

    id = db.Column(db.Integer, primary_key=True)
    season_id = db.Column(db.Integer, db.ForeignKey("seasons.id"), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)

    # Tied participants share a place
    place = db.Column(db.Integer, nullable=False)
    total_points = db.Column(db.Integer, nullable=False, default=0)

    # Points per finishing place in effect when the season ended
    point_values = db.Column(db.JSON, nullable=False)

    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    user = db.relationship("User", backref="season_wins")

    __table_args__ = (
        db.UniqueConstraint("season_id", "user_id", name="unique_season_winner"),
        db.Index("idx_winner_season", "season_id"),
        db.Index("idx_winner_user", "user_id"),
    )

    def __repr__(self):
        return f"<SeasonWinner season={self.season_id} place={self.place}: User {self.user_id}>"

    def get_point_values(self):
        """Captured values keyed by integer place (JSON keys are strings)"""
        return {int(place): points for place, points in (self.point_values or {}).items()}

    @staticmethod
    def get_for_season(season_id):
        return (
            SeasonWinner.query.filter_by(season_id=season_id)
            .order_by(SeasonWinner.place, SeasonWinner.id)
            .all()
        )

    def to_dict(self):
        return {
            "season_id": self.season_id,
            "user_id": self.user_id,
            "user_name": self.user.name if self.user else None,
            "place": self.place,
            "total_points": self.total_points,
            "point_values": self.get_point_values(),
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
