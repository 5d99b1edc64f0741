from app import db


class ScoreDetail(db.Model):
    """
    How many of a participant's picks matched each finishing place in a
    round. Place 0 records a missing or unmatched pick.
    """

    __tablename__ = "score_details"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    round_id = db.Column(db.Integer, db.ForeignKey("rounds.id"), nullable=False)
    place = db.Column(db.Integer, nullable=False)
    count = db.Column(db.Integer, nullable=False, default=1)

    user = db.relationship("User")
    round = db.relationship("Round")

    __table_args__ = (
        db.UniqueConstraint("user_id", "round_id", "place", name="unique_user_round_place"),
        db.CheckConstraint("place >= 0 AND place <= 10", name="check_score_place"),
        db.CheckConstraint("count >= 0 AND count <= 2", name="check_score_count"),
        db.Index("idx_score_round", "round_id"),
        db.Index("idx_score_user", "user_id"),
    )

    def __repr__(self):
        return f"<ScoreDetail user={self.user_id} round={self.round_id} place={self.place} x{self.count}>"

    def to_dict(self):
        return {
            "user_id": self.user_id,
            "round_id": self.round_id,
            "place": self.place,
            "count": self.count,
        }
