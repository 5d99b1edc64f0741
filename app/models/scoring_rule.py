from app import db

MIN_POINTS = -10
MAX_POINTS = 20


class ScoringRule(db.Model):
    """Points awarded for a finishing place within one season"""

    __tablename__ = "scoring_rules"

    id = db.Column(db.Integer, primary_key=True)
    season_id = db.Column(db.Integer, db.ForeignKey("seasons.id"), nullable=False)
    place = db.Column(db.Integer, nullable=False)
    points = db.Column(db.Integer, nullable=False)

    __table_args__ = (
        db.UniqueConstraint("season_id", "place", name="unique_season_rule_place"),
        db.CheckConstraint("place >= 0 AND place <= 10", name="check_rule_place"),
        db.CheckConstraint("points >= -10 AND points <= 20", name="check_rule_points"),
    )

    def __repr__(self):
        return f"<ScoringRule season={self.season_id} place={self.place} points={self.points}>"

    @staticmethod
    def get_points_map(season_id):
        rules = ScoringRule.query.filter_by(season_id=season_id).all()
        return {rule.place: rule.points for rule in rules}

    @staticmethod
    def replace_for_season(season_id, points_by_place):
        """Replace every rule of a season with the given place -> points map"""
        ScoringRule.query.filter_by(season_id=season_id).delete()
        for place, points in sorted(points_by_place.items()):
            db.session.add(ScoringRule(season_id=season_id, place=place, points=points))
        db.session.flush()
