"""Historical Champion Model - Champions of seasons run before the app"""

from datetime import datetime, timezone

from app import db


class HistoricalChampion(db.Model):
    """A champion entered by hand, shown alongside ended seasons' winners"""

    __tablename__ = "historical_champions"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    end_year = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        db.UniqueConstraint("name", "end_year", name="unique_historical_champion"),
        db.Index("idx_historical_champion_year", "end_year"),
    )

    def __repr__(self):
        return f"<HistoricalChampion {self.name} ({self.end_year})>"

    @staticmethod
    def get_all():
        return HistoricalChampion.query.order_by(
            HistoricalChampion.end_year.desc(), HistoricalChampion.name
        ).all()

    @staticmethod
    def exists(name, end_year, exclude_id=None):
        query = HistoricalChampion.query.filter_by(name=name, end_year=end_year)
        if exclude_id is not None:
            query = query.filter(HistoricalChampion.id != exclude_id)
        return query.first() is not None

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "end_year": self.end_year,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
