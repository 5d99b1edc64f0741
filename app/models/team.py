from datetime import datetime, timezone

from app import db


class Team(db.Model):
    """A selectable option. Write-in picks create their own rows on demand."""

    __tablename__ = "teams"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False, index=True)
    # Free-text answers are never shared with official options
    is_write_in = db.Column(db.Boolean, default=False, nullable=False)

    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    def __repr__(self):
        return f"<Team {self.name}>"

    @staticmethod
    def get_or_create(name):
        """Return an official team with this name (ignoring case), creating one if needed"""
        team = (
            Team.query.filter(
                db.func.lower(Team.name) == name.lower(), Team.is_write_in.is_(False)
            )
            .order_by(Team.id)
            .first()
        )
        if team is None:
            team = Team(name=name)
            db.session.add(team)
            db.session.flush()
        return team

    @staticmethod
    def create_write_in(name):
        team = Team(name=name, is_write_in=True)
        db.session.add(team)
        db.session.flush()
        return team

    def to_dict(self):
        return {"id": self.id, "name": self.name}
