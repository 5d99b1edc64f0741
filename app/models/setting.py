from datetime import datetime, timezone

from app import db


class TextSetting(db.Model):
    __tablename__ = "text_settings"

    id = db.Column(db.Integer, primary_key=True)
    key = db.Column(db.String(100), unique=True, nullable=False)
    value = db.Column(db.Text, nullable=True)
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    def __repr__(self):
        return f"<TextSetting {self.key}>"


class NumericSetting(db.Model):
    __tablename__ = "numeric_settings"

    id = db.Column(db.Integer, primary_key=True)
    key = db.Column(db.String(100), unique=True, nullable=False)
    value = db.Column(db.Integer, nullable=False)
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    def __repr__(self):
        return f"<NumericSetting {self.key}={self.value}>"


def upsert_setting(model, key, value):
    """Insert or update a single setting row"""
    setting = model.query.filter_by(key=key).first()
    if setting is None:
        setting = model(key=key, value=value)
        db.session.add(setting)
    else:
        setting.value = value
    return setting
