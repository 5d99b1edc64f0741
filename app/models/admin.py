import hashlib
import secrets
from datetime import datetime, timedelta, timezone

from flask_login import UserMixin
from werkzeug.security import check_password_hash, generate_password_hash

from app import db
from app.utils.timezone_utils import ensure_utc


class Admin(UserMixin, db.Model):
    __tablename__ = "admins"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    email = db.Column(db.String(120), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=True)

    # The main admin can manage other admins and hard-delete seasons
    is_main_admin = db.Column(db.Boolean, default=False, nullable=False)

    # One-time login link
    login_token_hash = db.Column(db.String(64), unique=True, nullable=True)
    login_token_expiry = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    last_login = db.Column(db.DateTime)

    def __repr__(self):
        return f"<Admin {self.email}>"

    def set_password(self, password):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        if not self.password_hash:
            return False
        return check_password_hash(self.password_hash, password)

    def generate_login_token(self, expiry_minutes=10):
        """Create a one-time login token, storing only its hash"""
        token = secrets.token_hex(32)
        self.login_token_hash = hashlib.sha256(token.encode()).hexdigest()
        self.login_token_expiry = datetime.now(timezone.utc) + timedelta(
            minutes=expiry_minutes
        )
        return token

    def clear_login_token(self):
        self.login_token_hash = None
        self.login_token_expiry = None

    @staticmethod
    def verify_login_token(token):
        """Return the admin owning an unexpired login token, or None"""
        if not token:
            return None
        token_hash = hashlib.sha256(token.encode()).hexdigest()
        admin = Admin.query.filter_by(login_token_hash=token_hash).first()
        if not admin or not admin.login_token_expiry:
            return None
        if ensure_utc(admin.login_token_expiry) < datetime.now(timezone.utc):
            return None
        return admin

    def record_login(self):
        self.last_login = datetime.now(timezone.utc)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "is_main_admin": self.is_main_admin,
            "has_password": self.password_hash is not None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "last_login": self.last_login.isoformat() if self.last_login else None,
        }
