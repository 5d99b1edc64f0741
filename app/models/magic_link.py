from datetime import datetime, timezone

from app import db
from app.utils.timezone_utils import ensure_utc
from app.utils.tokens import generate_token, hash_token, tokens_match


class MagicLink(db.Model):
    """
    Credential letting a participant pick for one round without an account.

    A link is bound either to one participant (user_id) or, in shared-email
    mode, to an email address whose participants choose who they are picking
    for. Only the SHA-256 of the token is stored.
    """

    __tablename__ = "magic_links"

    id = db.Column(db.Integer, primary_key=True)
    round_id = db.Column(db.Integer, db.ForeignKey("rounds.id"), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    email = db.Column(db.String(120), nullable=True)

    token_hash = db.Column(db.String(64), unique=True, nullable=False, index=True)
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False)

    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    last_used_at = db.Column(db.DateTime(timezone=True), nullable=True)

    user = db.relationship("User")

    __table_args__ = (
        db.Index("idx_magic_link_round_user", "round_id", "user_id"),
        db.Index("idx_magic_link_round_email", "round_id", "email"),
    )

    def __repr__(self):
        target = f"user {self.user_id}" if self.user_id else self.email
        return f"<MagicLink round={self.round_id} for {target}>"

    @property
    def is_shared_email(self):
        return self.user_id is None

    def is_expired(self, now=None):
        now = now or datetime.now(timezone.utc)
        return ensure_utc(self.expires_at) <= now

    @staticmethod
    def issue(round_obj, user=None, email=None, replace=True):
        """
        Create a link for a round. With replace, any earlier link for the same
        target stops working; reminders keep them so older emails still work.
        Returns (link, raw_token); the raw token is never stored.
        """
        if replace:
            query = MagicLink.query.filter_by(round_id=round_obj.id)
            if user is not None:
                query = query.filter_by(user_id=user.id)
            else:
                query = query.filter(
                    MagicLink.user_id.is_(None),
                    db.func.lower(MagicLink.email) == email.lower(),
                )
            query.delete(synchronize_session=False)

        token = generate_token()
        link = MagicLink(
            round_id=round_obj.id,
            user_id=user.id if user is not None else None,
            email=None if user is not None else email.lower(),
            token_hash=hash_token(token),
            expires_at=ensure_utc(round_obj.lock_time),
        )
        db.session.add(link)
        return link, token

    @staticmethod
    def find_by_token(token):
        """Return the link for a raw token, or None. Expiry is not checked."""
        if not token or len(token) > 128:
            return None
        token_hash = hash_token(token)
        link = MagicLink.query.filter_by(token_hash=token_hash).first()
        if link is None or not tokens_match(link.token_hash, token_hash):
            return None
        return link

    def mark_used(self):
        self.last_used_at = datetime.now(timezone.utc)
