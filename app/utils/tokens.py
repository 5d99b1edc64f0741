"""
Token helpers: participant magic links and admin bearer tokens
"""

import hashlib
import hmac
import logging
import secrets
from datetime import datetime, timedelta, timezone

import jwt
from flask import current_app

logger = logging.getLogger(__name__)


def generate_token():
    """64 hex characters of randomness for a magic link"""
    return secrets.token_hex(32)


def hash_token(token):
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def tokens_match(stored_hash, candidate_hash):
    """Constant-time comparison of two token hashes"""
    return hmac.compare_digest(stored_hash.encode("utf-8"), candidate_hash.encode("utf-8"))


def create_access_token(admin):
    """Sign a bearer token for an admin"""
    now = datetime.now(timezone.utc)
    payload = {
        "adminId": admin.id,
        "email": admin.email,
        "isMainAdmin": bool(admin.is_main_admin),
        "iat": now,
        "exp": now + timedelta(hours=current_app.config["JWT_EXPIRATION_HOURS"]),
    }
    return jwt.encode(
        payload,
        current_app.config["JWT_SECRET_KEY"],
        algorithm=current_app.config["JWT_ALGORITHM"],
    )


def decode_access_token(token):
    """Return the token payload, or None when it is invalid or expired"""
    try:
        return jwt.decode(
            token,
            current_app.config["JWT_SECRET_KEY"],
            algorithms=[current_app.config["JWT_ALGORITHM"]],
        )
    except jwt.ExpiredSignatureError:
        logger.debug("Rejected expired admin token")
        return None
    except jwt.PyJWTError as e:
        logger.debug(f"Rejected invalid admin token: {e}")
        return None
