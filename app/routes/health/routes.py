import logging

from flask import jsonify
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from app import db
from app.routes.health import bp

logger = logging.getLogger(__name__)


@bp.route("/healthz")
def healthz():
    try:
        db.session.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Health check failed: {e}")
        return jsonify({"status": "unhealthy", "database": "unreachable"}), 503
    return jsonify({"status": "healthy", "database": "ok"})
