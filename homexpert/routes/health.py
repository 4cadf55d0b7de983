import logging

from flask import Blueprint, jsonify
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from homexpert.extensions import db
from homexpert.utils.dates import isoformat, utcnow

health_bp = Blueprint("health", __name__, url_prefix="/api")
logger = logging.getLogger(__name__)


@health_bp.route("/health", methods=["GET"])
def health():
    """Liveness plus a database round trip."""
    try:
        db.session.execute(text("SELECT 1"))
        database = "ok"
    except SQLAlchemyError as exc:
        logger.error(f"Health check database failure: {exc}")
        database = "unavailable"

    healthy = database == "ok"
    return jsonify({
        "success": healthy,
        "status": "healthy" if healthy else "degraded",
        "database": database,
        "timestamp": isoformat(utcnow()),
    }), 200 if healthy else 503
