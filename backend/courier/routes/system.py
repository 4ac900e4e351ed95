# backend/courier/routes/system.py
"""
System health and version endpoints.
"""

import sys
import time
from flask import Blueprint, current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Item, User, UserSession, ROLE_ADMINISTRATOR
from courier.time_utils import utcnow

system_bp = Blueprint("system", __name__, url_prefix="/api")


def check_database_health() -> dict:
    """
    Check database connectivity and that the administrator account exists.
    """
    start_time = time.time()
    try:
        user_count = db.session.query(User).count()
        item_count = db.session.query(Item).count()
        session_count = db.session.query(UserSession).count()
        admin_count = db.session.query(User).filter_by(role=ROLE_ADMINISTRATOR).count()

        elapsed_ms = (time.time() - start_time) * 1000

        details = {
            "users": user_count,
            "items": item_count,
            "active_sessions": session_count,
        }
        if admin_count != 1:
            return {
                "status": "degraded",
                "latency_ms": round(elapsed_ms, 2),
                "warning": f"Expected exactly one administrator, found {admin_count}",
                "details": details,
            }
        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": details,
        }
    except SQLAlchemyError:
        db.session.rollback()
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error"
        }


@system_bp.get("/health")
def health():
    """
    Health check endpoint.

    Returns:
    - 200: Healthy or degraded (still operational)
    - 503: Database unreachable
    """
    database_health = check_database_health()
    http_status = 503 if database_health["status"] == "unhealthy" else 200

    response = {
        "status": database_health["status"],
        "timestamp": utcnow().isoformat() + "Z",
        "checks": {
            "database": database_health,
        }
    }
    return response, http_status


@system_bp.get("/version")
def version():
    """
    Non-sensitive deployment information.
    """
    env = "production" if not current_app.debug else "development"

    return {
        "api_version": "1.0.0",
        "environment": env,
        "python_version": sys.version.split()[0],
        "server_time": utcnow().isoformat() + "Z",
    }
