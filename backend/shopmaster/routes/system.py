# backend/shopmaster/routes/system.py
"""
System health and version endpoints.
"""

import sys
import time

from flask import Blueprint, current_app
from sqlalchemy import text

from ..extensions import db
from ..models import Role
from shopmaster.time_utils import utcnow

system_bp = Blueprint("system", __name__)

API_VERSION = "1.0.0"


def check_database_health() -> dict:
    start_time = time.time()
    try:
        db.session.execute(text("SELECT 1"))
        role_count = db.session.query(Role).count()
        elapsed_ms = (time.time() - start_time) * 1000
        return {
            "status": "healthy" if role_count else "degraded",
            "latency_ms": round(elapsed_ms, 2),
            "details": {"roles": role_count},
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        db.session.rollback()
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error",
        }


@system_bp.get("/health")
def health():
    """
    Returns:
    - 200: healthy, or degraded (no roles seeded yet)
    - 503: database unreachable
    """
    database = check_database_health()
    http_status = 503 if database["status"] == "unhealthy" else 200
    return {
        "status": database["status"],
        "timestamp": utcnow().isoformat() + "Z",
        "checks": {"database": database},
    }, http_status


@system_bp.get("/version")
def version():
    """Non-sensitive deployment information."""
    env = "production" if not current_app.debug else "development"
    return {
        "api_version": API_VERSION,
        "environment": env,
        "python_version": sys.version.split()[0],
        "server_time": utcnow().isoformat() + "Z",
    }
