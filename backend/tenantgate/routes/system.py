# backend/tenantgate/routes/system.py
"""
System health endpoint.

Liveness plus a database round trip, for load balancer checks.
"""

import time

from flask import Blueprint, current_app, jsonify
from sqlalchemy import text

from ..extensions import db

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    start_time = time.time()
    try:
        db.session.execute(text("SELECT 1"))
        return {
            "status": "healthy",
            "latency_ms": round((time.time() - start_time) * 1000, 2),
        }
    except Exception:
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round((time.time() - start_time) * 1000, 2),
            "error": "Database error",
        }


@system_bp.get("/health")
def health():
    database = check_database_health()
    ok = database["status"] == "healthy"
    return jsonify({"status": "ok" if ok else "degraded", "database": database}), 200 if ok else 503
