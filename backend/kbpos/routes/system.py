# backend/kbpos/routes/system.py
"""
System health endpoint.

Reports database connectivity so a load balancer or operator can tell a
live process from a usable one.
"""

import time
from flask import Blueprint, current_app, jsonify
from sqlalchemy import text

from ..extensions import db
from ..models import Product, Sale

system_bp = Blueprint("system", __name__, url_prefix="/api")


def check_database_health() -> dict:
    """
    Check database connectivity and basic operations.

    Returns dict with status and details.
    """
    start_time = time.time()
    try:
        db.session.execute(text("SELECT 1"))
        product_count = db.session.query(Product).count()
        sale_count = db.session.query(Sale).count()

        elapsed_ms = (time.time() - start_time) * 1000
        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "products": product_count,
                "sales": sale_count,
            },
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
    """200 when the database answers, 503 otherwise."""
    database = check_database_health()
    healthy = database["status"] == "healthy"
    body = {
        "success": healthy,
        "data": {
            "status": "healthy" if healthy else "unhealthy",
            "checks": {"database": database},
        },
    }
    return jsonify(body), 200 if healthy else 503
