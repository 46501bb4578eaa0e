# backend/koifarm/routes/system.py
"""
Health endpoint.

GET /health
    200 {"status": "healthy", "checks": {"database": {...}, "workflow": {...}}}
    503 when the database cannot be queried
"""

import time

from flask import Blueprint, current_app
from sqlalchemy import func

from ..extensions import db
from ..models import Member, Product, Sale
from ..services.workflow_service import WORKFLOW
from ..time_utils import to_utc_z, utcnow

system_bp = Blueprint("system", __name__)


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 2)


def check_database() -> dict:
    """Row counts per table plus open sales per status."""
    started = time.perf_counter()
    try:
        by_status = dict(
            db.session.query(Sale.selling_status, func.count(Sale.id))
            .group_by(Sale.selling_status)
            .all()
        )
        counts = {
            "products": db.session.query(Product).count(),
            "members": db.session.query(Member).count(),
            "sales": sum(by_status.values()),
        }
    except Exception:
        current_app.logger.exception("Database health check failed")
        return {"status": "unhealthy", "latency_ms": _elapsed_ms(started), "error": "Database error"}

    return {
        "status": "healthy",
        "latency_ms": _elapsed_ms(started),
        "details": counts,
        "sales_by_status": by_status,
    }


@system_bp.get("/health")
def health():
    database = check_database()
    status_code = 200 if database["status"] == "healthy" else 503
    return {
        "status": database["status"],
        "timestamp": to_utc_z(utcnow()),
        "checks": {
            "database": database,
            "workflow": {"status": "healthy", "statuses": len(WORKFLOW.definitions)},
        },
    }, status_code
