# backend/backoffice/routes/system.py
"""
System health endpoint.

Reports database reachability, side-effect outbox backlog and whether invoice
numbering is configured.
"""

import time
from flask import Blueprint, current_app
from ..extensions import db
from ..models import InventoryItem, InvoiceSettings, Order, OutboxTask
from ..time_utils import to_utc_z, utcnow

system_bp = Blueprint("system", __name__, url_prefix="/api")


def check_database_health() -> dict:
    start_time = time.time()
    try:
        order_count = db.session.query(Order).count()
        item_count = db.session.query(InventoryItem).count()

        elapsed_ms = (time.time() - start_time) * 1000
        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "orders": order_count,
                "inventory_items": item_count,
            }
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error"
        }


def check_outbox_health() -> dict:
    """Dead tasks mean a side effect was given up on: degraded, not down."""
    try:
        pending = db.session.query(OutboxTask).filter_by(status="pending").count()
        dead = db.session.query(OutboxTask).filter_by(status="dead").count()
        return {
            "status": "degraded" if dead else "healthy",
            "details": {"pending": pending, "dead": dead},
        }
    except Exception:
        current_app.logger.exception("Outbox health check failed")
        return {"status": "unhealthy", "error": "Outbox error"}


def check_invoicing_health() -> dict:
    try:
        active = db.session.query(InvoiceSettings).filter_by(is_active=True).count()
        if not active:
            return {
                "status": "degraded",
                "warning": "No active invoice settings; orders are committed without invoice numbers",
            }
        return {"status": "healthy"}
    except Exception:
        current_app.logger.exception("Invoicing health check failed")
        return {"status": "unhealthy", "error": "Invoicing error"}


@system_bp.get("/health")
def health():
    """
    Returns:
    - 200: healthy or degraded
    - 503: one or more checks unhealthy
    """
    start_time = time.time()

    checks = {
        "database": check_database_health(),
        "outbox": check_outbox_health(),
        "invoicing": check_invoicing_health(),
    }

    statuses = [check["status"] for check in checks.values()]
    if "unhealthy" in statuses:
        overall_status, http_status = "unhealthy", 503
    elif "degraded" in statuses:
        overall_status, http_status = "degraded", 200
    else:
        overall_status, http_status = "healthy", 200

    return {
        "status": overall_status,
        "timestamp": to_utc_z(utcnow()),
        "total_latency_ms": round((time.time() - start_time) * 1000, 2),
        "checks": checks,
    }, http_status
