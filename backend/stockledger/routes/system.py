# backend/stockledger/routes/system.py
"""
System health endpoint.
"""

import time

from flask import Blueprint, current_app

from ..extensions import db
from ..models import Order, Product
from ..models.inventory import PRODUCT_STATUS_ACTIVE
from ..time_utils import to_utc_z, utcnow

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    start_time = time.time()
    try:
        live = db.session.query(Product).filter(Product.status == PRODUCT_STATUS_ACTIVE).count()
        ghosts = db.session.query(Product).filter(Product.status != PRODUCT_STATUS_ACTIVE).count()
        orders = db.session.query(Order).count()
        elapsed_ms = (time.time() - start_time) * 1000
        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "products": live,
                "ghost_products": ghosts,
                "orders": orders,
            },
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error",
        }


@system_bp.get("/health")
def health():
    database = check_database_health()
    status_code = 200 if database["status"] == "healthy" else 503
    return {
        "status": database["status"],
        "timestamp": to_utc_z(utcnow()),
        "checks": {"database": database},
    }, status_code
