# Overview: Flask API routes for bulk maintenance; clear-all and ghost cleanup.

from flask import Blueprint, current_app

from ..services.bulk_service import clear_all_inventory, clear_all_orders
from ..services.integrity_service import cleanup_orphan_ghosts
from .errors import error_response

admin_bp = Blueprint("admin", __name__, url_prefix="/api/admin")


@admin_bp.post("/clear-inventory")
def clear_inventory_route():
    try:
        summary = clear_all_inventory()
    except ValueError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Clear inventory failed")
        return {"error": "Internal server error"}, 500
    return summary


@admin_bp.post("/clear-orders")
def clear_orders_route():
    try:
        summary = clear_all_orders()
    except ValueError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Clear orders failed")
        return {"error": "Internal server error"}, 500
    return summary


@admin_bp.post("/cleanup-ghosts")
def cleanup_ghosts_route():
    try:
        deleted = cleanup_orphan_ghosts()
    except ValueError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Ghost cleanup failed")
        return {"error": "Internal server error"}, 500
    return {"deleted": deleted, "count": len(deleted)}
