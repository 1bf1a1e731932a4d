# Overview: Flask API routes for serial numbers; parses input and returns JSON responses.

from flask import Blueprint, current_app, request

from ..services.serial_service import (
    add_serials,
    list_serials,
    retire_serials,
    sync_stock_to_serials,
)
from ..validation import ValidationError
from .errors import error_response

serials_bp = Blueprint("serials", __name__, url_prefix="/api/serials")


@serials_bp.get("/products/<product_id>")
def list_serials_route(product_id: str):
    try:
        rows = list_serials(product_id, status=request.args.get("status"))
    except ValueError as e:
        return error_response(e)
    return {"items": [r.to_dict() for r in rows], "count": len(rows)}


@serials_bp.post("/products/<product_id>")
def add_serials_route(product_id: str):
    """Body: {"serial_numbers": ["SN-1", ...]}. Stock is reconciled afterwards."""
    payload = request.get_json(silent=True) or {}

    try:
        serial_numbers = payload.get("serial_numbers")
        if not isinstance(serial_numbers, list) or not all(isinstance(s, str) for s in serial_numbers):
            raise ValidationError("serial_numbers must be a list of strings")
        rows = add_serials(product_id, serial_numbers)
    except ValueError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to add serial numbers to %s", product_id)
        return {"error": "Internal server error"}, 500

    return {"items": [r.to_dict() for r in rows], "count": len(rows)}, 201


@serials_bp.post("/products/<product_id>/retire")
def retire_serials_route(product_id: str):
    """Body: {"serial_ids": [...]}. Available units become damaged and leave stock."""
    payload = request.get_json(silent=True) or {}

    try:
        product = retire_serials(product_id, payload.get("serial_ids"))
    except ValueError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to retire serial numbers of %s", product_id)
        return {"error": "Internal server error"}, 500

    return {"product": product.to_dict()}


@serials_bp.post("/products/<product_id>/sync")
def sync_serials_route(product_id: str):
    try:
        product = sync_stock_to_serials(product_id)
    except ValueError as e:
        return error_response(e)
    return {"product": product.to_dict()}
