# Overview: Flask API routes for stock adjustments; parses input and returns JSON responses.

# backend/stockledger/routes/inventory.py
"""
Stock ledger routes.

Time semantics:
- API accepts ISO-8601 datetimes with Z/offsets; backend normalizes to UTC-naive internally.
- start/end filtering is inclusive.
"""
from flask import Blueprint, current_app, request

from ..models.inventory import ADJUSTMENT_IN, ADJUSTMENT_OUT
from ..services.ledger_service import adjust_stock, get_adjustment, list_adjustments
from ..validation import ValidationError, coerce_int, require_positive_quantity
from .errors import error_response, parse_date_arg

inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


def _delta_from_payload(payload: dict) -> int:
    """
    Either {"delta": <signed int>} or {"quantity": n, "adjustment_type": "in"|"out"}.
    """
    if payload.get("delta") is not None:
        return coerce_int("delta", payload["delta"])

    quantity = require_positive_quantity(payload.get("quantity"))
    adjustment_type = payload.get("adjustment_type")
    if adjustment_type == ADJUSTMENT_IN:
        return quantity
    if adjustment_type == ADJUSTMENT_OUT:
        return -quantity
    raise ValidationError("adjustment_type must be 'in' or 'out'")


@inventory_bp.post("/adjust")
def adjust_inventory_route():
    """
    Manual stock adjustment.

    Serialized products are refused here; their stock moves with serial entry,
    retirement and sales.
    """
    payload = request.get_json(silent=True) or {}

    try:
        product_id = payload.get("product_id")
        if not product_id:
            raise ValidationError("product_id is required")
        delta = _delta_from_payload(payload)
        product = adjust_stock(product_id, delta, payload.get("reason"))
    except ValueError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to adjust stock")
        return {"error": "Internal server error"}, 500

    latest = list_adjustments(product_id=product.id, limit=1)
    return {
        "product": product.to_dict(),
        "adjustment": latest[0].to_dict() if latest else None,
    }, 201


@inventory_bp.get("/adjustments")
def list_adjustments_route():
    """
    Query params (all optional):
    - product_id
    - type: in | out
    - start, end: ISO-8601, inclusive
    - limit: default 200
    """
    try:
        limit = request.args.get("limit", type=int) or 200
        rows = list_adjustments(
            product_id=request.args.get("product_id"),
            adjustment_type=request.args.get("type"),
            start=parse_date_arg(request.args, "start"),
            end=parse_date_arg(request.args, "end"),
            limit=min(limit, 1000),
        )
    except ValueError as e:
        return error_response(e)

    return {"items": [r.to_dict(include_product=True) for r in rows], "count": len(rows)}


@inventory_bp.get("/adjustments/<adjustment_id>")
def get_adjustment_route(adjustment_id: str):
    try:
        return get_adjustment(adjustment_id).to_dict(include_product=True)
    except ValueError as e:
        return error_response(e)
