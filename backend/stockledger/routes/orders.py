# Overview: Flask API routes for orders; parses input and returns JSON responses.

# backend/stockledger/routes/orders.py
"""
Order routes.

A 500 carrying "details" means placement (or cancellation) stopped part-way;
details.left_committed lists what was written and must be cleaned up by hand.
"""
from flask import Blueprint, current_app, request

from ..services.order_service import (
    allowed_transitions,
    create_order,
    delete_order,
    get_order,
    list_orders,
    update_status,
)
from .errors import error_response, parse_date_arg

orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


def _order_payload(order) -> dict:
    data = order.to_dict()
    data["allowed_transitions"] = list(allowed_transitions(order.status))
    return data


@orders_bp.get("")
def list_orders_route():
    try:
        orders = list_orders(
            status=request.args.get("status"),
            start=parse_date_arg(request.args, "start"),
            end=parse_date_arg(request.args, "end"),
        )
    except ValueError as e:
        return error_response(e)
    return {"items": [_order_payload(o) for o in orders], "count": len(orders)}


@orders_bp.post("")
def create_order_route():
    """
    Body:
        {"customer": "...", "items": [{"product_id", "quantity", "price"?, "serial_ids"?}]}
    """
    payload = request.get_json(silent=True) or {}

    try:
        order = create_order(payload.get("customer"), payload.get("items"))
    except ValueError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create order")
        return {"error": "Internal server error"}, 500

    return _order_payload(order), 201


@orders_bp.get("/<order_id>")
def get_order_route(order_id: str):
    try:
        return _order_payload(get_order(order_id))
    except ValueError as e:
        return error_response(e)


@orders_bp.patch("/<order_id>/status")
def update_status_route(order_id: str):
    payload = request.get_json(silent=True) or {}

    try:
        order = update_status(order_id, payload.get("status"))
    except ValueError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update status of order %s", order_id)
        return {"error": "Internal server error"}, 500

    return _order_payload(order)


@orders_bp.delete("/<order_id>")
def delete_order_route(order_id: str):
    try:
        result = delete_order(order_id)
    except ValueError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to delete order %s", order_id)
        return {"error": "Internal server error"}, 500

    return {"ok": True, **result}
