# Overview: Flask API routes for the product catalog; parses input and returns JSON responses.

# backend/stockledger/routes/products.py
"""
Product catalog routes.

Listings never include ghost products. Stock cannot be set here: opening
stock is accepted on create, every later change goes through
POST /api/inventory/adjust (or serial entry for serialized products).
"""
from flask import Blueprint, current_app, request

from ..models import Product
from ..validation import validate_payload, enforce_rules_product
from ..services.products_service import (
    PRODUCT_UPDATE_POLICY,
    create_product,
    get_low_stock,
    get_out_of_stock,
    get_product,
    list_categories,
    list_locations,
    list_products,
    stock_status,
    update_product,
    validate_product_create,
)
from .errors import error_response

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


def _product_payload(p: Product) -> dict:
    data = p.to_dict()
    data["stock_status"] = stock_status(p)
    return data


def _items(products: list[Product]) -> dict:
    return {"items": [_product_payload(p) for p in products], "count": len(products)}


@products_bp.get("")
def list_products_route():
    """
    Query params:
    - category: exact category match (optional)
    - search: substring of name or sku, case-insensitive (optional)
    """
    return _items(list_products(
        category=request.args.get("category"),
        search=request.args.get("search"),
    ))


@products_bp.post("")
def create_product_route():
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_product_create(payload)
        created = create_product(patch=patch)
    except ValueError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create product")
        return {"error": "Internal server error"}, 500

    return _product_payload(created), 201


@products_bp.get("/low-stock")
def low_stock_route():
    return _items(get_low_stock())


@products_bp.get("/out-of-stock")
def out_of_stock_route():
    return _items(get_out_of_stock())


@products_bp.get("/categories")
def categories_route():
    return {"items": list_categories()}


@products_bp.get("/locations")
def locations_route():
    return {"items": list_locations()}


@products_bp.get("/<product_id>")
def get_product_route(product_id: str):
    try:
        return _product_payload(get_product(product_id))
    except ValueError as e:
        return error_response(e)


@products_bp.put("/<product_id>")
def update_product_route(product_id: str):
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_UPDATE_POLICY, partial=True)
        enforce_rules_product(patch)
        updated = update_product(product_id, patch)
    except ValueError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update product %s", product_id)
        return {"error": "Internal server error"}, 500

    return _product_payload(updated)


@products_bp.delete("/<product_id>")
def delete_product_route(product_id: str):
    """
    Delete a product. Products still on an order are replaced by a ghost;
    the response carries its id (null when the product was deleted outright).
    """
    from ..services.integrity_service import delete_product

    try:
        ghost_id = delete_product(product_id)
    except ValueError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to delete product %s", product_id)
        return {"error": "Internal server error"}, 500

    return {"ok": True, "ghost_id": ghost_id}


@products_bp.post("/import")
def import_products_route():
    """
    Body: {"rows": [{...product fields...}, ...]}
    Always 200 when the batch itself is well-formed; per-row outcome in results.
    """
    from ..services.import_service import import_products

    payload = request.get_json(silent=True) or {}
    try:
        result = import_products(payload.get("rows"))
    except ValueError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Product import failed")
        return {"error": "Internal server error"}, 500

    return result
