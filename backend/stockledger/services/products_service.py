# Overview: Product catalog; creation, edits and ghost-free listings.

"""
Products Service

STOCK: create_product() books any opening quantity through the ledger
(origin 'initial', or serial entry for serialized products). update_product()
never touches stock; use ledger_service.adjust_stock() for that.

LISTINGS: everything here goes through integrity_service.live_products(), so
ghost products never show up in catalog views.
"""
from __future__ import annotations

from flask import current_app
from sqlalchemy import or_

from ..extensions import db
from ..models import Product, SerialNumber
from ..validation import (
    ModelValidationPolicy,
    ValidationError,
    ConflictError,
    validate_payload,
    enforce_rules_product,
)
from .integrity_service import live_products
from .ledger_service import adjust_stock, get_live_product, ORIGIN_INITIAL
from .sequence_service import next_identifier, PRODUCT_PREFIX
from .serial_service import add_serials

PRODUCT_MUTABLE_FIELDS = {
    "sku", "name", "description", "category", "location",
    "reorder_level", "cost_price", "selling_price", "is_serialized",
}

PRODUCT_CREATE_POLICY = ModelValidationPolicy(
    writable_fields=PRODUCT_MUTABLE_FIELDS | {"stock", "serial_numbers"},
    required_on_create={"sku", "name"},
)

PRODUCT_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields=PRODUCT_MUTABLE_FIELDS | {"stock"},
)

STOCK_OUT = "out_of_stock"
STOCK_LOW = "low_stock"
STOCK_OK = "in_stock"


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


def _require_unique_sku(sku: str, exclude_id: str | None = None) -> None:
    q = db.session.query(Product.id).filter(Product.sku == sku)
    if exclude_id is not None:
        q = q.filter(Product.id != exclude_id)
    if q.first() is not None:
        raise ConflictError(f"SKU {sku} already exists.")


def validate_product_create(payload: dict) -> dict:
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_CREATE_POLICY, partial=False)
    enforce_rules_product(patch)
    return patch


def create_product(*, patch: dict) -> Product:
    """
    Create a product from a validated patch (see validate_product_create).

    Raises:
        ConflictError: SKU already taken
        ValidationError: opening stock given for a serialized product
    """
    sku = patch.get("sku")
    if not sku:
        raise ValidationError("sku is required")
    _require_unique_sku(sku)

    opening_stock = patch.get("stock") or 0
    serial_numbers = [s.strip() for s in patch.get("serial_numbers") or [] if s.strip()]
    if patch.get("is_serialized") and opening_stock:
        raise ValidationError(
            "Serialized products take their stock from serial numbers; send serial_numbers instead of stock"
        )
    # Checked up front so a bad batch does not leave an empty product behind
    if len(set(serial_numbers)) != len(serial_numbers):
        raise ConflictError("Duplicate serial numbers in request")

    p = Product(id=next_identifier(PRODUCT_PREFIX), stock=0)
    apply_product_patch(p, patch)
    db.session.add(p)
    db.session.commit()

    if serial_numbers:
        add_serials(p.id, serial_numbers)
    elif opening_stock:
        adjust_stock(p.id, opening_stock, "Initial stock", origin=ORIGIN_INITIAL)

    current_app.logger.info("Created product %s sku=%s", p.id, p.sku)
    return get_live_product(p.id)


def update_product(product_id: str, patch: dict) -> Product:
    """Apply non-stock field changes to a live product."""
    p = get_live_product(product_id)

    if "stock" in patch and patch["stock"] != p.stock:
        raise ValidationError("Stock cannot be edited directly; record a stock adjustment instead")

    if patch.get("sku") and patch["sku"] != p.sku:
        _require_unique_sku(patch["sku"], exclude_id=p.id)

    if "is_serialized" in patch and bool(patch["is_serialized"]) != p.is_serialized:
        has_serials = db.session.query(SerialNumber.id).filter_by(product_id=p.id).first() is not None
        if p.stock or has_serials:
            raise ValidationError(
                "is_serialized can only change while the product has no stock and no serial numbers"
            )

    apply_product_patch(p, patch)
    db.session.commit()
    return p


def get_product(product_id: str) -> Product:
    return get_live_product(product_id)


def get_by_sku(sku: str) -> Product | None:
    return live_products().filter(Product.sku == sku).first()


def list_products(*, category: str | None = None, search: str | None = None) -> list[Product]:
    q = live_products()
    if category:
        q = q.filter(Product.category == category)
    if search:
        like = f"%{search.strip()}%"
        q = q.filter(or_(Product.name.ilike(like), Product.sku.ilike(like)))
    return q.order_by(Product.name.asc(), Product.id.asc()).all()


def get_low_stock() -> list[Product]:
    """Live products at or below their reorder level, lowest stock first."""
    return (
        live_products()
        .filter(Product.stock <= Product.reorder_level)
        .order_by(Product.stock.asc(), Product.id.asc())
        .all()
    )


def get_out_of_stock() -> list[Product]:
    return live_products().filter(Product.stock == 0).order_by(Product.name.asc()).all()


def stock_status(product: Product, threshold: int | None = None) -> str:
    if threshold is None:
        threshold = current_app.config.get("LOW_STOCK_THRESHOLD", 5)
    if product.stock == 0:
        return STOCK_OUT
    if product.stock <= max(product.reorder_level or 0, threshold):
        return STOCK_LOW
    return STOCK_OK


def list_categories() -> list[str]:
    rows = (
        live_products()
        .with_entities(Product.category)
        .filter(Product.category.isnot(None), Product.category != "")
        .distinct()
        .order_by(Product.category.asc())
        .all()
    )
    return [category for (category,) in rows]


def list_locations() -> list[str]:
    rows = (
        live_products()
        .with_entities(Product.location)
        .filter(Product.location.isnot(None), Product.location != "")
        .distinct()
        .order_by(Product.location.asc())
        .all()
    )
    return [location for (location,) in rows]
