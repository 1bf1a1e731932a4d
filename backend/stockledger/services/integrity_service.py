# Overview: Ghost (tombstone) products that keep deleted products referenceable from order history.

from __future__ import annotations

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import Product, OrderItem, StockAdjustment, SerialNumber
from ..models.inventory import (
    PRODUCT_STATUS_ACTIVE,
    PRODUCT_STATUS_TOMBSTONED,
    GHOST_ID_PREFIX,
    GHOST_NAME_PREFIX,
    GHOST_SKU_PREFIX,
    GHOST_LOCATION,
    SERIAL_SOLD,
)
from ..time_utils import epoch_millis, utcnow
from .ledger_service import get_live_product
from .saga import SagaStep, run_saga
"""
Referential Integrity Guard

A Product referenced by at least one OrderItem is never hard-deleted. Instead:

    1. create_ghost       insert tombstone GHOST-<origId>-<ms> (status='tombstoned')
    2. repoint_references order items, ledger rows and sold serials -> ghost;
                          unsold serials of the product are dropped
    3. delete_original    remove the original row

An unreferenced product is deleted outright together with its ledger rows and
serials. Ghosts disappear once no order item points at them any more
(cleanup_orphan_ghosts, run by order deletion and the bulk clears).

Each step commits on its own. There are no compensations: a failure after
step 1 leaves the ghost in place and is reported as SagaAborted.
"""


def live_products():
    """The one query predicate for "products a user should see"."""
    return Product.query.filter(Product.status == PRODUCT_STATUS_ACTIVE)


def tombstoned_products():
    return Product.query.filter(Product.status == PRODUCT_STATUS_TOMBSTONED)


def count_order_references(product_id: str) -> int:
    return int(
        db.session.query(func.count(OrderItem.id))
        .filter(OrderItem.product_id == product_id)
        .scalar() or 0
    )


def _unique_ghost_sku(stamp: int, sku: str | None) -> str:
    base = f"{GHOST_SKU_PREFIX}{stamp}-{(sku or 'SKU')[:10]}"
    candidate = base
    n = 1
    while db.session.query(Product.id).filter_by(sku=candidate).first() is not None:
        n += 1
        candidate = f"{base}-{n}"
    return candidate


def _create_ghost(product: Product) -> Product:
    stamp = epoch_millis()
    ghost = Product(
        id=f"{GHOST_ID_PREFIX}{product.id}-{stamp}",
        sku=_unique_ghost_sku(stamp, product.sku),
        name=f"{GHOST_NAME_PREFIX}{product.name or 'Unknown Product'}",
        description=(
            f"This product was deleted on {utcnow():%Y-%m-%d %H:%M:%S} UTC. "
            "Preserved for order history."
        ),
        category=product.category or "Deleted Products",
        location=GHOST_LOCATION,
        stock=0,
        reorder_level=0,
        cost_price=0,
        selling_price=0,
        is_serialized=product.is_serialized,
        status=PRODUCT_STATUS_TOMBSTONED,
    )
    db.session.add(ghost)
    db.session.commit()
    return ghost


def _repoint_references(product_id: str, ghost_id: str) -> int:
    moved = (
        db.session.query(OrderItem)
        .filter(OrderItem.product_id == product_id)
        .update({"product_id": ghost_id}, synchronize_session=False)
    )
    db.session.query(StockAdjustment).filter(
        StockAdjustment.product_id == product_id
    ).update({"product_id": ghost_id}, synchronize_session=False)
    db.session.query(SerialNumber).filter(
        SerialNumber.product_id == product_id,
        SerialNumber.status == SERIAL_SOLD,
    ).update({"product_id": ghost_id}, synchronize_session=False)
    db.session.query(SerialNumber).filter(
        SerialNumber.product_id == product_id,
    ).delete(synchronize_session=False)
    db.session.commit()
    return moved


def _hard_delete(product_id: str) -> None:
    db.session.query(StockAdjustment).filter(
        StockAdjustment.product_id == product_id
    ).delete(synchronize_session=False)
    db.session.query(SerialNumber).filter(
        SerialNumber.product_id == product_id
    ).delete(synchronize_session=False)
    db.session.query(Product).filter(Product.id == product_id).delete(synchronize_session=False)
    db.session.commit()
    db.session.expire_all()


def ghost_product(product: Product) -> Product:
    """
    Steps 1 and 2 of the ghost procedure; the original row is left in place.
    Shared by delete_product() and bulk_service.clear_all_inventory().
    """
    product_id = product.id
    results = run_saga(f"ghost_product:{product_id}", [
        SagaStep("create_ghost", lambda _r: _create_ghost(product)),
        SagaStep("repoint_references", lambda r: _repoint_references(product_id, r["create_ghost"].id)),
    ])
    ghost = results["create_ghost"]
    current_app.logger.info(
        "Product %s replaced by ghost %s (%d order lines repointed)",
        product_id, ghost.id, results["repoint_references"],
    )
    return ghost


def delete_product(product_id: str) -> str | None:
    """
    Delete a live product.

    Returns the ghost id when order lines still reference the product,
    None when it was deleted outright.
    """
    product = get_live_product(product_id)

    if count_order_references(product_id) == 0:
        _hard_delete(product_id)
        return None

    results = run_saga(f"delete_product:{product_id}", [
        SagaStep("ghost", lambda _r: ghost_product(product)),
        SagaStep("delete_original", lambda _r: _hard_delete(product_id)),
    ])
    return results["ghost"].id


def cleanup_orphan_ghosts(candidate_ids=None) -> list[str]:
    """
    Hard-delete ghosts that no order line references any more.

    candidate_ids limits the pass to those ids (non-ghost ids are ignored);
    None checks every ghost.
    """
    q = tombstoned_products().with_entities(Product.id)
    if candidate_ids is not None:
        candidate_ids = list(candidate_ids)
        if not candidate_ids:
            return []
        q = q.filter(Product.id.in_(candidate_ids))

    deleted = []
    for (ghost_id,) in q.all():
        if count_order_references(ghost_id) == 0:
            _hard_delete(ghost_id)
            deleted.append(ghost_id)

    if deleted:
        current_app.logger.info("Deleted %d unreferenced ghost products", len(deleted))
    return deleted
