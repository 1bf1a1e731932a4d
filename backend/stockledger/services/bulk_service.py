# Overview: Clear-all sequences over inventory and orders.

from __future__ import annotations

from flask import current_app
from sqlalchemy import select

from ..extensions import db
from ..models import Order, OrderItem, Product, SerialNumber, StockAdjustment
from ..models.inventory import PRODUCT_STATUS_ACTIVE
from ..time_utils import utcnow
from .integrity_service import cleanup_orphan_ghosts, ghost_product, live_products, tombstoned_products
from .saga import SagaStep, run_saga


def _referenced_live_products() -> list[Product]:
    referenced = select(OrderItem.product_id).distinct()
    return live_products().filter(Product.id.in_(referenced)).order_by(Product.id).all()


def _delete_all_adjustments(_r) -> int:
    count = db.session.query(StockAdjustment).delete(synchronize_session=False)
    db.session.commit()
    return count


def _delete_live_products(_r) -> dict:
    live_ids = select(Product.id).where(Product.status == PRODUCT_STATUS_ACTIVE)
    serials = (
        db.session.query(SerialNumber)
        .filter(SerialNumber.product_id.in_(live_ids))
        .delete(synchronize_session=False)
    )
    products = (
        db.session.query(Product)
        .filter(Product.status == PRODUCT_STATUS_ACTIVE)
        .delete(synchronize_session=False)
    )
    db.session.commit()
    db.session.expire_all()
    return {"serials": serials, "products": products}


def clear_all_inventory() -> dict:
    """
    Remove every live product.

    Products still on an order are ghosted first, so order history keeps
    resolving. Ghosts stay until their orders are cleared as well. Not atomic:
    a failure part-way leaves the earlier steps committed (SagaAborted).
    """
    steps = [
        SagaStep(f"ghost:{product.id}", lambda _r, product=product: ghost_product(product).id)
        for product in _referenced_live_products()
    ]
    steps += [
        SagaStep("delete_adjustments", _delete_all_adjustments),
        SagaStep("delete_products", _delete_live_products),
    ]

    results = run_saga("clear_all_inventory", steps)
    ghosts = [v for k, v in results.items() if k.startswith("ghost:")]
    summary = {
        "ghosts_created": len(ghosts),
        "adjustments_deleted": results["delete_adjustments"],
        "serials_deleted": results["delete_products"]["serials"],
        "products_deleted": results["delete_products"]["products"],
    }
    current_app.logger.info("Cleared inventory: %s", summary)
    return summary


def clear_all_orders() -> dict:
    """
    Remove every order and line, then the ghosts they were keeping alive.

    Stock is not given back. Serials sold under the cleared orders stay sold
    with their order link cleared.
    """
    ghost_ids = [pid for (pid,) in tombstoned_products().with_entities(Product.id).all()]

    def delete_items(_r):
        count = db.session.query(OrderItem).delete(synchronize_session=False)
        db.session.commit()
        return count

    def delete_orders(_r):
        db.session.query(SerialNumber).filter(SerialNumber.order_id.isnot(None)).update(
            {"order_id": None, "updated_at": utcnow()}, synchronize_session=False,
        )
        count = db.session.query(Order).delete(synchronize_session=False)
        db.session.commit()
        db.session.expire_all()
        return count

    results = run_saga("clear_all_orders", [
        SagaStep("delete_items", delete_items),
        SagaStep("delete_orders", delete_orders),
        SagaStep("delete_ghosts", lambda _r: cleanup_orphan_ghosts(ghost_ids)),
    ])
    summary = {
        "items_deleted": results["delete_items"],
        "orders_deleted": results["delete_orders"],
        "ghosts_deleted": len(results["delete_ghosts"]),
    }
    current_app.logger.info("Cleared orders: %s", summary)
    return summary
