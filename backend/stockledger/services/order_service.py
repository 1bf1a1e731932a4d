# Overview: Order lifecycle; status state machine, order placement and deletion.

from __future__ import annotations

import random
from collections import Counter
from datetime import datetime
from decimal import Decimal

from flask import current_app

from ..extensions import db
from ..models import Order, OrderItem, Product, SerialNumber
from ..models.inventory import SERIAL_AVAILABLE
from ..models.orders import (
    ORDER_PENDING,
    ORDER_PROCESSING,
    ORDER_SHIPPED,
    ORDER_DELIVERED,
    ORDER_CANCELLED,
    ORDER_STATUSES,
)
from ..time_utils import compact_timestamp, utcnow
from ..validation import (
    ValidationError,
    NotFoundError,
    ConflictError,
    coerce_money,
    require_positive_quantity,
    require_id_list,
)
from .integrity_service import cleanup_orphan_ghosts
from .ledger_service import adjust_stock, get_live_product, ORIGIN_ORDER, ORIGIN_CANCELLATION
from .saga import SagaStep, run_saga
from .serial_service import mark_sold, release_for_order
"""
Order Lifecycle

STATE MACHINE:
    pending -> processing -> shipped -> delivered
       |           |            |
       +-----------+------------+--> cancelled

    delivered and cancelled are terminal.

RULES:
1. Only transitions listed in STATUS_FLOW are accepted.
2. Entering 'cancelled' gives the stock back (+quantity per line, through the
   ledger) and returns the order's sold serials to 'available'; units now on a
   ghost are only detached, since a ghost holds no stock.
3. Every other transition only moves updated_at.
4. Order placement checks stock line by line before writing anything, then runs
   order row -> line rows -> per-line decrement -> per-line serial sale.
   Completed steps are NOT rolled back if a later one fails (SagaAborted).
5. OrderItem.price is a snapshot; it is never recomputed.
"""


STATUS_FLOW: dict[str, tuple[str, ...]] = {
    ORDER_PENDING: (ORDER_PROCESSING, ORDER_CANCELLED),
    ORDER_PROCESSING: (ORDER_SHIPPED, ORDER_CANCELLED),
    ORDER_SHIPPED: (ORDER_DELIVERED, ORDER_CANCELLED),
    ORDER_DELIVERED: (),
    ORDER_CANCELLED: (),
}


class InvalidStatusTransition(ValueError):
    def __init__(self, current: str, requested: str):
        allowed = list(STATUS_FLOW.get(current, ()))
        super().__init__(
            f"Invalid status transition. Order cannot go from {current} to {requested}. "
            f"Allowed transitions: {', '.join(allowed) or 'none'}"
        )
        self.details = {"current": current, "requested": requested, "allowed": allowed}


class InsufficientStock(ValueError):
    def __init__(self, product_id: str, available: int, requested: int):
        super().__init__(
            f"Insufficient stock for product {product_id}. "
            f"Available: {available}, Requested: {requested}"
        )
        self.details = {"product_id": product_id, "available": available, "requested": requested}


def allowed_transitions(status: str) -> tuple[str, ...]:
    return STATUS_FLOW.get(status, ())


def get_order(order_id: str) -> Order:
    order = db.session.get(Order, order_id) if order_id else None
    if order is None:
        raise NotFoundError(f"Order {order_id} not found", details={"order_id": order_id})
    return order


def list_orders(
    *,
    status: str | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
) -> list[Order]:
    if status is not None and status not in ORDER_STATUSES:
        raise ValidationError(f"status must be one of: {', '.join(ORDER_STATUSES)}")

    q = Order.query
    if status is not None:
        q = q.filter(Order.status == status)
    if start is not None:
        q = q.filter(Order.created_at >= start)
    if end is not None:
        q = q.filter(Order.created_at <= end)
    return q.order_by(Order.created_at.desc(), Order.id.desc()).all()


# ---------------------------------------------------------------------------
# Placement
# ---------------------------------------------------------------------------

def _normalize_items(items) -> list[dict]:
    if not isinstance(items, list) or not items:
        raise ValidationError("An order needs at least one item")

    lines = []
    for index, raw in enumerate(items):
        if not isinstance(raw, dict):
            raise ValidationError(f"items[{index}] must be an object")
        product_id = raw.get("product_id")
        if not isinstance(product_id, str) or not product_id.strip():
            raise ValidationError(f"items[{index}].product_id is required")

        line = {
            "product_id": product_id.strip(),
            "quantity": require_positive_quantity(raw.get("quantity"), f"items[{index}].quantity"),
            "price": None,
            "serial_ids": require_id_list(raw.get("serial_ids") or [], f"items[{index}].serial_ids"),
        }
        if raw.get("price") is not None:
            price = coerce_money(f"items[{index}].price", raw["price"])
            if price < 0:
                raise ValidationError(f"items[{index}].price must be >= 0")
            line["price"] = price
        lines.append(line)
    return lines


def _check_serials(product: Product, line: dict) -> None:
    serial_ids = line["serial_ids"]
    if not product.is_serialized:
        if serial_ids:
            raise ValidationError(
                f"Product {product.id} is not serialized; serial_ids are not accepted",
                details={"product_id": product.id},
            )
        return

    if len(serial_ids) != line["quantity"] or len(set(serial_ids)) != len(serial_ids):
        raise ValidationError(
            f"Product {product.id} is serialized: supply {line['quantity']} distinct serial ids",
            details={"product_id": product.id, "quantity": line["quantity"], "serial_ids": serial_ids},
        )

    available = {
        row.id
        for row in db.session.query(SerialNumber.id).filter(
            SerialNumber.id.in_(serial_ids),
            SerialNumber.product_id == product.id,
            SerialNumber.status == SERIAL_AVAILABLE,
        )
    }
    missing = [sid for sid in serial_ids if sid not in available]
    if missing:
        raise ValidationError(
            f"Serial numbers not available for product {product.id}",
            details={"product_id": product.id, "serial_ids": missing},
        )


def _check_stock(lines: list[dict]) -> None:
    """Per-line stock check; raises on the first shortfall."""
    claimed = Counter(sid for line in lines for sid in line["serial_ids"])
    repeated = sorted(sid for sid, n in claimed.items() if n > 1)
    if repeated:
        raise ValidationError(
            "A serial number can only be sold once per order",
            details={"serial_ids": repeated},
        )

    requested_so_far: dict[str, int] = {}
    for line in lines:
        product = get_live_product(line["product_id"])
        requested = requested_so_far.get(product.id, 0) + line["quantity"]
        if product.stock < requested:
            raise InsufficientStock(product.id, product.stock, requested)
        requested_so_far[product.id] = requested

        _check_serials(product, line)
        if line["price"] is None:
            line["price"] = Decimal(product.selling_price or 0)


def _new_order_id(stamp: str) -> str:
    attempts = int(current_app.config.get("ORDER_ID_ATTEMPTS", 5))
    for _ in range(attempts):
        candidate = f"ORD-{stamp}-{random.randint(0, 999):03d}"
        if db.session.get(Order, candidate) is None:
            return candidate
    raise ConflictError(f"Could not allocate an order id for {stamp}")


def create_order(customer, items) -> Order:
    """
    Place an order and take its stock.

    Nothing is written when a check fails (InsufficientStock, ValidationError).
    A failure once the order row exists surfaces as SagaAborted; the steps
    already committed stay committed.
    """
    customer = (customer or "").strip() if isinstance(customer, str) else ""
    if not customer:
        raise ValidationError("customer is required")

    lines = _normalize_items(items)
    _check_stock(lines)

    stamp = compact_timestamp()
    order_id = _new_order_id(stamp)
    # ORI-<stamp>-<order suffix>-<seq>; unique across orders placed in the same second
    line_prefix = "ORI-" + order_id[len("ORD-"):]

    def create_order_row(_r):
        order = Order(
            id=order_id,
            customer=customer,
            status=ORDER_PENDING,
            total_items=sum(line["quantity"] for line in lines),
            total_amount=sum((line["price"] * line["quantity"] for line in lines), Decimal("0.00")),
        )
        db.session.add(order)
        db.session.commit()
        return order

    def create_items(_r):
        rows = [
            OrderItem(
                id=f"{line_prefix}-{index:03d}",
                order_id=order_id,
                product_id=line["product_id"],
                quantity=line["quantity"],
                price=line["price"],
            )
            for index, line in enumerate(lines, start=1)
        ]
        db.session.add_all(rows)
        db.session.commit()
        return [row.id for row in rows]

    steps = [
        SagaStep("create_order_row", create_order_row),
        SagaStep("create_items", create_items),
    ]
    for index, line in enumerate(lines, start=1):
        steps.append(SagaStep(
            f"decrement_stock_{index}",
            lambda _r, line=line: adjust_stock(
                line["product_id"], -line["quantity"], f"Order {order_id}", origin=ORIGIN_ORDER,
            ),
        ))
        if line["serial_ids"]:
            steps.append(SagaStep(
                f"mark_serials_sold_{index}",
                lambda _r, line=line: mark_sold(line["serial_ids"], order_id, line["product_id"]),
            ))

    run_saga(f"create_order:{order_id}", steps)
    current_app.logger.info("Order %s created with %d lines", order_id, len(lines))
    db.session.expire_all()
    return get_order(order_id)


# ---------------------------------------------------------------------------
# Status changes
# ---------------------------------------------------------------------------

def _restore_line(order_id: str, item: OrderItem) -> None:
    product = db.session.get(Product, item.product_id)
    if product is None or product.is_tombstoned:
        # The product was deleted; its ghost carries no stock.
        current_app.logger.info(
            "Order %s: skipping stock restore for deleted product %s", order_id, item.product_id
        )
        return
    adjust_stock(
        item.product_id, item.quantity, f"Order {order_id} cancelled", origin=ORIGIN_CANCELLATION,
    )


def update_status(order_id: str, new_status: str) -> Order:
    if new_status not in ORDER_STATUSES:
        raise ValidationError(
            f"Invalid status '{new_status}'. Must be one of: {', '.join(ORDER_STATUSES)}"
        )

    order = get_order(order_id)
    current = order.status
    if new_status not in STATUS_FLOW.get(current, ()):
        raise InvalidStatusTransition(current, new_status)

    def set_status(_r):
        order.status = new_status
        order.updated_at = utcnow()
        db.session.commit()
        return new_status

    steps = []
    if new_status == ORDER_CANCELLED:
        for item in list(order.items):
            steps.append(SagaStep(
                f"restore_stock_{item.id}",
                lambda _r, item=item: _restore_line(order_id, item),
            ))
        steps.append(SagaStep("release_serials", lambda _r: release_for_order(order_id)))
    steps.append(SagaStep("set_status", set_status))

    run_saga(f"update_status:{order_id}", steps)
    return order


# ---------------------------------------------------------------------------
# Deletion
# ---------------------------------------------------------------------------

def delete_order(order_id: str) -> dict:
    """
    Delete an order and its lines. Stock is not given back (cancel first for
    that). Ghost products left without any order line are removed.
    """
    get_order(order_id)
    product_ids = [
        pid for (pid,) in db.session.query(OrderItem.product_id)
        .filter(OrderItem.order_id == order_id).distinct()
    ]

    def delete_items(_r):
        count = OrderItem.query.filter_by(order_id=order_id).delete(synchronize_session=False)
        db.session.commit()
        return count

    def delete_order_row(_r):
        db.session.query(SerialNumber).filter(SerialNumber.order_id == order_id).update(
            {"order_id": None, "updated_at": utcnow()}, synchronize_session=False,
        )
        Order.query.filter_by(id=order_id).delete(synchronize_session=False)
        db.session.commit()
        db.session.expire_all()

    results = run_saga(f"delete_order:{order_id}", [
        SagaStep("delete_items", delete_items),
        SagaStep("delete_order_row", delete_order_row),
        SagaStep("cleanup_ghosts", lambda _r: cleanup_orphan_ghosts(product_ids)),
    ])
    return {
        "order_id": order_id,
        "items_deleted": results["delete_items"],
        "ghosts_deleted": results["cleanup_ghosts"],
    }
