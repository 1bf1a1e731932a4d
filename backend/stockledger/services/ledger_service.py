# Overview: Stock ledger; the single entry point for every stock mutation.

from __future__ import annotations

from datetime import datetime

from ..extensions import db
from ..models import Product, StockAdjustment
from ..models.inventory import ADJUSTMENT_IN, ADJUSTMENT_OUT, ADJUSTMENT_TYPES
from ..validation import ValidationError, NotFoundError, coerce_int, require_reason
from .concurrency import run_with_retry
from .saga import SagaStep, run_saga
from .sequence_service import next_identifier, ADJUSTMENT_PREFIX
"""
Stock Ledger Invariants (authoritative)

- Product.stock is written ONLY by adjust_stock(). Nothing else assigns it.
- Every accepted call appends exactly one StockAdjustment row:
    quantity = |delta|, adjustment_type = 'in' if delta > 0 else 'out',
    new_quantity = previous_quantity + delta.
- Stock never goes below zero; a rejected call changes nothing.
- Serialized products: stock == count(available serials). Manual calls may not
  move their stock; only order placement, cancellation, serial reconciliation
  and initial stocking (the internal origins) may.

Write shape (no multi-statement transaction is assumed):
    1. write_stock        commit new stock (row-version checked)
    2. append_adjustment  commit the ledger row
  If 2 fails, 1 is compensated by applying -delta and the failure surfaces as
  SagaAborted. A concurrent writer that moved the row version between our read
  and step 1 causes StaleDataError; the whole call is re-read and retried.
"""


ORIGIN_MANUAL = "manual"
ORIGIN_ORDER = "order"
ORIGIN_CANCELLATION = "cancellation"
ORIGIN_SERIAL_SYNC = "serial_sync"
ORIGIN_INITIAL = "initial"
STOCK_ORIGINS = {ORIGIN_MANUAL, ORIGIN_ORDER, ORIGIN_CANCELLATION, ORIGIN_SERIAL_SYNC, ORIGIN_INITIAL}


class InvariantViolation(ValueError):
    """A stock mutation that would break a ledger invariant. Blocks the operation."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class NegativeStockError(InvariantViolation):
    pass


class SerializedStockRequiresSerialOperation(InvariantViolation):
    pass


class SerialProductStockIncreaseForbidden(InvariantViolation):
    pass


def get_live_product(product_id: str) -> Product:
    product = db.session.get(Product, product_id) if product_id else None
    if product is None or product.is_tombstoned:
        raise NotFoundError(f"Product {product_id} not found", details={"product_id": product_id})
    return product


def _check_mutation(product: Product, delta: int, origin: str) -> int:
    """Validate delta against the freshly read product; return the new stock."""
    if origin == ORIGIN_MANUAL and product.is_serialized:
        if delta < 0:
            raise SerializedStockRequiresSerialOperation(
                f"Stock of serialized product {product.id} can only be reduced by selling or retiring serial numbers",
                details={"product_id": product.id},
            )
        raise SerialProductStockIncreaseForbidden(
            f"Stock of serialized product {product.id} can only be increased by adding serial numbers",
            details={"product_id": product.id},
        )

    new_stock = product.stock + delta
    if new_stock < 0:
        raise NegativeStockError(
            f"Adjustment would make stock of {product.id} negative "
            f"(current {product.stock}, change {delta})",
            details={"product_id": product.id, "current": product.stock, "delta": delta},
        )
    return new_stock


def _append_adjustment(
    *,
    product_id: str,
    delta: int,
    reason: str,
    previous_quantity: int,
    new_quantity: int,
) -> StockAdjustment:
    adjustment = StockAdjustment(
        id=next_identifier(ADJUSTMENT_PREFIX),
        product_id=product_id,
        quantity=abs(delta),
        adjustment_type=ADJUSTMENT_IN if delta > 0 else ADJUSTMENT_OUT,
        reason=reason,
        previous_quantity=previous_quantity,
        new_quantity=new_quantity,
    )
    db.session.add(adjustment)
    db.session.commit()
    return adjustment


def adjust_stock(
    product_id: str,
    delta,
    reason,
    *,
    origin: str = ORIGIN_MANUAL,
) -> Product:
    """
    Apply a signed stock delta and record it in the ledger.

    Raises:
        ValidationError: blank reason, zero/non-integer delta, unknown product
        NegativeStockError: resulting stock < 0
        SerializedStockRequiresSerialOperation / SerialProductStockIncreaseForbidden:
            manual change to a serialized product
        SagaAborted: ledger row could not be written (stock compensated)
    """
    delta = coerce_int("delta", delta)
    if delta == 0:
        raise ValidationError("delta must be non-zero")
    reason = require_reason(reason)
    if origin not in STOCK_ORIGINS:
        raise ValidationError(f"Unknown stock origin '{origin}'")

    def _op() -> Product:
        product = get_live_product(product_id)
        previous = product.stock
        new_stock = _check_mutation(product, delta, origin)

        def write_stock(_results):
            product.stock = new_stock
            db.session.commit()
            return previous

        def undo_stock(_previous):
            fresh = db.session.get(Product, product_id)
            fresh.stock = fresh.stock - delta
            db.session.commit()

        run_saga("adjust_stock", [
            SagaStep("write_stock", write_stock, undo_stock),
            SagaStep("append_adjustment", lambda _results: _append_adjustment(
                product_id=product_id,
                delta=delta,
                reason=reason,
                previous_quantity=previous,
                new_quantity=new_stock,
            )),
        ])
        return product

    return run_with_retry(_op)


def get_adjustment(adjustment_id: str) -> StockAdjustment:
    adjustment = db.session.get(StockAdjustment, adjustment_id)
    if adjustment is None:
        raise NotFoundError(f"Stock adjustment {adjustment_id} not found")
    return adjustment


def list_adjustments(
    *,
    product_id: str | None = None,
    adjustment_type: str | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
    limit: int = 200,
) -> list[StockAdjustment]:
    """Ledger rows newest first. Date bounds are inclusive."""
    if adjustment_type is not None and adjustment_type not in ADJUSTMENT_TYPES:
        raise ValidationError(f"adjustment_type must be one of: {', '.join(ADJUSTMENT_TYPES)}")

    q = StockAdjustment.query
    if product_id is not None:
        q = q.filter(StockAdjustment.product_id == product_id)
    if adjustment_type is not None:
        q = q.filter(StockAdjustment.adjustment_type == adjustment_type)
    if start is not None:
        q = q.filter(StockAdjustment.created_at >= start)
    if end is not None:
        q = q.filter(StockAdjustment.created_at <= end)

    return q.order_by(
        StockAdjustment.created_at.desc(),
        StockAdjustment.id.desc(),
    ).limit(limit).all()
