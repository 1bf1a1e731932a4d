# Overview: Unit-level serial tracking and stock reconciliation for serialized products.

from __future__ import annotations

import uuid
from collections import Counter

from sqlalchemy import func, select

from ..extensions import db
from ..models import Product, SerialNumber
from ..models.inventory import (
    PRODUCT_STATUS_ACTIVE, SERIAL_AVAILABLE, SERIAL_SOLD, SERIAL_DAMAGED, SERIAL_STATUSES,
)
from ..time_utils import utcnow
from ..validation import ValidationError, ConflictError, require_id_list
from .ledger_service import adjust_stock, get_live_product, ORIGIN_SERIAL_SYNC


def count_available(product_id: str) -> int:
    return int(
        db.session.query(func.count(SerialNumber.id))
        .filter(SerialNumber.product_id == product_id, SerialNumber.status == SERIAL_AVAILABLE)
        .scalar() or 0
    )


def _require_serialized(product_id: str) -> Product:
    product = get_live_product(product_id)
    if not product.is_serialized:
        raise ValidationError(f"Product {product_id} is not serialized", details={"product_id": product_id})
    return product


def sync_stock_to_serials(product_id: str) -> Product:
    """
    Make stock equal the number of available serials.

    The difference goes through the stock ledger like any other change.
    Calling it again with nothing changed writes no adjustment row.
    """
    product = _require_serialized(product_id)
    available = count_available(product_id)
    delta = available - product.stock
    if delta == 0:
        return product

    return adjust_stock(
        product_id,
        delta,
        f"Synced to serial numbers ({available} available)",
        origin=ORIGIN_SERIAL_SYNC,
    )


def list_serials(product_id: str, status: str | None = None) -> list[SerialNumber]:
    if status is not None and status not in SERIAL_STATUSES:
        raise ValidationError(f"status must be one of: {', '.join(SERIAL_STATUSES)}")
    q = SerialNumber.query.filter_by(product_id=product_id)
    if status is not None:
        q = q.filter_by(status=status)
    return q.order_by(SerialNumber.created_at.desc(), SerialNumber.serial_number.asc()).all()


def add_serials(product_id: str, serial_numbers: list[str]) -> list[SerialNumber]:
    """
    Register new available units, then reconcile stock.

    Blank entries are dropped. Duplicates within the batch or against serials
    already recorded for the product are rejected before anything is written.
    """
    _require_serialized(product_id)

    cleaned = [s.strip() for s in serial_numbers if s and s.strip()]
    if not cleaned:
        raise ValidationError("No serial numbers supplied")

    dupes = sorted(sn for sn, n in Counter(cleaned).items() if n > 1)
    if dupes:
        raise ConflictError(f"Duplicate serial numbers in request: {', '.join(dupes)}")

    existing = {
        row.serial_number
        for row in db.session.query(SerialNumber.serial_number)
        .filter(SerialNumber.product_id == product_id, SerialNumber.serial_number.in_(cleaned))
        .all()
    }
    if existing:
        raise ConflictError(f"Serial numbers already recorded: {', '.join(sorted(existing))}")

    rows = [
        SerialNumber(
            id=str(uuid.uuid4()),
            product_id=product_id,
            serial_number=sn,
            status=SERIAL_AVAILABLE,
        )
        for sn in cleaned
    ]
    db.session.add_all(rows)
    db.session.commit()

    sync_stock_to_serials(product_id)
    return rows


def _flip(serial_ids: list[str], *, from_status: str, values: dict, extra_filter=None) -> list[str]:
    """
    One filtered UPDATE over the batch; rows not in from_status are untouched.
    Returns the ids that were skipped.
    """
    criteria = [SerialNumber.id.in_(serial_ids), SerialNumber.status == from_status]
    if extra_filter is not None:
        criteria.append(extra_filter)

    eligible = {row.id for row in db.session.query(SerialNumber.id).filter(*criteria)}
    if eligible:
        db.session.query(SerialNumber).filter(
            SerialNumber.id.in_(eligible),
            SerialNumber.status == from_status,
        ).update({**values, "updated_at": utcnow()}, synchronize_session=False)
        db.session.commit()
    return [sid for sid in serial_ids if sid not in eligible]


def mark_sold(serial_ids: list[str], order_id: str | None, product_id: str | None = None) -> None:
    """available -> sold, linked to order_id. Rows flipped before an error stay flipped."""
    serial_ids = require_id_list(serial_ids, "serial_ids")
    if not serial_ids:
        return
    skipped = _flip(
        serial_ids,
        from_status=SERIAL_AVAILABLE,
        values={"status": SERIAL_SOLD, "order_id": order_id},
        extra_filter=SerialNumber.product_id == product_id if product_id else None,
    )
    if skipped:
        raise ValidationError(
            "Some serial numbers were not available and were not sold",
            details={"order_id": order_id, "serial_ids": skipped},
        )


def mark_available(serial_ids: list[str]) -> None:
    """sold -> available, order link cleared."""
    serial_ids = require_id_list(serial_ids, "serial_ids")
    if not serial_ids:
        return
    skipped = _flip(
        serial_ids,
        from_status=SERIAL_SOLD,
        values={"status": SERIAL_AVAILABLE, "order_id": None},
    )
    if skipped:
        raise ValidationError(
            "Some serial numbers were not sold and were left unchanged",
            details={"serial_ids": skipped},
        )


def release_for_order(order_id: str) -> int:
    """
    Return every serial sold under order_id to stock. Returns the row count.

    Units now owned by a ghost stay sold and are only detached from the order:
    ghosts hold no stock, so they must never gain available serials.
    """
    live_ids = select(Product.id).where(Product.status == PRODUCT_STATUS_ACTIVE)
    now = utcnow()
    count = (
        db.session.query(SerialNumber)
        .filter(
            SerialNumber.order_id == order_id,
            SerialNumber.status == SERIAL_SOLD,
            SerialNumber.product_id.in_(live_ids),
        )
        .update(
            {"status": SERIAL_AVAILABLE, "order_id": None, "updated_at": now},
            synchronize_session=False,
        )
    )
    db.session.query(SerialNumber).filter(SerialNumber.order_id == order_id).update(
        {"order_id": None, "updated_at": now}, synchronize_session=False,
    )
    db.session.commit()
    return count


def retire_serials(product_id: str, serial_ids: list[str]) -> Product:
    """Mark available units damaged (removed from stock), then reconcile."""
    _require_serialized(product_id)
    serial_ids = require_id_list(serial_ids, "serial_ids")
    if not serial_ids:
        raise ValidationError("Please select serial numbers to remove")

    skipped = _flip(
        serial_ids,
        from_status=SERIAL_AVAILABLE,
        values={"status": SERIAL_DAMAGED},
        extra_filter=SerialNumber.product_id == product_id,
    )
    product = sync_stock_to_serials(product_id)
    if skipped:
        raise ValidationError(
            "Some serial numbers were not available for this product and were left unchanged",
            details={"product_id": product_id, "serial_ids": skipped},
        )
    return product
