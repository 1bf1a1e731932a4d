from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow


PRODUCT_STATUS_ACTIVE = "active"
PRODUCT_STATUS_TOMBSTONED = "tombstoned"
PRODUCT_STATUSES = (PRODUCT_STATUS_ACTIVE, PRODUCT_STATUS_TOMBSTONED)

# Textual tombstone convention, kept for display compatibility.
# Queries use Product.status, never these prefixes.
GHOST_ID_PREFIX = "GHOST-"
GHOST_NAME_PREFIX = "[DELETED] "
GHOST_SKU_PREFIX = "DELETED-"
GHOST_LOCATION = "Archive"

ADJUSTMENT_IN = "in"
ADJUSTMENT_OUT = "out"
ADJUSTMENT_TYPES = (ADJUSTMENT_IN, ADJUSTMENT_OUT)

SERIAL_AVAILABLE = "available"
SERIAL_SOLD = "sold"
SERIAL_DAMAGED = "damaged"
SERIAL_STATUSES = (SERIAL_AVAILABLE, SERIAL_SOLD, SERIAL_DAMAGED)


def _money(value) -> str | None:
    return None if value is None else f"{value:.2f}"


class Product(db.Model):
    """
    Product master data plus its aggregate stock level.

    STOCK OWNERSHIP:
    - `stock` is written only by ledger_service.adjust_stock(); every write there is
      paired with exactly one StockAdjustment row.
    - For serialized products, stock == count(SerialNumber where status='available').

    TOMBSTONES:
    - A product deleted while order lines still reference it is replaced by a
      ghost row (status='tombstoned'). Listings filter on status.

    version_id is the row version; a stock write against a stale version raises
    StaleDataError instead of silently overwriting a concurrent change.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.CheckConstraint("stock >= 0", name="ck_products_stock_non_negative"),
        db.Index("ix_products_status_name", "status", "name"),
    )

    id = db.Column(db.String(96), primary_key=True)
    sku = db.Column(db.String(64), nullable=False, unique=True)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    category = db.Column(db.String(120), nullable=True, index=True)
    location = db.Column(db.String(120), nullable=True)

    stock = db.Column(db.Integer, nullable=False, default=0)
    reorder_level = db.Column(db.Integer, nullable=False, default=0)
    cost_price = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    selling_price = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    is_serialized = db.Column(db.Boolean, nullable=False, default=False)

    status = db.Column(db.String(16), nullable=False, default=PRODUCT_STATUS_ACTIVE, index=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_tombstoned(self) -> bool:
        return self.status == PRODUCT_STATUS_TOMBSTONED

    def __repr__(self) -> str:
        return f"<Product id={self.id!r} sku={self.sku!r} stock={self.stock}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sku": self.sku,
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "location": self.location,
            "stock": self.stock,
            "reorder_level": self.reorder_level,
            "cost_price": _money(self.cost_price),
            "selling_price": _money(self.selling_price),
            "is_serialized": self.is_serialized,
            "status": self.status,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class StockAdjustment(db.Model):
    """
    Append-only stock ledger row.

    Invariant: new_quantity == previous_quantity + quantity for 'in',
    previous_quantity - quantity for 'out'. Rows are never updated except to
    repoint product_id at a ghost when the product is deleted.
    """
    __tablename__ = "stock_adjustments"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_stock_adjustments_quantity_positive"),
        db.CheckConstraint(
            "adjustment_type IN ('in', 'out')",
            name="ck_stock_adjustments_type",
        ),
        db.Index("ix_stock_adjustments_product_created", "product_id", "created_at"),
    )

    id = db.Column(db.String(32), primary_key=True)
    product_id = db.Column(db.String(96), db.ForeignKey("products.id"), nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False)
    adjustment_type = db.Column(db.String(8), nullable=False)
    reason = db.Column(db.String(255), nullable=False)
    previous_quantity = db.Column(db.Integer, nullable=False)
    new_quantity = db.Column(db.Integer, nullable=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow, index=True)

    product = db.relationship("Product", lazy="joined")

    @property
    def signed_quantity(self) -> int:
        return self.quantity if self.adjustment_type == ADJUSTMENT_IN else -self.quantity

    def to_dict(self, include_product: bool = False) -> dict:
        data = {
            "id": self.id,
            "product_id": self.product_id,
            "quantity": self.quantity,
            "adjustment_type": self.adjustment_type,
            "reason": self.reason,
            "previous_quantity": self.previous_quantity,
            "new_quantity": self.new_quantity,
            "created_at": to_utc_z(self.created_at),
        }
        if include_product:
            p = self.product
            data["product"] = (
                {"id": p.id, "name": p.name, "sku": p.sku, "stock": p.stock, "reorder_level": p.reorder_level}
                if p is not None else None
            )
        return data


class SerialNumber(db.Model):
    """Unit-level record for serialized products."""
    __tablename__ = "serial_numbers"
    __table_args__ = (
        db.UniqueConstraint("product_id", "serial_number", name="uq_serial_numbers_product_serial"),
        db.Index("ix_serial_numbers_product_status", "product_id", "status"),
    )

    id = db.Column(db.String(36), primary_key=True)
    product_id = db.Column(db.String(96), db.ForeignKey("products.id"), nullable=False, index=True)
    serial_number = db.Column(db.String(128), nullable=False)
    status = db.Column(db.String(16), nullable=False, default=SERIAL_AVAILABLE)
    order_id = db.Column(db.String(64), db.ForeignKey("orders.id"), nullable=True, index=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    def __repr__(self) -> str:
        return f"<SerialNumber {self.serial_number!r} product={self.product_id!r} status={self.status}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "serial_number": self.serial_number,
            "status": self.status,
            "order_id": self.order_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class IdentifierSequence(db.Model):
    """
    Allocator for sequential business ids (PRD-1001, ADJ-1001, ...).

    WHY: deriving the next id from "highest existing id" races between
    concurrent creators and breaks once the numeric part changes width.
    """
    __tablename__ = "identifier_sequences"

    prefix = db.Column(db.String(16), primary_key=True)
    next_number = db.Column(db.Integer, nullable=False)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)
