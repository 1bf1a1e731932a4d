from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow
from .inventory import _money


ORDER_PENDING = "pending"
ORDER_PROCESSING = "processing"
ORDER_SHIPPED = "shipped"
ORDER_DELIVERED = "delivered"
ORDER_CANCELLED = "cancelled"
ORDER_STATUSES = (ORDER_PENDING, ORDER_PROCESSING, ORDER_SHIPPED, ORDER_DELIVERED, ORDER_CANCELLED)


class Order(db.Model):
    __tablename__ = "orders"

    id = db.Column(db.String(64), primary_key=True)
    customer = db.Column(db.String(255), nullable=False)
    status = db.Column(db.String(16), nullable=False, default=ORDER_PENDING, index=True)
    total_items = db.Column(db.Integer, nullable=False, default=0)
    total_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow, index=True)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    items = db.relationship("OrderItem", back_populates="order", lazy=True, order_by="OrderItem.id")

    def __repr__(self) -> str:
        return f"<Order id={self.id!r} status={self.status}>"

    def to_dict(self, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "customer": self.customer,
            "status": self.status,
            "total_items": self.total_items,
            "total_amount": _money(self.total_amount),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class OrderItem(db.Model):
    """
    Order line. `price` is the unit price snapshot taken when the order was
    placed; it is never recomputed from the product's current price.
    """
    __tablename__ = "order_items"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_order_items_quantity_positive"),
    )

    id = db.Column(db.String(64), primary_key=True)
    order_id = db.Column(db.String(64), db.ForeignKey("orders.id"), nullable=False, index=True)
    product_id = db.Column(db.String(96), db.ForeignKey("products.id"), nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False)
    price = db.Column(db.Numeric(12, 2), nullable=False)

    order = db.relationship("Order", back_populates="items")
    # Shallow, read-only expansion for display
    product = db.relationship("Product", lazy="joined", viewonly=True)

    def to_dict(self, include_product: bool = True) -> dict:
        data = {
            "id": self.id,
            "order_id": self.order_id,
            "product_id": self.product_id,
            "quantity": self.quantity,
            "price": _money(self.price),
        }
        if include_product:
            p = self.product
            data["product"] = (
                {"id": p.id, "name": p.name, "sku": p.sku, "status": p.status}
                if p is not None else None
            )
        return data
