from .inventory import Product, StockAdjustment, SerialNumber, IdentifierSequence
from .orders import Order, OrderItem

__all__ = [
    'Product', 'StockAdjustment', 'SerialNumber', 'IdentifierSequence',
    'Order', 'OrderItem',
]
