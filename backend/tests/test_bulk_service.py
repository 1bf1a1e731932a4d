# Overview: Pytest coverage for the clear-all sequences.

from stockledger.models import Order, OrderItem, Product, SerialNumber, StockAdjustment
from stockledger.services.bulk_service import clear_all_inventory, clear_all_orders
from stockledger.services.integrity_service import live_products, tombstoned_products
from stockledger.services.order_service import create_order, get_order


def _seed(widget, gadget, phone, serial_ids):
    create_order("A", [{"product_id": widget.id, "quantity": 2}])
    create_order("B", [
        {"product_id": widget.id, "quantity": 1},
        {"product_id": phone.id, "quantity": 1, "serial_ids": serial_ids(phone.id)[:1]},
    ])


class TestClearAll:
    def test_inventory_then_orders_leaves_nothing(self, db_session, widget, gadget, phone, serial_ids):
        _seed(widget, gadget, phone, serial_ids)

        inv = clear_all_inventory()
        assert inv["ghosts_created"] == 2
        assert inv["products_deleted"] == 3

        orders = clear_all_orders()
        assert orders["orders_deleted"] == 2
        assert orders["ghosts_deleted"] == 2

        assert live_products().count() == 0
        assert tombstoned_products().count() == 0
        assert Product.query.count() == 0
        assert OrderItem.query.count() == 0
        assert Order.query.count() == 0
        assert StockAdjustment.query.count() == 0
        assert SerialNumber.query.count() == 0

    def test_clear_inventory_keeps_order_history(self, db_session, widget, gadget, phone, serial_ids):
        _seed(widget, gadget, phone, serial_ids)

        clear_all_inventory()

        assert live_products().count() == 0
        assert StockAdjustment.query.count() == 0
        ghost_ids = {g.id for g in tombstoned_products()}
        assert {i.product_id for i in OrderItem.query} == ghost_ids
        # the sold unit stays with the phone's ghost
        assert SerialNumber.query.count() == 1

    def test_clear_orders_first_keeps_products(self, db_session, widget, gadget, phone, serial_ids):
        _seed(widget, gadget, phone, serial_ids)

        summary = clear_all_orders()

        assert summary == {"items_deleted": 3, "orders_deleted": 2, "ghosts_deleted": 0}
        assert live_products().count() == 3
        assert SerialNumber.query.filter(SerialNumber.order_id.isnot(None)).count() == 0

    def test_ghost_lives_until_its_orders_are_cleared(self, db_session, widget):
        order = create_order("A", [{"product_id": widget.id, "quantity": 1}])
        clear_all_inventory()
        assert get_order(order.id).items[0].product.status == "tombstoned"

        clear_all_orders()
        assert tombstoned_products().count() == 0

    def test_empty_store(self, db_session):
        assert clear_all_inventory()["products_deleted"] == 0
        assert clear_all_orders()["orders_deleted"] == 0
