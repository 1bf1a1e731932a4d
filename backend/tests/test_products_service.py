# Overview: Pytest coverage for the product catalog and identifier sequences.

from decimal import Decimal

import pytest

from stockledger.models import StockAdjustment
from stockledger.services.ledger_service import adjust_stock
from stockledger.services.products_service import (
    create_product,
    get_by_sku,
    get_low_stock,
    get_out_of_stock,
    list_categories,
    list_locations,
    list_products,
    stock_status,
    update_product,
    validate_product_create,
)
from stockledger.services.sequence_service import next_identifier
from stockledger.validation import ValidationError, ConflictError


class TestCreateProduct:
    def test_ids_are_sequential(self, db_session, make_product):
        assert make_product("A-1").id == "PRD-1001"
        assert make_product("A-2").id == "PRD-1002"

    def test_opening_stock_goes_through_ledger(self, db_session, widget):
        row = StockAdjustment.query.filter_by(product_id=widget.id).one()
        assert (row.adjustment_type, row.quantity, row.reason) == ("in", 10, "Initial stock")
        assert (row.previous_quantity, row.new_quantity) == (0, 10)

    def test_zero_stock_writes_no_adjustment(self, db_session, make_product):
        p = make_product("EMPTY-1")
        assert p.stock == 0
        assert StockAdjustment.query.count() == 0

    def test_duplicate_sku(self, db_session, widget, make_product):
        with pytest.raises(ConflictError):
            make_product("WID-001")

    def test_required_fields(self, db_session):
        with pytest.raises(ValidationError):
            validate_product_create({"sku": "X-1"})

    def test_unknown_field(self, db_session):
        with pytest.raises(ValidationError):
            validate_product_create({"sku": "X-1", "name": "X", "status": "tombstoned"})

    @pytest.mark.parametrize("payload", [
        {"selling_price": "-1"},
        {"cost_price": "10000000"},
        {"stock": -1},
        {"reorder_level": -3},
        {"serial_numbers": ["SN-1"]},
    ])
    def test_business_rules(self, db_session, payload):
        with pytest.raises(ValidationError):
            validate_product_create({"sku": "X-1", "name": "X", **payload})

    def test_serialized_refuses_plain_stock(self, db_session, make_product):
        with pytest.raises(ValidationError):
            make_product("PHN-9", stock=2, is_serialized=True)

    def test_serialized_duplicate_serials_leave_nothing_behind(self, db_session, make_product):
        with pytest.raises(ConflictError):
            make_product("PHN-9", is_serialized=True, serial_numbers=["A", "A"])
        assert get_by_sku("PHN-9") is None

    def test_prices_quantized(self, db_session, make_product):
        p = make_product("PRICE-1", selling_price="19.999")
        assert p.selling_price == Decimal("20.00")


class TestUpdateProduct:
    def test_update_fields(self, db_session, widget):
        patch = {"name": "Widget Pro", "location": "C3"}
        p = update_product(widget.id, patch)
        assert (p.name, p.location) == ("Widget Pro", "C3")

    def test_stock_cannot_be_edited(self, db_session, widget):
        with pytest.raises(ValidationError):
            update_product(widget.id, {"stock": 99})
        # same value is harmless
        update_product(widget.id, {"stock": 10, "name": "Same"})

    def test_sku_collision(self, db_session, widget, gadget):
        with pytest.raises(ConflictError):
            update_product(widget.id, {"sku": gadget.sku})

    def test_serialized_flag_locked_once_stocked(self, db_session, widget, make_product):
        with pytest.raises(ValidationError):
            update_product(widget.id, {"is_serialized": True})

        empty = make_product("EMPTY-2")
        assert update_product(empty.id, {"is_serialized": True}).is_serialized is True


class TestListings:
    def test_search_and_category(self, db_session, widget, gadget):
        assert [p.id for p in list_products(search="wid")] == [widget.id]
        assert [p.id for p in list_products(search="gad-0")] == [gadget.id]
        assert [p.id for p in list_products(category="Hardware")] == [widget.id]

    def test_low_and_out_of_stock(self, db_session, widget, gadget, make_product):
        update_product(gadget.id, {"reorder_level": 5})
        empty = make_product("EMPTY-3")
        adjust_stock(widget.id, -2, "sale")

        assert [p.id for p in get_low_stock()] == [empty.id, gadget.id]
        assert [p.id for p in get_out_of_stock()] == [empty.id]

    def test_stock_status(self, db_session, widget, gadget, make_product):
        assert stock_status(widget, threshold=5) == "in_stock"
        assert stock_status(gadget, threshold=5) == "low_stock"
        assert stock_status(make_product("EMPTY-4"), threshold=5) == "out_of_stock"

    def test_categories_and_locations(self, db_session, widget, gadget):
        assert list_categories() == ["Electronics", "Hardware"]
        assert list_locations() == ["A1", "B2"]


class TestSequences:
    def test_prefixes_are_independent(self, db_session):
        assert next_identifier("TST") == "TST-1001"
        assert next_identifier("TST") == "TST-1002"
        assert next_identifier("OTH") == "OTH-1001"
