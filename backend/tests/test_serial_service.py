# Overview: Pytest coverage for serial tracking and stock reconciliation.

import pytest

from stockledger.extensions import db
from stockledger.models import Product, SerialNumber, StockAdjustment
from stockledger.services.serial_service import (
    add_serials,
    count_available,
    list_serials,
    mark_available,
    mark_sold,
    release_for_order,
    retire_serials,
    sync_stock_to_serials,
)
from stockledger.validation import ValidationError, ConflictError


def _stock(product_id):
    db.session.expire_all()
    return db.session.get(Product, product_id).stock


def _adjustment_count(product_id):
    return StockAdjustment.query.filter_by(product_id=product_id).count()


class TestReconciliation:
    def test_serial_entry_sets_stock(self, db_session, phone):
        assert phone.stock == 3
        assert count_available(phone.id) == 3
        row = StockAdjustment.query.filter_by(product_id=phone.id).one()
        assert row.reason == "Synced to serial numbers (3 available)"

    def test_sync_is_idempotent(self, db_session, phone):
        before = _adjustment_count(phone.id)
        sync_stock_to_serials(phone.id)
        sync_stock_to_serials(phone.id)
        assert _adjustment_count(phone.id) == before
        assert _stock(phone.id) == 3

    def test_sync_follows_added_serials(self, db_session, phone):
        add_serials(phone.id, ["SN-4", " SN-5 ", ""])
        assert _stock(phone.id) == 5
        assert _stock(phone.id) == count_available(phone.id)

    def test_sync_rejects_plain_product(self, db_session, widget):
        with pytest.raises(ValidationError):
            sync_stock_to_serials(widget.id)

    def test_retire_removes_from_stock(self, db_session, phone, serial_ids):
        sid = serial_ids(phone.id)[0]
        retire_serials(phone.id, [sid])
        assert db.session.get(SerialNumber, sid).status == "damaged"
        assert _stock(phone.id) == 2

    def test_retire_reports_unavailable_ids(self, db_session, phone, serial_ids):
        good = serial_ids(phone.id)[0]
        with pytest.raises(ValidationError) as exc:
            retire_serials(phone.id, [good, "missing-id"])
        assert exc.value.details["serial_ids"] == ["missing-id"]
        # the valid one was retired and stock still matches
        assert _stock(phone.id) == 2


class TestAddSerials:
    def test_duplicate_in_batch(self, db_session, phone):
        with pytest.raises(ConflictError):
            add_serials(phone.id, ["SN-9", "SN-9"])
        assert _stock(phone.id) == 3

    def test_already_recorded(self, db_session, phone):
        with pytest.raises(ConflictError):
            add_serials(phone.id, ["SN-1", "SN-10"])
        assert count_available(phone.id) == 3

    def test_empty_batch(self, db_session, phone):
        with pytest.raises(ValidationError):
            add_serials(phone.id, ["", "  "])

    def test_same_serial_on_other_product_is_fine(self, db_session, phone, make_product):
        tablet = make_product("TAB-001", is_serialized=True, serial_numbers=["SN-1"])
        assert tablet.stock == 1


class TestStatusFlips:
    def test_mark_sold_then_available(self, db_session, phone, serial_ids):
        ids = serial_ids(phone.id)[:2]
        mark_sold(ids, None)
        assert sorted(serial_ids(phone.id, "sold")) == sorted(ids)

        mark_available(ids)
        assert len(serial_ids(phone.id)) == 3
        assert all(db.session.get(SerialNumber, i).order_id is None for i in ids)

    def test_mark_sold_partial_reports_and_keeps_flipped(self, db_session, phone, serial_ids):
        first, second, _ = serial_ids(phone.id)
        mark_sold([first], None)

        with pytest.raises(ValidationError) as exc:
            mark_sold([first, second], None)

        assert exc.value.details["serial_ids"] == [first]
        db.session.expire_all()
        assert db.session.get(SerialNumber, second).status == "sold"

    def test_mark_available_requires_sold(self, db_session, phone, serial_ids):
        with pytest.raises(ValidationError):
            mark_available(serial_ids(phone.id)[:1])

    def test_empty_lists_are_noops(self, db_session):
        mark_sold([], "ORD-1")
        mark_available([])

    def test_list_serials_filter(self, db_session, phone, serial_ids):
        mark_sold(serial_ids(phone.id)[:1], None)
        assert len(list_serials(phone.id)) == 3
        assert len(list_serials(phone.id, status="sold")) == 1
        with pytest.raises(ValidationError):
            list_serials(phone.id, status="lost")

    def test_release_for_order(self, db_session, phone, serial_ids):
        from stockledger.services.order_service import create_order

        ids = serial_ids(phone.id)[:2]
        order = create_order("Bo", [{"product_id": phone.id, "quantity": 2, "serial_ids": ids}])

        assert len(serial_ids(phone.id, "sold")) == 2
        assert release_for_order(order.id) == 2
        assert len(serial_ids(phone.id)) == 3
