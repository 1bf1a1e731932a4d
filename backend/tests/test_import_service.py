# Overview: Pytest coverage for bulk product import.

import pytest

from stockledger.models import Product
from stockledger.services.import_service import import_products
from stockledger.validation import ValidationError


class TestImportProducts:
    def test_rows_succeed_or_fail_independently(self, db_session):
        result = import_products([
            {"sku": "IMP-1", "name": "One", "stock": 4},
            {"sku": "IMP-2"},
            {"sku": "IMP-1", "name": "Duplicate"},
            {"sku": "IMP-3", "name": "Three", "selling_price": "abc"},
            {"sku": "IMP-4", "name": "Four", "is_serialized": True, "serial_numbers": ["S1", "S2"]},
            "not a row",
        ])

        assert result["created"] == 2
        assert result["failed"] == 4
        assert [r["ok"] for r in result["results"]] == [True, False, False, False, True, False]
        assert [r["row"] for r in result["results"]] == [1, 2, 3, 4, 5, 6]
        assert "name" in result["results"][1]["error"]
        assert "already exists" in result["results"][2]["error"]

        stocks = {p.sku: p.stock for p in Product.query}
        assert stocks == {"IMP-1": 4, "IMP-4": 2}

    def test_rows_must_be_a_list(self, db_session):
        with pytest.raises(ValidationError):
            import_products(None)

    def test_empty_batch(self, db_session):
        assert import_products([]) == {"created": 0, "failed": 0, "results": []}

    def test_database_error_fails_only_its_row(self, db_session, monkeypatch):
        from sqlalchemy.exc import IntegrityError

        from stockledger.services import import_service

        real_create = import_service.create_product

        def create_or_collide(*, patch):
            if patch["sku"] == "IMP-RACE":
                raise IntegrityError("INSERT INTO products", {}, Exception("UNIQUE constraint failed"))
            return real_create(patch=patch)

        monkeypatch.setattr(import_service, "create_product", create_or_collide)
        result = import_products([
            {"sku": "IMP-1", "name": "One"},
            {"sku": "IMP-RACE", "name": "Raced"},
            {"sku": "IMP-2", "name": "Two"},
        ])

        assert [r["ok"] for r in result["results"]] == [True, False, True]
        assert "IntegrityError" in result["results"][1]["error"]
        assert sorted(p.sku for p in Product.query) == ["IMP-1", "IMP-2"]
