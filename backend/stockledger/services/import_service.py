# Overview: Bulk product import; every row is created (or rejected) on its own.

from __future__ import annotations

from typing import Any

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..validation import ValidationError, ConflictError
from .products_service import create_product, validate_product_create
from .saga import SagaAborted


MAX_ROWS = 1000


def _import_row(row: dict[str, Any]) -> str:
    patch = validate_product_create(row)
    return create_product(patch=patch).id


def import_products(rows: list[dict[str, Any]]) -> dict[str, Any]:
    """
    Create one product per row.

    A failing row does not stop the batch; its error is reported against its
    1-based row number and the remaining rows are still attempted.
    """
    if not isinstance(rows, list):
        raise ValidationError("rows must be a list")
    if len(rows) > MAX_ROWS:
        raise ValidationError(f"At most {MAX_ROWS} rows per import")

    results = []
    for number, row in enumerate(rows, start=1):
        try:
            product_id = _import_row(row)
        except (ValidationError, ConflictError, SagaAborted) as exc:
            db.session.rollback()
            results.append({"row": number, "ok": False, "error": str(exc)})
        except SQLAlchemyError as exc:
            db.session.rollback()
            current_app.logger.warning("Import row %d failed in the database: %s", number, exc)
            results.append({"row": number, "ok": False, "error": f"Database error: {exc.__class__.__name__}"})
        else:
            results.append({"row": number, "ok": True, "product_id": product_id})

    created = sum(1 for r in results if r["ok"])
    current_app.logger.info("Imported %d of %d product rows", created, len(results))
    return {
        "created": created,
        "failed": len(results) - created,
        "results": results,
    }
