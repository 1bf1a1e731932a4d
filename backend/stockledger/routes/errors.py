# Overview: Maps domain exceptions to JSON error responses shared by all blueprints.

from __future__ import annotations

from ..services.ledger_service import InvariantViolation
from ..services.order_service import InvalidStatusTransition, InsufficientStock
from ..services.saga import SagaAborted
from ..time_utils import parse_iso_datetime
from ..validation import ValidationError, NotFoundError, ConflictError


def error_response(e: Exception) -> tuple[dict, int]:
    """
    404 unknown id, 409 conflict, 400 rule/input problems, 500 for a
    multi-step command that stopped part-way (details say what stayed committed).
    """
    body = {"error": str(e)}
    details = getattr(e, "details", None)
    if details:
        body["details"] = details

    if isinstance(e, NotFoundError):
        return body, 404
    if isinstance(e, ConflictError):
        return body, 409
    if isinstance(e, SagaAborted):
        return body, 500
    if isinstance(e, (InvariantViolation, InvalidStatusTransition, InsufficientStock)):
        body["type"] = type(e).__name__
    return body, 400


def parse_date_arg(args, key: str):
    """Optional ISO-8601 query arg -> UTC-naive datetime (ValidationError on junk)."""
    raw = args.get(key)
    try:
        return parse_iso_datetime(raw)
    except ValueError:
        raise ValidationError(f"{key} must be an ISO-8601 datetime")
