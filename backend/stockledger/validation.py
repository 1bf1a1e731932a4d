from __future__ import annotations
from datetime import datetime
from decimal import Decimal, InvalidOperation

from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import Boolean, Integer, Numeric, String, Text, DateTime
from sqlalchemy.orm import DeclarativeMeta

from .time_utils import parse_iso_datetime


# Upper bound for cost/selling prices; Numeric(12, 2) holds more, the catalog doesn't need it
MAX_PRICE = Decimal("9999999.99")

_TRUE_STRINGS = {"1", "true", "yes", "y"}


class ValidationError(ValueError):
    """400-level input problem (missing reason, bad quantity, unknown id)."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class NotFoundError(ValidationError):
    """Unknown id; routes answer 404 instead of 400."""


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., duplicate SKU or serial)."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Which payload keys a caller may send for a model:
    - writable_fields: allowlist; anything else is rejected outright
    - required_on_create: must be present and non-blank when partial=False
    """
    writable_fields: set[str]
    required_on_create: set[str] = field(default_factory=set)


def coerce_int(key: str, value: Any) -> int:
    """Ints and plain digit strings only: no bools, floats, "2.0" or "1e3"."""
    if isinstance(value, bool):
        raise ValidationError(f"{key} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        text = value.strip()
        digits = text[1:] if text[:1] in "+-" else text
        if digits.isdecimal():
            return int(text)
    raise ValidationError(f"{key} must be an integer")


def coerce_money(key: str, value: Any) -> Decimal:
    """Number or numeric string -> Decimal rounded to cents."""
    if isinstance(value, bool):
        raise ValidationError(f"{key} must be a number")
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{key} must be a number")
    if not amount.is_finite():
        raise ValidationError(f"{key} must be a number")
    return amount.quantize(Decimal("0.01"))


def _coerce_column(col, value: Any):
    coltype = col.type

    if isinstance(coltype, Boolean):
        if isinstance(value, str):
            return value.strip().lower() in _TRUE_STRINGS
        return bool(value)

    if isinstance(coltype, Integer):
        return coerce_int(col.key, value)

    if isinstance(coltype, Numeric):
        return coerce_money(col.key, value)

    if isinstance(coltype, DateTime):
        if isinstance(value, datetime):
            return value
        try:
            parsed = parse_iso_datetime(value) if isinstance(value, str) else None
        except ValueError:
            parsed = None
        if parsed is None:
            raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
        return parsed

    if isinstance(coltype, (String, Text)):
        text = str(value).strip()
        if text == "" and not col.nullable:
            raise ValidationError(f"{col.key} cannot be blank")
        length = getattr(coltype, "length", None)
        if length and len(text) > length:
            raise ValidationError(f"{col.key} exceeds max length {length}")
        return text

    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Turn a JSON body into a patch dict for `model`.

    Column keys are coerced using the column's SQLAlchemy type, nullability
    and length. Allowlisted keys that are not columns (e.g. `serial_numbers`
    on product creation) are passed through for the service to check.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    unknown = sorted(k for k in payload if k not in policy.writable_fields)
    if unknown:
        raise ValidationError(f"Field not allowed: {', '.join(unknown)}")

    if not partial:
        missing = sorted(k for k in policy.required_on_create if payload.get(k) in (None, ""))
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    columns = {c.key: c for c in model.__mapper__.columns}
    patch: dict = {}
    for key, raw in payload.items():
        col = columns.get(key)
        if col is None:
            patch[key] = raw
        elif raw is None:
            if not col.nullable:
                raise ValidationError(f"{key} cannot be null")
            patch[key] = None
        else:
            patch[key] = _coerce_column(col, raw)
    return patch


def enforce_rules_product(patch: dict) -> None:
    """Product rules the column metadata cannot express."""
    for key in ("cost_price", "selling_price"):
        price = patch.get(key)
        if price is not None and not (0 <= price <= MAX_PRICE):
            raise ValidationError(f"{key} must be between 0 and {MAX_PRICE}")

    for key in ("stock", "reorder_level"):
        if patch.get(key) is not None and patch[key] < 0:
            raise ValidationError(f"{key} must be >= 0")

    serials = patch.get("serial_numbers")
    if serials is not None:
        if not isinstance(serials, list) or not all(isinstance(s, str) for s in serials):
            raise ValidationError("serial_numbers must be a list of strings")
        if not patch.get("is_serialized"):
            raise ValidationError("serial_numbers are only accepted for serialized products")


def require_reason(reason: Any) -> str:
    if reason is None or not str(reason).strip():
        raise ValidationError("reason is required")
    reason = str(reason).strip()
    if len(reason) > 255:
        raise ValidationError("reason exceeds max length 255")
    return reason


def require_positive_quantity(value: Any, key: str = "quantity") -> int:
    qty = coerce_int(key, value)
    if qty <= 0:
        raise ValidationError(f"{key} must be > 0")
    return qty


def require_id_list(value: Any, key: str) -> list[str]:
    if not isinstance(value, (list, tuple)) or not all(isinstance(v, str) and v for v in value):
        raise ValidationError(f"{key} must be a list of ids")
    if len(set(value)) != len(value):
        raise ValidationError(f"{key} contains duplicates")
    return list(value)
