from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

# Stored datetimes are naive and always mean UTC.


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _as_utc(dt: datetime) -> datetime:
    return dt.replace(tzinfo=timezone.utc) if dt.tzinfo is None else dt.astimezone(timezone.utc)


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    ISO-8601 text from a query string or payload -> stored (UTC-naive) form.

    Blank means "no bound" and gives None. Offsets and a trailing Z are
    converted; text without an offset is taken to be UTC already.
    Raises ValueError for anything fromisoformat() rejects.
    """
    text = (value or "").strip()
    if not text:
        return None
    if text[-1] in "zZ":
        text = text[:-1] + "+00:00"
    return _as_utc(datetime.fromisoformat(text)).replace(tzinfo=None)


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """Stored datetime -> "YYYY-MM-DDTHH:MM:SSZ" for JSON (seconds precision)."""
    if dt is None:
        return None
    return _as_utc(dt).strftime("%Y-%m-%dT%H:%M:%SZ")


def compact_timestamp(dt: Optional[datetime] = None) -> str:
    """YYYYMMDDHHMMSS stamp used in order and order-line ids."""
    return (dt or utcnow()).strftime("%Y%m%d%H%M%S")


def epoch_millis(dt: Optional[datetime] = None) -> int:
    """Milliseconds since the epoch; ghost ids and skus embed this."""
    return int(_as_utc(dt or utcnow()).timestamp() * 1000)
