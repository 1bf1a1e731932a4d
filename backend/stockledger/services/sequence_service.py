# Overview: Sequential business identifiers (PRD-1001, ADJ-1001, ...).

from __future__ import annotations

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import IdentifierSequence


FIRST_NUMBER = 1001

PRODUCT_PREFIX = "PRD"
ADJUSTMENT_PREFIX = "ADJ"


class SequenceError(Exception):
    """Raised when identifier allocation fails."""
    pass


def _current(prefix: str) -> int:
    return (
        db.session.query(IdentifierSequence.next_number)
        .filter_by(prefix=prefix)
        .scalar()
    )


def next_identifier(prefix: str) -> str:
    """
    Allocate the next "<prefix>-<n>" id.

    The increment is a single UPDATE ... SET next_number = next_number + 1, so
    two allocators never read the same number. The allocation is flushed, not
    committed: it becomes durable together with the row that uses it, and is
    given back if that write rolls back.
    """
    if not prefix:
        raise SequenceError("prefix is required")

    stmt = (
        update(IdentifierSequence)
        .where(IdentifierSequence.prefix == prefix)
        .values(next_number=IdentifierSequence.next_number + 1)
    )

    result = db.session.execute(stmt)
    if result.rowcount:
        db.session.flush()
        number = _current(prefix) - 1
    else:
        seq = IdentifierSequence(prefix=prefix, next_number=FIRST_NUMBER + 1)
        db.session.add(seq)
        try:
            with db.session.begin_nested():
                db.session.flush()
            number = FIRST_NUMBER
        except IntegrityError:
            # Another allocator created the row first
            result = db.session.execute(stmt)
            if not result.rowcount:
                raise SequenceError(f"could not allocate {prefix} id")
            db.session.flush()
            number = _current(prefix) - 1

    return f"{prefix}-{number}"
