# Overview: Retry helper for writes that lose a row-version race.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


def run_with_retry(func, *, attempts: int | None = None, backoff_base: float = 0.05):
    """
    Call func(), starting over when another writer got to the row first.

    StaleDataError (Product.version_id moved since we read it) and
    OperationalError (database locked) roll the session back and try again,
    up to STOCK_WRITE_ATTEMPTS times with exponential backoff. func must
    re-read and re-validate on every call; it sees a clean session each time.
    """
    if attempts is None:
        attempts = current_app.config.get("STOCK_WRITE_ATTEMPTS", 3)

    attempt = 1
    while True:
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            if attempt >= attempts:
                current_app.logger.warning("Giving up after %d conflicting writes: %s", attempt, exc)
                raise
            current_app.logger.warning(
                "Concurrent write conflict (attempt %d/%d), retrying: %s", attempt, attempts, exc
            )
            time.sleep(backoff_base * (2 ** (attempt - 1)))
            attempt += 1
