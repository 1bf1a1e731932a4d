# backend/stockledger/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # Relative sqlite URIs resolve against the instance folder
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///stockledger.sqlite3",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Level for app.logger (DEBUG, INFO, WARNING, ...)
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

    # Attempts for a stock write that lost a row-version race
    STOCK_WRITE_ATTEMPTS = int(os.environ.get("STOCK_WRITE_ATTEMPTS", "3"))

    # Fallback "low stock" threshold for products without a reorder level
    LOW_STOCK_THRESHOLD = int(os.environ.get("LOW_STOCK_THRESHOLD", "5"))

    # Attempts to find an unused ORD-<timestamp>-<rand> id
    ORDER_ID_ATTEMPTS = int(os.environ.get("ORDER_ID_ATTEMPTS", "5"))
