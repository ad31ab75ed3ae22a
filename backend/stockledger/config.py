# backend/stockledger/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/stockledger.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///stockledger.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Applied when a product form omits low_stock_threshold
    DEFAULT_LOW_STOCK_THRESHOLD = float(
        os.environ.get("STOCKLEDGER_DEFAULT_LOW_STOCK_THRESHOLD", "5")
    )

    # Row count for the top-customers report
    TOP_CUSTOMERS_LIMIT = int(os.environ.get("STOCKLEDGER_TOP_CUSTOMERS", "5"))

    LOG_LEVEL = os.environ.get("STOCKLEDGER_LOG_LEVEL", "INFO")
