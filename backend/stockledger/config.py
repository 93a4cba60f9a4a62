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

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Identity headers supplied by the caller
    TENANT_HEADER = os.environ.get("TENANT_HEADER", "Tenant-ID")
    USER_HEADER = os.environ.get("USER_HEADER", "User-ID")

    # Plan limits
    FREE_PLAN_MATERIAL_LIMIT = int(os.environ.get("FREE_PLAN_MATERIAL_LIMIT", "5"))

    RECENT_TRANSACTIONS_LIMIT = int(os.environ.get("RECENT_TRANSACTIONS_LIMIT", "10"))

    # Per-material critical section
    LEDGER_LOCK_TIMEOUT_SECONDS = float(os.environ.get("LEDGER_LOCK_TIMEOUT_SECONDS", "10"))
    LEDGER_RETRY_ATTEMPTS = int(os.environ.get("LEDGER_RETRY_ATTEMPTS", "3"))
