# backend/posting_engine/config.py
from __future__ import annotations
import os


def _env_flag(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/ledger.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///ledger.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Stock may not go below zero on issue unless explicitly allowed
    LEDGER_ALLOW_NEGATIVE_STOCK = _env_flag("LEDGER_ALLOW_NEGATIVE_STOCK", False)

    # Store-to-store issues post the destination receive in the same transaction
    LEDGER_DOUBLE_ENTRY_ISSUING = _env_flag("LEDGER_DOUBLE_ENTRY_ISSUING", True)

    # Posting a sale issues stock from the selling store to the customer
    LEDGER_AFFECT_STOCK_AT_CASHIER = _env_flag("LEDGER_AFFECT_STOCK_AT_CASHIER", True)

    LEDGER_DEFAULT_DEBTOR_TYPE = os.environ.get("LEDGER_DEFAULT_DEBTOR_TYPE", "Individual")
