"""Ledger module for wallet bindings and the transaction log."""

from solbot.ledger.database import get_db, init_db
from solbot.ledger.models import (
    Trader,
    TransactionKind,
    TransactionRecord,
    User,
)
from solbot.ledger.repository import LedgerRepository

__all__ = [
    # Models
    "User",
    "TransactionRecord",
    "Trader",
    # Enums
    "TransactionKind",
    # Database
    "get_db",
    "init_db",
    "LedgerRepository",
]
