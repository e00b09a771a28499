"""
Data Models Package

This package contains all Pydantic models used in Pocket Ledger.
All data flowing through the system must conform to these schemas.
"""

from pocket_ledger.models.ledger import (
    ExpenseCategory,
    LedgerResponse,
    Transaction,
    TransactionDraft,
    TransactionType,
    UserProfile,
    Wallet,
    WalletDraft,
    to_money,
)
from pocket_ledger.models.stats import (
    StatsBucket,
    StatsResult,
    StatsWindow,
    WalletSummary,
)

__all__ = [
    # Ledger models
    "ExpenseCategory",
    "LedgerResponse",
    "Transaction",
    "TransactionDraft",
    "TransactionType",
    "UserProfile",
    "Wallet",
    "WalletDraft",
    "to_money",
    # Statistics models
    "StatsBucket",
    "StatsResult",
    "StatsWindow",
    "WalletSummary",
]
