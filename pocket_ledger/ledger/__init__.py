"""Ledger package: transaction reconciliation, wallets and user profiles."""

from pocket_ledger.ledger.engine import (
    InsufficientFundsError,
    InvariantViolationError,
    LedgerEngine,
    LedgerError,
    LedgerValidationError,
    apply_transaction_effect,
)
from pocket_ledger.ledger.users import UserService
from pocket_ledger.ledger.wallets import WalletService

__all__ = [
    "InsufficientFundsError",
    "InvariantViolationError",
    "LedgerEngine",
    "LedgerError",
    "LedgerValidationError",
    "UserService",
    "WalletService",
    "apply_transaction_effect",
]
