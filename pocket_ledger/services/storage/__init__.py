"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
Google Sheets is the persistent backend; the in-memory stores back the
tests and local runs.
"""

from pocket_ledger.services.storage.interface import (
    ConflictError,
    ConnectionError,
    NotFoundError,
    StorageError,
    TransactionStorageInterface,
    UserStorageInterface,
    WalletStorageInterface,
)
from pocket_ledger.services.storage.memory import (
    InMemoryTransactionStorage,
    InMemoryUserStorage,
    InMemoryWalletStorage,
)
from pocket_ledger.services.storage.google_sheets import (
    GoogleSheetsClient,
    GoogleSheetsTransactionStorage,
    GoogleSheetsUserStorage,
    GoogleSheetsWalletStorage,
)

__all__ = [
    # Interfaces
    "TransactionStorageInterface",
    "UserStorageInterface",
    "WalletStorageInterface",
    # Exceptions
    "ConflictError",
    "ConnectionError",
    "NotFoundError",
    "StorageError",
    # In-memory implementation
    "InMemoryTransactionStorage",
    "InMemoryUserStorage",
    "InMemoryWalletStorage",
    # Google Sheets implementation
    "GoogleSheetsClient",
    "GoogleSheetsTransactionStorage",
    "GoogleSheetsUserStorage",
    "GoogleSheetsWalletStorage",
]
