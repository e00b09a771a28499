"""Services package."""

from pocket_ledger.services.image import (
    CloudinaryUploadService,
    ImageUploadError,
    ImageUploadInterface,
)
from pocket_ledger.services.storage import (
    ConflictError,
    ConnectionError,
    GoogleSheetsClient,
    GoogleSheetsTransactionStorage,
    GoogleSheetsUserStorage,
    GoogleSheetsWalletStorage,
    InMemoryTransactionStorage,
    InMemoryUserStorage,
    InMemoryWalletStorage,
    NotFoundError,
    StorageError,
    TransactionStorageInterface,
    UserStorageInterface,
    WalletStorageInterface,
)

__all__ = [
    # Image services
    "CloudinaryUploadService",
    "ImageUploadError",
    "ImageUploadInterface",
    # Storage services
    "ConflictError",
    "ConnectionError",
    "GoogleSheetsClient",
    "GoogleSheetsTransactionStorage",
    "GoogleSheetsUserStorage",
    "GoogleSheetsWalletStorage",
    "InMemoryTransactionStorage",
    "InMemoryUserStorage",
    "InMemoryWalletStorage",
    "NotFoundError",
    "StorageError",
    "TransactionStorageInterface",
    "UserStorageInterface",
    "WalletStorageInterface",
]
