"""
Abstract Storage Interface

The ledger talks to a document store through these interfaces only.
This allows us to:
1. Swap Google Sheets for a real document database later
2. Use in-memory storage for testing
3. Keep the reconciliation logic free of persistence details

The store offers single-document operations only. There are no
multi-document transactions; the ledger orders its writes instead and
relies on the wallet version check to detect concurrent edits.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Iterable, Optional

from pocket_ledger.models.ledger import Transaction, UserProfile, Wallet


class WalletStorageInterface(ABC):
    """Storage operations for wallets."""

    @abstractmethod
    async def get_wallet(self, wallet_id: str) -> Optional[Wallet]:
        """
        Retrieve a wallet by its ID.

        Returns:
            The wallet if found, None otherwise
        """
        pass

    @abstractmethod
    async def save_wallet(
        self,
        wallet: Wallet,
        expected_version: Optional[int] = None,
    ) -> Wallet:
        """
        Insert a wallet or replace the stored copy.

        Args:
            wallet: The wallet to write
            expected_version: If given, the stored wallet must still be at
                this version, otherwise nothing is written

        Returns:
            The stored wallet, with its version bumped

        Raises:
            ConflictError: If expected_version does not match
            NotFoundError: If expected_version is given for a missing wallet
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def delete_wallet(self, wallet_id: str) -> bool:
        """
        Delete a wallet by ID.

        Transactions are not touched here; the wallet service cascades.

        Returns:
            True if a wallet was deleted
        """
        pass

    @abstractmethod
    async def list_wallets(self, uid: str) -> list[Wallet]:
        """List a user's wallets, newest first."""
        pass


class TransactionStorageInterface(ABC):
    """Storage operations for transactions."""

    @abstractmethod
    async def get_transaction(self, transaction_id: str) -> Optional[Transaction]:
        """
        Retrieve a transaction by its ID.

        Returns:
            The transaction if found, None otherwise
        """
        pass

    @abstractmethod
    async def save_transaction(self, transaction: Transaction) -> Transaction:
        """
        Insert a transaction or replace the stored copy.

        Raises:
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def delete_transaction(self, transaction_id: str) -> bool:
        """
        Delete a transaction by ID.

        Returns:
            True if a transaction was deleted
        """
        pass

    @abstractmethod
    async def delete_transactions(self, transaction_ids: Iterable[str]) -> int:
        """
        Delete several transactions in one batch.

        Returns:
            Number of transactions actually deleted
        """
        pass

    @abstractmethod
    async def list_transactions(
        self,
        uid: Optional[str] = None,
        wallet_id: Optional[str] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> list[Transaction]:
        """
        List transactions with optional filters.

        Args:
            uid: Only this user's transactions
            wallet_id: Only transactions posted to this wallet
            date_from: Transactions dated on or after this moment
            date_to: Transactions dated on or before this moment
            limit: Maximum number of results

        Returns:
            Matching transactions ordered by date, newest first
        """
        pass


class UserStorageInterface(ABC):
    """Storage operations for user profiles."""

    @abstractmethod
    async def get_user(self, uid: str) -> Optional[UserProfile]:
        """Retrieve a profile, None if the user has none yet."""
        pass

    @abstractmethod
    async def save_user(self, profile: UserProfile) -> UserProfile:
        """Insert or replace a profile."""
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class ConflictError(StorageError):
    """The stored document changed since it was read."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
