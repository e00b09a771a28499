"""
In-Memory Storage Implementation

Dict-backed stores that behave like the document store the ledger expects:
every read and write works on a deep copy, so a caller mutating a model it
got back never changes what is stored.

Used by the tests and for running the ledger without Google credentials.
"""

from datetime import datetime
from typing import Iterable, Optional

from pocket_ledger.models.ledger import Transaction, UserProfile, Wallet
from pocket_ledger.services.storage.interface import (
    ConflictError,
    NotFoundError,
    TransactionStorageInterface,
    UserStorageInterface,
    WalletStorageInterface,
)


class InMemoryWalletStorage(WalletStorageInterface):
    """Wallets keyed by id."""

    def __init__(self):
        self._wallets: dict[str, Wallet] = {}

    async def get_wallet(self, wallet_id: str) -> Optional[Wallet]:
        wallet = self._wallets.get(wallet_id)
        return wallet.model_copy(deep=True) if wallet else None

    async def save_wallet(
        self,
        wallet: Wallet,
        expected_version: Optional[int] = None,
    ) -> Wallet:
        stored = self._wallets.get(wallet.id)
        if expected_version is not None:
            if stored is None:
                raise NotFoundError(f"Wallet not found: {wallet.id}")
            if stored.version != expected_version:
                raise ConflictError(
                    "This wallet was changed by another update. Please try again."
                )
        current_version = stored.version if stored else 0
        saved = wallet.model_copy(deep=True, update={"version": current_version + 1})
        self._wallets[wallet.id] = saved
        return saved.model_copy(deep=True)

    async def delete_wallet(self, wallet_id: str) -> bool:
        return self._wallets.pop(wallet_id, None) is not None

    async def list_wallets(self, uid: str) -> list[Wallet]:
        wallets = [w.model_copy(deep=True) for w in self._wallets.values() if w.uid == uid]
        wallets.sort(key=lambda w: w.created, reverse=True)
        return wallets


class InMemoryTransactionStorage(TransactionStorageInterface):
    """Transactions keyed by id."""

    def __init__(self):
        self._transactions: dict[str, Transaction] = {}

    async def get_transaction(self, transaction_id: str) -> Optional[Transaction]:
        transaction = self._transactions.get(transaction_id)
        return transaction.model_copy(deep=True) if transaction else None

    async def save_transaction(self, transaction: Transaction) -> Transaction:
        self._transactions[transaction.id] = transaction.model_copy(deep=True)
        return transaction.model_copy(deep=True)

    async def delete_transaction(self, transaction_id: str) -> bool:
        return self._transactions.pop(transaction_id, None) is not None

    async def delete_transactions(self, transaction_ids: Iterable[str]) -> int:
        deleted = 0
        for transaction_id in transaction_ids:
            if self._transactions.pop(transaction_id, None) is not None:
                deleted += 1
        return deleted

    async def list_transactions(
        self,
        uid: Optional[str] = None,
        wallet_id: Optional[str] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> list[Transaction]:
        matches = []
        for transaction in self._transactions.values():
            if uid is not None and transaction.uid != uid:
                continue
            if wallet_id is not None and transaction.wallet_id != wallet_id:
                continue
            if date_from is not None and transaction.date < date_from:
                continue
            if date_to is not None and transaction.date > date_to:
                continue
            matches.append(transaction.model_copy(deep=True))

        matches.sort(key=lambda t: t.date, reverse=True)
        if limit is not None:
            matches = matches[:limit]
        return matches


class InMemoryUserStorage(UserStorageInterface):
    """User profiles keyed by uid."""

    def __init__(self):
        self._users: dict[str, UserProfile] = {}

    async def get_user(self, uid: str) -> Optional[UserProfile]:
        profile = self._users.get(uid)
        return profile.model_copy(deep=True) if profile else None

    async def save_user(self, profile: UserProfile) -> UserProfile:
        self._users[profile.uid] = profile.model_copy(deep=True)
        return profile.model_copy(deep=True)
