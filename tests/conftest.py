"""
Shared fixtures.

Everything runs against the in-memory stores and a fake upload gateway;
no test talks to Google Sheets or Cloudinary.
"""

import asyncio

import pytest

from pocket_ledger.ledger import LedgerEngine, UserService, WalletService
from pocket_ledger.models.ledger import Wallet
from pocket_ledger.services.image import ImageUploadError, ImageUploadInterface
from pocket_ledger.services.storage import (
    InMemoryTransactionStorage,
    InMemoryUserStorage,
    InMemoryWalletStorage,
)


class FakeUploader(ImageUploadInterface):
    """Records uploads and hands back predictable URLs."""

    def __init__(self):
        self.uploads = []
        self.fail = False

    async def upload(self, file, folder):
        if self.fail:
            raise ImageUploadError("Upload service unavailable")
        self.uploads.append((file, folder))
        return f"https://img.test/{folder}/{len(self.uploads)}.png"


@pytest.fixture
def wallet_storage():
    return InMemoryWalletStorage()


@pytest.fixture
def transaction_storage():
    return InMemoryTransactionStorage()


@pytest.fixture
def user_storage():
    return InMemoryUserStorage()


@pytest.fixture
def uploader():
    return FakeUploader()


@pytest.fixture
def engine(wallet_storage, transaction_storage, uploader):
    return LedgerEngine(wallet_storage, transaction_storage, uploader)


@pytest.fixture
def wallets(wallet_storage, transaction_storage, uploader):
    return WalletService(wallet_storage, transaction_storage, uploader, batch_size=2)


@pytest.fixture
def users(user_storage, uploader):
    return UserService(user_storage, uploader)


@pytest.fixture
def make_wallet(wallets):
    """Create a wallet through the wallet service and return it."""

    def _make(name="Cash", uid="user-1") -> Wallet:
        response = asyncio.run(wallets.create_or_update_wallet({"uid": uid, "name": name}))
        assert response.success, response.message
        return response.data

    return _make
