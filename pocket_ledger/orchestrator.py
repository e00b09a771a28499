"""
Application wiring for Pocket Ledger.

The services never build their own collaborators. This module picks the
stores and the upload gateway and hands the same instances to every
service, so the engine and the wallet service always see one shared
wallet store.

With storage enabled the stores are Google Sheets worksheets and uploads
go to Cloudinary. Without it (or when the sheets settings are missing)
everything runs against in-memory stores.
"""

from typing import NamedTuple, Optional

from pocket_ledger.config import get_settings
from pocket_ledger.ledger import LedgerEngine, UserService, WalletService
from pocket_ledger.logs import configure_logging, get_logger
from pocket_ledger.services.image import CloudinaryUploadService, ImageUploadInterface
from pocket_ledger.services.storage import (
    GoogleSheetsClient,
    GoogleSheetsTransactionStorage,
    GoogleSheetsUserStorage,
    GoogleSheetsWalletStorage,
    InMemoryTransactionStorage,
    InMemoryUserStorage,
    InMemoryWalletStorage,
    TransactionStorageInterface,
    UserStorageInterface,
    WalletStorageInterface,
)
from pocket_ledger.stats import StatisticsAggregator

logger = get_logger(__name__)


class AppComponents(NamedTuple):
    engine: LedgerEngine
    wallets: WalletService
    users: UserService
    stats: StatisticsAggregator
    sheets_client: Optional[GoogleSheetsClient]


def _memory_stores() -> tuple[WalletStorageInterface, TransactionStorageInterface, UserStorageInterface]:
    return InMemoryWalletStorage(), InMemoryTransactionStorage(), InMemoryUserStorage()


def create_app_components(
    use_storage: bool = True,
    image_service: Optional[ImageUploadInterface] = None,
) -> AppComponents:
    """
    Factory function to create all application components.

    Args:
        use_storage: Whether to use Google Sheets and Cloudinary.
                     Set to False for local runs without credentials.
        image_service: Upload gateway to use instead of Cloudinary.

    Returns:
        AppComponents with every service sharing the same stores
    """
    configure_logging()
    app_settings = get_settings().app

    sheets_client = None
    if use_storage:
        try:
            sheets_client = GoogleSheetsClient()
            wallet_storage = GoogleSheetsWalletStorage(sheets_client)
            transaction_storage = GoogleSheetsTransactionStorage(sheets_client)
            user_storage = GoogleSheetsUserStorage(sheets_client)
        except Exception as e:
            logger.warning("storage_not_configured", reason=str(e))
            sheets_client = None
            wallet_storage, transaction_storage, user_storage = _memory_stores()

        if image_service is None:
            try:
                image_service = CloudinaryUploadService()
            except Exception as e:
                logger.warning("uploads_not_configured", reason=str(e))
    else:
        wallet_storage, transaction_storage, user_storage = _memory_stores()

    engine = LedgerEngine(wallet_storage, transaction_storage, image_service)
    wallets = WalletService(
        wallet_storage,
        transaction_storage,
        image_service,
        batch_size=app_settings.delete_batch_size,
    )
    users = UserService(user_storage, image_service)
    stats = StatisticsAggregator(
        transaction_storage,
        wallet_storage,
        recent_limit=app_settings.recent_transactions_limit,
    )

    logger.info(
        "app_components_created",
        storage="google_sheets" if sheets_client else "memory",
        uploads=image_service is not None,
    )
    return AppComponents(engine, wallets, users, stats, sheets_client)
