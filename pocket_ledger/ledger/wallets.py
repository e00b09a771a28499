"""
Wallet Service

Creating, renaming and deleting wallets.

A new wallet always starts at zero. Updates here only ever touch the name
and the icon; balances belong to the ledger engine. Because a rename still
rewrites the whole document, it is version-checked like any other wallet
write so a stale copy can never overwrite a fresher balance.

Deleting a wallet cascades to its transactions in fixed-size batches,
looping until the store has nothing left for that wallet.
"""

from typing import Any, Optional, Union

from pydantic import ValidationError

from pocket_ledger.ledger.engine import LedgerError, LedgerValidationError, validation_message
from pocket_ledger.ledger.uploads import resolve_image
from pocket_ledger.logs import get_logger
from pocket_ledger.models.ledger import LedgerResponse, Wallet, WalletDraft
from pocket_ledger.services.image import ImageUploadError, ImageUploadInterface
from pocket_ledger.services.storage import (
    NotFoundError,
    StorageError,
    TransactionStorageInterface,
    WalletStorageInterface,
)

logger = get_logger(__name__)

WALLET_ICONS_FOLDER = "wallets"
DEFAULT_DELETE_BATCH_SIZE = 500


class WalletService:
    """Wallet CRUD on top of the injected stores."""

    def __init__(
        self,
        wallet_storage: WalletStorageInterface,
        transaction_storage: TransactionStorageInterface,
        image_service: Optional[ImageUploadInterface] = None,
        batch_size: int = DEFAULT_DELETE_BATCH_SIZE,
    ):
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self._wallets = wallet_storage
        self._transactions = transaction_storage
        self._image_service = image_service
        self._batch_size = batch_size

    async def create_or_update_wallet(
        self,
        draft: Union[WalletDraft, dict[str, Any]],
    ) -> LedgerResponse:
        """
        Create a wallet, or rename / re-image one when the draft has an id.

        Returns:
            LedgerResponse with the saved Wallet in data on success
        """
        try:
            if not isinstance(draft, WalletDraft):
                try:
                    draft = WalletDraft.model_validate(draft)
                except ValidationError as e:
                    raise LedgerValidationError(f"Invalid wallet: {validation_message(e)}")

            existing: Optional[Wallet] = None
            if draft.id:
                existing = await self._wallets.get_wallet(draft.id)
                if existing is None:
                    raise NotFoundError("Wallet not found")
            else:
                if not draft.name:
                    raise LedgerValidationError("Please enter a wallet name")
                if not draft.uid:
                    raise LedgerValidationError("Invalid wallet: missing user")

            image_url = await resolve_image(self._image_service, draft.image, WALLET_ICONS_FOLDER)

            if existing is None:
                wallet = self._new_wallet(draft.uid, draft.name, image_url)
                saved = await self._wallets.save_wallet(wallet)
            else:
                changes = {}
                if draft.name:
                    changes["name"] = draft.name
                if image_url is not None:
                    changes["image"] = image_url
                if not changes:
                    return LedgerResponse.ok(existing, "Nothing to update")
                wallet = self._merge(existing, changes)
                saved = await self._wallets.save_wallet(wallet, expected_version=existing.version)

            logger.info("wallet_saved", wallet_id=saved.id, created=existing is None)
            return LedgerResponse.ok(saved, "Wallet saved successfully")

        except (LedgerError, ImageUploadError, StorageError) as e:
            logger.warning("wallet_rejected", error=type(e).__name__, reason=str(e))
            return LedgerResponse.fail(str(e), error=type(e).__name__)
        except Exception as e:
            logger.exception("wallet_save_failed")
            return LedgerResponse.fail(str(e) or "Error saving wallet", error=type(e).__name__)

    async def list_wallets(self, uid: str) -> LedgerResponse:
        """The user's wallets, newest first."""
        try:
            wallets = await self._wallets.list_wallets(uid)
            return LedgerResponse.ok(wallets)
        except Exception as e:
            logger.exception("wallet_list_failed", uid=uid)
            return LedgerResponse.fail(str(e) or "Failed to load wallets", error=type(e).__name__)

    async def delete_wallet(self, wallet_id: str) -> LedgerResponse:
        """Delete a wallet, then every transaction posted to it."""
        try:
            deleted = await self._wallets.delete_wallet(wallet_id)
            if not deleted:
                raise NotFoundError("Wallet not found")
        except StorageError as e:
            logger.warning("wallet_delete_rejected", wallet_id=wallet_id, reason=str(e))
            return LedgerResponse.fail(str(e), error=type(e).__name__)
        except Exception as e:
            logger.exception("wallet_delete_failed", wallet_id=wallet_id)
            return LedgerResponse.fail(str(e) or "Failed to delete wallet", error=type(e).__name__)

        cascade = await self.delete_transactions_by_wallet_id(wallet_id)
        if not cascade.success:
            return cascade

        logger.info("wallet_deleted", wallet_id=wallet_id, transactions=cascade.data)
        return LedgerResponse.ok(cascade.data, "Wallet deleted successfully")

    async def delete_transactions_by_wallet_id(self, wallet_id: str) -> LedgerResponse:
        """
        Delete every transaction of a wallet, one batch at a time.

        Stops when a query comes back empty. data holds the number of
        transactions removed.
        """
        removed = 0
        try:
            while True:
                batch = await self._transactions.list_transactions(
                    wallet_id=wallet_id,
                    limit=self._batch_size,
                )
                if not batch:
                    break

                deleted = await self._transactions.delete_transactions(t.id for t in batch)
                if deleted == 0:
                    # Nothing left that we could delete; looping again would spin forever
                    raise StorageError("Could not delete the wallet's transactions")
                removed += deleted
                logger.debug("transaction_batch_deleted", wallet_id=wallet_id, count=deleted)

            return LedgerResponse.ok(removed, "All transactions deleted successfully")
        except Exception as e:
            logger.exception("transaction_cascade_failed", wallet_id=wallet_id, removed=removed)
            return LedgerResponse.fail(
                str(e) or "Failed to delete transactions", error=type(e).__name__
            )

    @staticmethod
    def _new_wallet(uid: str, name: str, image: Optional[str]) -> Wallet:
        try:
            return Wallet(uid=uid, name=name, image=image)
        except ValidationError as e:
            raise LedgerValidationError(f"Invalid wallet: {validation_message(e)}")

    @staticmethod
    def _merge(wallet: Wallet, changes: dict[str, Any]) -> Wallet:
        try:
            return Wallet.model_validate({**wallet.model_dump(), **changes})
        except ValidationError as e:
            raise LedgerValidationError(f"Invalid wallet: {validation_message(e)}")
