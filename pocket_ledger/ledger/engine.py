"""
Ledger Engine

Keeps every wallet's cached balance and cumulative totals consistent with
the transactions posted against it.

Each operation is a fixed sequence of single-document reads and writes:

    create:  read wallet -> check funds -> write wallet -> [upload] -> write transaction
    update:  read transaction -> read wallet(s) -> check funds/invariants
             -> write reverted source -> re-read destination -> write destination
             -> [upload] -> write transaction
    delete:  read transaction -> read wallet -> check invariant
             -> write wallet -> delete transaction

Every check runs before the first write of the call. Wallet writes carry
the version that was read, so a concurrent edit of the same wallet makes
the second writer fail with ConflictError instead of overwriting the first
writer's balance.

The wallet writes and the transaction write are not atomic. If the receipt
upload or the transaction write fails, the wallet totals already moved and
the caller has to retry the whole operation.
"""

from decimal import Decimal
from typing import Any, Optional, Union

from pydantic import ValidationError

from pocket_ledger.ledger.uploads import resolve_image
from pocket_ledger.logs import get_logger
from pocket_ledger.models.ledger import (
    LedgerResponse,
    Transaction,
    TransactionDraft,
    TransactionType,
    Wallet,
    to_money,
)
from pocket_ledger.services.image import ImageUploadError, ImageUploadInterface
from pocket_ledger.services.storage import (
    NotFoundError,
    StorageError,
    TransactionStorageInterface,
    WalletStorageInterface,
)

logger = get_logger(__name__)

RECEIPTS_FOLDER = "transactions"
_CLEARABLE_FIELDS = {"category", "description"}


class LedgerError(Exception):
    """Base exception for ledger rule violations. Messages are user-facing."""
    pass


class LedgerValidationError(LedgerError):
    """Required fields are missing or invalid. Raised before any I/O."""
    pass


class InsufficientFundsError(LedgerError):
    """An expense is larger than the balance it is checked against."""
    pass


class InvariantViolationError(LedgerError):
    """The operation would leave a wallet with a negative balance."""
    pass


def validation_message(exc: ValidationError) -> str:
    """First pydantic error as a short sentence."""
    errors = exc.errors()
    if not errors:
        return "Invalid data"
    first = errors[0]
    field = ".".join(str(part) for part in first.get("loc", ()))
    message = first.get("msg", "invalid value")
    return f"{field}: {message}" if field else message


def apply_transaction_effect(
    wallet: Wallet,
    transaction_type: TransactionType,
    amount: Decimal,
    reverse: bool = False,
) -> Wallet:
    """
    Return a copy of the wallet with one transaction applied or removed.

    Income moves amount and total_income; expense moves amount the other
    way and total_expenses. reverse=True undoes a previously applied effect.
    """
    step = -amount if reverse else amount
    if transaction_type == TransactionType.INCOME:
        update = {
            "amount": to_money(wallet.amount + step),
            "total_income": to_money(wallet.total_income + step),
        }
    else:
        update = {
            "amount": to_money(wallet.amount - step),
            "total_expenses": to_money(wallet.total_expenses + step),
        }
    return wallet.model_copy(update=update)


class LedgerEngine:
    """
    Transaction create/update/delete with wallet reconciliation.

    Stores and the upload gateway are injected; the engine holds no other
    state, so one instance can serve every user.
    """

    def __init__(
        self,
        wallet_storage: WalletStorageInterface,
        transaction_storage: TransactionStorageInterface,
        image_service: Optional[ImageUploadInterface] = None,
    ):
        self._wallets = wallet_storage
        self._transactions = transaction_storage
        self._image_service = image_service

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    async def create_or_update_transaction(
        self,
        draft: Union[TransactionDraft, dict[str, Any]],
    ) -> LedgerResponse:
        """
        Create a transaction, or update one when the draft carries an id.

        Returns:
            LedgerResponse with the saved Transaction in data on success
        """
        log = logger
        try:
            draft = self._coerce_draft(draft)
            log = logger.bind(transaction_id=draft.id, wallet_id=draft.wallet_id)
            amount = self._validate(draft)

            prior: Optional[Transaction] = None
            if draft.id:
                prior = await self._load_transaction(draft.id)

            transaction = self._build_transaction(draft, prior, amount)

            if prior is None:
                await self._reconcile_new(transaction)
            else:
                await self._reconcile_update(prior, transaction)

            image_url = await resolve_image(
                self._image_service, draft.image, RECEIPTS_FOLDER, "Failed to upload receipt"
            )
            if image_url is not None:
                transaction = transaction.model_copy(update={"image": image_url})

            saved = await self._transactions.save_transaction(transaction)
            log.info(
                "transaction_saved",
                transaction_id=saved.id,
                type=saved.type.value,
                amount=str(saved.amount),
                updated=prior is not None,
            )
            return LedgerResponse.ok(saved, "Transaction saved successfully")

        except (LedgerError, ImageUploadError, StorageError) as e:
            log.warning("transaction_rejected", error=type(e).__name__, reason=str(e))
            return LedgerResponse.fail(str(e), error=type(e).__name__)
        except Exception as e:
            log.exception("transaction_save_failed")
            return LedgerResponse.fail(
                str(e) or "Failed to save transaction", error=type(e).__name__
            )

    async def delete_transaction(
        self,
        transaction_id: str,
        wallet_id: Optional[str] = None,
    ) -> LedgerResponse:
        """
        Delete a transaction and take its effect back out of the wallet.

        Args:
            transaction_id: Transaction to delete
            wallet_id: Wallet the caller believes it belongs to. Defaults to
                the transaction's own wallet; a mismatch is rejected.
        """
        log = logger.bind(transaction_id=transaction_id, wallet_id=wallet_id)
        try:
            transaction = await self._load_transaction(transaction_id)
            if wallet_id and wallet_id != transaction.wallet_id:
                raise LedgerValidationError("This transaction does not belong to the selected wallet")

            wallet = await self._load_wallet(transaction.wallet_id)
            updated = apply_transaction_effect(
                wallet, transaction.type, transaction.amount, reverse=True
            )
            if updated.amount < 0:
                raise InvariantViolationError(
                    f"Deleting this transaction would leave '{wallet.name}' with a negative balance"
                )

            await self._wallets.save_wallet(updated, expected_version=wallet.version)
            await self._transactions.delete_transaction(transaction.id)

            log.info(
                "transaction_deleted",
                wallet_balance=str(updated.amount),
            )
            return LedgerResponse.ok(message="Transaction deleted successfully")

        except (LedgerError, StorageError) as e:
            log.warning("transaction_delete_rejected", error=type(e).__name__, reason=str(e))
            return LedgerResponse.fail(str(e), error=type(e).__name__)
        except Exception as e:
            log.exception("transaction_delete_failed")
            return LedgerResponse.fail(
                str(e) or "Failed to delete transaction", error=type(e).__name__
            )

    # ------------------------------------------------------------------
    # Validation and loading
    # ------------------------------------------------------------------

    @staticmethod
    def _coerce_draft(draft: Union[TransactionDraft, dict[str, Any]]) -> TransactionDraft:
        if isinstance(draft, TransactionDraft):
            return draft
        try:
            return TransactionDraft.model_validate(draft)
        except ValidationError as e:
            raise LedgerValidationError(f"Invalid transaction: {validation_message(e)}")

    @staticmethod
    def _validate(draft: TransactionDraft) -> Decimal:
        """Presence checks; returns the amount rounded to cents."""
        try:
            amount = to_money(draft.amount) if draft.amount is not None else None
        except ValueError:
            raise LedgerValidationError("Invalid transaction: amount is too large")
        if amount is None or amount <= 0:
            raise LedgerValidationError("Invalid transaction: amount must be greater than zero")
        if not draft.wallet_id:
            raise LedgerValidationError("Invalid transaction: please select a wallet")
        if draft.type is None:
            raise LedgerValidationError("Invalid transaction: please choose income or expense")
        if draft.type == TransactionType.EXPENSE and draft.category is None:
            raise LedgerValidationError("Invalid transaction: expenses need a category")
        if not draft.id and not draft.uid:
            raise LedgerValidationError("Invalid transaction: missing user")
        return amount

    @staticmethod
    def _build_transaction(
        draft: TransactionDraft,
        prior: Optional[Transaction],
        amount: Decimal,
    ) -> Transaction:
        """
        Merge the draft over the stored transaction (or nothing, for a new one).

        Built before any wallet write so that a record which cannot be
        stored never moves a balance.
        """
        fields = draft.model_dump(exclude_unset=True, exclude={"id", "image"})
        # None clears optional fields only
        fields = {
            key: value
            for key, value in fields.items()
            if value is not None or key in _CLEARABLE_FIELDS
        }
        fields["amount"] = amount
        if isinstance(draft.image, str):
            fields["image"] = draft.image

        data = prior.model_dump() if prior else {}
        data.update(fields)
        if data.get("type") == TransactionType.INCOME:
            data["category"] = None

        try:
            return Transaction.model_validate(data)
        except ValidationError as e:
            raise LedgerValidationError(f"Invalid transaction: {validation_message(e)}")

    async def _load_wallet(self, wallet_id: str) -> Wallet:
        wallet = await self._wallets.get_wallet(wallet_id)
        if wallet is None:
            raise NotFoundError("Wallet not found")
        return wallet

    async def _load_transaction(self, transaction_id: str) -> Transaction:
        transaction = await self._transactions.get_transaction(transaction_id)
        if transaction is None:
            raise NotFoundError("Transaction not found")
        return transaction

    # ------------------------------------------------------------------
    # Reconciliation
    # ------------------------------------------------------------------

    async def _reconcile_new(self, transaction: Transaction) -> None:
        wallet = await self._load_wallet(transaction.wallet_id)

        if transaction.type == TransactionType.EXPENSE and wallet.amount < transaction.amount:
            raise InsufficientFundsError("Insufficient funds in wallet")

        updated = apply_transaction_effect(wallet, transaction.type, transaction.amount)
        await self._wallets.save_wallet(updated, expected_version=wallet.version)
        logger.debug(
            "wallet_reconciled",
            wallet_id=wallet.id,
            balance=str(updated.amount),
        )

    async def _reconcile_update(self, prior: Transaction, current: Transaction) -> None:
        """
        Revert the prior transaction's effect, then apply the new one.

        When the transaction moves to another wallet the expense check runs
        against the destination's current balance; on the same wallet it
        runs against the balance with the prior transaction removed.
        """
        if (
            prior.type == current.type
            and prior.wallet_id == current.wallet_id
            and prior.amount == current.amount
        ):
            logger.debug("wallet_reconciliation_skipped", transaction_id=prior.id)
            return

        same_wallet = prior.wallet_id == current.wallet_id
        source = await self._load_wallet(prior.wallet_id)
        reverted = apply_transaction_effect(source, prior.type, prior.amount, reverse=True)
        destination = None if same_wallet else await self._load_wallet(current.wallet_id)

        if current.type == TransactionType.EXPENSE:
            reference = reverted.amount if same_wallet else destination.amount
            if reference < current.amount:
                raise InsufficientFundsError("Insufficient funds in wallet")

        if same_wallet:
            final = apply_transaction_effect(reverted, current.type, current.amount)
            if final.amount < 0:
                raise InvariantViolationError(
                    f"This change would leave '{source.name}' with a negative balance"
                )
        elif reverted.amount < 0:
            raise InvariantViolationError(
                f"Moving this transaction would leave '{source.name}' with a negative balance"
            )

        saved_source = await self._wallets.save_wallet(reverted, expected_version=source.version)
        logger.debug(
            "wallet_reverted",
            wallet_id=source.id,
            balance=str(saved_source.amount),
        )

        target = await self._load_wallet(current.wallet_id)
        expected_version = saved_source.version if same_wallet else destination.version
        updated = apply_transaction_effect(target, current.type, current.amount)
        await self._wallets.save_wallet(updated, expected_version=expected_version)
        logger.debug(
            "wallet_reconciled",
            wallet_id=target.id,
            balance=str(updated.amount),
        )
