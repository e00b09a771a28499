"""
Tests for the Ledger Engine

Every test checks the wallet numbers against what the stored transactions
say they should be: balance = income - expenses, never negative.
"""

import asyncio
import random
from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from pocket_ledger.ledger import LedgerEngine, apply_transaction_effect
from pocket_ledger.models.ledger import Transaction, TransactionDraft, TransactionType, Wallet
from pocket_ledger.services.storage import ConflictError, InMemoryWalletStorage


def post(engine, **fields):
    fields.setdefault("uid", "user-1")
    fields.setdefault("date", datetime(2025, 6, 1, 9, 30))
    return asyncio.run(engine.create_or_update_transaction(fields))


def income(engine, wallet_id, amount, **fields):
    return post(engine, wallet_id=wallet_id, type="income", amount=amount, **fields)


def expense(engine, wallet_id, amount, category="groceries", **fields):
    return post(
        engine, wallet_id=wallet_id, type="expense", amount=amount, category=category, **fields
    )


def update(engine, transaction, **changes):
    """Resubmit a stored transaction with some fields changed."""
    fields = {
        "id": transaction.id,
        "wallet_id": transaction.wallet_id,
        "type": transaction.type,
        "amount": transaction.amount,
        "category": transaction.category,
        "description": transaction.description,
    }
    fields.update(changes)
    return asyncio.run(engine.create_or_update_transaction(fields))


def load_wallet(storage, wallet_id) -> Wallet:
    return asyncio.run(storage.get_wallet(wallet_id))


def stored_transactions(storage, wallet_id):
    return asyncio.run(storage.list_transactions(wallet_id=wallet_id))


def assert_consistent(wallet_storage, transaction_storage, wallet_id):
    """Wallet cache matches the transactions posted to it."""
    wallet = load_wallet(wallet_storage, wallet_id)
    transactions = stored_transactions(transaction_storage, wallet_id)
    incomes = sum(
        (t.amount for t in transactions if t.type == TransactionType.INCOME), Decimal("0")
    )
    expenses = sum(
        (t.amount for t in transactions if t.type == TransactionType.EXPENSE), Decimal("0")
    )
    assert wallet.total_income == incomes
    assert wallet.total_expenses == expenses
    assert wallet.amount == incomes - expenses
    assert wallet.amount >= 0


class TestApplyTransactionEffect:
    """Tests for the pure wallet arithmetic."""

    def test_income_and_its_reverse(self):
        """Test that reversing an income restores the wallet."""
        wallet = Wallet(uid="u", name="Cash", amount=Decimal("10"), total_income=Decimal("10"))
        applied = apply_transaction_effect(wallet, TransactionType.INCOME, Decimal("5.25"))
        assert applied.amount == Decimal("15.25")
        assert applied.total_income == Decimal("15.25")

        reverted = apply_transaction_effect(
            applied, TransactionType.INCOME, Decimal("5.25"), reverse=True
        )
        assert reverted.amount == wallet.amount
        assert reverted.total_income == wallet.total_income

    def test_expense_moves_balance_down(self):
        """Test that an expense lowers amount and raises total_expenses."""
        wallet = Wallet(uid="u", name="Cash", amount=Decimal("10"), total_income=Decimal("10"))
        applied = apply_transaction_effect(wallet, TransactionType.EXPENSE, Decimal("4"))
        assert applied.amount == Decimal("6.00")
        assert applied.total_expenses == Decimal("4.00")
        assert applied.total_income == Decimal("10.00")

    def test_input_wallet_untouched(self):
        """Test that the input wallet is not mutated."""
        wallet = Wallet(uid="u", name="Cash")
        apply_transaction_effect(wallet, TransactionType.INCOME, Decimal("1"))
        assert wallet.amount == Decimal("0")


class TestCreateTransaction:
    """Tests for posting new transactions."""

    def test_income_then_expenses(self, engine, make_wallet, wallet_storage, transaction_storage):
        """Test income 100, expense 30, then an 80 expense that does not fit."""
        wallet = make_wallet()

        assert income(engine, wallet.id, 100).success
        after_income = load_wallet(wallet_storage, wallet.id)
        assert after_income.amount == Decimal("100.00")
        assert after_income.total_income == Decimal("100.00")

        response = expense(engine, wallet.id, 30)
        assert response.success
        assert response.message == "Transaction saved successfully"
        after_expense = load_wallet(wallet_storage, wallet.id)
        assert after_expense.amount == Decimal("70.00")
        assert after_expense.total_expenses == Decimal("30.00")

        rejected = expense(engine, wallet.id, 80)
        assert rejected.success is False
        assert rejected.message == "Insufficient funds in wallet"
        assert rejected.error == "InsufficientFundsError"

        unchanged = load_wallet(wallet_storage, wallet.id)
        assert unchanged.amount == Decimal("70.00")
        assert unchanged.version == after_expense.version
        assert len(stored_transactions(transaction_storage, wallet.id)) == 2
        assert_consistent(wallet_storage, transaction_storage, wallet.id)

    def test_expense_equal_to_balance_allowed(self, engine, make_wallet, wallet_storage):
        """Test that spending the whole balance is fine."""
        wallet = make_wallet()
        income(engine, wallet.id, 50)
        assert expense(engine, wallet.id, 50).success
        assert load_wallet(wallet_storage, wallet.id).amount == Decimal("0.00")

    def test_expense_on_empty_wallet_rejected(self, engine, make_wallet):
        """Test that a new wallet cannot pay for anything."""
        wallet = make_wallet()
        response = expense(engine, wallet.id, 1)
        assert response.success is False
        assert response.message == "Insufficient funds in wallet"

    def test_float_amounts_rounded_to_cents(self, engine, make_wallet, wallet_storage):
        """Test that float input never leaks binary fractions into balances."""
        wallet = make_wallet()
        income(engine, wallet.id, 0.1)
        income(engine, wallet.id, 0.2)
        assert load_wallet(wallet_storage, wallet.id).amount == Decimal("0.30")

    def test_income_drops_category(self, engine, make_wallet):
        """Test that income is stored without a category."""
        wallet = make_wallet()
        response = income(engine, wallet.id, 10, category="rent")
        assert response.success
        assert response.data.category is None

    def test_accepts_draft_model(self, engine, make_wallet):
        """Test passing a TransactionDraft instead of a dict."""
        wallet = make_wallet()
        draft = TransactionDraft(
            uid="user-1",
            wallet_id=wallet.id,
            type=TransactionType.INCOME,
            amount=Decimal("12.5"),
            date=date(2025, 3, 2),
        )
        response = asyncio.run(engine.create_or_update_transaction(draft))
        assert response.success
        assert response.data.amount == Decimal("12.50")
        assert response.data.date == datetime(2025, 3, 2)

    def test_unknown_wallet(self, engine):
        """Test posting against a wallet that does not exist."""
        response = income(engine, "missing", 10)
        assert response.success is False
        assert response.message == "Wallet not found"
        assert response.error == "NotFoundError"


class TestValidation:
    """Tests for drafts rejected before any I/O."""

    @pytest.mark.parametrize("amount", [0, -5, None])
    def test_amount_must_be_positive(self, engine, make_wallet, amount):
        """Test that zero, negative and missing amounts are rejected."""
        wallet = make_wallet()
        response = income(engine, wallet.id, amount)
        assert response.success is False
        assert response.message == "Invalid transaction: amount must be greater than zero"
        assert response.error == "LedgerValidationError"

    def test_wallet_required(self, engine):
        """Test that a wallet must be selected."""
        response = post(engine, type="income", amount=10)
        assert response.message == "Invalid transaction: please select a wallet"

    def test_type_required(self, engine, make_wallet):
        """Test that income/expense must be chosen."""
        wallet = make_wallet()
        response = post(engine, wallet_id=wallet.id, amount=10)
        assert response.message == "Invalid transaction: please choose income or expense"

    def test_expense_needs_category(self, engine, make_wallet, wallet_storage):
        """Test that an uncategorised expense never touches the wallet."""
        wallet = make_wallet()
        income(engine, wallet.id, 10)
        before = load_wallet(wallet_storage, wallet.id)

        response = expense(engine, wallet.id, 5, category=None)
        assert response.success is False
        assert response.message == "Invalid transaction: expenses need a category"
        assert load_wallet(wallet_storage, wallet.id) == before

    def test_user_required_for_new_transaction(self, engine, make_wallet):
        """Test that a new transaction needs an owner."""
        wallet = make_wallet()
        response = post(engine, uid=None, wallet_id=wallet.id, type="income", amount=10)
        assert response.message == "Invalid transaction: missing user"

    def test_unknown_category(self, engine, make_wallet):
        """Test that a category outside the enum is rejected."""
        wallet = make_wallet()
        response = expense(engine, wallet.id, 5, category="yachts")
        assert response.success is False
        assert response.error == "LedgerValidationError"
        assert response.message.startswith("Invalid transaction:")

    def test_amount_beyond_decimal_precision(self, engine, make_wallet, wallet_storage):
        """Test that an absurdly large amount gets a readable message."""
        wallet = make_wallet()
        response = income(engine, wallet.id, "1e40")
        assert response.success is False
        assert response.error == "LedgerValidationError"
        assert response.message == "Invalid transaction: amount is too large"
        assert load_wallet(wallet_storage, wallet.id).amount == Decimal("0.00")

    def test_null_date_defaults_to_now(self, engine, make_wallet):
        """Test that date=None on a new transaction means now."""
        wallet = make_wallet()
        before = datetime.now()
        response = income(engine, wallet.id, 10, date=None)
        assert response.success, response.message
        assert before <= response.data.date <= datetime.now()

    def test_aware_date_stored_naive(self, engine, make_wallet):
        """Test that an ISO date with a UTC offset is stored as local time."""
        wallet = make_wallet()
        response = income(engine, wallet.id, 10, date="2025-06-15T08:00:00Z")
        assert response.success, response.message
        assert response.data.date.tzinfo is None
        assert response.data.date == datetime(2025, 6, 15, 8, tzinfo=timezone.utc).astimezone().replace(tzinfo=None)

class TestUpdateTransaction:
    """Tests for revert-then-reapply reconciliation."""

    def test_expense_amount_change(self, engine, make_wallet, wallet_storage, transaction_storage):
        """Test raising an expense from 30 to 50."""
        wallet = make_wallet()
        income(engine, wallet.id, 100)
        spent = expense(engine, wallet.id, 30).data

        response = update(engine, spent, amount=50)
        assert response.success
        assert response.data.id == spent.id

        result = load_wallet(wallet_storage, wallet.id)
        assert result.amount == Decimal("50.00")
        assert result.total_expenses == Decimal("50.00")
        assert result.total_income == Decimal("100.00")
        assert_consistent(wallet_storage, transaction_storage, wallet.id)

    def test_same_wallet_check_uses_reverted_balance(self, engine, make_wallet, wallet_storage):
        """Test that an expense may grow into the balance it already used."""
        wallet = make_wallet()
        income(engine, wallet.id, 100)
        spent = expense(engine, wallet.id, 90).data

        assert update(engine, spent, amount=100).success
        assert load_wallet(wallet_storage, wallet.id).amount == Decimal("0.00")

        rejected = update(engine, spent, amount=101)
        assert rejected.success is False
        assert rejected.message == "Insufficient funds in wallet"

    def test_description_only_change_leaves_wallet_alone(
        self, engine, make_wallet, wallet_storage, transaction_storage
    ):
        """Test that a descriptive edit does not write the wallet."""
        wallet = make_wallet()
        income(engine, wallet.id, 100)
        spent = expense(engine, wallet.id, 30, description="lunch").data
        before = load_wallet(wallet_storage, wallet.id)

        response = update(engine, spent, description="team lunch", category="dining")
        assert response.success
        assert response.data.description == "team lunch"

        after = load_wallet(wallet_storage, wallet.id)
        assert after == before
        stored = asyncio.run(transaction_storage.get_transaction(spent.id))
        assert stored.description == "team lunch"
        assert stored.created_at == spent.created_at

    def test_type_flip(self, engine, make_wallet, wallet_storage, transaction_storage):
        """Test turning an expense into an income of the same amount."""
        wallet = make_wallet()
        income(engine, wallet.id, 100)
        spent = expense(engine, wallet.id, 30).data

        response = update(engine, spent, type="income", category=None)
        assert response.success
        assert response.data.category is None

        result = load_wallet(wallet_storage, wallet.id)
        assert result.amount == Decimal("130.00")
        assert result.total_income == Decimal("130.00")
        assert result.total_expenses == Decimal("0.00")
        assert_consistent(wallet_storage, transaction_storage, wallet.id)

    def test_income_cannot_shrink_below_spending(self, engine, make_wallet, wallet_storage):
        """Test that reducing an income may not push the wallet negative."""
        wallet = make_wallet()
        earned = income(engine, wallet.id, 100).data
        expense(engine, wallet.id, 80)
        before = load_wallet(wallet_storage, wallet.id)

        response = update(engine, earned, amount=50)
        assert response.success is False
        assert response.error == "InvariantViolationError"
        assert load_wallet(wallet_storage, wallet.id) == before

    def test_missing_transaction(self, engine, make_wallet):
        """Test updating an id that is not stored."""
        wallet = make_wallet()
        response = post(
            engine, id="nope", wallet_id=wallet.id, type="income", amount=5
        )
        assert response.success is False
        assert response.message == "Transaction not found"

    def test_null_date_keeps_stored_date(self, engine, make_wallet):
        """Test that date=None on an update leaves the date alone."""
        wallet = make_wallet()
        earned = income(engine, wallet.id, 10).data

        response = update(engine, earned, amount=12, date=None, uid=None)
        assert response.success, response.message
        assert response.data.date == earned.date
        assert response.data.uid == earned.uid
        assert response.data.amount == Decimal("12.00")

    def test_description_can_be_cleared(self, engine, make_wallet):
        """Test that None still clears an optional field."""
        wallet = make_wallet()
        earned = income(engine, wallet.id, 10, description="salary").data

        response = update(engine, earned, description=None)
        assert response.data.description is None

class TestCrossWalletMove:
    """Tests for moving a transaction between wallets."""

    def test_move_into_wallet_without_funds(
        self, engine, make_wallet, wallet_storage, transaction_storage
    ):
        """Test that a failed move leaves both wallets untouched."""
        source = make_wallet("Bank")
        target = make_wallet("Cash")
        income(engine, source.id, 100)
        income(engine, target.id, 20)
        spent = expense(engine, source.id, 30).data
        source_before = load_wallet(wallet_storage, source.id)
        target_before = load_wallet(wallet_storage, target.id)

        response = update(engine, spent, wallet_id=target.id)
        assert response.success is False
        assert response.message == "Insufficient funds in wallet"
        assert load_wallet(wallet_storage, source.id) == source_before
        assert load_wallet(wallet_storage, target.id) == target_before

        stored = asyncio.run(transaction_storage.get_transaction(spent.id))
        assert stored.wallet_id == source.id

    def test_move_expense(self, engine, make_wallet, wallet_storage, transaction_storage):
        """Test that a move takes the expense out of one wallet and into the other."""
        source = make_wallet("Bank")
        target = make_wallet("Cash")
        income(engine, source.id, 100)
        income(engine, target.id, 70)
        spent = expense(engine, source.id, 30).data

        response = update(engine, spent, wallet_id=target.id)
        assert response.success

        moved_from = load_wallet(wallet_storage, source.id)
        moved_to = load_wallet(wallet_storage, target.id)
        assert moved_from.amount == Decimal("100.00")
        assert moved_from.total_expenses == Decimal("0.00")
        assert moved_to.amount == Decimal("40.00")
        assert moved_to.total_expenses == Decimal("30.00")
        assert_consistent(wallet_storage, transaction_storage, source.id)
        assert_consistent(wallet_storage, transaction_storage, target.id)

    def test_move_income_that_was_spent(self, engine, make_wallet, wallet_storage):
        """Test that an income already spent cannot leave its wallet."""
        source = make_wallet("Bank")
        target = make_wallet("Cash")
        earned = income(engine, source.id, 100).data
        expense(engine, source.id, 60)

        response = update(engine, earned, wallet_id=target.id)
        assert response.success is False
        assert response.error == "InvariantViolationError"
        assert load_wallet(wallet_storage, source.id).amount == Decimal("40.00")
        assert load_wallet(wallet_storage, target.id).amount == Decimal("0.00")


class TestDeleteTransaction:
    """Tests for deleting transactions."""

    def test_delete_expense_restores_balance(
        self, engine, make_wallet, wallet_storage, transaction_storage
    ):
        """Test that deleting an expense gives the money back."""
        wallet = make_wallet()
        income(engine, wallet.id, 100)
        spent = expense(engine, wallet.id, 30).data

        response = asyncio.run(engine.delete_transaction(spent.id, wallet.id))
        assert response.success
        assert response.message == "Transaction deleted successfully"

        result = load_wallet(wallet_storage, wallet.id)
        assert result.amount == Decimal("100.00")
        assert result.total_expenses == Decimal("0.00")
        assert asyncio.run(transaction_storage.get_transaction(spent.id)) is None
        assert_consistent(wallet_storage, transaction_storage, wallet.id)

    def test_delete_spent_income_rejected(self, engine, make_wallet, wallet_storage, transaction_storage):
        """Test that an income cannot be deleted once its money is spent."""
        wallet = make_wallet()
        earned = income(engine, wallet.id, 100).data
        expense(engine, wallet.id, 30)

        response = asyncio.run(engine.delete_transaction(earned.id))
        assert response.success is False
        assert response.error == "InvariantViolationError"
        assert asyncio.run(transaction_storage.get_transaction(earned.id)) is not None
        assert load_wallet(wallet_storage, wallet.id).amount == Decimal("70.00")

    def test_delete_missing(self, engine):
        """Test deleting an unknown transaction."""
        response = asyncio.run(engine.delete_transaction("nope"))
        assert response.success is False
        assert response.message == "Transaction not found"

    def test_delete_with_wrong_wallet(self, engine, make_wallet, wallet_storage):
        """Test that the caller's wallet id must match the transaction's."""
        wallet = make_wallet()
        other = make_wallet("Other")
        earned = income(engine, wallet.id, 10).data

        response = asyncio.run(engine.delete_transaction(earned.id, other.id))
        assert response.success is False
        assert response.error == "LedgerValidationError"
        assert load_wallet(wallet_storage, wallet.id).amount == Decimal("10.00")


class TestReceiptUpload:
    """Tests for receipt images on transactions."""

    def test_receipt_uploaded(self, engine, make_wallet, uploader):
        """Test that raw image content is uploaded to the receipts folder."""
        wallet = make_wallet()
        response = income(engine, wallet.id, 10, image=b"\x89PNG fake")
        assert response.success
        assert response.data.image == "https://img.test/transactions/1.png"
        assert uploader.uploads[0][1] == "transactions"

    def test_existing_url_kept(self, engine, make_wallet, uploader):
        """Test that an image URL is stored without uploading."""
        wallet = make_wallet()
        response = income(engine, wallet.id, 10, image="https://cdn.test/r.png")
        assert response.data.image == "https://cdn.test/r.png"
        assert uploader.uploads == []

    def test_upload_failure_after_wallet_write(
        self, engine, make_wallet, uploader, wallet_storage, transaction_storage
    ):
        """Test that a failed upload reports failure and stores no transaction."""
        wallet = make_wallet()
        uploader.fail = True

        response = income(engine, wallet.id, 10, image=b"receipt")
        assert response.success is False
        assert response.error == "ImageUploadError"
        assert stored_transactions(transaction_storage, wallet.id) == []
        # The wallet write already happened; the caller has to retry
        assert load_wallet(wallet_storage, wallet.id).amount == Decimal("10.00")

    def test_no_upload_service(self, wallet_storage, transaction_storage, make_wallet):
        """Test that image content without an upload service is rejected."""
        engine = LedgerEngine(wallet_storage, transaction_storage)
        wallet = make_wallet()
        response = income(engine, wallet.id, 10, image=b"receipt")
        assert response.success is False
        assert response.message == "Image uploads are not configured"


class StaleReadWalletStorage(InMemoryWalletStorage):
    """Lets another writer bump a wallet right after the engine reads it."""

    def __init__(self):
        super().__init__()
        self.interfere = False

    async def get_wallet(self, wallet_id):
        wallet = await super().get_wallet(wallet_id)
        if self.interfere and wallet is not None:
            self.interfere = False
            await super().save_wallet(wallet.model_copy(update={"name": "Renamed"}))
        return wallet


class TestConcurrentWrites:
    """Tests for version-checked wallet writes."""

    def test_stale_wallet_write_rejected(self, transaction_storage):
        """Test that a wallet changed after it was read fails with ConflictError."""
        wallet_storage = StaleReadWalletStorage()
        engine = LedgerEngine(wallet_storage, transaction_storage)
        wallet = asyncio.run(wallet_storage.save_wallet(Wallet(uid="user-1", name="Cash")))

        wallet_storage.interfere = True
        response = income(engine, wallet.id, 10)
        assert response.success is False
        assert response.error == ConflictError.__name__

        stored = load_wallet(wallet_storage, wallet.id)
        assert stored.name == "Renamed"
        assert stored.amount == Decimal("0.00")
        assert stored_transactions(transaction_storage, wallet.id) == []


class TestBalanceInvariant:
    """Randomised sequences of operations keep every wallet consistent."""

    def test_random_operations(self, engine, make_wallet, wallet_storage, transaction_storage):
        """Test that the cache matches the transactions after any sequence."""
        rng = random.Random(7)
        wallet_ids = [make_wallet("A").id, make_wallet("B").id]
        posted: list[Transaction] = []

        for _ in range(60):
            action = rng.choice(["income", "expense", "expense", "update", "delete"])
            wallet_id = rng.choice(wallet_ids)
            amount = Decimal(rng.randint(1, 5000)) / 100

            if action == "income":
                response = income(engine, wallet_id, amount)
            elif action == "expense":
                response = expense(engine, wallet_id, amount)
            elif action == "update" and posted:
                target = rng.choice(posted)
                response = update(
                    engine,
                    target,
                    wallet_id=wallet_id,
                    amount=amount,
                    type=rng.choice(["income", "expense"]),
                    category="others",
                )
            elif action == "delete" and posted:
                target = rng.choice(posted)
                response = asyncio.run(engine.delete_transaction(target.id))
                if response.success:
                    posted.remove(target)
                continue
            else:
                continue

            if response.success:
                posted = [t for t in posted if t.id != response.data.id]
                posted.append(response.data)

            for wid in wallet_ids:
                assert_consistent(wallet_storage, transaction_storage, wid)
