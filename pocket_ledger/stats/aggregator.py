"""
Statistics Aggregator

Folds a user's transactions into fixed-width time buckets:

    weekly   7 calendar-day buckets ending today
    monthly  12 calendar-month buckets ending this month
    yearly   one bucket per year, from the first transaction's year to now

The bucket skeleton is built first, so quiet periods still show up as
zero buckets. Transactions are then matched to a bucket by day, by
month+year, or by year.

The store query is already bounded to the window, so a transaction that
matches no bucket means the query and the skeleton disagree. It is left
out of the sums and logged.
"""

from datetime import date, datetime, time, timedelta
from typing import Callable, Hashable, Optional, Union

from pocket_ledger.logs import get_logger
from pocket_ledger.models.ledger import ZERO, LedgerResponse, Transaction, TransactionType
from pocket_ledger.models.stats import StatsBucket, StatsResult, StatsWindow, WalletSummary
from pocket_ledger.services.storage import TransactionStorageInterface, WalletStorageInterface

logger = get_logger(__name__)

DEFAULT_RECENT_LIMIT = 30


def shift_month(year: int, month: int, delta: int) -> tuple[int, int]:
    """Move (year, month) by delta months."""
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1


class StatisticsAggregator:
    """
    Read-side queries over the ledger.

    Everything here is read-only; nothing writes to a store.
    """

    def __init__(
        self,
        transaction_storage: TransactionStorageInterface,
        wallet_storage: Optional[WalletStorageInterface] = None,
        clock: Callable[[], datetime] = datetime.now,
        recent_limit: int = DEFAULT_RECENT_LIMIT,
    ):
        self._transactions = transaction_storage
        self._wallets = wallet_storage
        self._clock = clock
        self._recent_limit = recent_limit

    async def aggregate(
        self,
        uid: str,
        window: Union[StatsWindow, str],
    ) -> LedgerResponse:
        """
        Income/expense sums per bucket for one user.

        Returns:
            LedgerResponse with a StatsResult in data on success
        """
        try:
            window = StatsWindow(window)
        except ValueError:
            logger.warning("stats_rejected", uid=uid, window=str(window))
            return LedgerResponse.fail(
                f"Unknown statistics window: {window}", error="LedgerValidationError"
            )

        try:
            today = self._clock().date()
            date_to = datetime.combine(today, time.max)

            if window == StatsWindow.WEEKLY:
                skeleton = self._daily_buckets(today)
            elif window == StatsWindow.MONTHLY:
                skeleton = self._monthly_buckets(today)
            else:
                skeleton = None

            date_from = (
                datetime.combine(skeleton[0][1].start, time.min) if skeleton else None
            )
            transactions = await self._transactions.list_transactions(
                uid=uid,
                date_from=date_from,
                date_to=date_to,
            )

            if skeleton is None:
                # Newest first, so the earliest transaction is last
                first_year = transactions[-1].date.year if transactions else today.year
                skeleton = self._yearly_buckets(min(first_year, today.year), today.year)

            buckets = self._fold(window, skeleton, transactions)
            return LedgerResponse.ok(
                StatsResult(window=window, buckets=buckets, transactions=transactions)
            )

        except Exception as e:
            logger.exception("stats_failed", uid=uid, window=window.value)
            return LedgerResponse.fail(str(e) or "Failed to load statistics", error=type(e).__name__)

    async def summarize_wallets(self, uid: str) -> LedgerResponse:
        """Total balance, income and expenses across the user's wallets."""
        if self._wallets is None:
            return LedgerResponse.fail("Wallet storage is not configured")
        try:
            wallets = await self._wallets.list_wallets(uid)
            summary = WalletSummary(
                uid=uid,
                wallet_count=len(wallets),
                balance=sum((w.amount for w in wallets), ZERO),
                total_income=sum((w.total_income for w in wallets), ZERO),
                total_expenses=sum((w.total_expenses for w in wallets), ZERO),
            )
            return LedgerResponse.ok(summary)
        except Exception as e:
            logger.exception("wallet_summary_failed", uid=uid)
            return LedgerResponse.fail(str(e) or "Failed to load totals", error=type(e).__name__)

    async def recent_transactions(
        self,
        uid: str,
        limit: Optional[int] = None,
    ) -> LedgerResponse:
        """The user's latest transactions, newest first."""
        try:
            transactions = await self._transactions.list_transactions(
                uid=uid,
                limit=limit or self._recent_limit,
            )
            return LedgerResponse.ok(transactions)
        except Exception as e:
            logger.exception("recent_transactions_failed", uid=uid)
            return LedgerResponse.fail(
                str(e) or "Failed to load transactions", error=type(e).__name__
            )

    # ------------------------------------------------------------------
    # Bucket skeletons: (key, bucket) pairs in chronological order
    # ------------------------------------------------------------------

    @staticmethod
    def _daily_buckets(today: date) -> list[tuple[Hashable, StatsBucket]]:
        days = [today - timedelta(days=offset) for offset in range(6, -1, -1)]
        return [(day, StatsBucket(label=day.strftime("%a"), start=day)) for day in days]

    @staticmethod
    def _monthly_buckets(today: date) -> list[tuple[Hashable, StatsBucket]]:
        skeleton = []
        for offset in range(11, -1, -1):
            year, month = shift_month(today.year, today.month, -offset)
            start = date(year, month, 1)
            skeleton.append(((year, month), StatsBucket(label=start.strftime("%b %y"), start=start)))
        return skeleton

    @staticmethod
    def _yearly_buckets(first_year: int, last_year: int) -> list[tuple[Hashable, StatsBucket]]:
        return [
            (year, StatsBucket(label=str(year), start=date(year, 1, 1)))
            for year in range(first_year, last_year + 1)
        ]

    @staticmethod
    def _bucket_key(window: StatsWindow, day: date) -> Hashable:
        if window == StatsWindow.WEEKLY:
            return day
        if window == StatsWindow.MONTHLY:
            return day.year, day.month
        return day.year

    def _fold(
        self,
        window: StatsWindow,
        skeleton: list[tuple[Hashable, StatsBucket]],
        transactions: list[Transaction],
    ) -> list[StatsBucket]:
        index = dict(skeleton)
        dropped = 0

        for transaction in transactions:
            bucket = index.get(self._bucket_key(window, transaction.date.date()))
            if bucket is None:
                dropped += 1
                continue
            if transaction.type == TransactionType.INCOME:
                bucket.income += transaction.amount
            else:
                bucket.expense += transaction.amount

        if dropped:
            logger.warning("transactions_outside_buckets", window=window.value, count=dropped)

        return [bucket for _, bucket in skeleton]
