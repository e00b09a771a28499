"""
Statistics Models

Results of folding a user's transactions into fixed-width time buckets.
Chart shaping is left to the caller; these models only carry the sums.
"""

from datetime import date
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, Field

from pocket_ledger.models.ledger import ZERO, Transaction


class StatsWindow(str, Enum):
    """Time windows the aggregator knows how to bucket."""
    WEEKLY = "weekly"    # last 7 calendar days, one bucket per day
    MONTHLY = "monthly"  # last 12 calendar months, one bucket per month
    YEARLY = "yearly"    # every year since the first transaction


class StatsBucket(BaseModel):
    """Income and expense sums for one day, month or year."""

    label: str = Field(
        ...,
        description="Short display label, e.g. 'Mon', 'Jan 25', '2025'"
    )
    start: date = Field(
        ...,
        description="First calendar day covered by the bucket"
    )
    income: Decimal = ZERO
    expense: Decimal = ZERO


class StatsResult(BaseModel):
    """Buckets in chronological order plus the transactions that fed them."""

    window: StatsWindow
    buckets: list[StatsBucket] = Field(default_factory=list)
    transactions: list[Transaction] = Field(
        default_factory=list,
        description="Matched transactions, newest first"
    )

    @property
    def total_income(self) -> Decimal:
        return sum((b.income for b in self.buckets), ZERO)

    @property
    def total_expense(self) -> Decimal:
        return sum((b.expense for b in self.buckets), ZERO)


class WalletSummary(BaseModel):
    """Totals across all of a user's wallets."""

    uid: str
    wallet_count: int = Field(ge=0)
    balance: Decimal = ZERO
    total_income: Decimal = ZERO
    total_expenses: Decimal = ZERO
