"""
Core Data Models for Pocket Ledger

These models define the schemas for everything the ledger reads and writes:
wallets, transactions, user profiles, and the uniform response every
operation returns.

Money is always Decimal quantized to cents. Floats never touch a balance;
a float handed in by a caller is converted through its string form so
0.1 stays 0.10 rather than 0.1000000000000000055511151231257827.
"""

from datetime import date, datetime, time
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum
from typing import Any, Optional, Union
from uuid import uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)


CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def to_money(value: Union[Decimal, int, float, str]) -> Decimal:
    """Convert a number to a Decimal rounded half-up to two places."""
    if isinstance(value, float):
        value = repr(value)
    try:
        return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise ValueError("amount is too large")


def new_id() -> str:
    """Opaque document identifier."""
    return uuid4().hex


def _coerce_datetime(value: Any) -> Any:
    # A bare date means midnight of that day
    if isinstance(value, date) and not isinstance(value, datetime):
        return datetime.combine(value, time.min)
    return value


def _to_local_naive(value: datetime) -> datetime:
    # Stored dates are naive local time; aware input is converted, not rejected
    if value.tzinfo is not None:
        return value.astimezone().replace(tzinfo=None)
    return value


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class TransactionType(str, Enum):
    """Direction of a transaction. The amount itself is always positive."""
    INCOME = "income"
    EXPENSE = "expense"


class ExpenseCategory(str, Enum):
    """
    Supported expense categories.

    Income transactions carry no category; every expense must have one.
    """
    GROCERIES = "groceries"
    RENT = "rent"
    LOAN = "loan"
    UTILITIES = "utilities"
    TRANSPORTATION = "transportation"
    ENTERTAINMENT = "entertainment"
    DINING = "dining"
    HEALTH = "health"
    INSURANCE = "insurance"
    SAVINGS = "savings"
    CLOTHING = "clothing"
    PERSONAL = "personal"
    OTHERS = "others"


# =============================================================================
# WALLET
# =============================================================================

class Wallet(BaseModel):
    """
    A money container owned by one user.

    amount, total_income and total_expenses are a cache over the wallet's
    transactions. Only the ledger engine changes them; renaming a wallet or
    changing its icon never does.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(
        default_factory=new_id,
        description="Unique wallet ID"
    )
    uid: str = Field(
        ...,
        min_length=1,
        description="Owning user"
    )
    name: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Display label"
    )
    amount: Decimal = Field(
        default=ZERO,
        description="Current balance"
    )
    total_income: Decimal = Field(
        default=ZERO,
        ge=0,
        description="Lifetime income posted to this wallet"
    )
    total_expenses: Decimal = Field(
        default=ZERO,
        ge=0,
        description="Lifetime expenses posted to this wallet"
    )
    created: datetime = Field(
        default_factory=datetime.now,
        description="When the wallet was created"
    )
    image: Optional[str] = Field(
        default=None,
        description="Icon URL"
    )
    version: int = Field(
        default=0,
        ge=0,
        description="Bumped by the store on every write"
    )

    @field_validator('amount', 'total_income', 'total_expenses')
    @classmethod
    def quantize_money(cls, v: Decimal) -> Decimal:
        return to_money(v)


class WalletDraft(BaseModel):
    """
    Create/update request for a wallet.

    With an id it renames or re-images an existing wallet. image is either
    an already-uploaded URL (kept as is) or raw file content to upload.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: Optional[str] = None
    uid: Optional[str] = None
    name: Optional[str] = None
    image: Optional[Union[str, bytes]] = None

    @field_validator('id', 'uid', 'name', 'image', mode='before')
    @classmethod
    def blank_is_missing(cls, v: Any) -> Any:
        return _blank_to_none(v)


# =============================================================================
# TRANSACTION
# =============================================================================

class Transaction(BaseModel):
    """A persisted income or expense posted against exactly one wallet."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(
        default_factory=new_id,
        description="Unique transaction ID"
    )
    uid: str = Field(
        ...,
        min_length=1,
        description="Owning user"
    )
    wallet_id: str = Field(
        ...,
        min_length=1,
        description="Wallet this transaction is posted against"
    )
    type: TransactionType
    amount: Decimal = Field(
        ...,
        gt=0,
        description="Positive magnitude; the sign comes from type"
    )
    category: Optional[ExpenseCategory] = None
    description: Optional[str] = Field(
        default=None,
        max_length=500
    )
    date: datetime = Field(
        default_factory=datetime.now,
        description="Date the transaction is attributed to"
    )
    image: Optional[str] = Field(
        default=None,
        description="Receipt URL"
    )
    created_at: datetime = Field(
        default_factory=datetime.now,
        description="When the record was first written"
    )

    @field_validator('date', 'created_at', mode='before')
    @classmethod
    def date_to_datetime(cls, v: Any) -> Any:
        return _coerce_datetime(v)

    @field_validator('date', 'created_at')
    @classmethod
    def drop_timezone(cls, v: datetime) -> datetime:
        return _to_local_naive(v)

    @field_validator('amount')
    @classmethod
    def quantize_amount(cls, v: Decimal) -> Decimal:
        return to_money(v)

    @model_validator(mode='after')
    def expense_needs_category(self) -> 'Transaction':
        if self.type == TransactionType.EXPENSE and self.category is None:
            raise ValueError("Expense transactions need a category")
        return self

    @property
    def signed_amount(self) -> Decimal:
        """Effect on the wallet balance: positive for income, negative for expense."""
        if self.type == TransactionType.INCOME:
            return self.amount
        return -self.amount


class TransactionDraft(BaseModel):
    """
    Create/update request for a transaction.

    Every field is optional: an update only needs the fields that change,
    the rest are taken from the stored transaction. Presence checks happen
    in the ledger engine so that they come back as readable messages.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: Optional[str] = None
    uid: Optional[str] = None
    wallet_id: Optional[str] = None
    type: Optional[TransactionType] = None
    amount: Optional[Decimal] = None
    category: Optional[ExpenseCategory] = None
    description: Optional[str] = None
    date: Optional[datetime] = None
    image: Optional[Union[str, bytes]] = None

    @field_validator('id', 'uid', 'wallet_id', 'category', 'description', 'image', mode='before')
    @classmethod
    def blank_is_missing(cls, v: Any) -> Any:
        return _blank_to_none(v)

    @field_validator('date', mode='before')
    @classmethod
    def date_to_datetime(cls, v: Any) -> Any:
        return _coerce_datetime(v)

    @field_validator('date')
    @classmethod
    def drop_timezone(cls, v: Optional[datetime]) -> Optional[datetime]:
        return _to_local_naive(v) if v is not None else None


# =============================================================================
# USERS
# =============================================================================

class UserProfile(BaseModel):
    """
    Profile data for a signed-in user.

    Authentication lives elsewhere; the ledger only ever uses uid.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    uid: str = Field(..., min_length=1)
    name: Optional[str] = Field(default=None, max_length=100)
    email: Optional[str] = None
    image: Optional[str] = Field(
        default=None,
        description="Avatar URL"
    )


# =============================================================================
# RESPONSE
# =============================================================================

class LedgerResponse(BaseModel):
    """
    Uniform result of every ledger operation.

    success=False is authoritative even if data is present.
    message is user-facing and shown verbatim.
    """

    success: bool
    message: Optional[str] = None
    data: Optional[Any] = None
    error: Optional[str] = Field(
        default=None,
        description="Exception class name when success is False"
    )

    @classmethod
    def ok(cls, data: Any = None, message: Optional[str] = None) -> 'LedgerResponse':
        return cls(success=True, message=message, data=data)

    @classmethod
    def fail(cls, message: str, error: Optional[str] = None) -> 'LedgerResponse':
        return cls(success=False, message=message, error=error)
