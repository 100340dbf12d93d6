"""
Core Data Models for Cashbook

These models define the schemas for all data flowing through the system:
users, sessions, categories, transactions, and the transaction proposals
produced by statement recognition.

DESIGN DECISION: We use Pydantic v2 models with camelCase aliases.
Python code uses snake_case field names; the HTTP API speaks camelCase
(``createdAt``, ``originalInfo``, ``imageBase64``). Money is Decimal
internally and serialized as a JSON number.
"""

import datetime as dt
from decimal import Decimal
from enum import Enum
from typing import Annotated, Optional
from uuid import uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    PlainSerializer,
    field_validator,
)
from pydantic.alias_generators import to_camel


def utcnow() -> dt.datetime:
    """Naive UTC timestamp, the form stored in the datastore."""
    return dt.datetime.now(dt.timezone.utc).replace(tzinfo=None)


def new_id() -> str:
    return str(uuid4())


Money = Annotated[
    Decimal,
    PlainSerializer(float, return_type=float, when_used="json"),
]


class CashbookModel(BaseModel):
    """Base model: snake_case in Python, camelCase on the wire."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )

    def to_api(self, **kwargs) -> dict:
        """Dump for an HTTP response body."""
        return self.model_dump(mode="json", by_alias=True, **kwargs)


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class TransactionType(str, Enum):
    """Direction of money flow. Amounts are always positive; the type carries the sign."""
    INCOME = "income"
    EXPENSE = "expense"


# =============================================================================
# USERS & SESSIONS
# =============================================================================

class User(CashbookModel):
    """
    A user as seen by the rest of the system.

    The password hash never leaves the storage/auth layer.
    """
    id: str
    username: str


class UserRecord(User):
    """A user row including the credential hash."""
    password_hash: str


class Session(CashbookModel):
    """
    A login session.

    The token is the bearer credential carried in the session cookie.
    """
    id: str = Field(default_factory=new_id)
    user_id: str
    token: str
    expires_at: dt.datetime

    def is_expired(self, now: Optional[dt.datetime] = None) -> bool:
        return self.expires_at <= (now or utcnow())


# =============================================================================
# CATEGORIES
# =============================================================================

class Category(CashbookModel):
    """
    A category as shown to a user.

    System categories are defined in code; custom categories carry the
    ``custom-`` id prefix and belong to one user.
    """
    id: str
    name: str
    icon: str
    color: str
    type: TransactionType


class CategoryCreate(CashbookModel):
    """Fields needed to create a custom category."""
    type: TransactionType
    name: str = Field(..., min_length=1, max_length=50)
    icon: str = Field(..., min_length=1, max_length=16)
    color: str = Field(..., min_length=1, max_length=32)


class CategoryUpdate(CashbookModel):
    """Partial update of a custom category."""
    name: Optional[str] = Field(default=None, min_length=1, max_length=50)
    icon: Optional[str] = Field(default=None, min_length=1, max_length=16)
    color: Optional[str] = Field(default=None, min_length=1, max_length=32)


# =============================================================================
# TRANSACTIONS
# =============================================================================

class Transaction(CashbookModel):
    """
    A persisted financial record.

    ``category`` is a soft reference: it should resolve to a category the
    owner can see, but nothing enforces it.
    """
    id: str = Field(default_factory=new_id)
    user_id: str
    type: TransactionType
    amount: Money = Field(..., gt=0)
    category: str = Field(..., min_length=1)
    description: str = ""
    note: Optional[str] = None
    date: dt.date
    created_at: dt.datetime = Field(default_factory=utcnow)


def round_to_cents(amount: Decimal) -> Decimal:
    """Round to cents; anything that rounds to zero is not a valid amount."""
    rounded = amount.quantize(Decimal("0.01"))
    if rounded <= 0:
        raise ValueError("amount must be at least 0.01")
    return rounded


class TransactionCreate(CashbookModel):
    """
    Input for a new transaction.

    Amount may arrive as a number or a numeric string ("12.50").
    """
    type: TransactionType
    amount: Money = Field(..., gt=0)
    category: str = Field(..., min_length=1)
    description: str = ""
    note: Optional[str] = None
    date: dt.date

    @field_validator('amount')
    @classmethod
    def round_amount(cls, v: Decimal) -> Decimal:
        """Store cents, not arbitrary precision."""
        return round_to_cents(v)

    @field_validator('note')
    @classmethod
    def blank_note_is_none(cls, v: Optional[str]) -> Optional[str]:
        return v or None


class TransactionUpdate(CashbookModel):
    """Partial update: any subset of the editable fields."""
    type: Optional[TransactionType] = None
    amount: Optional[Money] = Field(default=None, gt=0)
    category: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    note: Optional[str] = None
    date: Optional[dt.date] = None

    @field_validator('amount')
    @classmethod
    def round_amount(cls, v: Optional[Decimal]) -> Optional[Decimal]:
        if v is None:
            return v
        return round_to_cents(v)

    def changes(self) -> dict:
        """Only the fields the caller actually sent."""
        return self.model_dump(exclude_unset=True)


# =============================================================================
# STATEMENT RECOGNITION
# =============================================================================

class TransactionProposal(CashbookModel):
    """
    One transaction extracted from a statement image.

    CRITICAL: This is PROPOSED data, NOT verified.
    It becomes a Transaction only after the user confirms it.
    """
    date: str
    amount: Money = Field(..., ge=0)
    type: TransactionType
    category: str
    description: str = ""
    original_info: str = Field(
        default="",
        description="Verbatim row text from the statement"
    )

    def to_create_data(self) -> dict:
        """Unvalidated transaction input; the original row text becomes the note."""
        return {
            "type": self.type,
            "amount": self.amount,
            "category": self.category,
            "description": self.description,
            "note": self.original_info or None,
            "date": self.date,
        }

    def to_create(self) -> TransactionCreate:
        """Convert a confirmed proposal into transaction input."""
        return TransactionCreate(**self.to_create_data())


class RecognitionRequest(CashbookModel):
    """Body of a recognition call. Missing image is reported by the service."""
    image_base64: str = ""
    api_key: Optional[str] = None
    model: Optional[str] = None


class CategoryCatalog(CashbookModel):
    """A user's full visible category set, split by type."""
    income: list[Category] = Field(default_factory=list)
    expense: list[Category] = Field(default_factory=list)

    def all(self) -> list[Category]:
        return [*self.income, *self.expense]
