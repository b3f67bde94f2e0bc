"""
Core Data Models for Piggy Budget

These models define the strict schemas for expense and account records.
They are designed to:
1. Enforce type safety at runtime
2. Normalize legacy records at read time (schema migration on ingest)
3. Round-trip through the JSON record shape shared by both stores

DESIGN DECISION: Records arrive from two stores and several app revisions.
Older revisions wrote `timestamp` instead of `createdAt`, stored the
payment method under `type`, and had no category at all. Rather than
migrating stored data, every record is normalized when it is read.
`createdAt` is the canonical time field.
"""

import math
import re
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Optional, Union

import structlog
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)


logger = structlog.get_logger(__name__)

TITLE_MAX_LENGTH = 200


def _fold(value: str) -> str:
    """Lowercase and drop separators: 'Credit Card' -> 'creditcard'."""
    return re.sub(r"[\s_\-]", "", value).lower()


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_amount(value: Any) -> Decimal:
    """
    Parse a user-entered amount into a Decimal.

    No sign or range constraint is applied; only non-numbers are refused.
    """
    if isinstance(value, bool) or value is None:
        raise ValueError("Amount must be a number")
    if isinstance(value, Decimal):
        amount = value
    else:
        text = value.strip() if isinstance(value, str) else str(value)
        try:
            amount = Decimal(text)
        except (InvalidOperation, ValueError):
            raise ValueError(f"Amount is not a number: {value!r}")
    if not amount.is_finite():
        raise ValueError(f"Amount is not a finite number: {value!r}")
    return amount


def record_amount(amount: Decimal) -> Union[float, str]:
    """
    JSON value for a stored amount.

    A number when a float holds the Decimal exactly (the usual case, e.g.
    4.5), otherwise the Decimal's text, which parse_amount reads back
    unchanged. Very large or very precise amounts never become inf or
    lose digits.
    """
    as_float = float(amount)
    if math.isfinite(as_float) and Decimal(repr(as_float)) == amount:
        return as_float
    return str(amount)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse an ISO-8601 string or epoch milliseconds. Naive values are UTC.

    Values that cannot be read as a time (garbage text, epochs outside
    the platform's range, NaN) give None: the record is kept and treated
    as undated rather than dropped.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            if isinstance(value, (int, float)) and not isinstance(value, bool):
                parsed = datetime.fromtimestamp(value / 1000, tz=timezone.utc)
            elif isinstance(value, str):
                text = value.strip()
                if text.endswith("Z"):
                    text = text[:-1] + "+00:00"
                parsed = datetime.fromisoformat(text)
            else:
                raise ValueError(f"unsupported type {type(value).__name__}")
        except (OverflowError, OSError, ValueError) as e:
            logger.warning("unreadable_timestamp", value=repr(value), error=str(e))
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class PaymentMethod(str, Enum):
    """
    How an expense was paid.

    Values are the display strings the app has always stored.
    `CreditCard`, `credit_card` and similar spellings are accepted on ingest.
    """
    CASH = "Cash"
    CREDIT_CARD = "Credit Card"
    DEBIT_CARD = "Debit Card"

    @classmethod
    def _missing_(cls, value: object) -> Optional["PaymentMethod"]:
        if isinstance(value, str):
            folded = _fold(value)
            for member in cls:
                if _fold(member.value) == folded:
                    return member
        return None


class ExpenseCategory(str, Enum):
    """
    Supported expense categories.

    DESIGN DECISION: A fixed enumeration keeps reporting reliable.
    Records written before categories existed read back as OTHER.
    """
    FOOD = "Food"
    TRANSPORTATION = "Transportation"
    SHOPPING = "Shopping"
    BILLS = "Bills"
    ENTERTAINMENT = "Entertainment"
    HEALTH = "Health"
    EDUCATION = "Education"
    TRAVEL = "Travel"
    GROCERIES = "Groceries"
    OTHER = "Other"

    @classmethod
    def _missing_(cls, value: object) -> Optional["ExpenseCategory"]:
        if isinstance(value, str):
            folded = _fold(value)
            for member in cls:
                if _fold(member.value) == folded:
                    return member
        return None


class ExpenseOrigin(str, Enum):
    """Which store first accepted the record."""
    REMOTE = "remote"  # Remote assigned the id
    LOCAL = "local"    # Remote was unreachable; id generated on device


# =============================================================================
# EXPENSE MODELS
# =============================================================================

class Expense(BaseModel):
    """
    A persisted expense record.

    Field names are snake_case in Python and camelCase in the stored
    record; both spellings are accepted when validating.
    """
    model_config = ConfigDict(
        str_strip_whitespace=True,
        populate_by_name=True,
    )

    id: str = Field(
        ...,
        min_length=1,
        description="Remote-assigned or locally generated identifier"
    )
    title: str = Field(
        ...,
        min_length=1,
        max_length=TITLE_MAX_LENGTH,
        description="What the money was spent on"
    )
    amount: Decimal = Field(
        ...,
        description="Amount as entered; sign and range are not checked"
    )
    payment_method: PaymentMethod = Field(
        default=PaymentMethod.CASH,
        alias="paymentMethod",
    )
    category: ExpenseCategory = Field(
        default=ExpenseCategory.OTHER,
    )
    user_id: Optional[str] = Field(
        default=None,
        alias="userId",
        description="Owning user; None means the anonymous bucket"
    )
    # Canonical time field. None marks an undated legacy record.
    created_at: Optional[datetime] = Field(
        default=None,
        alias="createdAt",
    )
    origin: ExpenseOrigin = Field(
        default=ExpenseOrigin.REMOTE,
    )

    @model_validator(mode='before')
    @classmethod
    def migrate_legacy_fields(cls, data: Any) -> Any:
        """Fold older record shapes into the current one."""
        if not isinstance(data, dict):
            return data
        data = dict(data)

        if data.get("createdAt") in (None, "") and data.get("created_at") in (None, ""):
            data["createdAt"] = data.get("timestamp")
        data.pop("timestamp", None)

        has_method = data.get("paymentMethod") or data.get("payment_method")
        if not has_method and data.get("type"):
            data["paymentMethod"] = data["type"]
        data.pop("type", None)

        if "id" in data and data["id"] is not None:
            data["id"] = str(data["id"])
        return data

    @field_validator('amount', mode='before')
    @classmethod
    def coerce_amount(cls, v: Any) -> Decimal:
        return parse_amount(v)

    @field_validator('payment_method', mode='before')
    @classmethod
    def default_payment_method(cls, v: Any) -> Any:
        if v is None or v == "":
            return PaymentMethod.CASH
        if isinstance(v, str):
            return PaymentMethod(v)
        return v

    @field_validator('category', mode='before')
    @classmethod
    def default_category(cls, v: Any) -> ExpenseCategory:
        """Missing or unrecognised categories read as OTHER."""
        if isinstance(v, ExpenseCategory):
            return v
        if not v:
            return ExpenseCategory.OTHER
        try:
            return ExpenseCategory(v)
        except ValueError:
            return ExpenseCategory.OTHER

    @field_validator('user_id', mode='before')
    @classmethod
    def blank_user_is_anonymous(cls, v: Any) -> Any:
        if v == "":
            return None
        return v

    @field_validator('created_at', mode='before')
    @classmethod
    def coerce_created_at(cls, v: Any) -> Optional[datetime]:
        return parse_timestamp(v)

    @property
    def is_undated(self) -> bool:
        return self.created_at is None

    @property
    def is_local_only(self) -> bool:
        return self.origin == ExpenseOrigin.LOCAL

    def to_record(self, include_id: bool = True) -> dict:
        """
        Convert to the JSON-compatible record shared by both stores.

        Both time keys are written with the same value so that readers
        of either field keep working.
        """
        stamp = self.created_at.isoformat() if self.created_at else None
        record = {
            "id": self.id,
            "title": self.title,
            "amount": record_amount(self.amount),
            "paymentMethod": self.payment_method.value,
            "category": self.category.value,
            "userId": self.user_id,
            "createdAt": stamp,
            "timestamp": stamp,
            "origin": self.origin.value,
        }
        if not include_id:
            record.pop("id")
        return record


AmountInput = Optional[Union[Decimal, float, int, str]]


class ExpenseDraft(BaseModel):
    """
    Raw input from the "add expense" flow.

    CRITICAL: Everything here is unchecked user input.
    ExpenseValidator decides whether it can become an Expense.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    title: Optional[str] = None
    amount: AmountInput = None
    payment_method: Optional[str] = PaymentMethod.CASH.value
    category: Optional[str] = None


class ExpensePatch(BaseModel):
    """
    Edited fields for an existing expense.

    Unset fields keep their current value; the merged record then
    replaces the stored one in full.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    title: Optional[str] = None
    amount: AmountInput = None
    payment_method: Optional[str] = None
    category: Optional[str] = None

    def changes(self) -> dict[str, Any]:
        """Only the fields the caller actually supplied."""
        return self.model_dump(exclude_unset=True, exclude_none=True)


# =============================================================================
# ACCOUNT MODEL
# =============================================================================

class User(BaseModel):
    """
    A registered account.

    WARNING: `password` is stored and compared as plain text, exactly as
    the account flow has always done. Nothing in the ledger assumes it is
    hashed.
    """
    model_config = ConfigDict(
        str_strip_whitespace=True,
        populate_by_name=True,
    )

    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=100)
    email: str = Field(..., min_length=3, max_length=254)
    password: str = Field(..., min_length=1)
    created_at: datetime = Field(
        default_factory=utc_now,
        alias="createdAt",
    )

    @field_validator('id', mode='before')
    @classmethod
    def coerce_id(cls, v: Any) -> Any:
        return str(v) if v is not None else v

    @field_validator('email')
    @classmethod
    def casefold_email(cls, v: str) -> str:
        return v.strip().casefold()

    @field_validator('created_at', mode='before')
    @classmethod
    def coerce_created_at(cls, v: Any) -> Any:
        return parse_timestamp(v) or utc_now()

    def to_record(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "password": self.password,
            "createdAt": self.created_at.isoformat(),
        }


def parse_expense_records(
    records: list,
    default_origin: ExpenseOrigin,
) -> tuple[list[Expense], list[str]]:
    """
    Normalize raw stored records into Expenses.

    Records that cannot be read (no title, non-numeric amount, unknown
    payment method) are skipped rather than failing the whole batch.

    Returns:
        (expenses, problems) where problems describes each skipped record
    """
    expenses: list[Expense] = []
    problems: list[str] = []
    for raw in records:
        if not isinstance(raw, dict):
            problems.append(f"not an object: {raw!r}")
            continue
        data = dict(raw)
        if not data.get("origin"):
            data["origin"] = default_origin
        try:
            expenses.append(Expense.model_validate(data))
        except ValueError as e:
            problems.append(f"{raw.get('id', '?')}: {e}")
    return expenses, problems
