"""
Ledger Data Models

These models define the records a user's ledger is made of: expenses,
incomes and budgets, plus the command objects that create them and the
backup payload that carries the whole account.

DESIGN DECISION: Stored field names keep the camelCase spelling used by
existing storage slots and backup files (paymentMethod, createdAt, ...).
Python code uses snake_case; aliases bridge the two. Always dump with
`by_alias=True` when persisting.

Records are frozen. A change to a record is a replacement, never an
in-place mutation.
"""

import time
import datetime
from enum import Enum
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from kanakku.models.profile import UserProfile


def new_record_id() -> str:
    """Fresh globally unique record id."""
    return str(uuid4())


def now_millis() -> int:
    """Creation timestamp in epoch milliseconds."""
    return int(time.time() * 1000)


STORED_RECORD_CONFIG = ConfigDict(
    alias_generator=to_camel,
    populate_by_name=True,
    str_strip_whitespace=True,
    frozen=True,
)


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class ExpenseCategory(str, Enum):
    """Expense categories (closed set)."""
    FOOD = "Food"
    TRANSPORT = "Transport"
    ENTERTAINMENT = "Entertainment"
    UTILITIES = "Utilities"
    HEALTHCARE = "Healthcare"
    SHOPPING = "Shopping"
    HOUSING = "Housing"
    OTHER = "Other"


class PaymentMethod(str, Enum):
    """How an expense was paid."""
    CASH = "Cash"
    CARD = "Card"
    UPI = "UPI"
    OTHER = "Other"


class IncomeCategory(str, Enum):
    """Income categories (closed set)."""
    SALARY = "Salary"
    RENT = "Rent"
    INTEREST = "Interest"
    BUSINESS = "Business"
    GIFT = "Gift"
    OTHER = "Other"


class Recurrence(str, Enum):
    """Cadence driving generation of an income's next occurrence."""
    NONE = "None"
    MONTHLY = "Monthly"
    YEARLY = "Yearly"


class IncomeStatus(str, Enum):
    """
    Lifecycle status of an income.

    OVERDUE is a cached derived value: it is set by the reconcile pass
    at store load, not recomputed continuously.
    """
    EXPECTED = "Expected"
    RECEIVED = "Received"
    OVERDUE = "Overdue"


class TransactionKind(str, Enum):
    """Which ledger collection a transaction belongs to."""
    EXPENSE = "expense"
    INCOME = "income"


# =============================================================================
# STORED RECORDS
# =============================================================================

class Expense(BaseModel):
    """A single expense. Immutable once created except by delete."""
    model_config = STORED_RECORD_CONFIG

    id: str = Field(default_factory=new_record_id)
    amount: float = Field(..., gt=0)
    category: ExpenseCategory
    description: str = ""
    date: datetime.date
    payment_method: PaymentMethod = PaymentMethod.CASH
    created_at: int = Field(default_factory=now_millis)


class Income(BaseModel):
    """
    A single income occurrence.

    `date` is the due date while Expected/Overdue and the receipt date
    once Received. Each past occurrence of a recurring income survives
    as its own record.
    """
    model_config = STORED_RECORD_CONFIG

    id: str = Field(default_factory=new_record_id)
    amount: float = Field(..., gt=0)
    category: IncomeCategory
    source: str = ""
    date: datetime.date
    recurrence: Recurrence = Recurrence.NONE
    status: IncomeStatus = IncomeStatus.EXPECTED
    tenant_contact: Optional[str] = None
    created_at: int = Field(default_factory=now_millis)


class Budget(BaseModel):
    """Spending limit for one expense category."""
    model_config = STORED_RECORD_CONFIG

    category: ExpenseCategory
    limit: float = Field(..., ge=0)


# =============================================================================
# COMMANDS - validated input for creating records
# =============================================================================

class NewExpense(BaseModel):
    """
    Command to add an expense.

    Direct user actions and assistant tool calls both end up here,
    so external input is held to the same rules as form input.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    amount: float = Field(..., gt=0)
    category: ExpenseCategory = ExpenseCategory.OTHER
    description: str = ""
    date: datetime.date = Field(default_factory=datetime.date.today)
    payment_method: PaymentMethod = PaymentMethod.CASH


class NewIncome(BaseModel):
    """Command to add an income. Status is decided by the store."""
    model_config = ConfigDict(str_strip_whitespace=True)

    amount: float = Field(..., gt=0)
    category: IncomeCategory = IncomeCategory.OTHER
    source: str = ""
    date: datetime.date = Field(default_factory=datetime.date.today)
    recurrence: Recurrence = Recurrence.NONE
    tenant_contact: Optional[str] = None


class DeleteTransaction(BaseModel):
    """
    Command to delete an expense or income.

    With no id, the most recently created record of that kind is meant.
    """
    kind: TransactionKind
    id: Optional[str] = None


# =============================================================================
# BACKUP PAYLOAD
# =============================================================================

class BackupMetadata(BaseModel):
    """Who a backup belongs to and when it was made."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    user_id: str
    email: str = ""
    version: str = "1.0"
    timestamp: int = Field(default_factory=now_millis)


class BackupData(BaseModel):
    """The ledger collections carried by a backup."""

    expenses: list[Expense] = Field(default_factory=list)
    incomes: list[Income] = Field(default_factory=list)
    budgets: list[Budget] = Field(default_factory=list)


class BackupPayload(BaseModel):
    """
    Full account bundle: profile plus ledger.

    Ownership: ledger data from a payload may only be restored into the
    current profile when metadata.user_id equals that profile's id.
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    metadata: BackupMetadata
    user_profile: UserProfile
    data: BackupData
