"""
Data Models Package

This package contains all Pydantic models used in Kanakku.
All data flowing through the system must conform to these schemas.
"""

from kanakku.models.profile import (
    AuthState,
    ChatMessage,
    ProfileDetails,
    Theme,
    UserProfile,
)
from kanakku.models.ledger import (
    BackupData,
    BackupMetadata,
    BackupPayload,
    Budget,
    DeleteTransaction,
    Expense,
    ExpenseCategory,
    Income,
    IncomeCategory,
    IncomeStatus,
    NewExpense,
    NewIncome,
    PaymentMethod,
    Recurrence,
    TransactionKind,
)
from kanakku.models.result import (
    FailureKind,
    OperationResult,
    ValidationIssue,
)
from kanakku.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Identity models
    "AuthState",
    "ChatMessage",
    "ProfileDetails",
    "Theme",
    "UserProfile",
    # Ledger models
    "BackupData",
    "BackupMetadata",
    "BackupPayload",
    "Budget",
    "DeleteTransaction",
    "Expense",
    "ExpenseCategory",
    "Income",
    "IncomeCategory",
    "IncomeStatus",
    "NewExpense",
    "NewIncome",
    "PaymentMethod",
    "Recurrence",
    "TransactionKind",
    # Results
    "FailureKind",
    "OperationResult",
    "ValidationIssue",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
