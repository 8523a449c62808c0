"""
Tests for Kanakku models

Test strategy:
1. Unit tests for individual components (models, validators, services)
2. Flow tests through the assembled app
3. No real platform or assistant calls in tests (use fakes)
"""

import json
from datetime import date

import pytest

from kanakku.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from kanakku.models.ledger import (
    BackupPayload,
    Budget,
    Expense,
    ExpenseCategory,
    Income,
    IncomeCategory,
    IncomeStatus,
    PaymentMethod,
    Recurrence,
)
from kanakku.models.profile import UserProfile
from kanakku.models.result import FailureKind, OperationResult


class TestLedgerModels:
    """Tests for expense, income and budget records."""

    def test_expense_creation(self):
        """Test Expense model creation and defaults."""
        expense = Expense(
            amount=12.5,
            category=ExpenseCategory.FOOD,
            description="  Lunch  ",
            date=date(2024, 1, 2),
        )
        assert expense.description == "Lunch"
        assert expense.payment_method == PaymentMethod.CASH
        assert expense.id
        assert expense.created_at > 0

    def test_expense_rejects_non_positive_amount(self):
        """Test that zero and negative amounts are rejected."""
        with pytest.raises(ValueError):
            Expense(amount=0, category=ExpenseCategory.FOOD, date=date(2024, 1, 2))
        with pytest.raises(ValueError):
            Expense(amount=-5, category=ExpenseCategory.FOOD, date=date(2024, 1, 2))

    def test_records_are_frozen(self):
        """Test that a stored record cannot be mutated in place."""
        expense = Expense(amount=1, category=ExpenseCategory.FOOD, date=date(2024, 1, 2))
        with pytest.raises(ValueError):
            expense.amount = 2

    def test_stored_names_are_camel_case(self):
        """Test the field names written to storage and backups."""
        income = Income(
            amount=100,
            category=IncomeCategory.RENT,
            source="Tenant",
            date=date(2024, 1, 15),
            tenant_contact="9876543210",
        )
        dumped = income.model_dump(mode="json", by_alias=True)

        assert dumped["tenantContact"] == "9876543210"
        assert dumped["createdAt"] == income.created_at
        assert dumped["recurrence"] == "None"
        assert dumped["status"] == "Expected"

    def test_records_load_from_stored_names(self):
        """Test reading a record written by an earlier version."""
        expense = Expense.model_validate({
            "id": "e1",
            "amount": 99,
            "category": "Shopping",
            "description": "Shoes",
            "date": "2024-01-20",
            "paymentMethod": "Card",
            "createdAt": 1705708800000,
        })
        assert expense.payment_method == PaymentMethod.CARD
        assert expense.created_at == 1705708800000

    def test_budget_limit_bounds(self):
        """Test that a zero limit is allowed and a negative one is not."""
        assert Budget(category=ExpenseCategory.FOOD, limit=0).limit == 0
        with pytest.raises(ValueError):
            Budget(category=ExpenseCategory.FOOD, limit=-1)


class TestProfileModels:
    """Tests for the user profile."""

    def test_identifiers(self):
        """Test that only non-empty identifiers are reported."""
        assert UserProfile(email="a@b.com").identifiers == ["a@b.com"]
        assert UserProfile(mobile="98", email="a@b.com").identifiers == ["98", "a@b.com"]
        assert UserProfile().identifiers == []

    def test_storage_dict(self):
        """Test the stored shape of a profile."""
        stored = UserProfile(email="a@b.com", biometric_enabled=True).to_storage_dict()

        assert stored["biometricEnabled"] is True
        assert "biometricCredentialId" not in stored
        assert "password" not in stored

    def test_backup_payload_aliases(self):
        """Test the top-level names of the backup payload."""
        payload = BackupPayload.model_validate({
            "metadata": {"userId": "u1", "email": "", "version": "1.0", "timestamp": 1},
            "userProfile": {"id": "u1", "name": "Asha"},
            "data": {"expenses": [], "incomes": [], "budgets": []},
        })
        dumped = json.loads(payload.model_dump_json(by_alias=True))

        assert payload.user_profile.name == "Asha"
        assert dumped["metadata"]["userId"] == "u1"
        assert "userProfile" in dumped


class TestOperationResult:
    """Tests for the unified result type."""

    def test_ok(self):
        """Test a successful result."""
        result = OperationResult.ok(42)
        assert result.success and not result.failed
        assert result.value == 42
        assert bool(result)

    def test_fail_default_message(self):
        """Test that a failure gets a readable default message."""
        result = OperationResult.fail(FailureKind.OWNERSHIP_MISMATCH)
        assert not result
        assert result.message == "Ownership mismatch"


class TestAuditModels:
    """Tests for audit-related models."""

    def test_audit_event_creation(self):
        """Test AuditEvent model creation."""
        event = AuditEvent(
            event_type=AuditEventType.EXPENSE_ADDED,
            description="Expense added",
        )
        assert event.event_type == AuditEventType.EXPENSE_ADDED
        assert event.severity == AuditSeverity.INFO
        assert event.event_id is not None

    def test_audit_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        event = AuditEventBuilder.login_failed("invalid_credentials")
        log_dict = event.to_log_dict()

        assert log_dict["event_type"] == "login_failed"
        assert log_dict["severity"] == "warning"
        assert log_dict["error_code"] == "invalid_credentials"

    def test_audit_event_storage_json(self):
        """Test that the stored form reloads to the same event."""
        event = AuditEventBuilder.logout("u1")
        assert AuditEvent.model_validate(json.loads(event.to_storage_json())) == event

    def test_all_categories_exist(self):
        """Test the closed category and recurrence sets."""
        assert [c.value for c in ExpenseCategory] == [
            "Food", "Transport", "Entertainment", "Utilities",
            "Healthcare", "Shopping", "Housing", "Other",
        ]
        assert [c.value for c in IncomeCategory] == [
            "Salary", "Rent", "Interest", "Business", "Gift", "Other",
        ]
        assert [r.value for r in Recurrence] == ["None", "Monthly", "Yearly"]
        assert [s.value for s in IncomeStatus] == ["Expected", "Received", "Overdue"]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
