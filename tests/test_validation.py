"""Tests for password policy and command coercion."""

from datetime import date

import pytest
from conftest import TODAY, fixed_today

from kanakku.models.ledger import (
    ExpenseCategory,
    IncomeCategory,
    NewExpense,
    PaymentMethod,
    Recurrence,
    TransactionKind,
)
from kanakku.models.result import FailureKind
from kanakku.validation import CommandValidator, PasswordPolicy
from kanakku.validation.validator import DEFAULT_AI_EXPENSE_DESCRIPTION


@pytest.fixture
def validator() -> CommandValidator:
    return CommandValidator(today=fixed_today)


class TestPasswordPolicy:
    """Minimum-strength password checks."""

    @pytest.mark.parametrize("password", ["Passw0rd!", "Abcdef1$", "XYZ12345_", "Kanakku#2024"])
    def test_strong_passwords(self, password):
        """Test passwords that satisfy every rule."""
        assert PasswordPolicy().check(password).success

    @pytest.mark.parametrize("password, issue", [
        ("Pa0!", "too_short"),
        ("passw0rd!", "missing_uppercase"),
        ("Password!", "missing_digit"),
        ("Passw0rd", "missing_symbol"),
        ("Passw0rd%", "missing_symbol"),
    ])
    def test_weak_passwords(self, password, issue):
        """Test that each broken rule is reported."""
        result = PasswordPolicy().check(password)

        assert result.failure == FailureKind.WEAK_PASSWORD
        assert issue in [i.issue_type for i in result.issues]

    def test_missing_password(self):
        """Test that no password at all is weak."""
        assert PasswordPolicy().check(None).failure == FailureKind.WEAK_PASSWORD

    def test_confirmation_mismatch(self):
        """Test that a differing confirmation is PASSWORD_MISMATCH."""
        assert PasswordPolicy().check("Passw0rd!", "Passw0rd?").failure == FailureKind.PASSWORD_MISMATCH
        assert PasswordPolicy().check("Passw0rd!", "Passw0rd!").success


class TestCoerceExpense:
    """Loosely-typed arguments -> NewExpense."""

    def test_defaults_for_missing_values(self, validator):
        """Test category, description, date and payment defaults."""
        result = validator.coerce_expense({"amount": 250})

        assert result.value == NewExpense(
            amount=250,
            category=ExpenseCategory.OTHER,
            description=DEFAULT_AI_EXPENSE_DESCRIPTION,
            date=TODAY,
            payment_method=PaymentMethod.CASH,
        )

    def test_values_are_coerced(self, validator):
        """Test string amounts, case-insensitive enums and ISO dates."""
        command = validator.coerce_expense({
            "amount": "1,250.50",
            "category": "food",
            "description": "Groceries",
            "date": "2024-02-10",
            "paymentMethod": "upi",
        }).value

        assert command.amount == 1250.5
        assert command.category == ExpenseCategory.FOOD
        assert command.date == date(2024, 2, 10)
        assert command.payment_method == PaymentMethod.UPI

    def test_snake_case_keys_are_accepted(self, validator):
        """Test that payment_method works as well as paymentMethod."""
        command = validator.coerce_expense({"amount": 5, "payment_method": "Card"}).value
        assert command.payment_method == PaymentMethod.CARD

    @pytest.mark.parametrize("args", [
        {},
        {"amount": "abc"},
        {"amount": -5},
        {"amount": 0},
        {"amount": True},
        {"amount": 10, "category": "Groceries"},
        {"amount": 10, "paymentMethod": "Cheque"},
        {"amount": 10, "date": "10/02/2024"},
    ])
    def test_invalid_arguments(self, validator, args):
        """Test that bad input is INVALID_COMMAND with issues."""
        result = validator.coerce_expense(args)

        assert result.failure == FailureKind.INVALID_COMMAND
        assert result.issues


class TestCoerceIncome:
    """Loosely-typed arguments -> NewIncome."""

    def test_income_with_recurrence(self, validator):
        """Test a fully specified income."""
        command = validator.coerce_income({
            "amount": 15000,
            "category": "Rent",
            "source": "Tenant",
            "date": "2024-03-05",
            "recurrence": "Monthly",
        }).value

        assert command.category == IncomeCategory.RENT
        assert command.recurrence == Recurrence.MONTHLY
        assert command.date == date(2024, 3, 5)

    def test_recurrence_defaults_to_none(self, validator):
        """Test that a missing recurrence means a one-off income."""
        command = validator.coerce_income({"amount": 100, "source": "Gift from Amma"}).value

        assert command.recurrence == Recurrence.NONE
        assert command.category == IncomeCategory.OTHER
        assert command.date == TODAY

    def test_source_is_required(self, validator):
        """Test that an income without a source is refused."""
        result = validator.coerce_income({"amount": 100, "category": "Salary"})

        assert result.failure == FailureKind.INVALID_COMMAND
        assert [i.field for i in result.issues] == ["source"]


class TestCoerceDelete:
    """Loosely-typed arguments -> DeleteTransaction."""

    def test_delete_with_id(self, validator):
        """Test a delete naming a record."""
        command = validator.coerce_delete({"type": "expense", "id": "e1"}).value
        assert command.kind == TransactionKind.EXPENSE
        assert command.id == "e1"

    def test_delete_without_id(self, validator):
        """Test a delete of the most recent record."""
        command = validator.coerce_delete({"type": "Income"}).value
        assert command.kind == TransactionKind.INCOME
        assert command.id is None

    @pytest.mark.parametrize("args", [{}, {"type": "transfer"}, {"id": "e1"}])
    def test_invalid_delete(self, validator, args):
        """Test that a missing or unknown type is refused."""
        assert validator.coerce_delete(args).failure == FailureKind.INVALID_COMMAND
