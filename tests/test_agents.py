"""Tests for assistant tool dispatch."""

import asyncio
from datetime import date

from conftest import TODAY

from kanakku.agents import TOOL_DECLARATIONS, coerce_parsed_transaction, parse_transaction
from kanakku.agents.tools import AssistantToolDispatcher
from kanakku.models.audit import AuditEventType
from kanakku.models.ledger import (
    Expense,
    ExpenseCategory,
    IncomeStatus,
    PaymentMethod,
    Recurrence,
    TransactionKind,
)
from kanakku.models.result import FailureKind, OperationResult


class TestToolDeclarations:
    """What the assistant is told it can call."""

    def test_three_tools_are_declared(self):
        """Test the declared tool names."""
        assert [tool["name"] for tool in TOOL_DECLARATIONS] == [
            "add_expense", "add_income", "delete_transaction",
        ]

    def test_enums_match_the_models(self):
        """Test that declared choices come from the ledger enums."""
        expense = TOOL_DECLARATIONS[0]["parameters"]["properties"]
        assert expense["category"]["enum"] == [c.value for c in ExpenseCategory]
        assert expense["paymentMethod"]["enum"] == ["Cash", "Card", "UPI", "Other"]
        assert TOOL_DECLARATIONS[2]["parameters"]["required"] == ["type"]


class TestDispatch:
    """Applying tool calls to the ledger."""

    def test_add_expense_call(self, signed_in_app):
        """Test that a valid call adds an expense with defaults filled in."""
        result = signed_in_app.assistant.handle(
            "add_expense", {"amount": 45, "category": "Transport"}
        )

        assert result.success
        expense = signed_in_app.ledger.expenses[0]
        assert expense.category == ExpenseCategory.TRANSPORT
        assert expense.description == "Expense from AI"
        assert expense.date == TODAY
        assert expense.payment_method == PaymentMethod.CASH

    def test_add_income_call(self, signed_in_app):
        """Test that a valid call adds an income."""
        result = signed_in_app.assistant.handle("add_income", {
            "amount": "15000",
            "category": "Rent",
            "source": "Tenant",
            "date": "2024-03-05",
            "recurrence": "Monthly",
        })

        assert result.success
        income = signed_in_app.ledger.incomes[0]
        assert income.recurrence == Recurrence.MONTHLY
        assert income.status == IncomeStatus.EXPECTED

    def test_invalid_call_touches_nothing(self, signed_in_app):
        """Test that a rejected call leaves the ledger alone and is audited."""
        result = signed_in_app.assistant.handle("add_expense", {"amount": "a lot"})

        assert result.failure == FailureKind.INVALID_COMMAND
        assert signed_in_app.ledger.expenses == []
        events = signed_in_app.audit_logger.recent_events(10)
        assert events[0].event_type == AuditEventType.ASSISTANT_COMMAND_REJECTED
        assert events[0].user_id == signed_in_app.auth.user_id

    def test_unknown_tool(self, signed_in_app):
        """Test that an undeclared tool is refused."""
        assert signed_in_app.assistant.handle("transfer_money", {}).failure == FailureKind.INVALID_COMMAND

    def test_non_dict_arguments(self, signed_in_app):
        """Test that arguments that are not an object are refused."""
        assert signed_in_app.assistant.handle("add_expense", None).failure == FailureKind.INVALID_COMMAND

    def test_delete_last_expense(self, signed_in_app):
        """Test that delete without an id removes the most recent expense."""
        ledger = signed_in_app.ledger
        ledger.restore_expense(Expense(
            id="older", amount=5, category=ExpenseCategory.FOOD, date=date(2024, 2, 1), created_at=1,
        ))
        ledger.restore_expense(Expense(
            id="latest", amount=7, category=ExpenseCategory.FOOD, date=date(2024, 2, 2), created_at=2,
        ))

        result = signed_in_app.assistant.handle("delete_transaction", {"type": "expense"})

        assert result.value.id == "latest"
        assert [e.id for e in ledger.expenses] == ["older"]

    def test_delete_unknown_id(self, signed_in_app):
        """Test that deleting an unknown record reports not found."""
        result = signed_in_app.assistant.handle("delete_transaction", {"type": "income", "id": "nope"})

        assert result.failure == FailureKind.NOT_FOUND
        assert AssistantToolDispatcher.describe(result) == "Transaction not found."

    def test_describe(self):
        """Test the short tool responses handed back to the assistant."""
        assert AssistantToolDispatcher.describe(OperationResult.ok()) == "Done."
        assert AssistantToolDispatcher.describe(
            OperationResult.fail(FailureKind.INVALID_COMMAND, "Invalid expense: Amount is required")
        ) == "Invalid expense: Amount is required"


class TestParsedTransactions:
    """Output of the text -> transaction parser."""

    def test_parsed_expense(self):
        """Test that parser output becomes a NewExpense."""
        result = coerce_parsed_transaction(
            {"amount": 120, "category": "Food", "description": "Biryani"},
            TransactionKind.EXPENSE,
        )
        assert result.value.description == "Biryani"

    def test_parsed_income(self):
        """Test that parser output becomes a NewIncome."""
        result = coerce_parsed_transaction(
            {"amount": 500, "category": "Gift", "source": "Birthday"},
            TransactionKind.INCOME,
        )
        assert result.value.source == "Birthday"

    def test_parser_failure(self):
        """Test that an empty parse is refused."""
        assert coerce_parsed_transaction(None, TransactionKind.EXPENSE).failure == FailureKind.INVALID_COMMAND
        assert coerce_parsed_transaction({}, TransactionKind.INCOME).failure == FailureKind.INVALID_COMMAND

    def test_parse_transaction_with_parser(self):
        """Test that free text goes through the parser and the same coercion."""
        class FakeParser:
            def __init__(self):
                self.calls = []

            async def parse(self, text, kind):
                self.calls.append((text, kind))
                return {"amount": "250", "description": "Auto fare"}

        parser = FakeParser()

        result = asyncio.run(parse_transaction(parser, "  250 for an auto  ", TransactionKind.EXPENSE))

        assert parser.calls == [("250 for an auto", TransactionKind.EXPENSE)]
        assert result.value.amount == 250
        assert result.value.category == ExpenseCategory.OTHER

    def test_parse_transaction_blank_text(self):
        """Test that blank text never reaches the parser."""
        class UnusedParser:
            async def parse(self, text, kind):
                raise AssertionError("parser should not be called")

        result = asyncio.run(parse_transaction(UnusedParser(), "   ", TransactionKind.INCOME))

        assert result.failure == FailureKind.INVALID_COMMAND
