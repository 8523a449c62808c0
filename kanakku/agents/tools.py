"""
Assistant Tool Dispatch for Kanakku

The conversational assistant (an external LLM) may call three actions:
add_expense, add_income and delete_transaction. This module owns their
declarations and applies the calls to the ledger.

CRITICAL BOUNDARIES:

1. The assistant is a TRANSLATOR, not a trusted writer.
   - Its arguments are loosely typed JSON and are coerced by the same
     CommandValidator rules the forms use
   - Anything that does not coerce is rejected with INVALID_COMMAND
   - Nothing reaches the LedgerStore without passing validation

2. Deletion confirmation is the assistant's job.
   - The declaration instructs it to confirm with the user first
   - This core does not (and cannot) check that it did

3. A delete without an id removes the most recently created record of
   that type ("delete my last expense").

The text -> transaction parser is another external collaborator; its
output goes through coerce_parsed_transaction with the same rules.
"""

from typing import Any, Callable, Optional, Protocol

import structlog

from kanakku.audit import AuditLogger
from kanakku.models.audit import AuditEventType, AuditSeverity
from kanakku.models.ledger import (
    ExpenseCategory,
    IncomeCategory,
    PaymentMethod,
    Recurrence,
    TransactionKind,
)
from kanakku.models.result import FailureKind, OperationResult
from kanakku.services.ledger import LedgerStore
from kanakku.validation import CommandValidator


logger = structlog.get_logger(__name__)


def _choices(enum_cls) -> list[str]:
    return [member.value for member in enum_cls]


ADD_EXPENSE_TOOL = {
    "name": "add_expense",
    "description": "Add a new expense transaction to the tracking system.",
    "parameters": {
        "type": "object",
        "properties": {
            "amount": {"type": "number", "description": "Numeric amount of the expense."},
            "category": {
                "type": "string",
                "enum": _choices(ExpenseCategory),
                "description": "Category of the expense.",
            },
            "description": {"type": "string", "description": "Description of what was purchased."},
            "date": {"type": "string", "description": "Date of transaction in YYYY-MM-DD format."},
            "paymentMethod": {
                "type": "string",
                "enum": _choices(PaymentMethod),
                "description": "Method of payment.",
            },
        },
        "required": ["amount", "category", "description"],
    },
}

ADD_INCOME_TOOL = {
    "name": "add_income",
    "description": (
        "Add a new income source or scheduled income (like Salary, Rent) "
        "to the tracking system."
    ),
    "parameters": {
        "type": "object",
        "properties": {
            "amount": {"type": "number", "description": "Numeric amount of the income."},
            "category": {
                "type": "string",
                "enum": _choices(IncomeCategory),
                "description": "Category of the income.",
            },
            "source": {
                "type": "string",
                "description": "Source of the income (e.g., Employer Name, Tenant Name).",
            },
            "date": {
                "type": "string",
                "description": "Date of income receipt or due date in YYYY-MM-DD format.",
            },
            "recurrence": {
                "type": "string",
                "enum": _choices(Recurrence),
                "description": "How often this income repeats.",
            },
        },
        "required": ["amount", "category", "source"],
    },
}

DELETE_TRANSACTION_TOOL = {
    "name": "delete_transaction",
    "description": (
        "Delete a specific expense or income transaction. Always confirm with "
        "the user before calling this tool, unless the user's request is an "
        "explicit command like 'Yes, delete it'."
    ),
    "parameters": {
        "type": "object",
        "properties": {
            "type": {
                "type": "string",
                "enum": _choices(TransactionKind),
                "description": "The type of transaction to delete.",
            },
            "id": {
                "type": "string",
                "description": (
                    "The ID of the transaction to delete. Leave blank to delete "
                    "the most recent one of that type."
                ),
            },
        },
        "required": ["type"],
    },
}

TOOL_DECLARATIONS = [ADD_EXPENSE_TOOL, ADD_INCOME_TOOL, DELETE_TRANSACTION_TOOL]


class TransactionParser(Protocol):
    """External text -> structured transaction parser."""

    async def parse(self, text: str, kind: TransactionKind) -> dict[str, Any]:
        ...


def coerce_parsed_transaction(
    parsed: Optional[dict[str, Any]],
    kind: TransactionKind,
    validator: Optional[CommandValidator] = None,
) -> OperationResult:
    """
    Turn parser output into a NewExpense / NewIncome command.

    The parser is not trusted: its output gets the assistant's coercion
    rules and the same INVALID_COMMAND rejection.
    """
    validator = validator or CommandValidator()
    if not isinstance(parsed, dict):
        return OperationResult.fail(
            FailureKind.INVALID_COMMAND,
            "Could not understand the transaction",
        )
    if kind == TransactionKind.EXPENSE:
        return validator.coerce_expense(parsed)
    return validator.coerce_income(parsed)


async def parse_transaction(
    parser: TransactionParser,
    text: str,
    kind: TransactionKind,
    validator: Optional[CommandValidator] = None,
) -> OperationResult:
    """
    Ask the parser to read free text, then coerce what it returns.

    Errors raised by the parser propagate to the caller.
    """
    if not (text or "").strip():
        return OperationResult.fail(FailureKind.INVALID_COMMAND, "Nothing to parse")

    parsed = await parser.parse(text.strip(), kind)
    result = coerce_parsed_transaction(parsed, kind, validator)
    if result.failed:
        logger.info("parsed_transaction_rejected", kind=kind.value, issues=len(result.issues))
    return result


class AssistantToolDispatcher:
    """
    Applies assistant tool calls to the ledger.

    USAGE:
        dispatcher = AssistantToolDispatcher(ledger)
        result = dispatcher.handle("add_expense", {"amount": 120, ...})
        reply_to_model = dispatcher.describe(result)
    """

    def __init__(
        self,
        ledger: LedgerStore,
        validator: Optional[CommandValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
        user_id: Optional[Callable[[], Optional[str]]] = None,
    ):
        self._ledger = ledger
        self._validator = validator or CommandValidator(today=ledger.lifecycle.today)
        self._audit_logger = audit_logger
        self._user_id = user_id or (lambda: None)
        self._handlers: dict[str, Callable[[dict[str, Any]], OperationResult]] = {
            "add_expense": self._add_expense,
            "add_income": self._add_income,
            "delete_transaction": self._delete_transaction,
        }

    @property
    def declarations(self) -> list[dict[str, Any]]:
        return list(TOOL_DECLARATIONS)

    def handle(self, name: str, args: Optional[dict[str, Any]]) -> OperationResult:
        """
        Run one tool call.

        Returns:
            The ledger operation's result, or INVALID_COMMAND for an
            unknown tool or arguments that do not validate
        """
        handler = self._handlers.get(name)
        if handler is None:
            return self._rejected(name, OperationResult.fail(
                FailureKind.INVALID_COMMAND,
                f"Tool not available: {name}",
            ))

        result = handler(args if isinstance(args, dict) else {})
        if result.failed and result.failure == FailureKind.INVALID_COMMAND:
            return self._rejected(name, result)
        logger.info("assistant_tool_applied", tool=name, success=result.success)
        return result

    def _add_expense(self, args: dict[str, Any]) -> OperationResult:
        command = self._validator.coerce_expense(args)
        if command.failed:
            return command
        return self._ledger.add_expense(command.value)

    def _add_income(self, args: dict[str, Any]) -> OperationResult:
        command = self._validator.coerce_income(args)
        if command.failed:
            return command
        return self._ledger.add_income(command.value)

    def _delete_transaction(self, args: dict[str, Any]) -> OperationResult:
        command = self._validator.coerce_delete(args)
        if command.failed:
            return command
        return self._ledger.delete_transaction(command.value)

    def _rejected(self, name: str, result: OperationResult) -> OperationResult:
        logger.warning("assistant_tool_rejected", tool=name, reason=result.message)
        if self._audit_logger:
            self._audit_logger.log_event(
                AuditEventType.ASSISTANT_COMMAND_REJECTED,
                f"Assistant call '{name[:64]}' rejected",
                user_id=self._user_id(),
                severity=AuditSeverity.WARNING,
                is_user_action=False,
                details={
                    "tool": name,
                    "reason": result.message,
                    "issues": [issue.issue_type for issue in result.issues],
                },
            )
        return result

    @staticmethod
    def describe(result: OperationResult) -> str:
        """Short text handed back to the assistant as the tool response."""
        if result.success:
            return "Done."
        if result.failure == FailureKind.NOT_FOUND:
            return "Transaction not found."
        return result.message or "Error executing operation."
