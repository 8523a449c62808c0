"""
Input Validation

Two kinds of input reach the core from outside:

PASSWORDS:
- Chosen at onboarding or on reset
- Must meet a minimum-strength policy and match their confirmation

LOOSELY-TYPED COMMAND ARGUMENTS:
- Tool calls from the conversational assistant
- Output of the text-to-transaction parser
- Both are coerced into the same typed commands (NewExpense, NewIncome,
  DeleteTransaction) that direct user actions use, or rejected with
  INVALID_COMMAND and a list of issues

IMPORTANT: Validation never touches the ledger. It only produces a
command or a rejection; the caller applies the command.
"""

import math
from datetime import date
from enum import Enum
from typing import Any, Callable, Optional, TypeVar

from pydantic import ValidationError

from kanakku.config import get_settings
from kanakku.models.ledger import (
    DeleteTransaction,
    ExpenseCategory,
    IncomeCategory,
    NewExpense,
    NewIncome,
    PaymentMethod,
    Recurrence,
    TransactionKind,
)
from kanakku.models.result import FailureKind, OperationResult, ValidationIssue


E = TypeVar("E", bound=Enum)

DEFAULT_AI_EXPENSE_DESCRIPTION = "Expense from AI"


class PasswordPolicy:
    """
    Minimum-strength password policy.

    A password needs the minimum length, one uppercase letter, one digit
    and one symbol from the configured set.
    """

    def __init__(
        self,
        min_length: Optional[int] = None,
        symbols: Optional[str] = None,
    ):
        security = get_settings().security
        self.min_length = min_length or security.password_min_length
        self.symbols = symbols or security.password_symbols

    def issues_for(self, password: Optional[str]) -> list[ValidationIssue]:
        """Every rule the password breaks (empty list if it is strong)."""
        password = password or ""
        issues = []

        if len(password) < self.min_length:
            issues.append(ValidationIssue(
                field="password",
                issue_type="too_short",
                message=f"Password must be at least {self.min_length} characters",
            ))
        if not any(c.isupper() for c in password):
            issues.append(ValidationIssue(
                field="password",
                issue_type="missing_uppercase",
                message="Password needs an uppercase letter",
            ))
        if not any(c.isdigit() for c in password):
            issues.append(ValidationIssue(
                field="password",
                issue_type="missing_digit",
                message="Password needs a number",
            ))
        if not any(c in self.symbols for c in password):
            issues.append(ValidationIssue(
                field="password",
                issue_type="missing_symbol",
                message=f"Password needs one special character ({self.symbols})",
            ))

        return issues

    def check(
        self,
        password: Optional[str],
        confirmation: Optional[str] = None,
    ) -> OperationResult:
        """
        Validate a new password.

        The confirmation is only compared when one is supplied.
        """
        issues = self.issues_for(password)
        if issues:
            return OperationResult.fail(
                FailureKind.WEAK_PASSWORD,
                "Password too weak",
                issues=issues,
            )

        if confirmation is not None and confirmation != password:
            return OperationResult.fail(
                FailureKind.PASSWORD_MISMATCH,
                "Passwords do not match",
                issues=[ValidationIssue(
                    field="confirm_password",
                    issue_type="mismatch",
                    message="Passwords do not match",
                )],
            )

        return OperationResult.ok()


def _pick(args: dict[str, Any], *names: str) -> Any:
    """First present, non-blank value among alternative key spellings."""
    for name in names:
        value = args.get(name)
        if value is None:
            continue
        if isinstance(value, str) and not value.strip():
            continue
        return value
    return None


class CommandValidator:
    """
    Coerces raw, loosely-typed arguments into typed ledger commands.

    Missing optional values get the same defaults the forms use;
    present-but-wrong values are rejected, never guessed.
    """

    def __init__(self, today: Callable[[], date] = date.today):
        self._today = today

    # ------------------------------------------------------------------
    # Field coercion helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _amount(raw: Any, issues: list[ValidationIssue]) -> Optional[float]:
        if raw is None:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="missing",
                message="Amount is required",
            ))
            return None
        value = math.nan
        if not isinstance(raw, bool):
            try:
                value = float(str(raw).replace(",", "").strip())
            except ValueError:
                pass
        if math.isnan(value) or math.isinf(value):
            issues.append(ValidationIssue(
                field="amount",
                issue_type="invalid_value",
                message=f"Amount '{raw}' is not a number",
            ))
            return None
        if value <= 0:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="invalid_value",
                message="Amount must be greater than zero",
            ))
            return None
        return value

    @staticmethod
    def _enum(
        enum_cls: type[E],
        raw: Any,
        default: E,
        field: str,
        issues: list[ValidationIssue],
    ) -> Optional[E]:
        if raw is None:
            return default
        text = str(raw).strip().lower()
        for member in enum_cls:
            if member.value.lower() == text:
                return member
        allowed = ", ".join(member.value for member in enum_cls)
        issues.append(ValidationIssue(
            field=field,
            issue_type="invalid_choice",
            message=f"'{raw}' is not one of: {allowed}",
        ))
        return None

    def _date(self, raw: Any, issues: list[ValidationIssue]) -> Optional[date]:
        if raw is None:
            return self._today()
        if isinstance(raw, date):
            return raw
        try:
            return date.fromisoformat(str(raw).strip()[:10])
        except ValueError:
            issues.append(ValidationIssue(
                field="date",
                issue_type="invalid_format",
                message=f"Date '{raw}' is not in YYYY-MM-DD format",
            ))
            return None

    @staticmethod
    def _reject(issues: list[ValidationIssue], what: str) -> OperationResult:
        return OperationResult.fail(
            FailureKind.INVALID_COMMAND,
            f"Invalid {what}: " + "; ".join(issue.message for issue in issues),
            issues=issues,
        )

    @staticmethod
    def _issues_from(error: ValidationError) -> list[ValidationIssue]:
        return [
            ValidationIssue(
                field=".".join(str(part) for part in err["loc"]) or "command",
                issue_type=err["type"],
                message=err["msg"],
            )
            for err in error.errors()
        ]

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def coerce_expense(self, args: dict[str, Any]) -> OperationResult:
        """Raw arguments -> NewExpense."""
        issues: list[ValidationIssue] = []

        amount = self._amount(_pick(args, "amount"), issues)
        category = self._enum(
            ExpenseCategory, _pick(args, "category"),
            ExpenseCategory.OTHER, "category", issues,
        )
        payment_method = self._enum(
            PaymentMethod, _pick(args, "paymentMethod", "payment_method"),
            PaymentMethod.CASH, "payment_method", issues,
        )
        day = self._date(_pick(args, "date"), issues)
        description = _pick(args, "description")

        if issues:
            return self._reject(issues, "expense")

        try:
            command = NewExpense(
                amount=amount,
                category=category,
                description=str(description) if description is not None else DEFAULT_AI_EXPENSE_DESCRIPTION,
                date=day,
                payment_method=payment_method,
            )
        except ValidationError as e:
            return self._reject(self._issues_from(e), "expense")

        return OperationResult.ok(command)

    def coerce_income(self, args: dict[str, Any]) -> OperationResult:
        """Raw arguments -> NewIncome. A source is required."""
        issues: list[ValidationIssue] = []

        amount = self._amount(_pick(args, "amount"), issues)
        category = self._enum(
            IncomeCategory, _pick(args, "category"),
            IncomeCategory.OTHER, "category", issues,
        )
        recurrence = self._enum(
            Recurrence, _pick(args, "recurrence"),
            Recurrence.NONE, "recurrence", issues,
        )
        day = self._date(_pick(args, "date"), issues)
        source = _pick(args, "source")
        if source is None:
            issues.append(ValidationIssue(
                field="source",
                issue_type="missing",
                message="Income source is required",
            ))
        tenant_contact = _pick(args, "tenantContact", "tenant_contact")

        if issues:
            return self._reject(issues, "income")

        try:
            command = NewIncome(
                amount=amount,
                category=category,
                source=str(source),
                date=day,
                recurrence=recurrence,
                tenant_contact=str(tenant_contact) if tenant_contact is not None else None,
            )
        except ValidationError as e:
            return self._reject(self._issues_from(e), "income")

        return OperationResult.ok(command)

    def coerce_delete(self, args: dict[str, Any]) -> OperationResult:
        """Raw arguments -> DeleteTransaction."""
        issues: list[ValidationIssue] = []

        raw_kind = _pick(args, "type", "kind")
        if raw_kind is None:
            issues.append(ValidationIssue(
                field="type",
                issue_type="missing",
                message="Transaction type is required",
            ))
            return self._reject(issues, "delete request")

        kind = self._enum(TransactionKind, raw_kind, TransactionKind.EXPENSE, "type", issues)
        if issues:
            return self._reject(issues, "delete request")

        record_id = _pick(args, "id")
        return OperationResult.ok(DeleteTransaction(
            kind=kind,
            id=str(record_id) if record_id is not None else None,
        ))
