"""
Ledger Store

Owns the expenses, incomes and budgets on this device and persists each
collection to its own plain JSON slot on every mutation (write-through,
no batching, no transaction across the three slots).

DESIGN DECISION: A mutation builds the new collection, writes its slot,
and only then swaps it in memory. A failed write leaves both storage
and memory as they were.

Collections are ordered: insertion order is display order unless a
consumer sorts. New records go first; an undone delete goes last.
"""

import json
from typing import Callable, Optional, TypeVar

import structlog
from pydantic import BaseModel, ValidationError

from kanakku.audit import AuditLogger
from kanakku.models.audit import AuditEventType
from kanakku.models.ledger import (
    Budget,
    DeleteTransaction,
    Expense,
    ExpenseCategory,
    Income,
    NewExpense,
    NewIncome,
    TransactionKind,
)
from kanakku.models.result import FailureKind, OperationResult
from kanakku.services.events import ChangeEvent, ChangeNotifier
from kanakku.services.income import IncomeLifecycle
from kanakku.services.storage import (
    KeyValueStorageInterface,
    SlotKeys,
    StorageError,
)


logger = structlog.get_logger(__name__)

M = TypeVar("M", bound=BaseModel)


def _serialize(records: list[BaseModel], unreadable: Optional[list] = None) -> str:
    return json.dumps(
        [record.model_dump(mode="json", by_alias=True, exclude_none=True) for record in records]
        + (unreadable or []),
        ensure_ascii=False,
    )


class LedgerStore:
    """
    The ledger of the device.

    Publishes "expenses", "incomes" and "budgets" change events.
    """

    def __init__(
        self,
        storage: KeyValueStorageInterface,
        lifecycle: Optional[IncomeLifecycle] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self._lifecycle = lifecycle or IncomeLifecycle()
        self._audit_logger = audit_logger
        self._notifier = ChangeNotifier()

        self._expenses: list[Expense] = []
        self._incomes: list[Income] = []
        self._budgets: list[Budget] = []
        # Raw stored entries that failed validation, per slot. They are
        # written back untouched so a write-through never drops them.
        self._unreadable: dict[str, list] = {}

    # ------------------------------------------------------------------
    # Read-only view
    # ------------------------------------------------------------------

    @property
    def expenses(self) -> list[Expense]:
        return list(self._expenses)

    @property
    def incomes(self) -> list[Income]:
        return list(self._incomes)

    @property
    def budgets(self) -> list[Budget]:
        return list(self._budgets)

    @property
    def lifecycle(self) -> IncomeLifecycle:
        return self._lifecycle

    def subscribe(self, listener: Callable[[ChangeEvent], None]) -> Callable[[], None]:
        return self._notifier.subscribe(listener)

    def get_budget(self, category: ExpenseCategory) -> float:
        """Limit for a category, 0 when none is set."""
        budget = next((b for b in self._budgets if b.category == category), None)
        return budget.limit if budget else 0

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def _read_slot(self, key: str, model: type[M]) -> list[M]:
        self._unreadable[key] = []
        raw = self._storage.get_item(key)
        if not raw:
            return []
        try:
            entries = json.loads(raw)
        except ValueError:
            logger.error("ledger_slot_unreadable", slot=key)
            return []
        if not isinstance(entries, list):
            logger.error("ledger_slot_unreadable", slot=key)
            return []

        records = []
        for entry in entries:
            try:
                records.append(model.model_validate(entry))
            except ValidationError as e:
                logger.warning("ledger_record_skipped", slot=key, errors=e.error_count())
                self._unreadable[key].append(entry)
        return records

    def load(self) -> int:
        """
        Load all three collections and run the overdue reconcile pass.

        Returns:
            How many incomes were flipped to OVERDUE (and persisted)
        """
        self._expenses = self._read_slot(SlotKeys.EXPENSES, Expense)
        self._budgets = self._read_slot(SlotKeys.BUDGETS, Budget)
        incomes = self._read_slot(SlotKeys.INCOMES, Income)

        reconciled, flipped = self._lifecycle.reconcile(incomes)
        self._incomes = reconciled
        if flipped:
            try:
                self._storage.set_item(
                    SlotKeys.INCOMES,
                    _serialize(reconciled, self._unreadable.get(SlotKeys.INCOMES)),
                )
            except StorageError as e:
                # Status is derived; the next load recomputes it
                logger.error("overdue_persist_failed", error=str(e))
            if self._audit_logger:
                self._audit_logger.log_ledger_change(
                    AuditEventType.INCOMES_MARKED_OVERDUE,
                    "income",
                    None,
                    f"{len(flipped)} income(s) marked overdue",
                    details={"income_ids": flipped},
                )

        for topic in ("expenses", "incomes", "budgets"):
            self._notifier.publish(topic, getattr(self, topic))
        return len(flipped)

    # ------------------------------------------------------------------
    # Commit helpers
    # ------------------------------------------------------------------

    def _commit(
        self,
        topic: str,
        slot: str,
        records: list,
        keep_unreadable: bool = True,
    ) -> Optional[OperationResult]:
        """
        Write a collection, then swap it in memory.

        Entries that could not be read at load are written back after
        `records` unless `keep_unreadable` is False.

        Returns a failure result if the write failed, else None.
        """
        unreadable = self._unreadable.get(slot) if keep_unreadable else None
        try:
            self._storage.set_item(slot, _serialize(records, unreadable))
        except StorageError as e:
            if self._audit_logger:
                self._audit_logger.log_storage_error(f"write_{topic}", str(e))
            return OperationResult.fail(FailureKind.STORAGE_FAILURE, str(e))

        if not keep_unreadable:
            self._unreadable.pop(slot, None)
        setattr(self, f"_{topic}", list(records))
        self._notifier.publish(topic, list(records))
        return None

    def _audit(
        self,
        event_type: AuditEventType,
        entity_type: str,
        entity_id: Optional[str],
        description: str,
        details: Optional[dict] = None,
    ) -> None:
        if self._audit_logger:
            self._audit_logger.log_ledger_change(
                event_type, entity_type, entity_id, description, details
            )

    # ------------------------------------------------------------------
    # Expenses
    # ------------------------------------------------------------------

    def add_expense(self, command: NewExpense) -> OperationResult:
        """Create an expense with a fresh id and creation timestamp."""
        expense = Expense(
            amount=command.amount,
            category=command.category,
            description=command.description,
            date=command.date,
            payment_method=command.payment_method,
        )
        failure = self._commit("expenses", SlotKeys.EXPENSES, [expense] + self._expenses)
        if failure is not None:
            return failure

        self._audit(
            AuditEventType.EXPENSE_ADDED, "expense", expense.id,
            f"Expense added: {expense.category.value} {expense.amount:.2f}",
        )
        return OperationResult.ok(expense)

    def delete_expense(self, expense_id: str) -> OperationResult:
        """
        Remove an expense.

        Returns:
            OperationResult with the removed Expense (keep it for undo)
        """
        removed = next((e for e in self._expenses if e.id == expense_id), None)
        if removed is None:
            return OperationResult.fail(FailureKind.NOT_FOUND, "Expense not found")

        failure = self._commit(
            "expenses", SlotKeys.EXPENSES,
            [e for e in self._expenses if e.id != expense_id],
        )
        if failure is not None:
            return failure

        self._audit(AuditEventType.EXPENSE_DELETED, "expense", expense_id, "Expense deleted")
        return OperationResult.ok(removed)

    def restore_expense(self, expense: Expense) -> OperationResult:
        """Reinsert a previously deleted expense (undo)."""
        if any(e.id == expense.id for e in self._expenses):
            return OperationResult.fail(
                FailureKind.INVALID_COMMAND,
                "Expense is already in the ledger",
            )

        failure = self._commit("expenses", SlotKeys.EXPENSES, self._expenses + [expense])
        if failure is not None:
            return failure

        self._audit(AuditEventType.EXPENSE_RESTORED, "expense", expense.id, "Expense restored")
        return OperationResult.ok(expense)

    # ------------------------------------------------------------------
    # Incomes
    # ------------------------------------------------------------------

    def add_income(self, command: NewIncome) -> OperationResult:
        """
        Create an income. It starts OVERDUE when its date has already
        passed, EXPECTED otherwise.
        """
        income = Income(
            amount=command.amount,
            category=command.category,
            source=command.source,
            date=command.date,
            recurrence=command.recurrence,
            status=self._lifecycle.initial_status(command.date),
            tenant_contact=command.tenant_contact,
        )
        failure = self._commit("incomes", SlotKeys.INCOMES, [income] + self._incomes)
        if failure is not None:
            return failure

        self._audit(
            AuditEventType.INCOME_ADDED, "income", income.id,
            f"Income added: {income.category.value} {income.amount:.2f}",
            details={"recurrence": income.recurrence.value, "status": income.status.value},
        )
        return OperationResult.ok(income)

    def delete_income(self, income_id: str) -> OperationResult:
        removed = next((i for i in self._incomes if i.id == income_id), None)
        if removed is None:
            return OperationResult.fail(FailureKind.NOT_FOUND, "Income not found")

        failure = self._commit(
            "incomes", SlotKeys.INCOMES,
            [i for i in self._incomes if i.id != income_id],
        )
        if failure is not None:
            return failure

        self._audit(AuditEventType.INCOME_DELETED, "income", income_id, "Income deleted")
        return OperationResult.ok(removed)

    def mark_income_received(self, income_id: str) -> OperationResult:
        """
        Mark an income received, generating its next occurrence when it
        recurs.

        Returns:
            OperationResult with a ReceiptOutcome; NOT_FOUND (no change)
            when the id is unknown or already received
        """
        outcome = self._lifecycle.receive(self._incomes, income_id)
        if outcome is None:
            return OperationResult.fail(FailureKind.NOT_FOUND, "No pending income with that id")

        failure = self._commit("incomes", SlotKeys.INCOMES, outcome.incomes)
        if failure is not None:
            return failure

        self._audit(
            AuditEventType.INCOME_RECEIVED, "income", income_id,
            "Income marked received",
            details={
                "next_occurrence_id": outcome.next_occurrence.id if outcome.next_occurrence else None,
            },
        )
        return OperationResult.ok(outcome)

    # ------------------------------------------------------------------
    # Budgets
    # ------------------------------------------------------------------

    def set_budget(self, category: ExpenseCategory, limit: float) -> OperationResult:
        """Set a category's limit, replacing any previous one."""
        try:
            budget = Budget(category=category, limit=limit)
        except ValidationError as e:
            return OperationResult.fail(FailureKind.INVALID_COMMAND, str(e))

        budgets = [b for b in self._budgets if b.category != budget.category] + [budget]
        failure = self._commit("budgets", SlotKeys.BUDGETS, budgets)
        if failure is not None:
            return failure

        self._audit(
            AuditEventType.BUDGET_SET, "budget", budget.category.value,
            f"Budget for {budget.category.value} set to {budget.limit:.2f}",
        )
        return OperationResult.ok(budget)

    # ------------------------------------------------------------------
    # Commands and bulk replacement
    # ------------------------------------------------------------------

    def delete_transaction(self, command: DeleteTransaction) -> OperationResult:
        """
        Delete by command. Without an id, the most recently created
        record of that kind is deleted.
        """
        records = self._expenses if command.kind == TransactionKind.EXPENSE else self._incomes
        record_id = command.id
        if record_id is None:
            if not records:
                return OperationResult.fail(FailureKind.NOT_FOUND, f"No {command.kind.value} to delete")
            record_id = max(records, key=lambda r: r.created_at).id

        if command.kind == TransactionKind.EXPENSE:
            return self.delete_expense(record_id)
        return self.delete_income(record_id)

    def replace_all(
        self,
        expenses: list[Expense],
        incomes: list[Income],
        budgets: list[Budget],
    ) -> OperationResult:
        """
        Replace all three collections wholesale (backup restore).

        Each slot is written independently; there is no rollback across
        slots. Entries that could not be read at load are discarded.
        """
        for topic, slot, records in (
            ("expenses", SlotKeys.EXPENSES, expenses),
            ("incomes", SlotKeys.INCOMES, incomes),
            ("budgets", SlotKeys.BUDGETS, budgets),
        ):
            failure = self._commit(topic, slot, records, keep_unreadable=False)
            if failure is not None:
                return failure

        return OperationResult.ok()
