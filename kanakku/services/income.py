"""
Income Lifecycle

Status automaton for a single income:

    EXPECTED --(due date passed, at store load)--> OVERDUE
    EXPECTED | OVERDUE --(user marks received)--> RECEIVED

OVERDUE is a cached derived value. It is computed by `reconcile`, a
consistency pass run once per store load, not by a live timer. The pass
is idempotent: running it twice flips nothing the second time.

Receiving a recurring income regenerates the next cycle as a NEW record,
so every past occurrence keeps its own history.

Everything here is pure: functions take and return lists; the
LedgerStore owns persistence.
"""

import calendar
from datetime import date
from typing import Callable, NamedTuple, Optional

from kanakku.models.ledger import (
    Income,
    IncomeStatus,
    Recurrence,
    new_record_id,
    now_millis,
)


def add_months(day: date, months: int) -> date:
    """
    Calendar-month addition.

    Clamps to the last day of the target month (Jan 31 + 1 -> Feb 28/29).
    """
    month_index = day.month - 1 + months
    year = day.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day.day, last_day))


class ReceiptOutcome(NamedTuple):
    incomes: list[Income]
    received: Income
    next_occurrence: Optional[Income]


class IncomeLifecycle:
    """Status transitions and recurrence generation for incomes."""

    def __init__(self, today: Callable[[], date] = date.today):
        self._today = today

    def today(self) -> date:
        return self._today()

    def initial_status(self, due: date) -> IncomeStatus:
        """Status of a freshly added income."""
        return IncomeStatus.OVERDUE if due < self._today() else IncomeStatus.EXPECTED

    def reconcile(self, incomes: list[Income]) -> tuple[list[Income], list[str]]:
        """
        Flip every EXPECTED income whose date is strictly before today
        to OVERDUE.

        Returns:
            (incomes after the pass, ids that were flipped)
        """
        today = self._today()
        flipped = []
        result = []

        for income in incomes:
            if income.status == IncomeStatus.EXPECTED and income.date < today:
                income = income.model_copy(update={"status": IncomeStatus.OVERDUE})
                flipped.append(income.id)
            result.append(income)

        return result, flipped

    @staticmethod
    def next_due_date(income: Income) -> Optional[date]:
        """Next occurrence computed from the income's own due date."""
        if income.recurrence == Recurrence.MONTHLY:
            return add_months(income.date, 1)
        if income.recurrence == Recurrence.YEARLY:
            return add_months(income.date, 12)
        return None

    def receive(self, incomes: list[Income], income_id: str) -> Optional[ReceiptOutcome]:
        """
        Mark one income as received.

        - The record becomes RECEIVED, dated today.
        - A recurring record also yields a new EXPECTED occurrence, dated
          one period after the ORIGINAL due date.
        - Resulting order: new occurrence, received record, the rest.

        Returns:
            ReceiptOutcome, or None if the id is unknown or the income was
            already received
        """
        original = next((income for income in incomes if income.id == income_id), None)
        if original is None or original.status == IncomeStatus.RECEIVED:
            return None

        received = original.model_copy(update={
            "status": IncomeStatus.RECEIVED,
            "date": self._today(),
        })

        next_occurrence = None
        next_due = self.next_due_date(original)
        if next_due is not None:
            next_occurrence = original.model_copy(update={
                "id": new_record_id(),
                "date": next_due,
                "status": IncomeStatus.EXPECTED,
                "created_at": now_millis(),
            })

        others = [income for income in incomes if income.id != income_id]
        head = [next_occurrence, received] if next_occurrence else [received]

        return ReceiptOutcome(
            incomes=head + others,
            received=received,
            next_occurrence=next_occurrence,
        )
