"""
CSV Export

One row per expense (negative amount, status "Paid") followed by one
row per income (positive amount, its lifecycle status). Delivering the
file to the user is somebody else's job.
"""

import csv
import io
from datetime import date
from typing import Optional

from kanakku.config import get_settings
from kanakku.models.ledger import Expense, Income


EXPORT_HEADER = ["Type", "Date", "Category", "Description/Source", "Amount", "Status"]


def export_filename(day: Optional[date] = None) -> str:
    """e.g. kanakku_export_2024-01-15.csv"""
    day = day or date.today()
    return f"{get_settings().backup.export_prefix}_{day.isoformat()}.csv"


def export_rows(expenses: list[Expense], incomes: list[Income]) -> list[list[str]]:
    rows = [
        [
            "Expense",
            expense.date.isoformat(),
            expense.category.value,
            expense.description,
            f"-{expense.amount:.2f}",
            "Paid",
        ]
        for expense in expenses
    ]
    rows.extend(
        [
            "Income",
            income.date.isoformat(),
            income.category.value,
            income.source,
            f"{income.amount:.2f}",
            income.status.value,
        ]
        for income in incomes
    )
    return rows


def export_csv(expenses: list[Expense], incomes: list[Income]) -> str:
    """
    Render the ledger as CSV text.

    Standard CSV quoting: a description or source holding a comma or a
    quote is quoted, with embedded quotes doubled.
    """
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(EXPORT_HEADER)
    writer.writerows(export_rows(expenses, incomes))
    return buffer.getvalue()
