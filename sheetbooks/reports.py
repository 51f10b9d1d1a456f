"""Income/expense reports over listed transactions.

Pure functions: the caller fetches transactions through the repository
and passes them in, so a report never touches the network.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime

from sheetbooks.database.models import SHEET_DATE_FORMAT, Transaction

logger = logging.getLogger(__name__)

ALL_COMPANIES = "all"


@dataclass
class CategoryTotal:
    name: str
    value: float


@dataclass
class Report:
    total_income: float = 0.0
    total_expense: float = 0.0
    income_by_category: list[CategoryTotal] = field(default_factory=list)
    expense_by_category: list[CategoryTotal] = field(default_factory=list)
    transaction_count: int = 0

    @property
    def net_income(self) -> float:
        return self.total_income - self.total_expense


def parse_sheet_date(value: str) -> date | None:
    """Parse an MM/DD/YYYY cell. Anything else is None."""
    if not value or value.count("/") != 2:
        return None
    try:
        return datetime.strptime(value.strip(), SHEET_DATE_FORMAT).date()
    except ValueError:
        return None


def _by_category(totals: dict[str, float]) -> list[CategoryTotal]:
    return sorted(
        (CategoryTotal(name=name, value=value) for name, value in totals.items()),
        key=lambda c: c.value,
        reverse=True,
    )


def build_report(
    transactions: list[Transaction],
    company: str | None = None,
    start: date | None = None,
    end: date | None = None,
) -> Report:
    """Summarise transactions for one company (or all) in an inclusive date range.

    ``company`` matches the transaction's company name; None or "all"
    takes every company. With only ``start`` given the range is that one
    day; with only ``end`` given it runs from the earliest row up to
    ``end``. Rows whose date cannot be parsed are left out.
    """
    if start is not None and end is None:
        end = start

    income: dict[str, float] = {}
    expense: dict[str, float] = {}
    report = Report()
    skipped = 0

    for txn in transactions:
        if company not in (None, ALL_COMPANIES) and txn.company != company:
            continue
        txn_date = parse_sheet_date(txn.date)
        if txn_date is None:
            skipped += 1
            continue
        if (start is not None and txn_date < start) or (end is not None and txn_date > end):
            continue

        report.transaction_count += 1
        report.total_income += txn.income
        report.total_expense += txn.expense
        if txn.income > 0 and txn.category:
            income[txn.category] = income.get(txn.category, 0.0) + txn.income
        if txn.expense > 0 and txn.category:
            expense[txn.category] = expense.get(txn.category, 0.0) + txn.expense

    if skipped:
        logger.warning("Report skipped %d transactions with unreadable dates", skipped)

    report.income_by_category = _by_category(income)
    report.expense_by_category = _by_category(expense)
    return report
