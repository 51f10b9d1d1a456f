"""Dataclass models matching the spreadsheet tabs.

Each dataclass corresponds to one tab. Field order matches the tab's
column order exactly. ``row_index`` is the sheet row number a record was
read from (header is row 1, so data starts at row 2); it is only a handle
for updates and deletes and does not take part in equality.
"""

from __future__ import annotations

import re
import time
from dataclasses import dataclass, field
from datetime import date

DEFAULT_COMPANY_ID = "default"

CATEGORY_TYPES = ("Income", "Expense")
BILL_STATUSES = ("Pending", "Paid")
INVOICE_STATUSES = ("Draft", "Sent", "Paid", "Void")

# Dates are stored as text in this format
SHEET_DATE_FORMAT = "%m/%d/%Y"


def _epoch_ms() -> int:
    return int(time.time() * 1000)


def make_record_id(name: str) -> str:
    """Slug of the display name plus a millisecond timestamp.

    "Acme Corp" -> "acme-corp-1760640000000"
    """
    slug = re.sub(r"\s+", "-", name.strip().lower())
    return f"{slug}-{_epoch_ms()}"


def make_token(prefix: str) -> str:
    """Time-based synthetic id such as ``txn-1760640000000``."""
    return f"{prefix}-{_epoch_ms()}"


def format_sheet_date(value: date) -> str:
    return value.strftime(SHEET_DATE_FORMAT)


@dataclass
class Company:
    id: str
    name: str
    invoice_prefix: str = ""
    logo_url: str = ""
    row_index: int | None = field(default=None, compare=False)


@dataclass
class Category:
    id: str
    name: str
    type: str = "Expense"
    row_index: int | None = field(default=None, compare=False)


@dataclass
class Transaction:
    """One ledger line. Exactly one of income/expense is non-zero.

    Company and category are snapshots of the display names at write
    time, not references; renaming a company does not relabel history.
    """
    date: str
    company: str
    category: str
    description: str = ""
    income: float = 0.0
    expense: float = 0.0
    receipt_link: str = ""
    invoice_id: str = ""
    row_index: int | None = field(default=None, compare=False)

    @property
    def type(self) -> str:
        return "Income" if self.income > 0 else "Expense"

    @property
    def amount(self) -> float:
        return self.income if self.income > 0 else self.expense


@dataclass
class Bill:
    bill_id: str
    due_date: str
    payee: str
    amount: float = 0.0
    status: str = "Pending"
    row_index: int | None = field(default=None, compare=False)


@dataclass
class Invoice:
    invoice_id: str
    transaction_id: str
    company_id: str
    customer_name: str = ""
    customer_address: str = ""
    issue_date: str = ""
    due_date: str = ""
    total_amount: float = 0.0
    status: str = "Draft"
    row_index: int | None = field(default=None, compare=False)


@dataclass
class InvoiceCounter:
    company_id: str
    next_number: int = 1
    row_index: int | None = field(default=None, compare=False)
