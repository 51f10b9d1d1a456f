"""Range codec: conversion between typed records and spreadsheet rows.

Each logical table is a fixed column span on its own tab, laid out by the
provisioning routine with a protected header in row 1. The column order
below is a contract with that layout; changing one without the other
silently misaligns every read and write.

Decoding is total. Short rows are padded, blanks become type defaults, and
numeric cells go through ``lenient_number`` (unparseable text becomes 0).
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable

from sheetbooks.database.models import (
    Bill,
    Category,
    Company,
    Invoice,
    InvoiceCounter,
    Transaction,
)
from sheetbooks.sheets.client import FIRST_DATA_ROW, a1_range

logger = logging.getLogger(__name__)

# Leading number the way a permissive float parser reads it, so "12.5kg" is 12.5
_NUMBER_PREFIX = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?")


class TableKind(str, Enum):
    COMPANY = "Company"
    CATEGORY = "Category"
    TRANSACTION = "Transaction"
    BILL = "Bill"
    INVOICE = "Invoice"
    INVOICE_COUNTER = "InvoiceCounter"


# ── Cell helpers ─────────────────────────────────────────


def _cell(cells: list, i: int) -> Any:
    return cells[i] if i < len(cells) and cells[i] is not None else ""


def _text(cells: list, i: int) -> str:
    return str(_cell(cells, i))


def lenient_number(value: Any, column: str = "") -> float:
    """Parse a numeric cell, degrading bad input to 0.

    Blank cells are 0 silently. Text with no leading number ("abc",
    "$12") is 0 and logged, so one malformed row never breaks a listing.
    Thousands separators are ignored, so "1,250.00" is 1250.0.
    """
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        return float(value)
    text = str(value).strip().replace(",", "")
    if not text:
        return 0.0
    match = _NUMBER_PREFIX.match(text)
    if match is None:
        logger.warning("Non-numeric value %r in %s column, using 0", value, column or "numeric")
        return 0.0
    return float(match.group(0))


def _number_or_blank(value: float) -> float | str:
    return value if value > 0 else ""


def _one_of(value: str, allowed: tuple[str, ...], default: str) -> str:
    return value if value in allowed else default


# ── Per-table encode/decode ──────────────────────────────


def company_to_row(company: Company) -> list:
    return [company.id, company.name, company.invoice_prefix, company.logo_url]


def row_to_company(cells: list, row_index: int | None = None) -> Company:
    return Company(
        id=_text(cells, 0),
        name=_text(cells, 1),
        invoice_prefix=_text(cells, 2),
        logo_url=_text(cells, 3),
        row_index=row_index,
    )


def category_to_row(category: Category) -> list:
    return [category.id, category.name, category.type]


def row_to_category(cells: list, row_index: int | None = None) -> Category:
    return Category(
        id=_text(cells, 0),
        name=_text(cells, 1),
        type=_one_of(_text(cells, 2), ("Income",), "Expense"),
        row_index=row_index,
    )


def transaction_to_row(txn: Transaction) -> list:
    """Income and expense share a row; the unused side is written blank."""
    return [
        txn.date,
        txn.company,
        txn.category,
        txn.description,
        _number_or_blank(txn.income),
        _number_or_blank(txn.expense),
        txn.receipt_link,
        txn.invoice_id,
    ]


def row_to_transaction(cells: list, row_index: int | None = None) -> Transaction:
    income = lenient_number(_cell(cells, 4), "income")
    expense = lenient_number(_cell(cells, 5), "expense")
    if income < 0 or expense < 0:
        logger.warning(
            "Transaction row %s has a negative amount (income %s, expense %s), using 0",
            row_index, income, expense,
        )
        income, expense = max(income, 0.0), max(expense, 0.0)
    if income > 0 and expense > 0:
        # Hand-edited row with both sides filled: keep only the net side
        logger.warning(
            "Transaction row %s has both income and expense, keeping the net amount",
            row_index,
        )
        if income >= expense:
            income, expense = income - expense, 0.0
        else:
            income, expense = 0.0, expense - income
    return Transaction(
        date=_text(cells, 0),
        company=_text(cells, 1),
        category=_text(cells, 2),
        description=_text(cells, 3),
        income=income,
        expense=expense,
        receipt_link=_text(cells, 6),
        invoice_id=_text(cells, 7),
        row_index=row_index,
    )


def bill_to_row(bill: Bill) -> list:
    return [bill.bill_id, bill.due_date, bill.payee, bill.amount, bill.status]


def row_to_bill(cells: list, row_index: int | None = None) -> Bill:
    return Bill(
        bill_id=_text(cells, 0),
        due_date=_text(cells, 1),
        payee=_text(cells, 2),
        amount=lenient_number(_cell(cells, 3), "amount"),
        status=_one_of(_text(cells, 4), ("Paid",), "Pending"),
        row_index=row_index,
    )


def invoice_to_row(invoice: Invoice) -> list:
    return [
        invoice.invoice_id,
        invoice.transaction_id,
        invoice.company_id,
        invoice.customer_name,
        invoice.customer_address,
        invoice.issue_date,
        invoice.due_date,
        invoice.total_amount,
        invoice.status,
    ]


def row_to_invoice(cells: list, row_index: int | None = None) -> Invoice:
    return Invoice(
        invoice_id=_text(cells, 0),
        transaction_id=_text(cells, 1),
        company_id=_text(cells, 2),
        customer_name=_text(cells, 3),
        customer_address=_text(cells, 4),
        issue_date=_text(cells, 5),
        due_date=_text(cells, 6),
        total_amount=lenient_number(_cell(cells, 7), "total amount"),
        status=_one_of(_text(cells, 8), ("Draft", "Sent", "Paid", "Void"), "Draft"),
        row_index=row_index,
    )


def counter_to_row(counter: InvoiceCounter) -> list:
    return [counter.company_id, counter.next_number]


def row_to_counter(cells: list, row_index: int | None = None) -> InvoiceCounter:
    return InvoiceCounter(
        company_id=_text(cells, 0),
        next_number=int(lenient_number(_cell(cells, 1), "next invoice number")),
        row_index=row_index,
    )


# ── Table layouts ────────────────────────────────────────


@dataclass(frozen=True)
class TableLayout:
    """Where a table lives and how its rows convert."""
    kind: TableKind
    tab: str
    label: str  # plural noun for user-facing messages
    width: int  # number of columns, starting at A
    encode: Callable[[Any], list]
    decode: Callable[[list, int | None], Any]
    is_empty: Callable[[Any], bool]

    def data_range(self) -> str:
        """Everything below the header, e.g. ``Companies!A2:D``."""
        return a1_range(self.tab, 1, self.width, FIRST_DATA_ROW)

    def append_range(self) -> str:
        return a1_range(self.tab, 1, self.width)

    def row_range(self, row_index: int) -> str:
        return a1_range(self.tab, 1, self.width, row_index, row_index)

    def cell_range(self, row_index: int, column: int) -> str:
        return a1_range(self.tab, column, column, row_index, row_index)


TABLES: dict[TableKind, TableLayout] = {
    TableKind.COMPANY: TableLayout(
        TableKind.COMPANY, "Companies", "companies", 4,
        company_to_row, row_to_company,
        lambda c: not (c.id or c.name),
    ),
    TableKind.CATEGORY: TableLayout(
        TableKind.CATEGORY, "Categories", "categories", 3,
        category_to_row, row_to_category,
        lambda c: not (c.id or c.name),
    ),
    TableKind.TRANSACTION: TableLayout(
        TableKind.TRANSACTION, "Transactions", "transactions", 8,
        transaction_to_row, row_to_transaction,
        lambda t: not (
            t.date or t.company or t.category or t.description
            or t.income or t.expense or t.receipt_link or t.invoice_id
        ),
    ),
    TableKind.BILL: TableLayout(
        TableKind.BILL, "Bills", "bills", 5,
        bill_to_row, row_to_bill,
        lambda b: not (b.bill_id or b.payee),
    ),
    TableKind.INVOICE: TableLayout(
        TableKind.INVOICE, "Invoices", "invoices", 9,
        invoice_to_row, row_to_invoice,
        lambda i: not i.invoice_id,
    ),
    TableKind.INVOICE_COUNTER: TableLayout(
        TableKind.INVOICE_COUNTER, "InvoiceCounter", "invoice counters", 2,
        counter_to_row, row_to_counter,
        lambda c: not c.company_id,
    ),
}

# 1-indexed columns targeted by single-cell writes
BILL_STATUS_COLUMN = 5
INVOICE_STATUS_COLUMN = 9
COUNTER_VALUE_COLUMN = 2


def encode_row(kind: TableKind, record: Any) -> list:
    return TABLES[kind].encode(record)


def decode_row(kind: TableKind, cells: list | None, row_index: int | None = None) -> Any | None:
    """Decode one row, or return None if it carries nothing meaningful."""
    layout = TABLES[kind]
    record = layout.decode(list(cells or []), row_index)
    if layout.is_empty(record):
        return None
    return record


def is_empty_record(kind: TableKind, record: Any) -> bool:
    return TABLES[kind].is_empty(record)
