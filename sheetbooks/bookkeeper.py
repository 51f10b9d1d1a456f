"""Bookkeeper: business operations composed from table accessors.

Several of these touch more than one tab (invoice creation, company
creation/deletion, paying a bill). The backing service has no
transactions, so a composite operation that fails part way is not rolled
back. Instead every outcome says how far it got:

    success  everything was written
    aborted  nothing durable changed (safe to retry)
    partial  some rows were written; the message names them

Partial outcomes are always reported at error level with a message that
is distinct from a clean abort.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import date
from pathlib import Path

from sheetbooks.database.models import (
    BILL_STATUSES,
    CATEGORY_TYPES,
    DEFAULT_COMPANY_ID,
    INVOICE_STATUSES,
    Bill,
    Category,
    Company,
    Invoice,
    InvoiceCounter,
    Transaction,
    format_sheet_date,
    make_record_id,
    make_token,
)
from sheetbooks.database.repository import SheetRepository
from sheetbooks.drive.uploader import LOGO_MAX_BYTES, RECEIPT_MAX_BYTES, DriveUploader
from sheetbooks.invoicing.counter import InvoiceCounterSequencer, format_invoice_id
from sheetbooks.sheets.codec import TableKind

logger = logging.getLogger(__name__)

FIRST_INVOICE_NUMBER = 1


@dataclass
class OperationResult:
    """Outcome of a bookkeeping operation."""
    status: str  # "success", "aborted", "partial"
    stage: str   # last step attempted
    message: str
    record_id: str | None = None
    invoice_id: str | None = None

    @property
    def ok(self) -> bool:
        return self.status == "success"

    @property
    def changed_state(self) -> bool:
        return self.status in ("success", "partial")


@dataclass
class TransactionEntry:
    """User input for a new or edited transaction."""
    date: date
    company: str
    category: str
    amount: float
    type: str  # "Income" or "Expense"
    description: str = ""


@dataclass
class InvoiceRequest:
    """User input for an invoice and the income transaction behind it."""
    customer_name: str
    amount: float
    category: str
    issue_date: date
    due_date: date
    customer_address: str = ""
    description: str = ""


def _valid_amount(amount: float) -> bool:
    return isinstance(amount, (int, float)) and math.isfinite(amount) and amount > 0


def _valid_date(value) -> bool:
    return isinstance(value, date)


class Bookkeeper:
    """Orchestrates multi-step writes against the finance spreadsheet.

    Args:
        repo: Table accessors.
        sequencer: Invoice number sequencer. Defaults to one over ``repo``.
        uploader: Drive uploader for receipts and logos. Without one,
            operations that attach a file are refused.
    """

    def __init__(
        self,
        repo: SheetRepository,
        sequencer: InvoiceCounterSequencer | None = None,
        uploader: DriveUploader | None = None,
    ):
        self.repo = repo
        self.sequencer = sequencer or InvoiceCounterSequencer(repo)
        self.uploader = uploader
        self.notifier = repo.notifier

    # ── Outcome helpers ──────────────────────────────────

    def _aborted(self, stage: str, message: str, notify: bool = True) -> OperationResult:
        """Nothing was written. Accessor failures have already been reported."""
        if notify:
            self.notifier.error(message)
        logger.info("Operation aborted at %s: %s", stage, message)
        return OperationResult(status="aborted", stage=stage, message=message)

    def _partial(self, stage: str, message: str, **ids) -> OperationResult:
        self.notifier.error(message)
        logger.error("Partial write at %s: %s", stage, message)
        return OperationResult(status="partial", stage=stage, message=message, **ids)

    def _success(self, stage: str, message: str, **ids) -> OperationResult:
        self.notifier.success(message)
        return OperationResult(status="success", stage=stage, message=message, **ids)

    def _upload(self, access_token: str | None, path: Path | str, max_bytes: int,
                images_only: bool = False) -> str | None:
        if self.uploader is None:
            self.notifier.error("File uploads are not configured.")
            return None
        return self.uploader.upload_binary(
            access_token, path, max_bytes=max_bytes, images_only=images_only,
        )

    # ── Categories ───────────────────────────────────────

    def add_category(self, access_token: str | None, name: str, category_type: str) -> OperationResult:
        name = name.strip()
        if not name:
            return self._aborted("validate", "Please enter a category name.")
        if category_type not in CATEGORY_TYPES:
            return self._aborted("validate", f"Category type must be one of {', '.join(CATEGORY_TYPES)}.")

        category = Category(id=make_record_id(name), name=name, type=category_type)
        if not self.repo.append_category(access_token, category):
            return self._aborted("append", f"Category \"{name}\" was not added.", notify=False)
        return self._success("append", f"Category \"{name}\" added successfully!", record_id=category.id)

    # ── Companies ────────────────────────────────────────

    def create_company(
        self,
        access_token: str | None,
        name: str,
        invoice_prefix: str = "INV-",
        logo_path: Path | str | None = None,
    ) -> OperationResult:
        """Append the company row, then its invoice counter row.

        The two appends are independent. If the counter append fails the
        company stays and the outcome is partial.
        """
        name = name.strip()
        if not name:
            return self._aborted("validate", "Please enter a company name.")
        if not invoice_prefix:
            return self._aborted("validate", "Please enter an invoice prefix.")

        logo_url = ""
        if logo_path is not None:
            logo_url = self._upload(access_token, logo_path, LOGO_MAX_BYTES, images_only=True)
            if not logo_url:
                return self._aborted("upload", "Logo upload failed. Company not added.")

        company = Company(id=make_record_id(name), name=name,
                          invoice_prefix=invoice_prefix, logo_url=logo_url)
        if not self.repo.append_company(access_token, company):
            return self._aborted("company", f"Company \"{name}\" was not added.", notify=False)

        counter = InvoiceCounter(company_id=company.id, next_number=FIRST_INVOICE_NUMBER)
        if not self.repo.append_invoice_counter(access_token, counter):
            return self._partial(
                "counter",
                f"Company \"{name}\" added, but its invoice counter failed. "
                f"Add a row '{company.id}, {FIRST_INVOICE_NUMBER}' to the InvoiceCounter tab "
                "before creating invoices for it.",
                record_id=company.id,
            )
        return self._success("counter", f"Company \"{name}\" added successfully!", record_id=company.id)

    def update_company(
        self,
        access_token: str | None,
        company: Company,
        name: str,
        invoice_prefix: str,
        logo_path: Path | str | None = None,
    ) -> OperationResult:
        """Rewrite a company's row in place. The id never changes."""
        name = name.strip()
        if not name or not invoice_prefix:
            return self._aborted("validate", "Please fill out all required fields.")
        if company.row_index is None:
            return self._aborted("validate", "Company has no row position; refresh the list first.")

        logo_url = company.logo_url
        if logo_path is not None:
            logo_url = self._upload(access_token, logo_path, LOGO_MAX_BYTES, images_only=True)
            if not logo_url:
                return self._aborted("upload", "Logo upload failed. Company not updated.")

        updated = Company(id=company.id, name=name, invoice_prefix=invoice_prefix, logo_url=logo_url)
        if not self.repo.update_company_at(access_token, company.row_index, updated):
            return self._aborted("update", f"Company \"{company.name}\" was not updated.", notify=False)
        return self._success("update", f"Company \"{name}\" updated.", record_id=company.id)

    def delete_company(self, access_token: str | None, company: Company) -> OperationResult:
        """Delete a company together with its invoice counter row.

        Both rows go in one batched request, so they disappear together or
        not at all. A company with no counter row is deleted alone.
        Transactions that mention the company by name are left untouched.
        """
        if company.id == DEFAULT_COMPANY_ID:
            return self._aborted("validate", "The default company cannot be deleted.")
        if company.row_index is None:
            return self._aborted("validate", "Company has no row position; refresh the list first.")

        counters = self.repo.fetch_invoice_counters(access_token)
        if counters is None:
            return self._aborted("counter", f"Company \"{company.name}\" was not deleted.", notify=False)

        targets = [(TableKind.COMPANY, company.row_index)]
        counter = next((c for c in counters if c.company_id == company.id), None)
        if counter is None:
            logger.warning("No invoice counter row for company %s; deleting company only", company.id)
        else:
            targets.append((TableKind.INVOICE_COUNTER, counter.row_index))

        if not self.repo.delete_rows(access_token, targets):
            return self._aborted("delete", f"Company \"{company.name}\" was not deleted.", notify=False)
        return self._success("delete", f"Company \"{company.name}\" deleted.", record_id=company.id)

    # ── Transactions ─────────────────────────────────────

    def _validate_entry(self, entry: TransactionEntry) -> str | None:
        if not entry.company or not entry.category:
            return "Please fill out all required fields."
        if not _valid_date(entry.date):
            return "Please enter a valid date."
        if not _valid_amount(entry.amount):
            return "Please enter a valid, positive amount."
        if entry.type not in CATEGORY_TYPES:
            return f"Transaction type must be one of {', '.join(CATEGORY_TYPES)}."
        return None

    @staticmethod
    def _entry_to_transaction(entry: TransactionEntry, receipt_link: str = "",
                              invoice_id: str = "") -> Transaction:
        return Transaction(
            date=format_sheet_date(entry.date),
            company=entry.company,
            category=entry.category,
            description=entry.description,
            income=entry.amount if entry.type == "Income" else 0.0,
            expense=entry.amount if entry.type == "Expense" else 0.0,
            receipt_link=receipt_link,
            invoice_id=invoice_id,
        )

    def add_transaction(
        self,
        access_token: str | None,
        entry: TransactionEntry,
        receipt_path: Path | str | None = None,
    ) -> OperationResult:
        """Append a transaction, uploading its receipt first if one is given."""
        problem = self._validate_entry(entry)
        if problem:
            return self._aborted("validate", problem)

        receipt_link = ""
        if receipt_path is not None:
            receipt_link = self._upload(access_token, receipt_path, RECEIPT_MAX_BYTES)
            if not receipt_link:
                return self._aborted("upload", "Receipt upload failed. Transaction not added.")

        txn = self._entry_to_transaction(entry, receipt_link=receipt_link)
        if not self.repo.append_transaction(access_token, txn):
            return self._aborted("append", "Transaction was not added.", notify=False)
        return self._success("append", "Transaction added successfully!")

    def update_transaction(
        self,
        access_token: str | None,
        current: Transaction,
        entry: TransactionEntry,
        receipt_path: Path | str | None = None,
    ) -> OperationResult:
        """Rewrite a listed transaction at its row position.

        The receipt link and invoice id carry over unless a new receipt is
        uploaded.
        """
        problem = self._validate_entry(entry)
        if problem:
            return self._aborted("validate", problem)
        if current.row_index is None:
            return self._aborted("validate", "Transaction has no row position; refresh the list first.")

        receipt_link = current.receipt_link
        if receipt_path is not None:
            receipt_link = self._upload(access_token, receipt_path, RECEIPT_MAX_BYTES)
            if not receipt_link:
                return self._aborted("upload", "Receipt upload failed. Transaction not updated.")

        txn = self._entry_to_transaction(entry, receipt_link=receipt_link, invoice_id=current.invoice_id)
        if not self.repo.update_transaction_at(access_token, current.row_index, txn):
            return self._aborted("update", "Transaction was not updated.", notify=False)
        return self._success("update", "Transaction updated.")

    def delete_transaction(self, access_token: str | None, row_index: int) -> OperationResult:
        """Delete by row position. Re-list afterwards; later rows have moved."""
        if not self.repo.delete_transaction_at(access_token, row_index):
            return self._aborted("delete", "Transaction was not deleted.", notify=False)
        return self._success("delete", "Transaction deleted.")

    # ── Bills ────────────────────────────────────────────

    def add_bill(self, access_token: str | None, due_date: date, payee: str, amount: float) -> OperationResult:
        payee = payee.strip()
        if not payee:
            return self._aborted("validate", "Please fill out all required fields.")
        if not _valid_date(due_date):
            return self._aborted("validate", "Please enter a valid due date.")
        if not _valid_amount(amount):
            return self._aborted("validate", "Please enter a valid, positive amount.")

        bill = Bill(
            bill_id=make_token("bill"),
            due_date=format_sheet_date(due_date),
            payee=payee,
            amount=amount,
            status=BILL_STATUSES[0],
        )
        if not self.repo.append_bill(access_token, bill):
            return self._aborted("append", f"Bill for \"{payee}\" was not added.", notify=False)
        return self._success("append", f"Bill for \"{payee}\" added.", record_id=bill.bill_id)

    def pay_bill(
        self,
        access_token: str | None,
        bill: Bill,
        company_name: str,
        category_name: str,
        paid_on: date | None = None,
    ) -> OperationResult:
        """Record the payment as an expense, then mark the bill Paid.

        The bill row itself is only touched in its status column.
        """
        if not company_name or not category_name:
            return self._aborted("validate", "Please select a company and category for the transaction.")
        if bill.status == "Paid":
            return self._aborted("validate", f"Bill for \"{bill.payee}\" is already paid.")
        if bill.row_index is None:
            return self._aborted("validate", "Bill has no row position; refresh the list first.")

        txn = Transaction(
            date=format_sheet_date(paid_on or date.today()),
            company=company_name,
            category=category_name,
            description=f"Payment for bill: {bill.payee}",
            expense=bill.amount,
        )
        if not self.repo.append_transaction(access_token, txn):
            return self._aborted(
                "transaction", "Failed to create expense transaction. Please try again.",
            )

        if not self.repo.update_bill_status(access_token, bill.row_index, "Paid"):
            return self._partial(
                "status",
                f"The payment for \"{bill.payee}\" was recorded as an expense, but the bill is "
                "still marked Pending. Mark it Paid by hand; paying it again would record "
                "a second expense.",
                record_id=bill.bill_id,
            )
        return self._success("status", f"Bill for \"{bill.payee}\" marked as paid.", record_id=bill.bill_id)

    def delete_bill(self, access_token: str | None, bill: Bill) -> OperationResult:
        if bill.row_index is None:
            return self._aborted("validate", "Bill has no row position; refresh the list first.")
        if not self.repo.delete_bill_at(access_token, bill.row_index):
            return self._aborted("delete", f"Bill for \"{bill.payee}\" was not deleted.", notify=False)
        return self._success("delete", f"Bill for \"{bill.payee}\" deleted.", record_id=bill.bill_id)

    # ── Invoices ─────────────────────────────────────────

    def create_invoiced_transaction(
        self,
        access_token: str | None,
        company: Company,
        request: InvoiceRequest,
    ) -> OperationResult:
        """Reserve a number, write the transaction, the invoice, then advance the counter.

        Steps and what a failure at each one leaves behind:
          1. reserve      nothing written
          2. transaction  nothing written
          3. invoice      transaction exists, its invoice does not
          4. counter      both exist, counter not advanced (next invoice
                          for this company would reuse the same id)
        """
        if not request.customer_name.strip() or not request.category:
            return self._aborted("validate", "Please fill out all required fields.")
        if not _valid_amount(request.amount):
            return self._aborted("validate", "Please enter a valid, positive amount.")
        if not (_valid_date(request.issue_date) and _valid_date(request.due_date)):
            return self._aborted("validate", "Please enter valid issue and due dates.")
        issue_date = format_sheet_date(request.issue_date)
        due_date = format_sheet_date(request.due_date)

        reservation = self.sequencer.peek_next(access_token, company.id)
        if reservation is None:
            return self._aborted(
                "reserve",
                f"Could not reserve an invoice number for \"{company.name}\". Nothing was saved.",
            )

        invoice_id = format_invoice_id(company.invoice_prefix, reservation.next_number)
        transaction_id = make_token("txn")

        txn = Transaction(
            date=issue_date,
            company=company.name,
            category=request.category,
            description=request.description or f"Invoice {invoice_id} - {request.customer_name}",
            income=request.amount,
            invoice_id=invoice_id,
        )
        if not self.repo.append_transaction(access_token, txn):
            self.sequencer.release(reservation)
            return self._aborted(
                "transaction",
                f"Could not add the transaction for invoice {invoice_id}. Nothing was saved.",
            )

        invoice = Invoice(
            invoice_id=invoice_id,
            transaction_id=transaction_id,
            company_id=company.id,
            customer_name=request.customer_name.strip(),
            customer_address=request.customer_address,
            issue_date=issue_date,
            due_date=due_date,
            total_amount=request.amount,
            status=INVOICE_STATUSES[0],
        )
        if not self.repo.append_invoice(access_token, invoice):
            self.sequencer.release(reservation)
            return self._partial(
                "invoice",
                f"The transaction for invoice {invoice_id} was saved, but the invoice itself "
                "could not be created. The transaction now points at a missing invoice; "
                "delete it or add the invoice by hand.",
                invoice_id=invoice_id,
            )

        next_number = reservation.next_number + 1
        if not self.sequencer.commit(access_token, reservation, next_number):
            self.sequencer.release(reservation)
            return self._partial(
                "counter",
                f"Invoice {invoice_id} was created, but the invoice counter was not advanced. "
                f"The next invoice for \"{company.name}\" would reuse {invoice_id}; set its "
                f"counter to {next_number} before creating another.",
                invoice_id=invoice_id,
            )

        return self._success("counter", f"Invoice {invoice_id} created.", invoice_id=invoice_id)

    def set_invoice_status(self, access_token: str | None, invoice: Invoice, status: str) -> OperationResult:
        """Write only the status column of an invoice row."""
        if status not in INVOICE_STATUSES:
            return self._aborted("validate", f"Invoice status must be one of {', '.join(INVOICE_STATUSES)}.")
        if invoice.row_index is None:
            return self._aborted("validate", "Invoice has no row position; refresh the list first.")
        if not self.repo.update_invoice_status(access_token, invoice.row_index, status):
            return self._aborted("status", f"Invoice {invoice.invoice_id} was not updated.", notify=False)
        return self._success(
            "status", f"Invoice {invoice.invoice_id} marked {status}.", invoice_id=invoice.invoice_id,
        )
