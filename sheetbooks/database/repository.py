"""Repository: table accessors over the spreadsheet.

One accessor set per tab (list / append / update-at / delete-at), all
built on the range codec. Every method takes the caller's bearer token
explicitly; a missing token aborts before any network call.

Nothing here raises past the method boundary. Failures are logged with
the underlying error, reported once through the notifier, and turned
into an empty list / False / None so callers can short-circuit.

Row positions are sheet row numbers (first data row = 2). Appends never
move existing rows; a delete shifts every later row in that tab up by
one, so callers must re-list before using any position they kept.
"""

from __future__ import annotations

import logging
from typing import Any

from sheetbooks.database.models import (
    Bill,
    Category,
    Company,
    Invoice,
    InvoiceCounter,
    Transaction,
)
from sheetbooks.notices import Notifier
from sheetbooks.sheets.client import (
    FIRST_DATA_ROW,
    WRITE_PARAMS,
    ClientFactory,
    delete_rows_request,
    http_client_for_token,
)
from sheetbooks.sheets.codec import (
    BILL_STATUS_COLUMN,
    COUNTER_VALUE_COLUMN,
    INVOICE_STATUS_COLUMN,
    TABLES,
    TableKind,
    decode_row,
    encode_row,
)
from sheetbooks.sheets.resolver import resolve_sheet_id

logger = logging.getLogger(__name__)

# Read-path cap for the transaction list, newest first
TRANSACTION_LIST_LIMIT = 100


class SheetRepository:
    """Typed CRUD against one spreadsheet.

    Args:
        spreadsheet_id: Document id of the user's finance spreadsheet.
        client_factory: Builds a Sheets HTTP client from a bearer token.
            Tests pass a factory returning an in-memory document.
        notifier: Receives user-facing failure notices.
    """

    def __init__(
        self,
        spreadsheet_id: str,
        client_factory: ClientFactory = http_client_for_token,
        notifier: Notifier | None = None,
    ):
        self.spreadsheet_id = spreadsheet_id
        self.client_factory = client_factory
        self.notifier = notifier or Notifier()

    # ── Generic accessors ────────────────────────────────

    def _client(self, access_token: str | None, action: str):
        if not access_token:
            logger.warning("No access token, skipping: %s", action)
            self.notifier.error(f"Not signed in to Google. Could not {action}.")
            return None
        return self.client_factory(access_token)

    def _valid_position(self, row_index: int, action: str) -> bool:
        if row_index < FIRST_DATA_ROW:
            logger.error("Refusing to %s at row %s (header or invalid)", action, row_index)
            self.notifier.error(f"Could not {action}: invalid row position {row_index}.")
            return False
        return True

    def fetch(self, kind: TableKind, access_token: str | None) -> list | None:
        """Read and decode a whole table. None on failure, [] if empty."""
        layout = TABLES[kind]
        action = f"load your {layout.label}"
        client = self._client(access_token, action)
        if client is None:
            return None
        try:
            response = client.values_get(
                self.spreadsheet_id, layout.data_range(),
                params={"majorDimension": "ROWS"},
            )
        except Exception as e:
            logger.error("Failed to read %s: %s", layout.tab, e)
            self.notifier.error(f"Could not {action}.")
            return None

        records = []
        for offset, cells in enumerate(response.get("values", [])):
            record = decode_row(kind, cells, FIRST_DATA_ROW + offset)
            if record is not None:
                records.append(record)
        return records

    def list_records(self, kind: TableKind, access_token: str | None) -> list:
        return self.fetch(kind, access_token) or []

    def append(self, kind: TableKind, access_token: str | None, record: Any) -> bool:
        """Append one row after the last used row. The new position is not returned."""
        layout = TABLES[kind]
        action = f"add to {layout.label}"
        client = self._client(access_token, action)
        if client is None:
            return False
        try:
            client.values_append(
                self.spreadsheet_id, layout.append_range(),
                params=WRITE_PARAMS,
                body={"values": [encode_row(kind, record)]},
            )
        except Exception as e:
            logger.error("Failed to append to %s: %s", layout.tab, e)
            self.notifier.error(f"Could not {action}.")
            return False
        logger.info("Appended row to %s", layout.tab)
        return True

    def update_at(self, kind: TableKind, access_token: str | None, row_index: int, record: Any) -> bool:
        """Overwrite the full column span of one row."""
        layout = TABLES[kind]
        action = f"update {layout.label}"
        if not self._valid_position(row_index, action):
            return False
        client = self._client(access_token, action)
        if client is None:
            return False
        try:
            client.values_update(
                self.spreadsheet_id, layout.row_range(row_index),
                params=WRITE_PARAMS,
                body={"values": [encode_row(kind, record)]},
            )
        except Exception as e:
            logger.error("Failed to update %s row %d: %s", layout.tab, row_index, e)
            self.notifier.error(f"Could not {action}.")
            return False
        logger.info("Updated %s row %d", layout.tab, row_index)
        return True

    def update_cell(self, kind: TableKind, access_token: str | None,
                    row_index: int, column: int, value: Any) -> bool:
        """Overwrite a single cell, leaving the rest of the row untouched."""
        layout = TABLES[kind]
        action = f"update {layout.label}"
        if not self._valid_position(row_index, action):
            return False
        client = self._client(access_token, action)
        if client is None:
            return False
        cell = layout.cell_range(row_index, column)
        try:
            client.values_update(
                self.spreadsheet_id, cell,
                params=WRITE_PARAMS,
                body={"values": [[value]]},
            )
        except Exception as e:
            logger.error("Failed to write %s: %s", cell, e)
            self.notifier.error(f"Could not {action}.")
            return False
        logger.info("Wrote %s", cell)
        return True

    def delete_at(self, kind: TableKind, access_token: str | None, row_index: int) -> bool:
        """Remove one row; every later row in the tab moves up by one."""
        return self.delete_rows(access_token, [(kind, row_index)])

    def delete_rows(self, access_token: str | None, targets: list[tuple[TableKind, int]]) -> bool:
        """Delete several rows in one batched request (all or nothing).

        Tab ids are resolved afresh for this call. A missing tab aborts the
        whole batch before anything is sent.
        """
        if not targets:
            return True
        # A repeated row would otherwise also delete its successor
        targets = list(dict.fromkeys(targets))
        labels = " and ".join(sorted({TABLES[kind].label for kind, _ in targets}))
        action = f"delete from {labels}"
        for _, row_index in targets:
            if not self._valid_position(row_index, action):
                return False
        client = self._client(access_token, action)
        if client is None:
            return False

        try:
            sheet_ids: dict[TableKind, int] = {}
            for kind, _ in targets:
                if kind in sheet_ids:
                    continue
                sheet_id = resolve_sheet_id(client, self.spreadsheet_id, TABLES[kind].tab)
                if sheet_id is None:
                    self.notifier.error(
                        f"Could not {action}: the '{TABLES[kind].tab}' tab is missing."
                    )
                    return False
                sheet_ids[kind] = sheet_id

            # Bottom-up so rows in the same tab do not shift under each other
            ordered = sorted(targets, key=lambda t: t[1], reverse=True)
            requests = [delete_rows_request(sheet_ids[kind], row) for kind, row in ordered]
            client.batch_update(self.spreadsheet_id, {"requests": requests})
        except Exception as e:
            logger.error("Failed to delete rows %s: %s", targets, e)
            self.notifier.error(f"Could not {action}.")
            return False

        for kind, row_index in ordered:
            logger.info("Deleted %s row %d", TABLES[kind].tab, row_index)
        return True

    # ── Companies ────────────────────────────────────────

    def list_companies(self, access_token: str | None) -> list[Company]:
        return self.list_records(TableKind.COMPANY, access_token)

    def append_company(self, access_token: str | None, company: Company) -> bool:
        return self.append(TableKind.COMPANY, access_token, company)

    def update_company_at(self, access_token: str | None, row_index: int, company: Company) -> bool:
        return self.update_at(TableKind.COMPANY, access_token, row_index, company)

    def delete_company_at(self, access_token: str | None, row_index: int) -> bool:
        return self.delete_at(TableKind.COMPANY, access_token, row_index)

    # ── Categories ───────────────────────────────────────

    def list_categories(self, access_token: str | None) -> list[Category]:
        return self.list_records(TableKind.CATEGORY, access_token)

    def append_category(self, access_token: str | None, category: Category) -> bool:
        return self.append(TableKind.CATEGORY, access_token, category)

    def update_category_at(self, access_token: str | None, row_index: int, category: Category) -> bool:
        return self.update_at(TableKind.CATEGORY, access_token, row_index, category)

    def delete_category_at(self, access_token: str | None, row_index: int) -> bool:
        return self.delete_at(TableKind.CATEGORY, access_token, row_index)

    # ── Transactions ─────────────────────────────────────

    def list_transactions(self, access_token: str | None) -> list[Transaction]:
        """Most recent first, capped at TRANSACTION_LIST_LIMIT."""
        txns = self.list_records(TableKind.TRANSACTION, access_token)
        txns.reverse()
        return txns[:TRANSACTION_LIST_LIMIT]

    def append_transaction(self, access_token: str | None, txn: Transaction) -> bool:
        return self.append(TableKind.TRANSACTION, access_token, txn)

    def update_transaction_at(self, access_token: str | None, row_index: int, txn: Transaction) -> bool:
        return self.update_at(TableKind.TRANSACTION, access_token, row_index, txn)

    def delete_transaction_at(self, access_token: str | None, row_index: int) -> bool:
        return self.delete_at(TableKind.TRANSACTION, access_token, row_index)

    # ── Bills ────────────────────────────────────────────

    def list_bills(self, access_token: str | None) -> list[Bill]:
        return self.list_records(TableKind.BILL, access_token)

    def append_bill(self, access_token: str | None, bill: Bill) -> bool:
        return self.append(TableKind.BILL, access_token, bill)

    def update_bill_at(self, access_token: str | None, row_index: int, bill: Bill) -> bool:
        return self.update_at(TableKind.BILL, access_token, row_index, bill)

    def update_bill_status(self, access_token: str | None, row_index: int, status: str) -> bool:
        return self.update_cell(TableKind.BILL, access_token, row_index, BILL_STATUS_COLUMN, status)

    def delete_bill_at(self, access_token: str | None, row_index: int) -> bool:
        return self.delete_at(TableKind.BILL, access_token, row_index)

    # ── Invoices ─────────────────────────────────────────

    def list_invoices(self, access_token: str | None) -> list[Invoice]:
        return self.list_records(TableKind.INVOICE, access_token)

    def append_invoice(self, access_token: str | None, invoice: Invoice) -> bool:
        return self.append(TableKind.INVOICE, access_token, invoice)

    def update_invoice_at(self, access_token: str | None, row_index: int, invoice: Invoice) -> bool:
        return self.update_at(TableKind.INVOICE, access_token, row_index, invoice)

    def update_invoice_status(self, access_token: str | None, row_index: int, status: str) -> bool:
        return self.update_cell(TableKind.INVOICE, access_token, row_index, INVOICE_STATUS_COLUMN, status)

    def delete_invoice_at(self, access_token: str | None, row_index: int) -> bool:
        return self.delete_at(TableKind.INVOICE, access_token, row_index)

    # ── Invoice counters ─────────────────────────────────

    def fetch_invoice_counters(self, access_token: str | None) -> list[InvoiceCounter] | None:
        """Like list_invoice_counters, but None when the read itself failed."""
        return self.fetch(TableKind.INVOICE_COUNTER, access_token)

    def list_invoice_counters(self, access_token: str | None) -> list[InvoiceCounter]:
        return self.list_records(TableKind.INVOICE_COUNTER, access_token)

    def append_invoice_counter(self, access_token: str | None, counter: InvoiceCounter) -> bool:
        return self.append(TableKind.INVOICE_COUNTER, access_token, counter)

    def update_invoice_counter_at(self, access_token: str | None, row_index: int,
                                  counter: InvoiceCounter) -> bool:
        return self.update_at(TableKind.INVOICE_COUNTER, access_token, row_index, counter)

    def update_counter_value(self, access_token: str | None, row_index: int, next_number: int) -> bool:
        return self.update_cell(
            TableKind.INVOICE_COUNTER, access_token, row_index, COUNTER_VALUE_COLUMN, next_number,
        )

    def delete_invoice_counter_at(self, access_token: str | None, row_index: int) -> bool:
        return self.delete_at(TableKind.INVOICE_COUNTER, access_token, row_index)
