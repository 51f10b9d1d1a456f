"""Per-company invoice number sequencer.

Read-then-increment over the InvoiceCounter tab. The backing service has
no compare-and-swap write, so nothing stops two concurrent invoice
creations for one company from reading the same number between
``peek_next`` and ``commit``; both would then issue the same invoice id.
``recheck_before_commit`` narrows that window (it re-reads the counter
just before writing) but cannot close it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sheetbooks.database.repository import SheetRepository

logger = logging.getLogger(__name__)

INVOICE_NUMBER_WIDTH = 3


def format_invoice_id(prefix: str, number: int) -> str:
    """Prefix plus zero-padded number, e.g. ``"INV-007"``. Wider numbers are kept whole."""
    return f"{prefix}{number:0{INVOICE_NUMBER_WIDTH}d}"


@dataclass
class CounterReservation:
    """A number that has been read but not yet consumed."""
    company_id: str
    row_index: int
    next_number: int


class InvoiceCounterSequencer:
    """Issues invoice numbers per company.

    Each company is either idle or holds an outstanding reservation
    (peeked, not yet committed or released). Reserving again while one
    is outstanding is allowed, it is only logged.

    Args:
        repo: Table accessors.
        recheck_before_commit: Re-read the counter row before committing
            and refuse if it no longer holds the reserved number.
    """

    def __init__(self, repo: SheetRepository, recheck_before_commit: bool = False):
        self.repo = repo
        self.recheck_before_commit = recheck_before_commit
        self._reserved: dict[str, CounterReservation] = {}

    def is_reserved(self, company_id: str) -> bool:
        return company_id in self._reserved

    def peek_next(self, access_token: str | None, company_id: str) -> CounterReservation | None:
        """Find the company's counter row and reserve its current number.

        A company without a counter row is a data-integrity fault and
        fails the caller's operation, same as a failed read.
        """
        counters = self.repo.fetch_invoice_counters(access_token)
        if counters is None:
            return None

        for counter in counters:
            if counter.company_id == company_id:
                if company_id in self._reserved:
                    logger.warning(
                        "Invoice counter for %s reserved again before commit; "
                        "concurrent invoices may share a number", company_id,
                    )
                reservation = CounterReservation(
                    company_id=company_id,
                    row_index=counter.row_index,
                    next_number=counter.next_number,
                )
                self._reserved[company_id] = reservation
                logger.info(
                    "Reserved invoice number %d for %s (row %d)",
                    reservation.next_number, company_id, reservation.row_index,
                )
                return reservation

        logger.error("No invoice counter row for company %s", company_id)
        self.repo.notifier.error(
            f"No invoice counter found for company '{company_id}'. "
            "The InvoiceCounter tab needs a row for this company."
        )
        return None

    def commit(self, access_token: str | None, reservation: CounterReservation, new_number: int) -> bool:
        """Write ``new_number`` into the reserved counter cell."""
        if self.recheck_before_commit and not self._still_current(access_token, reservation):
            self.release(reservation)
            return False

        ok = self.repo.update_counter_value(access_token, reservation.row_index, new_number)
        if ok:
            self.release(reservation)
            logger.info("Invoice counter for %s advanced to %d", reservation.company_id, new_number)
        return ok

    def release(self, reservation: CounterReservation) -> None:
        """Return the company to idle without writing anything."""
        current = self._reserved.get(reservation.company_id)
        if current is reservation:
            del self._reserved[reservation.company_id]

    def _still_current(self, access_token: str | None, reservation: CounterReservation) -> bool:
        counters = self.repo.fetch_invoice_counters(access_token)
        if counters is None:
            return False
        for counter in counters:
            if counter.row_index == reservation.row_index:
                if (counter.company_id == reservation.company_id
                        and counter.next_number == reservation.next_number):
                    return True
                break
        logger.warning(
            "Invoice counter for %s changed since it was read (expected %d at row %d)",
            reservation.company_id, reservation.next_number, reservation.row_index,
        )
        self.repo.notifier.error(
            f"The invoice counter for '{reservation.company_id}' changed while this "
            "invoice was being created. It was not advanced; check for a duplicate invoice number."
        )
        return False
