"""Tests for sheetbooks.invoicing.counter: per-company invoice numbers."""

from __future__ import annotations

import logging

import pytest

from sheetbooks.invoicing.counter import (
    CounterReservation,
    InvoiceCounterSequencer,
    format_invoice_id,
)
from tests.conftest import TOKEN


@pytest.fixture
def seeded(sheet):
    sheet.seed("InvoiceCounter", [["default", "1"], ["acme-1", "7"]])
    return sheet


@pytest.fixture
def sequencer(repo, seeded):
    return InvoiceCounterSequencer(repo)


class TestFormatInvoiceId:
    def test_zero_padded(self):
        assert format_invoice_id("INV-", 7) == "INV-007"

    def test_wider_than_pad(self):
        assert format_invoice_id("AC-", 1234) == "AC-1234"

    def test_empty_prefix(self):
        assert format_invoice_id("", 12) == "012"


class TestPeekNext:
    def test_reserves_current_value(self, sequencer):
        reservation = sequencer.peek_next(TOKEN, "acme-1")
        assert reservation == CounterReservation(company_id="acme-1", row_index=3, next_number=7)
        assert sequencer.is_reserved("acme-1")
        assert not sequencer.is_reserved("default")

    def test_peek_does_not_write(self, sequencer, seeded):
        sequencer.peek_next(TOKEN, "acme-1")
        assert not any(c[0] == "values_update" for c in seeded.calls)

    def test_missing_counter_row(self, sequencer, notifier):
        assert sequencer.peek_next(TOKEN, "ghost") is None
        assert any("No invoice counter found" in m for m in notifier.messages("error"))
        assert not sequencer.is_reserved("ghost")

    def test_read_failure(self, sequencer, seeded, notifier):
        seeded.fail("values_get")
        assert sequencer.peek_next(TOKEN, "acme-1") is None
        assert "Could not load your invoice counters." in notifier.messages("error")

    def test_second_reservation_is_logged(self, sequencer, caplog):
        sequencer.peek_next(TOKEN, "acme-1")
        with caplog.at_level(logging.WARNING, logger="sheetbooks.invoicing.counter"):
            again = sequencer.peek_next(TOKEN, "acme-1")
        assert again.next_number == 7
        assert "reserved again" in caplog.text


class TestCommit:
    def test_commit_advances_and_releases(self, sequencer, repo):
        reservation = sequencer.peek_next(TOKEN, "acme-1")
        assert sequencer.commit(TOKEN, reservation, 8) is True
        assert not sequencer.is_reserved("acme-1")
        counters = {c.company_id: c.next_number for c in repo.list_invoice_counters(TOKEN)}
        assert counters == {"default": 1, "acme-1": 8}

    def test_commit_writes_single_cell(self, sequencer, seeded):
        reservation = sequencer.peek_next(TOKEN, "acme-1")
        sequencer.commit(TOKEN, reservation, 8)
        assert ("values_update", "InvoiceCounter!B3:B3") in seeded.calls

    def test_commit_failure_keeps_reservation(self, sequencer, seeded):
        reservation = sequencer.peek_next(TOKEN, "acme-1")
        seeded.fail("values_update")
        assert sequencer.commit(TOKEN, reservation, 8) is False
        assert sequencer.is_reserved("acme-1")

    def test_release_returns_to_idle(self, sequencer):
        reservation = sequencer.peek_next(TOKEN, "acme-1")
        sequencer.release(reservation)
        assert not sequencer.is_reserved("acme-1")

    def test_stale_release_keeps_newer_reservation(self, sequencer):
        first = sequencer.peek_next(TOKEN, "acme-1")
        second = sequencer.peek_next(TOKEN, "acme-1")
        sequencer.release(first)
        assert sequencer.is_reserved("acme-1")
        sequencer.release(second)
        assert not sequencer.is_reserved("acme-1")


class TestConcurrentReservations:
    def test_unlocked_race_issues_same_number(self, repo, seeded):
        """Two interleaved creations read the same counter value."""
        a = InvoiceCounterSequencer(repo)
        b = InvoiceCounterSequencer(repo)
        ra = a.peek_next(TOKEN, "acme-1")
        rb = b.peek_next(TOKEN, "acme-1")
        assert ra.next_number == rb.next_number == 7
        assert a.commit(TOKEN, ra, 8) is True
        assert b.commit(TOKEN, rb, 8) is True

    def test_recheck_refuses_stale_commit(self, repo, seeded, notifier):
        a = InvoiceCounterSequencer(repo, recheck_before_commit=True)
        b = InvoiceCounterSequencer(repo, recheck_before_commit=True)
        ra = a.peek_next(TOKEN, "acme-1")
        rb = b.peek_next(TOKEN, "acme-1")
        assert a.commit(TOKEN, ra, 8) is True
        assert b.commit(TOKEN, rb, 8) is False
        assert not b.is_reserved("acme-1")
        assert any("changed while this invoice" in m for m in notifier.messages("error"))

    def test_recheck_passes_when_unchanged(self, repo, seeded):
        seq = InvoiceCounterSequencer(repo, recheck_before_commit=True)
        reservation = seq.peek_next(TOKEN, "acme-1")
        assert seq.commit(TOKEN, reservation, 8) is True
