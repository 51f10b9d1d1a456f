"""Tests for sheetbooks.reports: income/expense summaries."""

from __future__ import annotations

from datetime import date

from sheetbooks.database.models import Transaction
from sheetbooks.reports import build_report, parse_sheet_date


def _t(d, company="Acme", category="Travel", income=0.0, expense=0.0):
    return Transaction(date=d, company=company, category=category, income=income, expense=expense)


TXNS = [
    _t("03/01/2024", category="Sales", income=1000.0),
    _t("03/05/2024", category="Travel", expense=200.0),
    _t("03/09/2024", category="Meals", expense=50.0),
    _t("03/20/2024", category="Travel", expense=100.0),
    _t("03/10/2024", company="Other", category="Sales", income=400.0),
    _t("2024-03-11", category="Travel", expense=999.0),
    _t("04/02/2024", category="Consulting", income=300.0),
]


class TestParseSheetDate:
    def test_valid(self):
        assert parse_sheet_date("03/15/2024") == date(2024, 3, 15)

    def test_invalid(self):
        assert parse_sheet_date("2024-03-15") is None
        assert parse_sheet_date("13/45/2024") is None
        assert parse_sheet_date("") is None


class TestBuildReport:
    def test_all_companies_whole_range(self):
        report = build_report(TXNS)
        assert report.transaction_count == 6
        assert report.total_income == 1700.0
        assert report.total_expense == 350.0
        assert report.net_income == 1350.0

    def test_company_filter(self):
        report = build_report(TXNS, company="Acme")
        assert report.transaction_count == 5
        assert report.total_income == 1300.0

    def test_all_keyword(self):
        assert build_report(TXNS, company="all").transaction_count == 6

    def test_inclusive_date_range(self):
        report = build_report(TXNS, company="Acme", start=date(2024, 3, 5), end=date(2024, 3, 20))
        assert report.transaction_count == 3
        assert report.total_income == 0.0
        assert report.total_expense == 350.0

    def test_single_day(self):
        report = build_report(TXNS, start=date(2024, 3, 1))
        assert report.transaction_count == 1
        assert report.total_income == 1000.0

    def test_end_only_is_open_below(self):
        report = build_report(TXNS, end=date(2024, 3, 9))
        assert report.transaction_count == 3
        assert report.total_income == 1000.0
        assert report.total_expense == 250.0

    def test_end_only_excludes_later_rows(self):
        txns = [_t("01/05/2024", expense=10.0), _t("06/05/2024", expense=99.0)]
        report = build_report(txns, end=date(2024, 2, 1))
        assert report.transaction_count == 1
        assert report.total_expense == 10.0

    def test_category_breakdown_sorted_descending(self):
        report = build_report(TXNS, company="Acme", start=date(2024, 3, 1), end=date(2024, 3, 31))
        assert [(c.name, c.value) for c in report.expense_by_category] == [("Travel", 300.0), ("Meals", 50.0)]
        assert [(c.name, c.value) for c in report.income_by_category] == [("Sales", 1000.0)]

    def test_unparseable_dates_excluded(self):
        report = build_report(TXNS, company="Acme")
        assert report.total_expense == 350.0

    def test_empty(self):
        report = build_report([])
        assert report.transaction_count == 0
        assert report.net_income == 0.0
        assert report.income_by_category == []
