"""In-memory stand-in for gspread's HTTPClient.

Implements the five calls the repository makes, with the document
behaviour the accessors rely on:

- values_get returns formatted (string) cells, trailing blanks trimmed
- values_append writes below the last non-empty row of the tab
- values_update writes exactly the addressed range
- batch_update applies deleteDimension requests atomically, shifting
  later rows up
- fetch_sheet_metadata lists tab titles and numeric ids

Failures are injected per method (optionally per tab) with ``fail``.
"""

from __future__ import annotations

import re

_RANGE = re.compile(r"^(?P<tab>[^!]+)!(?P<c1>[A-Z]+)(?P<r1>\d*):(?P<c2>[A-Z]+)(?P<r2>\d*)$")

HEADERS = {
    "Companies": ["ID", "Name", "Invoice Prefix", "Logo URL"],
    "Categories": ["ID", "Name", "Type"],
    "Transactions": ["Date", "Company", "Category", "Description", "Income", "Expense",
                     "Receipt Link", "Invoice ID"],
    "Bills": ["Bill ID", "Due Date", "Payee", "Amount", "Status"],
    "Invoices": ["Invoice ID", "Transaction ID", "Company ID", "Customer Name",
                 "Customer Address", "Issue Date", "Due Date", "Total Amount", "Status"],
    "InvoiceCounter": ["Company ID", "Next Invoice Number"],
}


class FakeAPIError(Exception):
    """Raised by injected failures, like a transport or API error."""


def _col_index(letters: str) -> int:
    n = 0
    for ch in letters:
        n = n * 26 + (ord(ch) - 64)
    return n


def _formatted(value) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _trim(row: list) -> list:
    row = list(row)
    while row and row[-1] in ("", None):
        row.pop()
    return row


class FakeSheetsClient:
    """A provisioned finance spreadsheet held in memory."""

    def __init__(self, spreadsheet_id: str = "sheet-1", tabs: dict[str, list[str]] | None = None):
        self.spreadsheet_id = spreadsheet_id
        headers = HEADERS if tabs is None else tabs
        self.tabs: dict[str, list[list]] = {title: [list(h)] for title, h in headers.items()}
        self.sheet_ids: dict[str, int] = {
            title: 1000 + i for i, title in enumerate(self.tabs)
        }
        self.calls: list[tuple[str, str]] = []
        self.tokens: list[str] = []
        self._failures: list[dict] = []

    # ── Test helpers ─────────────────────────────────────

    def factory(self, access_token: str) -> "FakeSheetsClient":
        self.tokens.append(access_token)
        return self

    def fail(self, method: str, tab: str | None = None, times: int | None = 1) -> None:
        """Make the next ``times`` calls of ``method`` raise (None = always)."""
        self._failures.append({"method": method, "tab": tab, "times": times})

    def seed(self, tab: str, rows: list[list]) -> None:
        """Place rows directly below the header."""
        self.tabs[tab].extend([list(r) for r in rows])

    def rows(self, tab: str) -> list[list]:
        """Data rows (below the header) as formatted, trimmed cells."""
        return [[_formatted(c) for c in _trim(r)] for r in self.tabs[tab][1:]]

    def remove_tab(self, tab: str) -> None:
        del self.tabs[tab]
        del self.sheet_ids[tab]

    def _check_failure(self, method: str, tab: str | None = None) -> None:
        for f in self._failures:
            if f["method"] != method or (f["tab"] is not None and f["tab"] != tab):
                continue
            if f["times"] is not None:
                f["times"] -= 1
                if f["times"] <= 0:
                    self._failures.remove(f)
            raise FakeAPIError(f"Injected {method} failure")

    def _parse(self, a1: str):
        m = _RANGE.match(a1)
        if m is None:
            raise FakeAPIError(f"Unable to parse range: {a1}")
        tab = m["tab"]
        if tab not in self.tabs:
            raise FakeAPIError(f"Unable to parse range: {a1}")
        r1 = int(m["r1"]) if m["r1"] else None
        r2 = int(m["r2"]) if m["r2"] else None
        return tab, _col_index(m["c1"]), r1, _col_index(m["c2"]), r2

    def _last_used_row(self, tab: str) -> int:
        rows = self.tabs[tab]
        for i in range(len(rows), 0, -1):
            if any(c not in ("", None) for c in rows[i - 1]):
                return i
        return 0

    def _write(self, tab: str, row: int, col: int, values: list) -> None:
        grid = self.tabs[tab]
        while len(grid) < row:
            grid.append([])
        target = grid[row - 1]
        while len(target) < col - 1 + len(values):
            target.append("")
        for offset, value in enumerate(values):
            target[col - 1 + offset] = value

    # ── HTTPClient surface ───────────────────────────────

    def values_get(self, spreadsheet_id, range, params=None):
        tab, c1, r1, c2, r2 = self._parse(range)
        self.calls.append(("values_get", range))
        self._check_failure("values_get", tab)
        first = r1 or 1
        last = r2 or self._last_used_row(tab)
        values = []
        for row in self.tabs[tab][first - 1:last]:
            values.append([_formatted(c) for c in _trim(row[c1 - 1:c2])])
        while values and not values[-1]:
            values.pop()
        result = {"range": range, "majorDimension": "ROWS"}
        if values:
            result["values"] = values
        return result

    def values_append(self, spreadsheet_id, range, params=None, body=None):
        tab, c1, _, _, _ = self._parse(range)
        self.calls.append(("values_append", range))
        self._check_failure("values_append", tab)
        row = self._last_used_row(tab) + 1
        for values in body["values"]:
            self._write(tab, row, c1, values)
            row += 1
        return {"updates": {"updatedRange": f"{tab}!A{row - 1}"}}

    def values_update(self, spreadsheet_id, range, params=None, body=None):
        tab, c1, r1, _, _ = self._parse(range)
        self.calls.append(("values_update", range))
        self._check_failure("values_update", tab)
        for offset, values in enumerate(body["values"]):
            self._write(tab, r1 + offset, c1, values)
        return {"updatedRange": range}

    def batch_update(self, spreadsheet_id, body):
        self.calls.append(("batch_update", str(len(body["requests"]))))
        self._check_failure("batch_update")
        by_id = {sid: title for title, sid in self.sheet_ids.items()}
        deletes = []
        for request in body["requests"]:
            rng = request["deleteDimension"]["range"]
            if rng["sheetId"] not in by_id:
                raise FakeAPIError(f"No grid with id: {rng['sheetId']}")
            deletes.append((by_id[rng["sheetId"]], rng["startIndex"], rng["endIndex"]))
        for title, start, end in deletes:
            del self.tabs[title][start:end]
        return {"replies": [{} for _ in deletes]}

    def fetch_sheet_metadata(self, spreadsheet_id, params=None):
        self.calls.append(("fetch_sheet_metadata", spreadsheet_id))
        self._check_failure("fetch_sheet_metadata")
        return {
            "sheets": [
                {"properties": {"sheetId": sid, "title": title}}
                for title, sid in self.sheet_ids.items()
            ]
        }
