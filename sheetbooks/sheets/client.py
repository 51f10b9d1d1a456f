"""Binding to the Google Sheets v4 REST surface via gspread's HTTPClient.

A fresh client is built from the caller's bearer token for every
operation; nothing here caches credentials. The repository receives the
factory through its constructor so tests can pass an in-memory document.
"""

from __future__ import annotations

from typing import Callable

from google.oauth2.credentials import Credentials
from gspread.http_client import HTTPClient

SHEETS_SCOPES = [
    "https://www.googleapis.com/auth/spreadsheets",
    "https://www.googleapis.com/auth/drive.file",
]

# Sheet-side type inference, same as typing into the grid
WRITE_PARAMS = {"valueInputOption": "USER_ENTERED"}

# Header occupies row 1
FIRST_DATA_ROW = 2

ClientFactory = Callable[[str], HTTPClient]


def http_client_for_token(access_token: str) -> HTTPClient:
    """Build a Sheets HTTP client authorised with a short-lived bearer token."""
    return HTTPClient(auth=Credentials(token=access_token))


def column_letter(index: int) -> str:
    """Convert a 1-indexed column number to letters. E.g., 28 is 'AB'."""
    if index < 1:
        raise ValueError("Column index must be >= 1")
    label = ""
    c = index
    while c > 0:
        c, remainder = divmod(c - 1, 26)
        label = chr(65 + remainder) + label
    return label


def a1_range(tab: str, first_col: int, last_col: int,
             first_row: int | None = None, last_row: int | None = None) -> str:
    """Build an A1 range such as ``Bills!A2:E`` or ``Bills!E7:E7``.

    Omitting both rows gives a whole-column span (``Bills!A:E``);
    omitting only ``last_row`` leaves the range open-ended.
    """
    start = column_letter(first_col)
    end = column_letter(last_col)
    if first_row is not None:
        start += str(first_row)
        if last_row is not None:
            end += str(last_row)
    return f"{tab}!{start}:{end}"


def delete_rows_request(sheet_id: int, row_index: int) -> dict:
    """deleteDimension request removing one sheet row (0-based half-open)."""
    return {
        "deleteDimension": {
            "range": {
                "sheetId": sheet_id,
                "dimension": "ROWS",
                "startIndex": row_index - 1,
                "endIndex": row_index,
            }
        }
    }
