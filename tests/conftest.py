"""Shared test fixtures."""

from pathlib import Path

import pytest

from sheetbooks.database.repository import SheetRepository
from sheetbooks.notices import Notifier
from tests.fake_sheets import FakeSheetsClient

# Test fixture config directory with synthetic data
FIXTURE_CONFIG_DIR = Path(__file__).parent / "fixtures" / "config"

TOKEN = "ya29.test-token"


@pytest.fixture
def sheet():
    return FakeSheetsClient()


@pytest.fixture
def notifier():
    return Notifier()


@pytest.fixture
def repo(sheet, notifier):
    return SheetRepository(sheet.spreadsheet_id, client_factory=sheet.factory, notifier=notifier)
