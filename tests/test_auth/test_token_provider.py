"""Tests for sheetbooks.auth.token_provider: bearer token acquisition."""

from __future__ import annotations

import threading
from unittest.mock import MagicMock, patch

import pytest

from sheetbooks.auth.token_provider import AccessTokenProvider, StaticTokenProvider
from sheetbooks.notices import Notifier


@pytest.fixture
def secrets(tmp_path):
    path = tmp_path / "client_secret.json"
    path.write_text("{}")
    return path


def _creds(token="tok-1", valid=True, expired=False, refresh_token=None):
    creds = MagicMock()
    creds.token = token
    creds.valid = valid
    creds.expired = expired
    creds.refresh_token = refresh_token
    creds.to_json.return_value = '{"token": "%s"}' % token
    return creds


class TestStaticTokenProvider:
    def test_returns_token(self):
        assert StaticTokenProvider("abc").get_access_token() == "abc"

    def test_empty_is_none(self):
        assert StaticTokenProvider("").get_access_token() is None


class TestAccessTokenProvider:
    def test_interactive_flow_and_store(self, secrets, tmp_path):
        token_path = tmp_path / "store" / "token.json"
        flow = MagicMock()
        flow.run_local_server.return_value = _creds("fresh")
        with patch("sheetbooks.auth.token_provider.InstalledAppFlow") as flow_cls:
            flow_cls.from_client_secrets_file.return_value = flow
            provider = AccessTokenProvider(secrets, token_path)
            assert provider.get_access_token() == "fresh"
        flow.run_local_server.assert_called_once_with(port=0)
        assert token_path.read_text() == '{"token": "fresh"}'

    def test_stored_valid_credentials_reused(self, secrets, tmp_path):
        token_path = tmp_path / "token.json"
        token_path.write_text("{}")
        with patch("sheetbooks.auth.token_provider.Credentials") as creds_cls, \
             patch("sheetbooks.auth.token_provider.InstalledAppFlow") as flow_cls:
            creds_cls.from_authorized_user_file.return_value = _creds("stored")
            provider = AccessTokenProvider(secrets, token_path)
            assert provider.get_access_token() == "stored"
        flow_cls.from_client_secrets_file.assert_not_called()

    def test_expired_credentials_refreshed(self, secrets, tmp_path):
        token_path = tmp_path / "token.json"
        token_path.write_text("{}")
        stored = _creds("old", valid=False, expired=True, refresh_token="r")
        with patch("sheetbooks.auth.token_provider.Credentials") as creds_cls, \
             patch("sheetbooks.auth.token_provider.Request"), \
             patch("sheetbooks.auth.token_provider.InstalledAppFlow") as flow_cls:
            creds_cls.from_authorized_user_file.return_value = stored
            provider = AccessTokenProvider(secrets, token_path)
            assert provider.get_access_token() == "old"
        stored.refresh.assert_called_once()
        flow_cls.from_client_secrets_file.assert_not_called()

    def test_missing_secrets(self, tmp_path):
        notifier = Notifier()
        provider = AccessTokenProvider(tmp_path / "absent.json", notifier=notifier)
        assert provider.get_access_token() is None
        assert "Could not get a Google access token." in notifier.messages("error")

    def test_failure_is_reported_not_raised(self, secrets):
        notifier = Notifier()
        with patch("sheetbooks.auth.token_provider.InstalledAppFlow") as flow_cls:
            flow_cls.from_client_secrets_file.side_effect = RuntimeError("consent denied")
            provider = AccessTokenProvider(secrets, notifier=notifier)
            assert provider.get_access_token() is None
        assert "Failed to authenticate with Google. Please try again." in notifier.messages("error")

    def test_second_request_while_in_flight(self, secrets):
        notifier = Notifier()
        started = threading.Event()
        finish = threading.Event()
        results = []

        def slow_consent(port):
            started.set()
            finish.wait(timeout=5)
            return _creds("first")

        flow = MagicMock()
        flow.run_local_server.side_effect = slow_consent
        with patch("sheetbooks.auth.token_provider.InstalledAppFlow") as flow_cls:
            flow_cls.from_client_secrets_file.return_value = flow
            provider = AccessTokenProvider(secrets, notifier=notifier)
            worker = threading.Thread(target=lambda: results.append(provider.get_access_token()))
            worker.start()
            assert started.wait(timeout=5)
            assert provider.get_access_token() is None
            finish.set()
            worker.join(timeout=5)

        assert results == ["first"]
        assert "Please complete the Google authentication prompt first." in notifier.messages("info")
        assert flow.run_local_server.call_count == 1
