"""Access token providers.

Every accessor call takes a bearer token explicitly; these classes are
where a caller gets one. ``AccessTokenProvider`` may open a browser for
interactive consent, so only one acquisition runs at a time: a second
request while one is outstanding is turned away at once rather than
queued, which avoids stacking consent prompts.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path

from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow

from sheetbooks.notices import Notifier
from sheetbooks.sheets.client import SHEETS_SCOPES

logger = logging.getLogger(__name__)


class StaticTokenProvider:
    """Hands out one fixed token (from the environment, or in tests)."""

    def __init__(self, token: str | None):
        self.token = token

    def get_access_token(self) -> str | None:
        return self.token or None


class AccessTokenProvider:
    """OAuth installed-app flow with a stored authorized-user file.

    Args:
        client_secrets_path: OAuth client secrets JSON.
        token_path: Where the authorized-user JSON is read and written.
        notifier: Receives user-facing notices.
        scopes: OAuth scopes to request.
    """

    def __init__(
        self,
        client_secrets_path: Path | str,
        token_path: Path | str | None = None,
        notifier: Notifier | None = None,
        scopes: list[str] | None = None,
    ):
        self.client_secrets_path = Path(client_secrets_path)
        self.token_path = Path(token_path) if token_path else None
        self.notifier = notifier or Notifier()
        self.scopes = scopes or SHEETS_SCOPES
        self._in_progress = threading.Lock()

    def get_access_token(self) -> str | None:
        """Return a fresh bearer token, or None if one could not be obtained."""
        if not self._in_progress.acquire(blocking=False):
            self.notifier.info("Please complete the Google authentication prompt first.")
            return None
        try:
            credentials = self._acquire()
            if credentials is None or not credentials.token:
                self.notifier.error("Could not get a Google access token.")
                return None
            return credentials.token
        except Exception:
            logger.exception("Google authentication failed")
            self.notifier.error("Failed to authenticate with Google. Please try again.")
            return None
        finally:
            self._in_progress.release()

    def _acquire(self) -> Credentials | None:
        credentials = self._load_stored()
        if credentials is not None and credentials.valid:
            return credentials

        if credentials is not None and credentials.expired and credentials.refresh_token:
            logger.info("Refreshing stored Google credentials")
            credentials.refresh(Request())
        else:
            if not self.client_secrets_path.exists():
                logger.error("Client secrets file not found: %s", self.client_secrets_path)
                return None
            logger.info("Starting interactive Google consent")
            flow = InstalledAppFlow.from_client_secrets_file(
                str(self.client_secrets_path), self.scopes,
            )
            credentials = flow.run_local_server(port=0)

        self._store(credentials)
        return credentials

    def _load_stored(self) -> Credentials | None:
        if self.token_path is None or not self.token_path.exists():
            return None
        return Credentials.from_authorized_user_file(str(self.token_path), self.scopes)

    def _store(self, credentials: Credentials) -> None:
        if self.token_path is None:
            return
        self.token_path.parent.mkdir(parents=True, exist_ok=True)
        self.token_path.write_text(credentials.to_json(), encoding="utf-8")
