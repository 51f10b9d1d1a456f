"""Drive upload sidecar for receipts and company logos.

Uploads a local file with the caller's bearer token, shares it as
"anyone with the link can view" and returns the shareable link. A failed
upload returns None; callers treat that as a gate and write nothing to
the spreadsheet.
"""

from __future__ import annotations

import logging
import mimetypes
from pathlib import Path
from typing import Callable

from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.http import MediaFileUpload

from sheetbooks.notices import Notifier

logger = logging.getLogger(__name__)

RECEIPT_MAX_BYTES = 10 * 1024 * 1024
LOGO_MAX_BYTES = 5 * 1024 * 1024


def _drive_service_for_token(access_token: str):
    return build("drive", "v3", credentials=Credentials(token=access_token), cache_discovery=False)


class DriveUploader:
    """Uploads attachments to Google Drive.

    Args:
        folder_id: Optional Drive folder to place uploads in.
        service_factory: Builds a Drive v3 service from a bearer token.
        notifier: Receives user-facing failure notices.
    """

    def __init__(
        self,
        folder_id: str | None = None,
        service_factory: Callable[[str], object] = _drive_service_for_token,
        notifier: Notifier | None = None,
    ):
        self.folder_id = folder_id or None
        self.service_factory = service_factory
        self.notifier = notifier or Notifier()

    def upload_binary(
        self,
        access_token: str | None,
        path: Path | str,
        max_bytes: int = RECEIPT_MAX_BYTES,
        images_only: bool = False,
    ) -> str | None:
        """Upload ``path`` and return its shareable link, or None on failure."""
        path = Path(path)
        if not path.is_file():
            self.notifier.error(f"File not found: {path}")
            return None
        size = path.stat().st_size
        if size > max_bytes:
            self.notifier.error(f"File is too large. Max {max_bytes // (1024 * 1024)}MB.")
            return None
        mimetype = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
        if images_only and not mimetype.startswith("image/"):
            self.notifier.error("Invalid file type. Please upload an image.")
            return None
        if not access_token:
            self.notifier.error("Not signed in to Google. Upload skipped.")
            return None

        metadata: dict = {"name": path.name}
        if self.folder_id:
            metadata["parents"] = [self.folder_id]

        try:
            service = self.service_factory(access_token)
            media = MediaFileUpload(str(path), mimetype=mimetype, resumable=False)
            created = (
                service.files()
                .create(body=metadata, media_body=media, fields="id, webViewLink")
                .execute()
            )
            service.permissions().create(
                fileId=created["id"],
                body={"type": "anyone", "role": "reader"},
            ).execute()
        except Exception:
            logger.exception("Drive upload failed for %s", path.name)
            self.notifier.error(f"Upload of {path.name} failed.")
            return None

        link = created.get("webViewLink") or f"https://drive.google.com/file/d/{created['id']}/view"
        logger.info("Uploaded %s (%d bytes) to Drive", path.name, size)
        return link
