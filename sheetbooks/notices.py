"""User-facing notices.

Accessors and workflows report outcomes here instead of raising. The CLI
prints whatever accumulated after each command; every notice is also
logged so diagnostics see the same timeline.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

logger = logging.getLogger(__name__)

_LOG_LEVELS = {
    "success": logging.INFO,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


@dataclass
class Notice:
    level: str  # "success", "info", "warning", "error"
    message: str


class Notifier:
    """Collects notices for the current session."""

    def __init__(self):
        self.notices: list[Notice] = []

    def notify(self, level: str, message: str) -> None:
        self.notices.append(Notice(level=level, message=message))
        logger.log(_LOG_LEVELS.get(level, logging.INFO), "[%s] %s", level, message)

    def success(self, message: str) -> None:
        self.notify("success", message)

    def info(self, message: str) -> None:
        self.notify("info", message)

    def warning(self, message: str) -> None:
        self.notify("warning", message)

    def error(self, message: str) -> None:
        self.notify("error", message)

    def drain(self) -> list[Notice]:
        """Return and forget everything collected so far."""
        notices, self.notices = self.notices, []
        return notices

    def messages(self, level: str | None = None) -> list[str]:
        return [n.message for n in self.notices if level is None or n.level == level]
