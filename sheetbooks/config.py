"""YAML configuration loader for SheetBooks.

Loads settings.yaml from the config/ directory:
  spreadsheet_id, google credentials paths, upload folder.
"""

from pathlib import Path

import yaml


class Config:
    """Loads and provides access to the YAML settings file."""

    def __init__(self, config_dir: Path | str = "config"):
        self.config_dir = Path(config_dir)
        if not self.config_dir.is_dir():
            raise FileNotFoundError(f"Config directory not found: {self.config_dir}")

        self._settings: dict | None = None

    def _load(self, filename: str) -> dict:
        path = self.config_dir / filename
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
        with open(path) as f:
            try:
                data = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise ValueError(f"Invalid YAML in {path}: {e}") from e
        if data is None:
            raise ValueError(f"Empty config file: {path}")
        if not isinstance(data, dict):
            raise ValueError(f"Expected a mapping in {path}")
        return data

    @property
    def settings(self) -> dict:
        if self._settings is None:
            self._settings = self._load("settings.yaml")
        return self._settings

    def _resolve(self, value: str | None) -> Path | None:
        """Relative paths are taken relative to the config directory."""
        if not value:
            return None
        path = Path(value)
        return path if path.is_absolute() else self.config_dir / path

    @property
    def spreadsheet_id(self) -> str:
        return str(self.settings.get("spreadsheet_id") or "")

    @property
    def google(self) -> dict:
        return self.settings.get("google") or {}

    @property
    def client_secrets_path(self) -> Path | None:
        """OAuth client secrets JSON for the installed-app consent flow."""
        return self._resolve(self.google.get("client_secrets"))

    @property
    def token_path(self) -> Path | None:
        """Where the authorized-user token is cached between runs."""
        return self._resolve(self.google.get("token_file"))

    @property
    def upload_folder_id(self) -> str | None:
        uploads = self.settings.get("uploads") or {}
        return uploads.get("folder_id") or None
