"""Persistence helpers for application data."""
from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Optional

from .models import AppSettings, FailedWorklog, JiraConfig, OAuthClientConfig, TimerState

LOGGER = logging.getLogger(__name__)

APP_DIR_NAME = "jira-time-tracker"
CONFIG_DIR_ENV = "JTT_CONFIG_DIR"
STATE_FILE = "state.json"
WORKLOG_FILE = "pending_worklogs.json"
SETTINGS_FILE = "settings.json"


def _get_base_directory() -> Path:
    """Return a suitable directory for storing application data."""
    override = os.getenv(CONFIG_DIR_ENV)
    if override:
        return Path(override)
    if os.name == "nt":
        root = os.getenv("APPDATA") or Path.home() / "AppData" / "Roaming"
        return Path(root) / APP_DIR_NAME
    return Path(os.getenv("XDG_CONFIG_HOME", Path.home() / ".config")) / APP_DIR_NAME


class ConfigStore:
    """JSON file store for credentials, the active timer and the offline queue.

    Each entity lives in its own file so that a crash between two writes can
    leave at most one of them stale.
    """

    def __init__(self, directory: Optional[Path] = None) -> None:
        self.directory = Path(directory) if directory is not None else _get_base_directory()

    @property
    def settings_path(self) -> Path:
        return self.directory / SETTINGS_FILE

    def ensure_storage_directory(self) -> Path:
        self.directory.mkdir(parents=True, exist_ok=True)
        return self.directory

    # ------------------------------------------------------------------ raw --
    def _read(self, filename: str) -> Any:
        path = self.directory / filename
        if not path.exists():
            return None
        try:
            return json.loads(path.read_text())
        except json.JSONDecodeError:
            LOGGER.warning("Ignoring unreadable %s", path)
            return None

    def _write(self, filename: str, payload: Any, private: bool = False) -> None:
        directory = self.ensure_storage_directory()
        path = directory / filename
        tmp_path = path.with_suffix(path.suffix + ".tmp")
        tmp_path.write_text(json.dumps(payload, indent=2))
        if private:
            tmp_path.chmod(0o600)
        os.replace(tmp_path, path)

    def _delete(self, filename: str) -> None:
        path = self.directory / filename
        if path.exists():
            path.unlink()

    # ------------------------------------------------------------- settings --
    def load_settings(self) -> AppSettings:
        data = self._read(SETTINGS_FILE)
        if not isinstance(data, dict):
            return AppSettings()
        return AppSettings.deserialize(data)

    def save_settings(self, settings: AppSettings) -> None:
        self._write(SETTINGS_FILE, settings.serialize(), private=True)

    def get_jira_config(self) -> Optional[JiraConfig]:
        return self.load_settings().to_jira_config()

    def set_jira_config(self, config: JiraConfig) -> None:
        settings = self.load_settings()
        settings.apply_jira_config(config)
        self.save_settings(settings)

    def clear_jira_config(self) -> None:
        settings = self.load_settings()
        settings.clear_credentials()
        self.save_settings(settings)

    def is_configured(self) -> bool:
        return self.get_jira_config() is not None

    def update_oauth_tokens(self, access_token: str, refresh_token: str, expires_at: int) -> None:
        settings = self.load_settings()
        settings.access_token = access_token
        settings.refresh_token = refresh_token
        settings.expires_at = expires_at
        self.save_settings(settings)

    def get_oauth_client_config(self) -> Optional[OAuthClientConfig]:
        settings = self.load_settings()
        if not settings.oauth_client_id or not settings.oauth_client_secret:
            return None
        return OAuthClientConfig(settings.oauth_client_id, settings.oauth_client_secret)

    def set_oauth_client_config(self, client_config: OAuthClientConfig) -> None:
        settings = self.load_settings()
        settings.oauth_client_id = client_config.client_id
        settings.oauth_client_secret = client_config.client_secret
        self.save_settings(settings)

    def get_default_worklog_message(self) -> str:
        return self.load_settings().default_worklog_message

    def set_default_worklog_message(self, message: str) -> None:
        settings = self.load_settings()
        settings.default_worklog_message = message
        self.save_settings(settings)

    # ---------------------------------------------------------------- timer --
    def get_active_timer(self) -> Optional[TimerState]:
        data = self._read(STATE_FILE)
        if not isinstance(data, dict):
            return None
        try:
            return TimerState.deserialize(data)
        except (KeyError, TypeError, ValueError):
            LOGGER.warning("Ignoring malformed active timer in %s", self.directory / STATE_FILE)
            return None

    def set_active_timer(self, timer: TimerState) -> None:
        self._write(STATE_FILE, timer.serialize())

    def clear_active_timer(self) -> None:
        self._delete(STATE_FILE)

    # ---------------------------------------------------------------- queue --
    def get_failed_worklogs(self) -> list[FailedWorklog]:
        """Return the offline queue; malformed data reads as an empty queue."""
        data = self._read(WORKLOG_FILE)
        if data is None:
            return []
        if not isinstance(data, list):
            LOGGER.warning("Offline worklog queue is not a list; treating it as empty")
            return []
        try:
            return [FailedWorklog.deserialize(payload) for payload in data]
        except ValueError:
            LOGGER.warning("Offline worklog queue is malformed; treating it as empty")
            return []

    def set_failed_worklogs(self, worklogs: list[FailedWorklog]) -> None:
        self._write(WORKLOG_FILE, [worklog.serialize() for worklog in worklogs])

