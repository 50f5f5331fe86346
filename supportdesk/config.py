"""Application configuration management."""

from __future__ import annotations

import json
import os
import sys
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, MutableMapping

CONFIG_DIR_NAME = "SupportDesk"
DEFAULT_FILENAME = "settings.json"
CLIENT_SECTION = "client"

DEFAULT_API_BASE_URL = "http://localhost:3333"
DEFAULT_ARTICLE_URL_BASE = "https://easyprint.freshdesk.com/a/solutions/articles"

ENV_API_URL = "SUPPORTDESK_API_URL"
ENV_ARTICLE_URL = "SUPPORTDESK_ARTICLE_URL"
ENV_ACCESS_TOKEN = "SUPPORTDESK_ACCESS_TOKEN"


def get_user_config_dir(app_name: str = CONFIG_DIR_NAME) -> Path:
    """Return the configuration directory for the current user.

    The directory is created on first use. On Windows the directory is
    under ``%APPDATA%``; otherwise the XDG base directory or ``~/.config``
    is used.
    """
    if sys.platform.startswith("win"):
        base_dir = Path(os.getenv("APPDATA", Path.home()))
    else:
        base_dir = Path(os.getenv("XDG_CONFIG_HOME", Path.home() / ".config"))
    config_dir = base_dir / app_name
    config_dir.mkdir(parents=True, exist_ok=True)
    return config_dir


class ConfigManager:
    """Load and save the JSON settings file kept in the user config dir."""

    def __init__(
        self,
        app_name: str = CONFIG_DIR_NAME,
        *,
        filename: str = DEFAULT_FILENAME,
    ) -> None:
        self.app_name = app_name
        self.config_dir = get_user_config_dir(app_name)
        self.config_path = self.config_dir / filename

    def load(self) -> dict[str, Any]:
        """Load configuration from disk.

        Returns an empty dictionary if the file is absent or does not hold a
        JSON object.
        """
        if not self.config_path.exists():
            return {}
        with self.config_path.open("r", encoding="utf-8") as fh:
            data = json.load(fh)
        return data if isinstance(data, dict) else {}

    def save(self, data: MutableMapping[str, Any]) -> None:
        """Persist configuration data to disk."""
        with self.config_path.open("w", encoding="utf-8") as fh:
            json.dump(dict(data), fh, indent=2, sort_keys=True)
            fh.write("\n")

    def update(self, data: MutableMapping[str, Any]) -> dict[str, Any]:
        """Merge ``data`` into the stored configuration and return the result."""
        current = self.load()
        current.update(data)
        self.save(current)
        return current

    def __repr__(self) -> str:  # pragma: no cover - debugging helper
        return f"ConfigManager(app_name={self.app_name!r}, path={self.config_path!s})"


@dataclass(slots=True)
class AppSettings:
    """Connection and refresh settings for the support chat client."""

    api_base_url: str = DEFAULT_API_BASE_URL
    article_url_base: str = DEFAULT_ARTICLE_URL_BASE
    request_timeout: float = 30.0
    session_poll_interval_ms: int = 30000
    session_list_limit: int = 100
    access_token: str | None = None

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


def _coerce_positive(value: Any, fallback: float) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return fallback
    return number if number > 0 else fallback


def load_settings(config_manager: ConfigManager | None = None) -> AppSettings:
    """Build :class:`AppSettings` from ``settings.json`` plus environment overrides."""

    config = config_manager or ConfigManager()
    section = config.load().get(CLIENT_SECTION, {})
    if not isinstance(section, dict):
        section = {}
    defaults = AppSettings()

    api_base_url = str(section.get("api_base_url") or defaults.api_base_url)
    article_url_base = str(section.get("article_url_base") or defaults.article_url_base)
    access_token = section.get("access_token") or None

    api_base_url = os.getenv(ENV_API_URL) or api_base_url
    article_url_base = os.getenv(ENV_ARTICLE_URL) or article_url_base
    access_token = os.getenv(ENV_ACCESS_TOKEN) or access_token

    return AppSettings(
        api_base_url=api_base_url.rstrip("/") or DEFAULT_API_BASE_URL,
        article_url_base=article_url_base.rstrip("/") or DEFAULT_ARTICLE_URL_BASE,
        request_timeout=_coerce_positive(
            section.get("request_timeout"), defaults.request_timeout
        ),
        session_poll_interval_ms=int(
            _coerce_positive(
                section.get("session_poll_interval_ms"),
                defaults.session_poll_interval_ms,
            )
        ),
        session_list_limit=int(
            _coerce_positive(section.get("session_list_limit"), defaults.session_list_limit)
        ),
        access_token=str(access_token) if access_token else None,
    )


__all__ = [
    "AppSettings",
    "ConfigManager",
    "get_user_config_dir",
    "load_settings",
]
