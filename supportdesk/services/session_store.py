"""Remember which conversation was open when the app last ran."""

from __future__ import annotations

import json
import logging
from typing import Any

from ..config import ConfigManager


logger = logging.getLogger(__name__)

SESSION_FILENAME = "session.json"
CURRENT_SESSION_KEY = "current_session_id"


class SessionStore:
    """Single-slot persistence of the current session id.

    An absent key means no session is active; storing ``None`` removes the
    key. Only the lifecycle manager writes here, so no locking is done.

    An unreadable or corrupt file is logged and treated as empty: reads
    return ``None`` and the next write replaces the file.
    """

    def __init__(self, config_manager: ConfigManager | None = None) -> None:
        self._config = config_manager or ConfigManager(filename=SESSION_FILENAME)

    def _load(self) -> dict[str, Any] | None:
        try:
            return self._config.load()
        except (OSError, json.JSONDecodeError) as exc:
            logger.error(
                "Failed to read stored session",
                extra={"path": str(self._config.config_path), "error": str(exc)},
            )
            return None

    def get(self) -> str | None:
        data = self._load()
        if data is None:
            return None
        value = data.get(CURRENT_SESSION_KEY)
        if value is None:
            return None
        text = str(value).strip()
        return text or None

    def set(self, session_id: str | None) -> None:
        loaded = self._load()
        data = loaded if loaded is not None else {}
        if session_id:
            data[CURRENT_SESSION_KEY] = str(session_id)
        elif CURRENT_SESSION_KEY in data:
            del data[CURRENT_SESSION_KEY]
        elif loaded is not None:
            return
        try:
            self._config.save(data)
        except OSError as exc:
            logger.error(
                "Failed to store current session",
                extra={"path": str(self._config.config_path), "error": str(exc)},
            )
            return
        logger.debug("Stored current session", extra={"session_id": session_id})

    def clear(self) -> None:
        self.set(None)


__all__ = ["SessionStore"]
