"""Periodically refreshed listing of the user's chat sessions."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

from .chat_client import ConversationClient
from .conversation import Session
from .dispatch import CallDispatcher, ImmediateDispatcher, Scheduler
from .error_messages import DELETE_FAILED, HISTORY_FAILED


logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL_MS = 30000
DEFAULT_LIMIT = 100


@dataclass
class SessionGroups:
    """Sessions bucketed by how recently they were updated."""

    today: list[Session] = field(default_factory=list)
    yesterday: list[Session] = field(default_factory=list)
    this_week: list[Session] = field(default_factory=list)
    older: list[Session] = field(default_factory=list)

    def labelled(self) -> list[tuple[str, list[Session]]]:
        """Return non-empty groups with display labels, newest first."""

        groups = [
            ("Today", self.today),
            ("Yesterday", self.yesterday),
            ("This Week", self.this_week),
            ("Older", self.older),
        ]
        return [(label, sessions) for label, sessions in groups if sessions]


def _local_naive(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone().replace(tzinfo=None)


def group_sessions(sessions: list[Session], now: datetime) -> SessionGroups:
    """Bucket ``sessions`` relative to ``now`` by their ``updated_at`` day."""

    groups = SessionGroups()
    today = _local_naive(now).date()
    yesterday = today - timedelta(days=1)
    week_start = datetime.combine(today, datetime.min.time()) - timedelta(days=7)
    for session in sessions:
        if session.updated_at is None:
            groups.older.append(session)
            continue
        updated = _local_naive(session.updated_at)
        day = updated.date()
        if day == today:
            groups.today.append(session)
        elif day == yesterday:
            groups.yesterday.append(session)
        elif updated >= week_start:
            groups.this_week.append(session)
        else:
            groups.older.append(session)
    return groups


class SessionListService:
    """Keep a cached list of sessions fresh without touching any transcript."""

    def __init__(
        self,
        client: ConversationClient,
        *,
        scheduler: Scheduler,
        dispatcher: CallDispatcher | None = None,
        interval_ms: int = DEFAULT_POLL_INTERVAL_MS,
        limit: int = DEFAULT_LIMIT,
    ) -> None:
        self.client = client
        self.scheduler = scheduler
        self.dispatcher = dispatcher or ImmediateDispatcher()
        self.interval_ms = int(interval_ms)
        self.limit = int(limit)
        self._sessions: list[Session] = []
        self._loading = False
        self._error = ""
        self._cancel: Callable[[], None] | None = None
        self._listeners: list[Callable[[SessionListService], None]] = []

    @property
    def sessions(self) -> list[Session]:
        return list(self._sessions)

    @property
    def loading(self) -> bool:
        return self._loading

    @property
    def error(self) -> str:
        return self._error

    @property
    def running(self) -> bool:
        return self._cancel is not None

    def subscribe(self, listener: Callable[["SessionListService"], None]) -> Callable[[], None]:
        """Register ``listener`` for refresh results; returns an unsubscribe callable."""

        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def start(self) -> None:
        """Refresh now and then on every scheduler tick."""

        if self._cancel is not None:
            return
        self.refresh()
        self._cancel = self.scheduler.schedule_repeating(self.interval_ms, self.refresh)
        logger.debug("Session polling started", extra={"interval_ms": self.interval_ms})

    def stop(self) -> None:
        if self._cancel is None:
            return
        self._cancel()
        self._cancel = None
        logger.debug("Session polling stopped")

    def refresh(self) -> None:
        self._loading = True
        self._error = ""

        def on_success(response: dict[str, Any]) -> None:
            records = response.get("sessions") if isinstance(response, dict) else None
            self._sessions = [
                Session.from_record(record)
                for record in records or []
                if isinstance(record, dict) and record.get("id") is not None
            ]
            self._loading = False
            logger.debug("Sessions refreshed", extra={"count": len(self._sessions)})
            self._notify()

        def on_error(exc: Exception) -> None:
            logger.error("Failed to load chat sessions", extra={"error": str(exc)})
            self._loading = False
            self._error = HISTORY_FAILED
            self._notify()

        self.dispatcher.submit(
            lambda: self.client.get_chat_sessions(self.limit), on_success, on_error
        )

    def delete_session(
        self,
        session_id: str,
        on_deleted: Callable[[str], None] | None = None,
    ) -> None:
        """Delete ``session_id`` remotely, then refresh the listing."""

        def on_success(_response: Any) -> None:
            logger.info("Deleted session from list", extra={"session_id": session_id})
            self.refresh()
            if on_deleted is not None:
                on_deleted(session_id)

        def on_error(exc: Exception) -> None:
            logger.error(
                "Failed to delete session",
                extra={"session_id": session_id, "error": str(exc)},
            )
            self._error = DELETE_FAILED
            self._notify()

        self.dispatcher.submit(
            lambda: self.client.delete_chat_session(session_id), on_success, on_error
        )

    def filtered(self, term: str) -> list[Session]:
        """Return sessions whose title contains ``term`` (case-insensitive)."""

        needle = (term or "").strip().lower()
        if not needle:
            return self.sessions
        return [session for session in self._sessions if needle in session.title.lower()]

    def grouped(self, now: datetime | None = None, *, term: str = "") -> SessionGroups:
        return group_sessions(self.filtered(term), now or datetime.now())

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception:
                logger.exception("Session list listener failed")


__all__ = [
    "SessionGroups",
    "SessionListService",
    "group_sessions",
]
