"""Stateful coordination of support chat sessions."""

from __future__ import annotations

import itertools
import logging
import re
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from ..logging import log_call
from .chat_client import ConversationClient
from .dispatch import CallDispatcher, ImmediateDispatcher
from .error_messages import (
    DELETE_FAILED,
    LOAD_FAILED,
    RENAME_FAILED,
    classify_error,
)
from .session_store import SessionStore


logger = logging.getLogger(__name__)

DEFAULT_TITLE = "New Conversation"
EMPTY_REPLY = "Sorry, I could not generate a response."
TITLE_MAX_LENGTH = 50
TITLE_CUT_LENGTH = 47
TITLE_MIN_BREAK = 20

_TITLE_STRIP_RE = re.compile(r"[^A-Za-z0-9_\s\-?!.]")
_WHITESPACE_RE = re.compile(r"\s+")


class Sender(Enum):
    USER = "user"
    ASSISTANT = "assistant"


class MessageStatus(Enum):
    PENDING = "pending"
    SUCCESS = "success"
    ERROR = "error"


class SessionState(Enum):
    """Whether the manager is bound to a remote session."""

    IDLE = "idle"
    ACTIVE = "active"


@dataclass
class Message:
    """A single entry in the visible chat history."""

    id: str | int
    text: str
    sender: Sender
    timestamp: datetime
    citations: list[Any] = field(default_factory=list)
    status: MessageStatus = MessageStatus.SUCCESS
    original_question: str | None = None

    @property
    def is_user(self) -> bool:
        return self.sender is Sender.USER

    @property
    def is_error(self) -> bool:
        return self.status is MessageStatus.ERROR


@dataclass
class Session:
    """Summary of a conversation thread stored by the chat service."""

    id: str
    title: str
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "Session":
        return cls(
            id=str(record.get("id")),
            title=str(record.get("title") or DEFAULT_TITLE),
            created_at=parse_timestamp(record.get("created_at"), default=None),
            updated_at=parse_timestamp(record.get("updated_at"), default=None),
        )


@dataclass
class SendResult:
    """Outcome of :meth:`SessionLifecycleManager.send_message`.

    With an asynchronous dispatcher the call returns before the reply
    arrives; ``completed`` flips once the continuation has run.
    """

    user_message: Message
    completed: bool = False
    reply: Message | None = None
    response: dict[str, Any] | None = None
    session_created: bool = False
    error: str | None = None


def generate_session_title(message: Any) -> str:
    """Derive a short conversation title from the first user message."""

    if not message or not isinstance(message, str):
        return DEFAULT_TITLE
    clean = _TITLE_STRIP_RE.sub("", message.strip())
    clean = _WHITESPACE_RE.sub(" ", clean)
    if len(clean) <= TITLE_MAX_LENGTH:
        return clean
    truncated = clean[:TITLE_CUT_LENGTH]
    last_space = truncated.rfind(" ")
    if last_space > TITLE_MIN_BREAK:
        return truncated[:last_space] + "..."
    return truncated + "..."


def parse_timestamp(value: Any, *, default: datetime | None) -> datetime | None:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            return datetime.fromisoformat(text)
        except ValueError:
            logger.debug("Unparseable timestamp", extra={"value": value})
    return default


StateListener = Callable[["SessionLifecycleManager"], None]
SessionCreatedListener = Callable[[str], None]


class SessionLifecycleManager:
    """Own the current session, its messages, and the busy/error flags.

    Remote calls go through ``dispatcher``; every state change is published
    to listeners registered with :meth:`add_state_listener`. Overlapping
    sends are not serialized, so assistant replies land in the order their
    calls complete.
    """

    def __init__(
        self,
        client: ConversationClient,
        *,
        store: SessionStore | None = None,
        dispatcher: CallDispatcher | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.client = client
        self.store = store or SessionStore()
        self.dispatcher = dispatcher or ImmediateDispatcher()
        self._clock = clock
        self._session_id: str | None = None
        self._messages: list[Message] = []
        self._title = ""
        self._error = ""
        self._in_flight = 0
        self._ids = itertools.count(1)
        self._state_listeners: list[StateListener] = []
        self._session_listeners: list[SessionCreatedListener] = []

    # ------------------------------------------------------------------
    # Observable state
    @property
    def current_session_id(self) -> str | None:
        return self._session_id

    @property
    def state(self) -> SessionState:
        return SessionState.ACTIVE if self._session_id else SessionState.IDLE

    @property
    def messages(self) -> list[Message]:
        return list(self._messages)

    @property
    def loading(self) -> bool:
        return self._in_flight > 0

    @property
    def error(self) -> str:
        return self._error

    @property
    def title(self) -> str:
        return self._title

    @property
    def has_active_session(self) -> bool:
        return self._session_id is not None

    @property
    def message_count(self) -> int:
        return len(self._messages)

    @property
    def has_messages(self) -> bool:
        return bool(self._messages)

    # ------------------------------------------------------------------
    # Subscriptions
    def add_state_listener(self, listener: StateListener) -> Callable[[], None]:
        """Subscribe to state changes and return an unsubscribe callable."""

        return _subscribe(self._state_listeners, listener)

    def add_session_created_listener(
        self, listener: SessionCreatedListener
    ) -> Callable[[], None]:
        """Subscribe to Idle→Active transitions caused by a first send."""

        return _subscribe(self._session_listeners, listener)

    def close(self) -> None:
        """Detach all listeners; late completions then only update fields."""

        self._state_listeners.clear()
        self._session_listeners.clear()

    # ------------------------------------------------------------------
    # Operations
    def hydrate(self) -> bool:
        """Resume the session remembered by the store, if any.

        Returns ``True`` when a load was attempted. A failed load leaves the
        manager idle with the load error flagged.
        """

        stored = self.store.get()
        if not stored:
            logger.debug("No stored session to resume")
            return False
        logger.info("Resuming stored session", extra={"session_id": stored})
        self.load_session(stored)
        return True

    @log_call(logger=logger)
    def load_session(self, session_id: str) -> None:
        """Replace the visible conversation with the remote history of ``session_id``."""

        if not session_id:
            raise ValueError("session_id is required")
        self._error = ""
        self._in_flight += 1
        self._emit_state()

        def on_success(response: dict[str, Any]) -> None:
            self._in_flight -= 1
            records = _message_records(response)
            self._messages = self._transform_records(records)
            self._bind_session(str(session_id))
            first_user = next(
                (record for record in records if record.get("role") == "user"),
                None,
            )
            self._title = (
                generate_session_title(first_user.get("content")) if first_user else ""
            )
            logger.info(
                "Loaded session",
                extra={"session_id": session_id, "message_count": len(self._messages)},
            )
            self._emit_state()

        def on_error(exc: Exception) -> None:
            self._in_flight -= 1
            logger.error(
                "Failed to load session",
                extra={"session_id": session_id, "error": str(exc)},
            )
            self._error = LOAD_FAILED
            self._emit_state()

        self.dispatcher.submit(
            lambda: self.client.get_session_messages(session_id), on_success, on_error
        )

    def start_new_chat(self) -> None:
        """Forget the current session and clear the transcript."""

        self._session_id = None
        self._messages = []
        self._error = ""
        self._title = ""
        self.store.clear()
        logger.info("Started new chat")
        self._emit_state()

    @log_call(logger=logger, redact=("text",))
    def send_message(self, text: str) -> SendResult | None:
        """Append ``text`` optimistically and ask the assistant for a reply.

        Returns ``None`` for blank input. Failures never raise: they are
        classified, appended as an error reply and mirrored in :attr:`error`.
        """

        if not text or not text.strip():
            return None

        bound_id = self._session_id
        was_idle = bound_id is None
        user_message = Message(
            id=self._next_id(),
            text=text,
            sender=Sender.USER,
            timestamp=self._clock(),
        )
        self._messages.append(user_message)
        self._error = ""
        self._in_flight += 1
        result = SendResult(user_message=user_message)
        self._emit_state()

        def on_success(response: dict[str, Any]) -> None:
            self._in_flight -= 1
            response = response if isinstance(response, dict) else {}
            new_session_id = response.get("sessionId")
            if was_idle and new_session_id and self._session_id is None:
                self._bind_session(str(new_session_id))
                result.session_created = True
            elif was_idle and not new_session_id:
                logger.warning("Chat response did not include a session id")

            reply = Message(
                id=self._next_id(),
                text=response.get("message") or EMPTY_REPLY,
                sender=Sender.ASSISTANT,
                timestamp=self._clock(),
                citations=list(response.get("articles") or []),
                status=MessageStatus.SUCCESS,
                original_question=text,
            )
            self._messages.append(reply)
            if not self._title and was_idle:
                self._title = generate_session_title(text)

            result.reply = reply
            result.response = response
            result.completed = True
            self._emit_state()
            if result.session_created:
                self._emit_session_created(self._session_id or "")

        def on_error(exc: Exception) -> None:
            self._in_flight -= 1
            message = classify_error(exc)
            logger.warning(
                "Failed to send message",
                extra={
                    "session_id": bound_id,
                    "status": getattr(exc, "status", None),
                    "error": str(exc),
                },
            )
            reply = Message(
                id=self._next_id(),
                text=message,
                sender=Sender.ASSISTANT,
                timestamp=self._clock(),
                status=MessageStatus.ERROR,
            )
            self._messages.append(reply)
            self._error = message
            result.reply = reply
            result.error = message
            result.completed = True
            self._emit_state()

        self.dispatcher.submit(
            lambda: self.client.send_message(text, bound_id), on_success, on_error
        )
        return result

    def delete_current_session(self) -> None:
        """Delete the bound session remotely and reset the local view.

        The local reset does not wait for the remote call, so a deleted
        conversation is never left on screen; a remote failure is only
        reported through :attr:`error`.
        """

        session_id = self._session_id
        if session_id is None:
            return

        def on_success(_response: Any) -> None:
            logger.info("Deleted session", extra={"session_id": session_id})

        def on_error(exc: Exception) -> None:
            logger.error(
                "Failed to delete session",
                extra={"session_id": session_id, "error": str(exc)},
            )
            self._error = DELETE_FAILED
            self._emit_state()

        self.start_new_chat()
        self.dispatcher.submit(
            lambda: self.client.delete_chat_session(session_id), on_success, on_error
        )

    def update_session_title(self, new_title: str) -> None:
        """Rename the bound session; the local title changes only on success."""

        session_id = self._session_id
        if session_id is None or not new_title:
            return

        def on_success(_response: Any) -> None:
            self._title = new_title
            self._emit_state()

        def on_error(exc: Exception) -> None:
            logger.error(
                "Failed to update session title",
                extra={"session_id": session_id, "error": str(exc)},
            )
            self._error = RENAME_FAILED
            self._emit_state()

        self.dispatcher.submit(
            lambda: self.client.update_chat_session(session_id, {"title": new_title}),
            on_success,
            on_error,
        )

    def clear_messages(self) -> None:
        """Clear the visible transcript without touching the remote session."""

        self._messages = []
        self._error = ""
        self._emit_state()

    def clear_error(self) -> None:
        if not self._error:
            return
        self._error = ""
        self._emit_state()

    # ------------------------------------------------------------------
    def _next_id(self) -> str:
        return f"local-{next(self._ids)}"

    def _bind_session(self, session_id: str) -> None:
        self._session_id = session_id
        self.store.set(session_id)

    def _transform_records(self, records: Iterable[Mapping[str, Any]]) -> list[Message]:
        transformed: list[Message] = []
        last_question: str | None = None
        for record in records:
            is_user = record.get("role") == "user"
            content = str(record.get("content") or "")
            metadata = record.get("metadata")
            citations = metadata.get("articles") if isinstance(metadata, Mapping) else None
            record_id = record.get("id")
            transformed.append(
                Message(
                    id=record_id if record_id is not None else self._next_id(),
                    text=content,
                    sender=Sender.USER if is_user else Sender.ASSISTANT,
                    timestamp=parse_timestamp(record.get("created_at"), default=None)
                    or self._clock(),
                    citations=[] if is_user else list(citations or []),
                    status=MessageStatus.SUCCESS,
                    original_question=None if is_user else last_question,
                )
            )
            if is_user:
                last_question = content
        return transformed

    def _emit_state(self) -> None:
        for listener in list(self._state_listeners):
            try:
                listener(self)
            except Exception:
                logger.exception("State listener failed")

    def _emit_session_created(self, session_id: str) -> None:
        logger.info("New session created", extra={"session_id": session_id})
        for listener in list(self._session_listeners):
            try:
                listener(session_id)
            except Exception:
                logger.exception("Session created listener failed")


def _subscribe(listeners: list[Any], listener: Any) -> Callable[[], None]:
    listeners.append(listener)

    def unsubscribe() -> None:
        if listener in listeners:
            listeners.remove(listener)

    return unsubscribe


def _message_records(response: Any) -> list[Mapping[str, Any]]:
    if not isinstance(response, Mapping):
        return []
    records = response.get("messages") or []
    return [record for record in records if isinstance(record, Mapping)]


__all__ = [
    "DEFAULT_TITLE",
    "EMPTY_REPLY",
    "Message",
    "MessageStatus",
    "SendResult",
    "Sender",
    "Session",
    "SessionLifecycleManager",
    "SessionState",
    "generate_session_title",
    "parse_timestamp",
]
