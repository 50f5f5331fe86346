"""Translate chat service failures into user-facing text."""

from __future__ import annotations

from typing import Any

TOO_MANY_REQUESTS = (
    "Too many requests. Please wait a moment before sending another message."
)
SESSION_EXPIRED = "Your session has expired. Please sign in again."
SERVICE_UNAVAILABLE = (
    "Our service is temporarily unavailable. Please try again in a few moments."
)
RATE_LIMITED = "Rate limit exceeded. Please wait before sending another message."
MISCONFIGURED = "The assistant is currently unavailable due to configuration issues."
UNEXPECTED = "An unexpected error occurred. Please try again."

LOAD_FAILED = "Failed to load conversation"
DELETE_FAILED = "Failed to delete conversation"
RENAME_FAILED = "Failed to update conversation title"
HISTORY_FAILED = "Failed to load chat history"


def _status_of(exc: BaseException) -> int | None:
    status: Any = getattr(exc, "status", None)
    if status is None:
        response = getattr(exc, "response", None)
        status = getattr(response, "status", None)
    if isinstance(status, bool):
        return None
    try:
        return int(status) if status is not None else None
    except (TypeError, ValueError):
        return None


def classify_error(exc: BaseException | None) -> str:
    """Return the message shown to the user for ``exc``.

    Transport status takes precedence over message sniffing; the first
    matching rule wins.
    """

    if exc is None:
        return UNEXPECTED
    status = _status_of(exc)
    if status == 429:
        return TOO_MANY_REQUESTS
    if status == 401:
        return SESSION_EXPIRED
    if status is not None and status >= 500:
        return SERVICE_UNAVAILABLE

    message = str(exc)
    if "rate limit" in message:
        return RATE_LIMITED
    if "API key" in message:
        return MISCONFIGURED

    server_message = getattr(exc, "server_message", None)
    if server_message:
        return str(server_message)
    return message or UNEXPECTED


__all__ = [
    "DELETE_FAILED",
    "HISTORY_FAILED",
    "LOAD_FAILED",
    "MISCONFIGURED",
    "RATE_LIMITED",
    "RENAME_FAILED",
    "SERVICE_UNAVAILABLE",
    "SESSION_EXPIRED",
    "TOO_MANY_REQUESTS",
    "UNEXPECTED",
    "classify_error",
]
