"""Client helpers for the support knowledge-base chat service."""

from __future__ import annotations

import json
import logging
import socket
from typing import Any, Protocol, runtime_checkable
from urllib import error, parse, request

from ..config import DEFAULT_API_BASE_URL, AppSettings
from ..logging import log_call


logger = logging.getLogger(__name__)


CHAT_PATH = "/api/chat"
SESSIONS_PATH = "/api/chat/sessions"
ARTICLES_PATH = "/api/articles"
HEALTH_PATH = "/health"


class ConversationServiceError(RuntimeError):
    """Base exception for chat service failures.

    ``status`` is the HTTP status when the server answered (``0`` for
    network failures) and ``server_message`` the ``message`` field of the
    JSON error body, when one was sent.
    """

    def __init__(
        self,
        message: str,
        *,
        status: int | None = None,
        server_message: str | None = None,
        code: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status = status
        self.server_message = server_message
        self.code = code


class ConversationConnectionError(ConversationServiceError):
    """Raised when the chat service cannot be reached."""

    def __init__(self, message: str) -> None:
        super().__init__(message, status=0, code="NETWORK_ERROR")


class ConversationResponseError(ConversationServiceError):
    """Raised when the chat service returns an error or an invalid payload."""


@runtime_checkable
class ConversationClient(Protocol):
    """Operations the session manager needs from the remote service."""

    def send_message(self, text: str, session_id: str | None) -> dict[str, Any]: ...

    def get_session_messages(self, session_id: str) -> dict[str, Any]: ...

    def get_chat_sessions(self, limit: int = 50) -> dict[str, Any]: ...

    def delete_chat_session(self, session_id: str) -> dict[str, Any]: ...

    def update_chat_session(
        self, session_id: str, updates: dict[str, Any]
    ) -> dict[str, Any]: ...


class HttpConversationClient:
    """JSON-over-HTTP client for the chat backend.

    Requests are issued once; retrying is left to the user.
    """

    @log_call(logger=logger, redact=("access_token",))
    def __init__(
        self,
        *,
        base_url: str = DEFAULT_API_BASE_URL,
        access_token: str | None = None,
        timeout: float = 30.0,
    ) -> None:
        self._base_url = base_url.rstrip("/") or DEFAULT_API_BASE_URL
        self._access_token = access_token
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: AppSettings) -> "HttpConversationClient":
        return cls(
            base_url=settings.api_base_url,
            access_token=settings.access_token,
            timeout=settings.request_timeout,
        )

    @property
    def base_url(self) -> str:
        return self._base_url

    def set_access_token(self, token: str | None) -> None:
        self._access_token = token or None

    # ------------------------------------------------------------------
    # Chat endpoints
    @log_call(logger=logger, redact=("text",))
    def send_message(self, text: str, session_id: str | None) -> dict[str, Any]:
        """Post ``text`` to the assistant, creating a session when needed."""

        payload = {"message": text, "sessionId": session_id, "context": "knowledge_base"}
        logger.info(
            "Sending chat message",
            extra={"session_id": session_id, "message_length": len(text)},
        )
        return self._request_json("POST", CHAT_PATH, payload)

    @log_call(logger=logger)
    def get_session_messages(self, session_id: str) -> dict[str, Any]:
        return self._request_json("GET", f"{SESSIONS_PATH}/{_quote(session_id)}/messages")

    @log_call(logger=logger)
    def get_chat_sessions(self, limit: int = 50, offset: int = 0) -> dict[str, Any]:
        query = parse.urlencode({"limit": int(limit), "offset": int(offset)})
        return self._request_json("GET", f"{SESSIONS_PATH}?{query}")

    @log_call(logger=logger)
    def delete_chat_session(self, session_id: str) -> dict[str, Any]:
        return self._request_json("DELETE", f"{SESSIONS_PATH}/{_quote(session_id)}")

    @log_call(logger=logger)
    def update_chat_session(
        self, session_id: str, updates: dict[str, Any]
    ) -> dict[str, Any]:
        return self._request_json("PUT", f"{SESSIONS_PATH}/{_quote(session_id)}", dict(updates))

    @log_call(logger=logger)
    def get_article(self, article_id: str) -> dict[str, Any]:
        """Fetch a knowledge-base article for in-place preview."""

        return self._request_json("GET", f"{ARTICLES_PATH}/{_quote(str(article_id))}")

    @log_call(logger=logger, include_result=True)
    def health_check(self) -> bool:
        """Return ``True`` if the backend answers its health check."""

        try:
            self._request("GET", HEALTH_PATH)
        except ConversationServiceError:
            return False
        return True

    # ------------------------------------------------------------------
    def _request(
        self,
        method: str,
        path: str,
        payload: dict[str, Any] | None = None,
    ) -> bytes:
        url = f"{self._base_url}{path}"
        data: bytes | None = None
        headers = {"Accept": "application/json"}
        if payload is not None:
            data = json.dumps(payload).encode("utf-8")
            headers["Content-Type"] = "application/json"
        if self._access_token:
            headers["Authorization"] = f"Bearer {self._access_token}"
        request_obj = request.Request(url, data=data, headers=headers, method=method)
        logger.debug("Chat service request", extra={"method": method, "url": url})
        try:
            with request.urlopen(request_obj, timeout=self.timeout) as response:
                return response.read()
        except error.HTTPError as exc:
            body = exc.read() if hasattr(exc, "read") else b""
            raise self._build_http_error(exc.code, body) from None
        except error.URLError as exc:
            if isinstance(exc.reason, (TimeoutError, socket.timeout)):
                raise ConversationConnectionError("Chat service request timed out") from None
            raise ConversationConnectionError(
                "Network error - please check your connection"
            ) from None
        except TimeoutError:
            raise ConversationConnectionError("Chat service request timed out") from None

    def _request_json(
        self, method: str, path: str, payload: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        body = self._request(method, path, payload)
        if not body:
            return {}
        try:
            data = json.loads(body.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError):
            raise ConversationResponseError("Invalid JSON from chat service") from None
        if not isinstance(data, dict):
            raise ConversationResponseError("Unexpected payload from chat service")
        return data

    @staticmethod
    def _build_http_error(status: int | None, body: bytes | str | None) -> ConversationResponseError:
        server_message, code = HttpConversationClient._summarize_error_body(body)
        if server_message:
            text = f"Chat service returned HTTP {status}: {server_message}"
        else:
            text = f"Chat service returned HTTP {status}"
        logger.warning(
            "Chat service error response",
            extra={"status": status, "code": code, "server_message": server_message},
        )
        return ConversationResponseError(
            text,
            status=status,
            server_message=server_message,
            code=code or "API_ERROR",
        )

    @staticmethod
    def _summarize_error_body(body: bytes | str | None) -> tuple[str | None, str | None]:
        if not body:
            return None, None
        text = body.decode("utf-8", errors="replace") if isinstance(body, bytes) else str(body)
        text = text.strip()
        if not text:
            return None, None
        try:
            data = json.loads(text)
        except json.JSONDecodeError:
            return " ".join(text.split())[:300], None
        if not isinstance(data, dict):
            return None, None
        message = data.get("message") or data.get("error") or data.get("detail")
        code = data.get("code")
        return (
            " ".join(str(message).split()) if message else None,
            str(code) if code else None,
        )


def _quote(value: str) -> str:
    return parse.quote(str(value), safe="")


__all__ = [
    "ConversationClient",
    "ConversationConnectionError",
    "ConversationResponseError",
    "ConversationServiceError",
    "HttpConversationClient",
]
