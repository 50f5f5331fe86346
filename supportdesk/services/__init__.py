"""Session, transport and scheduling services for the SupportDesk client."""

from .chat_client import (
    ConversationClient,
    ConversationConnectionError,
    ConversationResponseError,
    ConversationServiceError,
    HttpConversationClient,
)
from .conversation import (
    Message,
    MessageStatus,
    SendResult,
    Sender,
    Session,
    SessionLifecycleManager,
    SessionState,
    generate_session_title,
)
from .dispatch import CallDispatcher, ImmediateDispatcher, ManualScheduler, Scheduler
from .error_messages import classify_error
from .session_list import SessionGroups, SessionListService, group_sessions
from .session_store import SessionStore

__all__ = [
    "CallDispatcher",
    "ConversationClient",
    "ConversationConnectionError",
    "ConversationResponseError",
    "ConversationServiceError",
    "HttpConversationClient",
    "ImmediateDispatcher",
    "ManualScheduler",
    "Message",
    "MessageStatus",
    "Scheduler",
    "SendResult",
    "Sender",
    "Session",
    "SessionGroups",
    "SessionLifecycleManager",
    "SessionListService",
    "SessionState",
    "SessionStore",
    "classify_error",
    "generate_session_title",
    "group_sessions",
]

# The Qt dispatcher requires PyQt6. It is imported lazily so the headless
# services stay importable without Qt libraries.
try:  # pragma: no cover - optional dependency guard
    from .qt_dispatch import QtCallDispatcher, QtScheduler
except ImportError:  # pragma: no cover
    QtCallDispatcher = QtScheduler = None  # type: ignore[assignment,misc]
else:  # pragma: no cover - executed when Qt is available
    __all__.extend(["QtCallDispatcher", "QtScheduler"])
