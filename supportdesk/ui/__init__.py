"""UI components for the SupportDesk application."""

from .article_dialog import ArticleDialog
from .chat_input import ChatInputWidget
from .chat_window import ChatWindow, ErrorBanner
from .message_view import MessageBubble, MessageTextWidget, TranscriptView
from .session_sidebar import SessionSidebar

__all__ = [
    "ArticleDialog",
    "ChatInputWidget",
    "ChatWindow",
    "ErrorBanner",
    "MessageBubble",
    "MessageTextWidget",
    "SessionSidebar",
    "TranscriptView",
]
