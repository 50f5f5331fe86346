"""Main window for the SupportDesk chat client."""

from __future__ import annotations

import logging

from PyQt6.QtCore import Qt
from PyQt6.QtGui import QAction, QCloseEvent, QKeySequence
from PyQt6.QtWidgets import (
    QFrame,
    QHBoxLayout,
    QInputDialog,
    QLabel,
    QMainWindow,
    QMenu,
    QMenuBar,
    QMessageBox,
    QPushButton,
    QSplitter,
    QToolButton,
    QVBoxLayout,
    QWidget,
)

from ..config import AppSettings
from ..services.chat_client import HttpConversationClient
from ..services.conversation import SessionLifecycleManager
from ..services.dispatch import CallDispatcher
from ..services.session_list import SessionListService
from .article_dialog import ArticleDialog
from .chat_input import ChatInputWidget
from .message_view import TranscriptView
from .session_sidebar import SessionSidebar


LOGGER = logging.getLogger(__name__)


class ErrorBanner(QFrame):
    """Dismissable strip showing the manager's current error."""

    def __init__(self, parent: QWidget | None = None) -> None:
        super().__init__(parent)
        self.setObjectName("errorBanner")
        self.setStyleSheet(
            "QFrame#errorBanner { background-color: #fef2f2; border: 1px solid #fecaca;"
            " border-radius: 6px; color: #991b1b; }"
        )
        layout = QHBoxLayout(self)
        layout.setContentsMargins(10, 6, 10, 6)
        self.label = QLabel("", self)
        self.label.setWordWrap(True)
        layout.addWidget(self.label, 1)
        self.dismiss_button = QToolButton(self)
        self.dismiss_button.setText("✕")
        self.dismiss_button.setAutoRaise(True)
        layout.addWidget(self.dismiss_button)
        self.hide()

    def show_error(self, message: str) -> None:
        self.label.setText(message)
        self.setVisible(bool(message))


class ChatWindow(QMainWindow):
    """Sidebar of sessions next to the active conversation."""

    def __init__(
        self,
        *,
        settings: AppSettings,
        client: HttpConversationClient,
        manager: SessionLifecycleManager,
        session_list: SessionListService,
        dispatcher: CallDispatcher,
        confirm_destructive: bool = True,
    ) -> None:
        super().__init__()
        self.settings = settings
        self.client = client
        self.manager = manager
        self.session_list = session_list
        self.dispatcher = dispatcher
        self.confirm_destructive = confirm_destructive
        self._article_dialog: ArticleDialog | None = None

        self.setWindowTitle("SupportDesk Assistant")
        self.resize(1100, 760)
        self._create_actions()
        self._create_layout()

        self._unsubscribe_state = manager.add_state_listener(lambda _manager: self._render_state())
        self._unsubscribe_created = manager.add_session_created_listener(
            self._on_session_created
        )
        self._render_state()

    # ------------------------------------------------------------------
    def _create_actions(self) -> None:
        self.new_chat_action = QAction("New Chat", self)
        self.new_chat_action.setShortcut(QKeySequence.StandardKey.New)
        self.new_chat_action.triggered.connect(self.manager.start_new_chat)

        self.refresh_sessions_action = QAction("Refresh Conversations", self)
        self.refresh_sessions_action.setShortcut(QKeySequence.StandardKey.Refresh)
        self.refresh_sessions_action.triggered.connect(self.session_list.refresh)

        self.quit_action = QAction("Quit", self)
        self.quit_action.setShortcut(QKeySequence.StandardKey.Quit)
        self.quit_action.triggered.connect(self.close)

        self.rename_action = QAction("Rename Conversation…", self)
        self.rename_action.triggered.connect(self._prompt_rename)
        self.clear_action = QAction("Clear View", self)
        self.clear_action.triggered.connect(self.manager.clear_messages)
        self.delete_action = QAction("Delete Conversation", self)
        self.delete_action.triggered.connect(self._delete_current_session)

        menubar = QMenuBar(self)
        self.setMenuBar(menubar)
        file_menu = QMenu("File", self)
        file_menu.addAction(self.new_chat_action)
        file_menu.addAction(self.refresh_sessions_action)
        file_menu.addSeparator()
        file_menu.addAction(self.quit_action)
        menubar.addMenu(file_menu)

        conversation_menu = QMenu("Conversation", self)
        conversation_menu.addAction(self.rename_action)
        conversation_menu.addAction(self.clear_action)
        conversation_menu.addSeparator()
        conversation_menu.addAction(self.delete_action)
        menubar.addMenu(conversation_menu)

    def _create_layout(self) -> None:
        splitter = QSplitter(Qt.Orientation.Horizontal, self)

        self.sidebar = SessionSidebar(self.session_list, splitter)
        self.sidebar.session_selected.connect(self.manager.load_session)
        self.sidebar.new_chat_requested.connect(self.manager.start_new_chat)
        self.sidebar.delete_requested.connect(self.delete_session)
        splitter.addWidget(self.sidebar)

        main = QWidget(splitter)
        layout = QVBoxLayout(main)
        layout.setContentsMargins(12, 12, 12, 12)
        layout.setSpacing(8)

        header = QHBoxLayout()
        self.title_label = QLabel("", main)
        self.title_label.setObjectName("conversationTitle")
        font = self.title_label.font()
        font.setPointSizeF(font.pointSizeF() + 2)
        font.setBold(True)
        self.title_label.setFont(font)
        header.addWidget(self.title_label, 1)
        self.rename_button = QPushButton("Rename", main)
        self.rename_button.clicked.connect(self._prompt_rename)
        header.addWidget(self.rename_button)
        self.clear_button = QPushButton("Clear view", main)
        self.clear_button.clicked.connect(self.manager.clear_messages)
        header.addWidget(self.clear_button)
        self.delete_button = QPushButton("Delete", main)
        self.delete_button.clicked.connect(self._delete_current_session)
        header.addWidget(self.delete_button)
        layout.addLayout(header)

        self.error_banner = ErrorBanner(main)
        self.error_banner.dismiss_button.clicked.connect(self.manager.clear_error)
        layout.addWidget(self.error_banner)

        self.transcript = TranscriptView(
            article_url_base=self.settings.article_url_base, parent=main
        )
        self.transcript.article_requested.connect(self.open_article)
        layout.addWidget(self.transcript, 1)

        self.chat_input = ChatInputWidget(main)
        self.chat_input.send_requested.connect(self.manager.send_message)
        layout.addWidget(self.chat_input)

        splitter.addWidget(main)
        splitter.setStretchFactor(0, 1)
        splitter.setStretchFactor(1, 3)
        splitter.setSizes([280, 820])
        self.setCentralWidget(splitter)

    # ------------------------------------------------------------------
    def _render_state(self) -> None:
        manager = self.manager
        self.title_label.setText(manager.title or "New Conversation")
        active = manager.has_active_session
        for widget in (
            self.rename_button,
            self.delete_button,
            self.rename_action,
            self.delete_action,
        ):
            widget.setEnabled(active)
        self.clear_button.setEnabled(manager.has_messages)
        self.clear_action.setEnabled(manager.has_messages)
        self.transcript.set_messages(manager.messages)
        self.transcript.set_typing(manager.loading)
        self.chat_input.set_busy(manager.loading)
        self.error_banner.show_error(manager.error)
        self.sidebar.set_current_session(manager.current_session_id)

    def _on_session_created(self, session_id: str) -> None:
        LOGGER.info("Refreshing session list for new session", extra={"session_id": session_id})
        self.session_list.refresh()

    def open_article(self, article_id: str) -> ArticleDialog:
        dialog = ArticleDialog(
            article_id,
            client=self.client,
            dispatcher=self.dispatcher,
            article_url_base=self.settings.article_url_base,
            parent=self,
        )
        self._article_dialog = dialog
        dialog.show()
        return dialog

    def _prompt_rename(self) -> None:  # pragma: no cover - modal input
        title, accepted = QInputDialog.getText(
            self, "Rename conversation", "Title:", text=self.manager.title
        )
        if accepted and title.strip():
            self.manager.update_session_title(title.strip())

    def _confirm_delete(self) -> bool:
        if not self.confirm_destructive:
            return True
        answer = QMessageBox.question(
            self,
            "Delete conversation",
            "Are you sure you want to delete this conversation?",
        )
        return answer == QMessageBox.StandardButton.Yes

    def _delete_current_session(self) -> None:
        if not self._confirm_delete():
            return
        self.manager.delete_current_session()
        self.session_list.refresh()

    def delete_session(self, session_id: str) -> None:
        """Delete a conversation picked from the sidebar."""

        if session_id == self.manager.current_session_id:
            self._delete_current_session()
            return
        if not self._confirm_delete():
            return
        self.session_list.delete_session(session_id)

    # ------------------------------------------------------------------
    def closeEvent(self, event: QCloseEvent) -> None:  # type: ignore[override]
        self.session_list.stop()
        self._unsubscribe_state()
        self._unsubscribe_created()
        self.manager.close()
        super().closeEvent(event)


__all__ = ["ChatWindow", "ErrorBanner"]
