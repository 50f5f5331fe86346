"""Sidebar listing previous conversations grouped by recency."""

from __future__ import annotations

from datetime import datetime

from PyQt6.QtCore import Qt, pyqtSignal
from PyQt6.QtWidgets import (
    QFrame,
    QLabel,
    QLineEdit,
    QMenu,
    QPushButton,
    QTreeWidget,
    QTreeWidgetItem,
    QVBoxLayout,
)

from ..services.session_list import SessionListService

SESSION_ID_ROLE = Qt.ItemDataRole.UserRole


class SessionSidebar(QFrame):
    """Render :class:`SessionListService` results and relay user choices."""

    session_selected = pyqtSignal(str)
    new_chat_requested = pyqtSignal()
    delete_requested = pyqtSignal(str)

    def __init__(self, service: SessionListService, parent=None) -> None:
        super().__init__(parent)
        self.setObjectName("sessionSidebar")
        self.service = service
        self._current_session_id: str | None = None

        layout = QVBoxLayout(self)
        layout.setContentsMargins(8, 8, 8, 8)
        layout.setSpacing(6)

        self.new_chat_button = QPushButton("New Chat", self)
        self.new_chat_button.clicked.connect(lambda _checked=False: self.new_chat_requested.emit())
        layout.addWidget(self.new_chat_button)

        self.search_edit = QLineEdit(self)
        self.search_edit.setPlaceholderText("Search conversations")
        self.search_edit.textChanged.connect(lambda _text: self.render())
        layout.addWidget(self.search_edit)

        self.tree = QTreeWidget(self)
        self.tree.setHeaderHidden(True)
        self.tree.itemClicked.connect(self._on_item_clicked)
        self.tree.setContextMenuPolicy(Qt.ContextMenuPolicy.CustomContextMenu)
        self.tree.customContextMenuRequested.connect(self._show_context_menu)
        layout.addWidget(self.tree, 1)

        self.status_label = QLabel("", self)
        self.status_label.setWordWrap(True)
        self.status_label.hide()
        layout.addWidget(self.status_label)

        self._unsubscribe = service.subscribe(lambda _service: self.render())

    def set_current_session(self, session_id: str | None) -> None:
        self._current_session_id = session_id
        self.render()

    def render(self, now: datetime | None = None) -> None:
        self.tree.clear()
        groups = self.service.grouped(now, term=self.search_edit.text())
        for label, sessions in groups.labelled():
            header = QTreeWidgetItem([label])
            header.setFlags(Qt.ItemFlag.ItemIsEnabled)
            self.tree.addTopLevelItem(header)
            for session in sessions:
                item = QTreeWidgetItem([session.title])
                item.setData(0, SESSION_ID_ROLE, session.id)
                if session.updated_at is not None:
                    item.setToolTip(0, session.updated_at.strftime("%b %d, %I:%M %p"))
                header.addChild(item)
                if session.id == self._current_session_id:
                    self.tree.setCurrentItem(item)
            header.setExpanded(True)
        error = self.service.error
        self.status_label.setText(error)
        self.status_label.setVisible(bool(error))

    def _on_item_clicked(self, item: QTreeWidgetItem, _column: int) -> None:
        session_id = item.data(0, SESSION_ID_ROLE)
        if session_id:
            self.session_selected.emit(str(session_id))

    def _show_context_menu(self, position) -> None:  # pragma: no cover - popup menu
        item = self.tree.itemAt(position)
        session_id = item.data(0, SESSION_ID_ROLE) if item is not None else None
        if not session_id:
            return
        menu = QMenu(self)
        delete_action = menu.addAction("Delete conversation")
        if menu.exec(self.tree.viewport().mapToGlobal(position)) == delete_action:
            self.delete_requested.emit(str(session_id))

    def closeEvent(self, event) -> None:  # type: ignore[override]
        self._unsubscribe()
        super().closeEvent(event)


__all__ = ["SessionSidebar"]
