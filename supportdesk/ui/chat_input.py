"""Message entry box with send history."""

from __future__ import annotations

from PyQt6.QtCore import Qt, pyqtSignal
from PyQt6.QtWidgets import QFrame, QHBoxLayout, QPushButton, QTextEdit, QVBoxLayout


class _HistoryTextEdit(QTextEdit):
    """Text edit that submits on Enter and recalls history with Up/Down."""

    submit_requested = pyqtSignal()
    history_previous_requested = pyqtSignal()
    history_next_requested = pyqtSignal()

    def keyPressEvent(self, event) -> None:  # type: ignore[override]
        key = event.key()
        modifiers = event.modifiers()
        if key in {Qt.Key.Key_Return, Qt.Key.Key_Enter}:
            if not modifiers & Qt.KeyboardModifier.ShiftModifier:
                event.accept()
                self.submit_requested.emit()
                return
        if key == Qt.Key.Key_Up and modifiers == Qt.KeyboardModifier.NoModifier:
            if self.textCursor().atStart():
                event.accept()
                self.history_previous_requested.emit()
                return
        if key == Qt.Key.Key_Down and modifiers == Qt.KeyboardModifier.NoModifier:
            if self.textCursor().atEnd():
                event.accept()
                self.history_next_requested.emit()
                return
        super().keyPressEvent(event)


class ChatInputWidget(QFrame):
    """Compose and submit chat messages (Enter sends, Shift+Enter breaks lines)."""

    send_requested = pyqtSignal(str)

    def __init__(self, parent=None) -> None:
        super().__init__(parent)
        self.setObjectName("chatInput")
        self._history: list[str] = []
        self._history_index = 0
        self._busy = False

        layout = QVBoxLayout(self)
        layout.setContentsMargins(0, 0, 0, 0)
        layout.setSpacing(6)

        self.editor = _HistoryTextEdit(self)
        self.editor.setAcceptRichText(False)
        self.editor.setPlaceholderText("Ask a question about our products and services…")
        self.editor.setFixedHeight(72)
        self.editor.textChanged.connect(self._update_button_state)
        self.editor.submit_requested.connect(self._trigger_send)
        self.editor.history_previous_requested.connect(self._recall_previous)
        self.editor.history_next_requested.connect(self._recall_next)
        layout.addWidget(self.editor)

        row = QHBoxLayout()
        row.addStretch(1)
        self.send_button = QPushButton("Send", self)
        self.send_button.setDefault(True)
        self.send_button.clicked.connect(self._trigger_send)
        row.addWidget(self.send_button)
        layout.addLayout(row)

        self._update_button_state()

    def text(self) -> str:
        return self.editor.toPlainText()

    def set_text(self, text: str) -> None:
        self.editor.setPlainText(text)
        cursor = self.editor.textCursor()
        cursor.movePosition(cursor.MoveOperation.End)
        self.editor.setTextCursor(cursor)

    def set_busy(self, busy: bool) -> None:
        self._busy = bool(busy)
        self.send_button.setText("Sending…" if self._busy else "Send")
        self._update_button_state()

    def _trigger_send(self) -> None:
        text = self.text()
        if not text.strip() or self._busy:
            return
        self._history.append(text)
        self._history_index = len(self._history)
        self.editor.clear()
        self.send_requested.emit(text)

    def _recall_previous(self) -> None:
        if not self._history:
            return
        self._history_index = max(0, self._history_index - 1)
        self.set_text(self._history[self._history_index])

    def _recall_next(self) -> None:
        if not self._history:
            return
        self._history_index = min(len(self._history), self._history_index + 1)
        if self._history_index == len(self._history):
            self.editor.clear()
        else:
            self.set_text(self._history[self._history_index])

    def _update_button_state(self) -> None:
        self.send_button.setEnabled(bool(self.text().strip()) and not self._busy)


__all__ = ["ChatInputWidget"]
