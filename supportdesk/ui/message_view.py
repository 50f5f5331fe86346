"""Chat transcript widgets with clickable article citations."""

from __future__ import annotations

import logging
import math
from collections.abc import Sequence
from datetime import datetime

from PyQt6.QtCore import Qt, QTimer, QUrl, pyqtSignal
from PyQt6.QtGui import QDesktopServices, QTextOption
from PyQt6.QtWidgets import (
    QApplication,
    QFrame,
    QHBoxLayout,
    QLabel,
    QPushButton,
    QScrollArea,
    QSizePolicy,
    QTextBrowser,
    QVBoxLayout,
    QWidget,
)

from ..config import DEFAULT_ARTICLE_URL_BASE
from ..rendering import parse_article_anchor, render_message_html
from ..services.conversation import Message


logger = logging.getLogger(__name__)

USER_BUBBLE_COLOR = "#2563eb"
ASSISTANT_BUBBLE_COLOR = "#ffffff"
ERROR_BUBBLE_COLOR = "#fef2f2"
CITATION_ACCENT = "#1e40af"


def _format_timestamp(value: datetime | None) -> str:
    if value is None:
        return ""
    return value.strftime("%I:%M %p").lstrip("0")


class MessageTextWidget(QTextBrowser):
    """Read-only rich text for one message.

    Modal citations surface through :attr:`article_requested`; external
    citations open in the system browser.
    """

    article_requested = pyqtSignal(str)

    def __init__(
        self,
        text: str,
        *,
        article_url_base: str = DEFAULT_ARTICLE_URL_BASE,
        accent: str | None = CITATION_ACCENT,
        parent: QWidget | None = None,
    ) -> None:
        super().__init__(parent)
        self.setReadOnly(True)
        self.setOpenLinks(False)
        self.setOpenExternalLinks(False)
        self.setFrameShape(QFrame.Shape.NoFrame)
        self.setHorizontalScrollBarPolicy(Qt.ScrollBarPolicy.ScrollBarAlwaysOff)
        self.setVerticalScrollBarPolicy(Qt.ScrollBarPolicy.ScrollBarAlwaysOff)
        self.document().setDocumentMargin(0)
        self.document().setDefaultTextOption(QTextOption(Qt.AlignmentFlag.AlignLeft))
        self.setSizePolicy(QSizePolicy.Policy.Expanding, QSizePolicy.Policy.Minimum)
        self.setTextInteractionFlags(
            Qt.TextInteractionFlag.TextSelectableByMouse
            | Qt.TextInteractionFlag.LinksAccessibleByMouse
        )
        self._raw_text = text
        self._html = render_message_html(text, article_url_base=article_url_base, accent=accent)
        self.anchorClicked.connect(self.activate_anchor)
        self.setHtml(f"<div class='chat-message'>{self._html}</div>")
        self.document().adjustSize()
        self.setMinimumHeight(math.ceil(self.document().size().height()))

    @property
    def raw_text(self) -> str:
        return self._raw_text

    @property
    def rendered_html(self) -> str:
        return self._html

    def activate_anchor(self, url: QUrl) -> None:
        target = url.toString()
        article_id = parse_article_anchor(target)
        if article_id is not None:
            logger.debug("Modal citation activated", extra={"article_id": article_id})
            self.article_requested.emit(article_id)
            return
        if url.scheme() in {"http", "https"}:
            QDesktopServices.openUrl(url)


class MessageBubble(QFrame):
    """Speaker bubble for a single :class:`Message`."""

    article_requested = pyqtSignal(str)

    def __init__(
        self,
        message: Message,
        *,
        article_url_base: str = DEFAULT_ARTICLE_URL_BASE,
        parent: QWidget | None = None,
    ) -> None:
        super().__init__(parent)
        self.message = message
        speaker = "user" if message.is_user else "assistant"
        self.setObjectName(f"chatBubble_{speaker}")
        if message.is_user:
            background, foreground = USER_BUBBLE_COLOR, "#ffffff"
        elif message.is_error:
            background, foreground = ERROR_BUBBLE_COLOR, "#991b1b"
        else:
            background, foreground = ASSISTANT_BUBBLE_COLOR, "#1f2937"
        self.setStyleSheet(
            f"QFrame#chatBubble_{speaker} {{"
            f"background-color: {background};"
            f"color: {foreground};"
            "border: 1px solid #e5e7eb;"
            "border-radius: 12px;"
            "}}"
        )
        if not message.is_user and message.original_question:
            self.setToolTip(f"In reply to: {message.original_question}")

        layout = QVBoxLayout(self)
        layout.setContentsMargins(14, 10, 14, 10)
        layout.setSpacing(6)

        accent = None if message.is_user else CITATION_ACCENT
        self.text_widget = MessageTextWidget(
            message.text, article_url_base=article_url_base, accent=accent, parent=self
        )
        self.text_widget.article_requested.connect(self.article_requested)
        layout.addWidget(self.text_widget)

        footer = QHBoxLayout()
        footer.setContentsMargins(0, 0, 0, 0)
        self.timestamp_label = QLabel(_format_timestamp(message.timestamp), self)
        self.timestamp_label.setObjectName("bubbleMeta")
        footer.addWidget(self.timestamp_label)
        footer.addStretch(1)
        self.copy_button: QPushButton | None = None
        if not message.is_user and not message.is_error:
            self.copy_button = QPushButton("Copy", self)
            self.copy_button.setCursor(Qt.CursorShape.PointingHandCursor)
            self.copy_button.clicked.connect(self._copy_text)
            footer.addWidget(self.copy_button)
        layout.addLayout(footer)

    def _copy_text(self) -> None:  # pragma: no cover - clipboard
        QApplication.clipboard().setText(self.message.text)
        if self.copy_button is not None:
            self.copy_button.setText("Copied!")
            QTimer.singleShot(2000, lambda: self.copy_button and self.copy_button.setText("Copy"))


class TranscriptView(QScrollArea):
    """Scrollable list of message bubbles, rebuilt from manager state."""

    article_requested = pyqtSignal(str)

    def __init__(
        self,
        *,
        article_url_base: str = DEFAULT_ARTICLE_URL_BASE,
        parent: QWidget | None = None,
    ) -> None:
        super().__init__(parent)
        self.setWidgetResizable(True)
        self.setFrameShape(QFrame.Shape.NoFrame)
        self._article_url_base = article_url_base
        self._container = QWidget(self)
        self._layout = QVBoxLayout(self._container)
        self._layout.setContentsMargins(12, 12, 12, 12)
        self._layout.setSpacing(10)
        self._layout.addStretch(1)
        self.setWidget(self._container)
        self._bubbles: list[MessageBubble] = []
        self._rendered_ids: list[str | int] = []
        self._typing_label = QLabel("Assistant is typing…", self._container)
        self._typing_label.setObjectName("typingIndicator")
        self._typing_label.hide()
        self._layout.addWidget(self._typing_label)

    @property
    def bubbles(self) -> list[MessageBubble]:
        return list(self._bubbles)

    def set_messages(self, messages: Sequence[Message]) -> None:
        """Render ``messages``, appending when the list only grew."""

        ids = [message.id for message in messages]
        if ids[: len(self._rendered_ids)] != self._rendered_ids:
            self._clear()
        for message in messages[len(self._bubbles) :]:
            self._append(message)
        self._rendered_ids = ids
        QTimer.singleShot(0, self._scroll_to_bottom)

    def set_typing(self, active: bool) -> None:
        self._typing_label.setVisible(active)

    def _append(self, message: Message) -> None:
        bubble = MessageBubble(message, article_url_base=self._article_url_base)
        bubble.article_requested.connect(self.article_requested)
        row = QHBoxLayout()
        row.setContentsMargins(0, 0, 0, 0)
        if message.is_user:
            row.addStretch(1)
            row.addWidget(bubble, 4)
        else:
            row.addWidget(bubble, 4)
            row.addStretch(1)
        # Keep the stretch and typing indicator at the end.
        self._layout.insertLayout(self._layout.count() - 2, row)
        self._bubbles.append(bubble)

    def _clear(self) -> None:
        while self._layout.count() > 2:
            item = self._layout.takeAt(0)
            layout = item.layout() if item is not None else None
            if layout is None:
                continue
            while layout.count():
                child = layout.takeAt(0)
                widget = child.widget() if child is not None else None
                if widget is not None:
                    widget.deleteLater()
        self._bubbles = []
        self._rendered_ids = []

    def _scroll_to_bottom(self) -> None:  # pragma: no cover - UI behaviour
        bar = self.verticalScrollBar()
        bar.setValue(bar.maximum())


__all__ = ["MessageBubble", "MessageTextWidget", "TranscriptView"]
