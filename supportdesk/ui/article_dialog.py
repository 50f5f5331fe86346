"""In-place preview of a knowledge-base article."""

from __future__ import annotations

import logging
import re
from typing import Any

from PyQt6.QtCore import Qt, QUrl
from PyQt6.QtGui import QDesktopServices
from PyQt6.QtWidgets import (
    QDialog,
    QDialogButtonBox,
    QLabel,
    QTextBrowser,
    QVBoxLayout,
    QWidget,
)

from ..rendering import article_url
from ..services.dispatch import CallDispatcher
from ..services.error_messages import classify_error


logger = logging.getLogger(__name__)

_TAG_RE = re.compile(r"<[^>]+>")


def _article_fields(payload: Any) -> tuple[str | None, str | None]:
    """Pull title/body out of ``{"article": {...}}`` or a bare article dict."""

    if not isinstance(payload, dict):
        return None, None
    article = payload.get("article") if isinstance(payload.get("article"), dict) else payload
    title = article.get("title")
    body = article.get("content") or article.get("description") or article.get("body")
    return (str(title) if title else None, str(body) if body else None)


class ArticleDialog(QDialog):
    """Modal showing one article, fetched through the dispatcher."""

    def __init__(
        self,
        article_id: str,
        *,
        client: Any,
        dispatcher: CallDispatcher,
        article_url_base: str,
        parent: QWidget | None = None,
    ) -> None:
        super().__init__(parent)
        self.article_id = article_id
        self._external_url = article_url(article_id, article_url_base)
        self.setWindowTitle(f"Article #{article_id}")
        self.resize(640, 520)

        layout = QVBoxLayout(self)
        self.title_label = QLabel(f"Article #{article_id}", self)
        self.title_label.setObjectName("articleTitle")
        self.title_label.setWordWrap(True)
        layout.addWidget(self.title_label)

        self.body = QTextBrowser(self)
        self.body.setOpenExternalLinks(True)
        self.body.setPlainText("Loading…")
        layout.addWidget(self.body, 1)

        buttons = QDialogButtonBox(QDialogButtonBox.StandardButton.Close, self)
        open_button = buttons.addButton(
            "Open in help centre", QDialogButtonBox.ButtonRole.ActionRole
        )
        open_button.clicked.connect(self._open_external)
        buttons.rejected.connect(self.reject)
        layout.addWidget(buttons)
        self.setWindowModality(Qt.WindowModality.ApplicationModal)

        dispatcher.submit(
            lambda: client.get_article(article_id), self.show_article, self.show_error
        )

    def show_article(self, payload: Any) -> None:
        title, body = _article_fields(payload)
        if title:
            self.title_label.setText(title)
        if body and _TAG_RE.search(body):
            self.body.setHtml(body)
        else:
            self.body.setPlainText(body or "This article has no content.")

    def show_error(self, exc: Exception) -> None:
        logger.warning(
            "Failed to load article", extra={"article_id": self.article_id, "error": str(exc)}
        )
        self.body.setPlainText(classify_error(exc))

    def _open_external(self) -> None:  # pragma: no cover - opens browser
        QDesktopServices.openUrl(QUrl(self._external_url))


__all__ = ["ArticleDialog"]
