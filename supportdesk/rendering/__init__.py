"""Render-time parsing of chat message text."""

from .markdown import format_inline_markdown
from .message_html import (
    ARTICLE_SCHEME,
    article_url,
    parse_article_anchor,
    render_message_html,
)
from .references import (
    CitationRule,
    ReferenceToken,
    ReferenceTokenizer,
    TokenKind,
    join_literals,
    tokenize_references,
)

__all__ = [
    "ARTICLE_SCHEME",
    "CitationRule",
    "ReferenceToken",
    "ReferenceTokenizer",
    "TokenKind",
    "article_url",
    "format_inline_markdown",
    "join_literals",
    "parse_article_anchor",
    "render_message_html",
    "tokenize_references",
]
