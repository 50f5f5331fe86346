"""Compose the HTML shown inside a chat bubble."""

from __future__ import annotations

import html

from ..config import DEFAULT_ARTICLE_URL_BASE
from .markdown import format_inline_markdown
from .references import ReferenceToken, TokenKind, tokenize_references

ARTICLE_SCHEME = "article"


def article_url(article_id: str, base: str = DEFAULT_ARTICLE_URL_BASE) -> str:
    """Return the help-centre URL for ``article_id``."""

    return f"{base.rstrip('/')}/{article_id}"


def parse_article_anchor(target: str) -> str | None:
    """Return the article id encoded in a modal citation anchor, if any."""

    prefix = f"{ARTICLE_SCHEME}:"
    if not target.startswith(prefix):
        return None
    article_id = target[len(prefix) :]
    return article_id if article_id.isdigit() else None


def render_token(
    token: ReferenceToken,
    *,
    article_url_base: str = DEFAULT_ARTICLE_URL_BASE,
    accent: str | None = None,
) -> str:
    style = f" style='color:{accent};text-decoration:none;'" if accent else ""
    if token.kind is TokenKind.MODAL_CITATION:
        label = html.escape(token.display_text)
        return (
            f"<a href='{ARTICLE_SCHEME}:{token.article_id}' class='citation' "
            f"title='View {label}'{style}>{label}</a>"
        )
    if token.kind is TokenKind.EXTERNAL_CITATION:
        literal = html.escape(token.literal)
        href = html.escape(article_url(token.article_id or "", article_url_base), quote=True)
        return (
            f"<a href='{href}' class='article-link' "
            f"title='Open {literal} in the help centre'{style}>{literal}</a>"
        )
    return format_inline_markdown(token.literal)


def render_message_html(
    text: str,
    *,
    article_url_base: str = DEFAULT_ARTICLE_URL_BASE,
    accent: str | None = None,
) -> str:
    """Tokenize ``text`` and render each token; only text tokens get markdown."""

    return "".join(
        render_token(token, article_url_base=article_url_base, accent=accent)
        for token in tokenize_references(text or "")
    )


__all__ = [
    "ARTICLE_SCHEME",
    "article_url",
    "parse_article_anchor",
    "render_message_html",
    "render_token",
]
