"""Minimal inline markdown for plain-text message segments."""

from __future__ import annotations

import html
import re

# Bold runs before italic so ``**a**`` is not split into nested emphasis.
_SUBSTITUTIONS: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"\*\*(.*?)\*\*"), r"<strong>\1</strong>"),
    (re.compile(r"__(.*?)__"), r"<strong>\1</strong>"),
    (re.compile(r"\*(.*?)\*"), r"<em>\1</em>"),
    (re.compile(r"_(.*?)_"), r"<em>\1</em>"),
    (re.compile(r"`(.*?)`"), r"<code class='inline'>\1</code>"),
    (re.compile(r"\n"), "<br/>"),
)


def format_inline_markdown(text: str, *, escape: bool = True) -> str:
    """Return HTML for ``text`` with bold, italic, code and line breaks applied.

    Only call this on text segments; citation literals must bypass it.
    """

    if not text:
        return ""
    result = html.escape(text, quote=False) if escape else text
    for pattern, replacement in _SUBSTITUTIONS:
        result = pattern.sub(replacement, result)
    return result


__all__ = ["format_inline_markdown"]
