"""Tokenize knowledge-base article references inside assistant text.

Two grammars are recognised:

* ``[Article 123]``, ``[ID: 123]`` or ``[123]`` open the article in place
  (modal citations);
* ``Article #123`` links to the article on the external help centre
  (external citations).

The lexer walks the text once. At every step it takes the rule whose next
match starts earliest; when two rules match at the same offset the rule
listed first wins. Text between matches is emitted verbatim, so joining the
``literal`` of every token reproduces the input exactly. Input without any
citation, the empty string included, comes back as a single text token.
Word and digit classes are ASCII-only, so a non-ASCII letter before
``Article`` does not block an external citation.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from enum import Enum


class TokenKind(Enum):
    TEXT = "text"
    MODAL_CITATION = "modal_citation"
    EXTERNAL_CITATION = "external_citation"


@dataclass(frozen=True, slots=True)
class ReferenceToken:
    """A typed slice of message text."""

    kind: TokenKind
    literal: str
    article_id: str | None = None

    @property
    def is_citation(self) -> bool:
        return self.kind is not TokenKind.TEXT

    @property
    def display_text(self) -> str:
        if self.kind is TokenKind.MODAL_CITATION:
            return f"Article {self.article_id}"
        return self.literal


@dataclass(frozen=True, slots=True)
class CitationRule:
    """Pattern producing citation tokens; group 1 must capture the article id."""

    kind: TokenKind
    pattern: re.Pattern[str]


MODAL_CITATION_RULE = CitationRule(
    TokenKind.MODAL_CITATION,
    re.compile(r"\[(?:Article\s*)?(?:ID:\s*)?([0-9]+)\]", re.IGNORECASE),
)
EXTERNAL_CITATION_RULE = CitationRule(
    TokenKind.EXTERNAL_CITATION,
    re.compile(r"(?<![A-Za-z0-9_])(?:Article|article)\s*#([0-9]+)", re.IGNORECASE),
)
DEFAULT_RULES: tuple[CitationRule, ...] = (MODAL_CITATION_RULE, EXTERNAL_CITATION_RULE)


class ReferenceTokenizer:
    """Scan-and-dispatch lexer over an ordered list of citation rules."""

    def __init__(self, rules: Iterable[CitationRule] = DEFAULT_RULES) -> None:
        self.rules: tuple[CitationRule, ...] = tuple(rules)
        if not self.rules:
            raise ValueError("at least one citation rule is required")

    def tokenize(self, text: str) -> list[ReferenceToken]:
        tokens: list[ReferenceToken] = []
        upcoming: list[re.Match[str] | None] = [
            rule.pattern.search(text) for rule in self.rules
        ]
        position = 0
        while True:
            best_index = self._earliest(upcoming)
            if best_index is None:
                break
            match = upcoming[best_index]
            assert match is not None
            if match.start() > position:
                tokens.append(ReferenceToken(TokenKind.TEXT, text[position : match.start()]))
            tokens.append(
                ReferenceToken(self.rules[best_index].kind, match.group(0), match.group(1))
            )
            position = match.end()
            for index, candidate in enumerate(upcoming):
                if candidate is not None and candidate.start() < position:
                    upcoming[index] = self.rules[index].pattern.search(text, position)
        if position < len(text) or not tokens:
            tokens.append(ReferenceToken(TokenKind.TEXT, text[position:]))
        return tokens

    @staticmethod
    def _earliest(upcoming: Sequence[re.Match[str] | None]) -> int | None:
        best: int | None = None
        for index, match in enumerate(upcoming):
            if match is None:
                continue
            if best is None or match.start() < upcoming[best].start():  # type: ignore[union-attr]
                best = index
        return best


_DEFAULT_TOKENIZER = ReferenceTokenizer()


def tokenize_references(text: str) -> list[ReferenceToken]:
    """Split ``text`` into text and citation tokens using the default rules."""

    return _DEFAULT_TOKENIZER.tokenize(text)


def join_literals(tokens: Iterable[ReferenceToken]) -> str:
    return "".join(token.literal for token in tokens)


__all__ = [
    "CitationRule",
    "DEFAULT_RULES",
    "EXTERNAL_CITATION_RULE",
    "MODAL_CITATION_RULE",
    "ReferenceToken",
    "ReferenceTokenizer",
    "TokenKind",
    "join_literals",
    "tokenize_references",
]
