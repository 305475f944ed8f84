"""Split converted Markdown into alternating word and separator tokens.

Words are split on whitespace, em dashes, en dashes, hyphens and the
converter's link mark. A link written by the converter (``[text](url)``
right after a link mark) is a single word, whatever its text and target
contain.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

from studysync.core.markup import LINK_MARK

_SEPARATOR_CLASS = rf"[{LINK_MARK}\s\u2014\u2013-]"
_SEPARATOR_CHAR_RE = re.compile(_SEPARATOR_CLASS)
_SEPARATOR_RE = re.compile(_SEPARATOR_CLASS + "+")


class TokenKind(str, Enum):
    WORD = "word"
    SEPARATOR = "separator"


class LinkState(str, Enum):
    """Where the link scanner is inside ``[text](target)``."""

    OUTSIDE = "outside"
    LINK_TEXT = "link_text"
    LINK_TARGET = "link_target"


@dataclass(frozen=True)
class Token:
    text: str
    kind: TokenKind

    @property
    def is_word(self) -> bool:
        return self.kind is TokenKind.WORD


def is_separator(text: str) -> bool:
    return bool(text) and _SEPARATOR_RE.fullmatch(text) is not None


def _scan_link(md: str, start: int) -> int | None:
    """Return the index just past the link opening at ``md[start]``.

    Brackets in the link text nest. The target ends at the first ``)``
    followed by the link mark, so unbalanced parentheses in a URL stay
    inside the link. Returns None when the text at ``start`` is not a
    complete link.
    """
    state = LinkState.LINK_TEXT
    depth = 0
    i = start + 1
    while i < len(md):
        ch = md[i]
        if state is LinkState.LINK_TEXT:
            if ch == "[":
                depth += 1
            elif ch == "]":
                if depth:
                    depth -= 1
                elif md.startswith("(", i + 1):
                    state = LinkState.LINK_TARGET
                    i += 1
                else:
                    return None
        elif ch == ")" and (i + 1 == len(md) or md[i + 1] == LINK_MARK):
            state = LinkState.OUTSIDE
        if state is LinkState.OUTSIDE:
            return i + 1
        i += 1
    return None


def tokenize(md: str) -> list[Token]:
    """Tokenize Markdown; joining the token texts gives back ``md`` exactly."""
    pieces: list[tuple[TokenKind, list[str]]] = []

    def push(chunk: str, kind: TokenKind) -> None:
        if pieces and pieces[-1][0] is kind:
            pieces[-1][1].append(chunk)
        else:
            pieces.append((kind, [chunk]))

    i = 0
    while i < len(md):
        ch = md[i]
        if ch == "[" and i > 0 and md[i - 1] == LINK_MARK:
            end = _scan_link(md, i)
            if end is not None:
                push(md[i:end], TokenKind.WORD)
                i = end
                continue
        kind = TokenKind.SEPARATOR if _SEPARATOR_CHAR_RE.match(ch) else TokenKind.WORD
        push(ch, kind)
        i += 1

    return [Token("".join(chunks), kind) for kind, chunks in pieces]


def count_words(md: str) -> int:
    return sum(1 for t in tokenize(md) if t.is_word)
