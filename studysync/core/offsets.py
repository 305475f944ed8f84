"""Map word offsets onto slices of a tokenized passage."""

from __future__ import annotations

import math
from typing import Sequence

from studysync.core.tokenizer import Token, tokenize

# Stored end offset meaning "to the end of the passage".
UNBOUNDED = -1


def normalize_offsets(start_offset: int | None, end_offset: int | None) -> tuple[int, float]:
    """Turn stored 1-indexed offsets into word counts to walk past.

    The start becomes the number of words before the highlight (offset 1
    or missing means none). The end becomes the number of words up to and
    including the last highlighted one, or infinity when unbounded.
    """
    start = max((start_offset or 0) - 1, 0)
    end = math.inf if end_offset is None or end_offset == UNBOUNDED else end_offset
    return start, end


def word_offset_to_index(tokens: Sequence[Token], word_offset: float) -> int:
    """Index of the token right after the ``word_offset``-th word.

    Clamped to ``len(tokens)`` when the passage has fewer words.
    """
    count = 0
    index = 0
    while count < word_offset and index < len(tokens):
        token = tokens[index]
        index += 1
        if token.is_word:
            count += 1
    return index


def slice_tokens(tokens: Sequence[Token], start_offset: int | None, end_offset: int | None) -> str:
    start, end = normalize_offsets(start_offset, end_offset)
    start_index = word_offset_to_index(tokens, start)
    end_index = word_offset_to_index(tokens, end)
    return "".join(t.text for t in tokens[start_index:end_index])


def extract_span(md: str, start_offset: int | None, end_offset: int | None) -> str:
    """Raw text (placeholders included) between two stored word offsets."""
    return slice_tokens(tokenize(md), start_offset, end_offset)
