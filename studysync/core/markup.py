"""HTML to Markdown conversion that keeps word offsets countable.

Two private-use code points form a small wire format between the
converter and the tokenizer:

- ``LINK_MARK`` (U+E000) is a word separator. It is written around every
  link and every footnote marker so they count as their own words.
- ``FOOTNOTE_PLACEHOLDER`` (U+E001) stands in for a footnote marker. It is
  one word while counting offsets and is removed before output.

Both are stripped from incoming markup, so they only ever come from the
converter itself.
"""

from __future__ import annotations

import logging
import re

from markdownify import ASTERISK, MarkdownConverter, chomp

from studysync.core.sources import absolutize_href

logger = logging.getLogger(__name__)

LINK_MARK = "\ue000"
FOOTNOTE_PLACEHOLDER = "\ue001"
FOOTNOTE_MARKER = f"{LINK_MARK}{FOOTNOTE_PLACEHOLDER}{LINK_MARK}"

_RESERVED = {ord(LINK_MARK): None, ord(FOOTNOTE_PLACEHOLDER): None}

_BLANK_LINES_RE = re.compile(r"\n\s+\n")


class StudyMarkdownConverter(MarkdownConverter):
    """Markdown converter with word-counting rules for footnotes and links.

    Readwise only renders asterisk emphasis, so underscores are never
    used as delimiters.
    """

    class Options(MarkdownConverter.DefaultOptions):
        strong_em_symbol = ASTERISK

    def convert_sup(self, el, text, parent_tags):
        return FOOTNOTE_MARKER

    def convert_a(self, el, text, parent_tags):
        prefix, suffix, text = chomp(text)
        href = absolutize_href(el.get("href"))
        if href:
            md = f"[{text}]({href})"
        elif text:
            md = text
        else:
            return prefix or suffix
        return f"{prefix}{LINK_MARK}{md}{LINK_MARK}{suffix}"


class NoteMarkdownConverter(MarkdownConverter):
    class Options(MarkdownConverter.DefaultOptions):
        strong_em_symbol = ASTERISK


def sanitize_markup(html: str) -> str:
    """Remove reserved glyphs that happen to appear in source markup."""
    cleaned = html.translate(_RESERVED)
    if len(cleaned) != len(html):
        logger.debug(f"Removed {len(html) - len(cleaned)} reserved glyph(s) from markup")
    return cleaned


def html_to_markdown_with_placeholders(html: str) -> str:
    """Convert one markup block, keeping the word-counting glyphs in place."""
    return StudyMarkdownConverter().convert(sanitize_markup(html))


def without_placeholders(md: str) -> str:
    return md.translate(_RESERVED)


def note_to_markdown(html: str) -> str:
    """Convert note HTML, collapsing runs of blank lines into one."""
    md = NoteMarkdownConverter().convert(html)
    return _BLANK_LINES_RE.sub("\n\n", md)
