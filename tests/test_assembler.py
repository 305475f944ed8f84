"""Tests for assembler.py"""

import logging
from datetime import datetime, timezone

import pytest

from studysync.core.assembler import (
    AssemblyErrorType,
    assemble_highlight,
    assemble_highlights,
    assemble_results,
    collect_content_uris,
    get_content_uris,
)
from studysync.core.markup import FOOTNOTE_PLACEHOLDER, LINK_MARK
from studysync.providers.content_types import (
    Annotation,
    ContentBlock,
    ContentFragment,
    HighlightSpan,
)

VERSE_URI = "/scriptures/bofm/1-ne/3.p7"
VERSE_TEXT = (
    "7 And it came to pass that I, Nephi, said unto my father: "
    "I will go and do the things which the Lord hath commanded"
)
VERSE_MARKUP = (
    '<p class="verse" id="p7"><span class="verse-number">7 </span>'
    "And it came to pass that I, Nephi, said unto my father: I will "
    '<a class="study-note-ref" href="#note7a"><sup class="marker">a</sup>go</a> '
    "and do the things which the Lord hath commanded</p>"
)

TALK_URI = "/general-conference/2023/04/on-faith.p3"
TALK_MARKUP = '<p>The quick <a href="/x">brown fox</a> jumps</p>'


@pytest.fixture
def contents():
    return {
        VERSE_URI: {
            "content": [{"markup": VERSE_MARKUP}],
            "headline": "1 Nephi 3",
        },
        TALK_URI: {
            "content": [{"markup": TALK_MARKUP}],
            "authorName": "Jane Doe",
            "headline": "On Faith",
        },
    }


def make_annotation(annotation_id="a1", spans=((VERSE_URI, 14, -1),), **extra):
    raw = {
        "annotationId": annotation_id,
        "highlights": [
            {"uri": uri, "startOffset": start, "endOffset": end} for uri, start, end in spans
        ],
        "created": "2023-04-01T12:00:00.000Z",
        "lastUpdated": "2023-04-02T12:00:00.000Z",
    }
    raw.update(extra)
    return raw


class TestAssembleHighlights:
    """End-to-end behaviour of the batch function."""

    def test_verse_highlight(self, contents):
        annotation = make_annotation(
            note={"content": "<p>Say <em>yes</em></p>"},
            tags=[{"name": "obedience"}],
        )
        [record] = assemble_highlights([annotation], contents)

        assert record.id == "a1"
        assert record.highlight_md == "I will go and do the things which the Lord hath commanded"
        assert record.full_md == VERSE_TEXT
        assert record.note_md == "Say *yes*"
        assert record.tags == ("obedience",)
        assert record.created == datetime(2023, 4, 1, 12, tzinfo=timezone.utc)
        assert record.citation.title == "Book of Mormon"
        assert record.source_link == (
            "https://www.churchofjesuschrist.org/study/scriptures/bofm/1-ne/3.p7"
        )

    def test_no_placeholders_in_output(self, contents):
        [record] = assemble_highlights([make_annotation(spans=((VERSE_URI, 1, -1),))], contents)
        for text in (record.full_md, record.highlight_md):
            assert LINK_MARK not in text
            assert FOOTNOTE_PLACEHOLDER not in text

    def test_unbounded_highlight_equals_full_passage(self, contents):
        [record] = assemble_highlights([make_annotation(spans=((VERSE_URI, 1, -1),))], contents)
        assert record.highlight_md == record.full_md.strip()

    def test_link_is_one_word(self, contents):
        [record] = assemble_highlights([make_annotation(spans=((TALK_URI, 2, 3),))], contents)
        assert record.highlight_md == (
            "quick [brown fox](https://www.churchofjesuschrist.org/study/x)"
        )
        assert record.citation.author == "Jane Doe"
        assert record.citation.title == "On Faith"

    def test_link_with_unbalanced_paren_in_href(self):
        contents = {"/a": {"content": [{"markup": '<p>a <a href="/x(1">b c</a> d e</p>'}]}}
        [record] = assemble_highlights([make_annotation(spans=(("/a", 3, 3),))], contents)
        assert record.highlight_md == "d"

    def test_empty_link_counts_as_word(self):
        contents = {"/a": {"content": [{"markup": '<p>a <a href="/x"></a> b c</p>'}]}}
        [record] = assemble_highlights([make_annotation(spans=(("/a", 3, 3),))], contents)
        assert record.highlight_md == "b"

    def test_footnote_before_punctuation(self):
        contents = {"/a": {"content": [{"markup": "<p>faith<sup>1</sup>, hope and charity</p>"}]}}
        [record] = assemble_highlights([make_annotation(spans=(("/a", 1, 4),))], contents)
        assert record.highlight_md == "faith, hope"
        assert record.full_md == "faith, hope and charity"

    def test_multiple_fragments_joined(self, contents):
        annotation = make_annotation(spans=((VERSE_URI, 26, -1), (TALK_URI, 1, 2)))
        [record] = assemble_highlights([annotation], contents)
        assert record.highlight_md == "commanded\n\nThe quick"
        assert record.full_md.startswith(VERSE_TEXT + "\n\n")
        assert record.citation.title == "Book of Mormon"

    def test_missing_content_is_dropped(self, contents):
        annotation = make_annotation(spans=(("/moved/away", 1, -1),))
        assert assemble_highlights([annotation], contents) == []

    def test_missing_identifier_does_not_stop_batch(self, contents):
        records = assemble_highlights(
            [make_annotation(annotation_id=None), make_annotation(annotation_id="ok")],
            contents,
        )
        assert [r.id for r in records] == ["ok"]

    def test_empty_highlight_is_filtered(self, contents):
        annotation = make_annotation(spans=((TALK_URI, 50, -1),))
        assert assemble_highlights([annotation], contents) == []

    def test_no_spans_is_filtered(self, contents):
        assert assemble_highlights([make_annotation(spans=())], contents) == []

    def test_typed_records(self):
        annotation = Annotation(
            id="typed",
            highlights=(HighlightSpan(uri="/a", start_offset=2, end_offset=2),),
        )
        contents = {"/a": ContentFragment(blocks=(ContentBlock("<p>one two three</p>"),))}
        [record] = assemble_highlights([annotation], contents)
        assert record.highlight_md == "two"
        assert record.citation.url == "https://www.churchofjesuschrist.org/study/a"


class TestAssembleHighlight:
    """Per-annotation results."""

    def test_success(self, contents):
        result = assemble_highlight(make_annotation(), contents)
        assert result.success is True
        assert result.error_type is None
        assert result.uri == VERSE_URI

    def test_missing_identifier(self, contents):
        result = assemble_highlight(make_annotation(annotation_id=""), contents)
        assert result.success is False
        assert result.error_type == AssemblyErrorType.MISSING_IDENTIFIER
        assert result.record is None

    def test_missing_content(self, contents, caplog):
        annotation = make_annotation(spans=(("/moved/away", 1, -1),))
        with caplog.at_level(logging.WARNING, logger="studysync.core.assembler"):
            result = assemble_highlight(annotation, contents)
        assert result.error_type == AssemblyErrorType.MISSING_CONTENT
        assert result.uri == "/moved/away"
        assert "/moved/away" in caplog.text

    def test_annotation_uri_preferred_for_diagnostics(self, contents):
        annotation = make_annotation(spans=(("/moved/away", 1, -1),), uri="/moved")
        assert assemble_highlight(annotation, contents).uri == "/moved"

    def test_empty_highlight_keeps_record(self, contents):
        result = assemble_highlight(make_annotation(spans=((TALK_URI, 50, -1),)), contents)
        assert result.success is False
        assert result.error_type == AssemblyErrorType.EMPTY_HIGHLIGHT
        assert result.record is not None
        assert result.record.highlight_md == ""
        assert result.record.full_md

    def test_unexpected_error_is_contained(self, contents):
        annotation = make_annotation(spans=((VERSE_URI, "not-a-number", -1),))
        result = assemble_highlight(annotation, contents)
        assert result.success is False
        assert result.error_type == AssemblyErrorType.UNEXPECTED
        assert "ValueError" in result.error_message

    def test_extra_blocks_are_context_only(self):
        contents = {
            "/a": {"content": [{"markup": "<p>first block</p>"}, {"markup": "<p>second block</p>"}]}
        }
        result = assemble_highlight(make_annotation(spans=(("/a", 2, 2),)), contents)
        assert result.record.highlight_md == "block"
        assert result.record.full_md == "first block\n\nsecond block"

    def test_results_in_input_order(self, contents):
        results = assemble_results(
            [make_annotation(annotation_id="x"), make_annotation(annotation_id="")],
            contents,
        )
        assert [r.success for r in results] == [True, False]


class TestContentUris:
    def test_order_and_duplicates(self):
        annotation = Annotation(
            id="a",
            highlights=(HighlightSpan("/b"), HighlightSpan("/a"), HighlightSpan("/b")),
        )
        assert get_content_uris(annotation) == ["/b", "/a", "/b"]

    def test_batch_union(self):
        uris = collect_content_uris(
            [
                make_annotation(spans=(("/b", 1, -1), ("/a", 1, -1))),
                make_annotation(spans=(("/a", 1, -1), ("/c", 1, -1))),
            ]
        )
        assert uris == ["/b", "/a", "/c"]
