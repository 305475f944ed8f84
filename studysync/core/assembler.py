"""Assemble rendered highlight records from annotations and their content.

Each annotation is assembled on its own: a failure drops that annotation
(reported through an unsuccessful AssemblyResult and a log line) and never
stops the rest of the batch.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Mapping, Union

from studysync.core.markup import (
    html_to_markdown_with_placeholders,
    note_to_markdown,
    without_placeholders,
)
from studysync.core.offsets import extract_span
from studysync.core.sources import resolve_citation, uri_to_url
from studysync.providers.content_types import (
    Annotation,
    ContentFragment,
    HighlightRecord,
    parse_annotation,
    parse_content,
)

logger = logging.getLogger(__name__)

AnnotationInput = Union[Annotation, Mapping[str, Any]]
ContentInput = Union[ContentFragment, Mapping[str, Any]]

PARAGRAPH_SEPARATOR = "\n\n"


class AssemblyErrorType(str, Enum):
    """Why an annotation did not produce a highlight record."""

    MISSING_IDENTIFIER = "missing_identifier"
    MISSING_CONTENT = "missing_content"  # Content moved or deleted
    EMPTY_HIGHLIGHT = "empty_highlight"  # Data quality, not structural
    UNEXPECTED = "unexpected"


class AssemblyError(Exception):
    """Base exception for a single annotation that cannot be assembled."""

    error_type = AssemblyErrorType.UNEXPECTED


class MissingIdentifierError(AssemblyError):
    error_type = AssemblyErrorType.MISSING_IDENTIFIER


class MissingContentError(AssemblyError):
    error_type = AssemblyErrorType.MISSING_CONTENT

    def __init__(self, uri: str) -> None:
        super().__init__(f"Missing contents for URI '{uri}'")
        self.uri = uri


@dataclass
class AssemblyResult:
    """Outcome of assembling one annotation.

    An empty highlight still carries its record so callers can inspect it.
    """

    success: bool
    record: HighlightRecord | None = None
    error_type: AssemblyErrorType | None = None
    error_message: str | None = None
    uri: str | None = None


def get_content_uris(annotation: Annotation) -> list[str]:
    """Content URIs referenced by the annotation, in span order."""
    return [span.uri for span in annotation.highlights]


def collect_content_uris(annotations: Iterable[AnnotationInput]) -> list[str]:
    """Every content URI a batch needs, de-duplicated, first-seen order."""
    seen: dict[str, None] = {}
    for item in annotations:
        annotation = item if isinstance(item, Annotation) else parse_annotation(item)
        for uri in get_content_uris(annotation):
            seen.setdefault(uri, None)
    return list(seen)


def _source_uri(item: AnnotationInput) -> str:
    """Best-effort URI for diagnostics."""
    if isinstance(item, Annotation):
        if item.uri:
            return item.uri
        return item.highlights[0].uri if item.highlights else "unknown"
    spans = item.get("highlights") or []
    first = spans[0].get("uri") if spans and isinstance(spans[0], Mapping) else None
    return item.get("uri") or first or "unknown"


def _lookup_fragment(contents: Mapping[str, ContentInput], uri: str) -> ContentFragment:
    fragment = contents.get(uri)
    if fragment is None:
        raise MissingContentError(uri)
    if isinstance(fragment, ContentFragment):
        return fragment
    return parse_content(fragment)


def build_highlight_record(
    annotation: Annotation,
    contents: Mapping[str, ContentInput],
) -> HighlightRecord:
    """Build the record for one annotation.

    Raises:
        MissingIdentifierError: The annotation has no identifier.
        MissingContentError: A referenced URI has no fetched content.
    """
    if not annotation.id:
        raise MissingIdentifierError("Missing annotationId on annotation")

    uris = get_content_uris(annotation)
    fragments = [_lookup_fragment(contents, uri) for uri in uris]

    md_parts = [
        html_to_markdown_with_placeholders(block.markup)
        for fragment in fragments
        for block in fragment.blocks
    ]
    full_md = PARAGRAPH_SEPARATOR.join(without_placeholders(part) for part in md_parts)

    # Span i belongs to block i; blocks past the last span are context only.
    highlight_parts = [
        without_placeholders(extract_span(part, span.start_offset, span.end_offset)).strip()
        for part, span in zip(md_parts, annotation.highlights)
    ]
    highlight_md = PARAGRAPH_SEPARATOR.join(p for p in highlight_parts if p)

    note_md = note_to_markdown(annotation.note.content) if annotation.note else None

    citation = resolve_citation(uris[0], fragments[0]) if fragments else None
    source_link = uri_to_url(uris[0]) if uris else None

    return HighlightRecord(
        id=annotation.id,
        citation=citation,
        full_md=full_md,
        highlight_md=highlight_md,
        note_md=note_md,
        tags=annotation.tags,
        created=annotation.created,
        updated=annotation.updated,
        source_link=source_link,
    )


def assemble_highlight(
    item: AnnotationInput,
    contents: Mapping[str, ContentInput],
) -> AssemblyResult:
    """Assemble one annotation without raising."""
    uri = _source_uri(item)
    try:
        annotation = item if isinstance(item, Annotation) else parse_annotation(item)
        record = build_highlight_record(annotation, contents)

    except AssemblyError as e:
        logger.warning(f"Failed to assemble highlight on {uri} (possibly the content was moved): {e}")
        return AssemblyResult(
            success=False,
            error_type=e.error_type,
            error_message=str(e),
            uri=uri,
        )

    except Exception as e:
        logger.exception(f"Unexpected error assembling highlight on {uri}")
        return AssemblyResult(
            success=False,
            error_type=AssemblyErrorType.UNEXPECTED,
            error_message=f"{type(e).__name__}: {e}",
            uri=uri,
        )

    if not record.highlight_md:
        logger.warning(f"Missing text for annotation {record.id} on {uri}")
        return AssemblyResult(
            success=False,
            record=record,
            error_type=AssemblyErrorType.EMPTY_HIGHLIGHT,
            error_message="Highlight resolved to empty text",
            uri=uri,
        )

    return AssemblyResult(success=True, record=record, uri=uri)


def assemble_results(
    annotations: Iterable[AnnotationInput],
    contents: Mapping[str, ContentInput],
) -> list[AssemblyResult]:
    return [assemble_highlight(a, contents) for a in annotations]


def assemble_highlights(
    annotations: Iterable[AnnotationInput],
    contents: Mapping[str, ContentInput],
) -> list[HighlightRecord]:
    """Render every annotation that resolves to non-empty highlight text.

    Args:
        annotations: Annotation records or raw annotation dicts.
        contents: Content fragments (or raw content dicts) keyed by URI.

    Returns:
        Highlight records, in input order, for the annotations that
        assembled successfully.
    """
    results = assemble_results(annotations, contents)
    records = [r.record for r in results if r.success and r.record]

    empty = sum(1 for r in results if r.error_type is AssemblyErrorType.EMPTY_HIGHLIGHT)
    failed = len(results) - len(records) - empty
    logger.info(f"Assembled {len(records)} highlights ({empty} empty, {failed} failed)")
    return records
