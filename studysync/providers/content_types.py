"""Record types for annotations, content fragments and rendered highlights."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Mapping


@dataclass(frozen=True)
class HighlightSpan:
    """A word range inside one content fragment.

    Offsets are 1-indexed and inclusive; an end offset of -1 means
    "to the end of the passage".
    """

    uri: str
    start_offset: int | None = None
    end_offset: int | None = None


@dataclass(frozen=True)
class Note:
    """Free-form HTML attached to an annotation."""

    content: str


@dataclass(frozen=True)
class Annotation:
    """A user-made highlight/note spanning one or more passages."""

    id: str
    highlights: tuple[HighlightSpan, ...] = ()
    note: Note | None = None
    tags: tuple[str, ...] = ()
    created: datetime | None = None
    updated: datetime | None = None
    uri: str | None = None


@dataclass(frozen=True)
class ContentBlock:
    """One markup block of a content fragment."""

    markup: str


@dataclass(frozen=True)
class ContentFragment:
    """The source passage (as markup) that an annotation references."""

    blocks: tuple[ContentBlock, ...] = ()
    author_name: str | None = None
    publication: str | None = None
    headline: str | None = None


@dataclass(frozen=True)
class Citation:
    """Where a highlight came from."""

    url: str
    title: str | None = None
    author: str | None = None
    type: str | None = None


@dataclass(frozen=True)
class HighlightRecord:
    """A rendered highlight, ready for export."""

    id: str
    citation: Citation | None
    full_md: str
    highlight_md: str
    note_md: str | None = None
    tags: tuple[str, ...] = field(default_factory=tuple)
    created: datetime | None = None
    updated: datetime | None = None
    source_link: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "created": self.created.isoformat() if self.created else None,
            "updated": self.updated.isoformat() if self.updated else None,
            "source": (
                {
                    "url": self.citation.url,
                    "title": self.citation.title,
                    "author": self.citation.author,
                    "type": self.citation.type,
                }
                if self.citation
                else None
            ),
            "full_md": self.full_md,
            "highlight_md": self.highlight_md,
            "note_md": self.note_md,
            "tags": list(self.tags),
            "source_link": self.source_link,
        }


def _parse_timestamp(value: Any) -> datetime | None:
    if not value or not isinstance(value, str):
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def _parse_offset(value: Any) -> int | None:
    if value is None:
        return None
    return int(value)


def parse_annotation(raw: Mapping[str, Any]) -> Annotation:
    """Convert an annotation record from the remote store into an Annotation.

    A missing ``annotationId`` is kept as an empty string; rejecting it is
    the assembler's job.
    """
    spans = tuple(
        HighlightSpan(
            uri=h.get("uri", ""),
            start_offset=_parse_offset(h.get("startOffset")),
            end_offset=_parse_offset(h.get("endOffset")),
        )
        for h in raw.get("highlights") or ()
    )

    note = None
    raw_note = raw.get("note")
    if raw_note and raw_note.get("content"):
        note = Note(content=raw_note["content"])

    tags = tuple(t["name"] for t in raw.get("tags") or () if t.get("name"))

    return Annotation(
        id=raw.get("annotationId") or "",
        highlights=spans,
        note=note,
        tags=tags,
        created=_parse_timestamp(raw.get("created")),
        updated=_parse_timestamp(raw.get("lastUpdated")),
        uri=raw.get("uri"),
    )


def parse_content(raw: Mapping[str, Any]) -> ContentFragment:
    """Convert a content record from the remote store into a ContentFragment."""
    return ContentFragment(
        blocks=tuple(
            ContentBlock(markup=c.get("markup") or "") for c in raw.get("content") or ()
        ),
        author_name=raw.get("authorName"),
        publication=raw.get("publication"),
        headline=raw.get("headline"),
    )


def parse_contents(raw: Mapping[str, Mapping[str, Any]]) -> dict[str, ContentFragment]:
    return {uri: parse_content(c) for uri, c in raw.items()}
