"""Citation lookup for study content URIs."""

from __future__ import annotations

from dataclasses import dataclass

from studysync.providers.content_types import Citation, ContentFragment

STUDY_BASE_URL = "https://www.churchofjesuschrist.org/study"

_CHURCH = "The Church of Jesus Christ of Latter-day Saints"


@dataclass(frozen=True)
class KnownSource:
    """A canonical work that groups every passage under one citation."""

    url: str
    title: str
    author: str
    type: str

    def to_citation(self) -> Citation:
        return Citation(url=self.url, title=self.title, author=self.author, type=self.type)


# Matched by prefix, first match wins.
KNOWN_SOURCES: tuple[KnownSource, ...] = (
    KnownSource(f"{STUDY_BASE_URL}/scriptures/bofm", "Book of Mormon", _CHURCH, "books"),
    KnownSource(f"{STUDY_BASE_URL}/scriptures/nt", "New Testament", _CHURCH, "books"),
    KnownSource(f"{STUDY_BASE_URL}/scriptures/ot", "Old Testament", _CHURCH, "books"),
    KnownSource(f"{STUDY_BASE_URL}/scriptures/dc-testament", "Doctrine and Covenants", _CHURCH, "books"),
    KnownSource(f"{STUDY_BASE_URL}/scriptures/pgp", "Pearl of Great Price", _CHURCH, "books"),
)


def uri_to_url(uri: str) -> str:
    """Canonical absolute URL for a content URI such as ``/scriptures/bofm/1-ne/1``."""
    return STUDY_BASE_URL + uri


def absolutize_href(href: str | None) -> str:
    """Resolve a link target found in content markup.

    Site-relative hrefs are made absolute, anchor-only hrefs have no
    target (empty string), anything else is returned unchanged.
    """
    href = href or ""
    if href.startswith("/"):
        return STUDY_BASE_URL + href
    if href.startswith("#"):
        return ""
    return href


def find_known_source(url: str) -> KnownSource | None:
    for source in KNOWN_SOURCES:
        if url.startswith(source.url):
            return source
    return None


def resolve_citation(uri: str, fragment: ContentFragment) -> Citation:
    """Resolve the citation for a passage.

    Known canonical works win; otherwise the citation is built from the
    fragment's own metadata and may be partially empty.
    """
    url = uri_to_url(uri)
    known = find_known_source(url)
    if known:
        return known.to_citation()
    return Citation(
        url=url,
        title=fragment.headline,
        author=fragment.author_name or fragment.publication,
    )
