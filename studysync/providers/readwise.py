"""Readwise highlights API client (export side)."""

from __future__ import annotations

import logging
import time
from typing import Any, Iterable

import httpx

from studysync.core.settings import Settings
from studysync.providers.content_types import HighlightRecord

logger = logging.getLogger(__name__)

READWISE_BASE_URL = "https://readwise.io/api"

# Field limits of the v2 highlights endpoint
MAX_TEXT_LENGTH = 8191
MAX_NOTE_LENGTH = 8191
MAX_TITLE_LENGTH = 511
MAX_AUTHOR_LENGTH = 1024

DEFAULT_CATEGORY = "articles"


class ReadwiseError(Exception):
    """Base exception for Readwise API errors."""


class ReadwiseAuthError(ReadwiseError):
    """Authentication failed."""


class ReadwiseRateLimitError(ReadwiseError):
    """Rate limit exceeded after all retries."""


def _truncate(value: str | None, limit: int) -> str | None:
    if value is None:
        return None
    return value if len(value) <= limit else value[: limit - 1] + "…"


def _note_with_tags(note: str | None, tags: Iterable[str]) -> str | None:
    """Append one ``.tag`` line per tag; Readwise turns these into tags."""
    tag_lines = [f".{tag.replace(' ', '-')}" for tag in tags]
    parts = [p for p in [note, "\n".join(tag_lines)] if p]
    return "\n\n".join(parts) or None


def to_readwise_highlight(record: HighlightRecord, source_type: str = "gospel_library") -> dict[str, Any]:
    """Convert a highlight record to a Readwise highlight payload."""
    citation = record.citation
    payload: dict[str, Any] = {
        "text": _truncate(record.highlight_md, MAX_TEXT_LENGTH),
        "title": _truncate(citation.title if citation else None, MAX_TITLE_LENGTH),
        "author": _truncate(citation.author if citation else None, MAX_AUTHOR_LENGTH),
        "source_url": citation.url if citation else record.source_link,
        "source_type": source_type,
        "category": (citation.type if citation and citation.type else DEFAULT_CATEGORY),
        "note": _truncate(_note_with_tags(record.note_md, record.tags), MAX_NOTE_LENGTH),
        "location_type": "order",
        "highlighted_at": record.created.isoformat() if record.created else None,
        "highlight_url": record.source_link,
    }
    return {k: v for k, v in payload.items() if v is not None}


class ReadwiseClient:
    """Client for the Readwise highlights API (v2)."""

    def __init__(
        self,
        token: str,
        *,
        batch_size: int = 100,
        source_type: str = "gospel_library",
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        if not token:
            raise ValueError("Readwise API token is required")
        self._token = token
        self.batch_size = batch_size
        self.source_type = source_type
        self._client = httpx.Client(
            base_url=READWISE_BASE_URL,
            headers={"Authorization": f"Token {token}"},
            timeout=30.0,
            transport=transport,
        )

    @classmethod
    def from_settings(
        cls, settings: Settings, *, transport: httpx.BaseTransport | None = None
    ) -> "ReadwiseClient":
        return cls(
            settings.readwise_token,
            batch_size=settings.readwise_batch_size,
            source_type=settings.readwise_source_type,
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "ReadwiseClient":
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    def _request_with_retry(
        self,
        method: str,
        url: str,
        *,
        json: dict[str, Any] | None = None,
        max_retries: int = 5,
        base_delay: float = 1.0,
        max_delay: float = 60.0,
    ) -> httpx.Response:
        """Make HTTP request with exponential backoff retry on 429.

        Raises:
            ReadwiseRateLimitError: If rate limited after all retries
            ReadwiseAuthError: If authentication fails
        """
        delay = base_delay

        for attempt in range(max_retries + 1):
            resp = self._client.request(method, url, json=json)

            if resp.status_code == 401:
                raise ReadwiseAuthError("Invalid Readwise API token")

            if resp.status_code == 429:
                if attempt == max_retries:
                    raise ReadwiseRateLimitError(
                        f"Rate limit exceeded after {max_retries} retries"
                    )

                retry_after = resp.headers.get("Retry-After")
                try:
                    wait_time = float(retry_after) if retry_after else delay
                except ValueError:
                    wait_time = delay

                wait_time = min(wait_time, max_delay)
                logger.warning(
                    f"Rate limited (429). Waiting {wait_time:.1f}s "
                    f"(attempt {attempt + 1}/{max_retries + 1})"
                )
                time.sleep(wait_time)
                delay = min(delay * 2, max_delay)
                continue

            resp.raise_for_status()
            return resp

        raise ReadwiseRateLimitError("Rate limit handling failed")

    def validate_token(self) -> bool:
        """Check if the token is valid. Returns True if valid, raises ReadwiseAuthError otherwise."""
        resp = self._client.get("/v2/auth/")
        if resp.status_code == 204:
            return True
        if resp.status_code == 401:
            raise ReadwiseAuthError("Invalid Readwise API token")
        resp.raise_for_status()
        return True

    def create_highlights(
        self,
        records: Iterable[HighlightRecord],
        *,
        batch_size: int | None = None,
        source_type: str | None = None,
    ) -> int:
        """Send highlight records to Readwise in batches.

        Batch size and source type default to the client's own settings.

        Returns:
            Number of highlights sent.
        """
        if batch_size is None:
            batch_size = self.batch_size
        if source_type is None:
            source_type = self.source_type
        if batch_size < 1:
            raise ValueError("batch_size must be positive")

        payloads = [to_readwise_highlight(r, source_type) for r in records]
        for start in range(0, len(payloads), batch_size):
            batch = payloads[start : start + batch_size]
            self._request_with_retry("POST", "/v2/highlights/", json={"highlights": batch})
            logger.info(f"Sent {len(batch)} highlights to Readwise")

        return len(payloads)
