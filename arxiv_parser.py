"""Parsing helpers for arXiv listing pages and Atom query feeds."""

from __future__ import annotations

import logging
import re
from typing import Any

import feedparser

from models import PaperRecord, parse_timestamp

LOGGER = logging.getLogger(__name__)

# Matches href="/abs/2402.12345" as used by the /list/<category>/new pages.
_LISTING_ID_PATTERN = re.compile(r'href="/abs/(\d+\.\d+)"')
_LINE_BREAK = re.compile(r"\s*\n\s*")


def extract_listing_ids(html: str) -> list[str]:
    """Return unique paper ids from a listing page, in first-seen order."""
    return list(dict.fromkeys(_LISTING_ID_PATTERN.findall(html or "")))


def parse_feed(feed_document: str) -> list[PaperRecord]:
    """Parse an Atom feed document into normalized records.

    Never raises: a document that cannot be parsed into entries yields [].
    """
    if not feed_document or not feed_document.strip():
        return []

    try:
        feed = feedparser.parse(feed_document)
    except Exception as exc:
        LOGGER.warning("Feed parse failed: %s", exc)
        return []

    records: list[PaperRecord] = []
    for entry in feed.get("entries", []):
        record = _parse_entry(entry)
        if record is not None:
            records.append(record)

    if not records and feed.get("bozo"):
        LOGGER.warning("Feed document was malformed: %s", feed.get("bozo_exception"))
    return records


def _parse_entry(entry: Any) -> PaperRecord | None:
    paper_id = _as_text(entry.get("id"))
    # arXiv reports query errors as a single entry under /api/errors.
    if not paper_id or "/api/errors" in paper_id:
        return None

    authors = tuple(
        name
        for name in (_as_text(author.get("name")) for author in entry.get("authors", []))
        if name
    )
    categories = tuple(
        term
        for term in (_as_text(tag.get("term")) for tag in entry.get("tags", []))
        if term
    )

    return PaperRecord(
        paper_id=paper_id,
        title=_collapse(entry.get("title")),
        summary=_collapse(entry.get("summary")),
        authors=authors,
        published_at=parse_timestamp(entry.get("published")),
        link=paper_id,
        categories=categories,
        comment=_collapse(entry.get("arxiv_comment")),
    )


def _collapse(value: Any) -> str:
    """Fold embedded line breaks into single spaces and trim."""
    if not isinstance(value, str):
        return ""
    return _LINE_BREAK.sub(" ", value).strip()


def _as_text(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""
