"""arXiv ingestion: "new submissions" scrape with a recency-query fallback."""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta
from typing import Sequence

from arxiv_parser import extract_listing_ids, parse_feed
from models import PaperRecord
from relay import TransportError, fetch_via_relays

ARXIV_LIST_URL = "https://arxiv.org/list/{category}/new"
ARXIV_QUERY_URL = "https://export.arxiv.org/api/query"
DEFAULT_CATEGORIES: tuple[str, ...] = ("cs.AI", "cs.CV")

ID_BATCH_SIZE = 40
FALLBACK_PAGE_SIZE = 100
FALLBACK_MAX_RESULTS = 1000
FALLBACK_PAGE_DELAY_SECONDS = 0.3

# arXiv announces nothing over the weekend, so Monday's batch spans the gap.
WEEKEND_GAP_WINDOW = timedelta(days=4.0)
# One daily cycle plus timezone slop, but never two cycles.
WEEKDAY_WINDOW = timedelta(days=1.2)

LOGGER = logging.getLogger(__name__)


def acceptance_window(anchor: datetime) -> timedelta:
    """Return how far back from the anchor a record may be published."""
    if anchor.weekday() == 0:
        return WEEKEND_GAP_WINDOW
    return WEEKDAY_WINDOW


def fetch_latest(categories: Sequence[str] = DEFAULT_CATEGORIES) -> list[PaperRecord]:
    """Fetch the current announcement cycle's papers for the given categories.

    Scrapes each category's "new" listing, then pulls metadata for the merged
    ids. Falls back to a recency-sorted query when the scrape finds no ids or
    fails outright.
    """
    try:
        ids = scrape_listing_ids(categories)
        if not ids:
            LOGGER.warning("No ids found on 'new' listings; falling back to recency query")
            return fetch_recent_fallback(categories)

        LOGGER.info("Scraped %s unique ids from 'new' listings; fetching metadata", len(ids))
        return _dedupe(fetch_by_ids(ids))
    except Exception:
        LOGGER.exception("Listing scrape failed; falling back to recency query")
        return fetch_recent_fallback(categories)


def scrape_listing_ids(categories: Sequence[str]) -> list[str]:
    """Scrape every category listing concurrently and merge ids, first-seen order."""
    if not categories:
        return []

    with ThreadPoolExecutor(max_workers=len(categories)) as pool:
        id_lists = list(pool.map(_scrape_one_listing, categories))

    merged: dict[str, None] = {}
    for ids in id_lists:
        merged.update(dict.fromkeys(ids))
    return list(merged)


def _scrape_one_listing(category: str) -> list[str]:
    url = ARXIV_LIST_URL.format(category=category)
    try:
        html = fetch_via_relays(url)
    except TransportError as exc:
        LOGGER.warning("Failed to scrape %s: %s", url, exc)
        return []

    ids = extract_listing_ids(html)
    LOGGER.info("Listing %s: %s ids", category, len(ids))
    return ids


def fetch_by_ids(ids: Sequence[str], batch_size: int = ID_BATCH_SIZE) -> list[PaperRecord]:
    """Fetch metadata in id batches; a failed batch contributes nothing."""
    papers: list[PaperRecord] = []
    for start in range(0, len(ids), batch_size):
        chunk = ids[start : start + batch_size]
        url = (
            f"{ARXIV_QUERY_URL}?id_list={','.join(chunk)}"
            f"&start=0&max_results={batch_size}"
        )
        try:
            document = fetch_via_relays(url)
        except TransportError as exc:
            LOGGER.error("Id batch %s-%s failed: %s", start, start + len(chunk), exc)
            continue

        batch = parse_feed(document)
        LOGGER.info("Id batch %s-%s: %s records", start, start + len(chunk), len(batch))
        papers.extend(batch)
    return papers


def fetch_recent_fallback(
    categories: Sequence[str] = DEFAULT_CATEGORIES,
    page_size: int = FALLBACK_PAGE_SIZE,
    max_results: int = FALLBACK_MAX_RESULTS,
) -> list[PaperRecord]:
    """Page through the submission-date-sorted query until the window closes.

    The newest record of the first page anchors the window; paging stops at
    the first record older than the window, at an empty page, or at
    ``max_results``. Pages are requested strictly in order.
    """
    query = "+OR+".join(f"cat:{category}" for category in categories)
    accepted: list[PaperRecord] = []
    anchor: datetime | None = None
    window = WEEKDAY_WINDOW

    for start in range(0, max_results, page_size):
        url = (
            f"{ARXIV_QUERY_URL}?search_query={query}"
            f"&sortBy=submittedDate&sortOrder=descending"
            f"&start={start}&max_results={page_size}"
        )
        LOGGER.info("Fallback page %s-%s", start, start + page_size)
        try:
            page = parse_feed(fetch_via_relays(url))
        except TransportError as exc:
            LOGGER.warning("Fallback page starting at %s failed: %s", start, exc)
            time.sleep(FALLBACK_PAGE_DELAY_SECONDS)
            continue

        if not page:
            break

        if anchor is None:
            anchor = next((p.published_at for p in page if p.published_at), None)
            if anchor is not None:
                window = acceptance_window(anchor)
                LOGGER.info(
                    "Anchored at %s (weekday=%s); window=%.1f days",
                    anchor.isoformat(),
                    anchor.weekday(),
                    window / timedelta(days=1),
                )

        window_closed = False
        for paper in page:
            if anchor is not None and paper.published_at is not None:
                if anchor - paper.published_at > window:
                    window_closed = True
                    break
            accepted.append(paper)

        if window_closed:
            LOGGER.info("Reached papers older than the acceptance window; stopping")
            break

        time.sleep(FALLBACK_PAGE_DELAY_SECONDS)

    papers = _dedupe(accepted)
    LOGGER.info("Fallback fetch completed: %s papers for the current cycle", len(papers))
    return papers


def _dedupe(papers: Sequence[PaperRecord]) -> list[PaperRecord]:
    """Keep the first record per paper_id, preserving order."""
    unique: dict[str, PaperRecord] = {}
    for paper in papers:
        unique.setdefault(paper.paper_id, paper)
    return list(unique.values())
