"""Date-keyed persistence for the raw, filtered and report stages.

Layout (namespace/key):

  raw/<YYYY-MM-DD>        today's fetched papers; every other key swept on write
  filtered/<YYYY-MM-DD>   today's scored papers; every other key swept on write
  report/<YYYY-MM-DD>     analyzed papers, kept for the newest REPORT_RETENTION dates
  report/manifest         retained report dates, newest first

The store assumes a single pipeline run at a time; the manifest update is an
unlocked read-modify-write.
"""

from __future__ import annotations

import logging
from datetime import UTC, date, datetime
from typing import Callable, Sequence

from blob_store import BlobStore
from mirror import WebhookMirror
from models import AnalyzedPaper, PaperRecord, ScoredPaper, StageSnapshot

RAW = "raw"
FILTERED = "filtered"
REPORT = "report"
MANIFEST_KEY = "manifest"
REPORT_RETENTION = 7

_MIRROR_TYPES = {RAW: "raw_data", FILTERED: "filtered_data", REPORT: "daily_report"}
_RECORD_TYPES: dict[str, type[PaperRecord]] = {
    RAW: PaperRecord,
    FILTERED: ScoredPaper,
    REPORT: AnalyzedPaper,
}

LOGGER = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(UTC)


class StageStore:
    def __init__(
        self,
        blobs: BlobStore,
        mirror: WebhookMirror | None = None,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self.blobs = blobs
        self.mirror = mirror
        self.clock = clock

    def today(self) -> str:
        return self.clock().date().isoformat()

    # --- raw / filtered: today only ---

    def commit_raw(self, papers: Sequence[PaperRecord], day: date | None = None) -> StageSnapshot:
        return self._commit_single_slot(RAW, papers, day)

    def commit_filtered(self, papers: Sequence[ScoredPaper], day: date | None = None) -> StageSnapshot:
        return self._commit_single_slot(FILTERED, papers, day)

    def load_raw(self, day: date | None = None) -> StageSnapshot | None:
        return self._load(RAW, self._key(day))

    def load_filtered(self, day: date | None = None) -> StageSnapshot | None:
        return self._load(FILTERED, self._key(day))

    def _commit_single_slot(
        self, namespace: str, papers: Sequence[PaperRecord], day: date | None
    ) -> StageSnapshot:
        snapshot = self._write(namespace, papers, day)
        for key in self.blobs.list_keys(namespace):
            if key != snapshot.date:
                LOGGER.info("Deleting stale %s snapshot: %s", namespace, key)
                self.blobs.delete(namespace, key)
        self._mirror(namespace, snapshot)
        return snapshot

    # --- report: rolling history ---

    def commit_report(self, papers: Sequence[AnalyzedPaper], day: date | None = None) -> StageSnapshot:
        """Write today's report, update the manifest and drop reports past retention."""
        snapshot = self._write(REPORT, papers, day)

        stored = self.blobs.get(REPORT, MANIFEST_KEY)
        if isinstance(stored, list):
            known = {str(key) for key in stored}
        else:
            # Missing or unreadable manifest: rebuild it from the reports on disk.
            known = {key for key in self.blobs.list_keys(REPORT) if key != MANIFEST_KEY}
            if known:
                LOGGER.warning("Rebuilding report manifest from %s stored reports", len(known))
        manifest = sorted(known | {snapshot.date}, reverse=True)

        expired = manifest[REPORT_RETENTION:]
        for key in expired:
            LOGGER.info("Deleting old report: %s", key)
            self.blobs.delete(REPORT, key)
        self.blobs.put(REPORT, MANIFEST_KEY, manifest[:REPORT_RETENTION])

        self._mirror(REPORT, snapshot)
        return snapshot

    def manifest(self) -> list[str]:
        stored = self.blobs.get(REPORT, MANIFEST_KEY)
        if not isinstance(stored, list):
            return []
        return [str(key) for key in stored]

    def load_history(self) -> list[StageSnapshot]:
        """Load every report the manifest references, newest first, skipping missing ones."""
        history: list[StageSnapshot] = []
        for key in self.manifest():
            snapshot = self._load(REPORT, key)
            if snapshot is None:
                LOGGER.warning("Manifest references missing report: %s", key)
                continue
            history.append(snapshot)
        return history

    # --- helpers ---

    def _key(self, day: date | None) -> str:
        return day.isoformat() if day is not None else self.today()

    def _write(self, namespace: str, papers: Sequence[PaperRecord], day: date | None) -> StageSnapshot:
        snapshot = StageSnapshot(date=self._key(day), timestamp=self.clock(), papers=tuple(papers))
        self.blobs.put(namespace, snapshot.date, snapshot.to_dict())
        LOGGER.info(
            "Wrote %s snapshot %s (%s records)", namespace, snapshot.date, len(snapshot.papers)
        )
        return snapshot

    def _load(self, namespace: str, key: str) -> StageSnapshot | None:
        data = self.blobs.get(namespace, key)
        if not isinstance(data, dict):
            LOGGER.info("No %s snapshot for %s", namespace, key)
            return None
        try:
            return StageSnapshot.from_dict(data, _RECORD_TYPES[namespace])
        except (TypeError, ValueError) as exc:
            LOGGER.warning("Corrupt %s snapshot %s: %s", namespace, key, exc)
            return None

    def _mirror(self, namespace: str, snapshot: StageSnapshot) -> None:
        if self.mirror is None:
            return
        self.mirror.send(
            _MIRROR_TYPES[namespace],
            f"data/{namespace}/{snapshot.date}.json",
            snapshot.to_dict(),
        )
