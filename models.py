"""Shared typed models for the pipeline."""

from __future__ import annotations

from dataclasses import asdict, dataclass, fields
from datetime import UTC, datetime
from typing import Any

_SEQUENCE_FIELDS: frozenset[str] = frozenset({"authors", "categories", "tags"})


@dataclass(frozen=True, slots=True, kw_only=True)
class PaperRecord:
    """Normalized paper record produced by the feed parser."""

    paper_id: str
    title: str
    summary: str
    authors: tuple[str, ...] = ()
    published_at: datetime | None = None
    link: str = ""
    categories: tuple[str, ...] = ()
    comment: str = ""

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        for name in _SEQUENCE_FIELDS & data.keys():
            data[name] = list(data[name])
        data["published_at"] = self.published_at.isoformat() if self.published_at else ""
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]):
        """Rebuild a record from its stored form, ignoring unknown keys."""
        kwargs: dict[str, Any] = {}
        for field in fields(cls):
            if field.name not in data:
                continue
            value = data[field.name]
            if field.name in _SEQUENCE_FIELDS:
                value = tuple(value or ())
            elif field.name == "published_at":
                value = parse_timestamp(value)
            kwargs[field.name] = value
        return cls(**kwargs)


@dataclass(frozen=True, slots=True, kw_only=True)
class ScoredPaper(PaperRecord):
    """A paper that survived relevance scoring."""

    relevance_score: int
    has_code: bool = False
    is_accepted: bool = False
    tags: tuple[str, ...] = ()
    reasoning: str = ""


@dataclass(frozen=True, slots=True, kw_only=True)
class AnalyzedPaper(ScoredPaper):
    """A scored paper with optional deep-analysis fields (None when analysis failed)."""

    innovations: str | None = None
    methodology: str | None = None
    value: str | None = None

    @classmethod
    def from_scored(cls, paper: ScoredPaper, **analysis: str | None) -> AnalyzedPaper:
        base = {field.name: getattr(paper, field.name) for field in fields(ScoredPaper)}
        return cls(**base, **analysis)

    @property
    def is_analyzed(self) -> bool:
        return any((self.innovations, self.methodology, self.value))


@dataclass(frozen=True, slots=True)
class StageSnapshot:
    """Persisted output of one stage for one date."""

    date: str
    timestamp: datetime
    papers: tuple[PaperRecord, ...]

    def to_dict(self) -> dict[str, Any]:
        return {
            "date": self.date,
            "timestamp": self.timestamp.isoformat(),
            "papers": [paper.to_dict() for paper in self.papers],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any], record_type: type[PaperRecord]) -> StageSnapshot:
        timestamp = parse_timestamp(data.get("timestamp")) or datetime.now(UTC)
        papers = tuple(record_type.from_dict(item) for item in data.get("papers") or [])
        return cls(date=str(data.get("date", "")), timestamp=timestamp, papers=papers)


def parse_timestamp(raw: Any) -> datetime | None:
    """Parse an RFC3339 timestamp into an aware UTC datetime, or None."""
    if not isinstance(raw, str) or not raw.strip():
        return None

    # arXiv returns RFC3339 timestamps with trailing Z.
    value = raw.strip().replace("Z", "+00:00")
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return None

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)
