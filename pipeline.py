"""Daily fetch -> filter -> analyze driver.

Every stage reads its input back from the stage store rather than from the
previous stage's return value, so a run can resume from any committed stage.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum

from arxiv_feed import fetch_latest
from config import Settings
from deep_analyzer import analyze_papers
from llm_client import require_credentials
from models import AnalyzedPaper
from relevance_filter import filter_papers
from stage_store import StageStore

STAGES: tuple[str, ...] = ("fetch", "filter", "analyze")

LOGGER = logging.getLogger(__name__)


class RunStatus(StrEnum):
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class RunLog:
    """Human-readable record of stage transitions, mirrored to logging."""

    lines: list[str] = field(default_factory=list)

    def add(self, message: str) -> None:
        self.lines.append(f"[{datetime.now().strftime('%H:%M:%S')}] {message}")
        LOGGER.info(message)


@dataclass
class PipelineResult:
    status: RunStatus
    log: list[str]
    report: list[AnalyzedPaper] = field(default_factory=list)


def run_pipeline(
    settings: Settings,
    store: StageStore,
    resume_from: str = "fetch",
    use_cached_raw: bool = False,
) -> PipelineResult:
    """Run one pipeline cycle and return its terminal status and running log."""
    if resume_from not in STAGES:
        raise ValueError(f"resume_from must be one of {STAGES}, got {resume_from!r}")

    log = RunLog()
    try:
        require_credentials(settings.llm)
    except RuntimeError as exc:
        log.add(f"Error: {exc}")
        return PipelineResult(RunStatus.FAILED, log.lines)

    log.add(f"Starting pipeline with model: {settings.model} (resume_from={resume_from})")
    try:
        report = _run_stages(settings, store, log, resume_from, use_cached_raw)
    except Exception as exc:
        LOGGER.exception("Pipeline failed")
        log.add(f"Error: {exc}")
        return PipelineResult(RunStatus.FAILED, log.lines)

    return PipelineResult(RunStatus.COMPLETED, log.lines, report)


def _run_stages(
    settings: Settings,
    store: StageStore,
    log: RunLog,
    resume_from: str,
    use_cached_raw: bool,
) -> list[AnalyzedPaper]:
    today = store.today()
    start = STAGES.index(resume_from)

    # Stage 1: fetch and commit raw.
    if start <= 0:
        log.add("Step 1: Fetching latest papers from arXiv...")
        fetched = fetch_latest(settings.categories)
        if not fetched:
            cached = store.load_raw()
            if cached is None or not cached.papers:
                log.add("No new papers found today.")
                return []
            if not use_cached_raw:
                log.add(
                    f"Fetch returned 0 papers; a cached raw snapshot for {today} exists "
                    f"({len(cached.papers)} papers). Rerun with --use-cached-raw to use it."
                )
                return []
            log.add(f"Fetch returned 0 papers; reusing cached raw snapshot ({len(cached.papers)} papers)")
            fetched = list(cached.papers)

        store.commit_raw(fetched)
        log.add(f"Saved {len(fetched)} raw papers to raw/{today}")

    # Stage 2: load raw, filter, commit filtered.
    if start <= 1:
        raw = store.load_raw()
        if raw is None or not raw.papers:
            raise RuntimeError(f"Could not load raw snapshot for {today}")

        log.add(f"Step 2: Relevance filtering {len(raw.papers)} papers...")
        scored = filter_papers(raw.papers, settings.llm, batch_size=settings.filter_batch_size)
        store.commit_filtered(scored)
        log.add(f"Filtered down to {len(scored)} relevant papers; saved to filtered/{today}")

    # Stage 3: load filtered, analyze, commit report.
    filtered = store.load_filtered()
    if filtered is None:
        raise RuntimeError(f"Could not load filtered snapshot for {today}")
    if not filtered.papers:
        log.add("No relevant papers found. Stopping pipeline.")
        return []

    log.add(f"Step 3: Deep analysis of {len(filtered.papers)} papers...")
    report = analyze_papers(filtered.papers, settings.llm, max_workers=settings.analysis_concurrency)
    store.commit_report(report)
    enriched = sum(1 for paper in report if paper.is_analyzed)
    log.add(f"Saved report to report/{today} ({enriched}/{len(report)} analyzed)")
    log.add("Pipeline completed successfully.")
    return report
