"""Per-paper deep analysis run through a bounded worker pool."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Sequence

from llm_client import LLMConfig, chat_completion, parse_json_reply, require_credentials
from models import AnalyzedPaper, ScoredPaper

DEFAULT_MAX_WORKERS = 10
_ANALYSIS_FIELDS: tuple[str, ...] = ("innovations", "methodology", "value")

LOGGER = logging.getLogger(__name__)

_SYSTEM_PROMPT = (
    "You are a concise technical analyst. Reply ONLY with a strict JSON object, "
    "no prose, no markdown. Write the field values in {language}."
)

_USER_PROMPT = """Perform a deep technical review of this paper.

Title: {title}
Abstract: {abstract}

Identify the specific breakthrough regarding efficiency, VLMs, pre-deployment
optimization, lightweight design or runtime optimization.

Output a JSON object with three string fields:
- "innovations": what is strictly new here? (max 50 words)
- "methodology": how did they achieve it? (max 50 words)
- "value": why does this matter for practical deployment? (max 30 words)"""


def analyze_papers(
    papers: Sequence[ScoredPaper],
    config: LLMConfig | None,
    max_workers: int = DEFAULT_MAX_WORKERS,
) -> list[AnalyzedPaper]:
    """Analyze every paper independently; output is 1:1 with the input.

    A paper whose analysis fails is returned with its analysis fields unset.
    Raises MissingCredentialsError before dispatching any work.
    """
    config = require_credentials(config)
    if not papers:
        return []

    workers = max(1, min(max_workers, len(papers)))
    LOGGER.info("Analyzing %s papers with %s workers", len(papers), workers)
    with ThreadPoolExecutor(max_workers=workers) as pool:
        analyzed = list(pool.map(lambda paper: _analyze_or_passthrough(paper, config), papers))

    enriched = sum(1 for paper in analyzed if paper.is_analyzed)
    LOGGER.info("Deep analysis enriched %s of %s papers", enriched, len(analyzed))
    return analyzed


def _analyze_or_passthrough(paper: ScoredPaper, config: LLMConfig) -> AnalyzedPaper:
    try:
        return analyze_paper(paper, config)
    except Exception as exc:
        LOGGER.error("Analysis failed for paper_id=%s: %s", paper.paper_id, exc)
        return AnalyzedPaper.from_scored(paper)


def analyze_paper(paper: ScoredPaper, config: LLMConfig) -> AnalyzedPaper:
    """Run one analysis call and attach its three fields to the paper."""
    content = chat_completion(
        config,
        [
            {"role": "system", "content": _SYSTEM_PROMPT.format(language=config.language)},
            {
                "role": "user",
                "content": _USER_PROMPT.format(
                    title=paper.title,
                    abstract=paper.summary or "Not available.",
                ),
            },
        ],
        max_tokens=1024,
    )
    parsed = parse_json_reply(content)
    if not isinstance(parsed, dict):
        raise RuntimeError("Expected JSON object from analysis reply")

    return AnalyzedPaper.from_scored(
        paper,
        **{name: _as_text(parsed.get(name)) for name in _ANALYSIS_FIELDS},
    )


def _as_text(value: Any) -> str | None:
    return value.strip() if isinstance(value, str) and value.strip() else None
