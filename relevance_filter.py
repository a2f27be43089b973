"""Batch relevance scoring of raw papers against the research-focus rubric."""

from __future__ import annotations

import json
import logging
from dataclasses import fields
from typing import Any, Sequence

from llm_client import LLMConfig, chat_completion, parse_json_reply, require_credentials
from models import PaperRecord, ScoredPaper

BATCH_SIZE = 50
RELEVANCE_THRESHOLD = 7

LOGGER = logging.getLogger(__name__)

_SYSTEM_PROMPT = """You are an expert AI research assistant curating a daily arXiv digest.
Target domain: Computer Vision (CV) and Artificial Intelligence (AI).

Core research focus (a paper must match at least one):
1. Visual Language Models (VLMs), especially lightweight, mobile, edge or efficient architectures.
2. Efficient fine-tuning (PEFT, LoRA, adapters and similar).
3. Runtime optimization (quantization, pruning, inference acceleration, mobile/edge deployment).
4. Pre-deployment optimization (dataset pruning, neural architecture search, pre-training efficiency).
5. Lightweight architectures (compact backbones, distillation, models suited to mobile devices).

Key signals:
- Accepted paper: the comment field mentions acceptance at a conference or journal.
- Code available: the abstract or comment mentions released code or a GitHub link.

Scoring (relevanceScore, 0-10):
- 9-10: addresses a core focus AND (has code OR is accepted).
- 7-8: strong match for a core focus.
- below 7: general AI/CV work, theory without an efficiency angle, or plain applications.

Return ONLY papers with relevanceScore >= {threshold}.
Respond with a strict JSON object with a single key "papers" whose value is an array of:
{{"id": "<input id>", "relevanceScore": <int>, "hasCode": <bool>, "isAccepted": <bool>,
  "tags": ["<short tag>", ...], "reasoning": "<one or two sentences in {language}>"}}
No prose, no markdown."""


def filter_papers(
    papers: Sequence[PaperRecord],
    config: LLMConfig | None,
    batch_size: int = BATCH_SIZE,
) -> list[ScoredPaper]:
    """Score papers in sequential batches and merge results onto the originals.

    Raises MissingCredentialsError before any batch when no key is configured.
    A failed batch contributes no papers; the remaining batches still run.
    """
    config = require_credentials(config)
    if batch_size < 1:
        raise ValueError(f"batch_size must be at least 1, got {batch_size}")
    total_batches = (len(papers) + batch_size - 1) // batch_size
    scored: list[ScoredPaper] = []

    for number, start in enumerate(range(0, len(papers), batch_size), 1):
        batch = papers[start : start + batch_size]
        LOGGER.info("Filtering batch %s of %s (%s papers)", number, total_batches, len(batch))
        try:
            results = score_batch(batch, config)
        except Exception as exc:
            LOGGER.warning("Filtering batch starting at index %s failed: %s", start, exc)
            continue
        scored.extend(results)

    LOGGER.info("Relevance filter kept %s of %s papers", len(scored), len(papers))
    return scored


def score_batch(batch: Sequence[PaperRecord], config: LLMConfig) -> list[ScoredPaper]:
    """Score one batch; raises on transport or reply-shape errors."""
    condensed = [
        {"id": p.paper_id, "title": p.title, "abstract": p.summary, "comment": p.comment}
        for p in batch
    ]
    system = _SYSTEM_PROMPT.format(threshold=RELEVANCE_THRESHOLD, language=config.language)
    user = (
        f"Here is a batch of {len(batch)} papers. Filter them using the criteria above.\n"
        f"Input data: {json.dumps(condensed, ensure_ascii=False)}"
    )

    content = chat_completion(
        config,
        [{"role": "system", "content": system}, {"role": "user", "content": user}],
    )
    return reconcile_scores(batch, parse_json_reply(content))


def reconcile_scores(batch: Sequence[PaperRecord], parsed: Any) -> list[ScoredPaper]:
    """Attach score objects to the batch records they name.

    Entries whose id is not in the batch are dropped. Scores are taken as
    returned; the threshold is enforced by the scorer's instructions only.
    """
    results = parsed.get("papers") if isinstance(parsed, dict) else parsed
    if not isinstance(results, list):
        raise RuntimeError("Scoring reply did not contain a list of papers")

    by_id = {paper.paper_id: paper for paper in batch}
    scored: list[ScoredPaper] = []
    for item in results:
        if not isinstance(item, dict):
            continue
        original = by_id.get(str(item.get("id", "")))
        if original is None:
            LOGGER.debug("Dropping score for unknown id=%s", item.get("id"))
            continue

        scored.append(
            ScoredPaper(
                **{field.name: getattr(original, field.name) for field in fields(PaperRecord)},
                relevance_score=_coerce_score(item.get("relevanceScore")),
                has_code=_as_flag(item.get("hasCode")),
                is_accepted=_as_flag(item.get("isAccepted")),
                tags=_as_tags(item.get("tags")),
                reasoning=str(item.get("reasoning") or "").strip(),
            )
        )
    return scored


def _coerce_score(value: Any) -> int:
    try:
        return int(round(float(value)))
    except (TypeError, ValueError):
        return 0


def _as_tags(value: Any) -> tuple[str, ...]:
    if not isinstance(value, list):
        return ()
    return tuple(str(tag).strip() for tag in value if str(tag).strip())


def _as_flag(value: Any) -> bool:
    """Only JSON booleans or the strings "true"/"false" count; anything else is False."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return False
