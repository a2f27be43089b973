from __future__ import annotations

import json
from datetime import UTC, datetime
from unittest.mock import patch

import pytest

from llm_client import LLMConfig, MissingCredentialsError
from models import PaperRecord
from relevance_filter import filter_papers, reconcile_scores

_CONFIG = LLMConfig(api_key="test-key", model="Qwen/QwQ-32B")


def _paper(paper_id: str, comment: str = "") -> PaperRecord:
    return PaperRecord(
        paper_id=paper_id,
        title=f"Paper {paper_id}",
        summary="An efficient VLM.",
        authors=("A. Author",),
        published_at=datetime(2024, 1, 8, tzinfo=UTC),
        link=paper_id,
        categories=("cs.CV",),
        comment=comment,
    )


def _reply(*items: dict) -> str:
    return json.dumps({"papers": list(items)})


def _score(paper_id: str, score: int = 8) -> dict:
    return {
        "id": paper_id,
        "relevanceScore": score,
        "hasCode": True,
        "isAccepted": False,
        "tags": ["VLM", "Lightweight"],
        "reasoning": "Compact VLM with released code.",
    }


def test_filter_keeps_only_papers_the_scorer_returns() -> None:
    papers = [_paper("A"), _paper("B")]

    with patch("relevance_filter.chat_completion", return_value=_reply(_score("A", 8))):
        scored = filter_papers(papers, _CONFIG)

    assert [p.paper_id for p in scored] == ["A"]
    result = scored[0]
    assert result.relevance_score == 8
    assert result.has_code is True
    assert result.is_accepted is False
    assert result.tags == ("VLM", "Lightweight")
    assert result.title == "Paper A"
    assert result.authors == ("A. Author",)


def test_filter_does_not_recheck_scores_below_threshold() -> None:
    papers = [_paper("A"), _paper("B")]
    reply = _reply(_score("A", 8), _score("B", 5))

    with patch("relevance_filter.chat_completion", return_value=reply):
        scored = filter_papers(papers, _CONFIG)

    assert {p.paper_id: p.relevance_score for p in scored} == {"A": 8, "B": 5}


def test_unknown_ids_are_dropped_not_invented() -> None:
    papers = [_paper("A")]
    reply = _reply(_score("A"), _score("ZZZ"), {"relevanceScore": 9})

    with patch("relevance_filter.chat_completion", return_value=reply):
        scored = filter_papers(papers, _CONFIG)

    assert [p.paper_id for p in scored] == ["A"]


def test_fenced_bare_array_reply_is_accepted() -> None:
    reply = "```json\n" + json.dumps([_score("A", 9)]) + "\n```"

    with patch("relevance_filter.chat_completion", return_value=reply):
        scored = filter_papers([_paper("A")], _CONFIG)

    assert scored[0].relevance_score == 9


def test_batches_run_sequentially_and_failures_are_isolated() -> None:
    papers = [_paper(f"P{n:03d}") for n in range(120)]
    replies = [
        RuntimeError("network down"),
        _reply(_score("P050"), _score("P099")),
        "not json at all",
    ]

    with patch("relevance_filter.chat_completion", side_effect=replies) as mock_chat:
        scored = filter_papers(papers, _CONFIG, batch_size=50)

    assert mock_chat.call_count == 3
    assert [p.paper_id for p in scored] == ["P050", "P099"]
    second_batch_prompt = mock_chat.call_args_list[1].args[1][1]["content"]
    assert '"P050"' in second_batch_prompt
    assert '"P000"' not in second_batch_prompt
    assert '"P100"' not in second_batch_prompt


def test_prompt_carries_condensed_records_and_threshold() -> None:
    with patch("relevance_filter.chat_completion", return_value=_reply()) as mock_chat:
        filter_papers([_paper("A", comment="Accepted to ICCV")], _CONFIG)

    system, user = mock_chat.call_args.args[1]
    assert ">= 7" in system["content"]
    assert "Accepted to ICCV" in user["content"]
    assert '"abstract": "An efficient VLM."' in user["content"]


def test_missing_credentials_fail_before_any_batch() -> None:
    with patch("relevance_filter.chat_completion") as mock_chat:
        with pytest.raises(MissingCredentialsError):
            filter_papers([_paper("A")], LLMConfig(api_key=""))

    mock_chat.assert_not_called()


def test_reconcile_rejects_reply_without_list() -> None:
    with pytest.raises(RuntimeError, match="list of papers"):
        reconcile_scores([_paper("A")], {"result": "none"})


def test_reconcile_coerces_loose_field_types() -> None:
    parsed = [{"id": "A", "relevanceScore": "7.6", "hasCode": "TRUE", "tags": "VLM"}]

    scored = reconcile_scores([_paper("A")], parsed)

    assert scored[0].relevance_score == 8
    assert scored[0].has_code is True
    assert scored[0].tags == ()
    assert scored[0].reasoning == ""


@pytest.mark.parametrize(
    ("raw", "expected"),
    [(True, True), (False, False), ("true", True), (" True ", True), ("false", False), ("False", False),
     ("yes", False), (1, False), (None, False)],
)
def test_reconcile_reads_flags_strictly(raw, expected: bool) -> None:
    parsed = [{"id": "A", "relevanceScore": 8, "hasCode": raw, "isAccepted": raw}]

    scored = reconcile_scores([_paper("A")], parsed)

    assert scored[0].has_code is expected
    assert scored[0].is_accepted is expected


def test_zero_batch_size_is_rejected_before_scoring() -> None:
    with patch("relevance_filter.score_batch") as mock_score:
        with pytest.raises(ValueError, match="batch_size"):
            filter_papers([_paper("A")], _CONFIG, batch_size=0)

    mock_score.assert_not_called()
