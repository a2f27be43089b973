from __future__ import annotations

import dataclasses
from pathlib import Path
from unittest.mock import patch

import pytest

from config import Settings, load_settings, save_settings


def test_load_settings_defaults(tmp_path: Path) -> None:
    with patch.dict("os.environ", {}, clear=True):
        settings = load_settings(tmp_path / "missing.env")

    assert settings.api_key == ""
    assert settings.provider == "openai"
    assert settings.categories == ("cs.AI", "cs.CV")
    assert settings.request_timeout == 30.0
    assert settings.analysis_concurrency == 10
    assert settings.llm.api_key == ""


def test_load_settings_reads_env_file(tmp_path: Path) -> None:
    env_file = tmp_path / ".env"
    env_file.write_text(
        "LLM_API_KEY=sk-123\n"
        "LLM_MODEL=Qwen/QwQ-32B\n"
        "ARXIV_CATEGORIES=cs.CV, cs.LG\n"
        "ANALYSIS_CONCURRENCY=4\n",
        encoding="utf-8",
    )

    with patch.dict("os.environ", {}, clear=True):
        settings = load_settings(env_file)

    assert settings.api_key == "sk-123"
    assert settings.model == "Qwen/QwQ-32B"
    assert settings.categories == ("cs.CV", "cs.LG")
    assert settings.analysis_concurrency == 4
    assert settings.llm.model == "Qwen/QwQ-32B"


def test_process_environment_wins_over_env_file(tmp_path: Path) -> None:
    env_file = tmp_path / ".env"
    env_file.write_text("LLM_MODEL=from-file\n", encoding="utf-8")

    with patch.dict("os.environ", {"LLM_MODEL": "from-env"}, clear=True):
        assert load_settings(env_file).model == "from-env"


def test_save_then_load_roundtrips_persisted_values(tmp_path: Path) -> None:
    env_file = tmp_path / ".env"
    settings = dataclasses.replace(
        Settings(),
        api_key="sk-saved",
        model="deepseek-ai/DeepSeek-R1",
        mirror_url="https://sink.example/hook",
    )

    with patch.dict("os.environ", {}, clear=True):
        save_settings(settings, env_file)

    with patch.dict("os.environ", {}, clear=True):
        loaded = load_settings(env_file)

    assert loaded.api_key == "sk-saved"
    assert loaded.model == "deepseek-ai/DeepSeek-R1"
    assert loaded.mirror_url == "https://sink.example/hook"
    assert "LLM_API_KEY" in env_file.read_text(encoding="utf-8")


@pytest.mark.parametrize("name", ["FILTER_BATCH_SIZE", "ANALYSIS_CONCURRENCY"])
@pytest.mark.parametrize("value", ["0", "-3"])
def test_load_settings_rejects_non_positive_sizes(tmp_path: Path, name: str, value: str) -> None:
    with patch.dict("os.environ", {name: value}, clear=True):
        with pytest.raises(ValueError, match=name):
            load_settings(tmp_path / "missing.env")
