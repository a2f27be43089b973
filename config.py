"""Process-wide settings: loaded once at startup, saved when the operator changes them."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv, set_key

from llm_client import DEFAULT_BASE_URL, DEFAULT_MODEL, LLMConfig

DEFAULT_ENV_FILE = ".env"

LOGGER = logging.getLogger(__name__)

# Settings attribute -> env var, for the values the operator may change and persist.
_PERSISTED_KEYS: dict[str, str] = {
    "api_key": "LLM_API_KEY",
    "model": "LLM_MODEL",
    "provider": "LLM_PROVIDER",
    "mirror_url": "MIRROR_WEBHOOK_URL",
}


@dataclass(frozen=True, slots=True)
class Settings:
    api_key: str = ""
    model: str = DEFAULT_MODEL
    provider: str = "openai"
    base_url: str = DEFAULT_BASE_URL
    language: str = "English"
    mirror_url: str = ""
    data_dir: str = "data"
    request_timeout: float = 30.0
    filter_batch_size: int = 50
    analysis_concurrency: int = 10
    categories: tuple[str, ...] = ("cs.AI", "cs.CV")

    @property
    def llm(self) -> LLMConfig:
        return LLMConfig(
            api_key=self.api_key,
            model=self.model,
            provider=self.provider,
            base_url=self.base_url,
            timeout=self.request_timeout,
            language=self.language,
        )


def load_settings(env_file: str | Path = DEFAULT_ENV_FILE) -> Settings:
    """Load settings from the env file (if present) and the process environment."""
    load_dotenv(env_file, override=False)

    categories = tuple(
        part.strip()
        for part in os.getenv("ARXIV_CATEGORIES", "cs.AI,cs.CV").split(",")
        if part.strip()
    )
    return Settings(
        api_key=os.getenv("LLM_API_KEY", "").strip(),
        model=os.getenv("LLM_MODEL", DEFAULT_MODEL),
        provider=os.getenv("LLM_PROVIDER", "openai").strip().lower(),
        base_url=os.getenv("LLM_BASE_URL", DEFAULT_BASE_URL),
        language=os.getenv("LLM_OUTPUT_LANGUAGE", "English"),
        mirror_url=os.getenv("MIRROR_WEBHOOK_URL", "").strip(),
        data_dir=os.getenv("DATA_DIR", "data"),
        request_timeout=float(os.getenv("REQUEST_TIMEOUT_SECONDS", "30")),
        filter_batch_size=_positive_int("FILTER_BATCH_SIZE", 50),
        analysis_concurrency=_positive_int("ANALYSIS_CONCURRENCY", 10),
        categories=categories or ("cs.AI", "cs.CV"),
    )


def _positive_int(name: str, default: int) -> int:
    value = int(os.getenv(name, str(default)))
    if value < 1:
        raise ValueError(f"{name} must be at least 1, got {value}")
    return value


def save_settings(settings: Settings, env_file: str | Path = DEFAULT_ENV_FILE) -> None:
    """Persist the operator-changeable settings to the env file."""
    path = Path(env_file)
    path.touch(exist_ok=True)
    for attr, env_name in _PERSISTED_KEYS.items():
        value = getattr(settings, attr)
        set_key(str(path), env_name, value)
        os.environ[env_name] = value
    LOGGER.info("Settings saved to %s", path)
