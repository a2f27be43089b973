"""Chat client for the scoring and analysis model.

Any OpenAI-compatible host (SiliconFlow by default) goes through the
``openai`` SDK; ``provider="anthropic"`` routes to the Messages API instead.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from json import JSONDecodeError
from typing import Any

from openai import OpenAI

import anthropic_client

DEFAULT_BASE_URL = "https://api.siliconflow.cn/v1"
DEFAULT_MODEL = "moonshotai/Kimi-K2-Thinking-Turbo"
LLM_TEMPERATURE = 0.1
MAX_ATTEMPTS = 2

LOGGER = logging.getLogger(__name__)

_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$")


class MissingCredentialsError(RuntimeError):
    """Raised before any model work when no API key is configured."""


@dataclass(frozen=True, slots=True)
class LLMConfig:
    """Credentials and model selection passed to the filter and analyzer."""

    api_key: str
    model: str = DEFAULT_MODEL
    provider: str = "openai"
    base_url: str = DEFAULT_BASE_URL
    timeout: float = 30.0
    language: str = "English"


def require_credentials(config: LLMConfig | None) -> LLMConfig:
    if config is None or not config.api_key:
        raise MissingCredentialsError("LLM_API_KEY environment variable is required")
    return config


def chat_completion(
    config: LLMConfig,
    messages: list[dict[str, str]],
    max_tokens: int = 4096,
) -> str:
    """Send one chat request (retrying once) and return the reply text."""
    require_credentials(config)
    last_error: Exception | None = None

    for attempt in range(1, MAX_ATTEMPTS + 1):
        try:
            if config.provider == "anthropic":
                content = anthropic_client.claude_chat(
                    messages,
                    api_key=config.api_key,
                    model=config.model,
                    max_tokens=max_tokens,
                    timeout=config.timeout,
                )
            else:
                content = _call_openai(config, messages, max_tokens)
            if not content:
                raise RuntimeError("Model returned an empty response")
            return content
        except Exception as exc:
            last_error = exc
            LOGGER.warning(
                "Model call failed (model=%s) on attempt %s/%s: %s",
                config.model,
                attempt,
                MAX_ATTEMPTS,
                exc,
            )

    raise RuntimeError(f"Model call failed for model={config.model}: {last_error}")


def _call_openai(config: LLMConfig, messages: list[dict[str, str]], max_tokens: int) -> str:
    client = OpenAI(
        api_key=config.api_key,
        base_url=config.base_url,
        timeout=config.timeout,
        max_retries=0,
    )
    response = client.chat.completions.create(
        model=config.model,
        temperature=LLM_TEMPERATURE,
        max_tokens=max_tokens,
        response_format={"type": "json_object"},
        messages=messages,
    )
    return response.choices[0].message.content or ""


def parse_json_reply(content: str) -> Any:
    """Parse possibly fenced or noisy model output into JSON."""
    cleaned = _FENCE.sub("", content.strip())
    try:
        return json.loads(cleaned)
    except JSONDecodeError:
        return _extract_first_json_value(cleaned)


def _extract_first_json_value(content: str) -> Any:
    """Extract the first decodable JSON object or array from an arbitrary string."""
    decoder = json.JSONDecoder()
    for index, char in enumerate(content):
        if char not in "{[":
            continue
        try:
            candidate, _ = decoder.raw_decode(content[index:])
        except JSONDecodeError:
            continue
        if isinstance(candidate, (dict, list)):
            return candidate
    raise RuntimeError("Could not extract valid JSON from model output")
