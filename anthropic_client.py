"""Thin wrapper around the Anthropic Messages API."""

from __future__ import annotations

import logging
from typing import Any

import anthropic

LOGGER = logging.getLogger(__name__)


def claude_chat(
    messages: list[dict[str, str]],
    *,
    api_key: str,
    model: str,
    max_tokens: int = 1024,
    timeout: float = 30.0,
) -> str:
    """Call the Claude API and return the assistant reply as a string.

    Args:
        messages: List of message dicts with "role" and "content" keys.
                  A "system" role message is extracted and passed via the
                  Anthropic API's dedicated system= parameter.
        api_key: Anthropic API key.
        model: Claude model id.
        max_tokens: Hard cap on output tokens.
        timeout: Per-request timeout in seconds. SDK retries are disabled;
                 callers own the retry policy.
    """
    client = anthropic.Anthropic(api_key=api_key, timeout=timeout, max_retries=0)

    system: str | None = None
    filtered: list[dict[str, Any]] = []
    for msg in messages:
        if msg["role"] == "system":
            system = msg["content"]
        else:
            filtered.append({"role": msg["role"], "content": msg["content"]})

    kwargs: dict[str, Any] = {
        "model": model,
        "max_tokens": max_tokens,
        "messages": filtered,
    }
    if system:
        kwargs["system"] = system

    LOGGER.debug("Calling Claude model=%s max_tokens=%s", model, max_tokens)
    response = client.messages.create(**kwargs)
    return response.content[0].text
