"""Outbound GET with ordered fallback through public relay services."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable
from urllib.parse import quote

import requests

REQUEST_TIMEOUT_SECONDS = 30

LOGGER = logging.getLogger(__name__)


class TransportError(RuntimeError):
    """Raised when every relay strategy failed for a URL."""


@dataclass(frozen=True, slots=True)
class RelayStrategy:
    """One way of reaching a target URL.

    ``wraps_json`` strategies answer with a JSON envelope whose ``contents``
    field holds the target body; all others return the body as-is.
    """

    name: str
    build_url: Callable[[str], str]
    wraps_json: bool = False


def _direct(url: str) -> str:
    return url


def _allorigins_json(url: str) -> str:
    return f"https://api.allorigins.win/get?url={quote(url, safe='')}&t={int(time.time() * 1000)}"


def _allorigins_raw(url: str) -> str:
    return f"https://api.allorigins.win/raw?url={quote(url, safe='')}&t={int(time.time() * 1000)}"


def _codetabs(url: str) -> str:
    return f"https://api.codetabs.com/v1/proxy?quest={quote(url, safe='')}"


def _thingproxy(url: str) -> str:
    return f"https://thingproxy.freeboard.io/fetch/{quote(url, safe='')}"


DEFAULT_STRATEGIES: tuple[RelayStrategy, ...] = (
    RelayStrategy("direct", _direct),
    RelayStrategy("allorigins-json", _allorigins_json, wraps_json=True),
    RelayStrategy("allorigins-raw", _allorigins_raw),
    RelayStrategy("codetabs", _codetabs),
    RelayStrategy("thingproxy", _thingproxy),
)


def fetch_via_relays(
    url: str,
    strategies: tuple[RelayStrategy, ...] = DEFAULT_STRATEGIES,
    timeout: float = REQUEST_TIMEOUT_SECONDS,
) -> str:
    """Return the body of ``url`` from the first strategy that yields one.

    A strategy succeeds on a non-error status with a non-empty body (after
    unwrapping for JSON envelopes). Raises TransportError when all fail.
    """
    for strategy in strategies:
        try:
            response = requests.get(strategy.build_url(url), timeout=timeout)
            response.raise_for_status()
            body = _unwrap(response) if strategy.wraps_json else response.text
        except (requests.RequestException, ValueError) as exc:
            LOGGER.debug("Relay %s failed for %s: %s", strategy.name, url, exc)
            continue

        if body:
            LOGGER.debug("Relay %s succeeded for %s", strategy.name, url)
            return body
        LOGGER.debug("Relay %s returned an empty body for %s", strategy.name, url)

    raise TransportError(f"All relay strategies failed to fetch {url}")


def _unwrap(response: requests.Response) -> str:
    payload = response.json()
    if not isinstance(payload, dict):
        return ""
    contents = payload.get("contents")
    return contents if isinstance(contents, str) else ""
