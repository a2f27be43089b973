"""Best-effort replication of stage commits to a remote webhook."""

from __future__ import annotations

import logging
import time
from typing import Any

import requests

REQUEST_TIMEOUT_SECONDS = 30

LOGGER = logging.getLogger(__name__)


class WebhookMirror:
    """POSTs each committed snapshot to ``url``; never raises."""

    def __init__(self, url: str, timeout: float = REQUEST_TIMEOUT_SECONDS) -> None:
        self.url = url
        self.timeout = timeout

    def send(self, kind: str, file_path: str, content: Any) -> bool:
        """Upload one snapshot. Returns False (and logs) on any failure."""
        payload = {
            "type": kind,
            "filePath": file_path,
            "timestamp": int(time.time() * 1000),
            "content": content,
        }
        LOGGER.info("Mirroring %s to %s (path=%s)", kind, self.url, file_path)
        try:
            response = requests.post(self.url, json=payload, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as exc:
            LOGGER.error("Mirror upload failed for %s: %s", file_path, exc)
            return False

        LOGGER.info("Mirror upload succeeded for %s", file_path)
        return True
