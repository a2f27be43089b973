"""Namespaced JSON blob stores backing the stage store."""

from __future__ import annotations

import json
import logging
import os
import tempfile
from json import JSONDecodeError
from pathlib import Path
from typing import Any, Protocol

LOGGER = logging.getLogger(__name__)


class BlobStore(Protocol):
    def put(self, namespace: str, key: str, value: Any) -> None: ...

    def get(self, namespace: str, key: str) -> Any | None: ...

    def delete(self, namespace: str, key: str) -> None: ...

    def list_keys(self, namespace: str) -> list[str]: ...


class FileBlobStore:
    """One directory per namespace, one ``<key>.json`` file per blob.

    Writes go to a temp file in the same directory and are renamed into
    place, so a reader never sees a half-written blob.
    """

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)

    def path_for(self, namespace: str, key: str) -> Path:
        return self.root / namespace / f"{key}.json"

    def put(self, namespace: str, key: str, value: Any) -> None:
        path = self.path_for(namespace, key)
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{key}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(value, fh, ensure_ascii=False, indent=2)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def get(self, namespace: str, key: str) -> Any | None:
        path = self.path_for(namespace, key)
        if not path.exists():
            return None
        try:
            with path.open(encoding="utf-8") as fh:
                return json.load(fh)
        except (OSError, JSONDecodeError) as exc:
            LOGGER.warning("Unreadable blob %s: %s", path, exc)
            return None

    def delete(self, namespace: str, key: str) -> None:
        self.path_for(namespace, key).unlink(missing_ok=True)

    def list_keys(self, namespace: str) -> list[str]:
        directory = self.root / namespace
        if not directory.is_dir():
            return []
        return sorted(path.stem for path in directory.glob("*.json"))


class MemoryBlobStore:
    """In-process store with the same JSON round-trip semantics as files."""

    def __init__(self) -> None:
        self._blobs: dict[str, dict[str, str]] = {}

    def put(self, namespace: str, key: str, value: Any) -> None:
        self._blobs.setdefault(namespace, {})[key] = json.dumps(value, ensure_ascii=False)

    def get(self, namespace: str, key: str) -> Any | None:
        raw = self._blobs.get(namespace, {}).get(key)
        return None if raw is None else json.loads(raw)

    def delete(self, namespace: str, key: str) -> None:
        self._blobs.get(namespace, {}).pop(key, None)

    def list_keys(self, namespace: str) -> list[str]:
        return sorted(self._blobs.get(namespace, {}))
