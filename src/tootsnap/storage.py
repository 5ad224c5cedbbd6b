"""Blob storage for persisted settings and tokens."""

from __future__ import annotations

import re
from pathlib import Path
from typing import Protocol

_SAFE_KEY_RE = re.compile(r"[^A-Za-z0-9._-]+")


class SettingsStore(Protocol):
    def read_blob(self, key: str) -> bytes | None: ...

    def write_blob(self, key: str, data: bytes) -> None: ...


class FileSettingsStore:
    """Stores each blob as ``<directory>/<key>.json``."""

    def __init__(self, directory: Path) -> None:
        self.directory = directory

    def _path_for(self, key: str) -> Path:
        safe_key = _SAFE_KEY_RE.sub("_", key) or "blob"
        return self.directory / f"{safe_key}.json"

    def read_blob(self, key: str) -> bytes | None:
        path = self._path_for(key)
        if not path.is_file():
            return None
        return path.read_bytes()

    def write_blob(self, key: str, data: bytes) -> None:
        path = self._path_for(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_suffix(".tmp")
        tmp_path.write_bytes(data)
        tmp_path.replace(path)
