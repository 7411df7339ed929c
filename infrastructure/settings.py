"""Settings access helpers for JSON-based configuration."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

DEFAULTS: dict[str, Any] = {
    "storage": {
        "documents_dir": "data/documents",
        "database_url": "",
        "database_file": "data/geomemories.sqlite",
    },
    "media": {
        "jpeg_quality": 95,
        "thumbnail_mem_cache": 256,
        "thumbnail_side": 512,
        "video_frame_ms": 1000,
    },
    "wikipedia": {
        "api_url": "https://en.wikipedia.org/w/api.php",
        "user_agent": "GeoMemories/0.1 (https://github.com/geomemories)",
        "timeout_sec": 10,
    },
    "geocoding": {
        "url": "https://nominatim.openstreetmap.org",
        "user_agent": "GeoMemories/0.1 (https://github.com/geomemories)",
        "timeout_sec": 10,
        "search_limit": 10,
    },
    "logging": {
        "dir": "",
        "level": "INFO",
    },
}


def _lookup(data: Any, key: str) -> tuple[bool, Any]:
    node = data
    for part in key.split("."):
        if isinstance(node, dict) and part in node:
            node = node[part]
        else:
            return False, None
    return True, node


class JsonSettings:
    """Lightweight JSON settings reader with dotted-key access.

    Values missing from the file fall back to `DEFAULTS`, then to the
    `default` passed to `get`.
    """

    def __init__(self, settings_path: str | Path | None = None) -> None:
        self._data: dict[str, Any] = {}
        self._path = Path(settings_path) if settings_path is not None else None
        if self._path is not None:
            if not self._path.exists():
                raise FileNotFoundError(f"settings.json not found: {self._path}")
            with self._path.open("r", encoding="utf-8") as f:
                self._data = json.load(f)

    @classmethod
    def from_dict(cls, data: dict[str, Any], base_dir: str | Path | None = None) -> JsonSettings:
        """Build settings from an in-memory mapping (paths resolve under `base_dir`)."""
        inst = cls()
        inst._data = data
        if base_dir is not None:
            inst._path = Path(base_dir) / "settings.json"
        return inst

    @property
    def base_dir(self) -> Path:
        """Directory relative paths resolve against."""
        if self._path is not None:
            return self._path.parent
        return Path.cwd()

    def get(self, key: str, default: Any | None = None) -> Any:
        """Return value for dotted `key`, or `default` if not present."""
        found, value = _lookup(self._data, key)
        if found:
            return value
        found, value = _lookup(DEFAULTS, key)
        if found:
            return value
        return default

    def get_int(self, key: str, default: int) -> int:
        try:
            return int(self.get(key, default))
        except (ValueError, TypeError):
            return default

    def get_path(self, key: str, default: str | None = None) -> Path | None:
        """Return `key` as a path, expanding env vars and resolving relatives."""
        raw = self.get(key, default)
        if not raw or not isinstance(raw, str):
            return None
        p = Path(os.path.expandvars(raw)).expanduser()
        return p if p.is_absolute() else self.base_dir / p
