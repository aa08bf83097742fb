"""Settings access helpers for JSON-based configuration."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any


class JsonSettings:
    """Lightweight JSON settings reader with dotted-key access."""

    def __init__(self, settings_path: str | Path | None = None, data: dict | None = None) -> None:
        """Load settings from `settings_path`, or use `data` directly when given."""
        self._path = Path(settings_path) if settings_path is not None else None
        if data is not None:
            self._data = data
            return
        if self._path is None:
            self._data = {}
            return
        if not self._path.exists():
            raise FileNotFoundError(f"settings.json not found: {self._path}")
        with self._path.open("r", encoding="utf-8") as f:
            self._data = json.load(f)

    def get(self, key: str, default: Any | None = None) -> Any:
        """Return value for dotted `key`, or `default` if not present."""
        parts = key.split(".")
        node: Any = self._data
        for part in parts:
            if isinstance(node, dict) and part in node:
                node = node[part]
            else:
                return default
        return node

    def get_number(self, key: str, default: float | None = None) -> float | None:
        """Return a positive number for `key`, else `default`."""
        raw = self.get(key, default)
        try:
            value = float(raw)
        except (TypeError, ValueError):
            return default
        return value if value > 0 else default
