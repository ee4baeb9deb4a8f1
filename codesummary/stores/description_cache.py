"""Persistent cache for generated function descriptions."""

from __future__ import annotations

from datetime import UTC, datetime
import json
import threading
from pathlib import Path
from typing import Dict, Iterable, Optional

_CACHE_VERSION = 1


class DescriptionCache:
    """Stores descriptions keyed by ``provider:model:prompt:body_hash``."""

    def __init__(self, path: Path | None) -> None:
        self._path = path
        self._entries: Dict[str, Dict[str, str]] = {}
        self._dirty = False
        self._lock = threading.Lock()
        if self._path is not None:
            self._load(self._path)

    @property
    def path(self) -> Path | None:
        return self._path

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            entry = self._entries.get(key)
        if not entry:
            return None
        description = entry.get("description")
        if not isinstance(description, str) or not description:
            return None
        return description

    def store(self, key: str, description: str) -> None:
        with self._lock:
            self._entries[key] = {
                "description": description,
                "updated_at": datetime.now(UTC).isoformat().replace("+00:00", "Z"),
            }
            self._dirty = True

    def prune(self, keys_to_keep: Iterable[str]) -> int:
        keep = set(keys_to_keep)
        with self._lock:
            removed = [key for key in self._entries if key not in keep]
            for key in removed:
                self._entries.pop(key, None)
            if removed:
                self._dirty = True
        return len(removed)

    def persist(self) -> None:
        with self._lock:
            if not self._dirty or self._path is None:
                return
            payload = {
                "version": _CACHE_VERSION,
                "entries": self._entries,
            }
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(
                json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8"
            )
            self._dirty = False

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._dirty = True

    # ------------------------------------------------------------------
    # Internal helpers

    def _load(self, path: Path) -> None:
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return
        except (OSError, json.JSONDecodeError):
            return
        if not isinstance(data, dict) or data.get("version") != _CACHE_VERSION:
            return
        entries = data.get("entries")
        if not isinstance(entries, dict):
            return
        valid_entries: Dict[str, Dict[str, str]] = {}
        for key, raw in entries.items():
            if not isinstance(key, str) or not isinstance(raw, dict):
                continue
            if not isinstance(raw.get("description"), str):
                continue
            valid_entries[key] = raw
        self._entries = valid_entries
        self._dirty = False


__all__ = ["DescriptionCache"]
