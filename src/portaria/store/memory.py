"""In-memory store."""

from __future__ import annotations

import json
import threading
from typing import Any

from portaria.exceptions import StorageError
from portaria.store.base import KeyValueStore


class MemoryStore(KeyValueStore):
    """Process-local store keeping each value as encoded JSON text.

    Values are encoded on write and decoded on every read, so callers never
    share mutable state with the store and non-serialisable values fail at
    write time just as they would against a persistent backend.
    """

    def __init__(self, initial: dict[str, Any] | None = None) -> None:
        self._data: dict[str, str] = {}
        self._revision = 0
        self._lock = threading.RLock()
        if initial:
            self.commit(initial)

    def get(self, key: str) -> Any | None:
        text = self._data.get(key)
        if text is None:
            return None
        try:
            return json.loads(text)
        except json.JSONDecodeError as exc:
            raise StorageError(f"corrupted value under key {key!r}", key=key) from exc

    def revision(self) -> int:
        return self._revision

    def _write_lock(self) -> threading.RLock:
        return self._lock

    def _write(self, updates: dict[str, Any], revision: int) -> None:
        encoded: dict[str, str] = {}
        for key, value in updates.items():
            try:
                encoded[key] = json.dumps(value, ensure_ascii=False)
            except (TypeError, ValueError) as exc:
                raise StorageError(f"value under key {key!r} is not JSON serialisable", key=key) from exc
        self._data.update(encoded)
        self._revision = revision

    def set_raw(self, key: str, text: str) -> None:
        """Store *text* under *key* without encoding it (simulates external tampering)."""
        with self._lock:
            self._data[key] = text
            self._revision += 1
