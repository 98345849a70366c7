"""JSON file backed store."""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Any

from portaria.exceptions import StorageError
from portaria.store.base import KeyValueStore

_logger = logging.getLogger(__name__)

_REVISION_FIELD = "revision"
_DATA_FIELD = "data"


class JsonFileStore(KeyValueStore):
    """Store every key in a single JSON document on disk.

    The document is re-read on every access so that several processes
    sharing the file observe each other's commits.  Writes go to a temporary
    file in the same directory which is then atomically moved into place.
    Revision checks are only serialised within one process.
    """

    def __init__(self, path: Path | str) -> None:
        self._path = Path(path)
        self._lock = threading.RLock()

    @property
    def path(self) -> Path:
        return self._path

    def _read_document(self) -> dict[str, Any]:
        try:
            text = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {_REVISION_FIELD: 0, _DATA_FIELD: {}}
        except OSError as exc:
            raise StorageError(f"cannot read {self._path}: {exc}") from exc
        try:
            document = json.loads(text)
        except json.JSONDecodeError as exc:
            raise StorageError(f"{self._path} is not valid JSON") from exc
        if not isinstance(document, dict) or not isinstance(document.get(_DATA_FIELD), dict):
            raise StorageError(f"{self._path} does not look like a portaria store")
        return document

    def get(self, key: str) -> Any | None:
        return self._read_document()[_DATA_FIELD].get(key)

    def revision(self) -> int:
        try:
            return int(self._read_document().get(_REVISION_FIELD, 0))
        except (TypeError, ValueError) as exc:
            raise StorageError(f"{self._path} has an invalid revision") from exc

    def _write_lock(self) -> threading.RLock:
        return self._lock

    def _write(self, updates: dict[str, Any], revision: int) -> None:
        document = self._read_document()
        data: dict[str, Any] = dict(document[_DATA_FIELD])
        data.update(updates)
        payload = {_REVISION_FIELD: revision, _DATA_FIELD: data}
        try:
            text = json.dumps(payload, ensure_ascii=False, indent=2)
        except (TypeError, ValueError) as exc:
            raise StorageError("store contents are not JSON serialisable") from exc

        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=f".{self._path.name}.", dir=self._path.parent)
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    handle.write(text)
                os.replace(tmp_name, self._path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as exc:
            raise StorageError(f"cannot write {self._path}: {exc}") from exc
        _logger.debug("Wrote %s revision=%d keys=%s", self._path, revision, sorted(updates))
