"""Abstract key-value store."""

from __future__ import annotations

import abc
from collections.abc import Mapping
from typing import Any

from portaria.exceptions import ConflictError


class KeyValueStore(abc.ABC):
    """Flat store of JSON values addressed by string keys.

    Writers use optimistic versioning: :meth:`revision` is read before a
    read-modify-write cycle and passed back to :meth:`commit` as
    ``expected_revision``.  If another writer committed in between, the
    commit is rejected instead of silently overwriting its data.
    """

    @abc.abstractmethod
    def get(self, key: str) -> Any | None:
        """Return the decoded value under *key*, or ``None`` when absent.

        Raises :class:`~portaria.exceptions.StorageError` when the value
        exists but cannot be read or decoded.
        """

    @abc.abstractmethod
    def revision(self) -> int:
        """Return the current revision counter (``0`` for an empty store)."""

    @abc.abstractmethod
    def _write(self, updates: dict[str, Any], revision: int) -> None:
        """Persist *updates* together with the new *revision*."""

    def commit(self, updates: Mapping[str, Any], *, expected_revision: int | None = None) -> int:
        """Write every key in *updates* at once and return the new revision.

        Raises :class:`~portaria.exceptions.ConflictError` when
        *expected_revision* is given and no longer matches, and
        :class:`~portaria.exceptions.StorageError` when the write fails.
        """
        with self._write_lock():
            current = self.revision()
            if expected_revision is not None and expected_revision != current:
                raise ConflictError(
                    f"store changed while writing (expected revision {expected_revision}, found {current})"
                )
            new_revision = current + 1
            self._write(dict(updates), new_revision)
            return new_revision

    @abc.abstractmethod
    def _write_lock(self) -> Any:
        """Context manager serialising writers."""

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self.get(key) is not None
