"""Key-value persistence layer.

The ledger never touches storage directly except through
:class:`KeyValueStore`; every collection lives under one string key as a
JSON value.
"""

from portaria.store.base import KeyValueStore
from portaria.store.file import JsonFileStore
from portaria.store.memory import MemoryStore

__all__ = ["JsonFileStore", "KeyValueStore", "MemoryStore"]
