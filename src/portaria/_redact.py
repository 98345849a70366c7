"""Helpers for compact debug logging.

Backups and collections can hold thousands of records.  This module
shortens payloads before they are emitted in DEBUG logs so a single import
does not dump the whole ledger into the log.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any


def summarize_for_log(value: Any, *, max_items: int = 5, max_string: int = 120, _depth: int = 0) -> Any:
    """Return a shortened copy of *value* suitable for debug logs."""
    if _depth > 10:
        return "<max-depth>"

    if value is None or isinstance(value, (int, float, bool)):
        return value

    if isinstance(value, str):
        if len(value) > max_string:
            return f"{value[:max_string]}…<truncated:{len(value)}>"
        return value

    if isinstance(value, (bytes, bytearray)):
        return f"<bytes:{len(value)}b>"

    if isinstance(value, Mapping):
        return {
            str(k): summarize_for_log(v, max_items=max_items, max_string=max_string, _depth=_depth + 1)
            for k, v in value.items()
        }

    if isinstance(value, Sequence):
        head = [
            summarize_for_log(v, max_items=max_items, max_string=max_string, _depth=_depth + 1)
            for v in value[:max_items]
        ]
        if len(value) > max_items:
            head.append(f"<+{len(value) - max_items} more>")
        return head

    return repr(value)
