"""Custom exception hierarchy for portaria."""

from __future__ import annotations


class PortariaError(Exception):
    """Base exception for all portaria errors."""


class ConfigError(PortariaError):
    """Invalid or missing configuration."""


class ValidationError(PortariaError):
    """Malformed or out-of-range caller input.

    Raised for empty names, negative or non-numeric km values and
    non-chronological manual trips.  The operation is aborted before
    anything is written.
    """


class ConflictError(PortariaError):
    """Operation not allowed against the current ledger state."""


class DuplicateError(ConflictError, ValidationError):
    """A driver name or vehicle plate already exists.

    Duplicates are both a conflict with stored state and invalid input, so
    this can be caught as either.
    """


class NotFoundError(PortariaError):
    """Referenced vehicle (or other record) does not exist."""

    def __init__(self, message: str, *, record_id: str = "") -> None:
        self.record_id = record_id
        super().__init__(message)


class FormatError(PortariaError):
    """Backup payload is not valid JSON or lacks required collections."""


class StorageError(PortariaError):
    """Underlying key-value store read/write failure."""

    def __init__(self, message: str, *, key: str = "") -> None:
        self.key = key
        super().__init__(message)
