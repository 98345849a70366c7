"""Base model and timestamp helpers for ledger records.

Every persisted record inherits from :class:`PortariaBaseModel` which
provides:

* ``alias_generator=to_camel`` so the camelCase keys used on disk and in
  backup files (``vehicleId``, ``commonDestinations``) map to snake_case
  fields.
* ``frozen=True``: records are replaced, never mutated in place.
* ``dump()`` producing the JSON-ready, camelCase form written to the store.
"""

from __future__ import annotations

from datetime import UTC, date, datetime, tzinfo
from typing import Annotated, Any

from pydantic import AfterValidator, BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


def ensure_aware(value: datetime) -> datetime:
    """Return *value* as a timezone-aware datetime, reading naive values as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


LedgerTimestamp = Annotated[datetime, AfterValidator(ensure_aware)]
"""Datetime that is always timezone-aware once validated."""


class PortariaBaseModel(BaseModel):
    """Base for all ledger records."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        alias_generator=to_camel,
    )

    def dump(self) -> dict[str, Any]:
        """Return the JSON-compatible camelCase dict stored on disk."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


def local_date(value: datetime, tz: tzinfo) -> date:
    """Calendar day of *value* as seen in *tz*."""
    return ensure_aware(value).astimezone(tz).date()
