"""Validation performed where user input enters the system.

The ledger mutators trust their arguments; forms, the CLI and any other
front end run these checks first and show the message to the operator.
"""

from __future__ import annotations

import re
from datetime import datetime, tzinfo
from typing import Any

from portaria.exceptions import ValidationError
from portaria.models._base import local_date
from portaria.models.movement import Movement

_KM_PATTERN = re.compile(r"^\d+$")


def parse_km(value: Any) -> int:
    """Parse an odometer reading typed by the operator.

    Accepts non-negative integers, whole floats and digit strings
    (surrounding whitespace ignored).
    """
    if isinstance(value, bool) or value is None:
        raise ValidationError("km is required")
    if isinstance(value, int):
        km = value
    elif isinstance(value, float):
        if not value.is_integer():
            raise ValidationError(f"km must be a whole number, got {value}")
        km = int(value)
    else:
        text = str(value).strip()
        if not _KM_PATTERN.match(text):
            raise ValidationError(f"km must be a whole number, got {value!r}")
        km = int(text)
    if km < 0:
        raise ValidationError(f"km must not be negative, got {km}")
    return km


def check_destination(destination: str | None) -> str:
    """Return the trimmed destination, rejecting blank values."""
    cleaned = (destination or "").strip()
    if not cleaned:
        raise ValidationError("destination is required")
    return cleaned


def check_arrival_km(departure: Movement | None, km: int, *, now: datetime, tz: tzinfo) -> None:
    """Reject an arrival km below the open departure's km on the same day.

    Across different calendar days no ordering is required: the odometer
    may have been replaced or reset while the vehicle was away.
    """
    if departure is None:
        return
    same_day = local_date(now, tz) == local_date(departure.timestamp, tz)
    if same_day and km < departure.km:
        raise ValidationError(
            f"arrival km ({km}) cannot be lower than departure km ({departure.km}) on the same day"
        )
