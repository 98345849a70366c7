"""Pair departures with arrivals into trips."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date, tzinfo

from portaria.models._base import local_date
from portaria.models.movement import Movement, MovementType
from portaria.models.trip import Trip
from portaria.state.projection import sort_chronologically


def completed_trips(
    movements: Iterable[Movement],
    *,
    tz: tzinfo | None = None,
    on_date: date | None = None,
) -> list[Trip]:
    """Return closed trips in arrival order.

    Each ``CHEGADA`` closes the open ``SAIDA`` of the same vehicle, the same
    fold used for status derivation.  Arrivals without an open departure are
    skipped.  With *on_date* only trips whose arrival falls on that day (in
    *tz*) are returned.
    """
    if on_date is not None and tz is None:
        raise ValueError("tz is required when filtering by date")

    open_out: dict[str, Movement] = {}
    trips: list[Trip] = []
    for movement in sort_chronologically(movements):
        if movement.type == MovementType.SAIDA:
            open_out[movement.vehicle_id] = movement
            continue
        departure = open_out.pop(movement.vehicle_id, None)
        if departure is None:
            continue
        if on_date is not None and tz is not None and local_date(movement.timestamp, tz) != on_date:
            continue
        trips.append(Trip(departure=departure, arrival=movement))
    return trips


def total_distance_km(trips: Iterable[Trip]) -> int:
    """Sum of trip distances, ignoring negative (odometer reset) trips."""
    return sum(max(0, trip.distance_km) for trip in trips)
