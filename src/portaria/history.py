"""Movement history browsing."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import date, tzinfo

from portaria.models._base import local_date
from portaria.models.driver import Driver
from portaria.models.movement import Movement
from portaria.models.vehicle import Vehicle
from portaria.state.projection import sort_chronologically

PAGE_SIZE = 10


def _matches(movement: Movement, needle: str, vehicle: Vehicle | None, driver: Driver | None) -> bool:
    haystack: list[str] = []
    if vehicle is not None:
        haystack.extend((vehicle.plate, vehicle.model))
    if driver is not None:
        haystack.append(driver.name)
    if movement.destination:
        haystack.append(movement.destination)
    return any(needle in text.casefold() for text in haystack)


def filter_history(
    movements: Iterable[Movement],
    vehicles: Sequence[Vehicle],
    drivers: Sequence[Driver],
    *,
    tz: tzinfo,
    on_date: date | None = None,
    query: str | None = None,
    limit: int | None = None,
) -> list[Movement]:
    """Return movements newest first, optionally narrowed to a day and a search term.

    The search is case-insensitive over plate, model, driver name and
    destination.  Movements pointing at deleted vehicles or drivers are kept
    and simply match on the fields still available.
    """
    vehicles_by_id = {vehicle.id: vehicle for vehicle in vehicles}
    drivers_by_id = {driver.id: driver for driver in drivers}
    needle = (query or "").strip().casefold()

    result: list[Movement] = []
    for movement in sort_chronologically(movements, newest_first=True):
        if on_date is not None and local_date(movement.timestamp, tz) != on_date:
            continue
        if needle and not _matches(
            movement,
            needle,
            vehicles_by_id.get(movement.vehicle_id),
            drivers_by_id.get(movement.driver_id),
        ):
            continue
        result.append(movement)
        if limit is not None and len(result) >= limit:
            break
    return result


def page_limit(page: int, page_size: int = PAGE_SIZE) -> int:
    """Number of rows visible after *page* "load more" steps (first page is ``1``)."""
    return max(1, page) * page_size
