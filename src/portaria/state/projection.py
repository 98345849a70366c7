"""Vehicle status projection.

A vehicle is out (``EM_USO``) exactly when its chronologically last
movement is a departure.  The projection folds the whole history in
timestamp order; ties keep their stored (insertion) order.
"""

from __future__ import annotations

from collections.abc import Iterable

from portaria.models.movement import Movement, MovementType
from portaria.models.vehicle import Vehicle, VehicleStatus


def sort_chronologically(movements: Iterable[Movement], *, newest_first: bool = False) -> list[Movement]:
    """Return *movements* ordered by timestamp.

    Equal timestamps keep insertion order, so with *newest_first* the later
    inserted of two simultaneous movements comes first.
    """
    ordered = sorted(movements, key=lambda movement: movement.timestamp)
    if newest_first:
        ordered.reverse()
    return ordered


def open_departures(movements: Iterable[Movement]) -> dict[str, Movement]:
    """Map each vehicle id currently out to its unmatched departure.

    A ``SAIDA`` opens (or replaces) the entry for its vehicle and a
    ``CHEGADA`` closes it.  Vehicles absent from the result are available.
    """
    departures: dict[str, Movement] = {}
    for movement in sort_chronologically(movements):
        if movement.type == MovementType.SAIDA:
            departures[movement.vehicle_id] = movement
        else:
            departures.pop(movement.vehicle_id, None)
    return departures


def derived_status(vehicle_id: str, departures: dict[str, Movement]) -> VehicleStatus:
    """Status of *vehicle_id* given the result of :func:`open_departures`."""
    return VehicleStatus.EM_USO if vehicle_id in departures else VehicleStatus.DISPONIVEL


def vehicle_statuses(vehicles: Iterable[Vehicle], movements: Iterable[Movement]) -> dict[str, VehicleStatus]:
    """Derived status for every vehicle in *vehicles*."""
    departures = open_departures(movements)
    return {vehicle.id: derived_status(vehicle.id, departures) for vehicle in vehicles}
