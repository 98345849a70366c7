"""Data models for the gate ledger."""

from portaria.models._base import LedgerTimestamp, PortariaBaseModel, ensure_aware, local_date
from portaria.models.driver import Driver
from portaria.models.movement import CompletedTrip, Movement, MovementResult, MovementType
from portaria.models.snapshot import Snapshot
from portaria.models.trip import Trip
from portaria.models.vehicle import Vehicle, VehicleStatus, normalize_plate

__all__ = [
    "CompletedTrip",
    "Driver",
    "LedgerTimestamp",
    "Movement",
    "MovementResult",
    "MovementType",
    "PortariaBaseModel",
    "Snapshot",
    "Trip",
    "Vehicle",
    "VehicleStatus",
    "ensure_aware",
    "local_date",
    "normalize_plate",
]
