"""Backup document model."""

from __future__ import annotations

import secrets
from typing import Any

from pydantic import AliasChoices, Field, model_validator

from portaria._constants import MOVEMENT_ID_PREFIX
from portaria.models._base import PortariaBaseModel
from portaria.models.driver import Driver
from portaria.models.movement import Movement, MovementType
from portaria.models.vehicle import Vehicle

# Keys of the trip-shaped records written by the first releases, before the
# ledger stored individual departures and arrivals.
_LEGACY_LOG_KEYS = frozenset({"timestampOut", "kmOut", "driverIdOut"})


def _legacy_log_to_movements(entry: dict[str, Any]) -> list[dict[str, Any]]:
    """Split one legacy trip record into a departure and (if closed) an arrival."""
    log_id = str(entry.get("id") or f"{MOVEMENT_ID_PREFIX}{secrets.token_hex(8)}")
    departure = {
        "id": f"{log_id}_out",
        "vehicleId": entry.get("vehicleId"),
        "driverId": entry.get("driverIdOut"),
        "timestamp": entry.get("timestampOut"),
        "km": entry.get("kmOut"),
        "type": MovementType.SAIDA.value,
        "destination": entry.get("destination"),
    }
    result = [departure]
    if entry.get("timestampIn") is not None and entry.get("kmIn") is not None:
        result.append(
            {
                "id": f"{log_id}_in",
                "vehicleId": entry.get("vehicleId"),
                "driverId": entry.get("driverIdIn") or entry.get("driverIdOut"),
                "timestamp": entry.get("timestampIn"),
                "km": entry.get("kmIn"),
                "type": MovementType.CHEGADA.value,
            }
        )
    return result


class Snapshot(PortariaBaseModel):
    """Full ledger state as exported to (and imported from) a backup file."""

    vehicles: list[Vehicle] = Field(default_factory=list)
    drivers: list[Driver] = Field(default_factory=list)
    movements: list[Movement] = Field(
        default_factory=list,
        validation_alias=AliasChoices("movements", "logs"),
        serialization_alias="movements",
    )
    common_destinations: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("commonDestinations", "common_destinations"),
        serialization_alias="commonDestinations",
    )

    @model_validator(mode="before")
    @classmethod
    def _upgrade_legacy_logs(cls, values: Any) -> Any:
        if not isinstance(values, dict) or values.get("movements") is not None:
            return values
        logs = values.get("logs")
        if not isinstance(logs, list):
            return values
        upgraded: list[Any] = []
        for entry in logs:
            if isinstance(entry, dict) and "type" not in entry and entry.keys() & _LEGACY_LOG_KEYS:
                upgraded.extend(_legacy_log_to_movements(entry))
            else:
                upgraded.append(entry)
        merged = dict(values)
        merged.pop("logs")
        merged["movements"] = upgraded
        return merged
