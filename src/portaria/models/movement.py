"""Movement (gate event) models."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum

from pydantic import Field

from portaria.models._base import LedgerTimestamp, PortariaBaseModel
from portaria.models.vehicle import Vehicle


class MovementType(StrEnum):
    """Direction of a gate event."""

    SAIDA = "SAIDA"
    """Departure: the vehicle leaves and becomes ``EM_USO``."""
    CHEGADA = "CHEGADA"
    """Arrival: the vehicle returns and becomes ``DISPONIVEL``."""


class Movement(PortariaBaseModel):
    """A single departure or arrival recorded at the gate."""

    id: str
    vehicle_id: str
    driver_id: str
    timestamp: LedgerTimestamp
    km: int = Field(ge=0)
    type: MovementType
    destination: str | None = None
    """Trip destination, only meaningful for ``SAIDA``."""

    @property
    def is_departure(self) -> bool:
        return self.type == MovementType.SAIDA

    @property
    def is_arrival(self) -> bool:
        return self.type == MovementType.CHEGADA


class CompletedTrip(PortariaBaseModel):
    """A full trip entered after the fact (backfill).

    Range and ordering checks are performed by
    :meth:`portaria.ledger.MovementLedger.add_completed_log`, not here, so
    that they surface as :class:`portaria.exceptions.ValidationError`.

    Timestamps without a time zone are kept naive here and read in the
    ledger's configured zone when the trip is recorded.
    """

    vehicle_id: str
    driver_id_out: str
    timestamp_out: datetime
    km_out: int = Field(strict=True)
    destination: str
    driver_id_in: str
    timestamp_in: datetime
    km_in: int = Field(strict=True)


class MovementResult(PortariaBaseModel):
    """Outcome of registering a departure or an arrival."""

    movement: Movement
    vehicle: Vehicle
