"""Vehicle model."""

from __future__ import annotations

from enum import StrEnum

from portaria.models._base import PortariaBaseModel


class VehicleStatus(StrEnum):
    """Whether a vehicle is in the yard or out on a trip."""

    DISPONIVEL = "DISPONIVEL"
    EM_USO = "EM_USO"


def normalize_plate(plate: str) -> str:
    """Return *plate* trimmed and upper-cased, the form plates are stored in."""
    return plate.strip().upper()


class Vehicle(PortariaBaseModel):
    """A vehicle registered at the gate.

    ``status`` is a cached value written by the departure/arrival
    operations.  The authoritative answer comes from the movement history,
    see :mod:`portaria.state.projection`.
    """

    id: str
    plate: str
    model: str = ""
    status: VehicleStatus = VehicleStatus.DISPONIVEL

    @property
    def is_out(self) -> bool:
        return self.status == VehicleStatus.EM_USO

    def with_status(self, status: VehicleStatus) -> Vehicle:
        return self.model_copy(update={"status": status})
