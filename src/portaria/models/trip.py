"""Trip read model."""

from __future__ import annotations

from portaria.models._base import PortariaBaseModel
from portaria.models.movement import Movement


class Trip(PortariaBaseModel):
    """A departure paired with the arrival that closed it."""

    departure: Movement
    arrival: Movement

    @property
    def vehicle_id(self) -> str:
        return self.departure.vehicle_id

    @property
    def destination(self) -> str | None:
        return self.departure.destination

    @property
    def distance_km(self) -> int:
        """Odometer difference; negative when the odometer was reset mid-trip."""
        return self.arrival.km - self.departure.km

    @property
    def duration_seconds(self) -> float:
        return (self.arrival.timestamp - self.departure.timestamp).total_seconds()
