"""Driver model."""

from __future__ import annotations

from portaria.models._base import PortariaBaseModel


class Driver(PortariaBaseModel):
    """A person allowed to take vehicles out of the gate."""

    id: str
    name: str

    def matches_name(self, name: str) -> bool:
        """Case-insensitive comparison against a trimmed *name*."""
        return self.name.strip().casefold() == name.strip().casefold()
