"""Internal constants shared across the library."""

from __future__ import annotations

from datetime import date

KEY_VEHICLES = "vehicles"
KEY_DRIVERS = "drivers"
KEY_MOVEMENTS = "movements"
KEY_COMMON_DESTINATIONS = "commonDestinations"
LEGACY_KEY_LOGS = "logs"

STORAGE_KEYS: tuple[str, ...] = (
    KEY_VEHICLES,
    KEY_DRIVERS,
    KEY_MOVEMENTS,
    KEY_COMMON_DESTINATIONS,
)

DEFAULT_TIME_ZONE = "America/Sao_Paulo"

# Id prefixes per collection.
DRIVER_ID_PREFIX = "d_"
VEHICLE_ID_PREFIX = "v_"
MOVEMENT_ID_PREFIX = "m_"

# ------------------------------------------------------------------
# Seed data written to an empty store when seeding is enabled
# ------------------------------------------------------------------

DEFAULT_DRIVER_NAMES: tuple[str, ...] = (
    "Jose Carlos",
    "Eduardo",
    "Rogerio",
    "Neumar",
    "Tiago",
    "Lucas",
    "Alex",
    "Gelson",
    "Peterson",
    "Pedro",
    "Marcos",
    "Iberê",
    "Vilmar",
    "Querivelto",
    "Umberto",
    "Cleomar",
    "Mathias",
    "Douglas",
    "Carlos",
    "Fabrício",
    "Jackson",
    "José",
)

DEFAULT_VEHICLES: tuple[tuple[str, str], ...] = (
    ("JBR5F82", "GOL"),
    ("JBA9I15", "GOL"),
    ("IVX5841", "GOL"),
    ("IXZ8235", "SAVEIRO"),
    ("JQP6H92", "HR-NOVA"),
    ("IZI2D19", "SAVEIRO"),
    ("IXR5497", "GOL"),
    ("INL4G00", "CAÇAMBA"),
    ("ITG8844", "HR"),
)


def backup_filename(today: date) -> str:
    """Return the download name used for backup files (``backup_controle_portaria_YYYY-MM-DD.json``)."""
    return f"backup_controle_portaria_{today.isoformat()}.json"
