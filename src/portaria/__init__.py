"""portaria - vehicle gate log: departures, arrivals and backups."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pyportaria")
except PackageNotFoundError:
    __version__ = "0+local"
from portaria.config import LedgerConfig
from portaria.exceptions import (
    ConfigError,
    ConflictError,
    DuplicateError,
    FormatError,
    NotFoundError,
    PortariaError,
    StorageError,
    ValidationError,
)
from portaria.ledger import MovementLedger
from portaria.models import (
    CompletedTrip,
    Driver,
    Movement,
    MovementResult,
    MovementType,
    Snapshot,
    Trip,
    Vehicle,
    VehicleStatus,
)
from portaria.store import JsonFileStore, KeyValueStore, MemoryStore

__all__ = [
    "__version__",
    "CompletedTrip",
    "ConfigError",
    "ConflictError",
    "Driver",
    "DuplicateError",
    "FormatError",
    "JsonFileStore",
    "KeyValueStore",
    "LedgerConfig",
    "MemoryStore",
    "Movement",
    "MovementLedger",
    "MovementResult",
    "MovementType",
    "NotFoundError",
    "PortariaError",
    "Snapshot",
    "StorageError",
    "Trip",
    "ValidationError",
    "Vehicle",
    "VehicleStatus",
]
