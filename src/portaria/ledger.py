"""Movement ledger: the single owner of every read and write against the store."""

from __future__ import annotations

import json
import logging
import secrets
from collections.abc import Callable, Mapping
from datetime import UTC, date, datetime, tzinfo
from typing import Any, TypeVar

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from portaria._constants import (
    DEFAULT_DRIVER_NAMES,
    DEFAULT_VEHICLES,
    DRIVER_ID_PREFIX,
    KEY_COMMON_DESTINATIONS,
    KEY_DRIVERS,
    KEY_MOVEMENTS,
    KEY_VEHICLES,
    LEGACY_KEY_LOGS,
    MOVEMENT_ID_PREFIX,
    STORAGE_KEYS,
    VEHICLE_ID_PREFIX,
)
from portaria._redact import summarize_for_log
from portaria.config import LedgerConfig
from portaria.exceptions import (
    ConflictError,
    DuplicateError,
    FormatError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from portaria.history import filter_history
from portaria.models._base import local_date
from portaria.models.driver import Driver
from portaria.models.movement import CompletedTrip, Movement, MovementResult, MovementType
from portaria.models.snapshot import Snapshot
from portaria.models.trip import Trip
from portaria.models.vehicle import Vehicle, VehicleStatus, normalize_plate
from portaria.state.projection import open_departures, vehicle_statuses
from portaria.store.base import KeyValueStore
from portaria.store.file import JsonFileStore
from portaria.store.memory import MemoryStore
from portaria.trips import completed_trips

_logger = logging.getLogger(__name__)

T = TypeVar("T")

_VEHICLES_ADAPTER = TypeAdapter(list[Vehicle])
_DRIVERS_ADAPTER = TypeAdapter(list[Driver])
_MOVEMENTS_ADAPTER = TypeAdapter(list[Movement])
_DESTINATIONS_ADAPTER = TypeAdapter(list[str])


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _new_id(prefix: str) -> str:
    return f"{prefix}{secrets.token_hex(8)}"


def _dump_all(records: list[Any]) -> list[dict[str, Any]]:
    return [record.dump() for record in records]


class MovementLedger:
    """Vehicles, drivers and gate movements persisted in a key-value store.

    Every accessor reads the store afresh; every mutator is one
    read-modify-write cycle committed with the revision observed before
    reading, so a concurrent writer causes :class:`ConflictError` instead of
    a lost update.

    Usage::

        ledger = MovementLedger(config=LedgerConfig.from_env())
        vehicle = ledger.add_vehicle("abc-1234", "GOL")
        driver = ledger.add_driver("Ana")
        ledger.register_saida(vehicle.id, driver.id, 1200, "Centro")
    """

    def __init__(
        self,
        store: KeyValueStore | None = None,
        *,
        config: LedgerConfig | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._config = config or LedgerConfig()
        if store is None:
            if self._config.store_path is not None:
                store = JsonFileStore(self._config.store_path)
            else:
                store = MemoryStore()
        self._store = store
        self._clock = clock
        if self._config.seed_defaults:
            self.seed_defaults()

    @property
    def config(self) -> LedgerConfig:
        return self._config

    @property
    def store(self) -> KeyValueStore:
        return self._store

    @property
    def tz(self) -> tzinfo:
        return self._config.tzinfo

    def now(self) -> datetime:
        return self._clock()

    def today(self) -> date:
        """Current calendar day in the configured time zone."""
        return local_date(self._clock(), self.tz)

    def localize(self, value: datetime) -> datetime:
        """Read a naive *value* as wall-clock time in the configured zone."""
        if value.tzinfo is None:
            return value.replace(tzinfo=self.tz)
        return value

    # ------------------------------------------------------------------
    # Store access
    # ------------------------------------------------------------------

    def _load(self, key: str, adapter: TypeAdapter[list[T]], *, strict: bool) -> list[T]:
        """Read and validate the collection under *key*.

        Read-only callers (``strict=False``) get an empty list when the value
        is unreadable.  Mutators pass ``strict=True`` so that a corrupted
        collection raises :class:`StorageError` instead of being overwritten
        with a fresh, near-empty one.
        """
        try:
            raw = self._store.get(key)
            if raw is None:
                return []
            return adapter.validate_python(raw)
        except (StorageError, PydanticValidationError) as exc:
            if strict:
                if isinstance(exc, StorageError):
                    raise
                raise StorageError(f"stored {key!r} collection is invalid", key=key) from exc
            _logger.warning("Could not read %r from store, using empty collection", key, exc_info=True)
            return []

    def _commit(self, updates: dict[str, Any], *, expected_revision: int | None) -> bool:
        try:
            self._store.commit(updates, expected_revision=expected_revision)
        except StorageError:
            if self._config.raise_on_write_error:
                raise
            _logger.error("Failed to write keys=%s to store", sorted(updates), exc_info=True)
            return False
        return True

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list_vehicles(self) -> list[Vehicle]:
        return self._load(KEY_VEHICLES, _VEHICLES_ADAPTER, strict=False)

    def list_drivers(self) -> list[Driver]:
        return self._load(KEY_DRIVERS, _DRIVERS_ADAPTER, strict=False)

    def list_movements(self) -> list[Movement]:
        return self._load(KEY_MOVEMENTS, _MOVEMENTS_ADAPTER, strict=False)

    def list_common_destinations(self) -> list[str]:
        return self._load(KEY_COMMON_DESTINATIONS, _DESTINATIONS_ADAPTER, strict=False)

    def get_vehicle(self, vehicle_id: str) -> Vehicle | None:
        return next((vehicle for vehicle in self.list_vehicles() if vehicle.id == vehicle_id), None)

    def get_driver(self, driver_id: str) -> Driver | None:
        return next((driver for driver in self.list_drivers() if driver.id == driver_id), None)

    def find_vehicle_by_plate(self, plate: str) -> Vehicle | None:
        wanted = normalize_plate(plate)
        return next((vehicle for vehicle in self.list_vehicles() if normalize_plate(vehicle.plate) == wanted), None)

    def find_driver_by_name(self, name: str) -> Driver | None:
        return next((driver for driver in self.list_drivers() if driver.matches_name(name)), None)

    # ------------------------------------------------------------------
    # Derived state
    # ------------------------------------------------------------------

    def open_departures(self) -> dict[str, Movement]:
        """Vehicle id -> unmatched departure, recomputed from the full history."""
        return open_departures(self.list_movements())

    def open_departure(self, vehicle_id: str) -> Movement | None:
        return self.open_departures().get(vehicle_id)

    def derived_statuses(self) -> dict[str, VehicleStatus]:
        """Status of every registered vehicle according to its movement history."""
        return vehicle_statuses(self.list_vehicles(), self.list_movements())

    def history(
        self,
        *,
        on_date: date | None = None,
        query: str | None = None,
        limit: int | None = None,
    ) -> list[Movement]:
        return filter_history(
            self.list_movements(),
            self.list_vehicles(),
            self.list_drivers(),
            tz=self.tz,
            on_date=on_date,
            query=query,
            limit=limit,
        )

    def completed_trips(self, *, on_date: date | None = None) -> list[Trip]:
        return completed_trips(self.list_movements(), tz=self.tz, on_date=on_date)

    # ------------------------------------------------------------------
    # Drivers and vehicles
    # ------------------------------------------------------------------

    def add_driver(self, name: str) -> Driver:
        """Register a driver; names are unique ignoring case and surrounding spaces."""
        trimmed = (name or "").strip()
        if not trimmed:
            raise ValidationError("driver name must not be empty")

        revision = self._store.revision()
        drivers = self._load(KEY_DRIVERS, _DRIVERS_ADAPTER, strict=True)
        if any(driver.matches_name(trimmed) for driver in drivers):
            raise DuplicateError(f"driver {trimmed!r} already exists")

        driver = Driver(id=_new_id(DRIVER_ID_PREFIX), name=trimmed)
        self._commit({KEY_DRIVERS: _dump_all([*drivers, driver])}, expected_revision=revision)
        _logger.debug("Added driver id=%s", driver.id)
        return driver

    def add_vehicle(self, plate: str, model: str) -> Vehicle:
        """Register a vehicle; the plate is stored trimmed and upper-cased."""
        normalized = normalize_plate(plate or "")
        if not normalized:
            raise ValidationError("vehicle plate must not be empty")

        revision = self._store.revision()
        vehicles = self._load(KEY_VEHICLES, _VEHICLES_ADAPTER, strict=True)
        if any(normalize_plate(vehicle.plate) == normalized for vehicle in vehicles):
            raise DuplicateError(f"vehicle with plate {normalized} already exists")

        vehicle = Vehicle(
            id=_new_id(VEHICLE_ID_PREFIX),
            plate=normalized,
            model=(model or "").strip(),
            status=VehicleStatus.DISPONIVEL,
        )
        self._commit({KEY_VEHICLES: _dump_all([*vehicles, vehicle])}, expected_revision=revision)
        _logger.debug("Added vehicle id=%s plate=%s", vehicle.id, vehicle.plate)
        return vehicle

    def delete_vehicle(self, vehicle_id: str) -> None:
        """Remove a vehicle that is not out; its movements stay in the history.

        The vehicle counts as out when either its stored status or the
        movement history says so.  Unknown ids are ignored.
        """
        revision = self._store.revision()
        vehicles = self._load(KEY_VEHICLES, _VEHICLES_ADAPTER, strict=True)
        vehicle = next((v for v in vehicles if v.id == vehicle_id), None)
        if vehicle is None:
            _logger.debug("delete_vehicle: no vehicle id=%s", vehicle_id)
            return

        movements = self._load(KEY_MOVEMENTS, _MOVEMENTS_ADAPTER, strict=True)
        if vehicle.is_out or vehicle_id in open_departures(movements):
            raise ConflictError(f"vehicle {vehicle.plate} is in use and cannot be deleted")

        remaining = [v for v in vehicles if v.id != vehicle_id]
        self._commit({KEY_VEHICLES: _dump_all(remaining)}, expected_revision=revision)
        _logger.debug("Deleted vehicle id=%s", vehicle_id)

    # ------------------------------------------------------------------
    # Movements
    # ------------------------------------------------------------------

    def _require_vehicle(self, vehicles: list[Vehicle], vehicle_id: str) -> Vehicle:
        vehicle = next((v for v in vehicles if v.id == vehicle_id), None)
        if vehicle is None:
            raise NotFoundError(f"vehicle {vehicle_id!r} not found", record_id=vehicle_id)
        return vehicle

    def _build_movement(self, **fields: Any) -> Movement:
        try:
            return Movement(id=_new_id(MOVEMENT_ID_PREFIX), **fields)
        except PydanticValidationError as exc:
            raise ValidationError(f"invalid movement: {exc.errors()[0]['msg']}") from exc

    def _register(
        self,
        movement_type: MovementType,
        vehicle_id: str,
        driver_id: str,
        km: int,
        destination: str | None,
    ) -> MovementResult:
        revision = self._store.revision()
        vehicles = self._load(KEY_VEHICLES, _VEHICLES_ADAPTER, strict=True)
        movements = self._load(KEY_MOVEMENTS, _MOVEMENTS_ADAPTER, strict=True)
        vehicle = self._require_vehicle(vehicles, vehicle_id)

        departing = movement_type == MovementType.SAIDA
        if self._config.enforce_alternation and vehicle.is_out == departing:
            state = "already out" if departing else "not out"
            raise ConflictError(f"vehicle {vehicle.plate} is {state}")

        movement = self._build_movement(
            vehicle_id=vehicle_id,
            driver_id=driver_id,
            timestamp=self._clock(),
            km=km,
            type=movement_type,
            destination=destination,
        )
        updated = vehicle.with_status(VehicleStatus.EM_USO if departing else VehicleStatus.DISPONIVEL)
        self._commit(
            {
                KEY_MOVEMENTS: _dump_all([*movements, movement]),
                KEY_VEHICLES: _dump_all([updated if v.id == vehicle_id else v for v in vehicles]),
            },
            expected_revision=revision,
        )
        _logger.debug("Registered %s vehicle=%s km=%d id=%s", movement_type, vehicle_id, km, movement.id)
        return MovementResult(movement=movement, vehicle=updated)

    def register_saida(self, vehicle_id: str, driver_id: str, km: int, destination: str) -> MovementResult:
        """Record a departure now and mark the vehicle ``EM_USO``.

        The destination is stored as given; checking it is the caller's job
        (see :func:`portaria.entry.check_destination`).
        """
        return self._register(MovementType.SAIDA, vehicle_id, driver_id, km, destination)

    def register_chegada(self, vehicle_id: str, driver_id: str, km: int) -> MovementResult:
        """Record an arrival now and mark the vehicle ``DISPONIVEL``.

        The same-day km check lives at the input boundary
        (:func:`portaria.entry.check_arrival_km`), not here.
        """
        return self._register(MovementType.CHEGADA, vehicle_id, driver_id, km, None)

    def add_completed_log(self, trip: CompletedTrip | Mapping[str, Any]) -> tuple[Movement, Movement]:
        """Backfill a whole trip with caller-supplied timestamps.

        Appends one ``SAIDA`` and one ``CHEGADA``.  The stored vehicle status
        is left as it is: a backdated trip says nothing about where the
        vehicle is now.  Timestamps without a time zone are read in the
        configured zone.
        """
        if not isinstance(trip, CompletedTrip):
            try:
                trip = CompletedTrip.model_validate(trip)
            except PydanticValidationError as exc:
                raise ValidationError(f"invalid manual trip: {exc.errors()[0]['msg']}") from exc

        if trip.km_out < 0 or trip.km_in < 0:
            raise ValidationError("km values must not be negative")
        if trip.km_in < trip.km_out:
            raise ValidationError(f"arrival km ({trip.km_in}) cannot be lower than departure km ({trip.km_out})")
        timestamp_out = self.localize(trip.timestamp_out)
        timestamp_in = self.localize(trip.timestamp_in)
        if timestamp_in <= timestamp_out:
            raise ValidationError("arrival time must be after departure time")
        destination = trip.destination.strip()
        if not destination:
            raise ValidationError("destination is required")

        revision = self._store.revision()
        vehicles = self._load(KEY_VEHICLES, _VEHICLES_ADAPTER, strict=True)
        movements = self._load(KEY_MOVEMENTS, _MOVEMENTS_ADAPTER, strict=True)
        self._require_vehicle(vehicles, trip.vehicle_id)

        departure = self._build_movement(
            vehicle_id=trip.vehicle_id,
            driver_id=trip.driver_id_out,
            timestamp=timestamp_out,
            km=trip.km_out,
            type=MovementType.SAIDA,
            destination=destination,
        )
        arrival = self._build_movement(
            vehicle_id=trip.vehicle_id,
            driver_id=trip.driver_id_in,
            timestamp=timestamp_in,
            km=trip.km_in,
            type=MovementType.CHEGADA,
        )
        self._commit({KEY_MOVEMENTS: _dump_all([*movements, departure, arrival])}, expected_revision=revision)
        _logger.debug("Backfilled trip vehicle=%s out=%s in=%s", trip.vehicle_id, departure.id, arrival.id)
        return departure, arrival

    def delete_movement(self, movement_id: str) -> None:
        """Remove a movement by id.

        The owning vehicle's stored status is not recomputed.  Deleting the
        open departure of a vehicle therefore leaves it ``EM_USO`` until an
        arrival is registered or :meth:`reconcile_statuses` is called; a
        warning is logged when that happens.
        """
        revision = self._store.revision()
        movements = self._load(KEY_MOVEMENTS, _MOVEMENTS_ADAPTER, strict=True)
        removed = next((m for m in movements if m.id == movement_id), None)
        if removed is None:
            _logger.debug("delete_movement: no movement id=%s", movement_id)
            return

        remaining = [m for m in movements if m.id != movement_id]
        self._commit({KEY_MOVEMENTS: _dump_all(remaining)}, expected_revision=revision)
        _logger.debug("Deleted movement id=%s", movement_id)
        if removed.is_departure and removed.vehicle_id not in open_departures(remaining):
            vehicle = self.get_vehicle(removed.vehicle_id)
            if vehicle is not None and vehicle.is_out:
                _logger.warning(
                    "Vehicle %s keeps status EM_USO after its departure %s was deleted",
                    vehicle.plate,
                    movement_id,
                )

    def reconcile_statuses(self) -> list[Vehicle]:
        """Rewrite stored vehicle statuses from the movement history.

        Returns the vehicles whose status changed.
        """
        revision = self._store.revision()
        vehicles = self._load(KEY_VEHICLES, _VEHICLES_ADAPTER, strict=True)
        movements = self._load(KEY_MOVEMENTS, _MOVEMENTS_ADAPTER, strict=True)
        statuses = vehicle_statuses(vehicles, movements)

        changed: list[Vehicle] = []
        updated: list[Vehicle] = []
        for vehicle in vehicles:
            status = statuses[vehicle.id]
            if vehicle.status != status:
                vehicle = vehicle.with_status(status)
                changed.append(vehicle)
            updated.append(vehicle)

        if changed:
            self._commit({KEY_VEHICLES: _dump_all(updated)}, expected_revision=revision)
            _logger.info("Reconciled status of %d vehicle(s)", len(changed))
        return changed

    # ------------------------------------------------------------------
    # Common destinations
    # ------------------------------------------------------------------

    def add_common_destination(self, name: str) -> list[str]:
        """Remember a destination; blank and case-insensitive duplicates are ignored."""
        trimmed = (name or "").strip()
        revision = self._store.revision()
        destinations = self._load(KEY_COMMON_DESTINATIONS, _DESTINATIONS_ADAPTER, strict=True)
        if not trimmed or any(existing.casefold() == trimmed.casefold() for existing in destinations):
            return destinations

        updated = [*destinations, trimmed]
        self._commit({KEY_COMMON_DESTINATIONS: updated}, expected_revision=revision)
        return updated

    # ------------------------------------------------------------------
    # Seed data
    # ------------------------------------------------------------------

    def seed_defaults(self) -> list[str]:
        """Write the default collections for every key the store does not have yet.

        Returns the keys that were seeded.
        """
        revision = self._store.revision()
        defaults: dict[str, Any] = {
            KEY_DRIVERS: _dump_all(
                [Driver(id=f"{DRIVER_ID_PREFIX}{index}", name=name) for index, name in enumerate(DEFAULT_DRIVER_NAMES, 1)]
            ),
            KEY_VEHICLES: _dump_all(
                [Vehicle(id=f"{VEHICLE_ID_PREFIX}{plate}", plate=plate, model=model) for plate, model in DEFAULT_VEHICLES]
            ),
            KEY_MOVEMENTS: [],
            KEY_COMMON_DESTINATIONS: [],
        }
        missing = {key: value for key, value in defaults.items() if key not in self._store}
        if missing:
            self._commit(missing, expected_revision=revision)
            _logger.info("Seeded store keys=%s", sorted(missing))
        return sorted(missing)

    # ------------------------------------------------------------------
    # Backup / restore
    # ------------------------------------------------------------------

    def export_snapshot(self) -> Snapshot:
        """Full copy of the four collections."""
        return Snapshot(
            vehicles=self._load(KEY_VEHICLES, _VEHICLES_ADAPTER, strict=True),
            drivers=self._load(KEY_DRIVERS, _DRIVERS_ADAPTER, strict=True),
            movements=self._load(KEY_MOVEMENTS, _MOVEMENTS_ADAPTER, strict=True),
            common_destinations=self._load(KEY_COMMON_DESTINATIONS, _DESTINATIONS_ADAPTER, strict=True),
        )

    def export_json(self) -> str:
        """Pretty-printed backup document."""
        return json.dumps(self.export_snapshot().dump(), indent=2, ensure_ascii=False)

    def import_snapshot(self, raw: Snapshot | str | bytes | Mapping[str, Any]) -> Snapshot:
        """Replace all four collections with the contents of a backup.

        This overwrites everything; callers must confirm with the operator
        first.  Nothing is written unless the whole payload is valid.
        """
        if isinstance(raw, Snapshot):
            raw = raw.dump()
        if isinstance(raw, (bytes, bytearray)):
            try:
                raw = raw.decode("utf-8")
            except UnicodeDecodeError as exc:
                raise FormatError("backup is not UTF-8 text") from exc
        if isinstance(raw, str):
            try:
                data = json.loads(raw)
            except json.JSONDecodeError as exc:
                raise FormatError("backup is not valid JSON") from exc
        elif isinstance(raw, Mapping):
            data = dict(raw)
        else:
            raise FormatError(f"unsupported backup payload type {type(raw).__name__}")

        if not isinstance(data, dict):
            raise FormatError("backup must be a JSON object")
        missing = [key for key in (KEY_VEHICLES, KEY_DRIVERS, KEY_COMMON_DESTINATIONS) if key not in data]
        if KEY_MOVEMENTS not in data and LEGACY_KEY_LOGS not in data:
            missing.append(KEY_MOVEMENTS)
        if missing:
            raise FormatError(f"backup is missing required keys: {', '.join(missing)}")

        _logger.debug("Importing backup %s", summarize_for_log(data))
        try:
            snapshot = Snapshot.model_validate(data)
        except PydanticValidationError as exc:
            raise FormatError(f"backup contents are invalid: {exc.error_count()} error(s)") from exc

        dumped = snapshot.dump()
        self._commit({key: dumped.get(key, []) for key in STORAGE_KEYS}, expected_revision=None)
        _logger.info(
            "Imported backup vehicles=%d drivers=%d movements=%d",
            len(snapshot.vehicles),
            len(snapshot.drivers),
            len(snapshot.movements),
        )
        return snapshot
