"""Tests for the movement ledger registries and gate operations."""

from __future__ import annotations

import logging
from datetime import UTC, date, datetime, timedelta

import pytest

from portaria.config import LedgerConfig
from portaria.exceptions import (
    ConflictError,
    DuplicateError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from portaria.ledger import MovementLedger
from portaria.models.movement import CompletedTrip, MovementType
from portaria.models.vehicle import VehicleStatus
from portaria.store.memory import MemoryStore


def _trip(vehicle_id: str, driver_id: str, **overrides: object) -> dict[str, object]:
    out = datetime(2026, 3, 1, 11, 0, tzinfo=UTC)
    data: dict[str, object] = {
        "vehicle_id": vehicle_id,
        "driver_id_out": driver_id,
        "timestamp_out": out,
        "km_out": 100,
        "destination": "Porto Alegre",
        "driver_id_in": driver_id,
        "timestamp_in": out + timedelta(hours=3),
        "km_in": 180,
    }
    data.update(overrides)
    return data


# ------------------------------------------------------------------
# Drivers
# ------------------------------------------------------------------


class TestDrivers:
    def test_add_driver_trims_and_persists(self, ledger: MovementLedger) -> None:
        driver = ledger.add_driver("  Ana Souza ")
        assert driver.name == "Ana Souza"
        assert ledger.list_drivers() == [driver]

    def test_empty_name_rejected(self, ledger: MovementLedger) -> None:
        with pytest.raises(ValidationError):
            ledger.add_driver("   ")
        assert ledger.list_drivers() == []

    def test_duplicate_name_is_case_insensitive(self, ledger: MovementLedger) -> None:
        ledger.add_driver("Ana")
        with pytest.raises(DuplicateError):
            ledger.add_driver(" ana ")
        assert [d.name for d in ledger.list_drivers()] == ["Ana"]

    def test_duplicate_is_both_conflict_and_validation(self, ledger: MovementLedger) -> None:
        ledger.add_driver("Ana")
        with pytest.raises(ConflictError):
            ledger.add_driver("ANA")
        with pytest.raises(ValidationError):
            ledger.add_driver("ana")

    def test_ids_are_unique_for_rapid_inserts(self, ledger: MovementLedger) -> None:
        drivers = [ledger.add_driver(f"Driver {i}") for i in range(50)]
        assert len({d.id for d in drivers}) == 50
        assert all(d.id.startswith("d_") for d in drivers)


# ------------------------------------------------------------------
# Vehicles
# ------------------------------------------------------------------


class TestVehicles:
    def test_plate_stored_upper_case(self, ledger: MovementLedger) -> None:
        vehicle = ledger.add_vehicle(" abc-123 ", " GOL ")
        assert vehicle.plate == "ABC-123"
        assert vehicle.model == "GOL"
        assert vehicle.status == VehicleStatus.DISPONIVEL

    def test_duplicate_plate_rejected(self, ledger: MovementLedger) -> None:
        ledger.add_vehicle("abc-123", "X")
        with pytest.raises(DuplicateError):
            ledger.add_vehicle("ABC-123", "Y")
        vehicles = ledger.list_vehicles()
        assert len(vehicles) == 1
        assert vehicles[0].plate == "ABC-123"
        assert vehicles[0].model == "X"

    def test_empty_plate_rejected(self, ledger: MovementLedger) -> None:
        with pytest.raises(ValidationError):
            ledger.add_vehicle("  ", "GOL")

    def test_delete_available_vehicle_keeps_history(self, ledger: MovementLedger, clock) -> None:
        vehicle = ledger.add_vehicle("ABC1D23", "GOL")
        driver = ledger.add_driver("Ana")
        ledger.register_saida(vehicle.id, driver.id, 1000, "Centro")
        clock.advance(hours=1)
        ledger.register_chegada(vehicle.id, driver.id, 1020)

        ledger.delete_vehicle(vehicle.id)

        assert ledger.list_vehicles() == []
        assert len(ledger.list_movements()) == 2
        assert len(ledger.history()) == 2
        assert [t.distance_km for t in ledger.completed_trips()] == [20]

    def test_delete_vehicle_in_use_rejected(self, ledger: MovementLedger) -> None:
        vehicle = ledger.add_vehicle("ABC1D23", "GOL")
        driver = ledger.add_driver("Ana")
        ledger.register_saida(vehicle.id, driver.id, 1000, "Centro")
        before = ledger.list_vehicles()

        with pytest.raises(ConflictError):
            ledger.delete_vehicle(vehicle.id)

        assert ledger.list_vehicles() == before

    def test_delete_unknown_vehicle_is_noop(self, ledger: MovementLedger) -> None:
        vehicle = ledger.add_vehicle("ABC1D23", "GOL")
        ledger.delete_vehicle("v_missing")
        assert ledger.list_vehicles() == [vehicle]


# ------------------------------------------------------------------
# Departures and arrivals
# ------------------------------------------------------------------


class TestGateMovements:
    def test_status_follows_each_registration(self, ledger: MovementLedger, clock) -> None:
        vehicle = ledger.add_vehicle("ABC1D23", "GOL")
        driver = ledger.add_driver("Ana")

        km = 1000
        for _ in range(3):
            result = ledger.register_saida(vehicle.id, driver.id, km, "Centro")
            assert result.vehicle.status == VehicleStatus.EM_USO
            assert ledger.get_vehicle(vehicle.id).status == VehicleStatus.EM_USO
            assert result.movement.type == MovementType.SAIDA
            assert result.movement.timestamp == clock.now

            clock.advance(minutes=30)
            km += 15
            result = ledger.register_chegada(vehicle.id, driver.id, km)
            assert result.vehicle.status == VehicleStatus.DISPONIVEL
            assert ledger.get_vehicle(vehicle.id).status == VehicleStatus.DISPONIVEL
            assert result.movement.destination is None
            clock.advance(minutes=30)

        assert len(ledger.list_movements()) == 6

    def test_derived_status_matches_last_movement(self, ledger: MovementLedger, clock) -> None:
        out_vehicle = ledger.add_vehicle("AAA1111", "GOL")
        in_vehicle = ledger.add_vehicle("BBB2222", "HR")
        driver = ledger.add_driver("Ana")

        ledger.register_saida(in_vehicle.id, driver.id, 10, "Centro")
        clock.advance(minutes=5)
        ledger.register_saida(out_vehicle.id, driver.id, 20, "Porto")
        clock.advance(minutes=5)
        ledger.register_chegada(in_vehicle.id, driver.id, 15)

        statuses = ledger.derived_statuses()
        assert statuses == {
            out_vehicle.id: VehicleStatus.EM_USO,
            in_vehicle.id: VehicleStatus.DISPONIVEL,
        }
        departures = ledger.open_departures()
        assert list(departures) == [out_vehicle.id]
        assert departures[out_vehicle.id].destination == "Porto"
        assert ledger.open_departure(in_vehicle.id) is None

    def test_double_saida_permitted_by_default(self, ledger: MovementLedger, clock) -> None:
        vehicle = ledger.add_vehicle("ABC1D23", "GOL")
        driver = ledger.add_driver("Ana")
        ledger.register_saida(vehicle.id, driver.id, 1000, "Centro")
        clock.advance(minutes=1)
        second = ledger.register_saida(vehicle.id, driver.id, 1001, "Porto")

        assert ledger.open_departure(vehicle.id) == second.movement

    def test_alternation_enforced_when_configured(self, store: MemoryStore, clock) -> None:
        ledger = MovementLedger(store, config=LedgerConfig(enforce_alternation=True), clock=clock)
        vehicle = ledger.add_vehicle("ABC1D23", "GOL")
        driver = ledger.add_driver("Ana")

        with pytest.raises(ConflictError):
            ledger.register_chegada(vehicle.id, driver.id, 1000)

        ledger.register_saida(vehicle.id, driver.id, 1000, "Centro")
        with pytest.raises(ConflictError):
            ledger.register_saida(vehicle.id, driver.id, 1000, "Centro")
        assert len(ledger.list_movements()) == 1

    def test_unknown_vehicle_writes_nothing(self, ledger: MovementLedger) -> None:
        driver = ledger.add_driver("Ana")
        with pytest.raises(NotFoundError):
            ledger.register_saida("v_missing", driver.id, 10, "Centro")
        assert ledger.list_movements() == []

    def test_negative_km_rejected(self, ledger: MovementLedger) -> None:
        vehicle = ledger.add_vehicle("ABC1D23", "GOL")
        driver = ledger.add_driver("Ana")
        with pytest.raises(ValidationError):
            ledger.register_saida(vehicle.id, driver.id, -1, "Centro")
        assert ledger.list_movements() == []
        assert ledger.get_vehicle(vehicle.id).status == VehicleStatus.DISPONIVEL

    def test_deleting_open_saida_leaves_status_stuck(self, ledger: MovementLedger, clock, caplog) -> None:
        vehicle = ledger.add_vehicle("ABC1D23", "GOL")
        driver = ledger.add_driver("Ana")
        saida = ledger.register_saida(vehicle.id, driver.id, 1000, "Centro").movement

        with caplog.at_level(logging.WARNING, logger="portaria.ledger"):
            ledger.delete_movement(saida.id)

        assert ledger.list_movements() == []
        assert ledger.get_vehicle(vehicle.id).status == VehicleStatus.EM_USO
        assert ledger.derived_statuses()[vehicle.id] == VehicleStatus.DISPONIVEL
        assert "keeps status EM_USO" in caplog.text

        clock.advance(minutes=10)
        ledger.register_chegada(vehicle.id, driver.id, 1000)
        assert ledger.get_vehicle(vehicle.id).status == VehicleStatus.DISPONIVEL

    def test_reconcile_statuses_repairs_stuck_vehicle(self, ledger: MovementLedger) -> None:
        vehicle = ledger.add_vehicle("ABC1D23", "GOL")
        driver = ledger.add_driver("Ana")
        saida = ledger.register_saida(vehicle.id, driver.id, 1000, "Centro").movement
        ledger.delete_movement(saida.id)

        changed = ledger.reconcile_statuses()

        assert [v.id for v in changed] == [vehicle.id]
        assert ledger.get_vehicle(vehicle.id).status == VehicleStatus.DISPONIVEL
        assert ledger.reconcile_statuses() == []

    def test_delete_unknown_movement_is_noop(self, ledger: MovementLedger, store: MemoryStore) -> None:
        revision = store.revision()
        ledger.delete_movement("m_missing")
        assert store.revision() == revision


# ------------------------------------------------------------------
# Manual (backfilled) trips
# ------------------------------------------------------------------


class TestCompletedLog:
    def test_appends_saida_and_chegada_with_given_timestamps(self, ledger: MovementLedger) -> None:
        vehicle = ledger.add_vehicle("ABC1D23", "GOL")
        driver = ledger.add_driver("Ana")
        data = _trip(vehicle.id, driver.id)

        departure, arrival = ledger.add_completed_log(data)

        assert departure.type == MovementType.SAIDA
        assert departure.timestamp == data["timestamp_out"]
        assert departure.destination == "Porto Alegre"
        assert arrival.type == MovementType.CHEGADA
        assert arrival.timestamp == data["timestamp_in"]
        assert [m.id for m in ledger.list_movements()] == [departure.id, arrival.id]
        assert ledger.get_vehicle(vehicle.id).status == VehicleStatus.DISPONIVEL

    def test_accepts_model_instance(self, ledger: MovementLedger) -> None:
        vehicle = ledger.add_vehicle("ABC1D23", "GOL")
        driver = ledger.add_driver("Ana")
        trip = CompletedTrip(**_trip(vehicle.id, driver.id))
        ledger.add_completed_log(trip)
        assert len(ledger.list_movements()) == 2

    def test_km_in_below_km_out_rejected(self, ledger: MovementLedger) -> None:
        vehicle = ledger.add_vehicle("ABC1D23", "GOL")
        driver = ledger.add_driver("Ana")
        with pytest.raises(ValidationError):
            ledger.add_completed_log(_trip(vehicle.id, driver.id, km_out=100, km_in=90))
        assert ledger.list_movements() == []

    def test_arrival_before_departure_rejected(self, ledger: MovementLedger) -> None:
        vehicle = ledger.add_vehicle("ABC1D23", "GOL")
        driver = ledger.add_driver("Ana")
        out = datetime(2026, 3, 1, 11, 0, tzinfo=UTC)
        with pytest.raises(ValidationError):
            ledger.add_completed_log(
                _trip(vehicle.id, driver.id, timestamp_out=out, timestamp_in=out - timedelta(seconds=1))
            )
        with pytest.raises(ValidationError):
            ledger.add_completed_log(_trip(vehicle.id, driver.id, timestamp_out=out, timestamp_in=out))
        assert ledger.list_movements() == []

    @pytest.mark.parametrize(
        "overrides",
        [
            {"km_out": -5},
            {"destination": "   "},
            {"km_in": "lots"},
            {"km_in": True},
            {"km_out": 1.0},
        ],
    )
    def test_invalid_fields_rejected(self, ledger: MovementLedger, overrides: dict[str, object]) -> None:
        vehicle = ledger.add_vehicle("ABC1D23", "GOL")
        driver = ledger.add_driver("Ana")
        with pytest.raises(ValidationError):
            ledger.add_completed_log(_trip(vehicle.id, driver.id, **overrides))
        assert ledger.list_movements() == []

    def test_unknown_vehicle_rejected(self, ledger: MovementLedger) -> None:
        driver = ledger.add_driver("Ana")
        with pytest.raises(NotFoundError):
            ledger.add_completed_log(_trip("v_missing", driver.id))

    def test_naive_times_are_local(self, ledger: MovementLedger) -> None:
        vehicle = ledger.add_vehicle("ABC1D23", "GOL")
        driver = ledger.add_driver("Ana")
        data = {
            "vehicleId": vehicle.id,
            "driverIdOut": driver.id,
            "timestampOut": "2026-03-10T00:30",
            "kmOut": 100,
            "destination": "Canoas",
            "driverIdIn": driver.id,
            "timestampIn": "2026-03-10T01:30",
            "kmIn": 140,
        }

        departure, arrival = ledger.add_completed_log(data)

        # Sao Paulo is UTC-3.
        assert departure.timestamp == datetime(2026, 3, 10, 3, 30, tzinfo=UTC)
        assert arrival.timestamp == datetime(2026, 3, 10, 4, 30, tzinfo=UTC)
        assert len(ledger.history(on_date=date(2026, 3, 10))) == 2
        assert ledger.history(on_date=date(2026, 3, 9)) == []
        assert [t.distance_km for t in ledger.completed_trips(on_date=date(2026, 3, 10))] == [40]

    def test_naive_time_compared_in_local_zone(self, ledger: MovementLedger) -> None:
        vehicle = ledger.add_vehicle("ABC1D23", "GOL")
        driver = ledger.add_driver("Ana")
        trip = _trip(
            vehicle.id,
            driver.id,
            timestamp_out=datetime(2026, 3, 10, 8, 0),
            timestamp_in=datetime(2026, 3, 10, 10, 30, tzinfo=UTC),
        )
        # 08:00 local is 11:00 UTC, after the arrival.
        with pytest.raises(ValidationError):
            ledger.add_completed_log(trip)
        assert ledger.list_movements() == []


# ------------------------------------------------------------------
# Common destinations and seed data
# ------------------------------------------------------------------


def test_common_destinations_deduplicated_in_order(ledger: MovementLedger) -> None:
    assert ledger.add_common_destination("Centro") == ["Centro"]
    assert ledger.add_common_destination(" centro ") == ["Centro"]
    assert ledger.add_common_destination("   ") == ["Centro"]
    assert ledger.add_common_destination("Porto Alegre") == ["Centro", "Porto Alegre"]
    assert ledger.list_common_destinations() == ["Centro", "Porto Alegre"]


def test_seed_defaults_only_fills_missing_keys(store: MemoryStore, clock) -> None:
    ledger = MovementLedger(store, config=LedgerConfig(seed_defaults=True), clock=clock)

    drivers = ledger.list_drivers()
    vehicles = ledger.list_vehicles()
    assert len(drivers) == 22
    assert drivers[0].id == "d_1"
    assert drivers[0].name == "Jose Carlos"
    assert len(vehicles) == 9
    assert vehicles[0].id == "v_JBR5F82"
    assert all(v.status == VehicleStatus.DISPONIVEL for v in vehicles)
    assert ledger.list_movements() == []

    ledger.add_driver("Ana")
    assert ledger.seed_defaults() == []
    assert len(ledger.list_drivers()) == 23


# ------------------------------------------------------------------
# Store failures and concurrent writers
# ------------------------------------------------------------------


class _FailingStore(MemoryStore):
    def _write(self, updates, revision):  # type: ignore[no-untyped-def]
        raise StorageError("quota exceeded")


class _RacingStore(MemoryStore):
    """Lets another writer commit right after the ledger starts reading."""

    def __init__(self) -> None:
        super().__init__()
        self.interfere = False

    def get(self, key):  # type: ignore[no-untyped-def]
        value = super().get(key)
        if self.interfere:
            self.interfere = False
            self.commit({"commonDestinations": ["Elsewhere"]})
        return value


class TestStoreFailures:
    def test_corrupted_collection_reads_empty(self, store: MemoryStore, ledger: MovementLedger, caplog) -> None:
        store.set_raw("vehicles", "{not json")
        with caplog.at_level(logging.WARNING, logger="portaria.ledger"):
            assert ledger.list_vehicles() == []
        assert "vehicles" in caplog.text

    def test_corrupted_collection_blocks_writes(self, store: MemoryStore, ledger: MovementLedger) -> None:
        store.set_raw("vehicles", '[{"unexpected": true}]')
        with pytest.raises(StorageError):
            ledger.add_vehicle("ABC1D23", "GOL")

    def test_write_failure_raises_by_default(self, clock) -> None:
        ledger = MovementLedger(_FailingStore(), config=LedgerConfig(), clock=clock)
        with pytest.raises(StorageError):
            ledger.add_driver("Ana")

    def test_write_failure_can_be_logged_only(self, clock, caplog) -> None:
        config = LedgerConfig(raise_on_write_error=False)
        ledger = MovementLedger(_FailingStore(), config=config, clock=clock)
        with caplog.at_level(logging.ERROR, logger="portaria.ledger"):
            driver = ledger.add_driver("Ana")
        assert driver.name == "Ana"
        assert ledger.list_drivers() == []
        assert "Failed to write" in caplog.text

    def test_concurrent_writer_causes_conflict(self, clock) -> None:
        store = _RacingStore()
        ledger = MovementLedger(store, config=LedgerConfig(), clock=clock)
        store.interfere = True

        with pytest.raises(ConflictError):
            ledger.add_driver("Ana")

        assert ledger.list_drivers() == []
        assert ledger.list_common_destinations() == ["Elsewhere"]
