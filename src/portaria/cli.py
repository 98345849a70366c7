"""Command line front end for the gate ledger.

Usage
-----
Point the CLI at a store file (or set ``PORTARIA_STORE_PATH``)::

    portaria --store portaria.json add-vehicle ABC1D23 GOL
    portaria --store portaria.json add-driver "Ana"
    portaria --store portaria.json saida ABC1D23 --driver Ana --km 1200 --destination Centro
    portaria --store portaria.json chegada ABC1D23 --driver Ana --km 1234
    portaria --store portaria.json history --date today
    portaria --store portaria.json export --output backup.json
    portaria --store portaria.json import backup.json --yes

This is the input boundary: operator input is validated here (km parsing,
destination, same-day km check) before the ledger is called.
"""

from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Sequence
from datetime import date, datetime
from pathlib import Path

from portaria._constants import backup_filename
from portaria.config import LedgerConfig
from portaria.entry import check_arrival_km, check_destination, parse_km
from portaria.exceptions import NotFoundError, PortariaError, ValidationError
from portaria.history import page_limit
from portaria.ledger import MovementLedger
from portaria.models.driver import Driver
from portaria.models.movement import CompletedTrip, Movement
from portaria.models.vehicle import Vehicle

_logger = logging.getLogger(__name__)


# ── helpers ──────────────────────────────────────────────────


def _vehicle(ledger: MovementLedger, plate: str) -> Vehicle:
    vehicle = ledger.find_vehicle_by_plate(plate)
    if vehicle is None:
        raise NotFoundError(f"no vehicle with plate {plate.strip().upper()}", record_id=plate)
    return vehicle


def _driver(ledger: MovementLedger, name: str) -> Driver:
    driver = ledger.find_driver_by_name(name)
    if driver is None:
        raise NotFoundError(f"no driver named {name.strip()!r}", record_id=name)
    return driver


def _parse_day(ledger: MovementLedger, value: str | None) -> date | None:
    if value is None or value == "all":
        return None
    if value == "today":
        return ledger.today()
    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        raise ValidationError(f"invalid date {value!r}, expected YYYY-MM-DD") from exc


def _parse_datetime(value: str) -> datetime:
    try:
        return datetime.fromisoformat(value)
    except ValueError as exc:
        raise ValidationError(f"invalid date/time {value!r}, expected ISO-8601") from exc


def _format_movement(
    ledger: MovementLedger,
    movement: Movement,
    vehicles: dict[str, Vehicle],
    drivers: dict[str, Driver],
) -> str:
    vehicle = vehicles.get(movement.vehicle_id)
    driver = drivers.get(movement.driver_id)
    when = movement.timestamp.astimezone(ledger.tz).strftime("%d/%m/%Y %H:%M")
    plate = vehicle.plate if vehicle else f"<{movement.vehicle_id}>"
    name = driver.name if driver else f"<{movement.driver_id}>"
    line = f"{when}  {movement.type:<7}  {plate:<8}  {movement.km:>8} km  {name}"
    if movement.destination:
        line += f"  -> {movement.destination}"
    return line


# ── commands ─────────────────────────────────────────────────


def _cmd_vehicles(ledger: MovementLedger, _args: argparse.Namespace) -> None:
    departures = ledger.open_departures()
    for vehicle in ledger.list_vehicles():
        line = f"{vehicle.plate:<8}  {vehicle.model:<12}  {vehicle.status}"
        departure = departures.get(vehicle.id)
        if departure is not None and departure.destination:
            line += f"  ({departure.destination}, {departure.km} km)"
        if (departure is not None) != vehicle.is_out:
            line += "  [status out of sync, run 'reconcile']"
        print(line)


def _cmd_add_vehicle(ledger: MovementLedger, args: argparse.Namespace) -> None:
    vehicle = ledger.add_vehicle(args.plate, args.model)
    print(f"added vehicle {vehicle.plate}")


def _cmd_delete_vehicle(ledger: MovementLedger, args: argparse.Namespace) -> None:
    vehicle = _vehicle(ledger, args.plate)
    ledger.delete_vehicle(vehicle.id)
    print(f"deleted vehicle {vehicle.plate}")


def _cmd_drivers(ledger: MovementLedger, _args: argparse.Namespace) -> None:
    for driver in ledger.list_drivers():
        print(driver.name)


def _cmd_add_driver(ledger: MovementLedger, args: argparse.Namespace) -> None:
    driver = ledger.add_driver(args.name)
    print(f"added driver {driver.name}")


def _cmd_destinations(ledger: MovementLedger, _args: argparse.Namespace) -> None:
    for destination in ledger.list_common_destinations():
        print(destination)


def _cmd_saida(ledger: MovementLedger, args: argparse.Namespace) -> None:
    vehicle = _vehicle(ledger, args.plate)
    driver = _driver(ledger, args.driver)
    km = parse_km(args.km)
    destination = check_destination(args.destination)
    result = ledger.register_saida(vehicle.id, driver.id, km, destination)
    ledger.add_common_destination(destination)
    print(f"{vehicle.plate} left for {destination} at {result.movement.km} km")


def _cmd_chegada(ledger: MovementLedger, args: argparse.Namespace) -> None:
    vehicle = _vehicle(ledger, args.plate)
    driver = _driver(ledger, args.driver)
    km = parse_km(args.km)
    departure = ledger.open_departure(vehicle.id)
    check_arrival_km(departure, km, now=ledger.now(), tz=ledger.tz)
    ledger.register_chegada(vehicle.id, driver.id, km)
    if departure is not None:
        print(f"{vehicle.plate} back from {departure.destination}: {km - departure.km} km")
    else:
        print(f"{vehicle.plate} arrived at {km} km")


def _cmd_manual(ledger: MovementLedger, args: argparse.Namespace) -> None:
    vehicle = _vehicle(ledger, args.plate)
    trip = CompletedTrip(
        vehicle_id=vehicle.id,
        driver_id_out=_driver(ledger, args.driver_out).id,
        timestamp_out=_parse_datetime(args.time_out),
        km_out=parse_km(args.km_out),
        destination=check_destination(args.destination),
        driver_id_in=_driver(ledger, args.driver_in or args.driver_out).id,
        timestamp_in=_parse_datetime(args.time_in),
        km_in=parse_km(args.km_in),
    )
    ledger.add_completed_log(trip)
    print(f"recorded trip of {vehicle.plate} to {trip.destination}")


def _cmd_delete_movement(ledger: MovementLedger, args: argparse.Namespace) -> None:
    ledger.delete_movement(args.movement_id)
    print(f"deleted movement {args.movement_id}")


def _cmd_history(ledger: MovementLedger, args: argparse.Namespace) -> None:
    vehicles = {vehicle.id: vehicle for vehicle in ledger.list_vehicles()}
    drivers = {driver.id: driver for driver in ledger.list_drivers()}
    movements = ledger.history(
        on_date=_parse_day(ledger, args.date),
        query=args.search,
        limit=page_limit(args.page),
    )
    if not movements:
        print("no movements")
        return
    for movement in movements:
        print(f"{movement.id}  {_format_movement(ledger, movement, vehicles, drivers)}")


def _cmd_trips(ledger: MovementLedger, args: argparse.Namespace) -> None:
    vehicles = {vehicle.id: vehicle for vehicle in ledger.list_vehicles()}
    trips = ledger.completed_trips(on_date=_parse_day(ledger, args.date))
    for trip in trips:
        vehicle = vehicles.get(trip.vehicle_id)
        plate = vehicle.plate if vehicle else f"<{trip.vehicle_id}>"
        print(f"{plate:<8}  {trip.destination or '-':<20}  {trip.distance_km:>6} km")
    print(f"{len(trips)} trip(s)")


def _cmd_export(ledger: MovementLedger, args: argparse.Namespace) -> None:
    output = Path(args.output) if args.output else Path(backup_filename(ledger.today()))
    output.write_text(ledger.export_json(), encoding="utf-8")
    print(f"backup written to {output}")


def _cmd_import(ledger: MovementLedger, args: argparse.Namespace) -> None:
    if not args.yes:
        raise ValidationError("import replaces all data; pass --yes to confirm")
    snapshot = ledger.import_snapshot(Path(args.file).read_bytes())
    print(
        f"imported {len(snapshot.vehicles)} vehicles, {len(snapshot.drivers)} drivers, "
        f"{len(snapshot.movements)} movements"
    )


def _cmd_reconcile(ledger: MovementLedger, _args: argparse.Namespace) -> None:
    changed = ledger.reconcile_statuses()
    for vehicle in changed:
        print(f"{vehicle.plate}: {vehicle.status}")
    print(f"{len(changed)} vehicle(s) updated")


# ── parser ───────────────────────────────────────────────────


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="portaria", description="Vehicle gate log")
    parser.add_argument("--store", help="JSON store file (default: $PORTARIA_STORE_PATH)")
    parser.add_argument("--verbose", "-v", action="store_true")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("vehicles", help="List vehicles and their status").set_defaults(func=_cmd_vehicles)

    p = sub.add_parser("add-vehicle", help="Register a vehicle")
    p.add_argument("plate")
    p.add_argument("model")
    p.set_defaults(func=_cmd_add_vehicle)

    p = sub.add_parser("delete-vehicle", help="Delete a vehicle that is not out")
    p.add_argument("plate")
    p.set_defaults(func=_cmd_delete_vehicle)

    sub.add_parser("drivers", help="List drivers").set_defaults(func=_cmd_drivers)

    p = sub.add_parser("add-driver", help="Register a driver")
    p.add_argument("name")
    p.set_defaults(func=_cmd_add_driver)

    sub.add_parser("destinations", help="List common destinations").set_defaults(func=_cmd_destinations)

    p = sub.add_parser("saida", help="Register a departure")
    p.add_argument("plate")
    p.add_argument("--driver", required=True)
    p.add_argument("--km", required=True)
    p.add_argument("--destination", required=True)
    p.set_defaults(func=_cmd_saida)

    p = sub.add_parser("chegada", help="Register an arrival")
    p.add_argument("plate")
    p.add_argument("--driver", required=True)
    p.add_argument("--km", required=True)
    p.set_defaults(func=_cmd_chegada)

    p = sub.add_parser("manual", help="Backfill a complete trip")
    p.add_argument("plate")
    p.add_argument("--driver-out", required=True)
    p.add_argument("--time-out", required=True, help="ISO-8601 departure time (local time when no offset is given)")
    p.add_argument("--km-out", required=True)
    p.add_argument("--destination", required=True)
    p.add_argument("--driver-in", help="Arrival driver (default: departure driver)")
    p.add_argument("--time-in", required=True, help="ISO-8601 arrival time")
    p.add_argument("--km-in", required=True)
    p.set_defaults(func=_cmd_manual)

    p = sub.add_parser("delete-movement", help="Delete a movement by id")
    p.add_argument("movement_id")
    p.set_defaults(func=_cmd_delete_movement)

    p = sub.add_parser("history", help="Browse movements, newest first")
    p.add_argument("--date", default="today", help="YYYY-MM-DD, 'today' or 'all'")
    p.add_argument("--search", help="Match plate, model, driver or destination")
    p.add_argument("--page", type=int, default=1, help="Number of pages to show")
    p.set_defaults(func=_cmd_history)

    p = sub.add_parser("trips", help="Completed trips")
    p.add_argument("--date", default="today", help="YYYY-MM-DD, 'today' or 'all'")
    p.set_defaults(func=_cmd_trips)

    p = sub.add_parser("export", help="Write a JSON backup")
    p.add_argument("--output", help="Output file (default: backup_controle_portaria_<date>.json)")
    p.set_defaults(func=_cmd_export)

    p = sub.add_parser("import", help="Replace all data with a JSON backup")
    p.add_argument("file")
    p.add_argument("--yes", action="store_true", help="Confirm overwriting existing data")
    p.set_defaults(func=_cmd_import)

    sub.add_parser("reconcile", help="Recompute stored vehicle statuses from history").set_defaults(
        func=_cmd_reconcile
    )
    return parser


def main(argv: Sequence[str] | None = None, *, ledger: MovementLedger | None = None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        if ledger is None:
            overrides = {"store_path": Path(args.store)} if args.store else {}
            ledger = MovementLedger(config=LedgerConfig.from_env(**overrides))
        args.func(ledger, args)
    except PortariaError as exc:
        _logger.debug("Command %s failed", args.command, exc_info=True)
        print(f"error: {exc}", file=sys.stderr)
        return 1
    except OSError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
