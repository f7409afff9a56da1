from __future__ import annotations

import argparse
import json
import logging
from dataclasses import asdict
from typing import Any

import pandas as pd

from lease_calc.comparison.evaluator import RankedVehicle, evaluate
from lease_calc.comparison.table import comparison_frame
from lease_calc.pricing.engine import compute_breakdown, payment_schedule
from lease_calc.pricing.overrides import Overrides
from lease_calc.pricing.sweeps import discount_sweep, rate_sweep, residual_sweep
from lease_calc.residual.advisory import (
    BASELINE_MILES_PER_YEAR,
    expected_residual_percent,
    fico_guidance,
    ideal_residual_range,
    residual_below_expected,
)
from lease_calc.storage.collection import JsonCollectionStore, SavedCollection, migrate_vehicle_record
from lease_calc.vehicles.record import LeaseVehicle

logger = logging.getLogger(__name__)

SWEEPS = {"rate": rate_sweep, "discount": discount_sweep, "residual": residual_sweep}


def _print(out: Any) -> None:
    print(json.dumps(out, indent=2, sort_keys=True))


def _load_json_arg(raw: str, flag: str) -> Any:
    try:
        return json.loads(raw)
    except json.JSONDecodeError as e:
        raise SystemExit(f"{flag} must be valid JSON: {e}") from e


def _load_vehicle_json(vehicle_json: str) -> LeaseVehicle:
    d = _load_json_arg(vehicle_json, "--vehicle-json")
    if not isinstance(d, dict):
        raise SystemExit("--vehicle-json must decode to an object/dict")
    try:
        return migrate_vehicle_record(d)
    except ValueError as e:
        raise SystemExit(f"--vehicle-json: {e}") from e


def _load_store(path: str | None) -> SavedCollection:
    if not path:
        raise SystemExit("provide --store")
    collection = JsonCollectionStore(path).load()
    if collection is None or not collection.vehicles:
        raise SystemExit(f"no vehicles stored in {path}")
    return collection


def _pick_vehicle(args: argparse.Namespace) -> LeaseVehicle:
    if args.vehicle_json:
        return _load_vehicle_json(args.vehicle_json)
    collection = _load_store(args.store)
    vehicle_id = args.id or collection.current_id
    try:
        return collection.get(vehicle_id)
    except KeyError:
        raise SystemExit(f"no vehicle with id {vehicle_id!r} in {args.store}") from None


def _overrides_from_args(args: argparse.Namespace) -> Overrides:
    return Overrides(
        discount_percent=args.discount_percent,
        residual_percent=args.residual_percent,
        apr=args.apr,
        money_factor=args.money_factor,
        down_payment=args.down_payment,
        total_fees=args.total_fees,
    )


def _load_vehicles_csv(path: str) -> list[LeaseVehicle]:
    df = pd.read_csv(path)
    records = df.astype(object).where(df.notna(), None).to_dict(orient="records")
    try:
        return [migrate_vehicle_record(r) for r in records]
    except ValueError as e:
        raise SystemExit(f"{path}: {e}") from e


def _ranked_out(r: RankedVehicle) -> dict[str, Any]:
    return {
        "id": r.vehicle.id,
        "name": r.vehicle.display_name,
        "pinned": r.pinned,
        "overrides": asdict(r.overrides),
        "breakdown": r.breakdown.as_dict(),
        "expected_residual_percent": r.expected_residual,
        "residual_delta": r.residual_delta,
        "monthly_delta_vs_best": r.monthly_delta_vs_best,
        "flags": list(r.flags),
    }


def cmd_breakdown(args: argparse.Namespace) -> int:
    vehicle = _pick_vehicle(args)
    try:
        b = compute_breakdown(vehicle, _overrides_from_args(args))
    except ValueError as e:
        raise SystemExit(str(e)) from e

    expected = expected_residual_percent(b.lease_term_months, args.miles_per_year)
    guidance = fico_guidance(vehicle.fico_score8)
    out = {
        "vehicle": vehicle.to_record(),
        "name": vehicle.display_name,
        "breakdown": b.as_dict(),
        "expected_residual_percent": expected,
        "residual_below_expected": residual_below_expected(b.residual_percent, expected),
        "credit": asdict(guidance),
        "schedule": [asdict(p) for p in payment_schedule(b)],
    }
    _print(out)
    return 0


def cmd_compare(args: argparse.Namespace) -> int:
    if args.vehicles_csv:
        vehicles = _load_vehicles_csv(args.vehicles_csv)
    else:
        vehicles = _load_store(args.store).vehicles

    selected = args.ids.split(",") if args.ids else [v.id for v in vehicles]
    per_vehicle: dict[str, Overrides] = {}
    if args.overrides_json:
        raw = _load_json_arg(args.overrides_json, "--overrides-json")
        if not isinstance(raw, dict):
            raise SystemExit("--overrides-json must map vehicle ids to override objects")
        try:
            per_vehicle = {k: Overrides.from_mapping(v) for k, v in raw.items()}
        except (TypeError, ValueError) as e:
            raise SystemExit(f"--overrides-json: {e}") from e

    try:
        ranked = evaluate(
            vehicles,
            selected,
            global_down_payment=args.global_down_payment,
            per_vehicle_overrides=per_vehicle,
            miles_per_year=args.miles_per_year,
        )
    except ValueError as e:
        raise SystemExit(str(e)) from e

    if args.table:
        with pd.option_context("display.max_rows", None, "display.width", 200):
            print(comparison_frame(ranked).to_string())
        return 0
    _print({"ranking": [_ranked_out(r) for r in ranked]})
    return 0


def cmd_sweep(args: argparse.Namespace) -> int:
    vehicle = _pick_vehicle(args)
    try:
        df = SWEEPS[args.kind](vehicle)
    except ValueError as e:
        raise SystemExit(str(e)) from e
    _print({"kind": args.kind, "rows": df.to_dict(orient="records")})
    return 0


def cmd_add(args: argparse.Namespace) -> int:
    store = JsonCollectionStore(args.store)
    collection = store.load() or SavedCollection()
    vehicle = _load_vehicle_json(args.vehicle_json) if args.vehicle_json else LeaseVehicle()
    try:
        collection.add(vehicle)
    except ValueError as e:
        raise SystemExit(str(e)) from e
    store.save(collection)
    logger.info("added vehicle %s to %s", vehicle.id, args.store)
    _print({"id": vehicle.id, "n_vehicles": len(collection.vehicles)})
    return 0


def cmd_delete(args: argparse.Namespace) -> int:
    store = JsonCollectionStore(args.store)
    collection = _load_store(args.store)
    try:
        collection.delete(args.id)
    except KeyError:
        raise SystemExit(f"no vehicle with id {args.id!r} in {args.store}") from None
    except ValueError as e:
        raise SystemExit(str(e)) from e
    store.save(collection)
    _print({"deleted": args.id, "current_id": collection.current_id, "n_vehicles": len(collection.vehicles)})
    return 0


def cmd_residual(args: argparse.Namespace) -> int:
    expected = expected_residual_percent(args.term_months, args.miles_per_year)
    lo, hi = ideal_residual_range(args.term_months, args.miles_per_year)
    out: dict[str, Any] = {
        "term_months": args.term_months,
        "miles_per_year": args.miles_per_year,
        "expected_residual_percent": expected,
        "ideal_range": [lo, hi],
    }
    if args.actual is not None:
        out["actual_residual_percent"] = args.actual
        out["residual_below_expected"] = residual_below_expected(args.actual, expected)
    _print(out)
    return 0


def _add_vehicle_source(p: argparse.ArgumentParser) -> None:
    p.add_argument("--vehicle-json", default=None, help="Vehicle record as JSON (stored camelCase layout).")
    p.add_argument("--store", default=None, help="Path to a saved vehicle collection (JSON).")
    p.add_argument("--id", default=None, help="Vehicle id in --store; defaults to the current vehicle.")


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="lease-calc")
    p.add_argument("--log-level", default="WARNING", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    sub = p.add_subparsers(dest="cmd", required=True)

    b = sub.add_parser("breakdown", help="Itemized monthly payment for one vehicle.")
    _add_vehicle_source(b)
    b.add_argument("--discount-percent", type=float, default=None)
    b.add_argument("--residual-percent", type=float, default=None)
    b.add_argument("--apr", type=float, default=None, help="Annual rate in percent (e.g. 3.0).")
    b.add_argument("--money-factor", type=float, default=None, help="Ignored when --apr is given.")
    b.add_argument("--down-payment", type=float, default=None)
    b.add_argument("--total-fees", type=float, default=None)
    b.add_argument("--miles-per-year", type=int, default=BASELINE_MILES_PER_YEAR)
    b.set_defaults(func=cmd_breakdown)

    c = sub.add_parser("compare", help="Rank vehicles by monthly payment under what-if overrides.")
    c.add_argument("--store", default=None)
    c.add_argument("--vehicles-csv", default=None, help="CSV with one vehicle record per row.")
    c.add_argument("--ids", default=None, help="Comma-separated vehicle ids to compare (default: all).")
    c.add_argument("--global-down-payment", type=float, default=None)
    c.add_argument("--overrides-json", default=None, help='Per-vehicle overrides, e.g. {"<id>": {"apr": 2.9}}.')
    c.add_argument("--miles-per-year", type=int, default=BASELINE_MILES_PER_YEAR)
    c.add_argument("--table", action="store_true", default=False, help="Print the side-by-side table.")
    c.set_defaults(func=cmd_compare)

    s = sub.add_parser("sweep", help="Payment or cost across a band of APR, discount or residual values.")
    s.add_argument("kind", choices=sorted(SWEEPS))
    _add_vehicle_source(s)
    s.set_defaults(func=cmd_sweep)

    a = sub.add_parser("add", help="Add a vehicle to a saved collection.")
    a.add_argument("--store", required=True)
    a.add_argument("--vehicle-json", default=None)
    a.set_defaults(func=cmd_add)

    d = sub.add_parser("delete", help="Delete a vehicle from a saved collection.")
    d.add_argument("--store", required=True)
    d.add_argument("--id", required=True)
    d.set_defaults(func=cmd_delete)

    r = sub.add_parser("residual", help="Expected residual percent for a term and mileage.")
    r.add_argument("--term-months", type=int, required=True)
    r.add_argument("--miles-per-year", type=int, default=BASELINE_MILES_PER_YEAR)
    r.add_argument("--actual", type=float, default=None, help="Entered residual percent to check.")
    r.set_defaults(func=cmd_residual)

    return p


def main(argv: list[str] | None = None) -> int:
    p = build_parser()
    args = p.parse_args(argv)
    logging.basicConfig(level=args.log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    return int(args.func(args))


if __name__ == "__main__":
    raise SystemExit(main())
