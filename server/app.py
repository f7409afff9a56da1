from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import asdict
from http import HTTPStatus
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path
from typing import Any
from urllib.parse import parse_qs, urlsplit

# Allow running from repo root without installing.
REPO_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = REPO_ROOT / "src"
sys.path.insert(0, str(SRC_DIR))

from lease_calc.comparison.evaluator import evaluate  # noqa: E402
from lease_calc.financing.rates import as_amount  # noqa: E402
from lease_calc.pricing.engine import compute_breakdown, payment_schedule  # noqa: E402
from lease_calc.pricing.overrides import Overrides  # noqa: E402
from lease_calc.residual.advisory import (  # noqa: E402
    BASELINE_MILES_PER_YEAR,
    expected_residual_percent,
    ideal_residual_range,
)
from lease_calc.storage.collection import JsonCollectionStore, migrate_vehicle_record  # noqa: E402

logger = logging.getLogger("lease_calc.server")


class App(BaseHTTPRequestHandler):
    store: JsonCollectionStore | None = None

    def _send_json(self, status: int, payload: dict[str, Any]) -> None:
        data = json.dumps(payload).encode("utf-8")
        self.send_response(status)
        self.send_header("Content-Type", "application/json; charset=utf-8")
        self.send_header("Content-Length", str(len(data)))
        # Same-origin when serving UI + API together; still helpful for local experimentation.
        self.send_header("Access-Control-Allow-Origin", "*")
        self.end_headers()
        self.wfile.write(data)

    def _read_json_body(self) -> Any:
        n = int(self.headers.get("Content-Length", "0") or "0")
        raw = self.rfile.read(n) if n > 0 else b""
        if not raw:
            return None
        return json.loads(raw.decode("utf-8"))

    def log_message(self, format: str, *args: Any) -> None:  # noqa: A002
        logger.info("%s - %s", self.address_string(), format % args)

    def do_OPTIONS(self) -> None:  # noqa: N802
        self.send_response(HTTPStatus.NO_CONTENT)
        self.send_header("Access-Control-Allow-Origin", "*")
        self.send_header("Access-Control-Allow-Methods", "GET, POST, OPTIONS")
        self.send_header("Access-Control-Allow-Headers", "Content-Type")
        self.end_headers()

    def do_GET(self) -> None:  # noqa: N802
        url = urlsplit(self.path)
        route = url.path.rstrip("/")
        try:
            if route == "/api/expected-residual":
                q = parse_qs(url.query)
                term = int(q.get("term", ["36"])[0])
                miles = int(q.get("miles", [str(BASELINE_MILES_PER_YEAR)])[0])
                lo, hi = ideal_residual_range(term, miles)
                return self._send_json(
                    HTTPStatus.OK,
                    {"expected_residual_percent": expected_residual_percent(term, miles), "ideal_range": [lo, hi]},
                )

            if route == "/api/vehicles":
                collection = self.store.load() if self.store is not None else None
                if collection is None:
                    return self._send_json(HTTPStatus.OK, {"cars": [], "currentCarId": None})
                return self._send_json(HTTPStatus.OK, collection.to_payload())

            return self._send_json(HTTPStatus.NOT_FOUND, {"error": "Unknown endpoint"})
        except ValueError as e:
            return self._send_json(HTTPStatus.BAD_REQUEST, {"error": str(e)})

    def do_POST(self) -> None:  # noqa: N802
        try:
            body = self._read_json_body()
            if not isinstance(body, dict):
                return self._send_json(HTTPStatus.BAD_REQUEST, {"error": "Expected JSON object body"})

            route = self.path.rstrip("/")
            if route == "/api/breakdown":
                return self._send_json(HTTPStatus.OK, _breakdown(body))
            if route == "/api/compare":
                return self._send_json(HTTPStatus.OK, _compare(body))

            return self._send_json(HTTPStatus.NOT_FOUND, {"error": "Unknown endpoint"})
        except ValueError as e:
            # Includes JSON decode errors and invalid vehicle configurations.
            return self._send_json(HTTPStatus.BAD_REQUEST, {"error": str(e)})
        except Exception as e:  # pragma: no cover
            logger.exception("request failed: %s", self.path)
            return self._send_json(HTTPStatus.INTERNAL_SERVER_ERROR, {"error": f"{type(e).__name__}: {e}"})


def _breakdown(body: dict[str, Any]) -> dict[str, Any]:
    vehicle = body.get("vehicle")
    if not isinstance(vehicle, dict):
        raise ValueError("Body must include vehicle object")
    overrides = body.get("overrides")
    if overrides is not None and not isinstance(overrides, dict):
        raise ValueError("overrides must be an object")
    v = migrate_vehicle_record(vehicle)
    b = compute_breakdown(v, Overrides.from_mapping(overrides))
    miles = int(as_amount(body.get("milesPerYear")) or BASELINE_MILES_PER_YEAR)
    return {
        "breakdown": b.as_dict(),
        "schedule": [asdict(p) for p in payment_schedule(b)],
        "expected_residual_percent": expected_residual_percent(b.lease_term_months, miles),
    }


def _id_list(body: dict[str, Any], key: str) -> list[str] | None:
    ids = body.get(key)
    if ids is None:
        return None
    if not isinstance(ids, list) or not all(isinstance(i, str) for i in ids):
        raise ValueError(f"{key} must be an array of vehicle id strings")
    return ids


def _compare(body: dict[str, Any]) -> dict[str, Any]:
    raw = body.get("vehicles")
    if not isinstance(raw, list):
        raise ValueError("Body must include vehicles array")
    vehicles = [migrate_vehicle_record(r) for r in raw if isinstance(r, dict)]
    selected = _id_list(body, "selectedIds") or [v.id for v in vehicles]
    raw_overrides = body.get("overrides") or {}
    if not isinstance(raw_overrides, dict) or not all(
        o is None or isinstance(o, dict) for o in raw_overrides.values()
    ):
        raise ValueError("overrides must map vehicle ids to override objects")
    overrides = {k: Overrides.from_mapping(o) for k, o in raw_overrides.items()}
    global_down = body.get("globalDownPayment")

    ranked = evaluate(
        vehicles,
        selected,
        global_down_payment=None if global_down is None else as_amount(global_down),
        per_vehicle_overrides=overrides,
        settled_order=_id_list(body, "settledOrder"),
        miles_per_year=int(as_amount(body.get("milesPerYear")) or BASELINE_MILES_PER_YEAR),
    )
    return {
        "ranking": [
            {
                "id": r.vehicle.id,
                "name": r.vehicle.display_name,
                "pinned": r.pinned,
                "breakdown": r.breakdown.as_dict(),
                "expected_residual_percent": r.expected_residual,
                "residual_delta": r.residual_delta,
                "monthly_delta_vs_best": r.monthly_delta_vs_best,
                "flags": list(r.flags),
            }
            for r in ranked
        ]
    }


def main() -> int:
    ap = argparse.ArgumentParser()
    ap.add_argument("--port", type=int, default=8000)
    ap.add_argument("--store", default=None, help="Saved vehicle collection (JSON) served at /api/vehicles.")
    ap.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    args = ap.parse_args()

    logging.basicConfig(level=args.log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    # Bind handler class vars
    App.store = JsonCollectionStore(args.store) if args.store else None

    httpd = ThreadingHTTPServer(("127.0.0.1", args.port), App)
    logger.info("Serving lease API at http://127.0.0.1:%d/", args.port)
    if App.store is not None:
        logger.info("Vehicle store: %s", App.store.path)
    httpd.serve_forever()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
