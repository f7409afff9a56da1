from __future__ import annotations

import json
import threading
import urllib.error
import urllib.request
from http.server import ThreadingHTTPServer

import pytest

from server.app import App, _breakdown, _compare

CARS = [
    {"id": "a", "carMake": "Make", "carModel": "A", "msrp": 36_000, "residualPercent": 50, "handlingFees": 0},
    {"id": "b", "carMake": "Make", "carModel": "B", "msrp": 43_200, "residualPercent": 50, "handlingFees": 0},
    {"id": "c", "carMake": "Make", "carModel": "C", "msrp": 50_400, "residualPercent": 50, "handlingFees": 0},
]


def _ids(out) -> list[str]:
    return [r["id"] for r in out["ranking"]]


def test_compare_ranks_and_holds_pinned_slot():
    assert _ids(_compare({"vehicles": CARS})) == ["a", "b", "c"]
    body = {"vehicles": CARS, "overrides": {"b": {"residualPercent": 70}}, "settledOrder": ["a", "b", "c"]}
    assert _ids(_compare(body)) == ["a", "b", "c"]


def test_compare_accepts_record_spelling_for_overrides():
    out = _compare({"vehicles": CARS, "selectedIds": ["b"], "overrides": {"b": {"downPayment": 3_600}}})
    row = out["ranking"][0]
    assert row["breakdown"]["total_down_payment"] == 3_600
    assert abs(row["breakdown"]["total_monthly_payment"] - 500.0) < 1e-9


@pytest.mark.parametrize(
    "body",
    [
        {"vehicles": CARS, "settledOrder": [{"id": "a"}]},
        {"vehicles": CARS, "settledOrder": "abc"},
        {"vehicles": CARS, "selectedIds": [["a"]]},
        {"vehicles": CARS, "overrides": {"a": ["apr", 3]}},
        {"vehicles": CARS, "selectedIds": ["ghost"]},
    ],
)
def test_compare_rejects_malformed_bodies(body):
    with pytest.raises(ValueError):
        _compare(body)


@pytest.mark.parametrize("term", [36.9, float("inf")])
def test_breakdown_rejects_non_whole_term(term):
    with pytest.raises(ValueError):
        _breakdown({"vehicle": dict(CARS[0], leaseTerm=term)})


@pytest.fixture()
def base_url():
    httpd = ThreadingHTTPServer(("127.0.0.1", 0), App)
    t = threading.Thread(target=httpd.serve_forever, daemon=True)
    t.start()
    yield f"http://127.0.0.1:{httpd.server_address[1]}"
    httpd.shutdown()
    httpd.server_close()


def _post(url: str, payload: dict) -> tuple[int, dict]:
    req = urllib.request.Request(
        url, data=json.dumps(payload).encode("utf-8"), headers={"Content-Type": "application/json"}, method="POST"
    )
    try:
        with urllib.request.urlopen(req) as resp:
            return resp.status, json.loads(resp.read())
    except urllib.error.HTTPError as e:
        return e.code, json.loads(e.read())


def test_bad_settled_order_is_a_client_error(base_url):
    status, out = _post(f"{base_url}/api/compare", {"vehicles": CARS, "settledOrder": [{"id": "a"}]})
    assert status == 400
    assert "settledOrder" in out["error"]

    status, out = _post(f"{base_url}/api/compare", {"vehicles": CARS, "settledOrder": ["c", "b", "a"]})
    assert status == 200
    assert _ids(out) == ["a", "b", "c"]
