from __future__ import annotations

import json

import pytest

from lease_calc.cli import main


def _run(capsys, *argv: str):
    assert main(list(argv)) == 0
    return json.loads(capsys.readouterr().out)


DEAL = {
    "carMake": "Toyota",
    "carModel": "RAV4",
    "carTier": "XLE",
    "msrp": 35_000,
    "discount": 5,
    "residualPercent": 60,
    "apr": 3.0,
    "leaseTerm": 36,
    "salesTaxPercent": 7,
    "tagTitleFilingFees": 200,
    "handlingFees": 700,
    "downPayment": 2_000,
    "ficoScore8": 760,
}


def test_residual_command(capsys):
    out = _run(capsys, "residual", "--term-months", "48")
    assert out["expected_residual_percent"] == 54.0
    assert out["ideal_range"] == [52.0, 56.0]

    out = _run(capsys, "residual", "--term-months", "36", "--actual", "55")
    assert out["residual_below_expected"] is True


def test_breakdown_from_vehicle_json(capsys):
    out = _run(capsys, "breakdown", "--vehicle-json", json.dumps(DEAL))
    assert out["name"] == "Toyota RAV4 XLE"
    assert abs(out["breakdown"]["total_monthly_payment"] - 473.5790278) < 1e-6
    assert out["credit"]["tier"] == "Very Good"
    assert [p["months"] for p in out["schedule"]] == [12, 12, 12]


def test_breakdown_overrides(capsys):
    out = _run(capsys, "breakdown", "--vehicle-json", json.dumps(DEAL), "--money-factor", "0.002")
    assert abs(out["breakdown"]["apr"] - 4.8) < 1e-9


def test_breakdown_rejects_bad_json():
    with pytest.raises(SystemExit):
        main(["breakdown", "--vehicle-json", "{nope"])


def test_add_compare_delete_round_trip(tmp_path, capsys):
    store = str(tmp_path / "cars.json")
    cheap = dict(DEAL, id="cheap", msrp=30_000)
    pricey = dict(DEAL, id="pricey", msrp=45_000)

    assert _run(capsys, "add", "--store", store, "--vehicle-json", json.dumps(pricey))["n_vehicles"] == 1
    assert _run(capsys, "add", "--store", store, "--vehicle-json", json.dumps(cheap))["n_vehicles"] == 2

    ranking = _run(capsys, "compare", "--store", store)["ranking"]
    assert [r["id"] for r in ranking] == ["cheap", "pricey"]
    assert ranking[0]["monthly_delta_vs_best"] == 0.0

    overrides = json.dumps({"pricey": {"residual_percent": 90}})
    ranking = _run(capsys, "compare", "--store", store, "--overrides-json", overrides)["ranking"]
    assert [r["id"] for r in ranking] == ["pricey", "cheap"]
    assert ranking[0]["pinned"] is True

    out = _run(capsys, "delete", "--store", store, "--id", "cheap")
    assert out == {"deleted": "cheap", "current_id": "pricey", "n_vehicles": 1}

    with pytest.raises(SystemExit):
        main(["delete", "--store", store, "--id", "pricey"])


def test_sweep_from_store(tmp_path, capsys):
    store = str(tmp_path / "cars.json")
    _run(capsys, "add", "--store", store, "--vehicle-json", json.dumps(dict(DEAL, id="only")))
    out = _run(capsys, "sweep", "discount", "--store", store)
    assert out["kind"] == "discount"
    assert [row["discount_percent"] for row in out["rows"]] == [0.0, 5.0, 10.0, 15.0, 20.0, 25.0]
