from __future__ import annotations

import pytest

from lease_calc.pricing.overrides import Overrides, layer_down_payment, resolve_terms
from lease_calc.vehicles.record import LeaseVehicle


def test_empty_overrides_use_stored_terms():
    v = LeaseVehicle(msrp=30_000, discount_percent=3, residual_percent=55, apr=2.4, down_payment=1_000, other_fees=50)
    t = resolve_terms(v, Overrides())
    assert Overrides().is_empty()
    assert (t.discount_percent, t.residual_percent, t.down_payment) == (3, 55, 1_000)
    assert abs(t.rate.apr - 2.4) < 1e-12
    assert t.total_fees == 750


def test_down_payment_precedence():
    stored = LeaseVehicle(down_payment=500)

    # per-vehicle beats global
    o = layer_down_payment(Overrides(down_payment=3_000), 1_000)
    assert resolve_terms(stored, o).down_payment == 3_000

    # global beats stored
    o = layer_down_payment(Overrides(), 1_000)
    assert resolve_terms(stored, o).down_payment == 1_000

    # stored when neither is set
    o = layer_down_payment(None, None)
    assert resolve_terms(stored, o).down_payment == 500


def test_global_down_payment_keeps_other_overrides():
    o = layer_down_payment(Overrides(apr=1.9, residual_percent=62), 2_000)
    assert o == Overrides(apr=1.9, residual_percent=62, down_payment=2_000)


def test_from_mapping():
    o = Overrides.from_mapping({"apr": "3.1", "down_payment": None})
    assert o == Overrides(apr=3.1)
    assert Overrides.from_mapping(None).is_empty()
    with pytest.raises(ValueError):
        Overrides.from_mapping({"msrp": 1})


def test_from_mapping_accepts_stored_record_spelling():
    o = Overrides.from_mapping({"downPayment": 1_000, "residualPercent": "58", "marketFactor": 0.0015, "discount": 4})
    assert o == Overrides(down_payment=1_000, residual_percent=58, money_factor=0.0015, discount_percent=4)
    with pytest.raises(ValueError):
        Overrides.from_mapping({"down_payment": 1, "downPayment": 2})
