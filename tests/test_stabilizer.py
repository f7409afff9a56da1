from __future__ import annotations

import pytest

from lease_calc.comparison.stabilizer import RankingStabilizer, RankingState
from lease_calc.pricing.overrides import Overrides
from lease_calc.vehicles.record import LeaseVehicle


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def _fleet() -> list[LeaseVehicle]:
    # payments 500 / 600 / 700 with no interest, fees or tax
    return [
        LeaseVehicle(id=i, msrp=msrp, residual_percent=50, handling_fees=0)
        for i, msrp in (("a", 36_000), ("b", 43_200), ("c", 50_400))
    ]


def _ids(ranked) -> list[str]:
    return [r.vehicle.id for r in ranked]


def test_starts_settled_with_natural_order():
    s = RankingStabilizer(clock=FakeClock())
    assert s.state is RankingState.SETTLED
    assert s.baseline is None
    assert _ids(s.rank(_fleet(), {"a", "b", "c"})) == ["a", "b", "c"]
    assert s.baseline == ["a", "b", "c"]


def test_edited_row_holds_position_until_quiet_window_passes():
    clock = FakeClock()
    s = RankingStabilizer(quiescence=1.5, clock=clock)
    fleet = _fleet()
    s.rank(fleet, {"a", "b", "c"})

    cheap_b = {"b": Overrides(residual_percent=70)}
    s.note_edit()
    assert s.state is RankingState.EDITING
    assert _ids(s.rank(fleet, {"a", "b", "c"}, per_vehicle_overrides=cheap_b)) == ["a", "b", "c"]

    clock.now = 1.0
    s.note_edit()
    clock.now = 2.0
    assert s.state is RankingState.EDITING
    assert _ids(s.rank(fleet, {"a", "b", "c"}, per_vehicle_overrides=cheap_b)) == ["a", "b", "c"]

    clock.now = 2.5
    assert s.state is RankingState.SETTLED
    assert _ids(s.rank(fleet, {"a", "b", "c"}, per_vehicle_overrides=cheap_b)) == ["b", "a", "c"]
    assert s.baseline == ["b", "a", "c"]


def test_editing_without_baseline_sorts_naturally():
    s = RankingStabilizer(clock=FakeClock())
    s.note_edit()
    ranked = s.rank(_fleet(), {"a", "b", "c"}, per_vehicle_overrides={"c": Overrides(residual_percent=90)})
    assert _ids(ranked) == ["c", "a", "b"]
    assert s.baseline is None


def test_negative_quiescence_rejected():
    with pytest.raises(ValueError):
        RankingStabilizer(quiescence=-1)


def test_quiet_window_without_rank_still_settles_before_next_edit():
    clock = FakeClock()
    s = RankingStabilizer(quiescence=1.5, clock=clock)
    fleet = _fleet()
    s.rank(fleet, {"a", "b", "c"})

    cheap_b = {"b": Overrides(residual_percent=70)}
    s.note_edit()
    assert _ids(s.rank(fleet, {"a", "b", "c"}, per_vehicle_overrides=cheap_b)) == ["a", "b", "c"]

    # no re-rank while quiet; the next edit starts from the settled payment order
    clock.now = 5.0
    s.note_edit()
    assert s.state is RankingState.EDITING
    assert s.baseline == ["b", "a", "c"]
    assert _ids(s.rank(fleet, {"a", "b", "c"}, per_vehicle_overrides=cheap_b)) == ["b", "a", "c"]
