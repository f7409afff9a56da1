from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Iterable, Mapping, Sequence

from lease_calc.financing.rates import as_amount
from lease_calc.pricing.engine import PaymentBreakdown, compute_breakdown
from lease_calc.pricing.overrides import Overrides, layer_down_payment
from lease_calc.residual.advisory import (
    BASELINE_MILES_PER_YEAR,
    expected_residual_percent,
    fico_guidance,
    residual_below_expected,
)
from lease_calc.vehicles.record import LeaseVehicle

logger = logging.getLogger(__name__)


class NoVehiclesSelected(ValueError):
    """Nothing to compare: the selection matched no vehicles."""


@dataclass(frozen=True)
class RankedVehicle:
    vehicle: LeaseVehicle
    breakdown: PaymentBreakdown
    overrides: Overrides
    pinned: bool
    expected_residual: float
    residual_delta: float
    flags: tuple[str, ...]
    monthly_delta_vs_best: float = 0.0


@dataclass(frozen=True)
class RankEntry:
    id: str
    payment: float
    pinned: bool


def negotiation_flags(vehicle: LeaseVehicle, breakdown: PaymentBreakdown, expected_residual: float) -> tuple[str, ...]:
    flags: list[str] = []
    if residual_below_expected(breakdown.residual_percent, expected_residual):
        flags.append("residual_below_expected")
    max_apr = fico_guidance(vehicle.fico_score8).max_expected_apr
    if max_apr is not None and breakdown.apr > max_apr:
        flags.append("apr_above_credit_tier")
    if breakdown.discount_percent == 0 and as_amount(vehicle.msrp) > 0:
        flags.append("no_discount")
    if breakdown.adjusted_cap_cost < 0:
        flags.append("negative_cap_cost")
    return tuple(flags)


def stable_rank(entries: Sequence[RankEntry], settled_order: Sequence[str] | None) -> list[str]:
    """
    Order ids by payment, holding pinned ids in their settled slots.

    Pinned ids found in settled_order keep their index within that order
    (restricted to the ids being ranked). Un-pinned ids fill the free slots by
    payment; pinned ids with no settled slot take whatever slots are left last.
    """
    natural = sorted(entries, key=lambda e: e.payment)
    if settled_order is None or not any(e.pinned for e in entries):
        return [e.id for e in natural]

    current = {e.id for e in entries}
    settled: list[str] = []
    for i in settled_order:
        if i in current and i not in settled:
            settled.append(i)
    slot_of = {i: n for n, i in enumerate(settled)}

    order: list[str | None] = [None] * len(entries)
    for e in entries:
        if e.pinned and e.id in slot_of:
            order[slot_of[e.id]] = e.id

    rest = [e.id for e in natural if not e.pinned]
    rest += [e.id for e in entries if e.pinned and e.id not in slot_of]
    fill = iter(rest)
    return [i if i is not None else next(fill) for i in order]


def evaluate(
    vehicles: Sequence[LeaseVehicle],
    selected_ids: Iterable[str],
    *,
    global_down_payment: float | None = None,
    per_vehicle_overrides: Mapping[str, Overrides] | None = None,
    settled_order: Sequence[str] | None = None,
    miles_per_year: int = BASELINE_MILES_PER_YEAR,
) -> list[RankedVehicle]:
    """
    Price the selected vehicles under their what-if overrides and rank them.

    Stored vehicles are never modified. Raises NoVehiclesSelected when the
    selection is empty.
    """
    if settled_order is not None and (
        isinstance(settled_order, str) or not all(isinstance(i, str) for i in settled_order)
    ):
        raise ValueError("settled_order must be a sequence of vehicle ids")
    wanted = set(selected_ids)
    selected = [v for v in vehicles if v.id in wanted]
    if not selected:
        raise NoVehiclesSelected("select at least one vehicle to compare")

    per_vehicle = per_vehicle_overrides or {}
    by_id: dict[str, RankedVehicle] = {}
    entries: list[RankEntry] = []
    for v in selected:
        own = per_vehicle.get(v.id) or Overrides()
        effective = layer_down_payment(own, global_down_payment)
        b = compute_breakdown(v, effective)
        expected = expected_residual_percent(b.lease_term_months, miles_per_year)
        by_id[v.id] = RankedVehicle(
            vehicle=v,
            breakdown=b,
            overrides=effective,
            pinned=not own.is_empty(),
            expected_residual=expected,
            residual_delta=b.residual_percent - expected,
            flags=negotiation_flags(v, b, expected),
        )
        entries.append(RankEntry(id=v.id, payment=b.total_monthly_payment, pinned=not own.is_empty()))

    order = stable_rank(entries, settled_order)
    logger.debug("ranked %d vehicles (pinned=%d): %s", len(order), sum(e.pinned for e in entries), order)

    best = min(e.payment for e in entries)
    return [replace(by_id[i], monthly_delta_vs_best=by_id[i].breakdown.total_monthly_payment - best) for i in order]
