from __future__ import annotations

import math
from dataclasses import asdict, dataclass
from typing import Any

from lease_calc.financing.rates import as_amount
from lease_calc.pricing.overrides import Overrides, resolve_terms
from lease_calc.vehicles.record import LeaseVehicle


class InvalidVehicleConfiguration(ValueError):
    """The deal terms cannot be priced (e.g. a zero-month lease)."""


@dataclass(frozen=True)
class PaymentBreakdown:
    lease_term_months: int
    discount_percent: float
    discount_amount: float
    residual_percent: float
    apr: float
    money_factor: float
    sales_tax_percent: float
    base_cap_cost: float
    total_fees: float
    total_down_payment: float
    adjusted_cap_cost: float
    adjusted_cap_cost_with_tax: float
    residual_value: float
    depreciation: float
    monthly_depreciation: float
    monthly_rate: float
    monthly_finance_charge: float
    base_monthly_payment: float
    monthly_sales_tax: float
    total_monthly_payment: float
    base_lease_cost: float
    total_lease_cost: float

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


def _check_vehicle(msrp: float, months: float) -> int:
    if not math.isfinite(months) or months != math.floor(months):
        raise InvalidVehicleConfiguration("lease_term_months must be a whole number of months")
    term = int(months)
    if term <= 0:
        raise InvalidVehicleConfiguration("lease_term_months must be > 0")
    if msrp < 0:
        raise InvalidVehicleConfiguration("msrp must be >= 0")
    return term


def compute_breakdown(vehicle: LeaseVehicle, overrides: Overrides | None = None) -> PaymentBreakdown:
    """
    Price one vehicle's lease.

    Finance charge is levied on (adjusted cap cost + residual value). A down
    payment larger than cap cost plus fees gives a negative adjusted cap cost;
    it is carried through the formula as-is.
    """
    msrp = as_amount(vehicle.msrp)
    term = _check_vehicle(msrp, as_amount(vehicle.lease_term_months))
    terms = resolve_terms(vehicle, overrides)
    tax_multiplier = 1.0 + as_amount(vehicle.sales_tax_percent) / 100.0

    base_cap_cost = msrp * (1.0 - terms.discount_percent / 100.0)
    total_down_payment = (
        terms.down_payment + as_amount(vehicle.equity_transfer) + as_amount(vehicle.due_at_signing)
    )
    adjusted_cap_cost = base_cap_cost + terms.total_fees - total_down_payment
    residual_value = msrp * terms.residual_percent / 100.0
    depreciation = adjusted_cap_cost - residual_value
    monthly_depreciation = depreciation / term

    monthly_rate = terms.rate.monthly_rate
    monthly_finance_charge = (adjusted_cap_cost + residual_value) * monthly_rate
    base_monthly_payment = monthly_depreciation + monthly_finance_charge
    total_monthly_payment = base_monthly_payment * tax_multiplier

    return PaymentBreakdown(
        lease_term_months=term,
        discount_percent=terms.discount_percent,
        discount_amount=msrp * terms.discount_percent / 100.0,
        residual_percent=terms.residual_percent,
        apr=terms.rate.apr,
        money_factor=terms.rate.money_factor,
        sales_tax_percent=as_amount(vehicle.sales_tax_percent),
        base_cap_cost=float(base_cap_cost),
        total_fees=float(terms.total_fees),
        total_down_payment=float(total_down_payment),
        adjusted_cap_cost=float(adjusted_cap_cost),
        adjusted_cap_cost_with_tax=float(adjusted_cap_cost * tax_multiplier),
        residual_value=float(residual_value),
        depreciation=float(depreciation),
        monthly_depreciation=float(monthly_depreciation),
        monthly_rate=float(monthly_rate),
        monthly_finance_charge=float(monthly_finance_charge),
        base_monthly_payment=float(base_monthly_payment),
        monthly_sales_tax=float(total_monthly_payment - base_monthly_payment),
        total_monthly_payment=float(total_monthly_payment),
        base_lease_cost=float(base_monthly_payment * term),
        total_lease_cost=float(total_monthly_payment * term),
    )


@dataclass(frozen=True)
class SchedulePeriod:
    label: str
    months: int
    total: float


def payment_schedule(breakdown: PaymentBreakdown) -> list[SchedulePeriod]:
    """Split the lease into yearly chunks (first three years, then any odd months)."""
    term = breakdown.lease_term_months
    pmt = breakdown.total_monthly_payment
    periods: list[SchedulePeriod] = []

    for i, label in enumerate(("First 12 months", "Second 12 months", "Third 12 months")):
        if term <= i * 12:
            break
        months = min(12, term - i * 12)
        periods.append(SchedulePeriod(label=label, months=months, total=pmt * months))

    remaining = term - sum(p.months for p in periods)
    if remaining > 0:
        suffix = "s" if remaining > 1 else ""
        periods.append(SchedulePeriod(label=f"Remaining {remaining} month{suffix}", months=remaining, total=pmt * remaining))

    return periods
