from __future__ import annotations

from dataclasses import dataclass, fields, replace
from typing import Any, Mapping

from lease_calc.financing.rates import FinanceRate, as_amount
from lease_calc.vehicles.record import LeaseVehicle

# Stored-record (camelCase) spellings accepted alongside the attribute names.
OVERRIDE_KEY_ALIASES: dict[str, str] = {
    "discount": "discount_percent",
    "discountPercent": "discount_percent",
    "residualPercent": "residual_percent",
    "marketFactor": "money_factor",
    "moneyFactor": "money_factor",
    "downPayment": "down_payment",
    "totalFees": "total_fees",
}


@dataclass(frozen=True)
class Overrides:
    # What-if values for a single evaluation; None means "use the stored value".
    discount_percent: float | None = None
    residual_percent: float | None = None
    apr: float | None = None
    money_factor: float | None = None
    down_payment: float | None = None
    total_fees: float | None = None

    def is_empty(self) -> bool:
        return all(getattr(self, f.name) is None for f in fields(self))

    @classmethod
    def from_mapping(cls, d: Mapping[str, Any] | None) -> Overrides:
        if not d:
            return cls()
        known = {f.name for f in fields(cls)}
        unknown = sorted(k for k in d if k not in known and k not in OVERRIDE_KEY_ALIASES)
        if unknown:
            raise ValueError(f"unknown override fields: {', '.join(unknown)}")
        values: dict[str, float | None] = {}
        for key, v in d.items():
            name = OVERRIDE_KEY_ALIASES.get(key, key)
            if name in values:
                raise ValueError(f"override field given twice: {name}")
            values[name] = None if v is None else as_amount(v)
        return cls(**values)


@dataclass(frozen=True)
class ResolvedTerms:
    discount_percent: float
    residual_percent: float
    rate: FinanceRate
    down_payment: float
    total_fees: float


def resolve_terms(vehicle: LeaseVehicle, overrides: Overrides | None = None) -> ResolvedTerms:
    """
    Effective deal terms for one evaluation.

    An APR override beats a money-factor override; with neither, the vehicle's
    own rate applies. The vehicle is never modified.
    """
    o = overrides or Overrides()

    if o.apr is not None:
        rate = FinanceRate.from_apr(o.apr)
    elif o.money_factor is not None:
        rate = FinanceRate.from_money_factor(o.money_factor)
    else:
        rate = vehicle.rate

    def pick(override: float | None, stored: Any) -> float:
        return as_amount(stored if override is None else override)

    return ResolvedTerms(
        discount_percent=pick(o.discount_percent, vehicle.discount_percent),
        residual_percent=pick(o.residual_percent, vehicle.residual_percent),
        rate=rate,
        down_payment=pick(o.down_payment, vehicle.down_payment),
        total_fees=pick(o.total_fees, vehicle.total_fees),
    )


def layer_down_payment(per_vehicle: Overrides | None, global_down_payment: float | None) -> Overrides:
    # Down payment: per-vehicle override > global override > stored value.
    o = per_vehicle or Overrides()
    if o.down_payment is not None or global_down_payment is None:
        return o
    return replace(o, down_payment=as_amount(global_down_payment))
