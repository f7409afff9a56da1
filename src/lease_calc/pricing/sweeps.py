from __future__ import annotations

import math

import numpy as np
import pandas as pd

from lease_calc.financing.rates import as_amount
from lease_calc.pricing.engine import compute_breakdown
from lease_calc.pricing.overrides import Overrides
from lease_calc.vehicles.record import LeaseVehicle

DEFAULT_SWEEP_APR = 5.0


def _grid(lo: float, hi: float, step: float) -> np.ndarray:
    # Inclusive of hi.
    return np.arange(lo, hi + step / 2.0, step, dtype=float)


def rate_sweep(vehicle: LeaseVehicle, *, span: float = 5.0, step: float = 0.5) -> pd.DataFrame:
    """
    Monthly payment across a band of APRs around the entered one.

    With no APR entered the band is centered on 5%. An entered APR that falls
    between grid points gets its own row; rows stay ordered by APR.
    """
    entered = vehicle.rate.apr
    base = entered or DEFAULT_SWEEP_APR
    aprs = _grid(max(0.0, base - span), base + span, step)
    if entered > 0 and not np.any(np.abs(aprs - entered) < 0.01):
        aprs = np.sort(np.append(aprs, entered))

    rows = []
    for apr in aprs:
        b = compute_breakdown(vehicle, Overrides(apr=float(apr)))
        rows.append(
            {
                "apr": b.apr,
                "money_factor": b.money_factor,
                "monthly_rate": b.monthly_rate,
                "monthly_depreciation": b.monthly_depreciation,
                "monthly_finance_charge": b.monthly_finance_charge,
                "base_monthly_payment": b.base_monthly_payment,
                "total_monthly_payment": b.total_monthly_payment,
                "is_entered": bool(entered > 0 and abs(b.apr - entered) < 0.01),
            }
        )
    return pd.DataFrame(rows)


def discount_sweep(vehicle: LeaseVehicle, *, span: float = 20.0, step: float = 5.0) -> pd.DataFrame:
    d = as_amount(vehicle.discount_percent)
    lo = max(0.0, math.floor(d / step) * step - span)
    hi = min(100.0, math.ceil(d / step) * step + span)
    discounts = _grid(lo, hi, step)
    msrp = as_amount(vehicle.msrp)
    return pd.DataFrame(
        {
            "discount_percent": discounts,
            "discount_amount": msrp * discounts / 100.0,
            "cap_cost_percent": 100.0 - discounts,
            "cap_cost": msrp * (1.0 - discounts / 100.0),
        }
    )


def residual_sweep(vehicle: LeaseVehicle, *, span: float = 5.0, step: float = 1.0) -> pd.DataFrame:
    r = as_amount(vehicle.residual_percent)
    lo = max(0.0, math.floor(r / step) * step - span)
    hi = math.ceil(r / step) * step + span

    rows = []
    for pct in _grid(lo, hi, step):
        b = compute_breakdown(vehicle, Overrides(residual_percent=float(pct)))
        rows.append(
            {
                "residual_percent": b.residual_percent,
                "residual_value": b.residual_value,
                "depreciation": b.base_cap_cost - b.residual_value,
                "total_monthly_payment": b.total_monthly_payment,
            }
        )
    return pd.DataFrame(rows)
