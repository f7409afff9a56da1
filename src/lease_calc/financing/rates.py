from __future__ import annotations

import math
from dataclasses import dataclass

# APR (percent) = money factor * 2400
MONEY_FACTOR_TO_APR = 2400.0


def as_amount(value: object) -> float:
    # Absent or unparseable numbers carry no financial impact.
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        x = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(x):
        return 0.0
    return x


def apr_to_money_factor(apr: float) -> float:
    return as_amount(apr) / MONEY_FACTOR_TO_APR


def money_factor_to_apr(money_factor: float) -> float:
    return as_amount(money_factor) * MONEY_FACTOR_TO_APR


def monthly_rate_from_apr(apr: float) -> float:
    # APR is a nominal annual percentage; leases charge it monthly.
    return as_amount(apr) / 100.0 / 12.0


@dataclass(frozen=True)
class FinanceRate:
    """
    One financing rate seen two ways.

    apr: nominal annual rate in percent (e.g. 3.0 for 3%)
    money_factor: the lease form of the same rate (apr / 2400)

    Build it from whichever side was edited; the other side is always derived.
    """

    apr: float

    @classmethod
    def from_apr(cls, apr: float) -> FinanceRate:
        return cls(apr=as_amount(apr))

    @classmethod
    def from_money_factor(cls, money_factor: float) -> FinanceRate:
        return cls(apr=money_factor_to_apr(money_factor))

    @property
    def money_factor(self) -> float:
        return apr_to_money_factor(self.apr)

    @property
    def monthly_rate(self) -> float:
        return monthly_rate_from_apr(self.apr)
