from __future__ import annotations

import math
import uuid
from dataclasses import dataclass, field, fields, replace
from typing import Any, Mapping

from lease_calc.financing.rates import FinanceRate, as_amount

DEFAULT_HANDLING_FEES = 700.0  # includes the acquisition fee
DEFAULT_RESIDUAL_PERCENT = 60.0
DEFAULT_LEASE_TERM_MONTHS = 36
LEASE_TERM_CHOICES = (12, 24, 36, 39, 48)

# Python attribute -> key in the stored JSON record.
RECORD_KEYS: dict[str, str] = {
    "id": "id",
    "make": "carMake",
    "model": "carModel",
    "tier": "carTier",
    "dealership": "dealership",
    "vin": "vin",
    "msrp": "msrp",
    "discount_percent": "discount",
    "residual_percent": "residualPercent",
    "apr": "apr",
    "lease_term_months": "leaseTerm",
    "fico_score8": "ficoScore8",
    "sales_tax_percent": "salesTaxPercent",
    "tag_title_filing_fees": "tagTitleFilingFees",
    "handling_fees": "handlingFees",
    "other_fees": "otherFees",
    "down_payment": "downPayment",
    "equity_transfer": "equityTransfer",
    "due_at_signing": "dueAtSigning",
    "notes": "notes",
}


def new_vehicle_id() -> str:
    return uuid.uuid4().hex


def _whole_number(key: str, value: Any) -> int:
    x = as_amount(value)
    if not math.isfinite(x) or x != math.floor(x):
        raise ValueError(f"{key} must be a whole number")
    return int(x)


@dataclass
class LeaseVehicle:
    """
    One user-entered deal configuration.

    Only discount_percent and apr are stored; discount_amount and money_factor
    are bound views over them, so editing either side keeps the pair consistent.
    """

    id: str = field(default_factory=new_vehicle_id)
    make: str = ""
    model: str = ""
    tier: str = ""
    dealership: str = ""
    vin: str = ""
    notes: str = ""
    msrp: float = 0.0
    discount_percent: float = 0.0
    residual_percent: float = DEFAULT_RESIDUAL_PERCENT
    apr: float = 0.0
    lease_term_months: int = DEFAULT_LEASE_TERM_MONTHS
    sales_tax_percent: float = 0.0
    tag_title_filing_fees: float = 0.0
    handling_fees: float = DEFAULT_HANDLING_FEES
    other_fees: float = 0.0
    down_payment: float = 0.0
    equity_transfer: float = 0.0
    due_at_signing: float = 0.0
    fico_score8: int = 0

    def __setattr__(self, name: str, value: Any) -> None:
        if name == "id" and "id" in self.__dict__:
            raise AttributeError("vehicle id is immutable")
        super().__setattr__(name, value)

    @property
    def discount_amount(self) -> float:
        return as_amount(self.msrp) * as_amount(self.discount_percent) / 100.0

    @discount_amount.setter
    def discount_amount(self, amount: float) -> None:
        msrp = as_amount(self.msrp)
        self.discount_percent = as_amount(amount) / msrp * 100.0 if msrp > 0 else 0.0

    @property
    def cap_cost_percent(self) -> float:
        return 100.0 - as_amount(self.discount_percent)

    @property
    def rate(self) -> FinanceRate:
        return FinanceRate.from_apr(self.apr)

    @property
    def money_factor(self) -> float:
        return self.rate.money_factor

    @money_factor.setter
    def money_factor(self, money_factor: float) -> None:
        self.apr = FinanceRate.from_money_factor(money_factor).apr

    @property
    def total_fees(self) -> float:
        return as_amount(self.tag_title_filing_fees) + as_amount(self.handling_fees) + as_amount(self.other_fees)

    @property
    def display_name(self) -> str:
        if self.make and self.model:
            name = f"{self.make} {self.model}"
            if self.tier:
                name = f"{name} {self.tier}"
            return f"{name} - {self.dealership}" if self.dealership else name
        return "New Car"

    def to_record(self) -> dict[str, Any]:
        """JSON-shaped record in the stored (camelCase) layout, derived fields included."""
        out = {key: getattr(self, attr) for attr, key in RECORD_KEYS.items()}
        out["discountAmount"] = self.discount_amount
        out["capCostPercent"] = self.cap_cost_percent
        out["marketFactor"] = self.money_factor
        return out

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> LeaseVehicle:
        """Build from a stored record; keys that are absent keep their defaults."""
        kwargs: dict[str, Any] = {}
        types = {f.name: f.type for f in fields(cls)}
        for attr, key in RECORD_KEYS.items():
            if key not in record or record[key] is None:
                continue
            value = record[key]
            if types[attr] == "str":
                kwargs[attr] = str(value)
            elif types[attr] == "int":
                kwargs[attr] = _whole_number(key, value)
            else:
                kwargs[attr] = as_amount(value)
        return cls(**kwargs)


def apply_vin_decode(vehicle: LeaseVehicle, decoded: Mapping[str, Any]) -> LeaseVehicle:
    """
    Copy a VIN decoder's answer onto a new record.

    decoded: {make, model, year, tier, msrp?}; the year has no field of its own.
    Absent or empty values leave the vehicle's fields untouched.
    """
    changes: dict[str, Any] = {}
    for attr in ("make", "model", "tier"):
        value = decoded.get(attr)
        if value:
            changes[attr] = str(value)
    msrp = as_amount(decoded.get("msrp"))
    if msrp > 0:
        changes["msrp"] = msrp
    return replace(vehicle, **changes)
