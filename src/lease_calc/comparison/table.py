from __future__ import annotations

from typing import Any, Callable, Sequence

import pandas as pd

from lease_calc.comparison.evaluator import RankedVehicle


def _down_payment(r: RankedVehicle) -> float:
    o = r.overrides.down_payment
    return r.vehicle.down_payment if o is None else o


# (section, label, getter); order follows the comparison table.
LINE_ITEMS: tuple[tuple[str, str, Callable[[RankedVehicle], Any]], ...] = (
    ("Vehicle Information", "Make", lambda r: r.vehicle.make or "N/A"),
    ("Vehicle Information", "Model", lambda r: r.vehicle.model or "N/A"),
    ("Vehicle Information", "Tier", lambda r: r.vehicle.tier or "N/A"),
    ("Vehicle Information", "MSRP", lambda r: r.vehicle.msrp),
    ("Vehicle Information", "VIN", lambda r: r.vehicle.vin or "N/A"),
    ("Vehicle Information", "Dealership", lambda r: r.vehicle.dealership or "N/A"),
    ("Lease Terms", "Lease Term (months)", lambda r: r.breakdown.lease_term_months),
    ("Lease Terms", "Cap Cost %", lambda r: 100.0 - r.breakdown.discount_percent),
    ("Lease Terms", "Discount %", lambda r: r.breakdown.discount_percent),
    ("Lease Terms", "Discount Amount", lambda r: r.breakdown.discount_amount),
    ("Lease Terms", "Residual %", lambda r: r.breakdown.residual_percent),
    ("Lease Terms", "Expected Residual %", lambda r: r.expected_residual),
    ("Lease Terms", "APR", lambda r: r.breakdown.apr),
    ("Lease Terms", "Money Factor", lambda r: r.breakdown.money_factor),
    ("Lease Terms", "Sales Tax %", lambda r: r.breakdown.sales_tax_percent),
    ("Lease Terms", "FICO Score 8", lambda r: r.vehicle.fico_score8 or "N/A"),
    ("Financials", "Base Cap Cost", lambda r: r.breakdown.base_cap_cost),
    ("Financials", "Adjusted Cap Cost", lambda r: r.breakdown.adjusted_cap_cost),
    ("Financials", "Adjusted Cap Cost (with tax)", lambda r: r.breakdown.adjusted_cap_cost_with_tax),
    ("Financials", "Residual Value", lambda r: r.breakdown.residual_value),
    ("Financials", "Tag/Title/Filing Fees", lambda r: r.vehicle.tag_title_filing_fees),
    ("Financials", "Handling Fees", lambda r: r.vehicle.handling_fees),
    ("Financials", "Other Fees", lambda r: r.vehicle.other_fees),
    ("Financials", "Total Fees", lambda r: r.breakdown.total_fees),
    ("Financials", "Down Payment", _down_payment),
    ("Financials", "Equity Transfer", lambda r: r.vehicle.equity_transfer),
    ("Financials", "Due at Signing", lambda r: r.vehicle.due_at_signing),
    ("Financials", "Total Down Payment", lambda r: r.breakdown.total_down_payment),
    ("Financials", "Depreciation (Total)", lambda r: r.breakdown.depreciation),
    ("Monthly Payments", "Monthly Depreciation", lambda r: r.breakdown.monthly_depreciation),
    ("Monthly Payments", "Monthly Finance Charge", lambda r: r.breakdown.monthly_finance_charge),
    ("Monthly Payments", "Monthly Payment (without tax)", lambda r: r.breakdown.base_monthly_payment),
    ("Monthly Payments", "Monthly Payment (with tax)", lambda r: r.breakdown.total_monthly_payment),
    ("Total Lease Cost", "Total (without tax)", lambda r: r.breakdown.base_lease_cost),
    ("Total Lease Cost", "Total (with tax)", lambda r: r.breakdown.total_lease_cost),
    ("Notes", "Notes", lambda r: r.vehicle.notes or "N/A"),
)


def _column_names(ranked: Sequence[RankedVehicle]) -> list[str]:
    # Display names can repeat; suffix duplicates so columns stay unique.
    seen: dict[str, int] = {}
    out = []
    for r in ranked:
        name = r.vehicle.display_name
        seen[name] = seen.get(name, 0) + 1
        out.append(name if seen[name] == 1 else f"{name} ({seen[name]})")
    return out


def comparison_frame(ranked: Sequence[RankedVehicle]) -> pd.DataFrame:
    """Line items down the rows, one column per ranked vehicle (in rank order)."""
    index = pd.MultiIndex.from_tuples([(s, label) for s, label, _ in LINE_ITEMS], names=["section", "item"])
    data = {name: [get(r) for _, _, get in LINE_ITEMS] for name, r in zip(_column_names(ranked), ranked)}
    return pd.DataFrame(data, index=index)
