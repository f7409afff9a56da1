from __future__ import annotations

from dataclasses import dataclass

from lease_calc.financing.rates import as_amount

BASELINE_TERM_MONTHS = 36
BASELINE_RESIDUAL_PERCENT = 60.0
BASELINE_MILES_PER_YEAR = 12_000
RESIDUAL_TOLERANCE_POINTS = 2.0

# (max miles per year, residual points added); checked in order.
MILEAGE_BANDS: tuple[tuple[int, float], ...] = (
    (7_500, 3.5),
    (10_000, 2.5),
    (12_000, 0.0),
)


def _clamp_percent(x: float) -> float:
    return max(0.0, min(100.0, x))


def expected_residual_percent(lease_term_months: int, miles_per_year: int = BASELINE_MILES_PER_YEAR) -> float:
    """
    Rule-of-thumb residual for a term and annual mileage.

    36 months at 12k miles/year is 60%; each month beyond 36 takes half a point.
    Low-mileage leases earn a bump. Mileage above 12k/year gets no adjustment.
    """
    base = _clamp_percent(BASELINE_RESIDUAL_PERCENT - (as_amount(lease_term_months) - BASELINE_TERM_MONTHS) * 0.5)
    bump = 0.0
    for max_miles, points in MILEAGE_BANDS:
        if miles_per_year <= max_miles:
            bump = points
            break
    return _clamp_percent(base + bump)


def ideal_residual_range(
    lease_term_months: int, miles_per_year: int = BASELINE_MILES_PER_YEAR
) -> tuple[float, float]:
    expected = expected_residual_percent(lease_term_months, miles_per_year)
    return (
        _clamp_percent(expected - RESIDUAL_TOLERANCE_POINTS),
        _clamp_percent(expected + RESIDUAL_TOLERANCE_POINTS),
    )


def residual_below_expected(actual_percent: float, expected_percent: float) -> bool:
    return as_amount(actual_percent) < expected_percent - RESIDUAL_TOLERANCE_POINTS


@dataclass(frozen=True)
class CreditGuidance:
    tier: str
    approval_likelihood: str
    apr_range: tuple[float, float | None] | None
    money_factor_range: tuple[float, float | None] | None
    recommendations: tuple[str, ...]

    @property
    def max_expected_apr(self) -> float | None:
        if self.apr_range is None:
            return None
        return self.apr_range[1]


NOT_ENTERED = CreditGuidance(
    tier="Not Entered",
    approval_likelihood="Unknown",
    apr_range=None,
    money_factor_range=None,
    recommendations=("Enter your FICO Score 8 to get personalized lease recommendations",),
)

# (minimum score, guidance); first match wins.
CREDIT_TIERS: tuple[tuple[int, CreditGuidance], ...] = (
    (
        781,
        CreditGuidance(
            tier="Super Prime",
            approval_likelihood="Very High",
            apr_range=(2.5, 4.5),
            money_factor_range=(0.0010, 0.0019),
            recommendations=(
                "Excellent credit! You qualify for the best lease rates available",
                "Negotiate for money factor below 0.0015 for optimal deals",
                "Consider shorter lease terms (24-36 months) for better residual values",
                "You may qualify for special manufacturer incentives and rebates",
                "Shop multiple dealerships to leverage your strong credit",
            ),
        ),
    ),
    (
        740,
        CreditGuidance(
            tier="Very Good",
            approval_likelihood="High",
            apr_range=(3.5, 5.5),
            money_factor_range=(0.0015, 0.0023),
            recommendations=(
                "Strong credit score - you should get competitive lease rates",
                "Aim for money factor between 0.0015-0.0020 for best deals",
                "Consider 36-month leases for optimal residual values",
                "Shop around - you have leverage to negotiate favorable terms",
                "Manufacturer specials may be available to you",
            ),
        ),
    ),
    (
        670,
        CreditGuidance(
            tier="Good",
            approval_likelihood="Good",
            apr_range=(5.0, 7.5),
            money_factor_range=(0.0021, 0.0031),
            recommendations=(
                "Good credit - you should qualify for standard lease rates",
                "Target money factor around 0.0025 or lower if possible",
                "Consider larger down payment to improve overall terms",
                "36-39 month leases typically offer best value",
                "Compare offers from multiple lenders",
            ),
        ),
    ),
    (
        580,
        CreditGuidance(
            tier="Fair",
            approval_likelihood="Moderate",
            apr_range=(7.5, 11.0),
            money_factor_range=(0.0031, 0.0046),
            recommendations=(
                "Fair credit - lease approval possible but rates will be higher",
                "Expect money factor between 0.0035-0.0045",
                "Consider larger down payment or security deposit to improve terms",
                "Longer lease terms (48 months) may help with approval",
                "Work on improving credit score before leasing if possible",
                "Shop subprime-friendly lenders if needed",
            ),
        ),
    ),
    (
        0,
        CreditGuidance(
            tier="Poor",
            approval_likelihood="Low",
            apr_range=(11.0, None),
            money_factor_range=(0.0046, None),
            recommendations=(
                "Credit score may significantly limit lease options",
                "Expect money factor above 0.0050 or possible denial",
                "Large down payment or security deposit likely required",
                "Consider subprime leasing programs if available",
                "Strongly consider improving credit score before leasing",
                "Alternative: Consider financing instead of leasing",
                "Some lenders may not approve leases with scores below 580",
            ),
        ),
    ),
)


def fico_guidance(score: int | None) -> CreditGuidance:
    s = int(as_amount(score))
    if s <= 0:
        return NOT_ENTERED
    for min_score, guidance in CREDIT_TIERS:
        if s >= min_score:
            return guidance
    return CREDIT_TIERS[-1][1]
