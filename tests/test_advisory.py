from __future__ import annotations

from lease_calc.residual.advisory import (
    expected_residual_percent,
    fico_guidance,
    ideal_residual_range,
    residual_below_expected,
)


def test_expected_residual_by_term():
    assert expected_residual_percent(36) == 60.0
    assert expected_residual_percent(39) == 58.5
    assert expected_residual_percent(48) == 54.0
    assert expected_residual_percent(24) == 66.0


def test_expected_residual_mileage_bands():
    assert expected_residual_percent(36, 7_500) == 63.5
    assert expected_residual_percent(36, 10_000) == 62.5
    assert expected_residual_percent(36, 12_000) == 60.0
    # No adjustment above the 12k baseline.
    assert expected_residual_percent(36, 15_000) == 60.0


def test_expected_residual_is_clamped():
    assert expected_residual_percent(400) == 0.0
    assert expected_residual_percent(400, 5_000) == 3.5
    assert expected_residual_percent(-200, 5_000) == 100.0


def test_ideal_range_and_below_expected_flag():
    assert ideal_residual_range(36) == (58.0, 62.0)
    assert not residual_below_expected(58.0, 60.0)
    assert residual_below_expected(57.9, 60.0)


def test_fico_tiers():
    assert fico_guidance(0).tier == "Not Entered"
    assert fico_guidance(None).max_expected_apr is None
    assert fico_guidance(800).tier == "Super Prime"
    assert fico_guidance(781).tier == "Super Prime"
    assert fico_guidance(780).tier == "Very Good"
    assert fico_guidance(700).apr_range == (5.0, 7.5)
    assert fico_guidance(600).approval_likelihood == "Moderate"
    poor = fico_guidance(520)
    assert poor.tier == "Poor"
    assert poor.max_expected_apr is None
    assert len(poor.recommendations) == 7
