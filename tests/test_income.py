"""
Tests for income resolution and forecast smoothing.
"""

import pytest
from datetime import datetime, timezone

from conftest import make_income
from finance_engine.engine.income import (
    clamp_smoothing_months,
    latest_checks_by_income,
    lookback_month_keys,
    monthly_income,
    monthly_income_for_forecast,
    payment_check_cycle_amount,
    resolve_forecast_monthly,
    resolve_gross_amount,
    resolve_net_amount,
)
from finance_engine.models import Cadence, IncomePaymentCheck, IncomePaymentStatus


def make_check(month, status=IncomePaymentStatus.ON_TIME, received=None, expected=None, updated_day=1):
    return IncomePaymentCheck(
        id=f"check-{month}-{updated_day}",
        income_id="income-1",
        cycle_month=month,
        status=status,
        received_amount=received,
        expected_amount=expected,
        updated_at=datetime(2026, 3, updated_day, tzinfo=timezone.utc),
    )


class TestNetAmount:
    """Tests for net and gross cycle amounts."""

    def test_breakdown_wins_over_amount(self):
        """Test gross minus deductions is used when a breakdown exists."""
        income = make_income(amount=9999, gross_amount=3000, tax_amount=400, national_insurance_amount=200,
                             pension_amount=100)
        assert resolve_net_amount(income) == pytest.approx(2300.0)

    def test_deductions_exceeding_gross_floor_at_zero(self):
        """Test net never goes negative."""
        income = make_income(gross_amount=100, tax_amount=300)
        assert resolve_net_amount(income) == 0.0

    def test_plain_amount_without_breakdown(self):
        """Test the raw amount is used when nothing else is entered."""
        assert resolve_net_amount(make_income(amount=1500)) == 1500.0

    def test_gross_reconstructed_from_net(self):
        """Test gross is net plus deductions when gross is not entered."""
        income = make_income(amount=2000, tax_amount=500)
        assert resolve_gross_amount(income) == pytest.approx(2500.0)


class TestMonthlyIncome:
    """Tests for unsmoothed and smoothed monthly income."""

    def test_sums_monthly_equivalents(self):
        """Test incomes at different cadences sum per month."""
        incomes = [
            make_income(amount=3000),
            make_income(amount=120, cadence=Cadence.WEEKLY, id="income-2"),
        ]
        assert monthly_income(incomes) == pytest.approx(3520.0)

    def test_smoothing_disabled_uses_baseline(self):
        """Test an income without smoothing ignores payment checks."""
        income = make_income(amount=2000)
        checks = latest_checks_by_income([make_check("2026-03", IncomePaymentStatus.MISSED)])
        assert resolve_forecast_monthly(income, "2026-03", checks.get("income-1")) == 2000.0

    def test_smoothing_averages_received_amounts(self):
        """Test a missed month drags the smoothed figure down."""
        income = make_income(amount=2000, forecast_smoothing_enabled=True, forecast_smoothing_months=2)
        checks = [
            make_check("2026-03", IncomePaymentStatus.MISSED),
            make_check("2026-02", received=2000),
        ]
        assert monthly_income_for_forecast([income], checks, "2026-03") == pytest.approx(1000.0)

    def test_smoothing_fills_unchecked_months_with_baseline(self):
        """Test months without a check count at the baseline amount."""
        income = make_income(amount=2000, forecast_smoothing_enabled=True, forecast_smoothing_months=4)
        checks = [make_check("2026-03", received=1600)]
        assert monthly_income_for_forecast([income], checks, "2026-03") == pytest.approx(1900.0)

    def test_latest_check_per_month_wins(self):
        """Test the most recently updated check for a month is used."""
        checks = [
            make_check("2026-03", received=100, updated_day=1),
            make_check("2026-03", received=250, updated_day=5),
        ]
        indexed = latest_checks_by_income(checks)
        assert indexed["income-1"]["2026-03"].received_amount == 250

    def test_check_amount_fallbacks(self):
        """Test received, then expected, then the fallback amount."""
        assert payment_check_cycle_amount(make_check("2026-03", received=10, expected=20), 30) == 10
        assert payment_check_cycle_amount(make_check("2026-03", expected=20), 30) == 20
        assert payment_check_cycle_amount(make_check("2026-03"), 30) == 30
        assert payment_check_cycle_amount(make_check("2026-03", IncomePaymentStatus.MISSED, received=10), 30) == 0


class TestSmoothingWindow:
    """Tests for the smoothing lookback window."""

    @pytest.mark.parametrize("value,expected", [(None, 6), (1, 6), (2, 2), (24, 24), (30, 6)])
    def test_out_of_range_falls_back_to_default(self, value, expected):
        """Test lookbacks outside 2..24 use the default of 6."""
        assert clamp_smoothing_months(value) == expected

    @pytest.mark.parametrize("value,expected", [(2.5, 3), (4.5, 5), (2.4, 2)])
    def test_fractional_lookback_rounds_half_up(self, value, expected):
        """Test a fractional lookback rounds halves up."""
        assert clamp_smoothing_months(value) == expected

    def test_lookback_keys_cross_year(self):
        """Test month keys run backwards across a year boundary."""
        assert lookback_month_keys("2026-02", 3) == ["2026-02", "2026-01", "2025-12"]
