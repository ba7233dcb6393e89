"""
Tests for cadence normalisation and due-date projection.
"""

import pytest
from datetime import date, datetime, timezone

from finance_engine.engine.cadence import (
    add_calendar_months_keeping_day,
    count_completed_monthly_cycles,
    date_with_clamped_day,
    month_key,
    monthly_equivalent,
    next_occurrence,
    parse_iso_date,
    parse_month_key,
    resolve_cadence_anchor_date,
)
from finance_engine.models import Cadence, CustomCadenceUnit


class TestMonthlyEquivalent:
    """Tests for converting cadence amounts to per-month figures."""

    def test_weekly_bill_scenario(self):
        """Test a weekly 120 bill is 520 per month."""
        assert monthly_equivalent(120, Cadence.WEEKLY) == pytest.approx(520.0)

    @pytest.mark.parametrize("cadence,expected", [
        (Cadence.BIWEEKLY, 260.0),
        (Cadence.MONTHLY, 120.0),
        (Cadence.QUARTERLY, 40.0),
        (Cadence.YEARLY, 10.0),
        (Cadence.ONE_TIME, 0.0),
    ])
    def test_standard_cadences(self, cadence, expected):
        """Test each built-in cadence factor."""
        assert monthly_equivalent(120, cadence) == pytest.approx(expected)

    @pytest.mark.parametrize("cadence", list(Cadence))
    def test_linear_in_amount(self, cadence):
        """Test scaling the amount scales the monthly figure."""
        base = monthly_equivalent(37.5, cadence, 10, CustomCadenceUnit.DAYS)
        assert monthly_equivalent(37.5 * 4, cadence, 10, CustomCadenceUnit.DAYS) == pytest.approx(base * 4)

    def test_custom_days_uses_gregorian_year(self):
        """Test a custom day interval uses 365.2425 days a year."""
        assert monthly_equivalent(100, Cadence.CUSTOM, 30, CustomCadenceUnit.DAYS) == pytest.approx(
            100 * 365.2425 / 360
        )

    def test_custom_months_and_years(self):
        """Test custom month and year intervals."""
        assert monthly_equivalent(300, Cadence.CUSTOM, 3, CustomCadenceUnit.MONTHS) == pytest.approx(100.0)
        assert monthly_equivalent(240, Cadence.CUSTOM, 2, CustomCadenceUnit.YEARS) == pytest.approx(10.0)

    def test_invalid_custom_configuration_is_zero(self):
        """Test a custom cadence without a usable interval or unit gives 0."""
        assert monthly_equivalent(100, Cadence.CUSTOM, 0, CustomCadenceUnit.DAYS) == 0.0
        assert monthly_equivalent(100, Cadence.CUSTOM, 5, None) == 0.0

    def test_non_finite_amount_reads_as_zero(self):
        """Test NaN and infinity contribute nothing."""
        assert monthly_equivalent(float("nan"), Cadence.MONTHLY) == 0.0
        assert monthly_equivalent(float("inf"), Cadence.WEEKLY) == 0.0


class TestNextOccurrence:
    """Tests for next due-date projection."""

    def test_day_31_clamps_in_30_day_month(self):
        """Test a day-31 monthly bill falls on the 30th in April."""
        result = next_occurrence(Cadence.MONTHLY, date(2026, 1, 31), date(2026, 4, 2), day_of_month=31)
        assert result == date(2026, 4, 30)

    def test_day_31_clamps_in_february(self):
        """Test a day-31 monthly bill falls on the 28th in February."""
        result = next_occurrence(Cadence.MONTHLY, date(2026, 1, 31), date(2026, 2, 10), day_of_month=31)
        assert result == date(2026, 2, 28)

    def test_monthly_due_today_is_returned(self):
        """Test a due date of today counts as upcoming."""
        result = next_occurrence(Cadence.MONTHLY, date(2025, 6, 1), date(2026, 3, 15), day_of_month=15)
        assert result == date(2026, 3, 15)

    def test_monthly_rolls_to_next_month(self):
        """Test a due day already passed this month moves to next month."""
        result = next_occurrence(Cadence.MONTHLY, date(2025, 6, 1), date(2026, 3, 20), day_of_month=5)
        assert result == date(2026, 4, 5)

    def test_quarterly_respects_anchor_phase(self):
        """Test quarterly dates stay on multiples of three months from the anchor."""
        result = next_occurrence(Cadence.QUARTERLY, date(2026, 1, 10), date(2026, 2, 1), day_of_month=10)
        assert result == date(2026, 4, 10)

    def test_weekly_steps_from_anchor(self):
        """Test weekly dates step in 7-day increments from the anchor."""
        result = next_occurrence(Cadence.WEEKLY, date(2026, 3, 2), date(2026, 3, 10))
        assert result == date(2026, 3, 16)

    def test_future_anchor_is_returned_as_is(self):
        """Test a schedule that has not started yet returns its anchor."""
        result = next_occurrence(Cadence.BIWEEKLY, date(2026, 5, 1), date(2026, 3, 10))
        assert result == date(2026, 5, 1)

    def test_one_time_in_past_is_none(self):
        """Test a one-time payment already past has no next date."""
        assert next_occurrence(Cadence.ONE_TIME, date(2026, 1, 5), date(2026, 3, 10), day_of_month=5) is None

    def test_one_time_upcoming(self):
        """Test a one-time payment later this month is returned."""
        result = next_occurrence(Cadence.ONE_TIME, date(2026, 3, 1), date(2026, 3, 10), day_of_month=25)
        assert result == date(2026, 3, 25)

    def test_custom_without_interval_is_none(self):
        """Test an unresolvable custom cadence gives None."""
        assert next_occurrence(Cadence.CUSTOM, date(2026, 1, 1), date(2026, 3, 1), custom_interval=0,
                               custom_unit=CustomCadenceUnit.DAYS) is None

    def test_custom_long_cycle_exhausts_search(self):
        """Test a cycle longer than the search window gives None instead of looping."""
        result = next_occurrence(
            Cadence.CUSTOM,
            date(2026, 1, 1),
            date(2026, 2, 1),
            day_of_month=1,
            custom_interval=5,
            custom_unit=CustomCadenceUnit.YEARS,
        )
        assert result is None

    def test_accepts_timestamps(self):
        """Test datetimes are reduced to their date."""
        result = next_occurrence(
            Cadence.MONTHLY,
            datetime(2025, 1, 1, 23, 0, tzinfo=timezone.utc),
            datetime(2026, 3, 10, 8, 0, tzinfo=timezone.utc),
            day_of_month=12,
        )
        assert result == date(2026, 3, 12)


class TestCalendarHelpers:
    """Tests for month keys and calendar arithmetic."""

    def test_month_key_round_trip(self):
        """Test month keys format and parse."""
        assert month_key(date(2026, 3, 20)) == "2026-03"
        assert parse_month_key("2026-03") == date(2026, 3, 1)

    @pytest.mark.parametrize("value", ["2026-13", "2026-3", "march", "", None])
    def test_bad_month_keys(self, value):
        """Test malformed month keys parse to None."""
        assert parse_month_key(value) is None

    def test_parse_iso_date_rejects_impossible_dates(self):
        """Test impossible calendar dates are rejected."""
        assert parse_iso_date("2026-02-30") is None
        assert parse_iso_date("2026-02-28") == date(2026, 2, 28)

    def test_clamped_day_rolls_year(self):
        """Test month overflow rolls into the next year."""
        assert date_with_clamped_day(2026, 14, 31) == date(2027, 2, 28)

    def test_add_months_keeps_end_of_month(self):
        """Test Jan 31 plus one month is the end of February."""
        assert add_calendar_months_keeping_day(date(2024, 1, 31), 1) == date(2024, 2, 29)

    def test_completed_cycles(self):
        """Test completed monthly cycles between two dates."""
        assert count_completed_monthly_cycles(date(2026, 1, 15), date(2026, 3, 14)) == 1
        assert count_completed_monthly_cycles(date(2026, 1, 15), date(2026, 3, 15)) == 2

    def test_pay_date_anchor_wins(self):
        """Test a valid pay-date anchor overrides the creation date."""
        created = datetime(2025, 5, 5, tzinfo=timezone.utc)
        assert resolve_cadence_anchor_date(created, "2025-06-20") == date(2025, 6, 20)
        assert resolve_cadence_anchor_date(created, "not-a-date") == date(2025, 5, 5)
