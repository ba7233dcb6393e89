"""
Tests for commitments, cash forecasts and bill risk alerts.
"""

import pytest
from datetime import date

from conftest import NOW, make_account, make_bill, make_purchase
from finance_engine.engine.forecast import (
    bill_risk_alerts,
    forecast_windows,
    liquid_reserves,
    monthly_commitments,
    monthly_spend_estimate,
)
from finance_engine.models import (
    AccountType,
    BillRiskLevel,
    Cadence,
    CardRecord,
    ForecastRiskLevel,
    LoanRecord,
    MinimumPaymentType,
)


class TestBaselineFigures:
    """Tests for commitments, reserves and spend estimate."""

    def test_monthly_commitments(self):
        """Test bills, card minimums and loan payments add up."""
        bills = [make_bill(amount=1200.0), make_bill("bill-2", "Cleaner", 30.0, cadence=Cadence.WEEKLY)]
        cards = [CardRecord(id="c1", name="Visa", used_limit=500, minimum_payment=25)]
        loans = [LoanRecord(
            id="l1",
            name="Car",
            balance=1000,
            interest_rate=24,
            minimum_payment_type=MinimumPaymentType.FIXED,
            minimum_payment=50,
            subscription_cost=10,
        )]
        breakdown = monthly_commitments(bills, cards, loans)
        assert breakdown.monthly_bills == 1330.0
        assert breakdown.monthly_card_payments == 25.0
        assert breakdown.monthly_loan_payments == 60.0
        assert breakdown.monthly_commitments == 1415.0

    def test_liquid_reserves(self):
        """Test only positive liquid balances count."""
        accounts = [
            make_account("a", balance=1000.0),
            make_account("b", balance=-300.0),
            make_account("c", balance=5000.0, account_type=AccountType.INVESTMENT, liquid=False),
        ]
        assert liquid_reserves(accounts) == 1000.0

    def test_spend_estimate_uses_window(self):
        """Test 90 days of spend is scaled to 30 days."""
        purchases = [
            make_purchase("a", amount=600.0, purchase_date=date(2026, 3, 1)),
            make_purchase("b", amount=300.0, purchase_date=date(2026, 1, 15)),
            make_purchase("c", amount=999.0, purchase_date=date(2025, 10, 1)),
        ]
        assert monthly_spend_estimate(purchases, NOW) == pytest.approx(300.0)


class TestForecastWindows:
    """Tests for 30/90/365 day projections."""

    def test_projection_and_risk(self):
        """Test projected cash, coverage and risk per window."""
        windows = forecast_windows(300.0, 1000.0, 1500.0)
        assert [window.days for window in windows] == [30, 90, 365]
        assert windows[0].projected_cash == 1300.0
        assert windows[0].coverage_months == 0.87
        assert windows[0].risk == ForecastRiskLevel.WARNING
        assert windows[1].risk == ForecastRiskLevel.HEALTHY
        assert windows[2].projected_net == 3650.0

    def test_negative_cash_is_critical(self):
        """Test a projection below zero is critical."""
        [window] = forecast_windows(-1000.0, 500.0, 800.0, windows=(30,))
        assert window.projected_cash == -500.0
        assert window.risk == ForecastRiskLevel.CRITICAL

    def test_no_commitments_coverage(self):
        """Test coverage is 99 when nothing is committed."""
        [window] = forecast_windows(100.0, 100.0, 0.0, windows=(30,))
        assert window.coverage_months == 99.0


class TestBillRiskAlerts:
    """Tests for upcoming bill risk."""

    def test_reserve_funded_bill(self):
        """Test a manual bill compares against reserves plus pro-rated net."""
        alerts = bill_risk_alerts([make_bill(due_day=25)], [make_account(balance=2000.0)], 300.0, NOW)
        [alert] = alerts
        assert alert.due_date == date(2026, 3, 25)
        assert alert.days_away == 5
        assert alert.expected_available == 2050.0
        assert alert.risk == BillRiskLevel.GOOD
        assert alert.linked_account_name is None

    def test_warning_band(self):
        """Test cover below 125% of the bill is a warning."""
        [alert] = bill_risk_alerts([make_bill(amount=1000.0, due_day=20)], [make_account(balance=1100.0)], 0.0, NOW)
        assert alert.days_away == 0
        assert alert.risk == BillRiskLevel.WARNING

    def test_autopay_draws_down_linked_account(self):
        """Test autopay bills see the balance left by earlier autopay bills."""
        account = make_account("joint", "Joint", 500.0, liquid=False)
        bills = [
            make_bill("first", "Council tax", 300.0, due_day=22, autopay=True, linked_account_id="joint"),
            make_bill("second", "Energy", 300.0, due_day=24, autopay=True, linked_account_id="joint"),
        ]
        alerts = bill_risk_alerts(bills, [account], 0.0, NOW)
        assert [alert.id for alert in alerts] == ["first", "second"]
        assert alerts[0].linked_account_projected_balance == 500.0
        assert alerts[0].risk == BillRiskLevel.GOOD
        assert alerts[1].linked_account_projected_balance == 200.0
        assert alerts[1].risk == BillRiskLevel.CRITICAL
        assert alerts[1].linked_account_name == "Joint"

    def test_bills_beyond_horizon_skipped(self):
        """Test a yearly bill far in the future raises no alert."""
        bill = make_bill(cadence=Cadence.YEARLY, due_day=1, created_at=NOW.replace(year=2025, month=9))
        assert bill_risk_alerts([bill], [make_account()], 0.0, NOW, horizon_days=45) == []

    def test_sorted_by_days_then_amount(self):
        """Test soonest first, larger first on the same day."""
        bills = [
            make_bill("small", "Phone", 20.0, due_day=28),
            make_bill("large", "Rent", 900.0, due_day=28),
            make_bill("soon", "Water", 40.0, due_day=21),
        ]
        alerts = bill_risk_alerts(bills, [make_account(balance=5000.0)], 0.0, NOW)
        assert [alert.id for alert in alerts] == ["soon", "large", "small"]
