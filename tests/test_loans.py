"""
Tests for loan payment estimation and card/loan lifecycle simulation.
"""

import pytest

from finance_engine.engine.loans import (
    apply_card_monthly_lifecycle,
    apply_loan_monthly_lifecycle,
    estimate_due_payment,
    estimate_monthly_payment,
    working_balances,
)
from finance_engine.models import Cadence, CardRecord, LoanRecord, MinimumPaymentType


def make_loan(**overrides) -> LoanRecord:
    fields = {
        "id": "loan-1",
        "name": "Car loan",
        "balance": 1000.0,
        "interest_rate": 24.0,
        "minimum_payment_type": MinimumPaymentType.FIXED,
        "minimum_payment": 50.0,
        "extra_payment": 0.0,
    }
    fields.update(overrides)
    return LoanRecord(**fields)


class TestLoanPayments:
    """Tests for loan due and monthly payment estimates."""

    def test_fixed_minimum_scenario(self):
        """Test a 1000 balance at 24% APR with a fixed 50 minimum pays 50."""
        loan = make_loan()
        assert estimate_due_payment(loan) == 50.0
        assert estimate_monthly_payment(loan) == 50.0

    def test_minimum_clamped_to_due_balance(self):
        """Test a minimum larger than the balance pays off the balance plus interest."""
        loan = make_loan(balance=40.0, interest_rate=12.0, minimum_payment=100.0)
        assert estimate_due_payment(loan) == pytest.approx(40.4)

    def test_extra_payment_added(self):
        """Test extra payment is added on top of the minimum."""
        assert estimate_due_payment(make_loan(extra_payment=25.0)) == 75.0

    def test_percent_plus_interest(self):
        """Test principal percent plus accrued and cycle interest."""
        loan = make_loan(
            principal_balance=1000.0,
            accrued_interest=10.0,
            minimum_payment_type=MinimumPaymentType.PERCENT_PLUS_INTEREST,
            minimum_payment_percent=2.0,
        )
        # 1000 x 2% + 10 accrued + 1010 x 2% interest
        assert estimate_due_payment(loan) == pytest.approx(50.2)

    def test_weekly_loan_scales_to_month(self):
        """Test a weekly payment is scaled by 52/12 for the month."""
        loan = make_loan(cadence=Cadence.WEEKLY, interest_rate=0.0, minimum_payment=10.0)
        assert estimate_monthly_payment(loan) == pytest.approx(43.33)

    def test_one_time_loan_has_no_monthly_payment(self):
        """Test a non-recurring cadence contributes nothing per month."""
        assert estimate_monthly_payment(make_loan(cadence=Cadence.ONE_TIME)) == 0.0

    def test_paid_off_loan(self):
        """Test a zero balance needs no payment."""
        assert estimate_due_payment(make_loan(balance=0.0)) == 0.0

    def test_explicit_components_win(self):
        """Test principal and interest components override the plain balance."""
        balances = working_balances(make_loan(balance=5000.0, principal_balance=800.0))
        assert balances.balance == 800.0
        assert balances.accrued_interest == 0.0


class TestLifecycle:
    """Tests for rolling cards and loans forward by monthly cycles."""

    def test_loan_cycles(self):
        """Test interest then payment each cycle."""
        result = apply_loan_monthly_lifecycle(make_loan(), 2)
        # 1000 -> 1020 -> 970 -> 989.40 -> 939.40
        assert result.balance == pytest.approx(939.4)
        assert result.interest_accrued == pytest.approx(39.4)
        assert result.payments_applied == pytest.approx(100.0)

    def test_zero_cycles_is_identity(self):
        """Test zero cycles leaves the balance alone."""
        assert apply_loan_monthly_lifecycle(make_loan(), 0).balance == 1000.0

    def test_card_cycle_adds_spend_after_payment(self):
        """Test a card pays its minimum then takes on the month's spend."""
        card = CardRecord(
            id="card-1",
            name="Visa",
            used_limit=500.0,
            statement_balance=500.0,
            spend_per_month=200.0,
            minimum_payment=25.0,
            interest_rate=0.0,
        )
        result = apply_card_monthly_lifecycle(card, 1)
        assert result.payments_applied == 25.0
        assert result.statement_balance == 675.0
        assert result.spend_added == 200.0
        assert result.pending_charges == 0.0
