"""
Loan Amortization Estimator

Resolves a loan's working balances, estimates what is due this cycle under
its minimum-payment policy, and converts that into a monthly figure.
Also simulates card and loan balances forward by whole monthly cycles.

Working balance precedence:
1. explicit principal_balance / accrued_interest, when EITHER is present
2. the plain balance, all treated as principal

Minimum-due policies:
- fixed: the configured minimum payment
- percent_plus_interest: principal x percent + existing accrued interest
  + interest accrued this cycle

The minimum is clamped into [0, due balance]; extra payment is added on
top and the total is again capped at the due balance.
"""

from finance_engine.engine.cadence import monthly_equivalent, occurrences_per_month
from finance_engine.engine.numeric import clamp, finite_or_zero, round_currency
from finance_engine.models.records import CardRecord, LoanRecord, MinimumPaymentType
from finance_engine.models.results import CardCycleResult, LoanBalances, LoanCycleResult


def normalize_minimum_payment_type(value) -> MinimumPaymentType:
    if value == MinimumPaymentType.PERCENT_PLUS_INTEREST:
        return MinimumPaymentType.PERCENT_PLUS_INTEREST
    return MinimumPaymentType.FIXED


def _monthly_rate(apr) -> float:
    apr = finite_or_zero(apr)
    return apr / 100 / 12 if apr > 0 else 0.0


def working_balances(loan: LoanRecord) -> LoanBalances:
    """Principal, accrued interest and total balance, each floored at 0."""
    if loan.principal_balance is not None or loan.accrued_interest is not None:
        principal = max(finite_or_zero(loan.principal_balance), 0.0)
        interest = max(finite_or_zero(loan.accrued_interest), 0.0)
        balance = principal + interest
    else:
        balance = max(finite_or_zero(loan.balance), 0.0)
        principal = balance
        interest = 0.0

    return LoanBalances(
        principal_balance=round_currency(principal),
        accrued_interest=round_currency(interest),
        balance=round_currency(balance),
    )


def estimate_due_payment(loan: LoanRecord) -> float:
    """
    Planned payment for the current cycle.

    Interest for the cycle is balance x APR/12 x (months per cycle), so a
    weekly loan accrues roughly a quarter of a month's interest per payment.
    """
    working = working_balances(loan)
    if working.balance <= 0:
        return 0.0

    occurrences = occurrences_per_month(loan.cadence, loan.custom_interval, loan.custom_unit)
    interval_months = 1 / occurrences if occurrences > 0 else 1.0
    interest = working.balance * _monthly_rate(loan.interest_rate) * interval_months
    due_balance = working.balance + interest

    if normalize_minimum_payment_type(loan.minimum_payment_type) == MinimumPaymentType.PERCENT_PLUS_INTEREST:
        percent = clamp(finite_or_zero(loan.minimum_payment_percent), 0, 100)
        minimum_raw = working.principal_balance * (percent / 100) + working.accrued_interest + interest
    else:
        minimum_raw = finite_or_zero(loan.minimum_payment)

    minimum_due = min(due_balance, max(minimum_raw, 0.0))
    planned = min(due_balance, minimum_due + finite_or_zero(loan.extra_payment))
    return round_currency(planned)


def estimate_monthly_payment(loan: LoanRecord) -> float:
    """Due payment scaled to a month; 0 for cadences that never recur."""
    occurrences = occurrences_per_month(loan.cadence, loan.custom_interval, loan.custom_unit)
    if occurrences <= 0:
        return 0.0
    return round_currency(estimate_due_payment(loan) * occurrences)


# ===== MONTHLY LIFECYCLE =====

def apply_card_monthly_lifecycle(card: CardRecord, cycles: int) -> CardCycleResult:
    """
    Roll a card forward by whole statement cycles.

    Each cycle: interest on the statement balance, minimum due, payment,
    then the month's spend lands on the next statement.
    """
    balance = finite_or_zero(card.used_limit)
    statement_balance = finite_or_zero(
        card.statement_balance if card.statement_balance is not None else card.used_limit
    )
    pending_charges = finite_or_zero(card.pending_charges)
    spend_per_month = finite_or_zero(card.spend_per_month)
    minimum_type = normalize_minimum_payment_type(card.minimum_payment_type)
    minimum_percent = clamp(finite_or_zero(card.minimum_payment_percent), 0, 100)
    extra_payment = finite_or_zero(card.extra_payment)
    monthly_rate = _monthly_rate(card.interest_rate)

    interest_accrued = 0.0
    payments_applied = 0.0
    spend_added = 0.0
    latest_due_balance = statement_balance

    for _ in range(max(int(cycles), 0)):
        interest = statement_balance * monthly_rate
        interest_accrued += interest
        due_balance = statement_balance + interest
        latest_due_balance = due_balance

        if minimum_type == MinimumPaymentType.PERCENT_PLUS_INTEREST:
            minimum_raw = statement_balance * (minimum_percent / 100) + interest
        else:
            minimum_raw = finite_or_zero(card.minimum_payment)
        minimum_due = min(due_balance, max(minimum_raw, 0.0))
        payment = min(due_balance, minimum_due + extra_payment)
        payments_applied += payment

        pending_charges += spend_per_month
        spend_added += spend_per_month

        statement_balance = due_balance - payment + pending_charges
        balance = statement_balance
        pending_charges = 0.0

    return CardCycleResult(
        balance=round_currency(max(balance, 0.0)),
        statement_balance=round_currency(max(statement_balance, 0.0)),
        pending_charges=round_currency(max(pending_charges, 0.0)),
        due_balance=round_currency(max(latest_due_balance, 0.0)),
        interest_accrued=round_currency(interest_accrued),
        payments_applied=round_currency(payments_applied),
        spend_added=round_currency(spend_added),
    )


def apply_loan_monthly_lifecycle(loan: LoanRecord, cycles: int) -> LoanCycleResult:
    """Accrue a month's interest, then pay the monthly-equivalent minimum, N times."""
    balance = finite_or_zero(loan.balance)
    monthly_payment = monthly_equivalent(
        finite_or_zero(loan.minimum_payment),
        loan.cadence,
        loan.custom_interval,
        loan.custom_unit,
    )
    monthly_rate = _monthly_rate(loan.interest_rate)
    interest_accrued = 0.0
    payments_applied = 0.0

    for _ in range(max(int(cycles), 0)):
        interest = balance * monthly_rate
        balance += interest
        interest_accrued += interest
        payment = min(balance, monthly_payment)
        balance -= payment
        payments_applied += payment

    return LoanCycleResult(
        balance=round_currency(max(balance, 0.0)),
        interest_accrued=round_currency(interest_accrued),
        payments_applied=round_currency(payments_applied),
    )
