"""
Bill Risk & Cash Forecast Engine

Near-term view of whether upcoming bills can be paid, and where cash is
heading over 30/90/365 days.

Bill risk:
- Each bill's next due date is projected (engine.cadence); bills due in
  the past or beyond the horizon produce no alert.
- Autopay bills with a linked account draw down a running balance per
  account in due-date order. The alert reports the balance BEFORE the
  bill's own deduction.
- Other bills compare against liquid reserves plus the pro-rated monthly
  net up to the due date.

Forecast windows:
- projected cash = liquid reserves + monthly net x days / 30
- coverage = projected cash / monthly commitments (99 when there are none)
"""

from datetime import date, datetime, timedelta
from typing import Iterable, Optional, Sequence, Union

import structlog

from finance_engine.engine.cadence import as_date, monthly_equivalent, next_occurrence
from finance_engine.engine.loans import estimate_monthly_payment
from finance_engine.engine.numeric import finite_or_zero, round_currency
from finance_engine.models.records import (
    AccountRecord,
    BillRecord,
    CardRecord,
    LoanRecord,
    PurchaseRecord,
)
from finance_engine.models.results import (
    BillRiskAlert,
    BillRiskLevel,
    CommitmentBreakdown,
    ForecastRiskLevel,
    ForecastWindow,
)


logger = structlog.get_logger(__name__)

NO_COMMITMENT_COVERAGE = 99.0
WARNING_BUFFER_RATIO = 1.25
DEFAULT_FORECAST_WINDOWS = (30, 90, 365)

DateLike = Union[date, datetime]


# ===== BASELINE FIGURES =====

def _commitment_parts(
    bills: Iterable[BillRecord],
    cards: Iterable[CardRecord],
    loans: Iterable[LoanRecord],
) -> tuple[float, float, float]:
    monthly_bills = sum(
        monthly_equivalent(bill.amount, bill.cadence, bill.custom_interval, bill.custom_unit)
        for bill in bills
    )
    monthly_cards = sum(finite_or_zero(card.minimum_payment) for card in cards)
    monthly_loans = sum(
        estimate_monthly_payment(loan) + finite_or_zero(loan.subscription_cost)
        for loan in loans
    )
    return monthly_bills, monthly_cards, monthly_loans


def monthly_commitments(
    bills: Iterable[BillRecord],
    cards: Iterable[CardRecord],
    loans: Iterable[LoanRecord],
) -> CommitmentBreakdown:
    """
    Fixed monthly outgoings.

    bills at their monthly equivalent, card minimum payments, and loan
    monthly payments plus any bundled subscription cost.
    """
    monthly_bills, monthly_cards, monthly_loans = _commitment_parts(bills, cards, loans)
    return CommitmentBreakdown(
        monthly_bills=round_currency(monthly_bills),
        monthly_card_payments=round_currency(monthly_cards),
        monthly_loan_payments=round_currency(monthly_loans),
        monthly_commitments=round_currency(monthly_bills + monthly_cards + monthly_loans),
    )


def monthly_commitments_total(
    bills: Iterable[BillRecord],
    cards: Iterable[CardRecord],
    loans: Iterable[LoanRecord],
) -> float:
    """Unrounded sum of monthly_commitments, for figures that are scaled further."""
    return sum(_commitment_parts(bills, cards, loans))


def liquid_reserves(accounts: Iterable[AccountRecord]) -> float:
    """Sum of positive balances on liquid accounts."""
    return sum(
        max(finite_or_zero(account.balance), 0.0)
        for account in accounts
        if account.liquid
    )


def recent_purchases(
    purchases: Iterable[PurchaseRecord],
    now: DateLike,
    window_days: int = 90,
) -> list[PurchaseRecord]:
    window_start = as_date(now) - timedelta(days=window_days)
    return [purchase for purchase in purchases if purchase.purchase_date >= window_start]


def monthly_spend_estimate(
    purchases: Iterable[PurchaseRecord],
    now: DateLike,
    window_days: int = 90,
) -> float:
    """Average daily spend over the window, scaled to 30 days (unrounded)."""
    total = sum(finite_or_zero(purchase.amount) for purchase in recent_purchases(purchases, now, window_days))
    return total / window_days * 30


# ===== FORECAST WINDOWS =====

def forecast_windows(
    monthly_net: float,
    reserves: float,
    commitments: float,
    windows: Sequence[int] = DEFAULT_FORECAST_WINDOWS,
) -> list[ForecastWindow]:
    results = []
    for days in windows:
        projected_net = round_currency(monthly_net * days / 30)
        projected_cash = round_currency(reserves + projected_net)
        if commitments > 0:
            coverage = round_currency(projected_cash / commitments)
        else:
            coverage = NO_COMMITMENT_COVERAGE

        if projected_cash < 0:
            risk = ForecastRiskLevel.CRITICAL
        elif projected_cash < commitments:
            risk = ForecastRiskLevel.WARNING
        else:
            risk = ForecastRiskLevel.HEALTHY

        results.append(ForecastWindow(
            days=days,
            projected_net=projected_net,
            projected_cash=projected_cash,
            coverage_months=coverage,
            risk=risk,
        ))
    return results


# ===== BILL RISK =====

def _classify_bill_risk(available: float, amount: float) -> BillRiskLevel:
    if available < amount:
        return BillRiskLevel.CRITICAL
    if available < amount * WARNING_BUFFER_RATIO:
        return BillRiskLevel.WARNING
    return BillRiskLevel.GOOD


def _upcoming_due(bill: BillRecord, today: date, horizon_days: int) -> Optional[tuple[date, int]]:
    due = next_occurrence(
        bill.cadence,
        bill.created_at,
        today,
        day_of_month=bill.due_day,
        custom_interval=bill.custom_interval,
        custom_unit=bill.custom_unit,
    )
    if due is None:
        return None
    days_away = (due - today).days
    if days_away < 0 or days_away > horizon_days:
        return None
    return due, days_away


def project_autopay_balances(
    bills: Sequence[BillRecord],
    accounts: Sequence[AccountRecord],
    now: DateLike,
    horizon_days: int = 45,
) -> dict[str, tuple[str, float]]:
    """
    Linked-account balance before each upcoming autopay bill is taken.

    Events are processed by due date, then days away, then larger amounts
    first, so on a shared day the bigger bill sees the higher balance.

    Returns:
        {bill_id: (account_name, projected_balance_before)}
    """
    today = as_date(now)
    account_by_id = {account.id: account for account in accounts}

    events = []
    for bill in bills:
        if not bill.autopay or not bill.linked_account_id:
            continue
        upcoming = _upcoming_due(bill, today, horizon_days)
        if upcoming is None:
            continue
        due, days_away = upcoming
        events.append((due, days_away, -finite_or_zero(bill.amount), bill))
    events.sort(key=lambda event: event[:3])

    running: dict[str, float] = {}
    projected: dict[str, tuple[str, float]] = {}
    for _, _, _, bill in events:
        account = account_by_id.get(bill.linked_account_id)
        if account is None:
            logger.debug("autopay_account_missing", bill_id=bill.id, account_id=bill.linked_account_id)
            continue
        before = running.get(account.id, finite_or_zero(account.balance))
        running[account.id] = before - finite_or_zero(bill.amount)
        projected[bill.id] = (account.name, round_currency(before))
    return projected


def bill_risk_alerts(
    bills: Sequence[BillRecord],
    accounts: Sequence[AccountRecord],
    monthly_net: float,
    now: DateLike,
    horizon_days: int = 45,
) -> list[BillRiskAlert]:
    """
    Risk alerts for bills due within the horizon, soonest first.

    Ties on days away put the larger bill first.
    """
    today = as_date(now)
    reserves = liquid_reserves(accounts)
    autopay = project_autopay_balances(bills, accounts, today, horizon_days)

    alerts = []
    for bill in bills:
        upcoming = _upcoming_due(bill, today, horizon_days)
        if upcoming is None:
            continue
        due, days_away = upcoming
        amount = finite_or_zero(bill.amount)

        projection = autopay.get(bill.id)
        if projection is not None:
            account_name, available = projection
        else:
            account_name = None
            available = round_currency(reserves + (monthly_net / 30) * days_away)

        alerts.append(BillRiskAlert(
            id=bill.id,
            name=bill.name,
            due_date=due,
            amount=amount,
            days_away=days_away,
            expected_available=available,
            risk=_classify_bill_risk(available, amount),
            autopay=bill.autopay,
            linked_account_name=account_name,
            linked_account_projected_balance=available if projection is not None else None,
        ))

    alerts.sort(key=lambda alert: (alert.days_away, -alert.amount))
    return alerts
