"""
Loan Projection & Strategy Engine

Month-by-month amortization of each loan (and its bundled subscription),
rolled up into a portfolio view, then used to compare where an overpay
budget does the most good and whether a refinance offer pays off.

Each simulated month:
1. interest = opening loan balance x APR/12, added to accrued interest
2. minimum due from the loan's policy, scaled to a month
   - fixed: minimum payment x occurrences per month
   - percent_plus_interest: principal x percent x occurrences + accrued interest
3. planned payment = min(due balance, minimum + monthly extra)
4. payment clears accrued interest first, then principal
5. one subscription instalment is taken while any is outstanding

Occurrences per month are floored at 1 here, so a quarterly or one-time
loan is still projected as paying monthly.

DESIGN DECISION: Every intermediate figure is rounded to cents.
A projection row is something the user reconciles against statements,
so each row must add up on its own.
"""

import math
from datetime import date, datetime
from typing import Iterable, Mapping, Optional, Sequence, Union

from finance_engine.engine.cadence import as_date, date_with_clamped_day, month_key, occurrences_per_month
from finance_engine.engine.loans import normalize_minimum_payment_type, working_balances
from finance_engine.engine.numeric import clamp, finite_or_zero, round_currency
from finance_engine.models.records import LoanEventRecord, LoanEventType, LoanRecord, MinimumPaymentType
from finance_engine.models.results import (
    LoanConsistencyPoint,
    LoanPortfolioProjection,
    LoanProjectionModel,
    LoanProjectionOverrides,
    LoanProjectionRow,
    LoanProjectionSummary,
    LoanRefinanceOffer,
    LoanRefinanceResult,
    LoanStrategyCandidate,
    LoanStrategyMode,
    LoanStrategyResult,
    LoanWhatIfDelta,
    LoanWhatIfInput,
    LoanWhatIfResult,
)


PROJECTION_HORIZONS = (12, 24, 36)
MIN_PROJECTION_MONTHS = 36
PAYOFF_SEARCH_MONTHS = 360
DEFAULT_SUBSCRIPTION_PAYMENTS = 12
CONSISTENCY_TREND_MONTHS = 12
CONSISTENCY_RATIO_CAP = 1.4
EPSILON = 0.000001
ALL_LOANS = "all"

DateLike = Union[date, datetime]


# ===== SUBSCRIPTION =====

def resolve_subscription_outstanding(loan: LoanRecord) -> float:
    """
    What is still owed on the bundled subscription.

    An explicit outstanding amount wins, except that an outstanding no larger
    than one instalment with no known payment count is read as a fresh
    12-payment term. Without an explicit amount, cost x payment count (12).
    """
    cost = round_currency(max(finite_or_zero(loan.subscription_cost), 0.0))
    if cost <= 0:
        return 0.0

    payment_count = loan.subscription_payment_count
    if payment_count is not None and payment_count <= 0:
        payment_count = None

    if loan.subscription_outstanding is not None:
        outstanding = round_currency(max(finite_or_zero(loan.subscription_outstanding), 0.0))
        if payment_count is None and outstanding <= cost + EPSILON:
            return round_currency(cost * DEFAULT_SUBSCRIPTION_PAYMENTS)
        return outstanding

    return round_currency(cost * (payment_count or DEFAULT_SUBSCRIPTION_PAYMENTS))


def subscription_payments_remaining(cost: float, outstanding: float) -> int:
    if cost <= 0 or outstanding <= 0:
        return 0
    return max(1, math.ceil(outstanding / cost - EPSILON))


# ===== SIMULATION =====

def _paid_off_row(month_index: int, opening: dict) -> LoanProjectionRow:
    return LoanProjectionRow(
        month_index=month_index,
        **opening,
        interest_accrued=0.0,
        minimum_due=0.0,
        planned_loan_payment=0.0,
        payment_to_interest=0.0,
        payment_to_principal=0.0,
        subscription_due=0.0,
        total_payment=0.0,
        ending_principal=0.0,
        ending_interest=0.0,
        ending_subscription=0.0,
        ending_loan_balance=0.0,
        ending_outstanding=0.0,
        payment_consistency_ratio=1.0,
    )


def simulate_loan_rows(
    loan: LoanRecord,
    months: int,
    overrides: Optional[LoanProjectionOverrides] = None,
) -> tuple[list[LoanProjectionRow], Optional[int]]:
    """
    Project a loan forward month by month.

    Returns:
        (rows, payoff month index or None if still owing after the last row)
    """
    overrides = overrides or LoanProjectionOverrides()
    months = max(int(months), 1)
    working = working_balances(loan)

    apr = max(finite_or_zero(loan.interest_rate) + finite_or_zero(overrides.apr_delta), 0.0)
    monthly_rate = apr / 100 / 12 if apr > 0 else 0.0
    minimum_type = normalize_minimum_payment_type(loan.minimum_payment_type)
    minimum_percent = clamp(finite_or_zero(loan.minimum_payment_percent), 0, 100)
    occurrences = max(occurrences_per_month(loan.cadence, loan.custom_interval, loan.custom_unit), 1.0)
    extra_payment = max(
        max(finite_or_zero(loan.extra_payment), 0.0) + finite_or_zero(overrides.extra_payment_delta),
        0.0,
    )
    monthly_extra = extra_payment * occurrences
    monthly_fixed_minimum = max(finite_or_zero(loan.minimum_payment), 0.0) * occurrences
    subscription_cost = max(
        finite_or_zero(loan.subscription_cost) + finite_or_zero(overrides.subscription_delta),
        0.0,
    )

    principal = working.principal_balance
    accrued = working.accrued_interest
    subscription = resolve_subscription_outstanding(loan)

    rows = []
    payoff_month = None
    for month_index in range(1, months + 1):
        opening_principal = round_currency(max(principal, 0.0))
        opening_interest = round_currency(max(accrued, 0.0))
        opening_loan = round_currency(max(opening_principal + opening_interest, 0.0))
        opening_subscription = round_currency(max(subscription, 0.0))
        opening = {
            "opening_principal": opening_principal,
            "opening_interest": opening_interest,
            "opening_subscription": opening_subscription,
            "opening_outstanding": round_currency(opening_loan + opening_subscription),
        }

        if opening["opening_outstanding"] <= EPSILON:
            rows.append(_paid_off_row(month_index, opening))
            if payoff_month is None:
                payoff_month = month_index
            continue

        interest = round_currency(opening_loan * monthly_rate)
        accrued = round_currency(accrued + interest)
        due_balance = round_currency(principal + accrued)

        if minimum_type == MinimumPaymentType.PERCENT_PLUS_INTEREST:
            minimum_raw = principal * (minimum_percent / 100) * occurrences + accrued
        else:
            minimum_raw = monthly_fixed_minimum
        minimum_due = round_currency(min(due_balance, max(minimum_raw, 0.0)))
        planned = round_currency(min(due_balance, minimum_due + monthly_extra))

        to_interest = round_currency(min(accrued, planned))
        accrued = round_currency(max(accrued - to_interest, 0.0))
        to_principal = round_currency(min(principal, round_currency(planned - to_interest)))
        principal = round_currency(max(principal - to_principal, 0.0))

        instalment = subscription_cost if subscription_cost > 0 else subscription
        subscription_due = round_currency(min(subscription, instalment))
        subscription = round_currency(max(subscription - subscription_due, 0.0))

        ending_loan = round_currency(principal + accrued)
        ending_outstanding = round_currency(ending_loan + subscription)

        rows.append(LoanProjectionRow(
            month_index=month_index,
            **opening,
            interest_accrued=interest,
            minimum_due=minimum_due,
            planned_loan_payment=planned,
            payment_to_interest=to_interest,
            payment_to_principal=to_principal,
            subscription_due=subscription_due,
            total_payment=round_currency(planned + subscription_due),
            ending_principal=principal,
            ending_interest=accrued,
            ending_subscription=subscription,
            ending_loan_balance=ending_loan,
            ending_outstanding=ending_outstanding,
            payment_consistency_ratio=planned / minimum_due if minimum_due > 0 else 1.0,
        ))

        if payoff_month is None and ending_outstanding <= EPSILON:
            payoff_month = month_index

    return rows, payoff_month


def summarise_rows(rows: Sequence[LoanProjectionRow], months: int) -> LoanProjectionSummary:
    bounded = rows[:months]
    return LoanProjectionSummary(
        months=months,
        ending_outstanding=round_currency(bounded[-1].ending_outstanding) if bounded else 0.0,
        total_interest=round_currency(sum(row.interest_accrued for row in bounded)),
        total_principal_paid=round_currency(sum(row.payment_to_principal for row in bounded)),
        total_loan_payment=round_currency(sum(row.planned_loan_payment for row in bounded)),
        total_subscription_paid=round_currency(sum(row.subscription_due for row in bounded)),
        total_payment=round_currency(sum(row.total_payment for row in bounded)),
    )


# ===== PAYMENT CONSISTENCY =====

def payment_consistency_trend(
    loan_id: str,
    events: Iterable[LoanEventRecord],
    expected_monthly_payment: float,
    now: DateLike,
) -> tuple[list[LoanConsistencyPoint], float]:
    """
    Paid vs expected for the last 12 months, oldest first, plus a 0..140 score.

    Months with nothing logged count as ratio 0, so a loan with no payment
    history scores 0 rather than looking healthy.
    """
    paid_by_month: dict[str, float] = {}
    for event in events:
        if event.loan_id != loan_id or event.event_type != LoanEventType.PAYMENT:
            continue
        key = month_key(event.created_at)
        paid_by_month[key] = round_currency(paid_by_month.get(key, 0.0) + max(finite_or_zero(event.amount), 0.0))

    today = as_date(now)
    expected = round_currency(max(expected_monthly_payment, 0.0))
    trend = []
    for offset in range(CONSISTENCY_TREND_MONTHS - 1, -1, -1):
        key = month_key(date_with_clamped_day(today.year, today.month - offset, 1))
        paid = round_currency(paid_by_month.get(key, 0.0))
        ratio = paid / expected if expected > 0 else 1.0
        trend.append(LoanConsistencyPoint(month_key=key, paid=paid, expected=expected, ratio=ratio))

    mean = sum(clamp(point.ratio, 0, CONSISTENCY_RATIO_CAP) for point in trend) / len(trend)
    return trend, round_currency(clamp(mean * 100, 0, CONSISTENCY_RATIO_CAP * 100))


# ===== PROJECTIONS =====

def build_loan_projection_model(
    loan: LoanRecord,
    now: DateLike,
    overrides: Optional[LoanProjectionOverrides] = None,
    max_months: int = MIN_PROJECTION_MONTHS,
    loan_events: Iterable[LoanEventRecord] = (),
) -> LoanProjectionModel:
    """
    Project one loan over at least 36 months.

    The payoff month is searched over 360 months even though only
    max_months rows are returned.
    """
    overrides = overrides or LoanProjectionOverrides()
    max_months = max(int(max_months), MIN_PROJECTION_MONTHS)
    all_rows, payoff_month = simulate_loan_rows(loan, max(max_months, PAYOFF_SEARCH_MONTHS), overrides)
    rows = all_rows[:max_months]

    today = as_date(now)
    due_day = int(clamp(int(finite_or_zero(loan.due_day)) + int(overrides.due_day_shift), 1, 31))
    payoff_date = None
    if payoff_month is not None:
        payoff_date = date_with_clamped_day(today.year, today.month + payoff_month, due_day)

    horizons = {months: summarise_rows(rows, months) for months in PROJECTION_HORIZONS}
    expected_payment = rows[0].total_payment if rows else 0.0
    trend, score = payment_consistency_trend(loan.id, loan_events, expected_payment, today)

    working = working_balances(loan)
    subscription_outstanding = resolve_subscription_outstanding(loan)
    subscription_cost = round_currency(max(
        finite_or_zero(loan.subscription_cost) + finite_or_zero(overrides.subscription_delta),
        0.0,
    ))
    loan_balance = round_currency(working.principal_balance + working.accrued_interest)

    return LoanProjectionModel(
        loan_id=loan.id,
        name=loan.name,
        apr=round_currency(max(finite_or_zero(loan.interest_rate) + finite_or_zero(overrides.apr_delta), 0.0)),
        cadence=loan.cadence,
        custom_interval=loan.custom_interval,
        custom_unit=loan.custom_unit,
        due_day=due_day,
        subscription_cost=subscription_cost,
        subscription_payments_remaining=subscription_payments_remaining(subscription_cost, subscription_outstanding),
        current_principal=working.principal_balance,
        current_interest=working.accrued_interest,
        current_loan_balance=loan_balance,
        current_subscription_outstanding=subscription_outstanding,
        current_outstanding=round_currency(loan_balance + subscription_outstanding),
        projected_next_month_interest=round_currency(rows[0].interest_accrued) if rows else 0.0,
        projected_annual_interest=horizons[12].total_interest,
        projected_24_month_interest=horizons[24].total_interest,
        projected_36_month_interest=horizons[36].total_interest,
        projected_payoff_months=payoff_month,
        projected_payoff_date=payoff_date,
        payment_consistency_score=score,
        payment_consistency_trend=trend,
        rows=rows,
        horizons=horizons,
    )


def build_loan_portfolio_projection(
    loans: Sequence[LoanRecord],
    now: DateLike,
    per_loan_overrides: Optional[Mapping[str, LoanProjectionOverrides]] = None,
    max_months: int = MIN_PROJECTION_MONTHS,
    loan_events: Sequence[LoanEventRecord] = (),
) -> LoanPortfolioProjection:
    """Project every loan and total them. An empty portfolio scores 100."""
    per_loan_overrides = per_loan_overrides or {}
    models = [
        build_loan_projection_model(
            loan,
            now,
            overrides=per_loan_overrides.get(loan.id),
            max_months=max_months,
            loan_events=loan_events,
        )
        for loan in loans
    ]
    if not models:
        return LoanPortfolioProjection()

    return LoanPortfolioProjection(
        total_outstanding=round_currency(sum(model.current_outstanding for model in models)),
        projected_next_month_interest=round_currency(sum(model.projected_next_month_interest for model in models)),
        projected_annual_interest=round_currency(sum(model.horizons[12].total_interest for model in models)),
        projected_24_month_interest=round_currency(sum(model.horizons[24].total_interest for model in models)),
        projected_36_month_interest=round_currency(sum(model.horizons[36].total_interest for model in models)),
        projected_annual_payments=round_currency(sum(model.horizons[12].total_payment for model in models)),
        average_payment_consistency_score=round_currency(
            sum(model.payment_consistency_score for model in models) / len(models)
        ),
        models=models,
    )


# ===== OVERPAY STRATEGY =====

def _strategy_candidate(model: LoanProjectionModel, savings: float) -> LoanStrategyCandidate:
    return LoanStrategyCandidate(
        loan_id=model.loan_id,
        name=model.name,
        balance=model.current_outstanding,
        apr=model.apr,
        next_month_interest=model.projected_next_month_interest,
        annual_interest=model.projected_annual_interest,
        annual_interest_savings=round_currency(max(savings, 0.0)),
    )


def _annual_interest_with_overpay(
    loans: Sequence[LoanRecord],
    loan_events: Sequence[LoanEventRecord],
    target_loan_id: str,
    overpay: float,
    now: DateLike,
) -> float:
    projection = build_loan_portfolio_projection(
        loans,
        now,
        per_loan_overrides={target_loan_id: LoanProjectionOverrides(extra_payment_delta=max(overpay, 0.0))},
        loan_events=loan_events,
    )
    return projection.projected_annual_interest


def build_loan_strategy(
    loans: Sequence[LoanRecord],
    loan_events: Sequence[LoanEventRecord],
    monthly_overpay_budget: float,
    now: DateLike,
) -> LoanStrategyResult:
    """
    Compare sending the whole overpay budget to one loan.

    Avalanche picks the highest APR (then annual interest, then balance,
    larger first). Snowball picks the smallest balance (then higher APR).
    Both fall back to the name, case-insensitive. Avalanche is recommended
    unless snowball saves strictly more interest over 12 months.
    """
    budget = round_currency(max(finite_or_zero(monthly_overpay_budget), 0.0))
    baseline = build_loan_portfolio_projection(loans, now, loan_events=loan_events)
    candidates = [model for model in baseline.models if model.current_outstanding > 0.005]

    if not candidates:
        return LoanStrategyResult(
            monthly_overpay_budget=budget,
            portfolio_annual_interest_baseline=baseline.projected_annual_interest,
            portfolio_annual_interest_with_avalanche=baseline.projected_annual_interest,
            portfolio_annual_interest_with_snowball=baseline.projected_annual_interest,
            recommended_mode=LoanStrategyMode.AVALANCHE,
        )

    avalanche = min(candidates, key=lambda model: (
        -model.apr,
        -model.projected_annual_interest,
        -model.current_outstanding,
        model.name.casefold(),
    ))
    snowball = min(candidates, key=lambda model: (
        model.current_outstanding,
        -model.apr,
        model.name.casefold(),
    ))

    avalanche_interest = _annual_interest_with_overpay(loans, loan_events, avalanche.loan_id, budget, now)
    snowball_interest = _annual_interest_with_overpay(loans, loan_events, snowball.loan_id, budget, now)

    avalanche_target = _strategy_candidate(avalanche, baseline.projected_annual_interest - avalanche_interest)
    snowball_target = _strategy_candidate(snowball, baseline.projected_annual_interest - snowball_interest)

    if avalanche_target.annual_interest_savings >= snowball_target.annual_interest_savings:
        mode, recommended = LoanStrategyMode.AVALANCHE, avalanche_target
    else:
        mode, recommended = LoanStrategyMode.SNOWBALL, snowball_target

    return LoanStrategyResult(
        monthly_overpay_budget=budget,
        portfolio_annual_interest_baseline=baseline.projected_annual_interest,
        portfolio_annual_interest_with_avalanche=round_currency(avalanche_interest),
        portfolio_annual_interest_with_snowball=round_currency(snowball_interest),
        recommended_mode=mode,
        recommended_target=recommended,
        avalanche_target=avalanche_target,
        snowball_target=snowball_target,
    )


# ===== WHAT-IF =====

def run_loan_what_if(
    loans: Sequence[LoanRecord],
    loan_events: Sequence[LoanEventRecord],
    scenario_input: LoanWhatIfInput,
    now: DateLike,
) -> LoanWhatIfResult:
    """Re-project with the input's deltas applied to one loan, or to every loan."""
    overrides = LoanProjectionOverrides(
        extra_payment_delta=scenario_input.extra_payment_delta,
        apr_delta=scenario_input.apr_delta,
        subscription_delta=scenario_input.subscription_delta,
        due_day_shift=scenario_input.due_day_shift,
    )
    per_loan = {
        loan.id: overrides
        for loan in loans
        if scenario_input.loan_id in (ALL_LOANS, loan.id)
    }

    baseline = build_loan_portfolio_projection(loans, now, loan_events=loan_events)
    scenario = build_loan_portfolio_projection(loans, now, per_loan_overrides=per_loan, loan_events=loan_events)

    return LoanWhatIfResult(
        input=scenario_input,
        baseline=baseline,
        scenario=scenario,
        delta=LoanWhatIfDelta(
            next_month_interest=round_currency(
                scenario.projected_next_month_interest - baseline.projected_next_month_interest
            ),
            annual_interest=round_currency(scenario.projected_annual_interest - baseline.projected_annual_interest),
            annual_payments=round_currency(scenario.projected_annual_payments - baseline.projected_annual_payments),
            total_outstanding=round_currency(scenario.total_outstanding - baseline.total_outstanding),
        ),
    )


# ===== REFINANCE =====

def amortized_payment(principal: float, apr: float, term_months: int) -> float:
    """Level monthly payment that clears principal over the term (unrounded)."""
    principal = max(principal, 0.0)
    term = max(int(term_months), 1)
    monthly_rate = apr / 100 / 12 if apr > 0 else 0.0
    if monthly_rate <= 0:
        return principal / term
    denominator = 1 - (1 + monthly_rate) ** -term
    if denominator <= 0:
        return principal / term
    return principal * monthly_rate / denominator


def analyze_loan_refinance(model: LoanProjectionModel, offer: LoanRefinanceOffer) -> LoanRefinanceResult:
    """
    Compare refinancing the loan balance against staying on the projection.

    The subscription is not refinanced; it is paid on the same schedule
    either way. Fees are paid up front, so break-even is the first month
    the cumulative refinance cost catches up with the current plan.
    """
    term = max(int(offer.term_months), 1)
    apr = max(finite_or_zero(offer.apr), 0.0)
    fees = max(finite_or_zero(offer.fees), 0.0)
    payment_raw = amortized_payment(max(model.current_loan_balance, 0.0), apr, term)
    monthly_rate = apr / 100 / 12 if apr > 0 else 0.0

    baseline_rows = model.rows[:term]
    baseline_subscription = sum(row.subscription_due for row in baseline_rows)
    baseline_cost = sum(row.total_payment for row in baseline_rows)
    remaining_at_term = baseline_rows[-1].ending_outstanding if baseline_rows else model.current_outstanding

    balance = max(model.current_loan_balance, 0.0)
    interest_total = 0.0
    cost_total = fees
    cumulative_current = 0.0
    cumulative_refinance = fees
    break_even = None

    for month in range(1, term + 1):
        interest = balance * monthly_rate
        interest_total += interest
        due = balance + interest
        payment = min(due, payment_raw)
        balance = max(due - payment, 0.0)
        cost_total += payment

        row = baseline_rows[month - 1] if month <= len(baseline_rows) else None
        cumulative_current += row.total_payment if row else 0.0
        cumulative_refinance += payment + (row.subscription_due if row else 0.0)

        if break_even is None and cumulative_refinance <= cumulative_current + EPSILON:
            break_even = month

    total_refinance_cost = round_currency(cost_total + baseline_subscription + balance)
    total_current_cost = round_currency(baseline_cost + remaining_at_term)

    return LoanRefinanceResult(
        monthly_payment=round_currency(payment_raw),
        total_refinance_interest=round_currency(interest_total),
        total_refinance_cost=total_refinance_cost,
        total_current_cost=total_current_cost,
        total_cost_delta=round_currency(total_refinance_cost - total_current_cost),
        break_even_month=break_even,
        remaining_current_outstanding_at_term=round_currency(remaining_at_term),
    )
