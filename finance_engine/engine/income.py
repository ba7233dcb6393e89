"""
Income Resolver

Derives what an income is actually worth per cycle and per month.

Net cycle amount precedence:
1. gross - (tax + NI + pension), floored at 0, when gross > 0 or any
   deduction > 0
2. the raw amount, floored at 0

Forecast smoothing (opt-in per income) averages the last N months, where a
month with a recorded payment check uses what was actually received and a
month without one uses the baseline.
"""

import math
from datetime import date
from typing import Iterable, Optional

from finance_engine.engine.cadence import monthly_equivalent, parse_month_key
from finance_engine.engine.numeric import finite_or_zero, round_currency
from finance_engine.models.records import (
    IncomePaymentCheck,
    IncomePaymentStatus,
    IncomeRecord,
)


DEFAULT_SMOOTHING_MONTHS = 6
MIN_SMOOTHING_MONTHS = 2
MAX_SMOOTHING_MONTHS = 24

ChecksByMonth = dict[str, IncomePaymentCheck]


def deductions_total(income: IncomeRecord) -> float:
    return (
        finite_or_zero(income.tax_amount)
        + finite_or_zero(income.national_insurance_amount)
        + finite_or_zero(income.pension_amount)
    )


def has_income_breakdown(income: IncomeRecord) -> bool:
    """True when the user entered gross pay or any deduction."""
    return finite_or_zero(income.gross_amount) > 0 or deductions_total(income) > 0


def resolve_net_amount(income: IncomeRecord) -> float:
    """Net amount per pay cycle."""
    if has_income_breakdown(income):
        return max(finite_or_zero(income.gross_amount) - deductions_total(income), 0.0)
    return max(finite_or_zero(income.amount), 0.0)


def resolve_gross_amount(income: IncomeRecord) -> float:
    """Gross per cycle; reconstructed from net + deductions when not entered."""
    gross = finite_or_zero(income.gross_amount)
    if gross > 0:
        return gross
    return finite_or_zero(income.amount) + deductions_total(income)


def clamp_smoothing_months(value: Optional[float]) -> int:
    """Out-of-range lookbacks fall back to the default rather than the nearest bound."""
    months = int(math.floor(finite_or_zero(value) + 0.5))
    if MIN_SMOOTHING_MONTHS <= months <= MAX_SMOOTHING_MONTHS:
        return months
    return DEFAULT_SMOOTHING_MONTHS


def lookback_month_keys(anchor_month: str, months: int, today: Optional[date] = None) -> list[str]:
    """
    Month keys ending at anchor_month, newest first.

    An unparseable anchor falls back to the current month.
    """
    anchor = parse_month_key(anchor_month) or (today or date.today()).replace(day=1)
    keys = []
    year, month = anchor.year, anchor.month
    for _ in range(months):
        keys.append(f"{year:04d}-{month:02d}")
        month -= 1
        if month == 0:
            month = 12
            year -= 1
    return keys


def _is_finite(value: Optional[float]) -> bool:
    return value is not None and math.isfinite(value)


def payment_check_cycle_amount(check: IncomePaymentCheck, fallback_amount: float) -> float:
    """
    Cycle amount a payment check stands for.

    missed -> 0; else received, else expected, else the fallback.
    """
    if check.status == IncomePaymentStatus.MISSED:
        return 0.0
    if _is_finite(check.received_amount):
        return max(check.received_amount, 0.0)
    if _is_finite(check.expected_amount):
        return max(check.expected_amount, 0.0)
    return max(fallback_amount, 0.0)


def latest_checks_by_income(checks: Iterable[IncomePaymentCheck]) -> dict[str, ChecksByMonth]:
    """
    Index payment checks by income then cycle month.

    When a month has several checks the most recently updated one wins.
    """
    indexed: dict[str, ChecksByMonth] = {}
    for check in checks:
        by_month = indexed.setdefault(check.income_id, {})
        existing = by_month.get(check.cycle_month)
        if existing is None or check.updated_at > existing.updated_at:
            by_month[check.cycle_month] = check
    return indexed


def resolve_forecast_monthly(
    income: IncomeRecord,
    anchor_month: str,
    checks_by_month: Optional[ChecksByMonth] = None,
) -> float:
    """
    Monthly amount to forecast with, smoothed when the income opts in.

    Args:
        income: The income record
        anchor_month: Newest month of the lookback, 'YYYY-MM'
        checks_by_month: This income's payment checks keyed by cycle month

    Returns:
        Rounded monthly amount
    """
    baseline_cycle = resolve_net_amount(income)
    baseline_monthly = round_currency(
        monthly_equivalent(baseline_cycle, income.cadence, income.custom_interval, income.custom_unit)
    )

    if not income.forecast_smoothing_enabled:
        return baseline_monthly

    checks_by_month = checks_by_month or {}
    keys = lookback_month_keys(anchor_month, clamp_smoothing_months(income.forecast_smoothing_months))

    total = 0.0
    for key in keys:
        check = checks_by_month.get(key)
        if check is None:
            total += baseline_monthly
            continue
        cycle_amount = payment_check_cycle_amount(check, baseline_cycle)
        total += monthly_equivalent(cycle_amount, income.cadence, income.custom_interval, income.custom_unit)

    return round_currency(total / len(keys))


def monthly_income(incomes: Iterable[IncomeRecord]) -> float:
    """Unsmoothed monthly net income across all sources (unrounded)."""
    return sum(
        monthly_equivalent(resolve_net_amount(income), income.cadence, income.custom_interval, income.custom_unit)
        for income in incomes
    )


def monthly_income_for_forecast(
    incomes: Iterable[IncomeRecord],
    checks: Iterable[IncomePaymentCheck],
    anchor_month: str,
) -> float:
    """Smoothing-aware monthly net income across all sources (unrounded sum of rounded parts)."""
    indexed = latest_checks_by_income(checks)
    return sum(
        resolve_forecast_monthly(income, anchor_month, indexed.get(income.id))
        for income in incomes
    )

