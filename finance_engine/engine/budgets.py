"""
Budget envelope performance.

Spend is split-aware: a purchase with split lines contributes each line to
the line's category instead of its own. Only purchases dated within the
month count.

Pace projection:
    projected month end = spent / elapsed days x days in month
where elapsed days is today's day for the current month and the full
month otherwise.
"""

from datetime import date, datetime
from typing import Iterable, Sequence, Union

from finance_engine.engine.cadence import as_date, days_in_month, month_key, parse_month_key
from finance_engine.engine.numeric import finite_or_zero, round_currency
from finance_engine.models.records import EnvelopeBudget, PurchaseRecord
from finance_engine.models.results import BudgetPerformanceRow, BudgetStatus, EnvelopeTotals


WARNING_PACE_RATIO = 0.9

DateLike = Union[date, datetime]


def month_spend_by_category(purchases: Iterable[PurchaseRecord], month: str) -> dict[str, float]:
    """Spend per category for one month, honouring split lines."""
    spend: dict[str, float] = {}
    for purchase in purchases:
        if month_key(purchase.purchase_date) != month:
            continue
        if purchase.splits:
            for line in purchase.splits:
                spend[line.category] = round_currency(spend.get(line.category, 0.0) + finite_or_zero(line.amount))
        else:
            spend[purchase.category] = round_currency(
                spend.get(purchase.category, 0.0) + finite_or_zero(purchase.amount)
            )
    return spend


def elapsed_days(month: str, now: DateLike) -> tuple[int, int]:
    """
    (elapsed days, days in month) for pace projection.

    Past and future months count as fully elapsed.
    """
    today = as_date(now)
    start = parse_month_key(month) or today.replace(day=1)
    total = days_in_month(start.year, start.month)
    if month == month_key(today):
        return max(today.day, 1), total
    return total, total


def effective_target(budget: EnvelopeBudget) -> float:
    return round_currency(finite_or_zero(budget.target_amount) + finite_or_zero(budget.carryover_amount))


def projected_month_end(spent: float, elapsed: int, total_days: int) -> float:
    return round_currency(spent / elapsed * total_days)


def classify_pace(projected: float, target: float) -> BudgetStatus:
    if projected > target:
        return BudgetStatus.OVER
    if projected > target * WARNING_PACE_RATIO:
        return BudgetStatus.WARNING
    return BudgetStatus.ON_TRACK


def budgets_for_month(budgets: Iterable[EnvelopeBudget], month: str) -> list[EnvelopeBudget]:
    return [budget for budget in budgets if budget.month == month]


def budget_performance(
    budgets: Sequence[EnvelopeBudget],
    purchases: Sequence[PurchaseRecord],
    month: str,
    now: DateLike,
) -> list[BudgetPerformanceRow]:
    """
    One row per envelope for the month, highest spend first.

    suggested_rollover is what the envelope is on pace to leave unspent,
    and is only offered when rollover is enabled.
    """
    spend = month_spend_by_category(purchases, month)
    elapsed, total_days = elapsed_days(month, now)

    rows = []
    for budget in budgets_for_month(budgets, month):
        target = effective_target(budget)
        spent = round_currency(spend.get(budget.category, 0.0))
        projected = projected_month_end(spent, elapsed, total_days)
        rollover = round_currency(max(target - projected, 0.0)) if budget.rollover_enabled else 0.0
        rows.append(BudgetPerformanceRow(
            id=budget.id,
            category=budget.category,
            target_amount=finite_or_zero(budget.target_amount),
            carryover_amount=finite_or_zero(budget.carryover_amount),
            effective_target=target,
            spent=spent,
            variance=round_currency(target - spent),
            projected_month_end=projected,
            rollover_enabled=budget.rollover_enabled,
            suggested_rollover=rollover,
            status=classify_pace(projected, target),
        ))

    rows.sort(key=lambda row: -row.spent)
    return rows


def envelope_totals(
    budgets: Sequence[EnvelopeBudget],
    purchases: Sequence[PurchaseRecord],
    month: str,
    now: DateLike,
) -> EnvelopeTotals:
    """Month-level envelope sums; projected spend covers every spend category."""
    month_budgets = budgets_for_month(budgets, month)
    spend = month_spend_by_category(purchases, month)
    elapsed, total_days = elapsed_days(month, now)
    projected_by_category = {
        category: projected_month_end(spent, elapsed, total_days)
        for category, spent in spend.items()
    }

    target_total = round_currency(sum(finite_or_zero(budget.target_amount) for budget in month_budgets))
    carryover_total = round_currency(sum(finite_or_zero(budget.carryover_amount) for budget in month_budgets))
    rollover_total = sum(
        max(round_currency(effective_target(budget) - projected_by_category.get(budget.category, 0.0)), 0.0)
        for budget in month_budgets
        if budget.rollover_enabled
    )

    return EnvelopeTotals(
        target_total=target_total,
        carryover_total=carryover_total,
        effective_target_total=round_currency(target_total + carryover_total),
        projected_spend_total=round_currency(sum(projected_by_category.values())),
        suggested_rollover_total=round_currency(rollover_total),
    )
