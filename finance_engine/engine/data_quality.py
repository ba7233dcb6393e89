"""
Data-quality counters and the month-close checklist.

The counters point the user at records that would skew every other
analytic: duplicate entries, outliers, uncategorised spend, unreconciled
entries and split purchases whose lines no longer add up.
"""

import statistics
from datetime import date, datetime
from typing import Iterable, Mapping, Sequence, Union

import structlog

from finance_engine.engine.forecast import recent_purchases
from finance_engine.engine.numeric import finite_or_zero, round_currency
from finance_engine.engine.splits import has_split_mismatch
from finance_engine.models.records import EnvelopeBudget, PurchaseRecord, ReconciliationStatus
from finance_engine.models.results import BillDuplicateOverlapSummary, ChecklistItem, DataQualitySummary


logger = structlog.get_logger(__name__)

MISSING_CATEGORY_VALUES = frozenset({"", "uncategorized", "other", "misc"})
TOP_SPEND_CATEGORY_COUNT = 3


def _normalize(value: str) -> str:
    return (value or "").strip().lower()


def duplicate_purchase_count(purchases: Iterable[PurchaseRecord]) -> int:
    """Number of (item, amount, date) keys that occur more than once."""
    counts: dict[str, int] = {}
    for purchase in purchases:
        key = f"{_normalize(purchase.item)}::{round_currency(purchase.amount)}::{purchase.purchase_date.isoformat()}"
        counts[key] = counts.get(key, 0) + 1
    return sum(1 for count in counts.values() if count > 1)


def anomaly_count(
    purchases: Sequence[PurchaseRecord],
    std_multiplier: float = 2.5,
    min_amount: float = 50.0,
) -> int:
    """
    Purchases far above the window's typical amount.

    Threshold is mean + multiplier x sample standard deviation, and the
    purchase must also exceed min_amount. Fewer than two purchases have
    no spread, so the threshold collapses to the mean.
    """
    amounts = [finite_or_zero(purchase.amount) for purchase in purchases]
    if not amounts:
        return 0
    mean = statistics.fmean(amounts)
    spread = statistics.stdev(amounts) if len(amounts) > 1 else 0.0
    threshold = mean + spread * std_multiplier
    return sum(1 for amount in amounts if amount > threshold and amount > min_amount)


def is_missing_category(purchase: PurchaseRecord) -> bool:
    return _normalize(purchase.category) in MISSING_CATEGORY_VALUES


def data_quality_summary(
    purchases: Sequence[PurchaseRecord],
    now: Union[date, datetime],
    window_days: int = 90,
    std_multiplier: float = 2.5,
    min_amount: float = 50.0,
) -> DataQualitySummary:
    summary = DataQualitySummary(
        duplicate_count=duplicate_purchase_count(purchases),
        anomaly_count=anomaly_count(recent_purchases(purchases, now, window_days), std_multiplier, min_amount),
        missing_category_count=sum(1 for purchase in purchases if is_missing_category(purchase)),
        pending_reconciliation_count=sum(
            1 for purchase in purchases
            if purchase.reconciliation_status == ReconciliationStatus.PENDING
        ),
        split_mismatch_count=sum(1 for purchase in purchases if has_split_mismatch(purchase)),
    )
    logger.debug("data_quality_computed", **summary.model_dump())
    return summary


def top_spend_categories(spend_by_category: Mapping[str, float], limit: int = TOP_SPEND_CATEGORY_COUNT) -> list[str]:
    ranked = sorted(spend_by_category.items(), key=lambda entry: -entry[1])
    return [category for category, _ in ranked[:limit]]


def month_close_checklist(
    month: str,
    quality: DataQualitySummary,
    bill_duplicates: BillDuplicateOverlapSummary,
    spend_by_category: Mapping[str, float],
    month_budgets: Iterable[EnvelopeBudget],
    cycle_run_keys: Iterable[str],
) -> list[ChecklistItem]:
    """Six fixed items, in the order the user works through them."""
    cycle_ran = month in set(cycle_run_keys)
    top_categories = top_spend_categories(spend_by_category)
    budgeted = {budget.category for budget in month_budgets}

    return [
        ChecklistItem(
            id="pending-reconciliation",
            label="Resolve pending purchase reconciliation",
            done=quality.pending_reconciliation_count == 0,
            detail=f"{quality.pending_reconciliation_count} pending entries",
        ),
        ChecklistItem(
            id="cycle-run",
            label=f"Run monthly cycle for {month}",
            done=cycle_ran,
            detail="Cycle run recorded" if cycle_ran else "No cycle run recorded",
        ),
        ChecklistItem(
            id="anomalies-reviewed",
            label="Review spending anomalies",
            done=quality.anomaly_count == 0,
            detail=f"{quality.anomaly_count} anomalies flagged",
        ),
        ChecklistItem(
            id="bill-duplicates-overlaps",
            label="Resolve duplicate/overlap bills",
            done=bill_duplicates.duplicate_pair_count == 0 and bill_duplicates.overlap_pair_count == 0,
            detail=(
                f"{bill_duplicates.duplicate_pair_count} duplicate pair(s)  "
                f"{bill_duplicates.overlap_pair_count} overlap pair(s) across "
                f"{bill_duplicates.impacted_bill_count} bill(s)"
            ),
        ),
        ChecklistItem(
            id="budget-coverage",
            label="Cover top spending categories with budgets",
            done=all(category in budgeted for category in top_categories),
            detail=(
                "No spend categories yet" if not top_categories
                else f"{len(top_categories)} top categories checked"
            ),
        ),
        ChecklistItem(
            id="categories-complete",
            label="Clear missing categories",
            done=quality.missing_category_count == 0,
            detail=f"{quality.missing_category_count} uncategorized entries",
        ),
    ]
