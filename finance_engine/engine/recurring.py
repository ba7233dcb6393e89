"""
Recurring Purchase Detector

Finds purchase labels that repeat on a roughly regular schedule within a
lookback window and predicts when each will happen next.

Confidence mixes regularity and volume:
    clamp(1 - mean|gap - avg gap| / 20 + count * 0.04, 0, 1) * 100
so perfectly regular groups start near 100 and every extra occurrence
buys back some irregularity.
"""

from datetime import date, datetime, timedelta
from typing import Iterable, Optional, Union

from finance_engine.engine.cadence import as_date
from finance_engine.engine.numeric import clamp, round_currency
from finance_engine.models.records import PurchaseRecord
from finance_engine.models.results import RecurringCandidate


MIN_OCCURRENCES = 3
MIN_AVERAGE_GAP_DAYS = 5
MAX_AVERAGE_GAP_DAYS = 45


def normalize_label(value: str) -> str:
    return (value or "").strip().lower()


def _candidate_from_group(key: str, group: list[PurchaseRecord]) -> Optional[RecurringCandidate]:
    ordered = sorted(group, key=lambda purchase: purchase.purchase_date)
    gaps = [
        (current.purchase_date - previous.purchase_date).days
        for previous, current in zip(ordered, ordered[1:])
    ]
    average_gap = sum(gaps) / len(gaps)
    if average_gap < MIN_AVERAGE_GAP_DAYS or average_gap > MAX_AVERAGE_GAP_DAYS:
        return None

    average_amount = sum(purchase.amount for purchase in ordered) / len(ordered)
    deviation = sum(abs(gap - average_gap) for gap in gaps) / len(gaps)
    confidence = clamp(1 - deviation / 20 + len(ordered) * 0.04, 0, 1)
    latest = ordered[-1]

    return RecurringCandidate(
        id=key,
        label=latest.item,
        category=latest.category,
        count=len(ordered),
        average_amount=round_currency(average_amount),
        average_interval_days=round_currency(average_gap),
        next_expected_date=latest.purchase_date + timedelta(days=average_gap),
        confidence=round_currency(confidence * 100),
    )


def detect_recurring(
    purchases: Iterable[PurchaseRecord],
    now: Union[date, datetime],
    lookback_days: int = 210,
    limit: int = 8,
) -> list[RecurringCandidate]:
    """
    Recurring candidates, best first.

    Args:
        purchases: Purchase history (any order)
        now: Reference time; the window is the lookback_days before it
        lookback_days: History window
        limit: Maximum number of candidates returned

    Returns:
        Candidates sorted by confidence desc, then occurrence count desc.
    """
    window_start = as_date(now) - timedelta(days=lookback_days)

    groups: dict[str, list[PurchaseRecord]] = {}
    for purchase in purchases:
        if purchase.purchase_date < window_start:
            continue
        groups.setdefault(normalize_label(purchase.item), []).append(purchase)

    candidates = []
    for key, group in groups.items():
        if len(group) < MIN_OCCURRENCES:
            continue
        candidate = _candidate_from_group(key, group)
        if candidate is not None:
            candidates.append(candidate)

    candidates.sort(key=lambda candidate: (-candidate.confidence, -candidate.count))
    return candidates[:limit]
