"""
Purchase split arithmetic.

A split purchase spreads its amount over several categories (and optionally
goals or accounts). The split lines must sum to the purchase amount within
one cent; template percentages are turned into amounts so that they always do.
"""

from typing import Iterable, Sequence

from finance_engine.engine.numeric import finite_or_zero, round_currency
from finance_engine.models.records import PurchaseRecord, SplitLine, SplitTemplateLine


SPLIT_TOLERANCE = 0.01


def split_total(splits: Iterable[SplitLine]) -> float:
    return round_currency(sum(finite_or_zero(line.amount) for line in splits))


def split_matches_purchase(purchase: PurchaseRecord, splits: Sequence[SplitLine]) -> bool:
    return abs(split_total(splits) - round_currency(finite_or_zero(purchase.amount))) <= SPLIT_TOLERANCE


def has_split_mismatch(purchase: PurchaseRecord) -> bool:
    """Only split purchases can mismatch."""
    if not purchase.splits:
        return False
    return not split_matches_purchase(purchase, purchase.splits)


def split_amounts_from_percentages(
    amount: float,
    lines: Sequence[SplitTemplateLine],
) -> list[SplitLine]:
    """
    Convert template percentages into split amounts that sum to `amount`.

    Percentages are taken relative to their own total, so a template of
    30/30 splits evenly. Every line but the last is rounded on its own; the
    last takes whatever is left (never below 0). If rounding still leaves a
    residual, it is folded into the last line.

    Args:
        amount: Purchase amount to distribute
        lines: Template lines with positive percentages

    Returns:
        One split line per template line, same order.
    """
    amount = round_currency(finite_or_zero(amount))
    if not lines:
        return []
    percentage_total = sum(finite_or_zero(line.percentage) for line in lines)
    if percentage_total <= 0:
        percentage_total = 1.0

    amounts = []
    allocated = 0.0
    for index, line in enumerate(lines):
        if index == len(lines) - 1:
            value = round_currency(max(amount - allocated, 0.0))
        else:
            value = round_currency(amount * finite_or_zero(line.percentage) / percentage_total)
            allocated = round_currency(allocated + value)
        amounts.append(value)

    delta = round_currency(amount - sum(amounts))
    if abs(delta) >= SPLIT_TOLERANCE:
        amounts[-1] = round_currency(max(amounts[-1] + delta, 0.0))

    return [
        SplitLine(
            category=line.category,
            amount=value,
            goal_id=line.goal_id,
            account_id=line.account_id,
        )
        for line, value in zip(lines, amounts)
    ]
