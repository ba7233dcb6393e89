"""
Input Validation

DESIGN DECISION: Rejection happens in exactly one place, before the engine.

TIER 1 - REJECTION (this module):
- Required text present and within length
- Amounts positive or non-negative as the field demands
- Percentages within 0..100
- Month keys in YYYY-MM form
- Cross-record constraints (one budget per category per month,
  one allocation rule per target, splits summing to the purchase)

TIER 2 - TOLERANCE (the engine):
- Non-finite numbers read as 0
- Unresolvable dates come back as None

Every rejection raises InputValidationError with a message that can be
shown to the user as-is. Validation NEVER silently fixes input; the only
normalisation is trimming text, which the caller receives back.
"""

import math
from typing import Iterable, Optional, Sequence

from finance_engine.engine.cadence import parse_month_key
from finance_engine.engine.numeric import round_currency
from finance_engine.engine.splits import split_total
from finance_engine.models.records import (
    AllocationRule,
    EnvelopeBudget,
    PlanningVersionKey,
    PurchaseRecord,
    SplitLine,
    SplitTemplateLine,
)


MAX_REQUIRED_TEXT_LENGTH = 140
MAX_VERSION_NOTES_LENGTH = 500
MAX_TEMPLATE_NAME_LENGTH = 80
SPLIT_TOLERANCE = 0.01


class InputValidationError(ValueError):
    """
    A caller-supplied value was rejected.

    `field` names the offending input; str(error) is the user-facing message.
    """

    def __init__(self, field: str, message: str):
        super().__init__(message)
        self.field = field
        self.message = message


def _reject(field: str, message: str) -> None:
    raise InputValidationError(field=field, message=message)


def _is_finite(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


# ===== FIELD VALIDATORS =====

def validate_required_text(
    value: Optional[str],
    label: str,
    max_length: int = MAX_REQUIRED_TEXT_LENGTH,
) -> str:
    """Trimmed text, or rejection when empty or too long."""
    text = (value or "").strip()
    if not text:
        _reject(label, f"{label} is required.")
    if len(text) > max_length:
        _reject(label, f"{label} must be {max_length} characters or less.")
    return text


def validate_optional_text(value: Optional[str], label: str, max_length: int) -> Optional[str]:
    """Trimmed text or None when blank."""
    text = (value or "").strip()
    if not text:
        return None
    if len(text) > max_length:
        _reject(label, f"{label} must be {max_length} characters or less.")
    return text


def validate_positive(value, label: str) -> float:
    if not _is_finite(value) or value <= 0:
        _reject(label, f"{label} must be greater than 0.")
    return float(value)


def validate_non_negative(value, label: str) -> float:
    if not _is_finite(value) or value < 0:
        _reject(label, f"{label} cannot be negative.")
    return float(value)


def validate_percentage(value, label: str) -> float:
    if not _is_finite(value) or value < 0 or value > 100:
        _reject(label, f"{label} must be between 0 and 100.")
    return float(value)


def validate_month_key(value: Optional[str], label: str = "Month") -> str:
    if parse_month_key(value) is None:
        _reject(label, f"{label} must use YYYY-MM format.")
    return value


# ===== PURCHASE SPLITS =====

def validate_split_lines(purchase: PurchaseRecord, splits: Sequence[SplitLine]) -> list[SplitLine]:
    """
    Check a replacement split set for a purchase.

    Returns the lines with trimmed categories and rounded amounts.
    """
    if not splits:
        _reject("splits", "At least one split is required.")

    cleaned = []
    for line in splits:
        cleaned.append(SplitLine(
            category=validate_required_text(line.category, "Split category"),
            amount=round_currency(validate_positive(line.amount, "Split amount")),
            goal_id=line.goal_id,
            account_id=line.account_id,
        ))

    if abs(split_total(cleaned) - round_currency(purchase.amount)) > SPLIT_TOLERANCE:
        _reject("splits", "Split amounts must equal purchase total.")
    return cleaned


def validate_split_template(name: Optional[str], lines: Sequence[SplitTemplateLine]) -> tuple[str, list[SplitTemplateLine]]:
    """Trimmed template name and lines with trimmed categories."""
    trimmed = (name or "").strip()
    if not trimmed:
        _reject("name", "Template name is required.")
    if len(trimmed) > MAX_TEMPLATE_NAME_LENGTH:
        _reject("name", f"Template name must be {MAX_TEMPLATE_NAME_LENGTH} characters or less.")
    if not lines:
        _reject("splits", "At least one split line is required.")

    cleaned = [
        SplitTemplateLine(
            category=validate_required_text(line.category, "Split category"),
            percentage=validate_positive(line.percentage, "Split percentage"),
            goal_id=line.goal_id,
            account_id=line.account_id,
        )
        for line in lines
    ]
    if sum(line.percentage for line in cleaned) <= 0:
        _reject("splits", "Split percentage total must be greater than 0.")
    return trimmed, cleaned


# ===== BUDGETS AND ALLOCATION =====

def validate_envelope_budget(
    budget: EnvelopeBudget,
    existing: Iterable[EnvelopeBudget] = (),
) -> EnvelopeBudget:
    """
    Field checks plus one-budget-per-category-per-month.

    `existing` may contain the budget itself (an update); it is skipped by id.
    """
    validate_month_key(budget.month, "Budget month")
    category = validate_required_text(budget.category, "Budget category")
    validate_positive(budget.target_amount, "Target amount")
    if budget.carryover_amount is not None:
        validate_non_negative(budget.carryover_amount, "Carryover amount")

    for other in existing:
        if other.id == budget.id:
            continue
        if other.month == budget.month and other.category.strip().lower() == category.lower():
            _reject("category", "Budget category already exists for this month.")
    return budget


def validate_allocation_rule(
    rule: AllocationRule,
    existing: Iterable[AllocationRule] = (),
) -> AllocationRule:
    validate_percentage(rule.percentage, "Allocation percentage")
    for other in existing:
        if other.id != rule.id and other.target == rule.target:
            _reject("target", "Allocation rule already exists for this target.")
    return rule


def validate_auto_allocation_ready(rules: Iterable[AllocationRule], monthly_income: float) -> None:
    """
    Preconditions for producing suggestions.

    Draft availability is checked separately once drafts exist, since an
    active rule may still fund nothing.
    """
    active = [rule for rule in rules if rule.active and _is_finite(rule.percentage) and rule.percentage > 0]
    if not active:
        _reject("rules", "Add at least one active auto-allocation rule before applying suggestions.")

    total_percent = sum(rule.percentage for rule in active)
    if round_currency(monthly_income * total_percent / 100) <= 0:
        _reject("rules", "Auto-allocation totals are zero. Increase an active allocation percentage.")


# ===== PLANNING =====

def validate_planning_version(
    month: str,
    version_key: PlanningVersionKey,
    expected_income,
    fixed_commitments,
    variable_spending_cap,
    notes: Optional[str] = None,
) -> Optional[str]:
    """Rejects invalid planning figures; returns trimmed notes."""
    validate_month_key(month)
    if version_key not in set(PlanningVersionKey):
        _reject("version_key", "Planning version must be base, conservative or aggressive.")
    validate_non_negative(expected_income, "Expected income")
    validate_non_negative(fixed_commitments, "Fixed commitments")
    validate_non_negative(variable_spending_cap, "Variable spending cap")
    return validate_optional_text(notes, "Version notes", MAX_VERSION_NOTES_LENGTH)

