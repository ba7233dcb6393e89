"""
Bill Duplicate/Overlap Detector

Compares every unordered pair of bills and flags pairs that are probably the
same obligation entered twice (duplicate) or two obligations covering the
same thing (overlap).

A pair is classified from four signals:
1. Name similarity (exact, containment, or token Jaccard without noise words)
2. Cadence compatibility (same group, or both monthly-like)
3. Amount delta as a share of the larger amount
4. Due-day delta

Manual override markers in bill notes (case-insensitive):
- "[archived-duplicate]" on either bill skips the pair
- "[intentional-overlap:<other id>]" on either bill, naming the other, skips it

NOTE: markers are matched as substrings of the raw notes, so a note that
merely quotes a marker also triggers it.
"""

import re
from itertools import combinations
from typing import Optional, Sequence

from finance_engine.engine.numeric import finite_or_zero, round_percent
from finance_engine.models.records import BillRecord, Cadence
from finance_engine.models.results import (
    BillDuplicateOverlapSummary,
    BillMatchKind,
    BillPairMatch,
)


NOISE_TOKENS = frozenset({
    "bill",
    "payment",
    "account",
    "subscription",
    "service",
    "charge",
    "plan",
    "monthly",
    "weekly",
    "annual",
    "yearly",
    "direct",
    "debit",
    "dd",
})
ARCHIVED_DUPLICATE_MARKER = "[archived-duplicate]"
INTENTIONAL_OVERLAP_PREFIX = "[intentional-overlap:"

MONTHLY_LIKE = frozenset({Cadence.MONTHLY, Cadence.QUARTERLY, Cadence.YEARLY})

CONTAINMENT_SIMILARITY = 0.94
CANDIDATE_MIN_SIMILARITY = 0.55

DUPLICATE_MIN_SIMILARITY = 0.9
DUPLICATE_MAX_AMOUNT_DELTA = 0.03
DUPLICATE_MAX_DUE_DAY_DELTA = 2

OVERLAP_MIN_SIMILARITY = 0.65
OVERLAP_MAX_AMOUNT_DELTA = 0.2
OVERLAP_MAX_DUE_DAY_DELTA = 7

_NON_ALPHANUMERIC = re.compile(r"[^a-z0-9\s]")
_WHITESPACE = re.compile(r"\s+")


# ===== NAME SIMILARITY =====

def normalize_bill_name(value: str) -> str:
    """'Netflix.com  Premium!' -> 'netflix com premium'"""
    value = _NON_ALPHANUMERIC.sub(" ", (value or "").strip().lower())
    return _WHITESPACE.sub(" ", value).strip()


def bill_name_tokens(value: str) -> set[str]:
    return {
        token
        for token in normalize_bill_name(value).split(" ")
        if len(token) > 1 and token not in NOISE_TOKENS
    }


def name_similarity(left: str, right: str) -> float:
    """
    Similarity in [0, 1].

    Equal normalized names score 1.0 and containment scores 0.94. Otherwise
    the score is the Jaccard index of the meaningful tokens.
    """
    normalized_left = normalize_bill_name(left)
    normalized_right = normalize_bill_name(right)
    if not normalized_left or not normalized_right:
        return 0.0
    if normalized_left == normalized_right:
        return 1.0
    if normalized_left in normalized_right or normalized_right in normalized_left:
        return CONTAINMENT_SIMILARITY

    left_tokens = bill_name_tokens(left)
    right_tokens = bill_name_tokens(right)
    union = left_tokens | right_tokens
    if not union:
        return 0.0
    return len(left_tokens & right_tokens) / len(union)


# ===== CADENCE AND MARKERS =====

def cadence_group_key(bill: BillRecord) -> str:
    if bill.cadence == Cadence.CUSTOM:
        unit = bill.custom_unit.value if bill.custom_unit else "months"
        return f"custom:{bill.custom_interval or 0}:{unit}"
    return Cadence(bill.cadence).value


def cadences_compatible(left: BillRecord, right: BillRecord) -> bool:
    if cadence_group_key(left) == cadence_group_key(right):
        return True
    return left.cadence in MONTHLY_LIKE and right.cadence in MONTHLY_LIKE


def has_archived_duplicate_marker(bill: BillRecord) -> bool:
    return ARCHIVED_DUPLICATE_MARKER in (bill.notes or "").lower()


def has_intentional_overlap_marker(left: BillRecord, right: BillRecord) -> bool:
    """Either bill naming the other is enough."""
    left_notes = (left.notes or "").lower()
    right_notes = (right.notes or "").lower()
    left_targets_right = f"{INTENTIONAL_OVERLAP_PREFIX}{right.id.lower()}]" in left_notes
    right_targets_left = f"{INTENTIONAL_OVERLAP_PREFIX}{left.id.lower()}]" in right_notes
    return left_targets_right or right_targets_left


# ===== CLASSIFICATION =====

def classify_pair(left: BillRecord, right: BillRecord) -> Optional[BillPairMatch]:
    """
    Classify one pair of bills.

    Returns None when the pair is skipped by a marker, the names are too
    different, or neither threshold set is met. The result does not depend
    on argument order apart from which id is reported as left.
    """
    if has_archived_duplicate_marker(left) or has_archived_duplicate_marker(right):
        return None
    if has_intentional_overlap_marker(left, right):
        return None

    similarity = name_similarity(left.name, right.name)
    if similarity < CANDIDATE_MIN_SIMILARITY:
        return None

    left_amount = finite_or_zero(left.amount)
    right_amount = finite_or_zero(right.amount)
    amount_delta_percent = abs(left_amount - right_amount) / max(left_amount, right_amount, 1)
    due_day_delta = abs(left.due_day - right.due_day)
    compatible = cadences_compatible(left, right)

    if not compatible:
        return None

    if (
        similarity >= DUPLICATE_MIN_SIMILARITY
        and amount_delta_percent <= DUPLICATE_MAX_AMOUNT_DELTA
        and due_day_delta <= DUPLICATE_MAX_DUE_DAY_DELTA
    ):
        kind = BillMatchKind.DUPLICATE
    elif (
        similarity >= OVERLAP_MIN_SIMILARITY
        and amount_delta_percent <= OVERLAP_MAX_AMOUNT_DELTA
        and due_day_delta <= OVERLAP_MAX_DUE_DAY_DELTA
    ):
        kind = BillMatchKind.OVERLAP
    else:
        return None

    return BillPairMatch(
        left_id=left.id,
        right_id=right.id,
        kind=kind,
        name_similarity=round_percent(similarity),
        amount_delta_percent=round_percent(amount_delta_percent * 100),
        due_day_delta=due_day_delta,
    )


def detect_duplicate_overlap(bills: Sequence[BillRecord]) -> BillDuplicateOverlapSummary:
    """Count duplicate and overlap pairs and collect every bill involved."""
    duplicate_pairs = 0
    overlap_pairs = 0
    impacted: set[str] = set()
    matches: list[BillPairMatch] = []

    for left, right in combinations(bills, 2):
        match = classify_pair(left, right)
        if match is None:
            continue
        if match.kind == BillMatchKind.DUPLICATE:
            duplicate_pairs += 1
        else:
            overlap_pairs += 1
        impacted.update((left.id, right.id))
        matches.append(match)

    return BillDuplicateOverlapSummary(
        duplicate_pair_count=duplicate_pairs,
        overlap_pair_count=overlap_pairs,
        impacted_bill_ids=sorted(impacted),
        matches=matches,
    )
