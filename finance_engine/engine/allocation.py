"""
Auto-Allocation Planner

Turns percentage rules into a four-bucket plan against monthly income, then
proposes one concrete action per funded bucket.

Suggestion targets:
- bills: reserve against the baseline monthly commitments
- savings: the savings account with the highest balance
- goals: highest priority first, then the largest remaining amount
- debt_overpay: highest APR across cards and loans, then the largest balance

DESIGN DECISION: Percentages are NOT normalised to 100.
Over- and under-allocation are reported as-is so the user can see them.
"""

from typing import Iterable, Optional, Sequence

from pydantic import BaseModel

from finance_engine.engine.numeric import finite_or_zero, round_currency, round_percent
from finance_engine.models.records import (
    AccountRecord,
    AccountType,
    AllocationRule,
    AllocationTarget,
    CardRecord,
    GoalPriority,
    GoalRecord,
    LoanRecord,
)
from finance_engine.models.results import (
    AllocationActionType,
    AllocationSuggestionDraft,
    AutoAllocationPlan,
    AllocationBucket,
)


BUCKET_LABELS = {
    AllocationTarget.BILLS: "Bills",
    AllocationTarget.SAVINGS: "Savings",
    AllocationTarget.GOALS: "Goals",
    AllocationTarget.DEBT_OVERPAY: "Debt Overpay",
}

GOAL_PRIORITY_RANK = {
    GoalPriority.HIGH: 0,
    GoalPriority.MEDIUM: 1,
    GoalPriority.LOW: 2,
}


def _money(value: float) -> str:
    return f"{round_currency(value):.2f}"


# ===== PLAN =====

def build_allocation_plan(monthly_income: float, rules: Iterable[AllocationRule]) -> AutoAllocationPlan:
    """
    Allocate monthly income across the four buckets.

    Inactive rules contribute nothing. Bucket order is fixed:
    bills, savings, goals, debt_overpay.
    """
    monthly_income = finite_or_zero(monthly_income)
    percent_by_target = {target: 0.0 for target in AllocationTarget}
    for rule in rules:
        if not rule.active:
            continue
        percent_by_target[rule.target] = round_percent(
            percent_by_target[rule.target] + finite_or_zero(rule.percentage)
        )

    buckets = []
    for target in AllocationTarget:
        percentage = round_percent(percent_by_target[target])
        buckets.append(AllocationBucket(
            target=target,
            label=BUCKET_LABELS[target],
            percentage=percentage,
            monthly_amount=round_currency(monthly_income * percentage / 100),
            active=percentage > 0,
        ))

    total_percent = round_percent(sum(bucket.percentage for bucket in buckets))
    total_amount = round_currency(monthly_income * total_percent / 100)

    return AutoAllocationPlan(
        monthly_income=round_currency(monthly_income),
        total_allocated_percent=total_percent,
        total_allocated_amount=total_amount,
        residual_amount=round_currency(monthly_income - total_amount),
        unallocated_percent=round_percent(max(100 - total_percent, 0)),
        over_allocated_percent=round_percent(max(total_percent - 100, 0)),
        buckets=buckets,
    )


# ===== SUGGESTION TARGETS =====

class DebtCandidate(BaseModel):
    """A card or loan considered for overpayment."""
    kind: str
    name: str
    balance: float
    apr: float


def pick_savings_account(accounts: Iterable[AccountRecord]) -> Optional[AccountRecord]:
    savings = [account for account in accounts if account.type == AccountType.SAVINGS]
    if not savings:
        return None
    return max(savings, key=lambda account: account.balance)


def pick_goal(goals: Iterable[GoalRecord]) -> Optional[tuple[GoalRecord, float]]:
    """Best goal to fund with its remaining amount, or None when every goal is met."""
    ranked = []
    for goal in goals:
        remaining = max(finite_or_zero(goal.target_amount) - finite_or_zero(goal.current_amount), 0.0)
        if remaining > 0:
            ranked.append((goal, remaining))
    if not ranked:
        return None
    ranked.sort(key=lambda entry: (GOAL_PRIORITY_RANK[entry[0].priority], -entry[1]))
    return ranked[0]


def debt_candidates(cards: Iterable[CardRecord], loans: Iterable[LoanRecord]) -> list[DebtCandidate]:
    """Cards and loans with something owed, highest APR first, then largest balance."""
    candidates = [
        DebtCandidate(
            kind="card",
            name=card.name,
            balance=finite_or_zero(card.used_limit),
            apr=finite_or_zero(card.interest_rate),
        )
        for card in cards
        if finite_or_zero(card.used_limit) > 0
    ]
    for loan in loans:
        outstanding = finite_or_zero(loan.subscription_outstanding)
        balance = finite_or_zero(loan.balance)
        if balance > 0 or outstanding > 0:
            candidates.append(DebtCandidate(
                kind="loan",
                name=loan.name,
                balance=balance + outstanding,
                apr=finite_or_zero(loan.interest_rate),
            ))
    candidates.sort(key=lambda candidate: (-candidate.apr, -candidate.balance))
    return candidates


# ===== SUGGESTIONS =====

def build_allocation_suggestions(
    plan: AutoAllocationPlan,
    monthly_commitments: float,
    cards: Sequence[CardRecord] = (),
    loans: Sequence[LoanRecord] = (),
    goals: Sequence[GoalRecord] = (),
    accounts: Sequence[AccountRecord] = (),
) -> list[AllocationSuggestionDraft]:
    """One suggestion per active bucket with a positive amount, in bucket order."""
    savings_account = pick_savings_account(accounts)
    goal_pick = pick_goal(goals)
    debts = debt_candidates(cards, loans)
    debt_target = debts[0] if debts else None

    drafts = []
    for bucket in plan.buckets:
        if not bucket.active or bucket.monthly_amount <= 0:
            continue
        amount = _money(bucket.monthly_amount)

        if bucket.target == AllocationTarget.BILLS:
            action_type = AllocationActionType.RESERVE_BILLS
            title = "Reserve for bills and commitments"
            detail = (
                f"Set aside {amount} toward monthly commitments "
                f"({_money(monthly_commitments)} baseline)."
            )
        elif bucket.target == AllocationTarget.SAVINGS:
            action_type = AllocationActionType.MOVE_TO_SAVINGS
            if savings_account:
                title = f"Move into {savings_account.name}"
                detail = f"Transfer {amount} to {savings_account.name} to strengthen reserves."
            else:
                title = "Move to savings buffer"
                detail = f"Transfer {amount} into a savings account reserve bucket."
        elif bucket.target == AllocationTarget.GOALS:
            action_type = AllocationActionType.FUND_GOALS
            if goal_pick:
                goal, remaining = goal_pick
                title = f"Fund goal: {goal.title}"
                detail = f"Allocate {amount} to {goal.title} ({remaining:.2f} remaining)."
            else:
                title = "Fund active goals"
                detail = f"Allocate {amount} across your active goal balances."
        else:
            action_type = AllocationActionType.DEBT_OVERPAY
            if debt_target:
                title = f"Overpay debt: {debt_target.name}"
                detail = (
                    f"Use {amount} as extra payment on {debt_target.kind} "
                    f"{debt_target.name} ({debt_target.apr:.2f}% APR)."
                )
            else:
                title = "Overpay highest APR debt"
                detail = f"Reserve {amount} for extra debt overpayment when debt exists."

        drafts.append(AllocationSuggestionDraft(
            target=bucket.target,
            action_type=action_type,
            title=title,
            detail=detail,
            percentage=bucket.percentage,
            amount=bucket.monthly_amount,
        ))

    return drafts
