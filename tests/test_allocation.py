"""
Tests for the auto-allocation planner and its suggestions.
"""

import pytest

from conftest import make_account, make_rule
from finance_engine.engine.allocation import build_allocation_plan, build_allocation_suggestions, pick_goal
from finance_engine.models import (
    AccountType,
    AllocationActionType,
    AllocationTarget,
    CardRecord,
    GoalPriority,
    GoalRecord,
    LoanRecord,
)


STANDARD_RULES = [
    make_rule(AllocationTarget.BILLS, 40),
    make_rule(AllocationTarget.SAVINGS, 20),
    make_rule(AllocationTarget.GOALS, 10),
    make_rule(AllocationTarget.DEBT_OVERPAY, 10),
]


class TestAllocationPlan:
    """Tests for building the four-bucket plan."""

    def test_eighty_percent_scenario(self):
        """Test 80% of 4000 allocated leaves 800 and 20% unallocated."""
        plan = build_allocation_plan(4000, STANDARD_RULES)
        assert plan.total_allocated_percent == 80.0
        assert plan.total_allocated_amount == 3200.0
        assert plan.residual_amount == 800.0
        assert plan.unallocated_percent == 20.0
        assert plan.over_allocated_percent == 0.0

    def test_bucket_order_is_fixed(self):
        """Test buckets always come back in the same order."""
        plan = build_allocation_plan(1000, list(reversed(STANDARD_RULES)))
        assert [bucket.target for bucket in plan.buckets] == list(AllocationTarget)
        assert plan.buckets[0].monthly_amount == 400.0

    def test_over_allocation_reported_not_normalised(self):
        """Test percentages above 100 are reported as over-allocation."""
        rules = [make_rule(AllocationTarget.BILLS, 70), make_rule(AllocationTarget.SAVINGS, 50)]
        plan = build_allocation_plan(1000, rules)
        assert plan.total_allocated_amount == 1200.0
        assert plan.residual_amount == -200.0
        assert plan.over_allocated_percent == 20.0
        assert plan.unallocated_percent == 0.0

    def test_inactive_rules_ignored(self):
        """Test inactive rules contribute nothing."""
        plan = build_allocation_plan(1000, [make_rule(AllocationTarget.BILLS, 50, active=False)])
        assert plan.total_allocated_percent == 0.0
        assert not any(bucket.active for bucket in plan.buckets)


class TestAllocationSuggestions:
    """Tests for turning a plan into concrete suggestions."""

    def test_targets_resolved(self):
        """Test each bucket picks its best concrete target."""
        plan = build_allocation_plan(4000, STANDARD_RULES)
        accounts = [
            make_account("s1", "Rainy Day", 500.0, AccountType.SAVINGS),
            make_account("s2", "Big Pot", 900.0, AccountType.SAVINGS),
        ]
        goals = [
            GoalRecord(id="g1", title="Holiday", priority=GoalPriority.LOW, target_amount=2000, current_amount=0),
            GoalRecord(id="g2", title="Boiler", priority=GoalPriority.HIGH, target_amount=1500, current_amount=500),
        ]
        cards = [CardRecord(id="c1", name="Visa", used_limit=800, interest_rate=19.9)]
        loans = [LoanRecord(id="l1", name="Student", balance=9000, interest_rate=6.0)]

        drafts = build_allocation_suggestions(plan, 1500.0, cards=cards, loans=loans, goals=goals, accounts=accounts)

        assert [draft.action_type for draft in drafts] == [
            AllocationActionType.RESERVE_BILLS,
            AllocationActionType.MOVE_TO_SAVINGS,
            AllocationActionType.FUND_GOALS,
            AllocationActionType.DEBT_OVERPAY,
        ]
        assert drafts[0].detail == "Set aside 1600.00 toward monthly commitments (1500.00 baseline)."
        assert drafts[1].title == "Move into Big Pot"
        assert drafts[2].title == "Fund goal: Boiler"
        assert drafts[2].detail == "Allocate 400.00 to Boiler (1000.00 remaining)."
        assert drafts[3].title == "Overpay debt: Visa"
        assert drafts[3].detail == "Use 400.00 as extra payment on card Visa (19.90% APR)."

    def test_generic_titles_without_targets(self):
        """Test fallback wording when nothing concrete exists."""
        plan = build_allocation_plan(1000, STANDARD_RULES)
        drafts = build_allocation_suggestions(plan, 0.0)
        assert drafts[1].title == "Move to savings buffer"
        assert drafts[2].title == "Fund active goals"
        assert drafts[3].title == "Overpay highest APR debt"

    def test_unfunded_buckets_skipped(self):
        """Test buckets with no percentage produce no suggestion."""
        plan = build_allocation_plan(1000, [make_rule(AllocationTarget.SAVINGS, 25)])
        drafts = build_allocation_suggestions(plan, 0.0)
        assert [draft.target for draft in drafts] == [AllocationTarget.SAVINGS]
        assert drafts[0].amount == 250.0

    def test_completed_goals_not_picked(self):
        """Test goals already met are never funded."""
        goals = [GoalRecord(id="g1", title="Done", target_amount=100, current_amount=100)]
        assert pick_goal(goals) is None
