"""
Tests for purchase split arithmetic.
"""

import pytest

from conftest import make_purchase
from finance_engine.engine.splits import (
    has_split_mismatch,
    split_amounts_from_percentages,
    split_matches_purchase,
    split_total,
)
from finance_engine.models import SplitLine, SplitTemplateLine


def template(*percentages):
    return [
        SplitTemplateLine(category=f"Category {index}", percentage=percentage)
        for index, percentage in enumerate(percentages)
    ]


class TestSplitMatching:
    """Tests for comparing split lines with the purchase amount."""

    def test_total(self):
        """Test split amounts are summed and rounded."""
        lines = [SplitLine(category="A", amount=10.1), SplitLine(category="B", amount=0.11)]
        assert split_total(lines) == 10.21

    def test_within_a_cent_matches(self):
        """Test a one cent difference still matches."""
        purchase = make_purchase(amount=50.0)
        lines = [SplitLine(category="A", amount=30.0), SplitLine(category="B", amount=19.99)]
        assert split_matches_purchase(purchase, lines)

    def test_mismatch(self):
        """Test split purchases whose lines drifted are flagged."""
        good = make_purchase(amount=50.0, splits=[
            SplitLine(category="A", amount=30.0),
            SplitLine(category="B", amount=20.0),
        ])
        bad = make_purchase(amount=50.0, splits=[
            SplitLine(category="A", amount=30.0),
            SplitLine(category="B", amount=15.0),
        ])
        assert not has_split_mismatch(good)
        assert has_split_mismatch(bad)

    def test_unsplit_purchase_never_mismatches(self):
        """Test a purchase without splits is never a mismatch."""
        assert not has_split_mismatch(make_purchase())


class TestSplitFromPercentages:
    """Tests for turning template percentages into amounts."""

    def test_exact_percentages(self):
        """Test percentages summing to 100 split exactly."""
        lines = split_amounts_from_percentages(100.0, template(50, 30, 20))
        assert [line.amount for line in lines] == [50.0, 30.0, 20.0]
        assert [line.category for line in lines] == ["Category 0", "Category 1", "Category 2"]

    def test_last_line_takes_remainder(self):
        """Test rounding leftovers land on the last line."""
        lines = split_amounts_from_percentages(100.0, template(1, 1, 1))
        assert [line.amount for line in lines] == [33.33, 33.33, 33.34]

    def test_relative_percentages(self):
        """Test percentages are relative to their own total."""
        lines = split_amounts_from_percentages(80.0, template(30, 30))
        assert [line.amount for line in lines] == [40.0, 40.0]

    def test_zero_percentage_total(self):
        """Test a zero total puts the whole amount on the last line."""
        lines = split_amounts_from_percentages(25.0, template(0, 0))
        assert [line.amount for line in lines] == [0.0, 25.0]

    def test_no_lines(self):
        """Test an empty template gives no splits."""
        assert split_amounts_from_percentages(25.0, []) == []

    def test_goal_and_account_carried(self):
        """Test goal and account links are copied onto the split."""
        lines = [SplitTemplateLine(category="Saving", percentage=100, goal_id="g1", account_id="a1")]
        [line] = split_amounts_from_percentages(12.0, lines)
        assert (line.goal_id, line.account_id) == ("g1", "a1")

    @pytest.mark.parametrize("amount", [0.01, 9.99, 100.0, 123.45, 1999.99])
    def test_amounts_always_sum_to_purchase(self, amount):
        """Test generated splits always match the purchase amount."""
        lines = split_amounts_from_percentages(amount, template(33.3, 33.3, 20, 13.4))
        assert split_matches_purchase(make_purchase(amount=amount), lines)
        assert all(line.amount >= 0 for line in lines)
