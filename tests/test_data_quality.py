"""
Tests for data-quality counters and the month-close checklist.
"""

import pytest
from datetime import date

from conftest import NOW, make_budget, make_purchase
from finance_engine.engine.data_quality import (
    anomaly_count,
    data_quality_summary,
    duplicate_purchase_count,
    month_close_checklist,
    top_spend_categories,
)
from finance_engine.models import (
    BillDuplicateOverlapSummary,
    DataQualitySummary,
    ReconciliationStatus,
    SplitLine,
)


def amounts(*values):
    return [make_purchase(f"p{index}", amount=value) for index, value in enumerate(values)]


class TestCounters:
    """Tests for the individual data-quality counters."""

    def test_duplicates_counted_per_key(self):
        """Test three copies of one purchase count as one duplicate key."""
        purchases = [
            make_purchase("a", "Coffee", 3.5),
            make_purchase("b", " coffee ", 3.5),
            make_purchase("c", "COFFEE", 3.5),
            make_purchase("d", "Coffee", 3.5, purchase_date=date(2026, 3, 11)),
        ]
        assert duplicate_purchase_count(purchases) == 1

    def test_anomaly_above_threshold(self):
        """Test one large outlier among small purchases is flagged."""
        assert anomaly_count(amounts(*([10.0] * 9), 500.0)) == 1

    def test_anomaly_needs_minimum_amount(self):
        """Test small outliers below the minimum amount are ignored."""
        assert anomaly_count(amounts(*([1.0] * 9), 40.0)) == 0

    def test_single_purchase_is_never_anomalous(self):
        """Test one purchase has no spread to stand out from."""
        assert anomaly_count(amounts(900.0)) == 0
        assert anomaly_count([]) == 0

    def test_summary(self):
        """Test every counter in the summary."""
        purchases = [
            make_purchase("a", category="Misc"),
            make_purchase("b", item="Taxi", category=" ", reconciliation_status=ReconciliationStatus.PENDING),
            make_purchase("c", item="Shop", amount=40.0, splits=[SplitLine(category="Food", amount=10.0)]),
        ]
        summary = data_quality_summary(purchases, NOW)
        assert summary.missing_category_count == 2
        assert summary.pending_reconciliation_count == 1
        assert summary.split_mismatch_count == 1
        assert summary.duplicate_count == 0
        assert summary.anomaly_count == 0

    def test_top_spend_categories(self):
        """Test the biggest three categories are returned."""
        spend = {"Food": 300.0, "Fun": 20.0, "Rent": 900.0, "Travel": 150.0}
        assert top_spend_categories(spend) == ["Rent", "Food", "Travel"]


class TestMonthCloseChecklist:
    """Tests for the month-close checklist."""

    def test_clean_month(self):
        """Test every item is done for a clean month."""
        items = month_close_checklist(
            "2026-03",
            DataQualitySummary(),
            BillDuplicateOverlapSummary(),
            {"Food": 100.0},
            [make_budget("Food")],
            ["2026-02", "2026-03"],
        )
        assert [item.id for item in items] == [
            "pending-reconciliation",
            "cycle-run",
            "anomalies-reviewed",
            "bill-duplicates-overlaps",
            "budget-coverage",
            "categories-complete",
        ]
        assert all(item.done for item in items)
        assert items[1].label == "Run monthly cycle for 2026-03"
        assert items[1].detail == "Cycle run recorded"
        assert items[4].detail == "1 top categories checked"

    def test_month_with_issues(self):
        """Test outstanding work leaves items open with counts in the detail."""
        quality = DataQualitySummary(pending_reconciliation_count=2, anomaly_count=1, missing_category_count=3)
        bills = BillDuplicateOverlapSummary(duplicate_pair_count=1, impacted_bill_ids=["a", "b"])
        items = month_close_checklist("2026-03", quality, bills, {"Food": 100.0, "Rent": 900.0}, [], [])
        assert not any(item.done for item in items)
        assert items[0].detail == "2 pending entries"
        assert items[1].detail == "No cycle run recorded"
        assert items[2].detail == "1 anomalies flagged"
        assert items[3].detail.startswith("1 duplicate pair(s)")
        assert items[3].detail.endswith("across 2 bill(s)")
        assert items[5].detail == "3 uncategorized entries"

    def test_no_spend_is_covered(self):
        """Test budget coverage passes when there is no spend yet."""
        items = month_close_checklist("2026-03", DataQualitySummary(), BillDuplicateOverlapSummary(), {}, [], [])
        assert items[4].done
        assert items[4].detail == "No spend categories yet"
