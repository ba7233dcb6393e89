"""
Tests for input validation.
"""

import math

import pytest

from conftest import make_budget, make_purchase, make_rule
from finance_engine.models import AllocationTarget, EnvelopeBudget, PlanningVersionKey, SplitLine, SplitTemplateLine
from finance_engine.validation import (
    InputValidationError,
    validate_allocation_rule,
    validate_auto_allocation_ready,
    validate_envelope_budget,
    validate_month_key,
    validate_non_negative,
    validate_optional_text,
    validate_percentage,
    validate_planning_version,
    validate_positive,
    validate_required_text,
    validate_split_lines,
    validate_split_template,
)


class TestFieldValidators:
    """Tests for single-field validators."""

    def test_required_text_trimmed(self):
        """Test required text comes back trimmed."""
        assert validate_required_text("  Rent  ", "Name") == "Rent"

    def test_required_text_missing(self):
        """Test blank required text is rejected with the field label."""
        with pytest.raises(InputValidationError, match="Name is required.") as excinfo:
            validate_required_text("   ", "Name")
        assert excinfo.value.field == "Name"

    def test_required_text_too_long(self):
        """Test the length limit."""
        with pytest.raises(InputValidationError, match="140 characters or less"):
            validate_required_text("x" * 141, "Name")

    def test_optional_text(self):
        """Test blank optional text becomes None."""
        assert validate_optional_text("  ", "Notes", 10) is None
        with pytest.raises(InputValidationError):
            validate_optional_text("x" * 11, "Notes", 10)

    @pytest.mark.parametrize("value", [0, -1, math.nan, math.inf, "10", True, None])
    def test_positive_rejects(self, value):
        """Test zero, negative, non-finite and non-numeric values fail."""
        with pytest.raises(InputValidationError, match="Amount must be greater than 0."):
            validate_positive(value, "Amount")

    def test_non_negative(self):
        """Test zero is allowed but negatives are not."""
        assert validate_non_negative(0, "Amount") == 0.0
        with pytest.raises(InputValidationError, match="cannot be negative"):
            validate_non_negative(-0.01, "Amount")

    @pytest.mark.parametrize("value,valid", [(0, True), (100, True), (100.01, False), (-1, False)])
    def test_percentage(self, value, valid):
        """Test percentages must be within 0..100."""
        if valid:
            assert validate_percentage(value, "Share") == float(value)
        else:
            with pytest.raises(InputValidationError, match="between 0 and 100"):
                validate_percentage(value, "Share")

    @pytest.mark.parametrize("value", ["2026-13", "2026-3", "March", "", None])
    def test_month_key_rejects(self, value):
        """Test malformed month keys fail."""
        with pytest.raises(InputValidationError, match="YYYY-MM"):
            validate_month_key(value)


class TestSplitValidation:
    """Tests for purchase split and template validation."""

    def test_valid_splits_cleaned(self):
        """Test categories are trimmed and amounts rounded."""
        purchase = make_purchase(amount=50.0)
        lines = validate_split_lines(purchase, [
            SplitLine(category=" Food ", amount=29.999),
            SplitLine(category="Home", amount=20.0),
        ])
        assert [(line.category, line.amount) for line in lines] == [("Food", 30.0), ("Home", 20.0)]

    def test_splits_required(self):
        """Test an empty split set is rejected."""
        with pytest.raises(InputValidationError, match="At least one split is required."):
            validate_split_lines(make_purchase(), [])

    def test_split_total_must_match(self):
        """Test lines not adding up to the purchase are rejected."""
        with pytest.raises(InputValidationError, match="Split amounts must equal purchase total."):
            validate_split_lines(make_purchase(amount=50.0), [SplitLine(category="Food", amount=40.0)])

    def test_split_amount_positive(self):
        """Test a zero split line is rejected."""
        with pytest.raises(InputValidationError, match="Split amount must be greater than 0."):
            validate_split_lines(make_purchase(amount=50.0), [
                SplitLine(category="Food", amount=50.0),
                SplitLine(category="Home", amount=0.0),
            ])

    def test_template(self):
        """Test a valid template is trimmed."""
        name, lines = validate_split_template(" Weekly shop ", [SplitTemplateLine(category="Food", percentage=60)])
        assert name == "Weekly shop"
        assert lines[0].percentage == 60.0

    def test_template_name_required(self):
        """Test the template name is required and bounded."""
        line = [SplitTemplateLine(category="Food", percentage=60)]
        with pytest.raises(InputValidationError, match="Template name is required."):
            validate_split_template("  ", line)
        with pytest.raises(InputValidationError, match="80 characters or less"):
            validate_split_template("x" * 81, line)

    def test_template_lines_required(self):
        """Test a template needs lines with positive percentages."""
        with pytest.raises(InputValidationError, match="At least one split line is required."):
            validate_split_template("Shop", [])
        with pytest.raises(InputValidationError, match="Split percentage must be greater than 0."):
            validate_split_template("Shop", [SplitTemplateLine(category="Food", percentage=0)])


class TestBudgetAndAllocationValidation:
    """Tests for envelope budgets and allocation rules."""

    def test_duplicate_category_rejected(self):
        """Test one budget per category per month, ignoring case."""
        existing = [make_budget("Food")]
        duplicate = EnvelopeBudget(id="other", month="2026-03", category="FOOD", target_amount=100)
        with pytest.raises(InputValidationError, match="Budget category already exists for this month."):
            validate_envelope_budget(duplicate, existing)

    def test_update_skips_itself(self):
        """Test updating a budget does not conflict with itself."""
        budget = make_budget("Food")
        assert validate_envelope_budget(budget, [budget]) == budget

    def test_other_month_allowed(self):
        """Test the same category in another month is fine."""
        assert validate_envelope_budget(make_budget("Food", month="2026-04"), [make_budget("Food")])

    def test_budget_fields(self):
        """Test month, target and carryover are checked."""
        with pytest.raises(InputValidationError, match="Budget month must use YYYY-MM format."):
            validate_envelope_budget(make_budget(month="2026-3"))
        with pytest.raises(InputValidationError, match="Target amount must be greater than 0."):
            validate_envelope_budget(make_budget(target=0))
        with pytest.raises(InputValidationError, match="Carryover amount cannot be negative."):
            validate_envelope_budget(make_budget(carryover=-5))

    def test_allocation_rule_duplicate_target(self):
        """Test one rule per target."""
        existing = [make_rule(AllocationTarget.SAVINGS, 10)]
        rule = make_rule(AllocationTarget.SAVINGS, 20).model_copy(update={"id": "rule-new"})
        with pytest.raises(InputValidationError, match="Allocation rule already exists for this target."):
            validate_allocation_rule(rule, existing)

    def test_allocation_percentage_bounds(self):
        """Test the allocation percentage must be within 0..100."""
        with pytest.raises(InputValidationError, match="Allocation percentage"):
            validate_allocation_rule(make_rule(AllocationTarget.BILLS, 120))

    def test_auto_allocation_needs_active_rule(self):
        """Test suggestions need an active positive rule."""
        with pytest.raises(InputValidationError, match="Add at least one active auto-allocation rule"):
            validate_auto_allocation_ready([make_rule(AllocationTarget.BILLS, 40, active=False)], 4000)

    def test_auto_allocation_needs_income(self):
        """Test zero income makes every allocation zero."""
        with pytest.raises(InputValidationError, match="Auto-allocation totals are zero."):
            validate_auto_allocation_ready([make_rule(AllocationTarget.BILLS, 40)], 0)


class TestPlanningVersionValidation:
    """Tests for planning version input."""

    def test_valid(self):
        """Test valid input returns trimmed notes."""
        notes = validate_planning_version("2026-03", PlanningVersionKey.BASE, 4000, 1500, 2000, "  tight month ")
        assert notes == "tight month"

    def test_unknown_key(self):
        """Test only the three version keys are accepted."""
        with pytest.raises(InputValidationError, match="Planning version must be base, conservative or aggressive."):
            validate_planning_version("2026-03", "stretch", 4000, 1500, 2000)

    @pytest.mark.parametrize("figures,label", [
        ((-1, 0, 0), "Expected income"),
        ((0, -1, 0), "Fixed commitments"),
        ((0, 0, -1), "Variable spending cap"),
    ])
    def test_negative_figures(self, figures, label):
        """Test each figure must be non-negative."""
        with pytest.raises(InputValidationError, match=label):
            validate_planning_version("2026-03", PlanningVersionKey.BASE, *figures)

    def test_notes_length(self):
        """Test notes are capped at 500 characters."""
        with pytest.raises(InputValidationError, match="Version notes must be 500 characters or less."):
            validate_planning_version("2026-03", PlanningVersionKey.BASE, 0, 0, 0, "x" * 501)
