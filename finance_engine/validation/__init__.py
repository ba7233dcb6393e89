"""Input rejection for planning mutations."""

from finance_engine.validation.validator import (
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

__all__ = [
    "InputValidationError",
    "validate_allocation_rule",
    "validate_auto_allocation_ready",
    "validate_envelope_budget",
    "validate_month_key",
    "validate_non_negative",
    "validate_optional_text",
    "validate_percentage",
    "validate_planning_version",
    "validate_positive",
    "validate_required_text",
    "validate_split_lines",
    "validate_split_template",
]
