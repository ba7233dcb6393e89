"""
Computation Engine Package

Pure functions over record snapshots. Nothing in here performs I/O, keeps
state between calls or raises on degenerate data: missing and non-finite
numbers read as 0 and unresolvable dates come back as None.
"""

from finance_engine.engine.allocation import build_allocation_plan, build_allocation_suggestions
from finance_engine.engine.bill_duplicates import classify_pair, detect_duplicate_overlap
from finance_engine.engine.budgets import budget_performance, envelope_totals, month_spend_by_category
from finance_engine.engine.cadence import monthly_equivalent, next_occurrence
from finance_engine.engine.data_quality import data_quality_summary, month_close_checklist
from finance_engine.engine.forecast import (
    bill_risk_alerts,
    forecast_windows,
    liquid_reserves,
    monthly_commitments,
    monthly_spend_estimate,
)
from finance_engine.engine.income import (
    monthly_income,
    monthly_income_for_forecast,
    resolve_forecast_monthly,
    resolve_net_amount,
)
from finance_engine.engine.loan_projection import (
    analyze_loan_refinance,
    build_loan_portfolio_projection,
    build_loan_projection_model,
    build_loan_strategy,
    run_loan_what_if,
)
from finance_engine.engine.loans import (
    apply_card_monthly_lifecycle,
    apply_loan_monthly_lifecycle,
    estimate_due_payment,
    estimate_monthly_payment,
)
from finance_engine.engine.numeric import finite_or_zero, round_currency, round_percent
from finance_engine.engine.planning import (
    adherence_rows,
    build_task_drafts,
    planning_kpis,
    planning_workspace,
    resolve_applied_version,
    resolve_versions,
)
from finance_engine.engine.recurring import detect_recurring
from finance_engine.engine.rules import pick_matching_rule, rule_matches
from finance_engine.engine.splits import split_amounts_from_percentages, split_matches_purchase, split_total

__all__ = [
    # Numeric and cadence
    "finite_or_zero",
    "round_currency",
    "round_percent",
    "monthly_equivalent",
    "next_occurrence",
    # Income and debt
    "monthly_income",
    "monthly_income_for_forecast",
    "resolve_forecast_monthly",
    "resolve_net_amount",
    "estimate_due_payment",
    "estimate_monthly_payment",
    "apply_card_monthly_lifecycle",
    "apply_loan_monthly_lifecycle",
    "build_loan_projection_model",
    "build_loan_portfolio_projection",
    "build_loan_strategy",
    "run_loan_what_if",
    "analyze_loan_refinance",
    # Detection
    "classify_pair",
    "detect_duplicate_overlap",
    "detect_recurring",
    # Allocation and forecast
    "build_allocation_plan",
    "build_allocation_suggestions",
    "bill_risk_alerts",
    "forecast_windows",
    "liquid_reserves",
    "monthly_commitments",
    "monthly_spend_estimate",
    # Budgets and planning
    "budget_performance",
    "envelope_totals",
    "month_spend_by_category",
    "adherence_rows",
    "build_task_drafts",
    "planning_kpis",
    "planning_workspace",
    "resolve_applied_version",
    "resolve_versions",
    # Splits, rules and data quality
    "split_amounts_from_percentages",
    "split_matches_purchase",
    "split_total",
    "pick_matching_rule",
    "rule_matches",
    "data_quality_summary",
    "month_close_checklist",
]
