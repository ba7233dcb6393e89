"""
Planning Version Engine

Three parallel scenarios per month (base, conservative, aggressive), the
workspace comparing the selected one against a live baseline, the action
tasks that close the gap, and the plan-vs-actual adherence metrics.

Field resolution for a version shown to the user:
1. the saved record's fields, when the version has been saved
2. otherwise a default derived from the baseline:
   conservative = base x (income 0.95, commitments 1.03, cap 0.85)
   aggressive   = base x (income 1.05, commitments 0.98, cap 1.15)

Exactly one resolved version is selected: a saved selection wins, else base.

Version precedence when APPLYING a plan:
requested saved -> selected saved -> saved base -> default for the
requested (or selected) key.
"""

from typing import Iterable, Mapping, Optional, Sequence

from finance_engine.engine.budgets import budgets_for_month, effective_target
from finance_engine.engine.numeric import clamp, finite_or_zero, round_currency, round_percent
from finance_engine.models.records import (
    EnvelopeBudget,
    PlanningActionTask,
    PlanningTaskStatus,
    PlanningVersionKey,
    PlanningVersionRecord,
)
from finance_engine.models.results import (
    AdherenceRow,
    AutoAllocationPlan,
    BudgetStatus,
    EnvelopeTotals,
    PlanningActionTaskDraft,
    PlanningFigures,
    PlanningKpis,
    PlanningVersionDraft,
    PlanningWorkspace,
)


VERSION_LABELS = {
    PlanningVersionKey.BASE: "Base",
    PlanningVersionKey.CONSERVATIVE: "Conservative",
    PlanningVersionKey.AGGRESSIVE: "Aggressive",
}
VERSION_DESCRIPTIONS = {
    PlanningVersionKey.BASE: "Balanced baseline aligned with current monthly behavior.",
    PlanningVersionKey.CONSERVATIVE: "Defensive assumptions for tighter cash preservation.",
    PlanningVersionKey.AGGRESSIVE: "Growth-leaning assumptions for faster progress.",
}
# (income, commitments, variable cap)
VERSION_MULTIPLIERS = {
    PlanningVersionKey.BASE: (1.0, 1.0, 1.0),
    PlanningVersionKey.CONSERVATIVE: (0.95, 1.03, 0.85),
    PlanningVersionKey.AGGRESSIVE: (1.05, 0.98, 1.15),
}

DEFAULT_TASK_LIMIT = 12
ALLOCATION_TOLERANCE_PERCENT = 0.01
VARIANCE_TOLERANCE = 0.01
UNDERSPEND_WARNING_RATIO = 0.25


def planning_figures(income: float, commitments: float, cap: float) -> PlanningFigures:
    return PlanningFigures(
        expected_income=round_currency(income),
        fixed_commitments=round_currency(commitments),
        variable_spending_cap=round_currency(cap),
        monthly_net=round_currency(income - commitments - cap),
    )


# ===== VERSIONS =====

def default_version_figures(baseline: PlanningFigures) -> dict[PlanningVersionKey, PlanningFigures]:
    """Scenario defaults from a baseline, each floored at 0 before scaling."""
    income = round_currency(max(baseline.expected_income, 0.0))
    commitments = round_currency(max(baseline.fixed_commitments, 0.0))
    cap = round_currency(max(baseline.variable_spending_cap, 0.0))

    defaults = {}
    for key in PlanningVersionKey:
        income_factor, commitment_factor, cap_factor = VERSION_MULTIPLIERS[key]
        defaults[key] = planning_figures(
            round_currency(income * income_factor),
            round_currency(commitments * commitment_factor),
            round_currency(cap * cap_factor),
        )
    return defaults


def saved_versions_for_month(
    saved: Iterable[PlanningVersionRecord],
    month: str,
) -> dict[PlanningVersionKey, PlanningVersionRecord]:
    return {record.version_key: record for record in saved if record.month == month}


def saved_selected_key(saved: Mapping[PlanningVersionKey, PlanningVersionRecord]) -> Optional[PlanningVersionKey]:
    for key in PlanningVersionKey:
        record = saved.get(key)
        if record is not None and record.is_selected:
            return key
    return None


def resolve_versions(
    month: str,
    saved: Iterable[PlanningVersionRecord],
    baseline: PlanningFigures,
    notes: str = "",
) -> list[PlanningVersionDraft]:
    """
    The month's three versions in display order, saved fields over defaults.

    Args:
        month: Month key
        saved: Saved version records (any month; others are ignored)
        baseline: Live baseline figures the defaults derive from
        notes: Notes for an unsaved base version
    """
    saved_by_key = saved_versions_for_month(saved, month)
    selected_key = saved_selected_key(saved_by_key) or PlanningVersionKey.BASE
    defaults = default_version_figures(baseline)

    drafts = []
    for key in PlanningVersionKey:
        record = saved_by_key.get(key)
        if record is not None:
            figures = planning_figures(
                finite_or_zero(record.expected_income),
                finite_or_zero(record.fixed_commitments),
                finite_or_zero(record.variable_spending_cap),
            )
            version_notes = record.notes or ""
            updated_at = record.updated_at
        else:
            figures = defaults[key]
            version_notes = notes if key == PlanningVersionKey.BASE else ""
            updated_at = None

        drafts.append(PlanningVersionDraft(
            version_key=key,
            label=VERSION_LABELS[key],
            description=VERSION_DESCRIPTIONS[key],
            expected_income=figures.expected_income,
            fixed_commitments=figures.fixed_commitments,
            variable_spending_cap=figures.variable_spending_cap,
            monthly_net=figures.monthly_net,
            notes=version_notes,
            is_selected=key == selected_key,
            is_persisted=record is not None,
            updated_at=updated_at,
        ))
    return drafts


def selected_draft(drafts: Sequence[PlanningVersionDraft]) -> Optional[PlanningVersionDraft]:
    for draft in drafts:
        if draft.is_selected:
            return draft
    return drafts[0] if drafts else None


def planning_workspace(
    month: str,
    drafts: Sequence[PlanningVersionDraft],
    baseline: PlanningFigures,
    envelopes: EnvelopeTotals,
) -> PlanningWorkspace:
    """Selected version vs. live baseline, with per-field deltas."""
    chosen = selected_draft(drafts)
    if chosen is not None:
        planned = PlanningFigures(
            expected_income=chosen.expected_income,
            fixed_commitments=chosen.fixed_commitments,
            variable_spending_cap=chosen.variable_spending_cap,
            monthly_net=chosen.monthly_net,
        )
        selected_key = chosen.version_key
    else:
        planned = PlanningFigures()
        selected_key = PlanningVersionKey.BASE

    delta = PlanningFigures(
        expected_income=round_currency(planned.expected_income - baseline.expected_income),
        fixed_commitments=round_currency(planned.fixed_commitments - baseline.fixed_commitments),
        variable_spending_cap=round_currency(planned.variable_spending_cap - baseline.variable_spending_cap),
        monthly_net=round_currency(planned.monthly_net - baseline.monthly_net),
    )

    coverage = 0.0
    if planned.variable_spending_cap > 0:
        coverage = round_percent(envelopes.effective_target_total / planned.variable_spending_cap * 100)

    return PlanningWorkspace(
        month=month,
        selected_version=selected_key,
        baseline=baseline,
        planned=planned,
        delta=delta,
        envelopes=envelopes,
        envelope_coverage_percent=coverage,
    )


def resolve_applied_version(
    month: str,
    saved: Iterable[PlanningVersionRecord],
    baseline: PlanningFigures,
    requested_key: Optional[PlanningVersionKey] = None,
) -> tuple[PlanningVersionKey, PlanningFigures]:
    """Which version an apply should use, and its figures."""
    saved_by_key = saved_versions_for_month(saved, month)
    selected_key = saved_selected_key(saved_by_key)

    record = None
    if requested_key is not None:
        record = saved_by_key.get(requested_key)
    if record is None and selected_key is not None:
        record = saved_by_key[selected_key]
    if record is None:
        record = saved_by_key.get(PlanningVersionKey.BASE)

    if record is not None:
        return record.version_key, planning_figures(
            finite_or_zero(record.expected_income),
            finite_or_zero(record.fixed_commitments),
            finite_or_zero(record.variable_spending_cap),
        )

    fallback_key = requested_key or selected_key or PlanningVersionKey.BASE
    return fallback_key, default_version_figures(baseline)[fallback_key]


# ===== ACTION TASKS =====

def build_task_drafts(
    month: str,
    version: PlanningFigures,
    budgets: Sequence[EnvelopeBudget],
    spend_by_category: Mapping[str, float],
    plan: AutoAllocationPlan,
    limit: int = DEFAULT_TASK_LIMIT,
) -> list[PlanningActionTaskDraft]:
    """
    Tasks that close the gap between a version and the month's state.

    Order: cashflow, envelope coverage, allocation, per-envelope overspend,
    then the month-close checklist (always present unless truncated).
    """
    month_budgets = budgets_for_month(budgets, month)
    drafts = []

    planned_net = round_currency(
        version.expected_income - version.fixed_commitments - version.variable_spending_cap
    )
    if planned_net < 0:
        deficit = round_currency(abs(planned_net))
        drafts.append(PlanningActionTaskDraft(
            title="Close negative planned net",
            detail=(
                f"Planned net is {deficit:.2f} below zero for {month}. "
                "Reduce variable spend cap or increase income assumptions."
            ),
            category="cashflow",
            impact_amount=deficit,
        ))

    envelope_total = round_currency(sum(effective_target(budget) for budget in month_budgets))
    coverage_gap = round_currency(version.variable_spending_cap - envelope_total)
    if coverage_gap > 0:
        drafts.append(PlanningActionTaskDraft(
            title="Increase envelope coverage",
            detail=(
                f"Envelope targets are below variable cap by {coverage_gap:.2f}. "
                "Add or resize category budgets before month close."
            ),
            category="budget",
            impact_amount=coverage_gap,
        ))

    if plan.unallocated_percent > ALLOCATION_TOLERANCE_PERCENT:
        drafts.append(PlanningActionTaskDraft(
            title="Allocate unassigned income",
            detail=(
                f"{plan.unallocated_percent:.2f}% of income is unallocated. "
                "Route it to bills, savings, goals, or debt overpay."
            ),
            category="allocation",
            impact_amount=round_currency(max(plan.residual_amount, 0.0)),
        ))

    if plan.over_allocated_percent > ALLOCATION_TOLERANCE_PERCENT:
        drafts.append(PlanningActionTaskDraft(
            title="Resolve over-allocation conflict",
            detail=(
                f"Allocation rules exceed income by {plan.over_allocated_percent:.2f}%. "
                "Rebalance active percentages."
            ),
            category="allocation",
            impact_amount=round_currency(max(plan.total_allocated_amount - plan.monthly_income, 0.0)),
        ))

    for budget in month_budgets:
        actual = round_currency(spend_by_category.get(budget.category, 0.0))
        variance = round_currency(actual - effective_target(budget))
        if variance <= VARIANCE_TOLERANCE:
            continue
        drafts.append(PlanningActionTaskDraft(
            title=f"Recover overspend in {budget.category}",
            detail=(
                f"{budget.category} is over plan by {variance:.2f}. "
                f"Add an adjustment task before closing {month}."
            ),
            category="variance",
            impact_amount=variance,
        ))

    drafts.append(PlanningActionTaskDraft(
        title=f"Run close checklist for {month}",
        detail="Run monthly cycle, reconcile pending entries, and confirm planning KPIs before final close.",
        category="close",
        impact_amount=0.0,
    ))

    return drafts[:limit]


def task_status_counts(tasks: Iterable[PlanningActionTask]) -> dict[str, int]:
    counts: dict[str, int] = {}
    for task in tasks:
        status = PlanningTaskStatus(task.status).value
        counts[status] = counts.get(status, 0) + 1
    return counts


# ===== ADHERENCE AND KPIS =====

def adherence_rows(
    month: str,
    budgets: Sequence[EnvelopeBudget],
    spend_by_category: Mapping[str, float],
) -> list[AdherenceRow]:
    """
    Plan vs. actual per category, largest absolute variance first.

    Categories come from either side: budgeted-but-unspent and
    spent-but-unbudgeted both appear.
    """
    planned_by_category: dict[str, float] = {}
    for budget in budgets_for_month(budgets, month):
        planned_by_category[budget.category] = round_currency(
            planned_by_category.get(budget.category, 0.0) + effective_target(budget)
        )

    rows = []
    for category in set(planned_by_category) | set(spend_by_category):
        planned = round_currency(planned_by_category.get(category, 0.0))
        actual = round_currency(spend_by_category.get(category, 0.0))
        variance = round_currency(actual - planned)

        if planned > 0:
            rate = round_percent(variance / planned * 100)
        else:
            rate = 100.0 if actual > 0 else 0.0

        if variance > VARIANCE_TOLERANCE:
            status = BudgetStatus.OVER
        elif variance < -planned * UNDERSPEND_WARNING_RATIO:
            status = BudgetStatus.WARNING
        else:
            status = BudgetStatus.ON_TRACK

        rows.append(AdherenceRow(
            id=f"{month}:{category}",
            category=category,
            planned=planned,
            actual=actual,
            variance=variance,
            variance_rate_percent=rate,
            status=status,
        ))

    rows.sort(key=lambda row: (-abs(row.variance), row.category))
    return rows


def planning_kpis(
    rows: Sequence[AdherenceRow],
    selected: Optional[PlanningVersionRecord],
    commitments: float,
    tasks: Sequence[PlanningActionTask],
) -> PlanningKpis:
    """
    Roll adherence rows and task progress into headline KPIs.

    Without a saved selected (or base) version the plan assumes zero income,
    the live commitments and the envelope total as the cap.
    """
    planned_total = round_currency(sum(row.planned for row in rows))
    actual_total = round_currency(sum(row.actual for row in rows))
    absolute_variance = round_currency(sum(abs(row.variance) for row in rows))

    if selected is not None:
        income = finite_or_zero(selected.expected_income)
        fixed = finite_or_zero(selected.fixed_commitments)
        cap = finite_or_zero(selected.variable_spending_cap)
    else:
        income, fixed, cap = 0.0, commitments, planned_total

    planned_net = round_currency(income - fixed - cap)
    actual_net = round_currency(income - fixed - actual_total)
    accuracy = round_percent(
        clamp(100 - abs(actual_net - planned_net) / max(abs(planned_net), 1) * 100, 0, 100)
    )
    variance_rate = round_percent(absolute_variance / planned_total * 100) if planned_total > 0 else 0.0

    completed = sum(1 for task in tasks if task.status == PlanningTaskStatus.DONE)
    completion = round_percent(completed / len(tasks) * 100) if tasks else 0.0

    return PlanningKpis(
        forecast_accuracy_percent=accuracy,
        variance_rate_percent=variance_rate,
        plan_completion_percent=completion,
        total_tasks=len(tasks),
        completed_tasks=completed,
        planned_net=planned_net,
        actual_net=actual_net,
    )


def kpi_version(saved: Iterable[PlanningVersionRecord], month: str) -> Optional[PlanningVersionRecord]:
    """Saved version the KPIs measure against: the selected one, else saved base."""
    saved_by_key = saved_versions_for_month(saved, month)
    selected_key = saved_selected_key(saved_by_key)
    if selected_key is not None:
        return saved_by_key[selected_key]
    return saved_by_key.get(PlanningVersionKey.BASE)
