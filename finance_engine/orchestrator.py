"""
Main Orchestrator for the Finance Engine

This module ties the pure engine to the outside world and defines the
end-to-end flows for:
1. Planning mutations (save version → apply plan → work tasks)
2. Auto-allocation (rules → plan → suggestion run)
3. Purchase splits (manual lines, template, clear)
4. Dashboard (snapshot → every derived analytic for a month)

DESIGN DECISION: The orchestrator enforces the boundaries:
- Input is rejected before any engine call
- The engine never mutates a record; flows return replacements
- Every mutation is audited with before/after snapshots

Persisting the returned records is the data layer's job. It must apply
"replace the month's tasks" and "deselect the previous version" atomically.
"""

from datetime import datetime, timezone
from typing import Any, Optional, Sequence
from uuid import UUID, uuid4

import structlog

from finance_engine.audit import AuditLogger, create_correlation_id
from finance_engine.config import EngineSettings, get_settings
from finance_engine.engine.allocation import build_allocation_plan, build_allocation_suggestions
from finance_engine.engine.bill_duplicates import detect_duplicate_overlap
from finance_engine.engine.budgets import (
    budget_performance,
    budgets_for_month,
    envelope_totals,
    month_spend_by_category,
)
from finance_engine.engine.cadence import month_key
from finance_engine.engine.data_quality import data_quality_summary, month_close_checklist
from finance_engine.engine.forecast import (
    bill_risk_alerts,
    forecast_windows,
    liquid_reserves,
    monthly_commitments,
    monthly_commitments_total,
    monthly_spend_estimate,
)
from finance_engine.engine.income import monthly_income, monthly_income_for_forecast
from finance_engine.engine.loan_projection import build_loan_portfolio_projection
from finance_engine.engine.numeric import round_currency
from finance_engine.engine.planning import (
    adherence_rows,
    build_task_drafts,
    kpi_version,
    planning_figures,
    planning_kpis,
    planning_workspace,
    resolve_applied_version,
    resolve_versions,
    saved_versions_for_month,
    task_status_counts,
)
from finance_engine.engine.recurring import detect_recurring
from finance_engine.engine.splits import split_amounts_from_percentages
from finance_engine.models.audit import AuditEventType
from finance_engine.models.records import (
    FinanceSnapshot,
    PlanningActionTask,
    PlanningTaskSource,
    PlanningTaskStatus,
    PlanningVersionKey,
    PlanningVersionRecord,
    PurchaseRecord,
    SplitLine,
    SplitTemplate,
)
from finance_engine.models.results import (
    AllocationSuggestion,
    AutoAllocationRun,
    PlanApplication,
    PlanningDashboard,
    PlanningVersionUpsert,
)
from finance_engine.validation import (
    InputValidationError,
    validate_auto_allocation_ready,
    validate_month_key,
    validate_planning_version,
    validate_split_lines,
    validate_split_template,
)


logger = structlog.get_logger(__name__)

DEFAULT_PLANNING_SOURCE = "planning_tab"
DEFAULT_SPLIT_SOURCE = "manual"


def _now(now: Optional[datetime]) -> datetime:
    return now or datetime.now(timezone.utc)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _version_snapshot(record: PlanningVersionRecord) -> dict[str, Any]:
    return {
        "month": record.month,
        "versionKey": record.version_key.value,
        "expectedIncome": record.expected_income,
        "fixedCommitments": record.fixed_commitments,
        "variableSpendingCap": record.variable_spending_cap,
        "notes": record.notes,
        "isSelected": record.is_selected,
        "updatedAt": _iso(record.updated_at),
    }


def _task_snapshot(task: PlanningActionTask) -> dict[str, Any]:
    return {
        "month": task.month,
        "versionKey": task.version_key.value,
        "title": task.title,
        "category": task.category,
        "impactAmount": task.impact_amount,
        "status": task.status.value,
        "source": task.source.value,
        "updatedAt": _iso(task.updated_at),
    }


def _split_snapshot(splits: Sequence[SplitLine]) -> dict[str, Any]:
    return {
        "splitCount": len(splits),
        "splits": [
            {
                "category": line.category,
                "amount": line.amount,
                "goalId": line.goal_id,
                "accountId": line.account_id,
            }
            for line in splits
        ],
    }


class _AuditedFlow:
    """Shared plumbing: optional audit logger and rejection logging."""

    def __init__(self, audit_logger: Optional[AuditLogger] = None):
        self._audit_logger = audit_logger

    async def _reject(
        self,
        error: InputValidationError,
        entity_type: str,
        correlation_id: UUID,
    ) -> None:
        if self._audit_logger:
            await self._audit_logger.log_input_rejected(
                entity_type=entity_type,
                field=error.field,
                message=error.message,
                correlation_id=correlation_id,
            )


class PlanningFlow(_AuditedFlow):
    """
    Orchestrates planning mutations.

    Flow:
    1. Save → version figures for a month (at most one selected)
    2. Apply → replace the month's action tasks from a version
    3. Work → move tasks through their status lifecycle
    4. Allocate → turn allocation rules into a suggestion run

    Applying replaces every prior task for the month. Statuses are NOT
    carried forward.
    """

    def __init__(
        self,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[EngineSettings] = None,
    ):
        super().__init__(audit_logger)
        self._settings = settings or get_settings().engine

    async def upsert_planning_version(
        self,
        month: str,
        version_key: PlanningVersionKey,
        expected_income: float,
        fixed_commitments: float,
        variable_spending_cap: float,
        saved_versions: Sequence[PlanningVersionRecord] = (),
        notes: Optional[str] = None,
        select_after_save: bool = False,
        source: Optional[str] = None,
        now: Optional[datetime] = None,
        correlation_id: Optional[UUID] = None,
    ) -> PlanningVersionUpsert:
        """
        Create or update one planning version.

        The version is selected when asked to, or when it is the base
        version and nothing in the month is selected yet. Selecting it
        deselects every other version of the month.

        Returns:
            The saved version and the month's full version list
        """
        correlation_id = correlation_id or create_correlation_id()
        now = _now(now)

        try:
            notes = validate_planning_version(
                month, version_key, expected_income, fixed_commitments, variable_spending_cap, notes
            )
        except InputValidationError as e:
            await self._reject(e, "planning_month_version", correlation_id)
            raise
        version_key = PlanningVersionKey(version_key)

        saved = saved_versions_for_month(saved_versions, month)
        existing = saved.get(version_key)
        has_selected = any(record.is_selected for record in saved.values())
        should_select = select_after_save or (not has_selected and version_key == PlanningVersionKey.BASE)

        record = PlanningVersionRecord(
            id=existing.id if existing and existing.id else str(uuid4()),
            month=month,
            version_key=version_key,
            expected_income=round_currency(expected_income),
            fixed_commitments=round_currency(fixed_commitments),
            variable_spending_cap=round_currency(variable_spending_cap),
            notes=notes,
            is_selected=True if should_select else bool(existing and existing.is_selected),
            updated_at=now,
        )

        versions = []
        for key in PlanningVersionKey:
            if key == version_key:
                versions.append(record)
            elif key in saved:
                other = saved[key]
                if should_select and other.is_selected:
                    other = other.model_copy(update={"is_selected": False, "updated_at": now})
                versions.append(other)

        if self._audit_logger:
            await self._audit_logger.log_planning_version_saved(
                version_id=record.id,
                created=existing is None,
                before=_version_snapshot(existing) if existing else None,
                after=_version_snapshot(record),
                metadata={
                    "source": source or DEFAULT_PLANNING_SOURCE,
                    "month": month,
                    "versionKey": version_key.value,
                    "selectAfterSave": select_after_save,
                },
                correlation_id=correlation_id,
            )

        logger.info(
            "planning_version_saved",
            month=month,
            version_key=version_key.value,
            created=existing is None,
            selected=record.is_selected,
        )
        return PlanningVersionUpsert(month=month, version=record, versions=versions, created=existing is None)

    async def apply_planning_version(
        self,
        snapshot: FinanceSnapshot,
        month: str,
        version_key: Optional[PlanningVersionKey] = None,
        source: Optional[PlanningTaskSource] = None,
        now: Optional[datetime] = None,
        correlation_id: Optional[UUID] = None,
    ) -> PlanApplication:
        """
        Regenerate the month's action tasks from a planning version.

        Version precedence: requested saved, selected saved, saved base,
        then the default for the requested (or base) key. The baseline uses
        unsmoothed monthly income and the month's actual spend.

        Returns:
            The replacement task set, all 'suggested'
        """
        correlation_id = correlation_id or create_correlation_id()
        now = _now(now)

        try:
            validate_month_key(month)
        except InputValidationError as e:
            await self._reject(e, "planning_plan_apply", correlation_id)
            raise

        income = round_currency(monthly_income(snapshot.incomes))
        commitments = monthly_commitments(snapshot.bills, snapshot.cards, snapshot.loans)
        spend = month_spend_by_category(snapshot.purchases, month)
        baseline = planning_figures(income, commitments.monthly_commitments, round_currency(sum(spend.values())))

        requested = PlanningVersionKey(version_key) if version_key else None
        applied_key, figures = resolve_applied_version(month, snapshot.planning_versions, baseline, requested)

        plan = build_allocation_plan(income, snapshot.allocation_rules)
        drafts = build_task_drafts(
            month,
            figures,
            snapshot.envelope_budgets,
            spend,
            plan,
            limit=self._settings.planning_task_limit,
        )

        existing = [task for task in snapshot.action_tasks if task.month == month]
        if source is None:
            source = PlanningTaskSource.REAPPLY if existing else PlanningTaskSource.MANUAL_APPLY
        source = PlanningTaskSource(source)

        tasks = [
            PlanningActionTask(
                id=str(uuid4()),
                month=month,
                version_key=applied_key,
                title=draft.title,
                detail=draft.detail,
                category=draft.category,
                impact_amount=draft.impact_amount,
                status=PlanningTaskStatus.SUGGESTED,
                source=source,
                created_at=now,
                updated_at=now,
            )
            for draft in drafts
        ]
        total_impact = round_currency(sum(max(task.impact_amount, 0.0) for task in tasks))

        if self._audit_logger:
            await self._audit_logger.log_plan_applied(
                month=month,
                version_key=applied_key.value,
                reapply=source == PlanningTaskSource.REAPPLY,
                before={
                    "month": month,
                    "versionKey": applied_key.value,
                    "existingTaskCount": len(existing),
                    "existingTaskStatusCounts": task_status_counts(existing),
                },
                after={
                    "month": month,
                    "versionKey": applied_key.value,
                    "createdTaskCount": len(tasks),
                    "totalImpactAmount": total_impact,
                },
                metadata={
                    "source": source.value,
                    "month": month,
                    "versionKey": applied_key.value,
                },
                correlation_id=correlation_id,
            )

        logger.info(
            "plan_applied",
            month=month,
            version_key=applied_key.value,
            source=source.value,
            replaced=len(existing),
            created=len(tasks),
        )
        return PlanApplication(
            month=month,
            version_key=applied_key,
            source=source,
            tasks=tasks,
            total_impact_amount=total_impact,
        )

    async def update_task_status(
        self,
        tasks: Sequence[PlanningActionTask],
        task_id: str,
        status: PlanningTaskStatus,
        source: Optional[str] = None,
        now: Optional[datetime] = None,
        correlation_id: Optional[UUID] = None,
    ) -> PlanningActionTask:
        """Move one task to a new status and return the updated task."""
        correlation_id = correlation_id or create_correlation_id()
        now = _now(now)

        task = next((candidate for candidate in tasks if candidate.id == task_id), None)
        if task is None:
            error = InputValidationError(field="task_id", message="Planning action task not found.")
            await self._reject(error, "planning_action_task", correlation_id)
            raise error

        updated = task.model_copy(update={"status": PlanningTaskStatus(status), "updated_at": now})

        if self._audit_logger:
            await self._audit_logger.log_task_status_updated(
                task_id=task.id,
                before=_task_snapshot(task),
                after=_task_snapshot(updated),
                metadata={
                    "source": source or DEFAULT_PLANNING_SOURCE,
                    "month": task.month,
                    "versionKey": task.version_key.value,
                },
                correlation_id=correlation_id,
            )

        logger.info("task_status_updated", task_id=task.id, status=updated.status.value)
        return updated

    async def apply_auto_allocation(
        self,
        snapshot: FinanceSnapshot,
        month: Optional[str] = None,
        now: Optional[datetime] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AutoAllocationRun:
        """
        Produce a fresh suggestion run that replaces the month's suggestions.

        Raises:
            InputValidationError: No active rule, zero totals, or nothing to suggest
        """
        correlation_id = correlation_id or create_correlation_id()
        now = _now(now)
        month = month or month_key(now)

        income = round_currency(monthly_income(snapshot.incomes))
        commitments = monthly_commitments(snapshot.bills, snapshot.cards, snapshot.loans)

        try:
            validate_month_key(month)
            validate_auto_allocation_ready(snapshot.allocation_rules, income)
            plan = build_allocation_plan(income, snapshot.allocation_rules)
            drafts = build_allocation_suggestions(
                plan,
                commitments.monthly_commitments,
                cards=snapshot.cards,
                loans=snapshot.loans,
                goals=snapshot.goals,
                accounts=snapshot.accounts,
            )
            if not drafts:
                raise InputValidationError(
                    field="rules",
                    message="No active auto-allocation buckets available to suggest.",
                )
        except InputValidationError as e:
            await self._reject(e, "income_allocation_suggestion", correlation_id)
            raise

        run_id = f"manual:{int(now.timestamp() * 1000)}"
        suggestions = [
            AllocationSuggestion(
                **draft.model_dump(),
                id=str(uuid4()),
                month=month,
                run_id=run_id,
                created_at=now,
            )
            for draft in drafts
        ]
        total_suggested = round_currency(sum(suggestion.amount for suggestion in suggestions))

        if self._audit_logger:
            await self._audit_logger.log_auto_allocation_applied(
                month=month,
                run_id=run_id,
                before={"month": month, "monthlyIncome": plan.monthly_income},
                after={
                    "runId": run_id,
                    "suggestionsCreated": len(suggestions),
                    "totalSuggestedAmount": total_suggested,
                    "residualAmount": plan.residual_amount,
                    "overAllocatedPercent": plan.over_allocated_percent,
                },
                metadata={"source": "manual", "month": month},
                correlation_id=correlation_id,
            )

        logger.info("auto_allocation_applied", month=month, run_id=run_id, suggestions=len(suggestions))
        return AutoAllocationRun(
            month=month,
            run_id=run_id,
            suggestions=suggestions,
            total_suggested_amount=total_suggested,
            residual_amount=plan.residual_amount,
            over_allocated_percent=plan.over_allocated_percent,
        )


class SplitFlow(_AuditedFlow):
    """
    Orchestrates purchase split edits.

    Every edit replaces the purchase's full split set and returns the
    purchase with its new splits.
    """

    async def upsert_purchase_splits(
        self,
        purchase: PurchaseRecord,
        splits: Sequence[SplitLine],
        source: Optional[str] = None,
        now: Optional[datetime] = None,
        correlation_id: Optional[UUID] = None,
    ) -> PurchaseRecord:
        correlation_id = correlation_id or create_correlation_id()
        now = _now(now)

        try:
            cleaned = validate_split_lines(purchase, splits)
        except InputValidationError as e:
            await self._reject(e, "purchase", correlation_id)
            raise

        updated = purchase.model_copy(update={"splits": cleaned})
        if self._audit_logger:
            await self._audit_logger.log_split_changed(
                purchase_id=purchase.id,
                event_type=AuditEventType.SPLIT_UPSERTED,
                before=_split_snapshot(purchase.splits),
                after=_split_snapshot(cleaned),
                metadata={"source": source or DEFAULT_SPLIT_SOURCE, "mutationAt": now.isoformat()},
                correlation_id=correlation_id,
            )
        return updated

    async def clear_purchase_splits(
        self,
        purchase: PurchaseRecord,
        source: Optional[str] = None,
        now: Optional[datetime] = None,
        correlation_id: Optional[UUID] = None,
    ) -> PurchaseRecord:
        correlation_id = correlation_id or create_correlation_id()
        now = _now(now)

        updated = purchase.model_copy(update={"splits": []})
        if self._audit_logger:
            await self._audit_logger.log_split_changed(
                purchase_id=purchase.id,
                event_type=AuditEventType.SPLIT_CLEARED,
                before=_split_snapshot(purchase.splits),
                after=_split_snapshot([]),
                metadata={"source": source or DEFAULT_SPLIT_SOURCE, "mutationAt": now.isoformat()},
                correlation_id=correlation_id,
            )
        return updated

    async def apply_split_template(
        self,
        purchase: PurchaseRecord,
        template: SplitTemplate,
        source: Optional[str] = None,
        now: Optional[datetime] = None,
        correlation_id: Optional[UUID] = None,
    ) -> PurchaseRecord:
        """Split a purchase by a template's percentages."""
        correlation_id = correlation_id or create_correlation_id()
        now = _now(now)

        try:
            name, lines = validate_split_template(template.name, template.splits)
        except InputValidationError as e:
            await self._reject(e, "purchase", correlation_id)
            raise

        splits = split_amounts_from_percentages(purchase.amount, lines)
        updated = purchase.model_copy(update={"splits": splits})
        if self._audit_logger:
            await self._audit_logger.log_split_changed(
                purchase_id=purchase.id,
                event_type=AuditEventType.SPLIT_TEMPLATE_APPLIED,
                before={"splitCount": len(purchase.splits)},
                after={"splitCount": len(splits)},
                metadata={
                    "source": source or DEFAULT_SPLIT_SOURCE,
                    "mutationAt": now.isoformat(),
                    "templateId": template.id,
                    "templateName": name,
                },
                correlation_id=correlation_id,
            )
        return updated


class DashboardFlow:
    """
    Computes every derived analytic for one month from one snapshot.

    Nothing here mutates or audits; the result is a read model.
    """

    def __init__(self, settings: Optional[EngineSettings] = None):
        self._settings = settings or get_settings().engine

    def build_dashboard(
        self,
        snapshot: FinanceSnapshot,
        month: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> PlanningDashboard:
        settings = self._settings
        now = _now(now)
        month = validate_month_key(month) if month else month_key(now)

        income = monthly_income(snapshot.incomes)
        forecast_income = monthly_income_for_forecast(snapshot.incomes, snapshot.income_payment_checks, month)
        commitments = monthly_commitments(snapshot.bills, snapshot.cards, snapshot.loans)
        spend_estimate = monthly_spend_estimate(snapshot.purchases, now, settings.spend_window_days)
        commitments_total = monthly_commitments_total(snapshot.bills, snapshot.cards, snapshot.loans)
        # Unrounded; windows and bill risk scale it by days/30
        monthly_net = forecast_income - commitments_total - spend_estimate
        reserves = liquid_reserves(snapshot.accounts)

        bill_duplicates = detect_duplicate_overlap(snapshot.bills)
        spend = month_spend_by_category(snapshot.purchases, month)

        baseline = planning_figures(forecast_income, commitments.monthly_commitments, spend_estimate)
        versions = resolve_versions(month, snapshot.planning_versions, baseline)
        envelopes = envelope_totals(snapshot.envelope_budgets, snapshot.purchases, month, now)
        rows = adherence_rows(month, snapshot.envelope_budgets, spend)
        month_tasks = [task for task in snapshot.action_tasks if task.month == month]
        quality = data_quality_summary(
            snapshot.purchases,
            now,
            window_days=settings.spend_window_days,
            std_multiplier=settings.anomaly_std_multiplier,
            min_amount=settings.anomaly_min_amount,
        )

        dashboard = PlanningDashboard(
            month=month,
            generated_at=now,
            monthly_income=round_currency(income),
            monthly_income_for_forecast=round_currency(forecast_income),
            commitments=commitments,
            monthly_spend_estimate=round_currency(spend_estimate),
            monthly_net=round_currency(monthly_net),
            liquid_reserves=round_currency(reserves),
            forecast_windows=forecast_windows(
                monthly_net,
                reserves,
                commitments_total,
                settings.forecast_windows_list,
            ),
            bill_risk_alerts=bill_risk_alerts(
                snapshot.bills,
                snapshot.accounts,
                monthly_net,
                now,
                horizon_days=settings.bill_risk_horizon_days,
            ),
            bill_duplicates=bill_duplicates,
            recurring_candidates=detect_recurring(
                snapshot.purchases,
                now,
                lookback_days=settings.recurring_lookback_days,
                limit=settings.recurring_max_candidates,
            ),
            auto_allocation_plan=build_allocation_plan(income, snapshot.allocation_rules),
            budget_performance=budget_performance(snapshot.envelope_budgets, snapshot.purchases, month, now),
            planning_versions=versions,
            workspace=planning_workspace(month, versions, baseline, envelopes),
            adherence_rows=rows,
            kpis=planning_kpis(
                rows,
                kpi_version(snapshot.planning_versions, month),
                commitments.monthly_commitments,
                month_tasks,
            ),
            loan_portfolio=build_loan_portfolio_projection(
                snapshot.loans,
                now,
                loan_events=snapshot.loan_events,
            ),
            data_quality=quality,
            month_close_checklist=month_close_checklist(
                month,
                quality,
                bill_duplicates,
                spend,
                budgets_for_month(snapshot.envelope_budgets, month),
                snapshot.cycle_run_keys,
            ),
        )

        logger.info(
            "dashboard_built",
            month=month,
            monthly_net=dashboard.monthly_net,
            alerts=len(dashboard.bill_risk_alerts),
        )
        return dashboard


def create_flows(
    audit_logger: Optional[AuditLogger] = None,
    settings: Optional[EngineSettings] = None,
) -> tuple[PlanningFlow, SplitFlow, DashboardFlow]:
    """
    Factory function to create all flows sharing one audit logger.

    Args:
        audit_logger: Logger with the data layer's audit store.
                     If None, events are only logged locally.
        settings: Engine settings; defaults to the environment.

    Returns:
        (planning_flow, split_flow, dashboard_flow)
    """
    audit_logger = audit_logger or AuditLogger()
    settings = settings or get_settings().engine
    return (
        PlanningFlow(audit_logger=audit_logger, settings=settings),
        SplitFlow(audit_logger=audit_logger),
        DashboardFlow(settings=settings),
    )
