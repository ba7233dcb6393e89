"""
Result Models for the Finance Engine

Everything the engine hands back: plans, alerts, forecasts, KPI bundles and
task drafts. These are plain value structures - the persistence layer
stores some of them, the presentation layer renders all of them, and
neither concern leaks in here.

All currency and percentage fields are already rounded to 2 decimals.
"""

from datetime import date, datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, computed_field

from finance_engine.models.records import (
    AllocationTarget,
    Cadence,
    CustomCadenceUnit,
    PlanningActionTask,
    PlanningTaskSource,
    PlanningTaskStatus,
    PlanningVersionKey,
    PlanningVersionRecord,
)


# ===== CLASSIFICATIONS =====

class BillMatchKind(str, Enum):
    DUPLICATE = "duplicate"
    OVERLAP = "overlap"


class BillRiskLevel(str, Enum):
    GOOD = "good"
    WARNING = "warning"
    CRITICAL = "critical"


class ForecastRiskLevel(str, Enum):
    HEALTHY = "healthy"
    WARNING = "warning"
    CRITICAL = "critical"


class BudgetStatus(str, Enum):
    """Shared by budget performance and adherence rows."""
    ON_TRACK = "on_track"
    WARNING = "warning"
    OVER = "over"


class AllocationActionType(str, Enum):
    RESERVE_BILLS = "reserve_bills"
    MOVE_TO_SAVINGS = "move_to_savings"
    FUND_GOALS = "fund_goals"
    DEBT_OVERPAY = "debt_overpay"


class AllocationSuggestionStatus(str, Enum):
    SUGGESTED = "suggested"
    COMPLETED = "completed"
    DISMISSED = "dismissed"


# ===== PRIMITIVES =====

class LoanBalances(BaseModel):
    """Working balances of a loan after resolving explicit components."""
    principal_balance: float
    accrued_interest: float
    balance: float


class CardCycleResult(BaseModel):
    """State of a card after simulating N monthly cycles."""
    balance: float
    statement_balance: float
    pending_charges: float
    due_balance: float
    interest_accrued: float
    payments_applied: float
    spend_added: float


class LoanCycleResult(BaseModel):
    balance: float
    interest_accrued: float
    payments_applied: float


class CommitmentBreakdown(BaseModel):
    """Monthly-equivalent fixed commitments, by source."""
    monthly_bills: float = 0.0
    monthly_card_payments: float = 0.0
    monthly_loan_payments: float = 0.0
    monthly_commitments: float = 0.0


# ===== DERIVED ANALYTICS =====

class BillPairMatch(BaseModel):
    """One flagged pair of bills and the evidence behind the flag."""
    left_id: str
    right_id: str
    kind: BillMatchKind
    name_similarity: float
    amount_delta_percent: float
    due_day_delta: int


class BillDuplicateOverlapSummary(BaseModel):
    duplicate_pair_count: int = 0
    overlap_pair_count: int = 0
    impacted_bill_ids: list[str] = Field(default_factory=list)
    matches: list[BillPairMatch] = Field(default_factory=list)

    @computed_field
    @property
    def impacted_bill_count(self) -> int:
        return len(self.impacted_bill_ids)


class RecurringCandidate(BaseModel):
    """A purchase label that looks like it repeats on a schedule."""
    id: str = Field(..., description="Normalized label, stable across runs")
    label: str
    category: str
    count: int
    average_amount: float
    average_interval_days: float
    next_expected_date: date
    confidence: float = Field(..., description="0-100")


class AllocationBucket(BaseModel):
    target: AllocationTarget
    label: str
    percentage: float
    monthly_amount: float
    active: bool


class AutoAllocationPlan(BaseModel):
    monthly_income: float
    total_allocated_percent: float
    total_allocated_amount: float
    residual_amount: float
    unallocated_percent: float
    over_allocated_percent: float
    buckets: list[AllocationBucket]


class AllocationSuggestionDraft(BaseModel):
    target: AllocationTarget
    action_type: AllocationActionType
    title: str
    detail: str
    percentage: float
    amount: float


class AllocationSuggestion(AllocationSuggestionDraft):
    """A suggestion draft stamped with the run that produced it."""
    id: str
    status: AllocationSuggestionStatus = AllocationSuggestionStatus.SUGGESTED
    month: str
    run_id: str
    created_at: datetime


class AutoAllocationRun(BaseModel):
    """Replacement suggestion set for one month."""
    month: str
    run_id: str
    suggestions: list[AllocationSuggestion]
    total_suggested_amount: float
    residual_amount: float
    over_allocated_percent: float

    @computed_field
    @property
    def suggestions_created(self) -> int:
        return len(self.suggestions)


class ForecastWindow(BaseModel):
    days: int
    projected_net: float
    projected_cash: float
    coverage_months: float = Field(
        ...,
        description="Projected cash over monthly commitments; 99 when there are none"
    )
    risk: ForecastRiskLevel


class BillRiskAlert(BaseModel):
    id: str
    name: str
    due_date: date
    amount: float
    days_away: int
    expected_available: float
    risk: BillRiskLevel
    autopay: bool
    linked_account_name: Optional[str] = None
    linked_account_projected_balance: Optional[float] = None


# ===== LOAN PROJECTION =====

class LoanStrategyMode(str, Enum):
    """Which loan receives the overpay budget."""
    AVALANCHE = "avalanche"
    SNOWBALL = "snowball"


class LoanProjectionOverrides(BaseModel):
    """Adjustments layered on a loan before it is projected."""
    extra_payment_delta: float = 0.0
    apr_delta: float = 0.0
    subscription_delta: float = 0.0
    due_day_shift: int = 0


class LoanProjectionRow(BaseModel):
    """One simulated month of a loan and its bundled subscription."""
    month_index: int
    opening_principal: float
    opening_interest: float
    opening_subscription: float
    opening_outstanding: float
    interest_accrued: float
    minimum_due: float
    planned_loan_payment: float
    payment_to_interest: float
    payment_to_principal: float
    subscription_due: float
    total_payment: float
    ending_principal: float
    ending_interest: float
    ending_subscription: float
    ending_loan_balance: float
    ending_outstanding: float
    payment_consistency_ratio: float = Field(
        ...,
        description="Planned payment over minimum due; 1 when nothing is due"
    )


class LoanProjectionSummary(BaseModel):
    """Totals over the first N projected months."""
    months: int
    ending_outstanding: float
    total_interest: float
    total_principal_paid: float
    total_loan_payment: float
    total_subscription_paid: float
    total_payment: float


class LoanConsistencyPoint(BaseModel):
    month_key: str
    paid: float
    expected: float
    ratio: float


class LoanProjectionModel(BaseModel):
    """A loan's current position, its month-by-month projection and horizon totals."""
    loan_id: str
    name: str
    apr: float
    cadence: Cadence
    custom_interval: Optional[int] = None
    custom_unit: Optional[CustomCadenceUnit] = None
    due_day: int
    subscription_cost: float
    subscription_payments_remaining: int
    current_principal: float
    current_interest: float
    current_loan_balance: float
    current_subscription_outstanding: float
    current_outstanding: float
    projected_next_month_interest: float
    projected_annual_interest: float
    projected_24_month_interest: float
    projected_36_month_interest: float
    projected_payoff_months: Optional[int] = None
    projected_payoff_date: Optional[date] = None
    payment_consistency_score: float = Field(
        ...,
        description="Mean of monthly paid/expected ratios (each capped at 1.4) x 100"
    )
    payment_consistency_trend: list[LoanConsistencyPoint]
    rows: list[LoanProjectionRow]
    horizons: dict[int, LoanProjectionSummary]


class LoanPortfolioProjection(BaseModel):
    total_outstanding: float = 0.0
    projected_next_month_interest: float = 0.0
    projected_annual_interest: float = 0.0
    projected_24_month_interest: float = 0.0
    projected_36_month_interest: float = 0.0
    projected_annual_payments: float = 0.0
    average_payment_consistency_score: float = 100.0
    models: list[LoanProjectionModel] = Field(default_factory=list)


class LoanStrategyCandidate(BaseModel):
    loan_id: str
    name: str
    balance: float
    apr: float
    next_month_interest: float
    annual_interest: float
    annual_interest_savings: float


class LoanStrategyResult(BaseModel):
    """Annual interest when the whole overpay budget goes to one loan."""
    monthly_overpay_budget: float
    portfolio_annual_interest_baseline: float
    portfolio_annual_interest_with_avalanche: float
    portfolio_annual_interest_with_snowball: float
    recommended_mode: LoanStrategyMode
    recommended_target: Optional[LoanStrategyCandidate] = None
    avalanche_target: Optional[LoanStrategyCandidate] = None
    snowball_target: Optional[LoanStrategyCandidate] = None


class LoanWhatIfInput(BaseModel):
    loan_id: str = Field(default="all", description="A loan id, or 'all' for every loan")
    extra_payment_delta: float = 0.0
    apr_delta: float = 0.0
    subscription_delta: float = 0.0
    due_day_shift: int = 0


class LoanWhatIfDelta(BaseModel):
    """Scenario minus baseline."""
    next_month_interest: float
    annual_interest: float
    annual_payments: float
    total_outstanding: float


class LoanWhatIfResult(BaseModel):
    input: LoanWhatIfInput
    baseline: LoanPortfolioProjection
    scenario: LoanPortfolioProjection
    delta: LoanWhatIfDelta


class LoanRefinanceOffer(BaseModel):
    apr: float
    fees: float = 0.0
    term_months: int


class LoanRefinanceResult(BaseModel):
    monthly_payment: float
    total_refinance_interest: float
    total_refinance_cost: float
    total_current_cost: float
    total_cost_delta: float
    break_even_month: Optional[int] = Field(
        default=None,
        description="First month cumulative refinance cost (fees included) is no higher than staying"
    )
    remaining_current_outstanding_at_term: float


# ===== BUDGETS AND PLANNING =====

class BudgetPerformanceRow(BaseModel):
    id: str
    category: str
    target_amount: float
    carryover_amount: float
    effective_target: float
    spent: float
    variance: float = Field(..., description="Effective target minus spent")
    projected_month_end: float
    rollover_enabled: bool
    suggested_rollover: float
    status: BudgetStatus


class EnvelopeTotals(BaseModel):
    target_total: float = 0.0
    carryover_total: float = 0.0
    effective_target_total: float = 0.0
    projected_spend_total: float = 0.0
    suggested_rollover_total: float = 0.0


class PlanningFigures(BaseModel):
    """Income, commitments and spending cap for a month, plus the net."""
    expected_income: float = 0.0
    fixed_commitments: float = 0.0
    variable_spending_cap: float = 0.0
    monthly_net: float = 0.0


class PlanningVersionDraft(BaseModel):
    """A planning version as shown to the user: saved fields over defaults."""
    version_key: PlanningVersionKey
    label: str
    description: str
    expected_income: float
    fixed_commitments: float
    variable_spending_cap: float
    monthly_net: float
    notes: str = ""
    is_selected: bool
    is_persisted: bool
    updated_at: Optional[datetime] = None


class PlanningWorkspace(BaseModel):
    month: str
    selected_version: PlanningVersionKey
    baseline: PlanningFigures
    planned: PlanningFigures
    delta: PlanningFigures
    envelopes: EnvelopeTotals
    envelope_coverage_percent: float


class PlanningActionTaskDraft(BaseModel):
    title: str
    detail: str
    category: str
    impact_amount: float
    status: PlanningTaskStatus = PlanningTaskStatus.SUGGESTED


class AdherenceRow(BaseModel):
    id: str
    category: str
    planned: float
    actual: float
    variance: float = Field(..., description="Actual minus planned")
    variance_rate_percent: float
    status: BudgetStatus


class PlanningKpis(BaseModel):
    forecast_accuracy_percent: float = 100.0
    variance_rate_percent: float = 0.0
    plan_completion_percent: float = 0.0
    total_tasks: int = 0
    completed_tasks: int = 0
    planned_net: float = 0.0
    actual_net: float = 0.0


# ===== DATA QUALITY =====

class DataQualitySummary(BaseModel):
    duplicate_count: int = 0
    anomaly_count: int = 0
    missing_category_count: int = 0
    pending_reconciliation_count: int = 0
    split_mismatch_count: int = 0


class ChecklistItem(BaseModel):
    id: str
    label: str
    done: bool
    detail: str


# ===== FLOW RESULTS =====

class PlanningVersionUpsert(BaseModel):
    """Outcome of saving one planning version."""
    month: str
    version: PlanningVersionRecord
    versions: list[PlanningVersionRecord] = Field(
        ...,
        description="Every saved version for the month after the save"
    )
    created: bool


class PlanApplication(BaseModel):
    """Replacement task set produced by applying a version to a month."""
    month: str
    version_key: PlanningVersionKey
    source: PlanningTaskSource
    tasks: list[PlanningActionTask]
    total_impact_amount: float

    @computed_field
    @property
    def tasks_created(self) -> int:
        return len(self.tasks)


class PlanningDashboard(BaseModel):
    """Every derived analytic for one month, computed from one snapshot."""
    month: str
    generated_at: datetime
    monthly_income: float
    monthly_income_for_forecast: float
    commitments: CommitmentBreakdown
    monthly_spend_estimate: float
    monthly_net: float
    liquid_reserves: float
    forecast_windows: list[ForecastWindow]
    bill_risk_alerts: list[BillRiskAlert]
    bill_duplicates: BillDuplicateOverlapSummary
    recurring_candidates: list[RecurringCandidate]
    auto_allocation_plan: AutoAllocationPlan
    budget_performance: list[BudgetPerformanceRow]
    planning_versions: list[PlanningVersionDraft]
    workspace: PlanningWorkspace
    adherence_rows: list[AdherenceRow]
    kpis: PlanningKpis
    loan_portfolio: LoanPortfolioProjection
    data_quality: DataQualitySummary
    month_close_checklist: list[ChecklistItem]
