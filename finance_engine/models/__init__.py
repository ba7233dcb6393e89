"""Data models for the finance engine."""

from finance_engine.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from finance_engine.models.records import (
    AccountRecord,
    AccountType,
    AllocationRule,
    AllocationTarget,
    BillRecord,
    CardRecord,
    Cadence,
    CustomCadenceUnit,
    EnvelopeBudget,
    FinanceSnapshot,
    GoalPriority,
    GoalRecord,
    IncomePaymentCheck,
    IncomePaymentStatus,
    IncomeRecord,
    LoanEventRecord,
    LoanEventType,
    LoanRecord,
    MinimumPaymentType,
    PlanningActionTask,
    PlanningTaskSource,
    PlanningTaskStatus,
    PlanningVersionKey,
    PlanningVersionRecord,
    PurchaseRecord,
    ReconciliationStatus,
    RuleMatchType,
    SplitLine,
    SplitTemplate,
    SplitTemplateLine,
    TransactionRule,
)
from finance_engine.models.results import (
    AdherenceRow,
    AllocationActionType,
    AllocationBucket,
    AllocationSuggestion,
    AllocationSuggestionDraft,
    AllocationSuggestionStatus,
    AutoAllocationPlan,
    AutoAllocationRun,
    BillDuplicateOverlapSummary,
    BillMatchKind,
    BillPairMatch,
    BillRiskAlert,
    BillRiskLevel,
    BudgetPerformanceRow,
    BudgetStatus,
    CardCycleResult,
    ChecklistItem,
    CommitmentBreakdown,
    DataQualitySummary,
    EnvelopeTotals,
    ForecastRiskLevel,
    ForecastWindow,
    LoanBalances,
    LoanCycleResult,
    LoanPortfolioProjection,
    LoanProjectionModel,
    LoanProjectionOverrides,
    LoanProjectionRow,
    LoanProjectionSummary,
    LoanRefinanceOffer,
    LoanRefinanceResult,
    LoanStrategyCandidate,
    LoanStrategyMode,
    LoanStrategyResult,
    LoanWhatIfInput,
    LoanWhatIfResult,
    PlanApplication,
    PlanningActionTaskDraft,
    PlanningDashboard,
    PlanningFigures,
    PlanningKpis,
    PlanningVersionDraft,
    PlanningVersionUpsert,
    PlanningWorkspace,
    RecurringCandidate,
)

__all__ = [
    # Records
    "AccountRecord",
    "AccountType",
    "AllocationRule",
    "AllocationTarget",
    "BillRecord",
    "CardRecord",
    "Cadence",
    "CustomCadenceUnit",
    "EnvelopeBudget",
    "FinanceSnapshot",
    "GoalPriority",
    "GoalRecord",
    "IncomePaymentCheck",
    "IncomePaymentStatus",
    "IncomeRecord",
    "LoanEventRecord",
    "LoanEventType",
    "LoanRecord",
    "MinimumPaymentType",
    "PlanningActionTask",
    "PlanningTaskSource",
    "PlanningTaskStatus",
    "PlanningVersionKey",
    "PlanningVersionRecord",
    "PurchaseRecord",
    "ReconciliationStatus",
    "RuleMatchType",
    "SplitLine",
    "SplitTemplate",
    "SplitTemplateLine",
    "TransactionRule",
    # Results
    "AdherenceRow",
    "AllocationActionType",
    "AllocationBucket",
    "AllocationSuggestion",
    "AllocationSuggestionDraft",
    "AllocationSuggestionStatus",
    "AutoAllocationPlan",
    "AutoAllocationRun",
    "BillDuplicateOverlapSummary",
    "BillMatchKind",
    "BillPairMatch",
    "BillRiskAlert",
    "BillRiskLevel",
    "BudgetPerformanceRow",
    "BudgetStatus",
    "CardCycleResult",
    "ChecklistItem",
    "CommitmentBreakdown",
    "DataQualitySummary",
    "EnvelopeTotals",
    "ForecastRiskLevel",
    "ForecastWindow",
    "LoanBalances",
    "LoanCycleResult",
    "LoanPortfolioProjection",
    "LoanProjectionModel",
    "LoanProjectionOverrides",
    "LoanProjectionRow",
    "LoanProjectionSummary",
    "LoanRefinanceOffer",
    "LoanRefinanceResult",
    "LoanStrategyCandidate",
    "LoanStrategyMode",
    "LoanStrategyResult",
    "LoanWhatIfInput",
    "LoanWhatIfResult",
    "PlanApplication",
    "PlanningActionTaskDraft",
    "PlanningDashboard",
    "PlanningFigures",
    "PlanningKpis",
    "PlanningVersionDraft",
    "PlanningVersionUpsert",
    "PlanningWorkspace",
    "RecurringCandidate",
    # Audit
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
