"""
Record Models for the Finance Engine

These are the immutable snapshots the surrounding data layer hands to the
engine: incomes, bills, cards, loans, purchases, accounts, goals and the
planning records that hang off them.

DESIGN DECISION: Records are frozen pydantic models.
The engine never mutates its input and never keeps a reference across calls.
Optional numeric fields stay Optional here - the engine decides what a
missing value means (usually 0) so that the fallback chain lives in one place.

Records are assumed to be authorization-scoped and field-validated already.
We only constrain what would make the record meaningless (negative due days
are still accepted; the engine clamps them).
"""

from datetime import date, datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


# ===== ENUMERATIONS =====

class Cadence(str, Enum):
    """How often an income, bill or loan payment recurs."""
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"
    CUSTOM = "custom"
    ONE_TIME = "one_time"


class CustomCadenceUnit(str, Enum):
    """Unit for a custom cadence interval."""
    DAYS = "days"
    WEEKS = "weeks"
    MONTHS = "months"
    YEARS = "years"


class IncomePaymentStatus(str, Enum):
    """Outcome recorded for one income cycle."""
    ON_TIME = "on_time"
    LATE = "late"
    MISSED = "missed"


class MinimumPaymentType(str, Enum):
    """Minimum payment policy for cards and loans."""
    FIXED = "fixed"
    PERCENT_PLUS_INTEREST = "percent_plus_interest"


class LoanEventType(str, Enum):
    INTEREST_ACCRUAL = "interest_accrual"
    PAYMENT = "payment"
    CHARGE = "charge"
    SUBSCRIPTION_FEE = "subscription_fee"


class ReconciliationStatus(str, Enum):
    PENDING = "pending"
    POSTED = "posted"
    RECONCILED = "reconciled"


class AccountType(str, Enum):
    CHECKING = "checking"
    SAVINGS = "savings"
    INVESTMENT = "investment"
    CASH = "cash"
    DEBT = "debt"


class GoalPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class AllocationTarget(str, Enum):
    """The four auto-allocation buckets, in display order."""
    BILLS = "bills"
    SAVINGS = "savings"
    GOALS = "goals"
    DEBT_OVERPAY = "debt_overpay"


class PlanningVersionKey(str, Enum):
    """Planning scenarios, in display order."""
    BASE = "base"
    CONSERVATIVE = "conservative"
    AGGRESSIVE = "aggressive"


class PlanningTaskStatus(str, Enum):
    """
    Lifecycle of a planning action task.

    suggested -> in_progress -> done | dismissed
    """
    SUGGESTED = "suggested"
    IN_PROGRESS = "in_progress"
    DONE = "done"
    DISMISSED = "dismissed"


class PlanningTaskSource(str, Enum):
    MANUAL_APPLY = "manual_apply"
    REAPPLY = "reapply"
    SYSTEM = "system"


class RuleMatchType(str, Enum):
    """How a transaction rule pattern is compared to a purchase label."""
    CONTAINS = "contains"
    EXACT = "exact"
    STARTS_WITH = "starts_with"


# ===== CASHFLOW RECORDS =====

_SNAPSHOT = ConfigDict(frozen=True, str_strip_whitespace=True)


class IncomeRecord(BaseModel):
    """
    A recurring income source.

    Net cycle amount resolution (see engine.income):
    1. gross - (tax + NI + pension), when gross or any deduction is present
    2. otherwise the raw amount
    """

    model_config = _SNAPSHOT

    id: str
    source: str = Field(default="", description="Employer or income label")
    amount: float = Field(
        default=0.0,
        description="Net amount per cycle as entered by the user"
    )
    gross_amount: Optional[float] = None
    tax_amount: Optional[float] = None
    national_insurance_amount: Optional[float] = None
    pension_amount: Optional[float] = None

    cadence: Cadence = Cadence.MONTHLY
    custom_interval: Optional[int] = None
    custom_unit: Optional[CustomCadenceUnit] = None
    received_day: Optional[int] = Field(
        default=None,
        description="Expected pay day of month"
    )
    pay_date_anchor: Optional[str] = Field(
        default=None,
        description="ISO YYYY-MM-DD date a pay cycle is anchored on"
    )

    forecast_smoothing_enabled: bool = False
    forecast_smoothing_months: Optional[int] = Field(
        default=None,
        description="Lookback for smoothing; outside 2..24 falls back to 6"
    )

    created_at: datetime


class IncomePaymentCheck(BaseModel):
    """What actually happened to one income in one cycle month."""

    model_config = _SNAPSHOT

    id: str
    income_id: str
    cycle_month: str = Field(..., description="Month key, YYYY-MM")
    status: IncomePaymentStatus
    expected_amount: Optional[float] = None
    received_amount: Optional[float] = None
    updated_at: datetime


class BillRecord(BaseModel):
    """
    A recurring (or one-off) bill.

    Notes may carry manual override markers understood by the duplicate
    detector:
    - "[archived-duplicate]" excludes the bill from every pair
    - "[intentional-overlap:<other bill id>]" excludes one specific pair
    """

    model_config = _SNAPSHOT

    id: str
    name: str
    amount: float
    due_day: int = Field(..., description="Day of month, clamped to the month length")
    cadence: Cadence = Cadence.MONTHLY
    custom_interval: Optional[int] = None
    custom_unit: Optional[CustomCadenceUnit] = None
    autopay: bool = False
    linked_account_id: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime


class CardRecord(BaseModel):
    """A credit card."""

    model_config = _SNAPSHOT

    id: str
    name: str
    used_limit: float = 0.0
    statement_balance: Optional[float] = None
    pending_charges: Optional[float] = None
    spend_per_month: Optional[float] = None
    minimum_payment: Optional[float] = None
    minimum_payment_type: Optional[MinimumPaymentType] = None
    minimum_payment_percent: Optional[float] = None
    extra_payment: Optional[float] = None
    interest_rate: Optional[float] = Field(default=None, description="APR in percent")


class LoanRecord(BaseModel):
    """
    A loan, optionally with a bundled subscription (e.g. a phone contract).

    Explicit principal/accrued-interest components win over the plain balance
    whenever either of them is present.
    """

    model_config = _SNAPSHOT

    id: str
    name: str
    balance: float = 0.0
    principal_balance: Optional[float] = None
    accrued_interest: Optional[float] = None
    interest_rate: Optional[float] = Field(default=None, description="APR in percent")

    minimum_payment_type: Optional[MinimumPaymentType] = None
    minimum_payment: Optional[float] = None
    minimum_payment_percent: Optional[float] = None
    extra_payment: Optional[float] = None

    subscription_cost: Optional[float] = None
    subscription_outstanding: Optional[float] = None
    subscription_payment_count: Optional[int] = Field(
        default=None,
        description="Subscription payments left; 12 are assumed when unknown"
    )

    cadence: Cadence = Cadence.MONTHLY
    custom_interval: Optional[int] = None
    custom_unit: Optional[CustomCadenceUnit] = None
    due_day: Optional[int] = None


class LoanEventRecord(BaseModel):
    """One posted movement on a loan. Only payments feed the consistency trend."""

    model_config = _SNAPSHOT

    id: str
    loan_id: str
    event_type: LoanEventType
    amount: float
    created_at: datetime


# ===== SPENDING RECORDS =====

class SplitLine(BaseModel):
    """One category slice of a purchase."""

    model_config = _SNAPSHOT

    category: str
    amount: float
    goal_id: Optional[str] = None
    account_id: Optional[str] = None


class SplitTemplateLine(BaseModel):
    model_config = _SNAPSHOT

    category: str
    percentage: float
    goal_id: Optional[str] = None
    account_id: Optional[str] = None


class SplitTemplate(BaseModel):
    """A reusable percentage split that can be applied to any purchase."""

    model_config = _SNAPSHOT

    id: str
    name: str
    splits: list[SplitTemplateLine] = Field(default_factory=list)


class PurchaseRecord(BaseModel):
    """
    A single purchase.

    When splits are present they replace the purchase's own category for
    every per-category spend figure.
    """

    model_config = _SNAPSHOT

    id: str
    item: str
    amount: float
    category: str = ""
    purchase_date: date
    reconciliation_status: ReconciliationStatus = ReconciliationStatus.POSTED
    splits: list[SplitLine] = Field(default_factory=list)


class AccountRecord(BaseModel):
    model_config = _SNAPSHOT

    id: str
    name: str
    type: AccountType = AccountType.CHECKING
    balance: float = 0.0
    liquid: bool = Field(
        default=True,
        description="Counts toward liquid reserves in forecasts"
    )


class GoalRecord(BaseModel):
    model_config = _SNAPSHOT

    id: str
    title: str
    priority: GoalPriority = GoalPriority.MEDIUM
    target_amount: float = 0.0
    current_amount: float = 0.0


class TransactionRule(BaseModel):
    """Auto-categorisation rule applied to purchase labels."""

    model_config = _SNAPSHOT

    id: str
    name: str
    match_type: RuleMatchType = RuleMatchType.CONTAINS
    merchant_pattern: str
    category: str
    priority: int = 0
    active: bool = True
    created_at: datetime


# ===== PLANNING RECORDS =====

class AllocationRule(BaseModel):
    """
    Percentage of monthly income routed to one bucket.

    Percentages are summed per bucket; the total may be above or below 100.
    """

    model_config = _SNAPSHOT

    id: str
    target: AllocationTarget
    percentage: float = Field(..., description="0-100")
    active: bool = True
    created_at: Optional[datetime] = None


class EnvelopeBudget(BaseModel):
    """Per-category spending cap for one month."""

    model_config = _SNAPSHOT

    id: str
    month: str = Field(..., description="Month key, YYYY-MM")
    category: str
    target_amount: float
    carryover_amount: Optional[float] = None
    rollover_enabled: bool = False


class PlanningVersionRecord(BaseModel):
    """
    A saved planning scenario for one month.

    At most one record per month has is_selected=True; the data layer
    guarantees this atomically.
    """

    model_config = _SNAPSHOT

    id: Optional[str] = None
    month: str
    version_key: PlanningVersionKey
    expected_income: float = 0.0
    fixed_commitments: float = 0.0
    variable_spending_cap: float = 0.0
    notes: Optional[str] = None
    is_selected: bool = False
    updated_at: Optional[datetime] = None


class PlanningActionTask(BaseModel):
    """A to-do generated by applying a planning version to a month."""

    model_config = _SNAPSHOT

    id: str
    month: str
    version_key: PlanningVersionKey
    title: str
    detail: str
    category: str
    impact_amount: float = 0.0
    status: PlanningTaskStatus = PlanningTaskStatus.SUGGESTED
    source: PlanningTaskSource = PlanningTaskSource.MANUAL_APPLY
    created_at: datetime
    updated_at: datetime


# ===== SNAPSHOT =====

class FinanceSnapshot(BaseModel):
    """
    Everything the engine may look at for one user, at one point in time.

    Collections default to empty so callers only pass what they have.
    """

    model_config = ConfigDict(frozen=True)

    incomes: list[IncomeRecord] = Field(default_factory=list)
    income_payment_checks: list[IncomePaymentCheck] = Field(default_factory=list)
    bills: list[BillRecord] = Field(default_factory=list)
    cards: list[CardRecord] = Field(default_factory=list)
    loans: list[LoanRecord] = Field(default_factory=list)
    loan_events: list[LoanEventRecord] = Field(default_factory=list)
    purchases: list[PurchaseRecord] = Field(default_factory=list)
    accounts: list[AccountRecord] = Field(default_factory=list)
    goals: list[GoalRecord] = Field(default_factory=list)
    allocation_rules: list[AllocationRule] = Field(default_factory=list)
    envelope_budgets: list[EnvelopeBudget] = Field(default_factory=list)
    planning_versions: list[PlanningVersionRecord] = Field(default_factory=list)
    action_tasks: list[PlanningActionTask] = Field(default_factory=list)
    transaction_rules: list[TransactionRule] = Field(default_factory=list)
    cycle_run_keys: list[str] = Field(
        default_factory=list,
        description="Month keys for which the monthly cycle has been run"
    )
