"""
Shared fixtures for Finance Engine tests.

No test touches a real database: audit persistence goes through the
in-memory store below.
"""

from datetime import date, datetime, timezone
from typing import Optional
from uuid import UUID

import pytest

from finance_engine.audit import AuditLogger, AuditStorageInterface, StorageError
from finance_engine.config import EngineSettings
from finance_engine.models import (
    AccountRecord,
    AccountType,
    AllocationRule,
    AllocationTarget,
    AuditEvent,
    BillRecord,
    Cadence,
    EnvelopeBudget,
    IncomeRecord,
    PurchaseRecord,
)


NOW = datetime(2026, 3, 20, 9, 30, tzinfo=timezone.utc)
CREATED = datetime(2025, 1, 1, tzinfo=timezone.utc)


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of events; optionally fails every write."""

    def __init__(self, fail: bool = False):
        self.events: list[AuditEvent] = []
        self._fail = fail

    async def append_event(self, event: AuditEvent) -> bool:
        if self._fail:
            raise StorageError("audit store unavailable")
        self.events.append(event)
        return True

    async def get_events_by_correlation_id(self, correlation_id: UUID) -> list[AuditEvent]:
        return [event for event in self.events if event.correlation_id == correlation_id]

    async def get_events_by_entity(self, entity_type: str, entity_id: str) -> list[AuditEvent]:
        return [
            event for event in self.events
            if event.entity_type == entity_type and event.entity_id == entity_id
        ]

    async def get_recent_events(self, limit: int = 100, entity_type: Optional[str] = None) -> list[AuditEvent]:
        events = [
            event for event in self.events
            if entity_type is None or event.entity_type == entity_type
        ]
        return list(reversed(events))[:limit]


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()


@pytest.fixture
def audit_logger(audit_storage):
    return AuditLogger(audit_storage)


@pytest.fixture
def engine_settings():
    return EngineSettings()


def make_income(amount: float = 4000.0, cadence: Cadence = Cadence.MONTHLY, **overrides) -> IncomeRecord:
    fields = {"id": "income-1", "source": "Employer", "amount": amount, "cadence": cadence, "created_at": CREATED}
    fields.update(overrides)
    return IncomeRecord(**fields)


def make_bill(
    bill_id: str = "bill-1",
    name: str = "Rent",
    amount: float = 1200.0,
    due_day: int = 1,
    cadence: Cadence = Cadence.MONTHLY,
    **overrides,
) -> BillRecord:
    fields = {
        "id": bill_id,
        "name": name,
        "amount": amount,
        "due_day": due_day,
        "cadence": cadence,
        "created_at": CREATED,
    }
    fields.update(overrides)
    return BillRecord(**fields)


def make_purchase(
    purchase_id: str = "purchase-1",
    item: str = "Groceries",
    amount: float = 50.0,
    category: str = "Food",
    purchase_date: date = date(2026, 3, 10),
    **overrides,
) -> PurchaseRecord:
    fields = {
        "id": purchase_id,
        "item": item,
        "amount": amount,
        "category": category,
        "purchase_date": purchase_date,
    }
    fields.update(overrides)
    return PurchaseRecord(**fields)


def make_account(
    account_id: str = "account-1",
    name: str = "Current",
    balance: float = 2000.0,
    account_type: AccountType = AccountType.CHECKING,
    **overrides,
) -> AccountRecord:
    fields = {"id": account_id, "name": name, "balance": balance, "type": account_type}
    fields.update(overrides)
    return AccountRecord(**fields)


def make_budget(
    category: str = "Food",
    target: float = 300.0,
    month: str = "2026-03",
    carryover: Optional[float] = None,
    rollover: bool = False,
) -> EnvelopeBudget:
    return EnvelopeBudget(
        id=f"{month}-{category.lower()}",
        month=month,
        category=category,
        target_amount=target,
        carryover_amount=carryover,
        rollover_enabled=rollover,
    )


def make_rule(target: AllocationTarget, percentage: float, active: bool = True) -> AllocationRule:
    return AllocationRule(id=f"rule-{target.value}", target=target, percentage=percentage, active=active)
