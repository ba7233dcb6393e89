"""
Audit Models for the Finance Engine

Every planning mutation (version upsert, plan apply, task status change,
split edit, auto-allocation run) produces one audit event carrying a
before/after snapshot of the entity it touched.

DESIGN DECISION: The engine only SHAPES audit events.
Recording them is the caller's job, through an append-only store behind
AuditStorageInterface. We never update or delete an event once built.
"""

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """
    Types of events we audit.

    Each maps to one (entity_type, action) pair in the stored trail.
    """
    # Planning versions
    PLANNING_VERSION_CREATED = "planning_version_created"
    PLANNING_VERSION_UPDATED = "planning_version_updated"

    # Plan application and tasks
    PLAN_APPLIED = "plan_applied"
    PLAN_REAPPLIED = "plan_reapplied"
    TASK_STATUS_UPDATED = "task_status_updated"

    # Purchase splits
    SPLIT_UPSERTED = "split_upserted"
    SPLIT_CLEARED = "split_cleared"
    SPLIT_TEMPLATE_APPLIED = "split_template_applied"

    # Auto-allocation
    AUTO_ALLOCATION_APPLIED = "auto_allocation_applied"

    # Rejections
    INPUT_REJECTED = "input_rejected"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuditEvent(BaseModel):
    """
    A single audit event.

    before/after are plain JSON-able dicts. A create has no before;
    a clear may have an empty after.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=_utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # What entity is this about?
    entity_type: str = Field(
        ...,
        description="Stored entity type, e.g. 'planning_month_version' or 'purchase'"
    )
    entity_id: str = Field(
        ...,
        description="ID of the entity, or a composite key like '2026-03:base'"
    )
    action: str = Field(
        ...,
        description="Stored action, e.g. 'create', 'reapply', 'split_cleared'"
    )

    correlation_id: Optional[UUID] = None

    # Snapshots
    before: Optional[dict[str, Any]] = None
    after: Optional[dict[str, Any]] = None
    metadata: dict[str, Any] = Field(
        default_factory=dict,
        description="Actor, source tag and other context"
    )

    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "action": self.action,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "metadata": self.metadata,
            "error_message": self.error_message,
        }

    def to_storage_row(self) -> dict[str, Any]:
        """
        Flatten for an append-only store.

        Snapshots are serialized to JSON text so the row is schema-stable
        whatever entity it describes.
        """
        return {
            "event_id": str(self.event_id),
            "created_at": self.timestamp.isoformat(),
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "action": self.action,
            "before_json": json.dumps(self.before, default=str) if self.before is not None else None,
            "after_json": json.dumps(self.after, default=str) if self.after is not None else None,
            "metadata_json": json.dumps(self.metadata, default=str) if self.metadata else None,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.plan_applied(month="2026-03", ...)
        await audit_logger.log(event)
    """

    @staticmethod
    def planning_version_saved(
        version_id: str,
        created: bool,
        before: Optional[dict[str, Any]],
        after: dict[str, Any],
        metadata: dict[str, Any],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=(
                AuditEventType.PLANNING_VERSION_CREATED
                if created
                else AuditEventType.PLANNING_VERSION_UPDATED
            ),
            entity_type="planning_month_version",
            entity_id=version_id,
            action="create" if created else "update",
            before=before,
            after=after,
            metadata=metadata,
            correlation_id=correlation_id,
        )

    @staticmethod
    def plan_applied(
        month: str,
        version_key: str,
        reapply: bool,
        before: dict[str, Any],
        after: dict[str, Any],
        metadata: dict[str, Any],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PLAN_REAPPLIED if reapply else AuditEventType.PLAN_APPLIED,
            entity_type="planning_plan_apply",
            entity_id=f"{month}:{version_key}",
            action="reapply" if reapply else "apply",
            before=before,
            after=after,
            metadata=metadata,
            correlation_id=correlation_id,
        )

    @staticmethod
    def task_status_updated(
        task_id: str,
        before: dict[str, Any],
        after: dict[str, Any],
        metadata: dict[str, Any],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TASK_STATUS_UPDATED,
            entity_type="planning_action_task",
            entity_id=task_id,
            action="status_update",
            before=before,
            after=after,
            metadata=metadata,
            correlation_id=correlation_id,
        )

    @staticmethod
    def purchase_split_changed(
        purchase_id: str,
        event_type: AuditEventType,
        before: dict[str, Any],
        after: dict[str, Any],
        metadata: dict[str, Any],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        """Split upsert, clear and template-apply share one shape."""
        return AuditEvent(
            event_type=event_type,
            entity_type="purchase",
            entity_id=purchase_id,
            action=event_type.value,
            before=before,
            after=after,
            metadata=metadata,
            correlation_id=correlation_id,
        )

    @staticmethod
    def auto_allocation_applied(
        month: str,
        run_id: str,
        before: dict[str, Any],
        after: dict[str, Any],
        metadata: dict[str, Any],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.AUTO_ALLOCATION_APPLIED,
            entity_type="income_allocation_suggestion",
            entity_id=f"{month}:{run_id}",
            action="apply",
            before=before,
            after=after,
            metadata=metadata,
            correlation_id=correlation_id,
        )

    @staticmethod
    def input_rejected(
        entity_type: str,
        field: str,
        message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.INPUT_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type=entity_type,
            entity_id=field,
            action="rejected",
            metadata={"field": field},
            error_message=message,
            correlation_id=correlation_id,
        )

