"""
Audit Logger

DESIGN DECISION: Every planning mutation is logged.
This provides:
1. A before/after trail for each version, task and split change
2. Debugging capability when a plan looks wrong
3. A history the user can browse

The audit logger:
- Is async so the data layer can persist without blocking the flow
- Gracefully handles failures (a failed write never fails the mutation)
- Supports correlation IDs to trace related events
"""

import logging
from typing import Any, Optional
from uuid import UUID, uuid4

import structlog

from finance_engine.audit.storage import AuditStorageInterface
from finance_engine.config import AppSettings, get_settings
from finance_engine.models.audit import AuditEvent, AuditEventBuilder, AuditEventType, AuditSeverity


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


def configure_logging(settings: Optional[AppSettings] = None) -> int:
    """
    Route structured logs to stderr at the configured level.

    filter_by_level drops anything below the stdlib root level, so this
    must run once at startup for info/debug events to appear.

    Returns:
        The numeric level applied
    """
    settings = settings or get_settings().app
    level = logging.DEBUG if settings.debug_mode else getattr(logging, settings.log_level)
    logging.basicConfig(format="%(message)s", level=level)
    logging.getLogger().setLevel(level)
    return level


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. The injected audit store (for persistence and user visibility)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger(__name__)

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        elif event.severity == AuditSeverity.DEBUG:
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_planning_version_saved(
        self,
        version_id: str,
        created: bool,
        before: Optional[dict[str, Any]],
        after: dict[str, Any],
        metadata: dict[str, Any],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        event = AuditEventBuilder.planning_version_saved(
            version_id=version_id,
            created=created,
            before=before,
            after=after,
            metadata=metadata,
            correlation_id=correlation_id,
        )
        await self.log(event)
        return event

    async def log_plan_applied(
        self,
        month: str,
        version_key: str,
        reapply: bool,
        before: dict[str, Any],
        after: dict[str, Any],
        metadata: dict[str, Any],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        event = AuditEventBuilder.plan_applied(
            month=month,
            version_key=version_key,
            reapply=reapply,
            before=before,
            after=after,
            metadata=metadata,
            correlation_id=correlation_id,
        )
        await self.log(event)
        return event

    async def log_task_status_updated(
        self,
        task_id: str,
        before: dict[str, Any],
        after: dict[str, Any],
        metadata: dict[str, Any],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        event = AuditEventBuilder.task_status_updated(
            task_id=task_id,
            before=before,
            after=after,
            metadata=metadata,
            correlation_id=correlation_id,
        )
        await self.log(event)
        return event

    async def log_split_changed(
        self,
        purchase_id: str,
        event_type: AuditEventType,
        before: dict[str, Any],
        after: dict[str, Any],
        metadata: dict[str, Any],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        """Log a split upsert, clear or template apply."""
        event = AuditEventBuilder.purchase_split_changed(
            purchase_id=purchase_id,
            event_type=event_type,
            before=before,
            after=after,
            metadata=metadata,
            correlation_id=correlation_id,
        )
        await self.log(event)
        return event

    async def log_auto_allocation_applied(
        self,
        month: str,
        run_id: str,
        before: dict[str, Any],
        after: dict[str, Any],
        metadata: dict[str, Any],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        event = AuditEventBuilder.auto_allocation_applied(
            month=month,
            run_id=run_id,
            before=before,
            after=after,
            metadata=metadata,
            correlation_id=correlation_id,
        )
        await self.log(event)
        return event

    async def log_input_rejected(
        self,
        entity_type: str,
        field: str,
        message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        """Log a tier-1 rejection."""
        event = AuditEventBuilder.input_rejected(
            entity_type=entity_type,
            field=field,
            message=message,
            correlation_id=correlation_id,
        )
        await self.log(event)
        return event


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a user action (e.g., applying a plan).
    Pass it through all subsequent operations.
    """
    return uuid4()
