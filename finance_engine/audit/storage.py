"""
Audit Storage Interface

DESIGN DECISION: The engine never talks to a database.
Audit persistence goes through this interface so that:
1. The data layer owns the append-only audit table
2. Tests use an in-memory store
3. A failing store never fails a planning mutation

The interface is intentionally small - only what the audit trail needs.
"""

from abc import ABC, abstractmethod
from typing import Optional
from uuid import UUID

from finance_engine.models.audit import AuditEvent


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Args:
            event: The audit event to record

        Returns:
            True if recorded successfully

        Raises:
            StorageError: If the backend rejects the write
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a correlation ID (e.g., one plan apply).

        Returns:
            List of related events in chronological order
        """
        pass

    @abstractmethod
    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        """
        Get all events for a specific entity.

        Args:
            entity_type: Type of entity (e.g., 'purchase', 'planning_action_task')
            entity_id: The entity's ID or composite key

        Returns:
            List of events in chronological order
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
        entity_type: Optional[str] = None,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events, newest first.

        Args:
            limit: Maximum number of events to return
            entity_type: Restrict to one entity type
        """
        pass


class StorageError(Exception):
    """Raised by a storage backend when a read or write fails."""
    pass
