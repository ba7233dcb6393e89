"""Audit logging package."""

from finance_engine.audit.logger import AuditLogger, configure_logging, create_correlation_id
from finance_engine.audit.storage import AuditStorageInterface, StorageError

__all__ = [
    "AuditLogger",
    "AuditStorageInterface",
    "StorageError",
    "configure_logging",
    "create_correlation_id",
]
