"""
Audit Logger

DESIGN DECISION: Every significant action in the system is logged.
This provides:
1. Traceability of identity, ledger and backup operations
2. Debugging capability
3. A history the user can inspect on the device

The audit logger:
- Always writes to the structured local log
- Persists to audit storage when one is configured
- Gracefully handles failures (never crashes the app if logging fails)
"""

import logging
from typing import Optional

import structlog

from kanakku.config import get_settings
from kanakku.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from kanakku.services.storage import AuditStorageInterface


def configure_logging(level: Optional[str] = None) -> None:
    """Configure structlog for local logging."""
    level_name = level or get_settings().app.log_level
    logging.basicConfig(format="%(message)s", level=getattr(logging, level_name))

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
            structlog.processors.JSONRenderer(ensure_ascii=False)
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


configure_logging()


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage (for persistence and user visibility)
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
        self._logger = structlog.get_logger("kanakku.audit")

    def log(self, event: AuditEvent) -> bool:
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
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    def recent_events(self, limit: int = 100) -> list[AuditEvent]:
        """Most recent persisted events, newest first."""
        if not self._storage:
            return []
        return self._storage.get_recent_events(limit)

    def log_ledger_change(
        self,
        event_type: AuditEventType,
        entity_type: str,
        entity_id: Optional[str],
        description: str,
        details: Optional[dict] = None,
        user_id: Optional[str] = None,
    ) -> None:
        """Log an expense, income or budget change."""
        self.log(AuditEventBuilder.ledger_change(
            event_type=event_type,
            entity_type=entity_type,
            entity_id=entity_id,
            description=description,
            details=details,
            user_id=user_id,
        ))

    def log_login_succeeded(self, user_id: str, method: str) -> None:
        self.log(AuditEventBuilder.login_succeeded(user_id=user_id, method=method))

    def log_login_failed(self, reason: str) -> None:
        self.log(AuditEventBuilder.login_failed(reason=reason))

    def log_backup_rejected(self, reason: str, user_id: Optional[str] = None) -> None:
        self.log(AuditEventBuilder.backup_rejected(reason=reason, user_id=user_id))

    def log_storage_error(self, operation: str, error_message: str) -> None:
        """Log a storage failure."""
        self.log(AuditEventBuilder.storage_error(
            operation=operation,
            error_message=error_message,
        ))

    def log_event(
        self,
        event_type: AuditEventType,
        description: str,
        user_id: Optional[str] = None,
        entity_type: Optional[str] = None,
        entity_id: Optional[str] = None,
        details: Optional[dict] = None,
        severity: AuditSeverity = AuditSeverity.INFO,
        is_user_action: bool = True,
    ) -> None:
        """Log an event that has no dedicated builder."""
        self.log(AuditEvent(
            event_type=event_type,
            severity=severity,
            entity_type=entity_type,
            entity_id=entity_id,
            user_id=user_id,
            description=description,
            details=details or {},
            is_user_action=is_user_action,
        ))
