"""
Audit Models for Kanakku

Every significant action in the system is logged for audit purposes.
This provides:
1. Traceability of identity and ledger changes
2. Debugging information when a restore or login goes wrong
3. A local history the user can inspect

DESIGN DECISION: Audit logs are append-only. We never modify them;
the local store only drops the oldest entries beyond its size limit.
Secrets (passwords, cipher text, credential ids) never enter an event.
"""

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Identity
    SIGNUP_STARTED = "signup_started"
    SIGNUP_REJECTED = "signup_rejected"
    ONBOARDING_COMPLETED = "onboarding_completed"
    LOGIN_SUCCEEDED = "login_succeeded"
    LOGIN_FAILED = "login_failed"
    LOGOUT = "logout"
    SESSION_RESTORED = "session_restored"
    PASSWORD_RESET = "password_reset"
    PROFILE_UPDATED = "profile_updated"

    # Ledger
    EXPENSE_ADDED = "expense_added"
    EXPENSE_DELETED = "expense_deleted"
    EXPENSE_RESTORED = "expense_restored"
    INCOME_ADDED = "income_added"
    INCOME_DELETED = "income_deleted"
    INCOME_RECEIVED = "income_received"
    INCOMES_MARKED_OVERDUE = "incomes_marked_overdue"
    BUDGET_SET = "budget_set"

    # Backup / export
    BACKUP_CREATED = "backup_created"
    BACKUP_RESTORED = "backup_restored"
    BACKUP_REJECTED = "backup_rejected"
    ACCOUNT_RESTORED = "account_restored"
    EXPORT_CREATED = "export_created"

    # Biometric
    BIOMETRIC_REGISTERED = "biometric_registered"
    BIOMETRIC_LOGIN = "biometric_login"
    BIOMETRIC_FAILED = "biometric_failed"

    # Assistant
    ASSISTANT_COMMAND_REJECTED = "assistant_command_rejected"

    # System events
    STORAGE_ERROR = "storage_error"
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
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

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'profile', 'expense', 'backup')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )
    user_id: Optional[str] = Field(
        default=None,
        description="Profile id active when the event happened"
    )

    # Event details
    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

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
            "user_id": self.user_id,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_storage_json(self) -> str:
        return json.dumps(self.model_dump(mode="json"), ensure_ascii=False)


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.login_failed("invalid_credentials")
        event = AuditEventBuilder.logout(user_id)
    """

    @staticmethod
    def signup_started() -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SIGNUP_STARTED,
            entity_type="profile",
            description="Signup started for a new identifier",
            is_user_action=True,
        )

    @staticmethod
    def signup_rejected(reason: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SIGNUP_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="profile",
            description="Signup rejected",
            error_code=reason,
            is_user_action=True,
        )

    @staticmethod
    def onboarding_completed(user_id: str, identifier_count: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ONBOARDING_COMPLETED,
            entity_type="profile",
            entity_id=user_id,
            user_id=user_id,
            description="Onboarding completed, profile created",
            details={"identifiers_bound": identifier_count},
            is_user_action=True,
        )

    @staticmethod
    def login_succeeded(user_id: str, method: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LOGIN_SUCCEEDED,
            entity_type="profile",
            entity_id=user_id,
            user_id=user_id,
            description=f"Login succeeded via {method}",
            details={"method": method},
            is_user_action=True,
        )

    @staticmethod
    def login_failed(reason: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LOGIN_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="profile",
            description="Login failed",
            error_code=reason,
            is_user_action=True,
        )

    @staticmethod
    def logout(user_id: Optional[str]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LOGOUT,
            entity_type="profile",
            entity_id=user_id,
            user_id=user_id,
            description="User logged out",
            is_user_action=True,
        )

    @staticmethod
    def ledger_change(
        event_type: AuditEventType,
        entity_type: str,
        entity_id: Optional[str],
        description: str,
        details: Optional[dict] = None,
        user_id: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=event_type,
            entity_type=entity_type,
            entity_id=entity_id,
            user_id=user_id,
            description=description,
            details=details or {},
            is_user_action=True,
        )

    @staticmethod
    def backup_rejected(reason: str, user_id: Optional[str] = None) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BACKUP_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="backup",
            user_id=user_id,
            description="Backup could not be applied",
            error_code=reason,
            is_user_action=True,
        )

    @staticmethod
    def biometric_failed(stage: str, error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BIOMETRIC_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="biometric",
            description=f"Biometric {stage} failed",
            error_message=error_message,
            details={"stage": stage},
        )

    @staticmethod
    def storage_error(operation: str, error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORAGE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"Storage error during {operation}",
            error_message=error_message,
            details={"operation": operation},
        )
