"""
Operation Results

DESIGN DECISION: Every service operation that can fail returns an
OperationResult instead of raising past the service boundary. Callers
present the failure to the user and decide whether to retry (for example,
prompting for a backup password when the default key cannot decode it).

A failure never leaves a half-applied change behind: services either
replace a whole collection/record or change nothing.
"""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class FailureKind(str, Enum):
    """Tagged failure kinds surfaced to callers."""
    IDENTIFIER_TAKEN = "identifier_taken"
    USER_NOT_FOUND = "user_not_found"
    INVALID_CREDENTIALS = "invalid_credentials"
    DECODE_FAILURE = "decode_failure"
    INVALID_BACKUP_FORMAT = "invalid_backup_format"
    OWNERSHIP_MISMATCH = "ownership_mismatch"
    BIOMETRIC_UNAVAILABLE = "biometric_unavailable"
    BIOMETRIC_CEREMONY_FAILED = "biometric_ceremony_failed"
    WEAK_PASSWORD = "weak_password"
    PASSWORD_MISMATCH = "password_mismatch"
    INVALID_COMMAND = "invalid_command"
    NOT_FOUND = "not_found"
    INVALID_STATE = "invalid_state"
    STORAGE_FAILURE = "storage_failure"


class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_value', 'too_short')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        default="error",
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )


class OperationResult(BaseModel):
    """
    Outcome of a service operation.

    Either `success` is True and `value` holds the result (if any),
    or `success` is False and `failure` says why.
    """
    model_config = ConfigDict(arbitrary_types_allowed=True)

    success: bool
    value: Any = None
    failure: Optional[FailureKind] = None
    message: Optional[str] = None
    issues: list[ValidationIssue] = Field(default_factory=list)

    @classmethod
    def ok(cls, value: Any = None, message: Optional[str] = None) -> "OperationResult":
        return cls(success=True, value=value, message=message)

    @classmethod
    def fail(
        cls,
        failure: FailureKind,
        message: Optional[str] = None,
        issues: Optional[list[ValidationIssue]] = None,
    ) -> "OperationResult":
        return cls(
            success=False,
            failure=failure,
            message=message or failure.value.replace("_", " ").capitalize(),
            issues=issues or [],
        )

    @property
    def failed(self) -> bool:
        return not self.success

    def __bool__(self) -> bool:
        return self.success
