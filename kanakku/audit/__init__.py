"""Audit logging package."""

from kanakku.audit.logger import AuditLogger, configure_logging

__all__ = ["AuditLogger", "configure_logging"]
