"""Audit logging package."""

from piggy.audit.logger import AuditLogger, configure_logging

__all__ = ["AuditLogger", "configure_logging"]
