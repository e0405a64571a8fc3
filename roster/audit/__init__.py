"""Audit logging package."""

from roster.audit.logger import AuditLogger, setup_logging

__all__ = ["AuditLogger", "setup_logging"]
