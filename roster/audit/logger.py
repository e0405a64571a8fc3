"""
Audit Logger

DESIGN DECISION: Every mutation of an organization's records is logged.
This provides:
1. Traceability of who changed what
2. The size of every cascade
3. A record of every rejected operation and internal error

The audit logger:
- Is async to not block the calling operation
- Gracefully handles failures (a failed audit write never fails the
  operation that was audited)
"""

import logging
from typing import Optional
from uuid import UUID

import structlog

from roster.models.audit import AuditEvent, AuditEventBuilder, AuditEventType
from roster.services.storage import AuditStorageInterface


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


def setup_logging(level: str = "INFO") -> None:
    """Route structlog's JSON lines through the stdlib root logger at `level`."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(message)s",
    )


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage, when one is configured
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
        self._logger = structlog.get_logger("roster.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
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

    async def log_mutation(
        self,
        event_type: AuditEventType,
        organization_id: UUID,
        entity_type: str,
        entity_id: UUID,
        description: str,
        actor_user_id: Optional[UUID] = None,
        details: Optional[dict] = None,
    ) -> None:
        """Log a committed change."""
        event = AuditEventBuilder.mutation(
            event_type=event_type,
            organization_id=organization_id,
            entity_type=entity_type,
            entity_id=entity_id,
            description=description,
            actor_user_id=actor_user_id,
            details=details,
        )
        await self.log(event)

    async def log_rejected(
        self,
        operation: str,
        error: Exception,
        organization_id: UUID,
        actor_user_id: Optional[UUID] = None,
    ) -> None:
        """Log an operation the core refused."""
        event = AuditEventBuilder.rejected(
            operation=operation,
            error_type=type(error).__name__,
            error_message=str(error),
            organization_id=organization_id,
            actor_user_id=actor_user_id,
        )
        await self.log(event)

    async def log_error(
        self,
        operation: str,
        error: Exception,
        organization_id: Optional[UUID] = None,
    ) -> None:
        """Log an unexpected failure."""
        event = AuditEventBuilder.system_error(
            operation=operation,
            error_type=type(error).__name__,
            error_message=str(error),
            organization_id=organization_id,
        )
        await self.log(event)
