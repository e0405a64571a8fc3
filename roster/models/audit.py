"""
Audit Models for Roster

Every mutation of an organization's records is logged for audit purposes.
This provides:
1. Traceability of who changed what
2. The size of every cascade (how many people lost a tag, etc.)
3. Debugging information when an operation is rejected

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from roster.models.schema import utcnow


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Schema
    FIELD_DEFINED = "field_defined"
    FIELD_UPDATED = "field_updated"
    FIELD_ARCHIVED = "field_archived"
    FIELDS_REORDERED = "fields_reordered"

    # People
    PERSON_CREATED = "person_created"
    PERSON_UPDATED = "person_updated"
    PERSON_DELETED = "person_deleted"
    NOTE_ADDED = "note_added"

    # Tags
    TAG_CREATED = "tag_created"
    TAG_UPDATED = "tag_updated"
    TAG_ARCHIVED = "tag_archived"

    # Households
    HOUSEHOLD_CREATED = "household_created"
    HOUSEHOLD_UPDATED = "household_updated"
    HOUSEHOLD_ARCHIVED = "household_archived"
    MEMBER_ADDED = "member_added"
    MEMBER_UPDATED = "member_updated"
    MEMBER_REMOVED = "member_removed"

    # Rejections
    OPERATION_REJECTED = "operation_rejected"

    # System events
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

    Every mutation creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # Context
    organization_id: Optional[UUID] = None
    actor_user_id: Optional[UUID] = None
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'person', 'tag', 'household')"
    )
    entity_id: Optional[UUID] = None

    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(default_factory=dict)
    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """Convert to a dictionary suitable for structured logging."""
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "organization_id": str(self.organization_id) if self.organization_id else None,
            "actor_user_id": str(self.actor_user_id) if self.actor_user_id else None,
            "entity_type": self.entity_type,
            "entity_id": str(self.entity_id) if self.entity_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.mutation(AuditEventType.TAG_ARCHIVED, ...)
        event = AuditEventBuilder.rejected("archive_household", "ConflictError", ...)
    """

    @staticmethod
    def mutation(
        event_type: AuditEventType,
        organization_id: UUID,
        entity_type: str,
        entity_id: UUID,
        description: str,
        actor_user_id: Optional[UUID] = None,
        details: Optional[dict] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=event_type,
            organization_id=organization_id,
            actor_user_id=actor_user_id,
            entity_type=entity_type,
            entity_id=entity_id,
            description=description,
            details=details or {},
        )

    @staticmethod
    def rejected(
        operation: str,
        error_type: str,
        error_message: str,
        organization_id: UUID,
        actor_user_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.OPERATION_REJECTED,
            severity=AuditSeverity.WARNING,
            organization_id=organization_id,
            actor_user_id=actor_user_id,
            description=f"{operation} rejected: {error_type}",
            error_message=error_message,
            details={
                "operation": operation,
                "error_type": error_type,
            },
        )

    @staticmethod
    def system_error(
        operation: str,
        error_type: str,
        error_message: str,
        organization_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            organization_id=organization_id,
            description=f"System error during {operation}: {error_type}",
            error_message=error_message,
            details={"operation": operation},
        )
