"""
Request Context

DESIGN DECISION: The organization and role of the caller are passed
explicitly to every operation instead of being read from global state.
The authorization layer builds a RequestContext; the core only reads it.
"""

from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class Role(str, Enum):
    """Organization roles, highest privilege first."""
    OWNER = "owner"
    ADMIN = "admin"
    MEMBER = "member"
    VIEWER = "viewer"

    @property
    def can_view_staff_only(self) -> bool:
        """Everyone except viewers sees staff-only fields and notes."""
        return self != Role.VIEWER


class RequestContext(BaseModel):
    """Who is calling, and on behalf of which organization."""
    model_config = ConfigDict(frozen=True)

    organization_id: UUID
    role: Role = Role.MEMBER
    user_id: Optional[UUID] = None
