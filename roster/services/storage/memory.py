"""
In-Memory Storage Implementation

Used by tests and by callers that persist elsewhere. States are stored
as deep copies so later mutation of the caller's object cannot leak in.
"""

from typing import Optional
from uuid import UUID

from roster.models.audit import AuditEvent
from roster.models.state import OrgState
from roster.services.storage.interface import (
    AuditStorageInterface,
    StateStorageInterface,
)


class InMemoryStateStorage(StateStorageInterface):
    """Organization states held in a dict, keyed by organization id."""

    def __init__(self):
        self._states: dict[UUID, OrgState] = {}
        self.save_count = 0

    async def load_state(self, organization_id: UUID) -> Optional[OrgState]:
        state = self._states.get(organization_id)
        return state.clone() if state is not None else None

    async def save_state(self, state: OrgState) -> bool:
        self._states[state.organization_id] = state.clone()
        self.save_count += 1
        return True

    async def list_organizations(self) -> list[UUID]:
        return list(self._states)


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of audit events."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        return [
            event for event in self._events
            if event.entity_type == entity_type and event.entity_id == entity_id
        ]

    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        return list(reversed(self._events))[:limit]
