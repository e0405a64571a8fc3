"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for persistence.
This allows us to:
1. Keep everything in memory for tests and embedded use
2. Persist to JSON files for a single-process deployment
3. Swap in a real database later
4. Keep the integrity rules decoupled from where records live

The interface is intentionally coarse: one organization's whole state
is loaded and saved as a unit. The record store owns consistency;
storage only has to make each save atomic.
"""

from abc import ABC, abstractmethod
from typing import Optional
from uuid import UUID

from roster.models.audit import AuditEvent
from roster.models.state import OrgState


class StateStorageInterface(ABC):
    """
    Abstract interface for organization state persistence.

    Any storage implementation (memory, JSON files, a database)
    must implement these methods.
    """

    @abstractmethod
    async def load_state(self, organization_id: UUID) -> Optional[OrgState]:
        """
        Load an organization's state.

        Args:
            organization_id: The organization to load

        Returns:
            The stored state, or None if the organization has never been saved

        Raises:
            StorageError: If the stored state exists but cannot be read
        """
        pass

    @abstractmethod
    async def save_state(self, state: OrgState) -> bool:
        """
        Save an organization's state, replacing the previous one atomically.

        Args:
            state: The state to save

        Returns:
            True if saved successfully

        Raises:
            StorageError: If save fails (the previous state must be intact)
        """
        pass

    @abstractmethod
    async def list_organizations(self) -> list[UUID]:
        """
        List organizations that have stored state.

        Returns:
            Organization ids, in no particular order
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a specific entity.

        Returns:
            List of events in chronological order
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events.

        Returns:
            List of recent events (newest first)
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass

