"""
Record Store

Owns every organization's records and the only way to change them: a
transaction.

DESIGN DECISION: Copy-on-write transactions.
- One asyncio.Lock per organization serializes writers.
- A writer mutates a deep copy of the committed state.
- Before commit, the copy is checked for dangling references and
  saved to storage; only then is it swapped in.
- Any exception inside the transaction discards the copy.

Readers never take the lock. They read whichever state was committed
last, which is never mutated again, so they see the state before or
after an operation, never halfway through one.

Entity operations below validate everything at the boundary. A
rejected write raises before the working copy is touched, and even if
it were touched the copy would be discarded.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional
from uuid import UUID

import structlog

from roster.errors import IntegrityViolationError, ReferenceError, ValidationError
from roster.models.records import (
    Household,
    HouseholdInput,
    HouseholdUpdate,
    Note,
    NoteInput,
    Person,
    PersonInput,
    PersonStatus,
    PersonUpdate,
    Tag,
    TagInput,
    TagUpdate,
)
from roster.models.results import ValidationIssue
from roster.models.schema import utcnow
from roster.models.state import OrgState
from roster.schema.registry import SchemaRegistry
from roster.services.storage.interface import StateStorageInterface
from roster.store.invariants import find_violations


logger = structlog.get_logger(__name__)


class RecordStore:
    """
    In-memory record collections per organization, optionally persisted.

    Args:
        storage: Where committed states are saved and loaded from.
                 If None, states live only in memory.
    """

    def __init__(self, storage: Optional[StateStorageInterface] = None):
        self._storage = storage
        self._states: dict[UUID, OrgState] = {}
        self._locks: dict[UUID, asyncio.Lock] = {}

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------

    def _lock_for(self, organization_id: UUID) -> asyncio.Lock:
        lock = self._locks.get(organization_id)
        if lock is None:
            lock = self._locks[organization_id] = asyncio.Lock()
        return lock

    async def _load_saved(self, organization_id: UUID) -> Optional[OrgState]:
        """
        The committed state, loading it from storage on first use.

        Only organizations that exist in memory or in storage are cached;
        None otherwise.
        """
        state = self._states.get(organization_id)
        if state is None and self._storage is not None:
            loaded = await self._storage.load_state(organization_id)
            if loaded is not None:
                # A writer may have cached it while we were loading
                state = self._states.setdefault(organization_id, loaded)
        return state

    async def snapshot(self, organization_id: UUID) -> OrgState:
        """
        The last committed state of an organization.

        Treat it as read-only: it is shared with every other reader.
        An organization with no records yet reads as a fresh, uncached
        empty state.
        """
        state = await self._load_saved(organization_id)
        if state is None:
            return OrgState(organization_id=organization_id)
        return state

    @asynccontextmanager
    async def transaction(self, organization_id: UUID) -> AsyncIterator[OrgState]:
        """
        Run a unit of work against a working copy of the organization.

        Usage:
            async with store.transaction(org_id) as state:
                ...mutate state...

        Commits on normal exit; discards every change on exception.

        Raises:
            IntegrityViolationError: If the working copy has dangling references
            StorageError: If the state could not be persisted
        """
        async with self._lock_for(organization_id):
            committed = await self._load_saved(organization_id)
            if committed is None:
                committed = OrgState(organization_id=organization_id)
            working = committed.clone()

            yield working

            violations = find_violations(working)
            if violations:
                logger.error(
                    "integrity_violation",
                    organization_id=str(organization_id),
                    violations=violations,
                )
                raise IntegrityViolationError(violations)

            working.version = committed.version + 1
            if self._storage is not None:
                await self._storage.save_state(working)
            self._states[organization_id] = working

    # -------------------------------------------------------------------------
    # People
    # -------------------------------------------------------------------------

    @staticmethod
    def _check_tag_ids(state: OrgState, tag_ids: list[UUID]) -> None:
        duplicates = {str(t) for t in tag_ids if tag_ids.count(t) > 1}
        if duplicates:
            message = f"Tag listed more than once: {', '.join(sorted(duplicates))}"
            raise ValidationError(message, [ValidationIssue(
                field="tag_ids",
                issue_type="duplicate",
                message=message,
            )])
        unknown = [str(t) for t in tag_ids if state.live_tag(t) is None]
        if unknown:
            raise ReferenceError(f"Tag not found: {', '.join(unknown)}")

    @staticmethod
    def require_person(state: OrgState, person_id: UUID) -> Person:
        person = state.people.get(person_id)
        if person is None:
            raise ReferenceError(f"Person not found: {person_id}")
        return person

    @staticmethod
    def add_person(state: OrgState, data: PersonInput) -> Person:
        """Validate and insert a person into a working state."""
        fields = SchemaRegistry(state).validator().validate_fields(data.fields)
        RecordStore._check_tag_ids(state, data.tag_ids)

        person = Person(
            organization_id=state.organization_id,
            first_name=data.first_name,
            last_name=data.last_name,
            preferred_name=data.preferred_name,
            email=data.email,
            phone=data.phone,
            status=data.status,
            fields=fields,
            tag_ids=list(data.tag_ids),
        )
        state.people[person.id] = person
        return person

    @staticmethod
    def change_person(state: OrgState, person_id: UUID, data: PersonUpdate) -> Person:
        """Validate and merge a partial update into a working state."""
        person = RecordStore.require_person(state, person_id)
        changes = data.model_dump(exclude_unset=True)

        for name in ("first_name", "last_name", "status"):
            if name in changes and changes[name] is None:
                message = f"{name} cannot be cleared"
                raise ValidationError(message, [ValidationIssue(
                    field=name,
                    issue_type="missing",
                    message=message,
                )])

        if "fields" in changes:
            person.fields = SchemaRegistry(state).validator().validate_fields(
                data.fields or {},
                existing=person.fields,
            )
        if "tag_ids" in changes:
            tag_ids = data.tag_ids or []
            RecordStore._check_tag_ids(state, tag_ids)
            person.tag_ids = list(tag_ids)

        for name in ("first_name", "last_name", "preferred_name", "email", "phone", "status"):
            if name in changes:
                setattr(person, name, getattr(data, name))

        person.updated_at = utcnow()
        return person

    async def create_person(self, organization_id: UUID, data: PersonInput) -> Person:
        async with self.transaction(organization_id) as state:
            return self.add_person(state, data)

    async def update_person(
        self,
        organization_id: UUID,
        person_id: UUID,
        data: PersonUpdate,
    ) -> Person:
        async with self.transaction(organization_id) as state:
            return self.change_person(state, person_id, data)

    async def deactivate_person(self, organization_id: UUID, person_id: UUID) -> Person:
        """Mark a person inactive; the list page's soft delete."""
        return await self.update_person(
            organization_id,
            person_id,
            PersonUpdate(status=PersonStatus.INACTIVE),
        )

    async def get_person(self, organization_id: UUID, person_id: UUID) -> Person:
        state = await self.snapshot(organization_id)
        return self.require_person(state, person_id)

    async def list_people(
        self,
        organization_id: UUID,
        search: Optional[str] = None,
        status: Optional[PersonStatus] = None,
    ) -> list[Person]:
        """
        People in creation order, optionally filtered.

        `search` matches first name, last name, preferred name and email
        case-insensitively, and phone as a plain substring.
        """
        state = await self.snapshot(organization_id)
        needle = (search or "").strip().lower()

        results = []
        for person in state.people.values():
            if status is not None and person.status != status:
                continue
            if needle:
                haystacks = [
                    person.first_name.lower(),
                    person.last_name.lower(),
                    (person.preferred_name or "").lower(),
                    (person.email or "").lower(),
                ]
                matches = any(needle in h for h in haystacks)
                if not matches and person.phone and search.strip() in person.phone:
                    matches = True
                if not matches:
                    continue
            results.append(person)
        return results

    # -------------------------------------------------------------------------
    # Tags
    # -------------------------------------------------------------------------

    @staticmethod
    def require_tag(state: OrgState, tag_id: UUID, include_archived: bool = False) -> Tag:
        tag = state.tags.get(tag_id) if include_archived else state.live_tag(tag_id)
        if tag is None:
            raise ReferenceError(f"Tag not found: {tag_id}")
        return tag

    async def create_tag(self, organization_id: UUID, data: TagInput) -> Tag:
        async with self.transaction(organization_id) as state:
            tag = Tag(
                organization_id=organization_id,
                name=data.name,
                color=data.color,
            )
            state.tags[tag.id] = tag
            return tag

    async def update_tag(self, organization_id: UUID, tag_id: UUID, data: TagUpdate) -> Tag:
        async with self.transaction(organization_id) as state:
            tag = self.require_tag(state, tag_id)
            changes = data.model_dump(exclude_unset=True)
            if "name" in changes:
                if data.name is None:
                    raise ValidationError("Tag name cannot be cleared")
                tag.name = data.name
            if "color" in changes:
                tag.color = data.color
            return tag

    async def get_tag(
        self,
        organization_id: UUID,
        tag_id: UUID,
        include_archived: bool = False,
    ) -> Tag:
        state = await self.snapshot(organization_id)
        return self.require_tag(state, tag_id, include_archived)

    async def list_tags(
        self,
        organization_id: UUID,
        include_archived: bool = False,
    ) -> list[Tag]:
        state = await self.snapshot(organization_id)
        return [t for t in state.tags.values() if include_archived or not t.archived]

    # -------------------------------------------------------------------------
    # Households
    # -------------------------------------------------------------------------

    @staticmethod
    def require_household(
        state: OrgState,
        household_id: UUID,
        include_archived: bool = False,
    ) -> Household:
        if include_archived:
            household = state.households.get(household_id)
        else:
            household = state.live_household(household_id)
        if household is None:
            raise ReferenceError(f"Household not found: {household_id}")
        return household

    async def create_household(self, organization_id: UUID, data: HouseholdInput) -> Household:
        async with self.transaction(organization_id) as state:
            household = Household(organization_id=organization_id, name=data.name)
            state.households[household.id] = household
            return household

    async def update_household(
        self,
        organization_id: UUID,
        household_id: UUID,
        data: HouseholdUpdate,
    ) -> Household:
        async with self.transaction(organization_id) as state:
            household = self.require_household(state, household_id)
            if "name" in data.model_fields_set:
                if data.name is None:
                    raise ValidationError("Household name cannot be cleared")
                household.name = data.name
                household.updated_at = utcnow()
            return household

    async def get_household(
        self,
        organization_id: UUID,
        household_id: UUID,
        include_archived: bool = False,
    ) -> Household:
        state = await self.snapshot(organization_id)
        return self.require_household(state, household_id, include_archived)

    async def list_households(
        self,
        organization_id: UUID,
        include_archived: bool = False,
    ) -> list[Household]:
        state = await self.snapshot(organization_id)
        return [
            h for h in state.households.values()
            if include_archived or not h.archived
        ]

    # -------------------------------------------------------------------------
    # Notes
    # -------------------------------------------------------------------------

    async def create_note(
        self,
        organization_id: UUID,
        data: NoteInput,
        author_user_id: Optional[UUID] = None,
    ) -> Note:
        async with self.transaction(organization_id) as state:
            self.require_person(state, data.person_id)
            note = Note(
                organization_id=organization_id,
                person_id=data.person_id,
                author_user_id=author_user_id,
                body=data.body,
                visibility=data.visibility,
            )
            state.notes[note.id] = note
            return note

    @staticmethod
    def newest_first(notes: list[Note]) -> list[Note]:
        """Sort notes newest first; among equal timestamps, later-created first."""
        indexed = list(enumerate(notes))
        indexed.sort(key=lambda pair: (pair[1].created_at, pair[0]), reverse=True)
        return [note for _, note in indexed]

    async def list_notes(self, organization_id: UUID, person_id: UUID) -> list[Note]:
        state = await self.snapshot(organization_id)
        self.require_person(state, person_id)
        return self.newest_first(state.notes_for(person_id))

    async def recent_notes(self, organization_id: UUID, limit: int = 10) -> list[Note]:
        state = await self.snapshot(organization_id)
        return self.newest_first(list(state.notes.values()))[:limit]
