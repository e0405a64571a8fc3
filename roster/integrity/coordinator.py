"""
Integrity Coordinator

Every operation that touches a relationship goes through here, so the
store never holds a dangling reference.

DESIGN DECISION: Each operation is one record store transaction.
All dependent writes (the cascade) happen on the same working copy as
the primary write, and the copy is only published if every step
succeeded and the integrity check passes. A failure at any step
publishes nothing.

Cascade order matters even inside a transaction, because the steps are
written to read cleanly as the rule they enforce:
- archive_tag: strip the tag from every person, THEN archive it
- archive_household(cascade=True): remove every member, THEN archive
- delete_person: remove the member row and notes, THEN the person
"""

from typing import Optional
from uuid import UUID

import structlog

from roster.errors import ConflictError, ReferenceError
from roster.models.records import (
    Household,
    HouseholdMember,
    Person,
    Relationship,
    Tag,
)
from roster.models.schema import utcnow
from roster.models.state import OrgState
from roster.store.invariants import find_violations
from roster.store.record_store import RecordStore


logger = structlog.get_logger(__name__)


class IntegrityCoordinator:
    """
    Cross-entity operations with cascades.

    GUARANTEES:
    - Person.tag_ids only ever name live tags
    - Person.household_id is set exactly when a member row exists
    - A person has at most one household
    - Cascades are all-or-nothing
    """

    find_violations = staticmethod(find_violations)

    def __init__(self, store: RecordStore):
        self._store = store

    async def verify(self, organization_id: UUID) -> list[str]:
        """Integrity check of the committed state (empty when consistent)."""
        return find_violations(await self._store.snapshot(organization_id))

    # -------------------------------------------------------------------------
    # Tags
    # -------------------------------------------------------------------------

    async def archive_tag(self, organization_id: UUID, tag_id: UUID) -> tuple[Tag, int]:
        """
        Remove a tag from every person, then archive it.

        Idempotent: archiving an archived tag succeeds and changes nothing.

        Returns:
            (tag, number_of_people_untagged)

        Raises:
            ReferenceError: If the tag never existed in this organization
        """
        async with self._store.transaction(organization_id) as state:
            tag = RecordStore.require_tag(state, tag_id, include_archived=True)
            if tag.archived:
                return tag, 0

            now = utcnow()
            tagged = list(state.people_with_tag(tag_id))
            for person in tagged:
                person.tag_ids = [t for t in person.tag_ids if t != tag_id]
                person.updated_at = now

            tag.archived = True

        logger.info(
            "tag_archived",
            organization_id=str(organization_id),
            tag_id=str(tag_id),
            people_untagged=len(tagged),
        )
        return tag, len(tagged)

    # -------------------------------------------------------------------------
    # Household membership
    # -------------------------------------------------------------------------

    @staticmethod
    def _detach(state: OrgState, member: HouseholdMember) -> None:
        """Delete a member row and clear the person's household link together."""
        del state.members[member.id]
        person = state.people.get(member.person_id)
        if person is not None and person.household_id == member.household_id:
            person.household_id = None
            person.updated_at = utcnow()

    @staticmethod
    def _require_member(state: OrgState, member_id: UUID) -> HouseholdMember:
        member = state.members.get(member_id)
        if member is None:
            raise ReferenceError(f"Household member not found: {member_id}")
        return member

    async def add_household_member(
        self,
        organization_id: UUID,
        household_id: UUID,
        person_id: UUID,
        relationship: Relationship = Relationship.OTHER,
    ) -> HouseholdMember:
        """
        Put a person into a household.

        Raises:
            ReferenceError: If the household (live) or person does not exist
            ConflictError: If the person already belongs to a household;
                           they must be removed from it first
        """
        async with self._store.transaction(organization_id) as state:
            household = RecordStore.require_household(state, household_id)
            person = RecordStore.require_person(state, person_id)

            if person.household_id is not None or state.member_for_person(person_id):
                if person.household_id == household_id:
                    raise ConflictError(
                        f"{person.display_name} is already a member of {household.name}"
                    )
                raise ConflictError(
                    f"{person.display_name} already belongs to another household; "
                    "remove them from it first"
                )

            member = HouseholdMember(
                organization_id=organization_id,
                household_id=household_id,
                person_id=person_id,
                relationship=relationship,
            )
            state.members[member.id] = member
            person.household_id = household_id
            person.updated_at = utcnow()
            return member

    async def update_member_relationship(
        self,
        organization_id: UUID,
        member_id: UUID,
        relationship: Relationship,
    ) -> HouseholdMember:
        """Change a member's relationship within their household."""
        async with self._store.transaction(organization_id) as state:
            member = self._require_member(state, member_id)
            member.relationship = relationship
            return member

    async def remove_household_member(
        self,
        organization_id: UUID,
        member_id: UUID,
    ) -> HouseholdMember:
        """
        Remove a member row and clear the person's household as one unit.

        Returns:
            The removed member row

        Raises:
            ReferenceError: If the member row does not exist
        """
        async with self._store.transaction(organization_id) as state:
            member = self._require_member(state, member_id)
            self._detach(state, member)
            return member

    async def remove_person_from_household(
        self,
        organization_id: UUID,
        person_id: UUID,
    ) -> HouseholdMember:
        """
        Same as remove_household_member, addressed by person.

        Raises:
            ReferenceError: If the person does not exist or has no household
        """
        async with self._store.transaction(organization_id) as state:
            person = RecordStore.require_person(state, person_id)
            member = state.member_for_person(person_id)
            if member is None:
                raise ReferenceError(f"{person.display_name} is not in a household")
            self._detach(state, member)
            return member

    # -------------------------------------------------------------------------
    # Households
    # -------------------------------------------------------------------------

    async def archive_household(
        self,
        organization_id: UUID,
        household_id: UUID,
        cascade: bool = False,
    ) -> tuple[Household, list[HouseholdMember]]:
        """
        Archive a household.

        A household with members is only archived when `cascade` is set,
        in which case every member is removed first. Idempotent on an
        archived household.

        Returns:
            (household, removed_member_rows)

        Raises:
            ReferenceError: If the household never existed
            ConflictError: If members remain and cascade is False
        """
        async with self._store.transaction(organization_id) as state:
            household = RecordStore.require_household(
                state, household_id, include_archived=True
            )
            if household.archived:
                return household, []

            members = state.members_of(household_id)
            if members and not cascade:
                raise ConflictError(
                    f"Household '{household.name}' still has {len(members)} member(s); "
                    "remove them first or archive with cascade"
                )

            for member in members:
                self._detach(state, member)

            household.archived = True
            household.updated_at = utcnow()

        logger.info(
            "household_archived",
            organization_id=str(organization_id),
            household_id=str(household_id),
            members_removed=len(members),
        )
        return household, members

    # -------------------------------------------------------------------------
    # People
    # -------------------------------------------------------------------------

    async def delete_person(
        self,
        organization_id: UUID,
        person_id: UUID,
    ) -> tuple[Person, Optional[HouseholdMember], int]:
        """
        Delete a person and everything that points at them.

        Tag membership lives on the person and goes with them. The
        person's member row is removed like any other member removal,
        and their notes are deleted.

        Returns:
            (deleted_person, removed_member_row_or_None, notes_deleted)

        Raises:
            ReferenceError: If the person does not exist
        """
        async with self._store.transaction(organization_id) as state:
            person = RecordStore.require_person(state, person_id)

            member = state.member_for_person(person_id)
            if member is not None:
                self._detach(state, member)

            notes = state.notes_for(person_id)
            for note in notes:
                del state.notes[note.id]

            del state.people[person_id]

        return person, member, len(notes)
