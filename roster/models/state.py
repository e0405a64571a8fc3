"""
Organization State

Everything the core knows about one organization, as a single model.

DESIGN DECISION: Writers never touch the committed state. They get a
deep copy, mutate it, and the record store swaps the copy in on commit.
Anyone holding the previous state keeps a consistent, unchanging view.
"""

from typing import Iterator, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from roster.models.records import Household, HouseholdMember, Note, Person, Tag
from roster.models.schema import ProfileFieldDef


class OrgState(BaseModel):
    """
    All records of one organization.

    Dicts preserve insertion order, which is creation order: derived
    views rely on it to break ties between equal timestamps.
    """

    organization_id: UUID
    version: int = Field(default=0, ge=0, description="Number of commits so far")

    field_defs: dict[str, ProfileFieldDef] = Field(default_factory=dict)
    people: dict[UUID, Person] = Field(default_factory=dict)
    households: dict[UUID, Household] = Field(default_factory=dict)
    members: dict[UUID, HouseholdMember] = Field(default_factory=dict)
    tags: dict[UUID, Tag] = Field(default_factory=dict)
    notes: dict[UUID, Note] = Field(default_factory=dict)

    def clone(self) -> "OrgState":
        """Deep working copy for a transaction."""
        return self.model_copy(deep=True)

    # -------------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------------

    def live_tag(self, tag_id: UUID) -> Optional[Tag]:
        tag = self.tags.get(tag_id)
        if tag is None or tag.archived:
            return None
        return tag

    def live_household(self, household_id: UUID) -> Optional[Household]:
        household = self.households.get(household_id)
        if household is None or household.archived:
            return None
        return household

    def member_for_person(self, person_id: UUID) -> Optional[HouseholdMember]:
        for member in self.members.values():
            if member.person_id == person_id:
                return member
        return None

    def members_of(self, household_id: UUID) -> list[HouseholdMember]:
        return [
            member for member in self.members.values()
            if member.household_id == household_id
        ]

    def people_with_tag(self, tag_id: UUID) -> Iterator[Person]:
        return (person for person in self.people.values() if tag_id in person.tag_ids)

    def notes_for(self, person_id: UUID) -> list[Note]:
        return [note for note in self.notes.values() if note.person_id == person_id]
