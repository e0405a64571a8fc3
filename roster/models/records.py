"""
Core Record Models for Roster

People, households, household members, tags and notes.

These models define the shape of stored records. Cross-record rules
(tag ids resolve, household links agree, field values match their
definitions) cannot be checked by a single model and live in the
record store and the integrity coordinator.

DESIGN DECISION: Input models (`*Input`, `*Update`) are separate from
stored models. Callers never construct ids, timestamps or links, and an
update only carries the attributes the caller actually set.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator

from roster.models.schema import EMAIL_PATTERN, FieldValue, plain_value, utcnow


# =============================================================================
# ENUMS
# =============================================================================

class PersonStatus(str, Enum):
    """Membership status of a person."""
    ACTIVE = "active"
    INACTIVE = "inactive"
    VISITOR = "visitor"


class Relationship(str, Enum):
    """A person's role inside a household."""
    HEAD = "head"
    SPOUSE = "spouse"
    CHILD = "child"
    OTHER = "other"


class NoteVisibility(str, Enum):
    """
    Who may read a note.

    STAFF_ONLY notes are never returned to viewers.
    """
    STAFF_ONLY = "staff_only"
    ORG = "org"


def _check_email(v: Optional[str]) -> Optional[str]:
    if v is None or v == "":
        return None
    if not EMAIL_PATTERN.match(v):
        raise ValueError("Invalid email format")
    return v


# =============================================================================
# PEOPLE
# =============================================================================

class PersonInput(BaseModel):
    """
    What a caller supplies to create a person.

    `fields` holds raw values keyed by ProfileFieldDef.key. They are
    checked against the organization's field definitions by the record
    store before anything is stored.
    """
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    preferred_name: Optional[str] = Field(default=None, max_length=100)
    email: Optional[str] = Field(default=None, max_length=254)
    phone: Optional[str] = Field(default=None, max_length=40)
    status: PersonStatus = PersonStatus.ACTIVE
    fields: dict[str, Any] = Field(default_factory=dict)
    tag_ids: list[UUID] = Field(default_factory=list)

    @field_validator('email')
    @classmethod
    def validate_email(cls, v: Optional[str]) -> Optional[str]:
        return _check_email(v)


class PersonUpdate(BaseModel):
    """
    Partial update of a person.

    Only attributes present in `model_fields_set` are applied. Inside
    `fields`, a None value removes the stored value for that key and
    keys that are not mentioned are left alone.
    """
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    first_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    preferred_name: Optional[str] = Field(default=None, max_length=100)
    email: Optional[str] = Field(default=None, max_length=254)
    phone: Optional[str] = Field(default=None, max_length=40)
    status: Optional[PersonStatus] = None
    fields: Optional[dict[str, Any]] = None
    tag_ids: Optional[list[UUID]] = None

    @field_validator('email')
    @classmethod
    def validate_email(cls, v: Optional[str]) -> Optional[str]:
        return _check_email(v)


class Person(BaseModel):
    """
    A person in the organization's directory.

    `tag_ids` has set semantics. `household_id` is only ever written by
    the integrity coordinator, together with the matching member row.
    """

    id: UUID = Field(default_factory=uuid4)
    organization_id: UUID
    first_name: str
    last_name: str
    preferred_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    status: PersonStatus = PersonStatus.ACTIVE
    fields: dict[str, FieldValue] = Field(default_factory=dict)
    tag_ids: list[UUID] = Field(default_factory=list)
    household_id: Optional[UUID] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @property
    def display_name(self) -> str:
        first = self.preferred_name or self.first_name
        return f"{first} {self.last_name}"

    def field_values(self) -> dict[str, Any]:
        """Stored custom field values without their type tags."""
        return {key: plain_value(value) for key, value in self.fields.items()}


# =============================================================================
# HOUSEHOLDS
# =============================================================================

class HouseholdInput(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    name: str = Field(..., min_length=1, max_length=200)


class HouseholdUpdate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    name: Optional[str] = Field(default=None, min_length=1, max_length=200)


class Household(BaseModel):
    """A household. Archiving is the only way to remove one."""

    id: UUID = Field(default_factory=uuid4)
    organization_id: UUID
    name: str
    archived: bool = False
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class HouseholdMember(BaseModel):
    """
    Join row between a household and a person.

    A person has at most one of these, and it exists exactly when
    Person.household_id is set.
    """

    id: UUID = Field(default_factory=uuid4)
    organization_id: UUID
    household_id: UUID
    person_id: UUID
    relationship: Relationship = Relationship.OTHER
    created_at: datetime = Field(default_factory=utcnow)


# =============================================================================
# TAGS
# =============================================================================

class TagInput(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    name: str = Field(..., min_length=1, max_length=100)
    color: Optional[str] = Field(default=None, max_length=30)


class TagUpdate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    color: Optional[str] = Field(default=None, max_length=30)


class Tag(BaseModel):
    """A label that can be attached to people."""

    id: UUID = Field(default_factory=uuid4)
    organization_id: UUID
    name: str
    color: Optional[str] = None
    archived: bool = False
    created_at: datetime = Field(default_factory=utcnow)


# =============================================================================
# NOTES
# =============================================================================

class NoteInput(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    person_id: UUID
    body: str = Field(..., min_length=1, max_length=10000)
    visibility: NoteVisibility = NoteVisibility.STAFF_ONLY


class Note(BaseModel):
    """
    A note about a person.

    The body is immutable once created; there is no update operation.
    """
    model_config = ConfigDict(frozen=True)

    id: UUID = Field(default_factory=uuid4)
    organization_id: UUID
    person_id: UUID
    author_user_id: Optional[UUID] = None
    body: str
    visibility: NoteVisibility = NoteVisibility.STAFF_ONLY
    created_at: datetime = Field(default_factory=utcnow)
