"""
Access Filter

Strips data a role may not see from records on their way out.

DESIGN DECISION: Read-side only. Writes are not filtered here; whether
a role may write at all is decided by the authorization layer before
the core is called. Which fields a role may see is never decided here
either: that is the schema registry's `visible_fields_for`.
"""

from typing import Iterable

from roster.models.context import Role
from roster.models.records import Note, NoteVisibility, Person
from roster.schema.registry import SchemaRegistry


def apply_role(person: Person, role: Role, registry: SchemaRegistry) -> Person:
    """
    Return a copy of `person` with the fields `role` may not see removed.

    Values kept under archived keys are only shown to roles that see
    staff-only data; for viewers, only currently visible fields remain.
    The stored record is never modified.
    """
    if role.can_view_staff_only:
        return person.model_copy(deep=True)

    visible = {d.key for d in registry.visible_fields_for(role)}
    filtered = person.model_copy(deep=True)
    filtered.fields = {
        key: value for key, value in filtered.fields.items() if key in visible
    }
    return filtered


def apply_role_all(
    people: Iterable[Person],
    role: Role,
    registry: SchemaRegistry,
) -> list[Person]:
    return [apply_role(person, role, registry) for person in people]


def filter_notes(notes: Iterable[Note], role: Role) -> list[Note]:
    """Drop staff-only notes for roles that may not read them."""
    if role.can_view_staff_only:
        return list(notes)
    return [note for note in notes if note.visibility == NoteVisibility.ORG]
