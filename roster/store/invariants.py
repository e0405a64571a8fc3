"""
Referential Integrity Checks

A pure scan of an organization state for every relationship invariant.
The record store runs it on the working copy before each commit, so a
bug in any cascade aborts the transaction instead of being persisted.
"""

from collections import Counter

from roster.models.state import OrgState


def find_violations(state: OrgState) -> list[str]:
    """
    Return a description of every broken invariant (empty when consistent).

    Checked:
    - every entity belongs to the state's organization
    - every Person.tag_ids entry resolves to a live tag, without duplicates
    - Person.household_id is set exactly when one member row exists for
      the person, and both name the same live household
    - every member row points at an existing person
    - every note belongs to an existing person
    """
    violations = []
    org_id = state.organization_id

    collections = {
        "field": state.field_defs.values(),
        "person": state.people.values(),
        "household": state.households.values(),
        "member": state.members.values(),
        "tag": state.tags.values(),
        "note": state.notes.values(),
    }
    for kind, records in collections.items():
        for record in records:
            if record.organization_id != org_id:
                violations.append(
                    f"{kind} {record.id} belongs to organization {record.organization_id}"
                )

    member_counts = Counter(member.person_id for member in state.members.values())

    for person in state.people.values():
        if len(person.tag_ids) != len(set(person.tag_ids)):
            violations.append(f"person {person.id} has duplicate tag ids")
        for tag_id in person.tag_ids:
            if state.live_tag(tag_id) is None:
                violations.append(f"person {person.id} references missing tag {tag_id}")

        count = member_counts.get(person.id, 0)
        if count > 1:
            violations.append(f"person {person.id} has {count} household member rows")

        if person.household_id is None:
            if count:
                violations.append(
                    f"person {person.id} has a member row but no household_id"
                )
            continue

        if state.live_household(person.household_id) is None:
            violations.append(
                f"person {person.id} references missing household {person.household_id}"
            )
        member = state.member_for_person(person.id)
        if member is None:
            violations.append(
                f"person {person.id} has household_id but no member row"
            )
        elif member.household_id != person.household_id:
            violations.append(
                f"person {person.id} member row names household {member.household_id}, "
                f"person names {person.household_id}"
            )

    for member in state.members.values():
        if member.person_id not in state.people:
            violations.append(f"member {member.id} references missing person {member.person_id}")
        if state.live_household(member.household_id) is None:
            violations.append(
                f"member {member.id} references missing household {member.household_id}"
            )

    for note in state.notes.values():
        if note.person_id not in state.people:
            violations.append(f"note {note.id} references missing person {note.person_id}")

    return violations
