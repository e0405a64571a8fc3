"""
Derived Views

Read-only computations over one committed organization state: the
dashboard numbers, a household's roster and tag usage.

DESIGN DECISION: Views are DETERMINISTIC functions of a snapshot.
They take the state (and the clock, where it matters) as arguments,
never read global state, and never cache. Every read recomputes from
the state committed last, so a view can never go stale relative to
the records it summarizes.
"""

from collections import Counter
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from roster.models.records import (
    Household,
    HouseholdMember,
    Note,
    Person,
    PersonStatus,
    Tag,
)
from roster.models.state import OrgState


# =============================================================================
# RESULT MODELS
# =============================================================================

class TagUsage(BaseModel):
    """A tag with the number of people carrying it."""
    tag: Tag
    count: int = Field(..., ge=0)


class DashboardStats(BaseModel):
    """Numbers shown on the organization dashboard."""

    total_people: int = 0
    active_people: int = 0
    inactive_people: int = 0
    visitor_people: int = 0
    added_this_month: int = 0
    household_count: int = 0
    top_tags: list[TagUsage] = Field(default_factory=list)
    recent_notes: list[Note] = Field(default_factory=list)


class HouseholdSummary(BaseModel):
    """A household with its member count, for the household list."""
    household: Household
    member_count: int = Field(..., ge=0)


class RosterEntry(BaseModel):
    """One household member joined with their person record."""
    member: HouseholdMember
    person: Person


# =============================================================================
# VIEWS
# =============================================================================

def _month_start(now: datetime) -> datetime:
    # Stored timestamps are UTC; a naive clock is read as UTC too
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


def _usage_counts(state: OrgState) -> Counter:
    counts: Counter = Counter()
    for person in state.people.values():
        counts.update(set(person.tag_ids))
    return counts


def tag_usage_count(state: OrgState, tag_id: UUID) -> int:
    """Number of people whose tag_ids contain `tag_id`."""
    return sum(1 for _ in state.people_with_tag(tag_id))


def tag_usage(state: OrgState, include_archived: bool = False) -> list[TagUsage]:
    """Every tag with its usage count, in creation order."""
    counts = _usage_counts(state)
    return [
        TagUsage(tag=tag, count=counts.get(tag.id, 0))
        for tag in state.tags.values()
        if include_archived or not tag.archived
    ]


def top_tags(state: OrgState, top_n: int = 5) -> list[TagUsage]:
    """
    Most used live tags.

    Ordered by count descending; ties go to the tag created earlier,
    then to the tag inserted earlier. Unused tags are still ranked, so
    a small organization sees its tags even before anyone is tagged.
    """
    if top_n <= 0:
        return []

    usage = list(enumerate(tag_usage(state)))
    usage.sort(key=lambda pair: (-pair[1].count, pair[1].tag.created_at, pair[0]))
    return [entry for _, entry in usage[:top_n]]


def household_member_counts(state: OrgState) -> dict[UUID, int]:
    """Member count per live household (zero for empty households)."""
    counts = Counter(member.household_id for member in state.members.values())
    return {
        household.id: counts.get(household.id, 0)
        for household in state.households.values()
        if not household.archived
    }


def household_summaries(state: OrgState) -> list[HouseholdSummary]:
    """Live households in creation order with their member counts."""
    counts = household_member_counts(state)
    return [
        HouseholdSummary(household=state.households[household_id], member_count=count)
        for household_id, count in counts.items()
    ]


def household_roster(state: OrgState, household_id: UUID) -> list[RosterEntry]:
    """
    Members of a household joined with their person records.

    Member rows whose person does not resolve are left out rather than
    reported; the integrity check keeps them from being committed.
    """
    roster = []
    for member in state.members_of(household_id):
        person = state.people.get(member.person_id)
        if person is None:
            continue
        roster.append(RosterEntry(member=member, person=person))
    return roster


def _newest_first(notes: list[Note], limit: int) -> list[Note]:
    indexed = list(enumerate(notes))
    indexed.sort(key=lambda pair: (pair[1].created_at, pair[0]), reverse=True)
    return [note for _, note in indexed[:max(limit, 0)]]


def recent_notes(state: OrgState, limit: int = 10) -> list[Note]:
    """Newest notes across the organization; later-created wins a timestamp tie."""
    return _newest_first(list(state.notes.values()), limit)


def dashboard_stats(
    state: OrgState,
    now: datetime,
    top_n: int = 5,
    recent_notes_limit: int = 10,
    notes: Optional[list[Note]] = None,
) -> DashboardStats:
    """
    Compute the dashboard for one organization.

    Args:
        state: Committed organization state
        now: Current time; a naive value is taken as UTC. "This
             month" is the calendar month of `now`
        top_n: How many tags to rank
        recent_notes_limit: How many notes to list
        notes: Notes to draw recent_notes from, when the caller has
               already narrowed them (e.g. by role). Defaults to all.
    """
    statuses = Counter(person.status for person in state.people.values())
    month_start = _month_start(now)

    if notes is None:
        notes = list(state.notes.values())

    return DashboardStats(
        total_people=len(state.people),
        active_people=statuses.get(PersonStatus.ACTIVE, 0),
        inactive_people=statuses.get(PersonStatus.INACTIVE, 0),
        visitor_people=statuses.get(PersonStatus.VISITOR, 0),
        added_this_month=sum(
            1 for person in state.people.values() if person.created_at >= month_start
        ),
        household_count=sum(1 for h in state.households.values() if not h.archived),
        top_tags=top_tags(state, top_n),
        recent_notes=_newest_first(notes, recent_notes_limit),
    )
