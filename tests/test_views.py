"""Tests for derived views."""

from datetime import datetime, timedelta, timezone
from uuid import uuid4

from roster.models.records import (
    Household,
    HouseholdMember,
    Note,
    Person,
    PersonStatus,
    Tag,
)
from roster.views import (
    dashboard_stats,
    household_member_counts,
    household_roster,
    household_summaries,
    tag_usage,
    tag_usage_count,
    top_tags,
)


BASE_TIME = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)


def add_tag(state, name, minutes=0, archived=False):
    tag = Tag(
        organization_id=state.organization_id,
        name=name,
        archived=archived,
        created_at=BASE_TIME + timedelta(minutes=minutes),
    )
    state.tags[tag.id] = tag
    return tag


def add_person(state, name="Ann", tags=(), status=PersonStatus.ACTIVE, created_at=BASE_TIME):
    person = Person(
        organization_id=state.organization_id,
        first_name=name,
        last_name="Test",
        status=status,
        tag_ids=[t.id for t in tags],
        created_at=created_at,
    )
    state.people[person.id] = person
    return person


def add_household(state, name, *people, archived=False):
    household = Household(organization_id=state.organization_id, name=name, archived=archived)
    state.households[household.id] = household
    for person in people:
        member = HouseholdMember(
            organization_id=state.organization_id,
            household_id=household.id,
            person_id=person.id,
        )
        state.members[member.id] = member
        person.household_id = household.id
    return household


def names(usages):
    return [u.tag.name for u in usages]


class TestTopTags:
    """Tests for tag ranking."""

    def test_counts_descending(self, state):
        """Test counts [5,5,3,2,0] rank A,B,C,D,E with A created before B."""
        a, b, c, d, e = (add_tag(state, n, minutes=i) for i, n in enumerate("ABCDE"))
        for count, tag in ((5, a), (5, b), (3, c), (2, d)):
            for _ in range(count):
                add_person(state, tags=[tag])

        ranked = top_tags(state, 5)
        assert names(ranked) == ["A", "B", "C", "D", "E"]
        assert [u.count for u in ranked] == [5, 5, 3, 2, 0]

    def test_ties_go_to_earlier_created(self, state):
        """Test an earlier-created tag wins a tie even if inserted later."""
        late = add_tag(state, "Late", minutes=10)
        early = add_tag(state, "Early", minutes=0)
        add_person(state, tags=[late, early])

        assert names(top_tags(state, 2)) == ["Early", "Late"]

    def test_equal_timestamps_keep_insertion_order(self, state):
        """Test identical created_at falls back to creation order."""
        first = add_tag(state, "First")
        second = add_tag(state, "Second")
        add_person(state, tags=[second, first])

        assert names(top_tags(state, 2)) == ["First", "Second"]

    def test_archived_tags_excluded(self, state):
        """Test archived tags never rank."""
        archived = add_tag(state, "Old", archived=True)
        live = add_tag(state, "New")
        add_person(state, tags=[live])

        assert names(top_tags(state, 5)) == ["New"]
        assert archived.id not in {u.tag.id for u in tag_usage(state)}
        assert len(tag_usage(state, include_archived=True)) == 2

    def test_limit(self, state):
        """Test only top_n tags come back."""
        for i in range(8):
            add_tag(state, f"T{i}", minutes=i)
        assert names(top_tags(state, 5)) == ["T0", "T1", "T2", "T3", "T4"]
        assert top_tags(state, 0) == []


class TestTagUsage:
    """Tests for tag usage counts."""

    def test_tag_usage_count(self, state):
        """Test counting people carrying a tag."""
        tag = add_tag(state, "Volunteer")
        add_person(state, tags=[tag])
        add_person(state, tags=[tag])
        add_person(state)

        assert tag_usage_count(state, tag.id) == 2
        assert tag_usage_count(state, uuid4()) == 0


class TestDashboardStats:
    """Tests for the dashboard."""

    def test_status_counts_and_month(self, state):
        """Test status counts and people added since the first of the month."""
        add_person(state, "Ann", created_at=BASE_TIME)
        add_person(state, "Ben", status=PersonStatus.INACTIVE, created_at=BASE_TIME)
        add_person(
            state, "Cat",
            status=PersonStatus.VISITOR,
            created_at=datetime(2024, 5, 31, 23, 59, tzinfo=timezone.utc),
        )

        stats = dashboard_stats(state, now=BASE_TIME)

        assert stats.total_people == 3
        assert stats.active_people == 1
        assert stats.inactive_people == 1
        assert stats.visitor_people == 1
        assert stats.added_this_month == 2

    def test_household_count_and_recent_notes(self, state):
        """Test live households are counted and notes come newest first."""
        ann = add_person(state, "Ann")
        add_household(state, "Live", ann)
        add_household(state, "Gone", archived=True)
        for i in range(4):
            note = Note(
                organization_id=state.organization_id,
                person_id=ann.id,
                body=f"note {i}",
                created_at=BASE_TIME + timedelta(minutes=i),
            )
            state.notes[note.id] = note

        stats = dashboard_stats(state, now=BASE_TIME, recent_notes_limit=2)

        assert stats.household_count == 1
        assert [n.body for n in stats.recent_notes] == ["note 3", "note 2"]

    def test_empty_state(self, state):
        """Test an empty organization."""
        stats = dashboard_stats(state, now=BASE_TIME)
        assert stats.total_people == 0
        assert stats.top_tags == []
        assert stats.recent_notes == []

    def test_naive_now_read_as_utc(self, state):
        """Test a naive clock counts the same month as the equivalent UTC clock."""
        add_person(state, "Ann", created_at=BASE_TIME)
        add_person(
            state, "Cat",
            created_at=datetime(2024, 5, 31, 23, 59, tzinfo=timezone.utc),
        )

        stats = dashboard_stats(state, now=BASE_TIME.replace(tzinfo=None))

        assert stats.added_this_month == 1


class TestHouseholdViews:
    """Tests for household rosters and counts."""

    def test_roster_joins_people(self, state):
        """Test each member comes back with their person."""
        ann, ben = add_person(state, "Ann"), add_person(state, "Ben")
        household = add_household(state, "Smith", ann, ben)

        roster = household_roster(state, household.id)
        assert [entry.person.first_name for entry in roster] == ["Ann", "Ben"]

    def test_roster_omits_unresolved_people(self, state):
        """Test a member row whose person is gone is left out."""
        ann = add_person(state, "Ann")
        household = add_household(state, "Smith", ann)
        ghost = HouseholdMember(
            organization_id=state.organization_id,
            household_id=household.id,
            person_id=uuid4(),
        )
        state.members[ghost.id] = ghost

        assert len(household_roster(state, household.id)) == 1

    def test_member_counts(self, state):
        """Test counts per live household, including empty ones."""
        ann, ben = add_person(state, "Ann"), add_person(state, "Ben")
        full = add_household(state, "Full", ann, ben)
        empty = add_household(state, "Empty")
        add_household(state, "Archived", archived=True)

        assert household_member_counts(state) == {full.id: 2, empty.id: 0}
        assert [(s.household.name, s.member_count) for s in household_summaries(state)] == [
            ("Full", 2),
            ("Empty", 0),
        ]
