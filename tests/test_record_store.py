"""Tests for the record store and its transactions."""

import asyncio
from uuid import uuid4

import pytest

from roster.errors import IntegrityViolationError, ReferenceError, ValidationError
from roster.models.records import (
    HouseholdInput,
    HouseholdUpdate,
    NoteInput,
    NoteVisibility,
    PersonInput,
    PersonStatus,
    PersonUpdate,
    TagInput,
    TagUpdate,
)
from roster.models.schema import FieldDefinitionInput
from roster.schema import SchemaRegistry
from roster.services.storage import StorageError


async def define(store, org_id, **field):
    async with store.transaction(org_id) as state:
        return SchemaRegistry(state).define_field(FieldDefinitionInput(**field))


async def add_person(store, org_id, first="Ada", last="Lovelace", **kwargs):
    return await store.create_person(
        org_id, PersonInput(first_name=first, last_name=last, **kwargs)
    )


class TestTransactions:
    """Tests for commit and rollback."""

    @pytest.mark.asyncio
    async def test_commit_bumps_version_and_saves(self, store, state_storage, org_id):
        """Test a successful transaction is published and persisted."""
        before = await store.snapshot(org_id)
        await add_person(store, org_id)
        after = await store.snapshot(org_id)

        assert after.version == before.version + 1
        assert len(after.people) == 1
        assert state_storage.save_count == 1

    @pytest.mark.asyncio
    async def test_exception_rolls_back(self, store, org_id):
        """Test nothing done inside a failing transaction is kept."""
        with pytest.raises(RuntimeError):
            async with store.transaction(org_id) as state:
                SchemaRegistry(state).define_field(
                    FieldDefinitionInput(key="nickname", label="Nickname", type="text")
                )
                raise RuntimeError("boom")

        snapshot = await store.snapshot(org_id)
        assert snapshot.field_defs == {}
        assert snapshot.version == 0

    @pytest.mark.asyncio
    async def test_integrity_violation_aborts_commit(self, store, org_id):
        """Test a working copy with a dangling reference is never published."""
        person = await add_person(store, org_id)

        with pytest.raises(IntegrityViolationError) as exc_info:
            async with store.transaction(org_id) as state:
                state.people[person.id].tag_ids.append(uuid4())

        assert "missing tag" in exc_info.value.violations[0]
        assert (await store.get_person(org_id, person.id)).tag_ids == []

    @pytest.mark.asyncio
    async def test_snapshot_not_mutated_by_writer(self, store, org_id):
        """Test readers holding a snapshot never see later writes."""
        person = await add_person(store, org_id)
        snapshot = await store.snapshot(org_id)

        await store.update_person(org_id, person.id, PersonUpdate(first_name="Augusta"))

        assert snapshot.people[person.id].first_name == "Ada"
        assert (await store.get_person(org_id, person.id)).first_name == "Augusta"

    @pytest.mark.asyncio
    async def test_failed_save_leaves_state_unchanged(self, store, state_storage, org_id):
        """Test a storage failure aborts the commit."""
        await add_person(store, org_id)

        async def broken_save(state):
            raise StorageError("disk full")

        state_storage.save_state = broken_save
        with pytest.raises(StorageError):
            await add_person(store, org_id, first="Grace", last="Hopper")

        assert len((await store.snapshot(org_id)).people) == 1

    @pytest.mark.asyncio
    async def test_concurrent_writers_serialized(self, store, org_id):
        """Test concurrent creates all land, one commit each."""
        await asyncio.gather(*[
            add_person(store, org_id, first=f"P{i}", last="Test") for i in range(20)
        ])
        snapshot = await store.snapshot(org_id)
        assert len(snapshot.people) == 20
        assert snapshot.version == 20

    @pytest.mark.asyncio
    async def test_reads_of_unknown_organizations_not_cached(self, store, org_id):
        """Test reading organizations with no records leaves nothing behind."""
        for _ in range(3):
            stranger = uuid4()
            assert (await store.snapshot(stranger)).version == 0
            with pytest.raises(ReferenceError):
                await store.get_person(stranger, uuid4())

        assert store._states == {}
        assert store._locks == {}

        await add_person(store, org_id)
        assert list(store._states) == [org_id]
        assert list(store._locks) == [org_id]

    @pytest.mark.asyncio
    async def test_organizations_isolated(self, store, org_id):
        """Test one organization's ids do not resolve in another."""
        person = await add_person(store, org_id)
        with pytest.raises(ReferenceError):
            await store.get_person(uuid4(), person.id)


class TestPeople:
    """Tests for person create, update and listing."""

    @pytest.mark.asyncio
    async def test_shirt_size_scenario(self, store, org_id, shirt_size_field):
        """Test a select value must be one of the field's options."""
        await define(store, org_id, **shirt_size_field)

        person = await add_person(store, org_id, fields={"shirt_size": "M"})
        assert person.fields["shirt_size"].value == "M"

        with pytest.raises(ValidationError, match="not an option"):
            await add_person(store, org_id, first="Grace", fields={"shirt_size": "XL"})
        assert len((await store.snapshot(org_id)).people) == 1

    @pytest.mark.asyncio
    async def test_archived_field_not_writable(self, store, org_id):
        """Test values cannot be written to archived fields but old ones stay."""
        await define(store, org_id, key="nickname", label="Nickname", type="text")
        person = await add_person(store, org_id, fields={"nickname": "Ace"})

        async with store.transaction(org_id) as state:
            SchemaRegistry(state).archive_field("nickname")

        with pytest.raises(ValidationError, match="archived"):
            await store.update_person(
                org_id, person.id, PersonUpdate(fields={"nickname": "Bee"})
            )
        stored = await store.get_person(org_id, person.id)
        assert stored.fields["nickname"].value == "Ace"

    @pytest.mark.asyncio
    async def test_required_field_enforced_on_create(self, store, org_id):
        """Test a required field must be supplied on create."""
        await define(store, org_id, key="nickname", label="Nickname", type="text", required=True)

        with pytest.raises(ValidationError, match="Nickname is required"):
            await add_person(store, org_id)
        person = await add_person(store, org_id, fields={"nickname": "Ace"})
        assert person.fields["nickname"].value == "Ace"

    @pytest.mark.asyncio
    async def test_required_field_ignored_when_fields_untouched(self, store, org_id):
        """Test updates that do not touch fields are not blocked by new required fields."""
        person = await add_person(store, org_id)
        await define(store, org_id, key="nickname", label="Nickname", type="text", required=True)

        updated = await store.update_person(org_id, person.id, PersonUpdate(phone="555-0100"))
        assert updated.phone == "555-0100"

    @pytest.mark.asyncio
    async def test_update_is_partial_merge(self, store, org_id):
        """Test unset attributes and untouched field keys keep their values."""
        await define(store, org_id, key="nickname", label="Nickname", type="text")
        await define(store, org_id, key="age", label="Age", type="number")
        person = await add_person(
            store, org_id, email="ada@example.org", fields={"nickname": "Ace", "age": 36}
        )

        updated = await store.update_person(
            org_id, person.id, PersonUpdate(last_name="King", fields={"age": None})
        )
        assert updated.last_name == "King"
        assert updated.email == "ada@example.org"
        assert updated.fields["nickname"].value == "Ace"
        assert "age" not in updated.fields

    @pytest.mark.asyncio
    async def test_core_names_cannot_be_cleared(self, store, org_id):
        """Test first name, last name and status cannot be set to None."""
        person = await add_person(store, org_id)
        with pytest.raises(ValidationError, match="first_name cannot be cleared"):
            await store.update_person(org_id, person.id, PersonUpdate(first_name=None))

    @pytest.mark.asyncio
    async def test_tag_ids_must_resolve(self, store, org_id):
        """Test unknown or archived tag ids are rejected."""
        with pytest.raises(ReferenceError, match="Tag not found"):
            await add_person(store, org_id, tag_ids=[uuid4()])

        tag = await store.create_tag(org_id, TagInput(name="Volunteer"))
        async with store.transaction(org_id) as state:
            state.tags[tag.id].archived = True
        with pytest.raises(ReferenceError):
            await add_person(store, org_id, tag_ids=[tag.id])

    @pytest.mark.asyncio
    async def test_duplicate_tag_ids_rejected(self, store, org_id):
        """Test tag_ids has set semantics."""
        tag = await store.create_tag(org_id, TagInput(name="Volunteer"))
        with pytest.raises(ValidationError, match="more than once"):
            await add_person(store, org_id, tag_ids=[tag.id, tag.id])

    @pytest.mark.asyncio
    async def test_unknown_person(self, store, org_id):
        """Test get and update of a missing person."""
        with pytest.raises(ReferenceError):
            await store.get_person(org_id, uuid4())
        with pytest.raises(ReferenceError):
            await store.update_person(org_id, uuid4(), PersonUpdate(first_name="X"))

    @pytest.mark.asyncio
    async def test_deactivate_person(self, store, org_id):
        """Test deactivation only changes the status."""
        person = await add_person(store, org_id)
        deactivated = await store.deactivate_person(org_id, person.id)
        assert deactivated.status == PersonStatus.INACTIVE
        assert deactivated.first_name == "Ada"

    @pytest.mark.asyncio
    async def test_list_people_search_and_status(self, store, org_id):
        """Test search matches names, email and phone; status filters."""
        await add_person(store, org_id, email="ada@example.org")
        await add_person(store, org_id, first="Grace", last="Hopper", phone="555-0199")
        await add_person(store, org_id, first="Alan", last="Turing", status="visitor")

        assert [p.first_name for p in await store.list_people(org_id, search="LOVE")] == ["Ada"]
        assert [p.first_name for p in await store.list_people(org_id, search="example.org")] == ["Ada"]
        assert [p.first_name for p in await store.list_people(org_id, search="0199")] == ["Grace"]
        assert [
            p.first_name for p in await store.list_people(org_id, status=PersonStatus.VISITOR)
        ] == ["Alan"]
        assert len(await store.list_people(org_id)) == 3


class TestTagsAndHouseholds:
    """Tests for tag and household create and rename."""

    @pytest.mark.asyncio
    async def test_rename_tag(self, store, org_id):
        """Test a tag can be renamed and recolored."""
        tag = await store.create_tag(org_id, TagInput(name="Volunteer", color="green"))
        updated = await store.update_tag(org_id, tag.id, TagUpdate(name="Volunteers"))
        assert updated.name == "Volunteers"
        assert updated.color == "green"

    @pytest.mark.asyncio
    async def test_archived_tag_not_updatable(self, store, org_id):
        """Test archived tags cannot be renamed."""
        tag = await store.create_tag(org_id, TagInput(name="Volunteer"))
        async with store.transaction(org_id) as state:
            state.tags[tag.id].archived = True

        with pytest.raises(ReferenceError):
            await store.update_tag(org_id, tag.id, TagUpdate(name="Again"))
        assert await store.list_tags(org_id) == []
        assert len(await store.list_tags(org_id, include_archived=True)) == 1

    @pytest.mark.asyncio
    async def test_rename_household(self, store, org_id):
        """Test a household can be renamed."""
        household = await store.create_household(org_id, HouseholdInput(name="Smith"))
        updated = await store.update_household(
            org_id, household.id, HouseholdUpdate(name="Smith-Jones")
        )
        assert updated.name == "Smith-Jones"
        assert [h.name for h in await store.list_households(org_id)] == ["Smith-Jones"]


class TestNotes:
    """Tests for notes."""

    @pytest.mark.asyncio
    async def test_notes_newest_first(self, store, org_id):
        """Test notes list newest first."""
        person = await add_person(store, org_id)
        for body in ("first", "second", "third"):
            await store.create_note(org_id, NoteInput(person_id=person.id, body=body))

        notes = await store.list_notes(org_id, person.id)
        assert [n.body for n in notes] == ["third", "second", "first"]
        assert notes[0].visibility == NoteVisibility.STAFF_ONLY

    @pytest.mark.asyncio
    async def test_note_requires_person(self, store, org_id):
        """Test a note cannot point at a missing person."""
        with pytest.raises(ReferenceError):
            await store.create_note(org_id, NoteInput(person_id=uuid4(), body="Hello"))

    @pytest.mark.asyncio
    async def test_recent_notes_across_people(self, store, org_id):
        """Test recent_notes spans every person and honors the limit."""
        ada = await add_person(store, org_id)
        grace = await add_person(store, org_id, first="Grace", last="Hopper")
        await store.create_note(org_id, NoteInput(person_id=ada.id, body="a"))
        await store.create_note(org_id, NoteInput(person_id=grace.id, body="b"))
        await store.create_note(org_id, NoteInput(person_id=ada.id, body="c"))

        assert [n.body for n in await store.recent_notes(org_id, limit=2)] == ["c", "b"]
