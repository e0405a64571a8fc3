"""
Roster Service

The boundary between callers (pages, API handlers, scripts) and the core.

DESIGN DECISION: The service enforces the boundaries:
- Every call names its organization and role explicitly (RequestContext)
- Every call returns an ApiResponse; nothing raises past this layer
- Roster errors come back with their message verbatim
- Anything else is logged and reported with a generic message
- Every record returned has passed through the access filter
- Every committed change and every rejection is audited

This is the "glue" that ties the record store, the integrity
coordinator, the derived views and the access filter together.
"""

from datetime import datetime
from functools import wraps
from typing import Any, Mapping, Optional, TypeVar
from uuid import UUID

import structlog
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from roster.access import apply_role, apply_role_all, filter_notes
from roster.audit import AuditLogger, setup_logging
from roster.config import Settings, get_settings
from roster.errors import ReferenceError, RosterError, ValidationError
from roster.integrity import IntegrityCoordinator
from roster.io import export_columns, export_people, map_import_row, to_csv
from roster.models.audit import AuditEventType
from roster.models.context import RequestContext
from roster.models.records import (
    HouseholdInput,
    HouseholdUpdate,
    NoteInput,
    PersonInput,
    PersonStatus,
    PersonUpdate,
    Relationship,
    TagInput,
    TagUpdate,
)
from roster.models.results import ApiResponse, ImportRowResult
from roster.models.schema import FieldDefinitionInput, FieldDefinitionUpdate, utcnow
from roster.schema import SchemaRegistry
from roster.services.storage import (
    InMemoryAuditStorage,
    InMemoryStateStorage,
    JsonFileStateStorage,
    StateStorageInterface,
)
from roster.store import RecordStore
from roster.views import (
    dashboard_stats,
    household_roster,
    household_summaries,
    tag_usage,
)


logger = structlog.get_logger(__name__)

M = TypeVar("M", bound=BaseModel)

UNEXPECTED_ERROR_MESSAGE = "Something went wrong on our side. Nothing was changed."


def _parse(model: type[M], payload: Any) -> M:
    """Validate a caller payload into an input model."""
    if isinstance(payload, model):
        return payload
    try:
        return model.model_validate(payload)
    except PydanticValidationError as e:
        raise ValidationError.from_pydantic(e)


def _relationship(value: Any) -> Relationship:
    try:
        return Relationship(value)
    except ValueError:
        allowed = ", ".join(r.value for r in Relationship)
        raise ValidationError(f"Unknown relationship '{value}'; expected one of: {allowed}")


def _operation(method):
    """
    Run a service method under the boundary rules.

    RosterError -> failed envelope with the error's message (audited
    as a rejection). Any other exception -> failed envelope with a
    generic message (logged with its traceback, audited as an error).
    """
    name = method.__name__

    @wraps(method)
    async def wrapper(self: "RosterService", ctx: RequestContext, *args, **kwargs):
        try:
            return await method(self, ctx, *args, **kwargs)
        except RosterError as e:
            await self._audit.log_rejected(
                operation=name,
                error=e,
                organization_id=ctx.organization_id,
                actor_user_id=ctx.user_id,
            )
            return ApiResponse.fail(e.message, getattr(e, "issues", None))
        except Exception as e:
            logger.exception(
                "operation_failed",
                operation=name,
                organization_id=str(ctx.organization_id),
                error_type=type(e).__name__,
            )
            await self._audit.log_error(
                operation=name,
                error=e,
                organization_id=ctx.organization_id,
            )
            return ApiResponse.fail(UNEXPECTED_ERROR_MESSAGE)

    return wrapper


class RosterService:
    """
    Per-entity CRUD, the integrity operations, views and import/export.

    Args:
        store: Record store to use. Defaults to an in-memory store.
        audit_logger: Defaults to a local-only audit logger.
        settings: Defaults to get_settings().
    """

    def __init__(
        self,
        store: Optional[RecordStore] = None,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[Settings] = None,
    ):
        self._store = store or RecordStore()
        self._coordinator = IntegrityCoordinator(self._store)
        self._audit = audit_logger or AuditLogger()
        self._settings = settings or get_settings()

    @property
    def store(self) -> RecordStore:
        return self._store

    @property
    def coordinator(self) -> IntegrityCoordinator:
        return self._coordinator

    async def _registry(self, ctx: RequestContext) -> SchemaRegistry:
        return SchemaRegistry(await self._store.snapshot(ctx.organization_id))

    async def _audit_change(
        self,
        ctx: RequestContext,
        event_type: AuditEventType,
        entity_type: str,
        entity_id: UUID,
        description: str,
        details: Optional[dict] = None,
    ) -> None:
        await self._audit.log_mutation(
            event_type=event_type,
            organization_id=ctx.organization_id,
            entity_type=entity_type,
            entity_id=entity_id,
            description=description,
            actor_user_id=ctx.user_id,
            details=details,
        )

    # =========================================================================
    # Profile fields
    # =========================================================================

    @_operation
    async def define_field(self, ctx: RequestContext, payload: Any) -> ApiResponse:
        data = _parse(FieldDefinitionInput, payload)
        async with self._store.transaction(ctx.organization_id) as state:
            definition = SchemaRegistry(state).define_field(data)

        await self._audit_change(
            ctx, AuditEventType.FIELD_DEFINED, "field", definition.id,
            f"Field '{definition.key}' defined",
            {"key": definition.key, "type": definition.type.value},
        )
        return ApiResponse.ok(definition, "Field created")

    @_operation
    async def update_field(self, ctx: RequestContext, key: str, payload: Any) -> ApiResponse:
        changes = _parse(FieldDefinitionUpdate, payload)
        async with self._store.transaction(ctx.organization_id) as state:
            definition = SchemaRegistry(state).update_field(key, changes)

        await self._audit_change(
            ctx, AuditEventType.FIELD_UPDATED, "field", definition.id,
            f"Field '{key}' updated",
            {"changed": sorted(changes.model_fields_set)},
        )
        return ApiResponse.ok(definition, "Field updated")

    @_operation
    async def archive_field(self, ctx: RequestContext, key: str) -> ApiResponse:
        async with self._store.transaction(ctx.organization_id) as state:
            definition = SchemaRegistry(state).archive_field(key)

        await self._audit_change(
            ctx, AuditEventType.FIELD_ARCHIVED, "field", definition.id,
            f"Field '{key}' archived",
        )
        return ApiResponse.ok(definition, "Field archived")

    @_operation
    async def reorder_fields(self, ctx: RequestContext, keys: list[str]) -> ApiResponse:
        async with self._store.transaction(ctx.organization_id) as state:
            ordered = SchemaRegistry(state).reorder(list(keys))

        await self._audit_change(
            ctx, AuditEventType.FIELDS_REORDERED, "field", ctx.organization_id,
            f"{len(ordered)} fields reordered",
            {"keys": list(keys)},
        )
        return ApiResponse.ok(ordered, "Fields reordered", count=len(ordered))

    @_operation
    async def get_field(self, ctx: RequestContext, key: str) -> ApiResponse:
        registry = await self._registry(ctx)
        definition = registry.get_field(key)
        if definition.is_staff_only and not ctx.role.can_view_staff_only:
            raise ReferenceError(f"Profile field not found: {key}")
        return ApiResponse.ok(definition)

    @_operation
    async def list_fields(
        self,
        ctx: RequestContext,
        include_archived: bool = False,
    ) -> ApiResponse:
        """Fields in display order; viewers only ever get what they may see."""
        registry = await self._registry(ctx)
        if ctx.role.can_view_staff_only:
            fields = registry.list_fields(include_archived)
        else:
            fields = registry.visible_fields_for(ctx.role)
        return ApiResponse.ok(fields, count=len(fields))

    # =========================================================================
    # People
    # =========================================================================

    @_operation
    async def create_person(self, ctx: RequestContext, payload: Any) -> ApiResponse:
        data = _parse(PersonInput, payload)
        person = await self._store.create_person(ctx.organization_id, data)

        await self._audit_change(
            ctx, AuditEventType.PERSON_CREATED, "person", person.id,
            f"{person.display_name} added",
        )
        registry = await self._registry(ctx)
        return ApiResponse.ok(apply_role(person, ctx.role, registry), "Person created")

    @_operation
    async def update_person(
        self,
        ctx: RequestContext,
        person_id: UUID,
        payload: Any,
    ) -> ApiResponse:
        data = _parse(PersonUpdate, payload)
        person = await self._store.update_person(ctx.organization_id, person_id, data)

        await self._audit_change(
            ctx, AuditEventType.PERSON_UPDATED, "person", person.id,
            f"{person.display_name} updated",
            {"changed": sorted(data.model_fields_set)},
        )
        registry = await self._registry(ctx)
        return ApiResponse.ok(apply_role(person, ctx.role, registry), "Person updated")

    @_operation
    async def deactivate_person(self, ctx: RequestContext, person_id: UUID) -> ApiResponse:
        person = await self._store.deactivate_person(ctx.organization_id, person_id)

        await self._audit_change(
            ctx, AuditEventType.PERSON_UPDATED, "person", person.id,
            f"{person.display_name} deactivated",
            {"changed": ["status"]},
        )
        registry = await self._registry(ctx)
        return ApiResponse.ok(apply_role(person, ctx.role, registry), "Person deactivated")

    @_operation
    async def delete_person(self, ctx: RequestContext, person_id: UUID) -> ApiResponse:
        registry = await self._registry(ctx)
        person, member, notes_deleted = await self._coordinator.delete_person(
            ctx.organization_id, person_id
        )

        await self._audit_change(
            ctx, AuditEventType.PERSON_DELETED, "person", person.id,
            f"{person.display_name} deleted",
            {
                "household_id": str(member.household_id) if member else None,
                "notes_deleted": notes_deleted,
            },
        )
        return ApiResponse.ok(apply_role(person, ctx.role, registry), "Person deleted")

    @_operation
    async def get_person(self, ctx: RequestContext, person_id: UUID) -> ApiResponse:
        person = await self._store.get_person(ctx.organization_id, person_id)
        registry = await self._registry(ctx)
        return ApiResponse.ok(apply_role(person, ctx.role, registry))

    @_operation
    async def list_people(
        self,
        ctx: RequestContext,
        search: Optional[str] = None,
        status: Optional[PersonStatus] = None,
    ) -> ApiResponse:
        people = await self._store.list_people(ctx.organization_id, search, status)
        registry = await self._registry(ctx)
        filtered = apply_role_all(people, ctx.role, registry)
        return ApiResponse.ok(filtered, count=len(filtered))

    # =========================================================================
    # Tags
    # =========================================================================

    @_operation
    async def create_tag(self, ctx: RequestContext, payload: Any) -> ApiResponse:
        data = _parse(TagInput, payload)
        tag = await self._store.create_tag(ctx.organization_id, data)

        await self._audit_change(
            ctx, AuditEventType.TAG_CREATED, "tag", tag.id, f"Tag '{tag.name}' created",
        )
        return ApiResponse.ok(tag, "Tag created")

    @_operation
    async def update_tag(self, ctx: RequestContext, tag_id: UUID, payload: Any) -> ApiResponse:
        data = _parse(TagUpdate, payload)
        tag = await self._store.update_tag(ctx.organization_id, tag_id, data)

        await self._audit_change(
            ctx, AuditEventType.TAG_UPDATED, "tag", tag.id, f"Tag '{tag.name}' updated",
        )
        return ApiResponse.ok(tag, "Tag updated")

    @_operation
    async def archive_tag(self, ctx: RequestContext, tag_id: UUID) -> ApiResponse:
        tag, untagged = await self._coordinator.archive_tag(ctx.organization_id, tag_id)

        await self._audit_change(
            ctx, AuditEventType.TAG_ARCHIVED, "tag", tag.id,
            f"Tag '{tag.name}' archived",
            {"people_untagged": untagged},
        )
        return ApiResponse.ok(tag, f"Tag archived and removed from {untagged} people")

    @_operation
    async def get_tag(self, ctx: RequestContext, tag_id: UUID) -> ApiResponse:
        return ApiResponse.ok(await self._store.get_tag(ctx.organization_id, tag_id))

    @_operation
    async def list_tags(self, ctx: RequestContext, include_archived: bool = False) -> ApiResponse:
        """Tags with how many people carry each."""
        state = await self._store.snapshot(ctx.organization_id)
        usage = tag_usage(state, include_archived)
        return ApiResponse.ok(usage, count=len(usage))

    # =========================================================================
    # Households
    # =========================================================================

    @_operation
    async def create_household(self, ctx: RequestContext, payload: Any) -> ApiResponse:
        data = _parse(HouseholdInput, payload)
        household = await self._store.create_household(ctx.organization_id, data)

        await self._audit_change(
            ctx, AuditEventType.HOUSEHOLD_CREATED, "household", household.id,
            f"Household '{household.name}' created",
        )
        return ApiResponse.ok(household, "Household created")

    @_operation
    async def update_household(
        self,
        ctx: RequestContext,
        household_id: UUID,
        payload: Any,
    ) -> ApiResponse:
        data = _parse(HouseholdUpdate, payload)
        household = await self._store.update_household(ctx.organization_id, household_id, data)

        await self._audit_change(
            ctx, AuditEventType.HOUSEHOLD_UPDATED, "household", household.id,
            f"Household '{household.name}' updated",
        )
        return ApiResponse.ok(household, "Household updated")

    @_operation
    async def archive_household(
        self,
        ctx: RequestContext,
        household_id: UUID,
        cascade: bool = False,
    ) -> ApiResponse:
        household, removed = await self._coordinator.archive_household(
            ctx.organization_id, household_id, cascade=cascade
        )

        await self._audit_change(
            ctx, AuditEventType.HOUSEHOLD_ARCHIVED, "household", household.id,
            f"Household '{household.name}' archived",
            {"members_removed": len(removed), "cascade": cascade},
        )
        return ApiResponse.ok(household, "Household archived")

    @_operation
    async def get_household(self, ctx: RequestContext, household_id: UUID) -> ApiResponse:
        household = await self._store.get_household(ctx.organization_id, household_id)
        return ApiResponse.ok(household)

    @_operation
    async def list_households(self, ctx: RequestContext) -> ApiResponse:
        """Live households with their member counts."""
        state = await self._store.snapshot(ctx.organization_id)
        summaries = household_summaries(state)
        return ApiResponse.ok(summaries, count=len(summaries))

    @_operation
    async def household_roster(self, ctx: RequestContext, household_id: UUID) -> ApiResponse:
        state = await self._store.snapshot(ctx.organization_id)
        registry = SchemaRegistry(state)
        roster = household_roster(state, household_id)
        for entry in roster:
            entry.person = apply_role(entry.person, ctx.role, registry)
        return ApiResponse.ok(roster, count=len(roster))

    # =========================================================================
    # Household membership
    # =========================================================================

    @_operation
    async def add_household_member(
        self,
        ctx: RequestContext,
        household_id: UUID,
        person_id: UUID,
        relationship: Relationship = Relationship.OTHER,
    ) -> ApiResponse:
        member = await self._coordinator.add_household_member(
            ctx.organization_id, household_id, person_id, _relationship(relationship)
        )

        await self._audit_change(
            ctx, AuditEventType.MEMBER_ADDED, "household_member", member.id,
            "Member added to household",
            {
                "household_id": str(household_id),
                "person_id": str(person_id),
                "relationship": member.relationship.value,
            },
        )
        return ApiResponse.ok(member, "Member added")

    @_operation
    async def update_member_relationship(
        self,
        ctx: RequestContext,
        member_id: UUID,
        relationship: Relationship,
    ) -> ApiResponse:
        member = await self._coordinator.update_member_relationship(
            ctx.organization_id, member_id, _relationship(relationship)
        )

        await self._audit_change(
            ctx, AuditEventType.MEMBER_UPDATED, "household_member", member.id,
            "Member relationship changed",
            {"relationship": member.relationship.value},
        )
        return ApiResponse.ok(member, "Member updated")

    @_operation
    async def remove_household_member(self, ctx: RequestContext, member_id: UUID) -> ApiResponse:
        member = await self._coordinator.remove_household_member(ctx.organization_id, member_id)

        await self._audit_change(
            ctx, AuditEventType.MEMBER_REMOVED, "household_member", member.id,
            "Member removed from household",
            {"household_id": str(member.household_id), "person_id": str(member.person_id)},
        )
        return ApiResponse.ok(member, "Member removed")

    @_operation
    async def remove_person_from_household(
        self,
        ctx: RequestContext,
        person_id: UUID,
    ) -> ApiResponse:
        member = await self._coordinator.remove_person_from_household(
            ctx.organization_id, person_id
        )

        await self._audit_change(
            ctx, AuditEventType.MEMBER_REMOVED, "household_member", member.id,
            "Member removed from household",
            {"household_id": str(member.household_id), "person_id": str(member.person_id)},
        )
        return ApiResponse.ok(member, "Member removed")

    # =========================================================================
    # Notes
    # =========================================================================

    @_operation
    async def add_note(self, ctx: RequestContext, payload: Any) -> ApiResponse:
        data = _parse(NoteInput, payload)
        note = await self._store.create_note(ctx.organization_id, data, ctx.user_id)

        await self._audit_change(
            ctx, AuditEventType.NOTE_ADDED, "note", note.id,
            "Note added",
            {"person_id": str(note.person_id), "visibility": note.visibility.value},
        )
        return ApiResponse.ok(note, "Note added")

    @_operation
    async def list_notes(self, ctx: RequestContext, person_id: UUID) -> ApiResponse:
        notes = filter_notes(
            await self._store.list_notes(ctx.organization_id, person_id),
            ctx.role,
        )
        return ApiResponse.ok(notes, count=len(notes))

    # =========================================================================
    # Views
    # =========================================================================

    @_operation
    async def dashboard(self, ctx: RequestContext, now: Optional[datetime] = None) -> ApiResponse:
        state = await self._store.snapshot(ctx.organization_id)
        app = self._settings.app
        stats = dashboard_stats(
            state,
            now or utcnow(),
            top_n=app.top_tags_limit,
            recent_notes_limit=app.recent_notes_limit,
            notes=filter_notes(state.notes.values(), ctx.role),
        )
        return ApiResponse.ok(stats)

    # =========================================================================
    # Import / export
    # =========================================================================

    @_operation
    async def import_people(
        self,
        ctx: RequestContext,
        rows: list[Mapping[str, Optional[str]]],
        column_mapping: Mapping[str, str],
    ) -> ApiResponse:
        """
        Create one person per row.

        A bad column mapping fails the whole import before any row is
        written. After that, every row is its own create: a failing row
        is reported in its result and the rest still go in.
        """
        registry = await self._registry(ctx)
        map_import_row({}, column_mapping, registry)

        results = []
        for row_number, row in enumerate(rows, start=1):
            try:
                registry = await self._registry(ctx)
                data = _parse(PersonInput, map_import_row(row, column_mapping, registry))
                person = await self._store.create_person(ctx.organization_id, data)
            except RosterError as e:
                results.append(ImportRowResult(
                    row_number=row_number,
                    success=False,
                    message=e.message,
                    issues=getattr(e, "issues", []),
                ))
                continue
            results.append(ImportRowResult(
                row_number=row_number,
                success=True,
                person_id=person.id,
                message=f"{person.display_name} imported",
            ))

        imported = sum(1 for r in results if r.success)
        await self._audit.log_mutation(
            event_type=AuditEventType.PERSON_CREATED,
            organization_id=ctx.organization_id,
            entity_type="import",
            entity_id=ctx.organization_id,
            description=f"Imported {imported} of {len(results)} rows",
            actor_user_id=ctx.user_id,
            details={"imported": imported, "failed": len(results) - imported},
        )
        return ApiResponse.ok(
            results,
            f"Imported {imported} of {len(results)} rows",
            count=imported,
        )

    @_operation
    async def export_people(
        self,
        ctx: RequestContext,
        columns: Optional[list[str]] = None,
    ) -> ApiResponse:
        """People as CSV text, with only the columns the role may see."""
        state = await self._store.snapshot(ctx.organization_id)
        registry = SchemaRegistry(state)
        rows = export_people(state, ctx.role, registry, columns)
        header = columns or export_columns(registry, ctx.role)
        return ApiResponse.ok(to_csv(rows, header), count=len(rows))


def create_roster_service(settings: Optional[Settings] = None) -> RosterService:
    """
    Factory function to create a service wired from settings.

    The "memory" backend keeps state for the life of the process; the
    "json" backend keeps one file per organization under data_dir.
    """
    settings = settings or get_settings()
    setup_logging(settings.app.log_level)

    storage_settings = settings.storage
    if storage_settings.backend == "json":
        storage: StateStorageInterface = JsonFileStateStorage(
            data_dir=storage_settings.data_dir,
            retry_attempts=storage_settings.retry_attempts,
        )
    else:
        storage = InMemoryStateStorage()

    return RosterService(
        store=RecordStore(storage),
        audit_logger=AuditLogger(InMemoryAuditStorage()),
        settings=settings,
    )
