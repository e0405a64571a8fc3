"""
Schema Registry

Holds an organization's custom profile field definitions.

DESIGN DECISION: This is the single authority on which fields exist,
in what order, and who may see them. Forms, the access filter and
exports all ask `visible_fields_for(role)` rather than deciding on
their own.

Keys are permanent. Archiving a field hides it from forms but keeps
both the definition and every value stored under its key, and the key
can never be defined again, so old values are never reinterpreted
under a new type.
"""

from pydantic import ValidationError as PydanticValidationError

from roster.errors import ReferenceError, ValidationError
from roster.models.context import Role
from roster.models.results import ValidationIssue
from roster.models.schema import (
    FieldDefinitionInput,
    FieldDefinitionUpdate,
    FieldVisibility,
    ProfileFieldDef,
    utcnow,
)
from roster.models.state import OrgState
from roster.validation.validator import FieldValueValidator


class SchemaRegistry:
    """
    Field definitions of one organization state.

    Works directly on the state it is given: pass a transaction's working
    copy to mutate, or a committed snapshot to read.
    """

    def __init__(self, state: OrgState):
        self._state = state

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def get_field(self, key: str) -> ProfileFieldDef:
        """
        Look up a definition by key, archived or not.

        Raises:
            ReferenceError: If no field was ever defined with this key
        """
        definition = self._state.field_defs.get(key)
        if definition is None:
            raise ReferenceError(f"Profile field not found: {key}")
        return definition

    def active_fields(self) -> list[ProfileFieldDef]:
        """Non-archived definitions in display order."""
        return sorted(
            (d for d in self._state.field_defs.values() if not d.archived),
            key=lambda d: d.order_index,
        )

    def list_fields(self, include_archived: bool = False) -> list[ProfileFieldDef]:
        """Definitions in display order; archived ones (if asked for) last."""
        fields = self.active_fields()
        if include_archived:
            fields.extend(d for d in self._state.field_defs.values() if d.archived)
        return fields

    def visible_fields_for(self, role: Role) -> list[ProfileFieldDef]:
        """
        Fields a role may see, in display order.

        Public fields are visible to everyone; staff-only fields to every
        role except viewer. Archived fields are never visible.
        """
        return [
            d for d in self.active_fields()
            if d.visibility == FieldVisibility.PUBLIC or role != Role.VIEWER
        ]

    def validator(self) -> FieldValueValidator:
        return FieldValueValidator(self._state.field_defs)

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def _renumber(self, ordered: list[ProfileFieldDef]) -> None:
        now = utcnow()
        for index, definition in enumerate(ordered):
            if definition.order_index != index:
                definition.order_index = index
                definition.updated_at = now

    def define_field(self, definition: FieldDefinitionInput) -> ProfileFieldDef:
        """
        Define a new field.

        The field goes to the end of the display order unless
        `order_index` is given, in which case it is inserted there and
        the fields after it move down one place.

        Raises:
            ValidationError: If the key is taken, now or in the past
        """
        existing = self._state.field_defs.get(definition.key)
        if existing is not None:
            if existing.archived:
                message = (
                    f"Field key '{definition.key}' belonged to an archived field "
                    "and cannot be reused"
                )
            else:
                message = f"Field key '{definition.key}' already exists"
            raise ValidationError(message, [ValidationIssue(
                field="key",
                issue_type="duplicate_key",
                message=message,
            )])

        active = self.active_fields()
        position = len(active)
        if definition.order_index is not None:
            position = min(definition.order_index, len(active))

        created = ProfileFieldDef(
            organization_id=self._state.organization_id,
            key=definition.key,
            label=definition.label,
            type=definition.type,
            options=definition.options,
            required=definition.required,
            visibility=definition.visibility,
            order_index=position,
        )
        self._state.field_defs[created.key] = created

        active.insert(position, created)
        self._renumber(active)
        return created

    def update_field(self, key: str, changes: FieldDefinitionUpdate) -> ProfileFieldDef:
        """
        Apply a partial update to a field definition.

        Raises:
            ReferenceError: If the field does not exist or is archived
            ValidationError: If the result is not a valid definition
        """
        current = self.get_field(key)
        if current.archived:
            raise ReferenceError(f"Profile field '{key}' is archived")

        update = changes.model_dump(exclude_unset=True)
        if not update:
            return current

        data = current.model_dump()
        data.update(update)
        data["updated_at"] = utcnow()
        try:
            updated = ProfileFieldDef.model_validate(data)
        except PydanticValidationError as e:
            raise ValidationError.from_pydantic(e)

        self._state.field_defs[key] = updated
        return updated

    def archive_field(self, key: str) -> ProfileFieldDef:
        """
        Archive a field. Stored values under its key are kept.

        Idempotent: archiving an archived field changes nothing.

        Raises:
            ReferenceError: If the field does not exist
        """
        definition = self.get_field(key)
        if definition.archived:
            return definition

        definition.archived = True
        definition.updated_at = utcnow()
        self._renumber(self.active_fields())
        return definition

    def reorder(self, keys: list[str]) -> list[ProfileFieldDef]:
        """
        Put the non-archived fields in the given order (0..n-1).

        Raises:
            ValidationError: Unless `keys` names every non-archived field
                             exactly once and nothing else
        """
        active = {d.key: d for d in self.active_fields()}
        issues = []

        duplicates = sorted({k for k in keys if keys.count(k) > 1})
        if duplicates:
            issues.append(ValidationIssue(
                field="keys",
                issue_type="duplicate_key",
                message=f"Keys listed more than once: {', '.join(duplicates)}",
            ))
        unknown = sorted(set(keys) - set(active))
        if unknown:
            issues.append(ValidationIssue(
                field="keys",
                issue_type="unknown_field",
                message=f"Keys are not active fields: {', '.join(unknown)}",
            ))
        missing = sorted(set(active) - set(keys))
        if missing:
            issues.append(ValidationIssue(
                field="keys",
                issue_type="missing",
                message=f"Keys missing from the new order: {', '.join(missing)}",
            ))
        if issues:
            raise ValidationError.from_issues(issues)

        ordered = [active[key] for key in keys]
        self._renumber(ordered)
        return ordered
