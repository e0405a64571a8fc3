"""
People Import / Export

Maps spreadsheet rows to person payloads and people back to rows.

DESIGN DECISION: Import never writes anything itself. A row is mapped
and coerced into a plain payload, and the payload goes through the same
person create as any other caller, so an imported value is checked
against its field definition exactly like a typed-in one.

Coercion only turns spreadsheet text into the Python type a field
expects (e.g. "yes" -> True for a checkbox). Text that cannot be coerced
is passed through unchanged, and the field check rejects it with the
usual message.
"""

import csv
import io
import math
from typing import Any, Iterable, Mapping, Optional

from roster.errors import ValidationError
from roster.models.context import Role
from roster.models.results import ValidationIssue
from roster.models.schema import FieldType, ProfileFieldDef, plain_value
from roster.models.state import OrgState
from roster.schema.registry import SchemaRegistry


# Core person attributes, in export column order
CORE_COLUMNS = [
    "first_name",
    "last_name",
    "preferred_name",
    "email",
    "phone",
    "status",
]

TAGS_COLUMN = "tags"

TRUE_WORDS = {"true", "yes", "y", "1", "x"}
FALSE_WORDS = {"false", "no", "n", "0"}

MULTI_VALUE_SEPARATOR = ";"


# =============================================================================
# IMPORT
# =============================================================================

def coerce_cell(definition: ProfileFieldDef, raw: str) -> Any:
    """
    Turn spreadsheet text into the value type `definition` expects.

    Returns `raw` unchanged when it does not look like that type.
    """
    text = raw.strip()

    if definition.type == FieldType.NUMBER:
        try:
            number = float(text)
        except ValueError:
            return raw
        if math.isfinite(number) and number.is_integer() and "." not in text:
            return int(number)
        return number

    if definition.type == FieldType.CHECKBOX:
        lowered = text.lower()
        if lowered in TRUE_WORDS:
            return True
        if lowered in FALSE_WORDS:
            return False
        return raw

    if definition.type == FieldType.MULTISELECT:
        return [part.strip() for part in text.split(MULTI_VALUE_SEPARATOR) if part.strip()]

    # Dates stay ISO strings; the field check parses them
    return text


def map_import_row(
    row: Mapping[str, Optional[str]],
    column_mapping: Mapping[str, str],
    registry: SchemaRegistry,
) -> dict[str, Any]:
    """
    Build a person create payload from one spreadsheet row.

    Args:
        row: Column name -> cell text
        column_mapping: Column name -> core attribute or field key.
                        Columns not in the mapping (or mapped to "")
                        are skipped.
        registry: Field definitions used to coerce custom values

    Blank cells are dropped, so a blank optional column never clears
    or overrides anything.

    Raises:
        ValidationError: If a column is mapped to something that is
                         neither a core attribute nor an active field
    """
    issues = []
    payload: dict[str, Any] = {}
    fields: dict[str, Any] = {}
    active = {d.key: d for d in registry.active_fields()}

    for column, target in column_mapping.items():
        if not target:
            continue
        if target not in CORE_COLUMNS and target not in active:
            issues.append(ValidationIssue(
                field=column,
                issue_type="unknown_field",
                message=f"Column '{column}' is mapped to unknown field '{target}'",
            ))
            continue

        cell = row.get(column)
        if cell is None or not str(cell).strip():
            continue

        if target in CORE_COLUMNS:
            payload[target] = str(cell).strip()
        else:
            fields[target] = coerce_cell(active[target], str(cell))

    if issues:
        raise ValidationError.from_issues(issues)

    if fields:
        payload["fields"] = fields
    return payload


def parse_csv(text: str) -> list[dict[str, str]]:
    """Read CSV text with a header row into one dict per data row."""
    reader = csv.DictReader(io.StringIO(text))
    return [dict(row) for row in reader if any((v or "").strip() for v in row.values())]


# =============================================================================
# EXPORT
# =============================================================================

def _render(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, list):
        return f"{MULTI_VALUE_SEPARATOR} ".join(str(v) for v in value)
    if hasattr(value, "isoformat"):
        return value.isoformat()
    if hasattr(value, "value"):
        return str(value.value)
    return str(value)


def export_columns(registry: SchemaRegistry, role: Role) -> list[str]:
    """Every column an export for `role` can contain, in order."""
    return (
        CORE_COLUMNS
        + [TAGS_COLUMN]
        + [d.key for d in registry.visible_fields_for(role)]
    )


def export_people(
    state: OrgState,
    role: Role,
    registry: SchemaRegistry,
    columns: Optional[list[str]] = None,
) -> list[dict[str, str]]:
    """
    One row per person with the core columns, tag names and every
    custom field `role` may see.

    Args:
        columns: Restrict (and order) the columns. Defaults to all.

    Raises:
        ValidationError: If `columns` names a column the role cannot export
    """
    available = export_columns(registry, role)
    if columns is None:
        columns = available
    else:
        unknown = [c for c in columns if c not in available]
        if unknown:
            message = f"Unknown export columns: {', '.join(unknown)}"
            raise ValidationError(message, [ValidationIssue(
                field="columns",
                issue_type="unknown_field",
                message=message,
            )])

    rows = []
    for person in state.people.values():
        custom = {
            key: plain_value(value) for key, value in person.fields.items()
        }
        tag_names = [
            state.tags[tag_id].name for tag_id in person.tag_ids if tag_id in state.tags
        ]

        row = {}
        for column in columns:
            if column in CORE_COLUMNS:
                row[column] = _render(getattr(person, column))
            elif column == TAGS_COLUMN:
                row[column] = _render(tag_names)
            else:
                row[column] = _render(custom.get(column))
        rows.append(row)
    return rows


def to_csv(rows: Iterable[Mapping[str, str]], columns: Optional[list[str]] = None) -> str:
    """
    Render rows as CSV text with a header row.

    Columns default to the keys of the first row; with no rows and no
    columns the result is empty.
    """
    rows = list(rows)
    if columns is None:
        columns = list(rows[0].keys()) if rows else []
    if not columns:
        return ""

    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=columns, lineterminator="\n")
    writer.writeheader()
    writer.writerows(rows)
    return buffer.getvalue()
