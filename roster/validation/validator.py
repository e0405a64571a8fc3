"""
Profile Field Value Validation

DESIGN DECISION: Validation of custom field values happens in two
distinct stages, mirroring how the values reach us:

STAGE 1 - SCHEMA:
- Every key must name a field the organization has defined
- Archived fields no longer accept writes (their old values stay readable)

STAGE 2 - TYPE:
- Each value must match its field's declared type
- select/multiselect values must come from the field's options
- email/phone/url values must be syntactically plausible

After both stages, required fields are checked on the merged result.

IMPORTANT: Validation NEVER silently fixes values. A wrong type is
reported, not coerced. The one exception is the empty string, which
forms submit for untouched inputs and which means "no value".

Every issue found is collected, so a form can show all problems at
once instead of one per submission.
"""

import math
from datetime import date, datetime
from typing import Any, Callable, Mapping, Optional

from pydantic import HttpUrl, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from roster.errors import ValidationError
from roster.models.results import ValidationIssue
from roster.models.schema import (
    EMAIL_PATTERN,
    PHONE_PATTERN,
    CheckboxValue,
    DateValue,
    EmailValue,
    FieldType,
    FieldValue,
    MultiselectValue,
    NumberValue,
    PhoneValue,
    ProfileFieldDef,
    SelectValue,
    TextareaValue,
    TextValue,
    UrlValue,
)


MAX_TEXT_LENGTH = 1000
MAX_TEXTAREA_LENGTH = 10000

_URL_ADAPTER = TypeAdapter(HttpUrl)


class FieldTypeMismatch(Exception):
    """Raised by a checker; carries the human-readable reason."""
    pass


# =============================================================================
# PER-TYPE CHECKERS
# =============================================================================

def _require_str(definition: ProfileFieldDef, raw: Any) -> str:
    if not isinstance(raw, str):
        raise FieldTypeMismatch(
            f"{definition.label} expects text, got {type(raw).__name__}"
        )
    return raw


def _check_text(definition: ProfileFieldDef, raw: Any) -> FieldValue:
    value = _require_str(definition, raw)
    if len(value) > MAX_TEXT_LENGTH:
        raise FieldTypeMismatch(
            f"{definition.label} is longer than {MAX_TEXT_LENGTH} characters"
        )
    return TextValue(value=value)


def _check_textarea(definition: ProfileFieldDef, raw: Any) -> FieldValue:
    value = _require_str(definition, raw)
    if len(value) > MAX_TEXTAREA_LENGTH:
        raise FieldTypeMismatch(
            f"{definition.label} is longer than {MAX_TEXTAREA_LENGTH} characters"
        )
    return TextareaValue(value=value)


def _check_number(definition: ProfileFieldDef, raw: Any) -> FieldValue:
    # bool is an int subclass; a checkbox value is not a number
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        raise FieldTypeMismatch(
            f"{definition.label} expects a number, got {type(raw).__name__}"
        )
    if isinstance(raw, float) and not math.isfinite(raw):
        raise FieldTypeMismatch(f"{definition.label} must be a finite number")
    return NumberValue(value=raw)


def _check_date(definition: ProfileFieldDef, raw: Any) -> FieldValue:
    if isinstance(raw, datetime):
        raise FieldTypeMismatch(
            f"{definition.label} expects a date, not a date and time"
        )
    if isinstance(raw, date):
        return DateValue(value=raw)
    if isinstance(raw, str):
        try:
            return DateValue(value=date.fromisoformat(raw))
        except ValueError:
            raise FieldTypeMismatch(
                f"{definition.label} expects an ISO date (YYYY-MM-DD), got '{raw}'"
            )
    raise FieldTypeMismatch(
        f"{definition.label} expects a date, got {type(raw).__name__}"
    )


def _check_checkbox(definition: ProfileFieldDef, raw: Any) -> FieldValue:
    if not isinstance(raw, bool):
        raise FieldTypeMismatch(
            f"{definition.label} expects true or false, got {type(raw).__name__}"
        )
    return CheckboxValue(value=raw)


def _check_select(definition: ProfileFieldDef, raw: Any) -> FieldValue:
    value = _require_str(definition, raw)
    if value not in definition.option_values:
        raise FieldTypeMismatch(
            f"'{value}' is not an option of {definition.label}"
        )
    return SelectValue(value=value)


def _check_multiselect(definition: ProfileFieldDef, raw: Any) -> FieldValue:
    if isinstance(raw, str) or not isinstance(raw, (list, tuple)):
        raise FieldTypeMismatch(
            f"{definition.label} expects a list of options, got {type(raw).__name__}"
        )
    allowed = set(definition.option_values)
    seen = set()
    for item in raw:
        if not isinstance(item, str):
            raise FieldTypeMismatch(
                f"{definition.label} options must be text, got {type(item).__name__}"
            )
        if item not in allowed:
            raise FieldTypeMismatch(
                f"'{item}' is not an option of {definition.label}"
            )
        if item in seen:
            raise FieldTypeMismatch(
                f"'{item}' is selected more than once in {definition.label}"
            )
        seen.add(item)
    return MultiselectValue(value=list(raw))


def _check_email(definition: ProfileFieldDef, raw: Any) -> FieldValue:
    value = _require_str(definition, raw)
    if not EMAIL_PATTERN.match(value):
        raise FieldTypeMismatch(f"{definition.label}: invalid email format")
    return EmailValue(value=value)


def _check_phone(definition: ProfileFieldDef, raw: Any) -> FieldValue:
    value = _require_str(definition, raw)
    if not PHONE_PATTERN.match(value) or not any(c.isdigit() for c in value):
        raise FieldTypeMismatch(f"{definition.label}: invalid phone number")
    return PhoneValue(value=value)


def _check_url(definition: ProfileFieldDef, raw: Any) -> FieldValue:
    value = _require_str(definition, raw)
    try:
        _URL_ADAPTER.validate_python(value)
    except PydanticValidationError:
        raise FieldTypeMismatch(f"{definition.label}: invalid URL '{value}'")
    return UrlValue(value=value)


_CHECKERS: dict[FieldType, Callable[[ProfileFieldDef, Any], FieldValue]] = {
    FieldType.TEXT: _check_text,
    FieldType.TEXTAREA: _check_textarea,
    FieldType.NUMBER: _check_number,
    FieldType.DATE: _check_date,
    FieldType.CHECKBOX: _check_checkbox,
    FieldType.SELECT: _check_select,
    FieldType.MULTISELECT: _check_multiselect,
    FieldType.EMAIL: _check_email,
    FieldType.PHONE: _check_phone,
    FieldType.URL: _check_url,
}

_missing = set(FieldType) - set(_CHECKERS)
if _missing:
    raise RuntimeError(f"No value checker for field types: {sorted(t.value for t in _missing)}")


def _is_blank(value: FieldValue) -> bool:
    inner = value.value
    return inner == "" or inner == []


# =============================================================================
# VALIDATOR
# =============================================================================

class FieldValueValidator:
    """
    Validates Person.fields writes against an organization's field definitions.

    Holds every definition, archived ones included, so it can tell
    "archived" apart from "never defined" in its messages.
    """

    def __init__(self, definitions: Mapping[str, ProfileFieldDef]):
        self._definitions = definitions

    def check_value(self, definition: ProfileFieldDef, raw: Any) -> FieldValue:
        """
        Check a single raw value against its definition.

        Raises:
            ValidationError: If the value does not match the declared type
        """
        try:
            return _CHECKERS[definition.type](definition, raw)
        except FieldTypeMismatch as e:
            raise ValidationError(str(e), [ValidationIssue(
                field=definition.key,
                issue_type="type_mismatch",
                message=str(e),
            )])

    def _validate_keys(
        self,
        raw_fields: Mapping[str, Any],
    ) -> list[ValidationIssue]:
        """Stage 1: every key must be a live field definition."""
        issues = []
        for key in raw_fields:
            definition = self._definitions.get(key)
            if definition is None:
                issues.append(ValidationIssue(
                    field=key,
                    issue_type="unknown_field",
                    message=f"Unknown profile field '{key}'",
                ))
            elif definition.archived:
                issues.append(ValidationIssue(
                    field=key,
                    issue_type="archived_field",
                    message=f"Profile field '{key}' is archived and cannot be written",
                ))
        return issues

    def _validate_types(
        self,
        raw_fields: Mapping[str, Any],
    ) -> tuple[dict[str, FieldValue], set[str], list[ValidationIssue]]:
        """
        Stage 2: type-check each value.

        Returns: (checked_values, keys_to_clear, issues)
        """
        checked: dict[str, FieldValue] = {}
        cleared: set[str] = set()
        issues = []

        for key, raw in raw_fields.items():
            if raw is None or raw == "":
                cleared.add(key)
                continue
            try:
                checked[key] = self.check_value(self._definitions[key], raw)
            except ValidationError as e:
                issues.extend(e.issues)

        return checked, cleared, issues

    def _validate_required(
        self,
        merged: Mapping[str, FieldValue],
    ) -> list[ValidationIssue]:
        issues = []
        for definition in self._definitions.values():
            if definition.archived or not definition.required:
                continue
            value = merged.get(definition.key)
            if value is None or _is_blank(value):
                issues.append(ValidationIssue(
                    field=definition.key,
                    issue_type="missing",
                    message=f"{definition.label} is required",
                ))
        return issues

    def validate_fields(
        self,
        raw_fields: Mapping[str, Any],
        existing: Optional[Mapping[str, FieldValue]] = None,
    ) -> dict[str, FieldValue]:
        """
        Run the full pipeline and return the merged, typed field mapping.

        Args:
            raw_fields: Values being written, keyed by field key.
                        None or "" clears the stored value.
            existing: The person's current values (on update).
                      Keys not in raw_fields are carried over untouched,
                      including values under archived keys.

        Raises:
            ValidationError: With every issue found, if any
        """
        issues = self._validate_keys(raw_fields)
        if issues:
            raise ValidationError.from_issues(issues)

        checked, cleared, issues = self._validate_types(raw_fields)
        if issues:
            raise ValidationError.from_issues(issues)

        merged: dict[str, FieldValue] = dict(existing or {})
        for key in cleared:
            merged.pop(key, None)
        merged.update(checked)

        issues = self._validate_required(merged)
        if issues:
            raise ValidationError.from_issues(issues)

        return merged
