"""
Profile Field Models

An organization defines its own profile fields at runtime. These models
describe a field definition and the values a Person can hold for it.

DESIGN DECISION: Stored values are a tagged union (one model per field
type, discriminated by `type`) rather than an untyped dict. A value can
only be built by the validator once it has been checked against its
definition, so a stored value always says what type it was written as,
even after its definition is archived.
"""

import re
from datetime import date, datetime, timezone
from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictBool,
    StrictFloat,
    StrictInt,
    field_validator,
    model_validator,
)


FIELD_KEY_PATTERN = r"^[a-zA-Z][a-zA-Z0-9_]*$"
EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
PHONE_PATTERN = re.compile(r"^\+?[0-9()\-.\s]{3,30}$")


def utcnow() -> datetime:
    """Timezone-aware current time; all stored timestamps are UTC."""
    return datetime.now(timezone.utc)


# =============================================================================
# ENUMS
# =============================================================================

class FieldType(str, Enum):
    """Types a profile field can be declared with."""
    TEXT = "text"
    TEXTAREA = "textarea"
    NUMBER = "number"
    DATE = "date"
    CHECKBOX = "checkbox"
    SELECT = "select"
    MULTISELECT = "multiselect"
    EMAIL = "email"
    PHONE = "phone"
    URL = "url"

    @property
    def takes_options(self) -> bool:
        return self in (FieldType.SELECT, FieldType.MULTISELECT)


class FieldVisibility(str, Enum):
    """
    Who may read a field.

    STAFF_ONLY fields are hidden from viewers on read.
    Writes are not affected.
    """
    PUBLIC = "public"
    STAFF_ONLY = "staff_only"


# =============================================================================
# FIELD DEFINITIONS
# =============================================================================

class FieldOption(BaseModel):
    """One choice of a select/multiselect field."""
    model_config = ConfigDict(str_strip_whitespace=True)

    value: str = Field(..., min_length=1, max_length=100)
    label: str = Field(..., min_length=1, max_length=200)


def _check_options(field_type: FieldType, options: list[FieldOption]) -> None:
    if field_type.takes_options:
        if not options:
            raise ValueError(
                f"Fields of type '{field_type.value}' need at least one option"
            )
    elif options:
        raise ValueError(
            f"Fields of type '{field_type.value}' do not take options"
        )

    values = [option.value for option in options]
    if len(values) != len(set(values)):
        raise ValueError("Option values must be unique")


class FieldDefinitionInput(BaseModel):
    """What a caller supplies to define a new profile field."""
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    key: str = Field(
        ...,
        pattern=FIELD_KEY_PATTERN,
        max_length=64,
        description="Identifier used to store values; immutable once created"
    )
    label: str = Field(..., min_length=1, max_length=200)
    type: FieldType
    options: list[FieldOption] = Field(default_factory=list)
    required: bool = False
    visibility: FieldVisibility = FieldVisibility.PUBLIC
    order_index: Optional[int] = Field(
        default=None,
        ge=0,
        description="Display position; defaults to the end of the list"
    )

    @model_validator(mode='after')
    def validate_options(self) -> 'FieldDefinitionInput':
        _check_options(self.type, self.options)
        return self


class FieldDefinitionUpdate(BaseModel):
    """
    Partial update of a field definition.

    Only the attributes the caller actually sets are applied.
    `key` and `type` are rejected: stored values depend on both.
    """
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    label: Optional[str] = Field(default=None, min_length=1, max_length=200)
    options: Optional[list[FieldOption]] = None
    required: Optional[bool] = None
    visibility: Optional[FieldVisibility] = None


class ProfileFieldDef(BaseModel):
    """A custom field definition owned by one organization."""

    id: UUID = Field(default_factory=uuid4)
    organization_id: UUID
    key: str = Field(..., pattern=FIELD_KEY_PATTERN)
    label: str
    type: FieldType
    options: list[FieldOption] = Field(default_factory=list)
    required: bool = False
    visibility: FieldVisibility = FieldVisibility.PUBLIC
    archived: bool = False
    order_index: int = Field(default=0, ge=0)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @model_validator(mode='after')
    def validate_options(self) -> 'ProfileFieldDef':
        _check_options(self.type, self.options)
        return self

    @property
    def option_values(self) -> list[str]:
        return [option.value for option in self.options]

    @property
    def is_staff_only(self) -> bool:
        return self.visibility == FieldVisibility.STAFF_ONLY


# =============================================================================
# TAGGED FIELD VALUES
# =============================================================================

class TextValue(BaseModel):
    type: Literal["text"] = "text"
    value: str


class TextareaValue(BaseModel):
    type: Literal["textarea"] = "textarea"
    value: str


class NumberValue(BaseModel):
    type: Literal["number"] = "number"
    value: Union[StrictInt, StrictFloat]


class DateValue(BaseModel):
    type: Literal["date"] = "date"
    value: date

    @field_validator('value')
    @classmethod
    def reject_datetime(cls, v: date) -> date:
        if isinstance(v, datetime):
            raise ValueError("Expected a calendar date, not a timestamp")
        return v


class CheckboxValue(BaseModel):
    type: Literal["checkbox"] = "checkbox"
    value: StrictBool


class SelectValue(BaseModel):
    type: Literal["select"] = "select"
    value: str


class MultiselectValue(BaseModel):
    type: Literal["multiselect"] = "multiselect"
    value: list[str]


class EmailValue(BaseModel):
    type: Literal["email"] = "email"
    value: str


class PhoneValue(BaseModel):
    type: Literal["phone"] = "phone"
    value: str


class UrlValue(BaseModel):
    type: Literal["url"] = "url"
    value: str


FieldValue = Annotated[
    Union[
        TextValue,
        TextareaValue,
        NumberValue,
        DateValue,
        CheckboxValue,
        SelectValue,
        MultiselectValue,
        EmailValue,
        PhoneValue,
        UrlValue,
    ],
    Field(discriminator="type"),
]


def plain_value(field_value: BaseModel) -> Any:
    """Unwrap a tagged value to the bare Python value."""
    value = field_value.value
    if isinstance(value, list):
        return list(value)
    return value
