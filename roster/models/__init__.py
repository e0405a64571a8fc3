"""
Data Models Package

All records and inputs flowing through the roster core are Pydantic
models defined here.
"""

from roster.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from roster.models.context import RequestContext, Role
from roster.models.records import (
    Household,
    HouseholdInput,
    HouseholdMember,
    HouseholdUpdate,
    Note,
    NoteInput,
    NoteVisibility,
    Person,
    PersonInput,
    PersonStatus,
    PersonUpdate,
    Relationship,
    Tag,
    TagInput,
    TagUpdate,
)
from roster.models.results import ApiResponse, ImportRowResult, ValidationIssue
from roster.models.schema import (
    FieldDefinitionInput,
    FieldDefinitionUpdate,
    FieldOption,
    FieldType,
    FieldValue,
    FieldVisibility,
    ProfileFieldDef,
)
from roster.models.state import OrgState

__all__ = [
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
    # Context
    "RequestContext",
    "Role",
    # Records
    "Household",
    "HouseholdInput",
    "HouseholdMember",
    "HouseholdUpdate",
    "Note",
    "NoteInput",
    "NoteVisibility",
    "Person",
    "PersonInput",
    "PersonStatus",
    "PersonUpdate",
    "Relationship",
    "Tag",
    "TagInput",
    "TagUpdate",
    # Results
    "ApiResponse",
    "ImportRowResult",
    "ValidationIssue",
    # State
    "OrgState",
    # Schema
    "FieldDefinitionInput",
    "FieldDefinitionUpdate",
    "FieldOption",
    "FieldType",
    "FieldValue",
    "FieldVisibility",
    "ProfileFieldDef",
]
