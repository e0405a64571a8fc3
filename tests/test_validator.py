"""Tests for profile field value validation."""

from datetime import date
from uuid import uuid4

import pytest

from roster.errors import ValidationError
from roster.models.schema import (
    CheckboxValue,
    FieldType,
    MultiselectValue,
    ProfileFieldDef,
    TextValue,
)
from roster.validation import FieldValueValidator


ORG_ID = uuid4()


def make_field(key, field_type, **kwargs):
    return ProfileFieldDef(
        organization_id=ORG_ID,
        key=key,
        label=kwargs.pop("label", key.replace("_", " ").title()),
        type=field_type,
        **kwargs,
    )


@pytest.fixture
def definitions():
    fields = [
        make_field("nickname", FieldType.TEXT),
        make_field("bio", FieldType.TEXTAREA),
        make_field("age", FieldType.NUMBER),
        make_field("joined", FieldType.DATE),
        make_field("baptized", FieldType.CHECKBOX),
        make_field(
            "shirt_size",
            FieldType.SELECT,
            options=[{"value": "M", "label": "Medium"}, {"value": "L", "label": "Large"}],
        ),
        make_field(
            "ministries",
            FieldType.MULTISELECT,
            options=[
                {"value": "music", "label": "Music"},
                {"value": "kids", "label": "Kids"},
            ],
        ),
        make_field("work_email", FieldType.EMAIL),
        make_field("mobile", FieldType.PHONE),
        make_field("website", FieldType.URL),
        make_field("old_field", FieldType.TEXT, archived=True),
    ]
    return {f.key: f for f in fields}


@pytest.fixture
def validator(definitions):
    return FieldValueValidator(definitions)


class TestTypeChecks:
    """Tests for the per-type checks."""

    def test_valid_values_for_every_type(self, validator):
        """Test one valid value of each type is accepted and tagged."""
        merged = validator.validate_fields({
            "nickname": "Ace",
            "bio": "Long text",
            "age": 42,
            "joined": "2024-03-01",
            "baptized": True,
            "shirt_size": "M",
            "ministries": ["music", "kids"],
            "work_email": "ada@example.org",
            "mobile": "+1 (555) 010-0000",
            "website": "https://example.org",
        })
        assert merged["nickname"] == TextValue(value="Ace")
        assert merged["joined"].value == date(2024, 3, 1)
        assert merged["baptized"] == CheckboxValue(value=True)
        assert merged["ministries"] == MultiselectValue(value=["music", "kids"])
        assert {v.type for v in merged.values()} == {t.value for t in FieldType}

    @pytest.mark.parametrize("key,bad_value", [
        ("nickname", 12),
        ("age", "42"),
        ("age", True),
        ("age", float("nan")),
        ("joined", "03/01/2024"),
        ("baptized", "yes"),
        ("shirt_size", "XL"),
        ("ministries", "music"),
        ("ministries", ["music", "music"]),
        ("ministries", ["golf"]),
        ("work_email", "ada.example.org"),
        ("mobile", "call me"),
        ("website", "not a url"),
    ])
    def test_mismatched_values_rejected(self, validator, key, bad_value):
        """Test a value of the wrong shape is reported, not coerced."""
        with pytest.raises(ValidationError) as exc_info:
            validator.validate_fields({key: bad_value})
        assert exc_info.value.issues[0].field == key
        assert exc_info.value.issues[0].issue_type == "type_mismatch"

    def test_select_value_not_in_options_message(self, validator):
        """Test the message names the offending option."""
        with pytest.raises(ValidationError, match="'XL' is not an option of Shirt Size"):
            validator.validate_fields({"shirt_size": "XL"})


class TestSchemaChecks:
    """Tests for unknown and archived keys."""

    def test_unknown_key_rejected(self, validator):
        """Test writing a key nobody defined."""
        with pytest.raises(ValidationError) as exc_info:
            validator.validate_fields({"favorite_color": "blue"})
        assert exc_info.value.issues[0].issue_type == "unknown_field"

    def test_archived_key_rejected(self, validator):
        """Test archived fields no longer accept writes."""
        with pytest.raises(ValidationError) as exc_info:
            validator.validate_fields({"old_field": "value"})
        assert exc_info.value.issues[0].issue_type == "archived_field"

    def test_all_key_issues_reported(self, validator):
        """Test every bad key is collected, not just the first."""
        with pytest.raises(ValidationError) as exc_info:
            validator.validate_fields({"one": 1, "two": 2})
        assert len(exc_info.value.issues) == 2
        assert "and 1 more issues" in exc_info.value.message


class TestMergeAndRequired:
    """Tests for merging with existing values and required fields."""

    def test_existing_values_carried_over(self, validator):
        """Test keys not being written keep their values, archived ones included."""
        existing = {
            "nickname": TextValue(value="Ace"),
            "old_field": TextValue(value="kept"),
        }
        merged = validator.validate_fields({"age": 30}, existing=existing)
        assert merged["nickname"].value == "Ace"
        assert merged["old_field"].value == "kept"
        assert merged["age"].value == 30

    def test_none_and_empty_string_clear(self, validator):
        """Test None and "" remove the stored value."""
        existing = {"nickname": TextValue(value="Ace"), "bio": TextValue(value="x")}
        merged = validator.validate_fields({"nickname": None, "bio": ""}, existing=existing)
        assert "nickname" not in merged
        assert "bio" not in merged

    def test_required_field_missing(self, definitions):
        """Test a required field must hold a value."""
        definitions["nickname"] = definitions["nickname"].model_copy(update={"required": True})
        validator = FieldValueValidator(definitions)

        with pytest.raises(ValidationError) as exc_info:
            validator.validate_fields({"age": 3})
        assert exc_info.value.issues[0].issue_type == "missing"
        assert exc_info.value.issues[0].field == "nickname"

    def test_required_field_cannot_be_cleared(self, definitions):
        """Test clearing a required field is rejected."""
        definitions["nickname"] = definitions["nickname"].model_copy(update={"required": True})
        validator = FieldValueValidator(definitions)

        with pytest.raises(ValidationError, match="Nickname is required"):
            validator.validate_fields(
                {"nickname": None},
                existing={"nickname": TextValue(value="Ace")},
            )

    def test_archived_required_field_not_enforced(self, definitions):
        """Test archived fields never count as required."""
        definitions["old_field"] = definitions["old_field"].model_copy(update={"required": True})
        validator = FieldValueValidator(definitions)
        assert validator.validate_fields({}) == {}
