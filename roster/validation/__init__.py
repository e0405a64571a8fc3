"""Field value validation package."""

from roster.validation.validator import FieldValueValidator

__all__ = ["FieldValueValidator"]
