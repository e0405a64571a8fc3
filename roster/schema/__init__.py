"""Schema registry package."""

from roster.schema.registry import SchemaRegistry

__all__ = ["SchemaRegistry"]
