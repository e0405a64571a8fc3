"""Read-side access filtering by role."""

from roster.access.filter import apply_role, apply_role_all, filter_notes

__all__ = ["apply_role", "apply_role_all", "filter_notes"]
