"""Derived views over committed organization state."""

from roster.views.derived import (
    DashboardStats,
    HouseholdSummary,
    RosterEntry,
    TagUsage,
    dashboard_stats,
    household_member_counts,
    household_roster,
    household_summaries,
    recent_notes,
    tag_usage,
    tag_usage_count,
    top_tags,
)

__all__ = [
    "DashboardStats",
    "HouseholdSummary",
    "RosterEntry",
    "TagUsage",
    "dashboard_stats",
    "household_member_counts",
    "household_roster",
    "household_summaries",
    "recent_notes",
    "tag_usage",
    "tag_usage_count",
    "top_tags",
]
