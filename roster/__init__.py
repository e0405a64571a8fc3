"""
Roster - Source Package

The record core of an organization directory: people, households, tags,
notes and organization-defined profile fields.

DESIGN PRINCIPLES:
1. Validate at the boundary, before anything is mutated
2. No operation leaves a dangling reference
3. Cascades are all-or-nothing
4. One writer per organization, readers see committed state only
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Roster Team"
