"""Record store package."""

from roster.store.invariants import find_violations
from roster.store.record_store import RecordStore

__all__ = ["RecordStore", "find_violations"]
