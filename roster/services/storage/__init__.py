"""
Storage Services Package

Provides abstract interfaces and concrete implementations for persisting
organization state and audit events. Memory and JSON files are
implemented; the interface is designed to be swappable.
"""

from roster.services.storage.interface import (
    AuditStorageInterface,
    StateStorageInterface,
    StorageError,
)
from roster.services.storage.json_file import JsonFileStateStorage
from roster.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryStateStorage,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "StateStorageInterface",
    # Exceptions
    "StorageError",
    # Implementations
    "InMemoryAuditStorage",
    "InMemoryStateStorage",
    "JsonFileStateStorage",
]
