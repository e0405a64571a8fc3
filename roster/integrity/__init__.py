"""Integrity coordination package."""

from roster.integrity.coordinator import IntegrityCoordinator

__all__ = ["IntegrityCoordinator"]
