"""
JSON File Storage Implementation

DESIGN DECISION: One JSON document per organization, for single-process
deployments that want persistence without a database.

Each save writes a temporary file and renames it over the previous one,
so a crash mid-write leaves the last committed state readable.
File reads and writes run in a worker thread so the event loop keeps
serving other organizations while one is being saved. Transient OS
errors (locked file, full disk being cleaned up) are retried with
tenacity before the save is reported as failed.

TRADEOFFS:
- The whole organization is rewritten on every commit
  (fine for directory-sized data)
- Not safe for several processes writing the same directory
"""

import asyncio
import os
from pathlib import Path
from typing import Optional
from uuid import UUID

from pydantic import ValidationError as PydanticValidationError
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from roster.config import get_settings
from roster.models.state import OrgState
from roster.services.storage.interface import StateStorageInterface, StorageError


class JsonFileStateStorage(StateStorageInterface):
    """Organization states as `<data_dir>/<organization_id>.json`."""

    def __init__(
        self,
        data_dir: Optional[Path] = None,
        retry_attempts: Optional[int] = None,
        wait_multiplier: float = 0.5,
    ):
        settings = get_settings().storage
        self._data_dir = Path(data_dir or settings.data_dir)
        self._retry_attempts = retry_attempts or settings.retry_attempts
        self._wait_multiplier = wait_multiplier

    def _path_for(self, organization_id: UUID) -> Path:
        return self._data_dir / f"{organization_id}.json"

    def _read(self, path: Path) -> OrgState:
        return OrgState.model_validate_json(path.read_text(encoding="utf-8"))

    def _write(self, state: OrgState) -> None:
        self._data_dir.mkdir(parents=True, exist_ok=True)
        path = self._path_for(state.organization_id)
        tmp_path = path.with_name(path.name + ".tmp")
        tmp_path.write_text(state.model_dump_json(indent=2), encoding="utf-8")
        os.replace(tmp_path, path)

    async def load_state(self, organization_id: UUID) -> Optional[OrgState]:
        """Read an organization's state, or None if it was never saved."""
        path = self._path_for(organization_id)
        if not path.exists():
            return None
        try:
            state = await asyncio.to_thread(self._read, path)
        except (OSError, PydanticValidationError) as e:
            raise StorageError(f"Failed to read state from {path}: {e}")
        if state.organization_id != organization_id:
            raise StorageError(
                f"{path} holds organization {state.organization_id}, "
                f"expected {organization_id}"
            )
        return state

    async def save_state(self, state: OrgState) -> bool:
        """Write an organization's state, retrying transient OS errors."""
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self._retry_attempts),
                wait=wait_exponential(multiplier=self._wait_multiplier, max=5),
                retry=retry_if_exception_type(OSError),
                reraise=True,
            ):
                with attempt:
                    await asyncio.to_thread(self._write, state)
        except OSError as e:
            raise StorageError(f"Failed to save state: {e}")
        return True

    async def list_organizations(self) -> list[UUID]:
        if not self._data_dir.exists():
            return []
        organizations = []
        for path in self._data_dir.glob("*.json"):
            try:
                organizations.append(UUID(path.stem))
            except ValueError:
                continue
        return organizations
