"""In-memory implementation of the progress repository."""

from __future__ import annotations

import json
from typing import Dict

from ..contracts import PersistedProgress
from .migration import parse_progress
from .repository import ProgressRepository, storage_key


class InMemoryProgressRepository(ProgressRepository):
    """Store progress in local memory.

    Useful for tests or when no database is configured. Data is not
    persisted across process restarts. Entries are kept serialized so a
    load always goes through the same migration as the SQLite backend.
    """

    def __init__(self) -> None:
        self._items: Dict[str, str] = {}

    async def save_progress(self, domain: str, progress: PersistedProgress) -> None:
        if not domain:
            return
        self._items[storage_key(domain)] = json.dumps(progress.to_dict())

    async def load_progress(self, domain: str) -> PersistedProgress | None:
        raw = self._items.get(storage_key(domain)) if domain else None
        if raw is None:
            return None
        return parse_progress(json.loads(raw))

    async def clear_progress(self, domain: str) -> None:
        self._items.pop(storage_key(domain), None)
