"""Repository abstraction for setup progress persistence."""

from __future__ import annotations

from typing import Protocol

from ..constants import PROGRESS_KEY_PREFIX
from ..contracts import PersistedProgress


def storage_key(domain: str) -> str:
    return f"{PROGRESS_KEY_PREFIX}{domain}"


class ProgressRepository(Protocol):
    """Protocol for progress persistence backends."""

    async def save_progress(self, domain: str, progress: PersistedProgress) -> None:
        """Persist the progress recorded for ``domain``."""

    async def load_progress(self, domain: str) -> PersistedProgress | None:
        """Return the stored progress for ``domain`` or ``None``."""

    async def clear_progress(self, domain: str) -> None:
        """Forget everything stored for ``domain``."""
