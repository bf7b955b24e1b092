"""Persistence layer for setup progress."""

from __future__ import annotations

from typing import Optional

from ..config import FedSetupConfig, load_config
from .inmemory import InMemoryProgressRepository
from .migration import migrate_step_status, parse_progress
from .repository import ProgressRepository, storage_key
from .sqlite import SQLiteProgressRepository


def get_repository(
    database_url: Optional[str] = None, config: Optional[FedSetupConfig] = None
) -> ProgressRepository:
    """Factory function to obtain a progress repository.

    The backend is selected from ``database_url``, given explicitly or taken
    from configuration (which honours ``FEDSETUP_DATABASE_URL``). Without a
    database an in-memory repository is returned.
    """

    if database_url is None:
        config = config or load_config()
        database_url = config.database_url

    if not database_url:
        return InMemoryProgressRepository()
    if database_url.startswith("sqlite://"):
        return SQLiteProgressRepository(database_url.replace("sqlite://", "", 1))
    raise ValueError(f"Unsupported database backend: {database_url}")


__all__ = [
    "InMemoryProgressRepository",
    "ProgressRepository",
    "SQLiteProgressRepository",
    "get_repository",
    "migrate_step_status",
    "parse_progress",
    "storage_key",
]
