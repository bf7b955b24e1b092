"""SQLite implementation of the progress repository."""

from __future__ import annotations

import asyncio
import json
import logging
import sqlite3
from pathlib import Path
from typing import Any

from ..contracts import PersistedProgress, utc_now
from .migration import parse_progress
from .repository import ProgressRepository, storage_key

logger = logging.getLogger(__name__)


class SQLiteProgressRepository(ProgressRepository):
    """Persist progress using SQLite, one JSON document per domain."""

    def __init__(self, db_path: str | Path):
        self.db_path = str(db_path)
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._ensure_schema()

    # ------------------------------------------------------------------
    # Schema management
    def _ensure_schema(self) -> None:
        cur = self._conn.cursor()
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS progress (
                storage_key TEXT PRIMARY KEY,
                data TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
            """
        )
        self._conn.commit()

    # ------------------------------------------------------------------
    # Helper methods
    def _execute(self, query: str, *params: Any) -> None:
        cur = self._conn.cursor()
        cur.execute(query, params)
        self._conn.commit()

    def _fetchone(self, query: str, *params: Any) -> sqlite3.Row | None:
        cur = self._conn.cursor()
        cur.execute(query, params)
        return cur.fetchone()

    def close(self) -> None:
        self._conn.close()

    # ------------------------------------------------------------------
    # Repository API
    async def save_progress(self, domain: str, progress: PersistedProgress) -> None:
        if not domain:
            return
        await asyncio.to_thread(
            self._execute,
            """
            INSERT INTO progress (storage_key, data, updated_at) VALUES (?, ?, ?)
            ON CONFLICT(storage_key) DO UPDATE SET data = excluded.data,
                updated_at = excluded.updated_at
            """,
            storage_key(domain),
            json.dumps(progress.to_dict()),
            utc_now(),
        )

    async def load_progress(self, domain: str) -> PersistedProgress | None:
        if not domain:
            return None
        row = await asyncio.to_thread(
            self._fetchone,
            "SELECT data FROM progress WHERE storage_key = ?",
            storage_key(domain),
        )
        if not row:
            return None
        try:
            data = json.loads(row["data"])
        except json.JSONDecodeError as exc:
            logger.error(f"Stored progress for {domain} is not valid JSON: {exc}")
            return None
        return parse_progress(data)

    async def clear_progress(self, domain: str) -> None:
        await asyncio.to_thread(
            self._execute,
            "DELETE FROM progress WHERE storage_key = ?",
            storage_key(domain),
        )
