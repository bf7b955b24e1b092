"""Per-session debug log with live subscribers.

Entries are kept newest first in a bounded buffer per session and fanned
out to subscriber queues. :meth:`ServerLogger.stream` renders them as
server-sent-event frames; serving those frames over HTTP is left to the
embedding application.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections import defaultdict, deque
from typing import AsyncIterator, Deque, Dict, List, Optional, Set

from .constants import DEFAULT_RECENT_LOGS, MAX_LOGS_PER_SESSION
from .contracts import LogEntry

logger = logging.getLogger(__name__)

DEFAULT_SESSION = "default"


def format_sse(entry: LogEntry) -> str:
    return f"data: {json.dumps(entry.to_dict())}\n\n"


class ServerLogger:
    def __init__(self, max_entries: int = MAX_LOGS_PER_SESSION) -> None:
        self._max_entries = max_entries
        self._logs: Dict[str, Deque[LogEntry]] = defaultdict(
            lambda: deque(maxlen=self._max_entries)
        )
        self._subscribers: Dict[str, Set[asyncio.Queue]] = defaultdict(set)

    def log(self, entry: LogEntry, session_id: str = DEFAULT_SESSION) -> LogEntry:
        self._logs[session_id].appendleft(entry)
        for queue in list(self._subscribers.get(session_id, ())):
            queue.put_nowait(entry)
        return entry

    def get_recent_logs(
        self, session_id: str = DEFAULT_SESSION, count: int = DEFAULT_RECENT_LOGS
    ) -> List[LogEntry]:
        return list(self._logs.get(session_id, ()))[:count]

    def subscribe(self, session_id: str = DEFAULT_SESSION) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue()
        self._subscribers[session_id].add(queue)
        return queue

    def unsubscribe(self, session_id: str, queue: asyncio.Queue) -> None:
        subscribers = self._subscribers.get(session_id)
        if subscribers is None:
            return
        subscribers.discard(queue)
        if not subscribers:
            del self._subscribers[session_id]

    def subscriber_count(self, session_id: str = DEFAULT_SESSION) -> int:
        return len(self._subscribers.get(session_id, ()))

    def clear(self, session_id: Optional[str] = None) -> None:
        if session_id is None:
            self._logs.clear()
        else:
            self._logs.pop(session_id, None)

    async def stream(
        self,
        session_id: str = DEFAULT_SESSION,
        include_recent: bool = True,
    ) -> AsyncIterator[str]:
        """Yield SSE frames: recent entries oldest first, then live ones.

        The subscription is released when the consumer stops iterating or
        the surrounding task is cancelled.
        """
        queue = self.subscribe(session_id)
        try:
            if include_recent:
                for entry in reversed(self.get_recent_logs(session_id)):
                    yield format_sse(entry)
            while True:
                entry = await queue.get()
                yield format_sse(entry)
        finally:
            self.unsubscribe(session_id, queue)


class ServerLogHandler(logging.Handler):
    """Forward stdlib log records into a :class:`ServerLogger`."""

    _LEVELS = {
        logging.DEBUG: "debug",
        logging.INFO: "info",
        logging.WARNING: "warn",
        logging.ERROR: "error",
        logging.CRITICAL: "error",
    }

    def __init__(
        self,
        server_logger: ServerLogger,
        session_id: str = DEFAULT_SESSION,
        category: str = "system",
        level: int = logging.INFO,
    ) -> None:
        super().__init__(level)
        self.server_logger = server_logger
        self.session_id = session_id
        self.category = category

    def emit(self, record: logging.LogRecord) -> None:
        try:
            entry = LogEntry(
                level=self._LEVELS.get(record.levelno, "info"),
                category=getattr(record, "category", self.category),
                provider=getattr(record, "provider", None),
                metadata={"logger": record.name, "message": record.getMessage()},
            )
            self.server_logger.log(entry, self.session_id)
        except Exception:
            self.handleError(record)
