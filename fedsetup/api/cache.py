"""Short-lived cache that collapses concurrent identical fetches."""

from __future__ import annotations

import asyncio
import copy
import logging
import time
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple, TypeVar

from ..constants import DEFAULT_CACHE_TTL_MS

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RequestCache:
    """Deduplicate in-flight fetches per key and cache results for a TTL.

    At most one fetch per key runs at a time; every caller arriving while it
    is in flight receives the same result, or the same error. Successful
    results are cached until ``now + ttl_ms``; failures are never cached.
    Callers always receive a deep copy so they cannot mutate the cached value.
    """

    def __init__(self, clock: Optional[Callable[[], float]] = None) -> None:
        self._clock = clock or time.monotonic
        self._entries: Dict[str, Tuple[Any, float]] = {}
        self._pending: Dict[str, asyncio.Future] = {}

    async def request(
        self,
        key: str,
        fetcher: Callable[[], Awaitable[T]],
        ttl_ms: int = DEFAULT_CACHE_TTL_MS,
    ) -> T:
        entry = self._entries.get(key)
        if entry is not None:
            data, expires = entry
            if expires > self._clock():
                return copy.deepcopy(data)
            del self._entries[key]

        pending = self._pending.get(key)
        if pending is not None:
            logger.debug(f"Joining in-flight request for {key}")
            return copy.deepcopy(await asyncio.shield(pending))

        future: asyncio.Future = asyncio.get_running_loop().create_future()
        self._pending[key] = future
        try:
            data = await fetcher()
        except asyncio.CancelledError:
            self._pending.pop(key, None)
            future.cancel()
            raise
        except Exception as exc:
            self._pending.pop(key, None)
            future.set_exception(exc)
            # Mark retrieved so an unobserved failure does not warn on GC.
            future.exception()
            raise
        self._entries[key] = (data, self._clock() + ttl_ms / 1000)
        self._pending.pop(key, None)
        future.set_result(data)
        return copy.deepcopy(data)

    def invalidate(self, prefix: str = "") -> None:
        """Drop cached entries whose key starts with ``prefix``."""
        for key in [k for k in self._entries if k.startswith(prefix)]:
            del self._entries[key]

    def clear(self) -> None:
        self._entries.clear()
        self._pending.clear()

    def __len__(self) -> int:
        return len(self._entries)
