"""
Project activity cache.

Memoizes "is this project allowed to ingest" for a fixed TTL in front of a
slow status lookup. Expiry is lazy: stale entries are dropped and refreshed
on the next access for that project.
"""

import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from functools import partial
from typing import Dict, Optional

ACTIVE_STATUS = "active"

StatusQuery = Callable[[str], Awaitable[Optional[str]]]
Clock = Callable[[], float]


def _monotonic_ms() -> float:
    return time.monotonic() * 1000


@dataclass(frozen=True)
class CacheEntry:
    """Cached activity flag and the time (ms) it was written."""

    active: bool
    written_at_ms: float


class ProjectActivityCache:
    """
    TTL cache mapping project id to an "active" flag.

    An entry of age ``< ttl_ms`` is a hit; ``>= ttl_ms`` is a miss that
    calls ``query_status`` again. Concurrent misses for the same project
    share a single in-flight lookup. A failing lookup is not cached and the
    error propagates to every waiter.
    """

    def __init__(
        self,
        query_status: StatusQuery,
        ttl_ms: int = 30_000,
        now: Clock | None = None,
    ) -> None:
        """
        Initialize the cache.

        Args:
            query_status: Async callable returning a project's status string
                (or None for unknown projects)
            ttl_ms: Entry lifetime in milliseconds
            now: Clock returning the current time in milliseconds
        """
        self.ttl_ms = ttl_ms
        self._query_status = query_status
        self._now = now or _monotonic_ms
        self._entries: Dict[str, CacheEntry] = {}
        self._pending: Dict[str, asyncio.Future[Optional[str]]] = {}

    async def is_project_active(self, project_id: str) -> bool:
        """
        Return whether ``project_id`` may ingest events.

        Raises:
            Whatever ``query_status`` raises on a cache miss
        """
        now_ms = self._now()
        entry = self._entries.get(project_id)
        if entry is not None:
            if now_ms - entry.written_at_ms < self.ttl_ms:
                return entry.active
            del self._entries[project_id]

        pending = self._pending.get(project_id)
        if pending is None:
            pending = asyncio.ensure_future(self._query_status(project_id))
            self._pending[project_id] = pending
            pending.add_done_callback(partial(self._settle, project_id, now_ms))

        status = await asyncio.shield(pending)
        return status == ACTIVE_STATUS

    def _settle(
        self, project_id: str, now_ms: float, lookup: "asyncio.Future[Optional[str]]"
    ) -> None:
        failed = lookup.cancelled() or lookup.exception() is not None
        # Lookups detached by invalidate() or clear() are not written back
        if self._pending.get(project_id) is not lookup:
            return
        del self._pending[project_id]
        if failed:
            return
        self._entries[project_id] = CacheEntry(
            active=lookup.result() == ACTIVE_STATUS, written_at_ms=now_ms
        )

    def invalidate(self, project_id: str) -> None:
        """Drop the cached flag for one project and detach any in-flight lookup."""
        self._entries.pop(project_id, None)
        self._pending.pop(project_id, None)

    def clear(self) -> None:
        """Drop all cached flags and detach in-flight lookups."""
        self._entries.clear()
        self._pending.clear()

    def __len__(self) -> int:
        return len(self._entries)
