"""Request coalescing (single-flight) for concurrent cache misses.

When several coroutines miss on the same key at once, only the first one
(the leader) starts the fetch, as a task of its own; the leader and every
waiter await that task through a shield and receive the same result or the
same exception. Cancelling any caller, the leader included, leaves the fetch
running for the rest. The task is dropped from the in-flight table as soon
as it settles, so the next miss starts a new fetch.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

logger = logging.getLogger(__name__)


class RequestCoalescer:
    """Map of key -> pending task for in-flight fetches.

    Usage:
        coalescer = RequestCoalescer()
        value, shared = await coalescer.run(key, fetch)
    """

    def __init__(self) -> None:
        self._in_flight: dict[str, asyncio.Task[Any]] = {}
        self._coalesced = 0

    async def run(
        self,
        key: str,
        fetch: Callable[[], Awaitable[Any]],
    ) -> tuple[Any, bool]:
        """Join an in-flight fetch for key or start a new one.

        Returns:
            (result, shared) where shared is True when this caller reused
            another caller's fetch.

        Raises:
            Whatever fetch raises, to the leader and every waiter.
        """
        pending = self._in_flight.get(key)
        if pending is not None:
            self._coalesced += 1
            logger.debug("Coalescing request for %s", key)
            return await asyncio.shield(pending), True

        task: asyncio.Task[Any] = asyncio.ensure_future(fetch())
        self._in_flight[key] = task
        task.add_done_callback(lambda t: self._settle(key, t))
        # shield: a cancelled caller must not cancel the shared fetch
        return await asyncio.shield(task), False

    def _settle(self, key: str, task: asyncio.Task[Any]) -> None:
        if self._in_flight.get(key) is task:
            del self._in_flight[key]
        if not task.cancelled():
            # mark retrieved so a failure nobody awaited is not logged at GC
            task.exception()

    @property
    def active_requests(self) -> int:
        """Number of currently in-flight fetches."""
        return len(self._in_flight)

    def get_stats(self) -> dict[str, Any]:
        return {
            "active_requests": len(self._in_flight),
            "active_keys": list(self._in_flight),
            "coalesced": self._coalesced,
        }
