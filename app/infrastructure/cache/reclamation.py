"""Periodic reclamation of expired durable cache rows.

The fast tier expires keys natively; only the durable store needs sweeping.
A failed sweep is logged and the loop keeps going. There is no overlap
guard: a sweep is one DELETE, idempotent and short next to the interval.
"""

from __future__ import annotations

import asyncio
import logging

from app.infrastructure.cache.engine import TieredCache

logger = logging.getLogger(__name__)


class ExpiredEntryReaper:
    """Background task calling TieredCache.purge_expired_result every interval."""

    def __init__(self, cache: TieredCache, interval_seconds: float = 30 * 60) -> None:
        self._cache = cache
        self.interval_seconds = interval_seconds
        self._task: asyncio.Task[None] | None = None
        self.runs = 0
        self.last_removed = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run_once(self) -> int:
        """Run one sweep; returns rows removed (0 on failure)."""
        self.runs += 1
        try:
            result = await self._cache.purge_expired_result()
        except Exception:
            logger.exception("Cache cleanup error")
            return 0
        if result.error is not None:
            logger.error("Cache cleanup error: %s", result.error.message)
            return 0
        self.last_removed = int(result.value or 0)
        return self.last_removed

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            await self.run_once()

    def start(self) -> None:
        """Start the sweep loop on the running event loop (idempotent)."""
        if self.running:
            return
        self._task = asyncio.create_task(self._loop(), name="cache-reaper")
        logger.info("Cache reaper started (interval: %ss)", self.interval_seconds)

    async def stop(self) -> None:
        """Cancel the sweep loop and wait for it to finish."""
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("Cache reaper stopped")
