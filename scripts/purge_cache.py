"""Purge expired durable cache rows, or clear keys by pattern.

Usage:
    python -m scripts.purge_cache            # one reclamation pass
    python -m scripts.purge_cache 'odoo:*'   # clear keys matching prefix+pattern
Connects Redis when REDIS_HOST is set; otherwise works on the durable store only
(where a pattern clear degrades to purging expired rows).
"""

import asyncio
import sys

from app.core.config import get_settings
from app.infrastructure.cache.service import CacheService
from app.shared.telemetry.logging import setup_logging


async def main() -> None:
    settings = get_settings()
    setup_logging()
    cache = CacheService.from_settings(settings)
    await cache.connect(start_reaper=False)
    try:
        if len(sys.argv) > 1:
            pattern = sys.argv[1]
            cleared = await cache.clear_pattern(pattern)
            print(f"Cleared {cleared} entr{'y' if cleared == 1 else 'ies'} matching {pattern!r}")
        else:
            removed = await cache.purge_expired()
            print(f"Done. Expired rows removed: {removed}")
    finally:
        await cache.shutdown()


if __name__ == "__main__":
    asyncio.run(main())
