"""Health check and stats reports."""

from app.infrastructure.cache.cache_aside import CacheAside
from app.infrastructure.cache.diagnostics import CacheDiagnostics, parse_redis_info
from app.infrastructure.cache.engine import TieredCache


def test_parse_redis_info_skips_headers_and_blanks() -> None:
    text = "# Memory\r\nused_memory:1024\r\n\r\nused_memory_human:1.00K\r\nmaxmemory_policy:noeviction\r\n"
    assert parse_redis_info(text) == {
        "used_memory": "1024",
        "used_memory_human": "1.00K",
        "maxmemory_policy": "noeviction",
    }


def test_parse_redis_info_keeps_colons_in_values() -> None:
    assert parse_redis_info("executable:/usr/bin/redis:server") == {
        "executable": "/usr/bin/redis:server"
    }


class TestHealthCheck:
    async def test_both_tiers_up(self, tiered_cache) -> None:
        report = await CacheDiagnostics(tiered_cache).health_check()
        assert report["status"] == "healthy"
        assert report["tiers"]["fast"]["connected"] is True
        assert report["tiers"]["durable"]["available"] is True
        assert report["timestamp"]

    async def test_fast_down_durable_up_is_healthy(self, tiered_cache, fake_redis) -> None:
        fake_redis.broken = True
        report = await CacheDiagnostics(tiered_cache).health_check()
        assert report["status"] == "healthy"
        assert report["tiers"]["fast"]["connected"] is False
        assert "error" in report["tiers"]["fast"]
        assert report["tiers"]["fast"]["enabled"] is False

    async def test_both_down_is_unhealthy(self, tiered_cache, fake_redis, durable_store) -> None:
        fake_redis.broken = True
        durable_store.broken = True
        report = await CacheDiagnostics(tiered_cache).health_check()
        assert report["status"] == "unhealthy"
        assert "error" in report["tiers"]["durable"]

    async def test_nothing_configured_is_unhealthy(self) -> None:
        report = await CacheDiagnostics(TieredCache()).health_check()
        assert report["status"] == "unhealthy"
        assert report["tiers"]["fast"]["configured"] is False


class TestStats:
    async def test_full_report(self, tiered_cache) -> None:
        await tiered_cache.set("test:a", 1)
        stats = await CacheDiagnostics(tiered_cache, CacheAside(tiered_cache)).get_stats()
        assert stats["fast_tier"]["key_count"] == 1
        assert stats["fast_tier"]["memory"]["used_memory_human"] == "1.00K"
        assert stats["durable"]["total_entries"] == 0
        assert stats["config"] == {
            "default_ttl": 3600,
            "key_prefix": "test:",
            "fallback_to_durable": True,
        }
        assert stats["requests"]["hits"] == 0

    async def test_probe_failures_give_partial_report(
        self, tiered_cache, fake_redis, durable_store
    ) -> None:
        fake_redis.broken = True
        durable_store.broken = True
        stats = await CacheDiagnostics(tiered_cache).get_stats()
        assert "error" in stats["fast_tier"]
        assert "error" in stats["durable"]
        assert "requests" not in stats
