"""TieredCache: read/write routing, expiry, fallback, and tier-health transitions."""

from app.core.constants import TIER_DURABLE, TIER_FAST
from app.domain.exceptions import SerializationError, TierUnavailableError
from app.infrastructure.cache.engine import TieredCache


class TestRoundTrip:
    async def test_set_then_get_returns_equal_value(self, tiered_cache, fake_redis) -> None:
        value = {"rows": [{"id": 1, "name": "a"}], "total": 1}
        assert await tiered_cache.set("test:k", value, 60) is True
        assert await tiered_cache.get("test:k") == value
        assert fake_redis.ttls["test:k"] == 60

    async def test_set_without_ttl_uses_default(self, tiered_cache, fake_redis) -> None:
        await tiered_cache.set("test:k", [1])
        assert fake_redis.ttls["test:k"] == 3600

    async def test_writes_go_to_fast_tier_only(self, tiered_cache, durable_store) -> None:
        await tiered_cache.set("test:k", 1, 60)
        assert durable_store.rows == {}

    async def test_missing_key_is_none(self, tiered_cache) -> None:
        assert await tiered_cache.get("test:absent") is None

    async def test_falsy_values_are_hits(self, tiered_cache) -> None:
        await tiered_cache.set("test:empty", [], 60)
        lookup = await tiered_cache.lookup("test:empty")
        assert lookup.hit is True
        assert lookup.value == []
        assert lookup.tier == TIER_FAST

    async def test_durable_only_round_trip(self, durable_only_cache, durable_store) -> None:
        assert await durable_only_cache.set("test:k", {"a": 1}, 60) is True
        assert await durable_only_cache.get("test:k") == {"a": 1}
        assert "test:k" in durable_store.rows


class TestExpiry:
    async def test_durable_entry_expires(self, durable_only_cache, clock) -> None:
        await durable_only_cache.set("test:k", "v", 120)
        clock.advance(119)
        assert await durable_only_cache.get("test:k") == "v"
        clock.advance(2)
        assert await durable_only_cache.get("test:k") is None

    async def test_ttl_zero_never_returned_by_durable(self, durable_only_cache, durable_store) -> None:
        await durable_only_cache.set("test:k", "v", 0)
        assert "test:k" in durable_store.rows
        assert await durable_only_cache.get("test:k") is None

    async def test_ttl_zero_on_fast_tier_deletes_existing(self, tiered_cache, fake_redis) -> None:
        await tiered_cache.set("test:k", "v", 60)
        await tiered_cache.set("test:k", "v2", 0)
        assert "test:k" not in fake_redis.data
        assert await tiered_cache.get("test:k") is None

    async def test_expired_rows_removed_by_purge(self, durable_only_cache, durable_store, clock) -> None:
        await durable_only_cache.set("test:old", 1, 10)
        await durable_only_cache.set("test:new", 2, 1000)
        clock.advance(11)
        assert await durable_only_cache.purge_expired() == 1
        assert list(durable_store.rows) == ["test:new"]


class TestFallback:
    async def test_fast_error_disables_tier_and_reads_durable(
        self, tiered_cache, fake_redis, durable_store, clock
    ) -> None:
        await durable_store.upsert("test:k", '"from-db"', clock.now.replace(year=2030))
        fake_redis.broken = True
        lookup = await tiered_cache.lookup("test:k")
        assert lookup.value == "from-db"
        assert lookup.tier == TIER_DURABLE
        assert lookup.attempted == [TIER_FAST, TIER_DURABLE]
        assert isinstance(lookup.errors[0], TierUnavailableError)
        assert tiered_cache.fast_tier_enabled is False

    async def test_fast_miss_falls_through_to_durable(self, tiered_cache, durable_store, clock) -> None:
        await durable_store.upsert("test:k", "[1, 2]", clock.now.replace(year=2030))
        assert await tiered_cache.get("test:k") == [1, 2]

    async def test_set_on_fast_error_writes_durable_same_call(
        self, tiered_cache, fake_redis, durable_store
    ) -> None:
        fake_redis.broken = True
        assert await tiered_cache.set("test:k", {"a": 1}, 60) is True
        assert "test:k" in durable_store.rows
        assert tiered_cache.fast_tier_enabled is False

    async def test_fallback_end_to_end_after_failure(self, tiered_cache, fake_redis) -> None:
        fake_redis.broken = True
        await tiered_cache.set("test:k", [1, 2, 3], 60)
        assert await tiered_cache.get("test:k") == [1, 2, 3]

    async def test_disabled_tier_not_retried(self, tiered_cache, fake_redis) -> None:
        fake_redis.broken = True
        await tiered_cache.get("test:a")
        calls = len(fake_redis.calls)
        await tiered_cache.get("test:b")
        await tiered_cache.set("test:b", 1)
        assert len(fake_redis.calls) == calls

    async def test_reconnect_re_enables_fast_tier(self, tiered_cache, fake_redis) -> None:
        fake_redis.broken = True
        await tiered_cache.get("test:a")
        assert await tiered_cache.reconnect() is False
        fake_redis.broken = False
        assert await tiered_cache.reconnect() is True
        await tiered_cache.set("test:a", 1)
        assert "test:a" in fake_redis.data

    async def test_fast_write_after_outage_drops_durable_copy(
        self, tiered_cache, fake_redis, durable_store, clock
    ) -> None:
        fake_redis.broken = True
        await tiered_cache.set("test:k", "old", 3600)
        assert "test:k" in durable_store.rows
        fake_redis.broken = False
        assert await tiered_cache.reconnect() is True

        assert await tiered_cache.set("test:k", "new", 60) is True
        assert "test:k" not in durable_store.rows
        fake_redis.data.pop("test:k")
        clock.advance(61)
        assert await tiered_cache.get("test:k") is None

    async def test_ttl_zero_after_outage_is_not_resurrected(
        self, tiered_cache, fake_redis, durable_store
    ) -> None:
        fake_redis.broken = True
        await tiered_cache.set("test:k", "old", 3600)
        fake_redis.broken = False
        await tiered_cache.reconnect()

        assert await tiered_cache.set("test:k", "gone", 0) is True
        assert "test:k" not in durable_store.rows
        assert await tiered_cache.get("test:k") is None

    async def test_fast_write_succeeds_when_durable_evict_fails(
        self, tiered_cache, fake_redis, durable_store
    ) -> None:
        durable_store.broken = True
        assert await tiered_cache.set("test:k", 1, 60) is True
        assert "test:k" in fake_redis.data

    async def test_no_fallback_returns_false_and_none(self, fast_tier, durable_store, fake_redis) -> None:
        cache = TieredCache(
            fast_tier, durable_store, fallback_to_durable=False, fast_tier_enabled=True
        )
        fake_redis.broken = True
        assert await cache.set("k", 1) is False
        assert await cache.get("k") is None
        assert durable_store.rows == {}

    async def test_both_tiers_down_is_degraded_miss(
        self, tiered_cache, fake_redis, durable_store
    ) -> None:
        fake_redis.broken = True
        durable_store.broken = True
        lookup = await tiered_cache.lookup("test:k")
        assert lookup.hit is False
        assert lookup.degraded is True
        assert len(lookup.errors) == 2
        assert await tiered_cache.set("test:k", 1) is False


class TestSerialization:
    async def test_corrupt_payload_is_a_miss(self, tiered_cache, fake_redis) -> None:
        fake_redis.data["test:k"] = "{not json"
        lookup = await tiered_cache.lookup("test:k")
        assert lookup.hit is False
        assert isinstance(lookup.errors[0], SerializationError)
        # A bad payload is not a connection failure.
        assert tiered_cache.fast_tier_enabled is True

    async def test_unserializable_value_is_failed_write(self, tiered_cache, durable_store) -> None:
        result = await tiered_cache.set_result("test:k", object(), 60)
        assert result.value is False
        assert isinstance(result.error, SerializationError)
        assert durable_store.rows == {}
        assert tiered_cache.fast_tier_enabled is True


class TestDelete:
    async def test_delete_removes_from_both_tiers(self, tiered_cache, fake_redis, durable_store, clock) -> None:
        await tiered_cache.set("test:k", 1, 60)
        await durable_store.upsert("test:k", "1", clock.now.replace(year=2030))
        assert await tiered_cache.delete("test:k") is True
        assert "test:k" not in fake_redis.data
        assert "test:k" not in durable_store.rows
        assert await tiered_cache.get("test:k") is None

    async def test_delete_durable_only(self, durable_only_cache) -> None:
        await durable_only_cache.set("test:k", 1, 60)
        assert await durable_only_cache.delete("test:k") is True
        assert await durable_only_cache.delete("test:k") is False

    async def test_delete_never_raises(self, tiered_cache, fake_redis, durable_store) -> None:
        fake_redis.broken = True
        durable_store.broken = True
        assert await tiered_cache.delete("test:k") is False


class TestClearPattern:
    async def test_clears_matching_keys_under_prefix(self, tiered_cache, fake_redis) -> None:
        await tiered_cache.set("test:user:1", 1)
        await tiered_cache.set("test:user:2", 2)
        await tiered_cache.set("test:order:1", 3)
        assert await tiered_cache.clear_pattern("user:*") == 2
        assert list(fake_redis.data) == ["test:order:1"]

    async def test_durable_only_degrades_to_purge(self, durable_only_cache, clock) -> None:
        await durable_only_cache.set("test:user:1", 1, 10)
        await durable_only_cache.set("test:user:2", 2, 1000)
        clock.advance(20)
        assert await durable_only_cache.clear_pattern("user:*") == 1
        assert await durable_only_cache.get("test:user:2") == 2

    async def test_durable_only_never_negative(self, durable_only_cache) -> None:
        assert await durable_only_cache.clear_pattern("user:*") >= 0

    async def test_fast_error_falls_back_to_purge(self, tiered_cache, fake_redis) -> None:
        fake_redis.broken = True
        assert await tiered_cache.clear_pattern("*") == 0
        assert tiered_cache.fast_tier_enabled is False

    async def test_no_tiers_returns_zero(self) -> None:
        assert await TieredCache().clear_pattern("*") == 0


def test_derive_key_applies_engine_prefix(tiered_cache) -> None:
    assert tiered_cache.derive_key("e", {"a": 1}).startswith("test:")
    assert tiered_cache.endpoint_key("GET", "/odoo/x").startswith("test:")


def test_fast_tier_disabled_until_connected(fast_tier, durable_store) -> None:
    cache = TieredCache(fast_tier, durable_store)
    assert cache.fast_tier_enabled is False
    assert cache.durable_enabled is True
