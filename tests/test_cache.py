"""
Tests for the TTL cache.
"""
from core.cache import CacheManager


class TestCacheRoundTrip:
    def test_set_then_get_returns_value(self, cache):
        cache.set("spreads", {"count": 3}, ttl_seconds=30)
        assert cache.get("spreads") == {"count": 3}

    def test_missing_key_returns_none(self, cache):
        assert cache.get("nope") is None

    def test_value_served_until_ttl_boundary(self, cache, clock):
        cache.set("price", 251.5, ttl_seconds=30)
        clock.advance(30)
        assert cache.get("price") == 251.5

    def test_expired_value_is_absent_and_deleted(self, cache, clock):
        cache.set("price", 251.5, ttl_seconds=30)
        clock.advance(30.5)

        assert cache.get("price") is None
        assert len(cache) == 0

    def test_set_overwrites_previous_entry_and_resets_ttl(self, cache, clock):
        cache.set("price", 250.0, ttl_seconds=30)
        clock.advance(20)
        cache.set("price", 252.0, ttl_seconds=30)
        clock.advance(20)

        assert cache.get("price") == 252.0


class TestCleanup:
    def test_cleanup_removes_only_expired(self, cache, clock):
        cache.set("news", ["headline"], ttl_seconds=60)
        cache.set("price", 250.0, ttl_seconds=5)
        cache.set("calendar", [], ttl_seconds=4 * 60 * 60)
        clock.advance(61)

        removed = cache.cleanup()

        assert removed == 2
        assert len(cache) == 1
        assert cache.get("calendar") == []

    def test_cleanup_twice_is_idempotent(self, cache, clock):
        cache.set("a", 1, ttl_seconds=1)
        cache.set("b", 2, ttl_seconds=100)
        clock.advance(5)

        assert cache.cleanup() == 1
        size = len(cache)

        assert cache.cleanup() == 0
        assert len(cache) == size
        assert cache.get("b") == 2

    def test_get_rechecks_expiry_without_cleanup(self, cache, clock):
        cache.set("spreads", [1, 2], ttl_seconds=30)
        clock.advance(31)
        assert cache.get("spreads") is None


class TestHelpers:
    def test_get_or_set_calls_factory_once(self, cache):
        calls = []

        def factory():
            calls.append(1)
            return "fresh"

        assert cache.get_or_set("k", factory, ttl_seconds=30) == "fresh"
        assert cache.get_or_set("k", factory, ttl_seconds=30) == "fresh"
        assert len(calls) == 1

    def test_get_or_set_does_not_cache_none(self, cache):
        assert cache.get_or_set("k", lambda: None) is None
        assert len(cache) == 0

    def test_make_key_is_stable_and_order_independent(self):
        a = CacheManager.make_key("TSLA", "chain", expirations=4, side="call")
        b = CacheManager.make_key("TSLA", "chain", side="call", expirations=4)
        c = CacheManager.make_key("TSLA", "quote")

        assert a == b
        assert a != c

    def test_instances_do_not_share_state(self, tmp_path, clock):
        first = CacheManager(cache_dir=tmp_path / "one", clock=clock)
        second = CacheManager(cache_dir=tmp_path / "two", clock=clock)
        try:
            first.set("price", 250.0, ttl_seconds=30)
            assert second.get("price") is None
        finally:
            first.close()
            second.close()

    def test_clear_and_stats(self, cache):
        cache.set("a", 1, ttl_seconds=30)
        assert cache.get_stats()["size"] == 1

        cache.clear()
        assert cache.get_stats()["size"] == 0
