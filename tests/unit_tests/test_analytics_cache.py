from shield_guard.cache.engine import AnalyticsCache, CacheEntry


def test_cache_entry_freshness():
    entry = CacheEntry(data={}, timestamp=100.0, ttl=30)
    assert entry.is_fresh(129.9)
    assert not entry.is_fresh(130.0)


def test_get_set_and_stats(clock):
    cache = AnalyticsCache(clock=clock)
    assert cache.get("metrics") is None
    cache.set("metrics", {"blocked_requests": 3}, ttl=30)
    assert cache.get("metrics") == {"blocked_requests": 3}
    stats = cache.get_stats()
    assert stats["hits"] == 1
    assert stats["misses"] == 1
    assert stats["entries"] == 1


def test_entries_expire(clock):
    cache = AnalyticsCache(clock=clock)
    cache.set("attack_data", [1], ttl=60)
    clock.advance(30)
    assert cache.age("attack_data") == 30
    clock.advance(30)
    assert cache.get("attack_data") is None
    assert cache.get_stats()["expired"] == 1
    assert cache.age("attack_data") is None


def test_clear_single_and_all(clock):
    cache = AnalyticsCache(clock=clock)
    cache.set("a", 1, ttl=60)
    cache.set("b", 2, ttl=60)
    assert cache.clear("a") == 1
    assert cache.clear("a") == 0
    assert cache.get("b") == 2
    assert cache.clear() == 1
    assert cache.get("b") is None
