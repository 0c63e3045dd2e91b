"""Unit tests for RateLimiter fixed-window counters."""

import json

from shield_guard.core.keys import rate_key
from shield_guard.throttling.manager import HOUR, MINUTE, RateLimiter, window_index, window_start

SOURCE = "198.51.100.5"


def make_limiter(store, ttl_manager, clock, per_minute=5, per_hour=100):
    return RateLimiter(
        store,
        ttl_manager,
        {"max_requests_per_minute": per_minute, "max_requests_per_hour": per_hour},
        clock=clock,
    )


def test_window_indexing_is_fixed(clock):
    assert window_index(120.0, MINUTE) == 2
    assert window_index(179.9, MINUTE) == 2
    assert window_start(179.9, MINUTE) == 120
    assert window_start(7199.0, HOUR) == 3600


async def test_check_does_not_mutate(store, ttl_manager, clock):
    limiter = make_limiter(store, ttl_manager, clock)
    for _ in range(10):
        snapshot = await limiter.check(SOURCE)
    assert snapshot.requests == 0
    assert snapshot.blocked is False
    assert len(store) == 0


async def test_blocks_starting_at_sixth_request_with_limit_five(store, ttl_manager, clock):
    limiter = make_limiter(store, ttl_manager, clock, per_minute=5)
    for n in range(1, 6):
        snapshot = await limiter.check(SOURCE)
        assert snapshot.blocked is False, f"request {n} should be admitted"
        await limiter.commit(SOURCE)
    snapshot = await limiter.check(SOURCE)
    assert snapshot.requests == 5
    assert snapshot.blocked is True


async def test_new_minute_window_resets_minute_count(store, ttl_manager, clock):
    limiter = make_limiter(store, ttl_manager, clock, per_minute=2)
    await limiter.commit(SOURCE)
    await limiter.commit(SOURCE)
    assert (await limiter.check(SOURCE)).blocked is True
    clock.advance(MINUTE)
    snapshot = await limiter.check(SOURCE)
    assert snapshot.requests == 0
    assert snapshot.hour_requests == 2
    assert snapshot.blocked is False


async def test_hour_limit_blocks_independently(store, ttl_manager, clock):
    limiter = make_limiter(store, ttl_manager, clock, per_minute=100, per_hour=3)
    for _ in range(3):
        await limiter.commit(SOURCE)
        clock.advance(MINUTE)
    snapshot = await limiter.check(SOURCE)
    assert snapshot.requests == 0
    assert snapshot.blocked is True


async def test_windows_expire_after_their_ttl(store, ttl_manager, clock):
    limiter = make_limiter(store, ttl_manager, clock)
    now = clock()
    await limiter.commit(SOURCE)
    minute_key = rate_key(SOURCE, "minute", window_index(now, MINUTE))
    hour_key = rate_key(SOURCE, "hour", window_index(now, HOUR))
    assert json.loads(await store.get(minute_key))["requests"] == 1
    clock.advance(121)
    assert await store.get(minute_key) is None
    assert await store.get(hour_key) is not None
    clock.advance(7200)
    assert await store.get(hour_key) is None


async def test_check_fails_open_when_store_unreadable(make_faulty_store, ttl_manager, clock):
    limiter = make_limiter(make_faulty_store(failing={"get"}), ttl_manager, clock, per_minute=1)
    snapshot = await limiter.check(SOURCE)
    assert snapshot.requests == 0
    assert snapshot.blocked is False


async def test_commit_swallows_write_failure(make_faulty_store, ttl_manager, clock):
    limiter = make_limiter(make_faulty_store(failing={"put"}), ttl_manager, clock)
    await limiter.commit(SOURCE)


async def test_inflate_marks_minute_window_blocked(store, ttl_manager, clock):
    limiter = make_limiter(store, ttl_manager, clock, per_minute=10)
    counter = await limiter.inflate(SOURCE, 50)
    assert counter.requests == 50
    assert counter.blocked is True
    assert (await limiter.check(SOURCE)).blocked is True


async def test_stored_blocked_flag_does_not_override_limit(store, ttl_manager, clock):
    limiter = make_limiter(store, ttl_manager, clock, per_minute=60)
    counter = await limiter.inflate(SOURCE, 50)
    assert counter.blocked is True
    snapshot = await limiter.check(SOURCE)
    assert snapshot.requests == 50
    assert snapshot.blocked is False
