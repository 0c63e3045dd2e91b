"""Tests for synthetic attack generation."""

import random
from datetime import datetime, timedelta, timezone

import pytest

from shield_guard.attack_log.recorder import AttackLogger
from shield_guard.core.simulation import (
    SAMPLE_SOURCES,
    SIMULATED_ATTACK_TYPES,
    SIMULATED_BURST,
    AttackSimulator,
)
from shield_guard.database.models import RequestContext
from shield_guard.reputation.manager import ReputationLedger
from shield_guard.throttling.manager import RateLimiter

SOURCE = "192.0.2.44"


@pytest.fixture
def simulator(store, ttl_manager, clock):
    ledger = ReputationLedger(store, ttl_manager, clock=clock)
    limiter = RateLimiter(store, ttl_manager, {"max_requests_per_minute": SIMULATED_BURST}, clock=clock)
    return AttackSimulator(
        ledger,
        limiter,
        AttackLogger(store, ttl_manager),
        rng=random.Random(7),
        clock=lambda: datetime.fromtimestamp(clock(), timezone.utc),
    )


async def test_simulate_attack_penalizes_and_inflates(simulator):
    await simulator.ledger.apply_delta(SOURCE, 80)
    result = await simulator.simulate_attack(RequestContext(source_id=SOURCE), "bot_detected")
    assert result["attack_type"] == "bot_detected"
    assert result["reputation"]["score"] == 65
    assert result["rate_limit"]["requests"] == SIMULATED_BURST
    assert result["rate_limit"]["blocked"] is True
    assert (await simulator.rate_limiter.check(SOURCE)).blocked is True
    recent = await simulator.attack_logger.get_recent_attacks(SOURCE)
    assert recent[0].attack_type == "bot_detected"


@pytest.mark.parametrize(
    "attack_type,expected_score",
    [("rate_limit_exceeded", 90), ("blacklisted_ip", 50), ("test_attack", 95), ("suspicious_patterns", 95)],
)
async def test_simulated_penalties(simulator, attack_type, expected_score):
    await simulator.ledger.apply_delta(SOURCE, 100)
    result = await simulator.simulate_attack(RequestContext(source_id=SOURCE), attack_type)
    assert result["reputation"]["score"] == expected_score


async def test_random_attack_type_is_known(simulator):
    result = await simulator.simulate_attack(RequestContext(source_id=SOURCE))
    assert result["attack_type"] in SIMULATED_ATTACK_TYPES


async def test_generate_sample_data_spreads_over_last_day(simulator, store, clock):
    generated = await simulator.generate_sample_data(count=20)
    assert len(generated) == 20
    now = datetime.fromtimestamp(clock(), timezone.utc)
    for entry in generated:
        occurred = datetime.fromisoformat(entry["timestamp"].replace("Z", "+00:00"))
        assert now - timedelta(hours=24) <= occurred <= now
        assert entry["ip"] in SAMPLE_SOURCES
        assert entry["attackType"] in SIMULATED_ATTACK_TYPES
    assert len((await store.list("attack_")).keys) == 20
    reputations = await store.list("reputation_")
    assert 1 <= len(reputations.keys) <= len(SAMPLE_SOURCES)


async def test_generate_sample_data_custom_sources(simulator):
    generated = await simulator.generate_sample_data(count=5, sources=["10.9.9.9"])
    assert {entry["ip"] for entry in generated} == {"10.9.9.9"}
    record = await simulator.ledger.get("10.9.9.9")
    assert record.attack_count == 5
