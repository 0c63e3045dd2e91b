"""Synthetic attack traffic for exercising dashboards and analytics."""

import random
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence

from shield_guard.attack_log.recorder import AttackLogger
from shield_guard.database.models import RequestContext, isoformat
from shield_guard.reputation.manager import ReputationLedger
from shield_guard.throttling.manager import RateLimiter
from shield_guard.utils.logger import get_logger

SIMULATED_ATTACK_TYPES = (
    "rate_limit_exceeded",
    "bot_detected",
    "suspicious_patterns",
    "blacklisted_ip",
    "test_attack",
)

ATTACK_PENALTIES = {
    "rate_limit_exceeded": 10,
    "bot_detected": 15,
    "blacklisted_ip": 50,
}
DEFAULT_PENALTY = 5

SAMPLE_SOURCES = ("192.168.1.100", "10.0.0.50", "172.16.0.25", "203.0.113.10", "198.51.100.5")
SAMPLE_COUNTRIES = ("US", "CN", "RU", "DE", "FR", "JP", "GB", "CA", "AU", "BR")
SAMPLE_USER_AGENT = "Mozilla/5.0 (compatible; TestBot/1.0)"

SIMULATED_BURST = 50


class AttackSimulator:
    """Writes synthetic attacks through the real ledger, limiter and logger."""

    def __init__(
        self,
        ledger: ReputationLedger,
        rate_limiter: RateLimiter,
        attack_logger: AttackLogger,
        rng: Optional[random.Random] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.ledger = ledger
        self.rate_limiter = rate_limiter
        self.attack_logger = attack_logger
        self.rng = rng or random.Random()
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.logger = get_logger("core.simulation")

    async def simulate_attack(self, context: RequestContext, attack_type: Optional[str] = None) -> Dict[str, Any]:
        """Log one attack from ``context``'s source, penalize it and inflate its rate window.

        Raises:
            StorageError: If the rate window could not be written
        """
        attack_type = attack_type or self.rng.choice(SIMULATED_ATTACK_TYPES)
        await self.attack_logger.record(context, attack_type)
        reputation = await self.ledger.apply_delta(
            context.source_id, -ATTACK_PENALTIES.get(attack_type, DEFAULT_PENALTY)
        )
        window = await self.rate_limiter.inflate(context.source_id, SIMULATED_BURST)
        self.logger.info(f"Simulated {attack_type!r} from {context.source_id}")
        return {
            "attack_type": attack_type,
            "source_id": context.source_id,
            "reputation": reputation.to_json_dict(),
            "rate_limit": window.to_json_dict(),
        }

    async def generate_sample_data(
        self, count: int = 50, sources: Sequence[str] = SAMPLE_SOURCES
    ) -> List[Dict[str, Any]]:
        """Spread ``count`` attacks over the last 24 hours across ``sources``."""
        now = self.clock()
        generated = []
        for _ in range(count):
            occurred = now - timedelta(seconds=self.rng.uniform(0, 24 * 60 * 60))
            source = self.rng.choice(list(sources))
            attack_type = self.rng.choice(SIMULATED_ATTACK_TYPES)
            context = RequestContext(
                source_id=source,
                path="/api/test",
                method="GET",
                user_agent=SAMPLE_USER_AGENT,
                country=self.rng.choice(SAMPLE_COUNTRIES),
                request_id=str(uuid.uuid4()),
                timestamp=occurred,
            )
            entry = await self.attack_logger.record(context, attack_type)
            await self.ledger.record_violation(source, self.rng.randint(1, 10), isoformat(occurred))
            if entry is not None:
                generated.append(entry.to_json_dict())
        self.logger.info(f"Generated {len(generated)} sample attack logs")
        return generated
