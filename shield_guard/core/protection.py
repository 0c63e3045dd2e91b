"""Protection orchestration: one allow/deny/challenge decision per request."""

from typing import Optional

from shield_guard.database.models import ProtectionDecision, RateLimitSnapshot, ReputationRecord, RequestContext
from shield_guard.reputation.manager import ReputationLedger
from shield_guard.security.detectors import BotDetector, SuspiciousPatternDetector
from shield_guard.throttling.manager import RateLimiter
from shield_guard.utils.logger import get_logger

REASON_BLACKLISTED = "blacklisted"
REASON_RATE_LIMITED = "rate limit exceeded"
REASON_BOT = "bot detected"
REASON_SUSPICIOUS_PREFIX = "suspicious patterns"


def suspicious_reason(patterns) -> str:
    return f"{REASON_SUSPICIOUS_PREFIX}: {', '.join(sorted(patterns))}"


class ProtectionOrchestrator:
    """Evaluates protection rules in strict priority order.

    1. blacklisted source
    2. rate limit
    3. bot user agent (when enabled)
    4. suspicious request patterns
    5. allow

    The first denial short-circuits. Store read failures count as "no prior
    state", so a degraded store fails open; a blacklist or rate-block signal
    that was read successfully is always enforced.

    Example:
        >>> orchestrator = ProtectionOrchestrator(ledger, limiter, config["protection"])
        >>> decision = await orchestrator.evaluate(context)
        >>> if decision.allowed:
        ...     await orchestrator.complete_allowed(context)
    """

    def __init__(
        self,
        ledger: ReputationLedger,
        rate_limiter: RateLimiter,
        protection_config: dict,
        bot_detector: Optional[BotDetector] = None,
        pattern_detector: Optional[SuspiciousPatternDetector] = None,
    ):
        self.ledger = ledger
        self.rate_limiter = rate_limiter
        self.config = protection_config or {}
        self.bot_detector = bot_detector or BotDetector()
        self.pattern_detector = pattern_detector or SuspiciousPatternDetector()
        self.logger = get_logger("core.protection")

    @property
    def reputation_threshold(self) -> int:
        return self.config.get("reputation_threshold", 30)

    def _challenge(self, wanted: bool) -> bool:
        return bool(wanted) and self.config.get("challenge_enabled", True)

    async def _penalize(self, source_id: str, penalty: int) -> None:
        try:
            await self.ledger.apply_delta(source_id, penalty)
        except Exception as e:
            self.logger.error(f"Penalty for {source_id} failed: {e}")

    async def evaluate(self, context: RequestContext) -> ProtectionDecision:
        """Decide on one request. Never raises."""
        source_id = context.source_id

        reputation: Optional[ReputationRecord] = None
        try:
            reputation = await self.ledger.get(source_id)
        except Exception as e:
            self.logger.error(f"Reputation lookup for {source_id} failed, treating as new source: {e}")
        if reputation is not None and reputation.is_blacklisted:
            return ProtectionDecision(allowed=False, reason=REASON_BLACKLISTED, reputation=reputation)

        rate_limit: Optional[RateLimitSnapshot] = None
        try:
            rate_limit = await self.rate_limiter.check(source_id)
        except Exception as e:
            self.logger.error(f"Rate check for {source_id} failed, not limiting: {e}")
        if rate_limit is not None and rate_limit.blocked:
            score = reputation.score if reputation is not None else 0
            return ProtectionDecision(
                allowed=False,
                reason=REASON_RATE_LIMITED,
                challenge=self._challenge(score < self.reputation_threshold),
                reputation=reputation,
                rate_limit=rate_limit,
            )

        if self.config.get("bot_detection_enabled", True) and self.bot_detector.is_bot(context.user_agent):
            await self._penalize(source_id, self.config.get("bot_penalty", -10))
            return ProtectionDecision(
                allowed=False,
                reason=REASON_BOT,
                challenge=self._challenge(True),
                reputation=reputation,
                rate_limit=rate_limit,
            )

        patterns = self.pattern_detector.detect(context)
        if patterns:
            await self._penalize(source_id, self.config.get("suspicious_penalty", -5))
            return ProtectionDecision(
                allowed=False,
                reason=suspicious_reason(patterns),
                challenge=self._challenge(True),
                reputation=reputation,
                rate_limit=rate_limit,
            )

        return ProtectionDecision(allowed=True, reputation=reputation, rate_limit=rate_limit)

    async def complete_allowed(self, context: RequestContext) -> None:
        """Allow-path side effects: count the request and reward clean traffic."""
        await self.rate_limiter.commit(context.source_id)
        await self.ledger.apply_delta(context.source_id, self.config.get("clean_reward", 1))
