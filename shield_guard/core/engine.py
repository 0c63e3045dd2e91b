import time
import uuid
from typing import Any, Dict, List, Optional, Tuple

from shield_guard.attack_log.recorder import AttackLogger
from shield_guard.cache.engine import AnalyticsCache
from shield_guard.core.admin_utils import AdminOperations, extract_source_id
from shield_guard.core.config import ConfigurationManager
from shield_guard.core.protection import ProtectionOrchestrator
from shield_guard.core.simulation import AttackSimulator
from shield_guard.core.ttl_manager import TTLManager
from shield_guard.database.models import ProtectionDecision, RecentAttack, ReputationRecord, RequestContext
from shield_guard.monitoring.manager import AnalyticsAggregator
from shield_guard.reputation.manager import ReputationLedger
from shield_guard.storage.base import KeyValueStore, TimeBoundedStore
from shield_guard.storage.factory import create_store
from shield_guard.throttling.manager import RateLimiter
from shield_guard.utils.logger import configure_logging, get_logger

LOW_REPUTATION_LABEL = "low reputation"


class ShieldGuard:
    """Main entry point of the traffic protection engine.

    Wires the reputation ledger, rate limiter, detectors, attack logger and
    analytics aggregator around one key-value store. The routing layer hands
    each request to ``inspect`` and renders the returned decision: serve
    normally, serve a challenge page, or answer 429 with the reason.

    Example:
        >>> async with ShieldGuard({"protection": {"max_requests_per_minute": 30}}) as guard:
        ...     context = RequestContext.from_request("GET", "/", headers, "203.0.113.7")
        ...     decision = await guard.inspect(context)
        ...     if not decision.allowed:
        ...         print(decision.status_code, decision.reason)
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None, store: Optional[KeyValueStore] = None) -> None:
        """Initialize the engine and all components.

        Args:
            config: Configuration dictionary, merged over the defaults
            store: Store to use instead of the one named in ``storage.backend``;
                it is still bounded by ``storage.operation_timeout``

        Raises:
            ValueError: If configuration is invalid
        """
        self.config_manager = ConfigurationManager(config or {})
        configure_logging(self.config["logging"])
        self.logger = get_logger("core.engine")
        if store is None:
            self.store = create_store(self.config["storage"])
        else:
            self.store = TimeBoundedStore(store, self.config["storage"].get("operation_timeout"))
        self._build_components()
        self.metrics_collector = MetricsCollector()
        self.start_time = time.time()
        self.logger.info(f"{self.config['app']['name']} {self.config['app']['version']} initialized")

    @property
    def config(self) -> Dict[str, Any]:
        return self.config_manager.config

    def _build_components(self) -> None:
        protection_config = self.config["protection"]
        self.ttl_manager = TTLManager(self.config)
        self.ledger = ReputationLedger(self.store, self.ttl_manager)
        self.rate_limiter = RateLimiter(self.store, self.ttl_manager, protection_config)
        self.orchestrator = ProtectionOrchestrator(self.ledger, self.rate_limiter, protection_config)
        self.attack_logger = AttackLogger(self.store, self.ttl_manager, self.config["attack_log"])
        self.analytics_cache = AnalyticsCache()
        self.aggregator = AnalyticsAggregator(
            self.store, self.config["analytics"], protection_config, cache=self.analytics_cache
        )
        self.admin = AdminOperations(self.ledger, self.aggregator)
        self.simulator = AttackSimulator(self.ledger, self.rate_limiter, self.attack_logger)

    async def evaluate(self, context: RequestContext) -> ProtectionDecision:
        """Decide on a request without any allow-path side effects."""
        return await self.orchestrator.evaluate(context)

    async def inspect(self, context: RequestContext) -> ProtectionDecision:
        """Run the full protection flow for one request.

        Denials are written to the attack log. Allowed requests are counted
        against the rate windows and earn the clean-traffic reward.
        """
        decision = await self.orchestrator.evaluate(context)

        if not decision.allowed:
            entry = await self.attack_logger.record(context, decision.reason or "unknown")
            if entry is None:
                self.metrics_collector.record_event("error", {"stage": "attack_log", "source": context.source_id})
            self.metrics_collector.record_event(
                "challenge" if decision.challenge else "blocked", {"reason": decision.reason}
            )
            return decision

        if self._is_low_reputation(decision.reputation):
            await self.attack_logger.record(context, LOW_REPUTATION_LABEL)

        # Both writes are best-effort; failures are reported by the components
        await self.orchestrator.complete_allowed(context)
        self.metrics_collector.record_event("allowed")
        return decision

    def _is_low_reputation(self, reputation: Optional[ReputationRecord]) -> bool:
        protection = self.config["protection"]
        if not protection.get("log_low_reputation") or reputation is None:
            return False
        return reputation.score < protection.get("reputation_threshold", 30)

    async def get_reputation(self, source_id: str) -> ReputationRecord:
        return await self.ledger.get(source_id)

    async def get_recent_attacks(self, source_id: str) -> List[RecentAttack]:
        return await self.attack_logger.get_recent_attacks(source_id)

    async def whitelist(self, source_id: Any) -> ReputationRecord:
        return await self.admin.whitelist(source_id)

    async def blacklist(self, source_id: Any) -> ReputationRecord:
        return await self.admin.blacklist(source_id)

    async def whitelist_from_payload(self, payload: Any) -> ReputationRecord:
        """Whitelist the source named in an admin request body."""
        return await self.admin.whitelist(extract_source_id(payload))

    async def blacklist_from_payload(self, payload: Any) -> ReputationRecord:
        return await self.admin.blacklist(extract_source_id(payload))

    def clear_cache(self) -> Dict[str, Any]:
        """Force the next analytics read to rescan the store."""
        return self.admin.clear_cache()

    async def get_analytics(self) -> Dict[str, Any]:
        return await self.aggregator.get_analytics()

    async def get_status(self, context: Optional[RequestContext] = None) -> Dict[str, Any]:
        """Engine status: identity, live metrics and effective protection settings."""
        app = self.config["app"]
        protection = self.config["protection"]
        status = {
            "system": {
                "name": app["name"],
                "version": app["version"],
                "environment": app["environment"],
                "uptime_seconds": time.time() - self.start_time,
                "status": "active",
            },
            "metrics": await self.aggregator.get_metrics(),
            "protection": {
                "rate_limiting": {
                    "enabled": True,
                    "max_per_minute": protection["max_requests_per_minute"],
                    "max_per_hour": protection["max_requests_per_hour"],
                },
                "reputation": {"enabled": True, "threshold": protection["reputation_threshold"]},
                "bot_detection": {"enabled": protection["bot_detection_enabled"]},
                "challenges": {"enabled": protection["challenge_enabled"]},
            },
        }
        if context is not None:
            status["request"] = {
                "id": context.request_id,
                "timestamp": context.timestamp.isoformat(),
                "source_id": context.source_id,
                "country": context.country,
            }
        return status

    def get_metrics(self) -> Dict[str, Any]:
        """Decision counters of this process."""
        return self.metrics_collector.get_metrics()

    async def simulate_attack(self, context: RequestContext, attack_type: Optional[str] = None) -> Dict[str, Any]:
        return await self.simulator.simulate_attack(context, attack_type)

    async def generate_sample_data(self, count: int = 50) -> List[Dict[str, Any]]:
        return await self.simulator.generate_sample_data(count)

    async def diagnose_storage(self, request_id: Optional[str] = None) -> Dict[str, Any]:
        diagnostics = await self.aggregator.get_storage_diagnostics(request_id or str(uuid.uuid4()))
        diagnostics["environment"] = self.config["app"]["environment"]
        return diagnostics

    def update_config(self, key_path: str, value: Any) -> None:
        """Update configuration at runtime using dot notation and rebuild components.

        Example:
            >>> guard.update_config("protection.max_requests_per_minute", 120)
        """
        self.logger.info(f"Updating config '{key_path}' to {value}")
        self.config_manager.update(key_path, value)
        self._build_components()

    async def close(self) -> None:
        await self.store.close()
        self.logger.info("Engine stopped.")

    async def __aenter__(self) -> "ShieldGuard":
        return self

    async def __aexit__(self, exc_type: Optional[type], exc_val: Optional[Exception], exc_tb: Optional[Any]) -> None:
        await self.close()


class MetricsCollector:
    """Counts decisions made by this process.

    Keeps only the most recent events for debugging.
    """

    def __init__(self, max_events: int = 100) -> None:
        self._metrics = {
            "total_requests": 0,
            "allowed": 0,
            "blocked": 0,
            "challenged": 0,
            "errors": 0,
            "start_time": time.time(),
        }
        self._events: List[Tuple[str, Dict[str, Any]]] = []
        self._max_events = max_events

    def record_event(self, event_type: str, details: Optional[Dict[str, Any]] = None) -> None:
        """Record a decision or error.

        Args:
            event_type: "allowed", "blocked", "challenge" or "error"
            details: Additional event details
        """
        if event_type == "error":
            self._metrics["errors"] += 1
        else:
            self._metrics["total_requests"] += 1
            if event_type == "allowed":
                self._metrics["allowed"] += 1
            elif event_type == "blocked":
                self._metrics["blocked"] += 1
            elif event_type == "challenge":
                self._metrics["challenged"] += 1
        self._events.append((event_type, details or {}))
        del self._events[: -self._max_events]

    def get_metrics(self) -> Dict[str, Any]:
        m = dict(self._metrics)
        m["uptime_seconds"] = time.time() - self._metrics["start_time"]
        m["events"] = [{"event_type": event_type, "details": details} for event_type, details in self._events]
        return m
