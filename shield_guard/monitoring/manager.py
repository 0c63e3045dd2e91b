"""
AnalyticsAggregator: turns the attack log and reputation ledger into threat
intelligence views (hourly histograms, top threats, live metrics).

Every view is computed by a bounded, paginated scan of the store and served
from an ``AnalyticsCache`` until its TTL lapses.
"""

import asyncio
import json
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

from shield_guard.cache.engine import AnalyticsCache
from shield_guard.core.keys import ATTACK_PREFIX, DIAGNOSTIC_PREFIX, RATE_PREFIX, REPUTATION_PREFIX
from shield_guard.database.models import AttackLogEntry, ReputationRecord
from shield_guard.storage.base import KeyValueStore, StorageError
from shield_guard.utils.logger import get_logger

DAY_SECONDS = 24 * 60 * 60
MINUTE_SECONDS = 60

ATTACK_DATA_VIEW = "attack_data"
REPUTATION_STATS_VIEW = "reputation_stats"
METRICS_VIEW = "metrics"


def empty_hourly_data() -> Dict[int, Dict[str, int]]:
    return {hour: {"attacks": 0, "blocked": 0} for hour in range(24)}


def empty_attack_data() -> Dict[str, Any]:
    return {
        "total_requests": 0,
        "blocked_requests": 0,
        "unique_sources": 0,
        "attack_types": {},
        "recent_attacks": [],
        "hourly_data": empty_hourly_data(),
        "processed_keys": 0,
        "partial": False,
    }


def protection_level(active_threats: int) -> str:
    if active_threats > 10:
        return "high"
    if active_threats > 5:
        return "medium"
    return "low"


def _source_from_key(key: str) -> str:
    return key[len(REPUTATION_PREFIX) :].replace("_", ".")


class AnalyticsAggregator:
    def __init__(
        self,
        store: KeyValueStore,
        analytics_config: Optional[dict] = None,
        protection_config: Optional[dict] = None,
        cache: Optional[AnalyticsCache] = None,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize with the store to scan and the analytics settings."""
        self.store = store
        self.config = analytics_config or {}
        self.protection_config = protection_config or {}
        self.clock = clock
        self.cache = cache or AnalyticsCache(clock=clock)
        self.page_size = self.config.get("page_size", 1000)
        self.concurrency = self.config.get("concurrency", 16)
        self.logger = get_logger("monitoring.manager")

    async def _fetch(self, semaphore: asyncio.Semaphore, key: str) -> Optional[str]:
        async with semaphore:
            try:
                return await self.store.get(key)
            except StorageError as e:
                self.logger.warning(f"Skipping {key}: {e}")
                return None

    async def _scan(self, prefix: str, budget: int, handle: Callable[[str, str], None]) -> Tuple[int, bool]:
        """Page through ``prefix`` keys and feed each value to ``handle``.

        Stops when the store reports completion or ``budget`` distinct keys
        have been processed. A listing failure ends the scan early.

        Returns:
            Tuple of (processed key count, partial)
        """
        processed = set()
        semaphore = asyncio.Semaphore(self.concurrency)
        cursor: Optional[str] = None
        while True:
            try:
                page = await self.store.list(prefix, self.page_size, cursor)
            except StorageError as e:
                self.logger.error(f"Scan of {prefix!r} aborted after {len(processed)} keys: {e}")
                return len(processed), True

            fresh = []
            for key in page.keys:
                if key not in processed and len(processed) < budget:
                    processed.add(key)
                    fresh.append(key)

            values = await asyncio.gather(*(self._fetch(semaphore, key) for key in fresh))
            for key, raw in zip(fresh, values):
                if raw is None:
                    continue
                try:
                    handle(key, raw)
                except (ValueError, TypeError, KeyError) as e:
                    self.logger.warning(f"Skipping malformed entry {key}: {e}")

            if page.complete or not page.cursor or page.cursor == cursor or len(processed) >= budget:
                break
            cursor = page.cursor
        self.logger.debug(f"Scanned {len(processed)} keys under {prefix!r}")
        return len(processed), False

    async def _compute_attack_data(self, now: float) -> Dict[str, Any]:
        result = empty_attack_data()
        hourly = result["hourly_data"]
        sources = set()
        attack_types: Dict[str, int] = {}
        recent: List[AttackLogEntry] = []
        since = now - DAY_SECONDS

        def handle(key: str, raw: str) -> None:
            entry = AttackLogEntry.from_json_dict(json.loads(raw))
            occurred = entry.occurred_at
            if occurred.timestamp() < since:
                return
            hour = occurred.astimezone(timezone.utc).hour
            hourly[hour]["attacks"] += 1
            # Only denials are logged, so every logged attack was also blocked
            hourly[hour]["blocked"] += 1
            result["total_requests"] += 1
            result["blocked_requests"] += 1
            sources.add(entry.source_id)
            attack_types[entry.attack_type] = attack_types.get(entry.attack_type, 0) + 1
            recent.append(entry)

        processed, partial = await self._scan(ATTACK_PREFIX, self.config.get("attack_scan_budget", 5000), handle)

        recent.sort(key=lambda e: e.occurred_at, reverse=True)
        result.update(
            unique_sources=len(sources),
            attack_types=attack_types,
            recent_attacks=[e.to_json_dict() for e in recent[: self.config.get("recent_attacks_limit", 10)]],
            processed_keys=processed,
            partial=partial,
        )
        return result

    async def get_attack_data(self, now: Optional[float] = None) -> Dict[str, Any]:
        """Attack activity of the last 24 hours, bucketed by UTC hour of day.

        An explicit ``now`` bypasses the cache: the view is computed for that
        instant and not stored.
        """
        if now is None:
            cached = self.cache.get(ATTACK_DATA_VIEW)
            if cached is not None:
                return cached
        try:
            data = await self._compute_attack_data(self.clock() if now is None else now)
        except Exception as e:
            self.logger.error(f"Attack data aggregation failed: {e}")
            data = empty_attack_data()
            data["partial"] = True
            data["error"] = str(e)
            return data
        if now is None:
            self.cache.set(ATTACK_DATA_VIEW, data, self.config.get("attack_data_ttl_seconds", 60))
        return data

    async def _compute_reputation_stats(self) -> Dict[str, Any]:
        threats: List[Dict[str, Any]] = []

        def handle(key: str, raw: str) -> None:
            record = ReputationRecord.from_json_dict(json.loads(raw))
            if record.attack_count > 0:
                threats.append(
                    {
                        "source_id": record.source_id or _source_from_key(key),
                        "attacks": record.attack_count,
                        "score": record.score,
                    }
                )

        processed, partial = await self._scan(
            REPUTATION_PREFIX, self.config.get("reputation_scan_budget", 1000), handle
        )
        threats.sort(key=lambda t: t["attacks"], reverse=True)
        return {
            "top_threats": threats[: self.config.get("top_threats_limit", 10)],
            "processed_keys": processed,
            "partial": partial,
        }

    async def get_reputation_stats(self) -> Dict[str, Any]:
        """Sources with recorded violations, most attacks first."""
        cached = self.cache.get(REPUTATION_STATS_VIEW)
        if cached is not None:
            return cached
        try:
            data = await self._compute_reputation_stats()
        except Exception as e:
            self.logger.error(f"Reputation aggregation failed: {e}")
            return {"top_threats": [], "processed_keys": 0, "partial": True, "error": str(e)}
        self.cache.set(REPUTATION_STATS_VIEW, data, self.config.get("reputation_stats_ttl_seconds", 60))
        return data

    def _is_active_threat(self, record: ReputationRecord) -> bool:
        if record.is_blacklisted:
            return True
        return record.attack_count > 0 and record.score < self.protection_config.get("reputation_threshold", 30)

    async def _compute_metrics(self, now: float) -> Dict[str, Any]:
        counters = {"requests_per_minute": 0, "blocked_requests": 0, "active_threats": 0}
        since = now - MINUTE_SECONDS

        def handle_attack(key: str, raw: str) -> None:
            entry = AttackLogEntry.from_json_dict(json.loads(raw))
            if entry.occurred_at.timestamp() >= since:
                counters["requests_per_minute"] += 1
            counters["blocked_requests"] += 1

        def handle_reputation(key: str, raw: str) -> None:
            if self._is_active_threat(ReputationRecord.from_json_dict(json.loads(raw))):
                counters["active_threats"] += 1

        (_, attacks_partial), (_, reputation_partial) = await asyncio.gather(
            self._scan(ATTACK_PREFIX, self.config.get("metrics_scan_budget", 2000), handle_attack),
            self._scan(REPUTATION_PREFIX, self.config.get("reputation_scan_budget", 1000), handle_reputation),
        )
        counters["protection_level"] = protection_level(counters["active_threats"])
        counters["partial"] = attacks_partial or reputation_partial
        return counters

    async def get_metrics(self, now: Optional[float] = None) -> Dict[str, Any]:
        """Live counters: last-minute attacks, total blocked, active threats.

        An explicit ``now`` bypasses the cache, as in ``get_attack_data``.
        """
        if now is None:
            cached = self.cache.get(METRICS_VIEW)
            if cached is not None:
                return cached
        try:
            data = await self._compute_metrics(self.clock() if now is None else now)
        except Exception as e:
            self.logger.error(f"Metrics aggregation failed: {e}")
            return {
                "requests_per_minute": 0,
                "blocked_requests": 0,
                "active_threats": 0,
                "protection_level": "high",
                "partial": True,
                "error": str(e),
            }
        if now is None:
            self.cache.set(METRICS_VIEW, data, self.config.get("metrics_ttl_seconds", 30))
        return data

    async def get_analytics(self, now: Optional[float] = None) -> Dict[str, Any]:
        """Combined overview for analytics surfaces."""
        attack_data, reputation_stats = await asyncio.gather(
            self.get_attack_data(now), self.get_reputation_stats()
        )
        return {
            "overview": {
                "total_requests": attack_data["total_requests"],
                "blocked_requests": attack_data["blocked_requests"],
                "unique_sources": attack_data["unique_sources"],
                "attack_types": attack_data["attack_types"],
            },
            "recent_attacks": attack_data["recent_attacks"],
            "top_threats": reputation_stats["top_threats"],
            "hourly_data": attack_data["hourly_data"],
            "partial": attack_data["partial"] or reputation_stats["partial"],
        }

    def clear_cache(self) -> int:
        """Force recomputation of every view on next access."""
        removed = self.cache.clear()
        self.logger.info(f"Analytics cache cleared ({removed} views)")
        return removed

    async def get_storage_diagnostics(self, request_id: str) -> Dict[str, Any]:
        """Sample each key namespace and run a write/read round trip."""
        diagnostics: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(self.clock(), timezone.utc).isoformat(),
            "request_id": request_id,
            "data_checks": {},
        }
        checks = diagnostics["data_checks"]
        for name, prefix in (
            ("attack_logs", ATTACK_PREFIX),
            ("reputation", REPUTATION_PREFIX),
            ("rate_limits", RATE_PREFIX),
        ):
            try:
                page = await self.store.list(prefix, 10)
                checks[name] = {
                    "total_keys": len(page.keys),
                    "keys": page.keys[:5],
                    "has_more": not page.complete,
                }
            except StorageError as e:
                checks[name] = {"error": str(e)}

        sample_key = f"{DIAGNOSTIC_PREFIX}{request_id}"
        sample = {"timestamp": diagnostics["timestamp"], "test": True}
        try:
            await self.store.put(sample_key, json.dumps(sample), 300)
            retrieved = await self.store.get(sample_key)
            checks["write_read_test"] = {
                "success": retrieved is not None and json.loads(retrieved) == sample,
                "written": sample,
                "retrieved": json.loads(retrieved) if retrieved else None,
            }
        except StorageError as e:
            checks["write_read_test"] = {"success": False, "error": str(e)}
        diagnostics["store_health"] = "healthy" if checks["write_read_test"]["success"] else "error"
        return diagnostics
