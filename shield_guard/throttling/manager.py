"""
RateLimiter: per-source fixed-window request counters (minute and hour).
"""

import asyncio
import json
import time
from typing import Callable, Optional, Tuple

from shield_guard.core.keys import rate_key
from shield_guard.core.ttl_manager import TTLManager
from shield_guard.database.models import RateLimitSnapshot, RateWindowCounter
from shield_guard.storage.base import KeyValueStore, StorageError
from shield_guard.utils.logger import get_logger, get_ops_logger

MINUTE = 60
HOUR = 3600

GRANULARITIES = (("minute", MINUTE), ("hour", HOUR))


def window_index(now: float, granularity: int) -> int:
    return int(now // granularity)


def window_start(now: float, granularity: int) -> int:
    return window_index(now, granularity) * granularity


class RateLimiter:
    """Approximate rate limiting per source.

    Windows are fixed, not sliding: a burst straddling a window boundary can
    briefly exceed the configured rate. ``check`` never mutates; ``commit``
    performs a separate read-then-write, so concurrent commits from the same
    source can lose increments (over-admission, never under-admission).
    """

    def __init__(
        self,
        store: KeyValueStore,
        ttl_manager: TTLManager,
        protection_config: dict,
        clock: Callable[[], float] = time.time,
    ):
        """
        protection_config example:
        {
            "max_requests_per_minute": 60,
            "max_requests_per_hour": 1000
        }
        """
        self.store = store
        self.ttl_manager = ttl_manager
        self.config = protection_config or {}
        self.max_per_minute = self.config.get("max_requests_per_minute", 60)
        self.max_per_hour = self.config.get("max_requests_per_hour", 1000)
        self.clock = clock
        self.logger = get_logger("throttling.manager")
        self.ops_logger = get_ops_logger()

    async def _read_window(self, source_id: str, name: str, granularity: int, now: float) -> RateWindowCounter:
        key = rate_key(source_id, name, window_index(now, granularity))
        try:
            raw = await self.store.get(key)
            if raw is not None:
                return RateWindowCounter.from_json_dict(json.loads(raw))
        except StorageError as e:
            self.logger.warning(f"Rate window read failed for {key}, counting as empty: {e}")
        except (ValueError, TypeError) as e:
            self.logger.warning(f"Discarding malformed rate window {key}: {e}")
        return RateWindowCounter(requests=0, window_start=window_start(now, granularity))

    async def _read_windows(self, source_id: str, now: float) -> Tuple[RateWindowCounter, RateWindowCounter]:
        minute, hour = await asyncio.gather(
            *(self._read_window(source_id, name, granularity, now) for name, granularity in GRANULARITIES)
        )
        return minute, hour

    async def _write_window(self, source_id: str, name: str, granularity: int, now: float, counter) -> None:
        await self.store.put(
            rate_key(source_id, name, window_index(now, granularity)),
            json.dumps(counter.to_json_dict(), separators=(",", ":")),
            self.ttl_manager.get_window_ttl(granularity),
        )

    async def check(self, source_id: str, now: Optional[float] = None) -> RateLimitSnapshot:
        """Report current consumption without counting this request."""
        now = self.clock() if now is None else now
        minute, hour = await self._read_windows(source_id, now)
        blocked = minute.requests >= self.max_per_minute or hour.requests >= self.max_per_hour
        if blocked:
            self.logger.debug(
                f"Rate limit reached for {source_id}: {minute.requests}/min, {hour.requests}/hour"
            )
        return RateLimitSnapshot(
            requests=minute.requests,
            hour_requests=hour.requests,
            window_start=window_start(now, MINUTE),
            blocked=blocked,
        )

    async def commit(self, source_id: str, now: Optional[float] = None) -> None:
        """Count one request in both the minute and hour windows."""
        now = self.clock() if now is None else now
        minute, hour = await self._read_windows(source_id, now)
        updated = (
            RateWindowCounter(requests=minute.requests + 1, window_start=window_start(now, MINUTE)),
            RateWindowCounter(requests=hour.requests + 1, window_start=window_start(now, HOUR)),
        )
        try:
            await asyncio.gather(
                *(
                    self._write_window(source_id, name, granularity, now, counter)
                    for (name, granularity), counter in zip(GRANULARITIES, updated)
                )
            )
        except StorageError as e:
            self.ops_logger.error(f"Rate window commit for {source_id} not persisted: {e}")

    async def inflate(self, source_id: str, amount: int, now: Optional[float] = None) -> RateWindowCounter:
        """Add ``amount`` to the current minute window and mark it blocked.

        Raises:
            StorageError: If the window could not be written
        """
        now = self.clock() if now is None else now
        current = await self._read_window(source_id, "minute", MINUTE, now)
        counter = RateWindowCounter(
            requests=current.requests + amount, window_start=window_start(now, MINUTE), blocked=True
        )
        await self._write_window(source_id, "minute", MINUTE, now, counter)
        return counter
