"""Process-local cache for analytics views."""

import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional


@dataclass
class CacheEntry:
    """A cached view with the time it was computed and how long it stays fresh."""

    data: Any
    timestamp: float
    ttl: float

    def is_fresh(self, now: float) -> bool:
        return now - self.timestamp < self.ttl


class AnalyticsCache:
    """Named, time-expiring cache of computed analytics views.

    Scanning the attack log is expensive, so views are served from here until
    their TTL lapses. Expiry is time-based only; ``clear`` forces the next
    read of every view to recompute.

    Example:
        >>> cache = AnalyticsCache()
        >>> cache.set("metrics", {"blocked_requests": 3}, ttl=30)
        >>> cache.get("metrics")
        {'blocked_requests': 3}
    """

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._lock = threading.Lock()
        self._stats = {"hits": 0, "misses": 0, "expired": 0, "sets": 0, "clears": 0}

    def get(self, name: str) -> Optional[Any]:
        """Return the cached view if still fresh, else None."""
        with self._lock:
            entry = self._entries.get(name)
            if entry is None:
                self._stats["misses"] += 1
                return None
            if not entry.is_fresh(self._clock()):
                del self._entries[name]
                self._stats["expired"] += 1
                self._stats["misses"] += 1
                return None
            self._stats["hits"] += 1
            return entry.data

    def set(self, name: str, data: Any, ttl: float) -> None:
        with self._lock:
            self._entries[name] = CacheEntry(data=data, timestamp=self._clock(), ttl=ttl)
            self._stats["sets"] += 1

    def clear(self, name: Optional[str] = None) -> int:
        """Drop one view, or all views when ``name`` is None.

        Returns:
            Number of entries removed
        """
        with self._lock:
            self._stats["clears"] += 1
            if name is None:
                removed = len(self._entries)
                self._entries.clear()
                return removed
            return 1 if self._entries.pop(name, None) is not None else 0

    def age(self, name: str) -> Optional[float]:
        with self._lock:
            entry = self._entries.get(name)
            return None if entry is None else self._clock() - entry.timestamp

    def get_stats(self) -> Dict[str, int]:
        with self._lock:
            stats = dict(self._stats)
            stats["entries"] = len(self._entries)
            return stats
