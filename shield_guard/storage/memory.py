"""In-process key-value store with per-key expiry."""

import bisect
import threading
import time
from typing import Callable, Dict, List, Optional, Tuple

from shield_guard.storage.base import KeyValueStore, ListResult


class InMemoryKeyValueStore(KeyValueStore):
    """Dictionary-backed store.

    Expired entries are dropped lazily on access. Listing is ordered by key and
    paginated with the last returned key as cursor, so pages stay stable while
    other keys are written.

    Example:
        >>> store = InMemoryKeyValueStore()
        >>> await store.put("reputation_10_0_0_1", "{}", ttl_seconds=60)
        >>> await store.get("reputation_10_0_0_1")
        '{}'
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._data: Dict[str, Tuple[str, float]] = {}
        self._lock = threading.Lock()

    def _live(self, key: str, now: float) -> bool:
        entry = self._data.get(key)
        if entry is None:
            return False
        if entry[1] <= now:
            del self._data[key]
            return False
        return True

    async def get(self, key: str) -> Optional[str]:
        with self._lock:
            if not self._live(key, self._clock()):
                return None
            return self._data[key][0]

    async def put(self, key: str, value: str, ttl_seconds: int) -> None:
        if not isinstance(value, str):
            raise TypeError("values must be text")
        with self._lock:
            self._data[key] = (value, self._clock() + ttl_seconds)

    async def list(self, prefix: str, limit: int = 1000, cursor: Optional[str] = None) -> ListResult:
        with self._lock:
            now = self._clock()
            keys: List[str] = sorted(k for k in list(self._data) if k.startswith(prefix) and self._live(k, now))
        start = bisect.bisect_right(keys, cursor) if cursor else 0
        page = keys[start : start + limit]
        complete = start + limit >= len(keys)
        return ListResult(keys=page, cursor=None if complete or not page else page[-1], complete=complete)

    async def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def __len__(self) -> int:
        with self._lock:
            now = self._clock()
            return sum(1 for k in list(self._data) if self._live(k, now))
