"""Key-value store boundary.

The engine keeps no durable state in process. Everything it persists goes
through a ``KeyValueStore``: an eventually-consistent, TTL-capable store with
get / put / list-by-prefix operations and text values.
"""

import abc
import asyncio
from dataclasses import dataclass, field
from typing import List, Optional


class StorageError(Exception):
    """A store operation failed.

    Backends wrap their driver errors in this type so callers can tell a
    degraded store apart from programming errors.
    """

    pass


class StorageTimeoutError(StorageError):
    """A store operation did not complete within its time bound."""

    pass


@dataclass
class ListResult:
    """One page of a prefix listing."""

    keys: List[str] = field(default_factory=list)
    cursor: Optional[str] = None
    complete: bool = True


class KeyValueStore(abc.ABC):
    """Asynchronous key-value store with per-key expiry."""

    @abc.abstractmethod
    async def get(self, key: str) -> Optional[str]:
        """Return the stored value, or None if absent or expired."""

    @abc.abstractmethod
    async def put(self, key: str, value: str, ttl_seconds: int) -> None:
        """Store ``value`` under ``key``; it expires after ``ttl_seconds``."""

    @abc.abstractmethod
    async def list(self, prefix: str, limit: int = 1000, cursor: Optional[str] = None) -> ListResult:
        """List live keys starting with ``prefix``, at most ``limit`` per page."""

    @abc.abstractmethod
    async def delete(self, key: str) -> None:
        """Remove ``key`` if present."""

    async def close(self) -> None:
        return None


class TimeBoundedStore(KeyValueStore):
    """Wraps a store so that every operation is bounded by ``timeout`` seconds."""

    def __init__(self, inner: KeyValueStore, timeout: Optional[float]):
        self.inner = inner
        self.timeout = timeout

    async def _bounded(self, operation: str, awaitable):
        if not self.timeout:
            return await awaitable
        try:
            return await asyncio.wait_for(awaitable, timeout=self.timeout)
        except asyncio.TimeoutError as e:
            raise StorageTimeoutError(f"{operation} timed out after {self.timeout}s") from e

    async def get(self, key: str) -> Optional[str]:
        return await self._bounded(f"get {key}", self.inner.get(key))

    async def put(self, key: str, value: str, ttl_seconds: int) -> None:
        await self._bounded(f"put {key}", self.inner.put(key, value, ttl_seconds))

    async def list(self, prefix: str, limit: int = 1000, cursor: Optional[str] = None) -> ListResult:
        return await self._bounded(f"list {prefix}", self.inner.list(prefix, limit, cursor))

    async def delete(self, key: str) -> None:
        await self._bounded(f"delete {key}", self.inner.delete(key))

    async def close(self) -> None:
        await self.inner.close()
