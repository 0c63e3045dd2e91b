"""Shared fixtures for ShieldGuard tests."""

import sys
from pathlib import Path
from typing import Optional, Set

import pytest

PROJECT_ROOT = Path(__file__).parent.parent.absolute()
sys.path.insert(0, str(PROJECT_ROOT))

from shield_guard.core.ttl_manager import TTLManager
from shield_guard.storage.base import KeyValueStore, ListResult, StorageError
from shield_guard.storage.memory import InMemoryKeyValueStore

# 2026-10-19 20:00:00 UTC
BASE_TIME = 1792440000.0


class FakeClock:
    """Settable clock returning epoch seconds."""

    def __init__(self, now: float = BASE_TIME):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FaultyStore(KeyValueStore):
    """Delegates to an in-memory store but fails the operations named in ``failing``."""

    def __init__(self, inner: Optional[KeyValueStore] = None, failing: Optional[Set[str]] = None):
        self.inner = inner if inner is not None else InMemoryKeyValueStore()
        self.failing = set(failing or ())
        self.fail_list_after: Optional[int] = None
        self._list_calls = 0

    def _check(self, operation: str) -> None:
        if operation in self.failing:
            raise StorageError(f"injected {operation} failure")

    async def get(self, key):
        self._check("get")
        return await self.inner.get(key)

    async def put(self, key, value, ttl_seconds):
        self._check("put")
        await self.inner.put(key, value, ttl_seconds)

    async def list(self, prefix, limit=1000, cursor=None) -> ListResult:
        self._check("list")
        self._list_calls += 1
        if self.fail_list_after is not None and self._list_calls > self.fail_list_after:
            raise StorageError("injected list failure mid-scan")
        return await self.inner.list(prefix, limit, cursor)

    async def delete(self, key):
        self._check("delete")
        await self.inner.delete(key)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    return InMemoryKeyValueStore(clock=clock)


@pytest.fixture
def ttl_manager():
    return TTLManager({})


@pytest.fixture
def make_faulty_store():
    """Factory for stores that fail selected operations."""

    def factory(inner=None, failing=()):
        return FaultyStore(inner, set(failing))

    return factory
