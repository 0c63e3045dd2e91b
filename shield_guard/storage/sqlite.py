"""SQLite-backed key-value store."""

import asyncio
import sqlite3
import time
from typing import Callable, Optional

from shield_guard.database.manager import DatabaseManager
from shield_guard.storage.base import KeyValueStore, ListResult, StorageError
from shield_guard.utils.logger import get_logger


class SQLiteKeyValueStore(KeyValueStore):
    """Runs ``DatabaseManager`` operations in worker threads.

    Expired rows are invisible to reads and listings and are purged
    periodically on writes.
    """

    def __init__(
        self,
        db_manager: DatabaseManager,
        clock: Callable[[], float] = time.time,
        purge_interval: float = 300.0,
    ):
        self.db_manager = db_manager
        self.logger = get_logger("storage.sqlite")
        self._clock = clock
        self._purge_interval = purge_interval
        self._last_purge = clock()

    @classmethod
    def from_path(cls, database_path: str) -> "SQLiteKeyValueStore":
        return cls(DatabaseManager(database_path))

    async def _run(self, func, *args):
        try:
            return await asyncio.to_thread(func, *args)
        except sqlite3.Error as e:
            raise StorageError(f"sqlite {func.__name__} failed: {e}") from e

    async def get(self, key: str) -> Optional[str]:
        return await self._run(self.db_manager.get_value, key, self._clock())

    async def put(self, key: str, value: str, ttl_seconds: int) -> None:
        now = self._clock()
        await self._run(self.db_manager.put_value, key, value, ttl_seconds, now)
        if now - self._last_purge >= self._purge_interval:
            self._last_purge = now
            await self._run(self.db_manager.purge_expired, now)

    async def list(self, prefix: str, limit: int = 1000, cursor: Optional[str] = None) -> ListResult:
        keys, complete = await self._run(self.db_manager.list_keys, prefix, limit, cursor, self._clock())
        return ListResult(keys=keys, cursor=None if complete or not keys else keys[-1], complete=complete)

    async def delete(self, key: str) -> None:
        await self._run(self.db_manager.delete_value, key)

    async def close(self) -> None:
        self.db_manager.close()
