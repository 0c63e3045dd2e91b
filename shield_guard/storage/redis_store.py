"""Redis-backed key-value store for multi-node deployments."""

from typing import Optional

import redis.asyncio as redis
from redis.exceptions import RedisError

from shield_guard.storage.base import KeyValueStore, ListResult, StorageError
from shield_guard.utils.logger import get_logger


def _escape_glob(prefix: str) -> str:
    for ch in ("\\", "*", "?", "[", "]"):
        prefix = prefix.replace(ch, "\\" + ch)
    return prefix


class RedisKeyValueStore(KeyValueStore):
    """Stores values with ``SET ... EX`` and lists keys with ``SCAN``.

    ``SCAN`` may return a key more than once across pages; callers that need
    exactly-once processing deduplicate keys themselves.
    """

    def __init__(self, client: "redis.Redis"):
        self.client = client
        self.logger = get_logger("storage.redis")

    @classmethod
    def from_url(cls, url: str) -> "RedisKeyValueStore":
        client = redis.from_url(
            url,
            decode_responses=True,
            retry_on_timeout=True,
            socket_keepalive=True,
            socket_connect_timeout=5,
            socket_timeout=5,
            health_check_interval=30,
        )
        return cls(client)

    async def get(self, key: str) -> Optional[str]:
        try:
            return await self.client.get(key)
        except RedisError as e:
            raise StorageError(f"redis get {key} failed: {e}") from e

    async def put(self, key: str, value: str, ttl_seconds: int) -> None:
        try:
            await self.client.set(key, value, ex=ttl_seconds)
        except RedisError as e:
            raise StorageError(f"redis set {key} failed: {e}") from e

    async def list(self, prefix: str, limit: int = 1000, cursor: Optional[str] = None) -> ListResult:
        try:
            next_cursor, keys = await self.client.scan(
                cursor=int(cursor or 0), match=f"{_escape_glob(prefix)}*", count=limit
            )
        except RedisError as e:
            raise StorageError(f"redis scan {prefix} failed: {e}") from e
        next_cursor = int(next_cursor)
        complete = next_cursor == 0
        return ListResult(keys=list(keys), cursor=None if complete else str(next_cursor), complete=complete)

    async def delete(self, key: str) -> None:
        try:
            await self.client.delete(key)
        except RedisError as e:
            raise StorageError(f"redis delete {key} failed: {e}") from e

    async def close(self) -> None:
        await self.client.aclose()
