"""Tests for the Redis backend against a mocked asyncio client."""

from unittest.mock import AsyncMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from shield_guard.storage.base import StorageError
from shield_guard.storage.redis_store import RedisKeyValueStore


@pytest.fixture
def client():
    return AsyncMock()


@pytest.fixture
def redis_store(client):
    return RedisKeyValueStore(client)


async def test_get_returns_decoded_value(redis_store, client):
    client.get.return_value = '{"score": 5}'
    assert await redis_store.get("reputation_10_0_0_1") == '{"score": 5}'
    client.get.assert_awaited_once_with("reputation_10_0_0_1")


async def test_put_sets_expiry(redis_store, client):
    await redis_store.put("rate:10_0_0_1:minute:1", '{"requests":1}', 120)
    client.set.assert_awaited_once_with("rate:10_0_0_1:minute:1", '{"requests":1}', ex=120)


async def test_list_scans_prefix(redis_store, client):
    client.scan.return_value = (17, ["attack_1", "attack_2"])
    result = await redis_store.list("attack_", limit=2)
    client.scan.assert_awaited_once_with(cursor=0, match="attack_*", count=2)
    assert result.keys == ["attack_1", "attack_2"]
    assert result.cursor == "17"
    assert result.complete is False


async def test_list_resumes_from_cursor_and_completes(redis_store, client):
    client.scan.return_value = (0, ["attack_3"])
    result = await redis_store.list("attack_", limit=2, cursor="17")
    client.scan.assert_awaited_once_with(cursor=17, match="attack_*", count=2)
    assert result.complete is True
    assert result.cursor is None


async def test_list_escapes_glob_characters(redis_store, client):
    client.scan.return_value = (0, [])
    await redis_store.list("odd[*]", limit=10)
    assert client.scan.await_args.kwargs["match"] == "odd\\[\\*\\]*"


async def test_delete(redis_store, client):
    await redis_store.delete("k")
    client.delete.assert_awaited_once_with("k")


@pytest.mark.parametrize("operation,args", [("get", ("k",)), ("put", ("k", "v", 10)), ("list", ("p",))])
async def test_driver_errors_become_storage_errors(redis_store, client, operation, args):
    error = RedisConnectionError("connection refused")
    client.get.side_effect = error
    client.set.side_effect = error
    client.scan.side_effect = error
    with pytest.raises(StorageError):
        await getattr(redis_store, operation)(*args)


async def test_close_closes_client(redis_store, client):
    await redis_store.close()
    client.aclose.assert_awaited_once()
