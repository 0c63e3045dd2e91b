"""Store construction from the ``storage`` configuration section."""

from shield_guard.storage.base import KeyValueStore, TimeBoundedStore
from shield_guard.storage.memory import InMemoryKeyValueStore
from shield_guard.utils.logger import get_logger


def create_store(storage_config: dict) -> KeyValueStore:
    """Build the configured backend wrapped with the operation timeout.

    Raises:
        ValueError: If the backend name is unknown
    """
    logger = get_logger("storage.factory")
    config = storage_config or {}
    backend = config.get("backend", "memory")

    if backend == "memory":
        store: KeyValueStore = InMemoryKeyValueStore()
    elif backend == "sqlite":
        from shield_guard.storage.sqlite import SQLiteKeyValueStore

        store = SQLiteKeyValueStore.from_path(config.get("database_path", ":memory:"))
    elif backend == "redis":
        from shield_guard.storage.redis_store import RedisKeyValueStore

        store = RedisKeyValueStore.from_url(config.get("redis_url", "redis://localhost:6379/0"))
    else:
        raise ValueError(f"Unknown storage backend: {backend}")

    logger.info(f"Using {backend} storage backend")
    return TimeBoundedStore(store, config.get("operation_timeout"))
