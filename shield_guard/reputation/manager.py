"""
ReputationLedger: per-source reputation scores with a sticky blacklist flag.
"""

import json
import time
from datetime import datetime, timezone
from typing import Callable, Optional

from shield_guard.core.keys import reputation_key
from shield_guard.core.ttl_manager import TTLManager
from shield_guard.database.models import ReputationRecord, isoformat
from shield_guard.storage.base import KeyValueStore, StorageError
from shield_guard.utils.logger import get_logger, get_ops_logger

MIN_SCORE = 0
MAX_SCORE = 100


def clamp_score(score: int) -> int:
    return max(MIN_SCORE, min(MAX_SCORE, int(score)))


class ReputationLedger:
    """Reads and updates reputation records in the store.

    Updates are read-modify-write without transactions: concurrent deltas on
    one source can overwrite each other (last writer wins).
    """

    def __init__(self, store: KeyValueStore, ttl_manager: TTLManager, clock: Callable[[], float] = time.time):
        self.store = store
        self.ttl_manager = ttl_manager
        self.clock = clock
        self.logger = get_logger("reputation.manager")
        self.ops_logger = get_ops_logger()

    def _now_iso(self) -> str:
        return isoformat(datetime.fromtimestamp(self.clock(), timezone.utc))

    def _default(self, source_id: str) -> ReputationRecord:
        return ReputationRecord(last_seen=self._now_iso(), source_id=source_id)

    async def get(self, source_id: str) -> ReputationRecord:
        """Return the stored record, or a default one if absent or unreadable."""
        try:
            raw = await self.store.get(reputation_key(source_id))
        except StorageError as e:
            self.logger.warning(f"Reputation read failed for {source_id}, using defaults: {e}")
            return self._default(source_id)
        if raw is None:
            return self._default(source_id)
        try:
            record = ReputationRecord.from_json_dict(json.loads(raw))
        except (ValueError, TypeError) as e:
            self.logger.warning(f"Discarding malformed reputation record for {source_id}: {e}")
            return self._default(source_id)
        record.score = clamp_score(record.score)
        if record.source_id is None:
            record.source_id = source_id
        return record

    async def _put(self, source_id: str, record: ReputationRecord) -> None:
        await self.store.put(
            reputation_key(source_id),
            json.dumps(record.to_json_dict(), separators=(",", ":")),
            self.ttl_manager.get_ttl("reputation"),
        )

    async def apply_delta(self, source_id: str, delta: int, seen_at: Optional[str] = None) -> ReputationRecord:
        """Add ``delta`` to the score, clamped to [0, 100].

        A negative delta counts as a violation. Reaching 0 blacklists the
        source; this method never clears the flag. Write failures are
        reported and swallowed.
        """
        record = await self.get(source_id)
        record.score = clamp_score(record.score + delta)
        record.last_seen = seen_at or self._now_iso()
        if delta < 0:
            record.attack_count += 1
        if record.score <= MIN_SCORE and not record.is_blacklisted:
            record.is_blacklisted = True
            self.logger.info(f"Source {source_id} blacklisted (score reached {record.score})")
        try:
            await self._put(source_id, record)
        except StorageError as e:
            self.ops_logger.error(f"Reputation update for {source_id} (delta {delta}) not persisted: {e}")
        return record

    async def record_violation(self, source_id: str, penalty: int, seen_at: str) -> ReputationRecord:
        """Apply a violation penalty dated ``seen_at``."""
        return await self.apply_delta(source_id, -abs(penalty), seen_at=seen_at)

    async def set_absolute(self, source_id: str, score: int, is_blacklisted: bool) -> ReputationRecord:
        """Overwrite score and blacklist flag, keeping the other fields.

        Raises:
            StorageError: If the record could not be written
        """
        record = await self.get(source_id)
        record.score = clamp_score(score)
        record.is_blacklisted = is_blacklisted
        record.last_seen = self._now_iso()
        await self._put(source_id, record)
        self.logger.info(f"Reputation of {source_id} set to {record.score} (blacklisted={is_blacklisted})")
        return record
