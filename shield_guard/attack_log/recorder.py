"""Attack log persistence and per-source recent attack lists."""

import json
from typing import Dict, List, Optional

from shield_guard.core.keys import attack_key, recent_attacks_key
from shield_guard.core.ttl_manager import TTLManager
from shield_guard.database.models import AttackLogEntry, RecentAttack, RequestContext, isoformat
from shield_guard.storage.base import KeyValueStore, StorageError
from shield_guard.utils.logger import get_logger, get_ops_logger

SEVERITY_BY_ATTACK_TYPE: Dict[str, str] = {
    "rate limit exceeded": "medium",
    "rate_limit_exceeded": "medium",
    "blacklisted": "high",
    "blacklisted_ip": "high",
    "bot detected": "medium",
    "bot_detected": "medium",
    "suspicious_patterns": "low",
}

DEFAULT_SEVERITY = "low"


class AttackLogger:
    """Writes one immutable entry per denied request.

    Logging is best-effort: failures are reported on the operational logger
    and never reach the request path. The recent attacks list is updated with
    an unguarded read-modify-write and is advisory only.
    """

    def __init__(self, store: KeyValueStore, ttl_manager: TTLManager, attack_log_config: Optional[dict] = None):
        self.store = store
        self.ttl_manager = ttl_manager
        self.config = attack_log_config or {}
        self.recent_limit = self.config.get("recent_attacks_limit", 10)
        self.severities = dict(SEVERITY_BY_ATTACK_TYPE, **self.config.get("severity_overrides", {}))
        self.logger = get_logger("attack_log.recorder")
        self.ops_logger = get_ops_logger()

    def severity_for(self, attack_type: str) -> str:
        """Map an attack-type label to a severity; unmapped labels are ``low``."""
        return self.severities.get(attack_type, self.severities.get(attack_type.lower(), DEFAULT_SEVERITY))

    def build_entry(self, context: RequestContext, attack_type: str) -> AttackLogEntry:
        return AttackLogEntry(
            timestamp=isoformat(context.timestamp),
            source_id=context.source_id,
            country=context.country,
            user_agent=context.user_agent,
            attack_type=attack_type,
            severity=self.severity_for(attack_type),
            details={"path": context.path, "method": context.method, "requestId": context.request_id},
        )

    async def record(self, context: RequestContext, attack_type: str) -> Optional[AttackLogEntry]:
        """Persist an attack entry and prepend it to the source's recent list.

        Returns:
            The written entry, or None if it could not be persisted
        """
        entry = self.build_entry(context, attack_type)
        key = attack_key(int(context.timestamp.timestamp() * 1000), context.source_id, context.request_id)
        try:
            await self.store.put(
                key,
                json.dumps(entry.to_json_dict(), separators=(",", ":")),
                self.ttl_manager.get_ttl("attack_log"),
            )
        except StorageError as e:
            self.ops_logger.error(f"Failed to log attack {attack_type!r} from {context.source_id}: {e}")
            return None

        self.logger.info(f"[ATTACK] {entry.severity} {attack_type!r} from {context.source_id} on {context.path}")

        try:
            await self._prepend_recent(context.source_id, entry)
        except StorageError as e:
            self.ops_logger.error(f"Failed to update recent attacks for {context.source_id}: {e}")
        return entry

    async def _prepend_recent(self, source_id: str, entry: AttackLogEntry) -> None:
        recent = await self._read_recent(source_id)
        recent.insert(0, RecentAttack(timestamp=entry.timestamp, attack_type=entry.attack_type, severity=entry.severity))
        del recent[self.recent_limit :]
        payload = {"attacks": [item.to_json_dict() for item in recent]}
        await self.store.put(
            recent_attacks_key(source_id),
            json.dumps(payload, separators=(",", ":")),
            self.ttl_manager.get_ttl("recent_attacks"),
        )

    async def _read_recent(self, source_id: str) -> List[RecentAttack]:
        raw = await self.store.get(recent_attacks_key(source_id))
        if raw is None:
            return []
        try:
            attacks = json.loads(raw).get("attacks", [])
            return [RecentAttack.from_json_dict(item) for item in attacks if isinstance(item, dict)]
        except (ValueError, TypeError, AttributeError) as e:
            self.logger.warning(f"Discarding malformed recent attacks list for {source_id}: {e}")
            return []

    async def get_recent_attacks(self, source_id: str) -> List[RecentAttack]:
        """Recent attacks for a source, newest first; empty when unavailable."""
        try:
            return await self._read_recent(source_id)
        except StorageError as e:
            self.logger.warning(f"Recent attacks read failed for {source_id}: {e}")
            return []
