"""Retention (TTL) resolution for persisted records."""

from typing import Dict

RECORD_KINDS = ("reputation", "minute_window", "hour_window", "attack_log", "recent_attacks")

_DEFAULTS = {
    "reputation": 86400,
    "minute_window": 120,
    "hour_window": 7200,
    "attack_log": 604800,
    "recent_attacks": 86400,
}


class TTLManager:
    """Resolves the store expiry for each kind of record the engine writes."""

    def __init__(self, config: dict):
        """Initialize TTL manager with configuration.

        Args:
            config: Full engine configuration dictionary
        """
        self.config = config or {}
        retention = self.config.get("retention", {})
        self._ttls: Dict[str, int] = {
            kind: retention.get(f"{kind}_ttl_seconds", default) for kind, default in _DEFAULTS.items()
        }

    def get_ttl(self, kind: str) -> int:
        """Get TTL in seconds for a record kind.

        Raises:
            KeyError: If the record kind is unknown
        """
        if kind not in self._ttls:
            raise KeyError(f"Unknown record kind: {kind}")
        return self._ttls[kind]

    def get_window_ttl(self, granularity: int) -> int:
        """TTL for a rate window counter of the given granularity (seconds)."""
        if granularity <= 60:
            return self._ttls["minute_window"]
        return self._ttls["hour_window"]

    def as_dict(self) -> Dict[str, int]:
        return dict(self._ttls)
