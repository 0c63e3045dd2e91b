"""Store key derivation.

Keys are derived from the source identifier, the record kind and, for
time-bucketed records, a window index or timestamp. Source identifiers are
normalized so that IPv4/IPv6 separators never leak into store keys.
"""

import re

REPUTATION_PREFIX = "reputation_"
ATTACK_PREFIX = "attack_"
RECENT_PREFIX = "recent_"
RATE_PREFIX = "rate:"
DIAGNOSTIC_PREFIX = "diagnostic:"

_UNSAFE = re.compile(r"[^A-Za-z0-9]")


def normalize_source_id(source_id: str) -> str:
    """Replace every non-alphanumeric character with ``_``."""
    return _UNSAFE.sub("_", source_id or "unknown")


def reputation_key(source_id: str) -> str:
    return f"{REPUTATION_PREFIX}{normalize_source_id(source_id)}"


def rate_key(source_id: str, granularity_name: str, window_index: int) -> str:
    return f"{RATE_PREFIX}{normalize_source_id(source_id)}:{granularity_name}:{window_index}"


def attack_key(timestamp_ms: int, source_id: str, request_id: str = "") -> str:
    key = f"{ATTACK_PREFIX}{timestamp_ms}_{normalize_source_id(source_id)}"
    if request_id:
        key = f"{key}_{normalize_source_id(request_id)[:8]}"
    return key


def recent_attacks_key(source_id: str) -> str:
    return f"{RECENT_PREFIX}{normalize_source_id(source_id)}"
