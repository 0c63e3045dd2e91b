"""ShieldGuard - Traffic Protection & Reputation Engine.

Decides allow/deny/challenge for every inbound request from per-source
reputation, fixed-window rate consumption and heuristic pattern matching, and
aggregates the resulting attack log into threat intelligence.
"""

from shield_guard.core.admin_utils import AdminInputError
from shield_guard.core.engine import ShieldGuard
from shield_guard.database.models import ProtectionDecision, ReputationRecord, RequestContext
from shield_guard.storage.base import KeyValueStore, StorageError, StorageTimeoutError
from shield_guard.storage.memory import InMemoryKeyValueStore

__version__ = "0.1.0"

__all__ = [
    "ShieldGuard",
    "AdminInputError",
    "ProtectionDecision",
    "ReputationRecord",
    "RequestContext",
    "KeyValueStore",
    "InMemoryKeyValueStore",
    "StorageError",
    "StorageTimeoutError",
]
