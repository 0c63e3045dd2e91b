"""Administrative operations: reputation overrides and cache control."""

from typing import Any, Dict

from shield_guard.database.models import ReputationRecord
from shield_guard.monitoring.manager import AnalyticsAggregator
from shield_guard.reputation.manager import MAX_SCORE, MIN_SCORE, ReputationLedger
from shield_guard.utils.logger import get_logger

SOURCE_FIELDS = ("source_id", "ip")


class AdminInputError(ValueError):
    """Malformed administrative input (a client error, not a storage error)."""

    pass


def validate_source_id(source_id: Any) -> str:
    """Return the stripped source id or raise ``AdminInputError``."""
    if not isinstance(source_id, str) or not source_id.strip():
        raise AdminInputError("A non-empty source identifier is required")
    return source_id.strip()


def extract_source_id(payload: Any) -> str:
    """Extract the source identifier from an admin request body.

    Accepts ``{"source_id": ...}`` or ``{"ip": ...}``.

    Raises:
        AdminInputError: If the body is not an object or has no usable source
    """
    if not isinstance(payload, dict):
        raise AdminInputError("Request body must be a JSON object")
    for name in SOURCE_FIELDS:
        if name in payload:
            return validate_source_id(payload[name])
    raise AdminInputError(f"Request body must contain one of: {', '.join(SOURCE_FIELDS)}")


class AdminOperations:
    """Whitelist / blacklist overrides and analytics cache invalidation."""

    def __init__(self, ledger: ReputationLedger, aggregator: AnalyticsAggregator):
        self.ledger = ledger
        self.aggregator = aggregator
        self.logger = get_logger("core.admin")

    async def whitelist(self, source_id: Any) -> ReputationRecord:
        """Reset a source to full trust: score 100, blacklist cleared.

        Raises:
            AdminInputError: If ``source_id`` is missing or empty
            StorageError: If the record could not be written
        """
        source_id = validate_source_id(source_id)
        record = await self.ledger.set_absolute(source_id, MAX_SCORE, False)
        self.logger.info(f"[ADMIN] whitelisted {source_id}")
        return record

    async def blacklist(self, source_id: Any) -> ReputationRecord:
        """Block a source: score 0, blacklist set."""
        source_id = validate_source_id(source_id)
        record = await self.ledger.set_absolute(source_id, MIN_SCORE, True)
        self.logger.info(f"[ADMIN] blacklisted {source_id}")
        return record

    def clear_cache(self) -> Dict[str, Any]:
        return {"success": True, "cleared_views": self.aggregator.clear_cache()}
