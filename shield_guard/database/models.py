"""Data models for ShieldGuard."""

import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional

SEVERITY_LEVELS = ("low", "medium", "high", "critical")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def isoformat(value: datetime) -> str:
    """ISO-8601 in UTC with millisecond precision and a ``Z`` suffix."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 timestamp, treating naive values as UTC."""
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass
class ReputationRecord:
    """Reputation of a single source."""

    score: int = 0
    last_seen: str = field(default_factory=lambda: isoformat(utc_now()))
    attack_count: int = 0
    is_blacklisted: bool = False
    # Reserved for a challenge-verification flow; stored but never interpreted.
    challenges_passed: int = 0
    challenges_failed: int = 0
    source_id: Optional[str] = None

    def to_json_dict(self) -> Dict[str, Any]:
        return {
            "score": self.score,
            "lastSeen": self.last_seen,
            "attackCount": self.attack_count,
            "isBlacklisted": self.is_blacklisted,
            "challengesPassed": self.challenges_passed,
            "challengesFailed": self.challenges_failed,
            "sourceId": self.source_id,
        }

    @classmethod
    def from_json_dict(cls, data: Dict[str, Any]) -> "ReputationRecord":
        if not isinstance(data, dict):
            raise ValueError("reputation payload must be an object")
        return cls(
            score=int(data.get("score", 0)),
            last_seen=str(data.get("lastSeen") or isoformat(utc_now())),
            attack_count=int(data.get("attackCount", 0)),
            is_blacklisted=bool(data.get("isBlacklisted", False)),
            challenges_passed=int(data.get("challengesPassed", 0)),
            challenges_failed=int(data.get("challengesFailed", 0)),
            source_id=data.get("sourceId"),
        )


@dataclass
class RateWindowCounter:
    """Request count for one source in one fixed window."""

    requests: int = 0
    window_start: int = 0
    blocked: bool = False

    def to_json_dict(self) -> Dict[str, Any]:
        return {"requests": self.requests, "windowStart": self.window_start, "blocked": self.blocked}

    @classmethod
    def from_json_dict(cls, data: Dict[str, Any]) -> "RateWindowCounter":
        if not isinstance(data, dict):
            raise ValueError("rate window payload must be an object")
        return cls(
            requests=int(data.get("requests", 0)),
            window_start=int(data.get("windowStart", 0)),
            blocked=bool(data.get("blocked", False)),
        )


@dataclass
class RateLimitSnapshot:
    """Decision-time view of a source's rate consumption."""

    requests: int
    hour_requests: int
    window_start: int
    blocked: bool


@dataclass
class RequestContext:
    """Request metadata the engine decides on."""

    source_id: str
    path: str = "/"
    method: str = "GET"
    user_agent: str = "unknown"
    headers: Dict[str, str] = field(default_factory=dict)
    country: str = "unknown"
    city: str = "unknown"
    request_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: datetime = field(default_factory=utc_now)

    def __post_init__(self):
        self.headers = {str(k).lower(): v for k, v in (self.headers or {}).items()}
        # Naive timestamps are UTC
        if self.timestamp.tzinfo is None:
            self.timestamp = self.timestamp.replace(tzinfo=timezone.utc)
        else:
            self.timestamp = self.timestamp.astimezone(timezone.utc)

    @classmethod
    def from_request(
        cls,
        method: str,
        path: str,
        headers: Dict[str, str],
        client_address: Optional[str] = None,
    ) -> "RequestContext":
        """Build a context from raw request metadata.

        The source is taken from ``cf-connecting-ip``, then the first hop of
        ``x-forwarded-for``, then ``x-real-ip``, then the socket address.
        """
        lowered = {str(k).lower(): v for k, v in (headers or {}).items()}
        source = lowered.get("cf-connecting-ip")
        if not source and lowered.get("x-forwarded-for"):
            source = lowered["x-forwarded-for"].split(",")[0].strip()
        if not source:
            source = lowered.get("x-real-ip") or client_address or "unknown"
        return cls(
            source_id=source,
            path=path or "/",
            method=(method or "GET").upper(),
            user_agent=lowered.get("user-agent") or "unknown",
            headers=lowered,
            country=lowered.get("cf-ipcountry") or "unknown",
            city=lowered.get("cf-ipcity") or "unknown",
        )


@dataclass
class AttackLogEntry:
    """Immutable record of a denied or suspicious request."""

    timestamp: str
    source_id: str
    country: str
    user_agent: str
    attack_type: str
    severity: str
    details: Dict[str, Any] = field(default_factory=dict)

    def to_json_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "ip": self.source_id,
            "country": self.country,
            "userAgent": self.user_agent,
            "attackType": self.attack_type,
            "severity": self.severity,
            "details": self.details,
        }

    @classmethod
    def from_json_dict(cls, data: Dict[str, Any]) -> "AttackLogEntry":
        if not isinstance(data, dict) or "timestamp" not in data:
            raise ValueError("attack log payload must be an object with a timestamp")
        return cls(
            timestamp=str(data["timestamp"]),
            source_id=str(data.get("ip", "unknown")),
            country=str(data.get("country", "unknown")),
            user_agent=str(data.get("userAgent", "unknown")),
            attack_type=str(data.get("attackType", "unknown")),
            severity=str(data.get("severity", "low")),
            details=data.get("details") or {},
        )

    @property
    def occurred_at(self) -> datetime:
        return parse_timestamp(self.timestamp)


@dataclass
class RecentAttack:
    """Minimal entry of a per-source recent attacks list."""

    timestamp: str
    attack_type: str
    severity: str

    def to_json_dict(self) -> Dict[str, Any]:
        return {"timestamp": self.timestamp, "attackType": self.attack_type, "severity": self.severity}

    @classmethod
    def from_json_dict(cls, data: Dict[str, Any]) -> "RecentAttack":
        return cls(
            timestamp=str(data.get("timestamp", "")),
            attack_type=str(data.get("attackType", "unknown")),
            severity=str(data.get("severity", "low")),
        )


@dataclass
class ProtectionDecision:
    """Outcome of evaluating one request."""

    allowed: bool
    reason: Optional[str] = None
    challenge: bool = False
    reputation: Optional[ReputationRecord] = None
    rate_limit: Optional[RateLimitSnapshot] = None

    @property
    def status_code(self) -> int:
        if self.allowed:
            return 200
        if self.challenge:
            return 403
        return 429

    def to_dict(self) -> Dict[str, Any]:
        return {
            "allowed": self.allowed,
            "reason": self.reason,
            "challenge": self.challenge,
            "reputation": self.reputation.to_json_dict() if self.reputation else None,
            "rate_limit": asdict(self.rate_limit) if self.rate_limit else None,
        }
