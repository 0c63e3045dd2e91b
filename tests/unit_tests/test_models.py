import json
from datetime import datetime, timedelta, timezone

from shield_guard.database.models import (
    AttackLogEntry,
    ProtectionDecision,
    RateLimitSnapshot,
    RateWindowCounter,
    ReputationRecord,
    RequestContext,
    isoformat,
    parse_timestamp,
)


def test_isoformat_uses_z_suffix_and_milliseconds():
    value = datetime(2026, 10, 19, 14, 5, 7, 123456, tzinfo=timezone.utc)
    assert isoformat(value) == "2026-10-19T14:05:07.123Z"


def test_isoformat_converts_offsets_to_utc():
    value = datetime(2026, 10, 19, 16, 0, tzinfo=timezone(timedelta(hours=2)))
    assert isoformat(value) == "2026-10-19T14:00:00.000Z"


def test_parse_timestamp_accepts_z_and_naive():
    assert parse_timestamp("2026-10-19T14:00:00.000Z").hour == 14
    naive = parse_timestamp("2026-10-19T14:00:00")
    assert naive.tzinfo is not None
    assert naive.utcoffset() == timedelta(0)


def test_reputation_record_wire_format():
    record = ReputationRecord(score=42, last_seen="2026-10-19T14:00:00.000Z", attack_count=3, source_id="10.0.0.1")
    data = json.loads(json.dumps(record.to_json_dict()))
    assert data == {
        "score": 42,
        "lastSeen": "2026-10-19T14:00:00.000Z",
        "attackCount": 3,
        "isBlacklisted": False,
        "challengesPassed": 0,
        "challengesFailed": 0,
        "sourceId": "10.0.0.1",
    }
    assert ReputationRecord.from_json_dict(data) == record


def test_reputation_record_reads_payload_without_source():
    record = ReputationRecord.from_json_dict({"score": 7, "lastSeen": "x", "attackCount": 1, "isBlacklisted": True})
    assert record.source_id is None
    assert record.is_blacklisted is True


def test_rate_window_counter_wire_format():
    counter = RateWindowCounter(requests=3, window_start=1792440000)
    assert counter.to_json_dict() == {"requests": 3, "windowStart": 1792440000, "blocked": False}


def test_attack_log_entry_uses_ip_field():
    entry = AttackLogEntry(
        timestamp="2026-10-19T14:00:00.000Z",
        source_id="10.0.0.1",
        country="DE",
        user_agent="curl/8.0",
        attack_type="bot detected",
        severity="medium",
    )
    data = entry.to_json_dict()
    assert data["ip"] == "10.0.0.1"
    assert data["attackType"] == "bot detected"
    assert data["userAgent"] == "curl/8.0"
    assert AttackLogEntry.from_json_dict(data).occurred_at.hour == 14


class TestRequestContext:
    def test_headers_are_lowercased(self):
        context = RequestContext(source_id="10.0.0.1", headers={"Accept": "*/*"})
        assert context.headers == {"accept": "*/*"}

    def test_from_request_prefers_cf_connecting_ip(self):
        context = RequestContext.from_request(
            "get",
            "/api",
            {"CF-Connecting-IP": "203.0.113.7", "X-Forwarded-For": "198.51.100.1", "CF-IPCountry": "NL"},
            "127.0.0.1",
        )
        assert context.source_id == "203.0.113.7"
        assert context.method == "GET"
        assert context.country == "NL"

    def test_from_request_uses_first_forwarded_hop(self):
        context = RequestContext.from_request(
            "GET", "/", {"X-Forwarded-For": "198.51.100.1, 10.0.0.2"}, "127.0.0.1"
        )
        assert context.source_id == "198.51.100.1"

    def test_from_request_falls_back_to_socket_address(self):
        context = RequestContext.from_request("GET", "/", {"User-Agent": "Mozilla/5.0 (X11)"}, "127.0.0.1")
        assert context.source_id == "127.0.0.1"
        assert context.user_agent == "Mozilla/5.0 (X11)"

    def test_from_request_without_any_source(self):
        context = RequestContext.from_request("GET", "/", {}, None)
        assert context.source_id == "unknown"
        assert context.user_agent == "unknown"

    def test_request_ids_are_unique(self):
        assert RequestContext(source_id="a").request_id != RequestContext(source_id="a").request_id


class TestProtectionDecision:
    def test_status_codes(self):
        assert ProtectionDecision(allowed=True).status_code == 200
        assert ProtectionDecision(allowed=False, reason="bot detected", challenge=True).status_code == 403
        assert ProtectionDecision(allowed=False, reason="rate limit exceeded").status_code == 429

    def test_to_dict(self):
        decision = ProtectionDecision(
            allowed=False,
            reason="rate limit exceeded",
            reputation=ReputationRecord(score=10, last_seen="t"),
            rate_limit=RateLimitSnapshot(requests=60, hour_requests=60, window_start=0, blocked=True),
        )
        data = decision.to_dict()
        assert data["reputation"]["score"] == 10
        assert data["rate_limit"]["blocked"] is True


def test_request_context_timestamps_are_utc():
    naive = RequestContext(source_id="a", timestamp=datetime(2026, 10, 19, 14, 0))
    assert naive.timestamp == datetime(2026, 10, 19, 14, 0, tzinfo=timezone.utc)
    offset = RequestContext(
        source_id="a", timestamp=datetime(2026, 10, 19, 16, 0, tzinfo=timezone(timedelta(hours=2)))
    )
    assert offset.timestamp.tzinfo == timezone.utc
    assert offset.timestamp.hour == 14
