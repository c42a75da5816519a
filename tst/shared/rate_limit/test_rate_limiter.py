from concurrent.futures import ThreadPoolExecutor

import pytest
from starlette.requests import Request

from school_gateway.shared.rate_limit.database import RateLimitRow
from school_gateway.shared.rate_limit.rate_limiter import (
    DatabaseRateLimiter,
    InMemoryRateLimiter,
    RateLimitDecision,
    get_client_ip,
)


def _request(headers):
    scope = {
        "type": "http",
        "method": "POST",
        "path": "/",
        "headers": [(k.lower().encode(), v.encode()) for k, v in headers.items()],
        "client": ("10.0.0.9", 1234),
    }
    return Request(scope)


def test_allows_exactly_quota_requests_per_window(clock):
    limiter = InMemoryRateLimiter(quota=5, window_seconds=3600, clock=clock)

    decisions = [limiter.check("1.2.3.4") for _ in range(5)]
    assert decisions == [RateLimitDecision(True, remaining) for remaining in (4, 3, 2, 1, 0)]

    assert limiter.check("1.2.3.4") == RateLimitDecision(False, 0)
    assert limiter.check("1.2.3.4") == RateLimitDecision(False, 0)


def test_window_resets_after_it_elapses(clock):
    limiter = InMemoryRateLimiter(quota=3, window_seconds=3600, clock=clock)
    for _ in range(3):
        assert limiter.check("client").allowed
    assert not limiter.check("client").allowed

    # Still inside the window at exactly reset time
    clock.advance(3600)
    assert not limiter.check("client").allowed

    clock.advance(1)
    assert [limiter.check("client").allowed for _ in range(4)] == [True, True, True, False]


def test_identities_are_counted_separately(clock):
    limiter = InMemoryRateLimiter(quota=1, window_seconds=60, clock=clock)
    assert limiter.check("a").allowed
    assert not limiter.check("a").allowed
    assert limiter.check("b").allowed


def test_rejected_requests_do_not_extend_the_window(clock):
    limiter = InMemoryRateLimiter(quota=1, window_seconds=60, clock=clock)
    limiter.check("a")
    clock.advance(30)
    assert not limiter.check("a").allowed
    clock.advance(31)
    assert limiter.check("a").allowed


def test_expired_records_are_evicted_on_sweep(clock):
    limiter = InMemoryRateLimiter(quota=2, window_seconds=60, clock=clock, sweep_interval_seconds=120)
    for identity in ("a", "b", "c"):
        limiter.check(identity)
    assert len(limiter) == 3

    clock.advance(121)
    limiter.check("d")
    assert len(limiter) == 1


def test_evict_expired_keeps_live_windows(clock):
    limiter = InMemoryRateLimiter(quota=2, window_seconds=60, clock=clock, sweep_interval_seconds=None)
    limiter.check("old")
    clock.advance(50)
    limiter.check("new")
    clock.advance(20)
    assert limiter.evict_expired() == 1
    assert len(limiter) == 1


def test_concurrent_burst_cannot_exceed_quota():
    limiter = InMemoryRateLimiter(quota=10, window_seconds=3600)
    with ThreadPoolExecutor(max_workers=16) as pool:
        decisions = list(pool.map(lambda _: limiter.check("burst"), range(200)))
    assert sum(1 for d in decisions if d.allowed) == 10


def test_rejects_invalid_configuration():
    with pytest.raises(ValueError):
        InMemoryRateLimiter(quota=0)
    with pytest.raises(ValueError):
        InMemoryRateLimiter(quota=1, window_seconds=0)


def test_client_ip_prefers_first_forwarded_address():
    request = _request({"X-Forwarded-For": "203.0.113.7, 10.0.0.1", "CF-Connecting-IP": "198.51.100.2"})
    assert get_client_ip(request) == "203.0.113.7"


def test_client_ip_falls_back_to_cloudflare_header_then_unknown():
    assert get_client_ip(_request({"CF-Connecting-IP": "198.51.100.2"})) == "198.51.100.2"
    assert get_client_ip(_request({})) == "unknown"


def test_database_limiter_counts_within_window(session_factory, clock):
    limiter = DatabaseRateLimiter(
        session_factory, scope="contact", quota=3, window_seconds=3600,
        clock=clock, sweep_interval_seconds=None,
    )
    assert [limiter.check("1.2.3.4") for _ in range(3)] == [
        RateLimitDecision(True, 2),
        RateLimitDecision(True, 1),
        RateLimitDecision(True, 0),
    ]
    assert limiter.check("1.2.3.4") == RateLimitDecision(False, 0)

    clock.advance(3601)
    assert limiter.check("1.2.3.4") == RateLimitDecision(True, 2)


def test_database_limiter_scopes_do_not_share_counters(session_factory, clock):
    contact = DatabaseRateLimiter(session_factory, "contact", quota=1, clock=clock, sweep_interval_seconds=None)
    admission = DatabaseRateLimiter(session_factory, "admission", quota=1, clock=clock, sweep_interval_seconds=None)
    assert contact.check("ip").allowed
    assert admission.check("ip").allowed
    assert not contact.check("ip").allowed


def test_database_limiter_evicts_expired_rows(session_factory, db_session, clock):
    limiter = DatabaseRateLimiter(session_factory, "contact", quota=1, window_seconds=60, clock=clock,
                                  sweep_interval_seconds=None)
    limiter.check("a")
    limiter.check("b")
    clock.advance(61)
    assert limiter.evict_expired() == 2
    assert db_session.query(RateLimitRow).count() == 0


def test_database_limiter_fails_open_when_store_is_unavailable(clock):
    from sqlalchemy.exc import OperationalError

    class BrokenSession:
        def execute(self, *args, **kwargs):
            raise OperationalError("UPDATE rate_limit_records", {}, Exception("database is down"))

        def rollback(self):
            pass

        def close(self):
            pass

    limiter = DatabaseRateLimiter(BrokenSession, "contact", quota=3, clock=clock, sweep_interval_seconds=None)
    assert limiter.check("ip") == RateLimitDecision(True, 2)
