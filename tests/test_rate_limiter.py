"""Tests for the fixed-window rate limiter."""

import pytest

from ops_resilience.client import RateLimitConfig, RateLimiter, endpoint_pattern, rate_limit_key


@pytest.mark.parametrize(
    "endpoint, pattern",
    [
        ("/users/42", "/users/:id"),
        ("/users/42/orders/7?page=2", "/users/:id/orders/:id"),
        ("/v2/reports", "/v2/reports"),
        ("/items/123abc", "/items/123abc"),
        (
            "/tickets/3f2b9c1e-8a4d-4e6f-9b2a-1c3d5e7f9a0b/comments",
            "/tickets/:id/comments",
        ),
    ],
)
def test_endpoint_pattern(endpoint, pattern):
    assert endpoint_pattern(endpoint) == pattern


def test_rate_limit_key_defaults_to_anonymous():
    assert rate_limit_key(None, "/users/1") == "anonymous:/users/:id"
    assert rate_limit_key("u7", "/users/1") == "u7:/users/:id"


def test_call_after_limit_is_rejected_until_next_window(clock):
    limiter = RateLimiter(RateLimitConfig(limit=3, window_ms=60_000), clock=clock)

    decisions = [limiter.check("k") for _ in range(3)]
    clock.advance(10)
    rejected = limiter.check("k")

    assert all(d.allowed for d in decisions)
    assert [d.remaining for d in decisions] == [2, 1, 0]
    assert not rejected.allowed
    assert rejected.retry_after_ms == pytest.approx(50_000)

    clock.advance(50)
    assert limiter.check("k").allowed


def test_rejected_calls_do_not_consume_budget(clock):
    limiter = RateLimiter(RateLimitConfig(limit=1, window_ms=1000), clock=clock)

    limiter.check("k")
    limiter.check("k")
    limiter.check("k")

    assert limiter.get_status("k")["remaining"] == 0
    clock.advance(1)
    assert limiter.check("k").allowed


def test_keys_are_independent(clock):
    limiter = RateLimiter(RateLimitConfig(limit=1), clock=clock)

    assert limiter.check("a:/x").allowed
    assert limiter.check("b:/x").allowed
    assert not limiter.check("a:/x").allowed


def test_status_without_calls_reports_full_budget(clock):
    limiter = RateLimiter(RateLimitConfig(limit=5), clock=clock)

    status = limiter.get_status("fresh")

    assert status["remaining"] == 5
    assert status["reset_at"] is None


def test_reset_clears_entries(clock):
    limiter = RateLimiter(RateLimitConfig(limit=1), clock=clock)
    limiter.check("k")

    limiter.reset("k")

    assert limiter.check("k").allowed
