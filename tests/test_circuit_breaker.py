"""Tests for the circuit breaker state machine."""

from ops_resilience.client import CircuitBreaker, CircuitBreakerRegistry, CircuitState


def make_breaker(clock) -> CircuitBreaker:
    return CircuitBreaker(failure_threshold=3, recovery_timeout_ms=10_000, name="/items", clock=clock)


def test_opens_after_consecutive_failures(clock):
    breaker = make_breaker(clock)

    for _ in range(3):
        assert breaker.allow_request()
        breaker.record_failure()

    assert breaker.state == CircuitState.OPEN
    assert not breaker.allow_request()
    assert breaker.retry_after_ms() == 10_000


def test_success_resets_failure_count(clock):
    breaker = make_breaker(clock)

    breaker.record_failure()
    breaker.record_failure()
    breaker.record_success()
    breaker.record_failure()

    assert breaker.state == CircuitState.CLOSED
    assert breaker.failure_count == 1


def test_half_open_closes_after_three_successes(clock):
    breaker = make_breaker(clock)
    for _ in range(3):
        breaker.record_failure()

    clock.advance(10)
    assert breaker.allow_request()
    assert breaker.state == CircuitState.HALF_OPEN

    for _ in range(3):
        breaker.record_success()

    assert breaker.state == CircuitState.CLOSED


def test_failure_while_half_open_reopens(clock):
    breaker = make_breaker(clock)
    for _ in range(3):
        breaker.record_failure()
    clock.advance(10)
    breaker.allow_request()

    breaker.record_failure()

    assert breaker.state == CircuitState.OPEN
    assert breaker.get_stats()["circuit_opened_count"] == 2


def test_registry_creates_one_breaker_per_name(clock):
    registry = CircuitBreakerRegistry(failure_threshold=1, clock=clock)

    registry.get("/a").record_failure()

    assert registry.get("/a").state == CircuitState.OPEN
    assert registry.get("/b").state == CircuitState.CLOSED
    registry.reset_all()
    assert registry.get_all_stats()["/a"]["state"] == "closed"
