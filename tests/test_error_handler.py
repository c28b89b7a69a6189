"""Tests for the error handler: retries, recovery, feedback and reporting."""

import asyncio
import logging
import random
from typing import Any

import httpx
import pytest

from ops_resilience.errors import (
    ErrorCategory,
    ErrorCodes,
    ErrorContext,
    ErrorHandler,
    ErrorHandlerConfig,
    ErrorSeverity,
    ErrorSink,
    FeedbackType,
    HTTPStatusError,
    RecoveryOptions,
    RecoveryStrategy,
    StandardError,
)
from ops_resilience.errors.sinks import WebhookSink

from .conftest import FakeClock, RecordingSleep


class RecordingSink(ErrorSink):
    def __init__(self, name: str = "recording", fail: bool = False) -> None:
        self.name = name
        self.fail = fail
        self.payloads: list[dict[str, Any]] = []
        self.closed = False

    async def send(self, payload: dict[str, Any]) -> None:
        if self.fail:
            raise RuntimeError("sink unavailable")
        self.payloads.append(payload)

    async def aclose(self) -> None:
        self.closed = True


def critical_error() -> StandardError:
    return StandardError(
        code=ErrorCodes.SYSTEM_ERROR,
        message="database gone",
        category=ErrorCategory.DATABASE,
        severity=ErrorSeverity.CRITICAL,
    )


@pytest.fixture
def handler(clock: FakeClock, sleep: RecordingSleep) -> ErrorHandler:
    return ErrorHandler(
        ErrorHandlerConfig(max_retries=3, retry_delay_ms=100),
        rng=random.Random(1),
        sleep=sleep,
        clock=clock,
    )


class FlakyOperation:
    """Fails with the given exceptions, then returns ``result``."""

    def __init__(self, failures: list[BaseException], result: Any = "ok") -> None:
        self.failures = list(failures)
        self.result = result
        self.calls = 0

    async def __call__(self) -> Any:
        self.calls += 1
        if self.failures:
            raise self.failures.pop(0)
        return self.result


# Retry executor


async def test_retry_recovers_from_transient_failures(handler, sleep):
    operation = FlakyOperation([httpx.ConnectError("refused")] * 2)

    result = await handler.execute_with_retry(operation, ErrorContext(operation="load"))

    assert result == "ok"
    assert operation.calls == 3
    assert len(sleep.delays) == 2
    assert sleep.delays[0] < sleep.delays[1]


async def test_retry_is_bounded_by_max_retries(handler, sleep):
    operation = FlakyOperation([httpx.ConnectError("refused")] * 10)

    with pytest.raises(StandardError) as exc_info:
        await handler.execute_with_retry(operation, max_retries=4)

    assert operation.calls == 4
    assert len(sleep.delays) == 3
    assert exc_info.value.category == ErrorCategory.NETWORK


async def test_non_retryable_error_runs_once(handler, sleep):
    operation = FlakyOperation([ValueError("bad")] * 3)

    with pytest.raises(StandardError) as exc_info:
        await handler.execute_with_retry(operation)

    assert operation.calls == 1
    assert sleep.delays == []
    assert exc_info.value.category == ErrorCategory.UNKNOWN


async def test_category_outside_retry_set_runs_once(handler):
    operation = FlakyOperation([httpx.ConnectError("refused")] * 3)

    with pytest.raises(StandardError):
        await handler.execute_with_retry(
            operation, retryable_categories=[ErrorCategory.SERVER]
        )

    assert operation.calls == 1


async def test_retry_honours_retry_after(handler, sleep):
    operation = FlakyOperation([StandardError.rate_limited(500)])

    await handler.execute_with_retry(
        operation, retryable_categories=[ErrorCategory.RATE_LIMIT]
    )

    assert sleep.delays == [0.5]


async def test_every_failed_attempt_is_tracked(handler):
    operation = FlakyOperation([httpx.ConnectError("refused")] * 3)

    with pytest.raises(StandardError):
        await handler.execute_with_retry(operation)

    assert handler.get_error_stats()["errors_by_code"] == {ErrorCodes.CONNECTION_FAILED: 3}


async def test_retry_suppresses_user_feedback(handler):
    shown = []
    handler.subscribe_feedback(lambda error, feedback: shown.append(feedback))

    with pytest.raises(StandardError):
        await handler.execute_with_retry(FlakyOperation([ValueError("x")]))

    assert shown == []


async def test_cancellation_is_not_converted(handler):
    started = asyncio.Event()

    async def operation():
        started.set()
        await asyncio.Event().wait()

    task = asyncio.create_task(handler.execute_with_retry(operation))
    await started.wait()
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task
    assert handler.get_error_stats()["total_errors"] == 0


# Feedback


@pytest.mark.parametrize(
    "raw, feedback_type, duration_ms, dismissible, action_kinds",
    [
        (HTTPStatusError(404), FeedbackType.TOAST, 3000, True, []),
        (HTTPStatusError(401), FeedbackType.TOAST, 5000, True, ["retry"]),
        (HTTPStatusError(500), FeedbackType.BANNER, 0, True, ["retry", "acknowledge"]),
        (critical_error(), FeedbackType.MODAL, None, False, ["reload"]),
    ],
)
async def test_feedback_depends_on_severity(
    handler, raw, feedback_type, duration_ms, dismissible, action_kinds
):
    shown = []
    handler.subscribe_feedback(lambda error, feedback: shown.append(feedback))

    await handler.handle_error(raw, enable_recovery=False)

    assert len(shown) == 1
    feedback = shown[0]
    assert feedback.type == feedback_type
    assert feedback.duration_ms == duration_ms
    assert feedback.dismissible is dismissible
    assert [action.kind for action in feedback.actions] == action_kinds


async def test_high_and_critical_feedback_require_acknowledgement(handler):
    shown = []
    handler.subscribe_feedback(lambda error, feedback: shown.append(feedback))

    await handler.handle_error(HTTPStatusError(502), enable_recovery=False)
    await handler.handle_error(critical_error())

    assert all(feedback.requires_acknowledgement for feedback in shown)
    assert shown[1].title == "Erreur Critique"


async def test_async_subscriber_and_unsubscribe(handler):
    shown = []

    async def subscriber(error, feedback):
        shown.append(error.code)

    unsubscribe = handler.subscribe_feedback(subscriber)
    await handler.handle_error(HTTPStatusError(404))
    unsubscribe()
    await handler.handle_error(HTTPStatusError(404))

    assert shown == [ErrorCodes.RESOURCE_NOT_FOUND]


async def test_feedback_can_be_suppressed_per_call(handler):
    shown = []
    handler.subscribe_feedback(lambda error, feedback: shown.append(feedback))

    await handler.handle_error(HTTPStatusError(404), enable_user_feedback=False)

    assert shown == []


async def test_failing_subscriber_does_not_break_handling(handler, caplog):
    def broken(error, feedback):
        raise RuntimeError("ui gone")

    handler.subscribe_feedback(broken)

    with caplog.at_level(logging.ERROR):
        error = await handler.handle_error(HTTPStatusError(404))

    assert error.code == ErrorCodes.RESOURCE_NOT_FOUND
    assert "Feedback subscriber failed" in caplog.text


# Recovery


async def test_unauthorized_redirects_to_login(handler):
    redirects = []
    handler.set_redirect_handler(redirects.append)

    await handler.handle_error(HTTPStatusError(401))

    assert redirects == ["/auth/login"]


async def test_token_expired_triggers_refresh_hook(handler):
    refreshed = []

    async def refresh():
        refreshed.append(True)

    handler.register_refresh_handler("auth-token", refresh)
    expired = StandardError(
        code=ErrorCodes.TOKEN_EXPIRED,
        message="expired",
        category=ErrorCategory.AUTHENTICATION,
        severity=ErrorSeverity.MEDIUM,
    )

    await handler.handle_error(expired)

    assert refreshed == [True]


async def test_authentication_category_defaults_to_redirect(handler):
    locked = StandardError(
        code=ErrorCodes.ACCOUNT_LOCKED,
        message="locked",
        category=ErrorCategory.AUTHENTICATION,
        severity=ErrorSeverity.MEDIUM,
    )

    recovery = handler.get_recovery_strategy(locked)

    assert recovery.strategy == RecoveryStrategy.REDIRECT
    assert recovery.redirect_url == "/auth/login"


async def test_recovery_resolution_order(handler):
    timeout = StandardError.from_http(408)
    unavailable = StandardError.from_http(503)
    not_found = StandardError.from_http(404)

    assert handler.get_recovery_strategy(timeout).retry_delay_ms == 2000
    assert handler.get_recovery_strategy(unavailable).strategy == RecoveryStrategy.FALLBACK
    assert handler.get_recovery_strategy(not_found).strategy == RecoveryStrategy.NONE


async def test_custom_recovery_overrides_table(handler):
    calls = []

    async def fallback():
        calls.append("fallback")

    await handler.handle_error(
        HTTPStatusError(401),
        custom_recovery=RecoveryOptions(
            strategy=RecoveryStrategy.FALLBACK, fallback_action=fallback
        ),
    )

    assert calls == ["fallback"]
    assert handler.get_error_stats()["recoveries"] == {"FALLBACK": 1}


async def test_registered_manual_strategy_runs_custom_action(handler):
    calls = []
    handler.register_recovery_strategy(
        ErrorCodes.QUOTA_EXCEEDED,
        RecoveryOptions(
            strategy=RecoveryStrategy.MANUAL,
            custom_action=lambda: calls.append("contact support"),
        ),
    )

    await handler.handle_error(
        StandardError.business_logic("export", "quota", code=ErrorCodes.QUOTA_EXCEEDED)
    )

    assert calls == ["contact support"]


async def test_recovery_can_be_disabled(handler):
    redirects = []
    handler.set_redirect_handler(redirects.append)

    await handler.handle_error(HTTPStatusError(401), enable_recovery=False)

    assert redirects == []


async def test_failing_recovery_is_logged_not_raised(handler, caplog):
    def explode():
        raise RuntimeError("no fallback")

    with caplog.at_level(logging.ERROR):
        error = await handler.handle_error(
            HTTPStatusError(503),
            custom_recovery=RecoveryOptions(
                strategy=RecoveryStrategy.FALLBACK, fallback_action=explode
            ),
        )

    assert error.code == ErrorCodes.SERVICE_UNAVAILABLE
    assert "Error recovery failed" in caplog.text


# Reporting


async def test_monitoring_receives_safe_payload(clock, sleep):
    monitoring = RecordingSink("monitoring")
    handler = ErrorHandler(
        ErrorHandlerConfig(environment="staging", app_version="1.2.3"),
        monitoring_sink=monitoring,
        sleep=sleep,
        clock=clock,
    )

    await handler.handle_error(
        HTTPStatusError(500, "boom", {"card": "4111"}),
        ErrorContext(component="billing", user_id="u1"),
    )
    await handler.flush()

    assert len(monitoring.payloads) == 1
    payload = monitoring.payloads[0]
    assert payload["environment"] == "staging"
    assert payload["version"] == "1.2.3"
    assert payload["user_id"] == "u1"
    assert "details" not in payload["error"]
    assert "4111" not in str(payload)


async def test_only_critical_errors_are_notified(clock, sleep):
    notification = RecordingSink("notification")
    handler = ErrorHandler(notification_sink=notification, sleep=sleep, clock=clock)

    await handler.handle_error(HTTPStatusError(500))
    await handler.handle_error(critical_error())
    await handler.flush()

    assert [p["type"] for p in notification.payloads] == ["critical_error"]


async def test_sink_failures_are_swallowed(clock, sleep, caplog):
    monitoring = RecordingSink("monitoring", fail=True)
    handler = ErrorHandler(monitoring_sink=monitoring, sleep=sleep, clock=clock)

    with caplog.at_level(logging.ERROR):
        error = await handler.handle_error(HTTPStatusError(500))
        await handler.aclose()

    assert error.code == ErrorCodes.SYSTEM_ERROR
    assert "Failed to send error to monitoring" in caplog.text
    assert monitoring.closed


async def test_webhook_sink_posts_json():
    received = []

    def transport_handler(request: httpx.Request) -> httpx.Response:
        received.append((request.method, str(request.url), request.read()))
        return httpx.Response(204)

    client = httpx.AsyncClient(transport=httpx.MockTransport(transport_handler))
    sink = WebhookSink("http://hooks.test/errors", name="monitoring", client=client)

    await sink.send({"error": {"code": "NET_001"}})
    await client.aclose()

    method, url, body = received[0]
    assert method == "POST"
    assert url == "http://hooks.test/errors"
    assert b'"NET_001"' in body


async def test_missing_sink_urls_are_logged_once(caplog):
    with caplog.at_level(logging.INFO, logger="ops_resilience.errors.handler"):
        ErrorHandler(ErrorHandlerConfig())

    assert caplog.text.count("Error monitoring disabled") == 1
    assert caplog.text.count("Critical error notifications disabled") == 1


# Tracking and logging


async def test_burst_of_errors_logs_high_error_rate(handler, caplog):
    with caplog.at_level(logging.WARNING):
        for _ in range(11):
            await handler.handle_error(HTTPStatusError(404), enable_recovery=False)

    assert "High error rate detected for RES_001" in caplog.text


async def test_frequency_window_resets_after_an_hour(handler, clock):
    await handler.handle_error(HTTPStatusError(404))
    await handler.handle_error(HTTPStatusError(404))
    clock.advance(3601)
    await handler.handle_error(HTTPStatusError(404))

    assert handler.get_error_stats()["errors_by_code"] == {ErrorCodes.RESOURCE_NOT_FOUND: 1}


async def test_error_stats_group_by_code_and_category(handler):
    for _ in range(3):
        await handler.handle_error(HTTPStatusError(404))
    await handler.handle_error(HTTPStatusError(422))
    await handler.handle_error(ValueError("x"))

    stats = handler.get_error_stats()

    assert stats["total_errors"] == 5
    assert stats["errors_by_category"]["NOT_FOUND"] == 3
    assert stats["top_errors"][0] == {"code": ErrorCodes.RESOURCE_NOT_FOUND, "count": 3}


async def test_critical_errors_log_at_error_level(handler, caplog):
    with caplog.at_level(logging.DEBUG, logger="ops_resilience.errors.handler"):
        await handler.handle_error(critical_error())

    records = [r for r in caplog.records if "CRITICAL ERROR" in r.getMessage()]
    assert records and records[0].levelno == logging.ERROR
    assert records[0].error_code == ErrorCodes.SYSTEM_ERROR
