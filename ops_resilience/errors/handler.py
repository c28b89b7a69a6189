# ops_resilience/errors/handler.py

"""
Centralized error handling with recovery, monitoring and retries.

The handler normalizes every failure, logs it by severity, tracks error
bursts, dispatches reports to monitoring and notification sinks, runs one
recovery strategy and signals presentation hints to subscribers. It also
owns the retry executor used by the request pipeline.
"""

import asyncio
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
import inspect
import logging
import random
import time
from typing import Any, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
)

from .classifier import ErrorClassifier
from .feedback import get_feedback_config
from .messages import DEFAULT_LOCALE
from .sinks import (
    ErrorSink,
    NullSink,
    build_sink,
    monitoring_payload,
    notification_payload,
)
from .standard_error import StandardError, normalize
from .types import (
    DEFAULT_RETRY_CATEGORIES,
    ErrorCategory,
    ErrorCodes,
    ErrorContext,
    ErrorSeverity,
    FeedbackConfig,
    RecoveryOptions,
    RecoveryStrategy,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

FeedbackSubscriber = Callable[[StandardError, FeedbackConfig], Awaitable[None] | None]
RedirectHandler = Callable[[str], Awaitable[None] | None]
RefreshHandler = Callable[[], Awaitable[None] | None]

LOGIN_URL = "/auth/login"


@dataclass
class ErrorHandlerConfig:
    """Configuration for the error handler.

    Attributes:
        enable_recovery: Whether recovery strategies run
        enable_user_feedback: Whether feedback subscribers are notified
        max_retries: Default attempt budget for ``execute_with_retry``
        retry_delay_ms: Default base backoff delay in milliseconds
        high_error_rate_threshold: Per-code count that triggers a warning
        error_rate_window_ms: Window of the per-code frequency tracker
        monitoring_endpoint: Monitoring sink URL
        notification_webhook: Critical notification sink URL
        environment: Environment name reported to monitoring
        app_version: Application version reported to monitoring
        locale: Locale of user messages and feedback labels
    """

    enable_recovery: bool = True
    enable_user_feedback: bool = True
    max_retries: int = 3
    retry_delay_ms: float = 1000.0
    high_error_rate_threshold: int = 10
    error_rate_window_ms: float = 3_600_000.0
    monitoring_endpoint: str | None = None
    notification_webhook: str | None = None
    environment: str = "development"
    app_version: str = "unknown"
    locale: str = DEFAULT_LOCALE


@dataclass
class _ErrorCount:
    count: int
    window_start: float
    category: ErrorCategory


async def _maybe_await(result: Any) -> None:
    if inspect.isawaitable(result):
        await result


class ErrorHandler:
    """Normalizes, reports and recovers from errors."""

    def __init__(
        self,
        config: ErrorHandlerConfig | None = None,
        *,
        monitoring_sink: ErrorSink | None = None,
        notification_sink: ErrorSink | None = None,
        classifier: ErrorClassifier | None = None,
        rng: random.Random | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the error handler.

        Args:
            config: Handler configuration
            monitoring_sink: Sink receiving every handled error
            notification_sink: Sink receiving CRITICAL errors
            classifier: Classifier for native exceptions
            rng: Jitter source for retry delays
            sleep: Coroutine used to wait between attempts, in seconds
            clock: Time source in seconds
        """
        self._config = config or ErrorHandlerConfig()
        self._monitoring_sink = monitoring_sink or build_sink(
            self._config.monitoring_endpoint, "monitoring"
        )
        self._notification_sink = notification_sink or build_sink(
            self._config.notification_webhook, "notification"
        )
        self._classifier = classifier or ErrorClassifier()
        self._rng = rng or random.Random()
        self._sleep = sleep
        self._clock = clock

        self._recovery_strategies: dict[str, RecoveryOptions] = {}
        self._error_counts: dict[str, _ErrorCount] = {}
        self._recovery_counts: dict[RecoveryStrategy, int] = {}
        self._feedback_subscribers: list[FeedbackSubscriber] = []
        self._refresh_handlers: dict[str, RefreshHandler] = {}
        self._redirect_handler: RedirectHandler | None = None
        self._pending_dispatches: set[asyncio.Task] = set()

        self._setup_default_recovery_strategies()
        self._log_disabled_sinks()

    @property
    def config(self) -> ErrorHandlerConfig:
        return self._config

    def _log_disabled_sinks(self) -> None:
        if isinstance(self._monitoring_sink, NullSink):
            logger.info("Error monitoring disabled: no monitoring endpoint configured")
        if isinstance(self._notification_sink, NullSink):
            logger.info(
                "Critical error notifications disabled: no notification webhook configured"
            )

    # Main entry point

    async def handle_error(
        self,
        error: Any,
        context: ErrorContext | None = None,
        *,
        enable_recovery: bool | None = None,
        enable_user_feedback: bool | None = None,
        custom_recovery: RecoveryOptions | None = None,
        correlation_id: str | None = None,
    ) -> StandardError:
        """Handle any raised value and return it as a ``StandardError``.

        Never raises: failures inside logging, tracking, dispatch, recovery
        or feedback are logged and ignored.

        Args:
            error: Exception, HTTP-shaped error or any raised value
            context: Context of the failing operation
            enable_recovery: ``False`` suppresses recovery for this call
            enable_user_feedback: ``False`` suppresses feedback for this call
            custom_recovery: Recovery used instead of the resolved strategy
            correlation_id: Request the error belongs to

        Returns:
            The normalized error
        """
        context = context or ErrorContext()
        standard_error = self._normalize(error, context, correlation_id)

        try:
            self._log_error(standard_error, context)
        except Exception:
            logger.exception("Failed to log handled error")

        try:
            self._track_error_pattern(standard_error)
        except Exception:
            logger.exception("Failed to track error pattern")

        try:
            self._dispatch_reports(standard_error, context)
        except Exception:
            logger.exception("Failed to dispatch error reports")

        if enable_recovery is not False and self._config.enable_recovery:
            try:
                recovery = custom_recovery or self.get_recovery_strategy(standard_error)
                if recovery.strategy != RecoveryStrategy.NONE:
                    await self._attempt_recovery(standard_error, recovery)
            except Exception:
                logger.exception("Failed to resolve error recovery")

        if enable_user_feedback is not False and self._config.enable_user_feedback:
            try:
                await self._show_user_feedback(standard_error)
            except Exception:
                logger.exception("Failed to signal user feedback")

        return standard_error

    async def execute_with_retry(
        self,
        operation: Callable[[], Awaitable[T]],
        context: ErrorContext | None = None,
        *,
        max_retries: int | None = None,
        retry_delay_ms: float | None = None,
        retryable_categories: Iterable[ErrorCategory] | None = None,
        correlation_id: str | None = None,
    ) -> T:
        """Run ``operation`` with bounded, jittered retries.

        Every failure is handled (feedback suppressed). Another attempt is
        made only while attempts remain, the error is retryable and its
        category is in ``retryable_categories``.

        Args:
            operation: Coroutine function to run
            context: Context of the operation
            max_retries: Maximum number of attempts (1-indexed)
            retry_delay_ms: Base backoff delay in milliseconds
            retryable_categories: Categories eligible for retry
            correlation_id: Request the operation belongs to

        Returns:
            The operation's result

        Raises:
            StandardError: The last normalized error once retries stop
        """
        context = context or ErrorContext()
        attempts = max(
            1, max_retries if max_retries is not None else self._config.max_retries
        )
        base_delay_ms = (
            retry_delay_ms if retry_delay_ms is not None else self._config.retry_delay_ms
        )
        categories = (
            frozenset(retryable_categories)
            if retryable_categories is not None
            else DEFAULT_RETRY_CATEGORIES
        )

        def is_retryable(error: BaseException) -> bool:
            return (
                isinstance(error, StandardError)
                and error.retryable
                and error.category in categories
            )

        def wait_for(retry_state: RetryCallState) -> float:
            error = retry_state.outcome.exception()
            delay_ms = error.get_retry_delay(
                retry_state.attempt_number, base_delay_ms, self._rng
            )
            return delay_ms / 1000

        def log_retry(retry_state: RetryCallState) -> None:
            error = retry_state.outcome.exception()
            logger.info(
                f"Retrying {context.operation or 'operation'} after attempt "
                f"{retry_state.attempt_number}/{attempts} failed with {error.code}, "
                f"waiting {retry_state.next_action.sleep:.2f}s",
                extra={
                    "component": context.component,
                    "error_code": error.code,
                    "correlation_id": correlation_id,
                },
            )

        retrying = AsyncRetrying(
            stop=stop_after_attempt(attempts),
            retry=retry_if_exception(is_retryable),
            wait=wait_for,
            sleep=self._sleep,
            before_sleep=log_retry,
            reraise=True,
        )

        result: T | None = None
        async for attempt in retrying:
            with attempt:
                try:
                    result = await operation()
                except Exception as error:
                    attempt_number = attempt.retry_state.attempt_number
                    raise await self.handle_error(
                        error,
                        context.with_data(attempt=attempt_number, max_retries=attempts),
                        enable_user_feedback=False,
                        correlation_id=correlation_id,
                    )
        return result  # type: ignore[return-value]

    # Recovery strategies

    def _setup_default_recovery_strategies(self) -> None:
        """Populate the per-code recovery table."""
        self._recovery_strategies[ErrorCodes.CONNECTION_FAILED] = RecoveryOptions(
            strategy=RecoveryStrategy.RETRY, max_retries=3
        )
        self._recovery_strategies[ErrorCodes.REQUEST_TIMEOUT] = RecoveryOptions(
            strategy=RecoveryStrategy.RETRY, max_retries=2, retry_delay_ms=2000
        )
        self._recovery_strategies[ErrorCodes.SERVICE_UNAVAILABLE] = RecoveryOptions(
            strategy=RecoveryStrategy.FALLBACK,
            fallback_action=lambda: logger.info(
                "Using fallback for service unavailable"
            ),
        )
        self._recovery_strategies[ErrorCodes.UNAUTHORIZED] = RecoveryOptions(
            strategy=RecoveryStrategy.REDIRECT, redirect_url=LOGIN_URL
        )
        self._recovery_strategies[ErrorCodes.TOKEN_EXPIRED] = RecoveryOptions(
            strategy=RecoveryStrategy.REFRESH, refresh_target="auth-token"
        )

    def register_recovery_strategy(self, code: str, options: RecoveryOptions) -> None:
        """Override the recovery strategy for an error code."""
        self._recovery_strategies[code] = options
        logger.debug(f"Registered {options.strategy.value} recovery for {code}")

    def get_recovery_strategy(self, error: StandardError) -> RecoveryOptions:
        """Resolve the recovery for an error: per-code, then per-category."""
        strategy = self._recovery_strategies.get(error.code)
        if strategy:
            return strategy

        if error.category in (ErrorCategory.NETWORK, ErrorCategory.TIMEOUT):
            return RecoveryOptions(strategy=RecoveryStrategy.RETRY, max_retries=2)

        if error.category == ErrorCategory.AUTHENTICATION:
            return RecoveryOptions(
                strategy=RecoveryStrategy.REDIRECT, redirect_url=LOGIN_URL
            )

        return RecoveryOptions(strategy=RecoveryStrategy.NONE)

    def set_redirect_handler(self, handler: RedirectHandler | None) -> None:
        self._redirect_handler = handler

    def register_refresh_handler(self, target: str, handler: RefreshHandler) -> None:
        self._refresh_handlers[target] = handler

    async def _attempt_recovery(
        self, error: StandardError, recovery: RecoveryOptions
    ) -> None:
        """Execute exactly one recovery action."""
        self._recovery_counts[recovery.strategy] = (
            self._recovery_counts.get(recovery.strategy, 0) + 1
        )
        try:
            if recovery.strategy == RecoveryStrategy.RETRY:
                # Retries are driven by execute_with_retry
                logger.debug(f"Retry recovery selected for {error.code}")

            elif recovery.strategy == RecoveryStrategy.FALLBACK:
                if recovery.fallback_action:
                    await _maybe_await(recovery.fallback_action())

            elif recovery.strategy == RecoveryStrategy.REFRESH:
                target = recovery.refresh_target or "page"
                handler = self._refresh_handlers.get(target)
                if handler:
                    await _maybe_await(handler())
                else:
                    logger.warning(f"No refresh handler registered for '{target}'")

            elif recovery.strategy == RecoveryStrategy.REDIRECT:
                if recovery.redirect_url and self._redirect_handler:
                    await _maybe_await(self._redirect_handler(recovery.redirect_url))
                elif recovery.redirect_url:
                    logger.warning(
                        f"No redirect handler registered for {recovery.redirect_url}"
                    )

            elif recovery.strategy == RecoveryStrategy.MANUAL:
                if recovery.custom_action:
                    await _maybe_await(recovery.custom_action())

        except Exception as recovery_error:
            logger.error(
                f"Error recovery failed: {recovery_error}",
                extra={
                    "error_id": error.id,
                    "recovery_strategy": recovery.strategy.value,
                },
            )

    # User feedback

    def subscribe_feedback(self, subscriber: FeedbackSubscriber) -> Callable[[], None]:
        """Register a feedback subscriber.

        Returns:
            A callable that removes the subscription
        """
        self._feedback_subscribers.append(subscriber)

        def unsubscribe() -> None:
            if subscriber in self._feedback_subscribers:
                self._feedback_subscribers.remove(subscriber)

        return unsubscribe

    async def _show_user_feedback(self, error: StandardError) -> None:
        feedback = get_feedback_config(error, self._config.locale)
        for subscriber in list(self._feedback_subscribers):
            try:
                await _maybe_await(subscriber(error, feedback))
            except Exception as subscriber_error:
                logger.error(
                    f"Feedback subscriber failed: {subscriber_error}",
                    extra={"error_id": error.id},
                )

    # Logging, tracking and reporting

    def _normalize(
        self, error: Any, context: ErrorContext, correlation_id: str | None
    ) -> StandardError:
        try:
            return normalize(
                error,
                context,
                correlation_id=correlation_id,
                classifier=self._classifier,
                locale=self._config.locale,
            )
        except Exception as normalize_error:
            logger.exception("Failed to normalize error")
            return StandardError(
                code=ErrorCodes.SYSTEM_ERROR,
                message=str(error),
                category=ErrorCategory.UNKNOWN,
                severity=ErrorSeverity.MEDIUM,
                source=context.component or "unknown",
                correlation_id=correlation_id,
                context={"normalize_error": repr(normalize_error)},
                locale=self._config.locale,
            )

    def _log_error(self, error: StandardError, context: ErrorContext) -> None:
        log_data = {
            "error_id": error.id,
            "error_code": error.code,
            "category": error.category.value,
            "severity": error.severity.value,
            "source": error.source,
            "component": context.component,
            "operation": context.operation,
            "user_id": context.user_id,
            "correlation_id": error.correlation_id,
            "retryable": error.retryable,
        }

        if error.severity == ErrorSeverity.CRITICAL:
            logger.error(f"CRITICAL ERROR: {error}", extra=log_data)
        elif error.severity == ErrorSeverity.HIGH:
            logger.error(f"High severity error: {error}", extra=log_data)
        elif error.severity == ErrorSeverity.MEDIUM:
            logger.warning(f"Medium severity error: {error}", extra=log_data)
        else:
            logger.debug(f"Low severity error: {error}", extra=log_data)

    def _track_error_pattern(self, error: StandardError) -> None:
        now = self._clock()
        window_s = self._config.error_rate_window_ms / 1000

        entry = self._error_counts.get(error.code)
        if entry is None or now - entry.window_start > window_s:
            entry = _ErrorCount(count=0, window_start=now, category=error.category)
            self._error_counts[error.code] = entry

        entry.count += 1

        if entry.count > self._config.high_error_rate_threshold:
            logger.warning(
                f"High error rate detected for {error.code}: "
                f"{entry.count} errors in the current window",
                extra={"error_code": error.code, "count": entry.count},
            )

    def _dispatch_reports(self, error: StandardError, context: ErrorContext) -> None:
        if self._monitoring_sink.enabled:
            self._dispatch(
                self._monitoring_sink,
                monitoring_payload(
                    error, context, self._config.environment, self._config.app_version
                ),
                error,
            )
        if error.severity == ErrorSeverity.CRITICAL and self._notification_sink.enabled:
            self._dispatch(
                self._notification_sink, notification_payload(error, context), error
            )

    def _dispatch(
        self, sink: ErrorSink, payload: dict[str, Any], error: StandardError
    ) -> None:
        task = asyncio.get_running_loop().create_task(
            self._deliver(sink, payload, error)
        )
        self._pending_dispatches.add(task)
        task.add_done_callback(self._pending_dispatches.discard)

    async def _deliver(
        self, sink: ErrorSink, payload: dict[str, Any], error: StandardError
    ) -> None:
        try:
            await sink.send(payload)
        except Exception as dispatch_error:
            logger.error(
                f"Failed to send error to {sink.name}: {dispatch_error}",
                extra={"error_id": error.id},
            )

    # Statistics and lifecycle

    def get_error_stats(self) -> dict[str, Any]:
        """Get error statistics from the frequency tracker."""
        errors_by_code: dict[str, int] = {}
        errors_by_category: dict[str, int] = {}
        total_errors = 0

        for code, entry in self._error_counts.items():
            total_errors += entry.count
            errors_by_code[code] = entry.count
            errors_by_category[entry.category.value] = (
                errors_by_category.get(entry.category.value, 0) + entry.count
            )

        top_errors = sorted(
            ({"code": code, "count": count} for code, count in errors_by_code.items()),
            key=lambda item: item["count"],
            reverse=True,
        )[:10]

        return {
            "total_errors": total_errors,
            "errors_by_code": errors_by_code,
            "errors_by_category": errors_by_category,
            "top_errors": top_errors,
            "recoveries": {
                strategy.value: count
                for strategy, count in self._recovery_counts.items()
            },
        }

    async def flush(self) -> None:
        """Wait for pending monitoring and notification dispatches."""
        if self._pending_dispatches:
            await asyncio.gather(*self._pending_dispatches, return_exceptions=True)

    async def aclose(self) -> None:
        """Flush pending dispatches and close the sinks."""
        await self.flush()
        await self._monitoring_sink.aclose()
        await self._notification_sink.aclose()
