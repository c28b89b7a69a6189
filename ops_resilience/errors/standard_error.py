# ops_resilience/errors/standard_error.py

"""
Standardized error value.

Every error crossing the resilience layer is normalized into a
``StandardError``: a stable code, a category, an ordered severity,
retryability and a localized user message. The class is an exception so
the retry executor can re-raise it, but it is immutable once built.
"""

from collections.abc import Mapping
from datetime import datetime, timezone
import random
import traceback
from typing import Any
import uuid

import httpx

from .classifier import ErrorClassifier, default_classifier
from .messages import DEFAULT_LOCALE, resolve_user_message
from .types import (
    RETRYABLE_CATEGORIES,
    ErrorCategory,
    ErrorCodes,
    ErrorContext,
    ErrorSeverity,
)

MAX_RETRY_DELAY_MS = 30_000.0
JITTER_RATIO = 0.1

_SAFE_EXCLUDED_KEYS = ("details", "stack")


class HTTPStatusError(Exception):
    """HTTP-shaped error raised for non-2xx responses before normalization.

    Attributes:
        status: HTTP status code
        status_text: Reason phrase
        data: Parsed response body
        headers: Response headers
    """

    def __init__(
        self,
        status: int,
        status_text: str = "",
        data: Any = None,
        headers: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(f"HTTP {status}: {status_text}")
        self.status = status
        self.status_text = status_text
        self.data = data
        self.headers = dict(headers or {})


class StandardError(Exception):
    """Normalized, immutable error value.

    Attributes:
        id: Unique identifier generated at construction
        code: Stable error code (e.g. ``NET_001``)
        message: Developer-facing message
        category: Error category
        severity: Error severity
        source: Component the error originated from
        user_message: Localized message shown to a human
        retryable: Whether the operation may be retried
        retry_after_ms: Explicit delay overriding computed backoff
        context: Diagnostic payload safe to share
        details: Diagnostic payload that may echo the failing request
        correlation_id: Link to the originating request
        timestamp: ISO-8601 creation time (UTC)
        cause: Original exception, if any
        stack: Formatted traceback of the original exception
    """

    def __init__(
        self,
        code: str,
        message: str,
        category: ErrorCategory,
        severity: ErrorSeverity,
        source: str = "unknown",
        user_message: str | None = None,
        retryable: bool | None = None,
        retry_after_ms: float | None = None,
        context: dict[str, Any] | None = None,
        details: dict[str, Any] | None = None,
        correlation_id: str | None = None,
        cause: BaseException | None = None,
        locale: str = DEFAULT_LOCALE,
    ) -> None:
        super().__init__(message)
        self.id = uuid.uuid4().hex
        self.code = code
        self.message = message
        self.category = ErrorCategory(category)
        self.severity = ErrorSeverity(severity)
        self.source = source
        self.user_message = user_message or resolve_user_message(code, locale)
        self.retryable = (
            retryable if retryable is not None else self.category in RETRYABLE_CATEGORIES
        )
        self.retry_after_ms = retry_after_ms
        self.context = dict(context or {})
        self.details = dict(details or {})
        self.correlation_id = correlation_id
        self.timestamp = datetime.now(timezone.utc).isoformat()
        self.cause = cause
        self.stack = (
            "".join(traceback.format_exception(type(cause), cause, cause.__traceback__))
            if cause is not None
            else None
        )
        if cause is not None:
            self.__cause__ = cause
        self._frozen = True

    def __setattr__(self, name: str, value: Any) -> None:
        # Exception machinery still needs __traceback__, __context__, ...
        if getattr(self, "_frozen", False) and not name.startswith("__"):
            raise AttributeError(f"StandardError is immutable, cannot set '{name}'")
        super().__setattr__(name, value)

    def __delattr__(self, name: str) -> None:
        if getattr(self, "_frozen", False) and not name.startswith("__"):
            raise AttributeError(f"StandardError is immutable, cannot delete '{name}'")
        super().__delattr__(name)

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"

    def __repr__(self) -> str:
        return (
            f"StandardError(code={self.code!r}, category={self.category.value}, "
            f"severity={self.severity.value}, retryable={self.retryable})"
        )

    def __reduce__(self):
        # Exceptions pickle through their args; rebuild from the full field set
        return (
            _rebuild_standard_error,
            (self.to_dict(),),
        )

    def should_retry(self, current_attempt: int, max_attempts: int) -> bool:
        return self.retryable and current_attempt < max_attempts

    def get_retry_delay(
        self,
        attempt: int,
        base_delay_ms: float = 1000.0,
        rng: random.Random | None = None,
    ) -> float:
        """Get the delay before the next attempt, in milliseconds.

        ``retry_after_ms`` is returned verbatim when set. Otherwise the
        delay is exponential (``base * 2**(attempt-1)``) plus up to 10%
        jitter, capped at 30 seconds.

        Args:
            attempt: 1-indexed attempt that just failed
            base_delay_ms: Base delay in milliseconds
            rng: Jitter source; pass a seeded ``random.Random`` for
                deterministic delays

        Returns:
            Delay in milliseconds
        """
        if self.retry_after_ms is not None:
            return self.retry_after_ms

        rng = rng or random
        delay = base_delay_ms * (2 ** max(attempt - 1, 0))
        jitter = rng.random() * JITTER_RATIO * delay
        return min(delay + jitter, MAX_RETRY_DELAY_MS)

    def to_dict(self) -> dict[str, Any]:
        """Full serialization, including ``details`` and the stack."""
        return {
            "id": self.id,
            "name": type(self).__name__,
            "code": self.code,
            "message": self.message,
            "user_message": self.user_message,
            "category": self.category.value,
            "severity": self.severity.value,
            "source": self.source,
            "timestamp": self.timestamp,
            "correlation_id": self.correlation_id,
            "retryable": self.retryable,
            "retry_after_ms": self.retry_after_ms,
            "context": self.context,
            "details": self.details,
            "stack": self.stack,
        }

    def to_safe_json(self) -> dict[str, Any]:
        """Serialization allowed to cross a trust boundary.

        Drops ``details`` (may echo the failing request) and the stack.
        """
        data = self.to_dict()
        for key in _SAFE_EXCLUDED_KEYS:
            data.pop(key, None)
        return data

    # Factories

    @classmethod
    def from_exception(
        cls,
        error: BaseException,
        source: str = "unknown",
        category: ErrorCategory | None = None,
        code: str | None = None,
        *,
        classifier: ErrorClassifier | None = None,
        correlation_id: str | None = None,
        locale: str = DEFAULT_LOCALE,
    ) -> "StandardError":
        """Wrap a native exception, preserving it as the cause."""
        classification = (classifier or default_classifier).classify_exception(error)
        return cls(
            code=code or classification.code,
            message=str(error) or type(error).__name__,
            category=category or classification.category,
            severity=classification.severity,
            source=source,
            correlation_id=correlation_id,
            cause=error,
            context={"original_error_name": type(error).__name__},
            locale=locale,
        )

    @classmethod
    def from_http(
        cls,
        status: int,
        status_text: str = "",
        data: Any = None,
        source: str = "unknown",
        *,
        headers: Mapping[str, str] | None = None,
        correlation_id: str | None = None,
        locale: str = DEFAULT_LOCALE,
    ) -> "StandardError":
        """Build an error from an HTTP status, reason and body."""
        classification = default_classifier.classify_status(status)
        return cls(
            code=classification.code,
            message=f"HTTP {status}: {status_text}",
            category=classification.category,
            severity=classification.severity,
            source=source,
            retryable=ErrorClassifier.is_retryable_status(status),
            retry_after_ms=_parse_retry_after(headers),
            correlation_id=correlation_id,
            details={"status": status, "status_text": status_text, "response": data},
            locale=locale,
        )

    @classmethod
    def validation(
        cls,
        field: str,
        value: Any,
        rule: str,
        source: str = "unknown",
        *,
        locale: str = DEFAULT_LOCALE,
    ) -> "StandardError":
        """Create a validation error for a single field."""
        user_message = (
            f"Le champ {field} n'est pas valide."
            if locale == "fr"
            else f"The field {field} is not valid."
        )
        return cls(
            code=ErrorCodes.INVALID_FORMAT,
            message=f"Validation failed for {field}: {rule}",
            category=ErrorCategory.VALIDATION,
            severity=ErrorSeverity.LOW,
            source=source,
            user_message=user_message,
            details={"field": field, "value": value, "rule": rule},
            locale=locale,
        )

    @classmethod
    def business_logic(
        cls,
        operation: str,
        reason: str,
        source: str = "unknown",
        code: str = ErrorCodes.OPERATION_NOT_ALLOWED,
        *,
        locale: str = DEFAULT_LOCALE,
    ) -> "StandardError":
        """Create a business rule violation error."""
        return cls(
            code=code,
            message=f"Business rule violation: {operation} - {reason}",
            category=ErrorCategory.BUSINESS_LOGIC,
            severity=ErrorSeverity.MEDIUM,
            source=source,
            details={"operation": operation, "reason": reason},
            locale=locale,
        )

    @classmethod
    def rate_limited(
        cls,
        retry_after_ms: float,
        source: str = "unknown",
        *,
        key: str | None = None,
        correlation_id: str | None = None,
        locale: str = DEFAULT_LOCALE,
    ) -> "StandardError":
        """Create a client-side rate limit error."""
        return cls(
            code=ErrorCodes.RATE_LIMITED,
            message="Rate limit exceeded",
            category=ErrorCategory.RATE_LIMIT,
            severity=ErrorSeverity.MEDIUM,
            source=source,
            retry_after_ms=retry_after_ms,
            correlation_id=correlation_id,
            context={"rate_limit_key": key} if key else None,
            locale=locale,
        )


def _rebuild_standard_error(data: dict[str, Any]) -> StandardError:
    error = StandardError(
        code=data["code"],
        message=data["message"],
        category=ErrorCategory(data["category"]),
        severity=ErrorSeverity(data["severity"]),
        source=data["source"],
        user_message=data["user_message"],
        retryable=data["retryable"],
        retry_after_ms=data["retry_after_ms"],
        context=data["context"],
        details=data["details"],
        correlation_id=data["correlation_id"],
    )
    object.__setattr__(error, "id", data["id"])
    object.__setattr__(error, "timestamp", data["timestamp"])
    return error


def _parse_retry_after(headers: Mapping[str, str] | None) -> float | None:
    if not headers:
        return None
    value = None
    for key, header_value in headers.items():
        if key.lower() == "retry-after":
            value = header_value
            break
    if value is None:
        return None
    try:
        return max(float(value), 0.0) * 1000
    except (TypeError, ValueError):
        # HTTP-date form is not used by the services we call
        return None


def _status_of(raw: Any) -> int | None:
    if isinstance(raw, Mapping):
        status = raw.get("status", raw.get("status_code"))
    else:
        status = getattr(raw, "status", None)
        if status is None:
            status = getattr(raw, "status_code", None)
    return status if isinstance(status, int) else None


def normalize(
    raw: Any,
    context: ErrorContext | None = None,
    *,
    source: str | None = None,
    correlation_id: str | None = None,
    classifier: ErrorClassifier | None = None,
    locale: str = DEFAULT_LOCALE,
) -> StandardError:
    """Normalize any raised value into a ``StandardError``.

    Already-standard errors are returned unchanged, so normalization is
    idempotent.

    Args:
        raw: Exception, HTTP-shaped error or any other raised value
        context: Error context; its component becomes the source
        source: Explicit source, overriding the context component
        correlation_id: Request the error belongs to
        classifier: Classifier used for native exceptions
        locale: Locale of the user message

    Returns:
        The normalized error
    """
    if isinstance(raw, StandardError):
        return raw

    source = source or (context.component if context else None) or "unknown"

    if isinstance(raw, HTTPStatusError):
        return StandardError.from_http(
            raw.status,
            raw.status_text,
            raw.data,
            source,
            headers=raw.headers,
            correlation_id=correlation_id,
            locale=locale,
        )

    if isinstance(raw, httpx.HTTPStatusError):
        response = raw.response
        try:
            body: Any = response.json()
        except ValueError:
            body = response.text
        return StandardError.from_http(
            response.status_code,
            response.reason_phrase,
            body,
            source,
            headers=response.headers,
            correlation_id=correlation_id,
            locale=locale,
        )

    if isinstance(raw, BaseException):
        return StandardError.from_exception(
            raw,
            source,
            classifier=classifier,
            correlation_id=correlation_id,
            locale=locale,
        )

    status = _status_of(raw)
    if status is not None:
        if isinstance(raw, Mapping):
            status_text = raw.get("status_text") or raw.get("statusText") or "Unknown"
            data = raw.get("data", raw.get("body"))
        else:
            status_text = getattr(raw, "status_text", None) or "Unknown"
            data = getattr(raw, "data", None)
        return StandardError.from_http(
            status,
            str(status_text),
            data,
            source,
            correlation_id=correlation_id,
            locale=locale,
        )

    return StandardError(
        code=ErrorCodes.UNEXPECTED_ERROR,
        message=str(raw),
        category=ErrorCategory.UNKNOWN,
        severity=ErrorSeverity.MEDIUM,
        source=source,
        correlation_id=correlation_id,
        context={"original_error": repr(raw)},
        locale=locale,
    )
