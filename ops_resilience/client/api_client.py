# ops_resilience/client/api_client.py

"""
Unified API client.

Every outbound call runs the same pipeline: request interceptors, input
validation, rate limiting, the read cache, a retried network call guarded
by an optional circuit breaker, cache population, output validation and
response interceptors. Concurrent reads share the raw body; each caller
validates it with its own validator. Metrics samples are keyed by endpoint
pattern. Failures surface as ``APIRequestError`` carrying a
normalized ``StandardError``; callers never see a bare transport exception.
"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime, timezone
import inspect
import logging
import time
from typing import Any
import uuid

import httpx
from pydantic import BaseModel

from ..config import ResilienceSettings
from ..core.logging import logging_context
from ..errors import (
    DEFAULT_RETRY_CATEGORIES,
    ErrorCategory,
    ErrorCodes,
    ErrorContext,
    ErrorHandler,
    ErrorSeverity,
    HTTPStatusError,
    StandardError,
    normalize,
)
from ..metrics import MetricsCollector
from .cache import ResponseCache, cache_key
from .circuit_breaker import CircuitBreaker, CircuitBreakerRegistry
from .models import APIRequest, APIRequestError, APIResponse, run_validator
from .rate_limiter import RateLimitConfig, RateLimiter, endpoint_pattern, rate_limit_key

logger = logging.getLogger(__name__)

RequestInterceptor = Callable[[APIRequest], Awaitable[APIRequest | None] | APIRequest | None]
ResponseInterceptor = Callable[
    [APIResponse], Awaitable[APIResponse | None] | APIResponse | None
]

SENSITIVE_HEADERS = frozenset({"authorization", "x-api-key", "x-csrf-token", "cookie"})
HEALTH_ENDPOINT = "/health"
HEALTH_TIMEOUT_MS = 5000
COMPONENT = "APIClient"

# Failures that say something about the remote service's health
_BREAKER_FAILURE_CATEGORIES = DEFAULT_RETRY_CATEGORIES


@dataclass(frozen=True)
class _FetchResult:
    data: Any
    status: int
    headers: dict[str, str]


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def sanitize_headers(headers: dict[str, str]) -> dict[str, str]:
    """Redact credentials before headers are logged."""
    return {
        key: "[REDACTED]" if key.lower() in SENSITIVE_HEADERS else value
        for key, value in headers.items()
    }


async def _resolve(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


class APIClient:
    """HTTP client running every call through the resilience pipeline."""

    def __init__(
        self,
        settings: ResilienceSettings,
        error_handler: ErrorHandler,
        metrics: MetricsCollector,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Callable[[], float] = time.time,
        timer: Callable[[], float] = time.perf_counter,
    ):
        """Initialize the client.

        Args:
            settings: Transport, cache, rate limit and breaker settings
            error_handler: Handler used for every failure and for retries
            metrics: Collector receiving one sample per network attempt
            transport: httpx transport, e.g. ``httpx.MockTransport`` in tests
            clock: Wall clock in seconds for cache, rate limit and breakers
            timer: Monotonic timer in seconds for attempt durations
        """
        self._settings = settings
        self._error_handler = error_handler
        self._metrics = metrics
        self._timer = timer

        self._client = httpx.AsyncClient(
            base_url=settings.base_url,
            headers={"Content-Type": "application/json", **settings.default_headers},
            timeout=settings.timeout_ms / 1000,
            transport=transport,
        )
        self._cache = ResponseCache(ttl_ms=settings.cache_ttl_ms, clock=clock)
        self._rate_limiter = RateLimiter(
            RateLimitConfig(
                limit=settings.rate_limit_requests_per_window,
                window_ms=settings.rate_limit_window_ms,
            ),
            clock=clock,
        )
        self._breakers = CircuitBreakerRegistry(
            failure_threshold=settings.circuit_breaker_failure_threshold,
            recovery_timeout_ms=settings.circuit_breaker_recovery_ms,
            clock=clock,
        )

        self._request_interceptors: list[RequestInterceptor] = []
        self._response_interceptors: list[ResponseInterceptor] = []
        self._inflight: dict[str, asyncio.Task] = {}
        self._user_id: str | None = None
        self._access_token: str | None = None

    # Session

    def set_session(self, user_id: str | None, access_token: str | None) -> None:
        """Attach the identity used for rate limiting and the bearer token."""
        self._user_id = user_id
        self._access_token = access_token

    def clear_session(self) -> None:
        self._user_id = None
        self._access_token = None

    @property
    def user_id(self) -> str | None:
        return self._user_id

    # Interceptors

    def add_request_interceptor(self, interceptor: RequestInterceptor) -> None:
        self._request_interceptors.append(interceptor)

    def add_response_interceptor(self, interceptor: ResponseInterceptor) -> None:
        self._response_interceptors.append(interceptor)

    # Pipeline

    async def request(self, spec: APIRequest) -> APIResponse:
        """Run one call through the pipeline.

        Args:
            spec: The call to make

        Returns:
            The response, ``cached=True`` when served from the cache

        Raises:
            APIRequestError: The call failed; ``error`` holds the normalized error
        """
        request_id = uuid.uuid4().hex
        with logging_context(
            request_id=request_id,
            operation=f"{spec.method} {spec.endpoint}",
            user_id=self._user_id,
        ):
            try:
                spec = await self._run_request_interceptors(spec)
                payload = self._validate_input(spec, request_id)
                self._enforce_rate_limit(spec, request_id)
            except Exception as error:
                raise await self._request_error(error, spec, request_id) from error

            use_cache = (
                spec.method == "GET"
                and not spec.bypass_cache
                and self._settings.cache_enabled
            )
            key = cache_key(spec.endpoint, spec.params)

            if use_cache:
                entry = self._cache.get(key)
                if entry is not None:
                    logger.debug(f"Cache hit for {key}")
                    try:
                        data = self._validate_output(spec, entry.data, request_id)
                    except StandardError as error:
                        raise await self._request_error(error, spec, request_id) from error
                    return APIResponse(
                        data=data,
                        status=entry.status,
                        headers=dict(entry.headers),
                        request_id=request_id,
                        timestamp=_now_iso(),
                        cached=True,
                    )

            try:
                if use_cache and self._settings.coalesce_reads:
                    result = await self._coalesced_fetch(key, spec, payload, request_id)
                else:
                    result = await self._fetch(
                        spec, payload, request_id, key if use_cache else None
                    )
            except StandardError as error:
                # Already handled once per attempt by the retry executor
                raise APIRequestError(error, request_id, _now_iso()) from error

            try:
                response = APIResponse(
                    data=self._validate_output(spec, result.data, request_id),
                    status=result.status,
                    headers=dict(result.headers),
                    request_id=request_id,
                    timestamp=_now_iso(),
                )
                return await self._run_response_interceptors(response)
            except Exception as error:
                raise await self._request_error(error, spec, request_id) from error

    async def get(self, endpoint: str, **kwargs: Any) -> APIResponse:
        return await self.request(APIRequest(method="GET", endpoint=endpoint, **kwargs))

    async def post(self, endpoint: str, data: Any = None, **kwargs: Any) -> APIResponse:
        return await self.request(
            APIRequest(method="POST", endpoint=endpoint, data=data, **kwargs)
        )

    async def put(self, endpoint: str, data: Any = None, **kwargs: Any) -> APIResponse:
        return await self.request(
            APIRequest(method="PUT", endpoint=endpoint, data=data, **kwargs)
        )

    async def patch(self, endpoint: str, data: Any = None, **kwargs: Any) -> APIResponse:
        return await self.request(
            APIRequest(method="PATCH", endpoint=endpoint, data=data, **kwargs)
        )

    async def delete(self, endpoint: str, **kwargs: Any) -> APIResponse:
        return await self.request(
            APIRequest(method="DELETE", endpoint=endpoint, **kwargs)
        )

    # Pre-flight steps

    async def _run_request_interceptors(self, spec: APIRequest) -> APIRequest:
        for interceptor in self._request_interceptors:
            result = await _resolve(interceptor(spec))
            if result is not None:
                spec = result
        return spec

    def _validate_input(self, spec: APIRequest, request_id: str) -> Any:
        if spec.validate_input is None:
            return spec.data
        try:
            return run_validator(spec.validate_input, spec.data)
        except Exception as e:
            raise self._validation_error(
                f"Request validation failed: {e}", e, request_id, stage="input"
            ) from e

    def _validate_output(self, spec: APIRequest, data: Any, request_id: str) -> Any:
        """Validate a shared or cached body for this caller only."""
        if spec.validate_output is None:
            return data
        try:
            return run_validator(spec.validate_output, data)
        except Exception as e:
            raise self._validation_error(
                f"Response validation failed: {e}", e, request_id, stage="output"
            ) from e

    def _enforce_rate_limit(self, spec: APIRequest, request_id: str) -> None:
        if not self._settings.rate_limit_enabled:
            return
        key = rate_limit_key(self._user_id, spec.endpoint)
        decision = self._rate_limiter.check(key)
        if not decision.allowed:
            raise StandardError.rate_limited(
                decision.retry_after_ms,
                COMPONENT,
                key=key,
                correlation_id=request_id,
                locale=self._settings.locale,
            )

    def _validation_error(
        self, message: str, cause: Exception, request_id: str, stage: str
    ) -> StandardError:
        return StandardError(
            code=ErrorCodes.INVALID_FORMAT,
            message=message,
            category=ErrorCategory.VALIDATION,
            severity=ErrorSeverity.LOW,
            source=COMPONENT,
            retryable=False,
            correlation_id=request_id,
            cause=cause,
            context={"stage": stage},
            locale=self._settings.locale,
        )

    # Network

    async def _coalesced_fetch(
        self, key: str, spec: APIRequest, payload: Any, request_id: str
    ) -> _FetchResult:
        """Share one fetch between concurrent misses on the same key."""
        while True:
            task = self._inflight.get(key)
            if task is None:
                task = asyncio.get_running_loop().create_task(
                    self._fetch(spec, payload, request_id, key)
                )
                self._inflight[key] = task
                task.add_done_callback(lambda done: self._forget_inflight(key, done))
                return await task

            logger.debug(f"Joining in-flight fetch for {key}")
            await asyncio.wait({task})
            if not task.cancelled():
                return task.result()
            # The leader was cancelled; fetch on our own behalf

    def _forget_inflight(self, key: str, task: asyncio.Task) -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]

    async def _fetch(
        self,
        spec: APIRequest,
        payload: Any,
        request_id: str,
        store_key: str | None,
    ) -> _FetchResult:
        breaker = self._breaker_for(spec)
        context = ErrorContext(
            operation=f"{spec.method} {spec.endpoint}",
            component=COMPONENT,
            user_id=self._user_id,
            url=spec.endpoint,
            additional_data={"request_id": request_id},
        )

        result = await self._error_handler.execute_with_retry(
            lambda: self._attempt(spec, payload, request_id, breaker),
            context,
            max_retries=(
                spec.retries if spec.retries is not None else self._settings.max_retries
            ),
            retry_delay_ms=self._settings.retry_delay_ms,
            correlation_id=request_id,
        )

        if store_key is not None:
            self._cache.set(store_key, result.data, result.status, result.headers)
        return result

    def _breaker_for(self, spec: APIRequest) -> CircuitBreaker | None:
        enabled = (
            spec.use_circuit_breaker
            if spec.use_circuit_breaker is not None
            else self._settings.circuit_breaker_enabled
        )
        if not enabled:
            return None
        return self._breakers.get(endpoint_pattern(spec.endpoint))

    async def _attempt(
        self,
        spec: APIRequest,
        payload: Any,
        request_id: str,
        breaker: CircuitBreaker | None,
    ) -> _FetchResult:
        """One network attempt; records exactly one metrics sample."""
        if breaker is not None and not breaker.allow_request():
            raise StandardError(
                code=ErrorCodes.CIRCUIT_OPEN,
                message=f"Circuit breaker '{breaker.name}' is open",
                category=ErrorCategory.EXTERNAL_SERVICE,
                severity=ErrorSeverity.HIGH,
                source=COMPONENT,
                retryable=False,
                correlation_id=request_id,
                context={"retry_after_ms": breaker.retry_after_ms()},
                locale=self._settings.locale,
            )

        timeout_ms = spec.timeout_ms or self._settings.timeout_ms
        started = self._timer()
        status_code: int | None = None

        try:
            response = await asyncio.wait_for(
                self._send(spec, payload, request_id, timeout_ms / 1000),
                timeout=timeout_ms / 1000,
            )
            status_code = response.status_code
            data = self._parse_body(response)
            headers = dict(response.headers)

            if not response.is_success:
                raise HTTPStatusError(
                    response.status_code, response.reason_phrase, data, headers
                )

        except Exception as error:
            standard_error = normalize(
                error,
                source=COMPONENT,
                correlation_id=request_id,
                locale=self._settings.locale,
            )
            self._metrics.record_request(
                endpoint_pattern(spec.endpoint),
                spec.method,
                (self._timer() - started) * 1000,
                False,
                status_code,
                self._user_id,
                error_code=standard_error.code,
            )
            if breaker is not None:
                if standard_error.category in _BREAKER_FAILURE_CATEGORIES:
                    breaker.record_failure()
                else:
                    breaker.record_success()
            if standard_error is error:
                raise
            raise standard_error from error

        self._metrics.record_request(
            endpoint_pattern(spec.endpoint),
            spec.method,
            (self._timer() - started) * 1000,
            True,
            status_code,
            self._user_id,
        )
        if breaker is not None:
            breaker.record_success()

        logger.debug(f"API response {status_code} for {spec.method} {spec.endpoint}")
        return _FetchResult(data=data, status=status_code, headers=headers)

    async def _send(
        self, spec: APIRequest, payload: Any, request_id: str, timeout_s: float
    ) -> httpx.Response:
        headers = self._build_headers(spec, request_id)
        body = payload.model_dump(mode="json") if isinstance(payload, BaseModel) else payload

        logger.debug(
            f"API request {spec.method} {spec.endpoint}",
            extra={"headers": sanitize_headers(headers)},
        )

        return await self._client.request(
            spec.method,
            spec.endpoint,
            params=spec.params,
            json=body if body is not None and spec.method not in ("GET", "HEAD") else None,
            headers=headers,
            timeout=timeout_s,
        )

    def _build_headers(self, spec: APIRequest, request_id: str) -> dict[str, str]:
        headers = {"X-Request-ID": request_id}
        if self._access_token:
            headers["Authorization"] = f"Bearer {self._access_token}"
        headers.update(spec.headers)
        return headers

    @staticmethod
    def _parse_body(response: httpx.Response) -> Any:
        content_type = response.headers.get("content-type", "")
        media_type = content_type.split(";", 1)[0].strip().lower()
        if media_type == "application/json" or media_type.endswith("+json"):
            if not response.content:
                return None
            try:
                return response.json()
            except ValueError:
                return response.text
        if media_type.startswith("text/"):
            return response.text
        return response.content

    # Failure envelope

    async def _request_error(
        self, error: Exception, spec: APIRequest, request_id: str
    ) -> APIRequestError:
        context = ErrorContext(
            operation=f"{spec.method} {spec.endpoint}",
            component=COMPONENT,
            user_id=self._user_id,
            url=spec.endpoint,
            additional_data={"request_id": request_id},
        )
        standard_error = await self._error_handler.handle_error(
            error, context, correlation_id=request_id
        )
        return APIRequestError(standard_error, request_id, _now_iso())

    async def _run_response_interceptors(self, response: APIResponse) -> APIResponse:
        for interceptor in self._response_interceptors:
            result = await _resolve(interceptor(response))
            if result is not None:
                response = result
        return response

    # Cache and rate limit inspection

    def clear_cache(self) -> None:
        self._cache.clear()
        logger.info("API cache cleared")

    def invalidate_cache(self, pattern: str) -> int:
        """Remove cached responses whose key matches the regex ``pattern``."""
        return self._cache.invalidate(pattern)

    def get_cache_stats(self) -> dict[str, Any]:
        return self._cache.get_stats()

    def get_rate_limit_status(self, endpoint: str) -> dict[str, Any]:
        return self._rate_limiter.get_status(rate_limit_key(self._user_id, endpoint))

    def get_circuit_breaker_stats(self) -> dict[str, dict[str, Any]]:
        return self._breakers.get_all_stats()

    # Health

    async def health_check(self) -> dict[str, Any]:
        """Check the API, the session and the cache.

        Returns:
            ``status`` (healthy, degraded or unhealthy), ``timestamp`` and
            the individual ``checks``
        """
        checks = {"api": False, "auth": False, "cache": True}
        details: dict[str, Any] = {}

        try:
            await self.request(
                APIRequest(
                    method="GET",
                    endpoint=HEALTH_ENDPOINT,
                    bypass_cache=True,
                    timeout_ms=HEALTH_TIMEOUT_MS,
                    retries=1,
                )
            )
            checks["api"] = True
        except APIRequestError as e:
            details["api_error"] = e.error.code

        checks["auth"] = (
            self._access_token is not None or not self._settings.auth_required
        )

        healthy_checks = sum(1 for ok in checks.values() if ok)
        if healthy_checks == len(checks):
            status = "healthy"
        elif healthy_checks > 0:
            status = "degraded"
        else:
            status = "unhealthy"

        return {
            "status": status,
            "timestamp": _now_iso(),
            "checks": checks,
            **details,
        }

    # Lifecycle

    async def aclose(self) -> None:
        for task in list(self._inflight.values()):
            task.cancel()
        await self._client.aclose()

    async def __aenter__(self) -> "APIClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()
