# ops_resilience/client/__init__.py

"""Outbound request pipeline."""

from .api_client import APIClient, sanitize_headers
from .cache import CacheEntry, ResponseCache, cache_key
from .circuit_breaker import CircuitBreaker, CircuitBreakerRegistry, CircuitState
from .models import APIRequest, APIRequestError, APIResponse
from .rate_limiter import (
    RateLimitConfig,
    RateLimitDecision,
    RateLimiter,
    endpoint_pattern,
    rate_limit_key,
)

__all__ = [
    "APIClient",
    "APIRequest",
    "APIRequestError",
    "APIResponse",
    "CacheEntry",
    "CircuitBreaker",
    "CircuitBreakerRegistry",
    "CircuitState",
    "RateLimitConfig",
    "RateLimitDecision",
    "RateLimiter",
    "ResponseCache",
    "cache_key",
    "endpoint_pattern",
    "rate_limit_key",
    "sanitize_headers",
]
