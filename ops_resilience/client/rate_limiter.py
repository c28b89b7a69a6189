# ops_resilience/client/rate_limiter.py

"""Fixed-window rate limiter keyed by identity and endpoint pattern."""

from collections.abc import Callable
from dataclasses import dataclass
import logging
import re
import time
from typing import Any

logger = logging.getLogger(__name__)

_ID_SEGMENT = re.compile(
    r"/(?:\d+|[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12})"
    r"(?=/|$)"
)


def endpoint_pattern(endpoint: str) -> str:
    """Collapse an endpoint to its route pattern.

    The query string is dropped and numeric or UUID path segments become
    ``:id``, so ``/users/42?x=1`` and ``/users/7`` share ``/users/:id``.
    """
    path = endpoint.split("?", 1)[0]
    return _ID_SEGMENT.sub("/:id", path)


def rate_limit_key(identity: str | None, endpoint: str) -> str:
    return f"{identity or 'anonymous'}:{endpoint_pattern(endpoint)}"


@dataclass
class RateLimitConfig:
    """Configuration for the rate limiter.

    Attributes:
        limit: Maximum number of requests per window and key
        window_ms: Window length in milliseconds
    """

    limit: int = 100
    window_ms: float = 60_000


@dataclass
class RateLimitEntry:
    count: int
    window_start: float  # seconds, clock time


@dataclass(frozen=True)
class RateLimitDecision:
    """Outcome of a rate limit check."""

    allowed: bool
    remaining: int
    retry_after_ms: float
    reset_at: float


class RateLimiter:
    """Per-key fixed-window counter.

    Windows reset lazily on the first check after they elapse. Rejected
    calls do not consume the budget. Checks never await, so the
    read-check-increment is atomic on the event loop.
    """

    def __init__(
        self,
        config: RateLimitConfig | None = None,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize the rate limiter.

        Args:
            config: Rate limit configuration
            clock: Time source in seconds
        """
        self._config = config or RateLimitConfig()
        self._clock = clock
        self._entries: dict[str, RateLimitEntry] = {}

    @property
    def config(self) -> RateLimitConfig:
        return self._config

    def check(self, key: str) -> RateLimitDecision:
        """Count a call against ``key`` if the window allows it."""
        now = self._clock()
        window_s = self._config.window_ms / 1000

        entry = self._entries.get(key)
        if entry is None or now - entry.window_start >= window_s:
            entry = RateLimitEntry(count=0, window_start=now)
            self._entries[key] = entry

        reset_at = entry.window_start + window_s

        if entry.count >= self._config.limit:
            retry_after_ms = max((reset_at - now) * 1000, 0.0)
            logger.debug(
                f"Rate limit exceeded for {key}, retry in {retry_after_ms:.0f}ms"
            )
            return RateLimitDecision(
                allowed=False, remaining=0, retry_after_ms=retry_after_ms, reset_at=reset_at
            )

        entry.count += 1
        return RateLimitDecision(
            allowed=True,
            remaining=self._config.limit - entry.count,
            retry_after_ms=0.0,
            reset_at=reset_at,
        )

    def get_status(self, key: str) -> dict[str, Any]:
        """Get the budget left for ``key`` without counting a call."""
        now = self._clock()
        window_s = self._config.window_ms / 1000
        entry = self._entries.get(key)

        if entry is None or now - entry.window_start >= window_s:
            return {
                "key": key,
                "limit": self._config.limit,
                "remaining": self._config.limit,
                "reset_at": None,
            }

        return {
            "key": key,
            "limit": self._config.limit,
            "remaining": max(self._config.limit - entry.count, 0),
            "reset_at": entry.window_start + window_s,
        }

    def reset(self, key: str | None = None) -> None:
        if key is None:
            self._entries.clear()
        else:
            self._entries.pop(key, None)
