# ops_resilience/client/cache.py

"""In-memory TTL cache for successful GET responses."""

from collections.abc import Callable
from dataclasses import dataclass
import logging
import re
import time
from typing import Any
from urllib.parse import urlencode

logger = logging.getLogger(__name__)


def cache_key(endpoint: str, params: dict[str, Any] | None = None) -> str:
    """Build the cache key for a GET: the endpoint plus sorted params."""
    if not params:
        return endpoint
    separator = "&" if "?" in endpoint else "?"
    return f"{endpoint}{separator}{urlencode(sorted(params.items()), doseq=True)}"


@dataclass(frozen=True)
class CacheEntry:
    data: Any
    status: int
    headers: dict[str, str]
    stored_at: float
    expires_at: float


class ResponseCache:
    """TTL cache keyed by request key.

    A read past expiry removes the entry. All operations are synchronous so
    lookups and stores never interleave with other tasks.
    """

    def __init__(self, ttl_ms: float = 300_000, clock: Callable[[], float] = time.time):
        """Initialize the cache.

        Args:
            ttl_ms: Default time-to-live in milliseconds
            clock: Time source in seconds
        """
        self._ttl_ms = ttl_ms
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._hits = 0
        self._misses = 0

    def get(self, key: str) -> CacheEntry | None:
        entry = self._entries.get(key)
        if entry is None:
            self._misses += 1
            return None

        if self._clock() >= entry.expires_at:
            del self._entries[key]
            self._misses += 1
            logger.debug(f"Cache entry expired: {key}")
            return None

        self._hits += 1
        return entry

    def set(
        self,
        key: str,
        data: Any,
        status: int,
        headers: dict[str, str],
        ttl_ms: float | None = None,
    ) -> CacheEntry:
        now = self._clock()
        entry = CacheEntry(
            data=data,
            status=status,
            headers=dict(headers),
            stored_at=now,
            expires_at=now + (ttl_ms if ttl_ms is not None else self._ttl_ms) / 1000,
        )
        self._entries[key] = entry
        return entry

    def invalidate(self, pattern: str) -> int:
        """Remove every entry whose key matches the regex ``pattern``.

        Returns:
            Number of entries removed
        """
        regex = re.compile(pattern)
        matching = [key for key in self._entries if regex.search(key)]
        for key in matching:
            del self._entries[key]
        logger.debug(f"Invalidated {len(matching)} cache entries matching {pattern}")
        return len(matching)

    def clear(self) -> None:
        self._entries.clear()

    def get_stats(self) -> dict[str, Any]:
        lookups = self._hits + self._misses
        return {
            "size": len(self._entries),
            "keys": list(self._entries),
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": self._hits / lookups if lookups else 0.0,
        }
