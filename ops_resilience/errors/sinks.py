# ops_resilience/errors/sinks.py

"""Outbound sinks for error monitoring and critical notifications."""

from abc import ABC, abstractmethod
from datetime import datetime, timezone
import logging
from typing import Any

import httpx

from .standard_error import StandardError
from .types import ErrorContext

logger = logging.getLogger(__name__)


class ErrorSink(ABC):
    """Destination for error reports."""

    name: str = "sink"

    @property
    def enabled(self) -> bool:
        return True

    @abstractmethod
    async def send(self, payload: dict[str, Any]) -> None:
        """Deliver a payload. Raises on delivery failure."""

    async def aclose(self) -> None:
        """Release resources held by the sink."""


class NullSink(ErrorSink):
    """Sink used when no destination is configured."""

    name = "null"

    @property
    def enabled(self) -> bool:
        return False

    async def send(self, payload: dict[str, Any]) -> None:
        return None


class WebhookSink(ErrorSink):
    """POSTs JSON payloads to a webhook URL."""

    def __init__(
        self,
        url: str,
        name: str = "webhook",
        client: httpx.AsyncClient | None = None,
        timeout_s: float = 5.0,
    ) -> None:
        """Initialize the webhook sink.

        Args:
            url: Destination URL
            name: Sink name used in logs
            client: Shared HTTP client; one is created when omitted
            timeout_s: Request timeout in seconds
        """
        self.url = url
        self.name = name
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout_s)

    async def send(self, payload: dict[str, Any]) -> None:
        response = await self._client.post(
            self.url,
            json=payload,
            headers={"Content-Type": "application/json"},
        )
        response.raise_for_status()
        logger.debug(f"Delivered error payload to {self.name} sink")

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


def build_sink(url: str | None, name: str) -> ErrorSink:
    """Create a webhook sink, or a null sink when ``url`` is empty."""
    if not url:
        return NullSink()
    return WebhookSink(url, name=name)


def monitoring_payload(
    error: StandardError,
    context: ErrorContext,
    environment: str,
    version: str,
) -> dict[str, Any]:
    return {
        "error": error.to_safe_json(),
        "context": context.to_dict(),
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "environment": environment,
        "version": version,
        "session_id": context.session_id,
        "user_id": context.user_id,
    }


def notification_payload(error: StandardError, context: ErrorContext) -> dict[str, Any]:
    return {
        "type": "critical_error",
        "error": error.to_safe_json(),
        "context": context.to_dict(),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
