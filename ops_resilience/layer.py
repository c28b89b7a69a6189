# ops_resilience/layer.py

"""
Composition root.

Builds one error handler, one metrics collector and one API client that
share them. Nothing in the package is a module-level singleton; callers
own the layer and its lifetime.
"""

from collections.abc import Awaitable, Callable
import logging
import random
import time

import httpx

from .client import APIClient
from .config import ResilienceSettings
from .core.logging import configure_logging
from .errors import ErrorHandler, ErrorHandlerConfig
from .metrics import MetricsCollector

logger = logging.getLogger(__name__)


def error_handler_config(settings: ResilienceSettings) -> ErrorHandlerConfig:
    return ErrorHandlerConfig(
        enable_recovery=settings.enable_recovery,
        enable_user_feedback=settings.enable_user_feedback,
        max_retries=settings.max_retries,
        retry_delay_ms=settings.retry_delay_ms,
        monitoring_endpoint=settings.monitoring_endpoint,
        notification_webhook=settings.notification_webhook,
        environment=settings.environment.value,
        app_version=settings.app_version,
        locale=settings.locale,
    )


class ResilienceLayer:
    """The error handler, metrics collector and API client of one application."""

    def __init__(
        self,
        settings: ResilienceSettings,
        error_handler: ErrorHandler,
        metrics: MetricsCollector,
        client: APIClient,
    ):
        self.settings = settings
        self.error_handler = error_handler
        self.metrics = metrics
        self.client = client

    @classmethod
    def from_settings(
        cls,
        settings: ResilienceSettings | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], Awaitable[None]] | None = None,
        rng: random.Random | None = None,
        configure_logs: bool = False,
    ) -> "ResilienceLayer":
        """Wire the layer from settings.

        Args:
            settings: Settings; loaded from the environment when omitted
            transport: httpx transport for the API client
            clock: Time source in seconds shared by every component
            sleep: Coroutine used between retry attempts
            rng: Jitter source for retry delays
            configure_logs: Install the console log handler from settings
        """
        settings = settings or ResilienceSettings()

        if configure_logs:
            configure_logging(settings.log_level, settings.log_format)

        handler_kwargs = {"rng": rng, "clock": clock}
        if sleep is not None:
            handler_kwargs["sleep"] = sleep
        error_handler = ErrorHandler(error_handler_config(settings), **handler_kwargs)
        metrics = MetricsCollector(clock=clock)
        client = APIClient(
            settings, error_handler, metrics, transport=transport, clock=clock
        )

        logger.info(
            f"Resilience layer ready for {settings.base_url} "
            f"({settings.environment.value})"
        )
        return cls(settings, error_handler, metrics, client)

    async def start(self) -> None:
        self.metrics.start()

    async def aclose(self) -> None:
        """Close the client, stop the sweep and flush error reports."""
        await self.client.aclose()
        await self.metrics.aclose()
        await self.error_handler.aclose()

    async def __aenter__(self) -> "ResilienceLayer":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()
