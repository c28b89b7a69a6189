# ops_resilience/metrics/collector.py

"""
Request metrics collection and aggregation.

Samples live in a ring buffer bounded by count; a background task sweeps
samples older than the retention window and logs a one-minute summary.
Every mutation and read is synchronous, so no other task can observe the
buffer half-updated.
"""

import asyncio
from collections import deque
from collections.abc import Callable
import contextlib
import logging
import math
import time
from typing import Literal

from .alerting import DEFAULT_THRESHOLDS, AlertThresholds, generate_alerts
from .exporters import PrometheusExporter, to_json
from .models import (
    AggregatedMetrics,
    Alert,
    DashboardMetrics,
    EndpointMetrics,
    EndpointStat,
    ErrorStat,
    RecentError,
    RequestMetric,
    TimeRange,
)

logger = logging.getLogger(__name__)

DASHBOARD_WINDOW_MS = 300_000
SUMMARY_PERIOD_MS = 60_000
TOP_N = 10


def percentile(sorted_values: list[float], fraction: float) -> float:
    """Nearest-rank percentile: ``sorted_values[floor(n * fraction)]``."""
    if not sorted_values:
        return 0.0
    index = min(math.floor(len(sorted_values) * fraction), len(sorted_values) - 1)
    return sorted_values[index]


class MetricsCollector:
    """Collects per-attempt request samples and aggregates them on demand."""

    def __init__(
        self,
        *,
        max_samples: int = 10_000,
        retention_ms: float = 3_600_000,
        sweep_interval_ms: float = 60_000,
        clock: Callable[[], float] = time.time,
        thresholds: AlertThresholds = DEFAULT_THRESHOLDS,
    ):
        """Initialize the collector.

        Args:
            max_samples: Ring buffer capacity
            retention_ms: Age after which the sweep drops samples
            sweep_interval_ms: Period of the background sweep
            clock: Time source in seconds
            thresholds: Alert rule thresholds
        """
        self._samples: deque[RequestMetric] = deque(maxlen=max_samples)
        self._retention_ms = retention_ms
        self._sweep_interval_ms = sweep_interval_ms
        self._clock = clock
        self._thresholds = thresholds
        self._sweep_task: asyncio.Task | None = None
        self._prometheus = PrometheusExporter()

    @property
    def sample_count(self) -> int:
        return len(self._samples)

    def get_samples(self) -> list[RequestMetric]:
        return list(self._samples)

    # Recording

    def record_request(
        self,
        endpoint: str,
        method: str,
        duration_ms: float,
        success: bool,
        status_code: int | None = None,
        client_id: str | None = None,
        *,
        error_code: str | None = None,
    ) -> None:
        """Record one network attempt."""
        metric = RequestMetric(
            endpoint=endpoint,
            method=method.upper(),
            duration_ms=duration_ms,
            success=success,
            timestamp=self._clock(),
            status_code=status_code,
            error_code=error_code,
            client_id=client_id,
        )
        self._samples.append(metric)
        self._prometheus.observe(metric)

    def record_error(
        self,
        endpoint: str,
        error_code: str,
        duration_ms: float,
        client_id: str | None = None,
    ) -> None:
        """Record a failure whose method is not known."""
        self.record_request(
            endpoint,
            "UNKNOWN",
            duration_ms,
            False,
            client_id=client_id,
            error_code=error_code,
        )

    # Aggregation

    def get_aggregated_metrics(self, period_ms: float = 300_000) -> AggregatedMetrics:
        now = self._clock()
        return self._aggregate(now - period_ms / 1000, now)

    def _aggregate(self, start: float, end: float) -> AggregatedMetrics:
        """Aggregate samples with ``start < timestamp <= end``."""
        window = [m for m in self._samples if start < m.timestamp <= end]
        time_range = TimeRange(start=start, end=end)

        if not window:
            return AggregatedMetrics(time_range=time_range)

        durations = sorted(m.duration_ms for m in window)
        total = len(window)
        successful = sum(1 for m in window if m.success)
        failed = total - successful

        endpoint_totals: dict[str, list[float]] = {}
        error_counts: dict[str, int] = {}
        for metric in window:
            stats = endpoint_totals.setdefault(metric.endpoint, [0, 0.0])
            stats[0] += 1
            stats[1] += metric.duration_ms
            if not metric.success and metric.error_code:
                error_counts[metric.error_code] = error_counts.get(metric.error_code, 0) + 1

        top_endpoints = sorted(
            (
                EndpointStat(endpoint=endpoint, count=count, avg_duration_ms=total_ms / count)
                for endpoint, (count, total_ms) in endpoint_totals.items()
            ),
            key=lambda stat: stat.count,
            reverse=True,
        )[:TOP_N]
        top_errors = sorted(
            (ErrorStat(code=code, count=count) for code, count in error_counts.items()),
            key=lambda stat: stat.count,
            reverse=True,
        )[:TOP_N]

        period_s = end - start
        return AggregatedMetrics(
            total_requests=total,
            successful_requests=successful,
            failed_requests=failed,
            average_response_time_ms=sum(durations) / total,
            p95_response_time_ms=percentile(durations, 0.95),
            p99_response_time_ms=percentile(durations, 0.99),
            requests_per_second=total / period_s if period_s > 0 else 0.0,
            error_rate=failed / total,
            top_endpoints=top_endpoints,
            top_errors=top_errors,
            time_range=time_range,
        )

    def get_endpoint_metrics(
        self, endpoint: str, period_ms: float = 300_000
    ) -> EndpointMetrics:
        cutoff = self._clock() - period_ms / 1000
        samples = [
            m for m in self._samples if m.endpoint == endpoint and m.timestamp > cutoff
        ]

        if not samples:
            return EndpointMetrics(
            endpoint=endpoint,
                total_requests=0,
                success_rate=0.0,
                average_response_time_ms=0.0,
            )

        recent_errors = sorted(
            (
                RecentError(error_code=m.error_code, timestamp=m.timestamp)
                for m in samples
                if not m.success and m.error_code
            ),
            key=lambda error: error.timestamp,
            reverse=True,
        )[:TOP_N]

        return EndpointMetrics(
            endpoint=endpoint,
            total_requests=len(samples),
            success_rate=sum(1 for m in samples if m.success) / len(samples),
            average_response_time_ms=sum(m.duration_ms for m in samples) / len(samples),
            recent_errors=recent_errors,
        )

    def get_dashboard_metrics(self) -> DashboardMetrics:
        """Last five minutes against the five minutes before them."""
        now = self._clock()
        window_s = DASHBOARD_WINDOW_MS / 1000
        current = self._aggregate(now - window_s, now)
        previous = self._aggregate(now - 2 * window_s, now - window_s)
        return DashboardMetrics(
            current=current,
            previous=previous,
            alerts=self.generate_alerts(current, previous),
        )

    def generate_alerts(
        self, current: AggregatedMetrics, previous: AggregatedMetrics
    ) -> list[Alert]:
        return generate_alerts(current, previous, self._thresholds)

    def export_metrics(self, format: Literal["json", "prometheus"] = "json") -> str:
        """Export the default five-minute aggregation."""
        metrics = self.get_aggregated_metrics()
        if format == "prometheus":
            return self._prometheus.render(metrics)
        if format == "json":
            return to_json(metrics)
        raise ValueError(f"Unsupported export format: {format}")

    # Maintenance

    def sweep(self) -> int:
        """Drop samples older than the retention window.

        Returns:
            Number of samples removed
        """
        cutoff = self._clock() - self._retention_ms / 1000
        removed = 0
        while self._samples and self._samples[0].timestamp <= cutoff:
            self._samples.popleft()
            removed += 1

        if removed:
            logger.debug(
                f"Cleaned up {removed} old metrics, {len(self._samples)} remaining"
            )
        return removed

    def log_summary(self) -> None:
        metrics = self.get_aggregated_metrics(SUMMARY_PERIOD_MS)
        if metrics.total_requests == 0:
            return

        top = ", ".join(stat.endpoint for stat in metrics.top_endpoints[:3])
        logger.info(
            f"API metrics summary: {metrics.total_requests} requests, "
            f"{(1 - metrics.error_rate) * 100:.1f}% success, "
            f"avg {metrics.average_response_time_ms:.0f}ms, "
            f"p95 {metrics.p95_response_time_ms:.0f}ms, "
            f"{metrics.requests_per_second:.1f} req/s, top: {top}"
        )

    def reset(self) -> None:
        """Drop buffered samples. Prometheus counters keep their lifetime totals."""
        self._samples.clear()

    # Lifecycle

    def start(self) -> None:
        """Start the background sweep. Requires a running event loop."""
        if self._sweep_task is None or self._sweep_task.done():
            self._sweep_task = asyncio.get_running_loop().create_task(
                self._sweep_loop()
            )

    @property
    def running(self) -> bool:
        return self._sweep_task is not None and not self._sweep_task.done()

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self._sweep_interval_ms / 1000)
            try:
                self.sweep()
                self.log_summary()
            except Exception as e:
                logger.error(f"Error in metrics sweep task: {e}")

    async def aclose(self) -> None:
        """Stop the background sweep."""
        if self._sweep_task is None:
            return
        self._sweep_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._sweep_task
        self._sweep_task = None

    async def __aenter__(self) -> "MetricsCollector":
        self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()
