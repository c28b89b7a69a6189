# ops_resilience/metrics/exporters.py

"""Export formats for aggregated metrics."""

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, generate_latest

from .models import AggregatedMetrics, RequestMetric

DURATION_BUCKETS = (0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0)


def to_json(metrics: AggregatedMetrics) -> str:
    return metrics.model_dump_json(indent=2)


class PrometheusExporter:
    """Prometheus instruments fed by every recorded sample.

    Counters and the duration histogram accumulate over the exporter's
    lifetime, so they never decrease between scrapes even after the ring
    buffer evicts or the sweep drops samples. The window gauges are set from
    the current aggregation at render time.

    Each exporter owns a private ``CollectorRegistry``; several collectors in
    one process never clash on metric names.
    """

    def __init__(self, prefix: str = "api"):
        self.registry = CollectorRegistry()

        self.requests_total = Counter(
            f"{prefix}_requests_total",
            "Total number of API request attempts",
            ["method", "endpoint", "outcome"],
            registry=self.registry,
        )
        self.errors_total = Counter(
            f"{prefix}_request_errors_total",
            "Failed API request attempts by error code",
            ["endpoint", "error_code"],
            registry=self.registry,
        )
        self.request_duration = Histogram(
            f"{prefix}_request_duration_seconds",
            "API request duration in seconds",
            ["method", "endpoint"],
            buckets=DURATION_BUCKETS,
            registry=self.registry,
        )

        self.window_p95 = Gauge(
            f"{prefix}_request_duration_p95_seconds",
            "95th percentile request duration over the export window",
            registry=self.registry,
        )
        self.window_p99 = Gauge(
            f"{prefix}_request_duration_p99_seconds",
            "99th percentile request duration over the export window",
            registry=self.registry,
        )
        self.window_rate = Gauge(
            f"{prefix}_requests_per_second",
            "Request rate over the export window",
            registry=self.registry,
        )
        self.window_error_rate = Gauge(
            f"{prefix}_error_rate",
            "Error rate over the export window",
            registry=self.registry,
        )

    def observe(self, metric: RequestMetric) -> None:
        endpoint = metric.endpoint
        outcome = "success" if metric.success else "failure"

        self.requests_total.labels(
            method=metric.method, endpoint=endpoint, outcome=outcome
        ).inc()
        self.request_duration.labels(method=metric.method, endpoint=endpoint).observe(
            metric.duration_ms / 1000
        )
        if not metric.success:
            self.errors_total.labels(
                endpoint=endpoint, error_code=metric.error_code or "unknown"
            ).inc()

    def render(self, window: AggregatedMetrics) -> str:
        """Render the text exposition with window gauges taken from ``window``."""
        self.window_p95.set(window.p95_response_time_ms / 1000)
        self.window_p99.set(window.p99_response_time_ms / 1000)
        self.window_rate.set(window.requests_per_second)
        self.window_error_rate.set(window.error_rate)
        return generate_latest(self.registry).decode("utf-8")
