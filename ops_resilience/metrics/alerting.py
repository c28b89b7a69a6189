# ops_resilience/metrics/alerting.py

"""Threshold rules turning two aggregation windows into alerts."""

from dataclasses import dataclass

from .models import AggregatedMetrics, Alert, AlertSeverity


@dataclass(frozen=True)
class AlertThresholds:
    """Thresholds of the alert rules.

    Attributes:
        error_rate: Error rate above which an alert fires
        error_rate_high: Error rate above which it is HIGH
        p95_ms: p95 latency above which an alert fires
        p95_high_ms: p95 latency above which it is HIGH
        spike_ratio: Traffic ratio (current / previous) for a spike
        spike_high_ratio: Traffic ratio above which a spike is HIGH
        spike_min_rps: Minimum current rate for a spike to count
        low_traffic_rps: Current rate below which traffic is low
        low_traffic_previous_rps: Previous rate above which low traffic alerts
    """

    error_rate: float = 0.05
    error_rate_high: float = 0.10
    p95_ms: float = 5000
    p95_high_ms: float = 10_000
    spike_ratio: float = 2.0
    spike_high_ratio: float = 5.0
    spike_min_rps: float = 10.0
    low_traffic_rps: float = 0.1
    low_traffic_previous_rps: float = 1.0


DEFAULT_THRESHOLDS = AlertThresholds()


def generate_alerts(
    current: AggregatedMetrics,
    previous: AggregatedMetrics,
    thresholds: AlertThresholds = DEFAULT_THRESHOLDS,
) -> list[Alert]:
    """Evaluate the alert rules. Alerts are derived, never stored."""
    alerts: list[Alert] = []

    if current.error_rate > thresholds.error_rate:
        alerts.append(
            Alert(
                type="error_rate",
                severity=(
                    AlertSeverity.HIGH
                    if current.error_rate > thresholds.error_rate_high
                    else AlertSeverity.MEDIUM
                ),
                message=f"High error rate: {current.error_rate * 100:.1f}%",
                value=current.error_rate,
                threshold=thresholds.error_rate,
            )
        )

    if current.p95_response_time_ms > thresholds.p95_ms:
        alerts.append(
            Alert(
                type="response_time",
                severity=(
                    AlertSeverity.HIGH
                    if current.p95_response_time_ms > thresholds.p95_high_ms
                    else AlertSeverity.MEDIUM
                ),
                message=f"High response time: P95 = {current.p95_response_time_ms:.0f}ms",
                value=current.p95_response_time_ms,
                threshold=thresholds.p95_ms,
            )
        )

    traffic_increase = current.requests_per_second / max(
        previous.requests_per_second, 1
    )
    if (
        traffic_increase > thresholds.spike_ratio
        and current.requests_per_second > thresholds.spike_min_rps
    ):
        alerts.append(
            Alert(
                type="traffic_spike",
                severity=(
                    AlertSeverity.HIGH
                    if traffic_increase > thresholds.spike_high_ratio
                    else AlertSeverity.MEDIUM
                ),
                message=f"Traffic spike: {traffic_increase:.1f}x increase",
                value=traffic_increase,
                threshold=thresholds.spike_ratio,
            )
        )

    if (
        current.requests_per_second < thresholds.low_traffic_rps
        and previous.requests_per_second > thresholds.low_traffic_previous_rps
    ):
        alerts.append(
            Alert(
                type="low_traffic",
                severity=AlertSeverity.HIGH,
                message="Unusually low traffic - potential outage",
                value=current.requests_per_second,
                threshold=thresholds.low_traffic_rps,
            )
        )

    return alerts
