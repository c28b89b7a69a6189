# ops_resilience/metrics/__init__.py

"""Request metrics aggregation, alerting and export."""

from .alerting import AlertThresholds, generate_alerts
from .collector import MetricsCollector, percentile
from .exporters import PrometheusExporter, to_json
from .models import (
    AggregatedMetrics,
    Alert,
    AlertSeverity,
    DashboardMetrics,
    EndpointMetrics,
    EndpointStat,
    ErrorStat,
    RequestMetric,
)

__all__ = [
    "AggregatedMetrics",
    "Alert",
    "AlertSeverity",
    "AlertThresholds",
    "DashboardMetrics",
    "EndpointMetrics",
    "EndpointStat",
    "ErrorStat",
    "MetricsCollector",
    "PrometheusExporter",
    "RequestMetric",
    "generate_alerts",
    "percentile",
    "to_json",
]
