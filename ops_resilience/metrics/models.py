# ops_resilience/metrics/models.py

from dataclasses import dataclass
from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field


@dataclass(frozen=True)
class RequestMetric:
    """One network attempt as seen by the request pipeline.

    ``timestamp`` is epoch seconds from the collector's clock.
    """

    endpoint: str
    method: str
    duration_ms: float
    success: bool
    timestamp: float
    status_code: int | None = None
    error_code: str | None = None
    client_id: str | None = None


class EndpointStat(BaseModel):
    endpoint: str
    count: int
    avg_duration_ms: float


class ErrorStat(BaseModel):
    code: str
    count: int


class TimeRange(BaseModel):
    """Aggregation window bounds, epoch seconds."""

    start: float
    end: float


class AggregatedMetrics(BaseModel):
    """Aggregation of the samples inside one time window."""

    total_requests: int = 0
    successful_requests: int = 0
    failed_requests: int = 0
    average_response_time_ms: float = 0.0
    p95_response_time_ms: float = 0.0
    p99_response_time_ms: float = 0.0
    requests_per_second: float = 0.0
    error_rate: float = 0.0
    top_endpoints: list[EndpointStat] = Field(default_factory=list)
    top_errors: list[ErrorStat] = Field(default_factory=list)
    time_range: TimeRange


class RecentError(BaseModel):
    error_code: str
    timestamp: float


class EndpointMetrics(BaseModel):
    """Per-endpoint view over a time window."""

    endpoint: str
    total_requests: int
    success_rate: float
    average_response_time_ms: float
    recent_errors: list[RecentError] = Field(default_factory=list)


class AlertSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Alert(BaseModel):
    """A class to represent an alert."""

    type: Literal["error_rate", "response_time", "traffic_spike", "low_traffic"] = (
        Field(..., description="The rule that produced the alert.")
    )
    severity: AlertSeverity = Field(..., description="The severity of the alert.")
    message: str = Field(..., description="A human-readable message for the alert.")
    value: float = Field(
        ..., description="The value of the metric that triggered the alert."
    )
    threshold: float = Field(..., description="The threshold for the metric.")


class DashboardMetrics(BaseModel):
    """Current and previous five-minute windows plus derived alerts."""

    current: AggregatedMetrics
    previous: AggregatedMetrics
    alerts: list[Alert] = Field(default_factory=list)
