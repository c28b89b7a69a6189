# ops_resilience/__init__.py

"""
Client-side resilience and observability layer for the operations dashboard.

One outbound request pipeline, one error taxonomy with recovery
strategies and one metrics engine with percentiles and alerting.
"""

from .client import APIClient, APIRequest, APIRequestError, APIResponse
from .config import ResilienceSettings
from .errors import (
    ErrorCategory,
    ErrorContext,
    ErrorHandler,
    ErrorHandlerConfig,
    ErrorSeverity,
    StandardError,
    normalize,
)
from .layer import ResilienceLayer
from .metrics import MetricsCollector

__version__ = "0.1.0"

__all__ = [
    "APIClient",
    "APIRequest",
    "APIRequestError",
    "APIResponse",
    "ErrorCategory",
    "ErrorContext",
    "ErrorHandler",
    "ErrorHandlerConfig",
    "ErrorSeverity",
    "MetricsCollector",
    "ResilienceLayer",
    "ResilienceSettings",
    "StandardError",
    "normalize",
]
