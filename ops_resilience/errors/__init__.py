# ops_resilience/errors/__init__.py

"""Error model and centralized error handling."""

from .classifier import Classification, ErrorClassifier
from .feedback import get_feedback_config
from .handler import ErrorHandler, ErrorHandlerConfig
from .messages import DEFAULT_LOCALE
from .sinks import ErrorSink, NullSink, WebhookSink
from .standard_error import HTTPStatusError, StandardError, normalize
from .types import (
    DEFAULT_RETRY_CATEGORIES,
    RETRYABLE_CATEGORIES,
    ErrorCategory,
    ErrorCodes,
    ErrorContext,
    ErrorSeverity,
    FeedbackAction,
    FeedbackConfig,
    FeedbackType,
    RecoveryOptions,
    RecoveryStrategy,
)

__all__ = [
    "Classification",
    "DEFAULT_LOCALE",
    "DEFAULT_RETRY_CATEGORIES",
    "ErrorCategory",
    "ErrorClassifier",
    "ErrorCodes",
    "ErrorContext",
    "ErrorHandler",
    "ErrorHandlerConfig",
    "ErrorSeverity",
    "ErrorSink",
    "FeedbackAction",
    "FeedbackConfig",
    "FeedbackType",
    "HTTPStatusError",
    "NullSink",
    "RETRYABLE_CATEGORIES",
    "RecoveryOptions",
    "RecoveryStrategy",
    "StandardError",
    "WebhookSink",
    "get_feedback_config",
    "normalize",
]
