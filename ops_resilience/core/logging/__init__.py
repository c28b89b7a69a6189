# ops_resilience/core/logging/__init__.py
"""
Logging setup, formatters and request-scoped logging context.
"""

from .context import LoggingContext, get_logging_context, logging_context
from .formatters import JSONFormatter, StructuredFormatter, create_formatter
from .manager import configure_logging

__all__ = [
    "JSONFormatter",
    "LoggingContext",
    "StructuredFormatter",
    "configure_logging",
    "create_formatter",
    "get_logging_context",
    "logging_context",
]
