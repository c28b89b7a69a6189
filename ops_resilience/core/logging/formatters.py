# ops_resilience/core/logging/formatters.py
"""
Log formatters for text, structured and JSON output.
"""

from datetime import datetime, timezone
import json
import logging

from .context import get_logging_context

DEFAULT_FORMAT = "%(asctime)s [%(levelname)8s] %(name)s: %(message)s"

# Attributes every LogRecord carries; anything else came from ``extra=``
_RESERVED_RECORD_ATTRS = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None)).keys()
) | {"message", "asctime", "taskName"}


def _extra_fields(record: logging.LogRecord) -> dict[str, object]:
    return {
        key: value
        for key, value in record.__dict__.items()
        if key not in _RESERVED_RECORD_ATTRS and not key.startswith("_")
    }


class StructuredFormatter(logging.Formatter):
    """Text lines followed by ``key=value`` context pairs."""

    def __init__(
        self,
        fmt: str | None = None,
        datefmt: str | None = None,
        include_extra: bool = True,
    ):
        super().__init__(fmt or DEFAULT_FORMAT, datefmt)
        self.include_extra = include_extra

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)

        context_parts = [
            f"{key}={value}" for key, value in get_logging_context().to_dict().items()
        ]
        if self.include_extra:
            context_parts.extend(
                f"{key}={value}"
                for key, value in _extra_fields(record).items()
                if value is not None
            )

        if context_parts:
            return f"{message} | {' | '.join(context_parts)}"
        return message


class JSONFormatter(logging.Formatter):
    """One JSON object per record."""

    def __init__(self, include_exception: bool = True):
        super().__init__()
        self.include_exception = include_exception

    def format(self, record: logging.LogRecord) -> str:
        """Format a log record as JSON.

        Args:
            record: Log record to format

        Returns:
            JSON formatted log message
        """
        log_data: dict[str, object] = {
            "timestamp": datetime.fromtimestamp(
                record.created, tz=timezone.utc
            ).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if self.include_exception and record.exc_info:
            exc_type, exc_value, _ = record.exc_info
            log_data["exception"] = {
                "type": exc_type.__name__ if exc_type else None,
                "message": str(exc_value) if exc_value else None,
                "traceback": self.formatException(record.exc_info),
            }

        for key, value in get_logging_context().to_dict().items():
            log_data.setdefault(key, value)

        for key, value in _extra_fields(record).items():
            log_data.setdefault(key, value)

        return json.dumps(log_data, default=str, ensure_ascii=False)


def create_formatter(log_format: str) -> logging.Formatter:
    """Create a formatter by name: ``text``, ``structured`` or ``json``."""
    if log_format == "json":
        return JSONFormatter()
    if log_format == "structured":
        return StructuredFormatter()
    if log_format == "text":
        return logging.Formatter(DEFAULT_FORMAT)
    raise ValueError(f"Unknown log format: {log_format}")
