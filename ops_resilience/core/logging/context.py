# ops_resilience/core/logging/context.py
"""
Logging context management.

A ``contextvars``-backed request context that the request pipeline binds
for the duration of a call, so every record logged while the call runs
(including from the error handler) carries its request id.
"""

from collections.abc import Iterator
import contextlib
import contextvars
from dataclasses import dataclass, field, replace
from typing import Any

_logging_context: contextvars.ContextVar["LoggingContext | None"] = (
    contextvars.ContextVar("ops_resilience_logging_context", default=None)
)


@dataclass(frozen=True)
class LoggingContext:
    """Context for structured logging operations."""

    request_id: str | None = None
    operation: str | None = None
    user_id: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert context to dictionary, omitting unset fields."""
        data: dict[str, Any] = {
            "request_id": self.request_id,
            "operation": self.operation,
            "user_id": self.user_id,
        }
        data.update(self.metadata)
        return {key: value for key, value in data.items() if value is not None}


def get_logging_context() -> LoggingContext:
    """Get the current logging context (empty when nothing is bound)."""
    return _logging_context.get() or LoggingContext()


@contextlib.contextmanager
def logging_context(
    request_id: str | None = None,
    operation: str | None = None,
    user_id: str | None = None,
    **metadata: Any,
) -> Iterator[LoggingContext]:
    """Bind values on top of the current context until the block exits.

    Args:
        request_id: Request identifier
        operation: Operation name
        user_id: User identifier
        **metadata: Extra key-value pairs rendered by the formatters
    """
    current = get_logging_context()
    updates: dict[str, Any] = {}
    if request_id is not None:
        updates["request_id"] = request_id
    if operation is not None:
        updates["operation"] = operation
    if user_id is not None:
        updates["user_id"] = user_id
    if metadata:
        updates["metadata"] = {**current.metadata, **metadata}

    context = replace(current, **updates)
    token = _logging_context.set(context)
    try:
        yield context
    finally:
        _logging_context.reset(token)
