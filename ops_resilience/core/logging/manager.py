# ops_resilience/core/logging/manager.py
"""
Logging setup for applications embedding the resilience layer.
"""

import logging
import sys
from typing import TextIO

from .formatters import create_formatter

# Marks handlers installed here so reconfiguration replaces only them
_HANDLER_MARKER = "_ops_resilience_handler"


def configure_logging(
    level: str = "INFO",
    log_format: str = "text",
    logger_name: str | None = None,
    stream: TextIO | None = None,
) -> logging.Logger:
    """Attach a console handler with the requested formatter.

    Calling it again replaces the handler it installed previously; handlers
    added by other code are left alone.

    Args:
        level: Log level name
        log_format: ``text``, ``structured`` or ``json``
        logger_name: Logger to configure; the root logger when ``None``
        stream: Output stream, ``sys.stderr`` by default

    Returns:
        The configured logger
    """
    logger = logging.getLogger(logger_name)
    logger.setLevel(level.upper())

    for handler in list(logger.handlers):
        if getattr(handler, _HANDLER_MARKER, False):
            logger.removeHandler(handler)

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(create_formatter(log_format))
    setattr(handler, _HANDLER_MARKER, True)
    logger.addHandler(handler)

    return logger
