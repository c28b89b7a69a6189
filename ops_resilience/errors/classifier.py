# ops_resilience/errors/classifier.py

"""Error classification for native exceptions and HTTP statuses."""

import asyncio
from dataclasses import dataclass
import logging
import re

import httpx
import pydantic

from .types import ErrorCategory, ErrorCodes, ErrorSeverity

logger = logging.getLogger(__name__)

RETRYABLE_STATUSES = frozenset({408, 429, 500, 502, 503, 504})


@dataclass(frozen=True)
class Classification:
    """Outcome of classifying an error."""

    category: ErrorCategory
    code: str
    severity: ErrorSeverity = ErrorSeverity.MEDIUM


class ErrorClassifier:
    """Classifies errors into categories for appropriate handling."""

    def __init__(self) -> None:
        """Initialize the error classifier with default mappings."""
        # Checked in insertion order, so specific types come first
        self._exception_mappings: dict[type[BaseException], Classification] = {
            httpx.TimeoutException: Classification(
                ErrorCategory.TIMEOUT, ErrorCodes.REQUEST_TIMEOUT
            ),
            asyncio.TimeoutError: Classification(
                ErrorCategory.TIMEOUT, ErrorCodes.REQUEST_TIMEOUT
            ),
            TimeoutError: Classification(
                ErrorCategory.TIMEOUT, ErrorCodes.REQUEST_TIMEOUT
            ),
            httpx.TransportError: Classification(
                ErrorCategory.NETWORK, ErrorCodes.CONNECTION_FAILED
            ),
            ConnectionError: Classification(
                ErrorCategory.NETWORK, ErrorCodes.CONNECTION_FAILED
            ),
            pydantic.ValidationError: Classification(
                ErrorCategory.VALIDATION, ErrorCodes.INVALID_FORMAT, ErrorSeverity.LOW
            ),
            OSError: Classification(
                ErrorCategory.NETWORK, ErrorCodes.CONNECTION_FAILED
            ),
        }

        self._message_patterns: list[tuple[re.Pattern[str], Classification]] = [
            (
                re.compile(r"timed? ?out|deadline exceeded", re.IGNORECASE),
                Classification(ErrorCategory.TIMEOUT, ErrorCodes.REQUEST_TIMEOUT),
            ),
            (
                re.compile(r"rate limit|too many requests", re.IGNORECASE),
                Classification(ErrorCategory.RATE_LIMIT, ErrorCodes.RATE_LIMITED),
            ),
            (
                re.compile(
                    r"network|connection (?:refused|reset|error)|dns|unreachable",
                    re.IGNORECASE,
                ),
                Classification(ErrorCategory.NETWORK, ErrorCodes.CONNECTION_FAILED),
            ),
        ]

    def classify_exception(self, error: BaseException) -> Classification:
        """Classify a native exception.

        Args:
            error: The exception that occurred

        Returns:
            Classification for the error, UNKNOWN when nothing matches
        """
        for exc_type, classification in self._exception_mappings.items():
            if isinstance(error, exc_type):
                logger.debug(
                    f"Classified error by exception type {type(error).__name__}: "
                    f"{classification.category.value}"
                )
                return classification

        message = str(error)
        for pattern, classification in self._message_patterns:
            if pattern.search(message):
                logger.debug(
                    f"Classified error by message pattern '{pattern.pattern}': "
                    f"{classification.category.value}"
                )
                return classification

        return Classification(ErrorCategory.UNKNOWN, ErrorCodes.UNEXPECTED_ERROR)

    def add_exception_mapping(
        self, exception_type: type[BaseException], classification: Classification
    ) -> None:
        """Add a custom exception type mapping, checked before the defaults."""
        self._exception_mappings = {
            exception_type: classification,
            **self._exception_mappings,
        }
        logger.info(
            f"Added exception mapping {exception_type.__name__} -> "
            f"{classification.category.value}"
        )

    @staticmethod
    def categorize_status(status: int) -> ErrorCategory:
        if status == 401:
            return ErrorCategory.AUTHENTICATION
        if status == 403:
            return ErrorCategory.AUTHORIZATION
        if status == 404:
            return ErrorCategory.NOT_FOUND
        if status == 422:
            return ErrorCategory.VALIDATION
        if status == 429:
            return ErrorCategory.RATE_LIMIT
        if 400 <= status < 500:
            return ErrorCategory.VALIDATION
        if status >= 500:
            return ErrorCategory.SERVER
        return ErrorCategory.UNKNOWN

    @staticmethod
    def severity_for_status(status: int) -> ErrorSeverity:
        if status in (401, 403, 429):
            return ErrorSeverity.MEDIUM
        if status in (404, 422):
            return ErrorSeverity.LOW
        if status >= 500:
            return ErrorSeverity.HIGH
        return ErrorSeverity.MEDIUM

    @staticmethod
    def code_for_status(status: int) -> str:
        return {
            401: ErrorCodes.UNAUTHORIZED,
            403: ErrorCodes.INSUFFICIENT_PERMISSIONS,
            404: ErrorCodes.RESOURCE_NOT_FOUND,
            408: ErrorCodes.REQUEST_TIMEOUT,
            422: ErrorCodes.INVALID_FORMAT,
            429: ErrorCodes.RATE_LIMITED,
            500: ErrorCodes.SYSTEM_ERROR,
            502: ErrorCodes.SERVICE_UNAVAILABLE,
            503: ErrorCodes.SERVICE_UNAVAILABLE,
            504: ErrorCodes.SERVICE_UNAVAILABLE,
        }.get(status, ErrorCodes.UNEXPECTED_ERROR)

    @staticmethod
    def is_retryable_status(status: int) -> bool:
        return status in RETRYABLE_STATUSES

    def classify_status(self, status: int) -> Classification:
        """Classify an HTTP status code."""
        return Classification(
            self.categorize_status(status),
            self.code_for_status(status),
            self.severity_for_status(status),
        )


default_classifier = ErrorClassifier()
