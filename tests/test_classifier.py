"""Tests for exception and status classification."""

import pydantic
import pytest

from ops_resilience.errors import ErrorCategory, ErrorClassifier, ErrorCodes
from ops_resilience.errors.classifier import Classification


class QuotaError(Exception):
    pass


class Model(pydantic.BaseModel):
    count: int


@pytest.fixture
def classifier() -> ErrorClassifier:
    return ErrorClassifier()


def test_message_patterns_classify_untyped_errors(classifier):
    assert classifier.classify_exception(RuntimeError("Connection refused by peer")).category == (
        ErrorCategory.NETWORK
    )
    assert classifier.classify_exception(RuntimeError("rate limit exceeded")).category == (
        ErrorCategory.RATE_LIMIT
    )
    assert classifier.classify_exception(RuntimeError("operation timed out")).code == (
        ErrorCodes.REQUEST_TIMEOUT
    )


def test_pydantic_validation_error_is_low_severity_validation(classifier):
    with pytest.raises(pydantic.ValidationError) as exc_info:
        Model.model_validate({"count": "many"})

    classification = classifier.classify_exception(exc_info.value)

    assert classification.category == ErrorCategory.VALIDATION
    assert classification.code == ErrorCodes.INVALID_FORMAT


def test_custom_mapping_takes_precedence(classifier):
    classifier.add_exception_mapping(
        QuotaError, Classification(ErrorCategory.BUSINESS_LOGIC, ErrorCodes.QUOTA_EXCEEDED)
    )

    classification = classifier.classify_exception(QuotaError("over quota"))

    assert classification.category == ErrorCategory.BUSINESS_LOGIC
    assert classification.code == ErrorCodes.QUOTA_EXCEEDED


def test_unmatched_errors_are_unknown(classifier):
    classification = classifier.classify_exception(KeyError("missing"))

    assert classification.category == ErrorCategory.UNKNOWN
    assert classification.code == ErrorCodes.UNEXPECTED_ERROR


@pytest.mark.parametrize("status", [408, 429, 500, 502, 503, 504])
def test_retryable_statuses(status):
    assert ErrorClassifier.is_retryable_status(status)


@pytest.mark.parametrize("status", [400, 401, 403, 404, 422, 501])
def test_non_retryable_statuses(status):
    assert not ErrorClassifier.is_retryable_status(status)
