# ops_resilience/client/models.py

"""Request and response envelopes of the API client."""

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel

from ..errors import StandardError

# A pydantic model class, or a callable returning the validated payload
Validator = type[BaseModel] | Callable[[Any], Any]


@dataclass
class APIRequest:
    """A single call through the request pipeline.

    Attributes:
        method: HTTP method
        endpoint: Path relative to the base URL, may carry a query string
        data: JSON body for write methods
        params: Query parameters
        headers: Extra headers, merged over the client defaults
        timeout_ms: Per-attempt timeout, the client default when ``None``
        retries: Maximum attempts, the client default when ``None``
        bypass_cache: Skip the read cache for this GET
        use_circuit_breaker: Guard this call with the endpoint's breaker;
            the client setting decides when ``None``
        validate_input: Validator applied to ``data`` before any I/O
        validate_output: Validator applied to the parsed response body
    """

    method: str = "GET"
    endpoint: str = "/"
    data: Any = None
    params: dict[str, Any] | None = None
    headers: dict[str, str] = field(default_factory=dict)
    timeout_ms: int | None = None
    retries: int | None = None
    bypass_cache: bool = False
    use_circuit_breaker: bool | None = None
    validate_input: Validator | None = None
    validate_output: Validator | None = None

    def __post_init__(self) -> None:
        self.method = self.method.upper()


@dataclass(frozen=True)
class APIResponse:
    """Result of a successful call."""

    data: Any
    status: int
    headers: dict[str, str]
    request_id: str
    timestamp: str
    cached: bool = False


class APIRequestError(Exception):
    """A failed call: the normalized error plus the request it belongs to.

    Attributes:
        error: Normalized error
        request_id: Identifier of the failed request
        timestamp: ISO-8601 time of the failure
    """

    def __init__(self, error: StandardError, request_id: str, timestamp: str):
        super().__init__(str(error))
        self.error = error
        self.request_id = request_id
        self.timestamp = timestamp

    @property
    def code(self) -> str:
        return self.error.code

    @property
    def category(self):
        return self.error.category

    def __str__(self) -> str:
        return f"{self.error} (request {self.request_id})"


def run_validator(validator: Validator, value: Any) -> Any:
    """Apply a validator and return the validated value.

    Raises whatever the validator raises; pydantic models raise
    ``pydantic.ValidationError``.
    """
    if isinstance(validator, type) and issubclass(validator, BaseModel):
        return validator.model_validate(value)
    return validator(value)
