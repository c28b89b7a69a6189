# ops_resilience/errors/types.py

"""
Shared types for the error model.

Defines the error taxonomy (categories, ordered severities, stable codes),
the transient per-call error context, recovery strategy options and the
feedback hints handed to UI subscribers.
"""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Categories every error is normalized into."""

    # Client-side errors
    VALIDATION = "VALIDATION"
    AUTHENTICATION = "AUTHENTICATION"
    AUTHORIZATION = "AUTHORIZATION"
    NOT_FOUND = "NOT_FOUND"
    RATE_LIMIT = "RATE_LIMIT"

    # Server-side errors
    SERVER = "SERVER"
    DATABASE = "DATABASE"
    EXTERNAL_SERVICE = "EXTERNAL_SERVICE"

    # Connectivity
    NETWORK = "NETWORK"
    TIMEOUT = "TIMEOUT"

    # Application
    BUSINESS_LOGIC = "BUSINESS_LOGIC"
    CONFIGURATION = "CONFIGURATION"
    UNKNOWN = "UNKNOWN"


RETRYABLE_CATEGORIES = frozenset(
    {
        ErrorCategory.NETWORK,
        ErrorCategory.TIMEOUT,
        ErrorCategory.SERVER,
        ErrorCategory.EXTERNAL_SERVICE,
        ErrorCategory.DATABASE,
        ErrorCategory.RATE_LIMIT,
    }
)

DEFAULT_RETRY_CATEGORIES = frozenset(
    {
        ErrorCategory.NETWORK,
        ErrorCategory.TIMEOUT,
        ErrorCategory.SERVER,
        ErrorCategory.EXTERNAL_SERVICE,
    }
)


class ErrorSeverity(str, Enum):
    """Error severity levels, ordered LOW < MEDIUM < HIGH < CRITICAL."""

    LOW = "LOW"  # User can continue, minor inconvenience
    MEDIUM = "MEDIUM"  # Workflow affected, requires attention
    HIGH = "HIGH"  # Critical functionality broken
    CRITICAL = "CRITICAL"  # System-wide impact

    @property
    def rank(self) -> int:
        return _SEVERITY_ORDER.index(self)

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, ErrorSeverity):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other: object) -> bool:
        if not isinstance(other, ErrorSeverity):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other: object) -> bool:
        if not isinstance(other, ErrorSeverity):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other: object) -> bool:
        if not isinstance(other, ErrorSeverity):
            return NotImplemented
        return self.rank >= other.rank


_SEVERITY_ORDER = [
    ErrorSeverity.LOW,
    ErrorSeverity.MEDIUM,
    ErrorSeverity.HIGH,
    ErrorSeverity.CRITICAL,
]


class ErrorCodes:
    """Stable error codes used for classification lookups and log correlation."""

    # Authentication & authorization
    UNAUTHORIZED = "AUTH_001"
    TOKEN_EXPIRED = "AUTH_002"
    INSUFFICIENT_PERMISSIONS = "AUTH_003"
    ACCOUNT_LOCKED = "AUTH_004"

    # Validation
    REQUIRED_FIELD = "VAL_001"
    INVALID_FORMAT = "VAL_002"
    OUT_OF_RANGE = "VAL_003"
    DUPLICATE_VALUE = "VAL_004"

    # Business logic
    INSUFFICIENT_BALANCE = "BIZ_001"
    OPERATION_NOT_ALLOWED = "BIZ_002"
    RESOURCE_CONFLICT = "BIZ_003"
    QUOTA_EXCEEDED = "BIZ_004"

    # Network & services
    CONNECTION_FAILED = "NET_001"
    REQUEST_TIMEOUT = "NET_002"
    SERVICE_UNAVAILABLE = "NET_003"
    RATE_LIMITED = "NET_004"

    # Database
    QUERY_FAILED = "DB_001"
    CONNECTION_LOST = "DB_002"
    CONSTRAINT_VIOLATION = "DB_003"
    TRANSACTION_FAILED = "DB_004"

    # Configuration
    MISSING_CONFIG = "CFG_001"
    INVALID_CONFIG = "CFG_002"
    ENVIRONMENT_ERROR = "CFG_003"

    # Resources
    RESOURCE_NOT_FOUND = "RES_001"
    CIRCUIT_OPEN = "CB_001"

    # Unknown
    UNEXPECTED_ERROR = "UNK_001"
    SYSTEM_ERROR = "UNK_002"


class RecoveryStrategy(str, Enum):
    """Actions taken after an error has been classified."""

    NONE = "NONE"
    RETRY = "RETRY"
    FALLBACK = "FALLBACK"
    REFRESH = "REFRESH"
    REDIRECT = "REDIRECT"
    MANUAL = "MANUAL"


RecoveryAction = Callable[[], Awaitable[None] | None]


@dataclass(frozen=True)
class RecoveryOptions:
    """A resolved recovery strategy and its parameters.

    Attributes:
        strategy: Strategy to execute
        max_retries: Retry budget suggested for RETRY
        retry_delay_ms: Base retry delay suggested for RETRY
        fallback_action: Callable run for FALLBACK
        refresh_target: Name of the resource refreshed for REFRESH
        redirect_url: Destination signalled for REDIRECT
        custom_action: Callable run for MANUAL
    """

    strategy: RecoveryStrategy = RecoveryStrategy.NONE
    max_retries: int | None = None
    retry_delay_ms: float | None = None
    fallback_action: RecoveryAction | None = None
    refresh_target: str | None = None
    redirect_url: str | None = None
    custom_action: RecoveryAction | None = None


@dataclass
class ErrorContext:
    """Context for a single error handling call.

    Not persisted: it lives for one ``handle_error`` invocation and the
    log and monitoring emissions it triggers.
    """

    operation: str | None = None
    component: str | None = None
    user_id: str | None = None
    session_id: str | None = None
    route: str | None = None
    url: str | None = None
    timestamp: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )
    additional_data: dict[str, Any] = field(default_factory=dict)

    def with_data(self, **data: Any) -> "ErrorContext":
        """Return a copy with extra ``additional_data`` entries."""
        merged = {**self.additional_data, **data}
        return ErrorContext(
            operation=self.operation,
            component=self.component,
            user_id=self.user_id,
            session_id=self.session_id,
            route=self.route,
            url=self.url,
            timestamp=self.timestamp,
            additional_data=merged,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "operation": self.operation,
            "component": self.component,
            "user_id": self.user_id,
            "session_id": self.session_id,
            "route": self.route,
            "url": self.url,
            "timestamp": self.timestamp,
            "additional_data": self.additional_data,
        }


class FeedbackType(str, Enum):
    """How the UI should present an error."""

    TOAST = "TOAST"  # Brief notification
    MODAL = "MODAL"  # Blocking dialog
    INLINE = "INLINE"  # Contextual message
    BANNER = "BANNER"  # Page-level alert
    SILENT = "SILENT"  # No UI feedback


@dataclass(frozen=True)
class FeedbackAction:
    """An action the UI may offer next to an error message."""

    label: str
    kind: str  # "retry", "reload" or "acknowledge"
    variant: str = "secondary"


@dataclass(frozen=True)
class FeedbackConfig:
    """Presentation hint derived from an error's severity."""

    type: FeedbackType
    message: str
    title: str | None = None
    dismissible: bool = True
    duration_ms: int | None = None
    requires_acknowledgement: bool = False
    actions: tuple[FeedbackAction, ...] = ()
