# ops_resilience/errors/feedback.py

"""Presentation hints derived from error severity."""

from .messages import DEFAULT_LOCALE, feedback_label
from .standard_error import StandardError
from .types import ErrorSeverity, FeedbackAction, FeedbackConfig, FeedbackType


def get_feedback_config(
    error: StandardError, locale: str = DEFAULT_LOCALE
) -> FeedbackConfig:
    """Derive the UI feedback for an error from its severity alone.

    LOW is transient, MEDIUM is dismissible with a retry affordance, HIGH
    persists until acknowledged and CRITICAL blocks with only a reload.
    """
    if error.severity == ErrorSeverity.CRITICAL:
        return FeedbackConfig(
            type=FeedbackType.MODAL,
            message=error.user_message,
            title=feedback_label("critical_title", locale),
            dismissible=False,
            requires_acknowledgement=True,
            actions=(
                FeedbackAction(feedback_label("reload", locale), "reload", "primary"),
            ),
        )

    if error.severity == ErrorSeverity.HIGH:
        return FeedbackConfig(
            type=FeedbackType.BANNER,
            message=error.user_message,
            title=feedback_label("high_title", locale),
            dismissible=True,
            duration_ms=0,  # no auto-dismiss
            requires_acknowledgement=True,
            actions=(
                FeedbackAction(feedback_label("retry", locale), "retry"),
                FeedbackAction(feedback_label("acknowledge", locale), "acknowledge"),
            ),
        )

    if error.severity == ErrorSeverity.MEDIUM:
        return FeedbackConfig(
            type=FeedbackType.TOAST,
            message=error.user_message,
            dismissible=True,
            duration_ms=5000,
            actions=(FeedbackAction(feedback_label("retry", locale), "retry"),),
        )

    return FeedbackConfig(
        type=FeedbackType.TOAST,
        message=error.user_message,
        dismissible=True,
        duration_ms=3000,
    )
