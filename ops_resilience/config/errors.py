# ops_resilience/config/errors.py

"""
Configuration errors with formatted validation reports.
"""

from typing import Any


class ConfigError(Exception):
    """Base configuration error."""

    def __init__(
        self,
        message: str,
        config_file: str | None = None,
        original_error: Exception | None = None,
    ):
        self.message = message
        self.config_file = config_file
        self.original_error = original_error
        super().__init__(self.message)

    def __str__(self) -> str:
        base_msg = self.message
        if self.config_file:
            base_msg = f"{base_msg} (file: {self.config_file})"
        if self.original_error:
            base_msg = f"{base_msg} - Original error: {self.original_error}"
        return base_msg


class ConfigValidationError(ConfigError):
    """Settings failed validation; carries pydantic's error list."""

    def __init__(
        self,
        message: str,
        errors: list[dict[str, Any]],
        config_file: str | None = None,
    ):
        self.errors = errors
        super().__init__(message, config_file)

    def format_errors(self) -> str:
        """Format validation errors for display."""
        formatted = [
            f"Settings validation failed in {self.config_file or 'environment'}:"
        ]

        for i, error in enumerate(self.errors, 1):
            field = " → ".join(str(loc) for loc in error.get("loc", ())) or "<root>"
            formatted.append(f"  ❌ {i}. {field}: {error.get('msg', 'invalid value')}")

            if "input" in error:
                input_value = error["input"]
                if isinstance(input_value, str) and len(input_value) > 50:
                    input_value = input_value[:47] + "..."
                formatted.append(f"     Input: {input_value}")

        return "\n".join(formatted)

    def get_summary(self) -> str:
        error_count = len(self.errors)
        if error_count == 1:
            return "1 validation error found"
        return f"{error_count} validation errors found"


class ConfigFileError(ConfigError):
    """Configuration file could not be read or parsed."""
