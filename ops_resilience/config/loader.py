# ops_resilience/config/loader.py

"""
YAML loading for settings files.
"""

from pathlib import Path
from typing import Any, TypeVar

from pydantic import ValidationError
import yaml

from .base import BaseConfig
from .errors import ConfigFileError, ConfigValidationError

T = TypeVar("T", bound=BaseConfig)


def load_yaml_file(path: str | Path) -> dict[str, Any]:
    """Load a YAML file whose top level is a mapping.

    Raises:
        ConfigFileError: The file is missing, unreadable, malformed or not
            a mapping
    """
    config_path = Path(path)
    try:
        with open(config_path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigFileError(
            f"Invalid YAML configuration: {e}", str(config_path), e
        ) from e
    except OSError as e:
        raise ConfigFileError(
            f"Failed to read configuration file: {e}", str(config_path), e
        ) from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigFileError(
            f"Top-level YAML structure must be a mapping (dict), "
            f"got {type(data).__name__}",
            str(config_path),
        )
    return data


def build_config(
    config_class: type[T], values: dict[str, Any], config_file: str | None = None
) -> T:
    """Instantiate a settings class, wrapping pydantic validation errors.

    Explicit ``values`` take precedence over environment variables and the
    ``.env`` file.
    """
    try:
        return config_class(**values)
    except ValidationError as e:
        raise ConfigValidationError(
            f"Invalid {config_class.__name__}: {e.error_count()} error(s)",
            e.errors(),
            config_file,
        ) from e


def load_config(config_class: type[T], config_file: str | Path | None = None) -> T:
    """Load settings from an optional YAML file plus the environment."""
    if config_file is None:
        return build_config(config_class, {})
    values = load_yaml_file(config_file)
    return build_config(config_class, values, str(config_file))
