# ops_resilience/config/__init__.py

"""
Configuration management using pydantic-settings.
"""

from .base import BaseConfig, Environment
from .errors import ConfigError, ConfigFileError, ConfigValidationError
from .loader import build_config, load_config, load_yaml_file
from .settings import ResilienceSettings

__all__ = [
    "BaseConfig",
    "ConfigError",
    "ConfigFileError",
    "ConfigValidationError",
    "Environment",
    "ResilienceSettings",
    "build_config",
    "load_config",
    "load_yaml_file",
]
