"""Tests for settings loading and validation."""

import pytest

from ops_resilience.config import (
    ConfigFileError,
    ConfigValidationError,
    Environment,
    ResilienceSettings,
)


def test_defaults():
    settings = ResilienceSettings(_env_file=None)

    assert settings.base_url == "http://localhost:8000"
    assert settings.timeout_ms == 30_000
    assert settings.max_retries == 3
    assert settings.cache_ttl_ms == 300_000
    assert settings.rate_limit_requests_per_window == 100
    assert settings.rate_limit_window_ms == 60_000
    assert not settings.circuit_breaker_enabled
    assert settings.locale == "fr"
    assert settings.environment == Environment.DEVELOPMENT


def test_environment_overrides_defaults(monkeypatch):
    monkeypatch.setenv("OPS_RESILIENCE_MAX_RETRIES", "5")
    monkeypatch.setenv("OPS_RESILIENCE_LOG_LEVEL", "debug")
    monkeypatch.setenv("OPS_RESILIENCE_ENVIRONMENT", "production")

    settings = ResilienceSettings(_env_file=None)

    assert settings.max_retries == 5
    assert settings.log_level == "DEBUG"
    assert settings.environment == Environment.PRODUCTION


def test_dotenv_file_is_read(tmp_path):
    (tmp_path / ".env").write_text("OPS_RESILIENCE_TIMEOUT_MS=1500\n")

    assert ResilienceSettings().timeout_ms == 1500


def test_trailing_slash_is_stripped():
    assert ResilienceSettings(_env_file=None, base_url="https://api.test/v1/").base_url == (
        "https://api.test/v1"
    )


@pytest.mark.parametrize(
    "overrides",
    [
        {"base_url": "ftp://api.test"},
        {"max_retries": 0},
        {"log_level": "LOUD"},
        {"schema_version": "2.0.0"},
        {"locale": "de"},
        {"monitoring_endpoint": "not-a-url"},
    ],
)
def test_invalid_values_are_rejected(overrides):
    with pytest.raises(ValueError):
        ResilienceSettings(_env_file=None, **overrides)


def test_empty_sink_url_means_disabled():
    assert ResilienceSettings(_env_file=None, notification_webhook="").notification_webhook is None


def test_from_yaml(tmp_path, monkeypatch):
    monkeypatch.setenv("OPS_RESILIENCE_TIMEOUT_MS", "2000")
    config_file = tmp_path / "resilience.yaml"
    config_file.write_text(
        "base_url: https://api.example.com/\n"
        "max_retries: 4\n"
        "timeout_ms: 9000\n"
        "default_headers:\n"
        "  X-Client: dashboard\n"
    )

    settings = ResilienceSettings.from_yaml(config_file)

    assert settings.base_url == "https://api.example.com"
    assert settings.max_retries == 4
    assert settings.timeout_ms == 9000
    assert settings.default_headers == {"X-Client": "dashboard"}


def test_from_yaml_empty_file_uses_defaults(tmp_path):
    config_file = tmp_path / "empty.yaml"
    config_file.write_text("")

    assert ResilienceSettings.from_yaml(config_file).max_retries == 3


def test_from_yaml_reports_validation_errors(tmp_path):
    config_file = tmp_path / "bad.yaml"
    config_file.write_text("max_retries: 0\nunknown_key: 1\n")

    with pytest.raises(ConfigValidationError) as exc_info:
        ResilienceSettings.from_yaml(config_file)

    error = exc_info.value
    assert error.config_file == str(config_file)
    assert error.get_summary() == "2 validation errors found"
    report = error.format_errors()
    assert "max_retries" in report
    assert "unknown_key" in report


@pytest.mark.parametrize(
    "content, message",
    [
        ("- a\n- b\n", "mapping"),
        ("key: [unclosed\n", "Invalid YAML"),
    ],
)
def test_from_yaml_rejects_bad_files(tmp_path, content, message):
    config_file = tmp_path / "bad.yaml"
    config_file.write_text(content)

    with pytest.raises(ConfigFileError, match=message):
        ResilienceSettings.from_yaml(config_file)


def test_from_yaml_missing_file(tmp_path):
    with pytest.raises(ConfigFileError):
        ResilienceSettings.from_yaml(tmp_path / "missing.yaml")


def test_checksum_detects_drift():
    settings = ResilienceSettings(_env_file=None)
    checksum = settings.calculate_checksum()

    assert ResilienceSettings(_env_file=None, validation_checksum=checksum).validate_checksum()
    assert not ResilienceSettings(
        _env_file=None, max_retries=9, validation_checksum=checksum
    ).validate_checksum()


def test_checksum_ignores_the_pinned_value():
    settings = ResilienceSettings(_env_file=None)
    pinned = ResilienceSettings(_env_file=None, validation_checksum="abc")

    assert pinned.calculate_checksum() == settings.calculate_checksum()
    assert not pinned.validate_checksum()
    assert settings.validate_checksum()
