"""Tests for the command line tools."""

import json

from click.testing import CliRunner
import httpx
import pytest

from ops_resilience import cli as cli_module
from ops_resilience.cli import cli
from ops_resilience.layer import ResilienceLayer


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture(autouse=True)
def quiet_logging(monkeypatch):
    monkeypatch.setattr("ops_resilience.layer.configure_logging", lambda *args, **kwargs: None)


@pytest.fixture
def mock_api(monkeypatch):
    """Route the health command's client to a mock transport."""

    def install(handler):
        original = ResilienceLayer.from_settings

        def from_settings(settings=None, **kwargs):
            kwargs["transport"] = httpx.MockTransport(handler)
            return original(settings, **kwargs)

        monkeypatch.setattr(cli_module.ResilienceLayer, "from_settings", from_settings)

    return install


def write_config(tmp_path, content: str):
    path = tmp_path / "resilience.yaml"
    path.write_text(content)
    return str(path)


def test_validate_reports_success(runner, tmp_path):
    config_file = write_config(tmp_path, "base_url: https://api.test\nenvironment: staging\n")

    result = runner.invoke(cli, ["config", "validate", config_file])

    assert result.exit_code == 0
    assert "✅ Configuration validation successful!" in result.output
    assert "Environment: staging" in result.output
    assert "Base URL: https://api.test" in result.output


def test_validate_reports_errors(runner, tmp_path):
    config_file = write_config(tmp_path, "max_retries: 0\n")

    result = runner.invoke(cli, ["config", "validate", config_file])

    assert result.exit_code == 1
    assert "❌ Configuration validation failed" in result.output
    assert "max_retries" in result.output


def test_validate_reports_malformed_file(runner, tmp_path):
    config_file = write_config(tmp_path, "- not\n- a mapping\n")

    result = runner.invoke(cli, ["config", "validate", config_file])

    assert result.exit_code == 1
    assert "❌ Configuration file error" in result.output


def test_validate_detects_checksum_drift(runner, tmp_path):
    config_file = write_config(tmp_path, "validation_checksum: deadbeef\n")

    result = runner.invoke(cli, ["config", "validate", config_file])

    assert result.exit_code == 0
    assert "possible drift detected" in result.output


def test_show_prints_settings_with_checksum(runner, tmp_path):
    config_file = write_config(tmp_path, "max_retries: 4\n")

    result = runner.invoke(cli, ["config", "show", "-c", config_file])

    assert result.exit_code == 0
    data = json.loads(result.stdout)
    assert data["max_retries"] == 4
    assert len(data["checksum"]) == 64


def test_health_ok(runner, tmp_path, mock_api):
    mock_api(lambda request: httpx.Response(200, json={"status": "ok"}))
    config_file = write_config(tmp_path, "base_url: https://api.test\n")

    result = runner.invoke(cli, ["health", "-c", config_file])

    assert result.exit_code == 0
    assert json.loads(result.stdout)["status"] == "healthy"


def test_health_failure_is_degraded(runner, tmp_path, mock_api):
    mock_api(lambda request: httpx.Response(500, json={}))
    config_file = write_config(tmp_path, "base_url: https://api.test\nauth_required: true\n")

    result = runner.invoke(cli, ["health", "-c", config_file])

    assert result.exit_code == 0
    output = json.loads(result.stdout)
    assert output["status"] == "degraded"
    assert output["checks"] == {"api": False, "auth": False, "cache": True}
