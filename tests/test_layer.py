"""Tests for wiring the layer from settings."""

import httpx

from ops_resilience.layer import ResilienceLayer, error_handler_config


def test_error_handler_config_follows_settings(make_settings):
    settings = make_settings(
        max_retries=5,
        locale="en",
        environment="staging",
        notification_webhook="https://hooks.test/alerts",
    )

    config = error_handler_config(settings)

    assert config.max_retries == 5
    assert config.retry_delay_ms == 10
    assert config.locale == "en"
    assert config.environment == "staging"
    assert config.notification_webhook == "https://hooks.test/alerts"
    assert config.monitoring_endpoint is None


async def test_components_share_the_handler_and_collector(make_layer):
    layer = make_layer(lambda request: httpx.Response(503, json={}), max_retries=2)

    await layer.client.health_check()

    assert layer.metrics.sample_count == 1
    assert layer.error_handler.get_error_stats()["total_errors"] == 1


async def test_context_manager_runs_background_sweep(make_layer):
    layer = make_layer(lambda request: httpx.Response(200, json={}))

    async with layer:
        assert layer.metrics.running
        await layer.client.get("/ping")

    assert not layer.metrics.running


def test_from_settings_loads_environment(monkeypatch):
    monkeypatch.setenv("OPS_RESILIENCE_BASE_URL", "https://env.test/")

    layer = ResilienceLayer.from_settings()

    assert layer.settings.base_url == "https://env.test"
