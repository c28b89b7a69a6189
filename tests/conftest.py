"""Shared fixtures: fake clock, recording sleep and a wired resilience layer."""

from __future__ import annotations

from collections.abc import Callable
import random

import httpx
import pytest

from ops_resilience.config import ResilienceSettings
from ops_resilience.layer import ResilienceLayer


class FakeClock:
    """Manually advanced wall clock, in seconds."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSleep:
    """Async sleep stub that records delays and advances the fake clock."""

    def __init__(self, clock: FakeClock | None = None) -> None:
        self.delays: list[float] = []
        self.clock = clock

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)
        if self.clock is not None:
            self.clock.advance(seconds)


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    """Keep real env vars and .env files out of settings."""
    import os

    for name in list(os.environ):
        if name.upper().startswith("OPS_RESILIENCE_"):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sleep(clock: FakeClock) -> RecordingSleep:
    return RecordingSleep(clock)


@pytest.fixture
def make_settings() -> Callable[..., ResilienceSettings]:
    def factory(**overrides) -> ResilienceSettings:
        values = {"base_url": "http://api.test", "retry_delay_ms": 10}
        values.update(overrides)
        return ResilienceSettings(_env_file=None, **values)

    return factory


@pytest.fixture
def make_layer(clock: FakeClock, sleep: RecordingSleep, make_settings):
    """Build a layer whose client talks to an ``httpx.MockTransport``."""
    layers: list[ResilienceLayer] = []

    def factory(handler, **overrides) -> ResilienceLayer:
        layer = ResilienceLayer.from_settings(
            make_settings(**overrides),
            transport=httpx.MockTransport(handler),
            clock=clock,
            sleep=sleep,
            rng=random.Random(0),
        )
        layers.append(layer)
        return layer

    yield factory
