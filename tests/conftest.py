"""Shared fixtures for dupgate tests."""

import pytest

from dupgate.cache import LocalCache, TieredCache
from dupgate.config import Config
from dupgate.gate import DuplicateGate
from dupgate.logger import Logger


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def local_cache(clock):
    return LocalCache(clock=clock)


@pytest.fixture
def gate(local_cache):
    """Gate over a local-only tiered cache with a 2 second TTL."""
    return DuplicateGate(TieredCache(local_cache), ttl_seconds=2, logger=Logger("gate", level="ERROR"))


@pytest.fixture
def clean_env(monkeypatch):
    """Remove every environment variable the config reads."""
    for env_key in list(Config.ENV_MAPPINGS) + ["DUPGATE_CONFIG"]:
        monkeypatch.delenv(env_key, raising=False)
