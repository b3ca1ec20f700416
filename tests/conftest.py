"""Shared pytest fixtures for suggest-harvest tests."""

import pytest

from suggest_harvest.config import HarvestConfig, SchedulerConfig
from suggest_harvest.providers import ProviderRegistry


def _stub_fetcher(behaviour):
    """Wrap a list, callable or exception as a provider fetch function."""

    async def fetch(query, locale, cursor_position):
        if isinstance(behaviour, Exception):
            raise behaviour
        if callable(behaviour):
            return behaviour(query)
        return list(behaviour)

    return fetch


@pytest.fixture
def stub_registry():
    """Factory for a ProviderRegistry whose providers are in-memory stubs.

    Usage: ``stub_registry(google=["a", "b"], bing=lambda q: [q + "x"])``.
    """

    def _make(**providers):
        registry = ProviderRegistry(specs=[])
        for provider_id, behaviour in providers.items():
            registry.register(provider_id, _stub_fetcher(behaviour))
        return registry

    return _make


@pytest.fixture
def fast_config(tmp_path):
    """Config with no pacing delay and a short settle window."""
    return HarvestConfig(
        db_path=tmp_path / "test_harvest.db",
        scheduler=SchedulerConfig(batch_size=3, pacing_seconds=0.0, settle_seconds=0.05),
    )
