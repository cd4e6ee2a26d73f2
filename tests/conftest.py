"""Shared fixtures for termsight tests."""

from __future__ import annotations

import random

import pytest

from termsight.config import ContextConfig
from termsight.context.engine import ContextEngine
from termsight.gateway.gateway import LLMGateway
from termsight.gateway.retry import RetryCoordinator
from termsight.hooks.events import HookRegistry
from termsight.models import ProviderConfiguration
from tests.fakes.fake_clock import RecordingSleep
from tests.fakes.fake_provider import FakeProvider


@pytest.fixture
def context_config() -> ContextConfig:
    """Fixed-mode context settings (2000-token policy, 100-line buffer)."""
    return ContextConfig(
        buffer_capacity=100,
        max_lines=100,
        min_lines=10,
        cache_enabled=True,
        cache_ttl_seconds=300.0,
        chars_per_token=4.0,
        sizing_mode="fixed",
        fixed_size=2000,
        percentage=0.5,
        min_tokens=100,
        max_tokens=128_000,
        default_model_max_context=4096,
    )


@pytest.fixture
def hooks() -> HookRegistry:
    return HookRegistry()


@pytest.fixture
def engine(context_config: ContextConfig, hooks: HookRegistry) -> ContextEngine:
    return ContextEngine(context_config, hooks=hooks)


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def retry(recording_sleep: RecordingSleep) -> RetryCoordinator:
    """Retry coordinator that never actually sleeps and has seeded jitter."""
    return RetryCoordinator(sleep=recording_sleep, rng=random.Random(42))


@pytest.fixture
def fake_provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def gateway(engine: ContextEngine, hooks: HookRegistry, retry: RetryCoordinator, fake_provider: FakeProvider) -> LLMGateway:
    """Gateway with the fake provider registered, configured and active."""
    gw = LLMGateway(engine, hooks=hooks, retry=retry)
    gw.register_provider(fake_provider)
    gw.configure_provider(ProviderConfiguration(provider_id="fake", model="fake-model"))
    gw.set_active_provider("fake")
    return gw
