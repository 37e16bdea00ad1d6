"""
Shared test configuration and fixtures.
"""

from __future__ import annotations

import pytest

from iamb_matrix import AccountConfig, ClientConfig
from tests.helpers import FakeTransport, SleepRecorder


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def password_account() -> AccountConfig:
    return AccountConfig(url="https://example.com", username="u", password="p")


@pytest.fixture
def token_account() -> AccountConfig:
    return AccountConfig(url="https://example.com", username="u", token="bad-token")


@pytest.fixture
def fast_config() -> ClientConfig:
    """No pause between syncs."""
    return ClientConfig(sync_interval=0)


@pytest.fixture
def sleeps(monkeypatch: pytest.MonkeyPatch) -> SleepRecorder:
    """Record the engine's pauses instead of waiting them out."""
    recorder = SleepRecorder()
    monkeypatch.setattr("iamb_matrix.sync.engine.asyncio.sleep", recorder)
    return recorder
