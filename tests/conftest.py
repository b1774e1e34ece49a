"""Shared fixtures for spritefs tests."""

from __future__ import annotations

import pytest

from spritefs.config import get_settings
from spritefs.provider import SpriteFileSystemProvider
from spritefs.runtime import reset_runtime
from tests.fakes import FakeRegistry, FakeSession


@pytest.fixture(autouse=True)
def _isolate_settings(monkeypatch, tmp_path):
    """Keep user config files and env out of tests."""
    for var in ("SPRITES_TOKEN", "SPRITES_ENDPOINT"):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("SPRITEFS_CONFIG_FILE", str(tmp_path / "missing.yaml"))
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.chdir(tmp_path)
    get_settings.cache_clear()
    reset_runtime()
    yield
    get_settings.cache_clear()
    reset_runtime()


@pytest.fixture
def session() -> FakeSession:
    return FakeSession("dev-box")


@pytest.fixture
def registry(session: FakeSession) -> FakeRegistry:
    return FakeRegistry({"dev-box": session})


@pytest.fixture
def provider(registry: FakeRegistry) -> SpriteFileSystemProvider:
    provider = SpriteFileSystemProvider(retries=2, retry_delay=0, ready_timeout=0.2)
    provider.install_registry(registry)
    return provider


@pytest.fixture
def changes(provider: SpriteFileSystemProvider) -> list:
    """Change batches fired by the provider fixture."""
    batches: list = []
    provider.on_did_change_file(batches.append)
    return batches
