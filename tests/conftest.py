"""Shared fixtures: an in-memory remote and a sync stack wired to it."""

from __future__ import annotations

import logging
from collections.abc import Iterator

import pytest

from notemirror.client.context import SyncContext
from notemirror.client.sync.orchestrator import SyncOrchestrator, create_orchestrator
from notemirror.core.config import ApiConfig, Config, RepositoryConfig, SyncConfig
from tests.fakes import FakeGitRemote


def make_config(**sync_options: object) -> Config:
    """Create a Config pointing at the fake remote."""
    return Config(
        repository=RepositoryConfig(name="notes"),
        api=ApiConfig(url="http://test", access_token="token123"),
        sync=SyncConfig(delay=0, **sync_options),  # type: ignore[arg-type]
    )


@pytest.fixture(autouse=True)
def reset_logging() -> Iterator[None]:
    """Undo CLI logging setup so caplog keeps seeing notemirror records."""
    yield
    app_logger = logging.getLogger("notemirror")
    for handler in app_logger.handlers[:]:
        app_logger.removeHandler(handler)
    app_logger.setLevel(logging.NOTSET)
    app_logger.propagate = True


@pytest.fixture
def remote() -> FakeGitRemote:
    """An empty repository."""
    return FakeGitRemote()


@pytest.fixture
def config() -> Config:
    return make_config()


@pytest.fixture
def context(config: Config, remote: FakeGitRemote) -> Iterator[SyncContext]:
    """A SyncContext whose client talks to the fake remote."""
    ctx = SyncContext.create(config, transport=remote.transport())
    yield ctx
    ctx.close()


@pytest.fixture
def orchestrator(context: SyncContext) -> Iterator[SyncOrchestrator]:
    orch = create_orchestrator(context, hostname="test-host")
    yield orch
    orch.stop()
