"""Process-wide dependency context.

A SyncContext is built once at start-up and handed to every component that
needs shared state; nothing looks these objects up globally.
"""

from __future__ import annotations

from dataclasses import dataclass, field

import httpx

from notemirror.client.api import GitHubClient
from notemirror.client.sync.gate import PublishGate
from notemirror.client.sync.queue import ChangeQueue
from notemirror.core.config import Config


@dataclass
class SyncContext:
    """Shared collaborators of the sync engine.

    Attributes:
        config: Validated configuration.
        client: Repository client.
        queue: Change queue fed by the watcher.
        gate: Publish gate held by the running cycle.
    """

    config: Config
    client: GitHubClient
    queue: ChangeQueue = field(default_factory=ChangeQueue)
    gate: PublishGate = field(default_factory=PublishGate)

    @classmethod
    def create(
        cls, config: Config, transport: httpx.BaseTransport | None = None
    ) -> SyncContext:
        """Validate the configuration and build the context.

        Raises:
            NoteMirrorError: CONFIGURATION kind on a missing option.
        """
        config.validate()
        client = GitHubClient(config.api, config.repository, config.commit, transport=transport)
        return cls(config=config, client=client)

    def close(self) -> None:
        """Release network resources."""
        self.client.close()
