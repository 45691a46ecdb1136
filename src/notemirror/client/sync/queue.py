"""Change queue for pending sync events.

The queue is a plain FIFO: insertion order is sync order. The watcher
thread appends while the orchestrator pops, so every operation runs under
a lock. Nothing is persisted; events queued at shutdown are re-detected by
the watcher's start-up enumeration.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator

    from notemirror.client.sync.types import SyncEvent

logger = logging.getLogger(__name__)


class ChangeQueue:
    """Thread-safe FIFO of SyncEvent objects."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._events: deque[SyncEvent] = deque()

    def enqueue(self, event: SyncEvent) -> None:
        """Append an event at the tail."""
        with self._lock:
            self._events.append(event)
            size = len(self._events)
        logger.debug("Queued event: %s (queue size: %d)", event, size)

    def dequeue(self) -> SyncEvent | None:
        """Remove and return the head event, or None if the queue is empty."""
        with self._lock:
            if not self._events:
                return None
            return self._events.popleft()

    def peek(self) -> SyncEvent | None:
        """Look at the head event without removing it."""
        with self._lock:
            return self._events[0] if self._events else None

    def length(self) -> int:
        """Current number of pending events."""
        with self._lock:
            return len(self._events)

    def __len__(self) -> int:
        return self.length()

    def __bool__(self) -> bool:
        return self.length() > 0

    def __iter__(self) -> Iterator[SyncEvent]:
        """Iterate over a snapshot of pending events, head first."""
        with self._lock:
            return iter(list(self._events))
