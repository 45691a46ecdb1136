"""Single-flight gate guarding the publish cycle."""

from __future__ import annotations

import threading


class PublishGate:
    """Non-blocking test-and-set flag.

    At most one holder at a time. ``acquire`` never waits: a caller that
    loses the race simply does not start a redundant cycle.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()

    def acquire(self) -> bool:
        """Take the gate if it is free.

        Returns:
            True if the caller now holds the gate.
        """
        return self._lock.acquire(blocking=False)

    def release(self) -> None:
        """Free the gate. Releasing a free gate is a no-op."""
        if self._lock.locked():
            self._lock.release()

    @property
    def held(self) -> bool:
        """Whether a cycle currently holds the gate."""
        return self._lock.locked()
