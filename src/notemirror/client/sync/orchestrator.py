"""Sync orchestrator driving the publish loop.

This module provides:
- SyncOrchestrator: drains the change queue under the publish gate
- create_orchestrator: wires the publish stack from a SyncContext

State machine:
    IDLE --(gate acquired, queue non-empty)--> DRAINING
    DRAINING --(queue drained)--> COOLDOWN
    COOLDOWN --(delay elapsed, gate released)--> IDLE, re-triggered at once
        if events arrived meanwhile

The orchestrator is the single recovery boundary: failures raised by the
publish stack are classified here and answered with a re-queue, a drop, or
a dead-letter.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import TYPE_CHECKING

from notemirror.client.sync.metadata import MetadataIndexManager
from notemirror.client.sync.notes import NotePublisher
from notemirror.client.sync.publisher import RepositoryPublisher
from notemirror.core.errors import ErrorKind, NoteMirrorError
from notemirror.core.types import NoteKind, OrchestratorState, SyncEventKind

if TYPE_CHECKING:
    from notemirror.client.context import SyncContext
    from notemirror.client.sync.types import SyncEvent

logger = logging.getLogger(__name__)

TimerFactory = Callable[[float, Callable[[], None]], threading.Timer]


class SyncOrchestrator:
    """Single-flight publish loop with cooldown and re-queue on failure.

    Usage:
        orchestrator = create_orchestrator(context)
        orchestrator.enqueue(event)   # triggers a cycle in the background
        ...
        orchestrator.stop()
    """

    def __init__(
        self,
        context: SyncContext,
        notes: NotePublisher,
        timer_factory: TimerFactory = threading.Timer,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            context: Shared queue, gate and configuration.
            notes: Note publisher performing the remote work.
            timer_factory: Builds the cooldown timer (injected by tests).
        """
        self._queue = context.queue
        self._gate = context.gate
        self._sync_config = context.config.sync
        self._notes = notes
        self._timer_factory = timer_factory

        self._state = OrchestratorState.IDLE
        self._attempts: dict[str, int] = {}
        self._timer: threading.Timer | None = None
        self._stopped = False
        self.dead_letters: list[SyncEvent] = []

    @property
    def state(self) -> OrchestratorState:
        return self._state

    def enqueue(self, event: SyncEvent) -> None:
        """Accept an event from the watcher and kick the loop."""
        self._queue.enqueue(event)
        logger.info(
            "[event=%s file=%s type=%s] %d items in sync queue",
            event.kind.name,
            event.source_path,
            event.note_kind.name if event.note_kind else "-",
            len(self._queue),
        )
        self.trigger()

    def trigger(self) -> bool:
        """Start a background drain cycle if none is running.

        Returns:
            True if this call started a cycle.
        """
        if self._stopped:
            return False
        if not self._sync_config.enabled:
            logger.debug("Sync is disabled by configuration")
            return False
        if not self._queue:
            return False
        if not self._gate.acquire():
            # The running cycle re-checks the queue before letting go
            return False

        thread = threading.Thread(
            target=self._run_cycle, name="SyncOrchestrator", daemon=True
        )
        thread.start()
        return True

    def run_once(self) -> int:
        """Run one drain cycle in the calling thread, without cooldown.

        Returns:
            Number of events handled (published or discarded).
        """
        if not self._gate.acquire():
            logger.info("A publish cycle is already running")
            return 0
        try:
            return self.drain()
        finally:
            self._state = OrchestratorState.IDLE
            self._gate.release()

    def stop(self) -> None:
        """Cancel a pending cooldown and refuse new cycles."""
        self._stopped = True
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _run_cycle(self) -> None:
        try:
            self.drain()
        finally:
            self._start_cooldown()

    def _start_cooldown(self) -> None:
        self._state = OrchestratorState.COOLDOWN
        delay = self._sync_config.delay_seconds
        logger.debug("Cooling down for %.1fs", delay)
        self._timer = self._timer_factory(delay, self._finish_cooldown)
        self._timer.daemon = True
        self._timer.start()

    def _finish_cooldown(self) -> None:
        self._timer = None
        self._state = OrchestratorState.IDLE
        self._gate.release()
        if self._queue:
            self.trigger()

    def drain(self) -> int:
        """Process queued events one at a time until the queue is drained.

        Events that fail go back to the tail. The cycle stops when the head of
        the queue is an event that already failed during this cycle; it will
        be retried by the next cycle.

        Returns:
            Number of events handled (published or discarded).
        """
        self._state = OrchestratorState.DRAINING
        logger.info("Publish cycle started, %d items in sync queue", len(self._queue))
        failed: set[str] = set()
        handled = 0

        while True:
            head = self._queue.peek()
            if head is None or head.event_id in failed:
                break
            event = self._queue.dequeue()
            if event is None:
                break
            if self._process(event):
                handled += 1
            else:
                failed.add(event.event_id)

        logger.info(
            "Publish cycle finished: %d handled, %d pending", handled, len(self._queue)
        )
        return handled

    def _process(self, event: SyncEvent) -> bool:
        """Publish one event.

        Returns:
            False if the event went back on the queue.
        """
        try:
            self._dispatch(event)
        except NoteMirrorError as e:
            return self._handle_failure(event, e)
        except Exception:
            logger.exception("Unexpected error while publishing %s", event.source_path)
            return self._requeue(event)
        self._attempts.pop(event.event_id, None)
        return True

    def _dispatch(self, event: SyncEvent) -> None:
        if event.kind is SyncEventKind.DELETE:
            self._notes.delete(event)
        elif event.kind is SyncEventKind.CREATE_OR_UPDATE and isinstance(
            event.note_kind, NoteKind
        ):
            self._notes.publish(event)
        else:
            logger.warning("Discarding unrecognised event %r", event)

    def _handle_failure(self, event: SyncEvent, error: NoteMirrorError) -> bool:
        kind = error.kind
        if kind is ErrorKind.CONFIGURATION:
            raise error
        if not error.retryable:
            logger.error("Dropping %s: %s", event.source_path, error.message)
            self._attempts.pop(event.event_id, None)
            return True
        if kind is ErrorKind.AUTHORIZATION:
            logger.error(
                "Authorization failed while publishing %s: %s",
                event.source_path,
                error.message,
            )
        else:
            logger.warning(
                "Failed to publish %s (%s): %s",
                event.source_path,
                kind.value,
                error.message,
            )
        return self._requeue(event)

    def _requeue(self, event: SyncEvent) -> bool:
        attempts = self._attempts.get(event.event_id, 0) + 1
        max_attempts = self._sync_config.max_attempts
        if max_attempts is not None and attempts >= max_attempts:
            self._attempts.pop(event.event_id, None)
            self.dead_letters.append(event)
            logger.error(
                "Giving up on %s after %d attempts", event.source_path, attempts
            )
            return True

        self._attempts[event.event_id] = attempts
        self._queue.enqueue(event)
        logger.warning(
            "Re-queued %s (attempt %d), %d items in sync queue",
            event.source_path,
            attempts,
            len(self._queue),
        )
        return False


def create_orchestrator(
    context: SyncContext,
    timer_factory: TimerFactory = threading.Timer,
    hostname: str | None = None,
) -> SyncOrchestrator:
    """Build the publish stack on top of a context."""
    config = context.config
    publisher = RepositoryPublisher(context.client, hostname=hostname)
    index_manager = MetadataIndexManager(publisher, config.repository.metadata_file)
    notes = NotePublisher(publisher, index_manager, config.repository, config.sync.modes)
    return SyncOrchestrator(context, notes, timer_factory=timer_factory)
