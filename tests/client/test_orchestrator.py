"""Tests for the sync orchestrator loop, with the note publisher mocked."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from unittest.mock import MagicMock

import pytest

from notemirror.client.context import SyncContext
from notemirror.client.sync.orchestrator import SyncOrchestrator
from notemirror.client.sync.types import MarkdownNote, SyncEvent
from notemirror.core.config import Config
from notemirror.core.errors import ErrorKind, NoteMirrorError
from notemirror.core.types import NoteKind, OrchestratorState, SyncEventKind


class ManualTimer:
    """Stand-in for threading.Timer that fires only when told to."""

    def __init__(self, interval: float, function: Callable[[], None]) -> None:
        self.interval = interval
        self.function = function
        self.daemon = False
        self.started = False
        self.cancelled = False

    def start(self) -> None:
        self.started = True

    def cancel(self) -> None:
        self.cancelled = True

    def fire(self) -> None:
        self.function()


def wait_until(condition: Callable[[], bool], timeout: float = 2.0) -> None:
    deadline = time.monotonic() + timeout
    while not condition():
        if time.monotonic() > deadline:
            raise AssertionError("condition not met in time")
        time.sleep(0.01)


def wait_for_timer(timers: list[ManualTimer], count: int) -> None:
    """Wait until the cycle thread has started its count-th cooldown."""
    wait_until(lambda: len(timers) == count and timers[-1].started)


def make_event(name: str = "hello") -> SyncEvent:
    return SyncEvent.create_or_update(
        f"/notes/{name}.json", NoteKind.MARKDOWN_NOTE, MarkdownNote(name, "body")
    )


@pytest.fixture
def notes() -> MagicMock:
    return MagicMock()


@pytest.fixture
def timers() -> list[ManualTimer]:
    return []


@pytest.fixture
def make_orchestrator(
    notes: MagicMock, timers: list[ManualTimer]
) -> Callable[..., SyncOrchestrator]:
    def factory(**sync_options: object) -> SyncOrchestrator:
        config = Config()
        for key, value in sync_options.items():
            setattr(config.sync, key, value)
        context = SyncContext(config=config, client=MagicMock())

        def timer_factory(interval: float, function: Callable[[], None]) -> ManualTimer:
            timer = ManualTimer(interval, function)
            timers.append(timer)
            return timer

        return SyncOrchestrator(context, notes, timer_factory=timer_factory)  # type: ignore[arg-type]

    return factory


def queued(orchestrator: SyncOrchestrator) -> list[SyncEvent]:
    return list(orchestrator._queue)


class TestDrain:
    """Tests for a single drain cycle."""

    def test_events_published_in_order(
        self, make_orchestrator: Callable[..., SyncOrchestrator], notes: MagicMock
    ) -> None:
        orchestrator = make_orchestrator()
        events = [make_event(name) for name in ("a", "b", "c")]
        for event in events:
            orchestrator._queue.enqueue(event)

        handled = orchestrator.run_once()

        assert handled == 3
        assert [c.args[0] for c in notes.publish.call_args_list] == events
        assert queued(orchestrator) == []
        assert orchestrator.state is OrchestratorState.IDLE

    def test_delete_dispatch(
        self, make_orchestrator: Callable[..., SyncOrchestrator], notes: MagicMock
    ) -> None:
        orchestrator = make_orchestrator()
        event = SyncEvent.delete("/notes/a.json")
        orchestrator._queue.enqueue(event)

        orchestrator.run_once()

        notes.delete.assert_called_once_with(event)
        notes.publish.assert_not_called()

    def test_unrecognised_event_is_discarded(
        self, make_orchestrator: Callable[..., SyncOrchestrator], notes: MagicMock
    ) -> None:
        orchestrator = make_orchestrator()
        orchestrator._queue.enqueue(
            SyncEvent(kind=SyncEventKind.CREATE_OR_UPDATE, source_path="/notes/x")
        )

        assert orchestrator.run_once() == 1
        notes.publish.assert_not_called()
        assert queued(orchestrator) == []

    def test_failed_event_goes_to_tail(
        self, make_orchestrator: Callable[..., SyncOrchestrator], notes: MagicMock
    ) -> None:
        """A failure re-queues the event and the cycle moves on."""
        orchestrator = make_orchestrator()
        first, second = make_event("a"), make_event("b")
        notes.publish.side_effect = [
            NoteMirrorError(ErrorKind.REMOTE_INTERNAL, "Failed to create blob", 500),
            "c2",
        ]
        orchestrator._queue.enqueue(first)
        orchestrator._queue.enqueue(second)

        handled = orchestrator.run_once()

        assert handled == 1
        assert queued(orchestrator) == [first]
        assert notes.publish.call_count == 2

    def test_cycle_stops_at_already_failed_event(
        self, make_orchestrator: Callable[..., SyncOrchestrator], notes: MagicMock
    ) -> None:
        """An event is attempted at most once per cycle."""
        orchestrator = make_orchestrator()
        notes.publish.side_effect = NoteMirrorError(ErrorKind.NOT_FOUND, "Not Found", 404)
        event = make_event()
        orchestrator._queue.enqueue(event)

        assert orchestrator.run_once() == 0
        assert notes.publish.call_count == 1
        assert queued(orchestrator) == [event]

        notes.publish.side_effect = None
        assert orchestrator.run_once() == 1
        assert queued(orchestrator) == []

    def test_authorization_failure_is_logged_and_requeued(
        self,
        make_orchestrator: Callable[..., SyncOrchestrator],
        notes: MagicMock,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        orchestrator = make_orchestrator()
        notes.publish.side_effect = NoteMirrorError(
            ErrorKind.AUTHORIZATION, "Bad credentials", 401
        )
        orchestrator._queue.enqueue(make_event())

        with caplog.at_level(logging.ERROR, logger="notemirror"):
            orchestrator.run_once()

        assert len(orchestrator._queue) == 1
        assert any("Authorization failed" in r.message for r in caplog.records)

    @pytest.mark.parametrize(
        "kind",
        [ErrorKind.REPOSITORY_EMPTY, ErrorKind.NOT_FOUND, ErrorKind.REMOTE_INTERNAL],
    )
    def test_retryable_failures_are_requeued(
        self,
        make_orchestrator: Callable[..., SyncOrchestrator],
        notes: MagicMock,
        kind: ErrorKind,
    ) -> None:
        orchestrator = make_orchestrator()
        notes.publish.side_effect = NoteMirrorError(kind, "try again")
        event = make_event()
        orchestrator._queue.enqueue(event)

        assert orchestrator.run_once() == 0
        assert queued(orchestrator) == [event]

    def test_preprocessing_failure_is_dropped(
        self, make_orchestrator: Callable[..., SyncOrchestrator], notes: MagicMock
    ) -> None:
        orchestrator = make_orchestrator()
        notes.publish.side_effect = NoteMirrorError(ErrorKind.PREPROCESSING, "bad note")
        orchestrator._queue.enqueue(make_event())

        assert orchestrator.run_once() == 1
        assert queued(orchestrator) == []
        assert orchestrator.dead_letters == []

    def test_configuration_failure_propagates(
        self, make_orchestrator: Callable[..., SyncOrchestrator], notes: MagicMock
    ) -> None:
        orchestrator = make_orchestrator()
        notes.publish.side_effect = NoteMirrorError(ErrorKind.CONFIGURATION, "missing token")
        orchestrator._queue.enqueue(make_event())

        with pytest.raises(NoteMirrorError):
            orchestrator.run_once()

        assert not orchestrator._gate.held

    def test_unexpected_exception_is_requeued(
        self, make_orchestrator: Callable[..., SyncOrchestrator], notes: MagicMock
    ) -> None:
        orchestrator = make_orchestrator()
        notes.publish.side_effect = RuntimeError("boom")
        event = make_event()
        orchestrator._queue.enqueue(event)

        assert orchestrator.run_once() == 0
        assert queued(orchestrator) == [event]

    def test_dead_letter_after_max_attempts(
        self, make_orchestrator: Callable[..., SyncOrchestrator], notes: MagicMock
    ) -> None:
        orchestrator = make_orchestrator(max_attempts=2)
        notes.publish.side_effect = NoteMirrorError(ErrorKind.REMOTE_INTERNAL, "boom", 500)
        event = make_event()
        orchestrator._queue.enqueue(event)

        orchestrator.run_once()
        assert queued(orchestrator) == [event]

        orchestrator.run_once()
        assert queued(orchestrator) == []
        assert orchestrator.dead_letters == [event]

    def test_run_once_refused_while_gate_held(
        self, make_orchestrator: Callable[..., SyncOrchestrator], notes: MagicMock
    ) -> None:
        orchestrator = make_orchestrator()
        orchestrator._queue.enqueue(make_event())
        orchestrator._gate.acquire()

        assert orchestrator.run_once() == 0
        notes.publish.assert_not_called()


class TestTrigger:
    """Tests for the background cycle and its cooldown."""

    def test_enqueue_starts_cycle_and_cooldown(
        self,
        make_orchestrator: Callable[..., SyncOrchestrator],
        notes: MagicMock,
        timers: list[ManualTimer],
    ) -> None:
        orchestrator = make_orchestrator(delay=2500)

        orchestrator.enqueue(make_event())
        wait_for_timer(timers, 1)

        notes.publish.assert_called_once()
        assert orchestrator.state is OrchestratorState.COOLDOWN
        assert orchestrator._gate.held
        assert timers[0].interval == 2.5
        assert timers[0].started

    def test_events_during_cooldown_wait_for_release(
        self,
        make_orchestrator: Callable[..., SyncOrchestrator],
        notes: MagicMock,
        timers: list[ManualTimer],
    ) -> None:
        orchestrator = make_orchestrator()
        orchestrator.enqueue(make_event("a"))
        wait_for_timer(timers, 1)

        orchestrator.enqueue(make_event("b"))
        assert notes.publish.call_count == 1
        assert len(orchestrator._queue) == 1

        timers[0].fire()
        wait_for_timer(timers, 2)

        assert notes.publish.call_count == 2
        assert len(orchestrator._queue) == 0

    def test_cooldown_end_with_empty_queue_goes_idle(
        self,
        make_orchestrator: Callable[..., SyncOrchestrator],
        timers: list[ManualTimer],
    ) -> None:
        orchestrator = make_orchestrator()
        orchestrator.enqueue(make_event())
        wait_for_timer(timers, 1)

        timers[0].fire()

        assert orchestrator.state is OrchestratorState.IDLE
        assert not orchestrator._gate.held
        assert len(timers) == 1

    def test_disabled_sync_never_triggers(
        self, make_orchestrator: Callable[..., SyncOrchestrator], notes: MagicMock
    ) -> None:
        orchestrator = make_orchestrator(enabled=False)
        orchestrator.enqueue(make_event())

        assert orchestrator.trigger() is False
        assert len(orchestrator._queue) == 1
        notes.publish.assert_not_called()

    def test_empty_queue_does_not_trigger(
        self, make_orchestrator: Callable[..., SyncOrchestrator]
    ) -> None:
        orchestrator = make_orchestrator()
        assert orchestrator.trigger() is False
        assert not orchestrator._gate.held

    def test_stop_cancels_cooldown(
        self,
        make_orchestrator: Callable[..., SyncOrchestrator],
        timers: list[ManualTimer],
    ) -> None:
        orchestrator = make_orchestrator()
        orchestrator.enqueue(make_event())
        wait_for_timer(timers, 1)

        orchestrator.stop()

        assert timers[0].cancelled
        assert orchestrator.trigger() is False
