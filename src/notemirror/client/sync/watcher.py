"""File system watcher feeding the change queue.

This module provides:
- NoteChangeHandler: watchdog handler that debounces raw events per path
- NoteWatcher: watches the configured note directories

Raw events are debounced, classified into SyncEvents and handed to a sink
(normally ``SyncOrchestrator.enqueue``). On start every existing file is
classified once, so changes missed while the process was down, or lost with
the in-memory queue, are picked up again.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from watchdog.events import (
    FileCreatedEvent,
    FileDeletedEvent,
    FileModifiedEvent,
    FileMovedEvent,
    FileSystemEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer

from notemirror.client.sync.ignore import IgnorePatterns
from notemirror.client.sync.preprocessor import classify
from notemirror.core.errors import NoteMirrorError

if TYPE_CHECKING:
    from watchdog.observers.api import BaseObserver

    from notemirror.client.sync.types import SyncEvent

logger = logging.getLogger(__name__)

EventSink = Callable[["SyncEvent"], None]
Classifier = Callable[[str, Path], "SyncEvent | None"]


@dataclass
class FileChange:
    """A debounced change of one path."""

    path: Path
    change: str
    timestamp: float = field(default_factory=time.time)


class NoteChangeHandler(FileSystemEventHandler):
    """Collects file events and flushes them after a quiet period."""

    def __init__(
        self,
        base_path: Path,
        sink: EventSink,
        classifier: Classifier = classify,
        settle_s: float = 1.0,
        ignore_patterns: IgnorePatterns | None = None,
    ) -> None:
        """Initialize the handler.

        Args:
            base_path: Watched directory.
            sink: Receives classified events.
            classifier: Turns (change, path) into a SyncEvent.
            settle_s: Quiet period after the last event before flushing.
            ignore_patterns: Patterns for files to ignore.
        """
        super().__init__()
        self._base_path = base_path
        self._sink = sink
        self._classifier = classifier
        self._settle_s = settle_s
        self._ignore = ignore_patterns or IgnorePatterns()

        # Pending changes keyed by path, insertion ordered
        self._pending: dict[str, FileChange] = {}
        self._lock = threading.Lock()
        self._timer: threading.Timer | None = None

    def _schedule_flush(self) -> None:
        if self._timer:
            self._timer.cancel()
        self._timer = threading.Timer(self._settle_s, self.flush)
        self._timer.daemon = True
        self._timer.start()

    def flush(self) -> None:
        """Classify pending changes and hand them to the sink."""
        with self._lock:
            changes = list(self._pending.values())
            self._pending.clear()
            self._timer = None

        for change in changes:
            self.emit(change.change, change.path)

    def emit(self, change: str, path: Path) -> None:
        """Classify one change and pass it on; malformed files are dropped."""
        try:
            event = self._classifier(change, path)
        except NoteMirrorError as e:
            logger.error("Dropping change of %s: %s", path, e.message)
            return
        if event is not None:
            self._sink(event)

    def _record(self, path_value: str | bytes, change: str) -> None:
        if isinstance(path_value, bytes):
            path_value = path_value.decode("utf-8", errors="replace")
        path = Path(path_value)
        if self._ignore.should_ignore(path, self._base_path):
            return
        logger.debug("Change detected in %s (%s)", path, change)
        with self._lock:
            self._pending.pop(str(path), None)
            self._pending[str(path)] = FileChange(path=path, change=change)
            self._schedule_flush()

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        if isinstance(event, FileMovedEvent):
            # The old name disappears, the new one appears
            self._record(event.src_path, "moved")
            self._record(event.dest_path, "moved")
        elif isinstance(event, FileCreatedEvent):
            self._record(event.src_path, "created")
        elif isinstance(event, FileModifiedEvent):
            self._record(event.src_path, "modified")
        elif isinstance(event, FileDeletedEvent):
            self._record(event.src_path, "deleted")

    def stop(self) -> None:
        """Stop any pending timer."""
        with self._lock:
            if self._timer:
                self._timer.cancel()
                self._timer = None


class NoteWatcher:
    """Watches note directories and feeds classified events to a sink."""

    def __init__(
        self,
        local_dirs: list[str | Path],
        sink: EventSink,
        classifier: Classifier = classify,
        settle_s: float = 1.0,
        ignore_patterns: list[str] | None = None,
    ) -> None:
        """Initialize the watcher.

        Args:
            local_dirs: Directories to watch recursively.
            sink: Receives classified events.
            classifier: Turns (change, path) into a SyncEvent.
            settle_s: Quiet period after the last event before flushing.
            ignore_patterns: Additional patterns to ignore.

        Raises:
            ValueError: If a configured path is not a directory.
        """
        self._dirs = [Path(d).expanduser().resolve() for d in local_dirs]
        for directory in self._dirs:
            if not directory.is_dir():
                raise ValueError(f"Watch path must be a directory: {directory}")

        self._ignore = IgnorePatterns(ignore_patterns)
        self._handlers = [
            NoteChangeHandler(d, sink, classifier, settle_s, self._ignore)
            for d in self._dirs
        ]
        self._observer: BaseObserver = Observer()
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    def enumerate(self) -> int:
        """Classify every existing file once.

        Returns:
            Number of files visited.
        """
        count = 0
        for directory, handler in zip(self._dirs, self._handlers):
            logger.info("Enumerating directory: %s", directory)
            for path in sorted(directory.rglob("*")):
                if not path.is_file() or self._ignore.should_ignore(path, directory):
                    continue
                handler.emit("modified", path)
                count += 1
        return count

    def start(self, enumerate_existing: bool = True) -> None:
        """Start watching, optionally enumerating existing files first."""
        if self._running:
            return
        for directory, handler in zip(self._dirs, self._handlers):
            self._observer.schedule(handler, str(directory), recursive=True)
            logger.info("Watching directory: %s", directory)
        self._observer.start()
        self._running = True
        if enumerate_existing:
            self.enumerate()

    def stop(self) -> None:
        """Stop watching."""
        if not self._running:
            return
        for handler in self._handlers:
            handler.stop()
        self._observer.stop()
        self._observer.join(timeout=5.0)
        self._running = False

    def __enter__(self) -> NoteWatcher:
        self.start()
        return self

    def __exit__(self, *args: object) -> None:
        self.stop()
