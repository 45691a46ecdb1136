"""Tests for the note watcher with debouncing."""

import json
import time
from collections.abc import Callable
from pathlib import Path

import pytest
from watchdog.events import (
    DirCreatedEvent,
    FileCreatedEvent,
    FileDeletedEvent,
    FileModifiedEvent,
    FileMovedEvent,
)

from notemirror.client.sync.ignore import IgnorePatterns
from notemirror.client.sync.types import SyncEvent
from notemirror.client.sync.watcher import NoteChangeHandler, NoteWatcher
from notemirror.core.errors import ErrorKind, NoteMirrorError
from notemirror.core.types import NoteKind, SyncEventKind


def wait_until(condition: Callable[[], bool], timeout: float = 5.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if condition():
            return True
        time.sleep(0.05)
    return condition()


class RecordingClassifier:
    """Classifier double that records its calls."""

    def __init__(self, error: NoteMirrorError | None = None) -> None:
        self.calls: list[tuple[str, Path]] = []
        self.error = error

    def __call__(self, change: str, path: Path) -> SyncEvent | None:
        self.calls.append((change, path))
        if self.error is not None:
            raise self.error
        return SyncEvent.delete(str(path))


class TestIgnorePatterns:
    """Tests for ignore pattern matching."""

    def test_default_patterns(self, tmp_path: Path) -> None:
        """Should ignore editor and OS artefacts."""
        ignore = IgnorePatterns()
        for name in (".DS_Store", "note.tmp", ".note.json.swp", "~lock"):
            path = tmp_path / name
            path.touch()
            assert ignore.should_ignore(path, tmp_path) is True

    def test_git_directory_contents_ignored(self, tmp_path: Path) -> None:
        ignore = IgnorePatterns()
        assert ignore.should_ignore(tmp_path / ".git" / "HEAD", tmp_path) is True

    def test_normal_note_not_ignored(self, tmp_path: Path) -> None:
        ignore = IgnorePatterns()
        note = tmp_path / "notes" / "hello.json"
        assert ignore.should_ignore(note, tmp_path) is False

    def test_custom_pattern(self, tmp_path: Path) -> None:
        ignore = IgnorePatterns(["*.log"])
        assert ignore.should_ignore(tmp_path / "app.log", tmp_path) is True
        assert ignore.should_ignore(tmp_path / "app.json", tmp_path) is False

    def test_symlink_ignored(self, tmp_path: Path) -> None:
        target = tmp_path / "real.json"
        target.write_text("{}")
        link = tmp_path / "link.json"
        link.symlink_to(target)

        assert IgnorePatterns().should_ignore(link, tmp_path) is True


class TestNoteChangeHandler:
    """Tests for event collection and flushing, without an observer."""

    @pytest.fixture
    def sink(self) -> list[SyncEvent]:
        return []

    def make_handler(
        self, base: Path, sink: list[SyncEvent], classifier: RecordingClassifier
    ) -> NoteChangeHandler:
        return NoteChangeHandler(base, sink.append, classifier=classifier, settle_s=60)

    def test_changes_to_one_path_are_coalesced(
        self, tmp_path: Path, sink: list[SyncEvent]
    ) -> None:
        classifier = RecordingClassifier()
        handler = self.make_handler(tmp_path, sink, classifier)
        path = tmp_path / "a.json"

        handler.on_any_event(FileCreatedEvent(str(path)))
        handler.on_any_event(FileModifiedEvent(str(path)))
        handler.stop()
        handler.flush()

        assert classifier.calls == [("modified", path)]
        assert len(sink) == 1

    def test_flush_keeps_latest_change_order(
        self, tmp_path: Path, sink: list[SyncEvent]
    ) -> None:
        classifier = RecordingClassifier()
        handler = self.make_handler(tmp_path, sink, classifier)
        a, b = tmp_path / "a.json", tmp_path / "b.json"

        handler.on_any_event(FileModifiedEvent(str(a)))
        handler.on_any_event(FileModifiedEvent(str(b)))
        handler.on_any_event(FileDeletedEvent(str(a)))
        handler.stop()
        handler.flush()

        assert classifier.calls == [("modified", b), ("deleted", a)]

    def test_move_reports_both_paths(self, tmp_path: Path, sink: list[SyncEvent]) -> None:
        classifier = RecordingClassifier()
        handler = self.make_handler(tmp_path, sink, classifier)
        old, new = tmp_path / "old.json", tmp_path / "new.json"

        handler.on_any_event(FileMovedEvent(str(old), str(new)))
        handler.stop()
        handler.flush()

        assert classifier.calls == [("moved", old), ("moved", new)]

    def test_directories_and_ignored_files_skipped(
        self, tmp_path: Path, sink: list[SyncEvent]
    ) -> None:
        classifier = RecordingClassifier()
        handler = self.make_handler(tmp_path, sink, classifier)

        handler.on_any_event(DirCreatedEvent(str(tmp_path / "sub")))
        handler.on_any_event(FileCreatedEvent(str(tmp_path / "x.tmp")))
        handler.stop()
        handler.flush()

        assert classifier.calls == []

    def test_preprocessing_error_drops_change(
        self, tmp_path: Path, sink: list[SyncEvent]
    ) -> None:
        classifier = RecordingClassifier(NoteMirrorError(ErrorKind.PREPROCESSING, "bad json"))
        handler = self.make_handler(tmp_path, sink, classifier)

        handler.emit("modified", tmp_path / "bad.json")

        assert len(classifier.calls) == 1
        assert sink == []


class TestNoteWatcher:
    """Tests for NoteWatcher."""

    @pytest.fixture
    def watch_dir(self, tmp_path: Path) -> Path:
        watch = tmp_path / "notes"
        watch.mkdir()
        return watch

    def test_requires_directory(self, tmp_path: Path) -> None:
        file_path = tmp_path / "file.txt"
        file_path.touch()

        with pytest.raises(ValueError, match="must be a directory"):
            NoteWatcher([file_path], lambda event: None)

    def test_enumerate_existing_files(self, watch_dir: Path) -> None:
        """Every existing note is classified once at start-up."""
        (watch_dir / "a.json").write_text(
            json.dumps({"type": "MARKDOWN_NOTE", "title": "A", "content": "x"})
        )
        (watch_dir / "sub").mkdir()
        (watch_dir / "sub" / "b.md").write_text("# B\n")
        (watch_dir / ".DS_Store").write_bytes(b"\0")
        events: list[SyncEvent] = []

        count = NoteWatcher([watch_dir], events.append).enumerate()

        assert count == 2
        assert sorted(Path(e.source_path).name for e in events) == ["a.json", "b.md"]
        assert {e.note_kind for e in events} == {NoteKind.MARKDOWN_NOTE}

    def test_start_stop(self, watch_dir: Path) -> None:
        watcher = NoteWatcher([watch_dir], lambda event: None)

        watcher.start()
        assert watcher.is_running is True

        watcher.stop()
        assert watcher.is_running is False

    def test_context_manager(self, watch_dir: Path) -> None:
        with NoteWatcher([watch_dir], lambda event: None) as watcher:
            assert watcher.is_running is True
        assert watcher.is_running is False

    def test_detects_new_note(self, watch_dir: Path) -> None:
        events: list[SyncEvent] = []
        watcher = NoteWatcher([watch_dir], events.append, settle_s=0.1)
        watcher.start(enumerate_existing=False)
        try:
            (watch_dir / "new.json").write_text(
                json.dumps({"type": "MARKDOWN_NOTE", "title": "New", "content": "x"})
            )
            assert wait_until(lambda: len(events) > 0)
        finally:
            watcher.stop()

        assert events[-1].kind is SyncEventKind.CREATE_OR_UPDATE
        assert Path(events[-1].source_path).name == "new.json"

    def test_detects_deletion(self, watch_dir: Path) -> None:
        note = watch_dir / "gone.json"
        note.write_text("{}")
        events: list[SyncEvent] = []
        watcher = NoteWatcher([watch_dir], events.append, settle_s=0.1)
        watcher.start(enumerate_existing=False)
        try:
            time.sleep(0.2)
            note.unlink()
            assert wait_until(
                lambda: any(e.kind is SyncEventKind.DELETE for e in events)
            )
        finally:
            watcher.stop()
