"""Sync engine mirroring local notes into a remote git repository.

Architecture:
    NoteWatcher → classify → ChangeQueue → SyncOrchestrator → NotePublisher
        → RepositoryPublisher → GitHubClient

Components:
- **NoteWatcher**: watches note directories, classifies changes
- **ChangeQueue**: FIFO of pending SyncEvents
- **PublishGate**: single-flight flag held by the running publish cycle
- **SyncOrchestrator**: drains the queue, re-queues failures, cools down
- **NotePublisher**: note and deletion commits, index and README upkeep
- **MetadataIndexManager**: fetch-or-create of the metadata index
- **RepositoryPublisher**: head → tree → blobs → tree → commit → ref
"""

from notemirror.client.sync.gate import PublishGate
from notemirror.client.sync.metadata import (
    IndexLookup,
    IndexOutcome,
    MetadataIndex,
    MetadataIndexManager,
    NoteEntry,
    generate_table_of_contents,
    record_note,
    remove_note,
)
from notemirror.client.sync.notes import NotePublisher
from notemirror.client.sync.orchestrator import SyncOrchestrator, create_orchestrator
from notemirror.client.sync.preprocessor import classify
from notemirror.client.sync.publisher import RepositoryPublisher
from notemirror.client.sync.queue import ChangeQueue
from notemirror.client.sync.types import (
    BlobObject,
    MarkdownNote,
    SnippetNote,
    SnippetSection,
    SyncEvent,
)
from notemirror.client.sync.watcher import NoteWatcher

__all__ = [
    "BlobObject",
    "ChangeQueue",
    "IndexLookup",
    "IndexOutcome",
    "MarkdownNote",
    "MetadataIndex",
    "MetadataIndexManager",
    "NoteEntry",
    "NotePublisher",
    "NoteWatcher",
    "PublishGate",
    "RepositoryPublisher",
    "SnippetNote",
    "SnippetSection",
    "SyncEvent",
    "SyncOrchestrator",
    "classify",
    "create_orchestrator",
    "generate_table_of_contents",
    "record_note",
    "remove_note",
]
