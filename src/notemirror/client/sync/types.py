"""Shared types for sync operations.

This module provides:
- MarkdownNote, SnippetNote, SnippetSection: decoded note payloads
- SyncEvent: unit of work travelling through the change queue
- BlobObject: a file scheduled for publication
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from typing import Union

from notemirror.core.types import NoteKind, SyncEventKind


@dataclass(frozen=True)
class MarkdownNote:
    """A plain Markdown note."""

    title: str
    content: str


@dataclass(frozen=True)
class SnippetSection:
    """One language-tagged section of a snippet note."""

    name: str
    mode: str
    content: str


@dataclass(frozen=True)
class SnippetNote:
    """A note made of several code snippets."""

    title: str
    description: str = ""
    snippets: tuple[SnippetSection, ...] = ()


NotePayload = Union[MarkdownNote, SnippetNote]


@dataclass(frozen=True)
class SyncEvent:
    """A pending change of one local note.

    Attributes:
        kind: CREATE_OR_UPDATE or DELETE.
        source_path: Local path of the note; remote paths derive from it.
        note_kind: Classification of the content (None for DELETE).
        payload: Decoded content (None for DELETE and OTHER notes).
        checksum: SHA-256 of the raw source bytes.
        raw: Raw source bytes, published as-is in raw mode.
        event_id: Unique identifier used for retry bookkeeping.
        timestamp: Creation time (epoch seconds).
    """

    kind: SyncEventKind
    source_path: str
    note_kind: NoteKind | None = None
    payload: NotePayload | None = None
    checksum: str | None = None
    raw: bytes | None = field(default=None, repr=False)
    event_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    timestamp: float = field(default_factory=time.time)

    @classmethod
    def create_or_update(
        cls,
        source_path: str,
        note_kind: NoteKind,
        payload: NotePayload | None,
        checksum: str | None = None,
        raw: bytes | None = None,
    ) -> SyncEvent:
        """Factory for a create/update event."""
        return cls(
            kind=SyncEventKind.CREATE_OR_UPDATE,
            source_path=source_path,
            note_kind=note_kind,
            payload=payload,
            checksum=checksum,
            raw=raw,
        )

    @classmethod
    def delete(cls, source_path: str) -> SyncEvent:
        """Factory for a delete event."""
        return cls(kind=SyncEventKind.DELETE, source_path=source_path)

    def __repr__(self) -> str:
        kind = self.note_kind.name if self.note_kind else "-"
        return f"SyncEvent({self.kind.name}, {self.source_path!r}, {kind})"


@dataclass(frozen=True)
class BlobObject:
    """Content to be written at a repository path."""

    remote_path: str
    content: bytes = field(repr=False)

    @classmethod
    def from_text(cls, remote_path: str, text: str) -> BlobObject:
        """Create from UTF-8 text."""
        return cls(remote_path=remote_path, content=text.encode("utf-8"))
