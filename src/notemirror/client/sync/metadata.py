"""Metadata index of published notes.

This module provides:
- NoteEntry / MetadataIndex: the JSON ledger stored in the repository
- record_note / remove_note: pure index mutations
- generate_table_of_contents: README.md body derived from the index
- MetadataIndexManager: fetch-or-create of the remote index

The index and the README are always written in the same commit, so the
table of contents on the remote never disagrees with the index.
"""

from __future__ import annotations

import json
import logging
import posixpath
import re
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Any
from urllib.parse import quote

from notemirror.client.api import trim_slashes
from notemirror.client.sync.types import BlobObject
from notemirror.core.errors import ErrorKind, NoteMirrorError

if TYPE_CHECKING:
    from notemirror.client.sync.publisher import RepositoryPublisher

logger = logging.getLogger(__name__)

README_PATH = "README.md"
TOC_HEADER = "# Table of Contents\n"


def timestamp() -> str:
    """Current UTC time in ISO-8601."""
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class NoteEntry:
    """A published note, keyed by its remote file name."""

    file_name: str
    title: str
    checksum: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> NoteEntry:
        return cls(
            file_name=data["fileName"],
            title=data.get("title", ""),
            checksum=data.get("checksum", ""),
        )

    def to_dict(self) -> dict[str, str]:
        return {"fileName": self.file_name, "title": self.title, "checksum": self.checksum}


@dataclass(frozen=True)
class MetadataIndex:
    """The published side-index.

    Attributes:
        created: When the index was first created.
        last_modified: When the note set last changed.
        notes: Published notes, in insertion order, unique by file name.
    """

    created: str
    last_modified: str
    notes: tuple[NoteEntry, ...] = field(default_factory=tuple)

    @classmethod
    def fresh(cls, now: str | None = None) -> MetadataIndex:
        """An empty index stamped with the current time."""
        stamp = now or timestamp()
        return cls(created=stamp, last_modified=stamp, notes=())

    @classmethod
    def from_json(cls, content: bytes | str) -> MetadataIndex:
        """Parse the stored JSON document.

        Raises:
            NoteMirrorError: REMOTE_INTERNAL if the stored document is corrupt.
        """
        try:
            data = json.loads(content)
            return cls(
                created=data["created"],
                last_modified=data["lastModified"],
                notes=tuple(NoteEntry.from_dict(n) for n in data.get("notes", [])),
            )
        except (ValueError, KeyError, TypeError) as e:
            raise NoteMirrorError(
                ErrorKind.REMOTE_INTERNAL, f"Corrupt metadata index: {e}"
            ) from e

    def to_json(self) -> str:
        return json.dumps(
            {
                "created": self.created,
                "lastModified": self.last_modified,
                "notes": [n.to_dict() for n in self.notes],
            },
            indent=4,
        )

    def find(self, file_name: str) -> NoteEntry | None:
        """Look up an entry by remote file name."""
        for note in self.notes:
            if note.file_name == file_name:
                return note
        return None


def record_note(
    index: MetadataIndex, entry: NoteEntry, now: str | None = None
) -> tuple[MetadataIndex, bool]:
    """Add or refresh a note entry.

    A new file name is appended; an existing one with a different title gets
    its title and checksum replaced. Anything else leaves the index as is.

    Returns:
        (index, changed)
    """
    existing = index.find(entry.file_name)
    if existing is None:
        logger.debug("File %s is not in metadata, adding it", entry.file_name)
        return (
            replace(index, last_modified=now or timestamp(), notes=index.notes + (entry,)),
            True,
        )
    if existing.title != entry.title:
        logger.debug("Title of %s changed to %r", entry.file_name, entry.title)
        notes = tuple(
            replace(n, title=entry.title, checksum=entry.checksum)
            if n.file_name == entry.file_name
            else n
            for n in index.notes
        )
        return replace(index, last_modified=now or timestamp(), notes=notes), True
    return index, False


def remove_note(
    index: MetadataIndex, file_name: str, now: str | None = None
) -> MetadataIndex:
    """Drop a note entry. Always counts as a change."""
    return replace(
        index,
        last_modified=now or timestamp(),
        notes=tuple(n for n in index.notes if n.file_name != file_name),
    )


def escape_link_text(text: str) -> str:
    """Make a title safe to use as Markdown link text on a single line."""
    text = re.sub(r"\s*[\r\n]+\s*", " ", text.strip())
    return re.sub(r"([\\\[\]])", r"\\\1", text)


def generate_table_of_contents(index: MetadataIndex) -> str:
    """README.md body: one link per note, in index order."""
    lines = [TOC_HEADER]
    for note in index.notes:
        directory = posixpath.dirname(note.file_name)
        encoded = quote(posixpath.basename(note.file_name), safe="")
        link = trim_slashes(posixpath.join(directory, encoded))
        lines.append(f"- [{escape_link_text(note.title)}](./{link})\n")
    return "".join(lines)


class IndexOutcome(Enum):
    FOUND = "found"
    CREATED = "created"


@dataclass(frozen=True)
class IndexLookup:
    """Result of fetch_or_create: the index and whether it had to be created."""

    outcome: IndexOutcome
    index: MetadataIndex

    @property
    def created(self) -> bool:
        return self.outcome is IndexOutcome.CREATED


class MetadataIndexManager:
    """Reads, creates and serializes the remote metadata index."""

    def __init__(self, publisher: RepositoryPublisher, metadata_file: str) -> None:
        self._publisher = publisher
        self._metadata_file = trim_slashes(metadata_file)

    @property
    def metadata_file(self) -> str:
        return self._metadata_file

    def fetch_or_create(self) -> IndexLookup:
        """Read the index from the branch head, creating it if absent.

        A newly created index is committed before it is returned, so any
        later mutation starts from a durable document.
        """
        content = self._publisher.fetch_file(self._metadata_file)
        if content is not None:
            logger.debug("Fetched metadata file at %s", self._metadata_file)
            return IndexLookup(IndexOutcome.FOUND, MetadataIndex.from_json(content))

        logger.info("Metadata file %s not found, creating it", self._metadata_file)
        index = MetadataIndex.fresh()
        self._publisher.publish_content(
            [BlobObject.from_text(self._metadata_file, index.to_json())],
            message="Create notemirror metadata index",
        )
        logger.info("New metadata file created at %s", self._metadata_file)
        return IndexLookup(IndexOutcome.CREATED, index)

    def index_objects(self, index: MetadataIndex) -> list[BlobObject]:
        """The index and its regenerated README, ready to publish together."""
        return [
            BlobObject.from_text(self._metadata_file, index.to_json()),
            BlobObject.from_text(README_PATH, generate_table_of_contents(index)),
        ]
