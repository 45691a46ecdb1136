"""Note-level publication.

This module provides:
- NotePublisher: publishes and deletes notes, keeping the metadata index
  and README in step with the published files
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from notemirror.client.api import GIT_BLOB_TYPE, TreeEntry
from notemirror.client.sync.metadata import (
    README_PATH,
    NoteEntry,
    record_note,
    remove_note,
)
from notemirror.client.sync.render import (
    remote_markdown_path,
    remote_raw_path,
    render_note,
)
from notemirror.client.sync.types import BlobObject
from notemirror.core.errors import ErrorKind, NoteMirrorError
from notemirror.core.types import NoteKind

if TYPE_CHECKING:
    from notemirror.client.sync.metadata import MetadataIndex, MetadataIndexManager
    from notemirror.client.sync.publisher import RepositoryPublisher
    from notemirror.client.sync.types import SyncEvent
    from notemirror.core.config import RepositoryConfig, SyncModes

logger = logging.getLogger(__name__)


class NotePublisher:
    """Turns sync events into commits."""

    def __init__(
        self,
        publisher: RepositoryPublisher,
        index_manager: MetadataIndexManager,
        repository: RepositoryConfig,
        modes: SyncModes,
    ) -> None:
        self._publisher = publisher
        self._index = index_manager
        self._repository = repository
        self._modes = modes

    def markdown_path(self, source_path: str) -> str:
        return remote_markdown_path(source_path, self._repository.base_dir)

    def raw_path(self, source_path: str) -> str:
        return remote_raw_path(source_path, self._repository.raw_dir)

    def publish(self, event: SyncEvent) -> str | None:
        """Publish a created or updated note in a single commit.

        The commit holds the rendered note and, in raw mode, the source file.
        The index and README join the same commit only when the index changed.

        Returns:
            SHA of the commit, or None if nothing was publishable.
        """
        objects: list[BlobObject] = []

        if self._modes.parsed and event.note_kind is not NoteKind.OTHER:
            remote_path = self.markdown_path(event.source_path)
            title, content = render_note(event.payload)
            objects.append(BlobObject.from_text(remote_path, content))

            lookup = self._index.fetch_or_create()
            if lookup.created:
                logger.info("Bootstrapped metadata index at %s", self._index.metadata_file)
            index, changed = record_note(
                lookup.index,
                NoteEntry(file_name=remote_path, title=title, checksum=event.checksum or ""),
            )
            if changed:
                logger.debug("Re-building table of contents")
                objects.extend(self._index.index_objects(index))

        if self._modes.raw and event.raw is not None:
            objects.append(BlobObject(self.raw_path(event.source_path), event.raw))

        if not objects:
            logger.warning("Nothing to publish for %s in the enabled sync modes", event)
            return None

        commit_sha = self._publisher.publish_content(objects)
        logger.info("Published %s as commit %s", event.source_path, commit_sha)
        return commit_sha

    def delete(self, event: SyncEvent) -> str:
        """Remove a note's files from the branch.

        The whole tree is listed recursively, the note's paths are dropped
        and the tree is rebuilt from the remaining entries. In parsed mode the
        index and README are replaced in the same commit.

        Returns:
            SHA of the commit.

        Raises:
            NoteMirrorError: REMOTE_INTERNAL kind if the remote returned a
                truncated listing, since rebuilding from it would drop files.
        """
        markdown_path = self.markdown_path(event.source_path)
        removed = {markdown_path, self.raw_path(event.source_path)}

        index: MetadataIndex | None = None
        if self._modes.parsed:
            # Read the index first: creating it commits, which would move the head
            lookup = self._index.fetch_or_create()
            index = remove_note(lookup.index, markdown_path)

        client = self._publisher.client
        head = self._publisher.ensure_repository()
        listing = client.get_tree(client.get_commit_tree(head), recursive=True)
        if listing.truncated:
            raise NoteMirrorError(
                ErrorKind.REMOTE_INTERNAL,
                f"Tree listing of {head} is truncated, refusing to rebuild it",
            )

        replacements: dict[str, str] = {}
        if index is not None:
            for obj in self._index.index_objects(index):
                replacements[obj.remote_path] = client.create_blob(obj.content)

        entries: list[TreeEntry] = []
        for entry in listing.entries:
            if entry.type != GIT_BLOB_TYPE or entry.path in removed:
                continue
            if entry.path in replacements:
                entry = TreeEntry(entry.path, replacements.pop(entry.path), entry.mode)
            entries.append(entry)
        # Index or README missing from the listing
        for path in (self._index.metadata_file, README_PATH):
            if path in replacements:
                entries.append(TreeEntry(path, replacements.pop(path)))

        commit_sha = self._publisher.publish_tree(head, entries)
        logger.info("Deleted %s in commit %s", event.source_path, commit_sha)
        return commit_sha
