"""Tree-based publish protocol.

A publish turns a set of files into one commit on the configured branch:

    head -> tree of head -> blobs -> new tree -> commit -> ref update

Each step needs the previous step's SHA, so the calls are strictly
sequential. The ref update is the only visible step and comes last; a
failure anywhere before it leaves the branch untouched.
"""

from __future__ import annotations

import logging
import socket
from typing import TYPE_CHECKING

from notemirror.client.api import trim_slashes
from notemirror.core.errors import ErrorKind, NoteMirrorError

if TYPE_CHECKING:
    from notemirror.client.api import GitHubClient, TreeEntry
    from notemirror.client.sync.types import BlobObject

logger = logging.getLogger(__name__)


class RepositoryPublisher:
    """Publishes file sets as single commits through a GitHubClient."""

    def __init__(self, client: GitHubClient, hostname: str | None = None) -> None:
        """Initialize the publisher.

        Args:
            client: Repository client.
            hostname: Host name quoted in commit messages (defaults to this host).
        """
        self._client = client
        self._hostname = hostname or socket.gethostname()

    @property
    def client(self) -> GitHubClient:
        return self._client

    def commit_message(self, deleted: bool = False) -> str:
        if deleted:
            return f"Sync deleted notes from host: {self._hostname}"
        return f"Sync notes from host: {self._hostname}"

    def ensure_repository(self) -> str:
        """Resolve the branch head, bootstrapping an empty repository.

        Returns:
            SHA of the current head commit.
        """
        self._client.resolve_identity()
        try:
            return self._client.get_head()
        except NoteMirrorError as e:
            if e.kind is not ErrorKind.REPOSITORY_EMPTY:
                raise
        logger.info("Repository seems to be empty, initializing it with a README.md")
        self._client.initialize_empty_repository()
        return self._client.get_head()

    def fetch_file(self, path: str) -> bytes | None:
        """Read a file from the branch head.

        Returns:
            File content, or None if the head tree has no such blob.
        """
        head = self.ensure_repository()
        tree_sha = self._client.get_commit_tree(head)
        wanted = trim_slashes(path)
        listing = self._client.get_tree(tree_sha, recursive="/" in wanted)
        entry = listing.find_blob(wanted)
        if entry is None:
            logger.debug("File %s not found (truncated=%s)", wanted, listing.truncated)
            return None
        return self._client.get_blob(entry.sha)

    def publish_content(
        self, objects: list[BlobObject], message: str | None = None
    ) -> str:
        """Commit a set of files on top of the branch head.

        Files at existing paths are replaced; every other path is preserved.

        Returns:
            SHA of the new commit.
        """
        head = self.ensure_repository()
        base_tree = self._client.get_commit_tree(head)

        blobs: list[tuple[str, str]] = []
        for obj in objects:
            logger.debug("Creating blob %s", obj.remote_path)
            blobs.append((obj.remote_path, self._client.create_blob(obj.content)))

        logger.debug("Creating tree from tree: %s", base_tree)
        tree_sha = self._client.create_tree(base_tree, blobs)
        return self._commit(head, tree_sha, message or self.commit_message())

    def publish_tree(
        self, head: str, entries: list[TreeEntry], message: str | None = None
    ) -> str:
        """Commit a tree rebuilt from a complete entry list.

        Used when entries have to be removed, which a base-tree merge cannot
        express. ``head`` must be the head the entry list was read from.

        Returns:
            SHA of the new commit.
        """
        logger.debug("Rebuilding tree from %d entries", len(entries))
        tree_sha = self._client.rebuild_tree(entries)
        return self._commit(head, tree_sha, message or self.commit_message(deleted=True))

    def _commit(self, head: str, tree_sha: str, message: str) -> str:
        logger.debug("Created tree: %s. Committing changes...", tree_sha)
        commit_sha = self._client.create_commit(head, tree_sha, message)
        logger.debug("Commit %s created. Updating head...", commit_sha)
        self._client.update_ref(commit_sha)
        return commit_sha
