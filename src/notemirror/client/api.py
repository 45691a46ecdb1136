"""HTTP client for the remote git data API.

This module provides:
- GitHubClient: stateless wrapper over the git data primitives
  (identity, refs, commits, trees, blobs) used by the publish protocol
- TreeEntry / TreeListing: tree listing types

Every non-success response is turned into a NoteMirrorError whose kind is
derived from the status code; no call silently succeeds on a failure.
"""

from __future__ import annotations

import base64
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

import httpx

from notemirror.core.config import ApiConfig, CommitConfig, RepositoryConfig
from notemirror.core.errors import ErrorKind, NoteMirrorError

logger = logging.getLogger(__name__)

GIT_BLOB_MODE = "100644"
GIT_BLOB_TYPE = "blob"

_STATUS_KINDS = {
    401: ErrorKind.AUTHORIZATION,
    404: ErrorKind.NOT_FOUND,
    409: ErrorKind.REPOSITORY_EMPTY,
}


def trim_slashes(path: str) -> str:
    """Strip leading and trailing slashes from a repository path."""
    return path.strip("/")


@dataclass(frozen=True)
class TreeEntry:
    """One entry of a git tree."""

    path: str
    sha: str
    mode: str = GIT_BLOB_MODE
    type: str = GIT_BLOB_TYPE

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TreeEntry:
        """Create from API response dictionary."""
        return cls(
            path=data["path"],
            sha=data["sha"],
            mode=data.get("mode", GIT_BLOB_MODE),
            type=data.get("type", GIT_BLOB_TYPE),
        )

    def to_dict(self) -> dict[str, str]:
        """Serialize for a tree creation request."""
        return {
            "path": trim_slashes(self.path),
            "mode": self.mode,
            "type": self.type,
            "sha": self.sha,
        }


@dataclass
class TreeListing:
    """Result of get_tree."""

    entries: list[TreeEntry]
    truncated: bool = False

    def find_blob(self, path: str) -> TreeEntry | None:
        """Find a blob entry by repository path."""
        wanted = trim_slashes(path)
        for entry in self.entries:
            if entry.type == GIT_BLOB_TYPE and entry.path == wanted:
                return entry
        return None


class GitHubClient:
    """HTTP client for the git data API of a single repository."""

    def __init__(
        self,
        api: ApiConfig,
        repository: RepositoryConfig,
        commit: CommitConfig,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            api: API URL, token and timeout.
            repository: Target repository and branch.
            commit: Author identity for created commits.
            transport: Optional httpx transport (used by tests).
        """
        self._repository = repository
        self._commit = commit
        self._owner: str | None = None
        self._client = httpx.Client(
            base_url=api.url,
            timeout=api.timeout,
            transport=transport,
            headers={
                "Authorization": f"Bearer {api.access_token}",
                "Accept": "application/vnd.github+json",
                "User-Agent": "notemirror",
            },
        )

    def close(self) -> None:
        """Close the HTTP client."""
        self._client.close()

    def __enter__(self) -> GitHubClient:
        """Context manager entry."""
        return self

    def __exit__(self, *args: object) -> None:
        """Context manager exit."""
        self.close()

    @property
    def default_ref(self) -> str:
        """Ref of the configured branch."""
        return f"heads/{self._repository.branch}"

    def _repo_path(self) -> str:
        owner = self._owner or self.resolve_identity()
        return f"/repos/{owner}/{self._repository.name}"

    def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        """Send a request, mapping transport failures to REMOTE_INTERNAL."""
        try:
            return self._client.request(method, path, **kwargs)
        except httpx.RequestError as e:
            raise NoteMirrorError(
                ErrorKind.REMOTE_INTERNAL,
                f"Request {method} {path} failed: {e}",
            ) from e

    @staticmethod
    def _error(response: httpx.Response, action: str) -> NoteMirrorError:
        """Build the typed failure for a non-success response."""
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            detail = body.get("message", response.reason_phrase)
        else:
            detail = response.text or response.reason_phrase
        kind = _STATUS_KINDS.get(response.status_code, ErrorKind.REMOTE_INTERNAL)
        return NoteMirrorError(kind, f"{action}: {detail}", response.status_code)

    def _expect(
        self, response: httpx.Response, status_code: int, action: str
    ) -> dict[str, Any]:
        """Return the JSON body or raise if the status is not the expected one."""
        if response.status_code != status_code:
            raise self._error(response, action)
        body: dict[str, Any] = response.json()
        return body

    # === Identity ===

    def resolve_identity(self) -> str:
        """Fetch the login of the token's owner, cached after the first success.

        Returns:
            Repository owner login.

        Raises:
            NoteMirrorError: AUTHORIZATION if the token is rejected.
        """
        if self._owner is None:
            body = self._expect(
                self._request("GET", "/user"), 200, "Failed to fetch user details"
            )
            self._owner = body["login"]
            logger.debug("Resolved repository owner %s", self._owner)
        return self._owner

    # === Refs and commits ===

    def get_head(self, branch: str | None = None) -> str:
        """Get the SHA of a branch tip.

        Raises:
            NoteMirrorError: REPOSITORY_EMPTY if the repository has no commits.
        """
        ref = f"heads/{branch}" if branch else self.default_ref
        body = self._expect(
            self._request("GET", f"{self._repo_path()}/git/refs/{ref}"),
            200,
            "Failed to fetch head",
        )
        sha: str = body["object"]["sha"]
        return sha

    def get_commit_tree(self, commit_sha: str) -> str:
        """Get the SHA of the tree attached to a commit."""
        body = self._expect(
            self._request("GET", f"{self._repo_path()}/git/commits/{commit_sha}"),
            200,
            "Failed to fetch commit",
        )
        logger.debug("Fetched HEAD at: %s (%s)", body.get("message", ""), commit_sha)
        sha: str = body["tree"]["sha"]
        return sha

    def create_commit(self, parent_sha: str, tree_sha: str, message: str) -> str:
        """Create a commit with a single parent.

        Returns:
            SHA of the new commit.
        """
        now = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
        body = self._expect(
            self._request(
                "POST",
                f"{self._repo_path()}/git/commits",
                json={
                    "message": message,
                    "author": {
                        "name": self._commit.user_name,
                        "email": self._commit.user_email,
                        "date": now,
                    },
                    "parents": [parent_sha],
                    "tree": tree_sha,
                },
            ),
            201,
            "Failed to create commit",
        )
        sha: str = body["sha"]
        return sha

    def update_ref(self, commit_sha: str, branch: str | None = None) -> None:
        """Move a branch to a commit without forcing.

        The remote rejects the update when the branch no longer points at the
        commit's parent; that rejection is raised like any other failure.
        """
        ref = f"heads/{branch}" if branch else self.default_ref
        self._expect(
            self._request(
                "PATCH",
                f"{self._repo_path()}/git/refs/{ref}",
                json={"sha": commit_sha, "force": False},
            ),
            200,
            "Failed to update head",
        )

    # === Trees ===

    def get_tree(self, tree_sha: str, recursive: bool = False) -> TreeListing:
        """List a tree.

        A missing tree is reported as an empty listing since a brand-new
        repository has no tree object yet.
        """
        params = {"recursive": "1"} if recursive else None
        response = self._request(
            "GET", f"{self._repo_path()}/git/trees/{tree_sha}", params=params
        )
        if response.status_code == 404:
            return TreeListing(entries=[], truncated=False)
        body = self._expect(response, 200, f"Failed to get tree {tree_sha}")
        return TreeListing(
            entries=[TreeEntry.from_dict(e) for e in body.get("tree", [])],
            truncated=bool(body.get("truncated", False)),
        )

    def create_tree(
        self, base_tree_sha: str, blobs: list[tuple[str, str]]
    ) -> str:
        """Create a tree on top of a base tree.

        Args:
            base_tree_sha: Tree to compose with.
            blobs: (path, blob SHA) pairs added or replaced in the base tree.

        Returns:
            SHA of the new tree.
        """
        body = self._expect(
            self._request(
                "POST",
                f"{self._repo_path()}/git/trees",
                json={
                    "base_tree": base_tree_sha,
                    "tree": [TreeEntry(path, sha).to_dict() for path, sha in blobs],
                },
            ),
            201,
            "Failed to update tree",
        )
        sha: str = body["sha"]
        return sha

    def rebuild_tree(self, entries: list[TreeEntry]) -> str:
        """Create a tree from a complete entry list, without a base tree."""
        body = self._expect(
            self._request(
                "POST",
                f"{self._repo_path()}/git/trees",
                json={"tree": [entry.to_dict() for entry in entries]},
            ),
            201,
            "Failed to rebuild tree",
        )
        sha: str = body["sha"]
        return sha

    # === Blobs ===

    def create_blob(self, content: bytes) -> str:
        """Upload raw bytes as a blob, base64 encoded on the wire.

        Returns:
            SHA of the blob.
        """
        body = self._expect(
            self._request(
                "POST",
                f"{self._repo_path()}/git/blobs",
                json={
                    "content": base64.b64encode(content).decode("ascii"),
                    "encoding": "base64",
                },
            ),
            201,
            "Failed to create blob from content",
        )
        sha: str = body["sha"]
        return sha

    def get_blob(self, blob_sha: str) -> bytes:
        """Download and decode the content of a blob."""
        body = self._expect(
            self._request("GET", f"{self._repo_path()}/git/blobs/{blob_sha}"),
            200,
            f"Failed to get blob {blob_sha}",
        )
        content = body.get("content", "")
        if body.get("encoding", "base64") == "base64":
            return base64.b64decode(content)
        return str(content).encode("utf-8")

    # === Bootstrap ===

    def initialize_empty_repository(self) -> str:
        """Create a first commit holding an empty README.md.

        Returns:
            SHA of the bootstrap commit.
        """
        body = self._expect(
            self._request(
                "PUT",
                f"{self._repo_path()}/contents/README.md",
                json={
                    "message": "Initial commit",
                    "committer": {
                        "name": self._commit.user_name,
                        "email": self._commit.user_email,
                    },
                    "content": "",
                    "branch": self._repository.branch,
                },
            ),
            201,
            "Failed to initialize repository",
        )
        sha: str = body["commit"]["sha"]
        return sha
