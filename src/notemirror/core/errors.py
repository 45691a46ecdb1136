"""Error type shared by every notemirror component.

Failures are represented by a single exception class carrying an
``ErrorKind`` discriminant. The sync orchestrator is the only place that
decides what to do with them (retry, drop, or abort) by looking at the kind.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """Closed set of failure categories."""

    CONFIGURATION = "configuration"
    AUTHORIZATION = "authorization"
    REPOSITORY_EMPTY = "repository_empty"
    NOT_FOUND = "not_found"
    REMOTE_INTERNAL = "remote_internal"
    PREPROCESSING = "preprocessing"


# Kinds that the orchestrator answers with a re-queue
RETRYABLE_KINDS = frozenset(
    {
        ErrorKind.AUTHORIZATION,
        ErrorKind.REPOSITORY_EMPTY,
        ErrorKind.NOT_FOUND,
        ErrorKind.REMOTE_INTERNAL,
    }
)


class NoteMirrorError(Exception):
    """A typed failure raised by a notemirror component.

    Attributes:
        kind: Category of the failure.
        message: Human readable diagnostic, including the remote's message
            when the failure came from the repository API.
        status_code: HTTP status that produced the failure, if any.
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.status_code = status_code

    @property
    def retryable(self) -> bool:
        """Whether the failed event should go back on the queue."""
        return self.kind in RETRYABLE_KINDS

    def __repr__(self) -> str:
        return (
            f"NoteMirrorError(kind={self.kind.name}, message={self.message!r}, "
            f"status_code={self.status_code})"
        )
