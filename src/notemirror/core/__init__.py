"""Core module - Configuration, error type and shared enums."""

from notemirror.core.config import (
    ApiConfig,
    CommitConfig,
    Config,
    RepositoryConfig,
    SyncConfig,
    SyncModes,
    WatcherConfig,
)
from notemirror.core.errors import ErrorKind, NoteMirrorError
from notemirror.core.types import NoteKind, OrchestratorState, SyncEventKind

__all__ = [
    # Config
    "ApiConfig",
    "CommitConfig",
    "Config",
    "RepositoryConfig",
    "SyncConfig",
    "SyncModes",
    "WatcherConfig",
    # Errors
    "ErrorKind",
    "NoteMirrorError",
    # Types
    "NoteKind",
    "OrchestratorState",
    "SyncEventKind",
]
