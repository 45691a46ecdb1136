"""Shared enums for notemirror."""

from __future__ import annotations

from enum import Enum


class SyncEventKind(str, Enum):
    """What happened to a local note."""

    CREATE_OR_UPDATE = "create_or_update"
    DELETE = "delete"


class NoteKind(str, Enum):
    """Classification of a decoded local note."""

    MARKDOWN_NOTE = "MARKDOWN_NOTE"
    SNIPPET_NOTE = "SNIPPET_NOTE"
    OTHER = "OTHER"

    @classmethod
    def parse(cls, value: object) -> NoteKind:
        """Map a raw ``type`` field onto a note kind, OTHER when unknown."""
        try:
            return cls(value)
        except ValueError:
            return cls.OTHER


class OrchestratorState(str, Enum):
    """Lifecycle state of the sync orchestrator."""

    IDLE = "idle"
    DRAINING = "draining"
    COOLDOWN = "cooldown"
