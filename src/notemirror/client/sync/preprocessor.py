"""Classification of raw filesystem changes into sync events.

``classify`` reads a changed file and decodes it:

- ``.cson`` Boostnote notes and ``.json`` note documents carry ``type``
  (MARKDOWN_NOTE or SNIPPET_NOTE), ``title``, ``content``, ``description``,
  ``snippets`` and ``isTrashed``.
- ``.md`` / ``.markdown`` notes may start with YAML front matter holding
  ``title`` and ``isTrashed``; the title falls back to the first heading,
  then to the file name.
- Anything else is an OTHER note carrying only its raw bytes.

A file that vanished before it could be read becomes a DELETE event, as
does a note flagged ``isTrashed``.
"""

from __future__ import annotations

import hashlib
import json
import logging
import stat
from pathlib import Path
from typing import Any

import cson
import yaml

from notemirror.client.sync.types import (
    MarkdownNote,
    SnippetNote,
    SnippetSection,
    SyncEvent,
)
from notemirror.core.errors import ErrorKind, NoteMirrorError
from notemirror.core.types import NoteKind

logger = logging.getLogger(__name__)

MARKDOWN_SUFFIXES = frozenset({".md", ".markdown"})


def checksum(content: bytes) -> str:
    """SHA-256 hex digest of raw source bytes."""
    return hashlib.sha256(content).hexdigest()


def split_front_matter(text: str) -> tuple[dict[str, Any], str]:
    """Separate YAML front matter from a Markdown body.

    Returns:
        (front matter, body); the front matter is empty when absent.

    Raises:
        yaml.YAMLError: If the front matter block is not valid YAML.
    """
    if not text.startswith("---"):
        return {}, text
    parts = text.split("---\n", 2)
    if len(parts) < 3:
        return {}, text
    front_matter = yaml.safe_load(parts[1])
    if not isinstance(front_matter, dict):
        return {}, parts[2]
    return front_matter, parts[2]


def _first_heading(body: str) -> str | None:
    for line in body.splitlines():
        if line.startswith("# "):
            return line[2:].strip()
    return None


def _decode_markdown(path: Path, raw: bytes) -> SyncEvent:
    front_matter, body = split_front_matter(raw.decode("utf-8"))
    if front_matter.get("isTrashed"):
        return SyncEvent.delete(str(path))
    title = str(front_matter.get("title") or _first_heading(body) or path.stem)
    return SyncEvent.create_or_update(
        str(path),
        NoteKind.MARKDOWN_NOTE,
        MarkdownNote(title=title, content=body),
        checksum=checksum(raw),
        raw=raw,
    )


def _decode_document(path: Path, raw: bytes, data: Any) -> SyncEvent:
    """Build the event for a decoded note document."""
    if not isinstance(data, dict):
        raise ValueError("note document is not an object")
    if data.get("isTrashed"):
        return SyncEvent.delete(str(path))

    note_kind = NoteKind.parse(data.get("type"))
    title = str(data.get("title") or "")
    payload: MarkdownNote | SnippetNote | None
    if note_kind is NoteKind.MARKDOWN_NOTE:
        payload = MarkdownNote(title=title, content=str(data.get("content") or ""))
    elif note_kind is NoteKind.SNIPPET_NOTE:
        payload = SnippetNote(
            title=title,
            description=str(data.get("description") or ""),
            snippets=tuple(
                SnippetSection(
                    name=str(s.get("name") or ""),
                    mode=str(s.get("mode") or ""),
                    content=str(s.get("content") or ""),
                )
                for s in data.get("snippets") or []
            ),
        )
    else:
        payload = None
    return SyncEvent.create_or_update(
        str(path), note_kind, payload, checksum=checksum(raw), raw=raw
    )


def _decode_json(path: Path, raw: bytes) -> SyncEvent:
    return _decode_document(path, raw, json.loads(raw.decode("utf-8")))


def _decode_cson(path: Path, raw: bytes) -> SyncEvent:
    text = raw.decode("utf-8")
    try:
        data = cson.loads(text)
    except Exception as e:
        raise ValueError(f"invalid CSON: {e}") from e
    return _decode_document(path, raw, data)


def decode(path: Path, raw: bytes) -> SyncEvent:
    """Decode the bytes of a note file into a create/update (or delete) event.

    Raises:
        NoteMirrorError: PREPROCESSING kind if the file cannot be decoded.
    """
    suffix = path.suffix.lower()
    try:
        if suffix == ".cson":
            return _decode_cson(path, raw)
        if suffix == ".json":
            return _decode_json(path, raw)
        if suffix in MARKDOWN_SUFFIXES:
            return _decode_markdown(path, raw)
    except (ValueError, TypeError, AttributeError, yaml.YAMLError) as e:
        # UnicodeDecodeError and JSONDecodeError are ValueErrors
        raise NoteMirrorError(
            ErrorKind.PREPROCESSING, f"Failed to decode {path}: {e}"
        ) from e
    return SyncEvent.create_or_update(
        str(path), NoteKind.OTHER, None, checksum=checksum(raw), raw=raw
    )


def classify(event_kind: str, path: str | Path) -> SyncEvent | None:
    """Turn a raw filesystem change into a sync event.

    Args:
        event_kind: Watcher change name (created, modified, moved, deleted).
        path: Changed path.

    Returns:
        The event, or None for paths that are not regular files.

    Raises:
        NoteMirrorError: PREPROCESSING kind for unreadable or malformed files.
    """
    file_path = Path(path)
    try:
        mode = file_path.stat().st_mode
        if not stat.S_ISREG(mode):
            logger.info("Path %s is not a regular file, ignoring", file_path)
            return None
        raw = file_path.read_bytes()
    except FileNotFoundError:
        logger.debug("%s vanished after a %s event, treating as deleted", file_path, event_kind)
        return SyncEvent.delete(str(file_path))
    except OSError as e:
        raise NoteMirrorError(
            ErrorKind.PREPROCESSING, f"Failed to read {file_path}: {e}"
        ) from e
    return decode(file_path, raw)
