"""Ignore patterns for watched note directories.

This module provides:
- IgnorePatterns: fnmatch-based matching of editor and OS artefacts
- DEFAULT_IGNORE_PATTERNS: patterns always ignored
"""

from __future__ import annotations

import fnmatch
from pathlib import Path

DEFAULT_IGNORE_PATTERNS = [
    ".git",
    ".git/**",
    ".DS_Store",
    "Thumbs.db",
    "*.tmp",
    "*.temp",
    "~*",
    "*.swp",
    "*.swo",
]


class IgnorePatterns:
    """Decides which changed paths never reach the change queue."""

    def __init__(self, patterns: list[str] | None = None) -> None:
        self._patterns = list(DEFAULT_IGNORE_PATTERNS)
        if patterns:
            self._patterns.extend(patterns)

    def should_ignore(self, path: Path, base_path: Path) -> bool:
        """Check if a path should be ignored.

        Args:
            path: Absolute path to check.
            base_path: Watched directory the path belongs to.

        Returns:
            True if the path should be ignored.
        """
        if path.is_symlink():
            return True

        try:
            rel_path = path.relative_to(base_path)
        except ValueError:
            return False

        rel_str = str(rel_path).replace("\\", "/")
        parts = rel_str.split("/")

        for pattern in self._patterns:
            if "**" in pattern:
                if fnmatch.fnmatch(rel_str, pattern):
                    return True
            elif fnmatch.fnmatch(path.name, pattern) or any(
                fnmatch.fnmatch(part, pattern) for part in parts[:-1]
            ):
                return True

        return False
