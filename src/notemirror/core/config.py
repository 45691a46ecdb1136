"""Configuration classes for notemirror.

The configuration is read from a JSON document whose nested keys follow the
``repository.*``, ``api.*``, ``commit.*``, ``sync.*`` and ``watcher.*``
option names. A handful of environment variables override the file so that
credentials do not have to live on disk.
"""

from __future__ import annotations

import json
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from notemirror.core.errors import ErrorKind, NoteMirrorError

DEFAULT_API_URL = "https://api.github.com"
DEFAULT_METADATA_FILE = "notemirror.json"

ENV_ACCESS_TOKEN = "GITHUB_TOKEN"
ENV_REPOSITORY = "GITHUB_REPO"
ENV_LOCAL_DIR = "LOCAL_NOTES_DIR"


def get_config_dir() -> Path:
    """Get the configuration directory for notemirror.

    Returns:
        Path to ~/.notemirror.
    """
    return Path.home() / ".notemirror"


def get_config_file() -> Path:
    """Get the path to the default config file."""
    return get_config_dir() / "config.json"


@dataclass
class RepositoryConfig:
    """Target repository settings.

    Attributes:
        name: Repository name, owned by the authenticated user.
        branch: Branch that receives the sync commits.
        base_dir: Directory inside the repository for rendered notes.
        raw_dir: Directory inside the repository for raw source files.
        metadata_file: Path of the JSON metadata index.
    """

    name: str = ""
    branch: str = "master"
    base_dir: str = "/"
    raw_dir: str = "raw"
    metadata_file: str = DEFAULT_METADATA_FILE


@dataclass
class ApiConfig:
    """Remote API connection settings.

    Attributes:
        url: Base URL of the git data API.
        access_token: Bearer token used for every request.
        timeout: Request timeout in seconds.
    """

    url: str = DEFAULT_API_URL
    access_token: str = ""
    timeout: float = 30.0

    def __post_init__(self) -> None:
        """Normalize API URL."""
        self.url = self.url.rstrip("/")


@dataclass
class CommitConfig:
    """Author identity stamped on every sync commit."""

    user_name: str = "notemirror"
    user_email: str = "notemirror@example.com"


@dataclass
class SyncModes:
    """Which renditions of a note get published.

    Attributes:
        raw: Publish the unmodified source file.
        parsed: Publish the rendered Markdown note and maintain the index.
    """

    raw: bool = False
    parsed: bool = True


@dataclass
class SyncConfig:
    """Publish loop settings.

    Attributes:
        enabled: Master switch for publishing.
        modes: Renditions to publish.
        delay: Cooldown between publish cycles, in milliseconds.
        max_attempts: Failed attempts after which an event is dead-lettered
            (None retries forever).
    """

    enabled: bool = True
    modes: SyncModes = field(default_factory=SyncModes)
    delay: int = 5000
    max_attempts: int | None = None

    @property
    def delay_seconds(self) -> float:
        """Cooldown in seconds."""
        return self.delay / 1000.0


@dataclass
class WatcherConfig:
    """Local watcher settings."""

    enabled: bool = True
    local_dirs: list[str] = field(default_factory=list)


@dataclass
class Config:
    """Global configuration aggregator."""

    repository: RepositoryConfig = field(default_factory=RepositoryConfig)
    api: ApiConfig = field(default_factory=ApiConfig)
    commit: CommitConfig = field(default_factory=CommitConfig)
    sync: SyncConfig = field(default_factory=SyncConfig)
    watcher: WatcherConfig = field(default_factory=WatcherConfig)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Config:
        """Build a configuration from its JSON document form.

        Unknown keys are ignored; missing keys keep their defaults.
        """
        repo = data.get("repository", {})
        api = data.get("api", {})
        commit = data.get("commit", {})
        sync = data.get("sync", {})
        modes = sync.get("modes", {})
        watcher = data.get("watcher", {})

        repo_defaults = RepositoryConfig()
        api_defaults = ApiConfig()
        commit_defaults = CommitConfig()
        sync_defaults = SyncConfig()

        return cls(
            repository=RepositoryConfig(
                name=repo.get("name", repo_defaults.name),
                branch=repo.get("branch", repo_defaults.branch),
                base_dir=repo.get("baseDir", repo_defaults.base_dir),
                raw_dir=repo.get("rawDir", repo_defaults.raw_dir),
                metadata_file=repo.get("metadataFile", repo_defaults.metadata_file),
            ),
            api=ApiConfig(
                url=api.get("url", api_defaults.url),
                access_token=api.get("accessToken", api_defaults.access_token),
                timeout=float(api.get("timeout", api_defaults.timeout)),
            ),
            commit=CommitConfig(
                user_name=commit.get("userName", commit_defaults.user_name),
                user_email=commit.get("userEmail", commit_defaults.user_email),
            ),
            sync=SyncConfig(
                enabled=bool(sync.get("enabled", sync_defaults.enabled)),
                modes=SyncModes(
                    raw=bool(modes.get("raw", False)),
                    parsed=bool(modes.get("parsed", True)),
                ),
                delay=int(sync.get("delay", sync_defaults.delay)),
                max_attempts=sync.get("maxAttempts", sync_defaults.max_attempts),
            ),
            watcher=WatcherConfig(
                enabled=bool(watcher.get("enabled", True)),
                local_dirs=list(watcher.get("localDirs", [])),
            ),
        )

    @classmethod
    def load(
        cls,
        path: Path | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> Config:
        """Load configuration from disk and apply environment overrides.

        Args:
            path: Config file to read (defaults to ~/.notemirror/config.json).
                A missing file yields the defaults.
            environ: Environment mapping (defaults to os.environ).

        Returns:
            The populated configuration object.

        Raises:
            NoteMirrorError: CONFIGURATION kind if the file is not valid JSON.
        """
        config_file = path or get_config_file()
        data: dict[str, Any] = {}
        if config_file.exists():
            try:
                data = dict(json.loads(config_file.read_text(encoding="utf-8")))
            except (ValueError, TypeError) as e:
                raise NoteMirrorError(
                    ErrorKind.CONFIGURATION,
                    f"Invalid config file {config_file}: {e}",
                ) from e

        config = cls.from_dict(data)
        config.apply_environment(os.environ if environ is None else environ)
        return config

    def apply_environment(self, environ: Mapping[str, str]) -> None:
        """Override credentials and paths from environment variables."""
        if environ.get(ENV_ACCESS_TOKEN):
            self.api.access_token = environ[ENV_ACCESS_TOKEN]
        if environ.get(ENV_REPOSITORY):
            self.repository.name = environ[ENV_REPOSITORY]
        local_dir = environ.get(ENV_LOCAL_DIR)
        if local_dir and local_dir not in self.watcher.local_dirs:
            self.watcher.local_dirs.append(local_dir)

    def validate(self) -> None:
        """Check that every required option is present.

        Raises:
            NoteMirrorError: CONFIGURATION kind naming the offending option.
        """
        if not self.repository.name:
            raise NoteMirrorError(
                ErrorKind.CONFIGURATION, "Missing required option repository.name"
            )
        if not self.api.access_token:
            raise NoteMirrorError(
                ErrorKind.CONFIGURATION, "Missing required option api.accessToken"
            )
        if not self.repository.metadata_file.strip("/"):
            raise NoteMirrorError(
                ErrorKind.CONFIGURATION, "Missing required option repository.metadataFile"
            )
        if self.sync.delay < 0:
            raise NoteMirrorError(
                ErrorKind.CONFIGURATION, "Option sync.delay must not be negative"
            )
        if self.sync.max_attempts is not None and self.sync.max_attempts < 1:
            raise NoteMirrorError(
                ErrorKind.CONFIGURATION, "Option sync.maxAttempts must be positive"
            )
