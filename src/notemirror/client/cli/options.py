"""Options and helpers shared by the CLI commands."""

from __future__ import annotations

import logging
import sys
from collections.abc import Callable
from pathlib import Path
from typing import Any, TypeVar

import click

from notemirror.core.config import Config
from notemirror.core.errors import NoteMirrorError

F = TypeVar("F", bound=Callable[..., Any])

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def config_option(func: F) -> F:
    """Add the --config option."""
    return click.option(
        "--config",
        "config_path",
        type=click.Path(dir_okay=False, path_type=Path),
        default=None,
        help="Config file (default: ~/.notemirror/config.json).",
    )(func)


def verbose_option(func: F) -> F:
    """Add the --verbose flag."""
    return click.option(
        "--verbose", "-v", is_flag=True, help="Log every remote call."
    )(func)


def setup_logging(verbose: bool) -> None:
    """Attach a single stream handler to the notemirror logger."""
    app_logger = logging.getLogger("notemirror")
    for handler in app_logger.handlers[:]:
        app_logger.removeHandler(handler)
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    app_logger.addHandler(handler)
    app_logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    app_logger.propagate = False


def load_config(config_path: Path | None) -> Config:
    """Load and validate configuration, exiting on a configuration error."""
    try:
        config = Config.load(config_path)
        config.validate()
    except NoteMirrorError as e:
        click.echo(f"Error: {e.message}", err=True)
        sys.exit(1)
    return config
