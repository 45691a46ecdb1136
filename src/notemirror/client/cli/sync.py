"""Sync commands for notemirror CLI.

Commands:
- run: Watch the note directories and publish changes continuously
- sync-file: Publish (or delete) a single note right away
"""

from __future__ import annotations

import logging
import sys
import threading
from pathlib import Path

import click

from notemirror.client.cli.options import (
    config_option,
    load_config,
    setup_logging,
    verbose_option,
)
from notemirror.client.context import SyncContext
from notemirror.client.sync.orchestrator import create_orchestrator
from notemirror.client.sync.preprocessor import classify
from notemirror.client.sync.watcher import NoteWatcher
from notemirror.core.errors import NoteMirrorError

logger = logging.getLogger(__name__)


@click.command()
@config_option
@verbose_option
@click.option("--no-enumerate", is_flag=True, help="Skip the start-up scan of existing notes.")
def run(config_path: Path | None, verbose: bool, no_enumerate: bool) -> None:
    """Watch note directories and mirror every change to the repository."""
    setup_logging(verbose)
    config = load_config(config_path)

    if not config.watcher.enabled:
        click.echo("Watcher is disabled by configuration.")
        return
    if not config.watcher.local_dirs:
        click.echo("Error: no directories to watch (watcher.localDirs).", err=True)
        sys.exit(1)

    context = SyncContext.create(config)
    orchestrator = create_orchestrator(context)
    try:
        watcher = NoteWatcher(config.watcher.local_dirs, orchestrator.enqueue)
    except ValueError as e:
        context.close()
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    stop = threading.Event()
    watcher.start(enumerate_existing=not no_enumerate)
    logger.info("Watcher started")
    click.echo("Mirroring notes. Press Ctrl+C to stop.")
    try:
        while not stop.wait(1.0):
            pass
    except KeyboardInterrupt:
        click.echo("\nStopping...")
    finally:
        watcher.stop()
        orchestrator.stop()
        context.close()
        if len(context.queue):
            click.echo(f"{len(context.queue)} events were still pending.")


@click.command("sync-file")
@click.argument("path", type=click.Path(path_type=Path))
@config_option
@verbose_option
def sync_file(path: Path, config_path: Path | None, verbose: bool) -> None:
    """Publish a single note, or delete it remotely if it no longer exists."""
    setup_logging(verbose)
    config = load_config(config_path)

    try:
        event = classify("modified", path)
    except NoteMirrorError as e:
        click.echo(f"Error: {e.message}", err=True)
        sys.exit(1)
    if event is None:
        click.echo(f"Skipped {path}: not a regular file.")
        return

    context = SyncContext.create(config)
    orchestrator = create_orchestrator(context)
    try:
        context.queue.enqueue(event)
        orchestrator.run_once()
    finally:
        context.close()

    if len(context.queue) or orchestrator.dead_letters:
        click.echo(f"Failed to sync {path}; see the log for details.", err=True)
        sys.exit(1)
    click.echo(f"Synced {path} ({event.kind.value}).")
