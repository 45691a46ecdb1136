"""Check command for notemirror CLI.

Commands:
- check: Verify credentials and bootstrap the repository
"""

from __future__ import annotations

import sys
from pathlib import Path

import click

from notemirror.client.cli.options import (
    config_option,
    load_config,
    setup_logging,
    verbose_option,
)
from notemirror.client.context import SyncContext
from notemirror.client.sync.publisher import RepositoryPublisher
from notemirror.core.errors import NoteMirrorError


@click.command()
@config_option
@verbose_option
def check(config_path: Path | None, verbose: bool) -> None:
    """Check access to the repository, initializing it if it is empty."""
    setup_logging(verbose)
    config = load_config(config_path)
    context = SyncContext.create(config)
    try:
        publisher = RepositoryPublisher(context.client)
        head = publisher.ensure_repository()
        owner = context.client.resolve_identity()
    except NoteMirrorError as e:
        click.echo(f"Error ({e.kind.value}): {e.message}", err=True)
        sys.exit(1)
    finally:
        context.close()

    click.echo(f"Repository: {owner}/{config.repository.name}")
    click.echo(f"Branch:     {config.repository.branch}")
    click.echo(f"Head:       {head}")
