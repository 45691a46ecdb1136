"""Command-line interface for notemirror.

Commands:
- run: Watch the note directories and publish changes continuously
- sync-file: Publish (or delete) a single note right away
- check: Verify credentials and bootstrap the repository
"""

from __future__ import annotations

import click

from notemirror.client.cli.check import check
from notemirror.client.cli.sync import run, sync_file


@click.group()
@click.version_option(package_name="notemirror")
def cli() -> None:
    """notemirror - Mirror local notes into a git repository."""


cli.add_command(run)
cli.add_command(sync_file)
cli.add_command(check)
