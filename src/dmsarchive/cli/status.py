"""Status command: poll the ingest status of an upload once."""

import click

from ..archive.ingest import IngestClient
from ..errors import ArchiveError
from . import cli
from .common import fail, load_archive_config
from .logger import configure_logging


@cli.command()
@click.argument("status_uri")
@click.option(
    "-c",
    "--config",
    "config_file",
    default=None,
    type=click.Path(exists=True, dir_okay=False),
    help="YAML archive configuration",
)
@click.option("-v", "--verbose", is_flag=True, help="Verbose mode")
def status(status_uri: str, config_file: str | None, verbose: bool) -> None:
    """Show the ingest status of an upload."""
    configure_logging(verbose)
    try:
        config = load_archive_config(config_file, test_instance=False)
        current = IngestClient(config).poll(status_uri)
    except ArchiveError as exc:
        fail(f"status failed: {exc}")

    click.echo(f"transaction: {current.transaction_id if current.transaction_id else '-'}")
    click.echo(f"percent: {current.percent:.0f}")
    click.echo(f"verified: {'yes' if current.verified else 'no'}")
    if current.failed:
        kind = current.failure_kind.value if current.failure_kind else "unknown"
        fail(f"failed ({kind}): {current.message}")
