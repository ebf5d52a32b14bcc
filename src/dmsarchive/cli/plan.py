"""Plan command: show what an upload would send."""

import click
from rich.console import Console

from ..diff import DiffState
from ..engine import ArchiveEngine
from ..errors import ArchiveError
from . import cli
from .common import fail, job_options, load_archive_config, load_job
from .logger import configure_logging

_STATE_CHARS: dict[DiffState, tuple[str, str]] = {
    DiffState.NEW: ("N", "green"),
    DiffState.UPDATED: ("U", "yellow"),
    DiffState.UNCHANGED: (" ", "dim"),
}


@cli.command()
@job_options
@click.option("-a", "--all", "show_all", is_flag=True, help="Include unchanged files")
def plan(
    task_file: str,
    mgr_file: str | None,
    overrides: tuple[str, ...],
    config_file: str | None,
    test_instance: bool,
    verbose: bool,
    show_all: bool,
) -> None:
    """Show the files an upload would send, without uploading.

    Each file path is prefixed with a status letter:

    \b
      'N'  new (not in the archive)
      'U'  updated (in the archive with a different SHA-1)

    Use `-a, --all` to see unchanged files as well, which are
    printed using the ' ' status letter.
    """
    configure_logging(verbose)
    try:
        job = load_job(task_file, mgr_file, overrides)
        config = load_archive_config(config_file, test_instance, job)
        result = ArchiveEngine(config).plan(job)
    except ArchiveError as exc:
        fail(f"plan failed: {exc}")

    console = Console()
    for entry in result.entries:
        if entry.state == DiffState.UNCHANGED and not show_all:
            continue
        char, color = _STATE_CHARS[entry.state]
        console.print(f"[{color}]{char}[/] {entry.record.item_address}")
    summary = result.diff
    click.echo(
        f"{summary.count_new} new, {summary.count_updated} updated, "
        f"{summary.unchanged_count} unchanged, {summary.total_bytes_to_upload} bytes to upload."
    )
