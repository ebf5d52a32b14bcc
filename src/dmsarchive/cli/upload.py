"""Upload command."""

import signal
import time

import click
from rich.progress import BarColumn, Progress, TaskProgressColumn, TextColumn

from ..engine import ArchiveEngine
from ..errors import ArchiveError
from ..progress import ProgressEvent
from ..uploader import UploadMode, UploadState
from . import cli
from .common import fail, job_options, load_archive_config, load_job
from .logger import configure_logging


def _terminate(signum, frame) -> None:  # noqa: ANN001
    """Turn SIGTERM into SystemExit so that the dataset lock gets released."""
    _ = frame
    raise SystemExit(128 + signum)


@cli.command()
@job_options
@click.option(
    "--mode",
    type=click.Choice([m.value for m in UploadMode]),
    default=UploadMode.NORMAL.value,
    show_default=True,
    help="create-tar-local and offline only write the bundle",
)
@click.option(
    "--log-file",
    default=None,
    type=click.Path(dir_okay=False),
    help="Also append the log to this file",
)
def upload(
    task_file: str,
    mgr_file: str | None,
    overrides: tuple[str, ...],
    config_file: str | None,
    test_instance: bool,
    verbose: bool,
    mode: str,
    log_file: str | None,
) -> None:
    """Upload the new and changed files of a dataset to the archive."""
    configure_logging(verbose, log_file)
    previous = signal.signal(signal.SIGTERM, _terminate)
    try:
        _upload(task_file, mgr_file, overrides, config_file, test_instance, UploadMode(mode))
    finally:
        signal.signal(signal.SIGTERM, previous)


def _upload(
    task_file: str,
    mgr_file: str | None,
    overrides: tuple[str, ...],
    config_file: str | None,
    test_instance: bool,
    mode: UploadMode,
) -> None:
    try:
        job = load_job(task_file, mgr_file, overrides)
        config = load_archive_config(config_file, test_instance, job)
    except ArchiveError as exc:
        fail(f"upload failed: {exc}")

    t0 = time.monotonic()
    with Progress(
        TextColumn("{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
    ) as progress:
        task_id = progress.add_task(job.dataset_name, total=100)

        def on_progress(event: ProgressEvent) -> None:
            progress.update(task_id, completed=event.percent, description=event.message)

        engine = ArchiveEngine(config, mode=mode, progress_callback=on_progress)
        try:
            outcome = engine.run(job)
        except ArchiveError as exc:
            fail(f"upload failed: {exc}")
    elapsed = time.monotonic() - t0

    session = outcome.session
    diff = outcome.plan.diff
    if outcome.state == UploadState.VERIFIED:
        if diff.is_empty():
            click.echo("Nothing to upload: the archive has every file.")
            return
        click.echo(
            f"Uploaded {diff.count_new} new and {diff.count_updated} updated file(s) "
            f"in {elapsed:.1f}s; verified at {session.status_uri}."
        )
        return
    if outcome.state == UploadState.BUNDLED_LOCALLY:
        click.echo(f"Bundle written to {session.bundle_path} (mode {mode.value}, not submitted).")
        return
    kind = session.failure_kind.value if session.failure_kind else "unknown"
    fail(f"upload failed ({kind}) after {outcome.attempts} attempt(s): {session.error_message}")
