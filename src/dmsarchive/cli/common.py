"""Options and helpers shared by the archive commands."""

from __future__ import annotations

from collections.abc import Callable
from typing import NoReturn

import click

from ..config import DEFAULT_WORK_DIR, ArchiveConfig, load_config
from ..params import JobParameters, job_parameters_from_maps, load_parameter_file


def job_options(func: Callable) -> Callable:
    """Add the options selecting a job and the archive configuration."""
    options = [
        click.option(
            "-t",
            "--task",
            "task_file",
            required=True,
            type=click.Path(exists=True, dir_okay=False),
            help="YAML file with the task parameters",
        ),
        click.option(
            "-m",
            "--mgr",
            "mgr_file",
            default=None,
            type=click.Path(exists=True, dir_okay=False),
            help="YAML file with the manager parameters",
        ),
        click.option(
            "-p",
            "--param",
            "overrides",
            multiple=True,
            metavar="KEY=VALUE",
            help="Override a task parameter (repeatable)",
        ),
        click.option(
            "-c",
            "--config",
            "config_file",
            default=None,
            type=click.Path(exists=True, dir_okay=False),
            help="YAML archive configuration",
        ),
        click.option("--test-instance", is_flag=True, help="Use the test archive hosts"),
        click.option("-v", "--verbose", is_flag=True, help="Verbose mode"),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def fail(message: str) -> NoReturn:
    """Print message on stderr and exit with status 1."""
    click.echo(message, err=True)
    raise SystemExit(1)


def parse_overrides(overrides: tuple[str, ...]) -> dict[str, str]:
    result: dict[str, str] = {}
    for item in overrides:
        key, sep, value = item.partition("=")
        if not sep or not key.strip():
            raise click.BadParameter(f"expected KEY=VALUE, got {item!r}", param_hint="--param")
        result[key.strip()] = value.strip()
    return result


def load_job(task_file: str, mgr_file: str | None, overrides: tuple[str, ...]) -> JobParameters:
    task_params = load_parameter_file(task_file)
    task_params.update(parse_overrides(overrides))
    mgr_params = load_parameter_file(mgr_file) if mgr_file else {}
    return job_parameters_from_maps(task_params, mgr_params)


def load_archive_config(
    config_file: str | None,
    test_instance: bool,
    job: JobParameters | None = None,
) -> ArchiveConfig:
    """
    Load the configuration, applying command line and job overrides.

    The manager working directory of the job is used unless the
    configuration file sets its own work_dir.
    """
    config = load_config(config_file)
    if test_instance:
        config = config.replace(use_test_instance=True)
    if job is not None and job.work_dir is not None and config.work_dir == DEFAULT_WORK_DIR:
        config = config.replace(work_dir=str(job.work_dir))
    return config
