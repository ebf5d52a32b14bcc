"""Job parameters supplied by the host scheduler as flat string maps."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Final

import yaml
from dateutil import parser as dateparser

from .errors import ConfigurationError
from .lock import dataset_lock_key
from .metadata import DatasetIdentity

ARCHIVE_STEP_TOOL: Final[str] = "datasetarchive"
CLIENT_PERSPECTIVE: Final[str] = "client"
UNKNOWN_OPERATOR: Final[str] = "Unknown_Operator"

log = logging.getLogger("dmsarchive/params")


class ArchiveMode(str, Enum):
    """Whether the whole dataset or one output sub-folder gets archived."""

    ARCHIVE = "archive"
    UPDATE = "update"


@dataclass(frozen=True, kw_only=True)
class JobParameters:
    """
    Parameters of one archive job.

    Attributes:
        job: the capture job number
        dataset_name: the dataset name
        dataset_id: the dataset ID (0 when not supplied)
        instrument_name: the instrument name
        created: the dataset creation date
        eus_instrument_id: EUS instrument ID, may be empty
        eus_proposal_id: EUS proposal ID, may be empty
        eus_operator_id: EUS ID of the operator, 0 when unknown
        operator_username: the operator, named in failure reports
        base_dir: the dataset directory
        mode: archive the whole dataset or update a sub-folder
        subfolder: the sub-folder scanned in update mode, empty to scan
            the whole dataset
        recurse: scan sub-directories
        ignore_max_file_limit: disable the file count ceiling
        transfer_dir: where to drop a copy of the metadata, if any
        work_dir: manager working directory, if any
        manager_name: the name of the manager running the job
    """

    job: int
    dataset_name: str
    dataset_id: int
    instrument_name: str
    created: datetime
    eus_instrument_id: str
    eus_proposal_id: str
    eus_operator_id: int
    operator_username: str = UNKNOWN_OPERATOR
    base_dir: Path
    mode: ArchiveMode = ArchiveMode.ARCHIVE
    subfolder: str = ""
    recurse: bool = True
    ignore_max_file_limit: bool = False
    transfer_dir: Path | None = None
    work_dir: Path | None = None
    manager_name: str = ""

    @property
    def source_dir(self) -> Path:
        """The directory to scan."""
        return self.base_dir / self.subfolder if self.subfolder else self.base_dir

    @property
    def lock_key(self) -> str:
        return dataset_lock_key(self.dataset_id, self.dataset_name)

    def identity(self) -> DatasetIdentity:
        return DatasetIdentity(
            name=self.dataset_name,
            dataset_id=self.dataset_id,
            instrument_name=self.instrument_name,
            created=self.created,
            eus_instrument_id=self.eus_instrument_id,
            eus_proposal_id=self.eus_proposal_id,
            eus_operator_id=self.eus_operator_id,
        )


def _get(params: Mapping[str, str], key: str, default: str = "") -> str:
    value = params.get(key)
    if value is None:
        return default
    return str(value).strip() or default


def _required(params: Mapping[str, str], key: str) -> str:
    value = _get(params, key)
    if not value:
        raise ConfigurationError(f"missing required parameter: {key}")
    return value


def _int(params: Mapping[str, str], key: str, default: int = 0) -> int:
    value = _get(params, key)
    if not value:
        return default
    try:
        return int(value)
    except ValueError as exc:
        raise ConfigurationError(f"parameter {key} is not an integer: {value!r}") from exc


def _flag(params: Mapping[str, str], key: str, default: bool) -> bool:
    value = _get(params, key).lower()
    if not value:
        return default
    if value in ("true", "yes", "1", "on"):
        return True
    if value in ("false", "no", "0", "off"):
        return False
    raise ConfigurationError(f"parameter {key} is not a boolean: {value!r}")


def _created(params: Mapping[str, str]) -> datetime:
    value = _get(params, "Created")
    if not value:
        log.warning("no dataset creation date; using the current time")
        return datetime.now(timezone.utc)
    try:
        return dateparser.parse(value)
    except (ValueError, OverflowError) as exc:
        raise ConfigurationError(f"invalid creation date {value!r}: {exc}") from exc


def job_parameters_from_maps(
    task_params: Mapping[str, str],
    mgr_params: Mapping[str, str] | None = None,
) -> JobParameters:
    """
    Convert the task and manager parameter maps into JobParameters.

    Raises:
        ConfigurationError: a required parameter is missing or a value
            cannot be parsed.
    """
    mgr_params = mgr_params or {}
    job = _int(task_params, "Job")
    if job <= 0:
        raise ConfigurationError("missing required parameter: Job")
    folder = _required(task_params, "Folder")
    perspective = _get(mgr_params, "perspective", CLIENT_PERSPECTIVE).lower()
    if perspective == CLIENT_PERSPECTIVE:
        storage_vol = _get(task_params, "Storage_Vol_External")
    else:
        storage_vol = _get(task_params, "Storage_Vol")
    base_dir = Path(storage_vol) / _get(task_params, "Storage_Path") / folder

    step_tool = _get(task_params, "StepTool", ARCHIVE_STEP_TOOL).lower()
    mode = ArchiveMode.ARCHIVE if step_tool == ARCHIVE_STEP_TOOL else ArchiveMode.UPDATE
    subfolder = ""
    if mode == ArchiveMode.UPDATE:
        subfolder = _get(task_params, "OutputFolderName")
        if not subfolder:
            log.warning(
                "step tool %s has no OutputFolderName; archiving the whole dataset", step_tool
            )

    transfer = _get(task_params, "TransferFolderPath")
    work_dir = _get(mgr_params, "workdir")
    return JobParameters(
        job=job,
        dataset_name=_get(task_params, "Dataset", folder),
        dataset_id=_int(task_params, "Dataset_ID"),
        instrument_name=_get(task_params, "Instrument_Name"),
        created=_created(task_params),
        eus_instrument_id=_get(task_params, "EUS_Instrument_ID"),
        eus_proposal_id=_get(task_params, "EUS_Proposal_ID"),
        eus_operator_id=_int(task_params, "EUS_Operator_ID"),
        operator_username=_get(task_params, "Operator_PRN", UNKNOWN_OPERATOR),
        base_dir=base_dir,
        mode=mode,
        subfolder=subfolder,
        recurse=_flag(task_params, "MyEMSL_Recurse", True),
        ignore_max_file_limit=_flag(task_params, "IgnoreMaxFileLimit", False),
        transfer_dir=Path(transfer) if transfer else None,
        work_dir=Path(work_dir) if work_dir else None,
        manager_name=_get(mgr_params, "MgrName"),
    )


def load_parameter_file(path: str | Path) -> dict[str, str]:
    """Read a YAML (or JSON) mapping of parameter names to values."""
    path = Path(path)
    try:
        with path.open() as fp:
            data = yaml.safe_load(fp) or {}
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigurationError(f"cannot read parameters {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigurationError(f"parameters {path} must contain a mapping")
    return {str(key): "" if value is None else str(value) for key, value in data.items()}
