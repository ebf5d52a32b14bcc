"""Package the upload set into a single tar file."""

from __future__ import annotations

import io
import logging
import os
import tarfile
import time
from pathlib import Path
from tempfile import TemporaryDirectory
from typing import Final

from .metadata import MetadataBundle
from .progress import Phase, ProgressReporter

METADATA_MEMBER: Final[str] = "metadata.txt"
DATA_PREFIX: Final[str] = "data"

log = logging.getLogger("dmsarchive/bundle")


def bundle_file_name(lock_key: str) -> str:
    return f"{lock_key}.tar"


def write_bundle(
    bundle: MetadataBundle,
    dest: Path,
    *,
    progress: ProgressReporter | None = None,
) -> Path:
    """
    Write the transport tar for bundle to dest.

    The tar holds metadata.txt first, then each file at
    data/<path>. The file is written in a temporary directory next
    to dest and atomically moved in place.

    Raises:
        ValueError: a file entry has no local path.
    """
    dest.parent.mkdir(parents=True, exist_ok=True)
    total = bundle.total_bytes
    done = 0
    log.info("writing bundle %s (%d files, %d bytes)... start", dest, len(bundle.files), total)
    with TemporaryDirectory(dir=dest.parent) as tmp_dir:
        tmp_file = Path(tmp_dir) / dest.name
        with tarfile.open(tmp_file, "w") as tar:
            payload = bundle.to_json().encode("utf-8")
            info = tarfile.TarInfo(METADATA_MEMBER)
            info.size = len(payload)
            info.mtime = int(time.time())
            tar.addfile(info, io.BytesIO(payload))
            for entry in bundle.files:
                if entry.local_path is None:
                    raise ValueError(f"no local path for {entry.path}")
                tar.add(entry.local_path, arcname=f"{DATA_PREFIX}/{entry.path}", recursive=False)
                done += entry.size_in_bytes
                if progress is not None:
                    percent = 100.0 * done / total if total else 100.0
                    progress.report(
                        Phase.BUNDLING,
                        percent,
                        f"Bundling: {entry.file_name}",
                        bytes_total=total,
                    )
        os.replace(tmp_file, dest)
    log.info("writing bundle %s... ok", dest)
    return dest


def read_bundle_metadata(path: Path) -> MetadataBundle:
    """Return the MetadataBundle stored inside a transport tar."""
    with tarfile.open(path, "r") as tar:
        member = tar.extractfile(METADATA_MEMBER)
        if member is None:
            raise ValueError(f"{path} has no {METADATA_MEMBER}")
        return MetadataBundle.from_json(member.read().decode("utf-8"))
