"""Zip archiving of an assembled project tree."""

from __future__ import annotations

import os
import tempfile
import zipfile
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

from qastarter.errors import ArchiveError
from qastarter.models import FileMetadata, FileType
from qastarter.utils import get_logger

logger = get_logger(__name__)

# Zip's earliest representable timestamp; keeps archives reproducible.
FIXED_DATE_TIME = (1980, 1, 1, 0, 0, 0)

_FILE_ATTRS = 0o100644 << 16
_DIR_ATTRS = (0o040755 << 16) | 0x10


@dataclass(frozen=True)
class ArchiveResult:
    path: Path
    compressed_size: int
    file_count: int


def archive(
    output_root: Path,
    entries: Sequence[FileMetadata],
    archive_path: Path,
    compression_level: int = 9,
) -> ArchiveResult:
    """Write *entries* (scan order) from *output_root* into a zip at *archive_path*.

    The archive is built in a temporary sibling file and renamed into place,
    so a reader never sees a half-written archive.

    Raises:
        ArchiveError: On any filesystem or zip failure.  The temporary file
            is removed before raising.
    """
    archive_path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(
        prefix=f".{archive_path.name}.", suffix=".tmp", dir=archive_path.parent
    )
    os.close(fd)
    tmp_path = Path(tmp_name)

    file_count = 0
    try:
        with zipfile.ZipFile(
            tmp_path,
            "w",
            compression=zipfile.ZIP_DEFLATED,
            compresslevel=compression_level,
        ) as zf:
            for entry in entries:
                if entry.type is FileType.DIRECTORY:
                    info = zipfile.ZipInfo(f"{entry.path}/", date_time=FIXED_DATE_TIME)
                    info.external_attr = _DIR_ATTRS
                    zf.writestr(info, b"")
                    continue
                source = output_root / entry.path
                info = zipfile.ZipInfo(entry.path, date_time=FIXED_DATE_TIME)
                info.compress_type = zipfile.ZIP_DEFLATED
                mode = source.stat().st_mode & 0o777
                info.external_attr = (0o100000 | mode) << 16 if mode else _FILE_ATTRS
                zf.writestr(info, source.read_bytes(), compresslevel=compression_level)
                file_count += 1
        os.replace(tmp_path, archive_path)
    except (OSError, zipfile.BadZipFile, zipfile.LargeZipFile) as exc:
        tmp_path.unlink(missing_ok=True)
        raise ArchiveError(f"Failed to write archive {archive_path}: {exc}") from exc

    size = archive_path.stat().st_size
    logger.debug("Archived %d files into %s (%d bytes)", file_count, archive_path, size)
    return ArchiveResult(path=archive_path, compressed_size=size, file_count=file_count)
