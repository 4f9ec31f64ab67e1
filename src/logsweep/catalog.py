"""File catalog for a single directory pass."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import List

from .exceptions import FileSystemError

logger = logging.getLogger(__name__)

# Extensions of every bundle format logsweep can write. Files carrying one of
# these are never catalogued, whichever codec the current run uses.
BUNDLE_EXTENSIONS = frozenset({".zip", ".tar"})


@dataclass(frozen=True)
class FileRecord:
    path: Path
    name: str
    modified: datetime
    size: int = 0

    @property
    def day(self):
        """Local calendar day of the modification time."""
        return self.modified.date()

    @classmethod
    def from_stat(cls, path: Path, stat: os.stat_result) -> "FileRecord":
        return cls(
            path=path,
            name=path.name,
            modified=datetime.fromtimestamp(stat.st_mtime).astimezone(),
            size=stat.st_size,
        )


def is_bundle(name: str) -> bool:
    """True when ``name`` carries a bundle extension."""
    return Path(name).suffix.lower() in BUNDLE_EXTENSIONS


def list_files(directory: Path) -> List[FileRecord]:
    """List regular files in ``directory`` sorted ascending by modification time.

    Bundles are excluded. Entries are pre-ordered by name so that the stable
    sort keeps ties deterministic.

    Raises:
        FileSystemError: if the directory cannot be listed or an entry cannot be statted
    """
    records: List[FileRecord] = []
    try:
        with os.scandir(directory) as entries:
            for entry in sorted(entries, key=lambda e: e.name):
                if not entry.is_file(follow_symlinks=False):
                    continue
                if is_bundle(entry.name):
                    continue
                records.append(FileRecord.from_stat(Path(entry.path), entry.stat()))
    except OSError as e:
        raise FileSystemError(f"Failed to list files in {directory}: {e}", path=str(directory)) from e

    records.sort(key=lambda r: r.modified)
    logger.debug(f"[Catalog] {directory}: {len(records)} file(s)")
    return records


def list_subdirectories(directory: Path) -> List[Path]:
    """Immediate subdirectories of ``directory``, sorted by name.

    Symlinked directories are not followed.
    """
    try:
        with os.scandir(directory) as entries:
            return sorted(
                Path(entry.path)
                for entry in entries
                if entry.is_dir(follow_symlinks=False)
            )
    except OSError as e:
        raise FileSystemError(
            f"Failed to list subdirectories of {directory}: {e}", path=str(directory)
        ) from e
