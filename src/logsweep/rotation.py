"""Directory rotation: delete expired files, bundle archivable ones, recurse.

The walk is single-threaded and depth-first. Each directory is fully
processed (delete, then archive) before its subdirectories are visited. The
tool assumes it has the subtree to itself for the duration of a run; no
locks are taken, so files added or removed by other processes mid-run may
be missed or reported as errors.
"""

from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Sequence

from .archive_formats import ArchiveFormat, get_archive_format
from .boundaries import DateCutoffs, compute_cutoffs, local_now
from .bundler import archive_files, group_by_day, remove_stale_bundles, stale_temporary_bundles
from .catalog import FileRecord, list_files, list_subdirectories
from .config import RotationConfig
from .exceptions import ConfigurationError, FileSystemError
from .partition import partition

logger = logging.getLogger(__name__)


@dataclass
class RotationResult:
    """Summary of one rotation run."""

    cutoffs: Optional[DateCutoffs] = None
    archived: int = 0  # files moved into bundles
    deleted: int = 0
    bundles: int = 0
    directories: int = 0
    elapsed: float = 0.0
    dry_run: bool = False

    def merge(self, other: "RotationResult") -> None:
        self.archived += other.archived
        self.deleted += other.deleted
        self.bundles += other.bundles
        self.directories += other.directories

    def to_dict(self) -> dict:
        return {
            "cutoffs": self.cutoffs.to_dict() if self.cutoffs else None,
            "archived": self.archived,
            "deleted": self.deleted,
            "bundles": self.bundles,
            "directories": self.directories,
            "elapsed": round(self.elapsed, 3),
            "dry_run": self.dry_run,
        }


def delete_expired(records: Sequence[FileRecord]) -> int:
    """Permanently remove every expired file. Returns the number removed."""
    for record in records:
        try:
            record.path.unlink()
        except OSError as e:
            raise FileSystemError(f"Failed to delete {record.path}: {e}", path=str(record.path)) from e
        logger.debug(f"[Rotation] Deleted {record.path}")
    return len(records)


def _process_files(
    directory: Path, cutoffs: DateCutoffs, archive_format: ArchiveFormat, dry_run: bool
) -> RotationResult:
    result = RotationResult(directories=1, dry_run=dry_run)

    if dry_run:
        for leftover in stale_temporary_bundles(directory):
            logger.info(f"[DRY-RUN] Would remove incomplete bundle {leftover}")
    else:
        remove_stale_bundles(directory)

    records = list_files(directory)
    if not records:
        return result

    expired, archivable, _fresh = partition(records, cutoffs).split(records)

    if dry_run:
        for record in expired:
            logger.info(f"[DRY-RUN] Would delete {record.path}")
        groups = group_by_day(archivable)
        for group in groups:
            logger.info(
                f"[DRY-RUN] Would archive {len(group)} file(s) from {directory} dated {group.day:%d-%m-%Y}"
            )
        result.deleted = len(expired)
        result.archived = len(archivable)
        result.bundles = len(groups)
        return result

    # Deletion first, over the same catalog; the directory is not re-read.
    result.deleted = delete_expired(expired)
    result.bundles = len(group_by_day(archivable))
    result.archived = archive_files(archivable, directory, archive_format)

    if result.deleted or result.archived:
        logger.info(
            f"[Rotation] {directory}: deleted {result.deleted}, archived {result.archived} "
            f"into {result.bundles} bundle(s)"
        )
    return result


def process_directory(
    directory: Path,
    cutoffs: DateCutoffs,
    archive_format: ArchiveFormat,
    dry_run: bool = False,
) -> RotationResult:
    """Rotate ``directory`` and every directory below it.

    Pre-order: a directory's own files are handled before its
    subdirectories. Canonical paths already visited are skipped, so a
    directory reachable twice is processed once.

    Raises:
        FileSystemError: on the first filesystem failure; the run stops there
    """
    total = RotationResult(cutoffs=cutoffs, dry_run=dry_run)
    visited: set = set()
    stack: List[Path] = [directory]

    while stack:
        current = stack.pop()
        canonical = os.path.realpath(current)
        if canonical in visited:
            logger.warning(f"[Rotation] Skipping already visited directory {current}")
            continue
        visited.add(canonical)

        total.merge(_process_files(current, cutoffs, archive_format, dry_run))

        # Reversed so the stack pops subdirectories in name order
        stack.extend(reversed(list_subdirectories(current)))

    return total


def run_rotation(config: RotationConfig, now: Optional[datetime] = None) -> RotationResult:
    """Run a full rotation for ``config``.

    ``now`` is captured once here (unless given) and used for every cutoff.

    Raises:
        ConfigurationError: if the directory does not exist
        FileSystemError: on the first filesystem failure
    """
    started = time.monotonic()
    directory = config.directory.expanduser()
    if not directory.is_dir():
        raise ConfigurationError(f"Directory {directory} does not exist")
    directory = directory.resolve()

    if now is None:
        now = local_now()
    cutoffs = compute_cutoffs(now, config.archive_days, config.delete_days)
    archive_format = get_archive_format(config.archive_format)

    logger.info(
        f"[Rotation] Starting in {directory}: delete before {cutoffs.delete_from:%d.%m.%Y}, "
        f"archive before {cutoffs.archive_from:%d.%m.%Y} ({archive_format.name})"
        + (" [dry run]" if config.dry_run else "")
    )

    result = process_directory(directory, cutoffs, archive_format, dry_run=config.dry_run)
    result.elapsed = time.monotonic() - started

    logger.info(
        f"[Rotation] Done in {result.elapsed:.2f}s: {result.archived} archived, "
        f"{result.deleted} deleted, {result.directories} director(ies)"
    )
    return result
