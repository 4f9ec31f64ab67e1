"""Same-day grouping and bundle writing for the archivable band.

A bundle is committed in two phases: members are written to a hidden
temporary bundle next to the final one, which is fsynced and atomically
renamed into place. Original files are removed only after that rename, so a
crash mid-group leaves the originals (and any earlier bundle) intact. The
temporary bundle it may leave behind is removed on the next pass over that
directory.
"""

from __future__ import annotations

import glob
import logging
import os
import tempfile
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import List, Sequence

from .archive_formats import ArchiveFormat
from .catalog import BUNDLE_EXTENSIONS, FileRecord
from .exceptions import ArchiveCollisionError, FileSystemError

logger = logging.getLogger(__name__)


@dataclass
class DayGroup:
    """Contiguous run of records modified on the same local calendar day."""

    day: date
    records: List[FileRecord] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.records)


def group_by_day(records: Sequence[FileRecord]) -> List[DayGroup]:
    """Group time-sorted records into maximal same-day runs.

    Empty input yields no groups.
    """
    groups: List[DayGroup] = []
    if not records:
        return groups

    current = DayGroup(day=records[0].day)
    for record in records:
        if record.day == current.day:
            current.records.append(record)
            continue

        groups.append(current)
        current = DayGroup(day=record.day, records=[record])

    # Last day
    groups.append(current)
    return groups


def bundle_name(directory: Path, day: date, archive_format: ArchiveFormat) -> str:
    """``{directoryName}_{DD-MM-YYYY}.{ext}``"""
    return f"{directory.name}_{day.strftime('%d-%m-%Y')}.{archive_format.extension}"


def write_bundle(group: DayGroup, directory: Path, archive_format: ArchiveFormat) -> Path:
    """Write ``group`` into its day bundle and return the bundle path.

    If the bundle already exists (an earlier run on the same day), its members
    are carried over and the new files appended. A new file whose name is
    already stored in that bundle raises ``ArchiveCollisionError`` and leaves
    everything untouched.

    Originals are not removed here.
    """
    target = directory / bundle_name(directory, group.day, archive_format)

    existing_names: set = set()
    if target.exists():
        existing_names = set(archive_format.member_names(target))

        clashes = sorted(r.name for r in group.records if r.name in existing_names)
        if clashes:
            raise ArchiveCollisionError(
                f"Bundle {target.name} already contains {', '.join(clashes)}",
                path=str(target),
            )
        logger.info(
            f"[Bundle] Appending {len(group)} file(s) to existing {target.name} "
            f"({len(existing_names)} member(s))"
        )

    # Hidden name with the bundle extension, so a leftover is never catalogued.
    try:
        fd, tmp_name = tempfile.mkstemp(
            dir=directory, prefix=f".{target.stem}.", suffix=f".{archive_format.extension}"
        )
        os.close(fd)
    except OSError as e:
        raise FileSystemError(f"Cannot create bundle in {directory}: {e}", path=str(directory)) from e
    tmp_path = Path(tmp_name)

    try:
        with archive_format.open_writer(tmp_path) as writer:
            if existing_names:
                writer.copy_from(target)
            for record in group.records:
                writer.add(record.path, arcname=record.name)
        os.replace(tmp_path, target)
    except BaseException as e:
        tmp_path.unlink(missing_ok=True)
        if isinstance(e, OSError):
            raise FileSystemError(f"Failed to write bundle {target}: {e}", path=str(target)) from e
        raise

    logger.debug(f"[Bundle] Wrote {target} ({len(group)} file(s))")
    return target


def archive_files(
    records: Sequence[FileRecord], directory: Path, archive_format: ArchiveFormat
) -> int:
    """Bundle the archivable band of ``directory`` one day at a time.

    Args:
        records: Archivable records, sorted by modification time, bundles excluded
        directory: Directory the records live in (bundles are written here)
        archive_format: Format used for new bundles

    Returns:
        Number of files moved into bundles
    """
    archived = 0
    for group in group_by_day(records):
        bundle = write_bundle(group, directory, archive_format)

        for record in group.records:
            try:
                record.path.unlink()
            except OSError as e:
                raise FileSystemError(
                    f"Bundled {record.path} into {bundle.name} but failed to remove it: {e}",
                    path=str(record.path),
                ) from e

        archived += len(group)
        logger.info(f"[Bundle] {bundle.name}: archived {len(group)} file(s)")

    return archived


def stale_temporary_bundles(directory: Path) -> List[Path]:
    """Hidden temporary bundles left in ``directory`` by an interrupted run."""
    prefix = f".{glob.escape(directory.name)}_??-??-????."
    try:
        candidates = [
            path
            for extension in sorted(BUNDLE_EXTENSIONS)
            for path in directory.glob(f"{prefix}*{extension}")
        ]
        return sorted(p for p in candidates if p.is_file() and not p.is_symlink())
    except OSError as e:
        raise FileSystemError(f"Cannot list {directory}: {e}", path=str(directory)) from e


def remove_stale_bundles(directory: Path) -> int:
    """Delete temporary bundles from an interrupted run. Returns the number removed.

    Their originals were never deleted, so nothing is lost.
    """
    stale = stale_temporary_bundles(directory)
    for path in stale:
        try:
            path.unlink()
        except OSError as e:
            raise FileSystemError(f"Failed to remove stale bundle {path}: {e}", path=str(path)) from e
        logger.warning(f"[Bundle] Removed incomplete bundle {path} left by an interrupted run")
    return len(stale)
