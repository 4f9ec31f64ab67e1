"""Split a time-sorted catalog into expired, archivable and fresh bands."""

from __future__ import annotations

from bisect import bisect_left
from dataclasses import dataclass
from typing import Sequence, Tuple

from .boundaries import DateCutoffs
from .catalog import FileRecord


@dataclass(frozen=True)
class PartitionRanges:
    """Index ranges over a sorted catalog.

    ``expired = [0, start)``, ``archivable = [start, end)``, ``fresh = [end, total)``.
    """

    start: int
    end: int
    total: int

    @property
    def expired(self) -> range:
        return range(0, self.start)

    @property
    def archivable(self) -> range:
        return range(self.start, self.end)

    @property
    def fresh(self) -> range:
        return range(self.end, self.total)

    def split(
        self, records: Sequence[FileRecord]
    ) -> Tuple[Sequence[FileRecord], Sequence[FileRecord], Sequence[FileRecord]]:
        """Slice ``records`` into (expired, archivable, fresh)."""
        return records[: self.start], records[self.start : self.end], records[self.end :]


def _modified(record: FileRecord):
    return record.modified


def partition(records: Sequence[FileRecord], cutoffs: DateCutoffs) -> PartitionRanges:
    """Locate the band boundaries with two binary searches.

    ``records`` must already be sorted ascending by modification time; the
    searches rely on it and do not check it.
    """
    total = len(records)
    start = bisect_left(records, cutoffs.delete_from, key=_modified)

    # Nothing reaches the delete boundary: no archivable slice to search.
    if start == total:
        return PartitionRanges(start=total, end=total, total=total)

    end = bisect_left(records, cutoffs.archive_from, lo=start, key=_modified)
    return PartitionRanges(start=start, end=end, total=total)
