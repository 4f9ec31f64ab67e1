"""Age-band cutoffs for a rotation run.

Both cutoffs are local midnights derived from a single captured ``now``:

- files modified before ``delete_from`` are expired,
- files modified before ``archive_from`` (and not expired) are archivable,
- everything else is fresh.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from .exceptions import ConfigurationError


@dataclass(frozen=True)
class DateCutoffs:
    """Pair of local-midnight boundaries; ``archive_from >= delete_from``."""

    archive_from: datetime
    delete_from: datetime

    def to_dict(self) -> dict:
        return {
            "archive_from": self.archive_from.isoformat(),
            "delete_from": self.delete_from.isoformat(),
        }


def local_now() -> datetime:
    """Current time as a timezone-aware local datetime."""
    return datetime.now().astimezone()


def normalize_date(moment: datetime) -> datetime:
    """Zero the time of day, keeping date and timezone."""
    return moment.replace(hour=0, minute=0, second=0, microsecond=0)


def _days_before(now: datetime, days: int) -> datetime:
    # Shift on wall-clock time, then attach ``now``'s zone so a DST change
    # inside the window does not move the boundary off midnight.
    wall_clock = normalize_date(now.replace(tzinfo=None) - timedelta(days=days))
    if now.tzinfo is None:
        return wall_clock
    if isinstance(now.tzinfo, timezone) and now.utcoffset() == now.astimezone().utcoffset():
        # Fixed offset from astimezone(): the system zone picks the offset
        # in effect on that date.
        return wall_clock.astimezone()
    return wall_clock.replace(tzinfo=now.tzinfo)


def validate_days(archive_days: int, delete_days: int) -> None:
    """Reject band settings that cannot produce ordered cutoffs.

    Raises:
        ConfigurationError: if either value is negative or ``delete_days < archive_days``
    """
    if archive_days < 0 or delete_days < 0:
        raise ConfigurationError("Amount of days must not be negative")
    if delete_days < archive_days:
        raise ConfigurationError(
            "Amount of days for archivation should be less than amount of days for deletion"
        )


def compute_cutoffs(now: datetime, archive_days: int, delete_days: int) -> DateCutoffs:
    """Compute the archive and delete cutoffs for one run.

    ``archive_from`` is taken one day later than the naive threshold: the
    partition search selects files strictly before the boundary, so a file
    modified exactly ``archive_days`` calendar days ago still lands in the
    archivable band.

    Args:
        now: The single captured instant for this run
        archive_days: Archive files at least this many days old
        delete_days: Delete files older than this many days

    Returns:
        DateCutoffs for the run
    """
    validate_days(archive_days, delete_days)
    return DateCutoffs(
        archive_from=_days_before(now, archive_days - 1),
        delete_from=_days_before(now, delete_days),
    )
