"""logsweep: rotate log directories into per-day bundles.

Files are split by modification date into three bands: fresh (kept),
archivable (packed into one bundle per day and removed) and expired
(deleted).
"""

from .boundaries import DateCutoffs, compute_cutoffs
from .config import RotationConfig, Settings
from .exceptions import (
    ArchiveCollisionError,
    ConfigurationError,
    FileSystemError,
    LogSweepError,
    NotificationError,
)
from .rotation import RotationResult, process_directory, run_rotation

__version__ = "0.3.0"

__all__ = [
    "ArchiveCollisionError",
    "ConfigurationError",
    "DateCutoffs",
    "FileSystemError",
    "LogSweepError",
    "NotificationError",
    "RotationConfig",
    "RotationResult",
    "Settings",
    "compute_cutoffs",
    "process_directory",
    "run_rotation",
]
