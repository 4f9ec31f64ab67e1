"""Custom exceptions for logsweep."""

from typing import Optional


class LogSweepError(Exception):
    """Base exception for all logsweep errors."""

    pass


class ConfigurationError(LogSweepError):
    """Raised for invalid run configuration, before any filesystem mutation."""

    pass


class FileSystemError(LogSweepError):
    """Exception raised when a filesystem operation fails during a run."""

    def __init__(self, message: str, path: Optional[str] = None):
        """
        Initialize filesystem error.

        Args:
            message: Error message
            path: Optional path the failing operation was working on
        """
        super().__init__(message)
        self.path = path


class ArchiveCollisionError(FileSystemError):
    """Raised when a bundle already holds a member with the same name."""

    pass


class NotificationError(LogSweepError):
    """Raised for notification misconfiguration (e.g. malformed proxy URL)."""

    pass
