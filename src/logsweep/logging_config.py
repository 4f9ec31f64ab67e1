"""
Centralized Logging Configuration

Every module logs through ``logging.getLogger(__name__)`` below the single
``logsweep`` logger configured here.

Usage:
    from logsweep.logging_config import configure_logging

    configure_logging(log_level="DEBUG", log_dir=Path("/var/log/logsweep"))

Environment Variables:
    LOGSWEEP_LOG_DIR - Default log directory when file logging is enabled
    LOGSWEEP_LOG_LEVEL - Set log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
"""

from __future__ import annotations

import logging
import os
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

LOGGER_NAME = "logsweep"

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def get_default_log_dir() -> Optional[Path]:
    """Return the log directory from ``LOGSWEEP_LOG_DIR``, if set."""
    value = os.environ.get("LOGSWEEP_LOG_DIR")
    return Path(value) if value else None


def configure_logging(
    log_level: Optional[str] = None,
    log_dir: Optional[Path] = None,
    log_filename: Optional[str] = None,
    log_to_console: bool = True,
) -> logging.Logger:
    """
    Configure centralized logging for logsweep.

    Console output goes to stderr so that stdout stays reserved for the run
    summary. A file handler is added only when a log directory is given
    (directly or through ``LOGSWEEP_LOG_DIR``).

    Args:
        log_level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_dir: Directory for the log file (enables file logging)
        log_filename: Custom log filename (defaults to a timestamped name)
        log_to_console: Whether to log to stderr

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(LOGGER_NAME)

    # Clear existing handlers to avoid duplicates on repeated calls
    logger.handlers.clear()

    if log_level is None:
        log_level = os.environ.get("LOGSWEEP_LOG_LEVEL", "INFO")
    level = getattr(logging, log_level.upper(), None)
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level: {log_level}")
    logger.setLevel(level)
    logger.propagate = False

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)

    if log_to_console:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    if log_dir is None:
        log_dir = get_default_log_dir()

    if log_dir is not None:
        log_dir.mkdir(parents=True, exist_ok=True)

        if log_filename is None:
            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            log_filename = f"logsweep_{timestamp}.log"

        log_path = log_dir / log_filename

        file_handler = logging.FileHandler(log_path, mode="a", encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)
        # File gets everything; console keeps the requested level
        logger.setLevel(logging.DEBUG)

        logger.debug(f"Logging to: {log_path}")

    return logger
