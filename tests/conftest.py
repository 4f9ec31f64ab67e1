"""Pytest configuration and fixtures for logsweep tests"""

import logging
import os
from datetime import datetime, timedelta
from pathlib import Path
from typing import Callable, Optional

import pytest

from logsweep.boundaries import local_now


def days_ago(now: datetime, days: int, hour: int = 12) -> datetime:
    """Local time ``days`` calendar days before ``now`` at ``hour``:00."""
    wall_clock = now.replace(tzinfo=None) - timedelta(days=days)
    return wall_clock.replace(hour=hour, minute=0, second=0, microsecond=0).astimezone()


def set_mtime(path: Path, moment: datetime) -> None:
    ts = moment.timestamp()
    os.utime(path, (ts, ts))


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
    """Clear LOGSWEEP_* variables and run from an empty cwd (no stray .env)."""
    for key in list(os.environ.keys()):
        if key.startswith("LOGSWEEP_"):
            monkeypatch.delenv(key, raising=False)
    workdir = tmp_path / "cwd"
    workdir.mkdir()
    monkeypatch.chdir(workdir)
    yield monkeypatch


@pytest.fixture(autouse=True)
def reset_logsweep_logger():
    """Undo configure_logging() between tests so caplog keeps working."""
    yield
    logger = logging.getLogger("logsweep")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def now() -> datetime:
    """Fixed local 'now' for deterministic cutoffs."""
    return datetime(2026, 10, 18, 15, 30).astimezone()


@pytest.fixture
def log_dir(tmp_path) -> Path:
    directory = tmp_path / "logs"
    directory.mkdir()
    return directory


@pytest.fixture
def make_file(now) -> Callable[..., Path]:
    """Factory creating a file modified ``days`` days before ``now``."""

    def _make(
        directory: Path,
        name: str,
        days: int,
        content: Optional[bytes] = None,
        hour: int = 12,
        reference: Optional[datetime] = None,
    ) -> Path:
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / name
        path.write_bytes(content if content is not None else f"contents of {name}\n".encode())
        set_mtime(path, days_ago(reference or now, days, hour=hour))
        return path

    return _make


@pytest.fixture
def real_now() -> datetime:
    return local_now()


@pytest.fixture
def moment(now) -> Callable[..., datetime]:
    """``moment(days, hour=12)``: local datetime ``days`` days before ``now``."""

    def _moment(days: int, hour: int = 12) -> datetime:
        return days_ago(now, days, hour=hour)

    return _moment
