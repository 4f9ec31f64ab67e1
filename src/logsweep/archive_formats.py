"""Archive formats used for day bundles.

Both formats write flat bundles: members are stored under their bare file
name, never under a directory prefix.
"""

from __future__ import annotations

import logging
import os
import shutil
import tarfile
import zipfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import BinaryIO, Dict, List, Type

from .exceptions import ConfigurationError, FileSystemError

logger = logging.getLogger(__name__)


class ArchiveWriter(ABC):
    """Writes one bundle file; durable once ``close()`` returns."""

    def __init__(self, path: Path) -> None:
        self.path = path
        self._file: BinaryIO = open(path, "wb")

    @abstractmethod
    def add(self, source: Path, arcname: str) -> None:
        """Store ``source`` under ``arcname``."""

    @abstractmethod
    def copy_from(self, bundle: Path) -> None:
        """Copy every member of an existing bundle into this one."""

    @abstractmethod
    def _finish(self) -> None:
        """Write the format trailer."""

    def close(self) -> None:
        try:
            self._finish()
            self._file.flush()
            os.fsync(self._file.fileno())
        finally:
            self._file.close()

    def abort(self) -> None:
        """Close without guaranteeing a valid bundle."""
        try:
            self._finish()
        except Exception as e:
            logger.debug(f"[Bundle] Discarding incomplete {self.path.name}: {e}")
        finally:
            self._file.close()

    def __enter__(self) -> "ArchiveWriter":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is None:
            self.close()
        else:
            self.abort()


class ArchiveFormat(ABC):
    name: str = ""
    extension: str = ""

    @abstractmethod
    def open_writer(self, path: Path) -> ArchiveWriter:
        ...

    @abstractmethod
    def member_names(self, bundle: Path) -> List[str]:
        ...


class _ZipWriter(ArchiveWriter):
    def __init__(self, path: Path) -> None:
        super().__init__(path)
        # Pre-1980 mtimes are clamped to 1980-01-01 instead of rejected.
        self._zip = zipfile.ZipFile(
            self._file, mode="w", compression=zipfile.ZIP_DEFLATED, strict_timestamps=False
        )

    def add(self, source: Path, arcname: str) -> None:
        self._zip.write(source, arcname=arcname)

    def copy_from(self, bundle: Path) -> None:
        with zipfile.ZipFile(bundle) as existing:
            for info in existing.infolist():
                with existing.open(info) as src, self._zip.open(
                    info, mode="w", force_zip64=info.file_size > zipfile.ZIP64_LIMIT
                ) as dst:
                    shutil.copyfileobj(src, dst)

    def _finish(self) -> None:
        self._zip.close()


class ZipFormat(ArchiveFormat):
    """Zip bundles compressed with DEFLATE."""

    name = "zip"
    extension = "zip"

    def open_writer(self, path: Path) -> ArchiveWriter:
        return _ZipWriter(path)

    def member_names(self, bundle: Path) -> List[str]:
        try:
            with zipfile.ZipFile(bundle) as existing:
                return existing.namelist()
        except (OSError, zipfile.BadZipFile) as e:
            raise FileSystemError(f"Cannot read bundle {bundle}: {e}", path=str(bundle)) from e


class _TarWriter(ArchiveWriter):
    def __init__(self, path: Path) -> None:
        super().__init__(path)
        self._tar = tarfile.open(fileobj=self._file, mode="w", format=tarfile.PAX_FORMAT)

    def add(self, source: Path, arcname: str) -> None:
        self._tar.add(str(source), arcname=arcname, recursive=False)

    def copy_from(self, bundle: Path) -> None:
        with tarfile.open(bundle, mode="r:") as existing:
            for member in existing:
                if member.isfile():
                    self._tar.addfile(member, existing.extractfile(member))
                else:
                    self._tar.addfile(member)

    def _finish(self) -> None:
        self._tar.close()


class TarFormat(ArchiveFormat):
    """Uncompressed tar bundles."""

    name = "tar"
    extension = "tar"

    def open_writer(self, path: Path) -> ArchiveWriter:
        return _TarWriter(path)

    def member_names(self, bundle: Path) -> List[str]:
        try:
            with tarfile.open(bundle, mode="r:") as existing:
                return existing.getnames()
        except (OSError, tarfile.TarError) as e:
            raise FileSystemError(f"Cannot read bundle {bundle}: {e}", path=str(bundle)) from e


ARCHIVE_FORMATS: Dict[str, Type[ArchiveFormat]] = {
    ZipFormat.name: ZipFormat,
    TarFormat.name: TarFormat,
}

DEFAULT_ARCHIVE_FORMAT = ZipFormat.name


def get_archive_format(name: str) -> ArchiveFormat:
    """Resolve a format by name (``zip`` or ``tar``)."""
    try:
        return ARCHIVE_FORMATS[name.lower()]()
    except KeyError:
        raise ConfigurationError(
            f"Unknown archive format '{name}' (expected one of: {', '.join(sorted(ARCHIVE_FORMATS))})"
        ) from None
