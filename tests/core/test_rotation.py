"""End-to-end tests for directory rotation."""

import os
import zipfile
from pathlib import Path

import pytest

from logsweep.archive_formats import ZipFormat
from logsweep.boundaries import compute_cutoffs
from logsweep.config import RotationConfig
from logsweep.exceptions import ConfigurationError, FileSystemError
from logsweep.rotation import RotationResult, delete_expired, process_directory, run_rotation
from logsweep.catalog import list_files


def snapshot(root: Path) -> dict:
    """Map of relative path -> (bytes, mtime) for every file under root."""
    return {
        str(p.relative_to(root)): (p.read_bytes(), p.stat().st_mtime)
        for p in sorted(root.rglob("*"))
        if p.is_file()
    }


def bundle_members(path: Path) -> dict:
    with zipfile.ZipFile(path) as bundle:
        return {name: bundle.read(name) for name in bundle.namelist()}


@pytest.fixture
def rotate(now):
    def _rotate(directory: Path, archive: int = 7, delete: int = 14, **kwargs) -> RotationResult:
        config = RotationConfig(
            directory=directory, archive_days=archive, delete_days=delete, **kwargs
        )
        return run_rotation(config, now=now)

    return _rotate


class TestRunRotation:
    def test_ten_five_one_days(self, log_dir, make_file, rotate):
        """archive=7, delete=14: the 10-day file is archived, the rest stay."""
        make_file(log_dir, "ten.log", 10, b"ten")
        make_file(log_dir, "five.log", 5, b"five")
        make_file(log_dir, "one.log", 1, b"one")

        result = rotate(log_dir)

        assert result.archived == 1
        assert result.deleted == 0
        assert sorted(p.name for p in log_dir.iterdir()) == [
            "five.log",
            "logs_08-10-2026.zip",
            "one.log",
        ]
        assert bundle_members(log_dir / "logs_08-10-2026.zip") == {"ten.log": b"ten"}

    def test_file_exactly_archive_days_old_is_archived(self, log_dir, make_file, rotate):
        make_file(log_dir, "seven.log", 7, hour=23)
        make_file(log_dir, "six.log", 6, hour=0)

        result = rotate(log_dir)

        assert result.archived == 1
        assert (log_dir / "logs_11-10-2026.zip").exists()
        assert (log_dir / "six.log").exists()
        assert not (log_dir / "seven.log").exists()

    def test_expired_files_deleted_and_never_bundled(self, log_dir, make_file, rotate):
        make_file(log_dir, "ancient.log", 30)
        make_file(log_dir, "old.log", 15)
        make_file(log_dir, "archivable.log", 14)

        result = rotate(log_dir)

        assert result.deleted == 2
        assert result.archived == 1
        bundles = sorted(log_dir.glob("*.zip"))
        assert [b.name for b in bundles] == ["logs_04-10-2026.zip"]
        assert list(bundle_members(bundles[0])) == ["archivable.log"]

    def test_fresh_files_untouched(self, log_dir, make_file, rotate):
        make_file(log_dir, "today.log", 0, b"today")
        make_file(log_dir, "recent.log", 6, b"recent")
        make_file(log_dir, "old.log", 9)
        before = {k: v for k, v in snapshot(log_dir).items() if k != "old.log"}

        rotate(log_dir)

        after = {k: v for k, v in snapshot(log_dir).items() if not k.endswith(".zip")}
        assert after == before

    def test_second_run_changes_nothing(self, log_dir, make_file, rotate):
        make_file(log_dir, "a.log", 20)
        make_file(log_dir, "b.log", 10)
        make_file(log_dir, "c.log", 9)
        make_file(log_dir, "d.log", 2)
        make_file(log_dir / "sub", "e.log", 8)

        first = rotate(log_dir)
        state = snapshot(log_dir)
        second = rotate(log_dir)

        assert (first.deleted, first.archived, first.bundles) == (1, 3, 3)
        assert (second.deleted, second.archived, second.bundles) == (0, 0, 0)
        assert snapshot(log_dir) == state

    def test_empty_directory_still_recurses(self, log_dir, make_file, rotate):
        make_file(log_dir / "nested" / "deeper", "old.log", 10)

        result = rotate(log_dir)

        assert result.directories == 3
        assert result.archived == 1
        assert (log_dir / "nested" / "deeper" / "deeper_08-10-2026.zip").exists()

    def test_only_fresh_files_is_noop(self, log_dir, make_file, rotate):
        make_file(log_dir, "a.log", 1)
        make_file(log_dir, "b.log", 3)
        before = snapshot(log_dir)

        result = rotate(log_dir)

        assert (result.archived, result.deleted, result.bundles) == (0, 0, 0)
        assert snapshot(log_dir) == before

    def test_same_day_in_two_directories(self, log_dir, make_file, rotate):
        make_file(log_dir / "api", "a.log", 10, b"api")
        make_file(log_dir / "web", "a.log", 10, b"web")

        result = rotate(log_dir)

        assert result.bundles == 2
        assert bundle_members(log_dir / "api" / "api_08-10-2026.zip") == {"a.log": b"api"}
        assert bundle_members(log_dir / "web" / "web_08-10-2026.zip") == {"a.log": b"web"}

    def test_old_bundles_are_kept(self, log_dir, make_file, rotate):
        make_file(log_dir, "logs_01-09-2026.zip", 47, b"PK")

        result = rotate(log_dir)

        assert result.deleted == 0
        assert (log_dir / "logs_01-09-2026.zip").read_bytes() == b"PK"

    def test_interrupted_bundle_is_cleaned_up(self, log_dir, make_file, rotate):
        make_file(log_dir, ".logs_08-10-2026.k3j9x2ab.zip", 2, b"partial")
        make_file(log_dir, "ten.log", 10, b"ten")

        rotate(log_dir)

        assert sorted(p.name for p in log_dir.iterdir()) == ["logs_08-10-2026.zip"]
        assert bundle_members(log_dir / "logs_08-10-2026.zip") == {"ten.log": b"ten"}

    def test_dry_run_keeps_interrupted_bundle(self, log_dir, make_file, rotate):
        make_file(log_dir, ".logs_08-10-2026.k3j9x2ab.tar", 2, b"partial")

        rotate(log_dir, dry_run=True)

        assert (log_dir / ".logs_08-10-2026.k3j9x2ab.tar").read_bytes() == b"partial"

    def test_tar_format(self, log_dir, make_file, rotate):
        make_file(log_dir, "a.log", 10)

        rotate(log_dir, archive_format="tar")

        assert sorted(p.name for p in log_dir.iterdir()) == ["logs_08-10-2026.tar"]

    def test_dry_run_changes_nothing(self, log_dir, make_file, rotate):
        make_file(log_dir, "expired.log", 20)
        make_file(log_dir, "a.log", 10)
        make_file(log_dir, "b.log", 9)
        before = snapshot(log_dir)

        result = rotate(log_dir, dry_run=True)

        assert result.dry_run is True
        assert (result.deleted, result.archived, result.bundles) == (1, 2, 2)
        assert snapshot(log_dir) == before

    def test_missing_directory_rejected(self, tmp_path, rotate):
        with pytest.raises(ConfigurationError):
            rotate(tmp_path / "missing")

    def test_result_carries_cutoffs_and_elapsed(self, log_dir, rotate, now):
        result = rotate(log_dir)
        assert result.cutoffs == compute_cutoffs(now, 7, 14)
        assert result.elapsed >= 0
        assert result.to_dict()["cutoffs"]["archive_from"].startswith("2026-10-12")


class TestProcessDirectory:
    def test_symlink_loop_does_not_recurse(self, log_dir, make_file, now):
        make_file(log_dir / "sub", "a.log", 10)
        try:
            os.symlink(log_dir, log_dir / "sub" / "loop", target_is_directory=True)
        except (OSError, NotImplementedError):
            pytest.skip("symlinks not supported")

        result = process_directory(log_dir, compute_cutoffs(now, 7, 14), ZipFormat())

        assert result.directories == 2
        assert result.archived == 1

    def test_filesystem_error_aborts(self, log_dir, make_file, now, monkeypatch):
        make_file(log_dir, "old.log", 20)

        def refuse(self, *args, **kwargs):
            raise PermissionError("read-only")

        monkeypatch.setattr(Path, "unlink", refuse)

        with pytest.raises(FileSystemError) as exc_info:
            process_directory(log_dir, compute_cutoffs(now, 7, 14), ZipFormat())
        assert exc_info.value.path.endswith("old.log")


def test_delete_expired_counts(log_dir, make_file):
    make_file(log_dir, "a.log", 30)
    make_file(log_dir, "b.log", 30)

    assert delete_expired(list_files(log_dir)) == 2
    assert list(log_dir.iterdir()) == []
