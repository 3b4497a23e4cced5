"""
Unit tests for filesystem utilities.

Tests prefix-stripping archive extraction, atomic writes and guarded
deletion.
"""

import os
import stat
import sys
import zipfile

import pytest

from fvmkit.core.exceptions import (
    ArchiveExtractionError,
    FilesystemError,
    InsecureArchiveError,
)
from fvmkit.core.filesystem import (
    atomic_write,
    directory_size,
    extract_zip_stripped,
    is_relative_to,
    safe_rmtree,
)


@pytest.fixture
def engine_archive(tmp_path, engine_zip):
    archive = tmp_path / "dart-sdk.zip"
    archive.write_bytes(engine_zip)
    return archive


class TestExtractZipStripped:
    """Test extract_zip_stripped()."""

    def test_prefix_is_stripped(self, tmp_path, engine_archive):
        dest = tmp_path / "out"

        count = extract_zip_stripped(engine_archive, dest, "dart-sdk/")

        assert (dest / "bin" / "dart").is_file()
        assert (dest / "version").read_text() == "3.5.0"
        assert (dest / "lib" / "core" / "core.dart").is_file()
        assert not (dest / "dart-sdk").exists()
        assert count == 3

    def test_entries_outside_prefix_are_skipped(self, tmp_path, engine_archive):
        dest = tmp_path / "out"
        extract_zip_stripped(engine_archive, dest, "dart-sdk/")
        assert not (dest / "README").exists()

    @pytest.mark.skipif(sys.platform == "win32", reason="Unix permissions")
    def test_permission_bits_preserved(self, tmp_path, engine_archive):
        dest = tmp_path / "out"
        extract_zip_stripped(engine_archive, dest, "dart-sdk/")

        mode = stat.S_IMODE(os.stat(dest / "bin" / "dart").st_mode)
        assert mode == 0o755

    def test_files_without_directory_entries(self, tmp_path):
        """Parent directories are created even when the archive lists none."""
        archive = tmp_path / "a.zip"
        with zipfile.ZipFile(archive, "w") as zf:
            zf.writestr("dart-sdk/a/b/c/file.txt", "deep")

        extract_zip_stripped(archive, tmp_path / "out", "dart-sdk/")

        assert (tmp_path / "out" / "a" / "b" / "c" / "file.txt").read_text() == "deep"

    def test_traversal_is_rejected(self, tmp_path):
        archive = tmp_path / "evil.zip"
        with zipfile.ZipFile(archive, "w") as zf:
            zf.writestr("dart-sdk/../../escape.txt", "nope")

        with pytest.raises(InsecureArchiveError):
            extract_zip_stripped(archive, tmp_path / "out", "dart-sdk/")

        assert not (tmp_path / "escape.txt").exists()

    def test_missing_archive(self, tmp_path):
        with pytest.raises(ArchiveExtractionError, match="not found"):
            extract_zip_stripped(tmp_path / "missing.zip", tmp_path / "out", "x/")

    def test_corrupt_archive(self, tmp_path):
        archive = tmp_path / "bad.zip"
        archive.write_bytes(b"this is not a zip file")

        with pytest.raises(ArchiveExtractionError):
            extract_zip_stripped(archive, tmp_path / "out", "dart-sdk/")


class TestAtomicWrite:
    """Test atomic_write()."""

    def test_writes_exact_content(self, tmp_path):
        target = tmp_path / "cache" / "engine.stamp"
        atomic_write(target, "deadbeef")
        assert target.read_bytes() == b"deadbeef"

    def test_overwrites(self, tmp_path):
        target = tmp_path / "file"
        target.write_text("old")
        atomic_write(target, "new")
        assert target.read_text() == "new"

    def test_no_temp_files_left(self, tmp_path):
        atomic_write(tmp_path / "file", b"\x00\x01")
        assert [p.name for p in tmp_path.iterdir()] == ["file"]


class TestSafeRmtree:
    """Test safe_rmtree()."""

    def test_removes_tree(self, tmp_path):
        target = tmp_path / "versions" / "3.24.0"
        (target / "bin").mkdir(parents=True)
        (target / "bin" / "flutter").write_text("x")

        safe_rmtree(target, require_prefix=tmp_path / "versions")

        assert not target.exists()
        assert (tmp_path / "versions").exists()

    def test_refuses_outside_prefix(self, tmp_path):
        target = tmp_path / "other"
        target.mkdir()

        with pytest.raises(ValueError, match="Refusing"):
            safe_rmtree(target, require_prefix=tmp_path / "versions")
        assert target.exists()

    def test_refuses_prefix_itself(self, tmp_path):
        with pytest.raises(ValueError):
            safe_rmtree(tmp_path, require_prefix=tmp_path)

    def test_parent_segments_are_normalized(self, tmp_path):
        versions = tmp_path / "home" / "versions"
        versions.mkdir(parents=True)

        with pytest.raises(ValueError, match="Refusing"):
            safe_rmtree(versions / "..", require_prefix=versions)
        with pytest.raises(ValueError, match="Refusing"):
            safe_rmtree(versions / "3.24.0" / ".." / "..", require_prefix=versions)

        assert versions.is_dir()

    def test_prefix_with_parent_segments(self, tmp_path):
        target = tmp_path / "versions" / "3.24.0"
        target.mkdir(parents=True)

        safe_rmtree(target, require_prefix=tmp_path / "versions" / "x" / "..")

        assert not target.exists()

    def test_missing_path_is_noop(self, tmp_path):
        safe_rmtree(tmp_path / "missing", require_prefix=tmp_path)

    def test_file_is_rejected(self, tmp_path):
        target = tmp_path / "file"
        target.write_text("x")
        with pytest.raises(FilesystemError):
            safe_rmtree(target)

    @pytest.mark.skipif(sys.platform == "win32", reason="symlinks need privileges")
    def test_does_not_follow_symlinks(self, tmp_path):
        """Deleting a version never touches the engine its link points to."""
        engine = tmp_path / "engine" / "deadbeef"
        engine.mkdir(parents=True)
        (engine / "dart").write_text("engine binary")

        version = tmp_path / "versions" / "3.24.0"
        (version / "bin" / "cache").mkdir(parents=True)
        os.symlink(engine, version / "bin" / "cache" / "dart-sdk")

        safe_rmtree(version, require_prefix=tmp_path / "versions")

        assert not version.exists()
        assert (engine / "dart").read_text() == "engine binary"


def test_is_relative_to(tmp_path):
    assert is_relative_to(tmp_path / "a" / "b", tmp_path)
    assert not is_relative_to(tmp_path, tmp_path / "a")


def test_directory_size(tmp_path):
    (tmp_path / "a").write_bytes(b"12345")
    (tmp_path / "sub").mkdir()
    (tmp_path / "sub" / "b").write_bytes(b"123")
    assert directory_size(tmp_path) == 8
