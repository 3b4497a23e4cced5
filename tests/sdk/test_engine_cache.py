"""
Tests for the engine cache: population, staging and garbage collection.
"""

import threading
from unittest.mock import patch

import pytest
import responses

from fvmkit.core.exceptions import (
    ArchiveExtractionError,
    DownloadError,
    FilesystemError,
    UnsupportedPlatformError,
)
from fvmkit.core.filesystem import safe_rmtree
from fvmkit.core.platform import PlatformInfo
from fvmkit.sdk.engine_cache import EngineCache


@pytest.fixture
def cache(layout, lock_manager, linux_x64, storage_url):
    return EngineCache(
        layout,
        storage_base_url=storage_url,
        lock_manager=lock_manager,
        platform=linux_x64,
    )


def archive_url(storage_url, engine_hash, platform="linux", arch="x64"):
    return (
        f"{storage_url}/flutter_infra_release/flutter/{engine_hash}"
        f"/dart-sdk-{platform}-{arch}.zip"
    )


class TestEngineUrl:
    def test_host_platform(self, cache, storage_url):
        assert cache.engine_url("abc") == archive_url(storage_url, "abc")

    def test_macos_is_darwin(self, cache, storage_url):
        url = cache.engine_url("abc", platform="macos", arch="aarch64")
        assert url == archive_url(storage_url, "abc", "darwin", "arm64")

    def test_unsupported_arch(self, cache):
        with pytest.raises(UnsupportedPlatformError):
            cache.engine_url("abc", arch="riscv64")


class TestEnsure:
    """Test EngineCache.ensure()."""

    @responses.activate
    def test_downloads_and_extracts(self, cache, layout, engine_zip, storage_url):
        responses.add(responses.GET, archive_url(storage_url, "deadbeef"), body=engine_zip)

        path = cache.ensure("deadbeef")

        assert path == layout.engine_dir / "deadbeef"
        assert (path / "bin" / "dart").is_file()
        assert (path / "version").read_text() == "3.5.0"
        assert not (path / "README").exists()

    @responses.activate
    def test_existing_entry_returned_unchanged(self, cache, layout):
        entry = layout.engine_dir / "deadbeef"
        entry.mkdir(parents=True)
        (entry / "marker").write_text("untouched")

        assert cache.ensure("deadbeef") == entry
        assert (entry / "marker").read_text() == "untouched"
        assert len(responses.calls) == 0

    @responses.activate
    def test_failed_download_leaves_nothing(self, cache, layout, storage_url):
        responses.add(responses.GET, archive_url(storage_url, "deadbeef"), status=404)

        with pytest.raises(DownloadError):
            cache.ensure("deadbeef")

        assert not (layout.engine_dir / "deadbeef").exists()
        assert list(layout.engine_staging_dir.iterdir()) == []
        assert cache.in_flight() == set()

    @responses.activate
    def test_corrupt_archive_leaves_nothing(self, cache, layout, storage_url):
        responses.add(
            responses.GET, archive_url(storage_url, "deadbeef"), body=b"not a zip"
        )

        with pytest.raises(ArchiveExtractionError):
            cache.ensure("deadbeef")

        assert cache.list_entries() == []
        assert list(layout.engine_staging_dir.iterdir()) == []

    @responses.activate
    def test_platform_override(self, cache, engine_zip, storage_url):
        responses.add(
            responses.GET,
            archive_url(storage_url, "deadbeef", "darwin", "arm64"),
            body=engine_zip,
        )

        assert cache.ensure("deadbeef", platform="macos", arch="arm64").is_dir()

    @responses.activate
    def test_concurrent_ensure_downloads_once(self, cache, engine_zip, storage_url):
        responses.add(responses.GET, archive_url(storage_url, "deadbeef"), body=engine_zip)
        results = []

        threads = [
            threading.Thread(target=lambda: results.append(cache.ensure("deadbeef")))
            for _ in range(3)
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(results) == 3
        assert len(set(results)) == 1
        assert len(responses.calls) == 1


class TestEngineHashForVersion:
    def test_reads_stamp(self, cache, make_version):
        make_version("3.24.0", engine_hash="deadbeef")
        assert cache.engine_hash_for_version("3.24.0") == "deadbeef"

    def test_missing_stamp(self, cache, make_version):
        make_version("3.24.0")
        assert cache.engine_hash_for_version("3.24.0") is None

    def test_empty_stamp(self, cache, make_version):
        make_version("3.24.0", engine_hash="")
        assert cache.engine_hash_for_version("3.24.0") is None


class TestGarbageCollection:
    """Test EngineCache.gc()."""

    @pytest.fixture
    def entries(self, layout):
        for engine_hash in ("aaa", "bbb", "ccc"):
            (layout.engine_dir / engine_hash).mkdir(parents=True)
            (layout.engine_dir / engine_hash / "dart").write_bytes(b"12345")
        layout.engine_staging_dir.mkdir(parents=True)

    def test_removes_unreferenced(self, cache, entries, make_version):
        make_version("3.24.0", engine_hash="aaa")
        make_version("3.22.0", engine_hash="aaa")

        result = cache.gc()

        assert sorted(result.removed) == ["bbb", "ccc"]
        assert result.failed == []
        assert result.space_reclaimed == 10
        assert cache.list_entries() == ["aaa"]

    def test_staging_is_not_an_entry(self, cache, entries, layout):
        cache.gc()
        assert layout.engine_staging_dir.is_dir()

    def test_missing_stamp_is_not_a_reference(self, cache, entries, make_version):
        make_version("3.24.0")
        assert sorted(cache.gc().removed) == ["aaa", "bbb", "ccc"]

    def test_explicit_installed_versions(self, cache, entries, make_version):
        make_version("3.24.0", engine_hash="aaa")
        make_version("3.22.0", engine_hash="bbb")

        result = cache.gc(installed_versions=["3.22.0"])

        assert sorted(result.removed) == ["aaa", "ccc"]

    def test_in_flight_entries_survive(self, cache, entries):
        with cache.reserve("bbb"):
            result = cache.gc()

        assert sorted(result.removed) == ["aaa", "ccc"]
        assert cache.list_entries() == ["bbb"]

    def test_reservations_nest(self, cache):
        with cache.reserve("aaa"):
            with cache.reserve("aaa"):
                pass
            assert cache.in_flight() == {"aaa"}
        assert cache.in_flight() == set()

    def test_dry_run_removes_nothing(self, cache, entries):
        result = cache.gc(dry_run=True)

        assert result.dry_run
        assert sorted(result.removed) == ["aaa", "bbb", "ccc"]
        assert cache.list_entries() == ["aaa", "bbb", "ccc"]

    def test_failures_collected_and_batch_continues(self, cache, entries):
        def flaky(path, require_prefix=None):
            if path.name == "aaa":
                raise FilesystemError("permission denied")
            safe_rmtree(path, require_prefix=require_prefix)

        with patch("fvmkit.sdk.engine_cache.safe_rmtree", side_effect=flaky):
            result = cache.gc()

        assert result.failed == [("aaa", "permission denied")]
        assert sorted(result.removed) == ["bbb", "ccc"]
        assert cache.list_entries() == ["aaa"]

    def test_empty_cache(self, cache):
        result = cache.gc()
        assert result.removed == []
        assert result.failed == []


def test_other_platform_cache(layout, lock_manager, storage_url):
    cache = EngineCache(
        layout,
        storage_base_url=storage_url + "/",
        lock_manager=lock_manager,
        platform=PlatformInfo("windows", "x64"),
    )
    assert cache.engine_url("abc") == archive_url(storage_url, "abc", "windows")
