"""
Content-addressed cache of Dart SDK engine artifacts.

Each engine lives in ``<home>/shared/engine/<hash>`` and is shared by every
installed version pinned to that hash. Entries are populated by downloading
``dart-sdk-<platform>-<arch>.zip`` into a staging area, extracting it there
and renaming the result into place, so an entry is either complete or
absent.

Entries are never reference counted on disk. Garbage collection scans the
installed versions' ``engine.stamp`` files and removes every entry nobody
points to.
"""

import logging
import tempfile
import threading
from collections import Counter
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Set, Tuple

from fvmkit.core.directory import SdkLayout
from fvmkit.core.download import DownloadProgress, download_file
from fvmkit.core.filesystem import directory_size, extract_zip_stripped, safe_rmtree
from fvmkit.core.locking import LockManager
from fvmkit.core.platform import (
    PlatformInfo,
    detect_platform,
    engine_arch_name,
    engine_platform_name,
)
from fvmkit.sdk.linking import ENGINE_STAMP, cache_dir_of
from fvmkit.sdk.versions import VersionResolver

logger = logging.getLogger(__name__)

ENGINE_ARCHIVE_PATH = "flutter_infra_release/flutter/{hash}/dart-sdk-{platform}-{arch}.zip"
ARCHIVE_PREFIX = "dart-sdk/"


@dataclass
class CleanupResult:
    """Result of a garbage collection pass."""

    removed: List[str] = field(default_factory=list)
    failed: List[Tuple[str, str]] = field(default_factory=list)
    space_reclaimed: int = 0
    dry_run: bool = False


class EngineCache:
    """
    Shared engine store keyed by engine hash.

    Example:
        >>> cache = EngineCache(layout, storage_base_url="https://storage.googleapis.com")
        >>> engine_dir = cache.ensure("1a65d409c7a1438a34d21b60bf30a6fd5db59314")
        >>> cache.gc()
        CleanupResult(removed=[...], failed=[], space_reclaimed=..., dry_run=False)
    """

    def __init__(
        self,
        layout: SdkLayout,
        storage_base_url: str = "https://storage.googleapis.com",
        lock_manager: Optional[LockManager] = None,
        platform: Optional[PlatformInfo] = None,
    ):
        """
        Initialize engine cache.

        Args:
            layout: fvmkit directory layout
            storage_base_url: Base URL engine archives are downloaded from
            lock_manager: Lock manager (created under layout.lock_dir if None)
            platform: Host platform (auto-detected if None)
        """
        self.layout = layout
        self.root = layout.engine_dir
        self.staging_dir = layout.engine_staging_dir
        self.storage_base_url = storage_base_url.rstrip("/")
        self.lock_manager = lock_manager or LockManager(layout.lock_dir)
        self.platform = platform or detect_platform()

        # Hashes this process is populating; never collected
        self._in_flight: Counter = Counter()
        self._in_flight_lock = threading.Lock()

    # ========================================================================
    # Lookup
    # ========================================================================

    def entry_path(self, engine_hash: str) -> Path:
        return self.layout.engine_hash_dir(engine_hash)

    def contains(self, engine_hash: str) -> bool:
        return self.entry_path(engine_hash).is_dir()

    def list_entries(self) -> List[str]:
        """Engine hashes present in the cache (staging excluded), sorted."""
        if not self.root.is_dir():
            return []
        return sorted(
            entry.name
            for entry in self.root.iterdir()
            if entry.is_dir() and not entry.name.startswith(".")
        )

    def engine_url(
        self,
        engine_hash: str,
        platform: Optional[str] = None,
        arch: Optional[str] = None,
    ) -> str:
        """
        Download URL of an engine archive.

        Args:
            engine_hash: Engine hash
            platform: OS name ('linux', 'macos', 'windows'); host OS if None
            arch: Machine name ('x86_64', 'arm64', ...); host arch if None

        Raises:
            UnsupportedPlatformError: If no engine is published for arch

        Example:
            >>> cache.engine_url("abc123", platform="macos", arch="aarch64")
            'https://storage.googleapis.com/flutter_infra_release/flutter/abc123/dart-sdk-darwin-arm64.zip'
        """
        path = ENGINE_ARCHIVE_PATH.format(
            hash=engine_hash,
            platform=engine_platform_name(platform or self.platform.os),
            arch=engine_arch_name(arch or self.platform.arch),
        )
        return f"{self.storage_base_url}/{path}"

    def engine_hash_for_version(self, token: str) -> Optional[str]:
        """Engine hash recorded in an installed version's engine.stamp."""
        stamp = cache_dir_of(self.layout.version_dir(token)) / ENGINE_STAMP
        try:
            engine_hash = stamp.read_text(encoding="utf-8").strip()
        except OSError:
            return None
        return engine_hash or None

    # ========================================================================
    # Population
    # ========================================================================

    def ensure(
        self,
        engine_hash: str,
        platform: Optional[str] = None,
        arch: Optional[str] = None,
        progress_callback: Optional[Callable[[DownloadProgress], None]] = None,
    ) -> Path:
        """
        Make sure an engine is present in the cache.

        An existing entry is returned unchanged. Otherwise the archive is
        downloaded and extracted into the staging area and then renamed to
        its final path; on failure the staging area is cleaned up and no
        entry appears.

        Args:
            engine_hash: Engine hash to populate
            platform: OS name override (host OS if None)
            arch: Machine name override (host arch if None)
            progress_callback: Optional download progress callback

        Returns:
            Path of the engine directory

        Raises:
            UnsupportedPlatformError: If no engine is published for arch
            DownloadError: If the archive cannot be downloaded
            ArchiveExtractionError: If the archive cannot be extracted
        """
        target = self.entry_path(engine_hash)
        if target.is_dir():
            logger.debug(f"Engine {engine_hash} already cached")
            return target

        url = self.engine_url(engine_hash, platform, arch)

        with self.reserve(engine_hash), self.lock_manager.engine_lock(engine_hash):
            # Another install may have finished it while we waited
            if target.is_dir():
                logger.debug(f"Engine {engine_hash} was cached concurrently")
                return target
            self._populate(engine_hash, url, target, progress_callback)

        return target

    def _populate(
        self,
        engine_hash: str,
        url: str,
        target: Path,
        progress_callback: Optional[Callable[[DownloadProgress], None]],
    ) -> None:
        self.staging_dir.mkdir(parents=True, exist_ok=True)
        work_dir = Path(tempfile.mkdtemp(prefix=f"{engine_hash}-", dir=self.staging_dir))
        archive_path = work_dir / "dart-sdk.zip"
        extract_dir = work_dir / engine_hash

        try:
            logger.info(f"Downloading engine {engine_hash}")
            download_file(url, archive_path, progress_callback=progress_callback)

            logger.debug(f"Extracting {archive_path} to {extract_dir}")
            count = extract_zip_stripped(archive_path, extract_dir, ARCHIVE_PREFIX)
            logger.debug(f"Extracted {count} files")

            extract_dir.rename(target)
            logger.info(f"Engine {engine_hash} cached at {target}")
        finally:
            if work_dir.exists():
                try:
                    safe_rmtree(work_dir, require_prefix=self.staging_dir)
                except Exception as e:
                    logger.warning(f"Failed to remove staging directory {work_dir}: {e}")

    @contextmanager
    def reserve(self, engine_hash: str):
        """
        Protect an engine from garbage collection while the block runs.

        Installs hold a reservation from download until the version's
        engine.stamp is written. Reservations nest.
        """
        with self._in_flight_lock:
            self._in_flight[engine_hash] += 1
        try:
            yield
        finally:
            with self._in_flight_lock:
                self._in_flight[engine_hash] -= 1
                if self._in_flight[engine_hash] <= 0:
                    del self._in_flight[engine_hash]

    def in_flight(self) -> Set[str]:
        """Hashes this process is currently populating or linking."""
        with self._in_flight_lock:
            return set(self._in_flight)

    # ========================================================================
    # Garbage collection
    # ========================================================================

    def referenced_hashes(self, installed_versions: Iterable[str]) -> Set[str]:
        """Hashes named by the engine.stamp of the given installed versions."""
        referenced = set()
        for token in installed_versions:
            engine_hash = self.engine_hash_for_version(token)
            if engine_hash:
                referenced.add(engine_hash)
            else:
                logger.debug(f"No engine stamp for installed version {token}")
        return referenced

    def unreferenced(
        self, installed_versions: Optional[Iterable[str]] = None
    ) -> List[str]:
        """
        Cache entries that no installed version references.

        Args:
            installed_versions: Tokens to consider; every installed version
                if None
        """
        if installed_versions is None:
            installed_versions = VersionResolver(self.layout).list_installed()

        keep = self.referenced_hashes(installed_versions) | self.in_flight()
        return [h for h in self.list_entries() if h not in keep]

    def gc(
        self,
        installed_versions: Optional[Iterable[str]] = None,
        dry_run: bool = False,
    ) -> CleanupResult:
        """
        Remove every engine that no installed version references.

        Failures to delete an entry are recorded and do not stop the pass.

        Args:
            installed_versions: Tokens to consider; every installed version
                if None
            dry_run: Only report what would be removed

        Returns:
            CleanupResult with removed hashes and (hash, message) failures
        """
        result = CleanupResult(dry_run=dry_run)

        for engine_hash in self.unreferenced(installed_versions):
            path = self.entry_path(engine_hash)
            try:
                size = directory_size(path)
            except OSError:
                size = 0

            if dry_run:
                logger.info(f"[DRY RUN] Would remove engine {engine_hash}")
                result.removed.append(engine_hash)
                result.space_reclaimed += size
                continue

            if engine_hash in self.in_flight():
                logger.debug(f"Skipping engine {engine_hash}: being populated")
                continue

            try:
                safe_rmtree(path, require_prefix=self.root)
            except Exception as e:
                logger.warning(f"Failed to remove engine {engine_hash}: {e}")
                result.failed.append((engine_hash, str(e)))
                continue

            logger.info(f"Removed engine {engine_hash}")
            result.removed.append(engine_hash)
            result.space_reclaimed += size

        return result


__all__ = [
    "EngineCache",
    "CleanupResult",
    "ENGINE_ARCHIVE_PATH",
    "ARCHIVE_PREFIX",
]
