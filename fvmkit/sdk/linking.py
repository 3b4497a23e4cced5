"""
Symlink and marker file management for installed versions.

An installed version becomes a self-contained SDK once its ``bin/cache``
directory holds the engine marker files and a ``dart-sdk`` link into the
shared engine cache. The link is a borrowed reference: removing a version
removes the link, never the cache entry behind it.

Uses symlinks on Unix-like systems and directory junctions on Windows.
"""

import logging
import os
import subprocess
from pathlib import Path
from typing import Optional

from fvmkit.core.exceptions import LinkError
from fvmkit.core.filesystem import atomic_write
from fvmkit.core.platform import PlatformInfo, detect_platform

logger = logging.getLogger(__name__)

# Layout the flutter tool expects inside an SDK checkout
CACHE_SUBPATH = Path("bin") / "cache"
ENGINE_STAMP = "engine.stamp"
ENGINE_DART_SDK_STAMP = "engine-dart-sdk.stamp"
ENGINE_REALM = "engine.realm"
DART_SDK_LINK = "dart-sdk"

_FILE_ATTRIBUTE_REPARSE_POINT = 0x400


def cache_dir_of(version_dir: Path) -> Path:
    return version_dir / CACHE_SUBPATH


def _strip_unc_prefix(target: str) -> str:
    if target.startswith("\\\\?\\") or target.startswith("//?/"):
        return target[4:]
    return target


def read_link_target(link_path: Path) -> Optional[Path]:
    """
    Read the target of a symlink or junction without requiring it to exist.

    Returns:
        Absolute target path, or None if link_path is not a readable link
    """
    try:
        target = Path(_strip_unc_prefix(os.readlink(link_path)))
    except (OSError, ValueError):
        return None

    if not target.is_absolute():
        target = link_path.parent / target
    return target


class SdkLinkManager:
    """Creates engine links, marker files and the global version link."""

    def __init__(self, platform: Optional[PlatformInfo] = None):
        """
        Initialize link manager.

        Args:
            platform: PlatformInfo instance (auto-detected if None)
        """
        self.platform = platform or detect_platform()
        self._use_junctions = self.platform.os == "windows"

    def create_link(self, link_path: Path, target_path: Path, force: bool = False):
        """
        Create symlink (Unix) or junction (Windows) to a directory.

        Args:
            link_path: Path where link should be created
            target_path: Directory the link should point to
            force: Replace an existing link at link_path

        Raises:
            LinkError: If the target is missing, link_path is taken, or
                link creation fails
        """
        link_path = link_path.absolute()
        target_path = target_path.absolute()

        if not target_path.is_dir():
            raise LinkError(f"Link target does not exist: {target_path}")

        if self.is_link(link_path) or link_path.exists():
            if force and self.is_link(link_path):
                self.remove_link(link_path)
            else:
                raise LinkError(f"Link path already exists: {link_path}")

        link_path.parent.mkdir(parents=True, exist_ok=True)

        try:
            if self._use_junctions:
                self._create_junction(link_path, target_path)
            else:
                os.symlink(target_path, link_path, target_is_directory=True)
        except OSError as e:
            raise LinkError(
                f"Failed to create link {link_path} -> {target_path}: {e}"
            ) from e

        logger.debug(f"Created link: {link_path} -> {target_path}")

    def _create_junction(self, link_path: Path, target_path: Path) -> None:
        """Create directory junction (Windows)."""
        try:
            import _winapi

            _winapi.CreateJunction(str(target_path), str(link_path))  # type: ignore
            return
        except (ImportError, AttributeError, OSError) as e:
            logger.debug(f"_winapi.CreateJunction failed: {e}, trying mklink")

        result = subprocess.run(
            ["cmd", "/c", "mklink", "/J", str(link_path), str(target_path)],
            capture_output=True,
            text=True,
        )
        if result.returncode != 0:
            raise OSError(f"mklink failed: {result.stderr.strip()}")

    def is_link(self, path: Path) -> bool:
        return path.is_symlink() or self._is_junction(path)

    def resolve_link(self, link_path: Path) -> Optional[Path]:
        """Absolute target of a link, or None if link_path is not a link."""
        if not self.is_link(link_path):
            return None
        return read_link_target(link_path)

    def is_broken_link(self, link_path: Path) -> bool:
        """True if link_path is a link whose target does not exist."""
        if not self.is_link(link_path):
            return False
        target = self.resolve_link(link_path)
        return target is None or not target.exists()

    def remove_link(self, link_path: Path) -> bool:
        """
        Remove a symlink/junction.

        Returns:
            True if a link was removed, False if nothing was there

        Raises:
            LinkError: If link_path is not a link or cannot be removed
        """
        if not self.is_link(link_path):
            if link_path.exists():
                raise LinkError(f"Refusing to remove non-link path: {link_path}")
            return False

        try:
            if self._is_junction(link_path) and not link_path.is_symlink():
                # Junctions are removed with rmdir, never unlink
                os.rmdir(link_path)
            else:
                link_path.unlink()
        except OSError as e:
            raise LinkError(f"Failed to remove link {link_path}: {e}") from e

        logger.debug(f"Removed link: {link_path}")
        return True

    def _is_junction(self, path: Path) -> bool:
        if not self._use_junctions:
            return False
        try:
            st = os.stat(path, follow_symlinks=False)
        except OSError:
            return False
        attributes = getattr(st, "st_file_attributes", 0)
        return bool(attributes & _FILE_ATTRIBUTE_REPARSE_POINT)

    def link_engine(self, engine_dir: Path, version_dir: Path) -> Path:
        """
        Attach a cached engine to an installed version.

        Writes ``engine.stamp`` and ``engine-dart-sdk.stamp`` (the engine hash,
        no trailing newline), an empty ``engine.realm``, and links
        ``bin/cache/dart-sdk`` to the engine directory. The hash is the
        engine directory's name.

        Returns:
            Path of the dart-sdk link

        Raises:
            LinkError: If the link cannot be created
        """
        engine_hash = engine_dir.name
        cache_dir = cache_dir_of(version_dir)
        cache_dir.mkdir(parents=True, exist_ok=True)

        logger.debug(f"Writing engine marker files for {engine_hash} in {cache_dir}")
        atomic_write(cache_dir / ENGINE_STAMP, engine_hash)
        atomic_write(cache_dir / ENGINE_DART_SDK_STAMP, engine_hash)
        atomic_write(cache_dir / ENGINE_REALM, "")

        link_path = cache_dir / DART_SDK_LINK
        self.create_link(link_path, engine_dir, force=True)
        logger.debug(f"Linked engine {engine_hash} into {version_dir}")
        return link_path


__all__ = [
    "CACHE_SUBPATH",
    "ENGINE_STAMP",
    "ENGINE_DART_SDK_STAMP",
    "ENGINE_REALM",
    "DART_SDK_LINK",
    "cache_dir_of",
    "read_link_target",
    "SdkLinkManager",
]
