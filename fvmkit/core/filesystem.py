"""
File system utilities for fvmkit.

This module provides the file operations the SDK cache relies on:
- Archive extraction with a stripped top-level prefix
- Safe file operations (atomic writes, guarded deletion)
- Path utilities
"""

import logging
import os
import shutil
import stat
import tempfile
import zipfile
from pathlib import Path
from typing import Optional, Union

from fvmkit.core.exceptions import (
    ArchiveExtractionError,
    FilesystemError,
    InsecureArchiveError,
)

logger = logging.getLogger(__name__)

IS_WINDOWS = os.name == "nt"


# ============================================================================
# Path Utilities
# ============================================================================


def is_relative_to(path: Path, parent: Path) -> bool:
    """
    Check whether path is located under parent.

    Example:
        >>> is_relative_to(Path('/a/b/c'), Path('/a'))
        True
    """
    try:
        path.relative_to(parent)
        return True
    except ValueError:
        return False


# ============================================================================
# Archive Extraction
# ============================================================================


def _validate_archive_path(path: str, destination: Path) -> Path:
    """
    Resolve an archive member path under destination.

    Raises:
        InsecureArchiveError: If path attempts directory traversal
    """
    member_path = (destination / path).resolve()

    if not is_relative_to(member_path, destination.resolve()):
        raise InsecureArchiveError(
            f"Archive member '{path}' attempts directory traversal. "
            "This is a security risk and extraction has been blocked."
        )
    return member_path


def extract_zip_stripped(
    archive_path: Union[str, Path],
    destination: Union[str, Path],
    strip_prefix: str,
) -> int:
    """
    Extract a ZIP archive, removing a fixed top-level prefix from every entry.

    An entry named ``<prefix>bin/tool`` lands at ``<destination>/bin/tool``.
    The entry equal to the bare prefix produces nothing and entries outside
    the prefix are skipped. Parent directories are created before the files
    they contain. Unix permission bits stored in the archive are applied on
    platforms that support them.

    Args:
        archive_path: Path to the .zip file
        destination: Directory to extract into (created if missing)
        strip_prefix: Prefix removed from member names, e.g. "dart-sdk/"

    Returns:
        Number of files written

    Raises:
        ArchiveExtractionError: If the archive cannot be read
        InsecureArchiveError: If a member escapes the destination
    """
    archive_path = Path(archive_path)
    destination = Path(destination)

    if not archive_path.exists():
        raise ArchiveExtractionError(f"Archive not found: {archive_path}")

    destination.mkdir(parents=True, exist_ok=True)
    written = 0

    try:
        with zipfile.ZipFile(archive_path, "r") as zf:
            for member in zf.infolist():
                if not member.filename.startswith(strip_prefix):
                    logger.debug(f"Skipping entry outside prefix: {member.filename}")
                    continue

                stripped = member.filename[len(strip_prefix) :]
                if not stripped or stripped == "/":
                    continue

                out_path = _validate_archive_path(stripped, destination)

                if member.is_dir():
                    out_path.mkdir(parents=True, exist_ok=True)
                else:
                    out_path.parent.mkdir(parents=True, exist_ok=True)
                    with zf.open(member) as src, open(out_path, "wb") as dst:
                        shutil.copyfileobj(src, dst)
                    written += 1

                mode = member.external_attr >> 16
                if not IS_WINDOWS and stat.S_IMODE(mode):
                    os.chmod(out_path, stat.S_IMODE(mode))
    except InsecureArchiveError:
        raise
    except (zipfile.BadZipFile, OSError) as e:
        raise ArchiveExtractionError(f"Failed to extract {archive_path}: {e}") from e

    return written


# ============================================================================
# Safe File Operations
# ============================================================================


def atomic_write(
    file_path: Union[str, Path], content: Union[str, bytes], encoding: str = "utf-8"
) -> None:
    """
    Write file atomically using temp file + rename.

    The file is never observed in a partially-written state. If the write
    fails, the original file (if any) remains unchanged.

    Example:
        >>> atomic_write('engine.stamp', 'deadbeef')
    """
    file_path = Path(file_path)
    file_path.parent.mkdir(parents=True, exist_ok=True)

    # Temp file in same directory (ensures same filesystem)
    temp_fd, temp_path_str = tempfile.mkstemp(
        dir=file_path.parent, prefix=f".{file_path.name}.", suffix=".tmp"
    )
    temp_path = Path(temp_path_str)

    try:
        if isinstance(content, str):
            with open(temp_fd, "w", encoding=encoding, newline="") as f:
                f.write(content)
        else:
            with open(temp_fd, "wb") as f:
                f.write(content)

        temp_path.replace(file_path)

    except Exception:
        temp_path.unlink(missing_ok=True)
        raise


def safe_rmtree(
    path: Union[str, Path], require_prefix: Optional[Union[str, Path]] = None
) -> None:
    """
    Safely remove a directory tree with safeguards.

    Symbolic links inside the tree are removed, never followed, so deleting
    an installed version does not touch the engine cache it links to.

    Args:
        path: Directory to remove
        require_prefix: If specified, path must be under this directory

    Raises:
        ValueError: If path is not under require_prefix
        FilesystemError: If deletion fails

    Example:
        >>> safe_rmtree('/home/user/.fvmkit/versions/3.24.0',
        ...             require_prefix='/home/user/.fvmkit/versions')
    """
    # normpath folds ".." segments; symlinks are left unresolved
    path = Path(os.path.normpath(os.path.abspath(path)))

    if require_prefix is not None:
        require_prefix = Path(os.path.normpath(os.path.abspath(require_prefix)))
        if not is_relative_to(path, require_prefix) or path == require_prefix:
            raise ValueError(
                f"Refusing to delete '{path}': not under required prefix '{require_prefix}'"
            )

    if not path.exists() and not path.is_symlink():
        return

    if path.is_symlink() or not path.is_dir():
        raise FilesystemError(f"Path is not a directory: {path}")

    try:
        if IS_WINDOWS:

            def handle_remove_readonly(func, failed_path, exc):
                """Error handler for Windows read-only files."""
                if not os.access(failed_path, os.W_OK):
                    os.chmod(failed_path, stat.S_IWRITE)
                    func(failed_path)
                else:
                    raise

            shutil.rmtree(path, onerror=handle_remove_readonly)
        else:
            shutil.rmtree(path)

    except Exception as e:
        raise FilesystemError(f"Failed to remove directory '{path}': {e}") from e


def directory_size(path: Union[str, Path]) -> int:
    """
    Calculate total size of a directory in bytes (symlinks not followed).

    Example:
        >>> size = directory_size('/home/user/.fvmkit/shared/engine/deadbeef')
    """
    path = Path(path)
    total_size = 0

    for item in path.rglob("*"):
        if item.is_file() and not item.is_symlink():
            total_size += item.stat().st_size

    return total_size


__all__ = [
    "is_relative_to",
    "extract_zip_stripped",
    "atomic_write",
    "safe_rmtree",
    "directory_size",
]
