"""
Directory structure management for fvmkit.

This module resolves the tool's home directory and describes where every
managed resource lives underneath it.

Directory Structure:
    Home (~/.fvmkit/ or %USERPROFILE%\\.fvmkit\\):
        - versions/          : One directory per installed version (git worktree)
        - shared/flutter/    : Bare repository for the default origin
        - shared/forks/<a>/  : Bare repository per configured fork
        - shared/engine/     : Engine cache, one directory per engine hash
        - shared/.worktrees/<origin>/ : Transient location used while creating worktrees
        - lock/              : Lock files for shared repositories and engines
        - config.yaml        : Global settings (forks, source URL)
        - default            : Symlink to the global version

    Legacy global pointer (read only): ~/fvm/default
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from fvmkit.core.exceptions import FvmKitError

HOME_ENV_VAR = "FVMKIT_HOME"

# Fork-qualified tokens ("alias/version") are stored flat under versions/.
FORK_SEPARATOR = "/"
FORK_DIR_SEPARATOR = "@"


class DirectoryError(FvmKitError):
    """Raised when the home directory cannot be determined."""

    pass


def _user_home() -> Path:
    if os.name == "nt":  # Windows
        user_profile = os.environ.get("USERPROFILE")
        if not user_profile:
            raise DirectoryError(
                "USERPROFILE environment variable is not set. "
                "Cannot determine fvmkit home directory."
            )
        return Path(user_profile)
    return Path.home()


def get_fvmkit_home() -> Path:
    """
    Get the fvmkit home directory.

    Returns:
        Path: $FVMKIT_HOME if set, otherwise ~/.fvmkit
            (%USERPROFILE%\\.fvmkit on Windows).

    Example:
        >>> get_fvmkit_home()
        PosixPath('/home/user/.fvmkit')
    """
    override = os.environ.get(HOME_ENV_VAR)
    if override:
        return Path(override).expanduser()
    return _user_home() / ".fvmkit"


def get_legacy_home() -> Path:
    """Home directory of the original FVM tool, checked for its global link."""
    return _user_home() / "fvm"


def version_dir_name(token: str) -> str:
    """Map a version token to its directory name under versions/."""
    return token.replace(FORK_SEPARATOR, FORK_DIR_SEPARATOR, 1)


def token_from_dir_name(name: str) -> str:
    """Inverse of version_dir_name()."""
    return name.replace(FORK_DIR_SEPARATOR, FORK_SEPARATOR, 1)


def is_valid_path_component(name: str) -> bool:
    """
    Check that a fork alias or bare version can name a single directory.

    Rejects empty names, "." and "..", path separators, and the fork
    directory separator (which would not survive token_from_dir_name()).

    Example:
        >>> is_valid_path_component("3.24.0")
        True
        >>> is_valid_path_component("..")
        False
    """
    if not name or name in (".", ".."):
        return False
    return not any(c in name for c in ("/", "\\", FORK_DIR_SEPARATOR))


@dataclass(frozen=True)
class SdkLayout:
    """
    Paths of every resource managed below one fvmkit home.

    Attributes:
        root: fvmkit home directory
        legacy_root: Home of the original FVM tool (global link fallback)
    """

    root: Path
    legacy_root: Optional[Path] = None

    @classmethod
    def default(cls) -> "SdkLayout":
        """Layout rooted at get_fvmkit_home()."""
        return cls(root=get_fvmkit_home(), legacy_root=get_legacy_home())

    @property
    def versions_dir(self) -> Path:
        return self.root / "versions"

    @property
    def shared_dir(self) -> Path:
        return self.root / "shared"

    @property
    def engine_dir(self) -> Path:
        return self.shared_dir / "engine"

    @property
    def engine_staging_dir(self) -> Path:
        return self.engine_dir / ".staging"

    @property
    def worktree_staging_dir(self) -> Path:
        return self.shared_dir / ".worktrees"

    @property
    def lock_dir(self) -> Path:
        return self.root / "lock"

    @property
    def config_file(self) -> Path:
        return self.root / "config.yaml"

    @property
    def global_link(self) -> Path:
        return self.root / "default"

    @property
    def legacy_global_link(self) -> Optional[Path]:
        if self.legacy_root is None:
            return None
        return self.legacy_root / "default"

    def shared_repo_dir(self, fork: Optional[str] = None) -> Path:
        """Bare repository for the default origin, or for a fork alias."""
        if fork:
            return self.shared_dir / "forks" / fork
        return self.shared_dir / "flutter"

    def engine_hash_dir(self, engine_hash: str) -> Path:
        return self.engine_dir / engine_hash

    def version_dir(self, token: str) -> Path:
        return self.versions_dir / version_dir_name(token)


__all__ = [
    "DirectoryError",
    "SdkLayout",
    "get_fvmkit_home",
    "get_legacy_home",
    "version_dir_name",
    "token_from_dir_name",
    "is_valid_path_component",
    "HOME_ENV_VAR",
]
