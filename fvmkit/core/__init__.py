"""
Core functionality for fvmkit.

This package contains the foundational modules the SDK manager depends on.
"""

from .directory import (
    SdkLayout,
    get_fvmkit_home,
    get_legacy_home,
    version_dir_name,
    token_from_dir_name,
    DirectoryError,
)

from .locking import (
    LockManager,
    LockTimeout,
)

from .platform import (
    PlatformInfo,
    detect_platform,
    engine_arch_name,
    engine_platform_name,
    clear_platform_cache,
)

from .exceptions import (
    FvmKitError,
    ConfigError,
    InvalidVersionError,
    VersionNotFoundError,
    VersionNotInstalledError,
    ForkNotFoundError,
    UnsupportedPlatformError,
    NetworkError,
    DownloadError,
    GitCommandError,
    RepositoryCorruptedError,
    FilesystemError,
    ArchiveExtractionError,
    InsecureArchiveError,
    LinkError,
    InstallError,
)

__all__ = [
    "SdkLayout",
    "get_fvmkit_home",
    "get_legacy_home",
    "version_dir_name",
    "token_from_dir_name",
    "DirectoryError",
    "LockManager",
    "LockTimeout",
    "PlatformInfo",
    "detect_platform",
    "engine_arch_name",
    "engine_platform_name",
    "clear_platform_cache",
    "FvmKitError",
    "ConfigError",
    "InvalidVersionError",
    "VersionNotFoundError",
    "VersionNotInstalledError",
    "ForkNotFoundError",
    "UnsupportedPlatformError",
    "NetworkError",
    "DownloadError",
    "GitCommandError",
    "RepositoryCorruptedError",
    "FilesystemError",
    "ArchiveExtractionError",
    "InsecureArchiveError",
    "LinkError",
    "InstallError",
]
