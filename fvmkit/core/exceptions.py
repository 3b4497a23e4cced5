"""
Centralized exception hierarchy for fvmkit.

Every error raised by the install, cache and garbage collection paths derives
from FvmKitError so callers (the CLI in particular) can report them uniformly.
"""

from typing import Optional


# ============================================================================
# Base Exceptions
# ============================================================================


class FvmKitError(Exception):
    """Base exception for all fvmkit errors."""

    pass


class ConfigError(FvmKitError):
    """Global configuration could not be read, parsed or updated."""

    pass


# ============================================================================
# Version Exceptions
# ============================================================================


class InvalidVersionError(FvmKitError):
    """Version token is malformed (empty part, or a part that is not a plain name)."""

    pass


class VersionNotFoundError(FvmKitError):
    """Raised when a version does not exist at its source origin."""

    def __init__(self, version: str, origin: str = ""):
        self.version = version
        self.origin = origin
        msg = f"Flutter version not found: {version}"
        if origin:
            msg += f" (origin: {origin})"
        super().__init__(msg)


class VersionNotInstalledError(FvmKitError):
    """Raised when an operation requires a version that is not installed."""

    def __init__(self, version: str):
        self.version = version
        super().__init__(f"Flutter version is not installed: {version}")


class ForkNotFoundError(FvmKitError):
    """Raised when a fork-qualified token names an unknown alias."""

    def __init__(self, alias: str):
        self.alias = alias
        super().__init__(
            f"Fork not configured: {alias}. "
            f"Add it with 'fvmkit fork add {alias} <git-url>'"
        )


class UnsupportedPlatformError(FvmKitError):
    """Raised when the host OS or architecture has no engine build."""

    pass


# ============================================================================
# Network Exceptions
# ============================================================================


class NetworkError(FvmKitError):
    """Base exception for HTTP failures (requests are never retried)."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class DownloadError(NetworkError):
    """Raised when streaming a file to disk fails."""

    pass


# ============================================================================
# Git Exceptions
# ============================================================================


class GitCommandError(FvmKitError):
    """Raised when a git command exits with a non-zero status."""

    def __init__(self, args, returncode: int, stderr: str = ""):
        self.command = list(args)
        self.returncode = returncode
        self.stderr = stderr
        msg = f"Git command failed ({returncode}): {' '.join(self.command)}"
        if stderr:
            msg += f"\n{stderr}"
        super().__init__(msg)


class RepositoryCorruptedError(FvmKitError):
    """Shared repository still fails to open after being re-cloned."""

    pass


# ============================================================================
# Filesystem Exceptions
# ============================================================================


class FilesystemError(FvmKitError):
    """Base exception for filesystem operations."""

    pass


class ArchiveExtractionError(FilesystemError):
    """Failed to extract an archive."""

    pass


class InsecureArchiveError(ArchiveExtractionError):
    """Archive contains insecure paths (directory traversal attempt)."""

    pass


class LinkError(FilesystemError):
    """Failed to create or remove a symbolic link or junction."""

    pass


# ============================================================================
# Install Exceptions
# ============================================================================


class InstallError(FvmKitError):
    """
    Raised when installing a version fails.

    Attributes:
        version: Version token being installed
        stage: Failing stage ('resolve', 'engine', 'checkout', 'link')
    """

    def __init__(self, version: str, stage: str, message: str):
        self.version = version
        self.stage = stage
        super().__init__(f"Failed to install {version} during {stage}: {message}")
