"""
Version token parsing and discovery of installed versions.

A version token is either a release version (``3.24.0``), a channel name
(``stable``), or either of those qualified by a fork alias
(``mycompany/3.24.0``). Tokens are not validated against the release
catalog.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Set

from fvmkit.core.directory import (
    SdkLayout,
    is_valid_path_component,
    token_from_dir_name,
    version_dir_name,
)
from fvmkit.core.exceptions import InvalidVersionError
from fvmkit.sdk.linking import (
    DART_SDK_LINK,
    ENGINE_DART_SDK_STAMP,
    ENGINE_REALM,
    ENGINE_STAMP,
    cache_dir_of,
    read_link_target,
)

logger = logging.getLogger(__name__)

CHANNELS = ("stable", "beta", "dev", "master")
DEFAULT_CHANNEL = "master"


@dataclass(frozen=True)
class ParsedVersion:
    """
    A version token split into its fork alias and bare version.

    Attributes:
        fork: Fork alias, or None for the default origin
        version: Bare version or channel name
    """

    fork: Optional[str]
    version: str

    @property
    def token(self) -> str:
        return f"{self.fork}/{self.version}" if self.fork else self.version

    @property
    def is_channel(self) -> bool:
        return self.version in CHANNELS

    @property
    def directory_name(self) -> str:
        return version_dir_name(self.token)


def parse_token(token: str) -> ParsedVersion:
    """
    Split a version token on its first '/'.

    Example:
        >>> parse_token("mycompany/3.24.0")
        ParsedVersion(fork='mycompany', version='3.24.0')
        >>> parse_token("3.24.0")
        ParsedVersion(fork=None, version='3.24.0')

    Raises:
        InvalidVersionError: If the token or one of its parts is empty, or a
            part cannot name a directory ("..", separators, "@")
    """
    if not token or not token.strip():
        raise InvalidVersionError("Version cannot be empty")

    token = token.strip()
    if "/" not in token:
        fork, version = None, token
    else:
        fork, version = token.split("/", 1)
        if not fork or not version:
            raise InvalidVersionError(f"Invalid fork-qualified version: '{token}'")
        if not is_valid_path_component(fork):
            raise InvalidVersionError(f"Invalid fork alias in version: '{token}'")

    if not is_valid_path_component(version):
        raise InvalidVersionError(f"Invalid version: '{token}'")
    return ParsedVersion(fork=fork, version=version)


def flutter_executable(version_dir: Path) -> Path:
    """Entry point whose presence marks a version as installed."""
    name = "flutter.bat" if os.name == "nt" else "flutter"
    return version_dir / "bin" / name


class VersionResolver:
    """Answers which versions are installed and which one is global."""

    def __init__(self, layout: SdkLayout):
        self.layout = layout

    def list_installed(self) -> Set[str]:
        """
        Enumerate installed versions.

        Returns:
            Version tokens of every directory under the version root; an
            empty set if the root does not exist yet.
        """
        versions_dir = self.layout.versions_dir
        if not versions_dir.is_dir():
            logger.debug(f"Version root does not exist yet: {versions_dir}")
            return set()

        versions = set()
        for entry in versions_dir.iterdir():
            if entry.name.startswith(".") or not entry.is_dir():
                continue
            versions.add(token_from_dir_name(entry.name))

        logger.debug(f"Found {len(versions)} installed version(s)")
        return versions

    def current_global(self) -> Optional[str]:
        """
        Read the global pointer.

        The primary link is consulted first, then the legacy FVM link.

        Returns:
            Version token the pointer targets, or None
        """
        for link in (self.layout.global_link, self.layout.legacy_global_link):
            if link is None:
                continue
            target = read_link_target(link)
            if target is not None:
                logger.debug(f"Global version pointer {link} -> {target}")
                return token_from_dir_name(target.name)
        return None

    def is_installed(self, token: str, strict: bool = False) -> bool:
        """
        Check whether a version is installed.

        The default check only looks for the flutter entry point, which is
        what makes repeated installs free. With strict=True the engine marker
        files and the dart-sdk link target are verified as well.
        """
        version_dir = self.layout.version_dir(token)
        if not flutter_executable(version_dir).exists():
            return False
        if not strict:
            return True

        cache_dir = cache_dir_of(version_dir)
        for marker in (ENGINE_STAMP, ENGINE_DART_SDK_STAMP, ENGINE_REALM):
            if not (cache_dir / marker).is_file():
                logger.debug(f"Missing marker {marker} in {cache_dir}")
                return False

        link = cache_dir / DART_SDK_LINK
        target = read_link_target(link)
        if target is None or not target.is_dir():
            logger.debug(f"Engine link is missing or broken: {link}")
            return False
        return True


__all__ = [
    "CHANNELS",
    "DEFAULT_CHANNEL",
    "ParsedVersion",
    "parse_token",
    "flutter_executable",
    "VersionResolver",
]
