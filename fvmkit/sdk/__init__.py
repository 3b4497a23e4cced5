"""
Flutter SDK management: versions, releases, sources, engines and links.
"""

from .versions import (
    CHANNELS,
    DEFAULT_CHANNEL,
    ParsedVersion,
    VersionResolver,
    flutter_executable,
    parse_token,
)

from .releases import (
    ReleaseRecord,
    CurrentReleases,
    FlutterReleases,
    ReleaseCatalog,
    engine_version_url,
    fetch_engine_hash,
)

from .linking import SdkLinkManager, read_link_target

from .source_store import SharedSourceStore, worktree_name

from .engine_cache import EngineCache, CleanupResult

from .installer import InstallOrchestrator, InstallResult

from .global_version import GlobalVersionManager

__all__ = [
    "CHANNELS",
    "DEFAULT_CHANNEL",
    "ParsedVersion",
    "VersionResolver",
    "flutter_executable",
    "parse_token",
    "ReleaseRecord",
    "CurrentReleases",
    "FlutterReleases",
    "ReleaseCatalog",
    "engine_version_url",
    "fetch_engine_hash",
    "SdkLinkManager",
    "read_link_target",
    "SharedSourceStore",
    "worktree_name",
    "EngineCache",
    "CleanupResult",
    "InstallOrchestrator",
    "InstallResult",
    "GlobalVersionManager",
]
