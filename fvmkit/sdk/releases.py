"""
Flutter release catalog and per-version engine metadata.

The catalog is built from the per-platform release manifest published next
to the engine archives. It is fetched once per ReleaseCatalog instance and
kept in memory for the lifetime of that instance; nothing is persisted
between runs.
"""

import logging
import re
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, List, Optional

from fvmkit.core.download import fetch_json, fetch_text
from fvmkit.core.exceptions import NetworkError, VersionNotFoundError
from fvmkit.core.platform import PlatformInfo, detect_platform
from fvmkit.sdk.versions import DEFAULT_CHANNEL

logger = logging.getLogger(__name__)

MANIFEST_PATH = "flutter_infra_release/releases/releases_{os}.json"
ENGINE_VERSION_PATH = "bin/internal/engine.version"

_GITHUB_URL = re.compile(
    r"^(?:https?://|git@)github\.com[/:](?P<owner>[^/]+)/(?P<repo>[^/]+?)(?:\.git)?/?$"
)


@dataclass
class ReleaseRecord:
    """One release entry of the manifest."""

    hash: str
    channel: str
    version: str
    release_date: datetime
    dart_sdk_version: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict) -> "ReleaseRecord":
        return cls(
            hash=data["hash"],
            channel=data["channel"],
            version=data["version"],
            release_date=_parse_date(data["release_date"]),
            dart_sdk_version=data.get("dart_sdk_version"),
        )


@dataclass
class CurrentReleases:
    """Latest release of each channel (None if the manifest omits it)."""

    stable: Optional[ReleaseRecord]
    beta: Optional[ReleaseRecord]
    dev: Optional[ReleaseRecord]


@dataclass
class FlutterReleases:
    """Parsed release manifest."""

    current_releases: CurrentReleases
    releases: List[ReleaseRecord]


def _parse_date(value: str) -> datetime:
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_manifest(data: dict) -> FlutterReleases:
    """
    Build FlutterReleases from the decoded manifest JSON.

    Records are de-duplicated by hash, keeping the first occurrence and the
    manifest order.

    Raises:
        ValueError: If required fields are missing
    """
    try:
        seen = set()
        releases = []
        for entry in data["releases"]:
            record = ReleaseRecord.from_dict(entry)
            if record.hash in seen:
                continue
            seen.add(record.hash)
            releases.append(record)

        by_hash: Dict[str, ReleaseRecord] = {r.hash: r for r in releases}
        current = data.get("current_release") or {}
    except (KeyError, TypeError) as e:
        raise ValueError(f"Malformed release manifest: {e}") from e

    return FlutterReleases(
        current_releases=CurrentReleases(
            stable=by_hash.get(current.get("stable", "")),
            beta=by_hash.get(current.get("beta", "")),
            dev=by_hash.get(current.get("dev", "")),
        ),
        releases=releases,
    )


class ReleaseCatalog:
    """
    Release manifest for one platform, cached for the object's lifetime.

    Construct one per process run (or per long-lived session) and pass it to
    the components that need it.
    """

    def __init__(
        self,
        storage_base_url: str = "https://storage.googleapis.com",
        platform: Optional[PlatformInfo] = None,
    ):
        self.storage_base_url = storage_base_url.rstrip("/")
        self.platform = platform or detect_platform()
        self._releases: Optional[FlutterReleases] = None
        self._lock = threading.Lock()

    @property
    def manifest_url(self) -> str:
        path = MANIFEST_PATH.format(os=self.platform.manifest_os())
        return f"{self.storage_base_url}/{path}"

    def fetch_all(self) -> FlutterReleases:
        """
        Return the release manifest, fetching it on first use.

        Raises:
            NetworkError: If the manifest cannot be fetched or parsed
        """
        with self._lock:
            if self._releases is None:
                logger.debug(f"Fetching Flutter releases from {self.manifest_url}")
                data = fetch_json(self.manifest_url)
                try:
                    self._releases = parse_manifest(data)
                except ValueError as e:
                    raise NetworkError(f"{self.manifest_url}: {e}") from e
                logger.debug(f"Loaded {len(self._releases.releases)} releases")
            return self._releases

    def channel_of(self, version: str) -> str:
        """
        Channel a release version belongs to.

        Versions that are not in the manifest (custom builds, fork tags) are
        treated as bleeding edge and reported as 'master'.
        """
        for record in self.fetch_all().releases:
            if record.version == version:
                return record.channel
        logger.debug(f"Version {version} not in release manifest, using master")
        return DEFAULT_CHANNEL

    def releases_for_channel(self, channel: str) -> List[ReleaseRecord]:
        """Releases of one channel in manifest order ('all' for every release)."""
        releases = self.fetch_all().releases
        if channel == "all":
            return list(releases)
        return [r for r in releases if r.channel == channel]


def engine_version_url(origin_url: str, version: str) -> Optional[str]:
    """
    URL of the engine.version file of a GitHub-hosted origin.

    Example:
        >>> engine_version_url("https://github.com/flutter/flutter.git", "3.24.0")
        'https://raw.githubusercontent.com/flutter/flutter/3.24.0/bin/internal/engine.version'

    Returns:
        The raw-content URL, or None for origins not hosted on GitHub
    """
    match = _GITHUB_URL.match(origin_url)
    if not match:
        return None
    return (
        f"https://raw.githubusercontent.com/{match['owner']}/{match['repo']}"
        f"/{version}/{ENGINE_VERSION_PATH}"
    )


def fetch_engine_hash(url: str, version: str) -> str:
    """
    Fetch the engine hash a version is pinned to.

    Args:
        url: URL of the version's engine.version file
        version: Version the URL belongs to (for error reporting)

    Raises:
        VersionNotFoundError: If the file does not exist (HTTP 404)
        NetworkError: For any other failure or an empty file
    """
    logger.debug(f"Fetching engine hash from {url}")
    try:
        engine_hash = fetch_text(url).strip()
    except NetworkError as e:
        if e.status_code == 404:
            raise VersionNotFoundError(version, url) from e
        raise

    if not engine_hash:
        raise NetworkError(f"Empty engine.version received from {url}")
    logger.debug(f"Engine hash for {version}: {engine_hash}")
    return engine_hash


__all__ = [
    "ReleaseRecord",
    "CurrentReleases",
    "FlutterReleases",
    "ReleaseCatalog",
    "parse_manifest",
    "engine_version_url",
    "fetch_engine_hash",
    "ENGINE_VERSION_PATH",
]
