"""
Installing and removing Flutter versions.

An install turns a version token into a self-contained SDK directory:

1. skip everything if the version is already installed
2. resolve the origin, the release channel and the pinned engine hash
3. populate the engine cache and check out the source worktree, in parallel
4. write the engine marker files and link the cached engine into the SDK

Failures are reported as InstallError naming the failing stage; whatever
the other parallel unit produced is left on disk and reused next time.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional

from fvmkit.config.global_config import GlobalConfig
from fvmkit.core.directory import SdkLayout
from fvmkit.core.download import DownloadProgress
from fvmkit.core.exceptions import (
    FvmKitError,
    ForkNotFoundError,
    InstallError,
    VersionNotInstalledError,
)
from fvmkit.core.filesystem import safe_rmtree
from fvmkit.core.locking import LockManager
from fvmkit.sdk.engine_cache import EngineCache
from fvmkit.sdk.linking import SdkLinkManager
from fvmkit.sdk.releases import (
    ENGINE_VERSION_PATH,
    ReleaseCatalog,
    engine_version_url,
    fetch_engine_hash,
)
from fvmkit.sdk.source_store import SharedSourceStore
from fvmkit.sdk.versions import ParsedVersion, VersionResolver, parse_token

logger = logging.getLogger(__name__)

STAGE_RESOLVE = "resolve"
STAGE_ENGINE = "engine"
STAGE_CHECKOUT = "checkout"
STAGE_LINK = "link"


@dataclass
class InstallResult:
    """
    Outcome of ensure_installed().

    Attributes:
        version: Version token
        path: Version directory
        engine_hash: Engine the version is linked to (None if unknown)
        channel: Release channel (None when the install was skipped)
        was_installed: True if the version was already present
    """

    version: str
    path: Path
    engine_hash: Optional[str]
    channel: Optional[str]
    was_installed: bool


class InstallOrchestrator:
    """
    Coordinates the catalog, source store, engine cache and linker.

    Example:
        >>> orchestrator = InstallOrchestrator(layout, config)
        >>> result = orchestrator.ensure_installed("3.24.0")
        >>> print(result.path)
    """

    def __init__(
        self,
        layout: SdkLayout,
        config: GlobalConfig,
        catalog: Optional[ReleaseCatalog] = None,
        engine_cache: Optional[EngineCache] = None,
        link_manager: Optional[SdkLinkManager] = None,
        resolver: Optional[VersionResolver] = None,
        lock_manager: Optional[LockManager] = None,
        engine_version_url_template: Optional[str] = None,
    ):
        """
        Initialize install orchestrator.

        Args:
            layout: fvmkit directory layout
            config: Global configuration (source URLs, forks)
            catalog: Release catalog (created from config if None)
            engine_cache: Engine cache (created from config if None)
            link_manager: Link manager (created if None)
            resolver: Installed version resolver (created if None)
            lock_manager: Lock manager shared by the source stores
            engine_version_url_template: URL of engine.version files with a
                '{version}' placeholder; derived from the origin URL if None
        """
        self.layout = layout
        self.config = config
        self.lock_manager = lock_manager or LockManager(layout.lock_dir)
        self.catalog = catalog or ReleaseCatalog(config.storage_base_url())
        self.engine_cache = engine_cache or EngineCache(
            layout,
            storage_base_url=config.storage_base_url(),
            lock_manager=self.lock_manager,
        )
        self.link_manager = link_manager or SdkLinkManager()
        self.resolver = resolver or VersionResolver(layout)
        self.engine_version_url_template = engine_version_url_template

        self._stores: Dict[Optional[str], SharedSourceStore] = {}
        self._stores_lock = threading.Lock()

    # ========================================================================
    # Resolution
    # ========================================================================

    def origin_url(self, parsed: ParsedVersion) -> str:
        """
        Git URL a version is installed from.

        Raises:
            ForkNotFoundError: If the token names an unknown fork alias
        """
        if parsed.fork is None:
            return self.config.default_source_url()
        url = self.config.fork_url(parsed.fork)
        if url is None:
            raise ForkNotFoundError(parsed.fork)
        return url

    def source_store(self, parsed: ParsedVersion) -> SharedSourceStore:
        """Source store of a version's origin, one instance per origin."""
        url = self.origin_url(parsed)
        with self._stores_lock:
            store = self._stores.get(parsed.fork)
            if store is None:
                store = SharedSourceStore(
                    self.layout, url, fork=parsed.fork, lock_manager=self.lock_manager
                )
                self._stores[parsed.fork] = store
            return store

    def resolve_channel(self, parsed: ParsedVersion) -> str:
        """Channel names are their own channel; releases come from the catalog."""
        if parsed.is_channel:
            return parsed.version
        return self.catalog.channel_of(parsed.version)

    def resolve_engine_hash(self, parsed: ParsedVersion, store: SharedSourceStore) -> str:
        """
        Engine hash a version is pinned to.

        Read over HTTP for GitHub-hosted origins (or through the configured
        URL template); other origins are read from the shared repository.
        """
        if self.engine_version_url_template:
            url = self.engine_version_url_template.format(version=parsed.version)
        else:
            url = engine_version_url(store.origin_url, parsed.version)

        if url:
            return fetch_engine_hash(url, parsed.version)

        logger.debug(f"Reading engine hash of {parsed.token} from {store.repo_dir}")
        store.ensure_ready()
        commit = store.resolve_commit(parsed.version)
        engine_hash = store.read_file(commit, ENGINE_VERSION_PATH).strip()
        if not engine_hash:
            raise FvmKitError(f"Empty {ENGINE_VERSION_PATH} in {parsed.token}")
        return engine_hash

    # ========================================================================
    # Install
    # ========================================================================

    def ensure_installed(
        self,
        token: str,
        progress_callback: Optional[Callable[[DownloadProgress], None]] = None,
    ) -> InstallResult:
        """
        Install a version unless it is already installed.

        Args:
            token: Version token ('3.24.0', 'stable', 'mycompany/3.24.0')
            progress_callback: Called with the engine download progress; not
                called when the engine is already cached

        Returns:
            InstallResult describing the version directory

        Raises:
            InvalidVersionError: If the token is malformed
            ForkNotFoundError: If the token names an unknown fork alias
            InstallError: If any install stage fails (the original error is
                chained as __cause__)
        """
        parsed = parse_token(token)
        version_dir = self.layout.version_dir(parsed.token)

        if self.resolver.is_installed(parsed.token):
            logger.debug(f"Version {parsed.token} already installed at {version_dir}")
            return InstallResult(
                version=parsed.token,
                path=version_dir,
                engine_hash=self.engine_cache.engine_hash_for_version(parsed.token),
                channel=None,
                was_installed=True,
            )

        store = self.source_store(parsed)
        logger.info(f"Installing Flutter {parsed.token}")

        try:
            channel = self.resolve_channel(parsed)
            engine_hash = self.resolve_engine_hash(parsed, store)
        except FvmKitError as e:
            raise InstallError(parsed.token, STAGE_RESOLVE, str(e)) from e
        logger.debug(f"{parsed.token}: channel {channel}, engine {engine_hash}")

        with self.engine_cache.reserve(engine_hash):
            engine_dir = self._fetch_in_parallel(
                parsed, store, channel, engine_hash, version_dir, progress_callback
            )

            try:
                self.link_manager.link_engine(engine_dir, version_dir)
            except (FvmKitError, OSError) as e:
                raise InstallError(parsed.token, STAGE_LINK, str(e)) from e

        logger.info(f"Flutter {parsed.token} installed at {version_dir}")
        return InstallResult(
            version=parsed.token,
            path=version_dir,
            engine_hash=engine_hash,
            channel=channel,
            was_installed=False,
        )

    def _fetch_in_parallel(
        self,
        parsed: ParsedVersion,
        store: SharedSourceStore,
        channel: str,
        engine_hash: str,
        version_dir: Path,
        progress_callback: Optional[Callable[[DownloadProgress], None]] = None,
    ) -> Path:
        with ThreadPoolExecutor(max_workers=2, thread_name_prefix="fvmkit") as pool:
            engine_future = pool.submit(
                self.engine_cache.ensure,
                engine_hash,
                progress_callback=progress_callback,
            )
            checkout_future = pool.submit(
                store.checkout, parsed.version, version_dir, channel
            )

            # Both units run to completion before either failure is reported
            engine_error = engine_future.exception()
            checkout_error = checkout_future.exception()

        for stage, error in (
            (STAGE_ENGINE, engine_error),
            (STAGE_CHECKOUT, checkout_error),
        ):
            if error is None:
                continue
            if not isinstance(error, (FvmKitError, OSError)):
                raise error
            raise InstallError(parsed.token, stage, str(error)) from error

        return engine_future.result()

    def install_many(self, tokens: Iterable[str]) -> List[InstallResult]:
        """Install several versions one after another."""
        return [self.ensure_installed(token) for token in tokens]

    # ========================================================================
    # Uninstall
    # ========================================================================

    def uninstall(self, token: str) -> Optional[str]:
        """
        Remove an installed version.

        The version directory is deleted first (the dart-sdk link inside it
        is removed, never followed); the worktree registration is then
        pruned on a best-effort basis.

        Returns:
            Engine hash the version referenced, or None if unknown

        Raises:
            VersionNotInstalledError: If the version directory does not exist
            FilesystemError: If the directory cannot be deleted
        """
        parsed = parse_token(token)
        version_dir = self.layout.version_dir(parsed.token)
        if not version_dir.is_dir():
            raise VersionNotInstalledError(parsed.token)

        engine_hash = self.engine_cache.engine_hash_for_version(parsed.token)

        logger.info(f"Removing Flutter {parsed.token}")
        safe_rmtree(version_dir, require_prefix=self.layout.versions_dir)

        try:
            if self.source_store(parsed).prune_worktree(parsed.version):
                logger.debug(f"Pruned worktree of {parsed.token}")
        except FvmKitError as e:
            logger.warning(f"Failed to prune worktree of {parsed.token}: {e}")

        return engine_hash


__all__ = [
    "InstallOrchestrator",
    "InstallResult",
    "STAGE_RESOLVE",
    "STAGE_ENGINE",
    "STAGE_CHECKOUT",
    "STAGE_LINK",
]
