"""
Shared source repositories with per-version worktrees.

Every origin (the default Flutter repository, or a fork) is cloned once as a
bare repository. Installed versions are git worktrees of that repository, so
the object store is shared and installing another version only costs a
checkout.

Repository states:
    Absent --clone--> Ready --fetch--> Ready
    A repository that fails to open is deleted and cloned again, once.

Remote branches are fetched into ``refs/remotes/origin/*`` and tags into
``refs/tags/*``. Local channel branches (``refs/heads/<channel>``) belong to
the worktrees: each version's worktree is attached to its channel branch and
hard-reset to the exact release commit, so the flutter tool sees both the
right commit and the right channel.
"""

import logging
from pathlib import Path
from typing import Optional

from fvmkit.core.directory import SdkLayout
from fvmkit.core.exceptions import (
    GitCommandError,
    NetworkError,
    RepositoryCorruptedError,
    VersionNotFoundError,
)
from fvmkit.core.filesystem import safe_rmtree
from fvmkit.core.locking import LockManager
from fvmkit.sdk.git import rev_parse, run_git
from fvmkit.sdk.versions import CHANNELS

logger = logging.getLogger(__name__)

WORKTREE_PREFIX = "fvm-"
REMOTE_FETCH_REFSPEC = "+refs/heads/*:refs/remotes/origin/*"


def worktree_name(version: str) -> str:
    """
    Deterministic worktree registration name of a bare version.

    Example:
        >>> worktree_name("3.24.0")
        'fvm-3.24.0'
    """
    return f"{WORKTREE_PREFIX}{version}"


class SharedSourceStore:
    """
    One origin's bare repository and the worktrees created from it.

    Fetches and worktree changes for an origin are serialized with the
    origin's lock, so concurrent installs from the same origin take turns.
    """

    def __init__(
        self,
        layout: SdkLayout,
        origin_url: str,
        fork: Optional[str] = None,
        lock_manager: Optional[LockManager] = None,
    ):
        """
        Args:
            layout: fvmkit directory layout
            origin_url: Git URL the repository is cloned from
            fork: Fork alias, or None for the default origin
            lock_manager: Lock manager (created under layout.lock_dir if None)
        """
        self.layout = layout
        self.origin_url = origin_url
        self.fork = fork
        self.repo_dir = layout.shared_repo_dir(fork)
        self.origin_id = f"fork-{fork}" if fork else "flutter"
        self.lock_manager = lock_manager or LockManager(layout.lock_dir)
        self._refreshed = False

    # Repository lifecycle --------------------------------------------------

    def is_valid(self) -> bool:
        """True if repo_dir opens as a bare repository."""
        if not self.repo_dir.is_dir():
            return False
        try:
            output = run_git(["rev-parse", "--is-bare-repository"], git_dir=self.repo_dir)
        except GitCommandError:
            return False
        return output == "true"

    def ensure_ready(self) -> Path:
        """
        Make the repository present and up to date with its origin.

        Clones on first use and fetches on reuse. Repeated calls on the same
        instance fetch only once.

        Returns:
            Path of the bare repository

        Raises:
            NetworkError: If the origin cannot be cloned or fetched
            RepositoryCorruptedError: If a fresh clone still fails to open
        """
        with self.lock_manager.origin_lock(self.origin_id):
            self._ensure_ready_locked()
        return self.repo_dir

    def _ensure_ready_locked(self) -> None:
        if self._refreshed:
            return

        if self.repo_dir.exists():
            if self.is_valid():
                logger.debug(f"Shared repository exists at {self.repo_dir}")
                self._fetch()
                self._refreshed = True
                return

            logger.warning(
                f"Corrupted repository found at {self.repo_dir}, cleaning up"
            )
            safe_rmtree(self.repo_dir, require_prefix=self.layout.shared_dir)

        self._clone()
        if not self.is_valid():
            raise RepositoryCorruptedError(
                f"Repository at {self.repo_dir} cannot be opened after a fresh clone"
            )
        self._refreshed = True

    def _clone(self) -> None:
        logger.info(f"Cloning {self.origin_url} (this only happens once)")
        self.repo_dir.parent.mkdir(parents=True, exist_ok=True)

        try:
            run_git(["clone", "--bare", self.origin_url, str(self.repo_dir)])
        except GitCommandError as e:
            if self.repo_dir.exists():
                safe_rmtree(self.repo_dir, require_prefix=self.layout.shared_dir)
            raise NetworkError(f"Failed to clone {self.origin_url}: {e.stderr}") from e

        # Bare clones map branches onto refs/heads; keep the origin's branches
        # separate so local channel branches can follow worktree checkouts.
        run_git(
            ["config", "remote.origin.fetch", REMOTE_FETCH_REFSPEC],
            git_dir=self.repo_dir,
        )
        self._fetch()
        logger.debug(f"Cloned shared repository to {self.repo_dir}")

    def _fetch(self) -> None:
        logger.debug(f"Fetching updates from {self.origin_url}")
        try:
            run_git(
                ["fetch", "--tags", "--force", "--prune", "origin"],
                git_dir=self.repo_dir,
            )
        except GitCommandError as e:
            raise NetworkError(f"Failed to fetch {self.origin_url}: {e.stderr}") from e

    # Refs ------------------------------------------------------------------

    def resolve_commit(self, version: str) -> str:
        """
        Commit a bare version points to.

        Release versions resolve through their tag; channel names resolve to
        the origin's branch of that name.

        Raises:
            VersionNotFoundError: If the origin has no such tag or branch
        """
        if version in CHANNELS:
            refs = [f"refs/remotes/origin/{version}", f"refs/heads/{version}"]
        else:
            refs = [f"refs/tags/{version}"]

        for ref in refs:
            commit = rev_parse(self.repo_dir, ref)
            if commit:
                logger.debug(f"Resolved {ref} to {commit}")
                return commit
        raise VersionNotFoundError(version, self.origin_url)

    def read_file(self, commit: str, path: str) -> str:
        """Contents of a file at a commit (``git show <commit>:<path>``)."""
        return run_git(["show", f"{commit}:{path}"], git_dir=self.repo_dir)

    def _ensure_channel_branch(self, channel: str) -> bool:
        """Make sure refs/heads/<channel> exists; False if the origin lacks it."""
        if rev_parse(self.repo_dir, f"refs/heads/{channel}"):
            return True
        remote_ref = f"refs/remotes/origin/{channel}"
        if not rev_parse(self.repo_dir, remote_ref):
            return False
        run_git(["branch", channel, remote_ref], git_dir=self.repo_dir)
        return True

    # Worktrees -------------------------------------------------------------

    def checkout(self, version: str, target_dir: Path, channel: str) -> str:
        """
        Create the worktree of a version at target_dir.

        The worktree is created on the channel branch and then hard-reset to
        the version's commit, leaving HEAD attached to the channel branch
        (tracking origin/<channel>) at the exact release commit. If the
        origin has no such channel branch the worktree is detached.

        Worktrees of one channel share its branch: the HEAD of an older
        worktree follows the newest checkout of that channel while its files
        stay at the older release.

        Args:
            version: Bare version (tag) or channel name
            target_dir: Version directory to create
            channel: Channel the version belongs to

        Returns:
            The checked out commit id

        Raises:
            VersionNotFoundError: If the version does not exist at the origin
            NetworkError: If the origin cannot be reached
            GitCommandError: If a worktree operation fails
        """
        with self.lock_manager.origin_lock(self.origin_id):
            self._ensure_ready_locked()
            commit = self.resolve_commit(version)

            if target_dir.exists():
                logger.warning(f"Removing incomplete installation at {target_dir}")
                safe_rmtree(target_dir, require_prefix=self.layout.versions_dir)

            # Registration names must be free before the worktree is added
            name = worktree_name(version)
            self._prune_locked(name)

            # git names a worktree after its directory, so it is created under
            # its registration name and then moved into place. Staging is per
            # origin since each origin only holds its own lock.
            staging_dir = self.layout.worktree_staging_dir / self.origin_id / name
            if staging_dir.exists():
                safe_rmtree(staging_dir, require_prefix=self.layout.worktree_staging_dir)
            staging_dir.parent.mkdir(parents=True, exist_ok=True)
            target_dir.parent.mkdir(parents=True, exist_ok=True)

            on_branch = self._ensure_channel_branch(channel)
            if on_branch:
                # --force: several versions share one channel branch
                run_git(
                    ["worktree", "add", "--force", str(staging_dir), channel],
                    git_dir=self.repo_dir,
                )
            else:
                logger.warning(
                    f"Origin has no '{channel}' branch, checking out {version} detached"
                )
                run_git(
                    ["worktree", "add", "--detach", str(staging_dir), commit],
                    git_dir=self.repo_dir,
                )

            run_git(
                ["worktree", "move", str(staging_dir), str(target_dir)],
                git_dir=self.repo_dir,
            )
            run_git(["reset", "--hard", "--quiet", commit], cwd=target_dir)

            if on_branch:
                run_git(
                    ["config", f"branch.{channel}.remote", "origin"],
                    git_dir=self.repo_dir,
                )
                run_git(
                    ["config", f"branch.{channel}.merge", f"refs/heads/{channel}"],
                    git_dir=self.repo_dir,
                )

        logger.debug(f"Checked out {version} ({commit}) at {target_dir}")
        return commit

    def prune_worktree(self, version: str) -> bool:
        """
        Drop the worktree registration of a version whose directory is gone.

        Returns:
            True if a registration was pruned, False if there was none
        """
        if not self.is_valid():
            return False
        with self.lock_manager.origin_lock(self.origin_id):
            return self._prune_locked(worktree_name(version))

    def _prune_locked(self, name: str) -> bool:
        registration = self.repo_dir / "worktrees" / name
        if not registration.exists():
            return False

        logger.debug(f"Pruning git worktree: {name}")
        run_git(["worktree", "prune"], git_dir=self.repo_dir)
        return not registration.exists()


__all__ = [
    "SharedSourceStore",
    "worktree_name",
    "WORKTREE_PREFIX",
]
