"""
Tests for the shared source store, run against a local fake origin.
"""

import shutil

import pytest

from fvmkit.core.exceptions import (
    NetworkError,
    RepositoryCorruptedError,
    VersionNotFoundError,
)
from fvmkit.sdk.git import run_git
from fvmkit.sdk.source_store import SharedSourceStore, worktree_name


@pytest.fixture
def store(layout, lock_manager, flutter_origin):
    return SharedSourceStore(layout, flutter_origin.url, lock_manager=lock_manager)


def test_worktree_name():
    assert worktree_name("3.24.0") == "fvm-3.24.0"


class TestEnsureReady:
    """Test SharedSourceStore.ensure_ready()."""

    def test_clones_bare_repository(self, store, layout):
        repo = store.ensure_ready()

        assert repo == layout.shared_dir / "flutter"
        assert store.is_valid()
        assert run_git(["config", "remote.origin.fetch"], git_dir=repo) == (
            "+refs/heads/*:refs/remotes/origin/*"
        )

    def test_remote_branches_and_tags_fetched(self, store, flutter_origin):
        store.ensure_ready()

        assert store.resolve_commit("9.9.9") == flutter_origin.tags["9.9.9"]
        assert store.resolve_commit("stable") == flutter_origin.tags["9.9.10"]
        assert store.resolve_commit("beta") == flutter_origin.tags["9.9.9"]

    def test_fetch_picks_up_new_tags(
        self, layout, lock_manager, store, flutter_origin, git_cli
    ):
        store.ensure_ready()

        (flutter_origin.path / "bin" / "internal" / "engine.version").write_text(
            "feedface\n"
        )
        git_cli(flutter_origin.path, "commit", "-q", "-am", "Release 9.9.11")
        git_cli(flutter_origin.path, "tag", "9.9.11")

        # A new store instance (a new run) fetches again
        again = SharedSourceStore(layout, flutter_origin.url, lock_manager=lock_manager)
        again.ensure_ready()

        assert again.resolve_commit("9.9.11")

    def test_corrupted_repository_is_recloned(self, store, layout):
        repo = layout.shared_dir / "flutter"
        repo.mkdir(parents=True)
        (repo / "garbage").write_text("not a repository")

        store.ensure_ready()

        assert store.is_valid()
        assert not (repo / "garbage").exists()

    def test_unreachable_origin(self, layout, lock_manager, tmp_path):
        store = SharedSourceStore(
            layout, str(tmp_path / "does-not-exist"), lock_manager=lock_manager
        )

        with pytest.raises(NetworkError, match="Failed to clone"):
            store.ensure_ready()

        assert not (layout.shared_dir / "flutter").exists()

    def test_second_failure_propagates(self, store, monkeypatch):
        monkeypatch.setattr(SharedSourceStore, "is_valid", lambda self: False)

        with pytest.raises(RepositoryCorruptedError):
            store.ensure_ready()

    def test_fork_repository_location(self, layout, lock_manager, flutter_origin):
        store = SharedSourceStore(
            layout, flutter_origin.url, fork="acme", lock_manager=lock_manager
        )
        store.ensure_ready()

        assert (layout.shared_dir / "forks" / "acme").is_dir()
        assert store.origin_id == "fork-acme"


class TestCheckout:
    """Test SharedSourceStore.checkout()."""

    def test_release_checkout(self, store, layout, flutter_origin, git_cli):
        target = layout.version_dir("9.9.9")

        commit = store.checkout("9.9.9", target, "stable")

        assert commit == flutter_origin.tags["9.9.9"]
        assert (target / "bin" / "flutter").is_file()
        assert (target / "bin" / "internal" / "engine.version").read_text() == (
            "deadbeef\n"
        )
        assert git_cli(target, "rev-parse", "HEAD") == commit

    def test_attached_to_channel_branch(self, store, layout, git_cli):
        target = layout.version_dir("9.9.9")
        store.checkout("9.9.9", target, "stable")

        assert git_cli(target, "symbolic-ref", "--short", "HEAD") == "stable"
        assert git_cli(target, "config", "branch.stable.remote") == "origin"
        assert git_cli(target, "config", "branch.stable.merge") == "refs/heads/stable"

    def test_worktree_registered_under_deterministic_name(self, store, layout):
        store.checkout("9.9.9", layout.version_dir("9.9.9"), "stable")

        assert (store.repo_dir / "worktrees" / "fvm-9.9.9").is_dir()
        assert not (layout.worktree_staging_dir / "flutter" / "fvm-9.9.9").exists()

    def test_staging_is_separate_per_origin(self, store, layout):
        """A fork's half-created worktree of the same version is left alone."""
        other = layout.worktree_staging_dir / "fork-acme" / "fvm-9.9.9"
        other.mkdir(parents=True)
        (other / "marker").write_text("in progress")

        store.checkout("9.9.9", layout.version_dir("9.9.9"), "stable")

        assert (other / "marker").read_text() == "in progress"
        assert (store.repo_dir / "worktrees" / "fvm-9.9.9").is_dir()

    def test_two_versions_share_a_channel(
        self, store, layout, flutter_origin, git_cli
    ):
        old = layout.version_dir("9.9.9")
        new = layout.version_dir("9.9.10")

        store.checkout("9.9.9", old, "stable")
        store.checkout("9.9.10", new, "stable")

        assert (old / "bin" / "internal" / "engine.version").read_text() == "deadbeef\n"
        assert (new / "bin" / "internal" / "engine.version").read_text() == "cafebabe\n"

        # The files stay at 9.9.9, but the shared branch moved under the
        # older worktree: its HEAD now names the 9.9.10 commit.
        assert git_cli(old, "rev-parse", "HEAD") == flutter_origin.tags["9.9.10"]
        # The index still holds 9.9.9, so git reports a staged change
        assert git_cli(old, "status", "--porcelain") == "M  bin/internal/engine.version"
        assert git_cli(new, "status", "--porcelain") == ""

    def test_channel_checkout(self, store, layout, flutter_origin, git_cli):
        target = layout.version_dir("beta")

        commit = store.checkout("beta", target, "beta")

        assert commit == flutter_origin.tags["9.9.9"]
        assert git_cli(target, "symbolic-ref", "--short", "HEAD") == "beta"

    def test_missing_channel_branch_checks_out_detached(self, store, layout, git_cli):
        target = layout.version_dir("9.9.9")

        store.checkout("9.9.9", target, "master")

        assert git_cli(target, "rev-parse", "--abbrev-ref", "HEAD") == "HEAD"

    def test_unknown_version(self, store, layout):
        with pytest.raises(VersionNotFoundError) as exc_info:
            store.checkout("1.0.0", layout.version_dir("1.0.0"), "stable")

        assert exc_info.value.version == "1.0.0"
        assert not layout.version_dir("1.0.0").exists()

    def test_incomplete_directory_is_replaced(self, store, layout):
        target = layout.version_dir("9.9.9")
        (target / "leftover").mkdir(parents=True)

        store.checkout("9.9.9", target, "stable")

        assert not (target / "leftover").exists()
        assert (target / "bin" / "flutter").is_file()

    def test_reinstall_after_removal(self, store, layout, flutter_origin):
        """Removing and re-adding a version reuses the worktree name."""
        target = layout.version_dir("9.9.9")
        store.checkout("9.9.9", target, "stable")

        shutil.rmtree(target)
        commit = store.checkout("9.9.9", target, "stable")

        assert commit == flutter_origin.tags["9.9.9"]
        assert (store.repo_dir / "worktrees" / "fvm-9.9.9").is_dir()


class TestPruneWorktree:
    def test_prune_after_directory_removal(self, store, layout):
        target = layout.version_dir("9.9.9")
        store.checkout("9.9.9", target, "stable")
        shutil.rmtree(target)

        assert store.prune_worktree("9.9.9") is True
        assert not (store.repo_dir / "worktrees" / "fvm-9.9.9").exists()

    def test_prune_is_idempotent(self, store):
        store.ensure_ready()
        assert store.prune_worktree("9.9.9") is False
        assert store.prune_worktree("9.9.9") is False

    def test_no_repository(self, store):
        assert store.prune_worktree("9.9.9") is False


def test_read_file(store, flutter_origin):
    store.ensure_ready()
    commit = store.resolve_commit("9.9.10")
    assert store.read_file(commit, "bin/internal/engine.version") == "cafebabe"
