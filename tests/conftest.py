"""
Pytest configuration and shared fixtures for fvmkit tests.
"""

import io
import os
import shutil
import subprocess
import zipfile
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import pytest

from fvmkit.config.global_config import GlobalConfig
from fvmkit.core.directory import SdkLayout
from fvmkit.core.locking import LockManager
from fvmkit.core.platform import PlatformInfo

STORAGE_URL = "https://storage.example.test"


@pytest.fixture
def git_required():
    """Skip the test when git is not installed."""
    if shutil.which("git") is None:
        pytest.skip("git executable not available")


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "git: tests that need the git executable")


# ============================================================================
# Layout Fixtures
# ============================================================================


@pytest.fixture
def layout(tmp_path: Path) -> SdkLayout:
    """Isolated fvmkit home with a separate legacy home."""
    return SdkLayout(root=tmp_path / "home", legacy_root=tmp_path / "legacy")


@pytest.fixture
def lock_manager(layout: SdkLayout) -> LockManager:
    return LockManager(layout.lock_dir)


@pytest.fixture
def storage_url() -> str:
    return STORAGE_URL


@pytest.fixture
def linux_x64() -> PlatformInfo:
    return PlatformInfo(os="linux", arch="x64")


@pytest.fixture
def config(layout: SdkLayout, monkeypatch) -> GlobalConfig:
    """Configuration without environment overrides."""
    monkeypatch.delenv("FLUTTER_GIT_URL", raising=False)
    monkeypatch.delenv("FLUTTER_STORAGE_BASE_URL", raising=False)
    return GlobalConfig(path=layout.config_file, storage_base_url_setting=STORAGE_URL)


def _make_installed_version(
    layout: SdkLayout, token: str, engine_hash: Optional[str] = None
) -> Path:
    version_dir = layout.version_dir(token)
    (version_dir / "bin").mkdir(parents=True)
    (version_dir / "bin" / "flutter").write_text("#!/bin/sh\n")
    if engine_hash is not None:
        cache_dir = version_dir / "bin" / "cache"
        cache_dir.mkdir(parents=True)
        (cache_dir / "engine.stamp").write_text(engine_hash)
    return version_dir


@pytest.fixture
def make_version(layout: SdkLayout):
    """Factory creating version directories that look installed (no git involved)."""

    def factory(token: str, engine_hash: Optional[str] = None) -> Path:
        return _make_installed_version(layout, token, engine_hash)

    return factory


# ============================================================================
# Engine Archive Fixtures
# ============================================================================


def make_engine_zip(version: str = "3.5.0") -> bytes:
    """In-memory dart-sdk archive laid out like the published engine zips."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as zf:
        zf.writestr(zipfile.ZipInfo("dart-sdk/"), "")

        dart = zipfile.ZipInfo("dart-sdk/bin/dart")
        dart.external_attr = 0o755 << 16
        zf.writestr(dart, "#!/bin/sh\necho dart\n")

        zf.writestr("dart-sdk/version", version)
        zf.writestr("dart-sdk/lib/core/core.dart", "// core")
        zf.writestr("README", "outside the prefix")
    return buffer.getvalue()


@pytest.fixture
def engine_zip() -> bytes:
    return make_engine_zip()


# ============================================================================
# Git Origin Fixtures
# ============================================================================


_GIT_ENV = {
    "GIT_AUTHOR_NAME": "fvmkit tests",
    "GIT_AUTHOR_EMAIL": "tests@example.test",
    "GIT_COMMITTER_NAME": "fvmkit tests",
    "GIT_COMMITTER_EMAIL": "tests@example.test",
    "GIT_CONFIG_NOSYSTEM": "1",
}


def git(cwd: Path, *args: str) -> str:
    result = subprocess.run(
        ["git", "-c", "commit.gpgsign=false", "-c", "tag.gpgsign=false", *args],
        cwd=cwd,
        capture_output=True,
        text=True,
        env={**os.environ, **_GIT_ENV},
        check=True,
    )
    return result.stdout.strip()


@dataclass
class FakeOrigin:
    """A local repository shaped like the Flutter repository."""

    path: Path
    url: str
    tags: dict  # tag -> commit
    engines: dict  # tag -> engine hash


def _commit_release(repo: Path, engine_hash: str, message: str) -> str:
    (repo / "bin" / "internal" / "engine.version").write_text(engine_hash + "\n")
    git(repo, "add", "-A")
    git(repo, "commit", "-q", "-m", message)
    return git(repo, "rev-parse", "HEAD")


@pytest.fixture
def flutter_origin(tmp_path: Path, git_required) -> FakeOrigin:
    """
    Origin with a 'stable' branch carrying tags 9.9.9 and 9.9.10 and a
    'beta' branch at 9.9.9.
    """
    repo = tmp_path / "origin"
    repo.mkdir()
    git(repo, "init", "-q")
    git(repo, "symbolic-ref", "HEAD", "refs/heads/stable")

    (repo / "bin" / "internal").mkdir(parents=True)
    flutter = repo / "bin" / "flutter"
    flutter.write_text("#!/bin/sh\necho flutter\n")
    flutter.chmod(0o755)
    (repo / "bin" / "flutter.bat").write_text("@echo flutter\n")

    first = _commit_release(repo, "deadbeef", "Release 9.9.9")
    git(repo, "tag", "9.9.9")
    git(repo, "branch", "beta")

    second = _commit_release(repo, "cafebabe", "Release 9.9.10")
    git(repo, "tag", "9.9.10")

    return FakeOrigin(
        path=repo,
        url=str(repo),
        tags={"9.9.9": first, "9.9.10": second},
        engines={"9.9.9": "deadbeef", "9.9.10": "cafebabe"},
    )


@pytest.fixture
def git_cli(git_required):
    """Run git in a directory and return its stdout."""
    return git
