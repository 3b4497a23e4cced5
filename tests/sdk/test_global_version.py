"""
Tests for the global version pointer.
"""

import sys

import pytest

from fvmkit.core.exceptions import InvalidVersionError, VersionNotInstalledError
from fvmkit.core.platform import PlatformInfo
from fvmkit.sdk.global_version import GlobalVersionManager
from fvmkit.sdk.linking import SdkLinkManager

pytestmark = pytest.mark.skipif(
    sys.platform == "win32", reason="symlink tests run on Unix-like systems"
)


@pytest.fixture
def manager(layout):
    return GlobalVersionManager(
        layout, link_manager=SdkLinkManager(platform=PlatformInfo("linux", "x64"))
    )


class TestSetGlobal:
    def test_points_link_at_version(self, manager, layout, make_version):
        version_dir = make_version("3.24.0")

        link = manager.set_global("3.24.0")

        assert link == layout.global_link
        assert manager.link_manager.resolve_link(link) == version_dir
        assert manager.current_global() == "3.24.0"

    def test_switch_version(self, manager, make_version):
        make_version("3.24.0")
        make_version("3.22.0")
        manager.set_global("3.24.0")

        manager.set_global("3.22.0")

        assert manager.current_global() == "3.22.0"

    def test_fork_version(self, manager, layout, make_version):
        make_version("acme/3.24.0")

        manager.set_global("acme/3.24.0")

        assert manager.current_global() == "acme/3.24.0"
        assert manager.link_manager.resolve_link(layout.global_link).name == "acme@3.24.0"

    def test_not_installed(self, manager, layout):
        with pytest.raises(VersionNotInstalledError):
            manager.set_global("3.24.0")
        assert not layout.global_link.exists()

    def test_failed_switch_keeps_current(self, manager, make_version):
        make_version("3.24.0")
        manager.set_global("3.24.0")

        with pytest.raises(VersionNotInstalledError):
            manager.set_global("3.22.0")

        assert manager.current_global() == "3.24.0"

    def test_invalid_token(self, manager):
        with pytest.raises(InvalidVersionError):
            manager.set_global("/3.24.0")

    def test_legacy_link_untouched(self, manager, layout, make_version):
        make_version("3.24.0")
        manager.set_global("3.24.0")
        assert not layout.legacy_global_link.exists()


class TestUnsetGlobal:
    def test_unset(self, manager, layout, make_version):
        make_version("3.24.0")
        manager.set_global("3.24.0")

        assert manager.unset_global() is True
        assert manager.current_global() is None
        assert layout.version_dir("3.24.0").is_dir()

    def test_nothing_to_unset(self, manager):
        assert manager.unset_global() is False


def test_legacy_pointer_is_read(manager, layout, make_version):
    version_dir = make_version("3.24.0")
    layout.legacy_root.mkdir(parents=True)
    manager.link_manager.create_link(layout.legacy_global_link, version_dir)

    assert manager.current_global() == "3.24.0"


def test_primary_pointer_wins_over_legacy(manager, layout, make_version):
    legacy = make_version("3.22.0")
    make_version("3.24.0")
    layout.legacy_root.mkdir(parents=True)
    manager.link_manager.create_link(layout.legacy_global_link, legacy)

    manager.set_global("3.24.0")

    assert manager.current_global() == "3.24.0"
