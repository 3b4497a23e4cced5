"""
Platform detection for fvmkit.

This module detects the host OS and CPU architecture and translates them into
the vocabulary used by Flutter's release infrastructure:

- release manifests are published per OS: ``linux``, ``macos``, ``windows``
- engine archives are published per (platform, arch) where macOS is called
  ``darwin`` and the architecture is one of ``x64`` or ``arm64``

Usage:
    from fvmkit.core.platform import detect_platform

    info = detect_platform()
    print(info.engine_platform(), info.engine_arch())
"""

import functools
import platform
from dataclasses import dataclass

from fvmkit.core.exceptions import UnsupportedPlatformError

# Architectures the SDK publishes engine archives for.
SUPPORTED_ENGINE_ARCHS = ("x64", "arm64")

_ARCH_ALIASES = {
    "x86_64": "x64",
    "amd64": "x64",
    "x64": "x64",
    "aarch64": "arm64",
    "arm64": "arm64",
    "armv8": "arm64",
    "armv8l": "arm64",
}


@dataclass
class PlatformInfo:
    """
    Host platform information.

    Attributes:
        os: Operating system ('windows', 'linux', 'macos')
        arch: Normalized architecture ('x64', 'arm64') or the raw machine name
    """

    os: str
    arch: str

    def manifest_os(self) -> str:
        """OS name used in releases_<os>.json."""
        return self.os

    def engine_platform(self) -> str:
        """
        Platform name used in engine archive file names.

        Example:
            >>> PlatformInfo("macos", "arm64").engine_platform()
            'darwin'
        """
        return engine_platform_name(self.os)

    def engine_arch(self) -> str:
        """
        Architecture name used in engine archive file names.

        Raises:
            UnsupportedPlatformError: If no engine is published for this arch
        """
        return engine_arch_name(self.arch)

    def __str__(self) -> str:
        return f"{self.os}-{self.arch}"


def engine_platform_name(os_name: str) -> str:
    """Translate an OS name to the engine archive vocabulary."""
    return "darwin" if os_name == "macos" else os_name


def engine_arch_name(machine: str) -> str:
    """
    Map a machine/architecture name into the set of engine architectures.

    Raises:
        UnsupportedPlatformError: For architectures outside x64/arm64
    """
    arch = _ARCH_ALIASES.get(machine.lower())
    if arch is None:
        raise UnsupportedPlatformError(
            f"Unsupported architecture: {machine}. "
            f"Flutter engines are published for: {', '.join(SUPPORTED_ENGINE_ARCHS)}"
        )
    return arch


@functools.lru_cache(maxsize=1)
def detect_platform() -> PlatformInfo:
    """
    Detect current platform information.

    This function is cached - it only runs detection once per process.

    Raises:
        UnsupportedPlatformError: If the OS is not Windows, Linux or macOS
    """
    return PlatformInfo(os=_detect_os(), arch=_detect_architecture())


def _detect_os() -> str:
    system = platform.system().lower()

    if system == "windows":
        return "windows"
    elif system == "linux":
        return "linux"
    elif system == "darwin":
        return "macos"
    else:
        raise UnsupportedPlatformError(f"Unsupported operating system: {system}")


def _detect_architecture() -> str:
    machine = platform.machine().lower()
    # Unknown machines are kept verbatim and rejected by engine_arch()
    return _ARCH_ALIASES.get(machine, machine)


def clear_platform_cache():
    """Force the next detect_platform() call to re-detect."""
    detect_platform.cache_clear()


__all__ = [
    "PlatformInfo",
    "SUPPORTED_ENGINE_ARCHS",
    "detect_platform",
    "engine_platform_name",
    "engine_arch_name",
    "clear_platform_cache",
]
