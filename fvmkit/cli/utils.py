"""
Shared utilities for CLI commands.

Builds the SDK components a command needs from the global options and
provides consistent output formatting.
"""

import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

from fvmkit.config.global_config import GlobalConfig
from fvmkit.core.directory import SdkLayout, get_legacy_home
from fvmkit.core.download import DownloadProgress, format_progress
from fvmkit.core.locking import LockManager
from fvmkit.sdk.engine_cache import EngineCache
from fvmkit.sdk.global_version import GlobalVersionManager
from fvmkit.sdk.installer import InstallOrchestrator
from fvmkit.sdk.linking import SdkLinkManager
from fvmkit.sdk.releases import ReleaseCatalog
from fvmkit.sdk.versions import VersionResolver

logger = logging.getLogger(__name__)


# ============================================================================
# Component Wiring
# ============================================================================


@dataclass
class SdkContext:
    """Components shared by one CLI invocation."""

    layout: SdkLayout
    config: GlobalConfig
    resolver: VersionResolver
    catalog: ReleaseCatalog
    engine_cache: EngineCache
    orchestrator: InstallOrchestrator
    global_manager: GlobalVersionManager


def build_layout(home: Optional[Path] = None) -> SdkLayout:
    """Directory layout for the --home option (default: $FVMKIT_HOME or ~/.fvmkit)."""
    if home is not None:
        layout = SdkLayout(root=Path(home).expanduser(), legacy_root=get_legacy_home())
    else:
        layout = SdkLayout.default()
    logger.debug(f"Using fvmkit home: {layout.root}")
    return layout


def build_context(home: Optional[Path] = None) -> SdkContext:
    """
    Wire up the SDK components below a home directory.

    Args:
        home: fvmkit home (default: $FVMKIT_HOME or ~/.fvmkit)
    """
    layout = build_layout(home)
    config = GlobalConfig.load(layout.config_file)
    lock_manager = LockManager(layout.lock_dir)
    link_manager = SdkLinkManager()
    resolver = VersionResolver(layout)
    catalog = ReleaseCatalog(config.storage_base_url())
    engine_cache = EngineCache(
        layout,
        storage_base_url=config.storage_base_url(),
        lock_manager=lock_manager,
    )
    orchestrator = InstallOrchestrator(
        layout,
        config,
        catalog=catalog,
        engine_cache=engine_cache,
        link_manager=link_manager,
        resolver=resolver,
        lock_manager=lock_manager,
    )
    global_manager = GlobalVersionManager(
        layout, link_manager=link_manager, resolver=resolver
    )

    return SdkContext(
        layout=layout,
        config=config,
        resolver=resolver,
        catalog=catalog,
        engine_cache=engine_cache,
        orchestrator=orchestrator,
        global_manager=global_manager,
    )


# ============================================================================
# User Interface / Output Formatting
# ============================================================================


def format_success_message(
    title: str,
    details: Dict[str, Any],
    width: int = 60,
) -> str:
    """
    Format a standardized success message.

    Args:
        title: Success message title
        details: Key-value pairs to display (None values are skipped)
        width: Width of the separator lines

    Returns:
        Formatted message string
    """
    lines = ["=" * width, title, "=" * width]
    for key, value in details.items():
        if value is not None:
            lines.append(f"{key}: {value}")
    return "\n".join(lines)


def format_size(size_bytes: int) -> str:
    """
    Human readable size.

    Example:
        >>> format_size(3 * 1024 * 1024)
        '3.0 MB'
    """
    size = float(size_bytes)
    for unit in ("B", "KB", "MB"):
        if size < 1024:
            return f"{size:.1f} {unit}" if unit != "B" else f"{int(size)} B"
        size /= 1024
    return f"{size:.1f} GB"


def print_download_progress(progress: DownloadProgress):
    """Show engine download progress on a single, rewritten line."""
    print(f"\r  Downloading engine: {format_progress(progress)}", end="", flush=True)
    if progress.percentage >= 100:
        print()


def print_error(message: str, details: Optional[str] = None):
    """Print error message to stderr in consistent format."""
    print(f"ERROR: {message}", file=sys.stderr)
    if details:
        print(f"  {details}", file=sys.stderr)


def safe_print(message: str, file=None):
    """
    Print message with safe encoding handling for Windows console.

    Falls back to ASCII markers if the markers can't be encoded.
    """
    try:
        print(message, file=file)
    except UnicodeEncodeError:
        safe_message = message.replace("●", "*").replace("✓", "[OK]")
        print(safe_message, file=file)


__all__ = [
    "SdkContext",
    "build_context",
    "build_layout",
    "format_success_message",
    "format_size",
    "print_download_progress",
    "print_error",
    "safe_print",
]
