"""
Releases command implementation.

Lists the releases of the current platform's release manifest.
"""

import logging

from fvmkit.cli.utils import build_context, safe_print

logger = logging.getLogger(__name__)


def run(args) -> int:
    """
    Run the releases command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success)
    """
    context = build_context(args.home)
    releases = context.catalog.releases_for_channel(args.channel)
    installed = context.resolver.list_installed()

    if not releases:
        safe_print(f"No releases found for channel '{args.channel}'")
        return 0

    current = context.catalog.fetch_all().current_releases
    current_hashes = {
        record.hash
        for record in (current.stable, current.beta, current.dev)
        if record is not None
    }

    safe_print(f"{'Version':<24}{'Channel':<10}{'Released':<14}")
    # Manifest order is newest first; print oldest first so the latest ends up last
    for record in reversed(releases):
        marks = ""
        if record.version in installed:
            marks += " ✓"
        if record.hash in current_hashes:
            marks += f" (current {record.channel})"
        safe_print(
            f"{record.version:<24}{record.channel:<10}"
            f"{record.release_date.strftime('%Y-%m-%d'):<14}{marks}"
        )

    return 0
