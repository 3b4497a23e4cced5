"""
Install command implementation.

Installs a Flutter version, reusing the shared clone and engine cache.
"""

import logging

from fvmkit.cli.utils import (
    build_context,
    format_success_message,
    print_download_progress,
    safe_print,
)

logger = logging.getLogger(__name__)


def run(args) -> int:
    """
    Run the install command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success)
    """
    context = build_context(args.home)
    progress = None if args.quiet else print_download_progress
    result = context.orchestrator.ensure_installed(
        args.version, progress_callback=progress
    )

    if result.was_installed:
        safe_print(f"Flutter {result.version} is already installed at {result.path}")
        return 0

    safe_print(
        format_success_message(
            f"Flutter {result.version} installed",
            {
                "Path": result.path,
                "Channel": result.channel,
                "Engine": result.engine_hash,
            },
        )
    )
    return 0
