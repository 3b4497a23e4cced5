"""
Cleanup command implementation.

Removes cached engines that no installed version references.
"""

import logging

from fvmkit.cli.utils import build_context, format_size, safe_print

logger = logging.getLogger(__name__)


def run(args) -> int:
    """
    Run the cleanup command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success, 1 if some engines could not be removed)
    """
    context = build_context(args.home)
    result = context.engine_cache.gc(dry_run=args.dry_run)

    if not result.removed and not result.failed:
        safe_print("No unused engines found")
        return 0

    verb = "Would remove" if result.dry_run else "Removed"
    for engine_hash in result.removed:
        safe_print(f"{verb} engine {engine_hash}")
    for engine_hash, message in result.failed:
        logger.error(f"Failed to remove engine {engine_hash}: {message}")

    if result.removed:
        action = "Would reclaim" if result.dry_run else "Reclaimed"
        safe_print(f"{action} {format_size(result.space_reclaimed)}")

    return 1 if result.failed else 0
