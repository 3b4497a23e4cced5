"""
Remove command implementation.

Removes an installed version and, optionally, engines left unreferenced.
"""

import logging

from fvmkit.cli.utils import build_context, format_size, safe_print
from fvmkit.sdk.versions import parse_token

logger = logging.getLogger(__name__)


def run(args) -> int:
    """
    Run the remove command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success, 1 if garbage collection had failures)
    """
    context = build_context(args.home)
    token = parse_token(args.version).token

    was_global = context.resolver.current_global() == token
    engine_hash = context.orchestrator.uninstall(token)
    safe_print(f"Removed Flutter {token}")

    if was_global and context.global_manager.unset_global():
        safe_print(f"Unlinked global version (was {token})")

    if engine_hash:
        logger.debug(f"{token} was using engine {engine_hash}")

    if not args.gc:
        return 0

    result = context.engine_cache.gc()
    for removed in result.removed:
        safe_print(f"Removed engine {removed}")
    for failed_hash, message in result.failed:
        logger.warning(f"Failed to remove engine {failed_hash}: {message}")
    if result.removed:
        safe_print(f"Reclaimed {format_size(result.space_reclaimed)}")

    return 1 if result.failed else 0
