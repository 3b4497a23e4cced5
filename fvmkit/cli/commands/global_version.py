"""
Global command implementation.

Shows, sets or unlinks the global Flutter version.
"""

import logging

from fvmkit.cli.utils import build_context, print_download_progress, safe_print

logger = logging.getLogger(__name__)


def run(args) -> int:
    """
    Run the global command.

    Without arguments the current global version is shown. Setting a version
    installs it first if needed.

    Returns:
        Exit code (0 for success)
    """
    context = build_context(args.home)

    if args.unlink:
        if context.global_manager.unset_global():
            safe_print("Global version unlinked")
        else:
            safe_print("No global version is set")
        return 0

    if not args.version:
        current = context.global_manager.current_global()
        if current is None:
            safe_print("No global version is set")
        else:
            safe_print(current)
        return 0

    progress = None if args.quiet else print_download_progress
    result = context.orchestrator.ensure_installed(
        args.version, progress_callback=progress
    )
    link = context.global_manager.set_global(result.version)
    safe_print(f"Flutter {result.version} is now global ({link} -> {result.path})")
    return 0
