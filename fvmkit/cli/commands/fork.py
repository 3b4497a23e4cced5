"""
Fork command implementation.

Manages fork aliases stored in the global configuration. A fork's versions
are installed as '<alias>/<version>'.
"""

import logging

from fvmkit.cli.utils import build_context, safe_print

logger = logging.getLogger(__name__)


def run_add(args) -> int:
    """Register a fork alias."""
    context = build_context(args.home)
    context.config.add_fork(args.alias, args.url)
    context.config.save()
    safe_print(f"Fork '{args.alias}' added: {args.url}")
    return 0


def run_remove(args) -> int:
    """Remove a fork alias (installed fork versions are kept)."""
    context = build_context(args.home)
    context.config.remove_fork(args.alias)
    context.config.save()
    safe_print(f"Fork '{args.alias}' removed")
    return 0


def run_list(args) -> int:
    """List configured forks."""
    context = build_context(args.home)
    forks = context.config.list_forks()

    if not forks:
        safe_print("No forks configured")
        return 0

    for fork in forks:
        safe_print(f"  {fork.name:<20} {fork.url}")
    return 0
