"""List command implementation."""

import logging

from fvmkit.cli.utils import build_context, safe_print

logger = logging.getLogger(__name__)


def run(args) -> int:
    """List installed versions, marking the global one."""
    context = build_context(args.home)
    installed = sorted(context.resolver.list_installed())

    if not installed:
        safe_print("No Flutter versions installed")
        safe_print('Install one with "fvmkit install <version>"')
        return 0

    current = context.resolver.current_global()
    safe_print(f"Versions in {context.layout.versions_dir}:")
    for token in installed:
        marker = "●" if token == current else " "
        engine_hash = context.engine_cache.engine_hash_for_version(token)
        suffix = f"  (engine {engine_hash[:10]})" if engine_hash else ""
        safe_print(f"  {marker} {token}{suffix}")

    return 0
