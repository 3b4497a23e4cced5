"""
Config command implementation.

Without options the effective settings are shown; options update the
configuration file.
"""

import logging

from fvmkit.cli.utils import build_context, safe_print
from fvmkit.config.global_config import (
    FLUTTER_GIT_URL_ENV,
    FLUTTER_STORAGE_BASE_URL_ENV,
)

logger = logging.getLogger(__name__)


def run(args) -> int:
    """
    Run the config command.

    Returns:
        Exit code (0 for success)
    """
    if args.flutter_url is None and args.storage_base_url is None:
        return _show(args)
    return _update(args)


def _show(args) -> int:
    context = build_context(args.home)
    config = context.config

    safe_print("fvmkit configuration")
    safe_print(f"Located at: {config.path}")
    safe_print("")
    if not config.path.exists():
        safe_print("No settings have been configured, showing defaults:")

    safe_print(f"  flutter_url: {config.default_source_url()}")
    safe_print(f"  storage_base_url: {config.storage_base_url()}")
    safe_print(f"  forks: {len(config.forks)}")
    safe_print("")
    safe_print(
        f"{FLUTTER_GIT_URL_ENV} and {FLUTTER_STORAGE_BASE_URL_ENV} "
        "override the file settings."
    )
    return 0


def _update(args) -> int:
    context = build_context(args.home)
    config = context.config
    changes = []

    if args.flutter_url is not None:
        config.flutter_url = args.flutter_url or None
        changes.append(f"flutter_url: {args.flutter_url or '(default)'}")

    if args.storage_base_url is not None:
        config.storage_base_url_setting = args.storage_base_url or None
        changes.append(f"storage_base_url: {args.storage_base_url or '(default)'}")

    config.save()
    logger.debug(f"Updated {len(changes)} setting(s)")

    safe_print("✓ Settings saved")
    for change in changes:
        safe_print(f"  {change}")
    return 0
