"""
Destroy command implementation.

Deletes the whole fvmkit home: installed versions, shared repositories,
the engine cache, the global link and the configuration.
"""

import logging
import os
from pathlib import Path

from fvmkit.cli.utils import build_layout, safe_print
from fvmkit.core.exceptions import FvmKitError
from fvmkit.core.filesystem import safe_rmtree

logger = logging.getLogger(__name__)


def _is_protected(path: Path) -> bool:
    """Filesystem roots and the user's home directory are never deleted."""
    resolved = Path(os.path.normpath(os.path.abspath(path)))
    return resolved == Path(resolved.anchor) or resolved == Path.home()


def run(args) -> int:
    """
    Run the destroy command.

    Asks for confirmation unless --force is given.

    Returns:
        Exit code (0 for success or cancellation)
    """
    layout = build_layout(args.home)
    root = layout.root

    if not root.exists():
        safe_print(f"fvmkit home does not exist: {root}")
        return 0

    if _is_protected(root):
        raise FvmKitError(f"Refusing to delete {root}: not an fvmkit home")

    if not args.force:
        safe_print(f"This removes {root} with every installed version and cached engine.")
        try:
            response = input("This cannot be undone. Proceed? [y/N] ").strip().lower()
        except EOFError:
            response = ""
        if response not in ["y", "yes"]:
            print("Operation cancelled")
            return 0

    logger.info(f"Removing fvmkit home: {root}")
    safe_rmtree(root)
    safe_print(f"✓ fvmkit home {root} has been deleted")
    return 0
