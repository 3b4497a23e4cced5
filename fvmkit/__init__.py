"""
fvmkit - Flutter SDK version manager.

Installs Flutter versions side by side as worktrees of one shared clone per
origin, with engine artifacts kept in a content-addressed cache.
"""

__version__ = "0.1.0"
