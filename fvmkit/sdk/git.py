"""
Thin wrapper around the git command line.

All calls are blocking; callers run them on worker threads.
"""

import logging
import os
import shutil
import subprocess
from pathlib import Path
from typing import List, Optional, Sequence

from fvmkit.core.exceptions import FvmKitError, GitCommandError

logger = logging.getLogger(__name__)

# Never block on credential prompts; a failed auth is a failed fetch.
_GIT_ENV = {"GIT_TERMINAL_PROMPT": "0"}


def find_git() -> str:
    """
    Locate the git executable.

    Raises:
        FvmKitError: If git is not on PATH
    """
    git = shutil.which("git")
    if not git:
        raise FvmKitError("git executable not found. Install git and try again.")
    return git


def run_git(
    args: Sequence[str],
    git_dir: Optional[Path] = None,
    cwd: Optional[Path] = None,
) -> str:
    """
    Run a git command and return its stripped stdout.

    Args:
        args: Arguments after 'git' (e.g. ["fetch", "origin"])
        git_dir: Repository passed as --git-dir
        cwd: Working directory (a worktree)

    Raises:
        GitCommandError: If git exits with a non-zero status
    """
    command: List[str] = [find_git()]
    if git_dir is not None:
        command += ["--git-dir", str(git_dir)]
    command += list(args)

    logger.debug(f"Running: {' '.join(command)}")
    result = subprocess.run(
        command,
        cwd=str(cwd) if cwd is not None else None,
        capture_output=True,
        text=True,
        env={**os.environ, **_GIT_ENV},
        check=False,
    )
    if result.returncode != 0:
        stderr = result.stderr.strip() or result.stdout.strip()
        raise GitCommandError(command, result.returncode, stderr)
    return result.stdout.strip()


def rev_parse(git_dir: Path, ref: str) -> Optional[str]:
    """Resolve ref to a commit id, or None if it does not exist."""
    try:
        return run_git(
            ["rev-parse", "--verify", "--quiet", f"{ref}^{{commit}}"], git_dir=git_dir
        )
    except GitCommandError:
        return None


__all__ = ["find_git", "run_git", "rev_parse"]
