"""Git helpers for locating hooks and reading/writing the config store."""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path

logger = logging.getLogger(__name__)


def find_git_dir(project_root: Path) -> Path | None:
    """Locate the git directory for *project_root*.

    Handles worktrees and submodules, where ``.git`` is a file holding a
    ``gitdir:`` pointer.

    Returns:
        Path to the git directory, or None if this is not a repository
    """
    dot_git = project_root / ".git"
    if dot_git.is_dir():
        return dot_git
    if dot_git.is_file():
        content = dot_git.read_text(encoding="utf-8").strip()
        if content.startswith("gitdir:"):
            target = Path(content.split(":", 1)[1].strip())
            if not target.is_absolute():
                target = (project_root / target).resolve()
            return target if target.is_dir() else None
    return None


def get_hooks_dir(project_root: Path) -> Path | None:
    """Return the hooks directory, or None if this is not a repository."""
    git_dir = find_git_dir(project_root)
    if git_dir is None:
        return None
    return git_dir / "hooks"


def get_git_config(project_root: Path, key: str) -> str | None:
    """Read a value from the repository's git config.

    Returns:
        The value, or None if unset or git is unavailable
    """
    try:
        result = subprocess.run(
            ["git", "config", "--get", key],
            capture_output=True,
            text=True,
            cwd=project_root,
            timeout=10,
            check=False,
        )
    except (FileNotFoundError, subprocess.TimeoutExpired) as e:
        logger.warning(f"Could not read git config {key}: {e}")
        return None

    if result.returncode != 0:
        return None
    return result.stdout.strip()


def set_git_config(project_root: Path, key: str, value: str) -> bool:
    """Write a value to the repository's git config.

    Returns:
        True on success
    """
    try:
        result = subprocess.run(
            ["git", "config", key, value],
            capture_output=True,
            text=True,
            cwd=project_root,
            timeout=10,
            check=False,
        )
    except (FileNotFoundError, subprocess.TimeoutExpired) as e:
        logger.warning(f"Could not write git config {key}: {e}")
        return False

    if result.returncode != 0:
        logger.warning(f"git config {key} failed: {result.stderr.strip()}")
        return False
    return True


def configure_protection(project_root: Path, section: str, *, protection: bool, strict: bool) -> bool:
    """Set the two boolean keys the generated hook scripts read."""
    ok = set_git_config(project_root, f"{section}.protection-mode", "true" if protection else "false")
    ok = set_git_config(project_root, f"{section}.strict-mode", "true" if strict else "false") and ok
    return ok
