"""Install and remove the generated git hooks."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from bastion.config import ToolsConfig
from bastion.core.errors import HookError
from bastion.core.models import EnforcementLevel
from bastion.hooks.generator import HookKind, generate_hook_script, is_managed_script
from bastion.utils.git import get_hooks_dir

logger = logging.getLogger(__name__)

BACKUP_SUFFIX = ".bastion-backup"
ALL_HOOKS = (HookKind.PRE_COMMIT, HookKind.PRE_PUSH)


@dataclass
class InstallResult:
    """Outcome of installing one hook.

    Attributes:
        kind: Which hook
        path: Where the script was written
        action: "installed", "updated" or "unchanged"
        backup: Where a pre-existing user hook was moved, if any
    """

    kind: HookKind
    path: Path
    action: str
    backup: Path | None = None


def _require_hooks_dir(project_root: Path) -> Path:
    hooks_dir = get_hooks_dir(project_root)
    if hooks_dir is None:
        raise HookError(f"Not a git repository: {project_root}")
    return hooks_dir


def backup_path_for(hook: Path) -> Path:
    return hook.with_name(hook.name + BACKUP_SUFFIX)


def is_managed_hook(path: Path) -> bool:
    """True if *path* exists and holds a script bastion generated."""
    if not path.is_file():
        return False
    try:
        return is_managed_script(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError):
        return False


def install_hook(
    project_root: Path,
    kind: HookKind,
    level: EnforcementLevel,
    tools: ToolsConfig | None = None,
    section: str = "bastion",
) -> InstallResult:
    """Write one hook script with executable permission.

    A user's own hook is moved aside to ``<hook>.bastion-backup`` first.
    Reinstalling over a bastion script replaces it in place.

    Raises:
        HookError: Not a repository, or a backup already exists
    """
    hooks_dir = _require_hooks_dir(project_root)
    hooks_dir.mkdir(parents=True, exist_ok=True)
    path = hooks_dir / kind.value
    script = generate_hook_script(kind, level, tools, section)

    action = "installed"
    backup: Path | None = None
    if path.exists() or path.is_symlink():
        if is_managed_hook(path):
            action = "unchanged" if path.read_text(encoding="utf-8") == script else "updated"
        else:
            backup = backup_path_for(path)
            if backup.exists():
                raise HookError(f"{backup} already exists; move it away before installing")
            logger.info(f"Backing up existing {kind.value} hook to {backup}")
            path.rename(backup)

    path.write_text(script, encoding="utf-8")
    path.chmod(0o755)
    logger.info(f"{kind.value} hook {action} at {path}")
    return InstallResult(kind=kind, path=path, action=action, backup=backup)


def install_hooks(
    project_root: Path,
    level: EnforcementLevel,
    tools: ToolsConfig | None = None,
    section: str = "bastion",
    kinds: Sequence[HookKind] = ALL_HOOKS,
) -> list[InstallResult]:
    return [install_hook(project_root, kind, level, tools, section) for kind in kinds]


def uninstall_hooks(project_root: Path, kinds: Sequence[HookKind] = ALL_HOOKS) -> list[Path]:
    """Remove bastion's scripts and restore any backed-up user hooks.

    Hooks without the marker are never touched.

    Returns:
        Paths of the scripts that were removed
    """
    hooks_dir = get_hooks_dir(project_root)
    if hooks_dir is None:
        logger.debug(f"{project_root} is not a git repository, nothing to uninstall")
        return []

    removed: list[Path] = []
    for kind in kinds:
        path = hooks_dir / kind.value
        if not is_managed_hook(path):
            if path.exists():
                logger.info(f"Leaving {path} alone: not installed by bastion")
            continue
        path.unlink()
        removed.append(path)
        backup = backup_path_for(path)
        if backup.exists():
            backup.rename(path)
            logger.info(f"Restored original {kind.value} hook")
        logger.info(f"Removed {kind.value} hook")
    return removed
