"""Git hook generation and installation."""

from bastion.hooks.generator import HOOK_MARKER, HookKind, generate_hook_script
from bastion.hooks.installer import InstallResult, install_hook, install_hooks, uninstall_hooks

__all__ = [
    "HOOK_MARKER",
    "HookKind",
    "InstallResult",
    "generate_hook_script",
    "install_hook",
    "install_hooks",
    "uninstall_hooks",
]
