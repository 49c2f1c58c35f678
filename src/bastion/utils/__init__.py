"""Utility modules for bastion."""

from bastion.utils.files import discover_files, glob_spec, is_source_file
from bastion.utils.git import (
    configure_protection,
    find_git_dir,
    get_git_config,
    get_hooks_dir,
    set_git_config,
)

__all__ = [
    "configure_protection",
    "discover_files",
    "find_git_dir",
    "get_git_config",
    "get_hooks_dir",
    "glob_spec",
    "is_source_file",
    "set_git_config",
]
