"""Workspace file discovery with include/exclude globs."""

from __future__ import annotations

import os
from collections.abc import Iterable
from pathlib import Path

import pathspec

from bastion.config import ALWAYS_EXCLUDE_DIRS, FileSelection

SOURCE_SUFFIXES = (".ts", ".tsx", ".js", ".jsx", ".mts", ".cts", ".mjs", ".cjs")


def glob_spec(patterns: Iterable[str]) -> pathspec.PathSpec:
    """Compile gitignore-style patterns.

    ``*`` stops at ``/``, ``**/`` also matches at the root, and a pattern
    naming a directory covers everything below it.
    """
    return pathspec.PathSpec.from_lines(pathspec.patterns.GitWildMatchPattern, patterns)


def discover_files(root: Path, selection: FileSelection) -> list[Path]:
    """List files under *root* selected by *selection*.

    Dependency, build-output and version-control directories are always
    skipped, whatever the exclude list says.

    Returns:
        Sorted absolute paths
    """
    include = glob_spec(selection.include)
    exclude = glob_spec(selection.exclude)

    found: list[Path] = []
    for dirpath, dirnames, filenames in os.walk(root):
        current = Path(dirpath)
        relative_dir = current.relative_to(root).as_posix()
        prefix = "" if relative_dir == "." else f"{relative_dir}/"

        kept = []
        for name in dirnames:
            if name in ALWAYS_EXCLUDE_DIRS:
                continue
            if exclude.match_file(f"{prefix}{name}/"):
                continue
            kept.append(name)
        dirnames[:] = sorted(kept)

        for name in filenames:
            relative = f"{prefix}{name}"
            if include.match_file(relative) and not exclude.match_file(relative):
                found.append(current / name)
    return sorted(found)


def is_source_file(path: Path | str) -> bool:
    return str(path).endswith(SOURCE_SUFFIXES)
