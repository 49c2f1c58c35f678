"""Compiler and linter configuration checker."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from bastion.checkers.base import CheckContext, CheckerResult, SourceChecker
from bastion.core.errors import ConfigInvalid
from bastion.core.models import Issue, Source
from bastion.utils.jsonc import loads_jsonc

logger = logging.getLogger(__name__)

TSCONFIG = "tsconfig.json"
ESLINT_CONFIGS = (".eslintrc.json", ".eslintrc")

# Root files this checker owns; the syntax checker leaves them alone
OWNED_FILES = (TSCONFIG, *ESLINT_CONFIGS)

MAX_EXTENDS_DEPTH = 5


def _looks_like_json(path: Path) -> bool:
    try:
        return path.read_text(encoding="utf-8-sig").lstrip().startswith("{")
    except (OSError, UnicodeDecodeError):
        return True


def load_config_file(path: Path) -> dict[str, Any]:
    """Parse a JSON-with-comments config file.

    Raises:
        ConfigInvalid: The file cannot be read or is not a JSON object
    """
    try:
        data = loads_jsonc(path.read_text(encoding="utf-8-sig"))
    except json.JSONDecodeError as e:
        raise ConfigInvalid(path, f"line {e.lineno}, column {e.colno}: {e.msg}") from e
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigInvalid(path, str(e)) from e
    if not isinstance(data, dict):
        raise ConfigInvalid(path, "top-level value must be an object")
    return data


def resolve_compiler_options(path: Path, data: dict[str, Any], depth: int = 0) -> dict[str, Any]:
    """Merge compilerOptions along relative ``extends`` chains.

    Package-style bases (``@tsconfig/node18``) are not followed.
    """
    options = dict(data.get("compilerOptions") or {})
    base = data.get("extends")
    if not isinstance(base, str) or not base.startswith(".") or depth >= MAX_EXTENDS_DEPTH:
        return options

    base_path = (path.parent / base).resolve()
    if base_path.suffix != ".json":
        base_path = base_path.with_name(base_path.name + ".json")
    if not base_path.exists():
        logger.debug(f"{path.name} extends missing file {base}")
        return options
    try:
        base_data = load_config_file(base_path)
    except ConfigInvalid as e:
        logger.warning(f"Ignoring unreadable base config: {e}")
        return options
    return {**resolve_compiler_options(base_path, base_data, depth + 1), **options}


class ConfigurationChecker(SourceChecker):
    """Validates that compiler and linter configs parse and keep safety flags on."""

    name = "config-audit"
    source = Source.CONFIG

    async def check(self, ctx: CheckContext) -> CheckerResult:
        issues: list[Issue] = []
        issues.extend(self._check_tsconfig(ctx))
        issues.extend(self._check_eslint(ctx))
        return CheckerResult(issues=issues)

    def _malformed(self, ctx: CheckContext, error: ConfigInvalid) -> Issue:
        return Issue(
            file=ctx.relative(error.path),
            source=Source.CONFIG,
            severity=ctx.config.severity.config_malformed,
            message=str(error),
            suggested_fix="Fix the JSON syntax in this configuration file",
            code="config-malformed",
        )

    def _check_tsconfig(self, ctx: CheckContext) -> list[Issue]:
        path = ctx.root / TSCONFIG
        if not path.exists():
            logger.debug("No tsconfig.json, skipping compiler option checks")
            return []
        try:
            data = load_config_file(path)
        except ConfigInvalid as e:
            return [self._malformed(ctx, e)]

        options = resolve_compiler_options(path, data)
        severity = ctx.config.severity.config_unsafe
        issues: list[Issue] = []
        if options.get("strict") is not True:
            issues.append(
                Issue(
                    file=TSCONFIG,
                    source=Source.CONFIG,
                    severity=severity,
                    message="Strict type-checking is not enabled",
                    suggested_fix='Set "strict": true in compilerOptions',
                    code="strict",
                )
            )
        if options.get("noImplicitAny") is False:
            issues.append(
                Issue(
                    file=TSCONFIG,
                    source=Source.CONFIG,
                    severity=severity,
                    message="noImplicitAny is disabled",
                    suggested_fix='Remove "noImplicitAny": false from compilerOptions',
                    code="noImplicitAny",
                )
            )
        return issues

    def _check_eslint(self, ctx: CheckContext) -> list[Issue]:
        issues: list[Issue] = []
        for name in ESLINT_CONFIGS:
            path = ctx.root / name
            if not path.exists():
                continue
            if name == ".eslintrc" and not _looks_like_json(path):
                # YAML flavour
                continue
            try:
                load_config_file(path)
            except ConfigInvalid as e:
                issues.append(self._malformed(ctx, e))
        return issues
