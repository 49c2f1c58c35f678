"""Type-check checker."""

from __future__ import annotations

import logging
from pathlib import Path

from bastion.checkers.base import CheckContext, CheckerResult, SourceChecker, require_complete_output
from bastion.config import ToolCommand
from bastion.core.errors import ParseFailure
from bastion.core.models import Source
from bastion.parsers.typecheck import parse_type_check_output

logger = logging.getLogger(__name__)

PROJECT_FILES = ("tsconfig.json", "jsconfig.json")


def has_type_check_project(root: Path, tool: ToolCommand) -> bool:
    """False when the compiler would run without a project file and just print usage."""
    return tool.name != "tsc" or any((root / name).exists() for name in PROJECT_FILES)


class TypeCheckChecker(SourceChecker):
    """Runs the type checker and parses its positional diagnostics."""

    name = "type-check"
    source = Source.TYPE_CHECK

    async def check(self, ctx: CheckContext) -> CheckerResult:
        tool = ctx.config.tools.type_check
        if not has_type_check_project(ctx.root, tool):
            logger.info("No tsconfig.json or jsconfig.json found, skipping type-check")
            return CheckerResult()

        result = await ctx.runner.run_tool(tool)
        issues = parse_type_check_output(result.stdout, result.stderr, ctx.config.severity)
        require_complete_output(result, tool.name, issues)
        if not issues and not result.ok:
            raise ParseFailure(tool.name, f"exit code {result.exit_code} but no diagnostics could be parsed")
        return CheckerResult(issues=[issue.model_copy(update={"file": ctx.relative(issue.file)}) for issue in issues])
