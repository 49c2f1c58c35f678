"""Build checker."""

from __future__ import annotations

import json
import logging

from bastion.checkers.base import CheckContext, CheckerResult, SourceChecker, require_complete_output
from bastion.core.models import Source
from bastion.parsers.build import parse_build_output

logger = logging.getLogger(__name__)


class BuildChecker(SourceChecker):
    """Runs the project build and extracts errors from its log."""

    name = "build"
    source = Source.BUILD

    def _has_script(self, ctx: CheckContext, script: str) -> bool:
        manifest = ctx.root / "package.json"
        if not manifest.exists():
            return False
        try:
            data = json.loads(manifest.read_text(encoding="utf-8-sig"))
        except (OSError, json.JSONDecodeError) as e:
            # The syntax checker reports the broken manifest itself
            logger.debug(f"Could not read package.json: {e}")
            return False
        scripts = data.get("scripts") if isinstance(data, dict) else None
        return isinstance(scripts, dict) and script in scripts

    async def check(self, ctx: CheckContext) -> CheckerResult:
        tool = ctx.config.tools.build
        command = tool.command
        if command[:2] == ["npm", "run"] and len(command) > 2 and not self._has_script(ctx, command[2]):
            logger.info(f"package.json has no '{command[2]}' script, skipping build")
            return CheckerResult()

        result = await ctx.runner.run_tool(tool)
        issues = parse_build_output(result.stdout, result.stderr, result.exit_code, ctx.config.severity)
        require_complete_output(result, tool.name, issues)
        return CheckerResult(issues=[issue.model_copy(update={"file": ctx.relative(issue.file)}) for issue in issues])
