"""Lint checker."""

from __future__ import annotations

from bastion.checkers.base import CheckContext, CheckerResult, SourceChecker, require_complete_output
from bastion.core.models import Source
from bastion.parsers.lint import parse_lint_output


class LintChecker(SourceChecker):
    """Runs the linter in JSON mode with text fallbacks."""

    name = "lint"
    source = Source.LINT

    async def check(self, ctx: CheckContext) -> CheckerResult:
        result = await ctx.runner.run_tool(ctx.config.tools.lint)
        issues = parse_lint_output(result.stdout, result.stderr, result.exit_code, ctx.config.severity)
        require_complete_output(result, ctx.config.tools.lint.name, issues)
        return CheckerResult(issues=[issue.model_copy(update={"file": ctx.relative(issue.file)}) for issue in issues])
