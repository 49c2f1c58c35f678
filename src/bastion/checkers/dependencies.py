"""Dependency vulnerability checker."""

from __future__ import annotations

import logging

from bastion.checkers.base import CheckContext, CheckerResult, SourceChecker, require_complete_output
from bastion.core.errors import ParseFailure
from bastion.core.models import Source
from bastion.parsers.audit import parse_dependency_audit
from bastion.parsers.lint import load_json_payload

logger = logging.getLogger(__name__)

LOCKFILES = ("package-lock.json", "npm-shrinkwrap.json")


class DependencyChecker(SourceChecker):
    """Runs the package manager's audit command. Skipped when it cannot run."""

    name = "dependency-audit"
    source = Source.DEPENDENCY
    optional = True

    async def check(self, ctx: CheckContext) -> CheckerResult:
        if not (ctx.root / "package.json").exists():
            logger.info("No package.json found, skipping dependency audit")
            return CheckerResult()
        if not any((ctx.root / name).exists() for name in LOCKFILES):
            logger.info("No lockfile found, skipping dependency audit")
            return CheckerResult()

        tool = ctx.config.tools.dependency_audit
        result = await ctx.runner.run_tool(tool)
        payload = load_json_payload(result.stdout, result.stderr)
        if payload is None:
            raise ParseFailure(tool.name, f"no JSON in output (exit code {result.exit_code})")
        issues = parse_dependency_audit(payload, "package.json", ctx.config.severity)
        require_complete_output(result, tool.name, issues)
        return CheckerResult(issues=issues)
