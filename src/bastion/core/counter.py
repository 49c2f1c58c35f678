"""Fast-path error counting for frequent polling."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path

from bastion.checkers.typecheck import has_type_check_project
from bastion.config import Config, ToolCommand
from bastion.core.diagnostics import DiagnosticsProvider
from bastion.core.errors import BastionError, ToolTimeout, ToolUnavailable
from bastion.core.events import EventBus, SuspiciousZero
from bastion.core.models import CountOrigin, ErrorCount, Source
from bastion.parsers.lint import count_lint_output
from bastion.parsers.typecheck import count_type_check_errors
from bastion.runners.process import ProcessResult, ProcessRunner

logger = logging.getLogger(__name__)


@dataclass
class CategoryCount:
    """Counts for one category plus how they were obtained."""

    tool: str
    errors: int = 0
    warnings: int = 0
    origin: CountOrigin = CountOrigin.NONE
    tool_failed: bool = False
    exit_failed: bool = False  # failing exit or truncated output, yet nothing counted

    @property
    def unreliable(self) -> bool:
        """The tool failed and nothing else stood in for it."""
        return self.exit_failed or (self.tool_failed and self.origin == CountOrigin.NONE)


class ErrorCounter:
    """Counts type-check and lint errors/warnings without building issues.

    The tools run first; when one cannot be spawned or times out, the
    editor's diagnostics for that category are used instead.
    """

    def __init__(
        self,
        root: Path,
        config: Config,
        *,
        runner: ProcessRunner | None = None,
        diagnostics: DiagnosticsProvider | None = None,
        bus: EventBus | None = None,
    ) -> None:
        self.root = root
        self.config = config
        self.runner = runner or ProcessRunner(root)
        self.diagnostics = diagnostics
        self.bus = bus or EventBus()

    async def count(self) -> ErrorCount:
        """Count both categories concurrently.

        Returns:
            ErrorCount, with ``suspicious_zero`` set when every count is zero
            right after a tool failure
        """
        type_check, lint = await asyncio.gather(self._count_type_check(), self._count_lint())
        categories = (type_check, lint)
        failed = tuple(c.tool for c in categories if c.tool_failed or c.exit_failed)
        total = sum(c.errors + c.warnings for c in categories)
        suspicious = total == 0 and any(c.unreliable for c in categories)

        result = ErrorCount(
            type_check_errors=type_check.errors,
            type_check_warnings=type_check.warnings,
            lint_errors=lint.errors,
            lint_warnings=lint.warnings,
            origins={"type-check": type_check.origin, "lint": lint.origin},
            failed_tools=failed,
            suspicious_zero=suspicious,
        )
        if suspicious:
            logger.warning(
                f"All counts are zero but {', '.join(failed)} failed; "
                "the tool output format may be unsupported"
            )
            self.bus.publish(SuspiciousZero(failed_tools=failed))
        logger.debug(f"Counted {result.errors} error(s), {result.warnings} warning(s)")
        return result

    async def _count_type_check(self) -> CategoryCount:
        tool = self.config.tools.type_check
        if not has_type_check_project(self.root, tool):
            return CategoryCount(tool=tool.name)
        try:
            result = await self._run(tool)
        except (ToolUnavailable, ToolTimeout) as e:
            logger.warning(f"Type-check count falling back to editor diagnostics: {e}")
            return self._from_editor(tool.name, Source.TYPE_CHECK)

        errors = count_type_check_errors(result.stdout, result.stderr)
        # A non-zero exit is expected when problems were found
        return CategoryCount(
            tool=tool.name,
            errors=errors,
            origin=CountOrigin.TOOL,
            exit_failed=(not result.ok or result.truncated) and errors == 0,
        )

    async def _count_lint(self) -> CategoryCount:
        tool = self.config.tools.lint
        try:
            result = await self._run(tool)
        except (ToolUnavailable, ToolTimeout) as e:
            logger.warning(f"Lint count falling back to editor diagnostics: {e}")
            return self._from_editor(tool.name, Source.LINT)

        counts = count_lint_output(result.stdout, result.stderr)
        logger.debug(f"Lint counted via {counts.method}: {counts.errors} error(s), {counts.warnings} warning(s)")
        return CategoryCount(
            tool=tool.name,
            errors=counts.errors,
            warnings=counts.warnings,
            origin=CountOrigin.TOOL,
            exit_failed=(not result.ok or result.truncated) and counts.errors + counts.warnings == 0,
        )

    async def _run(self, tool: ToolCommand) -> ProcessResult:
        return await self.runner.run_tool(tool, timeout=self.config.tools.counter_timeout)

    def _from_editor(self, tool: str, category: Source) -> CategoryCount:
        if self.diagnostics is None:
            return CategoryCount(tool=tool, tool_failed=True)
        try:
            diagnostics = self.diagnostics.all_diagnostics()
        except BastionError as e:
            logger.warning(f"Editor diagnostics unavailable: {e}")
            return CategoryCount(tool=tool, tool_failed=True)

        relevant = [d for d in diagnostics if d.category == category]
        return CategoryCount(
            tool=tool,
            errors=sum(1 for d in relevant if d.is_error),
            warnings=sum(1 for d in relevant if d.is_warning),
            origin=CountOrigin.EDITOR,
            tool_failed=True,
        )
