"""Delegation to the linter's own auto-fix."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from bastion.config import Config
from bastion.core.counter import ErrorCounter
from bastion.core.models import ErrorCount
from bastion.runners.process import ProcessRunner

logger = logging.getLogger(__name__)


@dataclass
class FixResult:
    """Counts around one auto-fix run."""

    before: ErrorCount
    after: ErrorCount
    exit_code: int
    targets: list[str]

    @property
    def fixed_errors(self) -> int:
        return max(0, self.before.lint_errors - self.after.lint_errors)

    @property
    def fixed_warnings(self) -> int:
        return max(0, self.before.lint_warnings - self.after.lint_warnings)


class LintFixer:
    """Runs the configured ``lint_fix`` command; fixes nothing itself."""

    def __init__(
        self,
        root: Path,
        config: Config,
        *,
        runner: ProcessRunner | None = None,
        counter: ErrorCounter | None = None,
    ) -> None:
        self.root = root
        self.config = config
        self.runner = runner or ProcessRunner(root)
        self.counter = counter or ErrorCounter(root, config, runner=self.runner)

    async def fix(self, files: Sequence[str] = ()) -> FixResult:
        """Auto-fix *files* (the whole project when empty).

        Raises:
            ToolUnavailable: The linter cannot be spawned
            ToolTimeout: The fix run exceeded its bound
        """
        tool = self.config.tools.lint_fix
        targets = list(files) or ["."]
        before = await self.counter.count()

        logger.info(f"Running {tool.name} --fix on {len(targets)} target(s)")
        result = await self.runner.run(
            [*tool.command, *targets],
            tool=f"{tool.name} --fix",
            timeout=tool.timeout,
            max_output_bytes=tool.max_output_bytes,
        )

        after = await self.counter.count()
        fixed = FixResult(before=before, after=after, exit_code=result.exit_code, targets=targets)
        logger.info(f"Auto-fix resolved {fixed.fixed_errors} error(s) and {fixed.fixed_warnings} warning(s)")
        return fixed
