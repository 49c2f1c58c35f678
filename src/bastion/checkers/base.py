"""Base checker interface and the shared run-time context."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path

from bastion.config import Config
from bastion.core.errors import ParseFailure, ToolTimeout, ToolUnavailable
from bastion.core.models import Issue, Severity, Source, Suppression
from bastion.runners.process import ProcessResult, ProcessRunner
from bastion.utils.files import is_source_file

logger = logging.getLogger(__name__)


@dataclass
class CheckContext:
    """Everything a checker needs for one run."""

    root: Path
    config: Config
    runner: ProcessRunner
    files: list[Path] = field(default_factory=list)

    @property
    def source_files(self) -> list[Path]:
        return [path for path in self.files if is_source_file(path)]

    def relative(self, path: Path | str) -> str:
        """Project-relative POSIX path, or the input unchanged if outside the root."""
        if not str(path):
            return ""
        candidate = Path(path)
        if not candidate.is_absolute():
            return candidate.as_posix()
        try:
            return candidate.relative_to(self.root).as_posix()
        except ValueError:
            return candidate.as_posix()


def require_complete_output(result: ProcessResult, tool: str, issues: Sequence[Issue]) -> None:
    """Raise ParseFailure when output hit the size cap and nothing was parsed from it.

    Issues parsed before the cap are kept, with a warning.
    """
    if not result.truncated:
        return
    if not issues:
        raise ParseFailure(tool, "output exceeded the size cap and no diagnostics could be parsed")
    logger.warning(f"{tool} output was truncated, keeping the {len(issues)} issue(s) parsed before the cap")


@dataclass
class CheckerResult:
    """Findings from one checker."""

    issues: list[Issue] = field(default_factory=list)
    suppressions: list[Suppression] = field(default_factory=list)
    concerns: list[str] = field(default_factory=list)

    def deduplicated(self) -> CheckerResult:
        """Drop issues that repeat an earlier (file, line, column, code)."""
        seen: set[tuple[str, int, int, str]] = set()
        unique: list[Issue] = []
        for issue in self.issues:
            key = issue.dedup_key()
            if key in seen:
                continue
            seen.add(key)
            unique.append(issue)
        if len(unique) != len(self.issues):
            logger.debug(f"Dropped {len(self.issues) - len(unique)} duplicate issue(s)")
        return CheckerResult(issues=unique, suppressions=self.suppressions, concerns=self.concerns)


class SourceChecker(ABC):
    """Abstract base class for the independent quality checks.

    Subclasses implement :meth:`check`; callers use :meth:`run`, which never
    raises. Optional checkers are skipped when their tool is missing instead
    of reporting it.
    """

    name: str = "checker"
    source: Source = Source.SYNTAX
    optional: bool = False

    @abstractmethod
    async def check(self, ctx: CheckContext) -> CheckerResult:
        """Run the check.

        Raises:
            ToolUnavailable: The external tool cannot be spawned
            ToolTimeout: The external tool exceeded its bound
            ParseFailure: No parser could make sense of the output
        """

    async def run(self, ctx: CheckContext) -> CheckerResult:
        """Run the check, converting failures into a single visible issue."""
        table = ctx.config.severity
        try:
            result = await self.check(ctx)
        except ToolUnavailable as e:
            if self.optional:
                logger.info(f"Skipping {self.name}: {e}")
                return CheckerResult()
            logger.warning(f"{self.name} could not run: {e}")
            return self.failure_result(e, "tool-unavailable", table.tool_unavailable)
        except ToolTimeout as e:
            logger.warning(f"{self.name} timed out: {e}")
            return self.failure_result(e, "tool-timeout", table.tool_unavailable)
        except ParseFailure as e:
            logger.warning(f"{self.name} output could not be parsed: {e}")
            return self.failure_result(e, "parse-failure", table.unparsed_failure)
        except Exception as e:
            logger.exception(f"{self.name} crashed")
            return self.failure_result(e, "checker-crashed", table.tool_unavailable)
        return result.deduplicated()

    def failure_result(self, error: Exception, code: str, severity: Severity) -> CheckerResult:
        """A result holding one issue that names this checker and why it could not run."""
        return CheckerResult(
            issues=[
                Issue(
                    source=self.source,
                    severity=severity,
                    message=f"Could not check {self.name}: {error}",
                    suggested_fix=f"Make sure {self.name} is installed and runs from the project root",
                    code=code,
                )
            ]
        )
