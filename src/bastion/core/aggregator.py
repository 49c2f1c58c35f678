"""Concurrent fan-out over all checkers and merging into one report."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Sequence
from datetime import datetime
from pathlib import Path

from bastion.checkers import CheckContext, CheckerResult, SourceChecker, default_checkers
from bastion.config import Config, ScoreWeights
from bastion.core.events import AuditFinished, AuditStarted, CheckerFinished, EventBus
from bastion.core.models import AuditReport, Issue, Suppression, sort_issues, summarize
from bastion.runners.process import ProcessRunner
from bastion.utils.files import discover_files

logger = logging.getLogger(__name__)


def quality_score(issues: Sequence[Issue], suppressions: Sequence[Suppression], weights: ScoreWeights) -> int:
    """100 minus weighted deductions, clamped to 0..100.

    Only unsafe suppressions cost points.
    """
    deduction = sum(weights.weight(issue.source, issue.severity) for issue in issues)
    deduction += weights.suppression * sum(1 for s in suppressions if s.should_flag)
    return max(0, min(100, 100 - deduction))


def build_report(
    results: Sequence[CheckerResult],
    weights: ScoreWeights,
    *,
    total_files: int = 0,
    timestamp: datetime | None = None,
) -> AuditReport:
    """Merge checker results into an immutable report."""
    issues = sort_issues(issue for result in results for issue in result.issues)
    suppressions = tuple(s for result in results for s in result.suppressions)
    concerns = tuple(c for result in results for c in result.concerns)
    return AuditReport(
        passed=not any(issue.is_error for issue in issues),
        issues=issues,
        suppressions=suppressions,
        quality_score=quality_score(issues, suppressions, weights),
        summary=summarize(issues),
        total_files=total_files,
        concerns=concerns,
        timestamp=timestamp or datetime.now(),
    )


class IssueAggregator:
    """Runs every checker concurrently and merges their findings.

    A failing checker never aborts the others: its failure shows up as a
    synthetic issue. Only a fault in the join itself propagates.
    """

    def __init__(
        self,
        root: Path,
        config: Config,
        *,
        runner: ProcessRunner | None = None,
        checkers: Sequence[SourceChecker] | None = None,
        bus: EventBus | None = None,
    ) -> None:
        self.root = root
        self.config = config
        self.runner = runner or ProcessRunner(root)
        self.checkers = list(checkers) if checkers is not None else default_checkers()
        self.bus = bus or EventBus()

    async def audit(self) -> AuditReport:
        """Run all checkers and build the report."""
        files = await asyncio.to_thread(discover_files, self.root, self.config.files)
        ctx = CheckContext(root=self.root, config=self.config, runner=self.runner, files=files)
        logger.info(f"Auditing {self.root} ({len(files)} files, {len(self.checkers)} checkers)")
        self.bus.publish(AuditStarted(checkers=tuple(c.name for c in self.checkers), total_files=len(files)))

        outcomes = await asyncio.gather(
            *(self._run_checker(checker, ctx) for checker in self.checkers),
            return_exceptions=True,
        )

        results: list[CheckerResult] = []
        for checker, outcome in zip(self.checkers, outcomes, strict=True):
            if isinstance(outcome, CheckerResult):
                results.append(outcome)
            elif isinstance(outcome, Exception):
                logger.error(f"Checker {checker.name} escaped its error handling: {outcome}")
                results.append(
                    checker.failure_result(
                        outcome,
                        "checker-crashed",
                        self.config.severity.tool_unavailable,
                    )
                )
            else:
                raise outcome

        report = build_report(results, self.config.scoring, total_files=len(files))
        logger.info(
            f"Audit finished: {report.error_count} error(s), {report.warning_count} warning(s), "
            f"score {report.quality_score}"
        )
        self.bus.publish(AuditFinished(report=report))
        return report

    async def _run_checker(self, checker: SourceChecker, ctx: CheckContext) -> CheckerResult:
        start = time.monotonic()
        result = await checker.run(ctx)
        duration = time.monotonic() - start
        logger.debug(f"{checker.name} finished in {duration:.2f}s with {len(result.issues)} issue(s)")
        self.bus.publish(
            CheckerFinished(checker=checker.name, issue_count=len(result.issues), duration_seconds=duration)
        )
        return result


def write_report(report: AuditReport, path: Path) -> None:
    """Write *report* as JSON, creating parent directories."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(report.to_json(), encoding="utf-8")
    logger.info(f"Report written to {path}")


def read_report(path: Path) -> AuditReport:
    return AuditReport.from_json(path.read_text(encoding="utf-8"))
