"""Protection policy: project classification and allow/deny decisions."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from bastion.config import Config
from bastion.core.aggregator import IssueAggregator
from bastion.core.counter import ErrorCounter
from bastion.core.diagnostics import DiagnosticsProvider
from bastion.core.errors import ClassificationFailure
from bastion.core.events import EventBus, PolicyTransition
from bastion.core.models import (
    Decision,
    EnforcementLevel,
    PolicyState,
    ProjectClass,
    Source,
    SourceSummary,
    Trigger,
)
from bastion.hooks.installer import install_hooks, uninstall_hooks
from bastion.runners.process import ProcessRunner
from bastion.utils.files import discover_files, is_source_file
from bastion.utils.git import configure_protection

logger = logging.getLogger(__name__)

SOURCE_LABELS = {
    Source.TYPE_CHECK: "type-check",
    Source.LINT: "lint",
    Source.BUILD: "build",
    Source.SYNTAX: "syntax",
    Source.DEPENDENCY: "dependency",
    Source.CONFIG: "config",
}

# Classes whose advisory-mode commit denials can be overridden by the caller
OVERRIDABLE = (ProjectClass.LEGACY_WITH_ERRORS, ProjectClass.UNKNOWN)


def _breakdown(details: Mapping[Source, SourceSummary], errors: bool) -> str:
    parts = []
    for source in Source:
        summary = details.get(source)
        if summary is None:
            continue
        value = summary.error_count if errors else summary.warning_count
        if value:
            parts.append(f"{SOURCE_LABELS[source]}: {value}")
    return f" ({', '.join(parts)})" if parts else ""


def describe_counts(
    errors: int,
    warnings: int,
    details: Mapping[Source, SourceSummary],
    suppressions: int | None = None,
) -> str:
    """Human-readable counts by category, e.g. ``3 error(s) (lint: 3), 0 warning(s)``."""
    text = f"{errors} error(s){_breakdown(details, True)}, {warnings} warning(s){_breakdown(details, False)}"
    if suppressions is not None:
        text += f", {suppressions} unsafe suppression(s)"
    return text


class ProtectionPolicy:
    """State machine deciding whether saves, commits and builds may proceed.

    One instance per workspace. ``enable``/``disable`` are serialized by a
    lock; ``decide`` only reads a state snapshot and may run concurrently.
    Commit and build gates deny whenever their audit fails.
    """

    def __init__(
        self,
        root: Path,
        config: Config,
        *,
        counter: ErrorCounter | None = None,
        aggregator: IssueAggregator | None = None,
        diagnostics: DiagnosticsProvider | None = None,
        bus: EventBus | None = None,
        runner: ProcessRunner | None = None,
    ) -> None:
        self.root = root
        self.config = config
        self.bus = bus or EventBus()
        self.diagnostics = diagnostics
        runner = runner or ProcessRunner(root)
        self.counter = counter or ErrorCounter(root, config, runner=runner, diagnostics=diagnostics, bus=self.bus)
        self.aggregator = aggregator or IssueAggregator(root, config, runner=runner, bus=self.bus)
        self._state = PolicyState()
        self._lock = asyncio.Lock()

    @property
    def state(self) -> PolicyState:
        return self._state

    # =========================================================================
    # Transitions
    # =========================================================================

    async def enable(self, strict: bool | None = None, *, install_hooks: bool = False) -> PolicyState:
        """Classify the project and start enforcing.

        Args:
            strict: Zero tolerance when True; defaults to ``config.strict_mode``
            install_hooks: Also install git hooks and set the git config keys they read

        Returns:
            The new state
        """
        if strict is None:
            strict = self.config.strict_mode
        level = EnforcementLevel.ZERO_TOLERANCE if strict else EnforcementLevel.ADVISORY

        async with self._lock:
            try:
                project_class = await self.classify()
            except ClassificationFailure as e:
                logger.warning(f"Project classification failed, treating project conservatively: {e}")
                project_class = ProjectClass.UNKNOWN

            if install_hooks:
                await asyncio.to_thread(self._install_hooks, level)

            self._state = PolicyState(enabled=True, enforcement_level=level, project_class=project_class)
            logger.info(f"Protection enabled: {level.value}, project is {project_class.value}")
            self.bus.publish(PolicyTransition(state=self._state))
            return self._state

    async def disable(self, *, uninstall_hooks: bool = False) -> PolicyState:
        """Stop enforcing and forget the project classification."""
        async with self._lock:
            if uninstall_hooks:
                await asyncio.to_thread(self._uninstall_hooks)
            self._state = PolicyState()
            logger.info("Protection disabled")
            self.bus.publish(PolicyTransition(state=self._state))
            return self._state

    async def restore(self, state: PolicyState) -> None:
        """Adopt a previously saved state without reclassifying."""
        async with self._lock:
            if not state.enabled:
                state = PolicyState()
            self._state = state
            self.bus.publish(PolicyTransition(state=self._state))

    async def classify(self) -> ProjectClass:
        """Classify the project from its current error counts and size.

        Raises:
            ClassificationFailure: Counting failed or gave unreliable numbers
        """
        try:
            count = await self.counter.count()
        except Exception as e:
            raise ClassificationFailure(f"error count failed: {e}") from e
        if count.suspicious_zero:
            raise ClassificationFailure(f"counts unreliable, {', '.join(count.failed_tools)} failed")
        if count.total > 0:
            return ProjectClass.LEGACY_WITH_ERRORS

        try:
            files = await asyncio.to_thread(discover_files, self.root, self.config.files)
        except OSError as e:
            raise ClassificationFailure(f"file discovery failed: {e}") from e
        size = sum(1 for path in files if is_source_file(path))
        logger.debug(f"Project has {size} source file(s)")
        return ProjectClass.NEW if size < self.config.new_project_file_threshold else ProjectClass.LEGACY

    def _install_hooks(self, level: EnforcementLevel) -> None:
        section = self.config.git_config_section
        install_hooks(self.root, level, self.config.tools, section)
        configure_protection(
            self.root, section, protection=True, strict=level == EnforcementLevel.ZERO_TOLERANCE
        )

    def _uninstall_hooks(self) -> None:
        uninstall_hooks(self.root)
        configure_protection(self.root, self.config.git_config_section, protection=False, strict=False)

    # =========================================================================
    # Decisions
    # =========================================================================

    async def decide(self, trigger: Trigger, *, file: str | Path | None = None, override: bool = False) -> Decision:
        """Allow or deny one lifecycle action.

        Args:
            trigger: Which action is about to happen
            file: The file being saved (Save only)
            override: The caller confirmed an override (Commit only)

        Returns:
            Decision with the counts and a reason naming them by category
        """
        state = self._state
        if not state.enabled:
            return Decision(allowed=True, reason="Protection is disabled", trigger=trigger)

        if trigger == Trigger.SAVE:
            if file is None:
                raise ValueError("Save decisions need the file being saved")
            return self._decide_save(state, file)
        if trigger == Trigger.COMMIT:
            return await self._decide_commit(state, override)
        return await self._decide_build(state)

    async def check_before_save(self, file: str | Path) -> Decision:
        return await self.decide(Trigger.SAVE, file=file)

    async def check_before_commit(self, override: bool = False) -> Decision:
        return await self.decide(Trigger.COMMIT, override=override)

    async def check_before_build(self) -> Decision:
        return await self.decide(Trigger.BUILD)

    def _decision(self, state: PolicyState, trigger: Trigger, **fields: Any) -> Decision:
        return Decision(
            trigger=trigger,
            enforcement_level=state.enforcement_level,
            project_class=state.project_class,
            **fields,
        )

    def _decide_save(self, state: PolicyState, file: str | Path) -> Decision:
        """Uses only the editor's diagnostics for *file*; never spawns a process."""
        if self.diagnostics is None:
            logger.warning(f"No editor diagnostics provider, blocking save of {file}")
            reason = "Save blocked: no editor diagnostics available"
            return self._decision(state, Trigger.SAVE, allowed=False, reason=reason)
        try:
            diagnostics = self.diagnostics.diagnostics_for(file)
        except Exception as e:
            logger.warning(f"Could not read diagnostics for {file}: {e}")
            reason = f"Save blocked: diagnostics unavailable ({e})"
            return self._decision(state, Trigger.SAVE, allowed=False, reason=reason)

        errors: dict[Source, int] = dict.fromkeys(Source, 0)
        warnings: dict[Source, int] = dict.fromkeys(Source, 0)
        for diagnostic in diagnostics:
            if diagnostic.is_error:
                errors[diagnostic.category] += 1
            elif diagnostic.is_warning:
                warnings[diagnostic.category] += 1
        details = {
            source: SourceSummary(error_count=errors[source], warning_count=warnings[source])
            for source in Source
            if errors[source] or warnings[source]
        }
        error_total = sum(errors.values())
        warning_total = sum(warnings.values())

        if state.enforcement_level == EnforcementLevel.ZERO_TOLERANCE:
            blocked = error_total > 0 or warning_total > 0
        else:
            blocked = error_total > 0

        counts = describe_counts(error_total, warning_total, details)
        if blocked:
            reason = f"Save blocked ({state.enforcement_level.value}): {file} has {counts}"
        else:
            reason = f"Save allowed: {file} has {counts}"
        return self._decision(
            state,
            Trigger.SAVE,
            allowed=not blocked,
            reason=reason,
            errors=error_total,
            warnings=warning_total,
            details=details,
        )

    async def _decide_commit(self, state: PolicyState, override: bool) -> Decision:
        level = state.enforcement_level
        if level == EnforcementLevel.ADVISORY and state.project_class == ProjectClass.NEW:
            return self._decision(
                state,
                Trigger.COMMIT,
                allowed=True,
                reason="Commit allowed: new project, protection applies gradually in advisory mode",
            )

        try:
            report = await self.aggregator.audit()
        except Exception as e:
            logger.exception("Audit failed during commit check")
            reason = f"Commit blocked: audit failed ({e})"
            return self._decision(state, Trigger.COMMIT, allowed=False, reason=reason)

        errors = report.error_count
        warnings = report.warning_count
        unsafe = len(report.unsafe_suppressions)
        if level == EnforcementLevel.ZERO_TOLERANCE:
            blocked = errors > 0 or warnings > 0 or unsafe > 0
        else:
            blocked = errors > 0

        counts = describe_counts(errors, warnings, report.summary, unsafe)
        honored = (
            blocked and override and level == EnforcementLevel.ADVISORY and state.project_class in OVERRIDABLE
        )
        if honored:
            reason = f"Commit allowed by override ({state.project_class.value}): project contains {counts}"
            logger.warning(reason)
        elif blocked:
            reason = f"Commit blocked ({level.value}): project contains {counts}"
        else:
            reason = f"Commit allowed: project contains {counts}"

        return self._decision(
            state,
            Trigger.COMMIT,
            allowed=not blocked or honored,
            reason=reason,
            errors=errors,
            warnings=warnings,
            suppressions=unsafe,
            details=report.summary,
            override_requested=override and blocked,
            override_honored=honored,
        )

    async def _decide_build(self, state: PolicyState) -> Decision:
        try:
            count = await self.counter.count()
        except Exception as e:
            logger.exception("Error count failed during build check")
            reason = f"Build blocked: error count failed ({e})"
            return self._decision(state, Trigger.BUILD, allowed=False, reason=reason)

        details = count.details()
        counts = describe_counts(count.errors, count.warnings, details)
        if count.suspicious_zero:
            return self._decision(
                state,
                Trigger.BUILD,
                allowed=False,
                reason=f"Build blocked: counts unreliable because {', '.join(count.failed_tools)} failed",
                details=details,
            )

        if state.enforcement_level == EnforcementLevel.ZERO_TOLERANCE:
            blocked = count.errors > 0 or count.warnings > 0
        else:
            blocked = count.errors > 0

        if blocked:
            reason = f"Build blocked ({state.enforcement_level.value}): project contains {counts}"
        else:
            reason = f"Build allowed: project contains {counts}"
        return self._decision(
            state,
            Trigger.BUILD,
            allowed=not blocked,
            reason=reason,
            errors=count.errors,
            warnings=count.warnings,
            details=details,
        )
