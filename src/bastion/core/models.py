"""Core data models for bastion."""

from __future__ import annotations

import json
from collections.abc import Iterable
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class Severity(str, Enum):
    """Normalized issue severity, ordered Critical > High > Medium > Low."""

    CRITICAL = "Critical"
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"

    @property
    def rank(self) -> int:
        """Sort key: 0 for Critical up to 3 for Low."""
        return _SEVERITY_RANK[self]

    @property
    def is_error(self) -> bool:
        """Critical and High count as errors, Medium and Low as warnings."""
        return self in (Severity.CRITICAL, Severity.HIGH)


_SEVERITY_RANK = {
    Severity.CRITICAL: 0,
    Severity.HIGH: 1,
    Severity.MEDIUM: 2,
    Severity.LOW: 3,
}


class Source(str, Enum):
    """Category of checker that produced an issue."""

    TYPE_CHECK = "TypeCheck"
    LINT = "Lint"
    BUILD = "Build"
    SYNTAX = "Syntax"
    DEPENDENCY = "Dependency"
    CONFIG = "Config"


class SuppressionKind(str, Enum):
    """Kinds of in-source suppression directives."""

    IGNORE_LINE = "IgnoreLine"  # @ts-ignore
    EXPECT_ERROR = "ExpectError"  # @ts-expect-error
    DISABLE_FILE = "DisableFile"  # @ts-nocheck
    DISABLE_RULES = "DisableRules"  # eslint-disable, -line, -next-line


class EnforcementLevel(str, Enum):
    """How strictly the protection policy gates actions."""

    ADVISORY = "advisory"  # errors block, warnings don't
    ZERO_TOLERANCE = "zero-tolerance"  # errors and warnings both block


class ProjectClass(str, Enum):
    """Classification computed when protection is enabled."""

    NEW = "new"
    LEGACY = "legacy"
    LEGACY_WITH_ERRORS = "legacy-with-errors"
    UNKNOWN = "unknown"


class Trigger(str, Enum):
    """Lifecycle event at which a policy decision is requested."""

    SAVE = "save"
    COMMIT = "commit"
    BUILD = "build"


class CountOrigin(str, Enum):
    """Where an ErrorCounter category got its numbers from."""

    TOOL = "tool"
    EDITOR = "editor"
    NONE = "none"


# =============================================================================
# Findings
# =============================================================================


class Issue(BaseModel):
    """One normalized finding from any checker."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    file: str = ""
    line: int = Field(default=0, ge=0)
    column: int = Field(default=0, ge=0)
    source: Source
    severity: Severity
    message: str
    suggested_fix: str = Field(default="", alias="suggestedFix")
    code: str | None = None

    @property
    def is_error(self) -> bool:
        return self.severity.is_error

    def dedup_key(self) -> tuple[str, int, int, str]:
        """Identity used to collapse duplicates within one checker.

        Findings without a diagnostic code fall back to the message so that
        distinct free-form lines at an unknown location stay distinct.
        """
        return (self.file, self.line, self.column, self.code if self.code is not None else f"msg:{self.message}")


class Suppression(BaseModel):
    """An in-source directive that silences a diagnostic."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    file: str
    line: int = Field(ge=0)
    kind: SuppressionKind
    directive: str
    rule: str | None = None
    should_flag: bool = Field(alias="shouldFlag")
    reason: str = ""


class SourceSummary(BaseModel):
    """Error and warning counts for one source."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    error_count: int = Field(default=0, alias="errorCount")
    warning_count: int = Field(default=0, alias="warningCount")


def sort_issues(issues: Iterable[Issue]) -> tuple[Issue, ...]:
    """Stable sort by severity, Critical first."""
    return tuple(sorted(issues, key=lambda issue: issue.severity.rank))


def summarize(issues: Iterable[Issue]) -> dict[Source, SourceSummary]:
    """Compute per-source error/warning counts, one entry for every source."""
    errors = dict.fromkeys(Source, 0)
    warnings = dict.fromkeys(Source, 0)
    for issue in issues:
        if issue.is_error:
            errors[issue.source] += 1
        else:
            warnings[issue.source] += 1
    return {source: SourceSummary(error_count=errors[source], warning_count=warnings[source]) for source in Source}


class AuditReport(BaseModel):
    """Aggregate result of one aggregation run. Immutable once built."""

    model_config = ConfigDict(frozen=True)

    passed: bool
    issues: tuple[Issue, ...] = ()
    suppressions: tuple[Suppression, ...] = ()
    quality_score: int = Field(ge=0, le=100)
    summary: dict[Source, SourceSummary] = Field(default_factory=dict)
    total_files: int = 0
    concerns: tuple[str, ...] = ()
    timestamp: datetime = Field(default_factory=datetime.now)

    @property
    def errors(self) -> list[Issue]:
        return [issue for issue in self.issues if issue.is_error]

    @property
    def warnings(self) -> list[Issue]:
        return [issue for issue in self.issues if not issue.is_error]

    @property
    def error_count(self) -> int:
        return len(self.errors)

    @property
    def warning_count(self) -> int:
        return len(self.warnings)

    @property
    def unsafe_suppressions(self) -> list[Suppression]:
        return [s for s in self.suppressions if s.should_flag]

    def errors_for(self, source: Source) -> int:
        summary = self.summary.get(source)
        return summary.error_count if summary else 0

    def to_json_dict(self) -> dict[str, Any]:
        """Serialize using the stable external field names."""
        return {
            "passed": self.passed,
            "totalFiles": self.total_files,
            "totalErrors": self.error_count,
            "totalWarnings": self.warning_count,
            "totalSuppressions": len(self.suppressions),
            "errors": [issue.model_dump(mode="json", by_alias=True) for issue in self.errors],
            "warnings": [issue.model_dump(mode="json", by_alias=True) for issue in self.warnings],
            "suppressions": [s.model_dump(mode="json", by_alias=True) for s in self.suppressions],
            "businessLogicConcerns": list(self.concerns),
            "summary": {
                source.value: summary.model_dump(mode="json", by_alias=True)
                for source, summary in self.summary.items()
            },
            "codeQualityScore": self.quality_score,
            "timestamp": self.timestamp.isoformat(),
        }

    def to_json(self, indent: int | None = 2) -> str:
        return json.dumps(self.to_json_dict(), indent=indent)

    @classmethod
    def from_json_dict(cls, data: dict[str, Any]) -> AuditReport:
        """Rebuild a report from :meth:`to_json_dict` output."""
        issues = [Issue.model_validate(item) for item in [*data.get("errors", []), *data.get("warnings", [])]]
        return cls(
            passed=data["passed"],
            issues=tuple(issues),
            suppressions=tuple(Suppression.model_validate(item) for item in data.get("suppressions", [])),
            quality_score=data["codeQualityScore"],
            summary={
                Source(key): SourceSummary.model_validate(value) for key, value in data.get("summary", {}).items()
            },
            total_files=data.get("totalFiles", 0),
            concerns=tuple(data.get("businessLogicConcerns", [])),
            timestamp=datetime.fromisoformat(data["timestamp"]),
        )

    @classmethod
    def from_json(cls, text: str) -> AuditReport:
        return cls.from_json_dict(json.loads(text))


# =============================================================================
# Counting and policy models
# =============================================================================


class ErrorCount(BaseModel):
    """Result of the fast-path type-check + lint count."""

    model_config = ConfigDict(frozen=True)

    type_check_errors: int = 0
    type_check_warnings: int = 0
    lint_errors: int = 0
    lint_warnings: int = 0
    origins: dict[str, CountOrigin] = Field(default_factory=dict)
    failed_tools: tuple[str, ...] = ()
    suspicious_zero: bool = False

    @property
    def errors(self) -> int:
        return self.type_check_errors + self.lint_errors

    @property
    def warnings(self) -> int:
        return self.type_check_warnings + self.lint_warnings

    @property
    def total(self) -> int:
        return self.errors + self.warnings

    def details(self) -> dict[Source, SourceSummary]:
        return {
            Source.TYPE_CHECK: SourceSummary(
                error_count=self.type_check_errors, warning_count=self.type_check_warnings
            ),
            Source.LINT: SourceSummary(error_count=self.lint_errors, warning_count=self.lint_warnings),
        }


class PolicyState(BaseModel):
    """Snapshot of the protection policy state."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = False
    enforcement_level: EnforcementLevel = EnforcementLevel.ADVISORY
    project_class: ProjectClass = ProjectClass.UNKNOWN


class Decision(BaseModel):
    """Allow/deny answer for one trigger, with the counts behind it."""

    model_config = ConfigDict(frozen=True)

    allowed: bool
    reason: str
    trigger: Trigger
    errors: int = 0
    warnings: int = 0
    suppressions: int = 0
    details: dict[Source, SourceSummary] = Field(default_factory=dict)
    enforcement_level: EnforcementLevel = EnforcementLevel.ADVISORY
    project_class: ProjectClass = ProjectClass.UNKNOWN
    override_requested: bool = False
    override_honored: bool = False
