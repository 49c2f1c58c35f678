"""Core models and services for bastion."""

from bastion.core.errors import (
    BastionError,
    ClassificationFailure,
    ConfigInvalid,
    HookError,
    ParseFailure,
    ToolTimeout,
    ToolUnavailable,
)
from bastion.core.models import (
    AuditReport,
    CountOrigin,
    Decision,
    EnforcementLevel,
    ErrorCount,
    Issue,
    PolicyState,
    ProjectClass,
    Severity,
    Source,
    SourceSummary,
    Suppression,
    SuppressionKind,
    Trigger,
)

__all__ = [
    "AuditReport",
    "BastionError",
    "ClassificationFailure",
    "ConfigInvalid",
    "CountOrigin",
    "Decision",
    "EnforcementLevel",
    "ErrorCount",
    "HookError",
    "Issue",
    "ParseFailure",
    "PolicyState",
    "ProjectClass",
    "Severity",
    "Source",
    "SourceSummary",
    "Suppression",
    "SuppressionKind",
    "ToolTimeout",
    "ToolUnavailable",
    "Trigger",
]
