"""The independent quality checks run by the aggregator."""

from bastion.checkers.base import CheckContext, CheckerResult, SourceChecker
from bastion.checkers.build import BuildChecker
from bastion.checkers.configuration import ConfigurationChecker
from bastion.checkers.dependencies import DependencyChecker
from bastion.checkers.lint import LintChecker
from bastion.checkers.suppressions import SuppressionChecker
from bastion.checkers.syntax import SyntaxChecker
from bastion.checkers.typecheck import TypeCheckChecker


def default_checkers() -> list[SourceChecker]:
    """One instance of every checker, in report order."""
    return [
        TypeCheckChecker(),
        LintChecker(),
        BuildChecker(),
        SyntaxChecker(),
        SuppressionChecker(),
        DependencyChecker(),
        ConfigurationChecker(),
    ]


__all__ = [
    "BuildChecker",
    "CheckContext",
    "CheckerResult",
    "ConfigurationChecker",
    "DependencyChecker",
    "LintChecker",
    "SourceChecker",
    "SuppressionChecker",
    "SyntaxChecker",
    "TypeCheckChecker",
    "default_checkers",
]
