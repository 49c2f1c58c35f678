"""Parsers that normalize external tool output into issues."""

from bastion.parsers.audit import parse_dependency_audit
from bastion.parsers.build import parse_build_output
from bastion.parsers.lint import count_lint_output, load_json_payload, parse_lint_output
from bastion.parsers.typecheck import count_type_check_errors, parse_type_check_output

__all__ = [
    "count_lint_output",
    "count_type_check_errors",
    "load_json_payload",
    "parse_build_output",
    "parse_dependency_audit",
    "parse_lint_output",
    "parse_type_check_output",
]
