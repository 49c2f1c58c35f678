"""Parser for type-checker text output (``tsc --pretty false`` and friends)."""

from __future__ import annotations

import logging
import re

from bastion.config import SeverityTable
from bastion.core.models import Issue, Source
from bastion.parsers.patterns import LinePattern, group, int_group, select_best_pattern, strip_ansi

logger = logging.getLogger(__name__)

# Ordered most to least specific
TYPE_CHECK_PATTERNS = (
    LinePattern(
        "paren-position",
        re.compile(
            r"^(?P<file>\S[^(\n]*?)\((?P<line>\d+),(?P<col>\d+)\):\s*"
            r"(?P<severity>error|warning|message)\s+(?P<code>TS\d+):\s*(?P<message>.*)$"
        ),
    ),
    LinePattern(
        "colon-position",
        re.compile(
            r"^(?P<file>\S.*?):(?P<line>\d+):(?P<col>\d+)\s+-\s+"
            r"(?P<severity>error|warning|message)\s+(?P<code>TS\d+):\s*(?P<message>.*)$"
        ),
    ),
    LinePattern(
        "no-position",
        re.compile(r"^\s*(?P<severity>error|warning)\s+(?P<code>TS\d+):\s*(?P<message>.*)$"),
    ),
)

# Count-only patterns for the fast path, all matched against the whole output
COUNT_PATTERNS = (
    re.compile(r"error TS\d+"),
    re.compile(r"error TS\d+:"),
    re.compile(r"\(\d+,\d+\): error TS\d+"),
    re.compile(r"\.[cm]?[jt]sx?\(\d+,\d+\): error TS\d+"),
    re.compile(r":\d+:\d+ - error TS\d+"),
)

TYPE_CHECK_FIXES = {
    "TS2304": "Define the variable or import it",
    "TS2307": "Install the missing module or add type definitions",
    "TS2339": "Add the missing property or method",
    "TS2345": "Fix the type mismatch",
    "TS2554": "Fix function argument types",
    "TS7006": "Add type annotation",
    "TS7017": "Add explicit type annotation",
}
DEFAULT_FIX = "Fix type-check error"


def suggest_fix(code: str | None) -> str:
    return TYPE_CHECK_FIXES.get(code or "", DEFAULT_FIX)


def parse_type_check_output(stdout: str, stderr: str, table: SeverityTable) -> list[Issue]:
    """Turn positional type-checker diagnostics into issues.

    Continuation lines (indented, unmatched) are appended to the preceding
    message so multi-line explanations are kept.
    """
    lines = strip_ansi(f"{stdout}\n{stderr}").splitlines()
    pattern, matches = select_best_pattern(TYPE_CHECK_PATTERNS, lines)
    if pattern is None:
        return []
    logger.debug(f"Type-check output parsed with pattern {pattern.name}: {len(matches)} diagnostic(s)")

    matched_indexes = {m.index for m in matches}
    issues: list[Issue] = []
    for position, line_match in enumerate(matches):
        m = line_match.match
        message = (group(m, "message") or "").strip()
        end = matches[position + 1].index if position + 1 < len(matches) else len(lines)
        continuation = [
            lines[i].strip()
            for i in range(line_match.index + 1, end)
            if i not in matched_indexes and lines[i].startswith((" ", "\t")) and lines[i].strip()
        ]
        if continuation:
            message = "\n".join([message, *continuation])
        code = group(m, "code")
        issues.append(
            Issue(
                file=(group(m, "file") or "").strip(),
                line=int_group(m, "line"),
                column=int_group(m, "col"),
                source=Source.TYPE_CHECK,
                severity=table.for_type_check(group(m, "severity") or "error"),
                message=message,
                suggested_fix=suggest_fix(code),
                code=code,
            )
        )
    return issues


def count_type_check_errors(stdout: str, stderr: str) -> int:
    """Count type errors using the pattern with the most matches.

    Falls back to counting lines that mention ``error TS`` when no pattern matches.
    """
    combined = strip_ansi(f"{stdout}\n{stderr}")
    best = 0
    for pattern in COUNT_PATTERNS:
        count = len(pattern.findall(combined))
        if count:
            logger.debug(f"Pattern {pattern.pattern} matched {count} errors")
        best = max(best, count)

    if best == 0:
        best = sum(
            1 for line in combined.splitlines() if "error ts" in line.lower() or "error: ts" in line.lower()
        )
        logger.debug(f"Fallback line-based counting found {best} error lines")

    if best == 0 and "error" in combined:
        logger.warning("Output contains 'error' but no type-check errors were matched; unexpected output format")
    return best
