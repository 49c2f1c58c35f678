"""Parser for free-form build logs."""

from __future__ import annotations

import logging
import re

from bastion.config import SeverityTable
from bastion.core.errors import ParseFailure
from bastion.core.models import Issue, Source
from bastion.parsers.patterns import (
    LinePattern,
    group,
    int_group,
    next_nonblank,
    select_best_pattern,
    strip_ansi,
)
from bastion.parsers.typecheck import TYPE_CHECK_PATTERNS, suggest_fix

logger = logging.getLogger(__name__)

# Positional formats, most specific first. Type-checker formats come first
# because most TypeScript builds run the compiler.
BUILD_PATTERNS = (
    TYPE_CHECK_PATTERNS[0],
    TYPE_CHECK_PATTERNS[1],
    LinePattern(
        "compiler-colon",
        re.compile(
            r"^(?P<file>\S[^:\n]*?):(?P<line>\d+):(?P<col>\d+):\s*(?P<severity>error|warning):\s*(?P<message>.+)$",
            re.IGNORECASE,
        ),
    ),
    LinePattern(
        "webpack",
        re.compile(r"^(?P<severity>ERROR|WARNING) in (?P<file>\S+?)(?:\s+(?P<line>\d+):(?P<col>\d+)(?:-\d+)?)?\s*$"),
    ),
    LinePattern(
        "esbuild",
        re.compile(r"^\s*(?:✘|X|×|▲)\s*\[(?P<severity>ERROR|WARNING)\]\s*(?P<message>.+)$"),
    ),
)

# Any line carrying an error token, excluding "0 errors" style summaries
FREE_FORM_ERROR = re.compile(r"\b(?:ERROR|error|Error)\b")
ZERO_ERRORS = re.compile(r"\b0\s+errors?\b", re.IGNORECASE)
NPM_NOISE = re.compile(r"^npm (?:ERR!|error)\s*(?:code|path|command|errno|A complete log|\s*$)")


def parse_build_output(stdout: str, stderr: str, exit_code: int, table: SeverityTable) -> list[Issue]:
    """Extract build errors from a log.

    Positional formats are tried first and the one with the most matching
    lines wins. When none match, any line carrying an error token becomes an
    issue at an unknown location.

    Raises:
        ParseFailure: The build failed but nothing could be extracted
    """
    lines = strip_ansi(f"{stdout}\n{stderr}").splitlines()
    pattern, matches = select_best_pattern(BUILD_PATTERNS, lines)

    issues: list[Issue] = []
    if pattern is not None:
        logger.debug(f"Build output parsed with pattern {pattern.name}: {len(matches)} match(es)")
        for line_match in matches:
            m = line_match.match
            message = (group(m, "message") or next_nonblank(lines, line_match.index)).strip()
            code = group(m, "code")
            issues.append(
                Issue(
                    file=(group(m, "file") or "").strip(),
                    line=int_group(m, "line"),
                    column=int_group(m, "col"),
                    source=Source.BUILD,
                    severity=table.for_build(group(m, "severity") or "error"),
                    message=message or "Build error",
                    suggested_fix=suggest_fix(code) if code else "Fix build error",
                    code=code,
                )
            )
    elif exit_code != 0:
        for raw in lines:
            line = raw.strip()
            if not line or not FREE_FORM_ERROR.search(line) or ZERO_ERRORS.search(line) or NPM_NOISE.match(line):
                continue
            issues.append(
                Issue(
                    source=Source.BUILD,
                    severity=table.for_build("error"),
                    message=line,
                    suggested_fix="Fix build error",
                )
            )

    if not issues and exit_code != 0:
        raise ParseFailure("build", f"exit code {exit_code} but no errors could be parsed")
    return issues
