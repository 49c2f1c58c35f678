"""Parsers for lint output: JSON first, then text fallbacks."""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Any

from bastion.config import SeverityTable
from bastion.core.errors import ParseFailure
from bastion.core.models import Issue, Source
from bastion.parsers.patterns import strip_ansi

logger = logging.getLogger(__name__)

# Stylish format: a file header line followed by indented "line:col  level  message  rule" rows
STYLISH_ROW = re.compile(
    r"^\s+(?P<line>\d+):(?P<col>\d+)\s+(?P<level>error|warning)\s+(?P<message>.+?)(?:\s{2,}(?P<rule>[@\w./-]+))?\s*$"
)
STYLISH_SUMMARY = re.compile(
    r"(?P<problems>\d+)\s+problems?\s+\((?P<errors>\d+)\s+errors?,\s+(?P<warnings>\d+)\s+warnings?\)"
)
ERROR_TOTAL = re.compile(r"(\d+)\s+error(?:\(s\)|s)?\b", re.IGNORECASE)
WARNING_TOTAL = re.compile(r"(\d+)\s+warning(?:\(s\)|s)?\b", re.IGNORECASE)
WORD_ERROR = re.compile(r"\berror\b", re.IGNORECASE)
WORD_WARNING = re.compile(r"\bwarning\b", re.IGNORECASE)

LINT_ERROR = 2
LINT_WARNING = 1


@dataclass(frozen=True)
class LintCounts:
    """Error/warning totals from the fast path."""

    errors: int
    warnings: int
    method: str


def extract_json_substring(text: str) -> str | None:
    """Return the text between the first ``[``/``{`` and its matching close.

    String literals are respected so brackets inside messages do not confuse
    the matching. Returns None when no balanced span exists.
    """
    starts = [i for i in (text.find("["), text.find("{")) if i >= 0]
    if not starts:
        return None
    start = min(starts)
    opener = text[start]
    closer = "]" if opener == "[" else "}"
    depth = 0
    in_string = False
    escaped = False
    for index in range(start, len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char == opener:
            depth += 1
        elif char == closer:
            depth -= 1
            if depth == 0:
                return text[start : index + 1]
    return None


def load_json_payload(stdout: str, stderr: str) -> Any | None:
    """Try stdout, then stderr, then an embedded JSON span in either."""
    candidates = [stdout.strip(), stderr.strip()]
    for text in (stdout, stderr):
        span = extract_json_substring(text)
        if span is not None:
            candidates.append(span)

    for candidate in candidates:
        if not candidate or candidate[0] not in "[{":
            continue
        try:
            return json.loads(candidate)
        except json.JSONDecodeError:
            continue
    return None


def _is_eslint_payload(payload: Any) -> bool:
    return isinstance(payload, list) and all(
        isinstance(entry, dict) and isinstance(entry.get("messages", []), list) for entry in payload
    )


def parse_lint_json(payload: Any, table: SeverityTable) -> list[Issue]:
    """Parse ESLint-style JSON (a list of per-file results)."""
    if not _is_eslint_payload(payload):
        raise ParseFailure("lint", "JSON does not look like per-file lint results")

    issues: list[Issue] = []
    for entry in payload:
        file_path = str(entry.get("filePath") or "")
        for message in entry.get("messages", []):
            if not isinstance(message, dict):
                continue
            level = LINT_ERROR if message.get("fatal") else int(message.get("severity") or 0)
            rule = message.get("ruleId")
            if message.get("fix"):
                fix = "Auto-fix available (run the lint fixer)"
            elif rule:
                fix = f"Fix lint rule: {rule}"
            else:
                fix = "Fix the parse error reported by the linter"
            issues.append(
                Issue(
                    file=file_path,
                    line=max(int(message.get("line") or 0), 0),
                    column=max(int(message.get("column") or 0), 0),
                    source=Source.LINT,
                    severity=table.for_lint(level),
                    message=str(message.get("message", "")).strip(),
                    suggested_fix=fix,
                    code=rule,
                )
            )
    return issues


def parse_lint_stylish(text: str, table: SeverityTable) -> list[Issue]:
    """Parse the default human-readable lint format."""
    issues: list[Issue] = []
    current_file = ""
    for raw in strip_ansi(text).splitlines():
        if not raw.strip():
            continue
        row = STYLISH_ROW.match(raw)
        if row:
            level = LINT_ERROR if row.group("level") == "error" else LINT_WARNING
            rule = row.group("rule")
            issues.append(
                Issue(
                    file=current_file,
                    line=int(row.group("line")),
                    column=int(row.group("col")),
                    source=Source.LINT,
                    severity=table.for_lint(level),
                    message=row.group("message").strip(),
                    suggested_fix=f"Fix lint rule: {rule}" if rule else "Review lint output",
                    code=rule,
                )
            )
        elif not raw[0].isspace() and not raw.lstrip().startswith(("✖", "⚠")):
            current_file = raw.strip()
    return issues


def parse_lint_heuristic(text: str, table: SeverityTable) -> list[Issue]:
    """Last resort: one issue per line that mentions error or warning."""
    issues: list[Issue] = []
    for raw in strip_ansi(text).splitlines():
        line = raw.strip()
        if not line or STYLISH_SUMMARY.search(line):
            continue
        if WORD_ERROR.search(line):
            level = LINT_ERROR
        elif WORD_WARNING.search(line):
            level = LINT_WARNING
        else:
            continue
        issues.append(
            Issue(
                source=Source.LINT,
                severity=table.for_lint(level),
                message=line,
                suggested_fix="Review lint output and fix issues",
            )
        )
    return issues


def parse_lint_output(stdout: str, stderr: str, exit_code: int, table: SeverityTable) -> list[Issue]:
    """Parse lint output through the fallback chain.

    Raises:
        ParseFailure: The tool signalled failure but no parser produced anything
    """
    payload = load_json_payload(stdout, stderr)
    if payload is not None:
        try:
            issues = parse_lint_json(payload, table)
        except ParseFailure as e:
            logger.warning(f"{e}; falling back to text parsing")
        else:
            if issues or exit_code == 0:
                return issues
            logger.warning(f"Lint JSON had no messages but exit code was {exit_code}; trying text parsers")

    combined = f"{stdout}\n{stderr}"
    issues = parse_lint_stylish(combined, table)
    if not issues:
        issues = parse_lint_heuristic(combined, table)
    if not issues and exit_code != 0:
        raise ParseFailure("lint", f"exit code {exit_code} but no diagnostics could be parsed")
    return issues


def count_lint_output(stdout: str, stderr: str) -> LintCounts:
    """Count lint errors and warnings without building issues."""
    payload = load_json_payload(stdout, stderr)
    if _is_eslint_payload(payload):
        errors = warnings = 0
        for entry in payload:
            for message in entry.get("messages", []):
                if not isinstance(message, dict):
                    continue
                if message.get("fatal") or message.get("severity") == LINT_ERROR:
                    errors += 1
                elif message.get("severity") == LINT_WARNING:
                    warnings += 1
        return LintCounts(errors, warnings, "json")

    combined = strip_ansi(stdout or stderr or "")
    summary = STYLISH_SUMMARY.search(combined)
    if summary:
        return LintCounts(int(summary.group("errors")), int(summary.group("warnings")), "summary")

    errors = warnings = 0
    for line in combined.splitlines():
        lower = line.lower()
        if "error" in lower and ("eslint" in lower or "✖" in line):
            errors += 1
        elif "warning" in lower and ("eslint" in lower or "⚠" in line):
            warnings += 1
    for match in ERROR_TOTAL.finditer(combined):
        errors = max(errors, int(match.group(1)))
    for match in WARNING_TOTAL.finditer(combined):
        warnings = max(warnings, int(match.group(1)))
    return LintCounts(errors, warnings, "text")
