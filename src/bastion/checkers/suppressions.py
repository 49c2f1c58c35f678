"""Suppression scan plus business-logic concern markers."""

from __future__ import annotations

import asyncio
import logging
import re
from pathlib import Path

from bastion.checkers.base import CheckContext, CheckerResult, SourceChecker
from bastion.core.models import Source, Suppression, SuppressionKind

logger = logging.getLogger(__name__)

TS_DIRECTIVE = re.compile(r"(?://+|/\*+)\s*@ts-(?P<kind>ignore|expect-error|nocheck)\b")
ESLINT_DIRECTIVE = re.compile(
    r"(?://+|/\*+)\s*(?P<directive>eslint-disable(?:-next-line|-line)?)(?![\w-])(?P<rules>[^\n]*)"
)
CONCERN_MARKER = re.compile(r"(?://+|/\*+|^\s*\*)\s*(?:.*?\s)?(?P<marker>TODO|FIXME|HACK|XXX)\b[\s:(-]*(?P<text>.*)")
EMPTY_CATCH = re.compile(r"\bcatch\s*(?:\([^)]*\))?\s*\{\s*\}")
INFINITE_LOOP = re.compile(r"\bwhile\s*\(\s*true\s*\)|\bfor\s*\(\s*;\s*;\s*\)")
SET_INTERVAL = re.compile(r"\bsetInterval\s*\(")
CLEAR_INTERVAL = re.compile(r"\bclearInterval\s*\(")

TS_KINDS = {
    "ignore": (SuppressionKind.IGNORE_LINE, True, "@ts-ignore hides any error on the next line"),
    "expect-error": (SuppressionKind.EXPECT_ERROR, False, "@ts-expect-error fails once the error is gone"),
    "nocheck": (SuppressionKind.DISABLE_FILE, True, "@ts-nocheck disables type-checking for the whole file"),
}


def _parse_rules(raw: str) -> str | None:
    """Rule list of an eslint directive, without its ``--`` description."""
    rules = raw.split("--", 1)[0]
    rules = rules.replace("*/", "").strip().rstrip(",").strip()
    return rules or None


def scan_suppressions(text: str, file: str) -> list[Suppression]:
    """Find suppression directives in one file's text."""
    found: list[Suppression] = []
    for number, line in enumerate(text.splitlines(), start=1):
        ts = TS_DIRECTIVE.search(line)
        if ts:
            kind, unsafe, reason = TS_KINDS[ts.group("kind")]
            found.append(
                Suppression(
                    file=file,
                    line=number,
                    kind=kind,
                    directive=f"@ts-{ts.group('kind')}",
                    should_flag=unsafe,
                    reason=reason,
                )
            )
        eslint = ESLINT_DIRECTIVE.search(line)
        if eslint:
            rule = _parse_rules(eslint.group("rules"))
            blanket = rule is None or rule == "*"
            found.append(
                Suppression(
                    file=file,
                    line=number,
                    kind=SuppressionKind.DISABLE_RULES,
                    directive=eslint.group("directive"),
                    rule=rule,
                    should_flag=blanket,
                    reason="Disables every lint rule" if blanket else f"Disables {rule}",
                )
            )
    return found


def scan_concerns(text: str, file: str) -> list[str]:
    """Find markers and patterns that point at unfinished or fragile logic."""
    concerns: list[str] = []
    for number, line in enumerate(text.splitlines(), start=1):
        marker = CONCERN_MARKER.search(line)
        if marker:
            note = marker.group("text").strip().rstrip("*/").strip()
            label = f"{file}:{number}: {marker.group('marker')}"
            concerns.append(f"{label}: {note}" if note else label)
        if INFINITE_LOOP.search(line):
            concerns.append(f"{file}:{number}: Infinite loop, make sure it has an exit condition")

    for match in EMPTY_CATCH.finditer(text):
        number = text.count("\n", 0, match.start()) + 1
        concerns.append(f"{file}:{number}: Empty catch block swallows errors")

    timer = SET_INTERVAL.search(text)
    if timer and not CLEAR_INTERVAL.search(text):
        number = text.count("\n", 0, timer.start()) + 1
        concerns.append(f"{file}:{number}: setInterval without clearInterval may leak timers")
    return concerns


class SuppressionChecker(SourceChecker):
    """Scans source text for suppression directives.

    Produces no issues; suppressions feed the score and the zero-tolerance
    commit gate, concerns are informational only.
    """

    name = "suppression-scan"
    source = Source.LINT

    async def check(self, ctx: CheckContext) -> CheckerResult:
        return await asyncio.to_thread(self._scan, ctx)

    def _scan(self, ctx: CheckContext) -> CheckerResult:
        result = CheckerResult()
        for path in ctx.source_files:
            text = self._read(path)
            if text is None:
                continue
            relative = ctx.relative(path)
            result.suppressions.extend(scan_suppressions(text, relative))
            result.concerns.extend(scan_concerns(text, relative))
        logger.debug(
            f"Found {len(result.suppressions)} suppression(s) and {len(result.concerns)} concern(s) "
            f"in {len(ctx.source_files)} file(s)"
        )
        return result

    def _read(self, path: Path) -> str | None:
        try:
            return path.read_text(encoding="utf-8-sig")
        except (OSError, UnicodeDecodeError) as e:
            # The syntax checker reports unreadable files
            logger.debug(f"Skipping unreadable {path}: {e}")
            return None
