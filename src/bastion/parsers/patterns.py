"""Line-pattern selection shared by the text-only parsers."""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass

logger = logging.getLogger(__name__)

ANSI_ESCAPE = re.compile(r"\x1b\[[0-9;?]*[A-Za-z]")


@dataclass(frozen=True)
class LinePattern:
    """A named candidate regex matched against individual output lines."""

    name: str
    regex: re.Pattern[str]


@dataclass(frozen=True)
class LineMatch:
    """A match together with the index of the line it came from."""

    index: int
    match: re.Match[str]


def strip_ansi(text: str) -> str:
    return ANSI_ESCAPE.sub("", text)


def match_lines(pattern: LinePattern, lines: Sequence[str]) -> list[LineMatch]:
    matches: list[LineMatch] = []
    for index, line in enumerate(lines):
        m = pattern.regex.search(line)
        if m:
            matches.append(LineMatch(index, m))
    return matches


def select_best_pattern(
    patterns: Sequence[LinePattern],
    lines: Sequence[str],
) -> tuple[LinePattern | None, list[LineMatch]]:
    """Pick the candidate with the most matching lines.

    Candidates are ordered most specific first; on a tie the earlier one wins.

    Returns:
        Tuple of (winning pattern or None, its matches)
    """
    best: LinePattern | None = None
    best_matches: list[LineMatch] = []
    for pattern in patterns:
        matches = match_lines(pattern, lines)
        logger.debug(f"Pattern {pattern.name} matched {len(matches)} line(s)")
        if len(matches) > len(best_matches):
            best, best_matches = pattern, matches
    return best, best_matches


def group(match: re.Match[str], name: str) -> str | None:
    """Return a named group, or None if the pattern does not define it."""
    if name not in match.re.groupindex:
        return None
    return match.group(name)


def int_group(match: re.Match[str], name: str) -> int:
    value = group(match, name)
    return int(value) if value and value.isdigit() else 0


def next_nonblank(lines: Sequence[str], index: int) -> str:
    """First non-blank line after *index*, stripped."""
    for line in lines[index + 1 :]:
        if line.strip():
            return line.strip()
    return ""
