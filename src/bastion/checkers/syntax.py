"""Syntax checker: malformed JSON and unbalanced brackets in sources."""

from __future__ import annotations

import asyncio
import json
import logging
import re
from pathlib import Path

from bastion.checkers.base import CheckContext, CheckerResult, SourceChecker
from bastion.checkers.configuration import OWNED_FILES
from bastion.core.models import Issue, Source
from bastion.utils.files import is_source_file
from bastion.utils.jsonc import load_json_file

logger = logging.getLogger(__name__)

MAX_SCAN_BYTES = 5 * 1024 * 1024

CLOSERS = {")": "(", "]": "[", "}": "{"}
# Tokens after which a slash starts a regex literal rather than a division
REGEX_PRECEDERS = frozenset("(,=:[!&|?{};+-*%<>~^")
REGEX_KEYWORDS = frozenset(
    {"return", "typeof", "case", "do", "else", "in", "of", "new", "delete", "void", "throw", "yield", "await"}
)
IDENTIFIER = re.compile(r"[A-Za-z_$][\w$]*")
TEMPLATE_EXPR = "${"


def _position(text: str, index: int) -> tuple[int, int]:
    line = text.count("\n", 0, index) + 1
    column = index - (text.rfind("\n", 0, index) + 1) + 1
    return line, column


def _skip_string(text: str, start: int) -> int:
    """Index after a quoted string. Strings end at an unescaped newline."""
    quote = text[start]
    i = start + 1
    while i < len(text):
        char = text[i]
        if char == "\\":
            i += 2
            continue
        if char == quote:
            return i + 1
        if char == "\n":
            return i
        i += 1
    return len(text)


def _scan_template(text: str, start: int) -> tuple[int, bool] | None:
    """Scan template text from *start*.

    Returns:
        (index after the closing backtick or ``${``, True if an expression opened),
        or None if the template never closes
    """
    i = start
    while i < len(text):
        char = text[i]
        if char == "\\":
            i += 2
            continue
        if char == "`":
            return i + 1, False
        if text.startswith(TEMPLATE_EXPR, i):
            return i + 2, True
        i += 1
    return None


def _scan_regex(text: str, start: int) -> int | None:
    """Index after a regex literal starting at *start*, or None if it is not one."""
    i = start + 1
    in_class = False
    while i < len(text):
        char = text[i]
        if char == "\\":
            i += 2
            continue
        if char == "\n":
            return None
        if in_class:
            if char == "]":
                in_class = False
        elif char == "[":
            in_class = True
        elif char == "/":
            i += 1
            while i < len(text) and text[i].isalpha():
                i += 1
            return i
        i += 1
    return None


def find_unbalanced(text: str) -> tuple[int, str] | None:
    """Locate the first bracket imbalance, ignoring strings, comments and regexes.

    Returns:
        (character index, message), or None when brackets balance
    """
    stack: list[tuple[str, int]] = []
    last_token = ""
    i = 0
    length = len(text)
    while i < length:
        char = text[i]
        if char.isspace():
            i += 1
            continue
        if text.startswith("//", i):
            end = text.find("\n", i)
            i = length if end == -1 else end
            continue
        if text.startswith("/*", i):
            end = text.find("*/", i + 2)
            if end == -1:
                return i, "Unterminated block comment"
            i = end + 2
            continue
        if char in "'\"":
            # An apostrophe glued to a word is prose, e.g. JSX text
            if char == "'" and i > 0 and (text[i - 1].isalnum()):
                i += 1
                continue
            i = _skip_string(text, i)
            last_token = "a"
            continue
        if char == "`" or (char == "}" and stack and stack[-1][0] == TEMPLATE_EXPR):
            opened_at = i
            if char == "}":
                opened_at = stack.pop()[1]
            scanned = _scan_template(text, i + 1)
            if scanned is None:
                return opened_at, "Unterminated template literal"
            i, expression = scanned
            if expression:
                stack.append((TEMPLATE_EXPR, i - 2))
                last_token = "{"
            else:
                last_token = "a"
            continue
        if char == "/" and (last_token == "" or last_token in REGEX_PRECEDERS or last_token in REGEX_KEYWORDS):
            end = _scan_regex(text, i)
            if end is not None:
                i = end
                last_token = "a"
                continue
        word = IDENTIFIER.match(text, i)
        if word:
            last_token = word.group()
            i = word.end()
            continue
        if char in "([{":
            stack.append((char, i))
        elif char in CLOSERS:
            if not stack:
                return i, f"Unexpected '{char}' with no matching opener"
            opener, opened_at = stack.pop()
            if opener != CLOSERS[char]:
                line, _ = _position(text, opened_at)
                shown = opener if opener != TEMPLATE_EXPR else "${"
                return i, f"'{char}' does not match '{shown}' opened on line {line}"
        last_token = char if not char.isdigit() else "a"
        i += 1

    if stack:
        opener, opened_at = stack[-1]
        if opener == TEMPLATE_EXPR:
            return opened_at, "Unterminated template expression"
        return opened_at, f"Unclosed '{opener}'"
    return None


class SyntaxChecker(SourceChecker):
    """Scans files directly, without an external tool."""

    name = "syntax"
    source = Source.SYNTAX

    async def check(self, ctx: CheckContext) -> CheckerResult:
        return await asyncio.to_thread(self._scan, ctx)

    def _scan(self, ctx: CheckContext) -> CheckerResult:
        issues: list[Issue] = []
        for path in ctx.files:
            relative = ctx.relative(path)
            if relative in OWNED_FILES:
                continue
            if path.suffix == ".json":
                issue = self._check_json(ctx, path, relative)
            elif is_source_file(path):
                issue = self._check_brackets(ctx, path, relative)
            else:
                continue
            if issue is not None:
                issues.append(issue)
        logger.debug(f"Syntax scan of {len(ctx.files)} file(s) found {len(issues)} issue(s)")
        return CheckerResult(issues=issues)

    def _unreadable(self, ctx: CheckContext, relative: str, error: Exception) -> Issue:
        return Issue(
            file=relative,
            source=Source.SYNTAX,
            severity=ctx.config.severity.unreadable_file,
            message=f"File could not be read: {error}",
            suggested_fix="Check file permissions and encoding (UTF-8 expected)",
            code="unreadable-file",
        )

    def _check_json(self, ctx: CheckContext, path: Path, relative: str) -> Issue | None:
        try:
            load_json_file(path)
        except json.JSONDecodeError as e:
            return Issue(
                file=relative,
                line=e.lineno,
                column=e.colno,
                source=Source.SYNTAX,
                severity=ctx.config.severity.malformed_json,
                message=f"Invalid JSON: {e.msg}",
                suggested_fix="Fix the JSON syntax",
                code="malformed-json",
            )
        except (OSError, UnicodeDecodeError) as e:
            return self._unreadable(ctx, relative, e)
        return None

    def _check_brackets(self, ctx: CheckContext, path: Path, relative: str) -> Issue | None:
        try:
            if path.stat().st_size > MAX_SCAN_BYTES:
                logger.debug(f"Skipping bracket scan of large file {relative}")
                return None
            text = path.read_text(encoding="utf-8-sig")
        except (OSError, UnicodeDecodeError) as e:
            return self._unreadable(ctx, relative, e)

        found = find_unbalanced(text)
        if found is None:
            return None
        index, message = found
        line, column = _position(text, index)
        return Issue(
            file=relative,
            line=line,
            column=column,
            source=Source.SYNTAX,
            severity=ctx.config.severity.unbalanced_brackets,
            message=message,
            suggested_fix="Balance the brackets, braces and parentheses",
            code="unbalanced-brackets",
        )
