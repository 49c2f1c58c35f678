"""Git hook scripts that enforce the protection policy outside the process.

The scripts re-run the external tools directly and exit non-zero under the
same conditions as :meth:`ProtectionPolicy.decide`. Project classification is
not available to them, so every project is gated as if already classified
``legacy``.
"""

from __future__ import annotations

import shlex
from enum import Enum

from bastion.config import ToolCommand, ToolsConfig
from bastion.core.models import EnforcementLevel

HOOK_MARKER = "# bastion-managed-hook"

SOURCE_GLOBS = ("*.ts", "*.tsx", "*.js", "*.jsx", "*.mts", "*.cts", "*.mjs", "*.cjs")
# Added lines that silence everything: @ts-ignore, @ts-nocheck, eslint-disable without a rule list
UNSAFE_SUPPRESSION_ERE = (
    r"@ts-ignore|@ts-nocheck|eslint-disable(-next-line|-line)?[[:space:]]*($|\*/|--|\*[[:space:]]*($|\*/))"
)
FORMAT_FLAGS = ("--format", "-f")


class HookKind(str, Enum):
    """Supported git hooks; the value is the hook file name."""

    PRE_COMMIT = "pre-commit"
    PRE_PUSH = "pre-push"


_PREAMBLE = """\
cd "$(git rev-parse --show-toplevel)" || exit 1

protection=$(git config --get "$section.protection-mode" 2>/dev/null)
if [ "$protection" != "true" ]; then
    exit 0
fi

strict=$(git config --get "$section.strict-mode" 2>/dev/null)
if [ "$strict" = "true" ]; then
    level="zero-tolerance"
elif [ "$strict" = "false" ]; then
    level="advisory"
fi

output=$(mktemp 2>/dev/null || echo "/tmp/bastion-hook.$$")
trap 'rm -f "$output"' EXIT
trap 'rm -f "$output"; exit 130' INT TERM

to_count() {
    case "$1" in
        ''|*[!0-9]*) echo 0 ;;
        *) echo "$1" ;;
    esac
}
"""

_TYPE_CHECK = """\
type_errors=0
if [ -f tsconfig.json ] || [ -f jsconfig.json ]; then
    {command} >"$output" 2>&1
    status=$?
    type_errors=$(to_count "$(grep -c 'error TS[0-9]' "$output")")
    if [ "$status" -ne 0 ] && [ "$type_errors" -eq 0 ]; then
        echo "bastion: type-check failed without reporting errors:"
        tail -n 20 "$output"
        type_errors=1
    fi
fi
"""

_LINT = """\
lint_errors=0
lint_warnings=0
{command} >"$output" 2>&1
status=$?
summary=$(grep -E '[0-9]+ problems? \\(' "$output" | tail -n 1)
if [ -n "$summary" ]; then
    lint_errors=$(to_count "$(echo "$summary" | sed -n 's/.*(\\([0-9][0-9]*\\) errors*,.*/\\1/p')")
    lint_warnings=$(to_count "$(echo "$summary" | sed -n 's/.*, \\([0-9][0-9]*\\) warnings*).*/\\1/p')")
elif [ "$status" -ne 0 ]; then
    echo "bastion: lint failed without a summary:"
    tail -n 20 "$output"
    lint_errors=1
fi
"""

_SUPPRESSIONS = """\
suppressions=$(to_count "$(git diff --cached -U0 --diff-filter=ACM -- {globs} \\
    | grep -v '^+++ ' | grep '^+' | grep -cE '{pattern}')")
"""

_BUILD = """\
build_errors=0
if {condition}; then
    {command} >"$output" 2>&1
    status=$?
    if [ "$status" -ne 0 ]; then
        build_errors=$(to_count "$(grep -cE 'error TS[0-9]|ERROR|[Ee]rror:' "$output")")
        if [ "$build_errors" -eq 0 ]; then
            build_errors=1
        fi
        echo "bastion: build failed:"
        tail -n 20 "$output"
    fi
fi
"""


def _lint_command(tool: ToolCommand) -> list[str]:
    """The lint command with any output-format flag removed, so it prints its summary line."""
    command: list[str] = []
    skip_next = False
    for part in tool.command:
        if skip_next:
            skip_next = False
            continue
        if part in FORMAT_FLAGS:
            skip_next = True
            continue
        if part.startswith("--format="):
            continue
        command.append(part)
    return command


def _build_condition(tool: ToolCommand) -> str:
    command = tool.command
    if command[:2] == ["npm", "run"] and len(command) > 2:
        script = command[2]
        return f"[ -f package.json ] && grep -q '\"{script}\"[[:space:]]*:' package.json"
    return "true"


def generate_hook_script(
    kind: HookKind,
    level: EnforcementLevel,
    tools: ToolsConfig | None = None,
    section: str = "bastion",
) -> str:
    """Render the hook script.

    Pure and deterministic: the same arguments always give the same text.

    Args:
        kind: Which hook to render
        level: Enforcement level used when ``<section>.strict-mode`` is unset
        tools: Tool commands to run (defaults to the standard ones)
        section: Git config section holding ``protection-mode`` and ``strict-mode``

    Returns:
        POSIX shell script text
    """
    tools = tools or ToolsConfig()
    is_commit = kind == HookKind.PRE_COMMIT

    parts = [
        "#!/bin/sh\n",
        f"{HOOK_MARKER} ({kind.value})\n",
        "# Generated by bastion; reinstalling overwrites this file.\n",
        "\n",
        f"section={shlex.quote(section)}\n",
        f"level={shlex.quote(level.value)}\n",
        "\n",
        _PREAMBLE,
        "\n",
        _TYPE_CHECK.format(command=shlex.join(tools.type_check.command)),
        "\n",
        _LINT.format(command=shlex.join(_lint_command(tools.lint))),
        "\n",
    ]

    if is_commit:
        globs = " ".join(f"'{g}'" for g in SOURCE_GLOBS)
        parts.append(_SUPPRESSIONS.format(globs=globs, pattern=UNSAFE_SUPPRESSION_ERE))
        parts.append("build_errors=0\n")
        breakdown = "(type-check: $type_errors, lint: $lint_errors)"
        tail = ", $suppressions unsafe suppression(s)"
        bypass = "git commit --no-verify"
    else:
        parts.append("suppressions=0\n")
        parts.append(
            _BUILD.format(condition=_build_condition(tools.build), command=shlex.join(tools.build.command))
        )
        breakdown = "(type-check: $type_errors, lint: $lint_errors, build: $build_errors)"
        tail = ""
        bypass = "git push --no-verify"

    parts.append(
        "\n"
        "errors=$((type_errors + lint_errors + build_errors))\n"
        "warnings=$lint_warnings\n"
        f'echo "bastion: $errors error(s) {breakdown}, $warnings warning(s) (lint: $lint_warnings){tail}"\n'
        "\n"
        "blocked=0\n"
        'if [ "$errors" -gt 0 ]; then\n'
        "    blocked=1\n"
        "fi\n"
        'if [ "$level" = "zero-tolerance" ]; then\n'
        '    if [ "$warnings" -gt 0 ] || [ "$suppressions" -gt 0 ]; then\n'
        "        blocked=1\n"
        "    fi\n"
        "fi\n"
        "\n"
        'if [ "$blocked" -eq 1 ]; then\n'
        f'    echo "bastion: {kind.value} blocked ($level mode)"\n'
        f'    echo "Fix the issues above, or bypass once with: {bypass}"\n'
        "    exit 1\n"
        "fi\n"
        f'echo "bastion: {kind.value} checks passed ($level mode)"\n'
        "exit 0\n"
    )
    return "".join(parts)


def is_managed_script(text: str) -> bool:
    """True if *text* is a script this module generated."""
    return HOOK_MARKER in text
