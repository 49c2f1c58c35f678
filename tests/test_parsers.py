"""Tests for tool output parsers."""

from __future__ import annotations

import json

import pytest

from bastion.config import SeverityTable
from bastion.core.errors import ParseFailure
from bastion.core.models import Severity, Source
from bastion.parsers import (
    count_lint_output,
    count_type_check_errors,
    parse_build_output,
    parse_dependency_audit,
    parse_lint_output,
    parse_type_check_output,
)
from bastion.parsers.lint import extract_json_substring

TSC_OUTPUT = """\
src/index.ts(3,7): error TS2322: Type 'string' is not assignable to type 'number'.
src/util.ts(10,15): error TS2304: Cannot find name 'foo'.
src/util.ts(12,1): error TS7006: Parameter 'x' implicitly has an 'any' type.
"""

ESLINT_JSON = [
    {
        "filePath": "/proj/src/a.ts",
        "messages": [
            {"ruleId": "no-unused-vars", "severity": 2, "message": "'x' is unused.", "line": 1, "column": 7},
            {
                "ruleId": "semi",
                "severity": 1,
                "message": "Missing semicolon.",
                "line": 2,
                "column": 10,
                "fix": {"range": [1, 2], "text": ";"},
            },
        ],
        "errorCount": 1,
        "warningCount": 1,
    }
]

ESLINT_STYLISH = """\
/proj/src/a.ts
  1:7   error    'x' is defined but never used  no-unused-vars
  2:10  warning  Missing semicolon              semi

✖ 2 problems (1 error, 1 warning)
"""


@pytest.fixture
def table() -> SeverityTable:
    return SeverityTable()


class TestTypeCheckParser:
    """Tests for type-checker output parsing."""

    def test_parses_paren_format(self, table: SeverityTable):
        """Each diagnostic line becomes one issue."""
        issues = parse_type_check_output(TSC_OUTPUT, "", table)

        assert len(issues) == 3
        first = issues[0]
        assert first.file == "src/index.ts"
        assert (first.line, first.column) == (3, 7)
        assert first.code == "TS2322"
        assert first.source == Source.TYPE_CHECK
        assert first.severity == Severity.CRITICAL
        assert first.suggested_fix == "Fix type-check error"
        assert issues[1].suggested_fix == "Define the variable or import it"

    def test_parses_colon_format(self, table: SeverityTable):
        """The pretty format's position style is recognized."""
        output = "src/a.ts:4:5 - error TS2339: Property 'foo' does not exist on type 'Bar'.\n"

        issues = parse_type_check_output(output, "", table)

        assert len(issues) == 1
        assert issues[0].file == "src/a.ts"
        assert issues[0].line == 4
        assert issues[0].suggested_fix == "Add the missing property or method"

    def test_keeps_continuation_lines(self, table: SeverityTable):
        """Indented explanation lines are appended to the message."""
        output = (
            "src/a.ts(1,1): error TS2345: Argument of type 'X' is not assignable.\n"
            "  Property 'z' is missing in type 'X'.\n"
        )

        issues = parse_type_check_output(output, "", table)

        assert len(issues) == 1
        assert "Property 'z' is missing" in issues[0].message

    def test_strips_ansi_codes(self, table: SeverityTable):
        """Colored output parses the same as plain output."""
        output = "\x1b[96msrc/a.ts\x1b[0m(1,2): \x1b[91merror\x1b[0m TS2304: Cannot find name 'y'.\n"

        issues = parse_type_check_output(output, "", table)

        assert len(issues) == 1
        assert issues[0].file == "src/a.ts"

    def test_truncated_output_yields_nothing(self, table: SeverityTable):
        """A diagnostic cut mid-line is not misread."""
        assert parse_type_check_output("src/index.ts(3,7): error TS23", "", table) == []

    def test_count_matches_parse(self):
        """The fast-path count agrees with the full parse."""
        assert count_type_check_errors(TSC_OUTPUT, "") == 3

    def test_count_truncated_output(self):
        """Counting still sees a diagnostic whose message was cut off."""
        assert count_type_check_errors("src/index.ts(3,7): error TS23", "") == 1

    def test_count_clean_output(self):
        """No diagnostics counts as zero."""
        assert count_type_check_errors("", "") == 0


class TestLintParser:
    """Tests for lint output parsing."""

    def test_parses_json(self, table: SeverityTable):
        """JSON results map severities and fixes."""
        issues = parse_lint_output(json.dumps(ESLINT_JSON), "", 1, table)

        assert len(issues) == 2
        error, warning = issues
        assert error.severity == Severity.HIGH
        assert error.code == "no-unused-vars"
        assert error.suggested_fix == "Fix lint rule: no-unused-vars"
        assert warning.severity == Severity.MEDIUM
        assert warning.suggested_fix == "Auto-fix available (run the lint fixer)"

    def test_fatal_message_is_error(self, table: SeverityTable):
        """Parse errors reported by the linter are errors without a rule."""
        payload = [
            {
                "filePath": "/proj/b.ts",
                "messages": [{"fatal": True, "severity": 2, "message": "Parsing error: Unexpected token", "line": 3}],
            }
        ]

        issues = parse_lint_output(json.dumps(payload), "", 1, table)

        assert len(issues) == 1
        assert issues[0].code is None
        assert issues[0].is_error
        assert issues[0].suggested_fix == "Fix the parse error reported by the linter"

    def test_json_with_leading_noise(self, table: SeverityTable):
        """JSON embedded after a warning banner is still found."""
        stdout = "Warning: React version not specified\n" + json.dumps(ESLINT_JSON)

        issues = parse_lint_output(stdout, "", 1, table)

        assert len(issues) == 2

    def test_parses_stylish(self, table: SeverityTable):
        """The default text format is parsed when JSON is absent."""
        issues = parse_lint_output(ESLINT_STYLISH, "", 1, table)

        assert len(issues) == 2
        assert issues[0].file == "/proj/src/a.ts"
        assert issues[0].code == "no-unused-vars"
        assert issues[0].message == "'x' is defined but never used"
        assert issues[1].severity == Severity.MEDIUM

    def test_heuristic_fallback(self, table: SeverityTable):
        """Unstructured crash output still yields an issue."""
        stderr = "Oops! Something went wrong! :(\n\nError: Failed to load config \"airbnb\" to extend from.\n"

        issues = parse_lint_output("", stderr, 2, table)

        assert len(issues) == 1
        assert issues[0].message.startswith("Error: Failed to load config")

    def test_truncated_json_is_parse_failure(self, table: SeverityTable):
        """Unparseable output with a failing exit code raises ParseFailure."""
        stdout = '[{"filePath":"/a.ts","messages":[{"ruleId":"semi","severity":2'

        with pytest.raises(ParseFailure):
            parse_lint_output(stdout, "", 1, table)

    def test_clean_run(self, table: SeverityTable):
        """An empty result list with exit 0 is clean."""
        assert parse_lint_output("[]", "", 0, table) == []

    def test_count_json(self):
        """Counting JSON output tallies errors and warnings."""
        counts = count_lint_output(json.dumps(ESLINT_JSON), "")

        assert (counts.errors, counts.warnings, counts.method) == (1, 1, "json")

    def test_count_stylish_summary(self):
        """Counting text output uses the summary line."""
        counts = count_lint_output(ESLINT_STYLISH, "")

        assert (counts.errors, counts.warnings, counts.method) == (1, 1, "summary")

    def test_extract_json_substring_respects_strings(self):
        """Brackets inside string literals do not end the span."""
        text = 'noise [{"message": "unexpected ]"}] trailing'

        assert extract_json_substring(text) == '[{"message": "unexpected ]"}]'


class TestBuildParser:
    """Tests for build log parsing."""

    def test_type_check_errors_in_build(self, table: SeverityTable):
        """Compiler diagnostics inside npm output are positional issues."""
        stdout = (
            "> app@1.0.0 build\n"
            "> tsc\n"
            "\n"
            "src/a.ts(5,3): error TS2322: Type 'number' is not assignable to type 'string'.\n"
        )
        stderr = "npm ERR! code ELIFECYCLE\n"

        issues = parse_build_output(stdout, stderr, 2, table)

        assert len(issues) == 1
        assert issues[0].file == "src/a.ts"
        assert issues[0].source == Source.BUILD
        assert issues[0].severity == Severity.CRITICAL

    def test_webpack_format(self, table: SeverityTable):
        """Webpack errors take their message from the following line."""
        stdout = (
            "ERROR in ./src/index.ts 12:4-10\n"
            "Module not found: Error: Can't resolve './missing' in '/proj/src'\n"
        )

        issues = parse_build_output(stdout, "", 1, table)

        assert len(issues) == 1
        assert issues[0].file == "./src/index.ts"
        assert (issues[0].line, issues[0].column) == (12, 4)
        assert issues[0].message.startswith("Module not found")

    def test_free_form_errors(self, table: SeverityTable):
        """Lines with error tokens become issues at an unknown location."""
        stdout = "Building...\nError: Cannot find module 'vite'\nBuild finished with 0 errors\n"

        issues = parse_build_output(stdout, "npm ERR! code 1\n", 1, table)

        assert len(issues) == 1
        assert issues[0].message == "Error: Cannot find module 'vite'"
        assert issues[0].file == ""

    def test_successful_build(self, table: SeverityTable):
        """A clean build has no issues."""
        assert parse_build_output("built in 1.2s\n", "", 0, table) == []

    def test_unparseable_failure(self, table: SeverityTable):
        """A failing build with no recognizable output raises ParseFailure."""
        with pytest.raises(ParseFailure):
            parse_build_output("", "", 1, table)


class TestDependencyAuditParser:
    """Tests for dependency audit JSON parsing."""

    def test_modern_format(self, table: SeverityTable):
        """The vulnerabilities map produces one issue per package."""
        payload = {
            "auditReportVersion": 2,
            "vulnerabilities": {
                "minimist": {"name": "minimist", "severity": "critical", "via": ["mkdirp"], "fixAvailable": True},
                "lodash": {
                    "name": "lodash",
                    "severity": "high",
                    "via": [{"source": 1, "title": "Prototype Pollution", "severity": "high"}],
                    "fixAvailable": {"name": "lodash", "version": "4.17.21", "isSemVerMajor": False},
                },
            },
        }

        issues = parse_dependency_audit(payload, "package.json", table)

        assert [issue.code for issue in issues] == ["lodash", "minimist"]
        lodash, minimist = issues
        assert lodash.severity == Severity.HIGH
        assert lodash.message == "Security vulnerability in lodash: Prototype Pollution"
        assert lodash.suggested_fix == "Update lodash to version 4.17.21"
        assert minimist.severity == Severity.CRITICAL
        assert minimist.message.endswith("Vulnerable through mkdirp")
        assert minimist.suggested_fix == "Run npm audit fix"
        assert all(issue.file == "package.json" for issue in issues)

    def test_legacy_advisories(self, table: SeverityTable):
        """The older advisories map is supported."""
        payload = {
            "advisories": {
                "118": {
                    "module_name": "minimist",
                    "severity": "low",
                    "title": "Prototype Pollution",
                    "patched_versions": ">=1.2.3",
                }
            }
        }

        issues = parse_dependency_audit(payload, "package.json", table)

        assert len(issues) == 1
        assert issues[0].severity == Severity.LOW
        assert issues[0].code == "minimist#118"
        assert issues[0].suggested_fix == "Update minimist to version >=1.2.3"

    def test_no_vulnerabilities(self, table: SeverityTable):
        """An empty report is clean."""
        payload = {"auditReportVersion": 2, "vulnerabilities": {}, "metadata": {}}

        assert parse_dependency_audit(payload, "package.json", table) == []

    def test_error_payload(self, table: SeverityTable):
        """Errors reported by the audit tool become ParseFailure."""
        payload = {"error": {"code": "ENOLOCK", "summary": "This command requires an existing lockfile."}}

        with pytest.raises(ParseFailure, match="lockfile"):
            parse_dependency_audit(payload, "package.json", table)

    def test_non_object_payload(self, table: SeverityTable):
        """Anything but a JSON object is rejected."""
        with pytest.raises(ParseFailure):
            parse_dependency_audit(["nope"], "package.json", table)
