"""Tests for configuration and the small utility modules."""

from __future__ import annotations

import json
import subprocess
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from conftest import write
from pydantic import ValidationError

from bastion.config import Config, FileSelection, ScoreWeights, SeverityTable, ToolCommand, get_bastion_dir
from bastion.core.models import Severity, Source
from bastion.utils.files import discover_files, glob_spec, is_source_file
from bastion.utils.git import configure_protection, find_git_dir, get_git_config, get_hooks_dir, set_git_config
from bastion.utils.jsonc import is_jsonc_file, load_json_file, loads_jsonc


class TestConfig:
    """Tests for Config loading and defaults."""

    def test_defaults(self):
        """Defaults are advisory with the standard tool commands."""
        config = Config()

        assert config.strict_mode is False
        assert config.new_project_file_threshold == 10
        assert config.git_config_section == "bastion"
        assert config.tools.type_check.command[:2] == ["npx", "tsc"]
        assert config.tools.build.timeout == 300
        assert config.tools.counter_timeout == 30

    def test_tool_names(self):
        """Tool names drop launchers and flags."""
        config = Config()

        assert config.tools.type_check.name == "tsc"
        assert config.tools.lint.name == "eslint"
        assert config.tools.build.name == "npm run build"
        assert config.tools.dependency_audit.name == "npm audit"
        assert ToolCommand(command=["node_modules/.bin/tsc", "--noEmit"]).name == "node_modules/.bin/tsc"
        assert ToolCommand(command=[]).name == "unknown"

    def test_load_missing_file(self, temp_dir: Path):
        """A missing file yields the defaults."""
        assert Config.load(temp_dir / "absent.yaml") == Config()

    def test_save_and_load(self, temp_dir: Path):
        """A saved config loads back equal."""
        path = temp_dir / ".bastion" / "config.yaml"
        config = Config(strict_mode=True, poll_interval=2.5, files=FileSelection(exclude=["**/vendor/**"]))

        config.save(path)

        assert Config.load(path) == config

    def test_partial_file(self, temp_dir: Path):
        """Only the given keys override the defaults."""
        path = write(temp_dir, "config.yaml", "strict_mode: true\ntools:\n  counter_timeout: 5\n")

        config = Config.load(path)

        assert config.strict_mode is True
        assert config.tools.counter_timeout == 5
        assert config.tools.lint.name == "eslint"

    def test_empty_file(self, temp_dir: Path):
        """An empty file is the same as no file."""
        path = write(temp_dir, "config.yaml", "")

        assert Config.load(path) == Config()

    def test_invalid_value(self, temp_dir: Path):
        """Wrongly typed values are rejected."""
        path = write(temp_dir, "config.yaml", "poll_interval: often\n")

        with pytest.raises(ValidationError):
            Config.load(path)

    def test_bastion_dir_created(self, temp_dir: Path):
        """The state directory is created on demand."""
        path = get_bastion_dir(temp_dir)

        assert path == temp_dir / ".bastion"
        assert path.is_dir()


class TestSeverityAndWeights:
    """Tests for the severity table and score weights."""

    def test_severity_lookups(self):
        """Known labels map explicitly and unknown ones fall back."""
        table = SeverityTable()

        assert table.for_type_check("Error") == Severity.CRITICAL
        assert table.for_type_check("warning") == Severity.MEDIUM
        assert table.for_type_check("surprise") == Severity.CRITICAL
        assert table.for_lint(2) == Severity.HIGH
        assert table.for_lint(1) == Severity.MEDIUM
        assert table.for_lint(7) == Severity.MEDIUM
        assert table.for_dependency("moderate") == Severity.MEDIUM
        assert table.for_dependency("unheard-of") == Severity.HIGH
        assert table.for_build("warning") == Severity.MEDIUM

    def test_weights(self):
        """Errors and warnings weigh differently per source."""
        weights = ScoreWeights()

        assert weights.weight(Source.BUILD, Severity.CRITICAL) == 15
        assert weights.weight(Source.BUILD, Severity.MEDIUM) == 3
        assert weights.weight(Source.TYPE_CHECK, Severity.HIGH) == 10
        assert weights.weight(Source.LINT, Severity.HIGH) == 5
        assert weights.weight(Source.LINT, Severity.LOW) == 1
        assert weights.suppression == 1


class TestDiscoverFiles:
    """Tests for workspace file discovery."""

    @pytest.fixture
    def workspace(self, temp_dir: Path) -> Path:
        for relative in (
            "index.ts",
            "src/b.tsx",
            "src/a.js",
            "src/notes.md",
            "vendor/lib.js",
            "node_modules/pkg/index.js",
            "dist/bundle.js",
            ".eslintrc.json",
        ):
            write(temp_dir, relative, "")
        return temp_dir

    def relative(self, root: Path, paths: list[Path]) -> list[str]:
        return [path.relative_to(root).as_posix() for path in paths]

    def test_default_selection(self, workspace: Path):
        """Root-level files match ``**/`` globs and output dirs are skipped."""
        files = self.relative(workspace, discover_files(workspace, FileSelection()))

        assert files == [".eslintrc.json", "index.ts", "src/a.js", "src/b.tsx", "vendor/lib.js"]

    def test_custom_exclude(self, workspace: Path):
        """Excluded directories are pruned."""
        selection = FileSelection(exclude=["**/vendor/**", "**/*.tsx"])

        files = self.relative(workspace, discover_files(workspace, selection))

        assert files == [".eslintrc.json", "index.ts", "src/a.js"]

    def test_always_excluded_dirs_cannot_be_included(self, workspace: Path):
        """Dependency directories stay out even when included explicitly."""
        selection = FileSelection(include=["node_modules/**", "dist/**"])

        assert discover_files(workspace, selection) == []

    @pytest.mark.parametrize("pattern", ["src/generated", "generated/", "**/generated/**"])
    def test_directory_exclude_covers_contents(self, temp_dir: Path, pattern: str):
        """Excluding a directory removes everything beneath it."""
        write(temp_dir, "src/a.ts", "")
        write(temp_dir, "src/generated/api.ts", "")
        write(temp_dir, "src/generated/deep/types.ts", "")

        files = self.relative(temp_dir, discover_files(temp_dir, FileSelection(exclude=[pattern])))

        assert files == ["src/a.ts"]

    def test_single_star_stays_in_one_directory(self, temp_dir: Path):
        """``*`` does not cross a path separator."""
        write(temp_dir, "src/a.ts", "")
        write(temp_dir, "src/generated/api.ts", "")

        files = self.relative(temp_dir, discover_files(temp_dir, FileSelection(include=["src/*.ts"])))

        assert files == ["src/a.ts"]

    def test_helpers(self):
        spec = glob_spec(["**/*.ts"])
        assert spec.match_file("a.ts")
        assert spec.match_file("src/deep/a.ts")
        assert not spec.match_file("a.js")
        assert not glob_spec(["src/*.ts"]).match_file("src/deep/a.ts")
        assert is_source_file("src/a.mts")
        assert not is_source_file("package.json")


class TestJsonc:
    """Tests for JSON-with-comments loading."""

    def test_comments_and_trailing_commas(self):
        """Comments and trailing commas are tolerated."""
        text = """{
            // compiler options
            "compilerOptions": {
                "strict": true, /* inline */
                "paths": ["a", "b",],
            },
        }"""

        assert loads_jsonc(text) == {"compilerOptions": {"strict": True, "paths": ["a", "b"]}}

    def test_string_contents_preserved(self):
        """Comment markers and commas inside strings are left alone."""
        text = '{"url": "http://x/*y*/", "list": "a,]", "quote": "say \\"hi\\" // no"}'

        assert loads_jsonc(text) == {"url": "http://x/*y*/", "list": "a,]", "quote": 'say "hi" // no'}

    def test_malformed(self):
        """Text that is broken beyond comments still fails."""
        with pytest.raises(json.JSONDecodeError):
            loads_jsonc('{"a": }')

    def test_is_jsonc_file(self):
        assert is_jsonc_file(Path("tsconfig.json"))
        assert is_jsonc_file(Path("tsconfig.build.json"))
        assert is_jsonc_file(Path(".vscode/settings.json"))
        assert is_jsonc_file(Path(".eslintrc"))
        assert not is_jsonc_file(Path("package.json"))

    def test_load_json_file_is_strict_for_plain_json(self, temp_dir: Path):
        """package.json gets no comment tolerance, tsconfig.json does."""
        text = '{\n  // note\n  "a": 1\n}'
        write(temp_dir, "package.json", text)
        write(temp_dir, "tsconfig.json", text)

        assert load_json_file(temp_dir / "tsconfig.json") == {"a": 1}
        with pytest.raises(json.JSONDecodeError):
            load_json_file(temp_dir / "package.json")


class TestGitUtils:
    """Tests for git helpers."""

    def completed(self, returncode: int = 0, stdout: str = "", stderr: str = "") -> MagicMock:
        return MagicMock(returncode=returncode, stdout=stdout, stderr=stderr)

    def test_find_git_dir(self, temp_dir: Path):
        """A plain .git directory is found."""
        (temp_dir / ".git").mkdir()

        assert find_git_dir(temp_dir) == temp_dir / ".git"
        assert get_hooks_dir(temp_dir) == temp_dir / ".git" / "hooks"

    def test_find_git_dir_worktree(self, temp_dir: Path):
        """A .git file pointing elsewhere is followed."""
        real = temp_dir / "store" / "worktrees" / "w"
        real.mkdir(parents=True)
        checkout = temp_dir / "checkout"
        write(checkout, ".git", "gitdir: ../store/worktrees/w\n")

        assert find_git_dir(checkout) == real.resolve()

    def test_not_a_repository(self, temp_dir: Path):
        assert find_git_dir(temp_dir) is None
        assert get_hooks_dir(temp_dir) is None

    def test_get_git_config(self, temp_dir: Path):
        """Values are stripped and unset keys give None."""
        with patch("bastion.utils.git.subprocess.run", return_value=self.completed(stdout="true\n")) as mock_run:
            assert get_git_config(temp_dir, "bastion.strict-mode") == "true"
        assert mock_run.call_args.args[0] == ["git", "config", "--get", "bastion.strict-mode"]

        with patch("bastion.utils.git.subprocess.run", return_value=self.completed(returncode=1)):
            assert get_git_config(temp_dir, "bastion.strict-mode") is None

    def test_git_missing(self, temp_dir: Path):
        """A missing git binary is not an error."""
        with patch("bastion.utils.git.subprocess.run", side_effect=FileNotFoundError("git")):
            assert get_git_config(temp_dir, "a.b") is None
            assert set_git_config(temp_dir, "a.b", "c") is False

    def test_git_timeout(self, temp_dir: Path):
        with patch("bastion.utils.git.subprocess.run", side_effect=subprocess.TimeoutExpired("git", 10)):
            assert get_git_config(temp_dir, "a.b") is None

    def test_configure_protection(self, temp_dir: Path):
        """Both keys are written under the configured section."""
        with patch("bastion.utils.git.subprocess.run", return_value=self.completed()) as mock_run:
            assert configure_protection(temp_dir, "guard", protection=True, strict=False) is True

        commands = [call.args[0] for call in mock_run.call_args_list]
        assert commands == [
            ["git", "config", "guard.protection-mode", "true"],
            ["git", "config", "guard.strict-mode", "false"],
        ]

    def test_configure_protection_failure(self, temp_dir: Path):
        """A failed write is reported but the second key is still attempted."""
        results = [self.completed(returncode=1, stderr="locked"), self.completed()]
        with patch("bastion.utils.git.subprocess.run", side_effect=results) as mock_run:
            assert configure_protection(temp_dir, "bastion", protection=False, strict=False) is False

        assert mock_run.call_count == 2
