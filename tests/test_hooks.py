"""Tests for git hook generation and installation."""

from __future__ import annotations

import os
import shutil
import subprocess
from pathlib import Path

import pytest
from conftest import write

from bastion.config import ToolCommand, ToolsConfig
from bastion.core.errors import HookError
from bastion.core.models import EnforcementLevel
from bastion.hooks import (
    HOOK_MARKER,
    HookKind,
    generate_hook_script,
    install_hook,
    install_hooks,
    uninstall_hooks,
)
from bastion.hooks.installer import backup_path_for, is_managed_hook

ADVISORY = EnforcementLevel.ADVISORY
ZERO = EnforcementLevel.ZERO_TOLERANCE
USER_HOOK = "#!/bin/sh\necho 'my own hook'\n"


@pytest.fixture
def repo(temp_dir: Path) -> Path:
    """A directory that looks like a git repository."""
    (temp_dir / ".git" / "hooks").mkdir(parents=True)
    return temp_dir


def hook_path(repo: Path, kind: HookKind) -> Path:
    return repo / ".git" / "hooks" / kind.value


class TestGenerateHookScript:
    """Tests for script rendering."""

    def test_deterministic(self):
        """The same inputs always render the same bytes."""
        first = generate_hook_script(HookKind.PRE_COMMIT, ADVISORY)
        second = generate_hook_script(HookKind.PRE_COMMIT, ADVISORY)

        assert first == second

    def test_header_and_marker(self):
        """Scripts are POSIX shell and carry the ownership marker."""
        script = generate_hook_script(HookKind.PRE_PUSH, ADVISORY)

        assert script.startswith("#!/bin/sh\n")
        assert f"{HOOK_MARKER} (pre-push)" in script

    def test_level_and_section(self):
        """The default level and git config section are embedded."""
        script = generate_hook_script(HookKind.PRE_COMMIT, ZERO, section="guard")

        assert "level=zero-tolerance\n" in script
        assert "section=guard\n" in script
        assert '"$section.protection-mode"' in script
        assert '"$section.strict-mode"' in script

    def test_pre_commit_scans_staged_suppressions(self):
        """Only the pre-commit hook looks at the staged diff."""
        commit = generate_hook_script(HookKind.PRE_COMMIT, ADVISORY)
        push = generate_hook_script(HookKind.PRE_PUSH, ADVISORY)

        assert "git diff --cached" in commit
        assert "npm run build" not in commit
        assert "git diff --cached" not in push
        assert "npm run build" in push

    def test_lint_format_flag_removed(self):
        """The linter runs with its default output so the summary line is printed."""
        tools = ToolsConfig(lint=ToolCommand(command=["npx", "eslint", "src", "--format=json", "--max-warnings", "0"]))

        script = generate_hook_script(HookKind.PRE_COMMIT, ADVISORY, tools)

        assert "npx eslint src --max-warnings 0 >" in script
        assert "--format" not in script

    def test_commands_are_quoted(self):
        """Configured arguments are shell-quoted."""
        tools = ToolsConfig(type_check=ToolCommand(command=["npx", "tsc", "-p", "my project/tsconfig.json"]))

        script = generate_hook_script(HookKind.PRE_COMMIT, ADVISORY, tools)

        assert "npx tsc -p 'my project/tsconfig.json'" in script


class TestInstaller:
    """Tests for installing and uninstalling hooks."""

    def test_install_writes_executable_scripts(self, repo: Path):
        """Both hooks are written with execute permission."""
        results = install_hooks(repo, ADVISORY)

        assert [r.action for r in results] == ["installed", "installed"]
        for kind in HookKind:
            path = hook_path(repo, kind)
            assert is_managed_hook(path)
            assert os.access(path, os.X_OK)
            assert path.read_text(encoding="utf-8") == generate_hook_script(kind, ADVISORY)

    def test_install_is_idempotent(self, repo: Path):
        """A second install changes nothing and uninstall leaves no script behind."""
        install_hook(repo, HookKind.PRE_COMMIT, ADVISORY)
        second = install_hook(repo, HookKind.PRE_COMMIT, ADVISORY)

        removed = uninstall_hooks(repo, [HookKind.PRE_COMMIT])

        assert second.action == "unchanged"
        assert second.backup is None
        assert removed == [hook_path(repo, HookKind.PRE_COMMIT)]
        assert list((repo / ".git" / "hooks").iterdir()) == []

    def test_reinstall_with_new_level_updates(self, repo: Path):
        """Changing the level rewrites the managed script in place."""
        install_hook(repo, HookKind.PRE_PUSH, ADVISORY)

        result = install_hook(repo, HookKind.PRE_PUSH, ZERO)

        assert result.action == "updated"
        assert "level=zero-tolerance" in hook_path(repo, HookKind.PRE_PUSH).read_text(encoding="utf-8")

    def test_user_hook_backed_up_and_restored(self, repo: Path):
        """An existing user hook survives an install/uninstall cycle."""
        path = write(repo, ".git/hooks/pre-commit", USER_HOOK)

        result = install_hook(repo, HookKind.PRE_COMMIT, ADVISORY)

        assert result.backup == backup_path_for(path)
        assert result.backup.read_text(encoding="utf-8") == USER_HOOK
        assert is_managed_hook(path)

        uninstall_hooks(repo)

        assert path.read_text(encoding="utf-8") == USER_HOOK
        assert not backup_path_for(path).exists()

    def test_uninstall_leaves_user_hooks_alone(self, repo: Path):
        """Hooks without the marker are never removed."""
        path = write(repo, ".git/hooks/pre-push", USER_HOOK)

        removed = uninstall_hooks(repo)

        assert removed == []
        assert path.read_text(encoding="utf-8") == USER_HOOK

    def test_existing_backup_blocks_install(self, repo: Path):
        """An earlier backup is never overwritten."""
        write(repo, ".git/hooks/pre-commit", USER_HOOK)
        write(repo, ".git/hooks/pre-commit.bastion-backup", USER_HOOK)

        with pytest.raises(HookError):
            install_hook(repo, HookKind.PRE_COMMIT, ADVISORY)

    def test_not_a_repository(self, temp_dir: Path):
        """Installing outside a repository fails, uninstalling is a no-op."""
        with pytest.raises(HookError):
            install_hooks(temp_dir, ADVISORY)

        assert uninstall_hooks(temp_dir) == []

    def test_worktree_git_file(self, temp_dir: Path):
        """A .git file pointing at the real git directory is followed."""
        real = temp_dir / "real-git"
        (real / "hooks").mkdir(parents=True)
        project = temp_dir / "worktree"
        write(project, ".git", f"gitdir: {real}\n")

        result = install_hook(project, HookKind.PRE_COMMIT, ADVISORY)

        assert result.path == real / "hooks" / "pre-commit"


@pytest.mark.skipif(shutil.which("sh") is None, reason="requires a POSIX shell")
class TestHookExecution:
    """Runs generated scripts against stub git, npx and npm commands."""

    @pytest.fixture
    def stubs(self, repo: Path) -> Path:
        bin_dir = repo / "stub-bin"
        write(
            bin_dir,
            "git",
            f"""#!/bin/sh
case "$1" in
    rev-parse) echo "{repo}" ;;
    config)
        case "$3" in
            *.protection-mode) echo "$STUB_PROTECTION" ;;
            *.strict-mode) [ -n "$STUB_STRICT" ] || exit 1; echo "$STUB_STRICT" ;;
        esac ;;
    diff) printf '%s\\n' '+++ b/src/a.ts' "$STUB_DIFF" ;;
esac
""",
        )
        write(
            bin_dir,
            "npx",
            f"""#!/bin/sh
echo "$@" >> "{repo}/calls.log"
case "$1" in
    tsc) [ -z "$STUB_TSC" ] && exit 0; echo "$STUB_TSC"; exit 2 ;;
    eslint) echo "$STUB_LINT" ;;
esac
""",
        )
        write(
            bin_dir,
            "npm",
            f"""#!/bin/sh
echo "npm $@" >> "{repo}/calls.log"
echo "$STUB_BUILD"
exit "${{STUB_BUILD_STATUS:-0}}"
""",
        )
        for stub in bin_dir.iterdir():
            stub.chmod(0o755)
        write(repo, "tsconfig.json", "{}")
        return bin_dir

    def run_hook(self, repo: Path, stubs: Path, kind: HookKind, level=ADVISORY, **env: str):
        script = write(repo, f"{kind.value}.sh", generate_hook_script(kind, level))
        environment = {
            **os.environ,
            "PATH": f"{stubs}{os.pathsep}{os.environ.get('PATH', '')}",
            "STUB_PROTECTION": "true",
            "STUB_STRICT": "",
            "STUB_DIFF": "+const a = 1;",
            "STUB_TSC": "",
            "STUB_LINT": "",
            "STUB_BUILD": "",
            **env,
        }
        return subprocess.run(
            ["sh", str(script)],
            cwd=repo,
            env=environment,
            capture_output=True,
            text=True,
            timeout=60,
            check=False,
        )

    def test_protection_off_is_a_no_op(self, repo: Path, stubs: Path):
        """Without protection-mode the hook exits 0 and runs nothing."""
        completed = self.run_hook(repo, stubs, HookKind.PRE_COMMIT, STUB_PROTECTION="", STUB_TSC="x: error TS1: y")

        assert completed.returncode == 0
        assert not (repo / "calls.log").exists()

    def test_pre_commit_blocks_on_errors(self, repo: Path, stubs: Path):
        """Errors block and the output breaks the counts down by category."""
        completed = self.run_hook(
            repo,
            stubs,
            HookKind.PRE_COMMIT,
            STUB_TSC="src/a.ts(1,1): error TS2304: Cannot find name 'x'.",
            STUB_LINT="✖ 3 problems (1 error, 2 warnings)",
            STUB_DIFF="+// @ts-ignore",
        )

        assert completed.returncode == 1
        assert (
            "bastion: 2 error(s) (type-check: 1, lint: 1), 2 warning(s) (lint: 2), 1 unsafe suppression(s)"
            in completed.stdout
        )
        assert "pre-commit blocked (advisory mode)" in completed.stdout

    def test_advisory_allows_warnings(self, repo: Path, stubs: Path):
        """Warnings and suppressions pass in advisory mode."""
        completed = self.run_hook(
            repo,
            stubs,
            HookKind.PRE_COMMIT,
            STUB_LINT="✖ 2 problems (0 errors, 2 warnings)",
            STUB_DIFF="+/* eslint-disable */",
        )

        assert completed.returncode == 0
        assert "1 unsafe suppression(s)" in completed.stdout

    def test_strict_mode_from_git_config_blocks_warnings(self, repo: Path, stubs: Path):
        """strict-mode=true in git config overrides the embedded level."""
        completed = self.run_hook(
            repo,
            stubs,
            HookKind.PRE_COMMIT,
            STUB_STRICT="true",
            STUB_LINT="✖ 1 problem (0 errors, 1 warning)",
        )

        assert completed.returncode == 1
        assert "zero-tolerance mode" in completed.stdout

    def test_rule_scoped_disable_is_not_counted(self, repo: Path, stubs: Path):
        """Directives naming a rule are not unsafe."""
        completed = self.run_hook(
            repo,
            stubs,
            HookKind.PRE_COMMIT,
            level=ZERO,
            STUB_DIFF="+// eslint-disable-next-line no-console",
        )

        assert completed.returncode == 0
        assert "0 unsafe suppression(s)" in completed.stdout

    def test_pre_push_runs_build(self, repo: Path, stubs: Path):
        """A failing build blocks the push."""
        write(repo, "package.json", '{"scripts": {"build": "tsc"}}')

        completed = self.run_hook(
            repo,
            stubs,
            HookKind.PRE_PUSH,
            STUB_BUILD="Error: Cannot find module 'vite'",
            STUB_BUILD_STATUS="1",
        )

        assert completed.returncode == 1
        assert "build: 1" in completed.stdout
        assert "npm run build" in (repo / "calls.log").read_text(encoding="utf-8")

    def test_pre_push_skips_missing_build_script(self, repo: Path, stubs: Path):
        """Projects without a build script are not built."""
        write(repo, "package.json", '{"scripts": {"test": "jest"}}')

        completed = self.run_hook(repo, stubs, HookKind.PRE_PUSH, STUB_BUILD_STATUS="1")

        assert completed.returncode == 0
        assert "npm" not in (repo / "calls.log").read_text(encoding="utf-8")
