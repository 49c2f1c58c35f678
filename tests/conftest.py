"""Shared fixtures for bastion tests."""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path

import pytest

from bastion.checkers import CheckContext
from bastion.config import DEFAULT_MAX_OUTPUT_BYTES, Config, ToolCommand
from bastion.core.errors import ToolUnavailable
from bastion.runners.process import ProcessResult, ProcessRunner
from bastion.utils.files import discover_files


class FakeRunner(ProcessRunner):
    """ProcessRunner that returns scripted results keyed by tool name."""

    def __init__(self, responses: dict[str, ProcessResult | Exception] | None = None) -> None:
        super().__init__(Path("."))
        self.responses = dict(responses or {})
        self.calls: list[list[str]] = []
        self.timeouts: list[float] = []

    async def run(
        self,
        command: Sequence[str],
        *,
        tool: str | None = None,
        cwd: Path | None = None,
        timeout: float = 120,
        max_output_bytes: int = DEFAULT_MAX_OUTPUT_BYTES,
    ) -> ProcessResult:
        self.calls.append(list(command))
        self.timeouts.append(timeout)
        key = tool or command[0]
        response = self.responses.get(key)
        if response is None:
            raise ToolUnavailable(key, "not scripted")
        if isinstance(response, Exception):
            raise response
        return response

    async def run_tool(self, tool: ToolCommand, *, timeout: float | None = None) -> ProcessResult:
        return await self.run(tool.command, tool=tool.name, timeout=timeout if timeout is not None else tool.timeout)


def result(stdout: str = "", stderr: str = "", exit_code: int = 0, truncated: bool = False) -> ProcessResult:
    return ProcessResult(exit_code=exit_code, stdout=stdout, stderr=stderr, truncated=truncated)


def write(root: Path, relative: str, content: str) -> Path:
    path = root / relative
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path


def make_context(root: Path, runner: FakeRunner | None = None, config: Config | None = None) -> CheckContext:
    config = config or Config()
    return CheckContext(
        root=root,
        config=config,
        runner=runner or FakeRunner(),
        files=discover_files(root, config.files),
    )


@pytest.fixture
def temp_dir(tmp_path: Path) -> Path:
    """A fresh workspace root."""
    return tmp_path


@pytest.fixture
def config() -> Config:
    return Config()
