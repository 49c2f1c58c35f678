"""Bounded, non-throwing execution of external tools."""

from __future__ import annotations

import asyncio
import logging
import shutil
import time
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path

from bastion.config import DEFAULT_MAX_OUTPUT_BYTES, ToolCommand
from bastion.core.errors import ToolTimeout, ToolUnavailable

logger = logging.getLogger(__name__)

_READ_CHUNK = 64 * 1024


@dataclass(frozen=True)
class ProcessResult:
    """Captured outcome of one subprocess.

    Attributes:
        exit_code: Process return code (non-zero is not an error here)
        stdout: Decoded standard output, possibly truncated
        stderr: Decoded standard error, possibly truncated
        truncated: True if either stream exceeded the output cap
        duration_seconds: Wall-clock run time
    """

    exit_code: int
    stdout: str
    stderr: str
    truncated: bool = False
    duration_seconds: float = 0.0

    @property
    def ok(self) -> bool:
        return self.exit_code == 0

    @property
    def combined(self) -> str:
        if not self.stderr:
            return self.stdout
        return f"{self.stdout}\n{self.stderr}"


def resolve_executable(name: str) -> str:
    """Return an absolute path for *name* or raise ToolUnavailable."""
    path = Path(name)
    if path.is_absolute():
        if not path.exists():
            raise ToolUnavailable(name, "executable does not exist")
        return str(path)

    resolved = shutil.which(name)
    if resolved is None:
        raise ToolUnavailable(name, "not found on PATH")
    return resolved


async def _read_capped(stream: asyncio.StreamReader, limit: int) -> tuple[bytes, bool]:
    """Read *stream* to EOF, keeping at most *limit* bytes.

    The remainder is drained and dropped so the child never blocks on a full pipe.
    """
    kept = bytearray()
    truncated = False
    while True:
        chunk = await stream.read(_READ_CHUNK)
        if not chunk:
            break
        room = limit - len(kept)
        if room > 0:
            kept.extend(chunk[:room])
        if len(chunk) > room:
            truncated = True
    return bytes(kept), truncated


class ProcessRunner:
    """Runs external commands with a timeout and output cap.

    Never raises for a non-zero exit code. Raises ToolUnavailable when the
    binary cannot be spawned and ToolTimeout when the bound is exceeded.
    """

    def __init__(self, cwd: Path, env: Mapping[str, str] | None = None) -> None:
        self.cwd = cwd
        self.env = dict(env) if env is not None else None

    async def run(
        self,
        command: Sequence[str],
        *,
        tool: str | None = None,
        cwd: Path | None = None,
        timeout: float = 120,
        max_output_bytes: int = DEFAULT_MAX_OUTPUT_BYTES,
    ) -> ProcessResult:
        """Execute *command* and capture its output.

        Args:
            command: Executable followed by its arguments
            tool: Name used in errors and logs (defaults to the executable)
            cwd: Working directory (defaults to the runner's root)
            timeout: Seconds before the process is killed
            max_output_bytes: Per-stream cap; excess output is dropped and flagged

        Returns:
            ProcessResult with exit code and decoded output

        Raises:
            ToolUnavailable: The executable is missing or cannot be spawned
            ToolTimeout: The process exceeded *timeout*; buffered output is discarded
        """
        if not command:
            raise ValueError("command requires at least one argument")

        tool_name = tool or command[0]
        try:
            executable = resolve_executable(command[0])
        except ToolUnavailable as e:
            raise ToolUnavailable(tool_name, e.detail) from e
        workdir = cwd or self.cwd
        logger.debug(f"Running {tool_name}: {' '.join(command)} (cwd={workdir}, timeout={timeout}s)")

        start = time.monotonic()
        try:
            process = await asyncio.create_subprocess_exec(
                executable,
                *command[1:],
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=workdir,
                env=self.env,
            )
        except (FileNotFoundError, PermissionError, NotADirectoryError) as e:
            raise ToolUnavailable(tool_name, str(e)) from e

        if process.stdout is None or process.stderr is None:
            raise RuntimeError("Subprocess streams not initialized")

        try:
            (stdout, out_truncated), (stderr, err_truncated) = await asyncio.wait_for(
                asyncio.gather(
                    _read_capped(process.stdout, max_output_bytes),
                    _read_capped(process.stderr, max_output_bytes),
                ),
                timeout=timeout,
            )
            await process.wait()
        except TimeoutError:
            logger.warning(f"{tool_name} timed out after {timeout}s, killing PID {process.pid}")
            await self._kill(process)
            raise ToolTimeout(tool_name, timeout) from None
        except asyncio.CancelledError:
            await self._kill(process)
            raise

        duration = time.monotonic() - start
        truncated = out_truncated or err_truncated
        if truncated:
            logger.warning(f"{tool_name} output exceeded {max_output_bytes} bytes and was truncated")

        exit_code = process.returncode if process.returncode is not None else -1
        logger.debug(f"{tool_name} exited with {exit_code} in {duration:.2f}s")
        return ProcessResult(
            exit_code=exit_code,
            stdout=stdout.decode("utf-8", errors="replace"),
            stderr=stderr.decode("utf-8", errors="replace"),
            truncated=truncated,
            duration_seconds=duration,
        )

    async def run_tool(self, tool: ToolCommand, *, timeout: float | None = None) -> ProcessResult:
        """Run a configured tool command with its own bounds."""
        return await self.run(
            tool.command,
            tool=tool.name,
            timeout=timeout if timeout is not None else tool.timeout,
            max_output_bytes=tool.max_output_bytes,
        )

    async def _kill(self, process: asyncio.subprocess.Process) -> None:
        if process.returncode is not None:
            return
        try:
            process.kill()
        except ProcessLookupError:
            return
        await process.wait()
