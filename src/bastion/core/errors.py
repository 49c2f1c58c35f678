"""Error taxonomy for tool execution, parsing and policy classification."""

from __future__ import annotations

from pathlib import Path


class BastionError(Exception):
    """Base class for all bastion errors."""


class ToolUnavailable(BastionError):
    """External binary is missing or could not be spawned."""

    def __init__(self, tool: str, detail: str = "") -> None:
        self.tool = tool
        self.detail = detail
        message = f"Tool '{tool}' is not available"
        if detail:
            message += f": {detail}"
        super().__init__(message)


class ToolTimeout(BastionError):
    """Subprocess exceeded its time bound and was killed."""

    def __init__(self, tool: str, timeout: float) -> None:
        self.tool = tool
        self.timeout = timeout
        super().__init__(f"Tool '{tool}' timed out after {timeout:g} seconds")


class ParseFailure(BastionError):
    """Tool output did not match any supported shape."""

    def __init__(self, tool: str, detail: str = "") -> None:
        self.tool = tool
        self.detail = detail
        message = f"Could not parse output of '{tool}'"
        if detail:
            message += f": {detail}"
        super().__init__(message)


class ConfigInvalid(BastionError):
    """A configuration file is malformed."""

    def __init__(self, path: Path | str, detail: str = "") -> None:
        self.path = Path(path)
        self.detail = detail
        message = f"Invalid configuration file {self.path.name}"
        if detail:
            message += f": {detail}"
        super().__init__(message)


class ClassificationFailure(BastionError):
    """Project classification could not complete."""


class HookError(BastionError):
    """A git hook could not be installed or removed."""
