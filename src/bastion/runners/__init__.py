"""External process execution."""

from bastion.runners.process import ProcessResult, ProcessRunner, resolve_executable

__all__ = ["ProcessResult", "ProcessRunner", "resolve_executable"]
