"""Configuration management for bastion."""

from __future__ import annotations

from pathlib import Path

import yaml
from pydantic import BaseModel, Field

from bastion.core.models import Severity, Source

DEFAULT_MAX_OUTPUT_BYTES = 50 * 1024 * 1024

# Always excluded from scans, whatever the user configures
ALWAYS_EXCLUDE_DIRS = ("node_modules", "dist", "build", "coverage", "out", ".next", ".git", ".hg", ".svn")


class ToolCommand(BaseModel):
    """An external tool invocation with its own bounds."""

    command: list[str]
    timeout: int = Field(default=120, description="Seconds before the process is killed")
    max_output_bytes: int = Field(default=DEFAULT_MAX_OUTPUT_BYTES, description="Per-stream output cap")

    @property
    def name(self) -> str:
        """Human-readable tool name, e.g. 'tsc' for ``npx tsc ...``."""
        head = [part for part in self.command if not part.startswith("-")]
        if len(head) >= 2 and head[0] in {"npx", "pnpm", "yarn", "bunx"}:
            return head[1]
        if len(head) >= 3 and head[0] == "npm" and head[1] == "run":
            return f"npm run {head[2]}"
        if len(head) >= 2 and head[0] == "npm":
            return f"npm {head[1]}"
        return head[0] if head else "unknown"


class ToolsConfig(BaseModel):
    """Commands for each external tool."""

    type_check: ToolCommand = Field(
        default_factory=lambda: ToolCommand(command=["npx", "tsc", "--noEmit", "--pretty", "false"], timeout=120)
    )
    lint: ToolCommand = Field(
        default_factory=lambda: ToolCommand(command=["npx", "eslint", ".", "--format", "json"], timeout=120)
    )
    lint_fix: ToolCommand = Field(
        default_factory=lambda: ToolCommand(command=["npx", "eslint", "--fix"], timeout=120)
    )
    build: ToolCommand = Field(default_factory=lambda: ToolCommand(command=["npm", "run", "build"], timeout=300))
    dependency_audit: ToolCommand = Field(
        default_factory=lambda: ToolCommand(command=["npm", "audit", "--json"], timeout=60)
    )
    counter_timeout: int = Field(default=30, description="Timeout for the fast-path error counter")


class FileSelection(BaseModel):
    """Glob patterns selecting which files are scanned."""

    include: list[str] = Field(
        default_factory=lambda: [
            "**/*.ts",
            "**/*.tsx",
            "**/*.js",
            "**/*.jsx",
            "**/*.json",
            "**/.eslintrc*",
        ]
    )
    exclude: list[str] = Field(default_factory=list)


class SeverityTable(BaseModel):
    """Explicit mapping from tool vocabularies to normalized severity."""

    type_check: dict[str, Severity] = Field(
        default_factory=lambda: {"error": Severity.CRITICAL, "warning": Severity.MEDIUM, "message": Severity.LOW}
    )
    lint: dict[int, Severity] = Field(
        default_factory=lambda: {2: Severity.HIGH, 1: Severity.MEDIUM, 0: Severity.LOW}
    )
    build: dict[str, Severity] = Field(
        default_factory=lambda: {"error": Severity.CRITICAL, "warning": Severity.MEDIUM}
    )
    dependency: dict[str, Severity] = Field(
        default_factory=lambda: {
            "critical": Severity.CRITICAL,
            "high": Severity.HIGH,
            "moderate": Severity.MEDIUM,
            "low": Severity.LOW,
            "info": Severity.LOW,
        }
    )
    tool_unavailable: Severity = Severity.HIGH
    unparsed_failure: Severity = Severity.HIGH
    config_unsafe: Severity = Severity.HIGH
    config_malformed: Severity = Severity.CRITICAL
    malformed_json: Severity = Severity.CRITICAL
    unbalanced_brackets: Severity = Severity.MEDIUM
    unreadable_file: Severity = Severity.HIGH

    def for_type_check(self, label: str) -> Severity:
        return self.type_check.get(label.lower(), Severity.CRITICAL)

    def for_lint(self, level: int) -> Severity:
        return self.lint.get(level, Severity.MEDIUM)

    def for_build(self, label: str) -> Severity:
        return self.build.get(label.lower(), Severity.CRITICAL)

    def for_dependency(self, label: str) -> Severity:
        return self.dependency.get(label.lower(), Severity.HIGH)


class ScoreWeights(BaseModel):
    """Quality-score deductions per issue, as (error, warning) pairs."""

    per_source: dict[Source, tuple[int, int]] = Field(
        default_factory=lambda: {
            Source.BUILD: (15, 3),
            Source.TYPE_CHECK: (10, 2),
            Source.SYNTAX: (10, 2),
            Source.DEPENDENCY: (10, 2),
            Source.CONFIG: (10, 2),
            Source.LINT: (5, 1),
        }
    )
    suppression: int = 1

    def weight(self, source: Source, severity: Severity) -> int:
        error_weight, warning_weight = self.per_source.get(source, (10, 2))
        return error_weight if severity.is_error else warning_weight


class Config(BaseModel):
    """Bastion configuration."""

    strict_mode: bool = Field(default=False, description="Zero tolerance for errors, warnings and suppressions")
    tools: ToolsConfig = Field(default_factory=ToolsConfig)
    files: FileSelection = Field(default_factory=FileSelection)
    severity: SeverityTable = Field(default_factory=SeverityTable)
    scoring: ScoreWeights = Field(default_factory=ScoreWeights)
    new_project_file_threshold: int = Field(
        default=10,
        description="Clean projects with fewer source files than this are classified as new",
    )
    poll_interval: float = Field(default=5.0, description="Seconds between monitor polls")
    git_config_section: str = Field(default="bastion", description="Git config section read by hook scripts")

    @classmethod
    def load(cls, config_path: Path | None = None) -> Config:
        """Load configuration from file or use defaults."""
        if config_path is None:
            config_path = Path(".bastion/config.yaml")

        if config_path.exists():
            with config_path.open() as f:
                data = yaml.safe_load(f) or {}
            return cls.model_validate(data)

        return cls()

    def save(self, config_path: Path) -> None:
        """Save configuration to file."""
        config_path.parent.mkdir(parents=True, exist_ok=True)
        with config_path.open("w") as f:
            yaml.safe_dump(self.model_dump(mode="json"), f, default_flow_style=False)


def get_bastion_dir(project_root: Path | None = None) -> Path:
    """Get the .bastion directory, creating if needed."""
    if project_root is None:
        project_root = Path.cwd()
    bastion_dir = project_root / ".bastion"
    bastion_dir.mkdir(parents=True, exist_ok=True)
    return bastion_dir
