"""Editor diagnostics: the already-computed findings of the host editor."""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, ValidationError

from bastion.core.errors import ParseFailure
from bastion.core.events import DiagnosticsChanged, EventBus
from bastion.core.models import Source

logger = logging.getLogger(__name__)

DiagnosticSeverity = Literal["error", "warning", "info", "hint"]

TYPE_CHECK_SOURCES = frozenset({"ts", "typescript", "tsc", "javascript", "js"})
LINT_SOURCES = frozenset({"eslint", "lint"})


class EditorDiagnostic(BaseModel):
    """One diagnostic as reported by the editor's language services."""

    model_config = ConfigDict(frozen=True)

    file: str
    line: int = 0
    column: int = 0
    severity: DiagnosticSeverity = "error"
    source: str = ""
    message: str = ""
    code: str | None = None

    @property
    def category(self) -> Source:
        """Type-check for language-service findings, lint for linter ones, syntax otherwise."""
        name = self.source.lower()
        if name in TYPE_CHECK_SOURCES:
            return Source.TYPE_CHECK
        if name in LINT_SOURCES:
            return Source.LINT
        return Source.SYNTAX

    @property
    def is_error(self) -> bool:
        return self.severity == "error"

    @property
    def is_warning(self) -> bool:
        return self.severity == "warning"


def normalize_path(path: str | Path, root: Path | None = None) -> str:
    """POSIX path relative to *root* when possible, without a leading ``./``."""
    candidate = Path(path)
    if root is not None and candidate.is_absolute():
        try:
            candidate = candidate.relative_to(root)
        except ValueError:
            pass
    text = candidate.as_posix()
    return text[2:] if text.startswith("./") else text


class DiagnosticsProvider(ABC):
    """Abstract source of editor diagnostics."""

    def __init__(self, root: Path | None = None) -> None:
        self.root = root

    @abstractmethod
    def all_diagnostics(self) -> list[EditorDiagnostic]:
        """Return every diagnostic currently known."""

    def diagnostics_for(self, path: str | Path) -> list[EditorDiagnostic]:
        """Return diagnostics for one file."""
        wanted = normalize_path(path, self.root)
        return [d for d in self.all_diagnostics() if normalize_path(d.file, self.root) == wanted]


class InMemoryDiagnostics(DiagnosticsProvider):
    """Diagnostics pushed in by the host; publishes a change event on update."""

    def __init__(self, root: Path | None = None, bus: EventBus | None = None) -> None:
        super().__init__(root)
        self.bus = bus
        self._by_file: dict[str, list[EditorDiagnostic]] = {}

    def all_diagnostics(self) -> list[EditorDiagnostic]:
        return [d for diagnostics in self._by_file.values() for d in diagnostics]

    def set_file(self, path: str | Path, diagnostics: list[EditorDiagnostic]) -> None:
        """Replace the diagnostics for one file."""
        key = normalize_path(path, self.root)
        if diagnostics:
            self._by_file[key] = list(diagnostics)
        else:
            self._by_file.pop(key, None)
        if self.bus is not None:
            self.bus.publish(DiagnosticsChanged(files=(key,)))

    def clear(self) -> None:
        files = tuple(self._by_file)
        self._by_file.clear()
        if self.bus is not None and files:
            self.bus.publish(DiagnosticsChanged(files=files))


class JsonFileDiagnostics(DiagnosticsProvider):
    """Diagnostics exported by an editor to a JSON file (a list of objects)."""

    def __init__(self, path: Path, root: Path | None = None) -> None:
        super().__init__(root)
        self.path = path

    def all_diagnostics(self) -> list[EditorDiagnostic]:
        """Load the file.

        Raises:
            ParseFailure: The file exists but is not a list of diagnostics
        """
        if not self.path.exists():
            logger.debug(f"No diagnostics file at {self.path}")
            return []
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            if not isinstance(data, list):
                raise ParseFailure("diagnostics", f"{self.path.name} must contain a JSON list")
            return [EditorDiagnostic.model_validate(item) for item in data]
        except (json.JSONDecodeError, ValidationError) as e:
            raise ParseFailure("diagnostics", str(e)) from e
