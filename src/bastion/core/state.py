"""Persistence of the protection policy state between CLI invocations."""

from __future__ import annotations

import logging
from pathlib import Path

from pydantic import ValidationError

from bastion.core.errors import ConfigInvalid
from bastion.core.models import PolicyState

logger = logging.getLogger(__name__)


class PolicyStore:
    """Reads and writes the policy state as JSON (``.bastion/policy.json``)."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def load(self) -> PolicyState:
        """Load the saved state, or the disabled default if none was saved.

        Raises:
            ConfigInvalid: The file exists but is not a valid state
        """
        if not self.path.exists():
            return PolicyState()
        try:
            return PolicyState.model_validate_json(self.path.read_text(encoding="utf-8"))
        except ValidationError as e:
            raise ConfigInvalid(self.path, str(e)) from e

    def save(self, state: PolicyState) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(state.model_dump_json(indent=2), encoding="utf-8")
        logger.debug(f"Saved policy state to {self.path}")

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)
