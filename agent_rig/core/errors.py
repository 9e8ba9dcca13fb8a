"""
Error taxonomy for the install-state core.

Only ``PersistenceFailure`` is allowed to end an invocation. The other
errors are raised close to where they happen and recovered by the layer
directly above:

    StateUnreadable       → StateStore.load() returns an empty map
    UnitFailure           → adapter turns it into a failed OperationResult
    ModificationConflict  → caller turns it into a skipped OperationResult
"""

from __future__ import annotations

from pathlib import Path


class AgentRigError(Exception):
    """Base class for all agent-rig errors."""


class StateUnreadable(AgentRigError):
    """The state document is missing or cannot be parsed."""

    def __init__(self, path: Path, reason: str):
        super().__init__(f"Cannot read state file {path}: {reason}")
        self.path = path
        self.reason = reason


class UnitFailure(AgentRigError):
    """A single adapter-driven unit of work failed or timed out."""

    def __init__(self, component_id: str, reason: str):
        super().__init__(f"{component_id}: {reason}")
        self.component_id = component_id
        self.reason = reason


class ModificationConflict(AgentRigError):
    """A managed file was edited by the user since our last write."""

    def __init__(self, path: Path | str):
        super().__init__(f"locally modified — use --force to overwrite ({path})")
        self.path = Path(path)


class PersistenceFailure(AgentRigError):
    """The state document could not be written back."""

    def __init__(self, path: Path, reason: str):
        super().__init__(f"Failed to save state to {path}: {reason}")
        self.path = path
        self.reason = reason
