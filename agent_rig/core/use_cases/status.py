"""
Status use case — what the state file says is installed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from agent_rig.core.config.settings import Settings
from agent_rig.core.models.state import RigRecord
from agent_rig.core.persistence.state_store import StateStore


@dataclass
class StatusResult:
    state_path: Path | None = None
    rigs: list[RigRecord] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "state_path": str(self.state_path) if self.state_path else None,
            "rigs": [r.model_dump(mode="json", by_alias=True) for r in self.rigs],
        }


def get_status(settings: Settings) -> StatusResult:
    store = StateStore(settings.state_path)
    return StatusResult(state_path=store.path, rigs=list(store.load().values()))
