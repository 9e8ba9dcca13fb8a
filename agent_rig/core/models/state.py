"""
RigRecord — what one installed rig actually left behind on this machine.

One record per rig name, serialized inside the state document at
``~/.agent-rig/state.json``. A record is always assembled from results
that were verified as applied, never from the plan, so it is the single
source of truth for later diffs and uninstalls.

Aliases keep state files written by earlier agent-rig releases readable.
"""

from __future__ import annotations

from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(UTC).isoformat()


class ServiceRecord(BaseModel):
    """A configured service endpoint (MCP server)."""

    name: str
    type: str = "http"  # http, stdio, sse


class BehavioralRecord(BaseModel):
    """A namespaced instruction file plus the pointer that references it."""

    model_config = ConfigDict(populate_by_name=True)

    file: str
    pointer_file: str = Field(alias="pointerFile")
    pointer_tag: str = Field(alias="pointerTag")


class RigRecord(BaseModel):
    """Installed state of one rig."""

    model_config = ConfigDict(populate_by_name=True)

    name: str
    version: str
    source: str = ""
    installed_at: str = Field(default_factory=_now_iso, alias="installedAt")

    components: list[str] = Field(default_factory=list, alias="plugins")
    disabled_conflicts: list[str] = Field(default_factory=list, alias="disabledConflicts")
    services: list[ServiceRecord] = Field(default_factory=list, alias="mcpServers")
    behavioral: list[BehavioralRecord] = Field(default_factory=list)
    registries: list[str] = Field(default_factory=list, alias="marketplaces")
    env_profile_path: str | None = Field(default=None, alias="envProfilePath")

    def service_names(self) -> list[str]:
        return [s.name for s in self.services]


class StateDocument(BaseModel):
    """The whole state file: rig name → record."""

    rigs: dict[str, RigRecord] = Field(default_factory=dict)
