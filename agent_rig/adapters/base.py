"""
Platform adapter base — the contract between the orchestrator and a
concrete agent platform (Claude Code, Codex, ...).

The orchestrator only talks to platforms through this interface. Each
adapter declares the closed set of capabilities it supports; the
orchestrator never calls an operation outside that set, so adding a
platform means adding an enum member and a subclass, not a new string
switch somewhere in the engine.

Adapters perform external side effects and return OperationResults.
They NEVER raise for a unit of work: failures are captured in results.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from agent_rig.core.errors import UnitFailure
from agent_rig.core.models.manifest import ComponentRef, ConflictRef, ManifestSnapshot
from agent_rig.core.models.result import OperationResult, UnitKind
from agent_rig.core.models.state import BehavioralRecord


class Platform(str, Enum):
    """Every platform agent-rig knows how to drive."""

    CLAUDE_CODE = "claude-code"
    CODEX = "codex"
    MOCK = "mock"


class Capability(str, Enum):
    """Operations an adapter can perform, one per install phase."""

    REGISTRIES = "registries"
    COMPONENTS = "components"
    CONFLICTS = "conflicts"
    SERVICES = "services"
    BEHAVIORAL = "behavioral"
    VERIFY = "verify"


@dataclass(frozen=True)
class ConflictWarning:
    """An installed component that overlaps with the rig being installed."""

    installed: str
    conflicts_with: str
    reason: str = ""


class PlatformAdapter(ABC):
    """Abstract base class for platform adapters.

    To add a platform:
        1. Add a member to ``Platform``
        2. Subclass PlatformAdapter, declare ``capabilities`` and
           override the matching operations
        3. Map it in ``agent_rig.adapters.registry.ADAPTER_TYPES``

    Operations outside the declared capabilities keep the default
    implementation, which does nothing.
    """

    platform: Platform
    capabilities: frozenset[Capability] = frozenset()

    @property
    def name(self) -> str:
        return self.platform.value

    def supports(self, capability: Capability) -> bool:
        return capability in self.capabilities

    @abstractmethod
    async def detect(self) -> bool:
        """Whether the platform is installed on this machine. Never raises."""

    async def check_conflicts(self, manifest: ManifestSnapshot) -> list[ConflictWarning]:
        """Pre-flight scan for installed components that may clash with the rig."""
        return []

    # ── Install-side operations ─────────────────────────────────

    async def add_registries(self, manifest: ManifestSnapshot) -> list[OperationResult]:
        return []

    async def install_components(
        self, manifest: ManifestSnapshot, refs: Sequence[ComponentRef]
    ) -> list[OperationResult]:
        """Install ``refs`` in the given order (already dependency-sorted)."""
        return []

    async def disable_conflicts(
        self, manifest: ManifestSnapshot, conflicts: Sequence[ConflictRef]
    ) -> list[OperationResult]:
        return []

    async def configure_services(self, manifest: ManifestSnapshot) -> list[OperationResult]:
        """Configure every service in ``manifest.mcp_servers``."""
        return []

    async def install_behavioral(
        self, manifest: ManifestSnapshot, source_dir: Path, force: bool = False
    ) -> list[OperationResult]:
        return []

    async def verify(self, manifest: ManifestSnapshot) -> list[OperationResult]:
        return []

    # ── Reverse operations (update / uninstall) ─────────────────

    async def uninstall_components(self, ids: Sequence[str]) -> list[OperationResult]:
        return []

    async def enable_components(self, ids: Sequence[str]) -> list[OperationResult]:
        """Re-enable components this rig previously disabled."""
        return []

    async def remove_services(self, names: Sequence[str]) -> list[OperationResult]:
        return []

    async def remove_behavioral(
        self, rig_name: str, entries: Sequence[BehavioralRecord], force: bool = False
    ) -> list[OperationResult]:
        return []

    # ── Progress tracking ───────────────────────────────────────

    _finished: list[OperationResult] | None = None

    def begin_call(self) -> list[OperationResult]:
        """Start a fresh list of the results the next operation finishes.

        The orchestrator keeps this list so that units completed before a
        timeout are still recorded after the call is cancelled.
        """
        self._finished = []
        return self._finished

    def planned_units(
        self, capability: Capability, planned: Sequence[tuple[UnitKind, str]]
    ) -> list[tuple[UnitKind, str]]:
        """The units a ``capability`` call on this adapter covers.

        Defaults to the orchestrator's plan. Adapters that stand in for the
        whole plan with a single unit of their own override this.
        """
        return list(planned)

    # ── Helpers for subclasses ──────────────────────────────────

    def _finish(self, result: OperationResult) -> OperationResult:
        """Stamp ``result`` with this adapter and report it as finished."""
        result.adapter = self.name
        if self._finished is not None:
            self._finished.append(result)
        return result

    async def _attempt(
        self,
        kind: UnitKind,
        component_id: str,
        action: Callable[[], Awaitable[OperationResult]],
    ) -> OperationResult:
        """Run one unit, converting a UnitFailure into a failed result."""
        try:
            result = await action()
        except UnitFailure as e:
            result = OperationResult.failure(kind, component_id, e.reason)
        return self._finish(result)

    def __repr__(self) -> str:
        caps = ",".join(sorted(c.value for c in self.capabilities))
        return f"<{self.__class__.__name__} name={self.name!r} capabilities={caps}>"
