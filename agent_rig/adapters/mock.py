"""
Mock platform adapter — universal test double for every install phase.

Used by ``--mock`` and the test suite to drive the orchestrator without
touching a real agent CLI. Succeeds for everything by default; single
units can be configured to fail or return a custom result, and whole
operations can be slowed down or made to raise.
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from pathlib import Path

from agent_rig.adapters.base import Capability, Platform, PlatformAdapter
from agent_rig.core.engine.blocks import pointer_tag
from agent_rig.core.models.manifest import ComponentRef, ConflictRef, ManifestSnapshot
from agent_rig.core.models.result import OperationResult, UnitKind
from agent_rig.core.models.state import BehavioralRecord

_BEHAVIORAL_FILES = {"claude-md": "CLAUDE.md", "agents-md": "AGENTS.md"}


class MockPlatformAdapter(PlatformAdapter):
    """Mock adapter for testing.

    By default every unit is applied (conflicts are disabled). Responses
    are looked up by unit id, so ``set_failure("foo@bar")`` fails that
    component wherever it shows up.
    """

    platform = Platform.MOCK
    capabilities = frozenset(Capability)

    def __init__(
        self,
        settings: object | None = None,
        available: bool = True,
        capabilities: frozenset[Capability] | None = None,
    ):
        self._available = available
        if capabilities is not None:
            self.capabilities = capabilities
        self._responses: dict[str, OperationResult] = {}
        self._delays: dict[str, float] = {}
        self._errors: dict[str, Exception] = {}
        self._call_log: list[tuple[str, tuple[str, ...]]] = []

    # ── Configuration ───────────────────────────────────────────

    @property
    def call_log(self) -> list[tuple[str, tuple[str, ...]]]:
        """``(operation, unit ids)`` for every call received."""
        return self._call_log

    @property
    def call_count(self) -> int:
        return len(self._call_log)

    def calls(self, operation: str) -> list[tuple[str, ...]]:
        """Unit ids passed to each call of ``operation``."""
        return [units for op, units in self._call_log if op == operation]

    def set_response(self, unit_id: str, result: OperationResult) -> None:
        """Return ``result`` whenever ``unit_id`` is attempted."""
        self._responses[unit_id] = result

    def set_failure(self, unit_id: str, message: str = "Mock failure") -> None:
        """Configure a specific unit to fail."""
        self._responses[unit_id] = OperationResult.failure(UnitKind.COMPONENT, unit_id, message)

    def set_delay(self, operation: str, seconds: float) -> None:
        """Sleep before answering ``operation`` (for timeout tests)."""
        self._delays[operation] = seconds

    def set_error(self, operation: str, error: Exception) -> None:
        """Raise ``error`` from ``operation`` instead of returning results."""
        self._errors[operation] = error

    def reset(self) -> None:
        """Clear call log and custom responses."""
        self._call_log.clear()
        self._responses.clear()
        self._delays.clear()
        self._errors.clear()

    # ── Internals ───────────────────────────────────────────────

    async def _enter(self, operation: str, unit_ids: Sequence[str]) -> None:
        self._call_log.append((operation, tuple(unit_ids)))
        delay = self._delays.get(operation)
        if delay:
            await asyncio.sleep(delay)
        error = self._errors.get(operation)
        if error is not None:
            raise error

    def _result(
        self,
        kind: UnitKind,
        unit_id: str,
        default: OperationResult | None = None,
    ) -> OperationResult:
        configured = self._responses.get(unit_id)
        if configured is not None:
            result = configured.model_copy(update={"kind": kind, "component_id": unit_id})
        else:
            result = default or OperationResult.applied(kind, unit_id, "[mock] applied")
        return self._finish(result)

    # ── PlatformAdapter ─────────────────────────────────────────

    async def detect(self) -> bool:
        return self._available

    async def add_registries(self, manifest: ManifestSnapshot) -> list[OperationResult]:
        names = [r.name for r in manifest.registries]
        await self._enter("add_registries", names)
        return [self._result(UnitKind.REGISTRY, n) for n in names]

    async def install_components(
        self, manifest: ManifestSnapshot, refs: Sequence[ComponentRef]
    ) -> list[OperationResult]:
        ids = [r.id for r in refs]
        await self._enter("install_components", ids)
        return [self._result(UnitKind.COMPONENT, i) for i in ids]

    async def disable_conflicts(
        self, manifest: ManifestSnapshot, conflicts: Sequence[ConflictRef]
    ) -> list[OperationResult]:
        ids = [c.id for c in conflicts]
        await self._enter("disable_conflicts", ids)
        return [
            self._result(
                UnitKind.CONFLICT, i, OperationResult.disabled(UnitKind.CONFLICT, i, "[mock] disabled")
            )
            for i in ids
        ]

    async def configure_services(self, manifest: ManifestSnapshot) -> list[OperationResult]:
        names = manifest.service_names()
        await self._enter("configure_services", names)
        return [
            self._result(
                UnitKind.SERVICE,
                name,
                OperationResult.applied(
                    UnitKind.SERVICE,
                    name,
                    "[mock] configured",
                    metadata={"type": manifest.mcp_servers[name].type},
                ),
            )
            for name in names
        ]

    async def install_behavioral(
        self, manifest: ManifestSnapshot, source_dir: Path, force: bool = False
    ) -> list[OperationResult]:
        if manifest.behavioral is None:
            await self._enter("install_behavioral", [])
            return []
        keys = [k for k in _BEHAVIORAL_FILES if manifest.behavioral.get(k) is not None]
        await self._enter("install_behavioral", keys)
        tag = pointer_tag(manifest.name)
        results = []
        for key in keys:
            filename = _BEHAVIORAL_FILES[key]
            results.append(
                self._result(
                    UnitKind.BEHAVIORAL,
                    key,
                    OperationResult.applied(
                        UnitKind.BEHAVIORAL,
                        key,
                        "[mock] written",
                        metadata={
                            "file": f".claude/rigs/{manifest.name}/{filename}",
                            "pointer_file": filename,
                            "pointer_tag": tag,
                        },
                    ),
                )
            )
        return results

    async def verify(self, manifest: ManifestSnapshot) -> list[OperationResult]:
        names = manifest.service_names()
        await self._enter("verify", names)
        return [
            self._result(UnitKind.HEALTH, n, OperationResult.applied(UnitKind.HEALTH, n, "[mock] healthy"))
            for n in names
        ]

    async def uninstall_components(self, ids: Sequence[str]) -> list[OperationResult]:
        await self._enter("uninstall_components", ids)
        return [self._result(UnitKind.COMPONENT, i) for i in ids]

    async def enable_components(self, ids: Sequence[str]) -> list[OperationResult]:
        await self._enter("enable_components", ids)
        return [self._result(UnitKind.CONFLICT, i) for i in ids]

    async def remove_services(self, names: Sequence[str]) -> list[OperationResult]:
        await self._enter("remove_services", names)
        return [self._result(UnitKind.SERVICE, n) for n in names]

    async def remove_behavioral(
        self, rig_name: str, entries: Sequence[BehavioralRecord], force: bool = False
    ) -> list[OperationResult]:
        files = [e.file for e in entries]
        await self._enter("remove_behavioral", files)
        return [self._result(UnitKind.BEHAVIORAL, f) for f in files]
