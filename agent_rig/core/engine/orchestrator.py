"""
Install orchestrator — sequences one install, update or uninstall.

The orchestrator is the composition root of the engine. It gates the
request, plans the units (dependency-ordered components, the diff on an
update), drives every active platform adapter phase by phase, collects
one OperationResult per attempted unit, and hands the resulting record
to the StateStore.

Flow:
    gate → (diff) → phases → assemble record → persist → verify

Phases always run in this order, adapter by adapter:

    registries → components → conflicts → services → behavioral
    → tools → environment → verify

The stored record is built from results, never from the plan: only
``applied`` / ``disabled`` units are added, and an entry is dropped only
after its removal did not fail. A record therefore describes what is
really on the machine, even after a partial failure.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from agent_rig.adapters.base import Capability, PlatformAdapter
from agent_rig.core.config.settings import Timeouts
from agent_rig.core.engine.diff import RigDiff, compute_diff
from agent_rig.core.engine.gate import Decision, decide
from agent_rig.core.engine.ordering import topo_sort
from agent_rig.core.models.manifest import ManifestSnapshot
from agent_rig.core.models.result import OperationResult, OperationStatus, UnitKind
from agent_rig.core.models.state import BehavioralRecord, RigRecord, ServiceRecord
from agent_rig.core.persistence.state_store import StateStore
from agent_rig.core.services.environment import EnvironmentWriter
from agent_rig.core.services.tools import ToolInstaller

logger = logging.getLogger(__name__)


class Phase(str, Enum):
    REGISTRIES = "registries"
    COMPONENTS = "components"
    CONFLICTS = "conflicts"
    SERVICES = "services"
    BEHAVIORAL = "behavioral"
    TOOLS = "tools"
    ENVIRONMENT = "environment"
    VERIFY = "verify"


# Adapter-driven phases; tools and environment are handled in-process.
PHASE_CAPABILITY: dict[Phase, Capability] = {
    Phase.REGISTRIES: Capability.REGISTRIES,
    Phase.COMPONENTS: Capability.COMPONENTS,
    Phase.CONFLICTS: Capability.CONFLICTS,
    Phase.SERVICES: Capability.SERVICES,
    Phase.BEHAVIORAL: Capability.BEHAVIORAL,
    Phase.VERIFY: Capability.VERIFY,
}

Planned = list[tuple[UnitKind, str]]


@dataclass
class OperationReport:
    """Everything one orchestrator call did."""

    operation: str = ""
    rig: str = ""
    decision: Decision | None = None
    diff: RigDiff | None = None
    phases: dict[Phase, list[OperationResult]] = field(default_factory=dict)
    record: RigRecord | None = None
    note: str | None = None

    def add(self, phase: Phase, results: Iterable[OperationResult]) -> None:
        self.phases.setdefault(phase, []).extend(results)

    @property
    def results(self) -> list[OperationResult]:
        """All results, in phase order."""
        return [r for phase in Phase for r in self.phases.get(phase, [])]

    def _count(self, status: OperationStatus) -> int:
        return sum(1 for r in self.results if r.status == status)

    @property
    def applied(self) -> int:
        return self._count(OperationStatus.APPLIED)

    @property
    def skipped(self) -> int:
        return self._count(OperationStatus.SKIPPED)

    @property
    def failed(self) -> int:
        return self._count(OperationStatus.FAILED)

    @property
    def disabled(self) -> int:
        return self._count(OperationStatus.DISABLED)

    @property
    def all_ok(self) -> bool:
        return self.failed == 0

    @property
    def status(self) -> str:
        if self.failed == 0:
            return "ok"
        if any(r.recorded for r in self.results):
            return "partial"
        return "failed"

    def to_dict(self) -> dict:
        return {
            "operation": self.operation,
            "rig": self.rig,
            "status": self.status,
            "decision": self.decision.value if self.decision else None,
            "diff": self.diff.to_dict() if self.diff else None,
            "note": self.note,
            "applied": self.applied,
            "skipped": self.skipped,
            "failed": self.failed,
            "disabled": self.disabled,
            "phases": {
                phase.value: [r.model_dump(mode="json") for r in results]
                for phase, results in self.phases.items()
            },
            "record": self.record.model_dump(mode="json", by_alias=True) if self.record else None,
        }


# ── Record assembly ─────────────────────────────────────────────


def _ids(results: Iterable[OperationResult], kind: UnitKind, *statuses: OperationStatus) -> list[str]:
    return list(
        dict.fromkeys(r.component_id for r in results if r.kind == kind and r.status in statuses)
    )


def _removed(results: Iterable[OperationResult], kind: UnitKind) -> set[str]:
    """Ids with at least one removal result and none that failed or kept the unit."""
    seen: set[str] = set()
    kept: set[str] = set()
    for r in results:
        if r.kind != kind:
            continue
        seen.add(r.component_id)
        if r.failed or r.metadata.get("kept"):
            kept.add(r.component_id)
    return seen - kept


def _merge(prior: Iterable[str], dropped: set[str], added: Iterable[str]) -> list[str]:
    return list(dict.fromkeys([*(i for i in prior if i not in dropped), *added]))


def assemble_record(
    base: RigRecord | None,
    name: str,
    version: str,
    source: str,
    applied: Sequence[OperationResult],
    removals: Sequence[OperationResult] = (),
    manifest: ManifestSnapshot | None = None,
) -> RigRecord:
    """Build the record that describes the machine after this run.

    Args:
        base: Record before this run, if any.
        applied: Results of install-side units.
        removals: Results of uninstall / re-enable / remove units.
        manifest: Source of service types for newly configured services.
    """
    applied_ok = (OperationStatus.APPLIED,)

    components = _merge(
        base.components if base else [],
        _removed(removals, UnitKind.COMPONENT),
        _ids(applied, UnitKind.COMPONENT, *applied_ok),
    )
    conflicts = _merge(
        base.disabled_conflicts if base else [],
        _removed(removals, UnitKind.CONFLICT),
        _ids(applied, UnitKind.CONFLICT, OperationStatus.DISABLED),
    )
    registries = _merge(
        base.registries if base else [],
        set(),
        _ids(applied, UnitKind.REGISTRY, *applied_ok),
    )

    services_removed = _removed(removals, UnitKind.SERVICE)
    services: dict[str, ServiceRecord] = {
        s.name: s for s in (base.services if base else []) if s.name not in services_removed
    }
    for result in applied:
        if result.kind == UnitKind.SERVICE and result.status == OperationStatus.APPLIED:
            spec = manifest.mcp_servers.get(result.component_id) if manifest else None
            kind = spec.type if spec else result.metadata.get("type", "http")
            services[result.component_id] = ServiceRecord(name=result.component_id, type=kind)

    behavioral_removed = _removed(removals, UnitKind.BEHAVIORAL)
    behavioral: dict[str, BehavioralRecord] = {
        b.file: b for b in (base.behavioral if base else []) if b.file not in behavioral_removed
    }
    for result in applied:
        if (
            result.kind == UnitKind.BEHAVIORAL
            and result.status == OperationStatus.APPLIED
            and "file" in result.metadata
        ):
            entry = BehavioralRecord(
                file=result.metadata["file"],
                pointer_file=result.metadata["pointer_file"],
                pointer_tag=result.metadata["pointer_tag"],
            )
            behavioral[entry.file] = entry

    env_profile_path = base.env_profile_path if base else None
    for result in removals:
        if result.kind == UnitKind.ENVIRONMENT and not result.failed:
            env_profile_path = None
    for result in applied:
        if result.kind == UnitKind.ENVIRONMENT and result.status == OperationStatus.APPLIED:
            env_profile_path = result.metadata.get("profile_path", env_profile_path)

    return RigRecord(
        name=name,
        version=version,
        source=source or (base.source if base else ""),
        components=components,
        disabled_conflicts=conflicts,
        services=list(services.values()),
        behavioral=list(behavioral.values()),
        registries=registries,
        env_profile_path=env_profile_path,
    )


def _is_empty(record: RigRecord) -> bool:
    return not (
        record.components
        or record.disabled_conflicts
        or record.services
        or record.behavioral
        or record.env_profile_path
    )


# ── Orchestrator ────────────────────────────────────────────────


class InstallOrchestrator:
    """Drives platform adapters and records what they did.

    Args:
        store: Where RigRecords are read and written.
        adapters: Active platform adapters, in the order they run.
        tool_installer: Handles the tools phase.
        env_writer: Handles the environment phase.
        timeouts: ``timeouts.phase`` bounds every adapter call.
    """

    def __init__(
        self,
        store: StateStore,
        adapters: Sequence[PlatformAdapter],
        *,
        tool_installer: ToolInstaller | None = None,
        env_writer: EnvironmentWriter | None = None,
        timeouts: Timeouts | None = None,
    ):
        self._store = store
        self._adapters = list(adapters)
        self._tools = tool_installer
        self._env = env_writer
        self._timeouts = timeouts or Timeouts()

    @property
    def adapters(self) -> list[PlatformAdapter]:
        return list(self._adapters)

    def _capable(self, phase: Phase) -> list[PlatformAdapter]:
        capability = PHASE_CAPABILITY[phase]
        return [a for a in self._adapters if a.supports(capability)]

    async def _call(
        self,
        adapter: PlatformAdapter,
        phase: Phase,
        invoke: Callable[[PlatformAdapter], Awaitable[list[OperationResult]]],
        planned: Planned,
    ) -> list[OperationResult]:
        """Await one adapter call under the phase timeout.

        A timeout or an exception escaping the adapter keeps the results
        the adapter finished before it stopped and fails every other unit
        the call covers (or the call itself if it covers none).
        """
        timeout = self._timeouts.phase
        finished = adapter.begin_call()
        try:
            return await asyncio.wait_for(invoke(adapter), timeout=timeout)
        except asyncio.TimeoutError:
            reason = f"timed out after {timeout:g}s"
            logger.error("%s: %s", adapter.name, reason)
        except Exception as e:
            # Adapters should never raise
            reason = f"unexpected error: {e}"
            logger.error("Adapter %s raised: %s", adapter.name, e)

        done = {r.component_id for r in finished}
        units = adapter.planned_units(PHASE_CAPABILITY[phase], planned)
        pending = [(kind, unit_id) for kind, unit_id in units if unit_id not in done]
        if not units:
            pending = [(UnitKind.PLATFORM, adapter.name)]
        return [
            *finished,
            *(
                OperationResult.failure(kind, unit_id, reason, adapter=adapter.name)
                for kind, unit_id in pending
            ),
        ]

    async def _run_phase(self, report: OperationReport, phase: Phase, invoke, planned: Planned) -> None:
        """Call ``invoke(adapter)`` for every adapter capable of ``phase``."""
        for adapter in self._capable(phase):
            logger.debug("%s → %s (%d units)", phase.value, adapter.name, len(planned))
            report.add(phase, await self._call(adapter, phase, invoke, planned))

    # ── Install ─────────────────────────────────────────────────

    async def install(
        self,
        manifest: ManifestSnapshot,
        source_dir: Path,
        source: str = "",
        force: bool = False,
        include_optional: bool = False,
    ) -> OperationReport:
        """Full install of ``manifest``, gated by the installed version.

        Raises:
            PersistenceFailure: The resulting record could not be saved.
        """
        existing = self._store.get(manifest.name)
        decision = decide(existing, manifest.version, force)
        report = OperationReport(operation="install", rig=manifest.name, decision=decision)

        if not decision.proceeds:
            logger.info("%s: %s, nothing to do", manifest.name, decision.value)
            return report

        logger.info("Installing %s v%s (%s)", manifest.name, manifest.version, decision.value)
        ordered = topo_sort(manifest.all_components())
        services = manifest.service_names()

        await self._run_phase(
            report,
            Phase.REGISTRIES,
            lambda a: a.add_registries(manifest),
            [(UnitKind.REGISTRY, r.name) for r in manifest.registries],
        )
        await self._run_phase(
            report,
            Phase.COMPONENTS,
            lambda a: a.install_components(manifest, ordered),
            [(UnitKind.COMPONENT, r.id) for r in ordered],
        )
        await self._run_phase(
            report,
            Phase.CONFLICTS,
            lambda a: a.disable_conflicts(manifest, manifest.plugins.conflicts),
            [(UnitKind.CONFLICT, c.id) for c in manifest.plugins.conflicts],
        )
        await self._run_phase(
            report,
            Phase.SERVICES,
            lambda a: a.configure_services(manifest),
            [(UnitKind.SERVICE, n) for n in services],
        )
        if manifest.behavioral is not None:
            await self._run_phase(
                report,
                Phase.BEHAVIORAL,
                lambda a: a.install_behavioral(manifest, source_dir, force),
                [
                    (UnitKind.BEHAVIORAL, key)
                    for key in ("claude-md", "agents-md")
                    if manifest.behavioral.get(key) is not None
                ],
            )

        if self._tools is not None and manifest.tools:
            report.add(Phase.TOOLS, await self._tools.ensure_all(manifest.tools, include_optional))

        removals: list[OperationResult] = []
        if self._env is not None:
            if manifest.environment:
                report.add(Phase.ENVIRONMENT, [self._env.write(manifest.name, manifest.environment)])
            elif existing is not None and existing.env_profile_path:
                removal = self._env.remove(manifest.name, existing.env_profile_path)
                report.add(Phase.ENVIRONMENT, [removal])
                removals.append(removal)

        # A forced re-install keeps what the previous install left behind.
        base = existing if decision is Decision.PROCEED_FORCED else None
        record = assemble_record(
            base,
            manifest.name,
            manifest.version,
            source,
            report.results,
            removals,
            manifest,
        )
        self._store.put(record)
        report.record = record

        await self._run_phase(
            report,
            Phase.VERIFY,
            lambda a: a.verify(manifest),
            [(UnitKind.HEALTH, n) for n in services],
        )

        logger.info(
            "Install of %s finished: %d applied, %d skipped, %d failed",
            manifest.name,
            report.applied,
            report.skipped,
            report.failed,
        )
        return report

    # ── Update ──────────────────────────────────────────────────

    async def update(
        self,
        manifest: ManifestSnapshot,
        source_dir: Path,
        force: bool = False,
    ) -> OperationReport:
        """Apply only what changed since the installed record.

        Behavioral assets are always re-applied, since their content may
        have changed without any identifier changing.

        Raises:
            PersistenceFailure: The resulting record could not be saved.
        """
        report = OperationReport(operation="update", rig=manifest.name)
        existing = self._store.get(manifest.name)
        if existing is None:
            report.note = f"{manifest.name} is not installed"
            return report

        diff = compute_diff(existing, manifest)
        report.diff = diff
        if not diff.has_changes:
            report.note = "already up to date"
            return report

        logger.info(
            "Updating %s %s → %s", manifest.name, existing.version, manifest.version
        )

        new_registries = [r.name for r in manifest.registries if r.name not in existing.registries]
        if new_registries and diff.components_added:
            subset = manifest.with_registries(new_registries)
            await self._run_phase(
                report,
                Phase.REGISTRIES,
                lambda a: a.add_registries(subset),
                [(UnitKind.REGISTRY, n) for n in new_registries],
            )

        if diff.components_added:
            subset = manifest.with_components(diff.components_added)
            ordered = topo_sort(subset.all_components())
            await self._run_phase(
                report,
                Phase.COMPONENTS,
                lambda a: a.install_components(subset, ordered),
                [(UnitKind.COMPONENT, r.id) for r in ordered],
            )

        removals: list[OperationResult] = []

        if diff.components_removed:
            removals.extend(
                await self._collect(
                    report,
                    Phase.COMPONENTS,
                    lambda a: a.uninstall_components(list(diff.components_removed)),
                    [(UnitKind.COMPONENT, i) for i in diff.components_removed],
                )
            )

        if diff.conflicts_added:
            added = manifest.with_conflicts(diff.conflicts_added).plugins.conflicts
            await self._run_phase(
                report,
                Phase.CONFLICTS,
                lambda a: a.disable_conflicts(manifest, added),
                [(UnitKind.CONFLICT, c.id) for c in added],
            )

        if diff.conflicts_removed:
            removals.extend(
                await self._collect(
                    report,
                    Phase.CONFLICTS,
                    lambda a: a.enable_components(list(diff.conflicts_removed)),
                    [(UnitKind.CONFLICT, i) for i in diff.conflicts_removed],
                )
            )

        if diff.services_added:
            subset = manifest.with_services(diff.services_added)
            await self._run_phase(
                report,
                Phase.SERVICES,
                lambda a: a.configure_services(subset),
                [(UnitKind.SERVICE, n) for n in diff.services_added],
            )

        if diff.services_removed:
            removals.extend(
                await self._collect(
                    report,
                    Phase.SERVICES,
                    lambda a: a.remove_services(list(diff.services_removed)),
                    [(UnitKind.SERVICE, n) for n in diff.services_removed],
                )
            )

        if manifest.behavioral is not None:
            await self._run_phase(
                report,
                Phase.BEHAVIORAL,
                lambda a: a.install_behavioral(manifest, source_dir, force),
                [
                    (UnitKind.BEHAVIORAL, key)
                    for key in ("claude-md", "agents-md")
                    if manifest.behavioral.get(key) is not None
                ],
            )

        removal_ids = {id(r) for r in removals}
        applied = [r for r in report.results if id(r) not in removal_ids]
        record = assemble_record(
            existing,
            manifest.name,
            manifest.version,
            existing.source,
            applied,
            removals,
            manifest,
        )
        self._store.put(record)
        report.record = record
        return report

    async def _collect(self, report: OperationReport, phase: Phase, invoke, planned: Planned) -> list[OperationResult]:
        """Like ``_run_phase`` but also return the new results."""
        before = len(report.phases.get(phase, []))
        await self._run_phase(report, phase, invoke, planned)
        return report.phases.get(phase, [])[before:]

    # ── Uninstall ───────────────────────────────────────────────

    async def uninstall(self, name: str, force: bool = False) -> OperationReport:
        """Reverse everything the rig's record says it installed.

        Units whose removal failed stay in the stored record so a later
        uninstall can retry them; the record is deleted only when nothing
        is left.

        Raises:
            PersistenceFailure: The state could not be saved.
        """
        report = OperationReport(operation="uninstall", rig=name)
        record = self._store.get(name)
        if record is None:
            report.note = f"{name} is not installed"
            return report

        logger.info("Uninstalling %s v%s", name, record.version)

        if record.components:
            await self._run_phase(
                report,
                Phase.COMPONENTS,
                lambda a: a.uninstall_components(record.components),
                [(UnitKind.COMPONENT, i) for i in record.components],
            )
        if record.disabled_conflicts:
            await self._run_phase(
                report,
                Phase.CONFLICTS,
                lambda a: a.enable_components(record.disabled_conflicts),
                [(UnitKind.CONFLICT, i) for i in record.disabled_conflicts],
            )
        if record.services:
            names = record.service_names()
            await self._run_phase(
                report,
                Phase.SERVICES,
                lambda a: a.remove_services(names),
                [(UnitKind.SERVICE, n) for n in names],
            )
        if record.behavioral:
            await self._run_phase(
                report,
                Phase.BEHAVIORAL,
                lambda a: a.remove_behavioral(name, record.behavioral, force),
                [(UnitKind.BEHAVIORAL, b.file) for b in record.behavioral],
            )
        if record.env_profile_path and self._env is not None:
            report.add(Phase.ENVIRONMENT, [self._env.remove(name, record.env_profile_path)])

        removals = report.results
        leftover = assemble_record(
            record, record.name, record.version, record.source, [], removals
        )
        # Units no active adapter could handle were never attempted; they go too.
        attempted = {r.component_id for r in removals}
        leftover.components = [c for c in leftover.components if c in attempted]
        leftover.disabled_conflicts = [c for c in leftover.disabled_conflicts if c in attempted]
        leftover.services = [s for s in leftover.services if s.name in attempted]
        leftover.behavioral = [b for b in leftover.behavioral if b.file in attempted]
        if self._env is None:
            leftover.env_profile_path = None

        if _is_empty(leftover):
            self._store.remove(name)
        else:
            logger.warning("%s: some units could not be removed; keeping them in state", name)
            self._store.put(leftover)
            report.record = leftover
        return report
