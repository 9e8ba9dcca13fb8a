"""
Update use case — re-fetch an installed rig and apply only what changed.

Also hosts ``check_outdated``, which computes the same diff for every
installed rig without applying anything.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field

from agent_rig.adapters.registry import AdapterRegistry, build_registry
from agent_rig.core.config.loader import ConfigError, load_manifest
from agent_rig.core.config.settings import Settings
from agent_rig.core.config.source import materialize, resolve_source
from agent_rig.core.engine.diff import RigDiff, compute_diff
from agent_rig.core.engine.orchestrator import InstallOrchestrator, OperationReport
from agent_rig.core.models.manifest import ManifestSnapshot
from agent_rig.core.models.state import RigRecord
from agent_rig.core.persistence.state_store import StateStore
from agent_rig.core.services.environment import EnvironmentWriter
from agent_rig.core.use_cases.install import NO_PLATFORMS

logger = logging.getLogger(__name__)


def not_installed(name: str) -> str:
    return f'Rig "{name}" is not installed. Run \'agent-rig status\' to see installed rigs.'


@dataclass
class UpdateResult:
    """Result of an update request."""

    record: RigRecord | None = None
    manifest: ManifestSnapshot | None = None
    diff: RigDiff | None = None
    report: OperationReport | None = None
    dry_run: bool = False
    aborted: bool = False
    error: str | None = None

    @property
    def up_to_date(self) -> bool:
        return self.diff is not None and not self.diff.has_changes

    def to_dict(self) -> dict:
        if self.error:
            return {"error": self.error}
        result: dict = {
            "rig": self.record.name if self.record else "",
            "installed_version": self.record.version if self.record else None,
            "latest_version": self.manifest.version if self.manifest else None,
            "up_to_date": self.up_to_date,
            "dry_run": self.dry_run,
            "aborted": self.aborted,
            "diff": self.diff.to_dict() if self.diff else None,
        }
        if self.report:
            result["report"] = self.report.to_dict()
        return result


async def update_rig_async(
    name: str,
    settings: Settings,
    *,
    dry_run: bool = False,
    force: bool = False,
    mock_mode: bool = False,
    registry: AdapterRegistry | None = None,
    confirm: Callable[[RigDiff], bool] | None = None,
) -> UpdateResult:
    """Update an installed rig from the source it was installed from.

    Raises:
        PersistenceFailure: The update ran but could not be recorded.
    """
    result = UpdateResult(dry_run=dry_run)
    store = StateStore(settings.state_path)
    record = store.get(name)
    if record is None:
        result.error = not_installed(name)
        return result
    result.record = record

    try:
        async with materialize(resolve_source(record.source), settings.timeouts.clone) as directory:
            manifest = load_manifest(directory)
            result.manifest = manifest
            result.diff = compute_diff(record, manifest)

            if result.up_to_date or dry_run:
                return result

            registry = registry or build_registry(settings, mock_mode=mock_mode)
            adapters = await registry.detect_active()
            if not adapters:
                result.error = NO_PLATFORMS
                return result

            if confirm is not None and not confirm(result.diff):
                result.aborted = True
                return result

            orchestrator = InstallOrchestrator(
                store,
                adapters,
                env_writer=EnvironmentWriter(settings),
                timeouts=settings.timeouts,
            )
            result.report = await orchestrator.update(manifest, directory, force=force)
    except ConfigError as e:
        result.error = str(e)
    return result


def update_rig(name: str, settings: Settings, **kwargs) -> UpdateResult:
    """Synchronous wrapper around :func:`update_rig_async`."""
    return asyncio.run(update_rig_async(name, settings, **kwargs))


# ── Outdated ────────────────────────────────────────────────────


@dataclass
class OutdatedEntry:
    name: str
    installed_version: str
    latest_version: str | None = None
    diff: RigDiff | None = None
    error: str | None = None

    @property
    def outdated(self) -> bool:
        return self.diff is not None and self.diff.has_changes

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "installed_version": self.installed_version,
            "latest_version": self.latest_version,
            "outdated": self.outdated,
            "diff": self.diff.to_dict() if self.diff else None,
            "error": self.error,
        }


@dataclass
class OutdatedResult:
    entries: list[OutdatedEntry] = field(default_factory=list)
    error: str | None = None

    def to_dict(self) -> dict:
        if self.error:
            return {"error": self.error}
        return {"rigs": [e.to_dict() for e in self.entries]}


async def check_outdated_async(settings: Settings, name: str | None = None) -> OutdatedResult:
    """Diff installed rigs against their sources. A failing source only affects its own entry."""
    result = OutdatedResult()
    rigs = StateStore(settings.state_path).load()
    if name is not None:
        if name not in rigs:
            result.error = not_installed(name)
            return result
        rigs = {name: rigs[name]}

    for record in rigs.values():
        entry = OutdatedEntry(name=record.name, installed_version=record.version)
        try:
            async with materialize(resolve_source(record.source), settings.timeouts.clone) as directory:
                manifest = load_manifest(directory)
        except ConfigError as e:
            logger.warning("Cannot check %s: %s", record.name, e)
            entry.error = str(e)
        else:
            entry.latest_version = manifest.version
            entry.diff = compute_diff(record, manifest)
        result.entries.append(entry)
    return result


def check_outdated(settings: Settings, name: str | None = None) -> OutdatedResult:
    return asyncio.run(check_outdated_async(settings, name))
