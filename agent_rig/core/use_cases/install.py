"""
Install use case — from a source argument to a recorded install.

Loads the manifest, narrows it (--minimal, infrastructure selection),
gates on what is already installed, detects platforms, shows the plan,
and hands the rest to the InstallOrchestrator. Interactive decisions
are injected as callbacks so the same flow serves the CLI and tests.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from pathlib import Path

from agent_rig.adapters.base import ConflictWarning, PlatformAdapter
from agent_rig.adapters.registry import AdapterRegistry, build_registry
from agent_rig.core.config.loader import ConfigError, load_manifest
from agent_rig.core.config.settings import Settings
from agent_rig.core.config.source import RigSource, materialize, resolve_source
from agent_rig.core.engine.gate import Decision, decide
from agent_rig.core.engine.orchestrator import InstallOrchestrator, OperationReport
from agent_rig.core.models.manifest import ComponentRef, ManifestSnapshot
from agent_rig.core.models.state import RigRecord
from agent_rig.core.persistence.state_store import StateStore
from agent_rig.core.services.environment import EnvironmentWriter
from agent_rig.core.services.tools import ToolInstaller

logger = logging.getLogger(__name__)

NO_PLATFORMS = "No supported platforms detected. Install Claude Code or Codex CLI first."


@dataclass
class InstallPlan:
    """What an install would do, for display before confirmation."""

    manifest: ManifestSnapshot
    platforms: list[str] = field(default_factory=list)
    warnings: list[ConflictWarning] = field(default_factory=list)
    include_optional: bool = False

    @property
    def components(self) -> list[ComponentRef]:
        return self.manifest.all_components()

    @property
    def required_tools(self) -> list:
        return [t for t in self.manifest.tools if not t.optional]

    @property
    def optional_tools(self) -> list:
        return [t for t in self.manifest.tools if t.optional]

    @property
    def behavioral_files(self) -> list[str]:
        behavioral = self.manifest.behavioral
        if behavioral is None:
            return []
        files = []
        if behavioral.claude_md:
            files.append("CLAUDE.md")
        if behavioral.agents_md:
            files.append("AGENTS.md")
        return files

    def to_dict(self) -> dict:
        return {
            "rig": self.manifest.name,
            "version": self.manifest.version,
            "platforms": self.platforms,
            "components": [c.id for c in self.components],
            "conflicts": self.manifest.conflict_ids(),
            "services": self.manifest.service_names(),
            "tools": [t.name for t in self.required_tools],
            "optional_tools": [t.name for t in self.optional_tools],
            "include_optional": self.include_optional,
            "behavioral": self.behavioral_files,
            "environment": list(self.manifest.environment),
            "warnings": [
                {"installed": w.installed, "conflicts_with": w.conflicts_with, "reason": w.reason}
                for w in self.warnings
            ],
        }


@dataclass
class InstallResult:
    """Result of an install request."""

    source: str = ""
    manifest: ManifestSnapshot | None = None
    existing: RigRecord | None = None
    decision: Decision | None = None
    plan: InstallPlan | None = None
    report: OperationReport | None = None
    dry_run: bool = False
    aborted: bool = False
    error: str | None = None

    def to_dict(self) -> dict:
        if self.error:
            return {"error": self.error}
        result: dict = {
            "source": self.source,
            "decision": self.decision.value if self.decision else None,
            "dry_run": self.dry_run,
            "aborted": self.aborted,
        }
        if self.existing:
            result["installed_version"] = self.existing.version
        if self.plan:
            result["plan"] = self.plan.to_dict()
        if self.report:
            result["report"] = self.report.to_dict()
        return result


def _stored_source(text: str, source: RigSource) -> str:
    """Local sources are recorded as absolute paths so updates work from anywhere."""
    if source.is_local:
        return str(Path(source.path).expanduser().resolve())
    return text


async def install_rig_async(
    source_text: str,
    settings: Settings,
    *,
    force: bool = False,
    minimal: bool = False,
    include_optional: bool = False,
    dry_run: bool = False,
    mock_mode: bool = False,
    registry: AdapterRegistry | None = None,
    confirm: Callable[[InstallPlan], bool] | None = None,
    select_infrastructure: Callable[[Sequence[ComponentRef]], Sequence[ComponentRef]] | None = None,
) -> InstallResult:
    """Install a rig from a GitHub repo or local path.

    Args:
        source_text: ``owner/repo``, a GitHub URL, or a directory.
        force: Re-install even if this version is already installed.
        minimal: Install core and required components only.
        include_optional: Install optional tools too.
        dry_run: Build the plan, change nothing.
        mock_mode: Use the mock adapter instead of real platforms.
        registry: Pre-configured adapter registry.
        confirm: Called with the plan; returning False aborts.
        select_infrastructure: Called with the infrastructure components;
            returns the subset to install.

    Raises:
        PersistenceFailure: The install ran but could not be recorded.
    """
    result = InstallResult(dry_run=dry_run)
    source = resolve_source(source_text)
    result.source = _stored_source(source_text, source)

    try:
        async with materialize(source, settings.timeouts.clone) as directory:
            manifest = load_manifest(directory)

            if minimal:
                manifest = manifest.minimal()
            elif select_infrastructure and manifest.plugins.infrastructure and not dry_run:
                chosen = select_infrastructure(manifest.plugins.infrastructure)
                manifest = manifest.with_infrastructure(ref.id for ref in chosen)
            result.manifest = manifest

            store = StateStore(settings.state_path)
            result.existing = store.get(manifest.name)
            if not dry_run:
                result.decision = decide(result.existing, manifest.version, force)
                if not result.decision.proceeds:
                    return result

            registry = registry or build_registry(settings, mock_mode=mock_mode)
            adapters: list[PlatformAdapter] = await registry.detect_active()
            if not adapters and not dry_run:
                result.error = NO_PLATFORMS
                return result

            warnings: list[ConflictWarning] = []
            for adapter in adapters:
                warnings.extend(await adapter.check_conflicts(manifest))

            result.plan = InstallPlan(
                manifest=manifest,
                platforms=[a.name for a in adapters] or registry.list_adapters(),
                warnings=warnings,
                include_optional=include_optional,
            )
            if dry_run:
                return result

            if confirm is not None and not confirm(result.plan):
                result.aborted = True
                return result

            orchestrator = InstallOrchestrator(
                store,
                adapters,
                tool_installer=ToolInstaller(settings.timeouts),
                env_writer=EnvironmentWriter(settings),
                timeouts=settings.timeouts,
            )
            result.report = await orchestrator.install(
                manifest,
                directory,
                source=result.source,
                force=force,
                include_optional=include_optional,
            )
            result.decision = result.report.decision
    except ConfigError as e:
        result.error = str(e)
    return result


def install_rig(source_text: str, settings: Settings, **kwargs) -> InstallResult:
    """Synchronous wrapper around :func:`install_rig_async`."""
    return asyncio.run(install_rig_async(source_text, settings, **kwargs))
