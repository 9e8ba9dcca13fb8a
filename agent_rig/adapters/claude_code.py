"""
Claude Code adapter — drives the ``claude`` CLI.

Components are Claude Code plugins (``name@marketplace``), registries
are plugin marketplaces, services are MCP servers configured at user
scope. Behavioral assets are written into the project by the
BehavioralInstaller.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from pathlib import Path

from agent_rig.adapters.base import Capability, ConflictWarning, Platform, PlatformAdapter
from agent_rig.adapters.shell.command import CommandResult, run_command
from agent_rig.core.config.settings import Settings
from agent_rig.core.errors import UnitFailure
from agent_rig.core.models.manifest import (
    ComponentRef,
    ConflictRef,
    HttpService,
    ManifestSnapshot,
    ServiceSpec,
    StdioService,
)
from agent_rig.core.models.result import OperationResult, UnitKind
from agent_rig.core.models.state import BehavioralRecord
from agent_rig.core.services.behavioral import BehavioralInstaller

logger = logging.getLogger(__name__)

CLAUDE = "claude"
HEALTH_CHECK_SECONDS = 2


def _already(result: CommandResult) -> bool:
    """The CLI reports re-adding an existing item as an error mentioning 'already'."""
    return "already" in result.output


def _mcp_add_args(name: str, server: ServiceSpec) -> list[str]:
    if isinstance(server, StdioService):
        return ["mcp", "add", "--scope", "user", name, "--", server.command, *server.args]
    return ["mcp", "add", "--transport", server.type, "--scope", "user", name, server.url]


class ClaudeCodeAdapter(PlatformAdapter):
    """Adapter for the Claude Code CLI.

    Args:
        settings: Provides the project root for behavioral assets and
            the per-command timeout.
    """

    platform = Platform.CLAUDE_CODE
    capabilities = frozenset(Capability)

    def __init__(self, settings: Settings):
        self._timeout = settings.timeouts.command
        self._behavioral = BehavioralInstaller(settings.project_root)

    async def _claude(self, *args: str) -> CommandResult:
        return await run_command(CLAUDE, list(args), timeout=self._timeout)

    async def detect(self) -> bool:
        return (await self._claude("--version")).ok

    async def check_conflicts(self, manifest: ManifestSnapshot) -> list[ConflictWarning]:
        """Warn about installed plugins that are declared or look like conflicts.

        Name overlap with one of the rig's own plugins (either name
        containing the other) is only a heuristic and is reported as such.
        """
        listing = await self._claude("plugin", "list")
        if not listing.ok:
            return []

        installed = {
            line.strip()
            for line in listing.output.splitlines()
            if line.strip() and not line.strip().startswith("─")
        }

        warnings: list[ConflictWarning] = []
        for conflict in manifest.plugins.conflicts:
            short = conflict.source.split("@", 1)[0]
            if short in installed or conflict.source in installed:
                warnings.append(
                    ConflictWarning(
                        installed=conflict.source,
                        conflicts_with="rig declaration",
                        reason=conflict.reason or "Declared as conflicting in rig manifest",
                    )
                )

        rig_names = [ref.short_name for ref in manifest.all_components()]
        skip = set(rig_names) | {c.source.split("@", 1)[0] for c in manifest.plugins.conflicts}
        for name in sorted(installed - skip):
            for rig_name in rig_names:
                if name in rig_name or rig_name in name:
                    warnings.append(
                        ConflictWarning(
                            installed=name,
                            conflicts_with=rig_name,
                            reason="Potential overlap (name similarity)",
                        )
                    )
        return warnings

    # ── Install-side operations ─────────────────────────────────

    async def add_registries(self, manifest: ManifestSnapshot) -> list[OperationResult]:
        results = []
        for registry in manifest.registries:

            async def add(registry=registry) -> OperationResult:
                res = await self._claude("plugin", "marketplace", "add", registry.repo)
                if res.ok or _already(res):
                    return OperationResult.applied(UnitKind.REGISTRY, registry.name, registry.repo)
                raise UnitFailure(registry.name, res.output)

            results.append(await self._attempt(UnitKind.REGISTRY, registry.name, add))
        return results

    async def install_components(
        self, manifest: ManifestSnapshot, refs: Sequence[ComponentRef]
    ) -> list[OperationResult]:
        results = []
        for ref in refs:

            async def install(ref=ref) -> OperationResult:
                res = await self._claude("plugin", "install", ref.source)
                if res.ok or _already(res):
                    return OperationResult.applied(UnitKind.COMPONENT, ref.id, ref.description)
                raise UnitFailure(ref.id, res.output)

            results.append(await self._attempt(UnitKind.COMPONENT, ref.id, install))
        return results

    async def disable_conflicts(
        self, manifest: ManifestSnapshot, conflicts: Sequence[ConflictRef]
    ) -> list[OperationResult]:
        results = []
        for conflict in conflicts:
            res = await self._claude("plugin", "disable", conflict.source)
            if res.ok:
                result = OperationResult.disabled(UnitKind.CONFLICT, conflict.id, conflict.reason)
            else:
                # Usually means the plugin isn't installed, which is fine
                result = OperationResult.skipped(UnitKind.CONFLICT, conflict.id, res.output)
            results.append(self._finish(result))
        return results

    async def configure_services(self, manifest: ManifestSnapshot) -> list[OperationResult]:
        results = []
        for name, server in manifest.mcp_servers.items():

            async def configure(name=name, server=server) -> OperationResult:
                existing = await self._claude("mcp", "get", name)
                if existing.ok and "not found" not in existing.output:
                    return OperationResult.skipped(UnitKind.SERVICE, name, "already configured")
                res = await self._claude(*_mcp_add_args(name, server))
                if not res.ok:
                    raise UnitFailure(name, res.output)
                return OperationResult.applied(
                    UnitKind.SERVICE, name, server.description, metadata={"type": server.type}
                )

            results.append(await self._attempt(UnitKind.SERVICE, name, configure))
        return results

    async def install_behavioral(
        self, manifest: ManifestSnapshot, source_dir: Path, force: bool = False
    ) -> list[OperationResult]:
        results = await asyncio.to_thread(self._behavioral.install, manifest, source_dir, force)
        for result in results:
            self._finish(result)
        return results

    async def verify(self, manifest: ManifestSnapshot) -> list[OperationResult]:
        results = []
        for name, server in manifest.mcp_servers.items():
            if isinstance(server, HttpService) and server.health_check:
                res = await run_command(
                    "curl",
                    ["-s", "--max-time", str(HEALTH_CHECK_SECONDS), server.health_check],
                    timeout=self._timeout,
                )
                result = (
                    OperationResult.applied(UnitKind.HEALTH, name, "healthy")
                    if res.ok
                    else OperationResult.failure(UnitKind.HEALTH, name, "not responding")
                )
            else:
                result = OperationResult.skipped(UnitKind.HEALTH, name, "no health check configured")
            results.append(self._finish(result))
        return results

    # ── Reverse operations ──────────────────────────────────────

    async def uninstall_components(self, ids: Sequence[str]) -> list[OperationResult]:
        results = []
        for component_id in ids:
            res = await self._claude("plugin", "uninstall", component_id)
            result = (
                OperationResult.applied(UnitKind.COMPONENT, component_id, "uninstalled")
                if res.ok
                else OperationResult.failure(UnitKind.COMPONENT, component_id, res.output)
            )
            results.append(self._finish(result))
        return results

    async def enable_components(self, ids: Sequence[str]) -> list[OperationResult]:
        results = []
        for component_id in ids:
            res = await self._claude("plugin", "enable", component_id)
            if res.ok:
                result = OperationResult.applied(UnitKind.CONFLICT, component_id, "re-enabled")
            else:
                # Uninstalled by the user in the meantime; nothing to restore
                result = OperationResult.skipped(UnitKind.CONFLICT, component_id, res.output)
            results.append(self._finish(result))
        return results

    async def remove_services(self, names: Sequence[str]) -> list[OperationResult]:
        results = []
        for name in names:
            res = await self._claude("mcp", "remove", "--scope", "user", name)
            result = (
                OperationResult.applied(UnitKind.SERVICE, name, "removed")
                if res.ok
                else OperationResult.failure(UnitKind.SERVICE, name, res.output)
            )
            results.append(self._finish(result))
        return results

    async def remove_behavioral(
        self, rig_name: str, entries: Sequence[BehavioralRecord], force: bool = False
    ) -> list[OperationResult]:
        results = await asyncio.to_thread(self._behavioral.uninstall, rig_name, entries, force)
        for result in results:
            self._finish(result)
        return results
