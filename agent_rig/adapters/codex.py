"""
Codex adapter — runs a rig's Codex install script.

Codex has no plugin, MCP or instruction-file management of its own, so
this adapter only takes part in the component phase (the install script
stands in for all components) and in verification.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from agent_rig.adapters.base import Capability, Platform, PlatformAdapter
from agent_rig.adapters.shell.command import run_command
from agent_rig.core.config.settings import Settings
from agent_rig.core.models.manifest import ComponentRef, ManifestSnapshot
from agent_rig.core.models.result import OperationResult, UnitKind

logger = logging.getLogger(__name__)

CODEX = "codex"
INSTALL_SCRIPT_UNIT = "codex-install-script"
CLI_UNIT = "codex-cli"
DETECT_TIMEOUT = 5.0
INSTALL_SCRIPT_TIMEOUT = 60.0


class CodexAdapter(PlatformAdapter):
    platform = Platform.CODEX
    capabilities = frozenset({Capability.COMPONENTS, Capability.VERIFY})

    def __init__(self, settings: Settings):
        self._detect_timeout = min(DETECT_TIMEOUT, settings.timeouts.command)

    async def detect(self) -> bool:
        return (await run_command(CODEX, ["--version"], timeout=self._detect_timeout)).ok

    def planned_units(
        self, capability: Capability, planned: Sequence[tuple[UnitKind, str]]
    ) -> list[tuple[UnitKind, str]]:
        # Codex never handles individual plugins or services.
        if capability is Capability.COMPONENTS:
            return [(UnitKind.PLATFORM, INSTALL_SCRIPT_UNIT)]
        return [(UnitKind.PLATFORM, CLI_UNIT)]

    async def install_components(
        self, manifest: ManifestSnapshot, refs: Sequence[ComponentRef]
    ) -> list[OperationResult]:
        config = manifest.platforms.codex
        if config is None:
            result = OperationResult.skipped(UnitKind.PLATFORM, "codex-config", "No codex platform config")
        elif not config.install_script:
            return []
        else:
            res = await run_command(
                "bash", [config.install_script, "install"], timeout=INSTALL_SCRIPT_TIMEOUT
            )
            result = (
                OperationResult.applied(UnitKind.PLATFORM, INSTALL_SCRIPT_UNIT, config.install_script)
                if res.ok
                else OperationResult.failure(UnitKind.PLATFORM, INSTALL_SCRIPT_UNIT, res.output)
            )
        return [self._finish(result)]

    async def verify(self, manifest: ManifestSnapshot) -> list[OperationResult]:
        ok = await self.detect()
        result = (
            OperationResult.applied(UnitKind.PLATFORM, CLI_UNIT)
            if ok
            else OperationResult.failure(UnitKind.PLATFORM, CLI_UNIT, "codex not found")
        )
        return [self._finish(result)]
