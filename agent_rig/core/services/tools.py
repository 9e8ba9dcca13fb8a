"""
External tools — shell-installed binaries a rig depends on.

Each tool has a ``check`` command (exit 0 means present) and an
``install`` command. Optional tools are only installed on request.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from agent_rig.adapters.shell.command import run_shell
from agent_rig.core.config.settings import Timeouts
from agent_rig.core.models.manifest import ToolSpec
from agent_rig.core.models.result import OperationResult, UnitKind

logger = logging.getLogger(__name__)


class ToolInstaller:
    def __init__(self, timeouts: Timeouts | None = None):
        self._timeouts = timeouts or Timeouts()

    async def _present(self, tool: ToolSpec) -> bool:
        return (await run_shell(tool.check, timeout=self._timeouts.tool_check)).ok

    async def ensure(self, tool: ToolSpec, include_optional: bool = False) -> OperationResult:
        """Install ``tool`` unless it is already present."""
        if await self._present(tool):
            return OperationResult.skipped(UnitKind.TOOL, tool.name, "already installed")

        if tool.optional and not include_optional:
            return OperationResult.skipped(
                UnitKind.TOOL, tool.name, f"optional — install manually: {tool.install}"
            )

        logger.info("Installing %s", tool.name)
        res = await run_shell(tool.install, timeout=self._timeouts.tool_install)
        if not res.ok:
            message = res.output if res.return_code is None else f"install command exited with code {res.return_code}"
            return OperationResult.failure(UnitKind.TOOL, tool.name, message)

        if not await self._present(tool):
            return OperationResult.failure(
                UnitKind.TOOL, tool.name, "install command succeeded but tool not found on PATH"
            )
        return OperationResult.applied(UnitKind.TOOL, tool.name, tool.description)

    async def ensure_all(
        self, tools: Sequence[ToolSpec], include_optional: bool = False
    ) -> list[OperationResult]:
        return [await self.ensure(tool, include_optional) for tool in tools]
