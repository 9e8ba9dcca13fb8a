"""
Uninstall use case — reverse everything a rig's record says it installed.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass

from agent_rig.adapters.registry import AdapterRegistry, build_registry
from agent_rig.core.config.settings import Settings
from agent_rig.core.engine.orchestrator import InstallOrchestrator, OperationReport
from agent_rig.core.models.state import RigRecord
from agent_rig.core.persistence.state_store import StateStore
from agent_rig.core.services.environment import EnvironmentWriter
from agent_rig.core.use_cases.install import NO_PLATFORMS
from agent_rig.core.use_cases.update import not_installed

logger = logging.getLogger(__name__)


@dataclass
class UninstallResult:
    record: RigRecord | None = None
    report: OperationReport | None = None
    aborted: bool = False
    error: str | None = None

    @property
    def complete(self) -> bool:
        """Whether the rig is gone from state."""
        return self.report is not None and self.report.record is None

    def to_dict(self) -> dict:
        if self.error:
            return {"error": self.error}
        result: dict = {
            "rig": self.record.name if self.record else "",
            "aborted": self.aborted,
            "complete": self.complete,
        }
        if self.report:
            result["report"] = self.report.to_dict()
        return result


async def uninstall_rig_async(
    name: str,
    settings: Settings,
    *,
    force: bool = False,
    mock_mode: bool = False,
    registry: AdapterRegistry | None = None,
    confirm: Callable[[RigRecord], bool] | None = None,
) -> UninstallResult:
    """Uninstall ``name``.

    Args:
        force: Also delete behavioral files the user has edited.

    Raises:
        PersistenceFailure: State could not be updated.
    """
    result = UninstallResult()
    store = StateStore(settings.state_path)
    record = store.get(name)
    if record is None:
        result.error = not_installed(name)
        return result
    result.record = record

    registry = registry or build_registry(settings, mock_mode=mock_mode)
    adapters = await registry.detect_active()
    if not adapters:
        result.error = NO_PLATFORMS
        return result

    if confirm is not None and not confirm(record):
        result.aborted = True
        return result

    orchestrator = InstallOrchestrator(
        store,
        adapters,
        env_writer=EnvironmentWriter(settings),
        timeouts=settings.timeouts,
    )
    result.report = await orchestrator.uninstall(name, force=force)
    return result


def uninstall_rig(name: str, settings: Settings, **kwargs) -> UninstallResult:
    """Synchronous wrapper around :func:`uninstall_rig_async`."""
    return asyncio.run(uninstall_rig_async(name, settings, **kwargs))
