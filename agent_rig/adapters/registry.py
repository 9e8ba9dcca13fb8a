"""
Adapter registry — which platform adapters exist and which are active.

The registry is the single point of adapter management: registration,
lookup, platform detection and mock mode. The orchestrator receives the
list of active adapters from here and never constructs one itself.
"""

from __future__ import annotations

import logging

from agent_rig.adapters.base import Platform, PlatformAdapter
from agent_rig.adapters.claude_code import ClaudeCodeAdapter
from agent_rig.adapters.codex import CodexAdapter
from agent_rig.adapters.mock import MockPlatformAdapter
from agent_rig.core.config.settings import Settings

logger = logging.getLogger(__name__)

# Closed mapping from platform to implementation.
ADAPTER_TYPES: dict[Platform, type[PlatformAdapter]] = {
    Platform.CLAUDE_CODE: ClaudeCodeAdapter,
    Platform.CODEX: CodexAdapter,
    Platform.MOCK: MockPlatformAdapter,
}

# Platforms probed on a real run, in phase order.
DEFAULT_PLATFORMS: tuple[Platform, ...] = (Platform.CLAUDE_CODE, Platform.CODEX)


class AdapterRegistry:
    """Central registry of platform adapters.

    Features:
        - Register adapters by platform
        - Mock mode: swap every adapter for a mock that always succeeds
        - Detect which registered platforms are installed
    """

    def __init__(self, mock_mode: bool = False):
        self._adapters: dict[Platform, PlatformAdapter] = {}
        self._mock_mode = mock_mode
        self._mock_adapter: PlatformAdapter | None = None

    def set_mock_mode(self, enabled: bool, mock_adapter: PlatformAdapter | None = None) -> None:
        """Enable or disable mock mode.

        Args:
            enabled: Whether to use mock mode.
            mock_adapter: Optional custom mock adapter. If None, uses default.
        """
        self._mock_mode = enabled
        self._mock_adapter = mock_adapter

    def register(self, adapter: PlatformAdapter) -> None:
        platform = adapter.platform
        if platform in self._adapters:
            logger.warning("Overwriting existing adapter: %s", platform.value)
        self._adapters[platform] = adapter
        logger.debug("Registered adapter: %r", adapter)

    def list_adapters(self) -> list[str]:
        return [p.value for p in self._adapters]

    async def detect_active(self) -> list[PlatformAdapter]:
        """Adapters whose platform is installed, in registration order.

        In mock mode this is just the mock adapter.
        """
        if self._mock_mode:
            return [self._mock_adapter or MockPlatformAdapter()]

        active = []
        for adapter in self._adapters.values():
            if await adapter.detect():
                logger.info("Detected platform: %s", adapter.name)
                active.append(adapter)
            else:
                logger.info("Platform not found: %s", adapter.name)
        return active


def create_adapter(platform: Platform, settings: Settings) -> PlatformAdapter:
    return ADAPTER_TYPES[platform](settings)


def build_registry(settings: Settings, mock_mode: bool = False) -> AdapterRegistry:
    """Registry with every real platform registered."""
    registry = AdapterRegistry(mock_mode=mock_mode)
    for platform in DEFAULT_PLATFORMS:
        registry.register(create_adapter(platform, settings))
    return registry
