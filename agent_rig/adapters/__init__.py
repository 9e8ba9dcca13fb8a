"""
Platform adapters — everything that touches an agent platform.

    from agent_rig.adapters import AdapterRegistry, PlatformAdapter
"""

from agent_rig.adapters.base import Capability, ConflictWarning, Platform, PlatformAdapter
from agent_rig.adapters.mock import MockPlatformAdapter
from agent_rig.adapters.registry import AdapterRegistry, build_registry

__all__ = [
    "AdapterRegistry",
    "Capability",
    "ConflictWarning",
    "MockPlatformAdapter",
    "Platform",
    "PlatformAdapter",
    "build_registry",
]
