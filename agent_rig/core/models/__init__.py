"""
Domain models — Pydantic types for agent-rig.

    from agent_rig.core.models import ManifestSnapshot, RigRecord, OperationResult
"""

from agent_rig.core.models.manifest import (
    BehavioralAsset,
    BehavioralConfig,
    ComponentGroups,
    ComponentRef,
    ConflictRef,
    HttpService,
    ManifestSnapshot,
    RegistryRef,
    SseService,
    StdioService,
    ToolSpec,
)
from agent_rig.core.models.result import OperationResult, OperationStatus, UnitKind
from agent_rig.core.models.state import (
    BehavioralRecord,
    RigRecord,
    ServiceRecord,
    StateDocument,
)

__all__ = [
    # manifest.py
    "BehavioralAsset",
    "BehavioralConfig",
    "ComponentGroups",
    "ComponentRef",
    "ConflictRef",
    "HttpService",
    "ManifestSnapshot",
    "RegistryRef",
    "SseService",
    "StdioService",
    "ToolSpec",
    # result.py
    "OperationResult",
    "OperationStatus",
    "UnitKind",
    # state.py
    "BehavioralRecord",
    "RigRecord",
    "ServiceRecord",
    "StateDocument",
]
