"""
OperationResult — the outcome of one attempted unit of work.

This is the I/O contract between the orchestrator and platform
adapters: adapters return results, never exceptions. Exactly one
result exists per attempted unit.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class OperationStatus(str, Enum):
    APPLIED = "applied"
    SKIPPED = "skipped"
    FAILED = "failed"
    DISABLED = "disabled"


class UnitKind(str, Enum):
    """What a result is about. Determines where it lands in a RigRecord."""

    REGISTRY = "registry"
    COMPONENT = "component"
    CONFLICT = "conflict"
    SERVICE = "service"
    BEHAVIORAL = "behavioral"
    TOOL = "tool"
    ENVIRONMENT = "environment"
    HEALTH = "health"
    PLATFORM = "platform"


class OperationResult(BaseModel):
    """Result of one unit: a component install, a service config, a file write..."""

    component_id: str
    kind: UnitKind
    status: OperationStatus
    message: str | None = None
    adapter: str = ""
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def label(self) -> str:
        """``component:foo@bar`` — how the unit is shown to users."""
        return f"{self.kind.value}:{self.component_id}"

    @property
    def recorded(self) -> bool:
        """Whether this result may contribute to a RigRecord."""
        return self.status in (OperationStatus.APPLIED, OperationStatus.DISABLED)

    @property
    def failed(self) -> bool:
        return self.status == OperationStatus.FAILED

    @classmethod
    def applied(cls, kind: UnitKind, component_id: str, message: str | None = None, **kwargs: Any) -> OperationResult:
        return cls(component_id=component_id, kind=kind, status=OperationStatus.APPLIED, message=message, **kwargs)

    @classmethod
    def skipped(cls, kind: UnitKind, component_id: str, message: str | None = None, **kwargs: Any) -> OperationResult:
        return cls(component_id=component_id, kind=kind, status=OperationStatus.SKIPPED, message=message, **kwargs)

    @classmethod
    def failure(cls, kind: UnitKind, component_id: str, message: str | None = None, **kwargs: Any) -> OperationResult:
        return cls(component_id=component_id, kind=kind, status=OperationStatus.FAILED, message=message, **kwargs)

    @classmethod
    def disabled(cls, kind: UnitKind, component_id: str, message: str | None = None, **kwargs: Any) -> OperationResult:
        return cls(component_id=component_id, kind=kind, status=OperationStatus.DISABLED, message=message, **kwargs)
