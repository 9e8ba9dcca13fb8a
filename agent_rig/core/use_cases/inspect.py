"""
Inspect and validate use cases — read a manifest without installing it.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from pathlib import Path

from agent_rig.core.config.loader import ConfigError, find_manifest, load_manifest
from agent_rig.core.config.settings import Settings
from agent_rig.core.config.source import materialize, resolve_source
from agent_rig.core.models.manifest import ManifestSnapshot


@dataclass
class InspectResult:
    """Result of loading a manifest for review."""

    source: str = ""
    manifest: ManifestSnapshot | None = None
    manifest_path: Path | None = None
    error: str | None = None

    @property
    def valid(self) -> bool:
        return self.manifest is not None and self.error is None

    def to_dict(self) -> dict:
        if self.error:
            return {"valid": False, "error": self.error}
        assert self.manifest is not None
        return self.manifest.model_dump(mode="json", by_alias=True, exclude_none=True)


async def inspect_rig_async(source_text: str, settings: Settings) -> InspectResult:
    """Fetch a rig (cloning if needed) and load its manifest."""
    result = InspectResult(source=source_text)
    try:
        async with materialize(resolve_source(source_text), settings.timeouts.clone) as directory:
            result.manifest = load_manifest(directory)
    except ConfigError as e:
        result.error = str(e)
    return result


def inspect_rig(source_text: str, settings: Settings) -> InspectResult:
    return asyncio.run(inspect_rig_async(source_text, settings))


def validate_manifest(directory: Path) -> InspectResult:
    """Validate the manifest in a local directory."""
    result = InspectResult(source=str(directory), manifest_path=find_manifest(directory))
    try:
        result.manifest = load_manifest(directory)
    except ConfigError as e:
        result.error = str(e)
    return result
