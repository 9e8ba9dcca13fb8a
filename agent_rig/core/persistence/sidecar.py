"""
Behavioral install sidecar — per-rig record of written instruction files.

Stored as ``<project>/.claude/rigs/<rig>/install-manifest.json``. Besides
the installed files and injected pointer lines it carries the
path → content-hash map the FileModificationTracker uses to tell our own
writes apart from user edits.
"""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError

logger = logging.getLogger(__name__)

SIDECAR_FILE = "install-manifest.json"


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(UTC).isoformat()


class PointerEntry(BaseModel):
    file: str
    line: str


class InstallSidecar(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    rig: str
    version: str = ""
    installed_at: str = Field(default_factory=_now_iso, alias="installedAt")
    files: list[str] = Field(default_factory=list)
    pointers: list[PointerEntry] = Field(default_factory=list)
    file_hashes: dict[str, str] = Field(default_factory=dict, alias="fileHashes")


def sidecar_path(rig_dir: Path) -> Path:
    return rig_dir / SIDECAR_FILE


def load_sidecar(rig_dir: Path, rig_name: str) -> InstallSidecar:
    """Load the sidecar, or an empty one if missing or unreadable."""
    path = sidecar_path(rig_dir)
    if not path.is_file():
        return InstallSidecar(rig=rig_name)
    try:
        return InstallSidecar.model_validate(json.loads(path.read_text(encoding="utf-8")))
    except (OSError, json.JSONDecodeError, ValidationError) as e:
        logger.warning("Ignoring unreadable sidecar %s: %s", path, e)
        return InstallSidecar(rig=rig_name)


def save_sidecar(rig_dir: Path, sidecar: InstallSidecar) -> None:
    rig_dir.mkdir(parents=True, exist_ok=True)
    path = sidecar_path(rig_dir)
    data = sidecar.model_dump(mode="json", by_alias=True)
    path.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")
    logger.debug("Sidecar saved to %s", path)
