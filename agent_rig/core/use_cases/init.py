"""
Init use case — scaffold a new agent-rig.json.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path

from agent_rig.core.config.loader import MANIFEST_FILE, ConfigError, parse_manifest

logger = logging.getLogger(__name__)


@dataclass
class InitResult:
    path: Path | None = None
    error: str | None = None


def scaffold_manifest(name: str, version: str, description: str, author: str) -> dict:
    """A minimal, valid manifest with empty layers to fill in."""
    return {
        "name": name,
        "version": version,
        "description": description,
        "author": author,
        "license": "MIT",
        "plugins": {
            "required": [],
            "recommended": [],
            "conflicts": [],
        },
        "mcpServers": {},
        "tools": [],
        "platforms": {
            "claude-code": {
                "marketplaces": [],
            },
        },
    }


def init_manifest(
    directory: Path,
    name: str = "my-rig",
    version: str = "0.1.0",
    description: str = "My agent rig",
    author: str = "",
    overwrite: bool = False,
) -> InitResult:
    """Write a scaffold manifest into ``directory``.

    The values are validated before anything is written.
    """
    path = Path(directory) / MANIFEST_FILE
    if path.exists() and not overwrite:
        return InitResult(path=path, error=f"{path} already exists")

    data = scaffold_manifest(name, version, description, author)
    try:
        parse_manifest(data, str(path))
    except ConfigError as e:
        return InitResult(path=path, error=str(e))

    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")
    logger.info("Created %s", path)
    return InitResult(path=path)
