"""
Manifest loader — reads agent-rig.json (or .yaml) into a ManifestSnapshot.

This is the only entry point for loading a rig manifest. It reads
JSON or YAML, validates against the Pydantic schema, and returns an
immutable snapshot. Every problem is reported as a ConfigError before
any side effect happens.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

import yaml
from pydantic import ValidationError

from agent_rig.core.errors import AgentRigError
from agent_rig.core.models.manifest import ManifestSnapshot

logger = logging.getLogger(__name__)

MANIFEST_FILE = "agent-rig.json"
# Searched in this order
MANIFEST_FILES = (MANIFEST_FILE, "agent-rig.yaml", "agent-rig.yml")


class ConfigError(AgentRigError):
    """Raised when a rig manifest or source is missing or invalid."""


def find_manifest(directory: Path) -> Path | None:
    """Return the first manifest file present in ``directory``."""
    for name in MANIFEST_FILES:
        candidate = Path(directory) / name
        if candidate.is_file():
            return candidate
    return None


def format_validation_error(error: ValidationError) -> str:
    """One ``path: message`` line per issue."""
    lines = []
    for issue in error.errors():
        path = ".".join(str(part) for part in issue["loc"]) or "(root)"
        lines.append(f"  {path}: {issue['msg']}")
    return "\n".join(lines)


def parse_manifest(data: object, origin: str = "<manifest>") -> ManifestSnapshot:
    """Validate already-decoded manifest data."""
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a mapping in {origin}, got {type(data).__name__}")
    try:
        return ManifestSnapshot.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Manifest validation failed:\n{format_validation_error(e)}") from e


def load_manifest(directory: Path) -> ManifestSnapshot:
    """Load and validate the rig manifest in ``directory``.

    Raises:
        ConfigError: If no manifest exists or it is invalid.
    """
    path = find_manifest(directory)
    if path is None:
        raise ConfigError(f"{MANIFEST_FILE} not found at {Path(directory) / MANIFEST_FILE}")

    logger.debug("Loading manifest from %s", path)

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        if path.suffix == ".json":
            data = json.loads(raw)
        else:
            data = yaml.safe_load(raw)
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid JSON in {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    manifest = parse_manifest(data, str(path))
    logger.info(
        "Loaded rig '%s' v%s with %d components",
        manifest.name,
        manifest.version,
        len(manifest.all_components()),
    )
    return manifest
