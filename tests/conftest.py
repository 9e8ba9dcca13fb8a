"""
Shared test fixtures and configuration.
"""

import copy
import json
from pathlib import Path

import pytest

from agent_rig.adapters.mock import MockPlatformAdapter
from agent_rig.core.config.loader import parse_manifest
from agent_rig.core.config.settings import Settings, Timeouts
from agent_rig.core.models.manifest import ManifestSnapshot
from agent_rig.core.persistence.state_store import StateStore

BASE_MANIFEST = {
    "name": "demo",
    "version": "1.0.0",
    "description": "Demo rig",
    "author": "tester",
    "plugins": {
        "core": {"source": "core@market"},
        "required": [{"source": "a@market"}],
        "recommended": [{"source": "b@market", "depends": ["a@market"]}],
        "conflicts": [{"source": "old@market", "reason": "superseded"}],
    },
    "mcpServers": {
        "ctx": {"type": "http", "url": "http://localhost:9000/mcp"},
    },
    "platforms": {
        "claude-code": {
            "marketplaces": [{"name": "market", "repo": "owner/market"}],
        },
    },
}


@pytest.fixture
def manifest_data() -> dict:
    """A fresh, mutable copy of the base manifest."""
    return copy.deepcopy(BASE_MANIFEST)


@pytest.fixture
def make_manifest():
    """Build a ManifestSnapshot from the base manifest plus top-level overrides."""

    def _make(**overrides) -> ManifestSnapshot:
        data = copy.deepcopy(BASE_MANIFEST)
        data.update(overrides)
        return parse_manifest(data)

    return _make


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings rooted entirely under tmp_path."""
    home = tmp_path / "home"
    project = tmp_path / "project"
    home.mkdir()
    project.mkdir()
    return Settings(
        home=home / ".agent-rig",
        project_root=project,
        user_home=home,
        shell="/bin/bash",
        timeouts=Timeouts(phase=5.0, command=5.0, tool_check=5.0, tool_install=10.0),
    )


@pytest.fixture
def store(settings: Settings) -> StateStore:
    return StateStore(settings.state_path)


@pytest.fixture
def mock_adapter() -> MockPlatformAdapter:
    return MockPlatformAdapter()


@pytest.fixture
def rig_dir(tmp_path: Path) -> Path:
    """A local rig repository with a manifest and a CLAUDE.md asset."""
    path = tmp_path / "rig"
    path.mkdir()
    data = copy.deepcopy(BASE_MANIFEST)
    data["behavioral"] = {"claude-md": {"source": "config/CLAUDE.md"}}
    (path / "agent-rig.json").write_text(json.dumps(data, indent=2))
    (path / "config").mkdir()
    (path / "config" / "CLAUDE.md").write_text("# Demo rules\n")
    return path


@pytest.fixture
def marketplace_rig(tmp_path: Path) -> Path:
    """A rig whose marketplace is a local directory publishing core, a and shiny."""
    market = tmp_path / "market-repo"
    (market / ".claude-plugin").mkdir(parents=True)
    (market / ".claude-plugin" / "marketplace.json").write_text(
        json.dumps(
            {
                "plugins": [
                    {"name": "core", "version": "2.0.0"},
                    {"name": "a", "version": "1.1.0"},
                    {"name": "shiny", "version": "0.3.0", "description": "New and shiny"},
                ]
            }
        )
    )

    path = tmp_path / "upstream-rig"
    path.mkdir()
    data = copy.deepcopy(BASE_MANIFEST)
    data["platforms"]["claude-code"]["marketplaces"] = [
        {"name": "market", "repo": str(market)},
        {"name": "gone", "repo": str(tmp_path / "missing-repo")},
    ]
    data["tools"] = [
        {"name": "sh", "check": "true", "install": "false"},
        {"name": "nope", "check": "false", "install": "false", "optional": True},
    ]
    (path / "agent-rig.json").write_text(json.dumps(data))
    return path
