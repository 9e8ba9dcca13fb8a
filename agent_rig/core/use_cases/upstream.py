"""
Upstream use case — compare a rig's plugin list with its marketplaces.

Clones every marketplace the rig declares, reads the plugin entries it
publishes (``marketplace.json`` indexes and ``.claude-plugin/plugin.json``
files) and reports which rig plugins are published, which published
plugins the rig does not use, and which rig plugins have disappeared.
Also checks whether the rig's external tools are present.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path

from agent_rig.adapters.shell.command import run_shell
from agent_rig.core.config.loader import ConfigError, load_manifest
from agent_rig.core.config.settings import Settings
from agent_rig.core.config.source import materialize, resolve_source
from agent_rig.core.models.manifest import ManifestSnapshot, RegistryRef

logger = logging.getLogger(__name__)


@dataclass
class UpstreamPlugin:
    id: str
    version: str
    description: str = ""


@dataclass
class ToolPresence:
    name: str
    installed: bool
    optional: bool = False


@dataclass
class UpstreamResult:
    """Result of an upstream check."""

    manifest: ManifestSnapshot | None = None
    published: dict[str, UpstreamPlugin] = field(default_factory=dict)
    unreachable: dict[str, str] = field(default_factory=dict)
    tools: list[ToolPresence] = field(default_factory=list)
    error: str | None = None

    @property
    def rig_plugins(self) -> list[str]:
        return self.manifest.component_ids() if self.manifest else []

    @property
    def new_upstream(self) -> list[UpstreamPlugin]:
        """Published plugins the rig does not include."""
        mine = set(self.rig_plugins)
        return [p for p in self.published.values() if p.id not in mine]

    @property
    def removed_upstream(self) -> list[str]:
        """Rig plugins from a scanned marketplace that no longer publishes them."""
        if self.manifest is None:
            return []
        scanned = {r.name for r in self.manifest.registries} - set(self.unreachable)
        removed = []
        for plugin_id in self.rig_plugins:
            _, _, registry = plugin_id.partition("@")
            if registry in scanned and plugin_id not in self.published:
                removed.append(plugin_id)
        return removed

    @property
    def has_changes(self) -> bool:
        return bool(self.new_upstream or self.removed_upstream)

    def to_dict(self) -> dict:
        if self.error:
            return {"error": self.error}
        return {
            "rig": self.manifest.name if self.manifest else "",
            "version": self.manifest.version if self.manifest else None,
            "plugins": [
                {
                    "id": plugin_id,
                    "upstream_version": (
                        self.published[plugin_id].version if plugin_id in self.published else None
                    ),
                }
                for plugin_id in self.rig_plugins
            ],
            "new_upstream": [
                {"id": p.id, "version": p.version, "description": p.description}
                for p in self.new_upstream
            ],
            "removed_upstream": self.removed_upstream,
            "unreachable": self.unreachable,
            "tools": [
                {"name": t.name, "installed": t.installed, "optional": t.optional}
                for t in self.tools
            ],
            "has_changes": self.has_changes,
        }


def _read_entries(path: Path) -> list[dict]:
    """Plugin entries in one index file; unreadable files yield nothing."""
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        logger.debug("Skipping %s: %s", path, e)
        return []
    if isinstance(raw, dict) and isinstance(raw.get("plugins"), list):
        raw = raw["plugins"]
    entries = raw if isinstance(raw, list) else [raw]
    return [e for e in entries if isinstance(e, dict) and e.get("name") and e.get("version")]


def scan_marketplace(directory: Path, registry_name: str) -> dict[str, UpstreamPlugin]:
    """Index entries take precedence over individual plugin manifests."""
    found: dict[str, UpstreamPlugin] = {}
    indexes = [*directory.glob("marketplace.json"), *directory.glob("*/marketplace.json")]
    manifests = [
        *directory.glob(".claude-plugin/plugin.json"),
        *directory.glob("*/.claude-plugin/plugin.json"),
    ]
    for path in [*sorted(indexes), *sorted(manifests)]:
        for entry in _read_entries(path):
            plugin_id = f"{entry['name']}@{registry_name}"
            found.setdefault(
                plugin_id,
                UpstreamPlugin(
                    id=plugin_id,
                    version=str(entry["version"]),
                    description=entry.get("description") or "",
                ),
            )
    return found


async def _fetch_registry(registry: RegistryRef, settings: Settings) -> dict[str, UpstreamPlugin]:
    async with materialize(resolve_source(registry.repo), settings.timeouts.clone) as directory:
        return scan_marketplace(directory, registry.name)


async def check_upstream_async(source_text: str, settings: Settings) -> UpstreamResult:
    """Check a rig's plugins and tools against what upstream publishes.

    A marketplace that cannot be fetched is listed in ``unreachable`` and
    does not stop the others.
    """
    result = UpstreamResult()
    try:
        async with materialize(resolve_source(source_text), settings.timeouts.clone) as directory:
            result.manifest = load_manifest(directory)
    except ConfigError as e:
        result.error = str(e)
        return result

    for registry in result.manifest.registries:
        try:
            plugins = await _fetch_registry(registry, settings)
        except ConfigError as e:
            logger.warning("Could not fetch marketplace %s: %s", registry.name, e)
            result.unreachable[registry.name] = str(e)
            continue
        for plugin_id, plugin in plugins.items():
            result.published.setdefault(plugin_id, plugin)

    for tool in result.manifest.tools:
        check = await run_shell(tool.check, timeout=settings.timeouts.tool_check)
        result.tools.append(ToolPresence(name=tool.name, installed=check.ok, optional=tool.optional))

    return result


def check_upstream(source_text: str, settings: Settings) -> UpstreamResult:
    return asyncio.run(check_upstream_async(source_text, settings))
