"""
Manifest model — the validated, immutable description of one rig.

Loaded from agent-rig.json (or .yaml) by ``core.config.loader``.
Field aliases keep the on-disk format of existing rig repositories
(camelCase and kebab-case keys); Python code uses snake_case names.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

_FROZEN = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")


# ── Components ──────────────────────────────────────────────────


class ComponentRef(BaseModel):
    """A component (plugin) reference: ``name@registry`` plus ordering hints."""

    model_config = _FROZEN

    source: str
    description: str | None = None
    depends: tuple[str, ...] = ()

    @property
    def id(self) -> str:
        return self.source

    @property
    def short_name(self) -> str:
        """``code-review@official`` → ``code-review``."""
        return self.source.split("@", 1)[0]


class ConflictRef(BaseModel):
    """A component that must be disabled for this rig to work."""

    model_config = _FROZEN

    source: str
    reason: str | None = None

    @property
    def id(self) -> str:
        return self.source


class ComponentGroups(BaseModel):
    model_config = _FROZEN

    core: ComponentRef | None = None
    required: tuple[ComponentRef, ...] = ()
    recommended: tuple[ComponentRef, ...] = ()
    infrastructure: tuple[ComponentRef, ...] = ()
    conflicts: tuple[ConflictRef, ...] = ()


# ── Services ────────────────────────────────────────────────────


class HttpService(BaseModel):
    model_config = _FROZEN

    type: Literal["http"]
    url: str
    description: str | None = None
    health_check: str | None = Field(default=None, alias="healthCheck")


class StdioService(BaseModel):
    model_config = _FROZEN

    type: Literal["stdio"]
    command: str
    args: tuple[str, ...] = ()
    description: str | None = None


class SseService(BaseModel):
    model_config = _FROZEN

    type: Literal["sse"]
    url: str
    description: str | None = None


ServiceSpec = Annotated[
    Union[HttpService, StdioService, SseService],
    Field(discriminator="type"),
]


# ── Tools, behavioral assets, platforms ─────────────────────────


class ToolSpec(BaseModel):
    """An external tool installed by shell command if ``check`` fails."""

    model_config = _FROZEN

    name: str
    install: str
    check: str
    optional: bool = False
    description: str | None = None


class BehavioralAsset(BaseModel):
    model_config = _FROZEN

    source: str
    depended_on_by: tuple[str, ...] = Field(default=(), alias="dependedOnBy")


class BehavioralConfig(BaseModel):
    model_config = _FROZEN

    claude_md: BehavioralAsset | None = Field(default=None, alias="claude-md")
    agents_md: BehavioralAsset | None = Field(default=None, alias="agents-md")

    def get(self, key: str) -> BehavioralAsset | None:
        """Look up an asset by its manifest key (``claude-md``, ``agents-md``)."""
        return getattr(self, key.replace("-", "_"), None)


class RegistryRef(BaseModel):
    """A component registry (marketplace) the platform must know about."""

    model_config = _FROZEN

    name: str
    repo: str


class ClaudeCodePlatform(BaseModel):
    model_config = _FROZEN

    marketplaces: tuple[RegistryRef, ...] = ()
    settings: dict[str, object] = Field(default_factory=dict)


class CodexPlatform(BaseModel):
    model_config = _FROZEN

    install_script: str | None = Field(default=None, alias="installScript")
    skills_dir: str | None = Field(default=None, alias="skillsDir")


class Platforms(BaseModel):
    model_config = _FROZEN

    claude_code: ClaudeCodePlatform | None = Field(default=None, alias="claude-code")
    codex: CodexPlatform | None = None


class PostInstall(BaseModel):
    model_config = _FROZEN

    message: str | tuple[str, ...] | None = None

    @property
    def lines(self) -> list[str]:
        if self.message is None:
            return []
        if isinstance(self.message, str):
            return [self.message]
        return list(self.message)


# ── Root ────────────────────────────────────────────────────────


class ManifestSnapshot(BaseModel):
    """Validated, immutable rig description.

    Derived views (``with_components`` etc.) return new snapshots; the
    loaded instance is never mutated.
    """

    model_config = _FROZEN

    # Identity
    name: str = Field(pattern=r"^[a-z0-9-]+$")
    version: str = Field(pattern=r"^\d+\.\d+\.\d+$")
    description: str
    author: str
    license: str | None = None
    repository: str | None = None
    keywords: tuple[str, ...] = ()
    extends: str | None = None

    # Layers
    plugins: ComponentGroups = Field(default_factory=ComponentGroups)
    mcp_servers: dict[str, ServiceSpec] = Field(default_factory=dict, alias="mcpServers")
    tools: tuple[ToolSpec, ...] = ()
    environment: dict[str, str] = Field(default_factory=dict)
    behavioral: BehavioralConfig | None = None
    post_install: PostInstall | None = Field(default=None, alias="postInstall")
    platforms: Platforms = Field(default_factory=Platforms)

    # ── Views ───────────────────────────────────────────────────

    def all_components(self) -> list[ComponentRef]:
        """core + required + recommended + infrastructure, in that order."""
        groups = self.plugins
        refs = [groups.core] if groups.core else []
        refs.extend(groups.required)
        refs.extend(groups.recommended)
        refs.extend(groups.infrastructure)
        return refs

    def component_ids(self) -> list[str]:
        return [ref.id for ref in self.all_components()]

    def conflict_ids(self) -> list[str]:
        return [c.id for c in self.plugins.conflicts]

    def service_names(self) -> list[str]:
        return list(self.mcp_servers)

    @property
    def registries(self) -> tuple[RegistryRef, ...]:
        claude = self.platforms.claude_code
        return claude.marketplaces if claude else ()

    # ── Filtered subsets (incremental updates) ──────────────────

    def with_components(self, ids: Iterable[str]) -> ManifestSnapshot:
        """Keep only the listed components; conflicts are cleared."""
        keep = set(ids)
        groups = self.plugins
        core = groups.core if groups.core and groups.core.id in keep else None
        return self.model_copy(
            update={
                "plugins": ComponentGroups(
                    core=core,
                    required=tuple(r for r in groups.required if r.id in keep),
                    recommended=tuple(r for r in groups.recommended if r.id in keep),
                    infrastructure=tuple(r for r in groups.infrastructure if r.id in keep),
                ),
            }
        )

    def with_conflicts(self, ids: Iterable[str]) -> ManifestSnapshot:
        keep = set(ids)
        return self.model_copy(
            update={
                "plugins": self.plugins.model_copy(
                    update={"conflicts": tuple(c for c in self.plugins.conflicts if c.id in keep)}
                ),
            }
        )

    def with_services(self, names: Iterable[str]) -> ManifestSnapshot:
        keep = set(names)
        return self.model_copy(
            update={"mcp_servers": {k: v for k, v in self.mcp_servers.items() if k in keep}}
        )

    def with_registries(self, names: Iterable[str]) -> ManifestSnapshot:
        keep = set(names)
        claude = self.platforms.claude_code
        if claude is None:
            return self
        return self.model_copy(
            update={
                "platforms": self.platforms.model_copy(
                    update={
                        "claude_code": claude.model_copy(
                            update={"marketplaces": tuple(m for m in claude.marketplaces if m.name in keep)}
                        )
                    }
                ),
            }
        )

    def minimal(self) -> ManifestSnapshot:
        """Core + required only."""
        return self.model_copy(
            update={
                "plugins": self.plugins.model_copy(update={"recommended": (), "infrastructure": ()}),
            }
        )

    def with_infrastructure(self, ids: Iterable[str]) -> ManifestSnapshot:
        """Keep only the selected infrastructure components."""
        keep = set(ids)
        return self.model_copy(
            update={
                "plugins": self.plugins.model_copy(
                    update={
                        "infrastructure": tuple(
                            r for r in self.plugins.infrastructure if r.id in keep
                        )
                    }
                ),
            }
        )
