"""
Diff engine — what changed between an installed rig and its latest manifest.

Pure: no I/O, no clock, no randomness. Identical inputs always produce an
identical Diff. Version change detection is raw string inequality; no
semantic-version parsing happens here.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from agent_rig.core.models.manifest import ManifestSnapshot
from agent_rig.core.models.state import RigRecord


@dataclass(frozen=True)
class VersionChange:
    from_version: str
    to_version: str


@dataclass(frozen=True)
class RigDiff:
    """Delta between a RigRecord and a ManifestSnapshot."""

    version_change: VersionChange | None = None
    components_added: tuple[str, ...] = ()
    components_removed: tuple[str, ...] = ()
    conflicts_added: tuple[str, ...] = ()
    conflicts_removed: tuple[str, ...] = ()
    services_added: tuple[str, ...] = ()
    services_removed: tuple[str, ...] = ()

    @property
    def has_changes(self) -> bool:
        return self.version_change is not None or any(
            (
                self.components_added,
                self.components_removed,
                self.conflicts_added,
                self.conflicts_removed,
                self.services_added,
                self.services_removed,
            )
        )

    def to_dict(self) -> dict:
        return {
            "version_change": (
                {"from": self.version_change.from_version, "to": self.version_change.to_version}
                if self.version_change
                else None
            ),
            "components_added": list(self.components_added),
            "components_removed": list(self.components_removed),
            "conflicts_added": list(self.conflicts_added),
            "conflicts_removed": list(self.conflicts_removed),
            "services_added": list(self.services_added),
            "services_removed": list(self.services_removed),
            "has_changes": self.has_changes,
        }


def _set_delta(new: Iterable[str], old: Iterable[str]) -> tuple[tuple[str, ...], tuple[str, ...]]:
    """(added, removed), each in first-seen order of its own side."""
    new_ids = list(dict.fromkeys(new))
    old_ids = list(dict.fromkeys(old))
    new_set, old_set = set(new_ids), set(old_ids)
    added = tuple(i for i in new_ids if i not in old_set)
    removed = tuple(i for i in old_ids if i not in new_set)
    return added, removed


def compute_diff(record: RigRecord, manifest: ManifestSnapshot) -> RigDiff:
    """Compute what applying ``manifest`` would change relative to ``record``."""
    version_change = (
        None
        if record.version == manifest.version
        else VersionChange(from_version=record.version, to_version=manifest.version)
    )

    components_added, components_removed = _set_delta(manifest.component_ids(), record.components)
    conflicts_added, conflicts_removed = _set_delta(manifest.conflict_ids(), record.disabled_conflicts)
    services_added, services_removed = _set_delta(manifest.service_names(), record.service_names())

    return RigDiff(
        version_change=version_change,
        components_added=components_added,
        components_removed=components_removed,
        conflicts_added=conflicts_added,
        conflicts_removed=conflicts_removed,
        services_added=services_added,
        services_removed=services_removed,
    )
