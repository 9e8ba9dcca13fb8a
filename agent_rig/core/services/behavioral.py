"""
Behavioral assets — install a rig's instruction files into a project.

Instruction files are not merged into the user's CLAUDE.md / AGENTS.md.
Each one is copied to a namespaced location (``.claude/rigs/<rig>/``) and
the project's root file gets a single tagged pointer line referencing it.

Every copy goes through the FileModificationTracker, whose hash baseline
lives in the rig's install sidecar, so a user's edits to an installed
copy are never silently overwritten.
"""

from __future__ import annotations

import logging
import shutil
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from agent_rig.core.engine.blocks import insert_pointer, pointer_tag, remove_pointer
from agent_rig.core.engine.tracker import FileModificationTracker
from agent_rig.core.errors import ModificationConflict
from agent_rig.core.models.manifest import ManifestSnapshot
from agent_rig.core.models.result import OperationResult, UnitKind
from agent_rig.core.models.state import BehavioralRecord
from agent_rig.core.persistence.sidecar import PointerEntry, load_sidecar, save_sidecar

logger = logging.getLogger(__name__)

RIGS_DIR = Path(".claude") / "rigs"


@dataclass(frozen=True)
class AssetLayout:
    key: str               # manifest key
    filename: str          # root file in the project, and name of the copy
    pointer_verb: str


ASSET_LAYOUTS: tuple[AssetLayout, ...] = (
    AssetLayout(key="claude-md", filename="CLAUDE.md", pointer_verb="Also read and follow"),
    AssetLayout(key="agents-md", filename="AGENTS.md", pointer_verb="Also read"),
)


class BehavioralInstaller:
    """Writes and removes behavioral files under one project root.

    Paths stored in records, pointers and the sidecar are relative to
    the project root, so a project directory can be moved.
    """

    def __init__(self, project_root: Path):
        self.project_root = Path(project_root)

    def rig_dir(self, rig_name: str) -> Path:
        return self.project_root / RIGS_DIR / rig_name

    def _relative(self, path: Path) -> str:
        return path.relative_to(self.project_root).as_posix()

    # ── Install ─────────────────────────────────────────────────

    def install(
        self,
        manifest: ManifestSnapshot,
        source_dir: Path,
        force: bool = False,
    ) -> list[OperationResult]:
        """Copy every declared asset and inject its pointer.

        Args:
            manifest: Rig being installed.
            source_dir: Materialized rig repository the assets come from.
            force: Overwrite copies even if the user edited them.
        """
        if manifest.behavioral is None:
            return []

        rig_name = manifest.name
        rig_dir = self.rig_dir(rig_name)
        sidecar = load_sidecar(rig_dir, rig_name)
        tracker = FileModificationTracker(sidecar.file_hashes)
        tag = pointer_tag(rig_name)
        results: list[OperationResult] = []

        for layout in ASSET_LAYOUTS:
            asset = manifest.behavioral.get(layout.key)
            if asset is None:
                continue

            source_path = Path(source_dir) / asset.source
            if not source_path.is_file():
                results.append(
                    OperationResult.failure(
                        UnitKind.BEHAVIORAL, layout.key, f"Source not found: {asset.source}"
                    )
                )
                continue

            content = source_path.read_text(encoding="utf-8")
            dest = rig_dir / layout.filename
            dest_rel = self._relative(dest)

            try:
                tracker.write(dest, content, force=force)
            except ModificationConflict as e:
                results.append(OperationResult.skipped(UnitKind.BEHAVIORAL, layout.key, str(e)))
                continue

            if dest_rel not in sidecar.files:
                sidecar.files.append(dest_rel)

            root_file = self.project_root / layout.filename
            pointer_line = f"{tag} {layout.pointer_verb}: {dest_rel}"
            root_content = root_file.read_text(encoding="utf-8") if root_file.is_file() else ""
            new_root, inserted = insert_pointer(root_content, tag, pointer_line)
            if inserted:
                root_file.write_text(new_root, encoding="utf-8")
                sidecar.pointers.append(PointerEntry(file=layout.filename, line=pointer_line))
                message = f"{dest_rel} + pointer in {layout.filename}"
            else:
                message = f"{dest_rel} (pointer already in {layout.filename})"

            if asset.depended_on_by:
                message += f"; depended on by: {', '.join(asset.depended_on_by)}"

            results.append(
                OperationResult.applied(
                    UnitKind.BEHAVIORAL,
                    layout.key,
                    message,
                    metadata={
                        "file": dest_rel,
                        "pointer_file": layout.filename,
                        "pointer_tag": tag,
                    },
                )
            )

        # Hashes are keyed by absolute path inside the tracker; the sidecar
        # keeps whatever the tracker holds, including entries for files
        # skipped this run.
        sidecar.version = manifest.version
        save_sidecar(rig_dir, sidecar)
        return results

    # ── Uninstall ───────────────────────────────────────────────

    def uninstall(
        self,
        rig_name: str,
        entries: Sequence[BehavioralRecord],
        force: bool = False,
    ) -> list[OperationResult]:
        """Remove installed copies and their pointers, then the rig directory.

        A copy the user edited since installation is left in place unless
        ``force`` is set; its pointer is still removed.
        """
        rig_dir = self.rig_dir(rig_name)
        tracker = FileModificationTracker(load_sidecar(rig_dir, rig_name).file_hashes)
        results: list[OperationResult] = []
        kept_files = False

        for entry in entries:
            file_path = self.project_root / entry.file
            pointer_path = self.project_root / entry.pointer_file

            if pointer_path.is_file():
                content = pointer_path.read_text(encoding="utf-8")
                new_content, removed = remove_pointer(content, entry.pointer_tag)
                if removed:
                    pointer_path.write_text(new_content, encoding="utf-8")

            if not file_path.is_file():
                results.append(
                    OperationResult.skipped(UnitKind.BEHAVIORAL, entry.file, "already removed")
                )
                continue

            if not force and tracker.is_modified(file_path):
                kept_files = True
                results.append(
                    OperationResult.skipped(
                        UnitKind.BEHAVIORAL,
                        entry.file,
                        str(ModificationConflict(entry.file)),
                        metadata={"kept": True},
                    )
                )
                continue

            file_path.unlink()
            tracker.forget(file_path)
            results.append(
                OperationResult.applied(
                    UnitKind.BEHAVIORAL,
                    entry.file,
                    f"removed (pointer dropped from {entry.pointer_file})",
                )
            )

        if rig_dir.is_dir() and not kept_files:
            shutil.rmtree(rig_dir)
            logger.info("Removed %s", rig_dir)

        return results
