"""
State store — the persisted map of installed rigs.

State is one JSON document (``{"rigs": {name: RigRecord}}``). Every
mutation re-reads the whole document, changes one entry, and writes the
whole document back atomically (write to temp file, then rename) so a
crash mid-write never leaves a truncated file behind.

Reads fail open: this is advisory bookkeeping, and a missing or corrupt
file simply means "nothing installed". Writes fail closed: if we cannot
record what we did, the next diff would be wrong, so the caller must
stop with an error.
"""

from __future__ import annotations

import json
import logging
import tempfile
from pathlib import Path

from pydantic import ValidationError

from agent_rig.core.errors import PersistenceFailure, StateUnreadable
from agent_rig.core.models.state import RigRecord, StateDocument

logger = logging.getLogger(__name__)


class StateStore:
    """File-backed store of RigRecords, keyed by rig name."""

    def __init__(self, path: Path):
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    # ── Reads ───────────────────────────────────────────────────

    def load(self) -> dict[str, RigRecord]:
        """Return every stored record. Missing or unreadable state → ``{}``."""
        if not self._path.exists():
            logger.debug("No state file at %s", self._path)
            return {}
        try:
            document = self._read_document()
        except StateUnreadable as e:
            logger.warning("%s — starting fresh", e)
            return {}
        return dict(document.rigs)

    def get(self, name: str) -> RigRecord | None:
        return self.load().get(name)

    # ── Mutations ───────────────────────────────────────────────

    def put(self, record: RigRecord) -> None:
        """Insert or overwrite the record for ``record.name``."""
        rigs = self.load()
        rigs[record.name] = record
        self._write_document(StateDocument(rigs=rigs))
        logger.info("Recorded %s v%s in %s", record.name, record.version, self._path)

    def remove(self, name: str) -> None:
        rigs = self.load()
        if rigs.pop(name, None) is None:
            logger.debug("No state for %s — nothing to remove", name)
        self._write_document(StateDocument(rigs=rigs))

    # ── Internals ───────────────────────────────────────────────

    def _read_document(self) -> StateDocument:
        if not self._path.is_file():
            raise StateUnreadable(self._path, "no such file")
        try:
            raw = self._path.read_text(encoding="utf-8")
            return StateDocument.model_validate(json.loads(raw))
        except (OSError, json.JSONDecodeError, ValidationError) as e:
            raise StateUnreadable(self._path, str(e)) from e

    def _write_document(self, document: StateDocument) -> None:
        data = document.model_dump(mode="json", by_alias=True)
        content = json.dumps(data, indent=2, ensure_ascii=False) + "\n"

        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=self._path.parent,
                prefix=".state_",
                suffix=".tmp",
            )
            tmp = Path(tmp_name)
            try:
                with open(fd, "w", encoding="utf-8") as f:
                    f.write(content)
                tmp.replace(self._path)
            except Exception:
                tmp.unlink(missing_ok=True)
                raise
        except OSError as e:
            logger.error("Failed to save state to %s: %s", self._path, e)
            raise PersistenceFailure(self._path, str(e)) from e
        logger.debug("State saved to %s", self._path)
