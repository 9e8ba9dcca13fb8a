"""
File modification tracker — never silently clobber a user's edits.

For every file we write we remember the hash of what we wrote. Before
the next write we compare three hashes:

    recorded  — what we wrote last time
    current   — what is on disk now
    proposed  — what we are about to write

The write is refused only when the file exists, we have a recorded hash,
the file no longer matches it, and it also doesn't already match the
proposed content. In every other case nothing the user wrote would be
lost, so the write goes ahead.
"""

from __future__ import annotations

import hashlib
import logging
from enum import Enum
from pathlib import Path

from agent_rig.core.errors import ModificationConflict

logger = logging.getLogger(__name__)


class WriteDecision(str, Enum):
    WRITE = "write"
    SKIP_MODIFIED = "skip_modified"


def content_hash(content: str) -> str:
    """SHA-256 hex digest of UTF-8 text."""
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


def _current_hash(path: Path) -> str | None:
    if not path.is_file():
        return None
    return content_hash(path.read_text(encoding="utf-8"))


def check_write(path: Path | str, new_content: str, recorded_hash: str | None) -> WriteDecision:
    """Decide whether ``new_content`` may be written to ``path``."""
    current = _current_hash(Path(path))
    if (
        current is not None
        and recorded_hash is not None
        and current != recorded_hash
        and current != content_hash(new_content)
    ):
        return WriteDecision.SKIP_MODIFIED
    return WriteDecision.WRITE


class FileModificationTracker:
    """Guards writes against a path → hash baseline.

    The ``hashes`` mapping is owned by the caller (usually a rig's
    install sidecar) and updated in place after every approved write.
    """

    def __init__(self, hashes: dict[str, str] | None = None):
        self.hashes: dict[str, str] = hashes if hashes is not None else {}

    def recorded_hash(self, path: Path | str) -> str | None:
        return self.hashes.get(str(path))

    def before_write(self, path: Path | str, new_content: str) -> WriteDecision:
        return check_write(path, new_content, self.recorded_hash(path))

    def after_write(self, path: Path | str, content: str) -> None:
        self.hashes[str(path)] = content_hash(content)

    def is_modified(self, path: Path | str) -> bool:
        """True if the file on disk no longer matches our last write."""
        recorded = self.recorded_hash(path)
        current = _current_hash(Path(path))
        return recorded is not None and current is not None and current != recorded

    def write(self, path: Path | str, content: str, force: bool = False) -> None:
        """Write ``content`` unless that would overwrite a user edit.

        ``force`` bypasses the check; the new hash is recorded either way.

        Raises:
            ModificationConflict: the file was edited since our last write.
        """
        target = Path(path)
        if not force and self.before_write(target, content) is WriteDecision.SKIP_MODIFIED:
            logger.info("Not overwriting locally modified %s", target)
            raise ModificationConflict(target)

        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")
        self.after_write(target, content)
        logger.debug("Wrote %s (%d bytes)", target, len(content))

    def forget(self, path: Path | str) -> None:
        self.hashes.pop(str(path), None)
