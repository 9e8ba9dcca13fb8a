"""
Idempotency gate — evaluated once, before any side effect of an install.
"""

from __future__ import annotations

from enum import Enum

from agent_rig.core.models.state import RigRecord


class Decision(str, Enum):
    PROCEED_FRESH = "proceed_fresh"
    NOOP_SAME_VERSION = "noop_same_version"
    SUGGEST_UPDATE = "suggest_update"
    PROCEED_FORCED = "proceed_forced"

    @property
    def proceeds(self) -> bool:
        """Whether a full install may run."""
        return self in (Decision.PROCEED_FRESH, Decision.PROCEED_FORCED)


def decide(existing: RigRecord | None, requested_version: str, force: bool) -> Decision:
    """Decide what an install request should do.

    A differing version is never installed over the top: the caller is
    sent to the incremental update path instead, unless ``force`` is set.
    """
    if existing is None:
        return Decision.PROCEED_FRESH
    if force:
        return Decision.PROCEED_FORCED
    if existing.version == requested_version:
        return Decision.NOOP_SAME_VERSION
    return Decision.SUGGEST_UPDATE
