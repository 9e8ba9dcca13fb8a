"""
Dependency ordering for component references.

Dependencies are only reordered, never fetched: a declared dependency
that is not part of the input is ignored. Cycles are broken at the
second encounter of a ref (it is marked visited before its dependencies
are explored) and logged; they are not rejected.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from agent_rig.core.models.manifest import ComponentRef

logger = logging.getLogger(__name__)


def topo_sort(refs: Sequence[ComponentRef]) -> list[ComponentRef]:
    """Order refs so every present dependency precedes its dependents.

    Refs without dependencies keep their relative input order. When the
    same id appears more than once, the first occurrence wins.
    """
    by_id: dict[str, ComponentRef] = {}
    for ref in refs:
        by_id.setdefault(ref.id, ref)

    visited: set[str] = set()
    emitted: set[str] = set()
    ordered: list[ComponentRef] = []

    def visit(ref_id: str, trail: tuple[str, ...]) -> None:
        if ref_id in visited:
            if ref_id not in emitted:
                logger.warning(
                    "Dependency cycle broken at %s (%s)",
                    ref_id,
                    " → ".join((*trail, ref_id)),
                )
            return
        ref = by_id.get(ref_id)
        if ref is None:
            return
        visited.add(ref_id)
        for dep in ref.depends:
            if dep not in by_id:
                logger.debug("%s depends on %s, which is not being installed", ref_id, dep)
                continue
            visit(dep, (*trail, ref_id))
        if ref_id not in emitted:
            emitted.add(ref_id)
            ordered.append(ref)

    for ref in refs:
        visit(ref.id, ())

    return ordered
