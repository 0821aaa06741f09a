"""Compound template identity: shared ids, component tags and the assembly cycle guard."""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from typing import Mapping, Sequence

from ..config import PropagationScope
from ..core.naming import NameGenerator
from ..core.volume import WORLD_NAME, Volume

logger = logging.getLogger(__name__)

# Default cap on component-membership passes
MAX_COMPONENT_PASSES = 8


def stable_compound_id(name: str, kind: str) -> str:
    """Deterministic compound id derived from a root's name and type."""
    return f"compound-{name}-{kind}"


def ensure_stable_id(volume: Volume) -> str:
    """Return the volume's compound id, deriving a deterministic one if absent.

    An existing id is returned unchanged so re-exporting a template never
    mints a new identity.
    """
    if volume.compound_id:
        return volume.compound_id
    return stable_compound_id(volume.name, volume.type)


def _children_index(volumes: Sequence[Volume]) -> dict[str, list[str]]:
    children: dict[str, list[str]] = {}
    for volume in volumes:
        children.setdefault(volume.parent_name, []).append(volume.name)
    return children


def descendant_names(volumes: Sequence[Volume], root_name: str) -> list[str]:
    """Names reachable from ``root_name`` via mother_volume, breadth first."""
    children = _children_index(volumes)
    result = []
    seen = {root_name}
    queue = deque([root_name])
    while queue:
        for child in children.get(queue.popleft(), ()):
            if child not in seen:
                seen.add(child)
                result.append(child)
                queue.append(child)
    return result


def propagate(
    volumes: Sequence[Volume],
    root_name: str,
    compound_id: str,
    scope: PropagationScope = PropagationScope.ALL,
) -> tuple[Volume, ...]:
    """Stamp ``compound_id`` on the descendants of ``root_name``.

    Descendants are matched by their current names, so this must run after
    any rename has been applied to the same volume list.

    With ``PropagationScope.BOOLEAN`` only the boolean components directly
    under a union root are stamped.

    Returns:
        The full volume sequence with the stamped copies swapped in
    """
    if scope is PropagationScope.BOOLEAN:
        root = next((v for v in volumes if v.name == root_name), None)
        if root is None or not root.is_union:
            return tuple(volumes)
        targets = {
            v.name for v in volumes
            if v.parent_name == root_name and v.is_boolean_component
        }
    else:
        targets = set(descendant_names(volumes, root_name))

    stamped = []
    for volume in volumes:
        if volume.name in targets and volume.compound_id != compound_id:
            volume = volume.replace(compound_id=compound_id)
        stamped.append(volume)
    if targets:
        logger.debug(f"Propagated compound id {compound_id} to {len(targets)} volumes under '{root_name}'")
    return tuple(stamped)


def inherited_compound_id(
    volume: Volume,
    parent: Volume | None,
    scope: PropagationScope = PropagationScope.ALL,
) -> str | None:
    """Compound id a volume picks up from a newly assigned parent, if any.

    An assembly that already carries an id keeps it: it is a template of
    its own nested inside the parent's.
    """
    if parent is None or parent.is_world or not parent.compound_id:
        return None
    if volume.is_assembly and volume.compound_id:
        return None
    if scope is PropagationScope.BOOLEAN:
        if parent.is_union and volume.is_boolean_component:
            return parent.compound_id
        return None
    return parent.compound_id


@dataclass(frozen=True)
class ParentCheck:
    """Outcome of the assembly cycle guard."""

    mother_volume: str
    warning: str | None = None

    @property
    def rejected(self) -> bool:
        return self.warning is not None


def check_assembly_parent(
    volume: Volume,
    parent: Volume | None,
    compound_id: str | None = None,
) -> ParentCheck:
    """Validate a prospective mother volume for ``volume``.

    An assembly may not be placed inside an assembly of the same compound
    template; such an edge is redirected to World. A self reference is
    redirected the same way.

    Args:
        volume: The volume receiving a new parent
        parent: The prospective parent, None or World for root level
        compound_id: Compound id to compare with; defaults to the volume's own

    Returns:
        A ParentCheck whose ``warning`` is set when the edge was rejected
    """
    if parent is None or parent.is_world:
        return ParentCheck(WORLD_NAME)

    if parent.name == volume.name:
        warning = f"Volume '{volume.name}' cannot be its own mother volume; placing it in World"
        logger.warning(warning)
        return ParentCheck(WORLD_NAME, warning)

    compound_id = compound_id if compound_id is not None else volume.compound_id
    if (
        volume.is_assembly
        and parent.is_assembly
        and compound_id
        and parent.compound_id == compound_id
    ):
        warning = (
            f"Assembly '{volume.name}' cannot be placed inside assembly '{parent.name}' "
            f"of the same compound ({compound_id}); placing it in World"
        )
        logger.warning(warning)
        return ParentCheck(WORLD_NAME, warning)

    return ParentCheck(parent.name)


def assign_component_ids(
    volumes: Sequence[Volume],
    names: NameGenerator,
    context: Mapping[str, Volume] | None = None,
    max_passes: int = MAX_COMPONENT_PASSES,
) -> tuple[Volume, ...]:
    """Tag assembly members that lack a ``_componentId``.

    A volume is a member when its parent is an assembly or is itself a
    member. Membership can depend on a sibling later in the list, so the
    passes repeat until nothing changes or ``max_passes`` is reached.

    Args:
        volumes: The volumes to tag
        names: Source of fresh component ids
        context: Volumes outside ``volumes`` that may act as parents
        max_passes: Iteration cap

    Returns:
        ``volumes`` with new component ids filled in, order preserved
    """
    context = context or {}
    by_name = {volume.name: volume for volume in volumes}
    members: set[str] = set()

    def parent_is_member(volume: Volume) -> bool:
        parent_name = volume.parent_name
        if parent_name in members:
            return True
        parent = by_name.get(parent_name) or context.get(parent_name)
        if parent is None or parent.is_world:
            return False
        if parent.is_assembly:
            return True
        return parent_name not in by_name and parent.component_id is not None

    converged = False
    for _ in range(max_passes):
        changed = False
        for volume in volumes:
            if volume.name not in members and parent_is_member(volume):
                members.add(volume.name)
                changed = True
        if not changed:
            converged = True
            break
    if not converged:
        logger.warning(f"Component membership did not settle after {max_passes} passes; some volumes may be untagged")

    return tuple(
        volume.replace(component_id=names.component_id())
        if volume.name in members and not volume.component_id
        else volume
        for volume in volumes
    )
