"""Add, update and remove operations with their compound-identity side effects."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Mapping

from .compound.identity import (
    check_assembly_parent,
    inherited_compound_id,
    propagate,
)
from .config import EditorConfig
from .core.graph import VolumeGraph
from .core.naming import NameGenerator, display_name
from .core.volume import WORLD_NAME, Volume
from .errors import FormatError

logger = logging.getLogger(__name__)

# Placeholder labels the editor uses before a volume gets a real one
_PLACEHOLDER_PREFIX = "New"


@dataclass
class UpdateOutcome:
    """Result of :func:`update_volume`."""

    graph: VolumeGraph
    volume: Volume
    warnings: list[str] = field(default_factory=list)


def _is_placeholder(label: Any, kind: str) -> bool:
    return not label or label == f"{_PLACEHOLDER_PREFIX}{kind[:1].upper()}{kind[1:]}"


def _is_member_parent(parent: Volume | None) -> bool:
    return parent is not None and not parent.is_world and (parent.is_assembly or parent.component_id is not None)


def add_volume(
    graph: VolumeGraph,
    record: Mapping[str, Any],
    names: NameGenerator | None = None,
    config: EditorConfig | None = None,
    keep_name: bool = False,
) -> tuple[VolumeGraph, Volume]:
    """Add a new volume built from an editable record.

    The volume always gets a fresh ``<type>_<ms>_<token>`` name unless
    ``keep_name`` is set and the record's name is free. It gets a
    ``<Type>_<n>`` display name when the record has none. A new assembly is
    its own template. Other volumes inherit the parent's compound id.

    Returns:
        The new graph and the volume as stored

    Raises:
        FormatError: If the record is invalid
    """
    names = names or NameGenerator()
    config = config or EditorConfig()
    if not isinstance(record, Mapping):
        raise FormatError("Volume record must be an object")
    kind = record.get("type")
    if not isinstance(kind, str) or not kind:
        raise FormatError("Volume record is missing a type")

    requested = record.get("name")
    if keep_name and isinstance(requested, str) and requested and requested not in graph:
        name = requested
    else:
        name = names.unique_name(kind, graph.names())

    volume = Volume.from_record({**record, "name": name})
    if _is_placeholder(volume.display_name, kind):
        volume = volume.replace(display_name=display_name(kind, graph.volumes))

    parent = graph.find_by_name(volume.parent_name)
    if parent is None:
        logger.warning(f"Mother volume '{volume.parent_name}' of new volume '{name}' not found; placing it in World")
        parent = graph.world

    if volume.is_assembly and not volume.compound_id:
        volume = volume.replace(compound_id=name)
    inherited = inherited_compound_id(volume, parent, config.propagation_scope)
    if inherited:
        volume = volume.replace(compound_id=inherited)

    check = check_assembly_parent(volume, parent)
    volume = volume.replace(mother_volume=check.mother_volume)
    if check.rejected:
        parent = graph.world

    if _is_member_parent(parent) and not volume.component_id:
        volume = volume.replace(component_id=names.component_id())

    logger.debug(f"Adding {kind} '{name}' ({volume.label}) under '{volume.parent_name}'")
    return graph.add(volume), volume


def update_volume(
    graph: VolumeGraph,
    name: str,
    patch: Mapping[str, Any],
    config: EditorConfig | None = None,
) -> UpdateOutcome:
    """Merge ``patch`` into a volume, applying rename and re-parent side effects.

    ``position``, ``rotation``, ``size`` and ``dimensions`` are merged key by
    key. A new ``name`` is rewritten into every child's ``mother_volume`` in
    the same snapshot. A changed ``mother_volume`` is checked for cycles and
    then pulls the new parent's compound id according to the configured
    propagation scope.

    Raises:
        FormatError: If the patch is not a mapping or yields an invalid record
        VolumeNotFoundError: If ``name`` does not exist
        InvariantViolation: On renaming World or onto a taken name
    """
    config = config or EditorConfig()
    if not isinstance(patch, Mapping):
        raise FormatError("Update patch must be an object")

    previous = graph.get(name)
    old_descendants = {volume.name for volume in graph.descendants_of(name)}
    updated_graph = graph.update(name, patch)
    new_name = patch.get("name", name) if name != WORLD_NAME else WORLD_NAME
    volume = updated_graph.get(new_name)
    warnings: list[str] = []

    parent_changed = (
        not volume.is_world
        and "mother_volume" in patch
        and volume.parent_name != previous.parent_name
    )
    if not parent_changed:
        return UpdateOutcome(updated_graph, volume, warnings)

    parent = updated_graph.find_by_name(volume.parent_name)
    if parent is None:
        warnings.append(f"Mother volume '{volume.parent_name}' not found; '{new_name}' placed in World")
        logger.warning(warnings[-1])
        parent = updated_graph.world
    elif parent.name in old_descendants:
        warnings.append(
            f"Moving '{new_name}' under its own descendant '{parent.name}' would create a cycle; placed in World"
        )
        logger.warning(warnings[-1])
        parent = updated_graph.world

    check = check_assembly_parent(volume, parent)
    if check.rejected:
        warnings.append(check.warning)
        parent = updated_graph.world

    if volume.parent_name != parent.name:
        volume = volume.replace(mother_volume=parent.name)
        updated_graph = updated_graph.replace_volume(new_name, volume)

    inherited = inherited_compound_id(volume, parent, config.propagation_scope)
    if inherited and inherited != volume.compound_id:
        volume = volume.replace(compound_id=inherited)
        updated_graph = updated_graph.replace_volume(new_name, volume)
        updated_graph = updated_graph.with_volumes(
            propagate(updated_graph.volumes, new_name, inherited, config.propagation_scope)
        )

    return UpdateOutcome(updated_graph, updated_graph.get(new_name), warnings)


def remove_volume(graph: VolumeGraph, name: str) -> tuple[VolumeGraph, int]:
    """Remove a volume and its whole subtree.

    Returns:
        The new graph and the number of removed volumes

    Raises:
        InvariantViolation: When asked to remove World
        VolumeNotFoundError: If ``name`` does not exist
    """
    new_graph, removed = graph.remove(name)
    logger.info(f"Removed '{name}' and {removed - 1} descendants")
    return new_graph, removed


def assign_project_compound_ids(graph: VolumeGraph) -> VolumeGraph:
    """Give every assembly and union without a compound id its own name as id.

    Each such volume's id is stamped on its descendants. Shallower volumes
    are processed first, so a nested template ends up owning its subtree.
    """
    candidates = [
        volume for volume in graph.volumes
        if (volume.is_assembly or volume.is_union) and not volume.compound_id
    ]
    candidates.sort(key=lambda volume: graph.depth_of(volume.name))

    volumes = graph.volumes
    for candidate in candidates:
        volumes = tuple(
            volume.replace(compound_id=candidate.name) if volume.name == candidate.name else volume
            for volume in volumes
        )
        volumes = propagate(volumes, candidate.name, candidate.name)
        logger.debug(f"Assigned compound id '{candidate.name}' to {candidate.type} '{candidate.name}'")
    return graph.with_volumes(volumes)
