"""Copy an edited compound instance onto the other instances of its template."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable

from ..core.graph import VolumeGraph
from ..core.volume import Volume
from ..errors import InvariantViolation

logger = logging.getLogger(__name__)

# Fields a synced instance root takes from the source root
ROOT_FIELDS = ("shape", "material", "color", "is_active", "hits_collection_name", "extra")
# Components also follow the source's label and template-relative pose
COMPONENT_FIELDS = ROOT_FIELDS + ("display_name", "position", "rotation")


@dataclass
class SyncResult:
    """Outcome of :func:`sync_instances`.

    Attributes:
        graph: The new graph
        updated: Internal names of the instance roots that were rewritten
        warnings: Targets that were skipped and why
    """

    graph: VolumeGraph
    updated: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def updated_count(self) -> int:
        return len(self.updated)


def instances_of(graph: VolumeGraph, source: Volume | str) -> list[Volume]:
    """Roots of the other placed instances of ``source``'s compound template.

    An instance root carries the same compound id and type as the source and
    its mother volume does not belong to that compound.
    """
    source = graph.get(source.name if isinstance(source, Volume) else source)
    if not source.compound_id:
        return []
    roots = []
    for volume in graph.volumes:
        if volume.name == source.name or volume.compound_id != source.compound_id:
            continue
        if volume.type != source.type:
            continue
        parent = graph.parent_of(volume)
        if parent is None or parent.is_world or parent.compound_id != source.compound_id:
            roots.append(volume)
    return roots


def _members(graph: VolumeGraph, root: Volume) -> dict[str, Volume]:
    """Descendants of ``root`` keyed by component id; the first one wins."""
    members: dict[str, Volume] = {}
    for volume in graph.descendants_of(root.name):
        if root.compound_id and volume.compound_id != root.compound_id:
            continue
        if volume.component_id:
            members.setdefault(volume.component_id, volume)
    return members


def _copy_fields(target: Volume, source: Volume, fields: tuple[str, ...]) -> Volume:
    return target.replace(**{name: getattr(source, name) for name in fields})


def sync_instances(
    graph: VolumeGraph,
    source: Volume | str,
    targets: Iterable[str] | None = None,
) -> SyncResult:
    """Make other instances of a template match ``source``.

    Each target root takes the source root's shape, material and readout
    settings. Components are matched by ``_componentId`` anywhere in the
    instance subtree and take the source component's fields, including its
    pose relative to the template. Every target keeps its own name, mother
    volume, placement and ids. Components without a counterpart are left as
    they are. All changes land in one new snapshot.

    Args:
        graph: Graph holding the instances
        source: The edited instance root
        targets: Names of the roots to update; defaults to every other
            instance of the source's compound template

    Returns:
        SyncResult with the new graph and the updated root names

    Raises:
        VolumeNotFoundError: If the source or a named target does not exist
        InvariantViolation: If no targets are given and the source has no compound id
    """
    source = graph.get(source.name if isinstance(source, Volume) else source)
    if targets is None:
        if not source.compound_id:
            raise InvariantViolation(f"'{source.name}' is not part of a compound template")
        roots = instances_of(graph, source)
    else:
        roots = [graph.get(name) for name in targets]

    source_members = _members(graph, source)
    replacements: dict[str, Volume] = {}
    result = SyncResult(graph)
    for root in roots:
        if root.name == source.name:
            result.warnings.append(f"'{root.name}' is the sync source and was skipped")
            continue
        if root.type != source.type:
            result.warnings.append(
                f"'{root.name}' is a {root.type}, not a {source.type} like '{source.name}'; skipped"
            )
            continue

        replacements[root.name] = _copy_fields(root, source, ROOT_FIELDS)
        matched = 0
        for component_id, member in _members(graph, root).items():
            template = source_members.get(component_id)
            if template is None:
                continue
            replacements[member.name] = _copy_fields(member, template, COMPONENT_FIELDS)
            matched += 1
        result.updated.append(root.name)
        logger.debug(f"Synced '{root.name}' from '{source.name}' ({matched} components)")

    for warning in result.warnings:
        logger.warning(warning)
    result.graph = graph.with_volumes(replacements.get(v.name, v) for v in graph.volumes)
    logger.info(f"Synced {result.updated_count} instances from '{source.name}'")
    return result
