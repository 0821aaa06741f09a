"""Splice an exported object (root + descendants) into a graph."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Mapping

from ..config import EditorConfig
from ..core.graph import VolumeGraph
from ..core.naming import NameGenerator, template_base, template_display_name
from ..core.volume import WORLD_NAME, Volume
from ..errors import FormatError
from .identity import assign_component_ids, check_assembly_parent, stable_compound_id

logger = logging.getLogger(__name__)


@dataclass
class ImportResult:
    """Outcome of :func:`import_object`.

    Attributes:
        graph: The new graph containing the imported volumes
        root_name: Internal name of the imported root
        name_mapping: Original name -> new name, for every renamed volume
        compound_id: The compound id shared by the imported volumes
        warnings: Recovered problems (dangling parents, rejected cycles)
    """

    graph: VolumeGraph
    root_name: str
    name_mapping: dict[str, str] = field(default_factory=dict)
    compound_id: str | None = None
    warnings: list[str] = field(default_factory=list)


def parse_payload(payload: Any) -> tuple[Volume, list[Volume]]:
    """Validate and parse an ``{object, descendants}`` payload.

    Raises:
        FormatError: If ``object`` is missing or ``descendants`` is not a list
    """
    if not isinstance(payload, Mapping):
        raise FormatError("Import payload must be an object")
    record = payload.get("object")
    if not isinstance(record, Mapping):
        raise FormatError("Import payload is missing 'object'")
    descendants = payload.get("descendants")
    if not isinstance(descendants, list):
        raise FormatError("Import payload 'descendants' must be a list")
    return Volume.from_record(record), [Volume.from_record(d) for d in descendants]


def _template_label(payload: Mapping[str, Any], template_name: str | None) -> str | None:
    if template_name:
        return template_name
    metadata = payload.get("metadata")
    if isinstance(metadata, Mapping) and metadata.get("name"):
        return str(metadata["name"])
    return None


def import_object(
    graph: VolumeGraph,
    payload: Mapping[str, Any],
    parent: str | None = None,
    names: NameGenerator | None = None,
    template_name: str | None = None,
    config: EditorConfig | None = None,
) -> ImportResult:
    """Import a saved object and its descendants under ``parent``.

    The root keeps its name unless it collides; every descendant gets a fresh
    name and its mother_volume is rewritten through the rename table. All
    imported volumes share one compound id and the new root becomes the
    selection. The input graph is never modified.

    Args:
        graph: Graph to import into
        payload: ``{"object": {...}, "descendants": [...]}`` with optional
            ``_compoundId`` and ``metadata.name``
        parent: Target mother volume (World when None)
        names: Name generator
        template_name: Template label used for the ``<base>_<serial>`` display name;
            defaults to ``metadata.name`` from the payload
        config: Editor configuration

    Returns:
        ImportResult with the new graph

    Raises:
        FormatError: If the payload is malformed (the graph is left untouched)
    """
    names = names or NameGenerator()
    config = config or EditorConfig()
    root, descendants = parse_payload(payload)
    warnings: list[str] = []

    existing = graph.names()
    taken = set(existing)
    mapping: dict[str, str] = {}

    original_root_name = root.name
    compound_id = payload.get("_compoundId") or root.compound_id or stable_compound_id(root.name, root.type)

    root_name = root.name
    if root_name in taken:
        root_name = names.unique_name(root.type, taken)
        mapping[original_root_name] = root_name
    taken.add(root_name)

    label = _template_label(payload, template_name)
    if label:
        display = template_display_name(template_base(label), graph.volumes)
    else:
        display = root.label

    target = parent or WORLD_NAME
    if target not in graph:
        message = f"Import target '{target}' does not exist; importing into World"
        logger.warning(message)
        warnings.append(message)
        target = WORLD_NAME

    root = root.replace(
        name=root_name,
        display_name=display,
        mother_volume=target,
        compound_id=compound_id,
        instance_id=names.instance_id(original_root_name),
    )

    renamed = []
    for descendant in descendants:
        new_name = names.unique_name(descendant.type, taken)
        taken.add(new_name)
        mapping[descendant.name] = new_name
        renamed.append(descendant.replace(
            name=new_name,
            display_name=descendant.label,
            compound_id=compound_id,
            instance_id=None,
        ))

    batch = {root.name: root}
    remapped = []
    for original, descendant in zip(descendants, renamed):
        mother = original.mother_volume
        if mother is None or mother == original_root_name:
            mother = root.name
        elif mother in mapping:
            mother = mapping[mother]
        elif mother not in existing:
            message = (
                f"Imported volume '{original.name}' references missing mother volume "
                f"'{mother}'; placing it in World"
            )
            logger.warning(message)
            warnings.append(message)
            mother = WORLD_NAME
        descendant = descendant.replace(mother_volume=mother)
        remapped.append(descendant)
        batch[descendant.name] = descendant

    def lookup(name: str) -> Volume | None:
        return batch.get(name) or graph.find_by_name(name)

    guarded = []
    for volume in [root, *remapped]:
        check = check_assembly_parent(volume, lookup(volume.parent_name))
        if check.rejected:
            warnings.append(check.warning)
            volume = volume.replace(mother_volume=check.mother_volume)
        guarded.append(volume)

    context = {volume.name: volume for volume in graph.volumes}
    tagged = assign_component_ids(
        guarded, names, context=context, max_passes=config.component_id_max_passes,
    )

    new_graph = graph.splice(tagged, select=root.name)
    logger.info(
        f"Imported '{original_root_name}' as '{root.name}' with {len(remapped)} descendants "
        f"(compound {compound_id})"
    )
    return ImportResult(
        graph=new_graph,
        root_name=root.name,
        name_mapping=mapping,
        compound_id=compound_id,
        warnings=warnings,
    )
