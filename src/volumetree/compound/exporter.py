"""Extract a volume and its descendant subtree as a reusable template payload."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from ..config import EditorConfig
from ..core.graph import VolumeGraph
from ..core.naming import NameGenerator
from ..core.volume import Volume
from .identity import assign_component_ids, ensure_stable_id

logger = logging.getLogger(__name__)


@dataclass
class ExportPayload:
    """A root volume with its flattened descendants."""

    object: Volume
    descendants: list[Volume] = field(default_factory=list)
    is_world: bool = False
    compound_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "object": self.object.to_record(),
            "descendants": [volume.to_record() for volume in self.descendants],
            "isWorld": self.is_world,
        }
        if self.compound_id is not None:
            data["_compoundId"] = self.compound_id
        return data


def extract_object(
    graph: VolumeGraph,
    volume: Volume | str,
    names: NameGenerator | None = None,
    config: EditorConfig | None = None,
) -> ExportPayload:
    """Copy ``volume`` and every volume below it out of ``graph``.

    The root gets a stable compound id, which is stamped on every
    descendant copy; assembly members lacking a component id get one.
    Instance ids are stripped. The graph itself is not modified.

    Exporting World yields all volumes as descendants and no compound id.

    Raises:
        VolumeNotFoundError: If the volume is not in the graph
    """
    names = names or NameGenerator()
    config = config or EditorConfig()

    name = volume.name if isinstance(volume, Volume) else volume
    # Always read the live record, not a possibly stale caller copy
    root = graph.get(name)
    descendants = graph.descendants_of(name)

    if root.is_world:
        logger.debug(f"Exporting World with {len(descendants)} volumes")
        return ExportPayload(
            object=root.replace(instance_id=None),
            descendants=[d.replace(instance_id=None) for d in descendants],
            is_world=True,
        )

    compound_id = ensure_stable_id(root)
    if isinstance(volume, Volume):
        root = volume.replace(
            mother_volume=root.mother_volume,
            is_active=root.is_active,
            hits_collection_name=root.hits_collection_name,
        )
    root = root.replace(compound_id=compound_id, instance_id=None)

    copies = [d.replace(compound_id=compound_id, instance_id=None) for d in descendants]
    tagged = assign_component_ids(
        [root, *copies], names, max_passes=config.component_id_max_passes,
    )

    logger.debug(f"Exported '{root.name}' with {len(copies)} descendants (compound {compound_id})")
    return ExportPayload(
        object=tagged[0],
        descendants=list(tagged[1:]),
        compound_id=compound_id,
    )
