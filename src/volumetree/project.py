"""Combined project file: geometry, materials and hits collections."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Self

from .compound.identity import check_assembly_parent
from .config import EditorConfig
from .core.graph import VolumeGraph
from .core.volume import default_world
from .errors import FormatError
from .materials import MaterialTable
from .operations import assign_project_compound_ids

logger = logging.getLogger(__name__)


def _default_hit_collections() -> list[str]:
    return [EditorConfig().default_hits_collection]


@dataclass
class Project:
    """Everything the editor saves as one JSON document."""

    graph: VolumeGraph = field(default_factory=VolumeGraph)
    materials: MaterialTable = field(default_factory=MaterialTable.defaults)
    hit_collections: list[str] = field(default_factory=_default_hit_collections)

    @classmethod
    def new(cls, config: EditorConfig | None = None) -> Self:
        """An empty project with the configured World and default materials."""
        config = config or EditorConfig()
        return cls(
            graph=VolumeGraph(world=default_world(config.world_size, config.world_material)),
            hit_collections=[config.default_hits_collection],
        )

    @classmethod
    def from_dict(cls, data: Any, config: EditorConfig | None = None) -> Self:
        """Load a project document.

        Assemblies and unions without a compound id get one, and any
        assembly placed inside an assembly of the same compound is moved to
        World.

        Raises:
            FormatError: If the document or its materials map is malformed
        """
        config = config or EditorConfig()
        if not isinstance(data, Mapping):
            raise FormatError("Project document must be an object")
        if not isinstance(data.get("volumes"), list):
            raise FormatError("Project document 'volumes' must be a list")

        graph = VolumeGraph.from_dict(data)
        if data.get("world") is None:
            graph = VolumeGraph(world=default_world(config.world_size, config.world_material), volumes=graph.volumes)

        materials = data.get("materials")
        table = MaterialTable.defaults() if materials is None else MaterialTable.from_mapping(materials)

        hit_collections = data.get("hitCollections", [config.default_hits_collection])
        if not isinstance(hit_collections, list):
            raise FormatError("Project 'hitCollections' must be a list")

        graph = assign_project_compound_ids(graph)
        graph = _guard_assembly_edges(graph)
        logger.info(f"Loaded project with {len(graph)} volumes and {len(table)} materials")
        return cls(graph=graph, materials=table, hit_collections=[str(h) for h in hit_collections])

    def to_dict(self) -> dict[str, Any]:
        return {
            **self.graph.to_dict(),
            "materials": self.materials.to_dict(),
            "hitCollections": list(self.hit_collections),
        }


def _guard_assembly_edges(graph: VolumeGraph) -> VolumeGraph:
    for volume in graph.volumes:
        if not volume.is_assembly:
            continue
        check = check_assembly_parent(volume, graph.find_by_name(volume.parent_name))
        if check.rejected:
            graph = graph.replace_volume(volume.name, volume.replace(mother_volume=check.mother_volume))
    return graph


def load_project(path: Path | str, config: EditorConfig | None = None) -> Project:
    """Read a project JSON file.

    Raises:
        FileNotFoundError: If the file does not exist
        FormatError: If the file is not valid JSON or not a valid project
    """
    with open(path) as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as exc:
            raise FormatError(f"Invalid JSON in {path}: {exc}") from exc
    return Project.from_dict(data, config)


def save_project(project: Project, path: Path | str) -> None:
    """Write ``project`` as indented JSON."""
    with open(path, "w") as f:
        json.dump(project.to_dict(), f, indent=2)
    logger.debug(f"Saved project to {path}")
