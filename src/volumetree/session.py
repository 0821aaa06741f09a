"""Editing session: the single writer over the current graph snapshot."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping

import numpy as np

from .codec.placements import encode
from .compound.exporter import ExportPayload, extract_object
from .compound.importer import import_object
from .compound.instances import sync_instances
from .config import EditorConfig
from .core.graph import VolumeGraph
from .core.naming import NameGenerator
from .core.resolver import TransformResolver
from .core.transform import Transform, rotation_from_input
from .errors import GeometryError, InvariantViolation
from .materials import MaterialTable
from .operations import add_volume, remove_volume, update_volume
from .project import Project

logger = logging.getLogger(__name__)

Listener = Callable[[VolumeGraph], None]


@dataclass
class OperationResult:
    """Outcome of an editor operation.

    Failures carry the triggering error instead of raising it.
    """

    success: bool
    message: str
    graph: VolumeGraph | None = None
    data: Any = None
    warnings: list[str] = field(default_factory=list)
    error: Exception | None = None

    def __bool__(self) -> bool:
        return self.success


@dataclass
class DragState:
    """A live drag: the authoritative world pose until the gesture ends."""

    name: str
    origin: Transform
    world: Transform


class GeometryEditor:
    """Holds the current snapshot and routes every mutation through one place.

    Committed changes replace the snapshot and are announced to subscribers.
    Live drag updates only move a world-space override; the graph itself
    changes once, when the drag ends.

    Example:
        editor = GeometryEditor()
        result = editor.add_volume({"type": "box"})
        editor.begin_drag(result.data)
        editor.drag_to([10, 0, 0], [0, 0, 45])
        editor.end_drag()
    """

    def __init__(
        self,
        project: Project | None = None,
        config: EditorConfig | None = None,
        names: NameGenerator | None = None,
    ):
        self.config = config or EditorConfig()
        self.names = names or NameGenerator()
        project = project or Project.new(self.config)
        self._graph = project.graph
        self.materials = project.materials
        self.hit_collections = list(project.hit_collections)
        self._listeners: list[Listener] = []
        self._drag: DragState | None = None

    @property
    def graph(self) -> VolumeGraph:
        return self._graph

    @property
    def selected(self) -> str | None:
        return self._graph.selected

    @property
    def drag(self) -> DragState | None:
        return self._drag

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener`` for committed snapshots; returns an unsubscribe function."""
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    def _commit(self, graph: VolumeGraph) -> None:
        self._graph = graph
        for listener in list(self._listeners):
            listener(graph)

    def _run(self, action: str, operation: Callable[[], OperationResult]) -> OperationResult:
        try:
            return operation()
        except (GeometryError, ValueError) as exc:
            logger.error(f"{action} failed: {exc}")
            return OperationResult(False, str(exc), graph=self._graph, error=exc)

    def add_volume(self, record: Mapping[str, Any]) -> OperationResult:
        """Add a volume; ``data`` is its generated name. The new volume is selected."""
        def operation() -> OperationResult:
            graph, volume = add_volume(self._graph, record, self.names, self.config)
            self._commit(graph.select(volume.name))
            return OperationResult(True, f"Added {volume.label}", self._graph, data=volume.name)
        return self._run("Add volume", operation)

    def update_volume(self, name: str, patch: Mapping[str, Any]) -> OperationResult:
        """Patch a volume; ``data`` is its (possibly new) name."""
        def operation() -> OperationResult:
            outcome = update_volume(self._graph, name, patch, self.config)
            self._commit(outcome.graph)
            return OperationResult(
                True, f"Updated {outcome.volume.label}", self._graph,
                data=outcome.volume.name, warnings=outcome.warnings,
            )
        return self._run("Update volume", operation)

    def remove_volume(self, name: str) -> OperationResult:
        """Remove a volume with its subtree; ``data`` is the number removed."""
        def operation() -> OperationResult:
            graph, removed = remove_volume(self._graph, name)
            if self._drag is not None and self._drag.name not in graph:
                self._drag = None
            self._commit(graph)
            return OperationResult(True, f"Removed {removed} volume(s)", self._graph, data=removed)
        return self._run("Remove volume", operation)

    def select(self, name: str | None) -> OperationResult:
        def operation() -> OperationResult:
            self._commit(self._graph.select(name))
            return OperationResult(True, f"Selected {name}", self._graph, data=name)
        return self._run("Select", operation)

    def import_object(
        self,
        payload: Mapping[str, Any],
        parent: str | None = None,
        template_name: str | None = None,
    ) -> OperationResult:
        """Import a saved object; ``data`` is the new root name."""
        def operation() -> OperationResult:
            result = import_object(
                self._graph, payload, parent, self.names, template_name, self.config,
            )
            self._commit(result.graph)
            return OperationResult(
                True, "Import successful", self._graph,
                data=result.root_name, warnings=result.warnings,
            )
        return self._run("Import", operation)

    def export_object(self, name: str) -> OperationResult:
        """Extract a subtree; ``data`` is the :class:`ExportPayload`."""
        def operation() -> OperationResult:
            payload: ExportPayload = extract_object(self._graph, name, self.names, self.config)
            return OperationResult(True, f"Exported {name}", self._graph, data=payload)
        return self._run("Export", operation)

    def sync_instances(self, source: str, targets: list[str] | None = None) -> OperationResult:
        """Copy ``source``'s template contents onto its other instances; ``data`` is the count."""
        def operation() -> OperationResult:
            result = sync_instances(self._graph, source, targets)
            if result.updated:
                self._commit(result.graph)
            return OperationResult(
                True, f"Updated {result.updated_count} instances of {source}", self._graph,
                data=result.updated_count, warnings=result.warnings,
            )
        return self._run("Sync instances", operation)

    def load_project(self, data: Mapping[str, Any]) -> OperationResult:
        """Replace the whole session state with a project document."""
        def operation() -> OperationResult:
            project = Project.from_dict(data, self.config)
            self._drag = None
            self.materials = project.materials
            self.hit_collections = list(project.hit_collections)
            self._commit(project.graph)
            return OperationResult(True, "Project loaded", self._graph, data=project)
        return self._run("Load project", operation)

    def set_materials(self, data: Mapping[str, Any]) -> OperationResult:
        def operation() -> OperationResult:
            self.materials = MaterialTable.from_mapping(data)
            return OperationResult(True, "Materials imported successfully", self._graph, data=self.materials)
        return self._run("Import materials", operation)

    def to_project(self) -> Project:
        return Project(self._graph, self.materials, list(self.hit_collections))

    def encode(self) -> dict[str, Any]:
        """The placement document for the committed snapshot."""
        return encode(self._graph, self.materials, self.hit_collections, self.config)

    def resolver(self) -> TransformResolver:
        """Resolver over the committed graph with any live drag applied."""
        overrides = {self._drag.name: self._drag.world} if self._drag else None
        return TransformResolver(self._graph, overrides)

    def world_transform(self, name: str) -> Transform:
        return self.resolver().world_transform(name)

    def begin_drag(self, name: str) -> OperationResult:
        """Start dragging ``name``; its world pose becomes authoritative until the drag ends."""
        def operation() -> OperationResult:
            volume = self._graph.get(name)
            if volume.is_world:
                raise InvariantViolation("The World volume cannot be dragged")
            if self._drag is not None:
                logger.warning(f"Drag of '{self._drag.name}' discarded by a new drag of '{name}'")
            origin = TransformResolver(self._graph).world_transform(volume)
            self._drag = DragState(name, origin, origin.copy())
            return OperationResult(True, f"Dragging {name}", self._graph, data=origin)
        return self._run("Begin drag", operation)

    def drag_to(self, position: Any, rotation: Any = None) -> OperationResult:
        """Live update in world coordinates; the graph is not touched."""
        def operation() -> OperationResult:
            if self._drag is None:
                raise InvariantViolation("No drag in progress")
            rotation_value = self._drag.world.rotation if rotation is None else rotation_from_input(rotation)
            self._drag.world = Transform(np.asarray(position, dtype=np.float64), rotation_value)
            return OperationResult(True, "Live update", self._graph, data=self._drag.world)
        return self._run("Drag", operation)

    def end_drag(self) -> OperationResult:
        """Commit the drag once, converting the live world pose to local coordinates."""
        def operation() -> OperationResult:
            if self._drag is None:
                raise InvariantViolation("No drag in progress")
            drag, self._drag = self._drag, None
            position, rotation = TransformResolver(self._graph).world_to_local(
                drag.name, drag.world.translation, drag.world.rotation,
            )
            outcome = update_volume(
                self._graph, drag.name,
                {"position": position.to_record(), "rotation": rotation.to_record()},
                self.config,
            )
            self._commit(outcome.graph)
            return OperationResult(
                True, f"Moved {outcome.volume.label}", self._graph,
                data=outcome.volume.name, warnings=outcome.warnings,
            )
        return self._run("End drag", operation)

    def cancel_drag(self) -> OperationResult:
        """Drop the live pose; the graph stays at its last committed state."""
        name = self._drag.name if self._drag else None
        self._drag = None
        return OperationResult(True, f"Drag of {name} cancelled" if name else "No drag in progress", self._graph)
