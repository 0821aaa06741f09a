"""Conversion between a volume graph and the multi-placement document.

Volumes carrying a ``_compoundId`` are written once per template as a
compound entry holding the template's components plus one placement per
physical instance. All other volumes are written as standalone entries
with a single placement.

Document format:
```json
{
  "world": {"type": "box", "name": "World", "dimensions": {...}, "placements": [...]},
  "volumes": [
    {"type": "box", "name": "box_1", "dimensions": {...}, "placements": [{...}]},
    {"type": "assembly", "name": "PMT", "_compoundId": "...",
     "placements": [{"name": "...", "g4name": "PMT_0", "x": 0, ..., "parent": "World"}],
     "components": [{"name": "PMT", "placements": [{..., "parent": ""}]}, ...]}
  ],
  "hitsCollections": [{"name": "MyHitsCollection", "volumes": ["PMT_0"]}]
}
```
"""

from __future__ import annotations

import json
import logging
from collections import deque
from dataclasses import dataclass
from typing import Any, Iterable, Mapping

from ..config import EditorConfig
from ..core.graph import VolumeGraph
from ..core.naming import strip_index_suffix
from ..core.shapes import shape_from_dimensions
from ..core.volume import (
    DEFAULT_ANGLE_UNIT,
    DEFAULT_LENGTH_UNIT,
    WORLD_NAME,
    Vector3,
    Volume,
    default_world,
)
from ..compound.identity import stable_compound_id
from ..errors import FormatError
from .colors import parse_color, resolve_color

logger = logging.getLogger(__name__)

ZERO_POSITION = Vector3(unit=DEFAULT_LENGTH_UNIT)
ZERO_ROTATION = Vector3(unit=DEFAULT_ANGLE_UNIT)


def encode_placement(position: Vector3, rotation: Vector3, parent: str) -> dict[str, Any]:
    return {
        "x": position.x,
        "y": position.y,
        "z": position.z,
        "unit": position.unit or DEFAULT_LENGTH_UNIT,
        "rotation": {
            "x": rotation.x,
            "y": rotation.y,
            "z": rotation.z,
            "unit": rotation.unit or DEFAULT_ANGLE_UNIT,
        },
        "parent": parent,
    }


def decode_placement(record: Any) -> tuple[Vector3, Vector3, str]:
    """Read ``(position, rotation, parent)`` from a placement record."""
    if not isinstance(record, Mapping):
        raise FormatError(f"Placement must be an object, got {record!r}")
    position = Vector3.from_record(record, DEFAULT_LENGTH_UNIT)
    rotation = Vector3.from_record(record.get("rotation"), DEFAULT_ANGLE_UNIT)
    parent = record.get("parent") or ""
    return position, rotation, str(parent)


@dataclass
class _Instance:
    """One compound instance: its root and canonically ordered members."""

    root: Volume
    members: list[Volume]
    component_names: dict[str, str]
    components: list[dict[str, Any]]


class PlacementEncoder:
    """Builds the placement document for one graph snapshot.

    Args:
        graph: The graph to encode
        materials: Material name -> material (anything with a ``color``)
        hit_collections: Declared hits collections (names or ``{name}`` records)
        config: Editor configuration
    """

    def __init__(
        self,
        graph: VolumeGraph,
        materials: Mapping[str, Any] | None = None,
        hit_collections: Iterable[Any] = (),
        config: EditorConfig | None = None,
    ):
        self.graph = graph
        self.materials = materials or {}
        self.hit_collections = list(hit_collections)
        self.config = config or EditorConfig()
        # Graph name -> name the volume will have after decoding
        self._decoded: dict[str, str] = {}

    def encode(self) -> dict[str, Any]:
        groups, covered = self._plan_compounds()
        standalone = [v for v in self.graph.volumes if v.name not in covered]
        for volume in standalone:
            self._decoded[volume.name] = volume.name

        volumes = [self._standalone_entry(volume) for volume in standalone]
        for (compound_id, base, _), instances in groups.items():
            volumes.append(self._compound_entry(compound_id, base, instances))

        document: dict[str, Any] = {"world": self._world_entry(), "volumes": volumes}
        hits = self._hits_collections()
        if hits:
            document["hitsCollections"] = hits
        logger.debug(
            f"Encoded {len(self.graph)} volumes as {len(standalone)} standalone and "
            f"{len(groups)} compound entries"
        )
        return document

    def _color(self, volume: Volume) -> dict[str, float]:
        return resolve_color(volume.color, self.materials.get(volume.material), self.config.fallback_color)

    def _parent_ref(self, volume: Volume) -> str:
        parent = self.graph.resolve_parent_name(volume)
        if parent == WORLD_NAME:
            return WORLD_NAME
        return self._decoded.get(parent, parent)

    def _readout(self, volume: Volume) -> dict[str, Any]:
        readout: dict[str, Any] = {"isActive": bool(volume.is_active)}
        if volume.is_active:
            readout["hitsCollectionName"] = volume.hits_collection_name or self.config.default_hits_collection
        elif volume.hits_collection_name:
            readout["hitsCollectionName"] = volume.hits_collection_name
        return readout

    def _world_entry(self) -> dict[str, Any]:
        world = self.graph.world
        return {
            "type": world.type,
            "name": world.name,
            "g4name": world.label,
            "material": world.material,
            "dimensions": world.shape.dimensions(),
            "visible": False,
            "wireframe": True,
            "placements": [encode_placement(world.position, world.rotation, "")],
        }

    def _standalone_entry(self, volume: Volume) -> dict[str, Any]:
        return {
            "type": volume.type,
            "name": volume.name,
            "g4name": volume.label,
            "material": volume.material,
            "color": self._color(volume),
            "dimensions": volume.shape.dimensions(),
            **self._readout(volume),
            "placements": [encode_placement(volume.position, volume.rotation, self._parent_ref(volume))],
        }

    def _compound_roots(self, compound_id: str, members: list[Volume]) -> list[Volume]:
        roots = []
        for volume in members:
            parent = self.graph.parent_of(volume)
            if parent is None or parent.is_world or parent.compound_id != compound_id:
                roots.append(volume)
        return roots

    def _member_tree(self, root: Volume, compound_id: str) -> list[Volume]:
        """Root plus same-compound descendants, siblings in a canonical order."""
        ordered = [root]
        seen = {root.name}
        queue = deque([root])
        while queue:
            current = queue.popleft()
            children = [
                child for child in self.graph.children_of(current.name)
                if child.compound_id == compound_id and child.name not in seen
            ]
            children.sort(key=lambda c: (c.component_id or "", c.label, c.type))
            for child in children:
                seen.add(child.name)
                ordered.append(child)
                queue.append(child)
        return ordered

    def _component(
        self, volume: Volume, name: str, placement: dict[str, Any], is_root: bool = False,
    ) -> dict[str, Any]:
        component = {
            "type": volume.type,
            "name": name,
            "g4name": name if is_root else volume.label,
            "material": volume.material,
            "color": self._color(volume),
            "dimensions": volume.shape.dimensions(),
            **self._readout(volume),
            "placements": [placement],
        }
        if volume.component_id and not is_root:
            component["_componentId"] = volume.component_id
        return component

    def _instance(self, root: Volume, base: str, compound_id: str) -> _Instance:
        members = self._member_tree(root, compound_id)
        names = {root.name: base}
        used = {base}
        for member in members[1:]:
            candidate = member.label
            serial = 1
            while candidate in used:
                serial += 1
                candidate = f"{member.label}_{serial}"
            used.add(candidate)
            names[member.name] = candidate

        components = [self._component(root, base, encode_placement(ZERO_POSITION, ZERO_ROTATION, ""), is_root=True)]
        for member in members[1:]:
            parent = names[member.parent_name]
            components.append(self._component(
                member, names[member.name], encode_placement(member.position, member.rotation, parent),
            ))
        return _Instance(root, members, names, components)

    def _plan_compounds(self) -> tuple[dict[tuple[str, str, str], list[_Instance]], set[str]]:
        """Group compound instances into entries and fix every decoded name.

        Instances share an entry when they have the same compound id, the
        same base name and identical component lists; any difference starts
        a new entry so that no volume is lost.
        """
        by_compound: dict[str, list[Volume]] = {}
        for volume in self.graph.volumes:
            if volume.compound_id:
                by_compound.setdefault(volume.compound_id, []).append(volume)

        groups: dict[tuple[str, str, str], list[_Instance]] = {}
        covered: set[str] = set()
        for compound_id, members in by_compound.items():
            for root in self._compound_roots(compound_id, members):
                base = strip_index_suffix(root.label)
                instance = self._instance(root, base, compound_id)
                signature = json.dumps(instance.components, sort_keys=True)
                groups.setdefault((compound_id, base, signature), []).append(instance)

                self._decoded[root.name] = root.name
                for member in instance.members[1:]:
                    self._decoded[member.name] = f"{root.name}_{instance.component_names[member.name]}"
                covered.update(member.name for member in instance.members)
        return groups, covered

    def _compound_entry(self, compound_id: str, base: str, instances: list[_Instance]) -> dict[str, Any]:
        placements = []
        for instance in instances:
            root = instance.root
            placement = encode_placement(root.position, root.rotation, self._parent_ref(root))
            record = {"name": root.name, "g4name": root.label, **placement}
            if root.component_id:
                record["_componentId"] = root.component_id
            placements.append(record)
        return {
            "type": "assembly",
            "name": base,
            "g4name": base,
            "_compoundId": compound_id,
            "placements": placements,
            "components": instances[0].components,
        }

    def _hits_collections(self) -> list[dict[str, Any]]:
        collections: dict[str, list[str]] = {}
        for declared in self.hit_collections:
            name = declared.get("name") if isinstance(declared, Mapping) else declared
            if name:
                collections.setdefault(str(name), [])
        for volume in self.graph.volumes:
            if not volume.is_active:
                continue
            name = volume.hits_collection_name or self.config.default_hits_collection
            members = collections.setdefault(name, [])
            if volume.label not in members:
                members.append(volume.label)
        return [{"name": name, "volumes": volumes} for name, volumes in collections.items()]


@dataclass
class _Pending:
    """A decoded volume waiting for its parent reference to be resolved."""

    volume: Volume
    local_parent: str | None = None
    parent_ref: str = ""


class PlacementDecoder:
    """Rebuilds a volume graph from a placement document."""

    def __init__(self, document: Mapping[str, Any]):
        if not isinstance(document, Mapping):
            raise FormatError("Placement document must be an object")
        volumes = document.get("volumes", [])
        if not isinstance(volumes, list):
            raise FormatError("Placement document 'volumes' must be a list")
        self.document = document
        self._taken = {WORLD_NAME}
        # Requested name -> name actually assigned to its first claimant
        self._claimed: dict[str, str] = {}
        self._pending: list[_Pending] = []

    def decode(self) -> VolumeGraph:
        for index, entry in enumerate(self.document.get("volumes", [])):
            if not isinstance(entry, Mapping):
                raise FormatError(f"volumes[{index}] must be an object")
            if "components" in entry:
                self._decode_compound(entry)
            else:
                self._decode_standalone(entry)

        volumes = []
        for pending in self._pending:
            parent = pending.local_parent or self._resolve(pending.parent_ref, pending.volume.name)
            volumes.append(pending.volume.replace(mother_volume=parent))
        logger.debug(f"Decoded {len(volumes)} volumes")
        return VolumeGraph(world=self._decode_world(), volumes=tuple(volumes))

    def _claim(self, desired: str) -> str:
        actual = desired
        serial = 1
        while actual in self._taken:
            actual = f"{desired}_{serial}"
            serial += 1
        self._taken.add(actual)
        self._claimed.setdefault(desired, actual)
        return actual

    def _resolve(self, reference: str, name: str) -> str:
        if not reference or reference == WORLD_NAME:
            return WORLD_NAME
        if reference in self._claimed:
            return self._claimed[reference]
        logger.warning(f"Decoded volume '{name}' references unknown parent '{reference}'; placing it in World")
        return WORLD_NAME

    def _decode_world(self) -> Volume:
        entry = self.document.get("world")
        if entry is None:
            return default_world()
        if not isinstance(entry, Mapping):
            raise FormatError("Placement document 'world' must be an object")
        return Volume(
            name=WORLD_NAME,
            shape=shape_from_dimensions(entry.get("type", "box"), entry.get("dimensions")),
            display_name=_display(entry.get("g4name"), WORLD_NAME),
            material=entry.get("material"),
        )

    @staticmethod
    def _placements(entry: Mapping[str, Any]) -> list[Any]:
        placements = entry.get("placements", [])
        if not isinstance(placements, list):
            raise FormatError(f"Entry '{entry.get('name')}' placements must be a list")
        if not placements:
            logger.warning(f"Entry '{entry.get('name')}' has no placements and is skipped")
        return placements

    @staticmethod
    def _volume(entry: Mapping[str, Any], name: str, display: Any, position: Vector3, rotation: Vector3) -> Volume:
        kind = entry.get("type")
        if not isinstance(kind, str):
            raise FormatError(f"Entry '{entry.get('name')}' is missing a type")
        is_active = entry.get("isActive")
        return Volume(
            name=name,
            shape=shape_from_dimensions(kind, entry.get("dimensions")),
            display_name=_display(display, name),
            material=entry.get("material"),
            position=position,
            rotation=rotation,
            is_active=bool(is_active) if is_active is not None else None,
            hits_collection_name=entry.get("hitsCollectionName"),
            color=parse_color(entry.get("color")),
            component_id=entry.get("_componentId"),
        )

    def _decode_standalone(self, entry: Mapping[str, Any]) -> None:
        name = entry.get("name")
        if not isinstance(name, str) or not name:
            raise FormatError(f"Entry is missing a name: {entry!r}")
        for index, record in enumerate(self._placements(entry)):
            position, rotation, parent = decode_placement(record)
            actual = self._claim(name if index == 0 else f"{name}_{index}")
            volume = self._volume(entry, actual, entry.get("g4name") or name, position, rotation)
            self._pending.append(_Pending(volume, parent_ref=parent))

    def _decode_compound(self, entry: Mapping[str, Any]) -> None:
        base = entry.get("name")
        components = entry.get("components")
        if not isinstance(base, str) or not base:
            raise FormatError("Compound entry is missing a name")
        if not isinstance(components, list) or not components:
            raise FormatError(f"Compound entry '{base}' has no components")
        for index, component in enumerate(components):
            if not isinstance(component, Mapping) or not component.get("name"):
                raise FormatError(f"Compound '{base}' components[{index}] must be a named object")

        root_component = next(
            (c for c in components if not _component_pose(c)[2]),
            components[0],
        )
        others = [c for c in components if c is not root_component]
        compound_id = entry.get("_compoundId") or stable_compound_id(base, "assembly")

        for index, record in enumerate(self._placements(entry)):
            position, rotation, parent = decode_placement(record)
            root_name = self._claim(record.get("name") or f"{base}_{index}")
            root = self._volume(
                root_component, root_name, record.get("g4name") or root_component.get("g4name"),
                position, rotation,
            ).replace(compound_id=compound_id, component_id=record.get("_componentId"))
            self._pending.append(_Pending(root, parent_ref=parent))

            local = {root_component["name"]: root_name}
            for component in others:
                local[component["name"]] = self._claim(f"{root_name}_{component['name']}")
            for component in others:
                c_position, c_rotation, c_parent = _component_pose(component)
                if c_parent and c_parent not in local:
                    logger.warning(
                        f"Component '{component['name']}' of '{base}' references unknown parent "
                        f"'{c_parent}'; attaching it to the instance root"
                    )
                volume = self._volume(
                    component, local[component["name"]], component.get("g4name"), c_position, c_rotation,
                ).replace(compound_id=compound_id)
                self._pending.append(_Pending(volume, local_parent=local.get(c_parent, root_name)))


def _component_pose(component: Mapping[str, Any]) -> tuple[Vector3, Vector3, str]:
    placements = component.get("placements") or [{}]
    if not isinstance(placements, list):
        raise FormatError(f"Component '{component.get('name')}' placements must be a list")
    return decode_placement(placements[0])


def _display(label: Any, name: str) -> str | None:
    if not label or label == name:
        return None
    return str(label)


def encode(
    graph: VolumeGraph,
    materials: Mapping[str, Any] | None = None,
    hit_collections: Iterable[Any] = (),
    config: EditorConfig | None = None,
) -> dict[str, Any]:
    """Convert ``graph`` to the multi-placement document."""
    return PlacementEncoder(graph, materials, hit_collections, config).encode()


def decode(document: Mapping[str, Any]) -> VolumeGraph:
    """Rebuild a graph from a multi-placement document.

    Raises:
        FormatError: If the document is malformed
    """
    return PlacementDecoder(document).decode()
