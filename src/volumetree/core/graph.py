"""Immutable snapshot of the World root plus its ordered volumes."""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field, replace
from typing import Any, Iterable, Iterator, Mapping, Self

from ..errors import FormatError, InvariantViolation, VolumeNotFoundError
from .volume import WORLD_NAME, Volume, default_world

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VolumeGraph:
    """The geometry tree as an immutable value.

    Parent links are names (``mother_volume``), indexed by name for O(1)
    lookup. Every mutator returns a new graph; nothing is modified in place,
    so a caller never observes a half-applied change.

    A ``mother_volume`` naming a volume that does not exist is read as World.

    Example:
        graph = VolumeGraph()
        graph = graph.add(Volume("detector", shape=BoxShape()))
        graph = graph.add(Volume("crystal", mother_volume="detector"))
        graph.descendants_of("detector")  # [Volume('crystal', ...)]
    """

    world: Volume = field(default_factory=default_world)
    volumes: tuple[Volume, ...] = ()
    selected: str | None = None
    _index: dict[str, Volume] = field(init=False, repr=False, compare=False)
    _children: dict[str, list[Volume]] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        volumes = tuple(self.volumes)
        object.__setattr__(self, "volumes", volumes)

        index: dict[str, Volume] = {}
        for volume in volumes:
            if volume.name == WORLD_NAME or volume.name in index:
                raise InvariantViolation(f"Duplicate volume name '{volume.name}'")
            index[volume.name] = volume
        object.__setattr__(self, "_index", index)

        children: dict[str, list[Volume]] = {}
        for volume in volumes:
            parent = volume.parent_name if volume.parent_name in index else WORLD_NAME
            children.setdefault(parent, []).append(volume)
        object.__setattr__(self, "_children", children)

    def __len__(self) -> int:
        return len(self.volumes)

    def __iter__(self) -> Iterator[Volume]:
        return iter(self.volumes)

    def __contains__(self, name: object) -> bool:
        return name == WORLD_NAME or name in self._index

    def names(self) -> set[str]:
        """All names in use, World included."""
        return {WORLD_NAME, *self._index}

    def find_by_name(self, name: str) -> Volume | None:
        """Look up a volume (or World) by name.

        Returns:
            The matching volume, or None
        """
        if name == WORLD_NAME:
            return self.world
        return self._index.get(name)

    def get(self, name: str) -> Volume:
        """Like :meth:`find_by_name` but raises VolumeNotFoundError."""
        volume = self.find_by_name(name)
        if volume is None:
            raise VolumeNotFoundError(name)
        return volume

    def resolve_parent_name(self, volume: Volume) -> str:
        """Name of the parent the engine actually uses for ``volume``.

        A dangling ``mother_volume`` falls back to World with a warning.
        """
        parent = volume.parent_name
        if parent == WORLD_NAME or parent in self._index:
            return parent
        logger.warning(
            f"Volume '{volume.name}' references missing mother volume '{parent}'; treating it as a child of World"
        )
        return WORLD_NAME

    def parent_of(self, volume: Volume) -> Volume | None:
        """The parent volume, World for root-level volumes, None for World itself."""
        if volume.is_world:
            return None
        return self.get(self.resolve_parent_name(volume))

    def children_of(self, name: str) -> list[Volume]:
        """Direct children of ``name`` in graph order."""
        return list(self._children.get(name, ()))

    def has_children(self, name: str) -> bool:
        return bool(self._children.get(name))

    def descendants_of(self, name: str) -> list[Volume]:
        """Transitive children of ``name`` in breadth-first order.

        The root itself is not included. Visited names are tracked, so a
        corrupt cyclic graph still terminates.
        """
        result: list[Volume] = []
        seen = {name}
        queue = deque([name])
        while queue:
            current = queue.popleft()
            for child in self._children.get(current, ()):
                if child.name in seen:
                    continue
                seen.add(child.name)
                result.append(child)
                queue.append(child.name)
        return result

    def ancestors_of(self, name: str) -> list[Volume]:
        """Parents of ``name`` from the nearest up to (excluding) World."""
        chain: list[Volume] = []
        seen = {name}
        current = self.get(name)
        while not current.is_world:
            parent = self.parent_of(current)
            if parent is None or parent.is_world or parent.name in seen:
                break
            seen.add(parent.name)
            chain.append(parent)
            current = parent
        return chain

    def depth_of(self, name: str) -> int:
        """Depth in the tree: World is 0, its direct children 1."""
        if name == WORLD_NAME:
            return 0
        return len(self.ancestors_of(name)) + 1

    def add(self, volume: Volume) -> VolumeGraph:
        """Return a graph with ``volume`` appended.

        Raises:
            InvariantViolation: If the name is already taken
        """
        if volume.name in self:
            raise InvariantViolation(f"Volume name '{volume.name}' is already in use")
        return replace(self, volumes=self.volumes + (volume,))

    def update(self, name: str, patch: Mapping[str, Any]) -> VolumeGraph:
        """Merge ``patch`` into the named volume's record.

        A changed ``name`` rewrites every child's ``mother_volume`` in the same
        new snapshot.

        Raises:
            VolumeNotFoundError: If ``name`` does not exist
            InvariantViolation: On an attempt to rename World or to take a
                name that is already in use
        """
        if name == WORLD_NAME:
            if patch.get("name", WORLD_NAME) != WORLD_NAME:
                raise InvariantViolation("World cannot be renamed")
            world = self.world.patched(patch).replace(mother_volume=None)
            return replace(self, world=world)
        return self.replace_volume(name, self.get(name).patched(patch))

    def replace_volume(self, name: str, volume: Volume) -> VolumeGraph:
        """Swap the volume called ``name`` for ``volume``, following a rename."""
        self.get(name)
        renamed = volume.name != name
        if renamed and volume.name in self:
            raise InvariantViolation(f"Cannot rename '{name}' to '{volume.name}': name already in use")

        volumes = []
        for current in self.volumes:
            if current.name == name:
                volumes.append(volume)
            elif renamed and current.mother_volume == name:
                volumes.append(current.replace(mother_volume=volume.name))
            else:
                volumes.append(current)

        selected = volume.name if renamed and self.selected == name else self.selected
        if renamed:
            logger.debug(f"Renamed volume '{name}' -> '{volume.name}'")
        return replace(self, volumes=tuple(volumes), selected=selected)

    def remove(self, name: str) -> tuple[VolumeGraph, int]:
        """Remove ``name`` together with all its descendants.

        Returns:
            The new graph and the number of volumes removed

        Raises:
            InvariantViolation: When asked to remove World
            VolumeNotFoundError: If ``name`` does not exist
        """
        if name == WORLD_NAME:
            raise InvariantViolation("The World volume cannot be removed")
        self.get(name)
        doomed = {name, *(volume.name for volume in self.descendants_of(name))}
        volumes = tuple(volume for volume in self.volumes if volume.name not in doomed)
        selected = None if self.selected in doomed else self.selected
        logger.debug(f"Removing volume '{name}' with {len(doomed) - 1} descendants")
        return replace(self, volumes=volumes, selected=selected), len(doomed)

    def splice(self, volumes: Iterable[Volume], select: str | None = None) -> VolumeGraph:
        """Append several volumes in one transition, optionally selecting one."""
        return replace(
            self,
            volumes=self.volumes + tuple(volumes),
            selected=select if select is not None else self.selected,
        )

    def with_volumes(self, volumes: Iterable[Volume]) -> VolumeGraph:
        """Same World and selection over a different volume list."""
        volumes = tuple(volumes)
        names = {volume.name for volume in volumes}
        selected = self.selected if self.selected in names or self.selected == WORLD_NAME else None
        return replace(self, volumes=volumes, selected=selected)

    def select(self, name: str | None) -> VolumeGraph:
        if name is not None:
            self.get(name)
        return replace(self, selected=name)

    def to_dict(self) -> dict[str, Any]:
        return {
            "world": self.world.to_record(),
            "volumes": [volume.to_record() for volume in self.volumes],
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Self:
        """Build a graph from ``{"world": {...}, "volumes": [...]}``.

        Raises:
            FormatError: If the document shape is wrong
        """
        if not isinstance(data, Mapping):
            raise FormatError("Geometry document must be an object")
        volumes = data.get("volumes", [])
        if not isinstance(volumes, list):
            raise FormatError("'volumes' must be a list")

        world_record = data.get("world")
        if world_record is None:
            world = default_world()
        elif isinstance(world_record, Mapping):
            world = Volume.from_record({"type": "box", **world_record, "name": WORLD_NAME})
            world = world.replace(mother_volume=None)
        else:
            raise FormatError("'world' must be an object")

        return cls(world=world, volumes=tuple(Volume.from_record(record) for record in volumes))
