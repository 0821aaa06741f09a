"""World/local transform resolution over a volume graph."""

from __future__ import annotations

from typing import Any, Mapping

import numpy as np
from numpy.typing import NDArray

from ..errors import CycleError
from .graph import VolumeGraph
from .transform import Transform, euler_near, rotation_from_input
from .volume import Vector3, Volume


def local_transform(volume: Volume) -> Transform:
    """Transform of ``volume`` relative to its mother volume."""
    if volume.is_world:
        return Transform.identity()
    return Transform.from_pose(volume.position.as_array(), volume.rotation.as_array())


class TransformResolver:
    """Computes world-space poses for the volumes of one graph snapshot.

    Results are memoized per resolver. Snapshots are immutable, so a resolver
    is never stale for the graph it was built from; build a new resolver for
    a new snapshot.

    ``overrides`` maps volume names to authoritative world transforms. It is
    used while a volume is being dragged: the override replaces that
    volume's resolved pose and its descendants compose from it.
    """

    def __init__(self, graph: VolumeGraph, overrides: Mapping[str, Transform] | None = None):
        self.graph = graph
        self._overrides = dict(overrides or {})
        self._cache: dict[str, Transform] = {}
        self._max_depth = len(graph) + 1

    def _volume(self, volume: Volume | str) -> Volume:
        if isinstance(volume, Volume):
            return volume
        return self.graph.get(volume)

    def _known(self, volume: Volume) -> Transform | None:
        if volume.is_world:
            return Transform.identity()
        override = self._overrides.get(volume.name)
        if override is not None:
            return override
        return self._cache.get(volume.name)

    def world_transform(self, volume: Volume | str) -> Transform:
        """World-space transform of ``volume``.

        Walks up the mother-volume chain until it reaches World (or an already
        known pose), then composes back down, parent first.

        Raises:
            CycleError: If the chain is longer than the graph allows
            VolumeNotFoundError: If ``volume`` is a name not in the graph
        """
        volume = self._volume(volume)
        known = self._known(volume)
        if known is not None:
            return known

        chain = [volume]
        current = volume
        while True:
            parent = self.graph.parent_of(current)
            if parent is None:
                base = Transform.identity()
                break
            known = self._known(parent)
            if known is not None:
                base = known
                break
            chain.append(parent)
            if len(chain) > self._max_depth:
                raise CycleError(f"Mother-volume chain of '{volume.name}' does not reach World")
            current = parent

        for member in reversed(chain):
            base = base.compose(local_transform(member))
            self._cache[member.name] = base
        return base

    def parent_transform(self, volume: Volume | str) -> Transform:
        """World-space transform of the frame ``volume`` is positioned in."""
        parent = self.graph.parent_of(self._volume(volume))
        if parent is None:
            return Transform.identity()
        return self.world_transform(parent)

    def world_pose(self, volume: Volume | str) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
        """World position and (x, y, z, w) rotation quaternion of ``volume``."""
        transform = self.world_transform(volume)
        return transform.translation.copy(), transform.quaternion

    def world_to_local(
        self,
        volume: Volume | str,
        position: Any,
        rotation: Any,
    ) -> tuple[Vector3, Vector3]:
        """Convert a desired world pose into ``volume``'s local position/rotation.

        Args:
            volume: The volume being placed
            position: World position as 3 numbers
            rotation: World rotation as a scipy Rotation, 3 XYZ Euler degrees
                or an (x, y, z, w) quaternion

        Returns:
            (position, rotation) vectors carrying the volume's current unit tags.
            The Euler angles are the solution closest to the current rotation,
            so an unchanged pose returns the stored angles.
        """
        volume = self._volume(volume)
        desired = Transform(
            translation=np.asarray(position, dtype=np.float64),
            rotation=rotation_from_input(rotation),
        )
        local = self.parent_transform(volume).inverse().compose(desired)
        return (
            Vector3.from_array(local.translation, volume.position.unit),
            Vector3.from_array(euler_near(local.rotation, volume.rotation.as_array()), volume.rotation.unit),
        )
