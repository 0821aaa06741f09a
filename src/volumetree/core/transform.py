"""Transform class for rigid 3D placements."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Self, Sequence

import numpy as np
from numpy.typing import NDArray
from scipy.spatial.transform import Rotation

# Intrinsic X, then Y about the new Y, then Z about the new Z
EULER_ORDER = "XYZ"

# Rotations closer than this (radians) are treated as equal
ROTATION_TOLERANCE = 1e-9


def rotation_from_input(value: Any) -> Rotation:
    """Coerce a rotation given as a Rotation, 3 Euler degrees or an (x, y, z, w) quaternion."""
    if isinstance(value, Rotation):
        return value
    if value is None:
        return Rotation.identity()
    values = np.asarray(value, dtype=np.float64)
    if values.shape == (3,):
        return Rotation.from_euler(EULER_ORDER, values, degrees=True)
    if values.shape == (4,):
        return Rotation.from_quat(values)
    raise ValueError(f"Rotation must be 3 Euler angles or a 4-component quaternion, got shape {values.shape}")


def euler_near(rotation: Rotation, reference: Sequence[float]) -> NDArray[np.float64]:
    """XYZ Euler degrees of ``rotation``, picking the triple closest to ``reference``.

    A rotation has two Euler triples, (a, b, c) and (a + 180, 180 - b, c + 180),
    each defined modulo 360. scipy returns one canonical triple, so angles
    such as y = 120 would come back rewritten. When ``rotation`` equals the
    reference rotation the reference angles are returned unchanged.
    """
    reference = np.asarray(reference, dtype=np.float64)
    current = Rotation.from_euler(EULER_ORDER, reference, degrees=True)
    if (rotation * current.inv()).magnitude() < ROTATION_TOLERANCE:
        return reference.copy()

    a, b, c = rotation.as_euler(EULER_ORDER, degrees=True)
    candidates = [np.array([a, b, c]), np.array([a + 180.0, 180.0 - b, c + 180.0])]
    wrapped = [reference + (angles - reference + 180.0) % 360.0 - 180.0 for angles in candidates]
    return min(wrapped, key=lambda angles: float(np.abs(angles - reference).sum()))


@dataclass
class Transform:
    """Represents a rigid 3D transformation with translation and rotation.

    Rotation is stored as a scipy ``Rotation``; Euler angles in and out are
    degrees in intrinsic XYZ order.
    """

    translation: NDArray[np.float64] = field(
        default_factory=lambda: np.zeros(3, dtype=np.float64)
    )
    rotation: Rotation = field(default_factory=Rotation.identity)

    def __post_init__(self) -> None:
        self.translation = np.asarray(self.translation, dtype=np.float64)

    @classmethod
    def from_pose(cls, position: Sequence[float], rotation_degrees: Sequence[float]) -> Self:
        """Create a Transform from a position and XYZ Euler angles in degrees."""
        return cls(
            translation=np.asarray(position, dtype=np.float64),
            rotation=Rotation.from_euler(EULER_ORDER, rotation_degrees, degrees=True),
        )

    def to_matrix(self) -> NDArray[np.float64]:
        """Convert to a 4x4 homogeneous matrix (rotate, then translate)."""
        matrix = np.eye(4, dtype=np.float64)
        matrix[:3, :3] = self.rotation.as_matrix()
        matrix[:3, 3] = self.translation
        return matrix

    @classmethod
    def from_matrix(cls, matrix: NDArray[np.float64]) -> Self:
        """Create Transform from a 4x4 rigid transformation matrix."""
        return cls(
            translation=matrix[:3, 3].copy(),
            rotation=Rotation.from_matrix(matrix[:3, :3]),
        )

    def copy(self) -> Self:
        """Create a deep copy of this transform."""
        return Transform(
            translation=self.translation.copy(),
            rotation=Rotation.from_quat(self.rotation.as_quat()),
        )

    @staticmethod
    def identity() -> Transform:
        """Create an identity transform."""
        return Transform()

    def compose(self, local: Transform) -> Transform:
        """Place ``local`` inside this frame.

        position = self.translation + self.rotation * local.translation
        rotation = self.rotation * local.rotation
        """
        return Transform(
            translation=self.translation + self.rotation.apply(local.translation),
            rotation=self.rotation * local.rotation,
        )

    def inverse(self) -> Transform:
        inverse_rotation = self.rotation.inv()
        return Transform(
            translation=-inverse_rotation.apply(self.translation),
            rotation=inverse_rotation,
        )

    def apply(self, point: Sequence[float]) -> NDArray[np.float64]:
        """Map a point from this frame's local space into its parent space."""
        return self.translation + self.rotation.apply(np.asarray(point, dtype=np.float64))

    @property
    def quaternion(self) -> NDArray[np.float64]:
        """Rotation as a scalar-last (x, y, z, w) quaternion."""
        return self.rotation.as_quat()

    @property
    def euler_degrees(self) -> NDArray[np.float64]:
        return self.rotation.as_euler(EULER_ORDER, degrees=True)

    def __matmul__(self, other: Transform) -> Transform:
        """Combine two transforms, same as :meth:`compose`."""
        return self.compose(other)
