"""Volume records: one solid instance in the geometry tree."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Mapping, Self

import numpy as np
from numpy.typing import NDArray

from ..errors import FormatError
from .shapes import AssemblyShape, BoxShape, Shape, UnionShape, shape_from_record

WORLD_NAME = "World"

DEFAULT_LENGTH_UNIT = "mm"
DEFAULT_ANGLE_UNIT = "deg"

# Keys handled explicitly by Volume; everything else is carried in ``extra``
_VOLUME_KEYS = frozenset({
    "name", "displayName", "g4name", "type", "material", "position", "rotation",
    "mother_volume", "color", "isActive", "hitsCollectionName",
    "_compoundId", "_componentId", "_instanceId",
})

# Merged key-by-key instead of replaced when patching a record
NESTED_PATCH_KEYS = ("position", "rotation", "size", "dimensions")


@dataclass(frozen=True)
class Vector3:
    """An x/y/z triple with an opaque unit tag."""

    x: float = 0.0
    y: float = 0.0
    z: float = 0.0
    unit: str | None = None

    @classmethod
    def from_record(cls, value: Any, default_unit: str | None = None) -> Self:
        if value is None:
            return cls(unit=default_unit)
        if isinstance(value, Vector3):
            return value
        if isinstance(value, Mapping):
            try:
                return cls(
                    x=float(value.get("x") or 0.0),
                    y=float(value.get("y") or 0.0),
                    z=float(value.get("z") or 0.0),
                    unit=value.get("unit", default_unit),
                )
            except (TypeError, ValueError) as exc:
                raise FormatError(f"Invalid vector {value!r}") from exc
        if isinstance(value, (list, tuple, np.ndarray)) and len(value) == 3:
            return cls(float(value[0]), float(value[1]), float(value[2]), default_unit)
        raise FormatError(f"Invalid vector {value!r}")

    @classmethod
    def from_array(cls, values: NDArray[np.float64], unit: str | None = None) -> Self:
        return cls(float(values[0]), float(values[1]), float(values[2]), unit)

    def to_record(self) -> dict[str, Any]:
        record: dict[str, Any] = {"x": self.x, "y": self.y, "z": self.z}
        if self.unit is not None:
            record["unit"] = self.unit
        return record

    def as_array(self) -> NDArray[np.float64]:
        return np.array([self.x, self.y, self.z], dtype=np.float64)


@dataclass(frozen=True)
class Volume:
    """A named solid instance.

    ``name`` is the unique reference key used by every relation; ``display_name``
    is the human label and need not be unique. ``mother_volume`` is the name
    of the parent, ``None`` meaning the World root.

    Unrecognised record keys are kept in ``extra`` and written back unchanged.
    """

    name: str
    shape: Shape = field(default_factory=BoxShape)
    display_name: str | None = None
    material: str | None = None
    position: Vector3 = field(default_factory=lambda: Vector3(unit=DEFAULT_LENGTH_UNIT))
    rotation: Vector3 = field(default_factory=lambda: Vector3(unit=DEFAULT_ANGLE_UNIT))
    mother_volume: str | None = None
    compound_id: str | None = None
    component_id: str | None = None
    instance_id: str | None = None
    is_active: bool | None = None
    hits_collection_name: str | None = None
    color: Any = None
    extra: Mapping[str, Any] = field(default_factory=dict, repr=False)

    @property
    def type(self) -> str:
        return self.shape.kind

    @property
    def is_assembly(self) -> bool:
        return isinstance(self.shape, AssemblyShape)

    @property
    def is_union(self) -> bool:
        return isinstance(self.shape, UnionShape)

    @property
    def is_world(self) -> bool:
        return self.name == WORLD_NAME

    @property
    def parent_name(self) -> str:
        """The mother volume name, with ``None`` read as World."""
        return self.mother_volume or WORLD_NAME

    @property
    def label(self) -> str:
        """Human-facing label (display name, falling back to the internal name)."""
        return self.display_name or self.name

    @property
    def is_boolean_component(self) -> bool:
        return bool(self.extra.get("_is_boolean_component"))

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> Self:
        """Parse an editable volume record.

        Raises:
            FormatError: If the record is not an object, lacks a name, or has an
                unknown type
        """
        if not isinstance(record, Mapping):
            raise FormatError(f"Volume record must be an object, got {type(record).__name__}")
        name = record.get("name")
        if not isinstance(name, str) or not name:
            raise FormatError(f"Volume record is missing a name: {record!r}")

        shape = shape_from_record(record)
        owned = _VOLUME_KEYS | set(shape.record_keys)
        extra = {key: value for key, value in record.items() if key not in owned}

        mother = record.get("mother_volume")
        if mother is not None and not isinstance(mother, str):
            raise FormatError(f"Volume '{name}' has a non-string mother_volume: {mother!r}")

        is_active = record.get("isActive")
        return cls(
            name=name,
            shape=shape,
            display_name=record.get("displayName") or record.get("g4name"),
            material=record.get("material"),
            position=Vector3.from_record(record.get("position"), DEFAULT_LENGTH_UNIT),
            rotation=Vector3.from_record(record.get("rotation"), DEFAULT_ANGLE_UNIT),
            mother_volume=mother or None,
            compound_id=record.get("_compoundId"),
            component_id=record.get("_componentId"),
            instance_id=record.get("_instanceId"),
            is_active=bool(is_active) if is_active is not None else None,
            hits_collection_name=record.get("hitsCollectionName"),
            color=record.get("color"),
            extra=extra,
        )

    def to_record(self) -> dict[str, Any]:
        """Serialize back to the editable record layout."""
        record: dict[str, Any] = {"name": self.name}
        if self.display_name is not None:
            record["displayName"] = self.display_name
        record["type"] = self.type
        if self.material is not None:
            record["material"] = self.material
        record["position"] = self.position.to_record()
        record["rotation"] = self.rotation.to_record()
        if not self.is_world:
            record["mother_volume"] = self.parent_name
        record.update(self.shape.to_record())
        if self.color is not None:
            record["color"] = self.color
        if self.is_active is not None:
            record["isActive"] = self.is_active
        if self.hits_collection_name is not None:
            record["hitsCollectionName"] = self.hits_collection_name
        if self.compound_id is not None:
            record["_compoundId"] = self.compound_id
        if self.component_id is not None:
            record["_componentId"] = self.component_id
        if self.instance_id is not None:
            record["_instanceId"] = self.instance_id
        record.update(self.extra)
        return record

    def patched(self, patch: Mapping[str, Any]) -> Volume:
        """Return a new volume with ``patch`` merged over this volume's record.

        Nested vectors (position, rotation, size, dimensions) are merged key by
        key so a patch may carry a single coordinate.
        """
        record = self.to_record()
        for key, value in patch.items():
            base = record.get(key)
            if key in NESTED_PATCH_KEYS and isinstance(base, Mapping) and isinstance(value, Mapping):
                record[key] = {**base, **value}
            else:
                record[key] = value
        # Shape fields of the old type must not leak into a new type's extras
        if record.get("type") != self.type:
            for key in self.shape.record_keys:
                if key not in patch:
                    record.pop(key, None)
        return Volume.from_record(record)

    def replace(self, **changes: Any) -> Volume:
        return replace(self, **changes)


def default_world(
    size: tuple[float, float, float] = (200.0, 200.0, 200.0),
    material: str = "G4_AIR",
) -> Volume:
    """Create the World root volume."""
    return Volume(
        name=WORLD_NAME,
        shape=BoxShape(x=size[0], y=size[1], z=size[2]),
        material=material,
    )
