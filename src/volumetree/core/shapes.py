"""Shape kinds supported by the volume graph.

Every volume carries exactly one shape. A shape knows how to read and write
its fields in the editable volume record and how to express itself as the
normalized ``dimensions`` mapping used by the placement wire format.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, ClassVar, Mapping, Self

from ..errors import FormatError


def _number(value: Any, default: float, key: str) -> float:
    """Coerce a record value to float, falling back to ``default`` when absent."""
    if value is None:
        return float(default)
    if isinstance(value, bool):
        raise FormatError(f"Field '{key}' must be numeric, got {value!r}")
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise FormatError(f"Field '{key}' must be numeric, got {value!r}") from exc


def _first(record: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if record.get(key) is not None:
            return record[key]
    return None


@dataclass(frozen=True)
class Shape(ABC):
    """Base class for the per-kind shape payload."""

    kind: ClassVar[str] = ""
    # Record keys owned by the shape (anything else belongs to the volume)
    record_keys: ClassVar[tuple[str, ...]] = ()

    @classmethod
    @abstractmethod
    def from_record(cls, record: Mapping[str, Any]) -> Self:
        """Build the shape from an editable volume record."""

    @abstractmethod
    def to_record(self) -> dict[str, Any]:
        """Shape fields as they appear in the editable volume record."""

    @abstractmethod
    def dimensions(self) -> dict[str, Any]:
        """Normalized wire-format dimensions."""

    @classmethod
    @abstractmethod
    def from_dimensions(cls, dimensions: Mapping[str, Any]) -> Self:
        """Inverse of :meth:`dimensions`."""


@dataclass(frozen=True)
class BoxShape(Shape):
    kind: ClassVar[str] = "box"
    record_keys: ClassVar[tuple[str, ...]] = ("size",)

    x: float = 100.0
    y: float = 100.0
    z: float = 100.0
    unit: str | None = None

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> Self:
        size = record.get("size") or {}
        if not isinstance(size, Mapping):
            raise FormatError(f"Box 'size' must be an object, got {size!r}")
        return cls(
            x=_number(size.get("x"), 100.0, "size.x"),
            y=_number(size.get("y"), 100.0, "size.y"),
            z=_number(size.get("z"), 100.0, "size.z"),
            unit=size.get("unit"),
        )

    def to_record(self) -> dict[str, Any]:
        size: dict[str, Any] = {"x": self.x, "y": self.y, "z": self.z}
        if self.unit is not None:
            size["unit"] = self.unit
        return {"size": size}

    def dimensions(self) -> dict[str, Any]:
        return {"x": self.x, "y": self.y, "z": self.z}

    @classmethod
    def from_dimensions(cls, dimensions: Mapping[str, Any]) -> Self:
        return cls(
            x=_number(dimensions.get("x"), 100.0, "x"),
            y=_number(dimensions.get("y"), 100.0, "y"),
            z=_number(dimensions.get("z"), 100.0, "z"),
        )


@dataclass(frozen=True)
class SphereShape(Shape):
    kind: ClassVar[str] = "sphere"
    record_keys: ClassVar[tuple[str, ...]] = ("radius", "innerRadius", "inner_radius")

    radius: float = 50.0
    inner_radius: float = 0.0

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> Self:
        return cls(
            radius=_number(record.get("radius"), 50.0, "radius"),
            inner_radius=_number(_first(record, "innerRadius", "inner_radius"), 0.0, "innerRadius"),
        )

    def to_record(self) -> dict[str, Any]:
        return {"radius": self.radius, "innerRadius": self.inner_radius}

    def dimensions(self) -> dict[str, Any]:
        dims: dict[str, Any] = {"radius": self.radius}
        if self.inner_radius:
            dims["inner_radius"] = self.inner_radius
        return dims

    @classmethod
    def from_dimensions(cls, dimensions: Mapping[str, Any]) -> Self:
        return cls(
            radius=_number(dimensions.get("radius"), 50.0, "radius"),
            inner_radius=_number(dimensions.get("inner_radius"), 0.0, "inner_radius"),
        )


@dataclass(frozen=True)
class CylinderShape(Shape):
    kind: ClassVar[str] = "cylinder"
    record_keys: ClassVar[tuple[str, ...]] = ("radius", "height", "inner_radius", "innerRadius")

    radius: float = 50.0
    height: float = 100.0
    inner_radius: float = 0.0

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> Self:
        return cls(
            radius=_number(record.get("radius"), 50.0, "radius"),
            height=_number(record.get("height"), 100.0, "height"),
            inner_radius=_number(_first(record, "inner_radius", "innerRadius"), 0.0, "inner_radius"),
        )

    def to_record(self) -> dict[str, Any]:
        return {"radius": self.radius, "height": self.height, "inner_radius": self.inner_radius}

    def dimensions(self) -> dict[str, Any]:
        return {"radius": self.radius, "height": self.height, "inner_radius": self.inner_radius}

    @classmethod
    def from_dimensions(cls, dimensions: Mapping[str, Any]) -> Self:
        return cls(
            radius=_number(dimensions.get("radius"), 50.0, "radius"),
            height=_number(dimensions.get("height"), 100.0, "height"),
            inner_radius=_number(dimensions.get("inner_radius"), 0.0, "inner_radius"),
        )


@dataclass(frozen=True)
class TrapezoidShape(Shape):
    """G4Trd-style trapezoid; all values are half-lengths."""

    kind: ClassVar[str] = "trapezoid"
    record_keys: ClassVar[tuple[str, ...]] = ("dx1", "dx2", "dy1", "dy2", "dz")

    dx1: float = 50.0
    dx2: float = 50.0
    dy1: float = 50.0
    dy2: float = 50.0
    dz: float = 50.0

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> Self:
        return cls(**{key: _number(record.get(key), 50.0, key) for key in cls.record_keys})

    def to_record(self) -> dict[str, Any]:
        return {key: getattr(self, key) for key in self.record_keys}

    def dimensions(self) -> dict[str, Any]:
        return self.to_record()

    @classmethod
    def from_dimensions(cls, dimensions: Mapping[str, Any]) -> Self:
        return cls.from_record(dimensions)


@dataclass(frozen=True)
class TorusShape(Shape):
    kind: ClassVar[str] = "torus"
    record_keys: ClassVar[tuple[str, ...]] = (
        "majorRadius", "minorRadius", "major_radius", "minor_radius",
    )

    major_radius: float = 50.0
    minor_radius: float = 10.0

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> Self:
        return cls(
            major_radius=_number(_first(record, "majorRadius", "major_radius"), 50.0, "majorRadius"),
            minor_radius=_number(_first(record, "minorRadius", "minor_radius"), 10.0, "minorRadius"),
        )

    def to_record(self) -> dict[str, Any]:
        return {"majorRadius": self.major_radius, "minorRadius": self.minor_radius}

    def dimensions(self) -> dict[str, Any]:
        return {"major_radius": self.major_radius, "minor_radius": self.minor_radius}

    @classmethod
    def from_dimensions(cls, dimensions: Mapping[str, Any]) -> Self:
        return cls.from_record(dimensions)


@dataclass(frozen=True)
class EllipsoidShape(Shape):
    kind: ClassVar[str] = "ellipsoid"
    record_keys: ClassVar[tuple[str, ...]] = (
        "xRadius", "yRadius", "zRadius", "x_radius", "y_radius", "z_radius",
    )

    x_radius: float = 50.0
    y_radius: float = 30.0
    z_radius: float = 40.0

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> Self:
        return cls(
            x_radius=_number(_first(record, "xRadius", "x_radius"), 50.0, "xRadius"),
            y_radius=_number(_first(record, "yRadius", "y_radius"), 30.0, "yRadius"),
            z_radius=_number(_first(record, "zRadius", "z_radius"), 40.0, "zRadius"),
        )

    def to_record(self) -> dict[str, Any]:
        return {"xRadius": self.x_radius, "yRadius": self.y_radius, "zRadius": self.z_radius}

    def dimensions(self) -> dict[str, Any]:
        return {"x_radius": self.x_radius, "y_radius": self.y_radius, "z_radius": self.z_radius}

    @classmethod
    def from_dimensions(cls, dimensions: Mapping[str, Any]) -> Self:
        return cls.from_record(dimensions)


@dataclass(frozen=True)
class ZSection:
    z: float
    r_min: float
    r_max: float


DEFAULT_Z_SECTIONS = (
    ZSection(-50.0, 0.0, 30.0),
    ZSection(0.0, 0.0, 50.0),
    ZSection(50.0, 0.0, 30.0),
)


@dataclass(frozen=True)
class PolyconeShape(Shape):
    """Stack of z-planes with inner/outer radii, kept sorted by ``z``."""

    kind: ClassVar[str] = "polycone"
    record_keys: ClassVar[tuple[str, ...]] = ("zSections",)

    z_sections: tuple[ZSection, ...] = DEFAULT_Z_SECTIONS

    def __post_init__(self) -> None:
        object.__setattr__(self, "z_sections", tuple(sorted(self.z_sections, key=lambda s: s.z)))

    @classmethod
    def _sections_from_record(cls, record: Mapping[str, Any]) -> tuple[ZSection, ...]:
        raw = record.get("zSections")
        if raw is None:
            return DEFAULT_Z_SECTIONS
        if not isinstance(raw, (list, tuple)):
            raise FormatError(f"'zSections' must be a list, got {raw!r}")
        sections = []
        for i, section in enumerate(raw):
            if not isinstance(section, Mapping):
                raise FormatError(f"zSections[{i}] must be an object")
            sections.append(ZSection(
                z=_number(section.get("z"), 0.0, f"zSections[{i}].z"),
                r_min=_number(section.get("rMin"), 0.0, f"zSections[{i}].rMin"),
                r_max=_number(section.get("rMax"), 0.0, f"zSections[{i}].rMax"),
            ))
        return tuple(sections)

    @classmethod
    def _sections_from_dimensions(cls, dimensions: Mapping[str, Any]) -> tuple[ZSection, ...]:
        z = dimensions.get("z")
        rmin = dimensions.get("rmin")
        rmax = dimensions.get("rmax")
        if z is None or rmin is None or rmax is None:
            return DEFAULT_Z_SECTIONS
        for key, values in (("z", z), ("rmin", rmin), ("rmax", rmax)):
            if not isinstance(values, (list, tuple)):
                raise FormatError(f"Polycone '{key}' must be a list, got {values!r}")
        if not (len(z) == len(rmin) == len(rmax)):
            raise FormatError("Polycone z/rmin/rmax arrays must have equal length")
        return tuple(
            ZSection(_number(zi, 0.0, "z"), _number(a, 0.0, "rmin"), _number(b, 0.0, "rmax"))
            for zi, a, b in zip(z, rmin, rmax)
        )

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> Self:
        return cls(z_sections=cls._sections_from_record(record))

    def to_record(self) -> dict[str, Any]:
        return {"zSections": [{"z": s.z, "rMin": s.r_min, "rMax": s.r_max} for s in self.z_sections]}

    def dimensions(self) -> dict[str, Any]:
        # Sections are already sorted; the three arrays share that permutation
        return {
            "z": [s.z for s in self.z_sections],
            "rmin": [s.r_min for s in self.z_sections],
            "rmax": [s.r_max for s in self.z_sections],
        }

    @classmethod
    def from_dimensions(cls, dimensions: Mapping[str, Any]) -> Self:
        return cls(z_sections=cls._sections_from_dimensions(dimensions))


@dataclass(frozen=True)
class PolyhedraShape(PolyconeShape):
    kind: ClassVar[str] = "polyhedra"
    record_keys: ClassVar[tuple[str, ...]] = ("zSections", "numSides")

    num_sides: int = 6

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> Self:
        return cls(
            z_sections=cls._sections_from_record(record),
            num_sides=int(_number(record.get("numSides"), 6, "numSides")),
        )

    def to_record(self) -> dict[str, Any]:
        return {**super().to_record(), "numSides": self.num_sides}

    def dimensions(self) -> dict[str, Any]:
        return {**super().dimensions(), "num_sides": self.num_sides}

    @classmethod
    def from_dimensions(cls, dimensions: Mapping[str, Any]) -> Self:
        return cls(
            z_sections=cls._sections_from_dimensions(dimensions),
            num_sides=int(_number(dimensions.get("num_sides"), 6, "num_sides")),
        )


@dataclass(frozen=True)
class UnionShape(Shape):
    """Boolean union; its solids are child volumes, so only free-form parameters live here."""

    kind: ClassVar[str] = "union"
    record_keys: ClassVar[tuple[str, ...]] = ("dimensions",)

    params: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> Self:
        params = record.get("dimensions") or {}
        if not isinstance(params, Mapping):
            raise FormatError("Union 'dimensions' must be an object")
        return cls(params=dict(params))

    def to_record(self) -> dict[str, Any]:
        return {"dimensions": dict(self.params)} if self.params else {}

    def dimensions(self) -> dict[str, Any]:
        return dict(self.params)

    @classmethod
    def from_dimensions(cls, dimensions: Mapping[str, Any]) -> Self:
        return cls(params=dict(dimensions))


@dataclass(frozen=True)
class AssemblyShape(Shape):
    """Pure container with no solid of its own."""

    kind: ClassVar[str] = "assembly"

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> Self:
        return cls()

    def to_record(self) -> dict[str, Any]:
        return {}

    def dimensions(self) -> dict[str, Any]:
        return {}

    @classmethod
    def from_dimensions(cls, dimensions: Mapping[str, Any]) -> Self:
        return cls()


# Registry of shape kinds, keyed by the record's ``type``
SHAPE_REGISTRY: dict[str, type[Shape]] = {
    shape.kind: shape
    for shape in (
        BoxShape,
        SphereShape,
        CylinderShape,
        TrapezoidShape,
        TorusShape,
        EllipsoidShape,
        PolyconeShape,
        PolyhedraShape,
        UnionShape,
        AssemblyShape,
    )
}


def shape_class(kind: str) -> type[Shape]:
    """Look up a shape class by type name.

    Raises:
        FormatError: If the type is not a known shape kind
    """
    try:
        return SHAPE_REGISTRY[kind]
    except KeyError:
        raise FormatError(f"Unknown volume type: {kind!r}") from None


def shape_from_record(record: Mapping[str, Any]) -> Shape:
    return shape_class(record.get("type")).from_record(record)


def shape_from_dimensions(kind: str, dimensions: Mapping[str, Any] | None) -> Shape:
    return shape_class(kind).from_dimensions(dimensions or {})
