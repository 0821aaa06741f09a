"""Material definitions referenced by volumes."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterator, Mapping, Self

from ..codec.colors import parse_color
from ..errors import FormatError

_MATERIAL_KEYS = frozenset({
    "type", "density", "density_unit", "state", "temperature",
    "temperature_unit", "composition", "color",
})


@dataclass(frozen=True)
class Material:
    """Material definition as consumed by the simulation description.

    Attributes:
        name: Material identifier referenced by ``Volume.material``
        type: ``nist`` for predefined materials, ``element_based`` or
            ``compound`` for custom ones
        density: Density value in ``density_unit``
        state: ``solid``, ``liquid`` or ``gas``
        temperature: Optional temperature in ``temperature_unit``
        composition: Element or material name -> fraction
        color: Default display color (``{r, g, b, a}``) for volumes that
            set none
    """

    name: str
    type: str = "nist"
    density: float | None = None
    density_unit: str = "g/cm3"
    state: str | None = None
    temperature: float | None = None
    temperature_unit: str | None = None
    composition: Mapping[str, float] = field(default_factory=dict)
    color: Mapping[str, float] | None = None
    extra: Mapping[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_record(cls, name: str, record: Mapping[str, Any]) -> Self:
        """Parse one entry of a materials map.

        Raises:
            FormatError: If the entry is not an object or has bad values
        """
        if not isinstance(record, Mapping):
            raise FormatError(f"Material '{name}' must be an object")
        composition = record.get("composition") or {}
        if not isinstance(composition, Mapping):
            raise FormatError(f"Material '{name}' composition must be an object")
        try:
            density = record.get("density")
            temperature = record.get("temperature")
            return cls(
                name=name,
                type=record.get("type", "nist"),
                density=float(density) if density is not None else None,
                density_unit=record.get("density_unit", "g/cm3"),
                state=record.get("state"),
                temperature=float(temperature) if temperature is not None else None,
                temperature_unit=record.get("temperature_unit"),
                composition={k: float(v) for k, v in composition.items()},
                color=parse_color(record.get("color")),
                extra={k: v for k, v in record.items() if k not in _MATERIAL_KEYS},
            )
        except (TypeError, ValueError) as exc:
            raise FormatError(f"Material '{name}' has an invalid value: {exc}") from exc

    def to_record(self) -> dict[str, Any]:
        record: dict[str, Any] = {"type": self.type}
        if self.density is not None:
            record["density"] = self.density
            record["density_unit"] = self.density_unit
        for key in ("state", "temperature", "temperature_unit"):
            value = getattr(self, key)
            if value is not None:
                record[key] = value
        if self.composition:
            record["composition"] = dict(self.composition)
        if self.color is not None:
            record["color"] = dict(self.color)
        record.update(self.extra)
        return record


DEFAULT_MATERIALS = (
    Material(
        "LXe", type="element_based", density=3.02, state="liquid",
        temperature=165.0, temperature_unit="kelvin", composition={"Xe": 1.0},
    ),
    Material("G4_AIR", density=0.00120479),
    Material("G4_WATER", density=1.0),
    Material("G4_Al", density=2.699),
    Material("G4_PLASTIC_SC_VINYLTOLUENE", density=1.032),
)


class MaterialTable(Mapping[str, Material]):
    """Read-only name -> Material map; ``with_material`` returns a new table."""

    def __init__(self, materials: Mapping[str, Material] | None = None):
        self._materials = dict(materials or {})

    def __getitem__(self, name: str) -> Material:
        return self._materials[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._materials)

    def __len__(self) -> int:
        return len(self._materials)

    def __repr__(self) -> str:
        return f"MaterialTable({list(self._materials)})"

    @classmethod
    def defaults(cls) -> Self:
        return cls({material.name: material for material in DEFAULT_MATERIALS})

    @classmethod
    def from_mapping(cls, data: Any) -> Self:
        """Build a table from a ``{name: {...}}`` materials map.

        Raises:
            FormatError: If ``data`` is not an object or an entry is invalid
        """
        if not isinstance(data, Mapping):
            raise FormatError("Materials must be an object mapping names to definitions")
        return cls({name: Material.from_record(name, record) for name, record in data.items()})

    def with_material(self, material: Material) -> MaterialTable:
        return MaterialTable({**self._materials, material.name: material})

    def to_dict(self) -> dict[str, Any]:
        return {name: material.to_record() for name, material in self._materials.items()}
