"""Load materials from YAML definition files."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml

from ..errors import FormatError
from .material import Material, MaterialTable

logger = logging.getLogger(__name__)


class MaterialLoader:
    """Loads material definitions from YAML files.

    YAML format:
    ```yaml
    name: LXe
    type: element_based
    density: 3.02
    density_unit: g/cm3
    state: liquid
    temperature: 165.0
    temperature_unit: kelvin
    composition:
      Xe: 1.0
    color: [0.2, 0.4, 0.9, 0.5]
    ```
    """

    def __init__(self, search_paths: list[Path] | None = None) -> None:
        """Initialize loader with search paths.

        Args:
            search_paths: Directories to search for material YAML files.
                         Defaults to ``materials/`` in the working directory.
        """
        if search_paths is None:
            self.search_paths = [Path.cwd() / "materials"]
        else:
            self.search_paths = [Path(p) for p in search_paths]

        self._cache: dict[str, Material] = {}

    def load(self, name: str) -> Material:
        """Load a material by name.

        Searches for {name}.yaml in search paths.

        Args:
            name: Material name (without .yaml extension)

        Returns:
            Material instance

        Raises:
            FileNotFoundError: If material YAML not found
            FormatError: If YAML format is invalid
        """
        if name in self._cache:
            return self._cache[name]

        yaml_path = self._find_yaml(name)
        if yaml_path is None:
            raise FileNotFoundError(
                f"Material '{name}' not found in search paths: {self.search_paths}"
            )

        material = self._load_yaml(yaml_path, name)
        self._cache[name] = material
        return material

    def load_table(self, base: MaterialTable | None = None) -> MaterialTable:
        """Load every ``*.yaml`` in the search paths on top of ``base``.

        Earlier search paths win when two files define the same name.
        """
        table = base if base is not None else MaterialTable()
        seen: set[str] = set()
        for search_path in self.search_paths:
            if not search_path.is_dir():
                logger.debug(f"Material search path {search_path} does not exist")
                continue
            for yaml_path in sorted(search_path.glob("*.yaml")):
                if yaml_path.stem in seen:
                    continue
                seen.add(yaml_path.stem)
                material = self.load(yaml_path.stem)
                table = table.with_material(material)
        return table

    def _find_yaml(self, name: str) -> Path | None:
        """Find YAML file for material name."""
        for search_path in self.search_paths:
            yaml_path = search_path / f"{name}.yaml"
            if yaml_path.exists():
                return yaml_path
        return None

    def _load_yaml(self, path: Path, name: str) -> Material:
        """Load material from YAML file."""
        with open(path) as f:
            try:
                data = yaml.safe_load(f)
            except yaml.YAMLError as exc:
                raise FormatError(f"Invalid YAML in {path}: {exc}") from exc

        return self._parse_material(data, name)

    def _parse_material(self, data: Any, name: str) -> Material:
        """Parse material definition from YAML data."""
        if not isinstance(data, dict):
            raise FormatError(f"Material file for '{name}' must contain a mapping")
        record = dict(data)
        material_name = record.pop("name", name)
        return Material.from_record(material_name, record)

    def clear_cache(self) -> None:
        """Clear the material cache."""
        self._cache.clear()
