"""Editor configuration loaded from YAML."""

from __future__ import annotations

import logging
from dataclasses import dataclass, fields
from enum import Enum
from pathlib import Path
from typing import Any, Mapping, Self

import yaml

from .errors import FormatError

logger = logging.getLogger(__name__)


class PropagationScope(str, Enum):
    """Which descendants receive a parent's compound id when it is re-parented.

    ``ALL`` stamps every descendant; ``BOOLEAN`` only stamps the boolean
    components of a union.
    """

    ALL = "all"
    BOOLEAN = "boolean"


@dataclass(frozen=True)
class EditorConfig:
    """Tunable editor behaviour.

    YAML format:
    ```yaml
    world_size: [200, 200, 200]
    world_material: G4_AIR
    propagation_scope: all
    component_id_max_passes: 8
    fallback_color: [0.7, 0.7, 0.7, 1.0]
    default_hits_collection: MyHitsCollection
    log_level: WARNING
    ```
    """

    world_size: tuple[float, float, float] = (200.0, 200.0, 200.0)
    world_material: str = "G4_AIR"
    propagation_scope: PropagationScope = PropagationScope.ALL
    component_id_max_passes: int = 8
    fallback_color: tuple[float, float, float, float] = (0.7, 0.7, 0.7, 1.0)
    default_hits_collection: str = "MyHitsCollection"
    log_level: str = "WARNING"

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Self:
        """Build a config from a mapping, validating keys and value shapes.

        Raises:
            FormatError: On unknown keys or invalid values
        """
        if not isinstance(data, Mapping):
            raise FormatError("Configuration must be a mapping")
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise FormatError(f"Unknown configuration keys: {', '.join(unknown)}")

        values = dict(data)
        try:
            if "world_size" in values:
                values["world_size"] = _float_tuple(values["world_size"], 3, "world_size")
            if "fallback_color" in values:
                values["fallback_color"] = _float_tuple(values["fallback_color"], 4, "fallback_color")
            if "propagation_scope" in values:
                values["propagation_scope"] = PropagationScope(values["propagation_scope"])
            if "component_id_max_passes" in values:
                values["component_id_max_passes"] = int(values["component_id_max_passes"])
        except (TypeError, ValueError) as exc:
            raise FormatError(f"Invalid configuration value: {exc}") from exc

        if values.get("component_id_max_passes", 1) < 1:
            raise FormatError("component_id_max_passes must be at least 1")
        if "log_level" in values:
            values["log_level"] = str(values["log_level"]).upper()
        return cls(**values)

    def to_dict(self) -> dict[str, Any]:
        return {
            "world_size": list(self.world_size),
            "world_material": self.world_material,
            "propagation_scope": self.propagation_scope.value,
            "component_id_max_passes": self.component_id_max_passes,
            "fallback_color": list(self.fallback_color),
            "default_hits_collection": self.default_hits_collection,
            "log_level": self.log_level,
        }


def _float_tuple(value: Any, length: int, key: str) -> tuple[float, ...]:
    if not isinstance(value, (list, tuple)) or len(value) != length:
        raise ValueError(f"{key} must be a list of {length} numbers")
    return tuple(float(v) for v in value)


def load_config(path: Path | str | None = None) -> EditorConfig:
    """Load an :class:`EditorConfig` from a YAML file.

    Args:
        path: YAML file; None returns the defaults

    Raises:
        FileNotFoundError: If the file does not exist
        FormatError: If the YAML content is invalid
    """
    if path is None:
        return EditorConfig()

    with open(path) as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as exc:
            raise FormatError(f"Invalid YAML in {path}: {exc}") from exc

    if data is None:
        logger.debug(f"Config file {path} is empty, using defaults")
        return EditorConfig()
    return EditorConfig.from_dict(data)
