"""Core volume graph components."""

from .transform import Transform
from .volume import Vector3, Volume, WORLD_NAME, default_world
from .graph import VolumeGraph
from .resolver import TransformResolver
from .naming import NameGenerator
from . import shapes

__all__ = [
    "Transform",
    "Vector3",
    "Volume",
    "WORLD_NAME",
    "default_world",
    "VolumeGraph",
    "TransformResolver",
    "NameGenerator",
    "shapes",
]
