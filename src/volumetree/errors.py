"""Exception types raised by the volume graph core."""

from __future__ import annotations


class GeometryError(Exception):
    """Base class for every error raised by volumetree."""


class FormatError(GeometryError, ValueError):
    """Malformed input payload (import object, project file, wire document).

    Raised before any mutation takes place.
    """


class InvariantViolation(GeometryError):
    """An operation would break a graph invariant (duplicate name, deleting World)."""


class VolumeNotFoundError(InvariantViolation, LookupError):
    """The named volume does not exist in the graph."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Volume '{name}' not found")
        self.name = name


class CycleError(GeometryError):
    """The mother-volume relation contains a cycle."""


class ObjectNotFoundError(GeometryError, LookupError):
    """A saved object does not exist in the storage backend."""

    def __init__(self, key: str) -> None:
        super().__init__(f"Object '{key}' not found")
        self.key = key
