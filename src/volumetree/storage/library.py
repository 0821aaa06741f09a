"""Saved-object library using the standardized placement/dimensions format."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Mapping

from ..compound.exporter import ExportPayload
from ..core.naming import NameGenerator
from ..core.shapes import shape_class, shape_from_dimensions
from ..errors import FormatError, ObjectNotFoundError
from .base import StorageBackend, sanitize_name

logger = logging.getLogger(__name__)

FORMAT_VERSION = "2.0"


def to_standard(record: Mapping[str, Any]) -> dict[str, Any]:
    """Rewrite an editable volume record into the standardized layout.

    ``position``/``rotation`` become ``placement{x, y, z, rotation}`` and
    the shape fields become the normalized ``dimensions``.
    """
    kind = record.get("type")
    shape = shape_class(kind).from_record(record)
    standard = {
        key: value for key, value in record.items()
        if key not in ("position", "rotation") and key not in shape.record_keys
    }
    position = record.get("position") or {}
    rotation = record.get("rotation") or {}
    standard["placement"] = {
        "x": position.get("x", 0.0),
        "y": position.get("y", 0.0),
        "z": position.get("z", 0.0),
        "rotation": {
            "x": rotation.get("x", 0.0),
            "y": rotation.get("y", 0.0),
            "z": rotation.get("z", 0.0),
        },
    }
    standard["dimensions"] = shape.dimensions()
    return standard


def from_standard(record: Any, what: str = "Object") -> dict[str, Any]:
    """Inverse of :func:`to_standard`.

    Raises:
        FormatError: If ``placement`` or ``dimensions`` is missing
    """
    if not isinstance(record, Mapping):
        raise FormatError(f"{what} must be an object")
    placement = record.get("placement")
    if not isinstance(placement, Mapping):
        raise FormatError(f"{what} is missing required placement property")
    dimensions = record.get("dimensions")
    if not isinstance(dimensions, Mapping):
        raise FormatError(f"{what} is missing required dimensions property")

    editable = {k: v for k, v in record.items() if k not in ("placement", "dimensions", "parent")}
    if record.get("parent") and not record.get("mother_volume"):
        editable["mother_volume"] = record["parent"]
    rotation = placement.get("rotation") or {}
    editable["position"] = {axis: placement.get(axis, 0.0) for axis in "xyz"}
    editable["rotation"] = {axis: rotation.get(axis, 0.0) for axis in "xyz"}
    editable.update(shape_from_dimensions(record.get("type"), dimensions).to_record())
    return editable


class ObjectLibrary:
    """Save, list and load compound objects through a storage backend.

    Args:
        backend: Where the documents live
        names: Source of fresh component ids
        clock: Returns the current time for metadata timestamps
    """

    def __init__(
        self,
        backend: StorageBackend,
        names: NameGenerator | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.backend = backend
        self.names = names or NameGenerator()
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def save(
        self,
        name: str,
        payload: ExportPayload | Mapping[str, Any],
        description: str = "",
        preserve_component_ids: bool = False,
    ) -> str:
        """Store an exported object under ``name``.

        With ``preserve_component_ids`` the stored object of the same name is
        consulted: descendants whose component id it already knows keep it,
        the others get fresh ids.

        Returns:
            The file name the object was stored under
        """
        data = payload.to_dict() if isinstance(payload, ExportPayload) else dict(payload)
        if not isinstance(data.get("object"), Mapping) or not isinstance(data.get("descendants"), list):
            raise FormatError("Object payload needs 'object' and a 'descendants' list")

        key = sanitize_name(name)
        existing = self._existing(key)
        descendants = [dict(d) for d in data["descendants"]]
        if preserve_component_ids and existing is not None:
            stored = existing.get("descendants")
            known = {
                d.get("_componentId") for d in (stored if isinstance(stored, list) else [])
                if isinstance(d, Mapping) and d.get("_componentId")
            }
            for descendant in descendants:
                if descendant.get("_componentId") not in known:
                    descendant["_componentId"] = self.names.component_id()

        now = self._clock().isoformat()
        created = now
        if existing is not None and isinstance(existing.get("metadata"), Mapping):
            created = existing["metadata"].get("createdAt", now)

        document = {
            field: value for field, value in data.items() if field not in ("object", "descendants", "isWorld")
        }
        document["object"] = to_standard(data["object"])
        document["descendants"] = [to_standard(d) for d in descendants]
        document["metadata"] = {
            "name": name,
            "description": description,
            "createdAt": created,
            "updatedAt": now,
            "formatVersion": FORMAT_VERSION,
        }
        self.backend.save(key, document)
        logger.info(f"Saved object '{name}' as {key}.json")
        return f"{key}.json"

    def _existing(self, key: str) -> dict[str, Any] | None:
        try:
            document = self.backend.load(key)
        except (ObjectNotFoundError, FormatError):
            return None
        return document if isinstance(document, Mapping) else None

    def list(self) -> list[dict[str, Any]]:
        """Entries ``{name, description, updatedAt, fileName}`` for every stored object."""
        entries = []
        for key in self.backend.list():
            try:
                document = self.backend.load(key)
                if not isinstance(document, Mapping):
                    raise FormatError("stored document is not an object")
            except FormatError as exc:
                logger.warning(f"Could not read object {key}: {exc}")
                entries.append({
                    "name": key,
                    "description": "Error reading metadata",
                    "updatedAt": "",
                    "fileName": f"{key}.json",
                })
                continue
            metadata = document.get("metadata")
            if not isinstance(metadata, Mapping):
                metadata = {}
            entries.append({
                "name": metadata.get("name") or key,
                "description": metadata.get("description", ""),
                "updatedAt": metadata.get("updatedAt", ""),
                "fileName": f"{key}.json",
            })
        return entries

    def load(self, file_name: str) -> dict[str, Any]:
        """Load a stored object back into the editable import payload.

        Returns:
            ``{"object", "descendants", "metadata"}`` (plus ``_compoundId``
            when stored), ready for :func:`volumetree.compound.import_object`

        Raises:
            ObjectNotFoundError: If the object does not exist
            FormatError: If a stored record lacks placement or dimensions
        """
        key = file_name.removesuffix(".json")
        document = self.backend.load(key)
        if not isinstance(document, Mapping):
            raise FormatError(f"Stored object {file_name} is not an object")
        descendants = document.get("descendants", [])
        if not isinstance(descendants, list):
            raise FormatError(f"Stored object {file_name} has invalid descendants")

        payload = {
            field: value for field, value in document.items() if field not in ("object", "descendants")
        }
        payload["object"] = from_standard(document.get("object"))
        payload["descendants"] = [from_standard(d, "Descendant") for d in descendants]
        payload.setdefault("metadata", {"name": key})
        return payload

    def delete(self, file_name: str) -> bool:
        return self.backend.delete(file_name.removesuffix(".json"))
