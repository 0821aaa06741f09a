"""Backends storing one JSON document per object."""

from __future__ import annotations

import copy
import json
import logging
from pathlib import Path
from typing import Any

from ..errors import FormatError, ObjectNotFoundError

logger = logging.getLogger(__name__)


class FileSystemStorage:
    """Stores each object as ``<directory>/<key>.json``."""

    def __init__(self, directory: Path | str):
        self.directory = Path(directory)

    def _path(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def save(self, key: str, data: dict[str, Any]) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        with open(self._path(key), "w") as f:
            json.dump(data, f, indent=2)
        logger.debug(f"Saved object {key} to {self.directory}")

    def list(self) -> list[str]:
        if not self.directory.is_dir():
            return []
        return sorted(path.stem for path in self.directory.glob("*.json"))

    def load(self, key: str) -> dict[str, Any]:
        path = self._path(key)
        if not path.exists():
            raise ObjectNotFoundError(key)
        with open(path) as f:
            try:
                return json.load(f)
            except json.JSONDecodeError as exc:
                raise FormatError(f"Invalid JSON in {path}: {exc}") from exc

    def delete(self, key: str) -> bool:
        path = self._path(key)
        if not path.exists():
            return False
        path.unlink()
        return True


class MemoryStorage:
    """In-process backend; documents are deep-copied on the way in and out."""

    def __init__(self) -> None:
        self._objects: dict[str, dict[str, Any]] = {}

    def save(self, key: str, data: dict[str, Any]) -> None:
        self._objects[key] = copy.deepcopy(data)

    def list(self) -> list[str]:
        return sorted(self._objects)

    def load(self, key: str) -> dict[str, Any]:
        try:
            return copy.deepcopy(self._objects[key])
        except KeyError:
            raise ObjectNotFoundError(key) from None

    def delete(self, key: str) -> bool:
        return self._objects.pop(key, None) is not None
