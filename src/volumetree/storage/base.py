"""Storage backend contract for saved objects."""

from __future__ import annotations

import re
from typing import Any, Protocol, runtime_checkable

_UNSAFE = re.compile(r"[^A-Za-z0-9_-]")


def sanitize_name(name: str) -> str:
    """Make a user-facing object name safe for use as a storage key."""
    return _UNSAFE.sub("_", name)


@runtime_checkable
class StorageBackend(Protocol):
    """Key -> JSON document store.

    Keys are sanitized object names without a ``.json`` suffix.
    """

    def save(self, key: str, data: dict[str, Any]) -> None:
        ...

    def list(self) -> list[str]:
        ...

    def load(self, key: str) -> dict[str, Any]:
        """Return the stored document.

        Raises:
            ObjectNotFoundError: If nothing is stored under ``key``
        """
        ...

    def delete(self, key: str) -> bool:
        ...
