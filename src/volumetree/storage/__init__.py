"""Saved-object storage."""

from .base import StorageBackend, sanitize_name
from .filesystem import FileSystemStorage, MemoryStorage
from .library import ObjectLibrary, from_standard, to_standard

__all__ = [
    "StorageBackend",
    "sanitize_name",
    "FileSystemStorage",
    "MemoryStorage",
    "ObjectLibrary",
    "from_standard",
    "to_standard",
]
