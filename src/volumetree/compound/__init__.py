"""Compound templates: shared identity, import and export."""

from .identity import (
    ParentCheck,
    assign_component_ids,
    check_assembly_parent,
    ensure_stable_id,
    propagate,
)
from .importer import ImportResult, import_object
from .exporter import ExportPayload, extract_object
from .instances import SyncResult, instances_of, sync_instances

__all__ = [
    "ParentCheck",
    "assign_component_ids",
    "check_assembly_parent",
    "ensure_stable_id",
    "propagate",
    "ImportResult",
    "import_object",
    "ExportPayload",
    "extract_object",
    "SyncResult",
    "instances_of",
    "sync_instances",
]
